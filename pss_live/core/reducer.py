"""
Match state reducer.

Applies decoded events to a MatchState in ingestion order.

CRITICAL: Scores are snapshot-only. Point (pt1/pt2) records that a point
happened but never touches stored scores. SubScore (s11..s23) and Score
(sc1/sc2) overwrite the stored value on every arrival. Missed pt* events
are harmless as long as a later snapshot arrives, and replaying the same
snapshot twice changes nothing after the first application.

Two entry points:
    reduce(state, event)  - pure, returns a new state, input untouched
    MatchReducer.apply()  - owns the live state and mutates it in place

Both run the same handlers, so replaying an identical ordered event
sequence against a fresh state always reproduces the same final state.
"""

import copy
import logging
from typing import Callable, Dict, Iterable, Optional, Type

from ..protocol.events import (
    AdvantageVote,
    AthleteInfo,
    Break,
    Challenge,
    Clock,
    ClockFlag,
    Connection,
    HitLevel,
    Injury,
    MatchLoaded,
    MatchMeta,
    MatchWinner,
    Point,
    ProvisionalWinner,
    Ready,
    Round,
    RoundWinners,
    Score,
    StreamEvent,
    SubScore,
    WarningGamJeom,
)
from .state import MatchState

logger = logging.getLogger(__name__)

Handler = Callable[[MatchState, StreamEvent], MatchState]


# === Lifecycle ===

def _match_loaded(state: MatchState, event: MatchLoaded) -> MatchState:
    # Transport status is not match content, it survives the reset
    fresh = MatchState(loaded=True)
    fresh.connection = state.connection
    return fresh


def _ready(state: MatchState, event: Ready) -> MatchState:
    state.ready = True
    return state


def _connection(state: MatchState, event: Connection) -> MatchState:
    state.connection.connected = event.connected
    state.connection.port = event.port
    return state


# === Descriptive ===

def _match_meta(state: MatchState, event: MatchMeta) -> MatchState:
    state.match_number = event.number
    state.match_details = list(event.details)
    return state


def _athlete_info(state: MatchState, event: AthleteInfo) -> MatchState:
    athlete = state.athletes[event.athlete]
    athlete.short_name = event.short_name
    athlete.long_name = event.long_name
    athlete.country = event.country
    athlete.extra = list(event.extra)
    return state


# === Clocks ===

def _clock(state: MatchState, event: Clock) -> MatchState:
    # Increases are accepted as manual corrections
    state.clock.remaining = event.remaining
    if event.flag == ClockFlag.START:
        state.clock.running = True
    elif event.flag == ClockFlag.STOP:
        state.clock.running = False
    return state


def _round(state: MatchState, event: Round) -> MatchState:
    state.round = event.number
    return state


def _injury(state: MatchState, event: Injury) -> MatchState:
    injury = state.injuries[event.slot]
    injury.remaining = event.remaining
    if event.flag == ClockFlag.SHOW:
        injury.visible = True
        injury.reset = False
    elif event.flag == ClockFlag.HIDE:
        injury.visible = False
    elif event.flag == ClockFlag.RESET:
        injury.visible = False
        injury.reset = True
    return state


def _break(state: MatchState, event: Break) -> MatchState:
    state.break_clock.remaining = event.remaining
    state.break_clock.ended = event.ended
    return state


# === Scoring ===

def _point(state: MatchState, event: Point) -> MatchState:
    state.athletes[event.athlete].last_point = event.point_type
    return state


def _hit_level(state: MatchState, event: HitLevel) -> MatchState:
    state.athletes[event.athlete].hit_level = event.level
    return state


def _sub_score(state: MatchState, event: SubScore) -> MatchState:
    state.athletes[event.athlete].sub_scores[event.round - 1] = event.score
    return state


def _score(state: MatchState, event: Score) -> MatchState:
    state.athletes[event.athlete].score = event.total
    return state


def _warning(state: MatchState, event: WarningGamJeom) -> MatchState:
    state.athletes[event.athlete].warnings = event.count
    return state


def _advantage_vote(state: MatchState, event: AdvantageVote) -> MatchState:
    state.advantage_vote = event.value
    return state


# === Decisions ===

def _challenge(state: MatchState, event: Challenge) -> MatchState:
    # Replaces whatever the party had, pending or resolved
    state.challenges[event.party] = event.status
    return state


def _round_winners(state: MatchState, event: RoundWinners) -> MatchState:
    state.round_winners = list(event.winners)
    return state


def _match_winner(state: MatchState, event: MatchWinner) -> MatchState:
    # Provisional winner is left alone
    if event.name:
        state.winner_name = event.name
    if event.classification:
        state.winner_classification = event.classification
    return state


def _provisional_winner(state: MatchState, event: ProvisionalWinner) -> MatchState:
    state.provisional_winner = event.side
    return state


HANDLERS: Dict[Type[StreamEvent], Handler] = {
    MatchLoaded: _match_loaded,
    Ready: _ready,
    Connection: _connection,
    MatchMeta: _match_meta,
    AthleteInfo: _athlete_info,
    Clock: _clock,
    Round: _round,
    Injury: _injury,
    Break: _break,
    Point: _point,
    HitLevel: _hit_level,
    SubScore: _sub_score,
    Score: _score,
    WarningGamJeom: _warning,
    AdvantageVote: _advantage_vote,
    Challenge: _challenge,
    RoundWinners: _round_winners,
    MatchWinner: _match_winner,
    ProvisionalWinner: _provisional_winner,
}


def apply_event(state: MatchState, event: StreamEvent) -> MatchState:
    """
    Apply one event in place.

    Returns the resulting state, which is a new object after MatchLoaded.

    Raises:
        TypeError: If the event type has no handler
    """
    handler = HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"No reducer for event type {type(event).__name__}")
    return handler(state, event)


def reduce(state: MatchState, event: StreamEvent) -> MatchState:
    """Pure reduction: returns a new state, leaves ``state`` untouched."""
    return apply_event(copy.deepcopy(state), event)


def replay(events: Iterable[StreamEvent], state: Optional[MatchState] = None) -> MatchState:
    """Fold an ordered event sequence over a fresh (or given) state."""
    result = copy.deepcopy(state) if state is not None else MatchState()
    for event in events:
        result = apply_event(result, event)
    return result


class MatchReducer:
    """
    Single writer of the live MatchState.

    Usage:
        reducer = MatchReducer()
        for event in events:
            reducer.apply(event)
        print(reducer.state.totals)
    """

    def __init__(self, state: Optional[MatchState] = None):
        self.state = state if state is not None else MatchState()
        self.events_applied = 0
        self.matches_loaded = 0

    def apply(self, event: StreamEvent) -> MatchState:
        """Apply an event to the live state and return it."""
        self.state = apply_event(self.state, event)
        self.events_applied += 1

        if isinstance(event, MatchLoaded):
            self.matches_loaded += 1
            logger.info("Match loaded, state reset")
        else:
            logger.debug(f"Applied {event.kind.value}: {event.to_wire()}")

        return self.state

    def snapshot(self) -> MatchState:
        """Deep copy of the live state, safe to hand to readers."""
        return copy.deepcopy(self.state)

    def reset(self) -> None:
        self.state = MatchState()

"""
Live match state.

MatchState is the single aggregate the reducer owns. Other components only
ever see deep copies (see StateSnapshot in streaming.publisher).

Invariants:
    - round_winners always has length 3; 0 = undecided
    - scores, sub-scores and warning counts are non-negative integers
    - one challenge status per party (0 referee, 1, 2), so at most one
      pending challenge per party
    - clock values are whole seconds
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..protocol.events import ChallengeStatus, format_clock
from ..protocol.registry import ROUND_COUNT


@dataclass
class AthleteState:
    """Identity and scoring of one athlete."""
    short_name: str = ''
    long_name: str = ''
    country: str = ''
    extra: List[str] = field(default_factory=list)

    score: int = 0
    sub_scores: List[int] = field(default_factory=lambda: [0] * ROUND_COUNT)
    warnings: int = 0
    hit_level: int = 0
    last_point: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            'short_name': self.short_name,
            'long_name': self.long_name,
            'country': self.country,
            'extra': list(self.extra),
            'score': self.score,
            'sub_scores': list(self.sub_scores),
            'warnings': self.warnings,
            'hit_level': self.hit_level,
            'last_point': self.last_point,
        }


@dataclass
class MatchClock:
    remaining: int = 0
    running: bool = False

    @property
    def display(self) -> str:
        return format_clock(self.remaining)


@dataclass
class InjuryClock:
    remaining: int = 0
    visible: bool = False
    reset: bool = False


@dataclass
class BreakClock:
    remaining: int = 0
    ended: bool = False


@dataclass
class ConnectionStatus:
    connected: bool = False
    port: Optional[int] = None


def _athletes() -> Dict[int, AthleteState]:
    return {1: AthleteState(), 2: AthleteState()}


def _injuries() -> Dict[int, InjuryClock]:
    # Slot 0 is the unidentified athlete, never merged with 1 or 2
    return {0: InjuryClock(), 1: InjuryClock(), 2: InjuryClock()}


def _challenges() -> Dict[int, ChallengeStatus]:
    return {0: ChallengeStatus.NONE, 1: ChallengeStatus.NONE, 2: ChallengeStatus.NONE}


@dataclass
class MatchState:
    """
    Complete live state of one match.

    Example:
        state = MatchState()
        state.athletes[1].score        # 0
        state.sub_score_row(1)         # [0, 0]
        state.round_winners            # [0, 0, 0]
    """
    loaded: bool = False
    ready: bool = False

    match_number: str = ''
    match_details: List[str] = field(default_factory=list)

    athletes: Dict[int, AthleteState] = field(default_factory=_athletes)

    round: int = 0
    clock: MatchClock = field(default_factory=MatchClock)
    injuries: Dict[int, InjuryClock] = field(default_factory=_injuries)
    challenges: Dict[int, ChallengeStatus] = field(default_factory=_challenges)
    break_clock: BreakClock = field(default_factory=BreakClock)

    round_winners: List[int] = field(default_factory=lambda: [0] * ROUND_COUNT)
    provisional_winner: Optional[str] = None
    winner_name: Optional[str] = None
    winner_classification: Optional[str] = None
    advantage_vote: Optional[int] = None

    connection: ConnectionStatus = field(default_factory=ConnectionStatus)

    def athlete(self, number: int) -> AthleteState:
        return self.athletes[number]

    def sub_score_row(self, round_number: int) -> List[int]:
        """Round scores ``[athlete1, athlete2]`` for a 1-based round."""
        index = round_number - 1
        return [self.athletes[1].sub_scores[index], self.athletes[2].sub_scores[index]]

    @property
    def totals(self) -> List[int]:
        return [self.athletes[1].score, self.athletes[2].score]

    @property
    def warnings(self) -> List[int]:
        return [self.athletes[1].warnings, self.athletes[2].warnings]

    def validate(self) -> List[str]:
        """Check invariants. Returns list of violations (empty if valid)."""
        errors = []

        if len(self.round_winners) != ROUND_COUNT:
            errors.append(f"round_winners has {len(self.round_winners)} entries")

        for number, athlete in self.athletes.items():
            if athlete.score < 0:
                errors.append(f"athlete {number} score is negative")
            if athlete.warnings < 0:
                errors.append(f"athlete {number} warnings is negative")
            if any(s < 0 for s in athlete.sub_scores):
                errors.append(f"athlete {number} has a negative round score")

        if self.clock.remaining < 0 or self.break_clock.remaining < 0:
            errors.append("clock value is negative")

        return errors

    def to_dict(self) -> dict:
        """JSON-safe view."""
        return {
            'loaded': self.loaded,
            'ready': self.ready,
            'match_number': self.match_number,
            'match_details': list(self.match_details),
            'athletes': {str(n): a.to_dict() for n, a in self.athletes.items()},
            'round': self.round,
            'clock': {
                'remaining': self.clock.remaining,
                'display': self.clock.display,
                'running': self.clock.running,
            },
            'injuries': {
                str(slot): {
                    'remaining': injury.remaining,
                    'visible': injury.visible,
                    'reset': injury.reset,
                }
                for slot, injury in self.injuries.items()
            },
            'challenges': {str(p): status.value for p, status in self.challenges.items()},
            'break': {
                'remaining': self.break_clock.remaining,
                'ended': self.break_clock.ended,
            },
            'round_winners': list(self.round_winners),
            'provisional_winner': self.provisional_winner,
            'winner': {
                'name': self.winner_name,
                'classification': self.winner_classification,
            },
            'advantage_vote': self.advantage_vote,
            'connection': {
                'connected': self.connection.connected,
                'port': self.connection.port,
            },
        }

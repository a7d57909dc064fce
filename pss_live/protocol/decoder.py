"""
Stream decoder: Statement -> StreamEvent or DecodeError.

Dispatch is a fixed mapping from wire tag to decoding function, built once
from the tag registry. Arity checks raise ArityError and each function
raises InvalidFieldError on bad input; the decoder converts every failure
into a DecodeError diagnostic. Nothing here raises to the caller.

Field rules:
    - Counters (pt*, hl*, wg*, s*, sc*, rnd, avt, round winners) are
      non-negative integers
    - Challenge results accept -1 / 0 / 1 and absence (requested)
    - Clocks accept m:ss or bare seconds plus an optional trailing flag
"""

import logging
import re
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from ..core.errors import ArityError, DecodeError, ErrorCode, InvalidFieldError
from .events import (
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
    parse_clock,
)
from .registry import (
    CONNECTION_SPEC,
    CONNECTION_TAG,
    FIGHT_LOADED,
    FIGHT_READY,
    ROUND_LABELS,
    TAG_REGISTRY,
    EventKind,
    TagSpec,
)
from .tokenizer import Statement, Tokenizer

logger = logging.getLogger(__name__)

Fields = Tuple[str, ...]
DecodeResult = Union[StreamEvent, DecodeError]
DecodeFn = Callable[[str, Fields, float], StreamEvent]

_UINT = re.compile(r'^\d+$', re.ASCII)


# === Field helpers ===

def _uint(value: str, name: str) -> int:
    if not _UINT.match(value):
        raise InvalidFieldError(f"{name} must be a non-negative integer, got {value!r}")
    return int(value)


def _clock(value: str, name: str = 'clock') -> int:
    try:
        return parse_clock(value)
    except ValueError:
        raise InvalidFieldError(f"{name} must be m:ss or seconds, got {value!r}")


def _flag(value: str, allowed: FrozenSet[ClockFlag]) -> ClockFlag:
    try:
        flag = ClockFlag(value)
    except ValueError:
        flag = None
    if flag not in allowed:
        names = ', '.join(sorted(f.value for f in allowed))
        raise InvalidFieldError(f"flag must be one of {names}, got {value!r}")
    return flag


def _keyword(value: str, expected: str) -> None:
    if value != expected:
        raise InvalidFieldError(f"expected {expected!r}, got {value!r}")


def _check_arity(spec: TagSpec, statement: Statement) -> None:
    count = len(statement.fields)
    if spec.accepts(count):
        return
    if spec.min_fields == spec.max_fields:
        expected = f"{spec.min_fields}"
    else:
        expected = f"{spec.min_fields}..{spec.max_fields if spec.max_fields is not None else 'n'}"
    raise ArityError(f"expects {expected} fields, got {count}")


_CLOCK_FLAGS = frozenset({ClockFlag.START, ClockFlag.STOP})
_INJURY_FLAGS = frozenset({ClockFlag.SHOW, ClockFlag.HIDE, ClockFlag.RESET})
_BREAK_FLAGS = frozenset({ClockFlag.STOP_END})


# === Per-kind decoders ===

def _decode_point(tag: str, fields: Fields, ts: float) -> StreamEvent:
    return Point(int(tag[-1]), _uint(fields[0], 'point type'), timestamp=ts)


def _decode_hit_level(tag: str, fields: Fields, ts: float) -> StreamEvent:
    return HitLevel(int(tag[-1]), _uint(fields[0], 'hit level'), timestamp=ts)


def _decode_warning(tag: str, fields: Fields, ts: float) -> StreamEvent:
    return WarningGamJeom(int(tag[-1]), _uint(fields[0], 'warning count'), timestamp=ts)


def _decode_injury(tag: str, fields: Fields, ts: float) -> StreamEvent:
    flag = _flag(fields[1], _INJURY_FLAGS) if len(fields) > 1 else None
    return Injury(int(tag[-1]), _clock(fields[0], 'injury clock'), flag, timestamp=ts)


def _decode_challenge(tag: str, fields: Fields, ts: float) -> StreamEvent:
    party = int(tag[-1])
    if not fields:
        return Challenge(party, timestamp=ts)

    if fields[0] not in ('-1', '0', '1'):
        raise InvalidFieldError(f"challenge result must be -1, 0 or 1, got {fields[0]!r}")
    result = int(fields[0])

    outcome = None
    if len(fields) > 1:
        if result != 1:
            raise InvalidFieldError("challenge outcome is only valid after acceptance")
        if fields[1] not in ('0', '1'):
            raise InvalidFieldError(f"challenge outcome must be 0 or 1, got {fields[1]!r}")
        outcome = int(fields[1])

    return Challenge(party, result, outcome, timestamp=ts)


def _decode_break(tag: str, fields: Fields, ts: float) -> StreamEvent:
    ended = len(fields) > 1 and _flag(fields[1], _BREAK_FLAGS) == ClockFlag.STOP_END
    return Break(_clock(fields[0], 'break clock'), ended, timestamp=ts)


def _decode_round_winners(tag: str, fields: Fields, ts: float) -> StreamEvent:
    winners = []
    for i, label in enumerate(ROUND_LABELS):
        _keyword(fields[2 * i], label)
        winners.append(_uint(fields[2 * i + 1], f'{label} winner'))
    return RoundWinners(tuple(winners), timestamp=ts)


def _decode_match_winner(tag: str, fields: Fields, ts: float) -> StreamEvent:
    name = fields[0] or None
    classification = fields[1] if len(fields) > 1 and fields[1] else None
    return MatchWinner(name, classification, timestamp=ts)


def _decode_provisional_winner(tag: str, fields: Fields, ts: float) -> StreamEvent:
    if not fields[0]:
        raise InvalidFieldError("winner side must not be empty")
    return ProvisionalWinner(fields[0], timestamp=ts)


def _decode_clock(tag: str, fields: Fields, ts: float) -> StreamEvent:
    flag = _flag(fields[1], _CLOCK_FLAGS) if len(fields) > 1 else None
    return Clock(_clock(fields[0]), flag, timestamp=ts)


def _decode_round(tag: str, fields: Fields, ts: float) -> StreamEvent:
    return Round(_uint(fields[0], 'round'), timestamp=ts)


def _decode_match_loaded(tag: str, fields: Fields, ts: float) -> StreamEvent:
    _keyword(fields[0], FIGHT_LOADED)
    return MatchLoaded(timestamp=ts)


def _decode_athlete_info(tag: str, fields: Fields, ts: float) -> StreamEvent:
    return AthleteInfo(
        athlete=int(tag[-1]),
        short_name=fields[0],
        long_name=fields[1] if len(fields) > 1 else '',
        country=fields[2] if len(fields) > 2 else '',
        extra=tuple(fields[3:]),
        timestamp=ts,
    )


def _decode_match_meta(tag: str, fields: Fields, ts: float) -> StreamEvent:
    return MatchMeta(fields[0], tuple(fields[1:]), timestamp=ts)


def _decode_sub_score(tag: str, fields: Fields, ts: float) -> StreamEvent:
    # s<athlete><round>
    return SubScore(int(tag[1]), int(tag[2]), _uint(fields[0], 'round score'), timestamp=ts)


def _decode_score(tag: str, fields: Fields, ts: float) -> StreamEvent:
    return Score(int(tag[-1]), _uint(fields[0], 'score'), timestamp=ts)


def _decode_advantage_vote(tag: str, fields: Fields, ts: float) -> StreamEvent:
    return AdvantageVote(_uint(fields[0], 'advantage vote'), timestamp=ts)


def _decode_ready(tag: str, fields: Fields, ts: float) -> StreamEvent:
    _keyword(fields[0], FIGHT_READY)
    return Ready(timestamp=ts)


def _decode_connection(tag: str, fields: Fields, ts: float) -> StreamEvent:
    if fields[1] not in ('connected', 'disconnected'):
        raise InvalidFieldError(f"unknown connection status {fields[1]!r}")
    return Connection(_uint(fields[0], 'port'), fields[1] == 'connected', timestamp=ts)


KIND_DECODERS: Dict[EventKind, DecodeFn] = {
    EventKind.POINT: _decode_point,
    EventKind.HIT_LEVEL: _decode_hit_level,
    EventKind.WARNING_GAM_JEOM: _decode_warning,
    EventKind.INJURY: _decode_injury,
    EventKind.CHALLENGE: _decode_challenge,
    EventKind.BREAK: _decode_break,
    EventKind.ROUND_WINNERS: _decode_round_winners,
    EventKind.MATCH_WINNER: _decode_match_winner,
    EventKind.PROVISIONAL_WINNER: _decode_provisional_winner,
    EventKind.CLOCK: _decode_clock,
    EventKind.ROUND: _decode_round,
    EventKind.MATCH_LOADED: _decode_match_loaded,
    EventKind.ATHLETE_INFO: _decode_athlete_info,
    EventKind.MATCH_META: _decode_match_meta,
    EventKind.SUB_SCORE: _decode_sub_score,
    EventKind.SCORE: _decode_score,
    EventKind.ADVANTAGE_VOTE: _decode_advantage_vote,
    EventKind.READY: _decode_ready,
    EventKind.CONNECTION: _decode_connection,
}


class StreamDecoder:
    """
    Decode statements into typed events.

    Usage:
        decoder = StreamDecoder()
        for result in decoder.decode_payload("sc1;3;sc2;0;", timestamp=now):
            if isinstance(result, DecodeError):
                print(result.message)
            else:
                print(result.kind, result)
    """

    def __init__(self, registry: Optional[Dict[str, TagSpec]] = None):
        self.registry = registry if registry is not None else TAG_REGISTRY
        self.tokenizer = Tokenizer(self.registry)

        # Fixed tag -> (spec, decode function) table
        self._decoders: Dict[str, Tuple[TagSpec, DecodeFn]] = {
            tag: (spec, KIND_DECODERS[spec.kind])
            for tag, spec in self.registry.items()
        }
        self._decoders[CONNECTION_TAG] = (CONNECTION_SPEC, _decode_connection)

    def decode(self, statement: Statement, timestamp: float = 0.0) -> DecodeResult:
        """
        Decode one statement.

        Returns:
            StreamEvent on success, DecodeError otherwise
        """
        entry = self._decoders.get(statement.tag) if statement.recognized else None
        if entry is None:
            return DecodeError(
                code=ErrorCode.E2001_UNKNOWN_TAG,
                tag=statement.tag,
                fields=statement.fields,
                reason=f"Unknown stream tag {statement.tag!r}",
                timestamp=timestamp,
            )

        spec, decode_fn = entry
        try:
            _check_arity(spec, statement)
            return decode_fn(statement.tag, statement.fields, timestamp)
        except (ArityError, InvalidFieldError) as e:
            return DecodeError(
                code=e.code,
                tag=statement.tag,
                fields=statement.fields,
                reason=f"{statement.tag}: {e}",
                timestamp=timestamp,
            )

    def decode_all(self, statements: Iterable[Statement], timestamp: float = 0.0) -> List[DecodeResult]:
        """Decode statements in order."""
        return [self.decode(statement, timestamp) for statement in statements]

    def decode_payload(self, payload: str, timestamp: float = 0.0) -> List[DecodeResult]:
        """Tokenize and decode a whole datagram payload."""
        return self.decode_all(self.tokenizer.tokenize(payload), timestamp)


def serialize(event: StreamEvent) -> str:
    """Serialize an event back to protocol text."""
    return event.to_wire()

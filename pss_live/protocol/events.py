"""
Typed stream events.

Each recognized statement decodes to one immutable event. Events know how
to serialize themselves back to a Statement, which is what the round-trip
tests and the capture writer rely on.

Event equality ignores the arrival timestamp: two events carrying the same
protocol content compare equal whenever they arrived.
"""

import dataclasses
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Optional, Tuple

from .registry import (
    CONNECTION_TAG,
    FIGHT_LOADED,
    FIGHT_READY,
    INJURY_SLOT_NAMES,
    PARTY_NAMES,
    POINT_NAMES,
    ROUND_LABELS,
    EventKind,
)
from .tokenizer import Statement


_CLOCK_MMSS = re.compile(r'^(\d+):([0-5]\d)$', re.ASCII)
_CLOCK_SECONDS = re.compile(r'^\d+$', re.ASCII)


def parse_clock(text: str) -> int:
    """
    Normalize a clock field to whole seconds.

    Examples:
        parse_clock('2:00') = 120
        parse_clock('01:05') = 65
        parse_clock('45') = 45

    Raises:
        ValueError: If the text is neither ``m:ss`` nor bare seconds
    """
    text = text.strip()
    match = _CLOCK_MMSS.match(text)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2))
    if _CLOCK_SECONDS.match(text):
        return int(text)
    raise ValueError(f"Invalid clock value: {text!r}")


def format_clock(seconds: int) -> str:
    """Format whole seconds as ``m:ss``."""
    return f"{seconds // 60}:{seconds % 60:02d}"


class ClockFlag(Enum):
    """Trailing flags that modify a clock without being a value."""
    START = 'start'
    STOP = 'stop'
    SHOW = 'show'
    HIDE = 'hide'
    RESET = 'reset'
    STOP_END = 'stopEnd'


class ChallengeStatus(Enum):
    """Per-party challenge (IVR) status."""
    NONE = 'none'
    PENDING = 'pending'
    CANCELED = 'canceled'
    DENIED = 'denied'
    ACCEPTED = 'accepted'
    ACCEPTED_WON = 'accepted_won'
    ACCEPTED_LOST = 'accepted_lost'


@dataclass(frozen=True)
class StreamEvent:
    """Base class for all decoded events."""

    kind: ClassVar[EventKind]

    @property
    def tag(self) -> str:
        return self.to_statement().tag

    def to_statement(self) -> Statement:
        raise NotImplementedError

    def to_wire(self) -> str:
        """Serialize to protocol text."""
        return self.to_statement().to_wire()

    def to_dict(self) -> dict:
        data = {'type': self.kind.value, 'tag': self.tag}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            data[f.name] = value
        return data


@dataclass(frozen=True)
class Point(StreamEvent):
    """A point was awarded. Informational only, scores come from snapshots."""
    kind: ClassVar[EventKind] = EventKind.POINT

    athlete: int
    point_type: int
    timestamp: float = field(default=0.0, compare=False)

    @property
    def point_name(self) -> str:
        return POINT_NAMES.get(self.point_type, 'Unknown point type')

    def to_statement(self) -> Statement:
        return Statement(f'pt{self.athlete}', (str(self.point_type),))


@dataclass(frozen=True)
class HitLevel(StreamEvent):
    kind: ClassVar[EventKind] = EventKind.HIT_LEVEL

    athlete: int
    level: int
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement(f'hl{self.athlete}', (str(self.level),))


@dataclass(frozen=True)
class WarningGamJeom(StreamEvent):
    """Snapshot of one athlete's warning / gam-jeom count."""
    kind: ClassVar[EventKind] = EventKind.WARNING_GAM_JEOM

    athlete: int
    count: int
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement(f'wg{self.athlete}', (str(self.count),))


@dataclass(frozen=True)
class Injury(StreamEvent):
    """Injury clock update. Slot 0 is the unidentified athlete."""
    kind: ClassVar[EventKind] = EventKind.INJURY

    slot: int
    remaining: int
    flag: Optional[ClockFlag] = None
    timestamp: float = field(default=0.0, compare=False)

    @property
    def slot_name(self) -> str:
        return INJURY_SLOT_NAMES.get(self.slot, 'Unknown')

    def to_statement(self) -> Statement:
        fields = (format_clock(self.remaining),)
        if self.flag is not None:
            fields += (self.flag.value,)
        return Statement(f'ij{self.slot}', fields)


@dataclass(frozen=True)
class Challenge(StreamEvent):
    """
    Challenge (IVR) request or resolution.

    result: None = requested, -1 = canceled, 0 = denied, 1 = accepted
    outcome: only with result 1; 0 = lost, 1 = won
    """
    kind: ClassVar[EventKind] = EventKind.CHALLENGE

    party: int
    result: Optional[int] = None
    outcome: Optional[int] = None
    timestamp: float = field(default=0.0, compare=False)

    @property
    def party_name(self) -> str:
        return PARTY_NAMES.get(self.party, 'Unknown')

    @property
    def status(self) -> ChallengeStatus:
        if self.result is None:
            return ChallengeStatus.PENDING
        if self.result == -1:
            return ChallengeStatus.CANCELED
        if self.result == 0:
            return ChallengeStatus.DENIED
        if self.outcome is None:
            return ChallengeStatus.ACCEPTED
        return ChallengeStatus.ACCEPTED_WON if self.outcome == 1 else ChallengeStatus.ACCEPTED_LOST

    def to_statement(self) -> Statement:
        fields: Tuple[str, ...] = ()
        if self.result is not None:
            fields += (str(self.result),)
            if self.outcome is not None:
                fields += (str(self.outcome),)
        return Statement(f'ch{self.party}', fields)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data['status'] = self.status.value
        return data


@dataclass(frozen=True)
class Break(StreamEvent):
    """Break clock between rounds, independent of the match clock."""
    kind: ClassVar[EventKind] = EventKind.BREAK

    remaining: int
    ended: bool = False
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        fields = (format_clock(self.remaining),)
        if self.ended:
            fields += (ClockFlag.STOP_END.value,)
        return Statement('brk', fields)


@dataclass(frozen=True)
class RoundWinners(StreamEvent):
    """Full round-winner array. 0 = undecided."""
    kind: ClassVar[EventKind] = EventKind.ROUND_WINNERS

    winners: Tuple[int, int, int]
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        fields: Tuple[str, ...] = ()
        for label, winner in zip(ROUND_LABELS, self.winners):
            fields += (label, str(winner))
        return Statement('wrd', fields)


@dataclass(frozen=True)
class MatchWinner(StreamEvent):
    kind: ClassVar[EventKind] = EventKind.MATCH_WINNER

    name: Optional[str] = None
    classification: Optional[str] = None
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        fields = (self.name or '',)
        if self.classification:
            fields += (self.classification,)
        return Statement('wmh', fields)


@dataclass(frozen=True)
class ProvisionalWinner(StreamEvent):
    kind: ClassVar[EventKind] = EventKind.PROVISIONAL_WINNER

    side: str
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement('win', (self.side,))


@dataclass(frozen=True)
class Clock(StreamEvent):
    """Match clock. ``flag`` is START, STOP or None (value only)."""
    kind: ClassVar[EventKind] = EventKind.CLOCK

    remaining: int
    flag: Optional[ClockFlag] = None
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        fields = (format_clock(self.remaining),)
        if self.flag is not None:
            fields += (self.flag.value,)
        return Statement('clk', fields)


@dataclass(frozen=True)
class Round(StreamEvent):
    kind: ClassVar[EventKind] = EventKind.ROUND

    number: int
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement('rnd', (str(self.number),))


@dataclass(frozen=True)
class MatchLoaded(StreamEvent):
    kind: ClassVar[EventKind] = EventKind.MATCH_LOADED

    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement('pre', (FIGHT_LOADED,))


@dataclass(frozen=True)
class AthleteInfo(StreamEvent):
    kind: ClassVar[EventKind] = EventKind.ATHLETE_INFO

    athlete: int
    short_name: str
    long_name: str = ''
    country: str = ''
    extra: Tuple[str, ...] = ()
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        fields = [self.short_name, self.long_name, self.country, *self.extra]
        while len(fields) > 1 and fields[-1] == '':
            fields.pop()
        return Statement(f'at{self.athlete}', tuple(fields))


@dataclass(frozen=True)
class MatchMeta(StreamEvent):
    """Match number followed by free-form descriptive fields."""
    kind: ClassVar[EventKind] = EventKind.MATCH_META

    number: str
    details: Tuple[str, ...] = ()
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement('mch', (self.number,) + tuple(self.details))


@dataclass(frozen=True)
class SubScore(StreamEvent):
    """Per-round score snapshot for one athlete (tag s<athlete><round>)."""
    kind: ClassVar[EventKind] = EventKind.SUB_SCORE

    athlete: int
    round: int
    score: int
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement(f's{self.athlete}{self.round}', (str(self.score),))


@dataclass(frozen=True)
class Score(StreamEvent):
    """Total score snapshot for one athlete."""
    kind: ClassVar[EventKind] = EventKind.SCORE

    athlete: int
    total: int
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement(f'sc{self.athlete}', (str(self.total),))


@dataclass(frozen=True)
class AdvantageVote(StreamEvent):
    kind: ClassVar[EventKind] = EventKind.ADVANTAGE_VOTE

    value: int
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement('avt', (str(self.value),))


@dataclass(frozen=True)
class Ready(StreamEvent):
    kind: ClassVar[EventKind] = EventKind.READY

    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        return Statement('rdy', (FIGHT_READY,))


@dataclass(frozen=True)
class Connection(StreamEvent):
    """Plain-text ``Udp Port N connected;`` / ``disconnected;`` notice."""
    kind: ClassVar[EventKind] = EventKind.CONNECTION

    port: int
    connected: bool
    timestamp: float = field(default=0.0, compare=False)

    def to_statement(self) -> Statement:
        status = 'connected' if self.connected else 'disconnected'
        return Statement(CONNECTION_TAG, (str(self.port), status))


EVENT_TYPES = (
    Point, HitLevel, WarningGamJeom, Injury, Challenge, Break, RoundWinners,
    MatchWinner, ProvisionalWinner, Clock, Round, MatchLoaded, AthleteInfo,
    MatchMeta, SubScore, Score, AdvantageVote, Ready, Connection,
)

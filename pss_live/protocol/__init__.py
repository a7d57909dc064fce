"""
PSS scoring protocol.

Provides:
- registry: Static tag table with arities
- tokenizer: Payload -> statements
- events: Typed, immutable stream events
- decoder: Statement -> event or diagnostic
- schema: Vendor schema documents and verification
"""

from .registry import (
    EventKind,
    TagSpec,
    TAG_REGISTRY,
    CONNECTION_TAG,
    lookup,
    is_registered,
    tags_for,
)
from .tokenizer import Statement, Tokenizer, tokenize
from .events import (
    StreamEvent,
    ClockFlag,
    ChallengeStatus,
    Point,
    HitLevel,
    WarningGamJeom,
    Injury,
    Challenge,
    Break,
    RoundWinners,
    MatchWinner,
    ProvisionalWinner,
    Clock,
    Round,
    MatchLoaded,
    AthleteInfo,
    MatchMeta,
    SubScore,
    Score,
    AdvantageVote,
    Ready,
    Connection,
    EVENT_TYPES,
    parse_clock,
    format_clock,
)
from .decoder import StreamDecoder, serialize
from .schema import (
    ProtocolDefinition,
    SchemaReport,
    parse_protocol_definitions,
    load_protocol_definitions,
    verify_schema,
)

__all__ = [
    # Registry
    'EventKind',
    'TagSpec',
    'TAG_REGISTRY',
    'CONNECTION_TAG',
    'lookup',
    'is_registered',
    'tags_for',
    # Tokenizer
    'Statement',
    'Tokenizer',
    'tokenize',
    # Events
    'StreamEvent',
    'ClockFlag',
    'ChallengeStatus',
    'Point',
    'HitLevel',
    'WarningGamJeom',
    'Injury',
    'Challenge',
    'Break',
    'RoundWinners',
    'MatchWinner',
    'ProvisionalWinner',
    'Clock',
    'Round',
    'MatchLoaded',
    'AthleteInfo',
    'MatchMeta',
    'SubScore',
    'Score',
    'AdvantageVote',
    'Ready',
    'Connection',
    'EVENT_TYPES',
    'parse_clock',
    'format_clock',
    # Decoder
    'StreamDecoder',
    'serialize',
    # Schema
    'ProtocolDefinition',
    'SchemaReport',
    'parse_protocol_definitions',
    'load_protocol_definitions',
    'verify_schema',
]

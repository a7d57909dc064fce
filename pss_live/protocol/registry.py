"""
Static stream tag registry for the PSS scoring protocol.

The scoring hardware broadcasts ASCII statements of the form
``tag;field;field;...;``. Every recognized tag is listed here with the
event kind it decodes to and the number of fields it may carry.

The tokenizer asks ``TagSpec.takes_field`` where a statement ends when a
datagram holds unknown text; the decoder uses ``min_fields`` and
``max_fields`` for arity checks.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

# Stream tags are three characters: a lowercase letter, then letters or digits
TAG_SHAPE = re.compile(r'^[a-z][a-z0-9]{2}$')


class EventKind(Enum):
    """Every statement kind the decoder can produce."""
    POINT = 'point'
    HIT_LEVEL = 'hit_level'
    WARNING_GAM_JEOM = 'warning_gam_jeom'
    INJURY = 'injury'
    CHALLENGE = 'challenge'
    BREAK = 'break'
    ROUND_WINNERS = 'round_winners'
    MATCH_WINNER = 'match_winner'
    PROVISIONAL_WINNER = 'provisional_winner'
    CLOCK = 'clock'
    ROUND = 'round'
    MATCH_LOADED = 'match_loaded'
    ATHLETE_INFO = 'athlete_info'
    MATCH_META = 'match_meta'
    SUB_SCORE = 'sub_score'
    SCORE = 'score'
    ADVANTAGE_VOTE = 'advantage_vote'
    READY = 'ready'
    CONNECTION = 'connection'


@dataclass(frozen=True)
class TagSpec:
    """
    Registry entry for one stream tag.

    Attributes:
        tag: Wire tag, case-sensitive, 2-4 characters
        kind: Event kind produced by the decoder
        min_fields: Fewest fields accepted
        max_fields: Most fields accepted (None = unbounded)
        description: Human-readable meaning
    """
    tag: str
    kind: EventKind
    min_fields: int
    max_fields: Optional[int]
    description: str

    def accepts(self, count: int) -> bool:
        """Check whether ``count`` fields is a legal arity."""
        if count < self.min_fields:
            return False
        return self.max_fields is None or count <= self.max_fields

    def takes_field(self, position: int, value: str) -> bool:
        """
        Check whether ``value`` can fill field ``position`` (0-based).

        Required positions take any value. Optional positions refuse a value
        shaped like a stream tag, so an unknown tag after a short statement
        starts a statement of its own.
        """
        if self.max_fields is not None and position >= self.max_fields:
            return False
        if position < self.min_fields:
            return True
        return not TAG_SHAPE.match(value)


def _specs(kind: EventKind, tags: Tuple[str, ...], min_fields: int,
           max_fields: Optional[int], description: str) -> Dict[str, TagSpec]:
    return {
        tag: TagSpec(tag, kind, min_fields, max_fields, description.format(tag=tag))
        for tag in tags
    }


TAG_REGISTRY: Dict[str, TagSpec] = {
    **_specs(EventKind.POINT, ('pt1', 'pt2'), 1, 1, 'Point scored ({tag})'),
    **_specs(EventKind.HIT_LEVEL, ('hl1', 'hl2'), 1, 1, 'Hit level ({tag})'),
    **_specs(EventKind.WARNING_GAM_JEOM, ('wg1', 'wg2'), 1, 1, 'Warnings / gam-jeom count ({tag})'),
    **_specs(EventKind.INJURY, ('ij0', 'ij1', 'ij2'), 1, 2, 'Injury clock ({tag})'),
    **_specs(EventKind.CHALLENGE, ('ch0', 'ch1', 'ch2'), 0, 2, 'Challenge / IVR ({tag})'),
    **_specs(EventKind.BREAK, ('brk',), 1, 2, 'Break clock'),
    **_specs(EventKind.ROUND_WINNERS, ('wrd',), 6, 6, 'Round winners'),
    **_specs(EventKind.MATCH_WINNER, ('wmh',), 1, 2, 'Match winner'),
    **_specs(EventKind.PROVISIONAL_WINNER, ('win',), 1, 1, 'Provisional winner side'),
    **_specs(EventKind.CLOCK, ('clk',), 1, 2, 'Match clock'),
    **_specs(EventKind.ROUND, ('rnd',), 1, 1, 'Current round'),
    **_specs(EventKind.MATCH_LOADED, ('pre',), 1, 1, 'Match loaded'),
    **_specs(EventKind.ATHLETE_INFO, ('at1', 'at2'), 1, None, 'Athlete information ({tag})'),
    **_specs(EventKind.MATCH_META, ('mch',), 1, None, 'Match configuration'),
    **_specs(EventKind.SUB_SCORE, ('s11', 's12', 's13', 's21', 's22', 's23'), 1, 1,
             'Round score ({tag})'),
    **_specs(EventKind.SCORE, ('sc1', 'sc2'), 1, 1, 'Total score ({tag})'),
    **_specs(EventKind.ADVANTAGE_VOTE, ('avt',), 1, 1, 'Advantage vote'),
    **_specs(EventKind.READY, ('rdy',), 1, 1, 'Match ready'),
}

# Connection notices are plain text, not tag-prefixed
CONNECTION_TAG = 'Udp Port'
CONNECTION_PATTERN = re.compile(r'^Udp Port (\d+) (connected|disconnected)$')
CONNECTION_SPEC = TagSpec(CONNECTION_TAG, EventKind.CONNECTION, 2, 2, 'UDP connection notice')

# Keyword fields
FIGHT_LOADED = 'FightLoaded'
FIGHT_READY = 'FightReady'
ROUND_LABELS = ('rd1', 'rd2', 'rd3')
ROUND_COUNT = 3

POINT_NAMES = {
    1: 'Punch point',
    2: 'Body point',
    3: 'Head point',
    4: 'Technical body point',
    5: 'Technical head point',
}

PARTY_NAMES = {
    0: 'Referee',
    1: 'Athlete 1',
    2: 'Athlete 2',
}

INJURY_SLOT_NAMES = {
    0: 'Unidentified athlete',
    1: 'Athlete 1',
    2: 'Athlete 2',
}


def lookup(tag: str) -> Optional[TagSpec]:
    """Return the registry entry for a tag, or None."""
    if tag == CONNECTION_TAG:
        return CONNECTION_SPEC
    return TAG_REGISTRY.get(tag)


def is_registered(tag: str) -> bool:
    """Check whether a token starts a recognized statement."""
    return tag in TAG_REGISTRY


def tags_for(kind: EventKind) -> Tuple[str, ...]:
    """All wire tags that decode to ``kind``."""
    if kind == EventKind.CONNECTION:
        return (CONNECTION_TAG,)
    return tuple(tag for tag, spec in TAG_REGISTRY.items() if spec.kind == kind)

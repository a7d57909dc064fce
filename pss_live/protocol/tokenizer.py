"""
Split a datagram payload into tagged statements.

A payload is a sequence of statements. A statement starts at a registered
stream tag and consumes ``;``-delimited fields until the next registered
tag or the end of the payload. Several statements may share one datagram
with nothing but the next tag as separator:

    wg1;0;wg2;1;     -> [wg1 ('0',), wg2 ('1',)]
    sc1;3;sc2;0;     -> [sc1 ('3',), sc2 ('0',)]

Text that cannot belong to a registered statement becomes an unrecognized
statement reaching up to the next registered tag. That covers leading
garbage, tokens past a tag's maximum field count, and tag-shaped tokens
in an optional field position:

    clk;2:00;zz1;5;rnd;1;  -> [clk ('2:00',), ?zz1 ('5',), rnd ('1',)]

The decoder reports those as UnknownTag and the scan carries on. Empty
tokens outside a statement (``pt1;3;;``) are skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .registry import CONNECTION_PATTERN, CONNECTION_TAG, TAG_REGISTRY, TagSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Statement:
    """One tag plus its ordered fields."""
    tag: str
    fields: Tuple[str, ...] = field(default_factory=tuple)
    recognized: bool = True

    @property
    def is_connection(self) -> bool:
        return self.tag == CONNECTION_TAG

    def to_wire(self) -> str:
        """Serialize back to protocol text, terminal ``;`` included."""
        if self.is_connection:
            return f"{CONNECTION_TAG} {' '.join(self.fields)};"
        return ';'.join((self.tag,) + tuple(self.fields)) + ';'

    def __repr__(self) -> str:
        mark = '' if self.recognized else '?'
        return f"Statement({mark}{self.tag}, {list(self.fields)})"


class Tokenizer:
    """
    Greedy left-to-right statement scanner.

    Usage:
        tokenizer = Tokenizer()
        for statement in tokenizer.tokenize("pt1;3;hl1;50;"):
            print(statement.tag, statement.fields)
    """

    def __init__(self, registry=None):
        self.registry = registry if registry is not None else TAG_REGISTRY

    def tokenize(self, payload: str) -> List[Statement]:
        """
        Tokenize one datagram payload.

        Args:
            payload: ASCII payload text

        Returns:
            Statements in wire order (may include unrecognized ones)
        """
        text = payload.strip()
        if not text:
            return []

        parts = [part.strip() for part in text.split(';')]
        # Terminal ';' leaves one empty field behind
        if parts[-1] == '':
            parts.pop()

        statements: List[Statement] = []
        tag: Optional[str] = None
        fields: List[str] = []
        # None while the open statement is unrecognized
        current: Optional[TagSpec] = None

        def flush():
            if tag is not None:
                statements.append(Statement(tag, tuple(fields), current is not None))

        for part in parts:
            spec = self.registry.get(part)
            if spec is not None:
                flush()
                tag, fields, current = part, [], spec
                continue

            match = CONNECTION_PATTERN.match(part)
            if match:
                flush()
                statements.append(Statement(CONNECTION_TAG, match.groups()))
                tag, fields, current = None, [], None
                continue

            if tag is not None and (current is None or current.takes_field(len(fields), part)):
                fields.append(part)
                continue

            if not part:
                # Stray separator before any tag or after a full statement
                continue

            flush()
            if tag is None and not statements:
                logger.debug(f"Unrecognized leading text: {part!r}")
            tag, fields, current = part, [], None

        flush()
        return statements


def tokenize(payload: str) -> List[Statement]:
    """Tokenize with the default registry."""
    return Tokenizer().tokenize(payload)

"""
Ingestion pipeline: datagram -> statements -> events -> state -> subscribers.

CRITICAL: Everything up to the publisher runs synchronously on the caller's
thread (the listener thread in live mode). A datagram is fully reduced
before the next one is accepted, so MatchState has exactly one writer and
transitions happen in strict arrival order.

Per-statement failures are local. A statement that fails to decode or to
reduce is skipped, a DecodeError is published, and the next statement is
processed as usual.
"""

import logging
import time
from typing import Iterable, Optional

from ..collectors.udp_listener import RawDatagram
from ..core.errors import DecodeError, ErrorCode, NonAsciiPayload
from ..core.reducer import MatchReducer
from ..core.state import MatchState
from ..protocol.decoder import StreamDecoder
from .publisher import EventPublisher, StateSnapshot

logger = logging.getLogger(__name__)


class MatchPipeline:
    """
    Tokenize, decode, reduce and publish.

    Example:
        publisher = EventPublisher()
        overlay = publisher.subscribe('overlay')
        pipeline = MatchPipeline(publisher)

        pipeline.feed("pre;FightLoaded;")
        pipeline.feed("sc1;3;sc2;0;")
        print(pipeline.state.totals)  # [3, 0]
    """

    def __init__(
        self,
        publisher: Optional[EventPublisher] = None,
        decoder: Optional[StreamDecoder] = None,
        reducer: Optional[MatchReducer] = None,
    ):
        self.publisher = publisher if publisher is not None else EventPublisher()
        self.decoder = decoder if decoder is not None else StreamDecoder()
        self.tokenizer = self.decoder.tokenizer
        self.reducer = reducer if reducer is not None else MatchReducer()

        # Statistics
        self.datagrams = 0
        self.non_ascii = 0
        self.statements = 0
        self.events = 0
        self.decode_errors = 0
        self.reduction_errors = 0

    @property
    def state(self) -> MatchState:
        """Live state. Read-only for callers."""
        return self.reducer.state

    def handle_datagram(self, datagram: RawDatagram) -> int:
        """
        Process one datagram.

        Returns:
            Number of events applied
        """
        self.datagrams += 1
        try:
            text = datagram.text()
        except NonAsciiPayload as e:
            self._reject_datagram(datagram, e)
            return 0
        return self._process(text, datagram.timestamp)

    def handle_invalid(self, datagram: RawDatagram, error: Exception) -> None:
        """Listener callback for datagrams it already rejected."""
        self.datagrams += 1
        self._reject_datagram(datagram, error)

    def feed(self, payload: str, timestamp: Optional[float] = None) -> int:
        """Process payload text directly, stamped now unless given."""
        self.datagrams += 1
        return self._process(payload, time.time() if timestamp is None else timestamp)

    def replay(self, datagrams: Iterable[RawDatagram]) -> MatchState:
        """Feed datagrams in order and return the final live state."""
        for datagram in datagrams:
            self.handle_datagram(datagram)
        return self.state

    def _reject_datagram(self, datagram: RawDatagram, error: Exception) -> None:
        self.non_ascii += 1
        logger.warning(f"Dropped non-ASCII datagram ({len(datagram.payload)} bytes): {error}")
        self.publisher.publish(DecodeError(
            code=ErrorCode.E1003_NON_ASCII_PAYLOAD,
            reason=str(error),
            timestamp=datagram.timestamp,
        ))

    def _process(self, text: str, timestamp: float) -> int:
        logger.debug(f"Payload: {text!r}")
        applied = 0

        for statement in self.tokenizer.tokenize(text):
            self.statements += 1
            result = self.decoder.decode(statement, timestamp)

            if isinstance(result, DecodeError):
                self.decode_errors += 1
                logger.warning(f"[{result.code.value}] {result.message}")
                self.publisher.publish(result)
                continue

            try:
                self.reducer.apply(result)
            except Exception as e:
                self.reduction_errors += 1
                logger.exception(f"Failed to apply {statement.to_wire()!r}")
                self.publisher.publish(DecodeError(
                    code=ErrorCode.E4001_REDUCTION_FAILED,
                    tag=statement.tag,
                    fields=statement.fields,
                    reason=str(e),
                    timestamp=timestamp,
                ))
                continue

            self.events += 1
            applied += 1
            self.publisher.publish(result)
            self.publisher.publish(StateSnapshot(self.reducer.snapshot(), result, timestamp))

        return applied

    def stats(self) -> dict:
        """Get pipeline statistics."""
        return {
            'datagrams': self.datagrams,
            'non_ascii': self.non_ascii,
            'statements': self.statements,
            'events': self.events,
            'decode_errors': self.decode_errors,
            'reduction_errors': self.reduction_errors,
            'publisher': self.publisher.stats(),
        }

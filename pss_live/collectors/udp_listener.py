"""
UDP listener for the scoring system broadcast.

Receives one datagram at a time, stamps its arrival time and hands it to a
callback. The listener knows nothing about the protocol beyond rejecting
payloads that are not ASCII. Each datagram must be self-contained; there
is no reassembly.

Errors:
    - bind failure raises BindError from start(), before any processing
    - receive errors on an open socket are logged and the loop continues
    - non-ASCII datagrams are dropped with a warning
"""

import socket
import threading
import time
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from ..core.errors import BindError, NonAsciiPayload, ReceiveError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 6000


@dataclass(frozen=True)
class RawDatagram:
    """Payload bytes plus arrival timestamp (epoch seconds)."""
    payload: bytes
    timestamp: float
    source: Optional[Tuple[str, int]] = None

    def text(self) -> str:
        """
        Decode the payload as ASCII.

        Raises:
            NonAsciiPayload: If any byte is outside ASCII
        """
        try:
            return self.payload.decode('ascii')
        except UnicodeDecodeError as e:
            raise NonAsciiPayload(f"Non-ASCII byte at offset {e.start}") from e


class UDPListener:
    """
    Listen for scoring datagrams on an IPv4 address and port.

    Example:
        def on_datagram(datagram):
            pipeline.handle_datagram(datagram)

        with UDPListener(port=6000, on_datagram=on_datagram) as listener:
            ...  # receive thread runs until the block exits
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        on_datagram: Optional[Callable[[RawDatagram], None]] = None,
        on_invalid: Optional[Callable[[RawDatagram, Exception], None]] = None,
        buffer_size: int = 65535,
        recv_timeout: float = 1.0,
    ):
        self.host = host
        self.port = port
        self.on_datagram = on_datagram
        self.on_invalid = on_invalid
        self.buffer_size = buffer_size
        self.recv_timeout = recv_timeout

        self.socket: Optional[socket.socket] = None
        self._running = False
        self._thread: Optional[threading.Thread] = None

        # Statistics
        self.datagrams_received = 0
        self.datagrams_non_ascii = 0
        self.receive_errors = 0
        self.last_error: Optional[ReceiveError] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound address; resolves port 0 to the actual port."""
        if self.socket:
            return self.socket.getsockname()
        return (self.host, self.port)

    def bind(self) -> None:
        """
        Bind the socket without starting the receive thread.

        Raises:
            BindError: If the address cannot be bound
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise BindError(f"Failed to bind UDP socket {self.host}:{self.port}: {e}") from e

        sock.settimeout(self.recv_timeout)
        self.socket = sock

    def start(self) -> None:
        """Bind and start the receive thread."""
        if self.socket is None:
            self.bind()

        self._running = True
        self._thread = threading.Thread(target=self._receive_loop, name="udp-listener", daemon=True)
        self._thread.start()

        host, port = self.address
        logger.info(f"UDP listener bound to {host}:{port}")

    def stop(self) -> None:
        """
        Stop the listener.

        The datagram being processed, if any, finishes before the thread
        exits. The socket is always released.
        """
        self._running = False
        if self.socket:
            try:
                # Wakes a blocked recvfrom on Linux
                self.socket.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                # ENOTCONN is expected for unconnected UDP sockets
                logger.debug(f"Socket shutdown: {e}")
        if self._thread:
            self._thread.join(timeout=self.recv_timeout + 1.0)
            self._thread = None
        if self.socket:
            self.socket.close()
            self.socket = None
        logger.info("UDP listener stopped")

    def __enter__(self) -> 'UDPListener':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _receive_loop(self) -> None:
        """Main receive loop."""
        while self._running:
            try:
                data, addr = self.socket.recvfrom(self.buffer_size)
            except socket.timeout:
                continue
            except OSError as e:
                if not self._running:
                    break
                self.receive_errors += 1
                self.last_error = ReceiveError(f"Receive failed: {e}")
                logger.error(f"[{self.last_error.code.value}] {self.last_error}")
                continue

            if not self._running:
                break
            self._handle_datagram(RawDatagram(data, time.time(), addr))

    def _handle_datagram(self, datagram: RawDatagram) -> None:
        """Validate one datagram and forward it."""
        self.datagrams_received += 1
        logger.debug(f"Received {len(datagram.payload)} bytes from {datagram.source}")

        try:
            datagram.text()
        except NonAsciiPayload as e:
            self.datagrams_non_ascii += 1
            logger.warning(f"Dropping datagram from {datagram.source}: {e}")
            if self.on_invalid:
                self.on_invalid(datagram, e)
            return

        if self.on_datagram:
            try:
                self.on_datagram(datagram)
            except Exception:
                logger.exception("Datagram handler failed")

    def stats(self) -> dict:
        """Get listener statistics."""
        return {
            'datagrams_received': self.datagrams_received,
            'datagrams_non_ascii': self.datagrams_non_ascii,
            'receive_errors': self.receive_errors,
        }

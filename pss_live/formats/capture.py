"""Capture file format for PSS-Live replay.

A capture is a text file with one datagram per line:

    # comment
    1718031600.125\tpre;FightLoaded;
    1718031600.250\tmch;101;Final;M-68;
    clk;2:00;

The optional arrival timestamp (epoch seconds) is separated from the
payload by a tab. Lines without one get timestamp 0.0. Lines are read as
bytes so non-ASCII datagrams survive into the pipeline, which drops them.
"""

from pathlib import Path
from typing import BinaryIO, Iterable, Iterator, List, Union

from ..collectors.udp_listener import RawDatagram


def _parse_timestamp(text: bytes) -> float:
    try:
        return float(text.decode('ascii'))
    except (UnicodeDecodeError, ValueError) as e:
        raise ValueError(f"Invalid timestamp {text!r}") from e


def read_capture(file: BinaryIO) -> Iterator[RawDatagram]:
    """Parse a capture file.

    Args:
        file: Binary file object to read from

    Yields:
        RawDatagram objects in file order
    """
    for line_no, line in enumerate(file, start=1):
        line = line.rstrip(b'\r\n')
        stripped = line.strip()
        if not stripped or stripped.startswith(b'#'):
            continue

        timestamp = 0.0
        payload = line
        if b'\t' in line:
            prefix, payload = line.split(b'\t', 1)
            try:
                timestamp = _parse_timestamp(prefix.strip())
            except ValueError as e:
                raise ValueError(f"Line {line_no}: {e}") from e

        yield RawDatagram(payload=payload, timestamp=timestamp)


def load_capture(path: Union[str, Path]) -> List[RawDatagram]:
    """Read a whole capture file."""
    with open(path, 'rb') as f:
        return list(read_capture(f))


def write_capture(file: BinaryIO, datagrams: Iterable[RawDatagram]) -> int:
    """Write datagrams in capture format.

    Returns:
        Number of datagrams written

    Raises:
        ValueError: If a payload contains a line break
    """
    count = 0
    for datagram in datagrams:
        payload = datagram.payload.rstrip(b'\r\n')
        if b'\n' in payload or b'\r' in payload:
            raise ValueError("Payload contains a line break")
        file.write(f"{datagram.timestamp:.6f}\t".encode('ascii') + payload + b'\n')
        count += 1
    return count

"""Pytest fixtures for PSS-Live tests."""

import socket
from pathlib import Path
from typing import List

import pytest

from pss_live.protocol.decoder import StreamDecoder
from pss_live.streaming.pipeline import MatchPipeline
from pss_live.streaming.publisher import EventPublisher


# A short but complete match, one datagram per entry
MATCH_PAYLOADS: List[str] = [
    "Udp Port 6000 connected;",
    "pre;FightLoaded;",
    "mch;101;Final;M-68;",
    "at1;KIM;KIM Taejoon;KOR;at2;JEN;Mohamed JENDOUBI;TUN;",
    "rdy;FightReady;",
    "rnd;1;",
    "clk;2:00;start;",
    "pt1;3;",
    "s11;3;s21;0;s12;0;s22;0;s13;0;s23;0;",
    "sc1;3;sc2;0;",
    "wg1;0;wg2;1;",
    "clk;1:30;stop;",
    "wrd;rd1;1;rd2;0;rd3;0;",
    "wmh;KIM Taejoon;2-1;",
]


@pytest.fixture
def decoder() -> StreamDecoder:
    return StreamDecoder()


@pytest.fixture
def publisher() -> EventPublisher:
    pub = EventPublisher()
    yield pub
    pub.close()


@pytest.fixture
def pipeline(publisher) -> MatchPipeline:
    return MatchPipeline(publisher)


@pytest.fixture
def match_payloads() -> List[str]:
    return list(MATCH_PAYLOADS)


@pytest.fixture
def capture_file(tmp_path) -> Path:
    """Capture file holding the sample match."""
    path = tmp_path / "match.cap"
    lines = ["# sample match"]
    for i, payload in enumerate(MATCH_PAYLOADS):
        lines.append(f"{1718031600 + i * 0.5:.6f}\t{payload}")
    path.write_text('\n'.join(lines) + '\n')
    return path


@pytest.fixture
def free_udp_port() -> int:
    """An unused UDP port on the loopback interface."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return port

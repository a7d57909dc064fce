"""
Tests for Phase 8: Capture files and protocol schema documents.

CRITICAL TESTS:
1. test_bundled_schema_verifies - Every documented example decodes
2. test_capture_replay - A capture file replays to the expected state
"""

import io

import pytest

from pss_live.collectors.udp_listener import RawDatagram
from pss_live.formats.capture import load_capture, read_capture, write_capture
from pss_live.protocol.registry import TAG_REGISTRY
from pss_live.protocol.schema import (
    DEFAULT_SCHEMA_PATH,
    load_protocol_definitions,
    parse_protocol_definitions,
    parse_protocol_section,
    verify_schema,
)
from pss_live.streaming.pipeline import MatchPipeline


class TestCaptureFormat:
    """Test capture reading and writing."""

    def test_read(self):
        data = b"# header\n\n1.5\tsc1;3;\r\nclk;2:00;\n"
        datagrams = list(read_capture(io.BytesIO(data)))

        assert datagrams == [
            RawDatagram(b'sc1;3;', 1.5),
            RawDatagram(b'clk;2:00;', 0.0),
        ]

    def test_bad_timestamp(self):
        data = b"1.0\tsc1;3;\nsoon\tsc2;0;\n"
        with pytest.raises(ValueError, match="Line 2"):
            list(read_capture(io.BytesIO(data)))

    def test_non_ascii_preserved(self):
        """Non-ASCII lines are kept for the pipeline to reject."""
        datagrams = list(read_capture(io.BytesIO(b"2.0\tat1;M\xc3\xbcller;\n")))
        assert datagrams[0].payload == b'at1;M\xc3\xbcller;'

    def test_write_then_read(self):
        original = [RawDatagram(b'pre;FightLoaded;', 10.25), RawDatagram(b'sc1;3;sc2;0;', 11.0)]
        buffer = io.BytesIO()

        assert write_capture(buffer, original) == 2
        buffer.seek(0)
        assert list(read_capture(buffer)) == original

    def test_write_rejects_line_break(self):
        with pytest.raises(ValueError, match="line break"):
            write_capture(io.BytesIO(), [RawDatagram(b'sc1;3;\nsc2;0;', 0.0)])

    def test_capture_replay(self, capture_file):
        """
        CRITICAL TEST: Capture replays to the final scoreboard.
        """
        datagrams = load_capture(capture_file)
        assert len(datagrams) == 14
        assert datagrams[0].timestamp == 1718031600.0

        state = MatchPipeline().replay(datagrams)
        assert state.totals == [3, 0]
        assert state.round_winners == [1, 0, 0]


SAMPLE_SCHEMA = """
# POINTS
# Stream broadcasted when points are added.

MAIN_STREAMS:
  pt1;  Main stream for athlete 1
  pt2;  Main stream for athlete 2

REQUIRED_ARGUMENTS:
  1;  Punch point

EXAMPLES:
  pt1;1;

---

# MYSTERY
MAIN_STREAMS:
  xx1;  Not a real stream

EXAMPLES:
  xx1;5;
  clk;soon;
"""


class TestProtocolSchema:
    """Test schema document parsing and verification."""

    def test_parse_section(self):
        definition = parse_protocol_section(SAMPLE_SCHEMA.split('---')[0])
        assert definition.title == 'POINTS'
        assert definition.main_streams == ['pt1', 'pt2']
        assert definition.required_arguments == ['1']
        assert definition.optional_arguments == []
        assert definition.examples == ['pt1;1;']

    def test_parse_document(self):
        definitions = parse_protocol_definitions(SAMPLE_SCHEMA)
        assert list(definitions) == ['pt1', 'xx1']

    def test_verify_reports_problems(self):
        report = verify_schema(parse_protocol_definitions(SAMPLE_SCHEMA))

        assert not report.ok
        assert report.missing_streams == ['xx1']
        assert report.examples_checked == 3
        assert [example for example, _ in report.failed_examples] == ['xx1;5;', 'clk;soon;']
        assert report.to_dict()['ok'] is False

    def test_bundled_schema_verifies(self):
        """
        CRITICAL TEST: The shipped schema agrees with the decoder.
        """
        assert DEFAULT_SCHEMA_PATH.exists()
        definitions = load_protocol_definitions()
        report = verify_schema(definitions)

        assert report.ok, report.to_dict()
        assert report.examples_checked > 0

    def test_bundled_schema_covers_registry(self):
        """Every registered tag is documented."""
        documented = set()
        for definition in load_protocol_definitions().values():
            documented.update(definition.main_streams)
        assert documented == set(TAG_REGISTRY)

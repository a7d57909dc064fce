"""
Tests for Phase 7: Ingestion pipeline.

CRITICAL TESTS:
1. test_unknown_tag_interleaved - Bad statements never stop the datagram
2. test_live_equals_replay - Live ingestion and capture replay agree
3. test_reduction_failure_isolated - A failing reducer step is reported
"""

from pss_live.collectors.udp_listener import RawDatagram
from pss_live.core.errors import ErrorCode
from pss_live.core.reducer import MatchReducer
from pss_live.protocol.events import Round, Score
from pss_live.streaming.pipeline import MatchPipeline
from pss_live.streaming.publisher import ERROR, EVENT, STATE, EventPublisher, StateSnapshot


class ExplodingReducer(MatchReducer):
    """Fails on every Round event."""

    def apply(self, event):
        if isinstance(event, Round):
            raise ValueError("round rejected")
        return super().apply(event)


class TestPipeline:
    """Test datagram processing."""

    def test_feed(self, pipeline):
        assert pipeline.feed("sc1;3;sc2;0;") == 2
        assert pipeline.state.totals == [3, 0]

    def test_unknown_tag_interleaved(self, publisher):
        """
        CRITICAL TEST: Unknown tag is reported, neighbours still apply.
        """
        pipeline = MatchPipeline(publisher)
        errors = publisher.subscribe('errors', categories=[ERROR])

        applied = pipeline.feed("sc1;3;zz9;1;sc2;4;")

        assert applied == 2
        assert pipeline.state.totals == [3, 4]
        items = errors.drain()
        assert len(items) == 1
        assert items[0].code == ErrorCode.E2001_UNKNOWN_TAG
        assert items[0].tag == 'zz9'

        stats = pipeline.stats()
        assert stats['statements'] == 3
        assert stats['events'] == 2
        assert stats['decode_errors'] == 1

    def test_event_then_snapshot(self, publisher):
        """Each applied event is followed by a state snapshot."""
        pipeline = MatchPipeline(publisher)
        sub = publisher.subscribe('all')

        pipeline.feed("rnd;2;", timestamp=42.0)

        event, snapshot = sub.drain()
        assert event == Round(2)
        assert event.timestamp == 42.0
        assert isinstance(snapshot, StateSnapshot)
        assert snapshot.event == Round(2)
        assert snapshot.timestamp == 42.0
        assert snapshot.state.round == 2

    def test_snapshot_isolated_from_live_state(self, publisher):
        pipeline = MatchPipeline(publisher)
        states = publisher.subscribe('states', categories=[STATE])

        pipeline.feed("sc1;3;")
        snapshot = states.get_nowait()
        pipeline.feed("sc1;9;")

        assert snapshot.state.athletes[1].score == 3
        assert pipeline.state.athletes[1].score == 9

    def test_snapshot_to_dict(self, publisher):
        pipeline = MatchPipeline(publisher)
        states = publisher.subscribe('states', categories=[STATE])
        pipeline.feed("sc2;4;", timestamp=1.5)

        data = states.get_nowait().to_dict()
        assert data['type'] == 'state'
        assert data['event'] == 'score'
        assert data['state']['athletes']['2']['score'] == 4

    def test_non_ascii_datagram(self, publisher):
        pipeline = MatchPipeline(publisher)
        errors = publisher.subscribe('errors', categories=[ERROR])

        applied = pipeline.handle_datagram(RawDatagram(b'sc1;\xff;', 3.0))

        assert applied == 0
        assert pipeline.state.totals == [0, 0]
        item = errors.get_nowait()
        assert item.code == ErrorCode.E1003_NON_ASCII_PAYLOAD
        assert item.timestamp == 3.0
        assert pipeline.stats()['non_ascii'] == 1

    def test_reduction_failure_isolated(self, publisher):
        """
        CRITICAL TEST: Reducer errors become diagnostics.
        """
        pipeline = MatchPipeline(publisher, reducer=ExplodingReducer())
        errors = publisher.subscribe('errors', categories=[ERROR])

        applied = pipeline.feed("rnd;1;sc1;3;")

        assert applied == 1
        assert pipeline.state.totals == [3, 0]
        item = errors.get_nowait()
        assert item.code == ErrorCode.E4001_REDUCTION_FAILED
        assert item.tag == 'rnd'
        assert 'round rejected' in item.message
        assert pipeline.stats()['reduction_errors'] == 1

    def test_only_events_category(self, publisher):
        pipeline = MatchPipeline(publisher)
        events = publisher.subscribe('events', categories=[EVENT])
        pipeline.feed("sc1;3;zz;")
        assert events.drain() == [Score(1, 3)]

    def test_match_loaded_mid_stream(self, pipeline):
        pipeline.feed("sc1;5;sc2;2;")
        pipeline.feed("pre;FightLoaded;")
        assert pipeline.state.totals == [0, 0]
        assert pipeline.state.loaded


class TestReplay:
    """Test deterministic replay."""

    def test_live_equals_replay(self, match_payloads):
        """
        CRITICAL TEST: Same datagrams, same final state.
        """
        datagrams = [
            RawDatagram(payload.encode('ascii'), 1000.0 + i)
            for i, payload in enumerate(match_payloads)
        ]

        live = MatchPipeline(EventPublisher())
        for payload in match_payloads:
            live.feed(payload)

        replayed = MatchPipeline(EventPublisher()).replay(datagrams)

        assert replayed == live.state
        assert replayed.totals == [3, 0]
        assert replayed.winner_name == 'KIM Taejoon'

    def test_replay_twice_identical(self, match_payloads):
        datagrams = [RawDatagram(p.encode('ascii'), 0.0) for p in match_payloads]
        first = MatchPipeline().replay(datagrams)
        second = MatchPipeline().replay(datagrams)
        assert first == second

    def test_errors_do_not_change_replay(self, match_payloads):
        """Interleaved garbage datagrams leave the final state alone."""
        clean = [RawDatagram(p.encode('ascii'), 0.0) for p in match_payloads]
        noisy = []
        for datagram in clean:
            noisy.append(datagram)
            noisy.append(RawDatagram(b'zz9;1;', 0.0))
            noisy.append(RawDatagram(b'\xff', 0.0))

        assert MatchPipeline().replay(noisy) == MatchPipeline().replay(clean)

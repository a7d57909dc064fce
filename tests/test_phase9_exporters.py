"""
Tests for Phase 9: Exporters.

CRITICAL TESTS:
1. test_prometheus_format - Metrics must be in valid Prometheus format
2. test_http_endpoint - /metrics and /health are served
"""

import json
import urllib.request

import pytest

from pss_live.exporters.prometheus import MetricDefinition, PrometheusExporter
from pss_live.streaming.pipeline import MatchPipeline


class TestPrometheusExporter:
    """Test Prometheus exporter."""

    def test_set_and_get_metric(self):
        """Metrics can be set and retrieved."""
        exporter = PrometheusExporter()
        exporter.set_metric('datagrams', 42)
        assert exporter.get_metric('datagrams') == 42

    def test_unknown_metric(self):
        exporter = PrometheusExporter()
        with pytest.raises(KeyError):
            exporter.set_metric('latency_p99', 1)

    def test_prometheus_format(self):
        """
        CRITICAL TEST: Metrics in valid Prometheus format.
        """
        exporter = PrometheusExporter(prefix='test')
        exporter.set_metric('datagrams', 100)
        exporter.set_metric('round', 2)

        output = exporter.format_metrics()

        assert '# HELP test_datagrams_total Datagrams processed' in output
        assert '# TYPE test_datagrams_total counter' in output
        assert 'test_datagrams_total 100' in output
        assert '# TYPE test_round gauge' in output
        assert 'test_round 2' in output

    def test_unset_metrics_omitted(self):
        assert PrometheusExporter().format_metrics() == ''

    def test_update_from_pipeline(self):
        """Exporter reads pipeline stats and live state."""
        pipeline = MatchPipeline()
        pipeline.feed("Udp Port 6000 connected;")
        pipeline.feed("rnd;1;clk;1:30;start;sc1;3;sc2;1;wg2;1;zz9;")

        exporter = PrometheusExporter()
        exporter.update_from_stats(pipeline.stats())
        exporter.update_from_state(pipeline.state)

        assert exporter.get_metric('datagrams') == 2
        assert exporter.get_metric('decode_errors') == 1
        assert exporter.get_metric('clock_remaining_seconds') == 90
        assert exporter.get_metric('clock_running') == 1
        assert exporter.get_metric('connected') == 1
        assert exporter.get_metric('score', {'athlete': '1'}) == 3
        assert exporter.get_metric('warnings', {'athlete': '2'}) == 1

        output = exporter.format_metrics()
        assert 'pss_live_score{athlete="1"} 3' in output
        assert 'pss_live_score{athlete="2"} 1' in output

    def test_http_endpoint(self):
        """
        CRITICAL TEST: Scrape endpoint serves the text format.
        """
        exporter = PrometheusExporter(host='127.0.0.1', port=0)
        exporter.set_metric('events', 7)
        exporter.start()
        try:
            base = f"http://127.0.0.1:{exporter.port}"
            with urllib.request.urlopen(f"{base}/metrics", timeout=2) as response:
                body = response.read().decode('utf-8')
            with urllib.request.urlopen(f"{base}/health", timeout=2) as response:
                health = json.loads(response.read())
        finally:
            exporter.stop()

        assert 'pss_live_events_total 7' in body
        assert health == {'status': 'healthy'}


class TestMetricDefinition:
    def test_fields(self):
        definition = MetricDefinition('x_total', 'help', 'counter')
        assert definition.metric_type == 'counter'

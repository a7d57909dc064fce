"""
Prometheus exporter for PSS-Live.

Exposes pipeline counters and live match gauges in Prometheus text format
on a configurable port.

Example:
    exporter = PrometheusExporter(port=9090, prefix='pss_live')
    exporter.start()

    exporter.update_from_stats(pipeline.stats())
    exporter.update_from_state(pipeline.state)
"""

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from http.server import HTTPServer, BaseHTTPRequestHandler

from ..core.state import MatchState

logger = logging.getLogger(__name__)

Labels = Tuple[Tuple[str, str], ...]


@dataclass
class MetricDefinition:
    """Definition of a Prometheus metric."""
    name: str
    help_text: str
    metric_type: str  # 'gauge', 'counter'


class PrometheusExporter:
    """
    Export metrics in Prometheus format.

    Metrics are exposed at http://host:port/metrics

    Standard metrics:
        pss_live_datagrams_total - Datagrams processed
        pss_live_decode_errors_total - Statements rejected by the decoder
        pss_live_notifications_dropped_total - Notifications lost to full queues
        pss_live_score{athlete="1"} - Current total score
        pss_live_connected - Scoring system connection status (0/1)
    """

    def __init__(
        self,
        host: str = '0.0.0.0',
        port: int = 9090,
        prefix: str = 'pss_live',
    ):
        self.host = host
        self.port = port
        self.prefix = prefix

        # Metric values keyed by (metric key, labels), thread-safe via lock
        self._lock = threading.Lock()
        self._metrics: Dict[Tuple[str, Labels], float] = {}

        # HTTP server
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

        def counter(key: str, help_text: str) -> MetricDefinition:
            return MetricDefinition(f'{prefix}_{key}_total', help_text, 'counter')

        def gauge(key: str, help_text: str) -> MetricDefinition:
            return MetricDefinition(f'{prefix}_{key}', help_text, 'gauge')

        self._definitions: Dict[str, MetricDefinition] = {
            'datagrams': counter('datagrams', 'Datagrams processed'),
            'non_ascii': counter('non_ascii', 'Datagrams dropped as non-ASCII'),
            'statements': counter('statements', 'Statements tokenized'),
            'events': counter('events', 'Events applied to match state'),
            'decode_errors': counter('decode_errors', 'Statements rejected by the decoder'),
            'reduction_errors': counter('reduction_errors', 'Events that failed to apply'),
            'notifications_dropped': counter(
                'notifications_dropped', 'Notifications dropped by full subscriber queues'),
            'round': gauge('round', 'Current round'),
            'clock_remaining_seconds': gauge('clock_remaining_seconds', 'Match clock remaining'),
            'clock_running': gauge('clock_running', 'Match clock running (0/1)'),
            'score': gauge('score', 'Total score per athlete'),
            'warnings': gauge('warnings', 'Warnings / gam-jeom per athlete'),
            'connected': gauge('connected', 'Scoring system connected (0/1)'),
        }

    def set_metric(self, key: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        """Set a metric value."""
        if key not in self._definitions:
            raise KeyError(f"Unknown metric: {key}")
        label_key = tuple(sorted((labels or {}).items()))
        with self._lock:
            self._metrics[(key, label_key)] = value

    def get_metric(self, key: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Get a metric value."""
        label_key = tuple(sorted((labels or {}).items()))
        with self._lock:
            return self._metrics.get((key, label_key))

    def update_from_stats(self, stats: dict) -> None:
        """Update counters from MatchPipeline.stats()."""
        for key in ('datagrams', 'non_ascii', 'statements', 'events',
                    'decode_errors', 'reduction_errors'):
            self.set_metric(key, stats.get(key, 0))
        self.set_metric('notifications_dropped', stats.get('publisher', {}).get('dropped', 0))

    def update_from_state(self, state: MatchState) -> None:
        """Update match gauges from the live state."""
        self.set_metric('round', state.round)
        self.set_metric('clock_remaining_seconds', state.clock.remaining)
        self.set_metric('clock_running', 1 if state.clock.running else 0)
        for number, athlete in state.athletes.items():
            self.set_metric('score', athlete.score, {'athlete': str(number)})
            self.set_metric('warnings', athlete.warnings, {'athlete': str(number)})
        self.set_metric('connected', 1 if state.connection.connected else 0)

    def format_metrics(self) -> str:
        """Format metrics in Prometheus text format."""
        lines = []

        with self._lock:
            for key, definition in self._definitions.items():
                samples = sorted(
                    (labels, value) for (k, labels), value in self._metrics.items() if k == key
                )
                if not samples:
                    continue

                # Add HELP line
                lines.append(f"# HELP {definition.name} {definition.help_text}")
                # Add TYPE line
                lines.append(f"# TYPE {definition.name} {definition.metric_type}")

                for labels, value in samples:
                    if labels:
                        label_str = ','.join(f'{k}="{v}"' for k, v in labels)
                        lines.append(f"{definition.name}{{{label_str}}} {value}")
                    else:
                        lines.append(f"{definition.name} {value}")

                lines.append("")

        return '\n'.join(lines)

    def start(self) -> None:
        """Start the HTTP server."""
        exporter = self

        class MetricsHandler(BaseHTTPRequestHandler):
            def do_GET(self):
                if self.path == '/metrics':
                    content = exporter.format_metrics()
                    self.send_response(200)
                    self.send_header('Content-Type', 'text/plain; charset=utf-8')
                    self.end_headers()
                    self.wfile.write(content.encode('utf-8'))
                elif self.path == '/health':
                    self.send_response(200)
                    self.send_header('Content-Type', 'application/json')
                    self.end_headers()
                    self.wfile.write(b'{"status": "healthy"}')
                else:
                    self.send_response(404)
                    self.end_headers()

            def log_message(self, format, *args):
                # Access logs go to debug
                logger.debug(format % args)

        self._server = HTTPServer((self.host, self.port), MetricsHandler)
        # Port 0 resolves to the ephemeral port actually bound
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info(f"Prometheus exporter listening on {self.host}:{self.port}")

    def stop(self) -> None:
        """Stop the HTTP server."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        logger.info("Prometheus exporter stopped")

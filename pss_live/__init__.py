"""
PSS-Live - Live match state from PSS taekwondo scoring broadcasts.

This package provides:
- protocol: Tag registry, tokenizer, typed events and stream decoder
- core: Match state, reducer and structured error codes
- collectors: UDP listener for the scoring broadcast
- streaming: Ingestion pipeline and subscriber fan-out
- formats: Capture files for offline replay
- config: YAML configuration with environment variable support
- exporters: Prometheus metrics
- cli: Command-line interface
"""

__version__ = "1.0.0"

from .protocol import (
    EventKind,
    Statement,
    StreamDecoder,
    StreamEvent,
    TAG_REGISTRY,
    Tokenizer,
    tokenize,
)
from .core import ErrorCode, DecodeError, MatchState, MatchReducer, reduce, replay
from .collectors import UDPListener, RawDatagram
from .streaming import EventPublisher, MatchPipeline, StateSnapshot, Subscription
from .formats import load_capture, read_capture, write_capture
from .config import PSSConfig, load_config

__all__ = [
    # Version
    '__version__',
    # Protocol
    'EventKind',
    'Statement',
    'StreamDecoder',
    'StreamEvent',
    'TAG_REGISTRY',
    'Tokenizer',
    'tokenize',
    # Core
    'ErrorCode',
    'DecodeError',
    'MatchState',
    'MatchReducer',
    'reduce',
    'replay',
    # Collectors
    'UDPListener',
    'RawDatagram',
    # Streaming
    'EventPublisher',
    'MatchPipeline',
    'StateSnapshot',
    'Subscription',
    # Formats
    'load_capture',
    'read_capture',
    'write_capture',
    # Config
    'PSSConfig',
    'load_config',
]

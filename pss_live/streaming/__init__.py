"""Live ingestion and subscriber fan-out."""

from .publisher import (
    EventPublisher,
    Subscription,
    CallbackSubscriber,
    StateSnapshot,
    Notification,
    EVENT,
    STATE,
    ERROR,
)
from .pipeline import MatchPipeline

__all__ = [
    'EventPublisher',
    'Subscription',
    'CallbackSubscriber',
    'StateSnapshot',
    'Notification',
    'EVENT',
    'STATE',
    'ERROR',
    'MatchPipeline',
]

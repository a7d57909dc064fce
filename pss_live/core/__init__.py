"""Match state engine for PSS-Live."""

from .errors import ErrorCode, ERROR_METADATA, PSSError, BindError, DecodeError
from .state import MatchState, AthleteState, MatchClock, InjuryClock, BreakClock, ConnectionStatus
from .reducer import MatchReducer, apply_event, reduce, replay

__all__ = [
    # Errors
    'ErrorCode',
    'ERROR_METADATA',
    'PSSError',
    'BindError',
    'DecodeError',
    # State
    'MatchState',
    'AthleteState',
    'MatchClock',
    'InjuryClock',
    'BreakClock',
    'ConnectionStatus',
    # Reducer
    'MatchReducer',
    'apply_event',
    'reduce',
    'replay',
]

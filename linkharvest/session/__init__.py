"""Harvesting sessions and their manager."""

from .manager import SessionManager
from .session import FailureReason, HarvestQuery, HarvestSession, SessionState, StopReason
from .sinks import LoggingSink, Sink, SinkNotReadyError, WebSocketSink

__all__ = [
    "FailureReason",
    "HarvestQuery",
    "HarvestSession",
    "LoggingSink",
    "SessionManager",
    "SessionState",
    "Sink",
    "SinkNotReadyError",
    "StopReason",
    "WebSocketSink",
]

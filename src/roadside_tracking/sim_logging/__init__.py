from .context import LogContext, log_context, log_session_context
from .setup import setup_logging

__all__ = [
    "LogContext",
    "log_context",
    "log_session_context",
    "setup_logging",
]

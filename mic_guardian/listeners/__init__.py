"""Session record listeners for the EventSink."""

from .csv_history import SessionCsvWriter
from .logging_listener import log_session_listener

__all__ = ["SessionCsvWriter", "log_session_listener"]

"""
Logging utility module for mongo-oplog.

Provides JSON-structured logging with tail session ID propagation so that
records emitted from a reader thread can be traced back to their tailer.
"""

import json
import logging
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from contextvars import ContextVar

# Context variable for tail session ID propagation
_tail_id: ContextVar[Optional[str]] = ContextVar('tail_id', default=None)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def get_tail_id() -> Optional[str]:
    """Get the current tail session ID from context.
    
    Returns:
        Current tail session ID or None if not set
    """
    return _tail_id.get()


def set_tail_id(tail_id: str) -> str:
    """Set tail session ID in context.
    
    Args:
        tail_id: Tail session ID of the tailer doing the work
        
    Returns:
        The tail session ID that was set
    """
    _tail_id.set(tail_id)
    return tail_id


def clear_tail_id():
    """Clear the tail session ID from context."""
    _tail_id.set(None)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""
    
    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.
        
        Args:
            record: Log record to format
            
        Returns:
            JSON-formatted log string
        """
        log_data: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        
        tail_id = get_tail_id()
        if tail_id:
            log_data['tail_id'] = tail_id
        
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)
        
        # Fields passed with ``extra=`` end up as record attributes
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in log_data:
                log_data[key] = value
        
        return json.dumps(log_data, default=str)


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Get a JSON logger with tail session ID propagation.
    
    Args:
        name: Logger name (typically __name__ or "mongo_oplog")
        level: Logging level (default: INFO)
        
    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    
    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger
    
    logger.setLevel(level)
    
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    
    logger.addHandler(handler)
    logger.propagate = False  # Prevent duplicate logs from parent loggers
    
    return logger


class TailContext:
    """Context manager binding a tail session ID to the current context."""
    
    def __init__(self, tail_id: str):
        self.tail_id = tail_id
        self._previous_id: Optional[str] = None
    
    def __enter__(self) -> str:
        self._previous_id = get_tail_id()
        return set_tail_id(self.tail_id)
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context and restore previous tail session ID."""
        if self._previous_id is not None:
            set_tail_id(self._previous_id)
        else:
            clear_tail_id()

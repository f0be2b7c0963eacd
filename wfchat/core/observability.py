import contextvars
import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from functools import wraps
from typing import Any, Dict, Iterator, Optional
from .settings import settings

# Context Variables for Trace Context
_trace_id_ctx = contextvars.ContextVar("trace_id", default=None)
_span_id_ctx = contextvars.ContextVar("span_id", default=None)
_session_id_ctx = contextvars.ContextVar("session_id", default=None)


def current_context() -> Dict[str, Optional[str]]:
    return {
        "trace_id": _trace_id_ctx.get(),
        "span_id": _span_id_ctx.get(),
        "session_id": _session_id_ctx.get(),
    }


class TraceManager:
    """
    Structured events and trace context for one dialogue turn.
    Events go to stdout as one JSON object per line, next to the JSON log records.
    """

    @staticmethod
    def get_trace_id() -> str:
        tid = _trace_id_ctx.get()
        if not tid:
            tid = str(uuid.uuid4())
            _trace_id_ctx.set(tid)
        return tid

    @staticmethod
    def set_trace_id(trace_id: str):
        _trace_id_ctx.set(trace_id)

    @staticmethod
    @contextmanager
    def session(session_id: Optional[str]) -> Iterator[None]:
        """Binds the session id to every event and log record emitted inside the block."""
        token = _session_id_ctx.set(session_id)
        try:
            yield
        finally:
            _session_id_ctx.reset(token)

    @staticmethod
    def event(level: str, message: str, fields: Optional[Dict[str, Any]] = None):
        payload = {
            "timestamp": time.time(),
            "level": level.upper(),
            "message": message,
            **current_context(),
            **(fields or {})
        }
        payload["trace_id"] = payload["trace_id"] or TraceManager.get_trace_id()
        print(json.dumps(payload, default=str))

    @staticmethod
    def info(message: str, **fields):
        TraceManager.event("INFO", message, fields)

    @staticmethod
    def error(message: str, exc: Optional[Exception] = None, **fields):
        if exc:
            fields["error"] = str(exc)
            fields["error_type"] = type(exc).__name__
        TraceManager.event("ERROR", message, fields)

    @staticmethod
    def span(name: str):
        """
        Decorator timing a coroutine as a child span of the current trace.
        """
        def decorator(func):
            @wraps(func)
            async def wrapper(*args, **kwargs):
                parent_span = _span_id_ctx.get()
                token = _span_id_ctx.set(str(uuid.uuid4()))
                start_time = time.time()

                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    TraceManager.error(
                        f"Span failed: {name}", exc=e, span_name=name, parent_span=parent_span,
                        duration_ms=(time.time() - start_time) * 1000
                    )
                    raise
                else:
                    TraceManager.info(
                        f"Span: {name}", span_name=name, parent_span=parent_span,
                        duration_ms=(time.time() - start_time) * 1000
                    )
                    return result
                finally:
                    _span_id_ctx.reset(token)
            return wrapper
        return decorator


# --- Log records ---

class TraceContextFilter(logging.Filter):
    """Copies the current trace, span and session ids onto each record."""

    def filter(self, record):
        for key, value in current_context().items():
            if getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record):
        log_obj = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
            "trace_id": getattr(record, "trace_id", None),
            "span_id": getattr(record, "span_id", None),
            "session_id": getattr(record, "session_id", None)
        }
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    root = logging.getLogger()
    root.setLevel(level or settings.log_level)

    # The app factory can run more than once in a process (tests)
    if not any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        handler.addFilter(TraceContextFilter())
        root.addHandler(handler)

    # Silence chatty libraries
    for name in ("httpcore", "httpx", "langchain", "aiosqlite"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return root

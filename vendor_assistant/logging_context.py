"""Session-scoped logging context for following one conversation's turns.

Every record logged through a session logger carries the session id of
the turn being processed, so the classifier, workflow, and narrator log
lines of one user can be grepped together even when several sessions
are served concurrently.

The id is bound per turn with ``session_scope`` and restored when the
turn ends, so it never leaks into whatever the same task runs next.

Usage:
    from vendor_assistant.logging_context import get_session_logger, session_scope

    logger = get_session_logger(__name__)
    with session_scope("chat-42"):
        logger.info("Routing turn")  # → [chat-42] Routing turn
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Iterator, Optional

NO_SESSION_ID = "NO_SESSION_ID"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION_ID)


def set_session_id(session_id: Optional[str]) -> Token:
    """Bind a session id to the current async context; blank ids bind NO_SESSION_ID."""
    return _session_id.set(session_id or NO_SESSION_ID)


def get_session_id() -> str:
    return _session_id.get()


@contextmanager
def session_scope(session_id: Optional[str]) -> Iterator[str]:
    """Bind ``session_id`` for the duration of one turn, then restore the previous id."""
    token = set_session_id(session_id)
    try:
        yield _session_id.get()
    finally:
        _session_id.reset(token)


class SessionIdFilter(logging.Filter):
    """Stamps ``session_id`` on each record unless the caller already set one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "session_id", None):
            record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def get_session_logger(name: str) -> logging.Logger:
    """Return a logger with the SessionIdFilter attached.

    Formatters can then use ``%(session_id)s``. A record logged with
    ``extra={"session_id": ...}`` keeps its explicit id.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, SessionIdFilter) for f in logger.filters):
        logger.addFilter(SessionIdFilter())
    return logger

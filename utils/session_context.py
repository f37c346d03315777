"""Propagate the authenticated dashboard session through the call stack using contextvars."""

from contextlib import contextmanager
from contextvars import ContextVar

from auth.types import Session, User

_current_session: ContextVar[Session | None] = ContextVar("current_session", default=None)


def get_current_session() -> Session:
    """
    Get current session from context.

    Raises RuntimeError if no session context is set.
    This is fail-fast behavior - if you're in a code path that
    requires an authenticated user and none is set, that's a bug.
    """
    session = _current_session.get()
    if session is None:
        raise RuntimeError(
            "No session context set. This usually means you're calling "
            "session-scoped code outside of an authenticated request."
        )
    return session


def get_current_user() -> User:
    """Shortcut for the user of the current session."""
    return get_current_session().user


def has_session() -> bool:
    """Whether a session is set in the current context."""
    return _current_session.get() is not None


def set_current_session(session: Session) -> None:
    """
    Set current session in context.

    Called by auth middleware after hydrating the session from Valkey.
    """
    _current_session.set(session)


def clear_current_session() -> None:
    """
    Clear session context.

    Called by auth middleware after request completes.
    Must be called in finally block to prevent context leakage.
    """
    _current_session.set(None)


@contextmanager
def session_context(session: Session):
    """
    Context manager for temporarily setting the session.

    Useful for tests and for scripts acting on behalf of a user.

    Example:
        with session_context(session):
            agenda = agendamento_service.list_by_date_range(day, day)
    """
    previous = _current_session.get()
    set_current_session(session)
    try:
        yield
    finally:
        if previous is None:
            clear_current_session()
        else:
            set_current_session(previous)

"""Session storage."""

from memoria.session.manager import Session, SessionManager

__all__ = ["Session", "SessionManager"]

from datetime import UTC, datetime


def now() -> datetime:
    return datetime.now(UTC)


def short_id(session_id: str) -> str:
    """Loggable prefix of a session id."""
    return session_id[:8]

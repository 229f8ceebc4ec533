from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column in the project is naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

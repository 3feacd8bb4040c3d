from datetime import datetime, timezone


def utcnow() -> datetime:
    # naive UTC; SQLite drops tzinfo on the way in, so keep every timestamp naive
    return datetime.now(timezone.utc).replace(tzinfo=None)

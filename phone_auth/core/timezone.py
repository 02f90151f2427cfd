from datetime import datetime, timezone


def get_utc_now() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso8601(value):
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat()

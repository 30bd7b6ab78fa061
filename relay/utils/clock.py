"""Time helpers shared by the store and the pipeline."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Current UTC time as a naive datetime.

    DuckDB TIMESTAMP columns are timezone-less, so everything persisted by
    the relay is stored as naive UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)

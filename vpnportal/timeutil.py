"""Naive-UTC time helpers shared by models and services."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time without tzinfo, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

"""Helpers shared by the record schemas."""

from __future__ import annotations

from datetime import datetime

import pendulum


def ensure_aware(value: datetime | None) -> datetime | None:
    """Return ``value`` as a timezone-aware pendulum datetime (naive means UTC)."""
    if value is None:
        return None
    return pendulum.instance(value, tz="UTC")

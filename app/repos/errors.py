from __future__ import annotations


class StoreConflictError(ValueError):
    """A write violated a uniqueness constraint (or lost a race for one)."""

"""Validators shared by the partial-update schemas."""

from __future__ import annotations


def reject_null(v: object) -> object:
    # Omitting a field leaves it unchanged; null would blank a required column.
    if v is None:
        raise ValueError("may be omitted but not set to null")
    return v

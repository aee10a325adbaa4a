"""Composable query filters shared by the list/read-model queries."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import Select, and_
from sqlalchemy.orm import InstrumentedAttribute


# ── Generic filtering ──────────────────────────────────────────────

def apply_filters(
    query: Select,
    model: Any,
    filters: dict[str, Any],
) -> Select:
    """
    Apply a dict of filter parameters to a SQLAlchemy ``Select``.

    Key suffixes determine the operator:

    ============  ==================
    Suffix        Operator
    ============  ==================
    (none)        ``==``
    ``__from``    ``>=``
    ``__to``      ``<=``
    ``__in``      ``IN (…)``
    ``__ne``      ``!=``
    ============  ==================

    ``None`` values are skipped; unknown columns raise ``AttributeError`` so a
    typo never silently widens a tenant-scoped query. Values are always bound
    as parameters.
    """
    conditions: list = []

    for key, value in filters.items():
        if value is None:
            continue

        name, _, op = key.partition("__")
        col = _get_column(model, name)

        if op == "from":
            conditions.append(col >= value)
        elif op == "to":
            conditions.append(col <= value)
        elif op == "in":
            conditions.append(col.in_(list(value)))
        elif op == "ne":
            conditions.append(col != value)
        elif op == "":
            conditions.append(col == value)
        else:
            raise ValueError(f"Unsupported filter operator '{op}' in '{key}'")

    if conditions:
        query = query.where(and_(*conditions))

    return query


# ── Internal helper ─────────────────────────────────────────────────

def _get_column(model: Any, name: str) -> InstrumentedAttribute:
    """Retrieve a mapped column attribute by name."""
    col: Optional[InstrumentedAttribute] = getattr(model, name, None)
    if col is None:
        raise AttributeError(f"{model.__name__} has no column '{name}'")
    return col

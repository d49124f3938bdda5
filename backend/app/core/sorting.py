"""Shared sorting utilities for repository queries."""

from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from app.core.database import Base


def apply_order_by(
    query: Query,  # type: ignore[type-arg]
    model: type[Base],
    order_by: str | None,
    allowed_fields: Mapping[str, str],
    default_field: str = "created_at",
    default_direction: str = "desc",
) -> Query:  # type: ignore[type-arg]
    """Apply ordering to a SQLAlchemy query.

    Args:
        query: The SQLAlchemy query to sort.
        model: The SQLAlchemy model class.
        order_by: Sort string in "field:direction" format (e.g. "costUsd:asc"),
            where field is a public sort key. If None, uses the defaults.
        allowed_fields: Public sort key -> model attribute name. Keys outside
            this mapping fall back to default_field.
        default_field: Default model attribute to sort by.
        default_direction: Default sort direction ("asc" or "desc").

    Returns:
        The query with ordering applied.
    """
    field = default_field
    direction = default_direction

    if order_by:
        parts = order_by.split(":", 1)
        candidate_field = allowed_fields.get(parts[0])
        candidate_direction = parts[1] if len(parts) > 1 else default_direction

        if candidate_field and hasattr(model, candidate_field):
            field = candidate_field
        if candidate_direction in ("asc", "desc"):
            direction = candidate_direction

    column = getattr(model, field)
    order_func = asc if direction == "asc" else desc
    return query.order_by(order_func(column))

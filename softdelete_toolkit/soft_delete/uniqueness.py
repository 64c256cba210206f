"""Narrowing of uniqueness checks to active records."""

from typing import Any

from .registry import find_registration


def scope_to_active_records(model: type, stmt: Any) -> Any:
    """
    Restrict a uniqueness query to records that are not soft-deleted.

    A deleted record then never collides with a new one. Models that are not
    soft-deletable get ``stmt`` back unchanged.

    Args:
        model: Model the uniqueness check runs against
        stmt: Existence query built from the original conditions

    Returns:
        ``stmt`` narrowed with the model's active predicate
    """
    registration = find_registration(model)
    if registration is None:
        return stmt
    return stmt.where(registration.scopes.active_clause())

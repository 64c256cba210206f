"""
Record validation for soft-deletable models.

Validators collect error messages per attribute instead of raising, so a
caller can report every problem with a record at once.
"""

from .validators import (
    AssociationNotSoftDeletedValidator,
    UniquenessValidator,
    ValidationErrors,
    ValidationMixin,
    Validator,
)

__all__ = [
    "Validator",
    "ValidationErrors",
    "ValidationMixin",
    "UniquenessValidator",
    "AssociationNotSoftDeletedValidator",
]

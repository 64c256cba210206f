"""
SoftDelete Toolkit - sentinel-based soft deletion for SQLAlchemy models.

A soft-deleted record stays in its table; a designated column holds a value
other than the model's "not deleted" sentinel, and ordinary ORM queries stop
returning it. Deleted records can still be queried explicitly and restored.

Key Features
------------
* **Default Scope**: Deleted rows vanish from queries, relationship loads and joins
* **Flexible Sentinels**: NULL timestamps, boolean flags or any fixed value
* **Lifecycle Hooks**: before / around / after / after-commit hooks with veto
* **Counter Caches**: Owner counters track active dependents only
* **Validation**: Uniqueness and association checks that understand deletion

Quick Start
-----------
>>> from softdelete_toolkit import SoftDeleteMixin, soft_deletable
>>>
>>> @soft_deletable
... class Article(Base, SoftDeleteMixin):
...     __tablename__ = "articles"
...     id: Mapped[int] = mapped_column(primary_key=True)
...     deleted_at: Mapped[Optional[datetime]]
>>>
>>> article.soft_delete()
>>> session.scalars(select(Article)).all()        # excludes the article
>>> session.scalars(Article.with_deleted()).all()  # includes it
>>> Article.restore_ids(session, article.id)

Documentation
-------------
See the /examples directory for usage examples.

License
-------
MIT License - See LICENSE file for details.
"""

__version__ = "1.0.0"
__author__ = "SoftDelete Toolkit Contributors"

from .config import SoftDeleteConfig, configure, get_config, set_config
from .soft_delete import (
    CounterCache,
    RecordNotFound,
    SentinelPolicy,
    SoftDeleteError,
    SoftDeleteMixin,
    is_soft_deletable,
    scope_to_active_records,
    soft_deletable,
)
from .validation import (
    AssociationNotSoftDeletedValidator,
    UniquenessValidator,
    ValidationMixin,
)

__all__ = [
    # Soft Delete
    "SoftDeleteMixin",
    "soft_deletable",
    "is_soft_deletable",
    "SentinelPolicy",
    "CounterCache",
    "scope_to_active_records",
    "SoftDeleteError",
    "RecordNotFound",
    # Validation
    "ValidationMixin",
    "UniquenessValidator",
    "AssociationNotSoftDeletedValidator",
    # Configuration
    "SoftDeleteConfig",
    "get_config",
    "set_config",
    "configure",
]

"""
Validators aware of soft deletion.

Usage:
    @soft_deletable
    class Job(Base, SoftDeleteMixin, ValidationMixin):
        __validators__ = (
            UniquenessValidator("title", scope=("employer_id",)),
            AssociationNotSoftDeletedValidator("employer"),
        )

    if not job.is_valid(session):
        print(job.errors.full_messages())
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import and_, inspect, not_, select
from sqlalchemy.orm import Session, object_session
from sqlalchemy.orm.interfaces import MANYTOONE

from ..soft_delete.lifecycle import identity_clause
from ..soft_delete.registry import find_registration
from ..soft_delete.scopes import WITH_DELETED
from ..soft_delete.uniqueness import scope_to_active_records

logger = logging.getLogger(__name__)

_ERRORS = "softdelete.validation_errors"

Narrower = Callable[[type, Any], Any]


class ValidationErrors:
    """Error messages keyed by attribute name."""

    def __init__(self) -> None:
        self._messages: Dict[str, List[str]] = {}

    def add(self, attribute: str, message: str) -> None:
        self._messages.setdefault(attribute, []).append(message)

    def __getitem__(self, attribute: str) -> List[str]:
        return list(self._messages.get(attribute, []))

    def __contains__(self, attribute: object) -> bool:
        return attribute in self._messages

    def __iter__(self) -> Iterator[str]:
        return iter(self._messages)

    def __len__(self) -> int:
        return sum(len(messages) for messages in self._messages.values())

    def __bool__(self) -> bool:
        return bool(self._messages)

    def clear(self) -> None:
        self._messages.clear()

    def to_dict(self) -> Dict[str, List[str]]:
        return {attribute: list(messages) for attribute, messages in self._messages.items()}

    def full_messages(self) -> List[str]:
        """Messages prefixed with their attribute, e.g. ``"title has already been taken"``."""
        return [
            f"{attribute} {message}"
            for attribute, messages in self._messages.items()
            for message in messages
        ]


class Validator:
    """Base class for attribute validators."""

    message = "is invalid"

    def __init__(self, attribute: str, message: Optional[str] = None):
        self.attribute = attribute
        if message is not None:
            self.message = message

    def validate(
        self, record: Any, errors: ValidationErrors, session: Optional[Session]
    ) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.attribute!r})"


class UniquenessValidator(Validator):
    """
    Reject a value that another record already holds.

    The existence check is built from the attribute and scope columns without
    the default soft delete scope, then passed through ``narrowers``. The
    default narrower keeps only active records, so a soft-deleted record never
    blocks a new one.

    Args:
        attribute: Attribute that must be unique
        scope: Further attributes the value must be unique within
        message: Error message
        narrowers: Functions ``(model, stmt) -> stmt`` applied to the check
    """

    message = "has already been taken"

    def __init__(
        self,
        attribute: str,
        scope: Sequence[str] = (),
        message: Optional[str] = None,
        narrowers: Sequence[Narrower] = (scope_to_active_records,),
    ):
        super().__init__(attribute, message)
        self.scope = tuple(scope)
        self.narrowers = tuple(narrowers)

    def validate(
        self, record: Any, errors: ValidationErrors, session: Optional[Session]
    ) -> None:
        session = session or object_session(record)
        if session is None:
            raise ValueError(
                f"Uniqueness of {type(record).__name__}.{self.attribute} "
                "needs a session to query"
            )

        model = type(record)
        conditions = [
            _equals(getattr(model, name), getattr(record, name))
            for name in (self.attribute, *self.scope)
        ]
        state = inspect(record)
        if state.has_identity:
            conditions.append(not_(and_(*identity_clause(state.mapper, state.identity))))

        stmt = (
            select(model)
            .where(*conditions)
            .limit(1)
            .execution_options(**{WITH_DELETED: True})
        )
        for narrow in self.narrowers:
            stmt = narrow(model, stmt)

        with session.no_autoflush:
            taken = session.scalars(stmt).first() is not None
        if taken:
            errors.add(self.attribute, self.message)


class AssociationNotSoftDeletedValidator(Validator):
    """
    Reject a reference to a soft-deleted record.

    A many-to-one target hidden by the default scope is loaded with the scope
    lifted, so the reference is still detected.
    """

    message = "has been soft-deleted"

    def validate(
        self, record: Any, errors: ValidationErrors, session: Optional[Session]
    ) -> None:
        targets = self._targets(record, session or object_session(record))
        for target in targets:
            registration = find_registration(target)
            if registration is not None and registration.lifecycle.is_deleted(target):
                errors.add(self.attribute, self.message)
                return

    def _targets(self, record: Any, session: Optional[Session]) -> List[Any]:
        mapper = inspect(type(record))
        prop = mapper.relationships[self.attribute]
        state = inspect(record)

        if prop.direction is not MANYTOONE:
            value = getattr(record, self.attribute)
            return list(value) if value is not None else []

        value = state.dict.get(self.attribute)
        if value is not None:
            return [value]
        if session is None:
            return []

        remote_values = {
            remote: getattr(record, mapper.get_property_by_column(local).key)
            for local, remote in prop.local_remote_pairs
        }
        identity = tuple(remote_values.get(column) for column in prop.mapper.primary_key)
        if any(part is None for part in identity):
            return []

        target = session.get(
            prop.mapper.class_,
            identity,
            execution_options={WITH_DELETED: True},
        )
        return [target] if target is not None else []


class ValidationMixin:
    """
    Mixin running the validators listed in ``__validators__``.

    Errors are kept per instance and reset by every :meth:`validate` call.
    """

    __validators__ = ()

    @property
    def errors(self) -> ValidationErrors:
        info = inspect(self).info
        if _ERRORS not in info:
            info[_ERRORS] = ValidationErrors()
        return info[_ERRORS]

    def validate(self, session: Optional[Session] = None) -> ValidationErrors:
        """
        Run every validator.

        Args:
            session: Session for database checks (the record's own if omitted)

        Returns:
            The record's errors, empty when valid
        """
        errors = self.errors
        errors.clear()
        for validator in self.__validators__:
            validator.validate(self, errors, session)
        if errors:
            logger.debug(f"{type(self).__name__} invalid: {errors.full_messages()}")
        return errors

    def is_valid(self, session: Optional[Session] = None) -> bool:
        return not self.validate(session)


def _equals(column: Any, value: Any) -> Any:
    return column.is_(None) if value is None else column == value

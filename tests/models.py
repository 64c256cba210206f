"""Mapped models shared by the test suite."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from softdelete_toolkit.soft_delete import (
    CounterCache,
    SoftDeleteMixin,
    TransitionAborted,
    after_restore,
    after_soft_delete,
    after_soft_delete_commit,
    around_soft_delete,
    before_restore,
    before_soft_delete,
    soft_deletable,
)
from softdelete_toolkit.validation import (
    AssociationNotSoftDeletedValidator,
    UniquenessValidator,
    ValidationMixin,
)


class Base(DeclarativeBase):
    pass


@soft_deletable
class Employer(Base, SoftDeleteMixin):
    __tablename__ = "employers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    jobs_count: Mapped[int] = mapped_column(default=0)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    jobs: Mapped[List["Job"]] = relationship(back_populates="employer")
    candidates: Mapped[List["Candidate"]] = relationship(
        secondary="jobs", viewonly=True
    )


class Candidate(Base):
    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))


@soft_deletable(counter_caches=[CounterCache("employer", "jobs_count")])
class Job(Base, SoftDeleteMixin, ValidationMixin):
    __tablename__ = "jobs"
    __validators__ = (
        UniquenessValidator("title", scope=("employer_id",)),
        AssociationNotSoftDeletedValidator("employer"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(100))
    employer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("employers.id"))
    candidate_id: Mapped[Optional[int]] = mapped_column(ForeignKey("candidates.id"))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    employer: Mapped[Optional[Employer]] = relationship(back_populates="jobs")
    candidate: Mapped[Optional[Candidate]] = relationship()


@soft_deletable(column="is_active", sentinel_value=True)
class Account(Base, SoftDeleteMixin):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(100))
    is_active: Mapped[Optional[bool]] = mapped_column()


@soft_deletable(column="is_active", sentinel_value=True, null_is_deleted=False)
class Subscription(Base, SoftDeleteMixin):
    __tablename__ = "subscriptions"

    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(100))
    is_active: Mapped[Optional[bool]] = mapped_column()


@soft_deletable(column="status", sentinel_value="open")
class Ticket(Base, SoftDeleteMixin):
    __tablename__ = "tickets"

    id: Mapped[int] = mapped_column(primary_key=True)
    subject: Mapped[str] = mapped_column(String(100))
    status: Mapped[Optional[str]] = mapped_column(String(20))

    def soft_delete_attributes(self) -> Dict[str, Any]:
        return {"status": "archived"}


@soft_deletable(default_scope=False)
class Comment(Base, SoftDeleteMixin):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    body: Mapped[str] = mapped_column(String(200))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class DocumentObserver:
    """Records observer notifications."""

    def __init__(self) -> None:
        self.events: List[str] = []

    def before_soft_delete(self, record: Any) -> None:
        self.events.append(f"observer:before_soft_delete:{record.title}")

    def after_soft_delete(self, record: Any) -> None:
        self.events.append(f"observer:after_soft_delete:{record.title}")

    def after_restore(self, record: Any) -> None:
        self.events.append(f"observer:after_restore:{record.title}")


document_observer = DocumentObserver()


class Auditable(SoftDeleteMixin):
    events = []  # type: ignore[var-annotated]

    @before_soft_delete
    def audit_before_delete(self) -> None:
        self.events.append("base:before_soft_delete")


@soft_deletable(observers=[document_observer])
class Document(Base, Auditable):
    """
    Document whose hooks record every call in ``Document.events``.

    Plain instance attributes steer the hooks: ``veto`` makes the before hook
    refuse, ``abort`` raises TransitionAborted, ``skip_proceed`` keeps the
    around hook from proceeding and ``explode`` makes the after hook fail.
    """

    __tablename__ = "documents"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(100))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    @before_soft_delete
    def check_veto(self) -> Optional[bool]:
        self.events.append("before_soft_delete")
        if getattr(self, "abort", False):
            raise TransitionAborted("aborted")
        if getattr(self, "veto", False):
            return False
        return None

    @around_soft_delete
    def wrap_delete(self, proceed: Any) -> None:
        self.events.append("around_soft_delete:enter")
        if getattr(self, "skip_proceed", False):
            return
        proceed()
        self.events.append("around_soft_delete:exit")

    @after_soft_delete
    def record_delete(self) -> None:
        self.events.append("after_soft_delete")
        if getattr(self, "explode", False):
            raise RuntimeError("boom")

    @after_soft_delete_commit
    def record_commit(self) -> None:
        self.events.append("after_soft_delete_commit")

    @before_restore
    def check_restore(self) -> Optional[bool]:
        self.events.append("before_restore")
        if getattr(self, "veto", False):
            return False
        return None

    @after_restore
    def record_restore(self) -> None:
        self.events.append("after_restore")


@soft_deletable
class Note(Base, SoftDeleteMixin):
    __tablename__ = "notes"

    id: Mapped[int] = mapped_column(primary_key=True)
    text: Mapped[str] = mapped_column(String(100))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

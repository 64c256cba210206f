"""
Tests for sentinel policies and model registration.
"""

from datetime import datetime, timezone
from typing import Optional

import pytest
from pydantic import ValidationError
from sqlalchemy import String, column
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from softdelete_toolkit.config import SoftDeleteConfig
from softdelete_toolkit.soft_delete import (
    NotSoftDeletableError,
    SentinelPolicy,
    SoftDeleteConfigurationError,
    SoftDeleteMixin,
    get_registration,
    is_soft_deletable,
    soft_deletable,
)

from .models import Account, Candidate, Employer, Job, Ticket


class TestSentinelPolicy:
    """Test policy construction and predicates."""

    def test_resolve_defaults(self):
        """Test defaults come from configuration."""
        policy = SentinelPolicy.resolve(["id", "deleted_at", "updated_at"])

        assert policy.column == "deleted_at"
        assert policy.sentinel_value is None
        assert policy.install_default_scope is True
        assert policy.null_is_deleted is True
        assert policy.timestamp_columns == ("updated_at",)

    def test_resolve_overrides(self):
        """Test explicit arguments win over configuration."""
        policy = SentinelPolicy.resolve(
            ["id", "is_active"],
            column="is_active",
            sentinel_value=True,
            install_default_scope=False,
            null_is_deleted=False,
            timestamp_columns=["touched_at"],
        )

        assert policy.column == "is_active"
        assert policy.sentinel_value is True
        assert policy.install_default_scope is False
        assert policy.null_is_deleted is False
        assert policy.timestamp_columns == ("touched_at",)

    def test_resolve_from_custom_config(self):
        """Test a passed configuration supplies the defaults."""
        config = SoftDeleteConfig(
            default_column="removed_at", timestamp_columns=["modified_at"]
        )
        policy = SentinelPolicy.resolve(
            ["removed_at", "modified_at", "updated_at"], config=config
        )

        assert policy.column == "removed_at"
        assert policy.timestamp_columns == ("modified_at",)

    def test_invalid_column_rejected(self):
        """Test column names must be attribute names."""
        with pytest.raises(ValidationError):
            SentinelPolicy(column="deleted at")

    def test_policy_is_frozen(self):
        """Test policies cannot be changed after registration."""
        policy = SentinelPolicy(column="deleted_at")
        with pytest.raises(ValidationError):
            policy.column = "other"

    def test_deleted_marker(self):
        """Test the value written on delete."""
        assert SentinelPolicy(column="flag", sentinel_value=True).deleted_marker() is False
        assert SentinelPolicy(column="flag", sentinel_value=False).deleted_marker() is True

        marker = SentinelPolicy(column="deleted_at").deleted_marker()
        assert isinstance(marker, datetime)
        assert marker.tzinfo == timezone.utc

    def test_local_time_marker(self):
        """Test use_utc=False writes naive local timestamps."""
        marker = SentinelPolicy(column="deleted_at", use_utc=False).deleted_marker()
        assert marker.tzinfo is None

    def test_delete_and_restore_attributes(self):
        """Test timestamp columns are written with the deletion column."""
        policy = SentinelPolicy(column="deleted_at", timestamp_columns=("updated_at",))

        deleted = policy.delete_attributes()
        assert set(deleted) == {"deleted_at", "updated_at"}
        assert deleted["deleted_at"] is not None

        restored = policy.restore_attributes()
        assert restored["deleted_at"] is None
        assert isinstance(restored["updated_at"], datetime)

    def test_is_deleted(self):
        """Test the in-memory predicate."""
        policy = SentinelPolicy(column="deleted_at")
        assert policy.is_deleted(Job(title="a")) is False
        assert policy.is_deleted(Job(title="a", deleted_at=datetime.now())) is True

    def test_null_handling_in_memory(self):
        """Test the in-memory predicates agree with the SQL ones on NULL."""
        counted = SentinelPolicy(column="is_active", sentinel_value=True)
        ignored = SentinelPolicy(
            column="is_active", sentinel_value=True, null_is_deleted=False
        )
        record = Account(email="a@example.com", is_active=None)

        assert counted.is_deleted(record) is True
        assert counted.is_active(record) is False
        assert ignored.is_deleted(record) is False
        assert ignored.is_active(record) is False

        record.is_active = False
        assert ignored.is_deleted(record) is True

    def test_null_sentinel_clauses(self):
        """Test predicates for a NULL sentinel."""
        policy = SentinelPolicy(column="deleted_at")
        state = column("deleted_at")

        assert str(policy.active_clause(state)) == "deleted_at IS NULL"
        assert str(policy.deleted_clause(state)) == "deleted_at IS NOT NULL"

    def test_value_sentinel_clauses(self):
        """Test predicates for a non-NULL sentinel."""
        policy = SentinelPolicy(column="status", sentinel_value="open")
        state = column("status")

        assert str(policy.active_clause(state)) == "status = :status_1"
        assert (
            str(policy.deleted_clause(state))
            == "status IS NULL OR status != :status_1"
        )

    def test_value_sentinel_without_null_handling(self):
        """Test NULL can be left out of the deleted predicate."""
        policy = SentinelPolicy(
            column="status", sentinel_value="open", null_is_deleted=False
        )
        assert str(policy.deleted_clause(column("status"))) == "status != :status_1"


class OtherBase(DeclarativeBase):
    pass


class TestRegistration:
    """Test the soft_deletable decorator."""

    def test_registered_models(self):
        """Test the discriminator."""
        assert is_soft_deletable(Job)
        assert is_soft_deletable(Job(title="a"))
        assert Job.is_soft_deletable()
        assert not is_soft_deletable(Candidate)

    def test_registered_policy(self):
        """Test the policy resolved for each model."""
        assert get_registration(Job).policy.timestamp_columns == ("updated_at",)
        assert get_registration(Employer).policy.timestamp_columns == ()
        assert get_registration(Account).policy.sentinel_value is True
        assert get_registration(Ticket).policy.column == "status"

    def test_unregistered_model_raises(self):
        """Test lookups for unregistered models."""
        with pytest.raises(NotSoftDeletableError) as exc:
            get_registration(Candidate)
        assert "Candidate" in str(exc.value)

    def test_requires_mixin(self):
        """Test registration rejects classes without the mixin."""
        with pytest.raises(TypeError):

            @soft_deletable
            class Plain(OtherBase):
                __tablename__ = "plain"
                id: Mapped[int] = mapped_column(primary_key=True)
                deleted_at: Mapped[Optional[datetime]]

    def test_requires_column(self):
        """Test registration rejects models without the deletion column."""
        with pytest.raises(SoftDeleteConfigurationError) as exc:

            @soft_deletable(column="removed_at")
            class Widget(OtherBase, SoftDeleteMixin):
                __tablename__ = "widgets"
                id: Mapped[int] = mapped_column(primary_key=True)

        assert "removed_at" in str(exc.value)

    def test_rejects_column_without_room_for_marker(self):
        """Test a string column needs its own deleted value."""
        with pytest.raises(SoftDeleteConfigurationError) as exc:

            @soft_deletable(column="state", sentinel_value="live")
            class Label(OtherBase, SoftDeleteMixin):
                __tablename__ = "labels"
                id: Mapped[int] = mapped_column(primary_key=True)
                state: Mapped[Optional[str]] = mapped_column(String(20))

        assert "soft_delete_attributes" in str(exc.value)

    def test_requires_mapping(self):
        """Test registration rejects unmapped classes."""
        with pytest.raises(SoftDeleteConfigurationError):

            @soft_deletable
            class Unmapped(SoftDeleteMixin):
                pass

    def test_new_records_are_active(self):
        """Test new instances receive the sentinel."""
        assert Account(email="a@example.com").is_active is True
        assert Account(email="a@example.com").is_soft_deleted is False
        assert Ticket(subject="s").status == "open"
        assert Job(title="a").deleted_at is None

    def test_explicit_value_kept(self):
        """Test a value passed to the constructor is not overwritten."""
        assert Account(email="a@example.com", is_active=None).is_soft_deleted is True

#!/usr/bin/env python3
"""
Soft Delete Example - SoftDelete Toolkit

IMPORTANT: This is a demonstration file prioritizing readability over
production readiness. It uses an in-memory SQLite database and prints its
progress instead of logging it.

Demonstrates:
- Hiding soft-deleted records from ordinary queries and relationship loads
- Querying deleted records explicitly
- Lifecycle hooks with a veto
- Counter caches that only count active records
- Uniqueness that ignores soft-deleted records
- Restoring records by identifier
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import ForeignKey, create_engine, event, select
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    relationship,
)

from softdelete_toolkit import (
    CounterCache,
    SoftDeleteMixin,
    UniquenessValidator,
    ValidationMixin,
    soft_deletable,
)
from softdelete_toolkit.soft_delete import before_soft_delete


class Base(DeclarativeBase):
    pass


@soft_deletable
class Site(Base, SoftDeleteMixin):
    """Clinical trial site."""

    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str]
    patients_count: Mapped[int] = mapped_column(default=0)
    deleted_at: Mapped[Optional[datetime]]

    patients: Mapped[List["Patient"]] = relationship(back_populates="site")


@soft_deletable(counter_caches=[CounterCache("site", "patients_count")])
class Patient(Base, SoftDeleteMixin, ValidationMixin):
    """Patient enrolled at a site; codes are unique per site."""

    __tablename__ = "patients"
    __validators__ = (UniquenessValidator("code", scope=("site_id",)),)

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str]
    locked: Mapped[bool] = mapped_column(default=False)
    site_id: Mapped[Optional[int]] = mapped_column(ForeignKey("sites.id"))
    deleted_at: Mapped[Optional[datetime]]
    updated_at: Mapped[Optional[datetime]]

    site: Mapped[Optional[Site]] = relationship(back_populates="patients")

    @before_soft_delete
    def refuse_locked(self):
        if self.locked:
            print(f"  ✗ {self.code} is locked, deletion vetoed")
            return False


def demonstrate_soft_delete() -> None:
    """Show soft delete functionality."""
    print("🗑️  Soft Delete Example\n")

    engine = create_engine("sqlite://")

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)

    with Session(engine) as session:
        # 1. Create test data
        print("1️⃣ Creating Test Data:")
        site = Site(name="City Medical Center")
        site.patients = [
            Patient(code="CMC-001"),
            Patient(code="CMC-002"),
            Patient(code="CMC-003", locked=True),
        ]
        session.add(site)
        session.commit()
        print(f"  ✓ Created site {site.name} with {site.patients_count} patients\n")

        # 2. Soft delete a single record
        print("2️⃣ Soft Deleting Single Record:")
        first = session.scalars(select(Patient).where(Patient.code == "CMC-001")).one()
        first.soft_delete()
        session.commit()

        active = session.scalars(select(Patient)).all()
        everything = session.scalars(Patient.with_deleted()).all()
        print(f"  ✓ Soft deleted {first.code} at {first.deleted_at}")
        print(f"  Active patients: {len(active)}")
        print(f"  All patients (including deleted): {len(everything)}")
        print(f"  Site counter: {site.patients_count}\n")

        # 3. Relationship loads skip deleted records
        print("3️⃣ Relationship Loading:")
        session.expire(site, ["patients"])
        print(f"  Site patients: {[patient.code for patient in site.patients]}\n")

        # 4. Hooks can veto
        print("4️⃣ Vetoed Deletion:")
        locked = session.scalars(select(Patient).where(Patient.code == "CMC-003")).one()
        print(f"  soft_delete() returned {locked.soft_delete()}\n")

        # 5. Uniqueness ignores deleted records
        print("5️⃣ Uniqueness Validation:")
        again = Patient(code="CMC-001", site_id=site.id)
        duplicate = Patient(code="CMC-002", site_id=site.id)
        print(f"  Re-using deleted code CMC-001 valid: {again.is_valid(session)}")
        print(f"  Re-using active code CMC-002 valid: {duplicate.is_valid(session)}")
        print(f"  Errors: {duplicate.errors.full_messages()}\n")

        # 6. Restore by identifier
        print("6️⃣ Restoring Soft-Deleted Record:")
        Patient.restore_ids(session, first.id)
        session.commit()
        print(f"  ✓ Restored {first.code}, deleted: {first.is_soft_deleted}")
        print(f"  Site counter: {site.patients_count}")
        print(f"  Deleted patients left: {len(session.scalars(Patient.only_deleted()).all())}")

    print("\n✅ Soft delete example completed!")


if __name__ == "__main__":
    demonstrate_soft_delete()

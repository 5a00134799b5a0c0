# backend/lessonbook/models/package.py
"""
Prepaid hour packages and their per-student assignments.

A PackageAssignment is the hour ledger: ``hours_remaining`` only goes down
through booking debits and only goes up through refunds or administrative
grants. Its status is derived on read and never stored.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from lessonbook.core.enums import PackageAssignmentStatus
from lessonbook.core.timezone_utils import days_remaining, ensure_stored_utc, ensure_utc
from lessonbook.core.ulid_helper import generate_ulid
from lessonbook.database import Base


class Package(Base):
    """Catalogue entry a student can be assigned."""

    __tablename__ = "packages"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    name = Column(String(100), nullable=False)
    hours_count = Column(Integer, nullable=False)
    validity_days = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    assignments = relationship("PackageAssignment", back_populates="package")

    __table_args__ = (
        CheckConstraint("hours_count > 0", name="ck_packages_hours_positive"),
        CheckConstraint("validity_days > 0", name="ck_packages_validity_positive"),
    )

    def __repr__(self) -> str:
        return f"<Package {self.id}: {self.name} hours={self.hours_count}>"


class PackageAssignment(Base):
    """A student's balance of purchased hours."""

    __tablename__ = "package_assignments"

    id = Column(String(26), primary_key=True, default=generate_ulid)
    student_id = Column(String(26), nullable=False, index=True)
    package_id = Column(String(26), ForeignKey("packages.id"), nullable=True)

    assigned_at = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    hours_remaining = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    package = relationship("Package", back_populates="assignments")

    __table_args__ = (
        CheckConstraint("hours_remaining >= 0", name="ck_package_assignments_hours_non_negative"),
        Index("ix_package_assignments_student_active", "student_id", "is_active"),
    )

    def is_expired(self, now: datetime) -> bool:
        expires_at = ensure_stored_utc(self.expires_at)
        return expires_at is not None and expires_at < ensure_utc(now)

    def has_remaining_hours(self) -> bool:
        return (self.hours_remaining or 0) > 0

    def status_at(self, now: datetime) -> PackageAssignmentStatus:
        """Derived state; inactive wins over expired, which wins over exhausted."""
        if not self.is_active:
            return PackageAssignmentStatus.INACTIVE
        if self.is_expired(now):
            return PackageAssignmentStatus.EXPIRED
        if not self.has_remaining_hours():
            return PackageAssignmentStatus.EXHAUSTED
        return PackageAssignmentStatus.ACTIVE

    def days_remaining(self, now: datetime) -> int:
        expires_at = ensure_stored_utc(self.expires_at)
        if expires_at is None:
            return 0
        return days_remaining(now, expires_at)

    def __repr__(self) -> str:
        return (
            f"<PackageAssignment {self.id}: student={self.student_id} "
            f"hours={self.hours_remaining} active={self.is_active}>"
        )

"""
Database Models

Counter tables backing the admin dashboard plus the staff user table.

Counter Tables:
- DashboardStat: per-metric counters keyed by (metric_type, year, month, week)
- FailedOrderReason: per-reason failure counters keyed by (reason, year, month, week)

Both are only ever incremented; the unique constraints are what makes the
insert-or-increment upsert atomic.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
import uuid

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class MetricType(str, Enum):
    """Dashboard metric types"""
    ORDERS = "orders"
    SETTLEMENTS = "settlements"
    FAILED_ORDERS = "failed_orders"


# =============================================================================
# COUNTER TABLES
# =============================================================================

class DashboardStat(Base):
    """
    Dashboard Counter Table

    One row per metric and (year, month, ISO week) bucket.
    """
    __tablename__ = "dashboard_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    metric_type: Mapped[str] = mapped_column(String(32), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("metric_type", "year", "month", "week", name="uq_dashboard_stats_bucket"),
        Index("ix_dashboard_stats_year_metric", "year", "metric_type"),
    )


class FailedOrderReason(Base):
    """
    Failed Order Reason Counter Table

    One row per failure reason and (year, month, ISO week) bucket.
    """
    __tablename__ = "failed_order_reasons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("reason", "year", "month", "week", name="uq_failed_order_reasons_bucket"),
        Index("ix_failed_order_reasons_year", "year"),
    )


# =============================================================================
# USERS
# =============================================================================

class User(Base):
    """
    Staff User Table

    Emails are stored lower-cased. Verification and reset tokens are cleared
    once consumed.
    """
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(100))
    last_name: Mapped[Optional[str]] = mapped_column(String(100))

    is_email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_verification_token: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    password_reset_token: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    password_reset_expires: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

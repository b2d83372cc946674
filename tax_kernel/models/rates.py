"""
Module: tax_kernel.models.rates
Responsibility: ORM persistence for versioned Finance Act rule sets: rate
    entries with their brackets, penalty schedules with their bands, corporate
    turnover thresholds, and tax-year locks.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One rate entry per (tax_type, tax_year, category) and one penalty
      schedule per (tax_type, tax_year): unique constraints.
    - Once a TaxYearLock row exists for a year, every rate row of that year
      is frozen.  ORM listener in db/immutability.py.

Audit relevance:
    Assessments record the ``version`` of every rate they used.  Locking a
    year guarantees that version still means the same numbers later.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tax_kernel.db.base import Base, TrackedBase


class TaxRateRecord(TrackedBase):
    """
    Rate entry for one (tax type, tax year, category).

    Holds either ``rate`` or child ``brackets``; structural validation is
    repeated when the row is read back into a RateTable.
    """

    __tablename__ = "tax_rates"

    __table_args__ = (
        UniqueConstraint("tax_type", "tax_year", "category", name="uq_tax_rate_key"),
    )

    tax_type: Mapped[str] = mapped_column(String(30), nullable=False)
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(80), nullable=False)
    version: Mapped[str] = mapped_column(String(50), nullable=False)

    # Rates are fractions (0.15 = 15%); excise specific duty is an amount per unit.
    rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    minimum_tax_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    alternative_minimum_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9), nullable=True
    )
    levy_rate: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    duty_basis: Mapped[str | None] = mapped_column(String(20), nullable=True)
    description: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    brackets: Mapped[list["TaxBracketRecord"]] = relationship(
        back_populates="rate_entry",
        cascade="all, delete-orphan",
        order_by="TaxBracketRecord.sequence",
    )

    def __repr__(self) -> str:
        return f"<TaxRateRecord {self.tax_type}/{self.tax_year}/{self.category} v{self.version}>"


class TaxBracketRecord(Base):
    """One progressive band of a bracketed rate entry."""

    __tablename__ = "tax_brackets"

    __table_args__ = (
        UniqueConstraint("rate_entry_id", "sequence", name="uq_tax_bracket_sequence"),
    )

    rate_entry_id: Mapped[UUID] = mapped_column(
        ForeignKey("tax_rates.id", ondelete="CASCADE"), nullable=False
    )
    # Denormalised so the lock listener needs no join.
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    lower: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    upper: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    rate_entry: Mapped[TaxRateRecord] = relationship(back_populates="brackets")


class PenaltyScheduleRecord(TrackedBase):
    """Penalty bands of every kind and interest terms for one (tax type, year)."""

    __tablename__ = "penalty_schedules"

    __table_args__ = (
        UniqueConstraint("tax_type", "tax_year", name="uq_penalty_schedule_key"),
    )

    tax_type: Mapped[str] = mapped_column(String(30), nullable=False)
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    version: Mapped[str] = mapped_column(String(50), nullable=False)
    annual_interest_rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    interest_mode: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    bands: Mapped[list["PenaltyBandRecord"]] = relationship(
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by="PenaltyBandRecord.sequence",
    )


class PenaltyBandRecord(Base):
    """One days-late band of a penalty schedule; ``kind`` is a PenaltyKind value."""

    __tablename__ = "penalty_bands"

    schedule_id: Mapped[UUID] = mapped_column(
        ForeignKey("penalty_schedules.id", ondelete="CASCADE"), nullable=False
    )
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False, default="late_payment")
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    min_days: Mapped[int] = mapped_column(Integer, nullable=False)
    max_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)
    minimum_amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    schedule: Mapped[PenaltyScheduleRecord] = relationship(back_populates="bands")


class CategoryThresholdRecord(TrackedBase):
    """Lowest annual turnover for a corporate taxpayer category in a year."""

    __tablename__ = "category_thresholds"

    __table_args__ = (
        UniqueConstraint("tax_year", "category", name="uq_category_threshold_key"),
    )

    tax_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(20), nullable=False)
    min_turnover: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)


class TaxYearLock(Base):
    """
    Marks a tax year as assessed.  Rate data for the year is frozen from
    the moment this row exists.
    """

    __tablename__ = "tax_year_locks"

    tax_year: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    locked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    locked_by: Mapped[str] = mapped_column(String(100), nullable=False)
    reason: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    def __repr__(self) -> str:
        return f"<TaxYearLock {self.tax_year} by {self.locked_by}>"

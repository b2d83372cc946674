"""
tax_services.rate_source -- SQL-backed rule data for the tax engines.

Responsibility:
    Persist Finance Act rule sets in the database and hand the engines a
    validated, immutable RateTable snapshot on request.  Lock assessed tax
    years so their rules can no longer change.

Architecture position:
    Services -- stateful adapter over kernel models.  Implements the
    ``RateSource`` protocol from tax_engines.rate_table; engines never see a
    Session.

Invariants enforced:
    - ``snapshot`` returns a fully validated RateTable: a malformed row
      fails at snapshot time, never mid-calculation.
    - A locked tax year rejects any write to its rate data.  The check is
      made here for a clear error and again by the ORM listeners in
      tax_kernel.db.immutability.
    - Storing a rule set replaces the whole year atomically within the
      caller's transaction.

Failure modes:
    - InvalidRateTableError from ``snapshot`` for malformed stored data.
    - TaxYearLockedError from ``store_rule_set`` for a locked year.

Audit relevance:
    Every store and lock is logged with tax year, rule-set version and
    actor.  Locks record who locked the year and when.

Usage:
    source = SqlRateSource(session)
    source.store_rule_set(rule_set, actor="rates-admin")
    table = source.snapshot([2025])
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from tax_kernel.domain.clock import Clock, SystemClock
from tax_kernel.domain.rates import (
    Bracket,
    CategoryThreshold,
    PenaltyBand,
    PenaltySchedule,
    RateEntry,
)
from tax_kernel.domain.values import (
    DutyBasis,
    InterestMode,
    PenaltyKind,
    TaxpayerCategory,
    TaxType,
)
from tax_kernel.exceptions import TaxYearLockedError
from tax_kernel.logging_config import get_logger
from tax_kernel.models.rates import (
    CategoryThresholdRecord,
    PenaltyBandRecord,
    PenaltyScheduleRecord,
    TaxBracketRecord,
    TaxRateRecord,
    TaxYearLock,
)
from tax_config.schema import RuleSet
from tax_engines.rate_table import RateTable

logger = get_logger("services.rate_source")


def _decimal(value: Decimal | None) -> Decimal | None:
    """Strip the column scale padding: 0.150000000 -> 0.15, 600000.000000000 -> 600000."""
    if value is None:
        return None
    value = Decimal(value)
    if value == value.to_integral_value():
        return value.quantize(Decimal(1))
    return value.normalize()


class SqlRateSource:
    """
    Database-backed RateSource.

    Contract:
        Receives a Session via constructor injection; never commits.  The
        caller owns the transaction (see ``session_scope``).
    Guarantees:
        - ``snapshot`` reads only the requested years.
        - ``lock_tax_year`` is idempotent.
    Non-goals:
        - Does not cache snapshots; callers take one per request.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self, tax_years: Iterable[int]) -> RateTable:
        years = sorted(set(tax_years))
        session = self._session

        rate_rows = session.scalars(
            select(TaxRateRecord)
            .where(TaxRateRecord.tax_year.in_(years))
            .options(selectinload(TaxRateRecord.brackets))
        ).all()
        schedule_rows = session.scalars(
            select(PenaltyScheduleRecord)
            .where(PenaltyScheduleRecord.tax_year.in_(years))
            .options(selectinload(PenaltyScheduleRecord.bands))
        ).all()
        threshold_rows = session.scalars(
            select(CategoryThresholdRecord).where(CategoryThresholdRecord.tax_year.in_(years))
        ).all()

        table = RateTable(
            entries=[_entry_from_record(r) for r in rate_rows],
            penalty_schedules=[_schedule_from_record(r) for r in schedule_rows],
            thresholds=[
                CategoryThreshold(
                    tax_year=r.tax_year,
                    category=TaxpayerCategory(r.category),
                    min_turnover=_decimal(r.min_turnover),
                )
                for r in threshold_rows
            ],
        )
        logger.debug(
            "rate_snapshot_taken",
            extra={"tax_years": years, "entry_count": len(table)},
        )
        return table

    def is_locked(self, tax_year: int) -> bool:
        return self._lock_for(tax_year) is not None

    def locked_years(self) -> tuple[int, ...]:
        return tuple(
            self._session.scalars(select(TaxYearLock.tax_year).order_by(TaxYearLock.tax_year))
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def store_rule_set(self, rule_set: RuleSet, actor: str = "system") -> None:
        """
        Replace all rate data for ``rule_set.tax_year`` with the rule set.

        Raises:
            TaxYearLockedError: If the year is locked.
        """
        year = rule_set.tax_year
        if self.is_locked(year):
            logger.warning(
                "rule_set_store_rejected",
                extra={"tax_year": year, "ruleset_id": rule_set.ruleset_id, "actor": actor},
            )
            raise TaxYearLockedError(year, "rule_set", "replace")

        session = self._session
        for model in (TaxRateRecord, PenaltyScheduleRecord, CategoryThresholdRecord):
            for record in session.scalars(select(model).where(model.tax_year == year)).all():
                session.delete(record)
        # Deletes must reach the database before inserts reuse the same unique keys.
        session.flush()

        for entry in rule_set.entries:
            session.add(_record_from_entry(entry, actor))
        for schedule in rule_set.penalty_schedules:
            session.add(_record_from_schedule(schedule, actor))
        for threshold in rule_set.thresholds:
            session.add(
                CategoryThresholdRecord(
                    tax_year=threshold.tax_year,
                    category=threshold.category.value,
                    min_turnover=threshold.min_turnover,
                    created_by=actor,
                )
            )
        session.flush()

        logger.info(
            "rule_set_stored",
            extra={
                "tax_year": year,
                "ruleset_id": rule_set.ruleset_id,
                "ruleset_version": rule_set.version,
                "checksum": rule_set.checksum,
                "entry_count": len(rule_set.entries),
                "actor": actor,
            },
        )

    def lock_tax_year(self, tax_year: int, actor: str, reason: str = "") -> TaxYearLock:
        """Freeze the rate data of ``tax_year``.  Locking twice returns the first lock."""
        existing = self._lock_for(tax_year)
        if existing is not None:
            logger.debug("tax_year_already_locked", extra={"tax_year": tax_year})
            return existing

        lock = TaxYearLock(
            tax_year=tax_year,
            locked_at=self._clock.now(),
            locked_by=actor,
            reason=reason,
        )
        self._session.add(lock)
        self._session.flush()
        logger.info(
            "tax_year_locked",
            extra={"tax_year": tax_year, "actor": actor, "reason": reason},
        )
        return lock

    def _lock_for(self, tax_year: int) -> TaxYearLock | None:
        return self._session.scalars(
            select(TaxYearLock).where(TaxYearLock.tax_year == tax_year)
        ).first()


# ----------------------------------------------------------------------
# Record <-> domain conversion
# ----------------------------------------------------------------------


def _entry_from_record(record: TaxRateRecord) -> RateEntry:
    return RateEntry(
        tax_type=TaxType(record.tax_type),
        tax_year=record.tax_year,
        category=record.category,
        version=record.version,
        rate=_decimal(record.rate),
        brackets=tuple(
            Bracket(lower=_decimal(b.lower), upper=_decimal(b.upper), rate=_decimal(b.rate))
            for b in record.brackets
        ),
        minimum_tax_rate=_decimal(record.minimum_tax_rate),
        alternative_minimum_rate=_decimal(record.alternative_minimum_rate),
        levy_rate=_decimal(record.levy_rate),
        duty_basis=None if record.duty_basis is None else DutyBasis(record.duty_basis),
        description=record.description,
    )


def _record_from_entry(entry: RateEntry, actor: str) -> TaxRateRecord:
    return TaxRateRecord(
        tax_type=entry.tax_type.value,
        tax_year=entry.tax_year,
        category=entry.category,
        version=entry.version,
        rate=entry.rate,
        minimum_tax_rate=entry.minimum_tax_rate,
        alternative_minimum_rate=entry.alternative_minimum_rate,
        levy_rate=entry.levy_rate,
        duty_basis=None if entry.duty_basis is None else entry.duty_basis.value,
        description=entry.description,
        created_by=actor,
        brackets=[
            TaxBracketRecord(
                tax_year=entry.tax_year,
                sequence=i,
                lower=b.lower,
                upper=b.upper,
                rate=b.rate,
            )
            for i, b in enumerate(entry.brackets)
        ],
    )


def _bands_of(record: PenaltyScheduleRecord, kind: PenaltyKind) -> tuple[PenaltyBand, ...]:
    return tuple(
        PenaltyBand(
            name=b.name,
            min_days=b.min_days,
            max_days=b.max_days,
            rate=_decimal(b.rate),
            minimum_amount=_decimal(b.minimum_amount),
        )
        for b in record.bands
        if b.kind == kind.value
    )


def _schedule_from_record(record: PenaltyScheduleRecord) -> PenaltySchedule:
    return PenaltySchedule(
        tax_type=TaxType(record.tax_type),
        tax_year=record.tax_year,
        version=record.version,
        bands=_bands_of(record, PenaltyKind.LATE_PAYMENT),
        annual_interest_rate=_decimal(record.annual_interest_rate),
        interest_mode=InterestMode(record.interest_mode),
        description=record.description,
        late_filing_bands=_bands_of(record, PenaltyKind.LATE_FILING),
    )


def _record_from_schedule(schedule: PenaltySchedule, actor: str) -> PenaltyScheduleRecord:
    kinded = [(PenaltyKind.LATE_PAYMENT, b) for b in schedule.bands] + [
        (PenaltyKind.LATE_FILING, b) for b in schedule.late_filing_bands
    ]
    return PenaltyScheduleRecord(
        tax_type=schedule.tax_type.value,
        tax_year=schedule.tax_year,
        version=schedule.version,
        annual_interest_rate=schedule.annual_interest_rate,
        interest_mode=schedule.interest_mode.value,
        description=schedule.description,
        created_by=actor,
        bands=[
            PenaltyBandRecord(
                tax_year=schedule.tax_year,
                kind=kind.value,
                sequence=i,
                name=b.name,
                min_days=b.min_days,
                max_days=b.max_days,
                rate=b.rate,
                minimum_amount=b.minimum_amount,
            )
            for i, (kind, b) in enumerate(kinded)
        ],
    )

"""
Module: tax_engines.penalty
Responsibility:
    Late-payment and late-filing penalties, and interest accrued on late
    payment, from due date, actual date, amount and the tax type's
    penalty schedule.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access.  The
    actual date is always supplied by the caller.

Invariants enforced:
    - ``days_late = max(0, (actual_date - due_date).days)``.  Paying on the
      due date is not late: zero days yields an all-zero result.
    - Single-band penalty: the ONE band containing ``days_late`` applies
      its rate to the whole amount (45 days late uses the 31-60 band rate,
      not a blend of 1-30 and 31-60).  A band may carry a minimum amount.
    - Interest: SIMPLE accrues ``amount * annual_rate * days / 365``;
      MONTHLY_COMPOUND accrues ``amount * ((1 + annual_rate / 12) ** months - 1)``
      with ``months = ceil(days / 30)``.
    - Penalty and interest are each rounded half-even to 2 places;
      ``total_penalty = penalty_amount + interest_amount``.
    - LATE_FILING uses the schedule's late-filing bands and accrues no
      interest; a schedule without late-filing bands charges nothing.

Failure modes:
    - InvalidAmountError for a negative tax amount.
    - InvalidRequestError for missing dates.
    - RateNotFoundError when no schedule exists for (tax type, tax year).

Usage:
    calculator = PenaltyInterestCalculator(rate_table)
    result = calculator.compute(
        tax_amount=Decimal("100000"),
        due_date=date(2024, 1, 15),
        actual_date=date(2024, 2, 20),
        tax_type=TaxType.INCOME_TAX,
        tax_year=2024,
    )
    result.total_penalty  # Decimal("11479.45")
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, assert_never

from tax_kernel.domain.rates import PenaltySchedule
from tax_kernel.domain.values import (
    ZERO,
    InterestMode,
    PenaltyKind,
    TaxType,
    quantize_money,
    require_non_negative,
)
from tax_kernel.exceptions import InvalidRequestError
from tax_kernel.logging_config import get_logger
from tax_engines.rate_table import RateTable
from tax_engines.tracer import traced_engine

logger = get_logger("engines.penalty")

DAYS_IN_YEAR = Decimal("365")
DAYS_PER_MONTH = 30
MONTHS_IN_YEAR = Decimal("12")


@dataclass(frozen=True)
class PenaltyResult:
    """
    Penalty and interest for one late obligation, or an aggregate of several.

    Guarantees:
        - ``days_late >= 0``.
        - ``total_penalty == penalty_amount + interest_amount``.
        - Aggregates carry the maximum ``days_late`` and no ``kind``.
    """

    days_late: int
    penalty_amount: Decimal
    interest_amount: Decimal
    total_penalty: Decimal
    tax_type: TaxType | None = None
    tax_amount: Decimal = ZERO
    band: str | None = None
    interest_mode: InterestMode | None = None
    schedule_version: str | None = None
    kind: PenaltyKind | None = None

    @classmethod
    def zero(
        cls,
        tax_type: TaxType | None = None,
        tax_amount: Decimal = ZERO,
        kind: PenaltyKind | None = None,
    ) -> PenaltyResult:
        nil = quantize_money(ZERO)
        return cls(
            days_late=0,
            penalty_amount=nil,
            interest_amount=nil,
            total_penalty=nil,
            tax_type=tax_type,
            tax_amount=tax_amount,
            kind=kind,
        )

    @classmethod
    def aggregate(cls, results: Iterable[PenaltyResult]) -> PenaltyResult:
        """Sum several results into one; an empty input yields zeros.

        The tax type is kept when every result shares it.
        """
        results = tuple(results)
        if not results:
            return cls.zero()
        penalty = sum((r.penalty_amount for r in results), ZERO)
        interest = sum((r.interest_amount for r in results), ZERO)
        tax_types = {r.tax_type for r in results}
        return cls(
            days_late=max(r.days_late for r in results),
            penalty_amount=penalty,
            interest_amount=interest,
            total_penalty=penalty + interest,
            tax_type=tax_types.pop() if len(tax_types) == 1 else None,
            tax_amount=sum((r.tax_amount for r in results), ZERO),
        )

    @property
    def is_late(self) -> bool:
        return self.days_late > 0


def days_between(due_date: date, actual_date: date) -> int:
    """Whole days late, floored at zero."""
    if due_date is None or actual_date is None:
        raise InvalidRequestError("date", "due_date and actual_date are required")
    return max(0, (actual_date - due_date).days)


def _interest(amount: Decimal, days_late: int, schedule: PenaltySchedule) -> Decimal:
    mode = schedule.interest_mode
    match mode:
        case InterestMode.SIMPLE:
            return amount * schedule.annual_interest_rate * Decimal(days_late) / DAYS_IN_YEAR
        case InterestMode.MONTHLY_COMPOUND:
            months = -(-days_late // DAYS_PER_MONTH)
            monthly = Decimal(1) + schedule.annual_interest_rate / MONTHS_IN_YEAR
            return amount * (monthly**months - Decimal(1))
        case _:
            assert_never(mode)


@traced_engine(
    "penalty_interest",
    "1.1",
    fingerprint_fields=("tax_amount", "due_date", "actual_date", "schedule", "kind"),
)
def compute_penalty(
    *,
    tax_amount: Decimal,
    due_date: date,
    actual_date: date,
    schedule: PenaltySchedule,
    kind: PenaltyKind = PenaltyKind.LATE_PAYMENT,
) -> PenaltyResult:
    """Penalty (and, for late payment, interest) under an already-resolved schedule."""
    amount = require_non_negative(tax_amount, "tax_amount")
    late = days_between(due_date, actual_date)
    if late == 0 or not schedule.bands_for(kind):
        return PenaltyResult.zero(schedule.tax_type, amount, kind)

    band = schedule.band_for(late, kind)
    raw_penalty = amount * band.rate
    if band.minimum_amount is not None and raw_penalty < band.minimum_amount:
        raw_penalty = band.minimum_amount

    penalty = quantize_money(raw_penalty)
    if kind is PenaltyKind.LATE_PAYMENT:
        interest = quantize_money(_interest(amount, late, schedule))
        interest_mode = schedule.interest_mode
    else:
        interest = quantize_money(ZERO)
        interest_mode = None

    logger.info(
        "penalty_computed",
        extra={
            "tax_type": schedule.tax_type.value,
            "penalty_kind": kind.value,
            "days_late": late,
            "band": band.name,
            "penalty_amount": str(penalty),
            "interest_amount": str(interest),
            "interest_mode": interest_mode.value if interest_mode else None,
        },
    )
    return PenaltyResult(
        days_late=late,
        penalty_amount=penalty,
        interest_amount=interest,
        total_penalty=penalty + interest,
        tax_type=schedule.tax_type,
        tax_amount=amount,
        band=band.name,
        interest_mode=interest_mode,
        schedule_version=schedule.version,
        kind=kind,
    )


class PenaltyInterestCalculator:
    """
    Penalty/interest calculation against a RateTable.

    Pure: resolves the schedule for (tax type, tax year) and delegates to
    ``compute_penalty``.  Safe to share across threads.
    """

    def __init__(self, rate_table: RateTable):
        self._rate_table = rate_table

    def compute(
        self,
        tax_amount: Decimal,
        due_date: date,
        actual_date: date,
        tax_type: TaxType,
        tax_year: int,
        kind: PenaltyKind = PenaltyKind.LATE_PAYMENT,
    ) -> PenaltyResult:
        schedule = self._rate_table.penalty_schedule(tax_type, tax_year)
        return compute_penalty(
            tax_amount=tax_amount,
            due_date=due_date,
            actual_date=actual_date,
            schedule=schedule,
            kind=kind,
        )

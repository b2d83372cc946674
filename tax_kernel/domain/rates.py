"""
Rates -- Versioned rule-set data: rate entries, brackets, penalty schedules.

Responsibility:
    Immutable value objects describing one Finance Act year's rules.  Each
    object validates its own structure on construction, so a malformed
    entry can never reach a calculation.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Produced by
    tax_config (YAML) and tax_services (database), consumed by tax_engines.

Invariants enforced:
    - Brackets start at 0, are contiguous (each lower bound equals the
      previous upper bound), strictly increasing, and only the last band is
      unbounded: every non-negative amount falls in exactly one band.
    - Bracket rates need not be monotonic.
    - A RateEntry holds exactly one of a flat ``rate`` or ``brackets``.
    - Each penalty band set (late payment, and late filing when present)
      starts at day 1, is contiguous in whole days and ends with an
      unbounded band.

Failure modes:
    - InvalidRateTableError listing every structural problem found.

Audit relevance:
    ``version`` identifiers travel into every TaxCalculationResult so a
    liability can be traced back to the exact rule version that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence, assert_never

from tax_kernel.domain.values import (
    ZERO,
    DutyBasis,
    InterestMode,
    PenaltyKind,
    TaxpayerCategory,
    TaxType,
    WithholdingCategory,
)
from tax_kernel.exceptions import InvalidRateTableError

RESIDENT = "resident"
NON_RESIDENT = "non_resident"


def withholding_key(category: WithholdingCategory, resident: bool) -> str:
    """Rate-table category key for a withholding payment.

    Residency is a lookup dimension of its own: legislated non-resident
    rates are not a multiple of resident rates.
    """
    return f"{category.value}:{RESIDENT if resident else NON_RESIDENT}"


@dataclass(frozen=True)
class Bracket:
    """One progressive band: ``rate`` applies to amounts in (lower, upper]."""

    lower: Decimal
    upper: Decimal | None  # None = unbounded terminal band
    rate: Decimal

    @property
    def is_unbounded(self) -> bool:
        return self.upper is None

    def label(self) -> str:
        upper = "and above" if self.upper is None else f"to {self.upper}"
        return f"{self.lower} {upper} @ {self.rate}"


def bracket_problems(brackets: Sequence[Bracket]) -> list[str]:
    """Return every structural problem in a bracket sequence (empty if valid)."""
    problems: list[str] = []
    if not brackets:
        return ["bracket table is empty"]

    if brackets[0].lower != ZERO:
        problems.append(f"first bracket must start at 0, starts at {brackets[0].lower}")

    for i, band in enumerate(brackets):
        if band.rate < ZERO:
            problems.append(f"bracket {i} has negative rate {band.rate}")
        is_last = i == len(brackets) - 1
        if band.upper is None:
            if not is_last:
                problems.append(f"bracket {i} is unbounded but is not the last band")
            continue
        if is_last:
            problems.append("last bracket must be unbounded")
        if band.upper <= band.lower:
            problems.append(
                f"bracket {i} upper bound {band.upper} must exceed lower bound {band.lower}"
            )
        if not is_last and brackets[i + 1].lower != band.upper:
            problems.append(
                f"gap or overlap between bracket {i} (upper {band.upper}) "
                f"and bracket {i + 1} (lower {brackets[i + 1].lower})"
            )
    return problems


@dataclass(frozen=True)
class RateEntry:
    """
    Rate data for one (tax type, tax year, category) key.

    Contract:
        ``category`` is the lookup dimension within the tax type: a taxpayer
        category value for income tax, GST and payroll; a
        ``withholding_key()`` for withholding; a product category for excise.
    Guarantees:
        - Exactly one of ``rate`` / ``brackets`` is set.
        - Bracket structure satisfies ``bracket_problems() == []``.
        - ``duty_basis`` is set for excise entries and only for them.
        - Turnover floors apply to income tax only; ``levy_rate`` to payroll only.
    Non-goals:
        - Does not know which taxpayer categories owe the tax type; that is
          CATEGORY_OBLIGATIONS.
    """

    tax_type: TaxType
    tax_year: int
    category: str
    version: str
    rate: Decimal | None = None
    brackets: tuple[Bracket, ...] = ()
    minimum_tax_rate: Decimal | None = None
    alternative_minimum_rate: Decimal | None = None
    levy_rate: Decimal | None = None
    duty_basis: DutyBasis | None = None
    description: str = ""

    def __post_init__(self) -> None:
        problems = self.problems()
        if problems:
            raise InvalidRateTableError(problems, source=self.key_label)

    @property
    def key(self) -> tuple[TaxType, int, str]:
        return (self.tax_type, self.tax_year, self.category)

    @property
    def key_label(self) -> str:
        return f"{self.tax_type.value}/{self.tax_year}/{self.category}"

    @property
    def is_bracketed(self) -> bool:
        return bool(self.brackets)

    def problems(self) -> list[str]:
        found: list[str] = []
        prefix = f"{self.key_label}: "
        if not self.version:
            found.append(prefix + "version identifier is required")
        if (self.rate is None) == (not self.brackets):
            found.append(prefix + "exactly one of a flat rate or brackets is required")
        if self.rate is not None and self.rate < ZERO:
            found.append(prefix + f"rate {self.rate} is negative")
        if self.brackets:
            found.extend(prefix + p for p in bracket_problems(self.brackets))

        for name in ("minimum_tax_rate", "alternative_minimum_rate", "levy_rate"):
            value = getattr(self, name)
            if value is not None and value < ZERO:
                found.append(prefix + f"{name} {value} is negative")

        if self.tax_type is TaxType.EXCISE_DUTY:
            if self.duty_basis is None:
                found.append(prefix + "excise entries require a duty basis")
            if self.rate is None:
                found.append(prefix + "excise entries require a flat rate")
        elif self.duty_basis is not None:
            found.append(prefix + "duty basis is only valid for excise entries")

        if self.tax_type is not TaxType.INCOME_TAX and (
            self.minimum_tax_rate is not None or self.alternative_minimum_rate is not None
        ):
            found.append(prefix + "turnover-based minimum tax applies to income tax only")
        if self.tax_type is not TaxType.PAYROLL_TAX and self.levy_rate is not None:
            found.append(prefix + "levy rate applies to payroll tax only")
        if self.tax_type is TaxType.PAYROLL_TAX and not self.brackets:
            found.append(prefix + "payroll entries require PAYE brackets")
        if (
            self.tax_type is TaxType.INCOME_TAX
            and self.category == TaxpayerCategory.INDIVIDUAL.value
            and not self.brackets
        ):
            found.append(prefix + "individual income tax requires progressive brackets")
        return found


@dataclass(frozen=True)
class PenaltyBand:
    """Band covering ``min_days``..``max_days`` days late."""

    name: str
    min_days: int
    max_days: int | None  # None = unbounded
    rate: Decimal
    minimum_amount: Decimal | None = None

    def contains(self, days_late: int) -> bool:
        if days_late < self.min_days:
            return False
        return self.max_days is None or days_late <= self.max_days


def band_problems(bands: Sequence[PenaltyBand], prefix: str) -> list[str]:
    """Structural problems of one band set; empty when the bands are well formed."""
    found: list[str] = []
    if not bands:
        return [prefix + "at least one penalty band is required"]
    if bands[0].min_days != 1:
        found.append(prefix + "first penalty band must start at day 1")
    for i, band in enumerate(bands):
        if band.rate < ZERO:
            found.append(prefix + f"band '{band.name}' has negative rate")
        if band.minimum_amount is not None and band.minimum_amount < ZERO:
            found.append(prefix + f"band '{band.name}' has negative minimum amount")
        is_last = i == len(bands) - 1
        if band.max_days is None:
            if not is_last:
                found.append(prefix + f"band '{band.name}' is unbounded but not last")
            continue
        if is_last:
            found.append(prefix + "last penalty band must be unbounded")
        if band.max_days < band.min_days:
            found.append(prefix + f"band '{band.name}' ends before it starts")
        if not is_last and bands[i + 1].min_days != band.max_days + 1:
            found.append(prefix + f"gap or overlap after band '{band.name}' (day {band.max_days})")
    return found


@dataclass(frozen=True)
class PenaltySchedule:
    """
    Penalty bands plus interest terms for one (tax type, tax year).

    ``bands`` price late payment; ``late_filing_bands`` price a return
    filed after its due date and may be empty, in which case late filing
    carries no penalty.  Interest accrues on late payment only.

    Guarantees:
        - Each non-empty band set covers every days-late value >= 1 exactly once.
        - ``band_for(days, kind)`` is total for days >= 1 when ``kind`` has bands.
    """

    tax_type: TaxType
    tax_year: int
    version: str
    bands: tuple[PenaltyBand, ...]
    annual_interest_rate: Decimal
    interest_mode: InterestMode = InterestMode.SIMPLE
    description: str = ""
    late_filing_bands: tuple[PenaltyBand, ...] = ()

    def __post_init__(self) -> None:
        problems = self.problems()
        if problems:
            raise InvalidRateTableError(problems, source=self.key_label)

    @property
    def key(self) -> tuple[TaxType, int]:
        return (self.tax_type, self.tax_year)

    @property
    def key_label(self) -> str:
        return f"penalty/{self.tax_type.value}/{self.tax_year}"

    def problems(self) -> list[str]:
        prefix = f"{self.key_label}: "
        found: list[str] = []
        if not self.version:
            found.append(prefix + "version identifier is required")
        if self.annual_interest_rate < ZERO:
            found.append(prefix + "annual interest rate is negative")
        found.extend(band_problems(self.bands, prefix))
        if self.late_filing_bands:
            found.extend(band_problems(self.late_filing_bands, prefix + "late filing: "))
        return found

    def bands_for(self, kind: PenaltyKind) -> tuple[PenaltyBand, ...]:
        match kind:
            case PenaltyKind.LATE_PAYMENT:
                return self.bands
            case PenaltyKind.LATE_FILING:
                return self.late_filing_bands
            case _:
                assert_never(kind)

    def band_for(self, days_late: int, kind: PenaltyKind = PenaltyKind.LATE_PAYMENT) -> PenaltyBand:
        for band in self.bands_for(kind):
            if band.contains(days_late):
                return band
        raise ValueError(f"No {kind.value} band covers {days_late} days late")


@dataclass(frozen=True)
class CategoryThreshold:
    """Lowest annual turnover at which a corporate category applies."""

    tax_year: int
    category: TaxpayerCategory
    min_turnover: Decimal

    def __post_init__(self) -> None:
        problems: list[str] = []
        if self.category is TaxpayerCategory.INDIVIDUAL:
            problems.append("turnover thresholds apply to corporate categories only")
        if self.min_turnover < ZERO:
            problems.append(f"threshold for {self.category.value} is negative")
        if problems:
            raise InvalidRateTableError(
                problems, source=f"threshold/{self.tax_year}/{self.category.value}"
            )


@dataclass(frozen=True)
class RuleSetInfo:
    """Identity of a loaded rule set, carried for audit display."""

    ruleset_id: str
    tax_year: int
    version: str
    checksum: str = ""
    source: str = ""
    notes: tuple[str, ...] = field(default_factory=tuple)

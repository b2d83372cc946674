"""
Module: tax_engines.rate_table
Responsibility:
    Immutable, versioned snapshot of Finance Act rule data: rate entries,
    penalty schedules and corporate turnover thresholds, looked up by exact
    key.

Architecture position:
    Engines -- pure, in-memory, zero I/O.  Built by tax_config (YAML) or
    tax_services.rate_source (database); consumed by every calculator.

Invariants enforced:
    - Exact-match lookup on (tax type, tax year, category).  No fallback to
      another year, no fuzzy category matching.
    - All structural validation happens in the constructor.  A RateTable
      that exists is well formed, so a calculation never discovers a
      malformed table mid-computation.
    - Immutable after construction (MappingProxyType over frozen values), so
      one snapshot can be shared by concurrent calculations.

Failure modes:
    - InvalidRateTableError at construction, listing every problem.
    - RateNotFoundError from lookups.

Usage:
    table = RateTable(entries, penalty_schedules, thresholds)
    entry = table.lookup(TaxType.INCOME_TAX, 2025, TaxpayerCategory.INDIVIDUAL)
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from types import MappingProxyType
from typing import Protocol

from tax_kernel.domain.rates import CategoryThreshold, PenaltySchedule, RateEntry, RuleSetInfo
from tax_kernel.domain.values import TaxpayerCategory, TaxType, require_non_negative
from tax_kernel.exceptions import InvalidRateTableError, InvalidRequestError, RateNotFoundError
from tax_kernel.logging_config import get_logger

logger = get_logger("engines.rate_table")

# Corporate categories from largest to smallest; thresholds must descend in this order.
_CORPORATE_ORDER = (
    TaxpayerCategory.LARGE,
    TaxpayerCategory.MEDIUM,
    TaxpayerCategory.SMALL,
    TaxpayerCategory.MICRO,
)


class RateSource(Protocol):
    """Anything that can hand the engine a read-only snapshot for some tax years."""

    def snapshot(self, tax_years: Iterable[int]) -> RateTable: ...


class RateTable:
    """
    Immutable rule-data snapshot.

    Contract:
        Constructed once per rule-set load (or per request, for database
        sources) and never mutated.
    Guarantees:
        - Every entry, schedule and threshold passed validation.
        - Keys are unique.
        - ``snapshot()`` makes a RateTable usable as a RateSource.
    """

    def __init__(
        self,
        entries: Iterable[RateEntry],
        penalty_schedules: Iterable[PenaltySchedule] = (),
        thresholds: Iterable[CategoryThreshold] = (),
        rule_sets: Iterable[RuleSetInfo] = (),
    ) -> None:
        errors: list[str] = []

        by_key: dict[tuple[TaxType, int, str], RateEntry] = {}
        for entry in entries:
            if entry.key in by_key:
                errors.append(f"duplicate rate entry {entry.key_label}")
                continue
            by_key[entry.key] = entry

        schedules: dict[tuple[TaxType, int], PenaltySchedule] = {}
        for schedule in penalty_schedules:
            if schedule.key in schedules:
                errors.append(f"duplicate penalty schedule {schedule.key_label}")
                continue
            schedules[schedule.key] = schedule

        by_year: dict[int, dict[TaxpayerCategory, CategoryThreshold]] = {}
        for threshold in thresholds:
            year_map = by_year.setdefault(threshold.tax_year, {})
            if threshold.category in year_map:
                errors.append(
                    f"duplicate threshold {threshold.tax_year}/{threshold.category.value}"
                )
                continue
            year_map[threshold.category] = threshold
        for year, year_map in sorted(by_year.items()):
            errors.extend(_threshold_problems(year, year_map))

        infos: dict[int, RuleSetInfo] = {}
        for info in rule_sets:
            if info.tax_year in infos:
                errors.append(f"more than one rule set for tax year {info.tax_year}")
                continue
            infos[info.tax_year] = info

        if errors:
            logger.error("rate_table_invalid", extra={"errors": errors})
            raise InvalidRateTableError(errors)

        self._entries = MappingProxyType(by_key)
        self._schedules = MappingProxyType(schedules)
        self._thresholds = MappingProxyType(
            {year: MappingProxyType(m) for year, m in by_year.items()}
        )
        self._rule_sets = MappingProxyType(infos)

        logger.debug(
            "rate_table_built",
            extra={
                "entry_count": len(by_key),
                "schedule_count": len(schedules),
                "tax_years": list(self.tax_years()),
            },
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def lookup(
        self, tax_type: TaxType, tax_year: int, category: str | TaxpayerCategory
    ) -> RateEntry:
        """Exact-match lookup; raises RateNotFoundError when absent."""
        key_category = category.value if isinstance(category, TaxpayerCategory) else category
        entry = self._entries.get((tax_type, tax_year, key_category))
        if entry is None:
            raise RateNotFoundError(tax_type.value, tax_year, key_category)
        return entry

    def penalty_schedule(self, tax_type: TaxType, tax_year: int) -> PenaltySchedule:
        schedule = self._schedules.get((tax_type, tax_year))
        if schedule is None:
            raise RateNotFoundError(tax_type.value, tax_year, "penalty_schedule")
        return schedule

    def category_threshold(
        self, tax_year: int, category: TaxpayerCategory
    ) -> CategoryThreshold:
        threshold = self._thresholds.get(tax_year, {}).get(category)
        if threshold is None:
            raise RateNotFoundError("category_threshold", tax_year, category.value)
        return threshold

    def classify_taxpayer(self, tax_year: int, annual_turnover: Decimal) -> TaxpayerCategory:
        """
        Corporate category for a turnover: the largest category whose
        threshold the turnover reaches.  Individuals are never classified
        by turnover.
        """
        turnover = require_non_negative(annual_turnover, "annual_turnover")
        year_map = self._thresholds.get(tax_year)
        if not year_map:
            raise RateNotFoundError("category_threshold", tax_year)
        for category in _CORPORATE_ORDER:
            threshold = year_map.get(category)
            if threshold is not None and turnover >= threshold.min_turnover:
                return category
        raise InvalidRequestError(
            "annual_turnover", f"no category threshold covers turnover {turnover}"
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def tax_years(self) -> tuple[int, ...]:
        years = {key[1] for key in self._entries}
        years.update(key[1] for key in self._schedules)
        years.update(self._thresholds)
        return tuple(sorted(years))

    def entries_for(self, tax_type: TaxType, tax_year: int) -> tuple[RateEntry, ...]:
        return tuple(
            sorted(
                (e for k, e in self._entries.items() if k[0] is tax_type and k[1] == tax_year),
                key=lambda e: e.category,
            )
        )

    def rule_set(self, tax_year: int) -> RuleSetInfo | None:
        return self._rule_sets.get(tax_year)

    def version_of(self, tax_year: int) -> str:
        """Rule-set version for ``tax_year``, else the versions carried by its entries."""
        info = self._rule_sets.get(tax_year)
        if info is not None:
            return info.version
        versions = sorted({e.version for k, e in self._entries.items() if k[1] == tax_year})
        if not versions:
            raise RateNotFoundError("rule_set", tax_year)
        return ",".join(versions)

    def entries(self) -> tuple[RateEntry, ...]:
        return tuple(self._entries.values())

    def penalty_schedules(self) -> tuple[PenaltySchedule, ...]:
        return tuple(self._schedules.values())

    def thresholds(self) -> tuple[CategoryThreshold, ...]:
        return tuple(t for m in self._thresholds.values() for t in m.values())

    def snapshot(self, tax_years: Iterable[int]) -> RateTable:
        """Restrict the table to ``tax_years``; the in-memory RateSource."""
        years = set(tax_years)
        return RateTable(
            entries=(e for e in self._entries.values() if e.tax_year in years),
            penalty_schedules=(s for s in self._schedules.values() if s.tax_year in years),
            thresholds=(t for t in self.thresholds() if t.tax_year in years),
            rule_sets=(i for y, i in self._rule_sets.items() if y in years),
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<RateTable entries={len(self._entries)} years={list(self.tax_years())}>"


def _threshold_problems(
    year: int, year_map: dict[TaxpayerCategory, CategoryThreshold]
) -> list[str]:
    problems: list[str] = []
    present = [c for c in _CORPORATE_ORDER if c in year_map]
    if present and year_map[present[-1]].min_turnover != 0:
        problems.append(
            f"thresholds for {year}: smallest category must start at turnover 0"
        )
    for larger, smaller in zip(present, present[1:]):
        if year_map[larger].min_turnover <= year_map[smaller].min_turnover:
            problems.append(
                f"thresholds for {year}: {larger.value} must exceed {smaller.value}"
            )
    return problems

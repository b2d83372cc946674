"""
Rule-set validator (``tax_config.validator``).

Responsibility
--------------
Cross-entry checks on a parsed ``RuleSet`` that no single entry can make on
its own: year consistency, obligation coverage and suspicious magnitudes.

Architecture position
---------------------
**Config layer** -- load-time validation.  Called by
``tax_config.load_rate_table`` after parsing and before a RateTable is
built.

Invariants enforced
-------------------
* Every entry, schedule and threshold belongs to the rule set's tax year.
* Every tax type that has rate entries also has a penalty schedule.
* Individual income tax is present whenever income tax is configured.

Failure modes
-------------
* Errors  -> the rule set MUST NOT be loaded.
* Warnings  -> the rule set loads; warnings are logged for review.  Typical
  warnings are a percentage typed as a whole number (``15`` for 15%) or a
  corporate category that owes a tax type with no entry for it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from tax_kernel.domain.rates import NON_RESIDENT, RESIDENT
from tax_kernel.domain.values import (
    CATEGORY_OBLIGATIONS,
    DutyBasis,
    TaxpayerCategory,
    TaxType,
    WithholdingCategory,
)
from tax_config.schema import RuleSet

_ONE = Decimal(1)

# Tax types whose entries are keyed by taxpayer category.
_CATEGORY_KEYED = (TaxType.INCOME_TAX, TaxType.GST, TaxType.PAYROLL_TAX)


@dataclass
class RuleSetValidationResult:
    """
    Result of rule-set validation.

    Contract
    --------
    * ``is_valid`` returns ``True`` only when ``errors`` is empty.
    * Warnings do not block loading but should be reviewed.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)


def validate_rule_set(rule_set: RuleSet) -> RuleSetValidationResult:
    """Run all cross-entry checks against ``rule_set``."""
    result = RuleSetValidationResult()
    _check_years(rule_set, result)
    _check_penalty_coverage(rule_set, result)
    _check_obligation_coverage(rule_set, result)
    _check_withholding_pairs(rule_set, result)
    _check_magnitudes(rule_set, result)
    return result


def _check_years(rule_set: RuleSet, result: RuleSetValidationResult) -> None:
    year = rule_set.tax_year
    for entry in rule_set.entries:
        if entry.tax_year != year:
            result.add_error(f"{entry.key_label}: belongs to {entry.tax_year}, rule set is {year}")
    for schedule in rule_set.penalty_schedules:
        if schedule.tax_year != year:
            result.add_error(f"{schedule.key_label}: belongs to {schedule.tax_year}, rule set is {year}")
    for threshold in rule_set.thresholds:
        if threshold.tax_year != year:
            result.add_error(
                f"threshold {threshold.category.value}: belongs to {threshold.tax_year}, "
                f"rule set is {year}"
            )


def _check_penalty_coverage(rule_set: RuleSet, result: RuleSetValidationResult) -> None:
    configured = {e.tax_type for e in rule_set.entries}
    scheduled = {s.tax_type for s in rule_set.penalty_schedules}
    for tax_type in TaxType:
        if tax_type in configured and tax_type not in scheduled:
            result.add_error(f"{tax_type.value}: rate entries present but no penalty schedule")


def _check_obligation_coverage(rule_set: RuleSet, result: RuleSetValidationResult) -> None:
    keys = {(e.tax_type, e.category) for e in rule_set.entries}
    configured = {e.tax_type for e in rule_set.entries}

    if TaxType.INCOME_TAX in configured and (
        (TaxType.INCOME_TAX, TaxpayerCategory.INDIVIDUAL.value) not in keys
    ):
        result.add_error("income_tax: no entry for individual taxpayers")

    for category, owed in CATEGORY_OBLIGATIONS.items():
        for tax_type in _CATEGORY_KEYED:
            if tax_type in owed and tax_type in configured and (tax_type, category.value) not in keys:
                result.add_warning(
                    f"{tax_type.value}: {category.value} taxpayers owe this tax but have no entry"
                )

    for entry in rule_set.entries:
        if entry.tax_type not in _CATEGORY_KEYED:
            continue
        try:
            category = TaxpayerCategory(entry.category)
        except ValueError:
            result.add_error(f"{entry.key_label}: unknown taxpayer category")
            continue
        if entry.tax_type not in CATEGORY_OBLIGATIONS[category]:
            result.add_warning(
                f"{entry.key_label}: {category.value} taxpayers do not owe {entry.tax_type.value}"
            )


def _check_withholding_pairs(rule_set: RuleSet, result: RuleSetValidationResult) -> None:
    seen: dict[str, set[str]] = {}
    for entry in rule_set.entries:
        if entry.tax_type is not TaxType.WITHHOLDING_TAX:
            continue
        name, _, residency = entry.category.partition(":")
        if residency not in (RESIDENT, NON_RESIDENT):
            result.add_error(
                f"{entry.key_label}: key must be '<category>:{RESIDENT}' or "
                f"'<category>:{NON_RESIDENT}'"
            )
            continue
        try:
            WithholdingCategory(name)
        except ValueError:
            result.add_error(f"{entry.key_label}: unknown withholding category '{name}'")
            continue
        seen.setdefault(name, set()).add(residency)

    for name, residencies in sorted(seen.items()):
        for missing in sorted({RESIDENT, NON_RESIDENT} - residencies):
            result.add_warning(f"withholding_tax: '{name}' has no {missing} rate")


def _check_magnitudes(rule_set: RuleSet, result: RuleSetValidationResult) -> None:
    for entry in rule_set.entries:
        if entry.duty_basis is DutyBasis.SPECIFIC:
            continue  # amount per unit, not a fraction
        if entry.rate is not None and entry.rate > _ONE:
            result.add_warning(f"{entry.key_label}: rate {entry.rate} exceeds 100%")
        for bracket in entry.brackets:
            if bracket.rate > _ONE:
                result.add_warning(f"{entry.key_label}: bracket rate {bracket.rate} exceeds 100%")
        for name in ("minimum_tax_rate", "alternative_minimum_rate", "levy_rate"):
            value = getattr(entry, name)
            if value is not None and value > _ONE:
                result.add_warning(f"{entry.key_label}: {name} {value} exceeds 100%")

    for schedule in rule_set.penalty_schedules:
        if schedule.annual_interest_rate > _ONE:
            result.add_warning(
                f"{schedule.key_label}: annual interest rate {schedule.annual_interest_rate} "
                "exceeds 100%"
            )
        for band in (*schedule.bands, *schedule.late_filing_bands):
            if band.rate > _ONE:
                result.add_warning(f"{schedule.key_label}: band '{band.name}' rate exceeds 100%")

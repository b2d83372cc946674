"""
Module: tax_engines.calculators.income_tax
Responsibility:
    Annual income tax for individuals (progressive brackets) and corporate
    taxpayers (flat rate per category), with the turnover-based minimum tax
    floor.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Taxable income is ``max(0, gross_income - deductions)``.
    - Micro enterprises are taxed at 0% whatever the rate entry says.
    - Greater-of rule: when the entry defines a minimum tax rate (and/or an
      alternative minimum rate), liability is the largest of the ordinary
      tax, ``turnover * minimum_tax_rate`` and
      ``turnover * alternative_minimum_rate``.  Ties keep the ordinary tax.
    - Credits are capped at the gross liability; net is never negative.

Failure modes:
    - InvalidAmountError for negative income, deductions, turnover or credits.
    - InvalidRequestError when a minimum tax applies but turnover is missing,
      or when the entry does not match the taxpayer category.
"""

from __future__ import annotations

from decimal import Decimal

from tax_kernel.domain.facts import IncomeTaxFacts
from tax_kernel.domain.rates import RateEntry
from tax_kernel.domain.values import (
    ZERO,
    TaxpayerCategory,
    TaxType,
    quantize_money,
    require_non_negative,
)
from tax_kernel.exceptions import InvalidRequestError
from tax_kernel.logging_config import get_logger
from tax_engines.brackets import BracketCalculator
from tax_engines.calculators._common import check_entry, percent, require_facts
from tax_engines.results import CalculationLine, TaxCalculationResult
from tax_engines.tracer import traced_engine

logger = get_logger("engines.income_tax")

_brackets = BracketCalculator()


@traced_engine("income_tax", "1.0", fingerprint_fields=("facts", "entry"))
def calculate_income_tax(*, facts: IncomeTaxFacts, entry: RateEntry) -> TaxCalculationResult:
    require_facts(facts, IncomeTaxFacts, "income_tax")
    check_entry(entry, TaxType.INCOME_TAX, facts.category.value)

    gross_income = require_non_negative(facts.gross_income, "gross_income")
    deductions = require_non_negative(facts.deductions, "deductions")
    credits_claimed = require_non_negative(facts.tax_credits, "tax_credits")
    taxable = max(gross_income - deductions, ZERO)

    lines: list[CalculationLine] = []
    notes: list[str] = []

    if facts.category is TaxpayerCategory.MICRO:
        ordinary = ZERO
        lines.append(CalculationLine("Micro enterprise rate", taxable, ZERO, ZERO))
        notes.append("micro enterprise: income tax fixed at 0%")
    elif entry.is_bracketed:
        evaluation = _brackets.evaluate(taxable, entry.brackets, field="taxable_income")
        ordinary = evaluation.unrounded_tax
        for band in evaluation.lines:
            upper = "and above" if band.upper is None else f"to {band.upper}"
            lines.append(
                CalculationLine(
                    label=f"Band {band.lower} {upper} @ {percent(band.rate)}",
                    base=band.taxable,
                    rate=band.rate,
                    amount=band.tax,
                )
            )
    else:
        ordinary = taxable * entry.rate
        lines.append(
            CalculationLine(
                f"Corporate income tax @ {percent(entry.rate)}", taxable, entry.rate, ordinary
            )
        )

    liability = ordinary
    applied_floor: str | None = None
    for label, base, rate, amount in _turnover_floors(facts, entry):
        lines.append(CalculationLine(label, base, rate, amount))
        if amount > liability:
            liability = amount
            applied_floor = label
    if applied_floor is not None:
        notes.append(f"{applied_floor} applied: exceeds ordinary tax")

    gross = quantize_money(liability)
    credits = quantize_money(min(credits_claimed, gross))
    if credits_claimed > gross:
        notes.append("tax credits capped at gross liability")

    result = TaxCalculationResult(
        tax_type=TaxType.INCOME_TAX,
        tax_year=entry.tax_year,
        category=entry.category,
        gross_liability=gross,
        credits=credits,
        net_liability=gross - credits,
        rate_versions=(entry.version,),
        lines=tuple(lines),
        notes=tuple(notes),
    )

    logger.info(
        "income_tax_calculated",
        extra={
            "category": entry.category,
            "tax_year": entry.tax_year,
            "taxable_income": str(taxable),
            "gross_liability": str(gross),
            "net_liability": str(result.net_liability),
            "minimum_tax_applied": liability != ordinary,
        },
    )
    return result


def _turnover_floors(
    facts: IncomeTaxFacts, entry: RateEntry
) -> list[tuple[str, Decimal, Decimal, Decimal]]:
    """Turnover-based floors configured on the entry, as (label, base, rate, amount)."""
    if facts.category is TaxpayerCategory.MICRO:
        return []
    configured = [
        (label, rate)
        for label, rate in (
            ("Minimum tax", entry.minimum_tax_rate),
            ("Minimum alternate tax", entry.alternative_minimum_rate),
        )
        if rate is not None
    ]
    if not configured:
        return []
    if facts.annual_turnover is None:
        raise InvalidRequestError(
            "annual_turnover",
            f"required: a turnover-based minimum tax applies to category {entry.category}",
        )
    turnover = require_non_negative(facts.annual_turnover, "annual_turnover")
    return [
        (f"{label} @ {percent(rate)} of turnover", turnover, rate, turnover * rate)
        for label, rate in configured
    ]

"""
Module: tax_engines.calculators.withholding
Responsibility:
    Withholding tax on a single payment, at the flat rate for the payment's
    withholding category and the payee's residency.

Residency is a lookup dimension (see ``withholding_key``), never a
surcharge applied to the resident rate.
"""

from __future__ import annotations

from tax_kernel.domain.facts import WithholdingFacts
from tax_kernel.domain.rates import RateEntry, withholding_key
from tax_kernel.domain.values import (
    ZERO,
    TaxType,
    WithholdingCategory,
    quantize_money,
    require_non_negative,
)
from tax_kernel.exceptions import InvalidRequestError
from tax_kernel.logging_config import get_logger
from tax_engines.calculators._common import check_entry, percent, require_facts
from tax_engines.results import CalculationLine, TaxCalculationResult
from tax_engines.tracer import traced_engine

logger = get_logger("engines.withholding")


def lookup_key(facts: WithholdingFacts) -> str:
    """Rate-table category key for a payment; validates the lookup dimensions."""
    if not isinstance(facts.category, WithholdingCategory):
        raise InvalidRequestError("withholding.category", f"unknown category {facts.category!r}")
    if not isinstance(facts.resident, bool):
        raise InvalidRequestError("withholding.resident", "residency flag must be True or False")
    return withholding_key(facts.category, facts.resident)


@traced_engine("withholding_tax", "1.0", fingerprint_fields=("facts", "entry"))
def calculate_withholding(*, facts: WithholdingFacts, entry: RateEntry) -> TaxCalculationResult:
    require_facts(facts, WithholdingFacts, "withholding")
    key = lookup_key(facts)
    check_entry(entry, TaxType.WITHHOLDING_TAX, key)

    gross_amount = require_non_negative(facts.gross_amount, "withholding.gross_amount")
    tax = gross_amount * entry.rate
    residency = "resident" if facts.resident else "non-resident"
    label = f"{facts.category.value.replace('_', ' ').capitalize()} ({residency}) @ {percent(entry.rate)}"
    if facts.payee_reference:
        label += f" [{facts.payee_reference}]"

    gross = quantize_money(tax)
    logger.debug(
        "withholding_calculated",
        extra={"withholding_key": key, "gross_amount": str(gross_amount), "tax": str(gross)},
    )
    return TaxCalculationResult(
        tax_type=TaxType.WITHHOLDING_TAX,
        tax_year=entry.tax_year,
        category=key,
        gross_liability=gross,
        credits=quantize_money(ZERO),
        net_liability=gross,
        rate_versions=(entry.version,),
        lines=(CalculationLine(label, gross_amount, entry.rate, tax),),
    )

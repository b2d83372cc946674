"""
Module: tax_engines.calculators.excise
Responsibility:
    Excise duty on one product category, by the entry's duty basis:

    - AD_VALOREM: ``quantity * unit_value * rate`` (rate is a fraction)
    - SPECIFIC:   ``quantity * rate`` (rate is an amount per unit)

Failure modes:
    - InvalidRequestError when an ad valorem entry meets facts without a
      unit value.
    - InvalidAmountError for negative quantities or unit values.
"""

from __future__ import annotations

from typing import assert_never

from tax_kernel.domain.facts import ExciseFacts
from tax_kernel.domain.rates import RateEntry
from tax_kernel.domain.values import ZERO, DutyBasis, TaxType, quantize_money, require_non_negative
from tax_kernel.exceptions import InvalidRequestError
from tax_kernel.logging_config import get_logger
from tax_engines.calculators._common import check_entry, percent, require_facts
from tax_engines.results import CalculationLine, TaxCalculationResult
from tax_engines.tracer import traced_engine

logger = get_logger("engines.excise")


@traced_engine("excise_duty", "1.0", fingerprint_fields=("facts", "entry"))
def calculate_excise(*, facts: ExciseFacts, entry: RateEntry) -> TaxCalculationResult:
    require_facts(facts, ExciseFacts, "excise")
    if not facts.product_category:
        raise InvalidRequestError("excise.product_category", "product category is required")
    check_entry(entry, TaxType.EXCISE_DUTY, facts.product_category)

    quantity = require_non_negative(facts.quantity, "excise.quantity")
    product = facts.product_code or facts.product_category

    basis = entry.duty_basis
    match basis:
        case DutyBasis.AD_VALOREM:
            if facts.unit_value is None:
                raise InvalidRequestError(
                    "excise.unit_value", f"required for ad valorem duty on {product}"
                )
            unit_value = require_non_negative(facts.unit_value, "excise.unit_value")
            base = quantity * unit_value
            duty = base * entry.rate
            label = f"Excise {product} ad valorem @ {percent(entry.rate)}"
        case DutyBasis.SPECIFIC:
            base = quantity
            duty = quantity * entry.rate
            label = f"Excise {product} specific @ {entry.rate} per unit"
        case _:
            assert_never(basis)

    gross = quantize_money(duty)
    logger.debug(
        "excise_calculated",
        extra={
            "product_category": facts.product_category,
            "duty_basis": basis.value,
            "quantity": str(quantity),
            "duty": str(gross),
        },
    )
    return TaxCalculationResult(
        tax_type=TaxType.EXCISE_DUTY,
        tax_year=entry.tax_year,
        category=entry.category,
        gross_liability=gross,
        credits=quantize_money(ZERO),
        net_liability=gross,
        rate_versions=(entry.version,),
        lines=(CalculationLine(label, base, entry.rate, duty),),
    )

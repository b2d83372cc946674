"""
Module: tax_engines.dispatch
Responsibility:
    Resolve the rate entry for a tax type and run its calculator.  This is
    the entry point callers use when they hold a RateTable rather than a
    resolved RateEntry.

Architecture position:
    Engines -- pure, zero I/O.

Invariants enforced:
    - Closed dispatch: ``calculate`` matches on the TaxType enumeration and
      ends in ``assert_never``, so adding a TaxType without a calculator is
      a type-checker error, not a silent gap.
    - Obligations are checked before any lookup: a category that does not
      owe the tax type raises UnsupportedTaxTypeError.
    - Multi-line facts (several withholding payments, several excise
      products) are resolved line by line and merged into ONE result per
      tax type.

Failure modes:
    - UnsupportedTaxTypeError, InvalidRequestError, RateNotFoundError.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import assert_never

from tax_kernel.domain.facts import (
    ExciseFacts,
    GstFacts,
    IncomeTaxFacts,
    PayrollFacts,
    WithholdingFacts,
)
from tax_kernel.domain.values import CATEGORY_OBLIGATIONS, TaxpayerCategory, TaxType
from tax_kernel.exceptions import InvalidRequestError, UnsupportedTaxTypeError
from tax_kernel.logging_config import get_logger
from tax_engines.calculators import (
    calculate_excise,
    calculate_gst,
    calculate_income_tax,
    calculate_payroll,
    calculate_withholding,
)
from tax_engines.calculators.withholding import lookup_key
from tax_engines.rate_table import RateTable
from tax_engines.results import TaxCalculationResult

logger = get_logger("engines.dispatch")

TaxFacts = (
    IncomeTaxFacts
    | GstFacts
    | WithholdingFacts
    | Sequence[WithholdingFacts]
    | PayrollFacts
    | ExciseFacts
    | Sequence[ExciseFacts]
)


def ensure_applicable(tax_type: TaxType, category: TaxpayerCategory) -> None:
    """Raise UnsupportedTaxTypeError when ``category`` does not owe ``tax_type``."""
    if not isinstance(category, TaxpayerCategory):
        raise InvalidRequestError("category", f"unknown taxpayer category {category!r}")
    if tax_type not in CATEGORY_OBLIGATIONS[category]:
        raise UnsupportedTaxTypeError(tax_type.value, category.value)


def calculate(
    tax_type: TaxType,
    facts: TaxFacts,
    rate_table: RateTable,
    tax_year: int,
    category: TaxpayerCategory,
) -> TaxCalculationResult:
    """Calculate one tax type for a taxpayer of ``category`` in ``tax_year``."""
    ensure_applicable(tax_type, category)
    if facts is None:
        raise InvalidRequestError(tax_type.value, "facts are required")

    match tax_type:
        case TaxType.INCOME_TAX:
            _check_category(facts, IncomeTaxFacts, category, "income_tax")
            entry = rate_table.lookup(tax_type, tax_year, facts.category)
            return calculate_income_tax(facts=facts, entry=entry)
        case TaxType.GST:
            _check_category(facts, GstFacts, category, "gst")
            entry = rate_table.lookup(tax_type, tax_year, facts.category)
            return calculate_gst(facts=facts, entry=entry)
        case TaxType.WITHHOLDING_TAX:
            payments = _as_lines(facts, WithholdingFacts, "withholding")
            parts = [
                calculate_withholding(
                    facts=payment,
                    entry=rate_table.lookup(tax_type, tax_year, lookup_key(payment)),
                )
                for payment in payments
            ]
            return TaxCalculationResult.combine(tax_type, tax_year, category.value, parts)
        case TaxType.PAYROLL_TAX:
            _check_category(facts, PayrollFacts, category, "payroll")
            entry = rate_table.lookup(tax_type, tax_year, facts.category)
            return calculate_payroll(facts=facts, entry=entry)
        case TaxType.EXCISE_DUTY:
            products = _as_lines(facts, ExciseFacts, "excise")
            parts = [
                calculate_excise(
                    facts=product,
                    entry=rate_table.lookup(tax_type, tax_year, product.product_category),
                )
                for product in products
            ]
            return TaxCalculationResult.combine(tax_type, tax_year, category.value, parts)
        case _:
            assert_never(tax_type)


def _check_category(facts, expected: type, category: TaxpayerCategory, field: str) -> None:
    if not isinstance(facts, expected):
        raise InvalidRequestError(
            field, f"expected {expected.__name__}, got {type(facts).__name__}"
        )
    if facts.category is not category:
        raise InvalidRequestError(
            f"{field}.category",
            f"facts are for {facts.category.value}, taxpayer is {category.value}",
        )


def _as_lines(facts, expected: type, field: str) -> tuple:
    if isinstance(facts, expected):
        lines = (facts,)
    elif isinstance(facts, (list, tuple)):
        lines = tuple(facts)
    else:
        raise InvalidRequestError(
            field, f"expected {expected.__name__} lines, got {type(facts).__name__}"
        )
    if not lines:
        raise InvalidRequestError(field, "at least one line is required")
    for line in lines:
        if not isinstance(line, expected):
            raise InvalidRequestError(
                field, f"expected {expected.__name__}, got {type(line).__name__}"
            )
    return lines

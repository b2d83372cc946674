"""Shared guards for the tax-type calculators."""

from __future__ import annotations

from tax_kernel.domain.rates import RateEntry
from tax_kernel.domain.values import TaxType
from tax_kernel.exceptions import InvalidRequestError


def check_entry(entry: RateEntry, tax_type: TaxType, category: str) -> None:
    """Reject a rate entry resolved for a different tax type or category."""
    if not isinstance(entry, RateEntry):
        raise InvalidRequestError("entry", f"expected RateEntry, got {type(entry).__name__}")
    if entry.tax_type is not tax_type:
        raise InvalidRequestError(
            "entry", f"rate entry is for {entry.tax_type.value}, not {tax_type.value}"
        )
    if entry.category != category:
        raise InvalidRequestError(
            "entry", f"rate entry category '{entry.category}' does not match '{category}'"
        )


def require_facts(facts: object, expected: type, field: str) -> None:
    if facts is None:
        raise InvalidRequestError(field, "facts are required")
    if not isinstance(facts, expected):
        raise InvalidRequestError(
            field, f"expected {expected.__name__}, got {type(facts).__name__}"
        )


def percent(rate) -> str:
    """Render a fractional rate for labels: Decimal('0.15') -> '15%'."""
    return f"{(rate * 100).normalize():f}%"

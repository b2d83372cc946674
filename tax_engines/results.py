"""
Module: tax_engines.results
Responsibility:
    Output value objects shared by every tax-type calculator, plus the
    JSON-safe serialisation helper used by assessment output.

Architecture position:
    Engines -- pure value objects, zero I/O.

Invariants enforced:
    - ``net_liability == gross_liability - credits`` for every result.
    - Monetary totals are rounded half-even to 2 places; breakdown lines
      keep the unrounded values that produced them.
    - ``rate_versions`` is sorted and de-duplicated so that merged results
      are independent of line order.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Sequence

from tax_kernel.domain.values import ZERO, TaxType, quantize_money


@dataclass(frozen=True)
class CalculationLine:
    """One explainable step of a calculation: ``base * rate = amount``."""

    label: str
    base: Decimal
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class TaxCalculationResult:
    """
    Output of a single tax-type calculation.

    Contract:
        Produced only by the calculators in tax_engines; immutable.
    Guarantees:
        - ``net_liability == gross_liability - credits``.
        - GST results may carry a negative net liability (refund position);
          every other tax type has a non-negative net liability.
        - ``rate_versions`` names every RateEntry version consulted.
    """

    tax_type: TaxType
    tax_year: int
    category: str
    gross_liability: Decimal
    credits: Decimal
    net_liability: Decimal
    rate_versions: tuple[str, ...]
    lines: tuple[CalculationLine, ...] = ()
    notes: tuple[str, ...] = ()

    @property
    def is_refund(self) -> bool:
        return self.net_liability < ZERO

    @classmethod
    def combine(
        cls,
        tax_type: TaxType,
        tax_year: int,
        category: str,
        parts: Sequence[TaxCalculationResult],
    ) -> TaxCalculationResult:
        """Merge several per-line results (withholding payments, excise products)."""
        gross = sum((p.gross_liability for p in parts), ZERO)
        credits = sum((p.credits for p in parts), ZERO)
        return cls(
            tax_type=tax_type,
            tax_year=tax_year,
            category=category,
            gross_liability=quantize_money(gross),
            credits=quantize_money(credits),
            net_liability=quantize_money(gross - credits),
            rate_versions=tuple(sorted({v for p in parts for v in p.rate_versions})),
            lines=tuple(line for p in parts for line in p.lines),
            notes=tuple(note for p in parts for note in p.notes),
        )

    def to_dict(self) -> dict[str, Any]:
        return to_jsonable(self)


def to_jsonable(value: Any) -> Any:
    """Render dataclasses, Decimals, dates and enums as plain JSON types.

    Decimals become strings so no precision is lost on the wire.
    """
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(to_jsonable(k)): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    raise TypeError(f"Cannot serialise {type(value).__name__}")

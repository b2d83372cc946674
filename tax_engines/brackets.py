"""
Module: tax_engines.brackets
Responsibility:
    Generic progressive-bracket evaluator shared by individual income tax
    and PAYE.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic; each band's contribution is kept unrounded.
    - Banker's rounding (ROUND_HALF_EVEN) is applied once, to the final
      total, never per band.
    - Marginal semantics: the rate of a band applies only to the part of
      the amount that falls inside that band.

Failure modes:
    - InvalidAmountError for negative amounts.

Audit relevance:
    The per-band breakdown is what a taxpayer sees on an assessment notice
    ("600,000 at 15% = 90,000"), so it is always returned alongside the total.

Usage:
    from tax_engines.brackets import BracketCalculator

    evaluation = BracketCalculator().evaluate(Decimal("1500000"), entry.brackets)
    evaluation.tax          # Decimal("150000.00")
    evaluation.lines[1]     # BracketLine(lower=600000, upper=1200000, ...)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from tax_kernel.domain.rates import Bracket
from tax_kernel.domain.values import ZERO, quantize_money, require_non_negative


@dataclass(frozen=True)
class BracketLine:
    """Contribution of one band: ``taxable`` amount inside it and its unrounded tax."""

    lower: Decimal
    upper: Decimal | None
    rate: Decimal
    taxable: Decimal
    tax: Decimal


@dataclass(frozen=True)
class BracketEvaluation:
    """
    Result of evaluating an amount against a bracket table.

    Guarantees:
        - ``tax == quantize_money(unrounded_tax)``.
        - ``unrounded_tax == sum(line.tax for line in lines)``.
        - ``sum(line.taxable) == amount``.
    """

    amount: Decimal
    tax: Decimal
    unrounded_tax: Decimal
    lines: tuple[BracketLine, ...]

    @property
    def marginal_rate(self) -> Decimal:
        """Rate of the highest band the amount reaches."""
        return self.lines[-1].rate if self.lines else ZERO


class BracketCalculator:
    """
    Evaluate amounts against progressive brackets.

    Stateless; brackets are passed per call and are assumed to have passed
    load-time validation (contiguous from 0, last band unbounded).
    """

    def evaluate(
        self,
        amount: Decimal,
        brackets: Sequence[Bracket],
        field: str = "amount",
    ) -> BracketEvaluation:
        amount = require_non_negative(amount, field)

        lines: list[BracketLine] = []
        total = ZERO
        for band in brackets:
            ceiling = amount if band.upper is None else min(amount, band.upper)
            taxable = max(ceiling - band.lower, ZERO)
            contribution = band.rate * taxable
            total += contribution
            lines.append(
                BracketLine(
                    lower=band.lower,
                    upper=band.upper,
                    rate=band.rate,
                    taxable=taxable,
                    tax=contribution,
                )
            )
            if band.upper is None or amount <= band.upper:
                break

        return BracketEvaluation(
            amount=amount,
            tax=quantize_money(total),
            unrounded_tax=total,
            lines=tuple(lines),
        )


_DEFAULT = BracketCalculator()


def evaluate_brackets(amount: Decimal, brackets: Sequence[Bracket]) -> BracketEvaluation:
    """Module-level shortcut for ``BracketCalculator().evaluate``."""
    return _DEFAULT.evaluate(amount, brackets)

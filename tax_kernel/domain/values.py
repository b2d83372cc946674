"""
Values -- Enumerations and decimal helpers shared by every tax calculation.

Responsibility:
    Defines the closed vocabularies of the engine (TaxType, TaxpayerCategory,
    WithholdingCategory, DutyBasis, InterestMode), the category obligation
    map, and the Decimal coercion / rounding helpers used for all monetary
    arithmetic.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Monetary arithmetic is Decimal-only. ``to_decimal`` rejects floats so
      binary floating point never enters a calculation.
    - Rounding is banker's rounding (ROUND_HALF_EVEN) to 2 places and is
      applied by callers on final totals only.
    - TaxType declaration order is THE fixed order for results, penalties and
      compliance issues in an assessment.

Failure modes:
    - InvalidRequestError for values that cannot be coerced to Decimal.
    - InvalidAmountError for negative amounts passed to ``require_non_negative``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any

from tax_kernel.exceptions import InvalidAmountError, InvalidRequestError

ZERO = Decimal("0")
MONEY_QUANTUM = Decimal("0.01")


class TaxType(str, Enum):
    """Tax types handled by the engine, in canonical assessment order."""

    INCOME_TAX = "income_tax"
    GST = "gst"
    WITHHOLDING_TAX = "withholding_tax"
    PAYROLL_TAX = "payroll_tax"
    EXCISE_DUTY = "excise_duty"

    @property
    def order(self) -> int:
        return _TAX_TYPE_ORDER[self]


_TAX_TYPE_ORDER = {t: i for i, t in enumerate(TaxType)}


class TaxpayerCategory(str, Enum):
    """Taxpayer classification driving obligations and flat rates."""

    INDIVIDUAL = "individual"
    LARGE = "large"
    MEDIUM = "medium"
    SMALL = "small"
    MICRO = "micro"

    @property
    def is_corporate(self) -> bool:
        return self is not TaxpayerCategory.INDIVIDUAL


class WithholdingCategory(str, Enum):
    """Payment kinds subject to withholding at source."""

    DIVIDENDS = "dividends"
    MANAGEMENT_FEES = "management_fees"
    PROFESSIONAL_FEES = "professional_fees"
    RENT = "rent"
    COMMISSIONS = "commissions"
    ROYALTIES = "royalties"
    INTEREST = "interest"
    LOTTERY_WINNINGS = "lottery_winnings"


class DutyBasis(str, Enum):
    """How an excise rate is applied."""

    AD_VALOREM = "ad_valorem"  # rate * quantity * unit value
    SPECIFIC = "specific"  # amount per unit of quantity


class InterestMode(str, Enum):
    """Interest accrual mode of a penalty schedule."""

    SIMPLE = "simple"  # annual rate prorated by days/365
    MONTHLY_COMPOUND = "monthly_compound"  # (1 + r/12)^months - 1


class PenaltyKind(str, Enum):
    """What a penalty is charged for; each kind has its own bands."""

    LATE_PAYMENT = "late_payment"  # accrues interest
    LATE_FILING = "late_filing"  # penalty only


_ALL_TAX_TYPES = frozenset(TaxType)

# Which tax types each category owes. Small enterprises sit below the GST
# registration threshold; micro enterprises are exempt from everything.
CATEGORY_OBLIGATIONS: MappingProxyType[TaxpayerCategory, frozenset[TaxType]] = (
    MappingProxyType({
        TaxpayerCategory.INDIVIDUAL: frozenset({TaxType.INCOME_TAX}),
        TaxpayerCategory.LARGE: _ALL_TAX_TYPES,
        TaxpayerCategory.MEDIUM: _ALL_TAX_TYPES,
        TaxpayerCategory.SMALL: _ALL_TAX_TYPES - {TaxType.GST},
        TaxpayerCategory.MICRO: frozenset(),
    })
)


def applicable_tax_types(category: TaxpayerCategory) -> tuple[TaxType, ...]:
    """Tax types owed by ``category``, in canonical order."""
    owed = CATEGORY_OBLIGATIONS[category]
    return tuple(t for t in TaxType if t in owed)


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """Coerce ``value`` to Decimal without passing through binary float."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise InvalidRequestError(field, "boolean is not a numeric amount")
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise InvalidRequestError(field, f"not a decimal value: {value!r}") from exc
    elif isinstance(value, float):
        raise InvalidRequestError(field, "float amounts are not accepted; use Decimal or str")
    else:
        raise InvalidRequestError(field, f"unsupported numeric type {type(value).__name__}")
    if not result.is_finite():
        raise InvalidRequestError(field, f"not a finite value: {value!r}")
    return result


def require_non_negative(value: Any, field: str) -> Decimal:
    """Coerce to Decimal and reject negative amounts."""
    amount = to_decimal(value, field)
    if amount < ZERO:
        raise InvalidAmountError(field, amount)
    return amount


def quantize_money(amount: Decimal) -> Decimal:
    """Round a final total to 2 places with banker's rounding."""
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_EVEN)

"""
Facts -- Raw taxpayer inputs consumed by the tax-type calculators.

Facts are plain frozen records.  They are deliberately NOT validated on
construction: each calculator validates the facts it consumes and raises
InvalidRequestError, so that inside a comprehensive assessment a bad fact
for one tax type becomes a partial failure instead of aborting the whole
request.  Nothing here carries a default that changes a computed outcome;
optional fields default to zero only where zero is the legal meaning
(no deductions, no input GST).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal

from tax_kernel.domain.values import (
    ZERO,
    TaxpayerCategory,
    TaxType,
    WithholdingCategory,
    require_non_negative,
)
from tax_kernel.exceptions import InvalidRequestError


@dataclass(frozen=True)
class IncomeTaxFacts:
    """Annual income facts for one taxpayer."""

    category: TaxpayerCategory
    gross_income: Decimal
    deductions: Decimal = ZERO
    annual_turnover: Decimal | None = None  # required when a minimum tax applies
    tax_credits: Decimal = ZERO  # e.g. tax already withheld at source


@dataclass(frozen=True)
class GstFacts:
    """GST return facts for the period being assessed."""

    category: TaxpayerCategory
    taxable_supplies: Decimal
    input_gst: Decimal = ZERO
    zero_rated_supplies: Decimal = ZERO  # exports
    exempt_supplies: Decimal = ZERO
    reverse_charge_base: Decimal = ZERO  # imported services


@dataclass(frozen=True)
class WithholdingFacts:
    """A single payment subject to withholding at source."""

    category: WithholdingCategory
    gross_amount: Decimal
    resident: bool
    payee_reference: str | None = None


@dataclass(frozen=True)
class EmployeePay:
    """Annual pay of one employee."""

    employee_id: str
    gross_salary: Decimal
    allowances: Decimal = ZERO  # tax-exempt allowances reduce the PAYE base


@dataclass(frozen=True)
class PayrollFacts:
    """Employer payroll for the year."""

    category: TaxpayerCategory
    employees: tuple[EmployeePay, ...]


@dataclass(frozen=True)
class ExciseFacts:
    """Quantity of one excisable product category."""

    product_category: str
    quantity: Decimal
    unit_value: Decimal | None = None  # required for ad valorem duty
    product_code: str | None = None


@dataclass(frozen=True)
class FilingRecord:
    """Filing and payment status of one tax type for the year."""

    due_date: date
    filed_date: date | None = None
    paid_date: date | None = None
    amount_paid: Decimal = ZERO

    def validated(self) -> FilingRecord:
        """Return a copy with checked dates and a Decimal ``amount_paid``.

        Raises InvalidRequestError (InvalidAmountError for a negative
        amount) naming the offending field.
        """
        if not _is_calendar_date(self.due_date):
            raise InvalidRequestError("due_date", "a due date is required")
        for name in ("filed_date", "paid_date"):
            value = getattr(self, name)
            if value is not None and not _is_calendar_date(value):
                raise InvalidRequestError(name, f"must be a date, got {value!r}")
        return replace(self, amount_paid=require_non_negative(self.amount_paid, "amount_paid"))


def _is_calendar_date(value: object) -> bool:
    return isinstance(value, date) and not isinstance(value, datetime)


@dataclass(frozen=True)
class AssessmentFacts:
    """
    Everything known about one client for one tax year.

    ``category`` is required and explicit: the engine never infers or
    defaults a taxpayer category.  Per-type facts left as ``None`` (or
    empty) mean "nothing to calculate" for that tax type.
    """

    category: TaxpayerCategory
    income_tax: IncomeTaxFacts | None = None
    gst: GstFacts | None = None
    withholding: tuple[WithholdingFacts, ...] = ()
    payroll: PayrollFacts | None = None
    excise: tuple[ExciseFacts, ...] = ()
    filings: dict[TaxType, FilingRecord] = field(default_factory=dict)

    def facts_for(self, tax_type: TaxType) -> object | None:
        """Facts supplied for ``tax_type``; ``None`` when nothing was supplied."""
        match tax_type:
            case TaxType.INCOME_TAX:
                return self.income_tax
            case TaxType.GST:
                return self.gst
            case TaxType.WITHHOLDING_TAX:
                return self.withholding or None
            case TaxType.PAYROLL_TAX:
                return self.payroll
            case TaxType.EXCISE_DUTY:
                return self.excise or None

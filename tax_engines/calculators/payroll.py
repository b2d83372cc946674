"""
Module: tax_engines.calculators.payroll
Responsibility:
    Employer payroll tax: PAYE per employee plus the skills-development
    levy on total payroll.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - PAYE base per employee is ``max(0, gross_salary - allowances)``:
      allowances reduce the base, never the computed tax.
    - The levy is ``levy_rate * sum(gross_salary)`` computed once per
      employer, not per employee.
    - PAYE and levy are accumulated unrounded and rounded once, at the
      final total.

Failure modes:
    - InvalidRequestError for an empty or duplicated employee list.
    - InvalidAmountError for negative salaries or allowances.
"""

from __future__ import annotations

from tax_kernel.domain.facts import PayrollFacts
from tax_kernel.domain.rates import RateEntry
from tax_kernel.domain.values import ZERO, TaxType, quantize_money, require_non_negative
from tax_kernel.exceptions import InvalidRequestError
from tax_kernel.logging_config import get_logger
from tax_engines.brackets import BracketCalculator
from tax_engines.calculators._common import check_entry, percent, require_facts
from tax_engines.results import CalculationLine, TaxCalculationResult
from tax_engines.tracer import traced_engine

logger = get_logger("engines.payroll")

_brackets = BracketCalculator()


@traced_engine("payroll_tax", "1.0", fingerprint_fields=("facts", "entry"))
def calculate_payroll(*, facts: PayrollFacts, entry: RateEntry) -> TaxCalculationResult:
    require_facts(facts, PayrollFacts, "payroll")
    check_entry(entry, TaxType.PAYROLL_TAX, facts.category.value)

    if not facts.employees:
        raise InvalidRequestError("payroll.employees", "at least one employee is required")
    seen: set[str] = set()
    for employee in facts.employees:
        if not employee.employee_id:
            raise InvalidRequestError("payroll.employees", "employee_id is required")
        if employee.employee_id in seen:
            raise InvalidRequestError(
                "payroll.employees", f"duplicate employee_id {employee.employee_id}"
            )
        seen.add(employee.employee_id)

    lines: list[CalculationLine] = []
    paye_total = ZERO
    total_gross = ZERO
    for employee in facts.employees:
        field = f"payroll.employees[{employee.employee_id}]"
        gross_salary = require_non_negative(employee.gross_salary, f"{field}.gross_salary")
        allowances = require_non_negative(employee.allowances, f"{field}.allowances")
        base = max(gross_salary - allowances, ZERO)

        evaluation = _brackets.evaluate(base, entry.brackets, field=f"{field}.taxable_pay")
        paye_total += evaluation.unrounded_tax
        total_gross += gross_salary
        lines.append(
            CalculationLine(
                label=f"PAYE {employee.employee_id}",
                base=base,
                rate=evaluation.marginal_rate,
                amount=evaluation.unrounded_tax,
            )
        )

    notes: list[str] = []
    if entry.levy_rate is None:
        levy = ZERO
        notes.append("no skills-development levy legislated for this year")
    else:
        levy = total_gross * entry.levy_rate
        lines.append(
            CalculationLine(
                f"Skills development levy @ {percent(entry.levy_rate)} of total payroll",
                total_gross,
                entry.levy_rate,
                levy,
            )
        )

    gross = quantize_money(paye_total + levy)

    logger.info(
        "payroll_tax_calculated",
        extra={
            "category": entry.category,
            "tax_year": entry.tax_year,
            "employee_count": len(facts.employees),
            "total_payroll": str(total_gross),
            "paye": str(quantize_money(paye_total)),
            "levy": str(quantize_money(levy)),
        },
    )

    return TaxCalculationResult(
        tax_type=TaxType.PAYROLL_TAX,
        tax_year=entry.tax_year,
        category=entry.category,
        gross_liability=gross,
        credits=quantize_money(ZERO),
        net_liability=gross,
        rate_versions=(entry.version,),
        lines=tuple(lines),
        notes=tuple(notes),
    )

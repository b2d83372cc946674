"""
Tax-type calculators.

One pure function per tax type, each ``(facts, RateEntry) -> TaxCalculationResult``.
They are dispatched by TaxType in ``tax_engines.dispatch``.
"""

from tax_engines.calculators.excise import calculate_excise
from tax_engines.calculators.gst import calculate_gst
from tax_engines.calculators.income_tax import calculate_income_tax
from tax_engines.calculators.payroll import calculate_payroll
from tax_engines.calculators.withholding import calculate_withholding

__all__ = [
    "calculate_excise",
    "calculate_gst",
    "calculate_income_tax",
    "calculate_payroll",
    "calculate_withholding",
]

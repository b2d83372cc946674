"""
Pure domain layer.

Immutable value objects and enumerations with NO dependencies on the ORM,
the database, the clock (except the injectable Clock itself) or I/O.
"""

from tax_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from tax_kernel.domain.facts import (
    AssessmentFacts,
    EmployeePay,
    ExciseFacts,
    FilingRecord,
    GstFacts,
    IncomeTaxFacts,
    PayrollFacts,
    WithholdingFacts,
)
from tax_kernel.domain.rates import (
    Bracket,
    CategoryThreshold,
    PenaltyBand,
    PenaltySchedule,
    RateEntry,
    RuleSetInfo,
    bracket_problems,
    withholding_key,
)
from tax_kernel.domain.values import (
    CATEGORY_OBLIGATIONS,
    DutyBasis,
    InterestMode,
    PenaltyKind,
    TaxpayerCategory,
    TaxType,
    WithholdingCategory,
    applicable_tax_types,
    quantize_money,
    require_non_negative,
    to_decimal,
)

__all__ = [
    "AssessmentFacts",
    "Bracket",
    "CATEGORY_OBLIGATIONS",
    "CategoryThreshold",
    "Clock",
    "DeterministicClock",
    "DutyBasis",
    "EmployeePay",
    "ExciseFacts",
    "FilingRecord",
    "GstFacts",
    "IncomeTaxFacts",
    "InterestMode",
    "PayrollFacts",
    "PenaltyBand",
    "PenaltyKind",
    "PenaltySchedule",
    "RateEntry",
    "RuleSetInfo",
    "SystemClock",
    "TaxType",
    "TaxpayerCategory",
    "WithholdingCategory",
    "WithholdingFacts",
    "applicable_tax_types",
    "bracket_problems",
    "quantize_money",
    "require_non_negative",
    "to_decimal",
    "withholding_key",
]

"""
Tax Engines - Pure calculation layer of the tax calculation engine.

All engines are pure functions: no I/O, no database, no clock.  Rates come
in through an immutable RateTable snapshot; every monetary value is a
Decimal and totals are rounded half-even to 2 places.

Engines:
    brackets     Progressive bracket evaluation with per-band breakdown
    calculators  Income tax, GST, withholding tax, payroll (PAYE + levy), excise duty
    dispatch     Closed TaxType dispatch from a RateTable to a calculator
    penalty      Late-payment penalty bands and simple/compounded interest
    compliance   Explainable 0-100 compliance score with graded issues
    assessment   Comprehensive per-client, per-year assessment

Usage:
    from tax_engines import ComprehensiveAssessmentEngine
    from tax_config import load_rate_table

    engine = ComprehensiveAssessmentEngine(load_rate_table())
    assessment = engine.assess("client-42", 2025, facts, as_of=date(2026, 3, 1))
"""

from tax_engines.assessment import (
    ComprehensiveAssessment,
    ComprehensiveAssessmentEngine,
    PartialCalculationFailure,
)
from tax_engines.brackets import BracketCalculator, BracketEvaluation, BracketLine, evaluate_brackets
from tax_engines.calculators import (
    calculate_excise,
    calculate_gst,
    calculate_income_tax,
    calculate_payroll,
    calculate_withholding,
)
from tax_engines.compliance import (
    ComplianceGrade,
    ComplianceIssue,
    CompliancePolicy,
    IssueType,
    score_compliance,
)
from tax_engines.dispatch import calculate, ensure_applicable
from tax_engines.penalty import PenaltyInterestCalculator, PenaltyResult, compute_penalty
from tax_engines.rate_table import RateSource, RateTable
from tax_engines.results import CalculationLine, TaxCalculationResult
from tax_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "BracketCalculator",
    "BracketEvaluation",
    "BracketLine",
    "CalculationLine",
    "ComplianceGrade",
    "ComplianceIssue",
    "CompliancePolicy",
    "ComprehensiveAssessment",
    "ComprehensiveAssessmentEngine",
    "IssueType",
    "PartialCalculationFailure",
    "PenaltyInterestCalculator",
    "PenaltyResult",
    "RateSource",
    "RateTable",
    "TaxCalculationResult",
    "calculate",
    "calculate_excise",
    "calculate_gst",
    "calculate_income_tax",
    "calculate_payroll",
    "calculate_withholding",
    "compute_input_fingerprint",
    "compute_penalty",
    "ensure_applicable",
    "evaluate_brackets",
    "score_compliance",
    "traced_engine",
]

"""
Module: tax_engines.compliance
Responsibility:
    Explainable 0-100 compliance score from filing and payment timeliness,
    outstanding liabilities and outstanding penalties.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Score starts at 100, loses a fixed number of points per issue and is
      floored at 0.
    - Every deduction is a ComplianceIssue, so
      ``score == max(0, 100 - sum(points_deducted))`` always holds.
    - Issues are ordered by TaxType order, then by IssueType order, never
      by evaluation or completion order.

Grades:
    A >= 90, B >= 80, C >= 70, D >= 60, otherwise F.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Sequence

from tax_kernel.domain.facts import FilingRecord
from tax_kernel.domain.values import ZERO, TaxType, require_non_negative
from tax_kernel.logging_config import get_logger
from tax_engines.penalty import PenaltyResult

logger = get_logger("engines.compliance")

MAX_SCORE = 100


class IssueType(str, Enum):
    """Kinds of compliance deduction, in reporting order."""

    MISSING_FILING = "missing_filing"
    LATE_FILING = "late_filing"
    UNPAID_LIABILITY = "unpaid_liability"
    OUTSTANDING_PENALTY = "outstanding_penalty"

    @property
    def order(self) -> int:
        return _ISSUE_ORDER[self]


_ISSUE_ORDER = {t: i for i, t in enumerate(IssueType)}


@dataclass(frozen=True)
class CompliancePolicy:
    """Deduction weights and the unpaid-liability materiality threshold."""

    missing_filing_points: int = 20
    late_filing_points: int = 10
    unpaid_liability_points: int = 15
    outstanding_penalty_points: int = 5
    materiality_threshold: Decimal = ZERO  # unpaid amounts at or below this are ignored

    def __post_init__(self) -> None:
        for name in (
            "missing_filing_points",
            "late_filing_points",
            "unpaid_liability_points",
            "outstanding_penalty_points",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        object.__setattr__(
            self,
            "materiality_threshold",
            require_non_negative(self.materiality_threshold, "materiality_threshold"),
        )

    def points_for(self, issue_type: IssueType) -> int:
        return {
            IssueType.MISSING_FILING: self.missing_filing_points,
            IssueType.LATE_FILING: self.late_filing_points,
            IssueType.UNPAID_LIABILITY: self.unpaid_liability_points,
            IssueType.OUTSTANDING_PENALTY: self.outstanding_penalty_points,
        }[issue_type]


DEFAULT_POLICY = CompliancePolicy()


class ComplianceGrade(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"

    @property
    def description(self) -> str:
        return _GRADE_DESCRIPTIONS[self]


_GRADE_DESCRIPTIONS = {
    ComplianceGrade.A: "Excellent tax compliance",
    ComplianceGrade.B: "Good tax compliance",
    ComplianceGrade.C: "Satisfactory tax compliance",
    ComplianceGrade.D: "Poor tax compliance",
    ComplianceGrade.F: "Very poor tax compliance",
}


def grade_for(score: int) -> ComplianceGrade:
    if score >= 90:
        return ComplianceGrade.A
    if score >= 80:
        return ComplianceGrade.B
    if score >= 70:
        return ComplianceGrade.C
    if score >= 60:
        return ComplianceGrade.D
    return ComplianceGrade.F


@dataclass(frozen=True)
class ComplianceIssue:
    """One explained deduction from the compliance score."""

    issue_type: IssueType
    tax_type: TaxType
    description: str
    points_deducted: int


@dataclass(frozen=True)
class ComplianceObservation:
    """What the assessment knows about one tax type, as input to scoring."""

    tax_type: TaxType
    filing: FilingRecord | None
    net_liability: Decimal | None = None
    penalty: PenaltyResult | None = None


@dataclass(frozen=True)
class ComplianceReport:
    score: int
    grade: ComplianceGrade
    grade_description: str
    issues: tuple[ComplianceIssue, ...]
    positive_factors: tuple[str, ...]


def _issues_for(
    observation: ComplianceObservation, as_of: date, policy: CompliancePolicy
) -> list[ComplianceIssue]:
    tax = observation.tax_type
    filing = observation.filing
    found: list[tuple[IssueType, str]] = []

    if filing is not None:
        if filing.filed_date is None:
            if filing.due_date < as_of:
                found.append(
                    (IssueType.MISSING_FILING, f"{tax.value} return due {filing.due_date} not filed")
                )
        elif filing.filed_date > filing.due_date:
            days = (filing.filed_date - filing.due_date).days
            found.append(
                (IssueType.LATE_FILING, f"{tax.value} return filed {days} day(s) after {filing.due_date}")
            )

        net = observation.net_liability
        if net is not None and net > ZERO and filing.due_date < as_of:
            outstanding = net - filing.amount_paid
            if outstanding > policy.materiality_threshold:
                found.append(
                    (IssueType.UNPAID_LIABILITY, f"{tax.value} liability of {outstanding} unpaid")
                )

    penalty = observation.penalty
    if penalty is not None and penalty.total_penalty > ZERO:
        found.append(
            (
                IssueType.OUTSTANDING_PENALTY,
                f"{tax.value} penalty and interest of {penalty.total_penalty} outstanding",
            )
        )

    return [
        ComplianceIssue(issue_type, tax, description, policy.points_for(issue_type))
        for issue_type, description in found
    ]


def score_compliance(
    observations: Sequence[ComplianceObservation],
    as_of: date,
    policy: CompliancePolicy = DEFAULT_POLICY,
) -> ComplianceReport:
    """Score a set of per-tax-type observations as of a date.

    Raises InvalidRequestError when a filing record is malformed; the
    assessment engine screens filings first, so this only reaches direct
    callers.
    """
    issues: list[ComplianceIssue] = []
    positives: list[str] = []
    for observation in sorted(observations, key=lambda o: o.tax_type.order):
        if observation.filing is not None:
            observation = replace(observation, filing=observation.filing.validated())
        found = _issues_for(observation, as_of, policy)
        issues.extend(found)
        if not found and observation.filing is not None:
            positives.append(f"{observation.tax_type.value}: filing and payment up to date")

    issues.sort(key=lambda i: (i.tax_type.order, i.issue_type.order))
    score = max(0, MAX_SCORE - sum(i.points_deducted for i in issues))
    grade = grade_for(score)

    logger.info(
        "compliance_scored",
        extra={
            "score": score,
            "grade": grade.value,
            "issue_count": len(issues),
        },
    )
    return ComplianceReport(
        score=score,
        grade=grade,
        grade_description=grade.description,
        issues=tuple(issues),
        positive_factors=tuple(positives),
    )

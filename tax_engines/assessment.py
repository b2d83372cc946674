"""
Module: tax_engines.assessment
Responsibility:
    Compose every applicable tax-type calculation, penalties and interest
    for one client and tax year into a ComprehensiveAssessment with a
    grand total and an explainable compliance score.

Architecture position:
    Engines -- pure orchestration over pure calculators.  No I/O and no
    clock: the "as-of" date is an argument, and the RateTable is a
    pre-built immutable snapshot.

Invariants enforced:
    - Idempotence: identical (facts, rate table, as-of) give an identical
      ``to_dict()`` and ``fingerprint()``, including issue ordering.
    - Results, penalties, failures and compliance issues are ordered by the
      TaxType enumeration, never by completion order, so parallel fan-out
      (``max_workers > 1``) yields the same output as a sequential run.
    - A failure in one tax type never aborts the assessment: request and
      rate errors are downgraded to PartialCalculationFailure entries.
    - ``grand_total = sum(net liabilities) + sum(penalties) + sum(interest)``.

Failure modes:
    - InvalidRequestError only for a malformed top-level request (client id,
      tax year, facts container, as-of date).  Per-tax-type problems are
      recorded, not raised.
    - A malformed FilingRecord (missing due date, non-date dates, negative
      or float ``amount_paid``) becomes a "filing" stage failure; that tax
      type then gets no penalty and is scored as if no record was given.

Penalty base:
    For each calculated tax type whose due date is before the as-of date:
      - Late payment, when the net liability is positive.  Paid on or
        before the due date: the unpaid remainder (if any) accrues from the
        due date to the as-of date.  Paid late or not paid: the whole net
        liability accrues from the due date to the payment date, capped at
        the as-of date.
      - Late filing, when the return was filed after the due date or not
        at all: the schedule's late-filing bands apply to the net liability
        (zero for a refund) for the days until filing, capped at the as-of
        date.  No interest accrues on late filing.

Usage:
    engine = ComprehensiveAssessmentEngine(rate_table)
    assessment = engine.assess("client-42", 2025, facts, as_of=date(2026, 3, 1))
    assessment.grand_total, assessment.compliance_score
"""

from __future__ import annotations

import contextvars
import hashlib
import json
import time
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from tax_kernel.domain.facts import AssessmentFacts, FilingRecord
from tax_kernel.domain.values import (
    ZERO,
    PenaltyKind,
    TaxpayerCategory,
    TaxType,
    applicable_tax_types,
    quantize_money,
)
from tax_kernel.exceptions import (
    InvalidRequestError,
    RateNotFoundError,
    TaxEngineError,
    UnsupportedTaxTypeError,
)
from tax_kernel.logging_config import LogContext, get_logger
from tax_engines.compliance import (
    DEFAULT_POLICY,
    ComplianceGrade,
    ComplianceIssue,
    ComplianceObservation,
    CompliancePolicy,
    score_compliance,
)
from tax_engines.dispatch import calculate
from tax_engines.penalty import PenaltyInterestCalculator, PenaltyResult
from tax_engines.rate_table import RateTable
from tax_engines.results import TaxCalculationResult, to_jsonable

logger = get_logger("engines.assessment")

STAGE_CALCULATION = "calculation"
STAGE_FILING = "filing"
STAGE_PENALTY = "penalty"

_STAGE_ORDER = {STAGE_CALCULATION: 0, STAGE_FILING: 1, STAGE_PENALTY: 2}


@dataclass(frozen=True)
class PartialCalculationFailure:
    """A tax type that could not be calculated; the rest of the assessment stands."""

    tax_type: TaxType
    stage: str
    code: str
    reason: str

    @classmethod
    def from_error(cls, tax_type: TaxType, stage: str, exc: TaxEngineError) -> PartialCalculationFailure:
        return cls(tax_type=tax_type, stage=stage, code=exc.code, reason=str(exc))


@dataclass(frozen=True)
class ComprehensiveAssessment:
    """
    Complete assessment of one client for one tax year.

    Contract:
        Transient and immutable; the engine does not retain it.
    Guarantees:
        - ``results`` iterates in TaxType order.
        - ``grand_total == total_liability + penalty.total_penalty``.
        - ``compliance_score == max(0, 100 - sum(points_deducted))``.
    """

    client_id: str
    tax_year: int
    category: TaxpayerCategory
    as_of: date
    results: Mapping[TaxType, TaxCalculationResult]
    penalties: tuple[PenaltyResult, ...]
    penalty: PenaltyResult
    total_liability: Decimal
    grand_total: Decimal
    compliance_score: int
    compliance_grade: ComplianceGrade
    compliance_description: str
    compliance_issues: tuple[ComplianceIssue, ...]
    positive_factors: tuple[str, ...] = ()
    failures: tuple[PartialCalculationFailure, ...] = ()
    skipped_tax_types: tuple[TaxType, ...] = ()
    rate_versions: tuple[str, ...] = field(default=())

    @property
    def is_complete(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe structure: Decimals as strings, dates ISO, enums by value."""
        return to_jsonable(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    def fingerprint(self) -> str:
        """SHA-256 of the canonical JSON; equal for identical assessments."""
        return hashlib.sha256(self.to_json().encode("utf-8")).hexdigest()


class ComprehensiveAssessmentEngine:
    """
    Assess a client across all applicable tax types.

    Contract:
        Holds only immutable collaborators (RateTable, policy), so a single
        instance may serve concurrent ``assess`` calls.
    Non-goals:
        - Does not fetch rates, read a clock or persist anything.
    """

    def __init__(
        self,
        rate_table: RateTable,
        policy: CompliancePolicy = DEFAULT_POLICY,
        max_workers: int = 1,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self._rate_table = rate_table
        self._policy = policy
        self._max_workers = max_workers
        self._penalties = PenaltyInterestCalculator(rate_table)

    def assess(
        self,
        client_id: str,
        tax_year: int,
        facts: AssessmentFacts,
        as_of: date,
    ) -> ComprehensiveAssessment:
        _validate_request(client_id, tax_year, facts, as_of)
        category = facts.category

        with LogContext.bind(client_id=client_id, tax_year=tax_year):
            t0 = time.monotonic()
            logger.info(
                "assessment_started",
                extra={"category": category.value, "as_of": as_of.isoformat()},
            )

            applicable = applicable_tax_types(category)
            failures: list[PartialCalculationFailure] = []
            skipped: list[TaxType] = []
            tasks: list[tuple[TaxType, object]] = []

            for tax_type in TaxType:
                type_facts = facts.facts_for(tax_type)
                if tax_type not in applicable:
                    if type_facts is not None:
                        failures.append(
                            PartialCalculationFailure.from_error(
                                tax_type,
                                STAGE_CALCULATION,
                                UnsupportedTaxTypeError(tax_type.value, category.value),
                            )
                        )
                    continue
                if type_facts is None:
                    if tax_type not in facts.filings:
                        skipped.append(tax_type)
                    continue
                tasks.append((tax_type, type_facts))

            outcomes = self._run(tasks, tax_year, category)

            results: dict[TaxType, TaxCalculationResult] = {}
            for tax_type, outcome in sorted(outcomes, key=lambda o: o[0].order):
                if isinstance(outcome, PartialCalculationFailure):
                    failures.append(outcome)
                else:
                    results[tax_type] = outcome

            filings = self._screen_filings(facts.filings, applicable, failures)

            penalties: list[PenaltyResult] = []
            for tax_type, result in results.items():
                try:
                    found = self._penalties_for(result, filings.get(tax_type), tax_year, as_of)
                except (InvalidRequestError, RateNotFoundError) as exc:
                    logger.warning(
                        "penalty_calculation_failed",
                        extra={"failed_tax_type": tax_type.value, "error_code": exc.code},
                    )
                    failures.append(
                        PartialCalculationFailure.from_error(tax_type, STAGE_PENALTY, exc)
                    )
                    continue
                penalties.extend(found)

            failures.sort(key=lambda f: (f.tax_type.order, _STAGE_ORDER[f.stage]))
            aggregate = PenaltyResult.aggregate(penalties)
            total_liability = quantize_money(
                sum((r.net_liability for r in results.values()), ZERO)
            )
            grand_total = total_liability + aggregate.total_penalty

            observations = [
                ComplianceObservation(
                    tax_type=tax_type,
                    filing=filings.get(tax_type),
                    net_liability=results[tax_type].net_liability if tax_type in results else None,
                    penalty=PenaltyResult.aggregate(p for p in penalties if p.tax_type is tax_type),
                )
                for tax_type in applicable
                if tax_type in results or tax_type in filings
            ]
            report = score_compliance(observations, as_of, self._policy)

            assessment = ComprehensiveAssessment(
                client_id=client_id,
                tax_year=tax_year,
                category=category,
                as_of=as_of,
                results=results,
                penalties=tuple(penalties),
                penalty=aggregate,
                total_liability=total_liability,
                grand_total=grand_total,
                compliance_score=report.score,
                compliance_grade=report.grade,
                compliance_description=report.grade_description,
                compliance_issues=report.issues,
                positive_factors=report.positive_factors,
                failures=tuple(failures),
                skipped_tax_types=tuple(skipped),
                rate_versions=tuple(sorted({v for r in results.values() for v in r.rate_versions})),
            )

            duration_ms = round((time.monotonic() - t0) * 1000, 2)
            logger.info(
                "assessment_completed",
                extra={
                    "calculated": [t.value for t in results],
                    "failure_count": len(failures),
                    "grand_total": str(grand_total),
                    "compliance_score": report.score,
                    "duration_ms": duration_ms,
                },
            )
            return assessment

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _calculate_one(
        self,
        tax_type: TaxType,
        type_facts: object,
        tax_year: int,
        category: TaxpayerCategory,
    ) -> tuple[TaxType, TaxCalculationResult | PartialCalculationFailure]:
        try:
            return tax_type, calculate(tax_type, type_facts, self._rate_table, tax_year, category)
        except (InvalidRequestError, RateNotFoundError) as exc:
            logger.warning(
                "tax_type_calculation_failed",
                extra={"failed_tax_type": tax_type.value, "error_code": exc.code},
            )
            return tax_type, PartialCalculationFailure.from_error(
                tax_type, STAGE_CALCULATION, exc
            )

    def _run(
        self,
        tasks: list[tuple[TaxType, object]],
        tax_year: int,
        category: TaxpayerCategory,
    ) -> list[tuple[TaxType, TaxCalculationResult | PartialCalculationFailure]]:
        if self._max_workers == 1 or len(tasks) < 2:
            return [self._calculate_one(t, f, tax_year, category) for t, f in tasks]

        # Each task runs in its own copy of the caller's context so log
        # fields bound above appear on worker log records.
        with ThreadPoolExecutor(max_workers=min(self._max_workers, len(tasks))) as pool:
            futures = [
                pool.submit(
                    contextvars.copy_context().run,
                    self._calculate_one,
                    t,
                    f,
                    tax_year,
                    category,
                )
                for t, f in tasks
            ]
            return [future.result() for future in futures]

    def _screen_filings(
        self,
        filings: Mapping[TaxType, FilingRecord],
        applicable: tuple[TaxType, ...],
        failures: list[PartialCalculationFailure],
    ) -> dict[TaxType, FilingRecord]:
        """Validated filing records of owed tax types; bad records become failures."""
        screened: dict[TaxType, FilingRecord] = {}
        for tax_type in applicable:
            filing = filings.get(tax_type)
            if filing is None:
                continue
            try:
                if not isinstance(filing, FilingRecord):
                    raise InvalidRequestError("filings", "a FilingRecord is required")
                screened[tax_type] = filing.validated()
            except InvalidRequestError as exc:
                logger.warning(
                    "filing_record_rejected",
                    extra={"failed_tax_type": tax_type.value, "error_code": exc.code},
                )
                failures.append(PartialCalculationFailure.from_error(tax_type, STAGE_FILING, exc))
        return screened

    def _penalties_for(
        self,
        result: TaxCalculationResult,
        filing: FilingRecord | None,
        tax_year: int,
        as_of: date,
    ) -> list[PenaltyResult]:
        if filing is None or filing.due_date >= as_of:
            return []

        found: list[PenaltyResult] = []
        payment = self._late_payment(result, filing, tax_year, as_of)
        if payment is not None:
            found.append(payment)

        if filing.filed_date is None or filing.filed_date > filing.due_date:
            filed = min(filing.filed_date, as_of) if filing.filed_date else as_of
            late_filing = self._penalties.compute(
                tax_amount=max(result.net_liability, ZERO),
                due_date=filing.due_date,
                actual_date=filed,
                tax_type=result.tax_type,
                tax_year=tax_year,
                kind=PenaltyKind.LATE_FILING,
            )
            if late_filing.total_penalty > ZERO:
                found.append(late_filing)
        return found

    def _late_payment(
        self,
        result: TaxCalculationResult,
        filing: FilingRecord,
        tax_year: int,
        as_of: date,
    ) -> PenaltyResult | None:
        if result.net_liability <= ZERO:
            return None

        paid_on_time = filing.paid_date is not None and filing.paid_date <= filing.due_date
        if paid_on_time:
            remainder = result.net_liability - filing.amount_paid
            if remainder <= ZERO:
                return None
            base, actual = remainder, as_of
        else:
            base = result.net_liability
            actual = min(filing.paid_date, as_of) if filing.paid_date else as_of

        return self._penalties.compute(
            tax_amount=base,
            due_date=filing.due_date,
            actual_date=actual,
            tax_type=result.tax_type,
            tax_year=tax_year,
        )


def _validate_request(client_id: str, tax_year: int, facts: AssessmentFacts, as_of: date) -> None:
    if not isinstance(client_id, str) or not client_id.strip():
        raise InvalidRequestError("client_id", "a non-empty client id is required")
    if isinstance(tax_year, bool) or not isinstance(tax_year, int):
        raise InvalidRequestError("tax_year", f"must be an integer year, got {tax_year!r}")
    if not isinstance(facts, AssessmentFacts):
        raise InvalidRequestError("facts", "AssessmentFacts are required")
    if not isinstance(facts.category, TaxpayerCategory):
        raise InvalidRequestError("facts.category", "an explicit taxpayer category is required")
    if not isinstance(as_of, date) or isinstance(as_of, datetime):
        raise InvalidRequestError("as_of", "an as-of calendar date is required")

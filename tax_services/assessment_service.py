"""
tax_services.assessment_service -- Request-level entry point for assessments.

Responsibility:
    Take a rate snapshot for the requested year, bind request-scoped log
    context, resolve the as-of date from the injected clock and delegate to
    the pure engines.

Architecture position:
    Services -- the only layer that combines a RateSource (possibly a
    database), a Clock and the engines.  Holds no per-request state.

Invariants enforced:
    - One snapshot per request: every tax type in an assessment is computed
      from the same RateTable, even if rule data is stored concurrently.
    - ``as_of`` defaults to ``clock.today()``; engines never read a clock.
    - Every request runs under a correlation id, generated when the caller
      gives none.

Usage:
    service = AssessmentService(SqlRateSource(session), clock=SystemClock())
    assessment = service.assess("client-42", 2025, facts)
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import uuid4

from tax_kernel.domain.clock import Clock, SystemClock
from tax_kernel.domain.facts import AssessmentFacts
from tax_kernel.domain.values import TaxpayerCategory, TaxType
from tax_kernel.logging_config import LogContext, get_logger
from tax_engines.assessment import ComprehensiveAssessment, ComprehensiveAssessmentEngine
from tax_engines.compliance import DEFAULT_POLICY, CompliancePolicy
from tax_engines.dispatch import TaxFacts, calculate
from tax_engines.penalty import PenaltyInterestCalculator, PenaltyResult
from tax_engines.rate_table import RateSource
from tax_engines.results import TaxCalculationResult

logger = get_logger("services.assessment")


class AssessmentService:
    """
    Assess clients against rule data from a RateSource.

    Contract:
        Receives the RateSource and Clock via constructor injection.
    Guarantees:
        - Results are identical to calling the engines directly with the
          same snapshot and as-of date.
    Non-goals:
        - Does not persist assessments or lock tax years; callers decide
          when a year is final (``SqlRateSource.lock_tax_year``).
    """

    def __init__(
        self,
        rate_source: RateSource,
        clock: Clock | None = None,
        policy: CompliancePolicy = DEFAULT_POLICY,
        max_workers: int = 1,
    ):
        self._rate_source = rate_source
        self._clock = clock or SystemClock()
        self._policy = policy
        self._max_workers = max_workers

    def assess(
        self,
        client_id: str,
        tax_year: int,
        facts: AssessmentFacts,
        as_of: date | None = None,
        correlation_id: str | None = None,
    ) -> ComprehensiveAssessment:
        correlation_id = correlation_id or str(uuid4())
        with LogContext.bind(correlation_id=correlation_id, client_id=client_id):
            effective_as_of = as_of or self._clock.today()
            table = self._rate_source.snapshot([tax_year])
            engine = ComprehensiveAssessmentEngine(
                table, policy=self._policy, max_workers=self._max_workers
            )
            assessment = engine.assess(client_id, tax_year, facts, effective_as_of)
            logger.info(
                "assessment_served",
                extra={
                    "tax_year": tax_year,
                    "grand_total": str(assessment.grand_total),
                    "compliance_score": assessment.compliance_score,
                    "failure_count": len(assessment.failures),
                },
            )
            return assessment

    def calculate(
        self,
        tax_type: TaxType,
        facts: TaxFacts,
        tax_year: int,
        category: TaxpayerCategory,
    ) -> TaxCalculationResult:
        """Single tax-type calculation; errors propagate unchanged."""
        table = self._rate_source.snapshot([tax_year])
        return calculate(tax_type, facts, table, tax_year, category)

    def penalty(
        self,
        tax_amount: Decimal,
        due_date: date,
        tax_type: TaxType,
        tax_year: int,
        actual_date: date | None = None,
    ) -> PenaltyResult:
        """Penalty and interest as of ``actual_date``, or today when omitted."""
        table = self._rate_source.snapshot([tax_year])
        return PenaltyInterestCalculator(table).compute(
            tax_amount=tax_amount,
            due_date=due_date,
            actual_date=actual_date or self._clock.today(),
            tax_type=tax_type,
            tax_year=tax_year,
        )

    def classify(self, tax_year: int, annual_turnover: Decimal) -> TaxpayerCategory:
        """Corporate category for a turnover under the year's thresholds."""
        return self._rate_source.snapshot([tax_year]).classify_taxpayer(tax_year, annual_turnover)

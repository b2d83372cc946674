"""
Property-based tests for the calculation core.

Properties checked with generated inputs:
- Progressive brackets: non-negative, monotonic, continuous at band
  boundaries, breakdown sums to the total
- Penalties: nothing owed when paid on or before the due date; totals are
  the sum of their parts; interest never decreases with lateness
- Compliance: score always equals 100 minus deductions, floored at 0
"""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from tax_engines.brackets import evaluate_brackets
from tax_engines.compliance import ComplianceObservation, score_compliance
from tax_engines.penalty import compute_penalty
from tax_kernel.domain.facts import FilingRecord
from tax_kernel.domain.rates import Bracket, PenaltyBand, PenaltySchedule
from tax_kernel.domain.values import InterestMode, TaxType, quantize_money

D = Decimal

BANDS = (
    Bracket(D("0"), D("600000"), D("0")),
    Bracket(D("600000"), D("1200000"), D("0.15")),
    Bracket(D("1200000"), D("1800000"), D("0.20")),
    Bracket(D("1800000"), D("2400000"), D("0.25")),
    Bracket(D("2400000"), None, D("0.30")),
)
TOP_RATE = D("0.30")

SCHEDULES = {
    mode: PenaltySchedule(
        tax_type=TaxType.GST,
        tax_year=2025,
        version="P1",
        bands=(
            PenaltyBand("1-30 days", 1, 30, D("0.05")),
            PenaltyBand("31-60 days", 31, 60, D("0.10")),
            PenaltyBand("61+ days", 61, None, D("0.15")),
        ),
        annual_interest_rate=D("0.24"),
        interest_mode=mode,
    )
    for mode in InterestMode
}

DUE = date(2025, 3, 31)

amounts = st.decimals(
    min_value=0, max_value=D("10000000000"), places=2, allow_nan=False, allow_infinity=False
)
positive_amounts = st.decimals(
    min_value=D("0.01"), max_value=D("1000000000"), places=2, allow_nan=False, allow_infinity=False
)


class TestBracketProperties:
    @given(amount=amounts)
    @settings(max_examples=200)
    def test_non_negative_and_bounded(self, amount):
        tax = evaluate_brackets(amount, BANDS).unrounded_tax
        assert tax >= 0
        assert tax <= amount * TOP_RATE

    @given(a=amounts, b=amounts)
    @settings(max_examples=200)
    def test_monotonic(self, a, b):
        low, high = sorted((a, b))
        assert evaluate_brackets(low, BANDS).tax <= evaluate_brackets(high, BANDS).tax

    @given(amount=amounts)
    @settings(max_examples=200)
    def test_breakdown_sums(self, amount):
        evaluation = evaluate_brackets(amount, BANDS)
        assert sum(line.tax for line in evaluation.lines) == evaluation.unrounded_tax
        assert sum(line.taxable for line in evaluation.lines) == amount
        assert evaluation.tax == quantize_money(evaluation.unrounded_tax)

    @given(
        band=st.sampled_from(BANDS[1:]),
        step=st.decimals(min_value=D("0.01"), max_value=D("600000"), places=2),
    )
    @settings(max_examples=200)
    def test_continuous_at_boundaries(self, band, step):
        """Crossing a boundary taxes only the excess at the new rate: no cliff."""
        at = evaluate_brackets(band.lower, BANDS).unrounded_tax
        above = evaluate_brackets(band.lower + step, BANDS).unrounded_tax
        assert above - at == band.rate * step

    @given(amount=amounts)
    @settings(max_examples=100)
    def test_rounding_idempotent(self, amount):
        tax = evaluate_brackets(amount, BANDS).tax
        assert quantize_money(tax) == tax
        assert tax.as_tuple().exponent == -2


class TestPenaltyProperties:
    @given(
        amount=amounts,
        early=st.integers(min_value=0, max_value=3650),
        mode=st.sampled_from(list(InterestMode)),
    )
    @settings(max_examples=200)
    def test_nothing_owed_on_or_before_due_date(self, amount, early, mode):
        result = compute_penalty(
            tax_amount=amount,
            due_date=DUE,
            actual_date=DUE - timedelta(days=early),
            schedule=SCHEDULES[mode],
        )
        assert result.days_late == 0
        assert result.total_penalty == 0

    @given(
        amount=positive_amounts,
        days=st.integers(min_value=1, max_value=3650),
        mode=st.sampled_from(list(InterestMode)),
    )
    @settings(max_examples=200)
    def test_total_is_sum_of_parts(self, amount, days, mode):
        result = compute_penalty(
            tax_amount=amount,
            due_date=DUE,
            actual_date=DUE + timedelta(days=days),
            schedule=SCHEDULES[mode],
        )
        assert result.days_late == days
        assert result.penalty_amount >= 0
        assert result.interest_amount >= 0
        assert result.total_penalty == result.penalty_amount + result.interest_amount

    @given(
        amount=positive_amounts,
        days=st.integers(min_value=1, max_value=3650),
        extra=st.integers(min_value=1, max_value=365),
        mode=st.sampled_from(list(InterestMode)),
    )
    @settings(max_examples=200)
    def test_interest_never_decreases(self, amount, days, extra, mode):
        def interest(d: int) -> Decimal:
            return compute_penalty(
                tax_amount=amount,
                due_date=DUE,
                actual_date=DUE + timedelta(days=d),
                schedule=SCHEDULES[mode],
            ).interest_amount

        assert interest(days) <= interest(days + extra)


filing_records = st.builds(
    FilingRecord,
    due_date=st.dates(min_value=date(2025, 1, 1), max_value=date(2025, 12, 31)),
    filed_date=st.one_of(
        st.none(), st.dates(min_value=date(2025, 1, 1), max_value=date(2026, 6, 30))
    ),
    amount_paid=st.decimals(min_value=0, max_value=D("100000"), places=2),
)

observations = st.builds(
    ComplianceObservation,
    tax_type=st.sampled_from(list(TaxType)),
    filing=st.one_of(st.none(), filing_records),
    net_liability=st.one_of(
        st.none(), st.decimals(min_value=D("-1000"), max_value=D("100000"), places=2)
    ),
)


class TestComplianceProperties:
    @given(items=st.lists(observations, max_size=5, unique_by=lambda o: o.tax_type))
    @settings(max_examples=200)
    def test_score_explained_by_issues(self, items):
        report = score_compliance(items, date(2026, 1, 1))
        assert report.score == max(0, 100 - sum(i.points_deducted for i in report.issues))
        assert 0 <= report.score <= 100

    @given(items=st.lists(observations, max_size=5, unique_by=lambda o: o.tax_type))
    @settings(max_examples=100)
    def test_order_independent(self, items):
        as_of = date(2026, 1, 1)
        assert score_compliance(items, as_of) == score_compliance(list(reversed(items)), as_of)

"""
Tests for PenaltyInterestCalculator.

Covers:
- Worked example: 36 days late on 100,000
- Zero lateness and early payment
- Single-band selection at band boundaries
- Simple and monthly-compounded interest
- Minimum penalty amounts and aggregation
- Late-filing bands, which accrue no interest
"""

from datetime import date
from decimal import Decimal

import pytest

from tax_engines.penalty import PenaltyInterestCalculator, PenaltyResult, compute_penalty
from tax_kernel.domain.rates import PenaltyBand, PenaltySchedule
from tax_kernel.domain.values import InterestMode, PenaltyKind, TaxType
from tax_kernel.exceptions import InvalidAmountError, InvalidRateTableError, RateNotFoundError

D = Decimal
DUE = date(2024, 1, 15)


class TestPenaltyInterest:
    @pytest.fixture(autouse=True)
    def _calculator(self, make_rate_table):
        self.calculator = PenaltyInterestCalculator(make_rate_table(year=2024))

    def _compute(self, amount: str, actual: date, tax_type: TaxType = TaxType.INCOME_TAX):
        return self.calculator.compute(
            tax_amount=D(amount),
            due_date=DUE,
            actual_date=actual,
            tax_type=tax_type,
            tax_year=2024,
        )

    def test_worked_example(self):
        """36 days late on 100,000: 10% penalty plus 15% simple interest."""
        result = self._compute("100000", date(2024, 2, 20))

        assert result.days_late == 36
        assert result.band == "31-60 days"
        assert result.penalty_amount == D("10000.00")
        assert result.interest_amount == D("1479.45")
        assert result.total_penalty == D("11479.45")

    def test_paid_on_due_date_is_not_late(self):
        result = self._compute("100000", DUE)

        assert result.days_late == 0
        assert result.total_penalty == D("0.00")
        assert not result.is_late

    def test_paid_early_is_not_late(self):
        result = self._compute("100000", date(2024, 1, 1))
        assert result.days_late == 0
        assert result.penalty_amount == D("0.00")

    @pytest.mark.parametrize(
        "days, band, penalty",
        [
            (1, "1-30 days", "5000.00"),
            (30, "1-30 days", "5000.00"),
            (31, "31-60 days", "10000.00"),
            (60, "31-60 days", "10000.00"),
            (61, "61+ days", "15000.00"),
            (400, "61+ days", "15000.00"),
        ],
    )
    def test_single_band_applies(self, days, band, penalty):
        """The one band containing days_late applies to the whole amount."""
        actual = date.fromordinal(DUE.toordinal() + days)
        result = self._compute("100000", actual)

        assert result.band == band
        assert result.penalty_amount == D(penalty)

    def test_interest_grows_with_days(self):
        a = self._compute("100000", date(2024, 2, 1))
        b = self._compute("100000", date(2024, 3, 1))
        assert b.interest_amount > a.interest_amount

    def test_zero_amount_owes_nothing(self):
        result = self._compute("0", date(2024, 6, 1))
        assert result.total_penalty == D("0.00")
        assert result.days_late > 0

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidAmountError):
            self._compute("-1", date(2024, 2, 20))

    def test_missing_schedule(self):
        with pytest.raises(RateNotFoundError):
            self.calculator.compute(
                tax_amount=D("1"),
                due_date=DUE,
                actual_date=date(2024, 2, 20),
                tax_type=TaxType.GST,
                tax_year=2020,
            )


class TestCompoundInterest:
    def test_monthly_compounding(self, make_rate_table):
        """24% a year compounded monthly: 2% per started 30-day month."""
        table = make_rate_table(
            year=2024,
            annual_interest_rate=D("0.24"),
            interest_mode=InterestMode.MONTHLY_COMPOUND,
        )
        result = PenaltyInterestCalculator(table).compute(
            tax_amount=D("100000"),
            due_date=DUE,
            actual_date=date(2024, 2, 20),  # 36 days -> 2 months
            tax_type=TaxType.EXCISE_DUTY,
            tax_year=2024,
        )

        # 100,000 * (1.02 ** 2 - 1)
        assert result.interest_amount == D("4040.00")
        assert result.interest_mode is InterestMode.MONTHLY_COMPOUND
        assert result.total_penalty == D("14040.00")

    def test_compound_exceeds_simple_over_long_periods(self, make_rate_table):
        simple = PenaltyInterestCalculator(
            make_rate_table(year=2024, annual_interest_rate=D("0.24"))
        )
        compound = PenaltyInterestCalculator(
            make_rate_table(
                year=2024,
                annual_interest_rate=D("0.24"),
                interest_mode=InterestMode.MONTHLY_COMPOUND,
            )
        )
        args = dict(
            tax_amount=D("100000"),
            due_date=DUE,
            actual_date=date(2025, 1, 10),  # 361 days
            tax_type=TaxType.GST,
            tax_year=2024,
        )
        assert compound.compute(**args).interest_amount > simple.compute(**args).interest_amount


class TestSchedules:
    def test_minimum_penalty_amount(self):
        schedule = PenaltySchedule(
            tax_type=TaxType.GST,
            tax_year=2024,
            version="MIN",
            bands=(PenaltyBand("any", 1, None, D("0.05"), minimum_amount=D("500")),),
            annual_interest_rate=D("0"),
        )
        result = compute_penalty(
            tax_amount=D("1000"),
            due_date=DUE,
            actual_date=date(2024, 1, 20),
            schedule=schedule,
        )
        assert result.penalty_amount == D("500.00")
        assert result.schedule_version == "MIN"

    def test_bands_must_start_at_day_one(self):
        with pytest.raises(InvalidRateTableError):
            PenaltySchedule(
                TaxType.GST, 2024, "X",
                bands=(PenaltyBand("late", 2, None, D("0.1")),),
                annual_interest_rate=D("0.1"),
            )

    def test_bands_must_be_contiguous(self):
        with pytest.raises(InvalidRateTableError):
            PenaltySchedule(
                TaxType.GST, 2024, "X",
                bands=(
                    PenaltyBand("a", 1, 30, D("0.05")),
                    PenaltyBand("b", 32, None, D("0.1")),
                ),
                annual_interest_rate=D("0.1"),
            )

    def test_last_band_unbounded(self):
        with pytest.raises(InvalidRateTableError):
            PenaltySchedule(
                TaxType.GST, 2024, "X",
                bands=(PenaltyBand("a", 1, 30, D("0.05")),),
                annual_interest_rate=D("0.1"),
            )


class TestAggregate:
    def test_aggregate_sums_components(self):
        a = PenaltyResult(36, D("10000.00"), D("1479.45"), D("11479.45"), TaxType.GST)
        b = PenaltyResult(10, D("500.00"), D("20.00"), D("520.00"), TaxType.INCOME_TAX)
        total = PenaltyResult.aggregate([a, b])

        assert total.days_late == 36
        assert total.penalty_amount == D("10500.00")
        assert total.interest_amount == D("1499.45")
        assert total.total_penalty == D("11999.45")
        assert total.tax_type is None

    def test_aggregate_of_nothing_is_zero(self):
        assert PenaltyResult.aggregate([]).total_penalty == D("0.00")


class TestLateFiling:
    FILING_BANDS = (
        PenaltyBand("1-90 days", 1, 90, D("0.05"), minimum_amount=D("500")),
        PenaltyBand("91+ days", 91, None, D("0.10")),
    )

    def _schedule(self, late_filing_bands=FILING_BANDS) -> PenaltySchedule:
        return PenaltySchedule(
            tax_type=TaxType.GST,
            tax_year=2024,
            version="LF1",
            bands=(PenaltyBand("any", 1, None, D("0.20")),),
            annual_interest_rate=D("0.15"),
            late_filing_bands=late_filing_bands,
        )

    def _compute(self, amount: str, actual: date, schedule=None) -> PenaltyResult:
        return compute_penalty(
            tax_amount=D(amount),
            due_date=DUE,
            actual_date=actual,
            schedule=schedule or self._schedule(),
            kind=PenaltyKind.LATE_FILING,
        )

    def test_uses_filing_bands_without_interest(self):
        result = self._compute("100000", date(2024, 2, 20))

        assert result.kind is PenaltyKind.LATE_FILING
        assert result.days_late == 36
        assert result.band == "1-90 days"
        assert result.penalty_amount == D("5000.00")
        assert result.interest_amount == D("0.00")
        assert result.total_penalty == D("5000.00")
        assert result.interest_mode is None

    def test_second_filing_band(self):
        result = self._compute("100000", date(2024, 4, 15))  # 91 days
        assert result.penalty_amount == D("10000.00")

    def test_minimum_applies_to_nil_return(self):
        assert self._compute("0", date(2024, 1, 16)).total_penalty == D("500.00")

    def test_filed_on_time(self):
        result = self._compute("100000", DUE)
        assert result.total_penalty == D("0.00")
        assert result.kind is PenaltyKind.LATE_FILING

    def test_schedule_without_filing_bands_charges_nothing(self):
        result = self._compute("100000", date(2024, 3, 1), self._schedule(late_filing_bands=()))
        assert result.total_penalty == D("0.00")
        assert not result.is_late

    def test_late_payment_unaffected(self):
        result = compute_penalty(
            tax_amount=D("100000"),
            due_date=DUE,
            actual_date=date(2024, 2, 20),
            schedule=self._schedule(),
        )
        assert result.kind is PenaltyKind.LATE_PAYMENT
        assert result.penalty_amount == D("20000.00")
        assert result.interest_amount == D("1479.45")

    def test_malformed_filing_bands_rejected(self):
        with pytest.raises(InvalidRateTableError) as exc_info:
            self._schedule(late_filing_bands=(PenaltyBand("a", 1, 30, D("0.05")),))
        assert "penalty/gst/2024: late filing: last penalty band must be unbounded" in (
            exc_info.value.errors
        )

    def test_band_for_by_kind(self):
        schedule = self._schedule()
        assert schedule.band_for(120).name == "any"
        assert schedule.band_for(120, PenaltyKind.LATE_FILING).name == "91+ days"

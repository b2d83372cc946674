"""
Tests for RateTable.

Covers:
- Exact-match lookups with no year or category fallback
- Construction-time validation (duplicates, threshold ordering)
- Turnover classification
- Snapshots restricted to tax years
"""

from decimal import Decimal

import pytest

from tax_engines.rate_table import RateTable
from tax_kernel.domain.rates import CategoryThreshold, RateEntry
from tax_kernel.domain.values import TaxpayerCategory, TaxType
from tax_kernel.exceptions import (
    InvalidAmountError,
    InvalidRateTableError,
    RateNotFoundError,
)

D = Decimal


class TestLookup:
    def test_exact_match(self, rate_table):
        entry = rate_table.lookup(TaxType.GST, 2025, TaxpayerCategory.MEDIUM)
        assert entry.rate == D("0.15")
        assert entry.key == (TaxType.GST, 2025, "medium")

    def test_lookup_accepts_string_category(self, rate_table):
        assert rate_table.lookup(TaxType.GST, 2025, "medium") is rate_table.lookup(
            TaxType.GST, 2025, TaxpayerCategory.MEDIUM
        )

    def test_no_fallback_to_other_year(self, rate_table):
        """A year with no data is an error, not the nearest year's rates."""
        with pytest.raises(RateNotFoundError) as exc_info:
            rate_table.lookup(TaxType.INCOME_TAX, 2026, TaxpayerCategory.INDIVIDUAL)
        assert exc_info.value.tax_year == 2026
        assert exc_info.value.code == "RATE_NOT_FOUND"

    def test_no_fuzzy_category(self, rate_table):
        with pytest.raises(RateNotFoundError):
            rate_table.lookup(TaxType.EXCISE_DUTY, 2025, "cigarette")

    def test_years_are_independent(self, make_rate_table):
        """Rates of one year never leak into another."""
        table = RateTable(
            [
                *make_rate_table(year=2024, version="FA2024").entries(),
                *make_rate_table(year=2025, version="FA2025").entries(),
            ]
        )
        assert table.lookup(TaxType.GST, 2024, "large").version == "FA2024"
        assert table.lookup(TaxType.GST, 2025, "large").version == "FA2025"
        assert table.tax_years() == (2024, 2025)

    def test_penalty_schedule_lookup(self, rate_table):
        schedule = rate_table.penalty_schedule(TaxType.GST, 2025)
        assert schedule.band_for(45).name == "31-60 days"
        with pytest.raises(RateNotFoundError):
            rate_table.penalty_schedule(TaxType.GST, 2019)


class TestValidation:
    def test_duplicate_entry_rejected(self):
        entry = RateEntry(TaxType.GST, 2025, "large", "T1", rate=D("0.15"))
        twin = RateEntry(TaxType.GST, 2025, "large", "T2", rate=D("0.16"))

        with pytest.raises(InvalidRateTableError) as exc_info:
            RateTable([entry, twin])
        assert "duplicate rate entry gst/2025/large" in exc_info.value.errors

    def test_thresholds_must_descend(self):
        thresholds = [
            CategoryThreshold(2025, TaxpayerCategory.LARGE, D("100")),
            CategoryThreshold(2025, TaxpayerCategory.MEDIUM, D("500")),
            CategoryThreshold(2025, TaxpayerCategory.MICRO, D("0")),
        ]
        with pytest.raises(InvalidRateTableError) as exc_info:
            RateTable([], thresholds=thresholds)
        assert any("large must exceed medium" in e for e in exc_info.value.errors)

    def test_smallest_threshold_starts_at_zero(self):
        thresholds = [
            CategoryThreshold(2025, TaxpayerCategory.LARGE, D("1000")),
            CategoryThreshold(2025, TaxpayerCategory.SMALL, D("10")),
        ]
        with pytest.raises(InvalidRateTableError):
            RateTable([], thresholds=thresholds)

    def test_individual_threshold_rejected(self):
        with pytest.raises(InvalidRateTableError):
            CategoryThreshold(2025, TaxpayerCategory.INDIVIDUAL, D("0"))

    def test_entry_needs_exactly_one_rate_form(self, individual_bands):
        with pytest.raises(InvalidRateTableError):
            RateEntry(TaxType.INCOME_TAX, 2025, "small", "T1")
        with pytest.raises(InvalidRateTableError):
            RateEntry(
                TaxType.INCOME_TAX, 2025, "small", "T1",
                rate=D("0.2"), brackets=individual_bands,
            )

    def test_individual_income_tax_requires_brackets(self):
        with pytest.raises(InvalidRateTableError):
            RateEntry(TaxType.INCOME_TAX, 2025, "individual", "T1", rate=D("0.2"))

    def test_version_required(self):
        with pytest.raises(InvalidRateTableError):
            RateEntry(TaxType.GST, 2025, "large", "", rate=D("0.15"))


class TestClassification:
    @pytest.mark.parametrize(
        "turnover, expected",
        [
            ("0", TaxpayerCategory.MICRO),
            ("99999999.99", TaxpayerCategory.MICRO),
            ("100000000", TaxpayerCategory.SMALL),
            ("500000000", TaxpayerCategory.MEDIUM),
            ("1999999999", TaxpayerCategory.MEDIUM),
            ("2000000000", TaxpayerCategory.LARGE),
        ],
    )
    def test_turnover_bands(self, rate_table, turnover, expected):
        assert rate_table.classify_taxpayer(2025, D(turnover)) is expected

    def test_negative_turnover_rejected(self, rate_table):
        with pytest.raises(InvalidAmountError):
            rate_table.classify_taxpayer(2025, D("-1"))

    def test_year_without_thresholds(self, rate_table):
        with pytest.raises(RateNotFoundError):
            rate_table.classify_taxpayer(2030, D("1"))


class TestSnapshot:
    def test_snapshot_restricts_years(self, make_rate_table):
        table = RateTable(
            [
                *make_rate_table(year=2024).entries(),
                *make_rate_table(year=2025).entries(),
            ],
            penalty_schedules=[
                *make_rate_table(year=2024).penalty_schedules(),
                *make_rate_table(year=2025).penalty_schedules(),
            ],
        )
        snapshot = table.snapshot([2025])

        assert snapshot.tax_years() == (2025,)
        assert len(snapshot) == len(table) // 2
        with pytest.raises(RateNotFoundError):
            snapshot.lookup(TaxType.GST, 2024, "large")

    def test_version_of_from_entries(self, make_rate_table):
        assert make_rate_table(year=2024, version="T7").version_of(2024) == "T7"

    def test_version_of_unknown_year(self, rate_table):
        with pytest.raises(RateNotFoundError):
            rate_table.version_of(1999)

    def test_version_of_prefers_rule_set(self, packaged_rate_table):
        assert packaged_rate_table.version_of(2025) == packaged_rate_table.rule_set(2025).version

    def test_entries_for(self, rate_table):
        categories = [e.category for e in rate_table.entries_for(TaxType.GST, 2025)]
        assert categories == ["large", "medium"]

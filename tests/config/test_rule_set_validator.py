"""
Tests for load-time rule-set validation.

Errors stop a rule set from loading; warnings are logged and the rule set
still loads.
"""

from decimal import Decimal

import pytest

from tax_config import load_rate_table, load_rule_sets, validate_rule_set
from tax_config.loader import load_rule_set
from tax_config.schema import RuleSet, RuleSetStatus
from tax_kernel.domain.rates import Bracket, PenaltyBand, PenaltySchedule, RateEntry
from tax_kernel.domain.values import DutyBasis, TaxType
from tax_kernel.exceptions import InvalidRateTableError

D = Decimal

BRACKETS = (Bracket(D("0"), D("600000"), D("0")), Bracket(D("600000"), None, D("0.15")))


def _schedule(tax_type: TaxType, year: int = 2025) -> PenaltySchedule:
    return PenaltySchedule(
        tax_type, year, "V1",
        bands=(PenaltyBand("late", 1, None, D("0.05")),),
        annual_interest_rate=D("0.15"),
    )


def _rule_set(*entries: RateEntry, schedules=None) -> RuleSet:
    if schedules is None:
        schedules = tuple(_schedule(t) for t in {e.tax_type for e in entries})
    return RuleSet(
        ruleset_id="V-2025",
        tax_year=2025,
        version="V1",
        status=RuleSetStatus.PUBLISHED,
        entries=tuple(entries),
        penalty_schedules=tuple(schedules),
    )


def _income_tax_entries(year: int = 2025) -> list[RateEntry]:
    return [
        RateEntry(TaxType.INCOME_TAX, year, "individual", "V1", brackets=BRACKETS),
        RateEntry(TaxType.INCOME_TAX, year, "large", "V1", rate=D("0.3")),
        RateEntry(TaxType.INCOME_TAX, year, "medium", "V1", rate=D("0.25")),
        RateEntry(TaxType.INCOME_TAX, year, "small", "V1", rate=D("0.2")),
    ]


class TestErrors:
    def test_clean_rule_set(self):
        result = validate_rule_set(_rule_set(*_income_tax_entries()))
        assert result.is_valid
        assert result.warnings == []

    def test_entry_from_another_year(self):
        entries = _income_tax_entries()
        entries.append(RateEntry(TaxType.GST, 2024, "large", "V1", rate=D("0.15")))
        schedules = [_schedule(TaxType.INCOME_TAX), _schedule(TaxType.GST)]
        result = validate_rule_set(_rule_set(*entries, schedules=schedules))

        assert "gst/2024/large: belongs to 2024, rule set is 2025" in result.errors

    def test_missing_penalty_schedule(self):
        entries = _income_tax_entries()
        result = validate_rule_set(_rule_set(*entries, schedules=[]))

        assert result.errors == ["income_tax: rate entries present but no penalty schedule"]

    def test_individual_income_tax_required(self):
        result = validate_rule_set(
            _rule_set(RateEntry(TaxType.INCOME_TAX, 2025, "large", "V1", rate=D("0.3")))
        )
        assert "income_tax: no entry for individual taxpayers" in result.errors

    def test_unknown_taxpayer_category(self):
        entries = _income_tax_entries()
        entries.append(RateEntry(TaxType.INCOME_TAX, 2025, "giant", "V1", rate=D("0.3")))
        result = validate_rule_set(_rule_set(*entries))

        assert result.errors == ["income_tax/2025/giant: unknown taxpayer category"]

    def test_malformed_withholding_key(self):
        result = validate_rule_set(
            _rule_set(RateEntry(TaxType.WITHHOLDING_TAX, 2025, "rent", "V1", rate=D("0.1")))
        )
        assert len(result.errors) == 1
        assert result.errors[0].startswith("withholding_tax/2025/rent: key must be")

    def test_unknown_withholding_category(self):
        result = validate_rule_set(
            _rule_set(
                RateEntry(TaxType.WITHHOLDING_TAX, 2025, "salary:resident", "V1", rate=D("0.1"))
            )
        )
        assert result.errors == [
            "withholding_tax/2025/salary:resident: unknown withholding category 'salary'"
        ]


class TestWarnings:
    def test_category_without_entry(self):
        result = validate_rule_set(
            _rule_set(RateEntry(TaxType.GST, 2025, "large", "V1", rate=D("0.15")))
        )
        assert result.is_valid
        assert result.warnings == ["gst: medium taxpayers owe this tax but have no entry"]

    def test_entry_for_category_that_does_not_owe(self):
        entries = _income_tax_entries()
        entries.append(RateEntry(TaxType.INCOME_TAX, 2025, "micro", "V1", rate=D("0.1")))
        result = validate_rule_set(_rule_set(*entries))

        assert result.is_valid
        assert result.warnings == [
            "income_tax/2025/micro: micro taxpayers do not owe income_tax"
        ]

    def test_withholding_pair_incomplete(self):
        result = validate_rule_set(
            _rule_set(RateEntry(TaxType.WITHHOLDING_TAX, 2025, "rent:resident", "V1", rate=D("0.1")))
        )
        assert result.warnings == ["withholding_tax: 'rent' has no non_resident rate"]

    def test_rate_above_one_hundred_percent(self):
        result = validate_rule_set(
            _rule_set(
                RateEntry(
                    TaxType.EXCISE_DUTY, 2025, "spirits", "V1",
                    rate=D("2000"), duty_basis=DutyBasis.SPECIFIC,
                ),
                RateEntry(
                    TaxType.EXCISE_DUTY, 2025, "jewellery", "V1",
                    rate=D("1.5"), duty_basis=DutyBasis.AD_VALOREM,
                ),
            )
        )
        assert result.is_valid
        assert result.warnings == ["excise_duty/2025/jewellery: rate 1.5 exceeds 100%"]


INVALID_RULE_SET = """\
ruleset_id: BAD-2025
tax_year: 2025
version: BAD.1
status: published
rates:
  gst:
    large: {rate: "0.15"}
    medium: {rate: "0.15"}
"""

FLOAT_RULE_SET = """\
ruleset_id: FLOAT-2025
tax_year: 2025
version: F.1
status: published
rates:
  gst:
    large: {rate: 0.15}
"""

WARNING_RULE_SET = """\
ruleset_id: WARN-2025
tax_year: 2025
version: W.1
status: published
rates:
  withholding_tax:
    "rent:resident": {rate: "0.10"}
penalties:
  withholding_tax:
    annual_interest_rate: "0.15"
    bands:
      - {name: "late", min_days: 1, rate: "0.05"}
"""


class TestLoading:
    def test_invalid_rule_set_not_loaded(self, write_rule_set, tmp_path):
        write_rule_set(body=INVALID_RULE_SET)
        with pytest.raises(InvalidRateTableError) as exc_info:
            load_rate_table(tmp_path)
        assert exc_info.value.errors == ["gst: rate entries present but no penalty schedule"]

    def test_unquoted_float_rejected(self, write_rule_set):
        path = write_rule_set(body=FLOAT_RULE_SET)
        with pytest.raises(InvalidRateTableError) as exc_info:
            load_rule_set(path)
        assert "unquoted float" in exc_info.value.errors[0]
        assert exc_info.value.source == str(path)

    def test_warnings_logged_and_loaded(self, write_rule_set, tmp_path, captured_logs):
        write_rule_set(body=WARNING_RULE_SET)
        table = load_rate_table(tmp_path)

        assert table.lookup(TaxType.WITHHOLDING_TAX, 2025, "rent:resident").rate == D("0.10")
        warnings = [r for r in captured_logs() if r["message"] == "rule_set_warning"]
        assert [w["warning"] for w in warnings] == [
            "withholding_tax: 'rent' has no non_resident rate"
        ]

    def test_drafts_skipped_by_default(self, write_rule_set, tmp_path):
        write_rule_set("published.yaml")
        write_rule_set("draft.yaml", ruleset_id="TEST-2026", tax_year=2026, status="draft")

        assert [r.ruleset_id for r in load_rule_sets(tmp_path)] == ["TEST-2025"]
        assert [r.ruleset_id for r in load_rule_sets(tmp_path, include_drafts=True)] == [
            "TEST-2025",
            "TEST-2026",
        ]

    def test_rule_sets_ordered_by_year(self, write_rule_set, tmp_path):
        write_rule_set("a.yaml", ruleset_id="TEST-2026", tax_year=2026)
        write_rule_set("b.yaml", ruleset_id="TEST-2024", tax_year=2024)

        assert [r.tax_year for r in load_rule_sets(tmp_path)] == [2024, 2026]

    def test_two_rule_sets_for_one_year(self, write_rule_set, tmp_path):
        write_rule_set("a.yaml", ruleset_id="A-2025")
        write_rule_set("b.yaml", ruleset_id="B-2025")

        with pytest.raises(InvalidRateTableError):
            load_rate_table(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_rate_table(tmp_path / "nowhere")

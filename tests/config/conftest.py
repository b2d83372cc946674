"""Fixtures for rule-set loading tests: small YAML rule sets written to tmp_path."""

import textwrap
from pathlib import Path

import pytest

MINIMAL_RULE_SET = """\
ruleset_id: {ruleset_id}
tax_year: {tax_year}
version: {version}
status: {status}

thresholds:
  large: "2000000000"
  medium: "500000000"
  small: "100000000"
  micro: "0"

rates:
  income_tax:
    individual:
      brackets:
        - {{lower: "0", upper: "600000", rate: "0"}}
        - {{lower: "600000", rate: "0.15"}}
    large: {{rate: "0.30"}}
    medium: {{rate: "0.25"}}
    small: {{rate: "0.20"}}

penalties:
  income_tax:
    annual_interest_rate: "0.15"
    bands:
      - {{name: "1-30 days", min_days: 1, max_days: 30, rate: "0.05"}}
      - {{name: "31+ days", min_days: 31, rate: "0.10"}}
"""


@pytest.fixture
def write_rule_set(tmp_path):
    """
    Write a rule-set YAML file into ``tmp_path`` and return its path.

    With no ``body`` a minimal valid income-tax rule set is written;
    ``extra`` is appended verbatim for additional sections.
    """

    def _write(
        name: str = "rules.yaml",
        body: str | None = None,
        ruleset_id: str = "TEST-2025",
        tax_year: int = 2025,
        version: str = "TEST.1",
        status: str = "published",
        extra: str = "",
    ) -> Path:
        if body is None:
            body = MINIMAL_RULE_SET.format(
                ruleset_id=ruleset_id, tax_year=tax_year, version=version, status=status
            )
        path = tmp_path / name
        path.write_text(body + textwrap.dedent(extra))
        return path

    return _write

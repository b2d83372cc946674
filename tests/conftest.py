"""
Pytest fixtures for the tax engine test suite.

Provides:
- Structured logging configured for every test, plus a log capture fixture
- The packaged Finance Act rate table
- Small hand-built rate tables for engine tests
- SQLite in-memory database sessions for the persistence adapter

Environment Variables:
- TAX_ENGINE_DATABASE_URL: overrides the database used by ``session``.
  Defaults to an in-memory SQLite database.
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from tax_config import get_database_url, load_rate_table
from tax_engines.rate_table import RateTable
from tax_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from tax_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from tax_kernel.domain.clock import DeterministicClock
from tax_kernel.domain.rates import (
    Bracket,
    CategoryThreshold,
    PenaltyBand,
    PenaltySchedule,
    RateEntry,
)
from tax_kernel.domain.values import (
    DutyBasis,
    InterestMode,
    TaxpayerCategory,
    TaxType,
)
from tax_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "service: mark test as using the database-backed service tier"
    )
    config.addinivalue_line(
        "markers", "concurrency: mark test as running engine calls in parallel threads"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture tax_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            engine.assess(...)
            logs = captured_logs()
            assert any(r["message"] == "assessment_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("tax_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Rate data fixtures
# =============================================================================

D = Decimal

INDIVIDUAL_BANDS = (
    Bracket(D("0"), D("600000"), D("0")),
    Bracket(D("600000"), D("1200000"), D("0.15")),
    Bracket(D("1200000"), D("1800000"), D("0.20")),
    Bracket(D("1800000"), D("2400000"), D("0.25")),
    Bracket(D("2400000"), None, D("0.30")),
)

STANDARD_BANDS = (
    PenaltyBand("1-30 days", 1, 30, D("0.05")),
    PenaltyBand("31-60 days", 31, 60, D("0.10")),
    PenaltyBand("61+ days", 61, None, D("0.15")),
)


def build_entries(year: int = 2025, version: str = "T1") -> list[RateEntry]:
    """A compact but complete set of entries for one year."""
    entries = [
        RateEntry(TaxType.INCOME_TAX, year, "individual", version, brackets=INDIVIDUAL_BANDS),
        RateEntry(
            TaxType.INCOME_TAX, year, "large", version,
            rate=D("0.30"), minimum_tax_rate=D("0.005"),
        ),
        RateEntry(TaxType.INCOME_TAX, year, "medium", version, rate=D("0.25")),
        RateEntry(TaxType.INCOME_TAX, year, "small", version, rate=D("0.20")),
        RateEntry(TaxType.GST, year, "large", version, rate=D("0.15")),
        RateEntry(TaxType.GST, year, "medium", version, rate=D("0.15")),
        RateEntry(TaxType.WITHHOLDING_TAX, year, "dividends:resident", version, rate=D("0.15")),
        RateEntry(TaxType.WITHHOLDING_TAX, year, "dividends:non_resident", version, rate=D("0.15")),
        RateEntry(TaxType.WITHHOLDING_TAX, year, "rent:resident", version, rate=D("0.10")),
        RateEntry(TaxType.WITHHOLDING_TAX, year, "rent:non_resident", version, rate=D("0.10")),
        RateEntry(
            TaxType.WITHHOLDING_TAX, year, "professional_fees:resident", version, rate=D("0.15")
        ),
        RateEntry(
            TaxType.WITHHOLDING_TAX, year, "professional_fees:non_resident", version,
            rate=D("0.20"),
        ),
        RateEntry(
            TaxType.EXCISE_DUTY, year, "cigarettes", version,
            rate=D("150"), duty_basis=DutyBasis.SPECIFIC,
        ),
        RateEntry(
            TaxType.EXCISE_DUTY, year, "luxury_vehicles", version,
            rate=D("0.10"), duty_basis=DutyBasis.AD_VALOREM,
        ),
    ]
    for category in ("large", "medium", "small"):
        entries.append(
            RateEntry(
                TaxType.PAYROLL_TAX, year, category, version,
                brackets=INDIVIDUAL_BANDS, levy_rate=D("0.01"),
            )
        )
    return entries


def build_schedules(
    year: int = 2025,
    version: str = "T1",
    annual_interest_rate: Decimal = D("0.15"),
    interest_mode: InterestMode = InterestMode.SIMPLE,
) -> list[PenaltySchedule]:
    return [
        PenaltySchedule(
            tax_type=tax_type,
            tax_year=year,
            version=version,
            bands=STANDARD_BANDS,
            annual_interest_rate=annual_interest_rate,
            interest_mode=interest_mode,
        )
        for tax_type in TaxType
    ]


def build_thresholds(year: int = 2025) -> list[CategoryThreshold]:
    return [
        CategoryThreshold(year, TaxpayerCategory.LARGE, D("2000000000")),
        CategoryThreshold(year, TaxpayerCategory.MEDIUM, D("500000000")),
        CategoryThreshold(year, TaxpayerCategory.SMALL, D("100000000")),
        CategoryThreshold(year, TaxpayerCategory.MICRO, D("0")),
    ]


@pytest.fixture
def rate_table() -> RateTable:
    """Hand-built rate table for 2025 with standard penalty schedules."""
    return RateTable(build_entries(), build_schedules(), build_thresholds())


@pytest.fixture
def make_rate_table():
    """Factory fixture for rate tables with a chosen year, version or interest terms."""

    def _make(
        year: int = 2025,
        version: str = "T1",
        annual_interest_rate: Decimal = D("0.15"),
        interest_mode: InterestMode = InterestMode.SIMPLE,
        entries: list[RateEntry] | None = None,
    ) -> RateTable:
        return RateTable(
            entries if entries is not None else build_entries(year, version),
            build_schedules(year, version, annual_interest_rate, interest_mode),
            build_thresholds(year),
        )

    return _make


@pytest.fixture
def individual_bands() -> tuple[Bracket, ...]:
    return INDIVIDUAL_BANDS


@pytest.fixture
def standard_penalty_bands() -> tuple[PenaltyBand, ...]:
    return STANDARD_BANDS


@pytest.fixture(scope="session")
def packaged_rate_table() -> RateTable:
    """The Finance Act rule sets shipped with tax_config."""
    return load_rate_table()


# =============================================================================
# Clock fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    return DeterministicClock()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """Fresh database per test with immutability listeners registered."""
    init_engine_from_url(get_database_url())
    create_tables()
    register_immutability_listeners()
    s = get_session()
    try:
        yield s
    finally:
        s.rollback()
        s.close()
        unregister_immutability_listeners()
        drop_tables()
        reset_engine()

"""ORM models for the rule-set store."""

from tax_kernel.models.rates import (
    CategoryThresholdRecord,
    PenaltyBandRecord,
    PenaltyScheduleRecord,
    TaxBracketRecord,
    TaxRateRecord,
    TaxYearLock,
)

__all__ = [
    "CategoryThresholdRecord",
    "PenaltyBandRecord",
    "PenaltyScheduleRecord",
    "TaxBracketRecord",
    "TaxRateRecord",
    "TaxYearLock",
]

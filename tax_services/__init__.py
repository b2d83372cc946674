"""
Tax Services - Stateful adapters around the pure engines.

    rate_source         SqlRateSource: rule sets in the database, snapshots, year locks
    assessment_service  AssessmentService: per-request snapshot, clock and log context
"""

from tax_services.assessment_service import AssessmentService
from tax_services.rate_source import SqlRateSource

__all__ = ["AssessmentService", "SqlRateSource"]

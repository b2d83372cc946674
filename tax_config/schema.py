"""
Rule-set schema (``tax_config.schema``).

Responsibility
--------------
Frozen dataclass describing one Finance Act rule set as loaded from YAML:
identity, lifecycle status, and the kernel domain objects (rate entries,
penalty schedules, category thresholds) it contributes to a RateTable.

Architecture position
---------------------
**Config layer**.  Produced by ``tax_config.loader``, checked by
``tax_config.validator``, turned into a ``RateTable`` by
``tax_config.load_rate_table``.  The kernel never imports from here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum, unique

from tax_kernel.domain.rates import CategoryThreshold, PenaltySchedule, RateEntry, RuleSetInfo


@unique
class RuleSetStatus(str, Enum):
    """Lifecycle status of a rule set.  Only PUBLISHED sets are loaded by default."""

    DRAFT = "draft"
    APPROVED = "approved"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"


@dataclass(frozen=True)
class RuleSet:
    """
    One Finance Act year's rules.

    Contract:
        Every entry, schedule and threshold already passed its own
        structural validation during parsing.
    Guarantees:
        ``checksum`` is the SHA-256 of the source YAML document, so two rule
        sets with equal checksums were loaded from identical data.
    Non-goals:
        Cross-entry checks (coverage, year consistency) live in
        ``tax_config.validator``.
    """

    ruleset_id: str
    tax_year: int
    version: str
    status: RuleSetStatus
    jurisdiction: str = ""
    effective_from: date | None = None
    description: str = ""
    entries: tuple[RateEntry, ...] = ()
    penalty_schedules: tuple[PenaltySchedule, ...] = ()
    thresholds: tuple[CategoryThreshold, ...] = ()
    notes: tuple[str, ...] = field(default_factory=tuple)
    checksum: str = ""
    source: str = ""

    @property
    def info(self) -> RuleSetInfo:
        return RuleSetInfo(
            ruleset_id=self.ruleset_id,
            tax_year=self.tax_year,
            version=self.version,
            checksum=self.checksum,
            source=self.source,
            notes=self.notes,
        )

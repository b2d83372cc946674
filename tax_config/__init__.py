"""
tax_config -- single public entrypoint for Finance Act rule data.

Responsibility:
    Provides the way to obtain a RateTable at runtime through
    ``load_rate_table()``.  This package is also the only place that reads
    environment variables (``TAX_ENGINE_RULESETS_DIR``,
    ``TAX_ENGINE_DATABASE_URL``).  YAML loading is internal tooling.

Architecture position:
    Configuration -- YAML rule sets, load-time validation.  Sits above
    ``tax_kernel`` and ``tax_engines``; neither imports from here.

Invariants enforced:
    - Load-time validation: every rule set must parse and pass
      ``validate_rule_set`` before it reaches a RateTable.
    - Fingerprint pinning: when an APPROVED_FINGERPRINT file names a rule
      set, its checksum must match the pinned value.
    - Deterministic loading: the same YAML documents always produce the
      same checksums and the same RateTable contents.

Failure modes:
    - ``FileNotFoundError`` -- rule-set directory missing.
    - ``InvalidRateTableError`` -- parse or validation errors.
    - ``RateTableIntegrityError`` -- checksum differs from an approved pin.

Audit relevance:
    Every loaded rule set emits a ``TAX_CONFIG_TRACE`` log entry with its
    id, tax year, version and checksum.  The same identity is kept on the
    RateTable as RuleSetInfo.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from tax_kernel.exceptions import InvalidRateTableError
from tax_kernel.logging_config import get_logger
from tax_engines.rate_table import RateTable
from tax_config.integrity import verify_fingerprint_pin
from tax_config.loader import compute_checksum, load_rule_set
from tax_config.schema import RuleSet, RuleSetStatus
from tax_config.validator import RuleSetValidationResult, validate_rule_set

_logger = get_logger("config")

RULESETS_DIR_ENV = "TAX_ENGINE_RULESETS_DIR"
DATABASE_URL_ENV = "TAX_ENGINE_DATABASE_URL"

# Packaged rule sets
_DEFAULT_RULESETS_DIR = Path(__file__).parent / "rulesets"


def rulesets_directory(directory: Path | str | None = None) -> Path:
    """Explicit directory, else ``TAX_ENGINE_RULESETS_DIR``, else the packaged sets."""
    if directory is not None:
        return Path(directory)
    override = os.environ.get(RULESETS_DIR_ENV)
    if override:
        return Path(override)
    return _DEFAULT_RULESETS_DIR


def get_database_url(default: str = "sqlite://") -> str:
    """Database URL for the SQL rate source, from ``TAX_ENGINE_DATABASE_URL``."""
    return os.environ.get(DATABASE_URL_ENV) or default


def load_rule_sets(
    directory: Path | str | None = None,
    include_drafts: bool = False,
) -> tuple[RuleSet, ...]:
    """
    Load, validate and pin-check every ``*.yaml`` rule set in a directory.

    Only PUBLISHED rule sets are returned unless ``include_drafts`` is set.
    Rule sets come back ordered by tax year.

    Raises:
        FileNotFoundError: If the directory does not exist.
        InvalidRateTableError: If any rule set fails parsing or validation.
        RateTableIntegrityError: If a pinned checksum does not match.
    """
    ruleset_dir = rulesets_directory(directory)
    if not ruleset_dir.is_dir():
        raise FileNotFoundError(f"Rule-set directory not found: {ruleset_dir}")

    loaded: list[RuleSet] = []
    for path in sorted(ruleset_dir.glob("*.yaml")):
        rule_set = load_rule_set(path)
        if rule_set.status is not RuleSetStatus.PUBLISHED and not include_drafts:
            _logger.debug(
                "rule_set_skipped",
                extra={"ruleset_id": rule_set.ruleset_id, "status": rule_set.status.value},
            )
            continue

        validation = validate_rule_set(rule_set)
        _report(rule_set, validation)

        verify_fingerprint_pin(rule_set.ruleset_id, rule_set.checksum, ruleset_dir)

        _logger.info(
            "TAX_CONFIG_TRACE",
            extra={
                "trace_type": "TAX_CONFIG_TRACE",
                "ruleset_id": rule_set.ruleset_id,
                "tax_year": rule_set.tax_year,
                "ruleset_version": rule_set.version,
                "status": rule_set.status.value,
                "checksum": rule_set.checksum,
                "entry_count": len(rule_set.entries),
                "penalty_schedule_count": len(rule_set.penalty_schedules),
                "warning_count": len(validation.warnings),
            },
        )
        loaded.append(rule_set)

    return tuple(sorted(loaded, key=lambda r: r.tax_year))


def build_rate_table(rule_sets: tuple[RuleSet, ...] | list[RuleSet]) -> RateTable:
    """Merge already-loaded rule sets into one RateTable."""
    return RateTable(
        entries=(e for r in rule_sets for e in r.entries),
        penalty_schedules=(s for r in rule_sets for s in r.penalty_schedules),
        thresholds=(t for r in rule_sets for t in r.thresholds),
        rule_sets=(r.info for r in rule_sets),
    )


def load_rate_table(
    directory: Path | str | None = None,
    include_drafts: bool = False,
) -> RateTable:
    """
    The public rule-data entrypoint.

    Guarantees:
        - The returned RateTable contains only validated, pin-checked
          rule sets.
        - A ``TAX_CONFIG_TRACE`` log entry is emitted per rule set loaded.

    Non-goals:
        - Does not cache; see ``get_default_rate_table`` for the cached
          packaged table.
    """
    return build_rate_table(load_rule_sets(directory, include_drafts=include_drafts))


@lru_cache(maxsize=None)
def _cached_table(directory: str) -> RateTable:
    return load_rate_table(directory)


def get_default_rate_table() -> RateTable:
    """Process-wide RateTable for the configured directory, loaded once."""
    return _cached_table(str(rulesets_directory()))


def _report(rule_set: RuleSet, validation: RuleSetValidationResult) -> None:
    for warning in validation.warnings:
        _logger.warning(
            "rule_set_warning",
            extra={"ruleset_id": rule_set.ruleset_id, "warning": warning},
        )
    if not validation.is_valid:
        _logger.error(
            "rule_set_invalid",
            extra={"ruleset_id": rule_set.ruleset_id, "errors": validation.errors},
        )
        raise InvalidRateTableError(validation.errors, source=rule_set.source or rule_set.ruleset_id)


__all__ = [
    "DATABASE_URL_ENV",
    "RULESETS_DIR_ENV",
    "RuleSet",
    "RuleSetStatus",
    "RuleSetValidationResult",
    "build_rate_table",
    "compute_checksum",
    "get_database_url",
    "get_default_rate_table",
    "load_rate_table",
    "load_rule_sets",
    "rulesets_directory",
    "validate_rule_set",
]

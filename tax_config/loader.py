"""
Rule-set loader (``tax_config.loader``).

Responsibility
--------------
Loads one Finance Act YAML file and parses it into a ``RuleSet`` of kernel
domain objects.  Build/test tooling: runtime callers go through
``tax_config.load_rate_table()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel domain
types only; never on engines or services.

Invariants enforced
-------------------
* Every numeric value is parsed to ``Decimal`` from a string or integer.
  YAML floats are rejected so ``0.1`` never passes through binary float;
  rates must be quoted.
* Parsing is exhaustive: every malformed entry in a file is reported in a
  single ``InvalidRateTableError`` rather than stopping at the first one.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the source
  document for identity and fingerprint pinning.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or malformed fields  -> ``InvalidRateTableError`` listing all of
  them, with the file path as ``source``.

YAML layout::

    ruleset_id: SL-FA2025
    tax_year: 2025
    version: FA2025.1
    status: published
    thresholds: {large: "2000000000", medium: "500000000", ...}
    rates:
      income_tax:
        individual: {brackets: [{lower: "0", upper: "600000", rate: "0"}, ...]}
        large: {rate: "0.30", minimum_tax_rate: "0.005"}
      withholding_tax:
        "dividends:resident": {rate: "0.15"}
      excise_duty:
        cigarettes: {rate: "150", duty_basis: specific}
    penalties:
      income_tax:
        annual_interest_rate: "0.15"
        bands: [{name: "1-30 days", min_days: 1, max_days: 30, rate: "0.05"}, ...]
        late_filing_bands: [{name: "late filing", min_days: 1, rate: "0.05", minimum_amount: "50000"}]

Audit relevance
---------------
The checksum is carried into ``RuleSetInfo`` and every ``TAX_CONFIG_TRACE``
log entry, tying each loaded RateTable back to an exact YAML document.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

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
    to_decimal,
)
from tax_kernel.exceptions import InvalidRateTableError, InvalidRequestError
from tax_config.schema import RuleSet, RuleSetStatus

_REQUIRED_ROOT_KEYS = ("ruleset_id", "tax_year", "version")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def parse_decimal(value: Any, field: str) -> Decimal:
    """Parse a YAML scalar to Decimal; floats are refused."""
    if isinstance(value, float):
        raise ValueError(f"{field}: unquoted float {value!r}; quote decimal values")
    try:
        return to_decimal(value, field)
    except InvalidRequestError as exc:
        raise ValueError(f"{field}: {exc.reason}") from exc


def _optional_decimal(data: dict[str, Any], key: str, field: str) -> Decimal | None:
    value = data.get(key)
    if value is None:
        return None
    return parse_decimal(value, f"{field}.{key}")


def parse_date(value: Any) -> date | None:
    """Parse an ISO date; YAML may already have produced a ``date``."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_bracket(data: dict[str, Any], field: str) -> Bracket:
    upper = data.get("upper")
    return Bracket(
        lower=parse_decimal(data["lower"], f"{field}.lower"),
        upper=None if upper is None else parse_decimal(upper, f"{field}.upper"),
        rate=parse_decimal(data["rate"], f"{field}.rate"),
    )


def parse_rate_entry(
    tax_type: TaxType,
    category: str,
    data: dict[str, Any],
    tax_year: int,
    default_version: str,
) -> RateEntry:
    """Parse one ``rates.<tax_type>.<category>`` mapping."""
    field = f"{tax_type.value}.{category}"
    brackets = tuple(
        parse_bracket(b, f"{field}.brackets[{i}]")
        for i, b in enumerate(data.get("brackets") or ())
    )
    basis = data.get("duty_basis")
    return RateEntry(
        tax_type=tax_type,
        tax_year=tax_year,
        category=str(category),
        version=str(data.get("version", default_version)),
        rate=_optional_decimal(data, "rate", field),
        brackets=brackets,
        minimum_tax_rate=_optional_decimal(data, "minimum_tax_rate", field),
        alternative_minimum_rate=_optional_decimal(data, "alternative_minimum_rate", field),
        levy_rate=_optional_decimal(data, "levy_rate", field),
        duty_basis=None if basis is None else DutyBasis(basis),
        description=data.get("description", ""),
    )


def parse_penalty_bands(items: Any, field: str) -> tuple[PenaltyBand, ...]:
    bands = []
    for i, b in enumerate(items or ()):
        band_field = f"{field}[{i}]"
        bands.append(
            PenaltyBand(
                name=str(b["name"]),
                min_days=int(b["min_days"]),
                max_days=None if b.get("max_days") is None else int(b["max_days"]),
                rate=parse_decimal(b["rate"], f"{band_field}.rate"),
                minimum_amount=_optional_decimal(b, "minimum_amount", band_field),
            )
        )
    return tuple(bands)


def parse_penalty_schedule(
    tax_type: TaxType,
    data: dict[str, Any],
    tax_year: int,
    default_version: str,
) -> PenaltySchedule:
    """Parse one ``penalties.<tax_type>`` mapping."""
    field = f"penalties.{tax_type.value}"
    return PenaltySchedule(
        tax_type=tax_type,
        tax_year=tax_year,
        version=str(data.get("version", default_version)),
        bands=parse_penalty_bands(data.get("bands"), f"{field}.bands"),
        annual_interest_rate=parse_decimal(
            data["annual_interest_rate"], f"{field}.annual_interest_rate"
        ),
        interest_mode=InterestMode(data.get("interest_mode", InterestMode.SIMPLE.value)),
        description=data.get("description", ""),
        late_filing_bands=parse_penalty_bands(
            data.get("late_filing_bands"), f"{field}.late_filing_bands"
        ),
    )


def parse_threshold(category: str, value: Any, tax_year: int) -> CategoryThreshold:
    return CategoryThreshold(
        tax_year=tax_year,
        category=TaxpayerCategory(category),
        min_turnover=parse_decimal(value, f"thresholds.{category}"),
    )


def parse_rule_set(data: dict[str, Any], source: str = "") -> RuleSet:
    """
    Parse a whole rule-set document.

    Every entry is attempted; all problems are gathered and raised together
    as one ``InvalidRateTableError``.
    """
    missing = [k for k in _REQUIRED_ROOT_KEYS if data.get(k) in (None, "")]
    if missing:
        raise InvalidRateTableError(
            [f"missing required key '{k}'" for k in missing], source=source or None
        )

    errors: list[str] = []
    tax_year = int(data["tax_year"])
    version = str(data["version"])

    def attempt(label: str, parse):
        try:
            return parse()
        except InvalidRateTableError as exc:
            errors.extend(exc.errors)
        except KeyError as exc:
            errors.append(f"{label}: missing required key {exc}")
        except (ValueError, TypeError) as exc:
            errors.append(f"{label}: {exc}")
        return None

    entries: list[RateEntry] = []
    for type_key, by_category in (data.get("rates") or {}).items():
        tax_type = attempt(f"rates.{type_key}", lambda: TaxType(type_key))
        if tax_type is None:
            continue
        for category, entry_data in (by_category or {}).items():
            entry = attempt(
                f"rates.{type_key}.{category}",
                lambda: parse_rate_entry(tax_type, category, entry_data, tax_year, version),
            )
            if entry is not None:
                entries.append(entry)

    schedules: list[PenaltySchedule] = []
    for type_key, schedule_data in (data.get("penalties") or {}).items():
        schedule = attempt(
            f"penalties.{type_key}",
            lambda: parse_penalty_schedule(TaxType(type_key), schedule_data, tax_year, version),
        )
        if schedule is not None:
            schedules.append(schedule)

    thresholds: list[CategoryThreshold] = []
    for category, value in (data.get("thresholds") or {}).items():
        threshold = attempt(
            f"thresholds.{category}", lambda: parse_threshold(category, value, tax_year)
        )
        if threshold is not None:
            thresholds.append(threshold)

    status = attempt(
        "status", lambda: RuleSetStatus(data.get("status", RuleSetStatus.DRAFT.value))
    )
    effective_from = attempt("effective_from", lambda: parse_date(data.get("effective_from")))

    if errors:
        raise InvalidRateTableError(errors, source=source or str(data["ruleset_id"]))

    return RuleSet(
        ruleset_id=str(data["ruleset_id"]),
        tax_year=tax_year,
        version=version,
        status=status,
        jurisdiction=str(data.get("jurisdiction", "")),
        effective_from=effective_from,
        description=data.get("description", ""),
        entries=tuple(entries),
        penalty_schedules=tuple(schedules),
        thresholds=tuple(thresholds),
        notes=tuple(data.get("notes") or ()),
        checksum=compute_checksum(data),
        source=source,
    )


def load_rule_set(path: Path) -> RuleSet:
    """Load and parse one rule-set YAML file."""
    return parse_rule_set(load_yaml_file(path), source=str(path))


def compute_checksum(data: Any) -> str:
    """Compute a deterministic SHA-256 checksum of configuration data."""
    serialized = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode()).hexdigest()

"""
Rule-set integrity -- checksum pinning for approved rule sets.

When a rule-set directory contains an APPROVED_FINGERPRINT file, every
rule set it names must load with exactly the pinned checksum.  This stops
unreviewed or accidental edits to an approved Finance Act year.

The pin file holds one line per rule set::

    SL-FA2025 3f5a...e9

Blank lines and lines starting with ``#`` are ignored.  Rule sets not
named in the file, or a directory without a pin file, are not checked
(draft/dev workflow).
"""

from __future__ import annotations

from pathlib import Path

from tax_kernel.exceptions import RateTableIntegrityError

PINFILE_NAME = "APPROVED_FINGERPRINT"


def read_pinned_fingerprints(ruleset_dir: Path) -> dict[str, str]:
    """Read the APPROVED_FINGERPRINT file of a rule-set directory.

    Returns:
        Mapping of ruleset_id to pinned SHA-256 hex string; empty if no pin
        file exists.
    """
    pin_path = ruleset_dir / PINFILE_NAME
    if not pin_path.is_file():
        return {}
    pins: dict[str, str] = {}
    for raw in pin_path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        ruleset_id, _, fingerprint = line.partition(" ")
        pins[ruleset_id] = fingerprint.strip()
    return pins


def verify_fingerprint_pin(ruleset_id: str, checksum: str, ruleset_dir: Path) -> None:
    """Verify that a loaded rule set matches its pin.

    No-op if there is no pin for ``ruleset_id``.

    Raises:
        RateTableIntegrityError: If a pin exists and the checksum differs.
    """
    pinned = read_pinned_fingerprints(ruleset_dir).get(ruleset_id)
    if pinned is None:
        return
    if checksum != pinned:
        raise RateTableIntegrityError(ruleset_id=ruleset_id, expected=pinned, actual=checksum)

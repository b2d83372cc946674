"""
Typed Exception Hierarchy for the Tax Calculation Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A tax assessment that fails must say exactly why. Callers (filing workflows,
reporting, the assessment engine itself) decide what to do by exception TYPE
and CODE, never by parsing message text:

  1. Every error has a typed exception class (catch by type, not message)
  2. Every exception has a CODE class attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (tax type, year, field, amount)

Example:
    try:
        entry = rate_table.lookup(TaxType.GST, 2025, "large")
    except RateNotFoundError as e:
        api_response(code=e.code, tax_type=e.tax_type, year=e.tax_year)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TaxEngineError (base)
    |
    +-- InvalidRequestError
    |   +-- InvalidAmountError
    |   +-- UnsupportedTaxTypeError
    |
    +-- RateError
        +-- RateNotFoundError
        +-- InvalidRateTableError
        +-- RateTableIntegrityError
        +-- TaxYearLockedError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Request         | INVALID_REQUEST               | Missing or malformed input facts
                | INVALID_AMOUNT                | Negative or non-numeric amount
----------------|-------------------------------|---------------------------------------
Obligation      | UNSUPPORTED_TAX_TYPE          | Category does not owe this tax type
----------------|-------------------------------|---------------------------------------
Rates           | RATE_NOT_FOUND                | No entry for (tax type, year, category)
                | INVALID_RATE_TABLE            | Rule set failed load-time validation
                | RATE_TABLE_INTEGRITY_MISMATCH | Rule set checksum differs from pin
                | TAX_YEAR_LOCKED               | Writing rates of an assessed year

===============================================================================
PROPAGATION
===============================================================================

Direct callers of a calculator receive these errors as raised. The
ComprehensiveAssessmentEngine catches InvalidRequestError, RateNotFoundError
and UnsupportedTaxTypeError per tax type and records them as
PartialCalculationFailure entries (carrying the ``code``) so that one missing
rate never blocks a whole client's report.
===============================================================================
"""

from decimal import Decimal


class TaxEngineError(Exception):
    """
    Base exception for all tax engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "TAX_ENGINE_ERROR"


# Request validation


class InvalidRequestError(TaxEngineError):
    """Input facts are missing, malformed or out of range."""

    code: str = "INVALID_REQUEST"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid request field '{field}': {reason}")


class InvalidAmountError(InvalidRequestError):
    """A monetary amount is negative where only non-negative values are legal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Decimal | str, reason: str = "must be >= 0"):
        self.amount = str(amount)
        super().__init__(field, f"{reason} (got {amount})")


# Obligations


class UnsupportedTaxTypeError(InvalidRequestError):
    """
    The taxpayer category does not owe the requested tax type.

    A request for a tax the category does not owe is itself an invalid
    request, so this is catchable as InvalidRequestError too.
    """

    code: str = "UNSUPPORTED_TAX_TYPE"

    def __init__(self, tax_type: str, category: str):
        self.tax_type = tax_type
        self.category = category
        super().__init__(
            "category",
            f"tax type {tax_type} is not applicable to taxpayer category {category}",
        )


# Rate data


class RateError(TaxEngineError):
    """Base exception for rate-table errors."""

    code: str = "RATE_ERROR"


class RateNotFoundError(RateError):
    """
    No rate entry exists for the exact (tax type, tax year, category).

    Lookups never fall back to another year or a similar category.
    """

    code: str = "RATE_NOT_FOUND"

    def __init__(self, tax_type: str, tax_year: int, category: str | None = None):
        self.tax_type = tax_type
        self.tax_year = tax_year
        self.category = category
        detail = f" category={category}" if category is not None else ""
        super().__init__(
            f"No rate found for {tax_type} in tax year {tax_year}{detail}"
        )


class InvalidRateTableError(RateError):
    """Rule set failed structural validation at load time."""

    code: str = "INVALID_RATE_TABLE"

    def __init__(self, errors: list[str], source: str | None = None):
        self.errors = list(errors)
        self.source = source
        origin = f" ({source})" if source else ""
        super().__init__(
            f"Rate table{origin} failed validation with {len(self.errors)} error(s): "
            + "; ".join(self.errors)
        )


class RateTableIntegrityError(RateError):
    """Loaded rule set checksum does not match the approved fingerprint."""

    code: str = "RATE_TABLE_INTEGRITY_MISMATCH"

    def __init__(self, ruleset_id: str, expected: str, actual: str):
        self.ruleset_id = ruleset_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Rule set '{ruleset_id}' integrity check failed: "
            f"expected checksum {expected[:16]}..., got {actual[:16]}..."
        )


class TaxYearLockedError(RateError):
    """
    Attempted to change rate data for a tax year that has been assessed.

    Rules for an assessed year must not be retroactively mutated; a new
    year (or a new rule-set version for an unlocked year) is required.
    """

    code: str = "TAX_YEAR_LOCKED"

    def __init__(self, tax_year: int, entity_type: str, operation: str):
        self.tax_year = tax_year
        self.entity_type = entity_type
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity_type} for tax year {tax_year}: "
            f"the year is locked"
        )

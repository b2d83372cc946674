"""
ORM-Level Tax-Year Immutability.

===============================================================================
WHY THIS EXISTS
===============================================================================

An assessment is only reproducible if the rules it used still say the same
thing tomorrow.  Once a tax year has been assessed it is locked (a
``TaxYearLock`` row), and from then on its rate entries, brackets, penalty
schedules, penalty bands and category thresholds cannot be inserted,
updated or deleted.  Legislative changes go into a new year's rule set.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_insert / before_update / before_delete]
         |
         +--> _check_rate_row() --> tax year locked? --> TaxYearLockedError
         |
         v
    SQL sent to database (only if checks pass)

Locks themselves are permanent: updating or deleting a TaxYearLock row is
rejected the same way.

Listeners are registered explicitly with ``register_immutability_listeners()``
and removed with ``unregister_immutability_listeners()`` (tests only).
"""

from sqlalchemy import event, func, select
from sqlalchemy.orm.attributes import get_history

from tax_kernel.exceptions import TaxYearLockedError
from tax_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _year_is_locked(connection, tax_year: int) -> bool:
    from tax_kernel.models.rates import TaxYearLock

    table = TaxYearLock.__table__
    count = connection.execute(
        select(func.count()).select_from(table).where(table.c.tax_year == tax_year)
    ).scalar()
    return bool(count)


def _years_touched(target) -> set[int]:
    """Current tax year plus the pre-change value when it is being edited."""
    years = {target.tax_year}
    history = get_history(target, "tax_year")
    years.update(y for y in history.deleted if y is not None)
    return years


def _block(target, tax_year: int, operation: str) -> None:
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id) if target.id else None,
            "operation": operation,
            "locked_tax_year": tax_year,
        },
    )
    raise TaxYearLockedError(tax_year=tax_year, entity_type=entity_type, operation=operation)


def _check_rate_row(operation: str):
    def listener(mapper, connection, target):
        for year in sorted(y for y in _years_touched(target) if y is not None):
            if _year_is_locked(connection, year):
                _block(target, year, operation)

    listener.__name__ = f"_check_rate_row_{operation.lower()}"
    return listener


_check_insert = _check_rate_row("INSERT")
_check_update = _check_rate_row("UPDATE")
_check_delete = _check_rate_row("DELETE")


def _check_lock_update(mapper, connection, target):
    _block(target, target.tax_year, "UPDATE")


def _check_lock_delete(mapper, connection, target):
    _block(target, target.tax_year, "DELETE")


def _protected_models():
    from tax_kernel.models.rates import (
        CategoryThresholdRecord,
        PenaltyBandRecord,
        PenaltyScheduleRecord,
        TaxBracketRecord,
        TaxRateRecord,
    )

    return (
        TaxRateRecord,
        TaxBracketRecord,
        PenaltyScheduleRecord,
        PenaltyBandRecord,
        CategoryThresholdRecord,
    )


def register_immutability_listeners() -> None:
    """
    Register tax-year lock enforcement listeners.

    Call after models are imported and before any rate data is written.
    Safe to call more than once.
    """
    from tax_kernel.models.rates import TaxYearLock

    for model in _protected_models():
        for event_name, fn in (
            ("before_insert", _check_insert),
            ("before_update", _check_update),
            ("before_delete", _check_delete),
        ):
            if not event.contains(model, event_name, fn):
                event.listen(model, event_name, fn)

    if not event.contains(TaxYearLock, "before_update", _check_lock_update):
        event.listen(TaxYearLock, "before_update", _check_lock_update)
    if not event.contains(TaxYearLock, "before_delete", _check_lock_delete):
        event.listen(TaxYearLock, "before_delete", _check_lock_delete)


def _safe_remove_listener(target, event_name, listener_fn) -> None:
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove tax-year lock listeners.

    WARNING: Only use this in tests that must bypass the lock deliberately.
    """
    from tax_kernel.models.rates import TaxYearLock

    for model in _protected_models():
        _safe_remove_listener(model, "before_insert", _check_insert)
        _safe_remove_listener(model, "before_update", _check_update)
        _safe_remove_listener(model, "before_delete", _check_delete)
    _safe_remove_listener(TaxYearLock, "before_update", _check_lock_update)
    _safe_remove_listener(TaxYearLock, "before_delete", _check_lock_delete)

"""
ORM-level protection for append-only rows.

StockMovement and the status-history logs are insert-only. Any UPDATE or
DELETE of such a row that goes through the session is stopped before SQL is
emitted:

    session.flush()
         |
         v
    [before_update / before_delete] --> ImmutableRecordError
         |
         v
    SQL sent to database (only for inserts)

Bulk ``query.update()`` / raw SQL bypasses mapper events; the services never
issue those against these tables.
"""
import logging

from sqlalchemy import event
from sqlalchemy.orm import object_session

from branchstock.exceptions import ImmutableRecordError
from branchstock.models.inventory import StockMovement
from branchstock.models.purchase import PurchaseStatusHistory
from branchstock.models.transfer import TransferStatusHistory

logger = logging.getLogger(__name__)

APPEND_ONLY_MODELS = (StockMovement, PurchaseStatusHistory, TransferStatusHistory)


def _reject_update(mapper, connection, target):
    session = object_session(target)
    # Relationship-only churn marks a row dirty without changing a column.
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    logger.error("Blocked UPDATE of append-only %s %s", mapper.class_.__name__, target.id)
    raise ImmutableRecordError(
        f"{mapper.class_.__name__} rows are append-only and cannot be modified",
        {"model": mapper.class_.__name__, "id": str(target.id), "operation": "update"},
    )


def _reject_delete(mapper, connection, target):
    logger.error("Blocked DELETE of append-only %s %s", mapper.class_.__name__, target.id)
    raise ImmutableRecordError(
        f"{mapper.class_.__name__} rows are append-only and cannot be deleted",
        {"model": mapper.class_.__name__, "id": str(target.id), "operation": "delete"},
    )


def register_immutability_listeners() -> None:
    """Attach the listeners (safe to call more than once)."""
    for model in APPEND_ONLY_MODELS:
        if not event.contains(model, "before_update", _reject_update):
            event.listen(model, "before_update", _reject_update)
        if not event.contains(model, "before_delete", _reject_delete):
            event.listen(model, "before_delete", _reject_delete)

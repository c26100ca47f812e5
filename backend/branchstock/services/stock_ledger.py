"""
Stock ledger service - the only writer of StockMovement and StockEntry.

Every append runs inside the caller's transaction:

    1. lock the StockEntry row for the key (SELECT ... FOR UPDATE), creating
       it inside a SAVEPOINT on first use
    2. check the sign convention and the non-negative invariant
    3. insert the movement with the next per-key sequence and balance_after
    4. update the entry quantity and flush

Nothing is committed here; the route's ``atomic`` block commits the movement,
the cache and the document status together.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.exc import StaleDataError

from branchstock.database import utcnow
from branchstock.exceptions import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from branchstock.models import MovementReference, StockEntry, StockKey, StockMovement
from branchstock.models.enums import MOVEMENT_SIGN, MovementType, ReferenceKind

logger = logging.getLogger(__name__)


@dataclass
class MovementFilter:
    """Filters accepted by the movement readers."""

    product_id: Optional[UUID] = None
    variant_sku: Optional[str] = None
    branch_id: Optional[UUID] = None
    movement_type: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @property
    def key_scoped(self) -> bool:
        """Product and branch pinned: results are returned in replay order."""
        return self.product_id is not None and self.branch_id is not None


@dataclass
class ReplayResult:
    key: StockKey
    movement_count: int
    computed_quantity: int
    cached_quantity: Optional[int]
    # Sequences whose stored balance_after disagrees with the running sum
    mismatched_sequences: List[int] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.mismatched_sequences and self.computed_quantity == (self.cached_quantity or 0)


class StockLedger:
    """Append-only ledger plus its balance cache"""

    # ------------------------------------------------------------------
    # Balance cache
    # ------------------------------------------------------------------

    @staticmethod
    def _entry_query(db: Session, key: StockKey) -> Query:
        return db.query(StockEntry).filter(
            StockEntry.product_id == key.product_id,
            StockEntry.variant_sku == key.sku,
            StockEntry.branch_id == key.branch_id,
        )

    @staticmethod
    def get_entry(db: Session, key: StockKey) -> Optional[StockEntry]:
        return StockLedger._entry_query(db, key).first()

    @staticmethod
    def get_quantity(db: Session, key: StockKey) -> int:
        """Current quantity for a key (0 when no movement was ever posted)."""
        row = (
            db.query(StockEntry.quantity)
            .filter(
                StockEntry.product_id == key.product_id,
                StockEntry.variant_sku == key.sku,
                StockEntry.branch_id == key.branch_id,
            )
            .first()
        )
        return int(row[0]) if row else 0

    @staticmethod
    def lock_entry(db: Session, key: StockKey) -> StockEntry:
        """
        Return the StockEntry for ``key`` with its row lock held.

        A missing entry is inserted inside a SAVEPOINT; if a concurrent
        transaction inserted it first the unique key rejects ours and the
        existing row is locked instead.
        """
        entry = StockLedger._entry_query(db, key).with_for_update().populate_existing().first()
        if entry is not None:
            return entry
        try:
            with db.begin_nested():
                db.add(StockEntry(
                    product_id=key.product_id,
                    variant_sku=key.sku,
                    branch_id=key.branch_id,
                    quantity=0,
                    movement_count=0,
                ))
        except IntegrityError:
            logger.debug("StockEntry for %s created concurrently; locking existing row", key)
        entry = StockLedger._entry_query(db, key).with_for_update().populate_existing().first()
        if entry is None:
            raise ConflictError("Stock entry could not be locked", {"product_id": str(key.product_id)})
        return entry

    @staticmethod
    def locked_quantity(db: Session, key: StockKey) -> int:
        """Current quantity with the entry lock held (no entry is created)."""
        entry = StockLedger._entry_query(db, key).with_for_update().populate_existing().first()
        return entry.quantity if entry is not None else 0

    @staticmethod
    def check_available(db: Session, key: StockKey, quantity: int) -> int:
        """Read-only availability check. Returns current quantity."""
        available = StockLedger.get_quantity(db, key)
        if available < quantity:
            raise InsufficientStockError(key.product_id, key.branch_id, available, quantity, key.variant_sku)
        return available

    @staticmethod
    def set_reorder_levels(
        db: Session,
        entry_id: UUID,
        reorder_point: Optional[int],
        reorder_quantity: Optional[int] = None,
    ) -> StockEntry:
        """Update reorder settings only; quantity is never written here."""
        if reorder_point is not None and reorder_point < 0:
            raise ValidationError("reorderPoint cannot be negative")
        if reorder_quantity is not None and reorder_quantity < 0:
            raise ValidationError("reorderQuantity cannot be negative")
        entry = db.query(StockEntry).filter(StockEntry.id == entry_id).with_for_update().first()
        if entry is None:
            raise NotFoundError("StockEntry", entry_id)
        entry.reorder_point = reorder_point
        entry.reorder_quantity = reorder_quantity
        try:
            db.flush()
        except StaleDataError as exc:
            raise ConflictError("Stock entry was modified concurrently") from exc
        return entry

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_sign(movement_type: MovementType, quantity: int) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Movement quantity must be an integer", {"quantity": quantity})
        if quantity == 0:
            raise ValidationError("Movement quantity cannot be zero")
        sign = MOVEMENT_SIGN[movement_type]
        if sign > 0 and quantity < 0:
            raise ValidationError(
                f"{movement_type.value} movements must be positive",
                {"type": movement_type.value, "quantity": quantity},
            )
        if sign < 0 and quantity > 0:
            raise ValidationError(
                f"{movement_type.value} movements must be negative",
                {"type": movement_type.value, "quantity": quantity},
            )

    @staticmethod
    def append_movement(
        db: Session,
        key: StockKey,
        movement_type,
        quantity: int,
        reference: MovementReference,
        actor_id: UUID,
        *,
        cost_per_unit: Optional[Decimal] = None,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        absolute: bool = False,
    ) -> StockMovement:
        """
        Append one movement and update the balance cache for its key.

        Raises InsufficientStockError (nothing written) when the result would
        be negative. ``absolute`` marks a movement computed from an absolute
        target (set adjustment, recount); a negative result is then a bad
        target and raises ValidationError instead.
        """
        try:
            movement_type = MovementType(movement_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown movement type: {movement_type}") from exc
        if not isinstance(reference, MovementReference):
            raise ValidationError("Movement reference must be a MovementReference")
        StockLedger._validate_sign(movement_type, quantity)

        entry = StockLedger.lock_entry(db, key)
        previous = entry.quantity
        new_balance = previous + quantity
        if new_balance < 0:
            if absolute:
                raise ValidationError(
                    "Target quantity cannot be negative",
                    {"product_id": str(key.product_id), "target": new_balance},
                )
            raise InsufficientStockError(key.product_id, key.branch_id, previous, -quantity, key.variant_sku)

        now = utcnow()
        entry.movement_count = (entry.movement_count or 0) + 1
        movement = StockMovement(
            stock_entry_id=entry.id,
            sequence=entry.movement_count,
            product_id=key.product_id,
            variant_sku=key.sku,
            branch_id=key.branch_id,
            movement_type=movement_type.value,
            quantity=quantity,
            balance_after=new_balance,
            cost_per_unit=cost_per_unit,
            reference_type=ReferenceKind(reference.kind).value,
            reference_id=reference.id,
            actor_id=actor_id,
            reason=reason,
            notes=notes,
            created_at=now,
        )
        entry.quantity = new_balance
        entry.last_movement_at = now
        db.add(movement)
        try:
            db.flush()
        except (StaleDataError, IntegrityError) as exc:
            logger.warning("Concurrent append detected for %s: %s", key, exc)
            raise ConflictError(
                "Stock for this item was modified concurrently; retry the action",
                {"product_id": str(key.product_id), "branch_id": str(key.branch_id)},
            ) from exc

        logger.debug(
            "Ledger %s %+d for %s/%s@%s -> %d (seq %d)",
            movement_type.value, quantity, key.product_id, key.sku or "-", key.branch_id,
            new_balance, movement.sequence,
        )
        return movement

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def list_entries(
        db: Session,
        branch_id: Optional[UUID] = None,
        product_id: Optional[UUID] = None,
        variant_sku: Optional[str] = None,
        low_stock_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[StockEntry], int]:
        query = db.query(StockEntry)
        if branch_id:
            query = query.filter(StockEntry.branch_id == branch_id)
        if product_id:
            query = query.filter(StockEntry.product_id == product_id)
        if variant_sku is not None:
            query = query.filter(StockEntry.variant_sku == variant_sku)
        if low_stock_only:
            query = query.filter(
                StockEntry.reorder_point.isnot(None),
                StockEntry.quantity <= StockEntry.reorder_point,
            )
        total = query.count()
        items = (
            query.order_by(StockEntry.branch_id, StockEntry.product_id, StockEntry.variant_sku)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def low_stock(db: Session, branch_id: Optional[UUID] = None) -> List[StockEntry]:
        """Entries at or below their reorder point, emptiest first."""
        query = db.query(StockEntry).filter(
            StockEntry.reorder_point.isnot(None),
            StockEntry.quantity <= StockEntry.reorder_point,
        )
        if branch_id:
            query = query.filter(StockEntry.branch_id == branch_id)
        return query.order_by(StockEntry.quantity.asc(), StockEntry.product_id).all()

    @staticmethod
    def get_movement(db: Session, movement_id: UUID) -> StockMovement:
        movement = db.get(StockMovement, movement_id)
        if movement is None:
            raise NotFoundError("StockMovement", movement_id)
        return movement

    @staticmethod
    def _movement_query(db: Session, filters: MovementFilter) -> Query:
        query = db.query(StockMovement)
        if filters.product_id:
            query = query.filter(StockMovement.product_id == filters.product_id)
        if filters.variant_sku is not None:
            query = query.filter(StockMovement.variant_sku == filters.variant_sku)
        if filters.branch_id:
            query = query.filter(StockMovement.branch_id == filters.branch_id)
        if filters.movement_type:
            query = query.filter(StockMovement.movement_type == filters.movement_type)
        if filters.reference_type:
            query = query.filter(StockMovement.reference_type == filters.reference_type)
        if filters.reference_id:
            query = query.filter(StockMovement.reference_id == filters.reference_id)
        if filters.start_date:
            query = query.filter(StockMovement.created_at >= filters.start_date)
        if filters.end_date:
            query = query.filter(StockMovement.created_at <= filters.end_date)
        return query

    @staticmethod
    def _ordered(query: Query, filters: MovementFilter) -> Query:
        if filters.key_scoped:
            return query.order_by(StockMovement.variant_sku.asc(), StockMovement.sequence.asc())
        return query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())

    @staticmethod
    def _after(query: Query, filters: MovementFilter, cursor: StockMovement) -> Query:
        """Keyset condition: rows strictly after ``cursor`` in listing order."""
        if filters.key_scoped:
            return query.filter(or_(
                StockMovement.variant_sku > cursor.variant_sku,
                and_(
                    StockMovement.variant_sku == cursor.variant_sku,
                    StockMovement.sequence > cursor.sequence,
                ),
            ))
        return query.filter(or_(
            StockMovement.created_at < cursor.created_at,
            and_(
                StockMovement.created_at == cursor.created_at,
                StockMovement.id < cursor.id,
            ),
        ))

    @staticmethod
    def list_movements(
        db: Session,
        filters: Optional[MovementFilter] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[StockMovement], int]:
        """One page of movements plus the total count for the filters."""
        filters = filters or MovementFilter()
        query = StockLedger._movement_query(db, filters)
        total = query.count()
        items = (
            StockLedger._ordered(query, filters)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def movements_after(
        db: Session,
        filters: Optional[MovementFilter] = None,
        cursor: Optional[UUID] = None,
        limit: int = 20,
    ) -> Tuple[List[StockMovement], Optional[UUID]]:
        """
        Cursor page: up to ``limit`` movements after the movement ``cursor``.

        Returns the page and the next cursor (None on the last page).
        """
        filters = filters or MovementFilter()
        query = StockLedger._movement_query(db, filters)
        if cursor is not None:
            anchor = db.get(StockMovement, cursor)
            if anchor is None:
                raise ValidationError("Unknown cursor", {"after": str(cursor)})
            query = StockLedger._after(query, filters, anchor)
        rows = StockLedger._ordered(query, filters).limit(limit + 1).all()
        next_cursor = rows[limit - 1].id if len(rows) > limit else None
        return rows[:limit], next_cursor

    @staticmethod
    def iter_movements(
        db: Session,
        filters: Optional[MovementFilter] = None,
        batch_size: int = 500,
    ) -> Iterator[StockMovement]:
        """Lazily walk every matching movement in listing order, one batch per query."""
        cursor = None
        while True:
            batch, cursor = StockLedger.movements_after(db, filters, cursor, batch_size)
            yield from batch
            if cursor is None:
                return

    @staticmethod
    def movements_for_reference(db: Session, kind: ReferenceKind, reference_id: UUID) -> List[StockMovement]:
        return (
            db.query(StockMovement)
            .filter(
                StockMovement.reference_type == ReferenceKind(kind).value,
                StockMovement.reference_id == reference_id,
            )
            .order_by(StockMovement.created_at.asc(), StockMovement.sequence.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Replay
    # ------------------------------------------------------------------

    @staticmethod
    def replay(db: Session, key: StockKey) -> ReplayResult:
        """Recompute the key's running sum from 0 in sequence order."""
        filters = MovementFilter(product_id=key.product_id, variant_sku=key.sku, branch_id=key.branch_id)
        running = 0
        count = 0
        mismatched = []
        for movement in StockLedger.iter_movements(db, filters):
            running += movement.quantity
            count += 1
            if movement.balance_after != running:
                mismatched.append(movement.sequence)
        entry = StockLedger.get_entry(db, key)
        return ReplayResult(
            key=key,
            movement_count=count,
            computed_quantity=running,
            cached_quantity=entry.quantity if entry else None,
            mismatched_sequences=mismatched,
        )

    @staticmethod
    def rebuild_entry(db: Session, key: StockKey) -> StockEntry:
        """Reset the cached quantity from the ledger. Does not commit."""
        entry = StockLedger.lock_entry(db, key)
        result = StockLedger.replay(db, key)
        if result.computed_quantity < 0:
            raise ValidationError(
                "Ledger replay produced a negative quantity",
                {"product_id": str(key.product_id), "quantity": result.computed_quantity},
            )
        if entry.quantity != result.computed_quantity or entry.movement_count != result.movement_count:
            logger.warning(
                "Rebuilding stock entry %s: cached %s -> replayed %s",
                entry.id, entry.quantity, result.computed_quantity,
            )
            entry.quantity = result.computed_quantity
            entry.movement_count = result.movement_count
            try:
                db.flush()
            except StaleDataError as exc:
                raise ConflictError("Stock entry was modified concurrently") from exc
        return entry

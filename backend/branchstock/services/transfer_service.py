"""
Transfer (challan) workflow.

    draft --approve--> approved --dispatch--> dispatched --in_transit--> in_transit
    dispatched | in_transit --receive--> received | partial_received
    draft | approved --cancel--> cancelled

Approve only checks sender stock. Dispatch is the single sender debit
(`transfer_out`), receive the single receiver credit (`transfer_in`). The
transfer row is locked before its status is checked, so each of these steps
applies at most once.
"""
import logging
from collections import Counter
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.orm import Session, selectinload

from branchstock.database import utcnow
from branchstock.exceptions import InvalidStateTransitionError, NotFoundError, ValidationError
from branchstock.models import (
    MovementReference,
    StockKey,
    StockMovement,
    Transfer,
    TransferItem,
    TransferStatusHistory,
)
from branchstock.models.enums import MovementType, ReferenceKind, TransferStatus
from branchstock.schemas.transfer import (
    ReceiveLine,
    TransferApprove,
    TransferCancel,
    TransferCreate,
    TransferDispatch,
    TransferInTransit,
    TransferItemCreate,
    TransferReceive,
    TransferUpdate,
    TransportDetails,
)
from branchstock.services import policy
from branchstock.services.branch_service import BranchService
from branchstock.services.document_service import DocumentService
from branchstock.services.policy import Actor
from branchstock.services.stock_ledger import StockLedger

logger = logging.getLogger(__name__)

DOCUMENT = "transfer"


class TransferService:
    """Service for inter-branch transfers"""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def get_transfer(db: Session, transfer_id: UUID, lock: bool = False) -> Transfer:
        query = db.query(Transfer).options(
            selectinload(Transfer.items),
            selectinload(Transfer.status_history),
        ).filter(Transfer.id == transfer_id)
        if lock:
            query = query.with_for_update(of=Transfer).populate_existing()
        transfer = query.first()
        if transfer is None:
            raise NotFoundError("Transfer", transfer_id)
        return transfer

    @staticmethod
    def find_transfer(db: Session, identifier: str) -> Transfer:
        """Look up by UUID or by challan number."""
        try:
            return TransferService.get_transfer(db, UUID(str(identifier)))
        except ValueError:
            pass
        transfer = (
            db.query(Transfer)
            .options(selectinload(Transfer.items), selectinload(Transfer.status_history))
            .filter(Transfer.challan_number == str(identifier).strip().upper())
            .first()
        )
        if transfer is None:
            raise NotFoundError("Transfer", identifier)
        return transfer

    @staticmethod
    def _record(transfer: Transfer, status: str, actor: Actor, notes: Optional[str] = None) -> None:
        transfer.status = status
        transfer.status_history.append(TransferStatusHistory(
            position=len(transfer.status_history) + 1,
            status=status,
            actor_id=actor.id,
            notes=notes,
        ))

    @staticmethod
    def _require_status(transfer: Transfer, action: str, *allowed: TransferStatus) -> None:
        if transfer.status not in {s.value for s in allowed}:
            raise InvalidStateTransitionError(DOCUMENT, transfer.status, action)

    @staticmethod
    def _authorize(db: Session, actor: Actor, transfer: Transfer, action: str) -> None:
        branch_id = transfer.receiver_branch_id if action == "receive" else transfer.sender_branch_id
        policy.enforce(actor, BranchService.get_branch(db, branch_id), DOCUMENT, action)

    @staticmethod
    def _set_items(transfer: Transfer, items: List[TransferItemCreate]) -> None:
        keys = Counter((item.product_id, item.variant_sku or "") for item in items)
        duplicates = [f"{p}{'/' + v if v else ''}" for (p, v), n in keys.items() if n > 1]
        if duplicates:
            raise ValidationError("Duplicate products in transfer items", {"duplicates": duplicates})
        transfer.items = [
            TransferItem(
                line_number=number,
                product_id=item.product_id,
                variant_sku=item.variant_sku or "",
                quantity=item.quantity,
                carton_number=item.carton_number,
                cost_price=item.cost_price,
                notes=item.notes,
            )
            for number, item in enumerate(items, start=1)
        ]
        transfer.total_items = len(transfer.items)
        transfer.total_quantity = sum(item.quantity for item in transfer.items)

    @staticmethod
    def _set_transport(transfer: Transfer, transport: Optional[TransportDetails]) -> None:
        if transport is not None:
            transfer.transport = transport.model_dump(mode="json", by_alias=True, exclude_none=True)

    @staticmethod
    def _sender_key(transfer: Transfer, item: TransferItem) -> StockKey:
        return StockKey(item.product_id, transfer.sender_branch_id, item.variant_sku or None)

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    @staticmethod
    def create_transfer(
        db: Session,
        actor: Actor,
        data: TransferCreate,
        stock_request_id: Optional[UUID] = None,
        transport: Optional[TransportDetails] = None,
    ) -> Transfer:
        """Create a draft challan. Sender defaults to the head office. Does not commit."""
        if data.sender_branch_id is not None:
            sender = BranchService.get_active_branch(db, data.sender_branch_id)
        else:
            sender = BranchService.require_head_office(db)
        receiver = BranchService.get_active_branch(db, data.receiver_branch_id)
        if sender.id == receiver.id:
            raise ValidationError("Sender and receiver branch must be different")
        policy.enforce(actor, sender, DOCUMENT, "create")

        transfer = Transfer(
            challan_number=DocumentService.get_challan_number(db, sender.id),
            sender_branch_id=sender.id,
            receiver_branch_id=receiver.id,
            stock_request_id=stock_request_id,
            transfer_type=BranchService.transfer_type(sender, receiver),
            document_type=data.document_type.value,
            remarks=data.remarks,
            created_by=actor.id,
        )
        TransferService._set_items(transfer, data.items)
        TransferService._set_transport(transfer, transport)
        TransferService._record(transfer, TransferStatus.DRAFT.value, actor, "Created")
        db.add(transfer)
        db.flush()
        logger.info(
            "Transfer %s created %s -> %s (%d item(s)) by %s",
            transfer.challan_number, sender.code, receiver.code, transfer.total_items, actor.id,
        )
        return transfer

    @staticmethod
    def update_transfer(db: Session, actor: Actor, transfer_id: UUID, data: TransferUpdate) -> Transfer:
        transfer = TransferService.get_transfer(db, transfer_id, lock=True)
        TransferService._authorize(db, actor, transfer, "update")
        TransferService._require_status(transfer, "update", TransferStatus.DRAFT)

        if data.items is not None:
            TransferService._set_items(transfer, data.items)
        if "remarks" in data.model_fields_set:
            transfer.remarks = data.remarks
        if data.document_type is not None:
            transfer.document_type = data.document_type.value
        db.flush()
        logger.info("Transfer %s updated by %s", transfer.challan_number, actor.id)
        return transfer

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @staticmethod
    def approve(db: Session, actor: Actor, transfer_id: UUID, payload: TransferApprove) -> Transfer:
        """Check sender availability for every item. Moves no stock."""
        transfer = TransferService.get_transfer(db, transfer_id, lock=True)
        TransferService._authorize(db, actor, transfer, "approve")
        TransferService._require_status(transfer, "approve", TransferStatus.DRAFT)

        for item in transfer.items:
            StockLedger.check_available(db, TransferService._sender_key(transfer, item), item.quantity)

        transfer.approved_by = actor.id
        transfer.approved_at = utcnow()
        TransferService._record(transfer, TransferStatus.APPROVED.value, actor, payload.notes)
        db.flush()
        logger.info("Transfer %s approved by %s", transfer.challan_number, actor.id)
        return transfer

    @staticmethod
    def dispatch(db: Session, actor: Actor, transfer_id: UUID, payload: TransferDispatch) -> Transfer:
        """Debit the sender for every item; any shortfall aborts the whole dispatch."""
        transfer = TransferService.get_transfer(db, transfer_id, lock=True)
        TransferService._authorize(db, actor, transfer, "dispatch")
        TransferService._require_status(transfer, "dispatch", TransferStatus.APPROVED)

        reference = MovementReference.transfer(transfer.id)
        for item in transfer.items:
            StockLedger.append_movement(
                db,
                TransferService._sender_key(transfer, item),
                MovementType.TRANSFER_OUT,
                -item.quantity,
                reference,
                actor.id,
                cost_per_unit=item.cost_price,
                reason=f"Transfer {transfer.challan_number} dispatched",
            )

        TransferService._set_transport(transfer, payload.transport)
        transfer.dispatched_by = actor.id
        transfer.dispatched_at = utcnow()
        TransferService._record(transfer, TransferStatus.DISPATCHED.value, actor, payload.notes)
        db.flush()
        logger.info("Transfer %s dispatched by %s", transfer.challan_number, actor.id)
        return transfer

    @staticmethod
    def mark_in_transit(db: Session, actor: Actor, transfer_id: UUID, payload: TransferInTransit) -> Transfer:
        transfer = TransferService.get_transfer(db, transfer_id, lock=True)
        TransferService._authorize(db, actor, transfer, "in_transit")
        TransferService._require_status(transfer, "in_transit", TransferStatus.DISPATCHED)

        TransferService._set_transport(transfer, payload.transport)
        TransferService._record(transfer, TransferStatus.IN_TRANSIT.value, actor, payload.notes)
        db.flush()
        logger.info("Transfer %s in transit", transfer.challan_number)
        return transfer

    @staticmethod
    def _received_quantities(transfer: Transfer, lines: Optional[List[ReceiveLine]]) -> Dict[UUID, int]:
        """Per-item received quantity; items without an override are received in full."""
        received = {item.id: item.quantity for item in transfer.items}
        by_key = {(item.product_id, item.variant_sku or ""): item for item in transfer.items}
        by_id = {item.id: item for item in transfer.items}
        overridden = set()
        for line in lines or []:
            line_ref = {
                "itemId": str(line.item_id) if line.item_id else None,
                "productId": str(line.product_id) if line.product_id else None,
            }
            if line.item_id is not None:
                item = by_id.get(line.item_id)
                if item is not None and line.product_id is not None and (
                    (item.product_id, item.variant_sku or "") != (line.product_id, line.variant_sku or "")
                ):
                    raise ValidationError("itemId and productId name different transfer items", line_ref)
            else:
                item = by_key.get((line.product_id, line.variant_sku or ""))
            if item is None:
                raise ValidationError("Receive line does not match any transfer item", line_ref)
            if item.id in overridden:
                raise ValidationError("Transfer item listed more than once", {"itemId": str(item.id)})
            overridden.add(item.id)
            if line.quantity_received > item.quantity:
                raise ValidationError(
                    "quantityReceived cannot exceed the dispatched quantity",
                    {"itemId": str(item.id), "quantity": item.quantity, "quantityReceived": line.quantity_received},
                )
            received[item.id] = line.quantity_received
        return received

    @staticmethod
    def receive(db: Session, actor: Actor, transfer_id: UUID, payload: TransferReceive) -> Transfer:
        """Credit the receiver with what actually arrived; under-receipt ends as partial_received."""
        transfer = TransferService.get_transfer(db, transfer_id, lock=True)
        TransferService._authorize(db, actor, transfer, "receive")
        TransferService._require_status(transfer, "receive", TransferStatus.DISPATCHED, TransferStatus.IN_TRANSIT)

        received = TransferService._received_quantities(transfer, payload.items)
        reference = MovementReference.transfer(transfer.id)
        for item in transfer.items:
            quantity = received[item.id]
            item.quantity_received = quantity
            if quantity > 0:
                StockLedger.append_movement(
                    db,
                    StockKey(item.product_id, transfer.receiver_branch_id, item.variant_sku or None),
                    MovementType.TRANSFER_IN,
                    quantity,
                    reference,
                    actor.id,
                    cost_per_unit=item.cost_price,
                    reason=f"Transfer {transfer.challan_number} received",
                )

        complete = all(received[item.id] == item.quantity for item in transfer.items)
        status = TransferStatus.RECEIVED if complete else TransferStatus.PARTIAL_RECEIVED
        transfer.received_by = actor.id
        transfer.received_at = utcnow()
        TransferService._record(transfer, status.value, actor, payload.notes)
        db.flush()
        logger.info("Transfer %s %s by %s", transfer.challan_number, status.value, actor.id)
        return transfer

    @staticmethod
    def cancel(db: Session, actor: Actor, transfer_id: UUID, payload: TransferCancel) -> Transfer:
        transfer = TransferService.get_transfer(db, transfer_id, lock=True)
        TransferService._authorize(db, actor, transfer, "cancel")
        TransferService._require_status(transfer, "cancel", TransferStatus.DRAFT, TransferStatus.APPROVED)

        transfer.cancelled_by = actor.id
        transfer.cancelled_at = utcnow()
        transfer.cancellation_reason = payload.reason
        TransferService._record(transfer, TransferStatus.CANCELLED.value, actor, payload.reason)
        db.flush()
        logger.info("Transfer %s cancelled by %s", transfer.challan_number, actor.id)
        return transfer

    ACTIONS = {
        TransferApprove: "approve",
        TransferDispatch: "dispatch",
        TransferInTransit: "mark_in_transit",
        TransferReceive: "receive",
        TransferCancel: "cancel",
    }

    @staticmethod
    def perform_action(db: Session, actor: Actor, transfer_id: UUID, payload) -> Transfer:
        """Route a typed action payload to its transition function."""
        handler = getattr(TransferService, TransferService.ACTIONS[type(payload)])
        return handler(db, actor, transfer_id, payload)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def list_transfers(
        db: Session,
        status: Optional[str] = None,
        sender_branch_id: Optional[UUID] = None,
        receiver_branch_id: Optional[UUID] = None,
        branch_id: Optional[UUID] = None,
        transfer_type: Optional[str] = None,
        stock_request_id: Optional[UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Transfer], int]:
        query = db.query(Transfer)
        if status:
            query = query.filter(Transfer.status == status)
        if sender_branch_id:
            query = query.filter(Transfer.sender_branch_id == sender_branch_id)
        if receiver_branch_id:
            query = query.filter(Transfer.receiver_branch_id == receiver_branch_id)
        if branch_id:
            query = query.filter(or_(
                Transfer.sender_branch_id == branch_id,
                Transfer.receiver_branch_id == branch_id,
            ))
        if transfer_type:
            query = query.filter(Transfer.transfer_type == transfer_type)
        if stock_request_id:
            query = query.filter(Transfer.stock_request_id == stock_request_id)
        if search:
            query = query.filter(Transfer.challan_number.ilike(f"%{search}%"))
        total = query.count()
        items = (
            query.options(selectinload(Transfer.items), selectinload(Transfer.status_history))
            .order_by(Transfer.created_at.desc(), Transfer.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def stats(db: Session, branch_id: Optional[UUID] = None) -> dict:
        """Counts by status plus the pending / in-transit rollups."""
        query = db.query(Transfer.status, func.count(Transfer.id))
        if branch_id:
            query = query.filter(or_(
                Transfer.sender_branch_id == branch_id,
                Transfer.receiver_branch_id == branch_id,
            ))
        counts = dict(query.group_by(Transfer.status).all())
        by_status = {s.value: int(counts.get(s.value, 0)) for s in TransferStatus}
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "pending": by_status[TransferStatus.DRAFT.value] + by_status[TransferStatus.APPROVED.value],
            "in_transit": by_status[TransferStatus.DISPATCHED.value] + by_status[TransferStatus.IN_TRANSIT.value],
        }

    @staticmethod
    def movements(db: Session, transfer_id: UUID) -> List[StockMovement]:
        TransferService.get_transfer(db, transfer_id)
        return StockLedger.movements_for_reference(db, ReferenceKind.TRANSFER, transfer_id)

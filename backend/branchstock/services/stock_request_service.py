"""
Stock request workflow (sub-branch replenishment).

    pending --approve--> approved --fulfill--> fulfilled | partial_fulfilled
    pending --reject--> rejected
    pending --cancel--> cancelled      (requesting branch only)

Fulfill creates exactly one draft Transfer (fulfilling branch -> requesting
branch) in the same transaction and links it on the request. Stock moves
only when that Transfer is dispatched and received.
"""
import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session, selectinload

from branchstock.database import utcnow
from branchstock.exceptions import InvalidStateTransitionError, NotFoundError, ValidationError
from branchstock.models import StockRequest, StockRequestItem, Transfer
from branchstock.models.enums import RequestStatus
from branchstock.schemas.stock_request import (
    RequestApprove,
    RequestCancel,
    RequestFulfill,
    RequestReject,
    StockRequestCreate,
)
from branchstock.schemas.transfer import TransferCreate, TransferItemCreate
from branchstock.services import policy
from branchstock.services.branch_service import BranchService
from branchstock.services.document_service import DocumentService
from branchstock.services.policy import Actor
from branchstock.services.transfer_service import TransferService

logger = logging.getLogger(__name__)

DOCUMENT = "stock_request"


def _line_key(product_id, variant_sku) -> Tuple[UUID, str]:
    return product_id, variant_sku or ""


class StockRequestService:
    """Service for stock requests"""

    @staticmethod
    def get_request(db: Session, request_id: UUID, lock: bool = False) -> StockRequest:
        query = db.query(StockRequest).options(selectinload(StockRequest.items)).filter(StockRequest.id == request_id)
        if lock:
            query = query.with_for_update(of=StockRequest).populate_existing()
        request = query.first()
        if request is None:
            raise NotFoundError("StockRequest", request_id)
        return request

    @staticmethod
    def _require_status(request: StockRequest, action: str, *allowed: RequestStatus) -> None:
        if request.status not in {s.value for s in allowed}:
            raise InvalidStateTransitionError(DOCUMENT, request.status, action)

    @staticmethod
    def _authorize(db: Session, actor: Actor, request: StockRequest, action: str) -> None:
        branch = BranchService.get_branch(db, request.requesting_branch_id)
        policy.enforce(actor, branch, DOCUMENT, action)

    @staticmethod
    def _match(request: StockRequest, lines: Iterable, quantity_of) -> Dict[UUID, int]:
        """Map override lines onto request items by (product, variant)."""
        items = {_line_key(i.product_id, i.variant_sku): i for i in request.items}
        matched = {}
        for line in lines:
            item = items.get(_line_key(line.product_id, line.variant_sku))
            if item is None:
                raise ValidationError(
                    "Line does not match any requested item",
                    {"productId": str(line.product_id), "variantSku": line.variant_sku},
                )
            if item.id in matched:
                raise ValidationError(
                    "Requested item listed more than once",
                    {"productId": str(line.product_id), "variantSku": line.variant_sku},
                )
            matched[item.id] = quantity_of(line, item)
        return matched

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    @staticmethod
    def create_request(db: Session, actor: Actor, data: StockRequestCreate) -> StockRequest:
        branch = BranchService.get_active_branch(db, data.requesting_branch_id or actor.branch_id)
        policy.enforce(actor, branch, DOCUMENT, "create")

        keys = Counter(_line_key(item.product_id, item.variant_sku) for item in data.items)
        if any(n > 1 for n in keys.values()):
            raise ValidationError("Duplicate products in request items")

        request = StockRequest(
            request_number=DocumentService.get_request_number(db, branch.id),
            requesting_branch_id=branch.id,
            priority=data.priority.value,
            status=RequestStatus.PENDING.value,
            reason=data.reason,
            expected_date=data.expected_date,
            notes=data.notes,
            created_by=actor.id,
            items=[
                StockRequestItem(
                    line_number=number,
                    product_id=item.product_id,
                    variant_sku=item.variant_sku or "",
                    quantity_requested=item.quantity,
                    notes=item.notes,
                )
                for number, item in enumerate(data.items, start=1)
            ],
        )
        request.total_requested = sum(item.quantity for item in data.items)
        db.add(request)
        db.flush()
        logger.info("Stock request %s raised by %s (%s)", request.request_number, branch.code, request.priority)
        return request

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    @staticmethod
    def approve(db: Session, actor: Actor, request_id: UUID, payload: RequestApprove) -> StockRequest:
        """Set per-item approved quantities (default: as requested). No stock moves."""
        request = StockRequestService.get_request(db, request_id, lock=True)
        StockRequestService._authorize(db, actor, request, "approve")
        StockRequestService._require_status(request, "approve", RequestStatus.PENDING)

        def approved_quantity(line, item):
            if line.quantity_approved is None:
                return item.quantity_requested
            if line.quantity_approved > item.quantity_requested:
                raise ValidationError(
                    "quantityApproved cannot exceed quantity requested",
                    {"productId": str(item.product_id), "requested": item.quantity_requested,
                     "approved": line.quantity_approved},
                )
            return line.quantity_approved

        overrides = StockRequestService._match(request, payload.items or [], approved_quantity)
        approved = {item.id: overrides.get(item.id, item.quantity_requested) for item in request.items}
        if not any(quantity > 0 for quantity in approved.values()):
            raise ValidationError("At least one item must be approved with a quantity above zero")

        for item in request.items:
            item.quantity_approved = approved[item.id]
        request.total_approved = sum(approved.values())
        request.review_notes = payload.review_notes
        request.reviewed_by = actor.id
        request.reviewed_at = utcnow()
        request.status = RequestStatus.APPROVED.value
        db.flush()
        logger.info("Stock request %s approved by %s", request.request_number, actor.id)
        return request

    @staticmethod
    def reject(db: Session, actor: Actor, request_id: UUID, payload: RequestReject) -> StockRequest:
        request = StockRequestService.get_request(db, request_id, lock=True)
        StockRequestService._authorize(db, actor, request, "reject")
        StockRequestService._require_status(request, "reject", RequestStatus.PENDING)

        request.rejection_reason = payload.reason
        request.review_notes = payload.review_notes
        request.reviewed_by = actor.id
        request.reviewed_at = utcnow()
        request.status = RequestStatus.REJECTED.value
        db.flush()
        logger.info("Stock request %s rejected by %s", request.request_number, actor.id)
        return request

    @staticmethod
    def cancel(db: Session, actor: Actor, request_id: UUID, payload: RequestCancel) -> StockRequest:
        request = StockRequestService.get_request(db, request_id, lock=True)
        StockRequestService._authorize(db, actor, request, "cancel")
        StockRequestService._require_status(request, "cancel", RequestStatus.PENDING)

        if payload.reason:
            request.notes = f"{request.notes}\n{payload.reason}" if request.notes else payload.reason
        request.cancelled_by = actor.id
        request.cancelled_at = utcnow()
        request.status = RequestStatus.CANCELLED.value
        db.flush()
        logger.info("Stock request %s cancelled by %s", request.request_number, actor.id)
        return request

    @staticmethod
    def fulfill(
        db: Session,
        actor: Actor,
        request_id: UUID,
        payload: RequestFulfill,
    ) -> Tuple[StockRequest, Transfer]:
        """Create the fulfilling Transfer and close the request. Does not commit."""
        request = StockRequestService.get_request(db, request_id, lock=True)
        StockRequestService._authorize(db, actor, request, "fulfill")
        StockRequestService._require_status(request, "fulfill", RequestStatus.APPROVED)

        fulfilling = BranchService.get_active_branch(db, payload.fulfilling_branch_id or actor.branch_id)
        if not fulfilling.is_head_office:
            raise ValidationError(
                "Requests are fulfilled from a head office branch",
                {"fulfillingBranchId": str(fulfilling.id)},
            )

        def fulfil_quantity(line, item):
            approved = item.quantity_approved or 0
            if line.quantity > approved:
                raise ValidationError(
                    "Fulfilled quantity cannot exceed the approved quantity",
                    {"productId": str(item.product_id), "approved": approved, "quantity": line.quantity},
                )
            return line.quantity

        lines = payload.items or []
        overrides = StockRequestService._match(request, lines, fulfil_quantity)
        cartons = {
            _line_key(line.product_id, line.variant_sku): line.carton_number
            for line in lines if line.carton_number
        }
        chosen = {item.id: overrides.get(item.id, item.quantity_approved or 0) for item in request.items}

        transfer_items: List[TransferItemCreate] = [
            TransferItemCreate(
                product_id=item.product_id,
                variant_sku=item.variant_sku or None,
                quantity=chosen[item.id],
                carton_number=cartons.get(_line_key(item.product_id, item.variant_sku)),
            )
            for item in request.items
            if chosen[item.id] > 0
        ]
        if not transfer_items:
            raise ValidationError("At least one item must be fulfilled with a quantity above zero")

        transfer = TransferService.create_transfer(
            db,
            actor,
            TransferCreate(
                sender_branch_id=fulfilling.id,
                receiver_branch_id=request.requesting_branch_id,
                document_type=payload.document_type,
                items=transfer_items,
                remarks=payload.remarks or f"Fulfils stock request {request.request_number}",
            ),
            stock_request_id=request.id,
            transport=payload.transport,
        )

        for item in request.items:
            item.quantity_fulfilled = chosen[item.id]
        complete = all(chosen[item.id] == (item.quantity_approved or 0) for item in request.items)
        request.status = (RequestStatus.FULFILLED if complete else RequestStatus.PARTIAL_FULFILLED).value
        request.total_fulfilled = sum(chosen.values())
        request.transfer_id = transfer.id
        request.fulfilling_branch_id = fulfilling.id
        request.fulfilled_by = actor.id
        request.fulfilled_at = utcnow()
        db.flush()
        logger.info(
            "Stock request %s %s via transfer %s",
            request.request_number, request.status, transfer.challan_number,
        )
        return request, transfer

    ACTIONS = {
        RequestApprove: "approve",
        RequestReject: "reject",
        RequestFulfill: "fulfill",
        RequestCancel: "cancel",
    }

    @staticmethod
    def perform_action(db: Session, actor: Actor, request_id: UUID, payload):
        """Route a typed action payload to its transition function."""
        handler = getattr(StockRequestService, StockRequestService.ACTIONS[type(payload)])
        return handler(db, actor, request_id, payload)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def list_requests(
        db: Session,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        requesting_branch_id: Optional[UUID] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[StockRequest], int]:
        query = db.query(StockRequest)
        if status:
            query = query.filter(StockRequest.status == status)
        if priority:
            query = query.filter(StockRequest.priority == priority)
        if requesting_branch_id:
            query = query.filter(StockRequest.requesting_branch_id == requesting_branch_id)
        if search:
            query = query.filter(StockRequest.request_number.ilike(f"%{search}%"))
        total = query.count()
        items = (
            query.options(selectinload(StockRequest.items))
            .order_by(StockRequest.created_at.desc(), StockRequest.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

"""
Role gate for every workflow action.

One table maps (workflow, action) to a rule over the acting user's branch and
the branch the action targets. Head-office-only actions need an actor whose
branch is a head office; everything else is scoped to the actor's own branch.

    workflow        action                          rule
    purchase        *                               head-office actor at a head-office branch
    transfer        create/update/approve/
                    dispatch/in_transit/cancel      head office, or actor at the sender
    transfer        receive                         head office, or actor at the receiver
    stock_request   create/cancel                   actor at the requesting sub-branch
    stock_request   approve/reject/fulfill          head office
    adjustment      add                             head office (sub-branches request stock instead)
    adjustment      remove/set                      head office, or actor at the target branch
"""
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Tuple
from uuid import UUID

from branchstock.exceptions import ForbiddenError
from branchstock.models import Branch
from branchstock.models.enums import BranchRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Authenticated user acting from one branch."""

    id: UUID
    branch_id: UUID
    role: BranchRole

    @property
    def is_head_office(self) -> bool:
        return self.role == BranchRole.HEAD_OFFICE


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: str = ""

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = PolicyDecision(True)

Rule = Callable[[Actor, Branch], PolicyDecision]


def _head_office_at_head_office(actor: Actor, branch: Branch) -> PolicyDecision:
    if not actor.is_head_office:
        return PolicyDecision(False, "Only head office users can manage purchases")
    if not branch.is_head_office:
        return PolicyDecision(False, "Purchases can only be recorded at a head office branch")
    return ALLOW


def _head_office_or_own_branch(actor: Actor, branch: Branch) -> PolicyDecision:
    if actor.is_head_office or actor.branch_id == branch.id:
        return ALLOW
    return PolicyDecision(False, f"Users of another branch cannot act on behalf of {branch.code}")


def _requesting_sub_branch(actor: Actor, branch: Branch) -> PolicyDecision:
    if branch.is_head_office:
        return PolicyDecision(False, "Stock requests are raised by sub-branches")
    if actor.branch_id != branch.id:
        return PolicyDecision(False, "Only the requesting branch can do this")
    return ALLOW


def _head_office_only(actor: Actor, branch: Branch) -> PolicyDecision:
    if actor.is_head_office:
        return ALLOW
    return PolicyDecision(False, "Only head office users can do this")


def _head_office_adds_stock(actor: Actor, branch: Branch) -> PolicyDecision:
    if actor.is_head_office:
        return ALLOW
    return PolicyDecision(False, "Sub-branches can only decrease stock; raise a stock request to get more from head office")


PURCHASE_ACTIONS = ("create", "update", "approve", "receive", "pay", "cancel")
TRANSFER_SENDER_ACTIONS = ("create", "update", "approve", "dispatch", "in_transit", "cancel")

RULES: Dict[Tuple[str, str], Rule] = {}
RULES.update({("purchase", action): _head_office_at_head_office for action in PURCHASE_ACTIONS})
RULES.update({("transfer", action): _head_office_or_own_branch for action in TRANSFER_SENDER_ACTIONS})
RULES[("transfer", "receive")] = _head_office_or_own_branch
RULES[("stock_request", "create")] = _requesting_sub_branch
RULES[("stock_request", "cancel")] = _requesting_sub_branch
RULES[("stock_request", "approve")] = _head_office_only
RULES[("stock_request", "reject")] = _head_office_only
RULES[("stock_request", "fulfill")] = _head_office_only
RULES[("adjustment", "add")] = _head_office_adds_stock
RULES.update({("adjustment", mode): _head_office_or_own_branch for mode in ("remove", "set")})


def evaluate(actor: Actor, branch: Branch, workflow: str, action: str) -> PolicyDecision:
    """
    Decide whether ``actor`` may perform ``workflow.action`` against ``branch``.

    ``branch`` is the branch the action is about: the purchase branch, the
    transfer sender (the receiver for ``receive``), the requesting branch, or
    the adjusted branch. Unknown pairs are denied.
    """
    rule = RULES.get((workflow, action.replace("-", "_")))
    if rule is None:
        return PolicyDecision(False, f"Unknown action {workflow}.{action}")
    return rule(actor, branch)


def enforce(actor: Actor, branch: Branch, workflow: str, action: str) -> None:
    """Raise ForbiddenError unless ``evaluate`` allows the action."""
    decision = evaluate(actor, branch, workflow, action)
    if not decision.allowed:
        logger.info(
            "Denied %s.%s for actor %s (branch %s) on branch %s: %s",
            workflow, action, actor.id, actor.branch_id, branch.code, decision.reason,
        )
        raise ForbiddenError(
            decision.reason,
            {"workflow": workflow, "action": action, "branch_id": str(branch.id)},
        )


def enforce_set_target(actor: Actor, current_quantity: int, target: int) -> None:
    """Sub-branch users may only lower stock with an absolute set."""
    if actor.is_head_office or target <= current_quantity:
        return
    raise ForbiddenError(
        "Sub-branch users can only set stock to a value at or below current stock",
        {"current": current_quantity, "target": target},
    )

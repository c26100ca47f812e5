"""
Request dependencies: database session, authenticated actor, paging.

Auth: get_current_actor accepts a bearer JWT carrying ``sub`` (actor id) and
``branch_id``. The actor's role is the role of that branch in the directory,
never a claim in the token.
"""
import logging
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Query, Request
from sqlalchemy.orm import Session

from branchstock.config import settings
from branchstock.database import get_db
from branchstock.exceptions import AuthenticationError
from branchstock.models import Branch
from branchstock.models.enums import BranchRole
from branchstock.services.policy import Actor
from branchstock.utils.auth_internal import CLAIM_BRANCH_ID, CLAIM_SUB, decode_access_token

logger = logging.getLogger(__name__)

__all__ = ["get_db", "get_current_actor", "PageParams", "page_params"]


def _bearer_token(request: Request):
    auth = request.headers.get("Authorization")
    return (auth[7:].strip() if auth and auth.startswith("Bearer ") else None) or None


def get_current_actor(request: Request, db: Session = Depends(get_db)) -> Actor:
    """
    Require a valid JWT and resolve the acting branch. Raises 401 when the
    token is missing, invalid, or names an unknown or inactive branch.
    """
    token = _bearer_token(request)
    if not token:
        raise AuthenticationError("Not authenticated")
    payload = decode_access_token(token)
    if not payload:
        raise AuthenticationError("Invalid token")
    try:
        actor_id = UUID(str(payload[CLAIM_SUB]))
        branch_id = UUID(str(payload[CLAIM_BRANCH_ID]))
    except (KeyError, ValueError, TypeError):
        raise AuthenticationError("Invalid token")

    branch = db.get(Branch, branch_id)
    if branch is None or not branch.is_active:
        logger.info("Token for %s names unknown or inactive branch %s", actor_id, branch_id)
        raise AuthenticationError("Invalid token")
    return Actor(id=actor_id, branch_id=branch.id, role=BranchRole(branch.role))


@dataclass
class PageParams:
    page: int
    limit: int


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1),
) -> PageParams:
    """Page/limit query params; limit is clamped to MAX_PAGE_LIMIT."""
    return PageParams(page=page, limit=min(limit, settings.MAX_PAGE_LIMIT))

"""
Bearer token verification (JWT, python-jose).

Tokens are issued by the auth service; this module only verifies them and, for
local runs and tests, mints tokens with the same claims.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

from jose import JWTError, jwt

from branchstock.config import settings

# JWT claim names
CLAIM_SUB = "sub"
CLAIM_BRANCH_ID = "branch_id"
CLAIM_TYPE = "type"
CLAIM_EXP = "exp"
CLAIM_ISS = "iss"
CLAIM_JTI = "jti"

TYPE_ACCESS = "access"
ISSUER_INTERNAL = "branchstock-auth"


def _internal_encode(payload: dict, expires_delta: timedelta, token_type: str = TYPE_ACCESS) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **payload,
        CLAIM_JTI: str(uuid4()),
        CLAIM_TYPE: token_type,
        CLAIM_ISS: ISSUER_INTERNAL,
        CLAIM_EXP: now + expires_delta,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(user_id: str, branch_id: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create an access token carrying the actor id and the branch the actor works at."""
    payload = {
        CLAIM_SUB: str(user_id),
        CLAIM_BRANCH_ID: str(branch_id),
    }
    delta = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _internal_encode(payload, delta, token_type=TYPE_ACCESS)


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and verify an access token. Returns the payload or None."""
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            options={"verify_iss": True, "verify_exp": True},
            issuer=ISSUER_INTERNAL,
        )
    except JWTError:
        return None
    if not payload.get(CLAIM_SUB) or not payload.get(CLAIM_BRANCH_ID):
        return None
    if payload.get(CLAIM_TYPE, TYPE_ACCESS) != TYPE_ACCESS:
        return None
    return payload

"""
Request guards: bearer-token authentication and the admin role check.
"""
import logging
from typing import Any, Dict, Optional

from fastapi import Depends, Header, Request

from database import Database
from errors import Forbidden, InvalidToken, NotFound, Unauthorized
from schemas import ADMIN_ROLE
from security import PasswordHasher, TokenService

logger = logging.getLogger(__name__)


def get_db(request: Request) -> Database:
    return request.app.state.db


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_hasher(request: Request) -> PasswordHasher:
    return request.app.state.hasher


def bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise Unauthorized("Not authenticated")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise Unauthorized("Invalid authorization header")
    return parts[1]


def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
) -> Dict[str, Any]:
    token = bearer_token(authorization)
    try:
        user_id = tokens.verify(token)
        return db.find_user_by_id(user_id)
    except InvalidToken as exc:
        logger.debug("Rejected token: %s", exc)
        raise Unauthorized()
    except NotFound:
        # token outlived its user
        raise Unauthorized()


def require_admin(current: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if current.get("role") != ADMIN_ROLE:
        raise Forbidden("Admins only")
    return current

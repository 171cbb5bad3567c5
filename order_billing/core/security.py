from __future__ import annotations

import hmac
from typing import Literal

from fastapi import Depends, Header, HTTPException
from pydantic import BaseModel

from order_billing.core.config import get_settings


ActorType = Literal["operator", "admin"]


class Actor(BaseModel):
    type: ActorType
    id: str


def _auth_error(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def _extract_api_key(authorization: str | None, x_api_key: str | None) -> str | None:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise _auth_error("invalid authorization header")
        return token.strip()
    if x_api_key and x_api_key.strip():
        return x_api_key.strip()
    return None


def _actor_from_api_key(api_key: str) -> Actor | None:
    settings = get_settings()
    if hmac.compare_digest(api_key, settings.admin_api_key):
        return Actor(type="admin", id=settings.admin_actor_id)
    if hmac.compare_digest(api_key, settings.operator_api_key):
        return Actor(type="operator", id=settings.operator_actor_id)
    return None


def get_actor(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
) -> Actor:
    settings = get_settings()
    if not settings.auth_enabled:
        return Actor(type="admin", id=settings.admin_actor_id)

    api_key = _extract_api_key(authorization, x_api_key)
    if not api_key:
        raise _auth_error("missing api key")

    actor = _actor_from_api_key(api_key)
    if actor is None:
        raise _auth_error("invalid api key")
    return actor


def require_admin(actor: Actor = Depends(get_actor)) -> Actor:
    if actor.type != "admin":
        raise HTTPException(status_code=403, detail="admin role required")
    return actor

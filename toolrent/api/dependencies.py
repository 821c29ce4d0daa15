"""Per-request resolution of who is calling.

Moderator privilege is never read from ambient state: a route that needs it
declares ``require_moderator`` and hands the resulting ``Moderator`` to the
service explicitly.
"""
import logging
import secrets

from fastapi import Header, Request

from toolrent.errors import PermissionDenied
from toolrent.models.submission import Actor, Moderator

logger = logging.getLogger(__name__)


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _lookup_moderator(request: Request, token: str) -> Moderator | None:
    tokens: dict[str, str] = request.app.state.moderator_tokens
    for known, name in tokens.items():
        if secrets.compare_digest(known, token):
            return Moderator(name=name)
    return None


async def optional_moderator(
    request: Request, authorization: str | None = Header(default=None)
) -> Moderator | None:
    token = _bearer_token(authorization)
    if token is None:
        return None
    moderator = _lookup_moderator(request, token)
    if moderator is None:
        logger.warning("[auth] unknown moderator token | path=%s", request.url.path)
        raise PermissionDenied("invalid moderator credential")
    return moderator


async def require_moderator(
    request: Request, authorization: str | None = Header(default=None)
) -> Moderator:
    moderator = await optional_moderator(request, authorization)
    if moderator is None:
        raise PermissionDenied("moderator credential required")
    return moderator


async def current_actor(
    request: Request,
    authorization: str | None = Header(default=None),
    x_user_id: str | None = Header(default=None),
) -> Actor:
    moderator = await optional_moderator(request, authorization)
    return Actor(user_id=x_user_id or None, moderator=moderator)

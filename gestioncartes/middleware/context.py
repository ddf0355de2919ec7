"""Request context: resolves the acting user from the bearer token."""

import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from loguru import logger

from gestioncartes.config import get_settings
from gestioncartes.services.actor import Actor
from gestioncartes.services.auth import decode_token
from gestioncartes.services.roles import has_role

# Context variables for request-scoped data (async-safe)
_request_context_var: ContextVar["RequestContext | None"] = ContextVar(
    "request_context", default=None
)

# Optional security for JWT (doesn't raise if missing)
security = HTTPBearer(auto_error=False)


@dataclass
class RequestContext:
    """
    Request-scoped context: who is calling, from where.

    Stored in contextvars so log statements deep in the call stack can be
    enriched without passing it around.
    """

    request_id: str
    actor: Actor
    ip_address: str | None = None

    def __repr__(self) -> str:
        return (
            f"RequestContext(request_id={self.request_id}, "
            f"user_id={self.actor.user_id}, role={self.actor.role})"
        )


def get_current_context() -> RequestContext | None:
    """
    Get the current request context from contextvars.

    Returns:
        RequestContext if set, None otherwise
    """
    return _request_context_var.get()


def set_current_context(context: RequestContext) -> None:
    _request_context_var.set(context)


async def get_request_context(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> RequestContext | None:
    """
    FastAPI dependency that extracts the actor from a bearer token.

    Returns None when no valid access token is presented.
    """
    if not credentials:
        return None

    try:
        payload = decode_token(credentials.credentials)
    except HTTPException:
        return None

    if payload.get("type") != "access":
        logger.debug("Invalid token type", token_type=payload.get("type"))
        return None
    if not payload.get("sub"):
        logger.debug("Missing user ID in token")
        return None

    context = RequestContext(
        request_id=getattr(request.state, "request_id", None) or str(uuid.uuid4()),
        actor=Actor.from_claims(payload),
        ip_address=request.client.host if request.client else None,
    )
    set_current_context(context)
    logger.debug(
        "Request context established",
        user_id=context.actor.user_id,
        role=context.actor.role,
    )
    return context


async def require_auth(
    context: Annotated[RequestContext | None, Depends(get_request_context)] = None,
) -> RequestContext:
    """
    FastAPI dependency that requires authentication.

    Raises:
        HTTPException: 401 if not authenticated
    """
    if not context:
        logger.warning("Authentication required but not provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return context


async def require_journal_admin(
    context: Annotated[RequestContext, Depends(require_auth)],
) -> RequestContext:
    """Only administrators may read the journal, undo actions or cancel imports."""
    admin_role = get_settings().journal_admin_role
    if not has_role(context.actor.role, admin_role):
        logger.warning(
            "Journal access denied",
            user_name=context.actor.user_name,
            role=context.actor.role,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Journal access is restricted to role {admin_role}",
        )
    return context

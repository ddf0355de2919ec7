"""Middleware package."""

from gestioncartes.middleware.context import (
    RequestContext,
    get_current_context,
    get_request_context,
    require_auth,
    require_journal_admin,
    set_current_context,
)

__all__ = [
    "RequestContext",
    "get_current_context",
    "get_request_context",
    "require_auth",
    "require_journal_admin",
    "set_current_context",
]

"""
auth/dependencies.py -- FastAPI Depends() helpers for the bearer-token gate.

get_current_principal() runs IdentityService.verify_token() on the request's
Authorization header. It never touches the store: a valid signature and an
unexpired exp are the whole check.

Each rejection keeps its own error code so clients can react differently --
only token_expired should trigger a silent re-login, for example. Every 401
carries WWW-Authenticate: Bearer.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import auth_headers, status_for
from auth.models import Principal
from auth.service import IdentityService


def get_current_principal(request: Request) -> Principal:
    """Require a valid bearer token. Raises HTTP 401 (or 500) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    identity: IdentityService = request.app.state.identity
    result = identity.verify_token(request.headers.get("Authorization"))
    if not result.ok:
        raise HTTPException(
            status_code=status_for(result.error),
            detail={"code": result.error.value, "message": result.message},
            headers=auth_headers(result.error),
        )
    return result.value


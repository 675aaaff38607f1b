"""
api/errors.py -- Turn identity-core failures into HTTP errors.

The identity core reports failures as ErrorCode tags (on AuthResult, or on an
AuthError raised by the store for the plain CRUD routes). This module is the
single place those tags become status codes and the {"error": {...}}
envelope, so every route answers the same way for the same failure.
"""

from __future__ import annotations

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse
from auth.errors import AuthError, ErrorCode, auth_headers, status_for
from auth.service import AuthResult


def http_error(code: ErrorCode, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_for(code),
        detail={"code": code.value, "message": message},
        headers=auth_headers(code),
    )


def http_error_from_result(result: AuthResult) -> HTTPException:
    """HTTPException for a failed AuthResult."""
    return http_error(result.error, result.message or "")


def http_error_from_exc(exc: AuthError) -> HTTPException:
    """HTTPException for an AuthError raised outside IdentityService (store, hashing)."""
    return http_error(exc.code, exc.message)


def error_response(result: AuthResult) -> JSONResponse:
    """JSONResponse for a failed AuthResult, for handlers that return responses directly."""
    return JSONResponse(
        status_code=status_for(result.error),
        content=ErrorResponse(error=ErrorDetail(code=result.error.value, message=result.message or "")).model_dump(),
        headers=auth_headers(result.error),
    )

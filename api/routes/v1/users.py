"""
api/routes/v1/users.py -- Account management REST endpoints.

Routes:
  GET    /api/v1/users          -- list accounts, newest first
  GET    /api/v1/users/{id}     -- one account
  POST   /api/v1/users          -- create a password account
  PUT    /api/v1/users/{id}     -- update display name, email, age, active flag, password
  DELETE /api/v1/users/{id}     -- delete an account

Every route requires a valid bearer token (get_current_principal). There is
no role policy: any authenticated caller may manage accounts.

Responses never include password hashes -- AccountResponse has no such field.
A new password is re-hashed before it reaches the store.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.errors import http_error_from_exc, http_error_from_result
from api.models import AccountCreate, AccountDeletedResponse, AccountListResponse, AccountResponse, AccountUpdate
from auth.dependencies import get_current_principal
from auth.errors import AuthError
from auth.models import Principal
from auth.passwords import hash_password
from auth.service import IdentityService
from auth.store import AccountStore

logger = logging.getLogger("identitycore.api.users")

# All routes below require a bearer token via the router-level dependency.
router = APIRouter(dependencies=[Depends(get_current_principal)])


@router.get("/users", response_model=AccountListResponse)
def list_accounts(request: Request) -> AccountListResponse:
    """List every account, newest first."""
    store: AccountStore = request.app.state.identity.store
    try:
        records = store.list_accounts()
    except AuthError as exc:
        raise http_error_from_exc(exc) from exc
    accounts = [AccountResponse.from_account(r.public()) for r in records]
    return AccountListResponse(total=len(accounts), accounts=accounts)


@router.get("/users/{account_id}", response_model=AccountResponse)
def get_account(request: Request, account_id: int) -> AccountResponse:
    """Return one account by id."""
    identity: IdentityService = request.app.state.identity
    result = identity.get_account(account_id)
    if not result.ok:
        raise http_error_from_result(result)
    return AccountResponse.from_account(result.value)


@router.post("/users", response_model=AccountResponse, status_code=201)
def create_account(request: Request, body: AccountCreate) -> AccountResponse:
    """Create a password account. Unlike /auth/register, no token is issued."""
    identity: IdentityService = request.app.state.identity
    result = identity.register(body.display_name, body.email, body.password, age=body.age)
    if not result.ok:
        raise http_error_from_result(result)
    return AccountResponse.from_account(result.value)


@router.put("/users/{account_id}", response_model=AccountResponse)
def update_account(
    request: Request,
    account_id: int,
    body: AccountUpdate,
    principal: Principal = Depends(get_current_principal),
) -> AccountResponse:
    """Update the supplied fields of an account."""
    identity: IdentityService = request.app.state.identity

    updates: dict = body.model_dump(exclude_none=True, exclude={"password"})
    if body.password:
        try:
            updates["password_hash"] = hash_password(body.password, rounds=identity.bcrypt_rounds)
        except AuthError as exc:
            raise http_error_from_exc(exc) from exc
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )

    try:
        record = identity.store.update(account_id, **updates)
    except AuthError as exc:
        raise http_error_from_exc(exc) from exc
    logger.info("Account %s updated by account %s (%s)", account_id, principal.user_id, ", ".join(sorted(updates)))
    return AccountResponse.from_account(record.public())


@router.delete("/users/{account_id}", response_model=AccountDeletedResponse)
def delete_account(
    request: Request,
    account_id: int,
    principal: Principal = Depends(get_current_principal),
) -> AccountDeletedResponse:
    """Permanently delete an account. Tokens already issued for it stay valid until they expire."""
    store: AccountStore = request.app.state.identity.store
    try:
        record = store.delete(account_id)
    except AuthError as exc:
        raise http_error_from_exc(exc) from exc
    logger.info("Account %s deleted by account %s", account_id, principal.user_id)
    return AccountDeletedResponse(message="Account deleted.", account=AccountResponse.from_account(record.public()))

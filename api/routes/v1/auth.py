"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/login                       -- password login; returns bearer token
  POST /api/v1/auth/register                    -- create password account; returns bearer token
  GET  /api/v1/auth/profile                     -- current account (requires token)
  GET  /api/v1/auth/providers                   -- list configured identity providers (public)
  GET  /api/v1/auth/oauth/{provider}            -- redirect to the provider
  GET  /api/v1/auth/oauth/{provider}/callback   -- code exchange, account resolution, token

Security:
  [H2] POST /login is rate-limited per IP (Settings.login_rate_limit).
  [C1] Credential checks go through IdentityService.verify_credentials(), which
       equalizes timing. Never inline a store lookup + verify_password().
  [M5] Cache-Control: no-store on every response that carries a token.
  Login answers the same invalid_credentials error for an unknown email and a
  wrong password.
"""

from __future__ import annotations

import logging

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.errors import error_response, http_error, http_error_from_result
from api.limiter import limiter, login_limit
from api.models import AccountCreate, AccountResponse, LoginRequest, OAuthProviderInfo, TokenResponse
from auth.dependencies import get_current_principal
from auth.errors import ErrorCode, status_for
from auth.models import Account, Principal
from auth.oauth import extract_external_profile, get_enabled_providers
from auth.service import IdentityService
from core.config import get_settings

logger = logging.getLogger("identitycore.api.auth")

# Auth policy:
# - POST /api/v1/auth/login:                       public
# - POST /api/v1/auth/register:                    public
# - GET  /api/v1/auth/providers:                   public
# - GET  /api/v1/auth/oauth/{provider}[/callback]: public (authlib state check)
# - GET  /api/v1/auth/profile:                     requires token (get_current_principal)
router = APIRouter()

# Error codes the OAuth callback may put in the frontend redirect. Anything
# 5xx-class is answered as JSON instead -- it is not a login failure.
_REDIRECT_ERRORS = {
    "oauth_failed",
    ErrorCode.ACCOUNT_DISABLED.value,
    ErrorCode.UNVERIFIED_EMAIL.value,
    ErrorCode.CONFLICT.value,
}


def _token_response(identity: IdentityService, account: Account, status_code: int) -> JSONResponse:
    token = identity.issue_token(account)
    resp = JSONResponse(
        status_code=status_code,
        content=TokenResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=identity.tokens.ttl_seconds,
            account=AccountResponse.from_account(account),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _frontend_redirect(path: str) -> RedirectResponse:
    resp = RedirectResponse(f"{get_settings().frontend_url.rstrip('/')}{path}", status_code=302)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


def _oauth_failure(code: str) -> RedirectResponse:
    return _frontend_redirect(f"/login?error={code if code in _REDIRECT_ERRORS else 'oauth_failed'}")


# ---------------------------------------------------------------------------
# Password login and registration
# ---------------------------------------------------------------------------


@limiter.limit(login_limit)  # [H2] -- must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=TokenResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a bearer token."""
    identity: IdentityService = request.app.state.identity
    result = identity.verify_credentials(body.email, body.password)
    if not result.ok:
        resp = error_response(result)
        resp.headers["Cache-Control"] = "no-store"  # [M5]
        return resp
    return _token_response(identity, result.value, status_code=200)


@router.post("/auth/register", response_model=TokenResponse, status_code=201)
def register(request: Request, body: AccountCreate) -> JSONResponse:
    """Create a password account and log it in immediately."""
    identity: IdentityService = request.app.state.identity
    result = identity.register(body.display_name, body.email, body.password, age=body.age)
    if not result.ok:
        return error_response(result)
    return _token_response(identity, result.value, status_code=201)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=AccountResponse)
def profile(request: Request, principal: Principal = Depends(get_current_principal)) -> AccountResponse:
    """Return the stored account behind the current token."""
    identity: IdentityService = request.app.state.identity
    result = identity.get_account(principal.user_id)
    if not result.ok:
        raise http_error_from_result(result)
    return AccountResponse.from_account(result.value)


# ---------------------------------------------------------------------------
# External identity providers
# ---------------------------------------------------------------------------


@router.get("/auth/providers", response_model=list[OAuthProviderInfo])
async def list_providers() -> list[OAuthProviderInfo]:
    """Return the configured identity providers. Empty when none are set up."""
    return [OAuthProviderInfo(**p) for p in get_enabled_providers(get_settings())]


@router.get("/auth/oauth/{provider}")
async def oauth_redirect(request: Request, provider: str):
    """Redirect the browser to the provider's authorization page.

    The provider name is checked against the configured list first, so a
    crafted name cannot make authlib build a redirect for an unknown client.
    """
    enabled = {p["name"] for p in get_enabled_providers(get_settings())}
    if provider not in enabled:
        raise http_error(ErrorCode.NOT_FOUND, "Unknown identity provider.")

    client = request.app.state.oauth.create_client(provider)
    redirect_uri = str(request.url_for("oauth_callback", provider=provider))
    return await client.authorize_redirect(request, redirect_uri)


@router.get("/auth/oauth/{provider}/callback", name="oauth_callback")
async def oauth_callback(request: Request, provider: str):
    """Handle the provider callback and hand a bearer token to the frontend.

    Flow:
      1. Exchange the authorization code (authlib checks state via the session).
      2. Extract the provider profile, including email_verified [H1].
      3. Resolve it to a local account (matched, linked or created).
      4. Reject disabled accounts (a disabled account is never linked either).
      5. Redirect to {frontend_url}/auth/success?token=...

    Store failures are answered as 5xx JSON, not as a login failure.
    """
    enabled = {p["name"] for p in get_enabled_providers(get_settings())}
    if provider not in enabled:
        return _oauth_failure("oauth_failed")

    identity: IdentityService = request.app.state.identity
    client = request.app.state.oauth.create_client(provider)

    # Step 1: Exchange code for token
    try:
        token = await client.authorize_access_token(request)
    except OAuthError:
        logger.exception("OAuth token exchange failed for provider %r", provider)
        return _oauth_failure("oauth_failed")

    # Step 2: Provider profile
    try:
        external = extract_external_profile(token, provider)
    except ValueError:
        logger.warning("OAuth login rejected: incomplete profile from %r", provider)
        return _oauth_failure("oauth_failed")

    # Step 3: Match, link or create
    result = identity.resolve_external_identity(external)
    if not result.ok:
        if status_for(result.error) >= 500:
            return error_response(result)
        return _oauth_failure(result.error.value)

    # Step 4: Disabled accounts stay locked out
    account = result.value.account
    if not account.is_active:
        return _oauth_failure(ErrorCode.ACCOUNT_DISABLED.value)

    logger.info("OAuth login via %s: account %s (%s)", provider, account.id, result.value.resolution.value)

    # Step 5: Issue token, hand it to the frontend
    return _frontend_redirect(f"/auth/success?token={identity.issue_token(account)}")

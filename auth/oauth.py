"""
auth/oauth.py -- Authlib OAuth/OIDC provider configuration.

build_oauth() registers every provider whose client ID and secret are both
configured; the providers endpoint lists them through get_enabled_providers().
Settings are passed in, never read at import time, so the registry is built
once in the application lifespan and tests can substitute a mock.

Security notes:
  [H1] The provider's email_verified claim is carried into ExternalProfile
       unchanged. The resolver refuses to link or create an account from an
       unverified email -- an attacker could otherwise add a victim's address
       at the provider and take over the victim's local account.

  OAuth state parameter (CSRF protection) is handled by authlib automatically
  via Starlette SessionMiddleware. The session stores the state between the
  authorization redirect and the callback.

Supported providers:
  google -- Authorization code flow; OIDC discovery.
  oidc   -- Generic OIDC discovery (Okta, Azure AD, Keycloak, Authentik, etc.)

Layer rule: no imports from api/. core.config is imported for typing only.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from authlib.integrations.starlette_client import OAuth

from auth.models import ExternalProfile

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("identitycore.auth.oauth")

_GOOGLE_DISCOVERY_URL = "https://accounts.google.com/.well-known/openid-configuration"


# ---------------------------------------------------------------------------
# Authlib OAuth registry
# ---------------------------------------------------------------------------


def build_oauth(settings: Settings) -> OAuth:
    """Return an authlib registry with every configured provider registered."""
    oauth = OAuth()

    if settings.google_client_id and settings.google_client_secret:
        oauth.register(
            name="google",
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            server_metadata_url=_GOOGLE_DISCOVERY_URL,
            client_kwargs={"scope": "openid email profile"},
        )
        logger.info("Google OAuth provider registered")

    if settings.oidc_client_id and settings.oidc_client_secret and settings.oidc_discovery_url:
        oauth.register(
            name="oidc",
            client_id=settings.oidc_client_id,
            client_secret=settings.oidc_client_secret,
            server_metadata_url=settings.oidc_discovery_url,
            client_kwargs={"scope": "openid email profile"},
        )
        logger.info("Generic OIDC provider registered (display name: %s)", settings.oidc_display_name)

    return oauth


def get_enabled_providers(settings: Settings) -> list[dict]:
    """Return {"name", "label"} metadata for every configured provider."""
    providers: list[dict] = []
    if settings.google_client_id and settings.google_client_secret:
        providers.append({"name": "google", "label": "Google"})
    if settings.oidc_client_id and settings.oidc_client_secret and settings.oidc_discovery_url:
        providers.append({"name": "oidc", "label": settings.oidc_display_name})
    return providers


# ---------------------------------------------------------------------------
# Profile extraction [H1]
# ---------------------------------------------------------------------------


def extract_external_profile(token: dict, provider: str) -> ExternalProfile:
    """Build an ExternalProfile from the token authlib returns after code exchange.

    Both Google and generic OIDC providers return an id_token whose parsed
    claims (token["userinfo"]) include sub, email, email_verified and name.
    The external_id is namespaced by provider so two providers can never
    collide on the same subject value.

    Some OIDC providers omit email_verified entirely -- that is treated as
    unverified. A few send it as the string "true"; that counts as verified.

    Raises:
        ValueError: If userinfo, sub or email is missing.
    """
    userinfo = token.get("userinfo")
    if not userinfo:
        raise ValueError(f"{provider} OAuth: no userinfo in token response")

    subject = userinfo.get("sub")
    email = userinfo.get("email")
    if not subject or not email:
        raise ValueError(f"{provider} OAuth: missing email or sub claim in userinfo")

    display_name = userinfo.get("name") or userinfo.get("given_name") or email.split("@", 1)[0]
    return ExternalProfile(
        external_id=f"{provider}:{subject}",
        email=email,
        display_name=display_name,
        email_verified=userinfo.get("email_verified") in (True, "true"),
    )

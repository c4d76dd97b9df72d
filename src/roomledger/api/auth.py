"""OIDC JWT authentication.

Identity is owned by an external OIDC provider; this service only verifies
bearer tokens (RS256, keys from the provider's JWKS) and maps the `sub`
claim onto a row in `users`.

Provides:
- verify_token(): Validates JWT and returns subject claim
- get_current_user(): FastAPI dependency for authenticated user context
"""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from typing import Any

import jwt
import requests
from fastapi import Depends, HTTPException, Request

from roomledger.observability.logging import get_logger
from roomledger.observability.redaction import safe_log_context

logger = get_logger(__name__)

# JWKS cache with TTL
_jwks_cache: dict[str, Any] | None = None
_jwks_cache_time: float = 0
_jwks_cache_lock = threading.Lock()
_JWKS_CACHE_TTL = 600  # 10 minutes


@dataclass
class CurrentUser:
    """Authenticated user context."""

    id: str
    external_subject: str
    email: str | None
    name: str | None


@dataclass(frozen=True)
class OidcSettings:
    issuer: str | None
    audience: str | None
    jwks_url: str | None
    authorized_parties: list[str] | None

    @property
    def configured(self) -> bool:
        return bool(self.issuer and self.audience and self.jwks_url)


def _get_settings() -> OidcSettings:
    """Load OIDC settings from environment (read per call)."""
    raw_parties = os.environ.get("OIDC_AUTHORIZED_PARTIES", "")
    parties = [p.strip() for p in raw_parties.split(",") if p.strip()]
    return OidcSettings(
        issuer=os.environ.get("OIDC_ISSUER"),
        audience=os.environ.get("OIDC_AUDIENCE"),
        jwks_url=os.environ.get("OIDC_JWKS_URL"),
        authorized_parties=parties or None,
    )


def _fetch_jwks(jwks_url: str) -> dict[str, Any]:
    """Fetch JWKS from URL."""
    resp = requests.get(jwks_url, timeout=10)
    resp.raise_for_status()
    return resp.json()


def _get_jwks(jwks_url: str, force_refresh: bool = False) -> dict[str, Any]:
    """Get JWKS with caching. Provider outages surface as 503."""
    global _jwks_cache, _jwks_cache_time

    with _jwks_cache_lock:
        now = time.time()
        if not force_refresh and _jwks_cache is not None and (now - _jwks_cache_time) < _JWKS_CACHE_TTL:
            return _jwks_cache

        try:
            _jwks_cache = _fetch_jwks(jwks_url)
        except requests.RequestException as e:
            logger.error(
                "JWKS fetch failed",
                extra={"extra_fields": safe_log_context(error_type=type(e).__name__)},
            )
            raise HTTPException(status_code=503, detail="Auth temporarily unavailable")
        _jwks_cache_time = now
        return _jwks_cache


def _find_key(jwks: dict[str, Any], kid: str) -> dict[str, Any] | None:
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


def _key_for(jwks_url: str, kid: str, force_refresh: bool = False) -> dict[str, Any]:
    """Find the signing key, refetching the JWKS once if kid is unknown (rotation)."""
    key_data = _find_key(_get_jwks(jwks_url, force_refresh=force_refresh), kid)
    if key_data is None and not force_refresh:
        key_data = _find_key(_get_jwks(jwks_url, force_refresh=True), kid)
    if key_data is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    return key_data


def _decode(token: str, key_data: dict[str, Any], settings: OidcSettings) -> dict[str, Any]:
    try:
        public_key = jwt.algorithms.RSAAlgorithm.from_jwk(key_data)
    except (jwt.InvalidKeyError, KeyError, ValueError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid token")

    return jwt.decode(
        token,
        public_key,
        algorithms=["RS256"],
        issuer=settings.issuer,
        audience=settings.audience,
        options={"require": ["exp", "iss", "aud", "sub"]},
    )


def verify_token(token: str) -> str:
    """Verify JWT and return subject claim.

    Args:
        token: JWT token string.

    Returns:
        Subject claim (sub) from the token.

    Raises:
        HTTPException: 401 if token is invalid, 503 if the JWKS is unreachable.
    """
    settings = _get_settings()
    if not settings.configured:
        raise HTTPException(status_code=401, detail="OIDC not configured")

    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.exceptions.DecodeError:
        raise HTTPException(status_code=401, detail="Invalid token")
    if not kid:
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        payload = _decode(token, _key_for(settings.jwks_url, kid), settings)
    except jwt.InvalidSignatureError:
        # Key may have rotated under the same kid: refetch once
        try:
            payload = _decode(
                token, _key_for(settings.jwks_url, kid, force_refresh=True), settings
            )
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    if settings.authorized_parties and "azp" in payload:
        if payload["azp"] not in settings.authorized_parties:
            raise HTTPException(status_code=401, detail="Invalid token")

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="Invalid token")

    return sub


def _extract_bearer_token(request: Request) -> str:
    """Extract Bearer token from Authorization header.

    Raises:
        HTTPException: 401 if header missing or malformed.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing authorization header")

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid authorization header")

    return parts[1]


def _get_user_from_db(external_subject: str) -> CurrentUser | None:
    """Lookup an active user by external_subject."""
    from roomledger.infra.db import txn

    with txn() as cur:
        cur.execute(
            """
            SELECT id, external_subject, email, name
            FROM users
            WHERE external_subject = %s AND is_active = true
            """,
            (external_subject,),
        )
        row = cur.fetchone()
        if row is None:
            return None
        return CurrentUser(
            id=str(row[0]),
            external_subject=row[1],
            email=row[2],
            name=row[3],
        )


def get_current_user(request: Request) -> CurrentUser:
    """FastAPI dependency: get authenticated user.

    Raises:
        HTTPException: 401 if token invalid/missing, 403 if user unknown or inactive.
    """
    token = _extract_bearer_token(request)
    sub = verify_token(token)

    user = _get_user_from_db(sub)
    if user is None:
        raise HTTPException(status_code=403, detail="User not found")

    return user


# Dependency alias for cleaner imports
CurrentUserDep = Depends(get_current_user)

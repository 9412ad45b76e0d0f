"""OAuth2 client-credentials token provider.

Handles the token exchange against the identity service and caches the result
for the lifetime of the token. One provider is created per test session and
shared read-only by every request.
"""
from __future__ import annotations
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import requests

from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600
# Refresh slightly before the server-side expiry
EXPIRY_SKEW = timedelta(seconds=10)


@dataclass(frozen=True)
class AuthToken:
    value: str = field(repr=False)
    expires_at: datetime
    token_type: str = "Bearer"
    scope: str = ""

    def is_expired(self, now: Optional[datetime] = None, skew: timedelta = EXPIRY_SKEW) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at - skew

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.value}"


class TokenProvider:
    """Acquire-once, refresh-on-expiry bearer token cache.

    Usage:
        provider = TokenProvider(config)
        token = provider.get_token()      # network exchange
        token = provider.get_token()      # cached

    A lock serializes acquisition so concurrent first use performs a single
    exchange.
    """

    def __init__(self, config, session: Optional[requests.Session] = None):
        """Initialize the provider.

        Args:
            config: ``SuiteConfig`` carrying the resolved profile and OAuth settings
            session: HTTP session to use (defaults to a new ``requests.Session``)
        """
        self.config = config
        self._session = session or requests.Session()
        self._token: Optional[AuthToken] = None
        self._lock = threading.Lock()
        self.exchange_count = 0

    @property
    def token_url(self) -> str:
        return self.config.token_url

    def get_token(self) -> AuthToken:
        """Return the cached token, exchanging credentials when missing or expired.

        Raises:
            AuthenticationError: If the exchange fails
        """
        token = self._token
        if token is not None and not token.is_expired():
            return token
        return self.acquire_if_expired()

    def acquire_if_expired(self) -> AuthToken:
        """Refresh the token under the lock if no valid token is cached."""
        with self._lock:
            if self._token is None or self._token.is_expired():
                self._token = self._exchange()
            return self._token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None

    def _exchange(self) -> AuthToken:
        """Perform the client-credentials grant."""
        oauth = self.config.oauth
        data = {
            "grant_type": oauth.grant_type,
            "scope": oauth.scope,
            "client_id": oauth.client_id,
            "client_secret": oauth.client_secret,
        }
        url = self.token_url
        logger.info(f"🔑 Requesting OAuth2 token from {url} (client_id={oauth.client_id})")

        self.exchange_count += 1
        try:
            resp = self._session.post(
                url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self.config.request_timeout,
                verify=self.config.verify_tls,
            )
        except requests.RequestException as exc:
            raise AuthenticationError(None, str(exc), url) from exc

        if not 200 <= resp.status_code < 300:
            raise AuthenticationError(resp.status_code, resp.text, url)

        try:
            payload = resp.json()
        except ValueError:
            raise AuthenticationError(resp.status_code, resp.text, url) from None
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise AuthenticationError(resp.status_code, resp.text, url)

        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            raise AuthenticationError(resp.status_code, resp.text, url) from None

        token = AuthToken(
            value=payload["access_token"],
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            token_type=payload.get("token_type", "Bearer"),
            scope=payload.get("scope", ""),
        )
        logger.info(f"✅ Token obtained (expires in {expires_in} seconds)")
        return token


# ─────────────────────────────────────────────────────────────────────────────
# Parameterized token requests (negative auth scenarios)
# ─────────────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class TokenRequestParams:
    grant_type: Optional[str] = None
    scope: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = field(default=None, repr=False)
    additional_params: dict[str, str] = field(default_factory=dict)
    expected_status: int = 200
    description: str = ""


def default_token_params(config) -> TokenRequestParams:
    """Token request built from the configured OAuth settings."""
    oauth = config.oauth
    return TokenRequestParams(
        grant_type=oauth.grant_type,
        scope=oauth.scope,
        client_id=oauth.client_id,
        client_secret=oauth.client_secret,
        expected_status=200,
        description="Valid client credentials flow",
    )


def token_scenarios(config) -> dict[str, TokenRequestParams]:
    """Named token-endpoint scenarios with their expected HTTP status."""
    base = default_token_params(config)
    return {
        "valid_credentials": base,
        "invalid_secret": TokenRequestParams(
            grant_type=base.grant_type,
            scope=base.scope,
            client_id=base.client_id,
            client_secret="invalid_secret_12345",
            expected_status=400,
            description="Invalid client secret",
        ),
        "missing_secret": TokenRequestParams(
            grant_type=base.grant_type,
            scope=base.scope,
            client_id=base.client_id,
            expected_status=400,
            description="Missing client secret",
        ),
        "invalid_grant_type": TokenRequestParams(
            grant_type="invalid_grant_type",
            scope=base.scope,
            client_id=base.client_id,
            client_secret=base.client_secret,
            expected_status=400,
            description="Invalid grant type",
        ),
        "different_scope": TokenRequestParams(
            grant_type=base.grant_type,
            scope="read write",
            client_id=base.client_id,
            client_secret=base.client_secret,
            expected_status=200,
            description="Different scope permissions",
        ),
        "empty_scope": TokenRequestParams(
            grant_type=base.grant_type,
            scope="",
            client_id=base.client_id,
            client_secret=base.client_secret,
            expected_status=400,
            description="Empty scope parameter",
        ),
    }


def build_token_form(params: TokenRequestParams) -> dict[str, str]:
    """Form body for a token request; empty fields are omitted."""
    form = {}
    for name in ("grant_type", "scope", "client_id", "client_secret"):
        value = getattr(params, name)
        if value:
            form[name] = value
    form.update(params.additional_params)
    return form


def describe_token_params(params: TokenRequestParams) -> dict[str, str]:
    """Log-safe rendering of a token request (secret masked)."""
    summary = {
        "description": params.description or "No description",
        "grant_type": params.grant_type or "Not specified",
        "scope": params.scope or "Not specified",
        "client_id": params.client_id or "Not specified",
        "client_secret": "[SET]" if params.client_secret else "[NOT SET]",
        "expected_status": str(params.expected_status),
    }
    if params.additional_params:
        summary["additional_params"] = ", ".join(params.additional_params)
    return summary

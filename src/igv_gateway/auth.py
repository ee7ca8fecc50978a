"""OAuth2 session management: code exchange, credential encoding and refresh."""

import base64
import binascii
import logging
import secrets
import time
import urllib.parse
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, assert_never

import httpx
from pydantic import ValidationError

from .config import Config
from .consts import TOKEN_REFRESH_BUFFER_SECONDS, USER_AGENT
from .exceptions import (
    DecodeFailedError,
    ExchangeFailedError,
    RefreshFailedError,
    StateMismatchError,
)
from .models import Credential, LoginFlow, TokenRole

logger = logging.getLogger("igv-gateway.auth")


@dataclass(frozen=True)
class OAuth2Client:
    """Registration of this gateway with the identity provider."""

    client_id: str
    client_secret: str
    auth_url: str
    token_url: str
    redirect_url: str
    scopes: tuple[str, ...]


class SessionManager:
    """OAuth2 credential lifecycle manager.

    Responsibilities:
    - Issue login flows and build the provider authorize URL
    - Exchange authorization codes for credentials
    - Encode/decode credentials for the client-held cookie
    - Refresh expiring credentials
    - Turn a credential into outgoing call metadata

    Credentials are never stored here; they are passed in and returned.
    The only mutable state is the registry of pending login flows.
    """

    def __init__(self, config: Config, http_client: httpx.AsyncClient | None = None):
        """Initialize SessionManager.

        Args:
            config: Config instance with identity provider settings.
            http_client: HTTP client (for token requests only). If None,
                creates a new one.
        """
        self.config = config
        self.oauth2_client = OAuth2Client(
            client_id=config.auth_client_id,
            client_secret=config.auth_client_secret,
            auth_url=config.auth_url,
            token_url=config.token_url,
            redirect_url=config.callback_url,
            scopes=tuple(config.auth_scopes),
        )
        self.http_client = http_client or httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=config.timeout_seconds,
        )
        self.flow_ttl = config.flow_ttl_seconds
        # flow_id -> (state, monotonic deadline)
        self._flows: dict[str, tuple[str, float]] = {}

    async def aclose(self) -> None:
        await self.http_client.aclose()

    # ===== LOGIN FLOW =====

    def begin_flow(self) -> LoginFlow:
        """Start a login flow with its own anti-forgery state.

        Returns:
            LoginFlow with the flow id to hand to the browser and the
            provider URL to redirect to.
        """
        self._prune_flows()
        flow_id = secrets.token_urlsafe(16)
        state = secrets.token_urlsafe(32)
        self._flows[flow_id] = (state, time.monotonic() + self.flow_ttl)
        logger.debug(f"Login flow {flow_id} started")
        return LoginFlow(
            flow_id=flow_id,
            state=state,
            authorization_url=self.build_authorization_url(state),
        )

    def build_authorization_url(self, state: str) -> str:
        """Build the provider authorize URL for the given state.

        Offline access is requested so the provider issues a refresh token.
        """
        client = self.oauth2_client
        params = {
            "access_type": "offline",
            "client_id": client.client_id,
            "redirect_uri": client.redirect_url,
            "response_type": "code",
            "scope": " ".join(client.scopes),
            "state": state,
        }
        separator = "&" if "?" in client.auth_url else "?"
        return f"{client.auth_url}{separator}{urllib.parse.urlencode(params)}"

    async def exchange_code(self, flow_id: str | None, state: str, code: str) -> Credential:
        """Exchange an authorization code for a credential.

        The flow is consumed whatever the outcome.

        Args:
            flow_id: Flow id the browser carried back.
            state: State returned by the provider.
            code: Authorization code returned by the provider.

        Returns:
            Credential issued by the provider.

        Raises:
            StateMismatchError: If the flow is unknown, expired, or its state
                differs from ``state``.
            ExchangeFailedError: If the provider rejects the code.
        """
        expected = self._pop_flow(flow_id)
        if expected is None or not secrets.compare_digest(
            expected.encode(), (state or "").encode()
        ):
            logger.warning(f"Invalid oauth state for flow {flow_id}")
            raise StateMismatchError(
                "Invalid oauth state",
                suggestions=["Start the login again"],
                context={"flow_id": flow_id},
            )

        try:
            data = await self._token_request(
                {
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": self.oauth2_client.redirect_url,
                }
            )
            credential = Credential.from_token_response(data)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, OverflowError) as e:
            logger.error(f"Code exchange failed: {e}")
            raise ExchangeFailedError(
                f"Code exchange failed: {e}",
                errors=[str(e)],
                context={"token_url": self.oauth2_client.token_url},
            ) from e

        logger.info("Code exchange successful")
        return credential

    def _pop_flow(self, flow_id: str | None) -> str | None:
        if not flow_id:
            return None
        entry = self._flows.pop(flow_id, None)
        if entry is None:
            return None
        state, deadline = entry
        if time.monotonic() > deadline:
            return None
        return state

    def _prune_flows(self) -> None:
        now = time.monotonic()
        for flow_id in [f for f, (_, deadline) in self._flows.items() if deadline < now]:
            del self._flows[flow_id]

    # ===== CREDENTIAL ENCODING =====

    def encode_credential(self, credential: Credential) -> str:
        """Serialize a credential for the cookie: JSON, then base64.

        Raises:
            DecodeFailedError: If the credential cannot be serialized.
        """
        try:
            raw = credential.model_dump_json().encode("utf-8")
        except (ValueError, TypeError) as e:
            raise DecodeFailedError(
                "Credential could not be encoded",
                errors=[str(e)],
                context={"direction": "encode"},
            ) from e
        return base64.b64encode(raw).decode("ascii")

    def decode_credential(self, raw: str) -> Credential:
        """Inverse of encode_credential.

        Accepts values that were URL-quoted on their way through the browser.

        Raises:
            DecodeFailedError: On malformed input.
        """
        try:
            unquoted = urllib.parse.unquote(raw or "")
            decoded = base64.b64decode(unquoted, validate=True)
            return Credential.model_validate_json(decoded)
        except (binascii.Error, ValueError, ValidationError) as e:
            logger.debug(f"Credential cookie rejected: {e}")
            raise DecodeFailedError(
                "Credential cookie is malformed",
                errors=[str(e)],
                context={"direction": "decode"},
            ) from e

    # ===== REFRESH =====

    def needs_refresh(self, credential: Credential, now: datetime | None = None) -> bool:
        """Check if a credential is expired or about to expire."""
        if credential.expiry is None:
            return False
        now = now or datetime.now(UTC)
        refresh_time = credential.expiry - timedelta(seconds=TOKEN_REFRESH_BUFFER_SECONDS)
        return now >= refresh_time

    async def refresh_if_needed(self, credential: Credential) -> Credential:
        """Return a usable credential, refreshing it if it is expiring.

        A fresh credential is returned unchanged without contacting the
        provider.

        Raises:
            RefreshFailedError: If there is no refresh token or the provider
                rejects it.
        """
        if not self.needs_refresh(credential):
            return credential

        if not credential.refresh_token:
            raise RefreshFailedError(
                "Credential expired and has no refresh token",
                suggestions=["Log in again"],
            )

        logger.debug("Refreshing credential")
        try:
            data = await self._token_request(
                {
                    "grant_type": "refresh_token",
                    "refresh_token": credential.refresh_token,
                }
            )
            refreshed = Credential.from_token_response(data)
        except (httpx.HTTPError, ValueError, KeyError, TypeError, OverflowError) as e:
            logger.warning(f"Credential refresh failed: {e}")
            raise RefreshFailedError(
                f"Credential refresh failed: {e}",
                errors=[str(e)],
                context={"token_url": self.oauth2_client.token_url},
            ) from e

        if refreshed.refresh_token is None:
            refreshed = refreshed.model_copy(
                update={"refresh_token": credential.refresh_token}
            )
        logger.info("Credential refreshed successfully")
        return refreshed

    async def _token_request(self, form: dict[str, str]) -> dict[str, Any]:
        """POST to the provider token endpoint with client credentials."""
        client = self.oauth2_client
        response = await self.http_client.post(
            client.token_url,
            data=form,
            auth=(client.client_id, client.client_secret),
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("token endpoint did not return a JSON object")
        return data

    # ===== OUTGOING METADATA =====

    def attach_to_request(
        self, credential: Credential, role: TokenRole = TokenRole.USER_API_TOKEN
    ) -> dict[str, str]:
        """Wrap the access token into catalog call metadata for ``role``."""
        match role:
            case TokenRole.BEARER:
                value = f"{credential.token_type} {credential.access_token}"
            case TokenRole.USER_API_TOKEN:
                value = credential.access_token
            case _:
                assert_never(role)
        return {role.value: value}

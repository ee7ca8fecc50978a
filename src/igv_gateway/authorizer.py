"""Per-request credential handling at the HTTP boundary."""

import logging
from dataclasses import dataclass

from starlette.responses import Response

from .auth import SessionManager
from .consts import TOKEN_COOKIE_MAX_AGE_SECONDS, TOKEN_COOKIE_NAME
from .exceptions import MissingCredentialError
from .models import Credential

logger = logging.getLogger("igv-gateway.authorizer")

PUBLIC_PATHS = frozenset({"/login", "/auth/callback"})
PUBLIC_PREFIXES = ("/static/",)


@dataclass(frozen=True)
class AuthorizedSession:
    """Credential usable for this request and whether it was just refreshed."""

    credential: Credential
    refreshed: bool = False


class RequestAuthorizer:
    """Extracts, refreshes and re-issues the credential cookie.

    Responsibilities:
    - Decide which paths need a credential
    - Decode and refresh the cookie credential before any catalog call
    - Write refreshed or new credentials back into the response cookie
    """

    def __init__(self, session_manager: SessionManager, cookie_secure: bool = True):
        self.session_manager = session_manager
        self.cookie_secure = cookie_secure

    @staticmethod
    def is_public(path: str) -> bool:
        return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)

    async def authorize(self, cookie_value: str | None) -> AuthorizedSession:
        """Turn the raw cookie value into a usable credential.

        Raises:
            MissingCredentialError: If there is no cookie.
            DecodeFailedError: If the cookie is malformed.
            RefreshFailedError: If the credential expired and cannot be refreshed.
        """
        if not cookie_value:
            raise MissingCredentialError("cookie not found")

        credential = self.session_manager.decode_credential(cookie_value)
        refreshed = await self.session_manager.refresh_if_needed(credential)
        return AuthorizedSession(
            credential=refreshed, refreshed=refreshed is not credential
        )

    def apply(self, response: Response, session: AuthorizedSession) -> Response:
        """Re-encode a refreshed credential into the outgoing cookie.

        Raises:
            DecodeFailedError: If the credential cannot be encoded.
        """
        if session.refreshed:
            logger.debug("Writing refreshed credential to response")
            self.set_credential_cookie(response, session.credential)
        return response

    def set_credential_cookie(self, response: Response, credential: Credential) -> None:
        response.set_cookie(
            TOKEN_COOKIE_NAME,
            self.session_manager.encode_credential(credential),
            max_age=TOKEN_COOKIE_MAX_AGE_SECONDS,
            path="/",
            secure=self.cookie_secure,
            httponly=True,
            samesite="lax",
        )

    def clear_credential_cookie(self, response: Response) -> None:
        response.delete_cookie(
            TOKEN_COOKIE_NAME,
            path="/",
            secure=self.cookie_secure,
            httponly=True,
            samesite="lax",
        )

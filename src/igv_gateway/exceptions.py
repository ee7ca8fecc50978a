"""igv-gateway custom exceptions.

Exception Design Principles:
1. Raise where the failure is detected, translate only at the HTTP boundary
2. Keep the underlying cause chained (``raise ... from e``)
3. Split on the user-visible effect:
   - Fatal at startup (ConfigError)
   - Re-authentication required (AuthenticationError and subclasses)
   - Data request failed, reported as HTTP 400 (CatalogError and subclasses)
"""


class GatewayError(Exception):
    """Base exception for all igv-gateway errors.

    Carries optional detail lists and context for logging and for the JSON
    error body returned to the browser.
    """

    def __init__(
        self,
        message: str,  # the error message
        *,
        errors: list[str] = None,  # detailed list of errors (if available)
        suggestions: list[str] = None,  # remedial actions
        context: dict = None,  # additional detailed context
    ):
        """Initialize GatewayError.

        Args:
            message: Primary error message
            errors: List of specific error details
            suggestions: List of actionable suggestions for resolution
            context: Additional context information as key-value pairs
        """
        super().__init__(message)
        self.message = message
        self.errors = errors or []
        self.suggestions = suggestions or []
        self.context = context or {}


class ConfigError(GatewayError):
    """Startup configuration errors - the process cannot serve requests.

    Raised for a missing catalog host or port. Everything else degrades per
    request.
    """

    pass


class AuthenticationError(GatewayError):
    """The request has no usable credential - the user must log in again."""

    pass


class MissingCredentialError(AuthenticationError):
    """No credential cookie was sent."""

    pass


class StateMismatchError(AuthenticationError):
    """Callback state does not match the nonce issued for its login flow."""

    pass


class ExchangeFailedError(AuthenticationError):
    """Identity provider rejected the authorization code."""

    pass


class RefreshFailedError(AuthenticationError):
    """Credential is expired and could not be refreshed.

    Covers a missing refresh token as well as a refresh token the provider
    rejects (e.g. revoked).
    """

    pass


class DecodeFailedError(AuthenticationError):
    """Credential cookie could not be decoded, or a credential not encoded."""

    pass


class CatalogError(GatewayError):
    """Catalog request failed - reported to the browser as HTTP 400."""

    pass


class CatalogUnavailableError(CatalogError):
    """Transport failure or unexpected answer from the catalog service."""

    pass


class NotFoundError(CatalogError):
    """Catalog has no such dataset, version, object group or link."""

    pass

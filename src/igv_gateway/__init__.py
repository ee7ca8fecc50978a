"""igv-gateway Package

An OAuth2-protected gateway that serves igv.js genome browser configurations
assembled from a remote data catalog.
"""

from .auth import SessionManager
from .authorizer import RequestAuthorizer
from .client import CatalogClient
from .config import Config, get_config
from .consts import PACKAGE_VERSION
from .exceptions import (
    AuthenticationError,
    CatalogError,
    CatalogUnavailableError,
    ConfigError,
    DecodeFailedError,
    ExchangeFailedError,
    GatewayError,
    NotFoundError,
    RefreshFailedError,
    StateMismatchError,
)
from .tracks import TrackAssembler

__version__ = PACKAGE_VERSION

__all__ = [
    "__version__",
    "get_config",
    "Config",
    "CatalogClient",
    "SessionManager",
    "RequestAuthorizer",
    "TrackAssembler",
    "GatewayError",
    "ConfigError",
    "AuthenticationError",
    "StateMismatchError",
    "ExchangeFailedError",
    "RefreshFailedError",
    "DecodeFailedError",
    "CatalogError",
    "CatalogUnavailableError",
    "NotFoundError",
]

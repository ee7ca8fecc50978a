"""Configuration management."""

import logging
from functools import cache

from pydantic import AliasChoices, ConfigDict, Field, computed_field
from pydantic_settings import BaseSettings

from .exceptions import ConfigError


class Config(BaseSettings):
    """Configuration with computed catalog endpoint."""

    model_config = ConfigDict(
        env_prefix="IGVGW_", case_sensitive=False, extra="ignore"
    )

    # Identity provider
    auth_client_id: str = Field(default="", description="OAuth2 client id")
    auth_client_secret: str = Field(
        default="",
        # secret comes from the environment only, never from a file
        validation_alias=AliasChoices(
            "OAUTH2_CLIENT_SECRET", "Oauth2ClientSecret", "auth_client_secret"
        ),
        description="OAuth2 client secret",
    )
    auth_url: str = Field(default="", description="Provider authorize endpoint")
    token_url: str = Field(default="", description="Provider token endpoint")
    callback_url: str = Field(
        default="http://localhost:8080/auth/callback",
        description="Redirect URL registered with the provider",
    )
    auth_scopes: list[str] = Field(
        default_factory=lambda: ["profile", "email"],
        description="Scopes requested at login",
    )
    flow_ttl_seconds: int = Field(
        default=600, gt=0, le=3600, description="Lifetime of a pending login flow"
    )
    cookie_secure: bool = Field(
        default=True, description="Mark session cookies as Secure"
    )

    # Catalog service
    catalog_host: str = Field(default="", description="Catalog service host")
    catalog_port: int = Field(default=0, ge=0, le=65535, description="Catalog port")
    catalog_scheme: str = Field(
        default="http", pattern=r"^https?$", description="Catalog URL scheme"
    )

    # Dataset ids, one per track type
    bigwigs_dataset_id: str = Field(default="", description="Signal dataset id")
    bam_dataset_id: str = Field(default="", description="Alignment dataset id")
    reference_dataset_id: str = Field(default="", description="FASTA dataset id")
    gff_dataset_id: str = Field(default="", description="Annotation dataset id")
    reference_name: str = Field(
        default="NC_002942", description="Name of the default reference genome"
    )

    log_level: str = Field(
        default="INFO",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR)$",
        description="Logging level",
    )
    timeout_seconds: int = Field(
        default=30, gt=0, le=300, description="HTTP request timeout in seconds"
    )

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=8080, gt=0, le=65535, description="Bind port")

    @computed_field
    @property
    def catalog_base_url(self) -> str:
        """Base URL of the catalog service."""
        return f"{self.catalog_scheme}://{self.catalog_host}:{self.catalog_port}"

    def validate_startup(self) -> None:
        """Check the settings the server cannot start without.

        Raises:
            ConfigError: If the catalog endpoint is not configured.
        """
        errors = []
        if not self.catalog_host:
            errors.append("catalog_host needs to be set")
        if not self.catalog_port:
            errors.append("catalog_port needs to be set")
        if errors:
            raise ConfigError(
                "Catalog endpoint is not configured",
                errors=errors,
                suggestions=[
                    "Set IGVGW_CATALOG_HOST and IGVGW_CATALOG_PORT",
                ],
                context={"catalog_host": self.catalog_host},
            )

    def __repr__(self) -> str:
        return (
            f"Config(catalog_base_url='{self.catalog_base_url}', "
            f"log_level='{self.log_level}')"
        )


@cache
def get_config() -> Config:
    """Get a cached Config instance."""
    return Config()


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """Configure logging for the entire application"""
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        force=True,  # Override any existing configuration
    )
    return logging.getLogger("igv-gateway")

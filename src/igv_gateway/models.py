from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, Literal

import httpx
from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from .consts import DEFAULT_TOKEN_TYPE
from .exceptions import GatewayError

# =============================================================================
# ERROR RESPONSE MODEL
# =============================================================================
# JSON body returned for data-class failures at the HTTP boundary


class ErrorResponse(BaseModel):
    """Error body for failed data requests."""

    status: Literal["error"] = Field("error", description="Always 'error'")
    message: str = Field(..., description="Human-readable summary of the failure")
    errors: list[str] = Field(
        default_factory=list, description="List of error messages"
    )
    suggestions: list[str] = Field(
        default_factory=list, description="Actionable suggestions for the user"
    )
    metadata: dict[str, Any] | None = Field(
        None, description="Additional context and domain-specific information"
    )

    @classmethod
    def from_error(cls, error: Exception) -> "ErrorResponse":
        """Create ErrorResponse from any Exception.

        Args:
            error: Any Exception instance

        Returns:
            ErrorResponse with error details
        """
        if isinstance(error, GatewayError):
            return cls(
                message=error.message,
                errors=error.errors,
                suggestions=error.suggestions,
                metadata={**error.context, "exception_type": type(error).__name__},
            )
        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            return cls(
                message=f"HTTP error ({status_code}): {error}",
                errors=[str(error)],
                metadata={
                    "exception_type": type(error).__name__,
                    "status_code": status_code,
                    "url": str(error.response.url),
                },
            )
        if isinstance(error, httpx.RequestError):
            return cls(
                message=f"Network error: {error}",
                errors=[str(error)],
                suggestions=["Try again - this may be a temporary network issue"],
                metadata={"exception_type": type(error).__name__},
            )
        return cls(
            message=f"Unexpected error: {error}",
            errors=[str(error)],
            suggestions=["Check server logs for detailed information"],
            metadata={"exception_type": type(error).__name__},
        )


# =============================================================================
# SESSION MODELS
# =============================================================================
# The credential travels with every request inside the client-held cookie.


class TokenRole(StrEnum):
    """Kinds of outgoing call metadata a credential can be attached as."""

    USER_API_TOKEN = "UserAPIToken"
    BEARER = "Authorization"


class Credential(BaseModel):
    """OAuth2 token pair plus expiry, as issued by the identity provider."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str | None = None
    token_type: str = DEFAULT_TOKEN_TYPE
    expiry: AwareDatetime | None = None  # None never expires

    @classmethod
    def from_token_response(
        cls, data: dict[str, Any], now: datetime | None = None
    ) -> "Credential":
        """Build a Credential from a provider token endpoint response.

        Raises:
            KeyError: If the response has no access_token.
        """
        now = now or datetime.now(UTC)
        expires_in = data.get("expires_in")
        expiry = now + timedelta(seconds=int(expires_in)) if expires_in else None
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or None,
            token_type=data.get("token_type") or DEFAULT_TOKEN_TYPE,
            expiry=expiry,
        )


class LoginFlow(BaseModel):
    """A pending authorization-code flow."""

    flow_id: str
    state: str
    authorization_url: str


# =============================================================================
# CATALOG MODELS
# =============================================================================
# Entities returned by the catalog service.


class TrackType(StrEnum):
    """Logical role of a catalog dataset; each maps to one dataset id."""

    BIGWIGS = "BigWigs"
    BAM = "BAM"
    FASTA = "FASTA"
    GFF = "GFF"


class ResourceKind(StrEnum):
    """Catalog resources download links can be requested for."""

    DATASET_VERSION = "DatasetVersion"
    OBJECT_GROUP = "DatasetObjectGroup"


class DatasetVersion(BaseModel):
    """Immutable snapshot of a catalog dataset."""

    id: str
    dataset_id: str = ""


class CatalogObject(BaseModel):
    """A single file in the catalog."""

    id: str
    filename: str


class ObjectGroup(BaseModel):
    """Named cluster of related objects, e.g. an alignment and its index."""

    id: str
    name: str = ""
    objects: list[CatalogObject] = Field(default_factory=list)


class DownloadLink(BaseModel):
    """Presigned URL for one object. Short lived, never stored."""

    object_id: str
    filename: str
    url: str


class GroupLinks(BaseModel):
    """Download links of one object group, in the group's object order."""

    object_group: ObjectGroup
    links: list[str] = Field(default_factory=list)

    def download_links(self) -> list[DownloadLink]:
        """Pair each object with its link. Unmatched trailing entries are dropped."""
        return [
            DownloadLink(object_id=obj.id, filename=obj.filename, url=url)
            for obj, url in zip(self.object_group.objects, self.links)
        ]


# =============================================================================
# VIEWER MODELS
# =============================================================================
# Shapes expected by igv.js, see https://github.com/igvteam/igv.js/wiki/Tracks-2.0
# Serialize with ``model_dump(by_alias=True, exclude_none=True)``.


class ViewerModel(BaseModel):
    """Base for igv.js records: camelCase aliases, unset fields omitted."""

    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GuideLine(ViewerModel):
    """Horizontal guide line of a wig track."""

    color: str | None = None
    dotted: bool | None = None
    y: int | None = None


class Track(ViewerModel):
    """igv.js track; not all fields are always required."""

    name: str | None = None
    url: str | None = None
    format: str | None = None
    index_url: str | None = Field(None, alias="indexURL")
    type: str | None = None
    min: int | None = None
    max: int | None = None
    autoscale: bool | None = None
    color: str | None = None
    indexed: bool | None = None
    auto_height: bool | None = Field(None, alias="autoHeight")
    searchable: bool | None = None
    guidelines: list[GuideLine] | None = None


class Reference(ViewerModel):
    """Genome reference: sequence, its index and annotation tracks."""

    id: str
    name: str
    fasta_url: str = Field(..., alias="fastaURL")
    index_url: str = Field(..., alias="indexURL")
    tracks: list[Track] = Field(default_factory=list)


class Browser(ViewerModel):
    """Options object passed to ``igv.createBrowser``."""

    id: str
    name: str
    locus: str | None = None
    reference: Reference
    tracks: list[Track] = Field(default_factory=list)


# =============================================================================
# LISTING MODELS
# =============================================================================
# Drop-down contents of the browser page.


class FileDescription(BaseModel):
    """A reference to a catalog object."""

    id: str
    name: str


class FileGroup(BaseModel):
    """A catalog object group as listed on the browser page."""

    group_id: str
    group_name: str
    objects: list[FileDescription] = Field(default_factory=list)


class FileData(BaseModel):
    """Both listings shown on the browser page, keyed by sub-menu."""

    bam_data: dict[str, list[FileGroup]] = Field(default_factory=dict)
    bigwigs_data: dict[str, list[FileGroup]] = Field(default_factory=dict)

"""Catalog client: low-level calls to the catalog service."""

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from .config import Config
from .consts import (
    CURRENT_VERSION_URL_PATH,
    DOWNLOAD_LINKS_URL_PATH,
    OBJECT_GROUPS_URL_PATH,
    USER_AGENT,
)
from .exceptions import CatalogUnavailableError, NotFoundError
from .models import DatasetVersion, GroupLinks, ObjectGroup, ResourceKind

logger = logging.getLogger("igv-gateway.client")


class CatalogClient:
    """Catalog service client.

    Responsibilities:
    - Provide typed methods for the catalog endpoints the gateway needs
    - Translate HTTP and transport errors into catalog errors

    Calls are single attempt; nothing is retried here.
    """

    def __init__(self, config: Config, http_client: httpx.AsyncClient | None = None):
        """Initialize CatalogClient.

        Args:
            config: Config instance with the catalog endpoint.
            http_client: HTTP client. If None, creates a new one.
        """
        self.config = config
        self.base_url = config.catalog_base_url
        self.http_client = http_client or httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=config.timeout_seconds,
        )
        logger.info(f"Catalog client created for {self.base_url}")

    async def __aenter__(self) -> "CatalogClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http_client.aclose()

    async def current_version(
        self, dataset_id: str, metadata: dict[str, str]
    ) -> DatasetVersion:
        """Get the current version of a dataset.

        Args:
            dataset_id: Catalog dataset id.
            metadata: Outgoing credential metadata.

        Returns:
            The dataset's current DatasetVersion.

        Raises:
            NotFoundError: If the dataset does not exist.
            CatalogUnavailableError: For HTTP, network or format errors.
        """
        url = self._url(CURRENT_VERSION_URL_PATH.format(dataset_id=dataset_id))
        data = await self._request("GET", url, metadata)
        return self._parse(DatasetVersion, data, url)

    async def object_groups_of(
        self, dataset_version_id: str, metadata: dict[str, str]
    ) -> list[ObjectGroup]:
        """List all object groups of a dataset version.

        Raises:
            NotFoundError: If the dataset version does not exist.
            CatalogUnavailableError: For HTTP, network or format errors.
        """
        url = self._url(OBJECT_GROUPS_URL_PATH.format(version_id=dataset_version_id))
        data = await self._request("GET", url, metadata)
        groups = data.get("object_groups", []) if isinstance(data, dict) else None
        if groups is None:
            raise CatalogUnavailableError(
                "Unexpected object group listing from catalog",
                context={"url": url},
            )
        return [self._parse(ObjectGroup, group, url) for group in groups]

    async def download_links_for(
        self, resource_kind: ResourceKind, resource_id: str, metadata: dict[str, str]
    ) -> list[GroupLinks]:
        """Get presigned download links for every object of a resource.

        Links of each group are ordered like the group's objects.

        Raises:
            NotFoundError: If the resource does not exist.
            CatalogUnavailableError: For HTTP, network or format errors.
        """
        url = self._url(DOWNLOAD_LINKS_URL_PATH)
        body = {
            "resources": [
                {"resource": resource_kind.value, "resource_id": resource_id}
            ]
        }
        data = await self._request("POST", url, metadata, json=body)
        links = data.get("links", []) if isinstance(data, dict) else None
        if links is None:
            raise CatalogUnavailableError(
                "Unexpected download link response from catalog",
                context={"url": url},
            )
        return [self._parse(GroupLinks, group, url) for group in links]

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _request(
        self, method: str, url: str, metadata: dict[str, str], **kwargs
    ) -> Any:
        """Perform one authenticated request and return the parsed JSON body."""
        logger.debug(f"{method} {url}")
        try:
            response = await self.http_client.request(
                method, url, headers=dict(metadata), **kwargs
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            if status_code == 404:
                raise NotFoundError(
                    f"Catalog resource not found: {url}",
                    errors=[str(e)],
                    context={"url": url, "status_code": status_code},
                ) from e
            raise CatalogUnavailableError(
                f"Catalog error ({status_code})",
                errors=[str(e)],
                context={"url": url, "status_code": status_code},
            ) from e
        except httpx.RequestError as e:
            raise CatalogUnavailableError(
                f"Catalog unreachable: {e}",
                errors=[str(e)],
                suggestions=["Try again - this may be a temporary network issue"],
                context={"url": url},
            ) from e
        except ValueError as e:
            raise CatalogUnavailableError(
                "Catalog returned invalid JSON",
                errors=[str(e)],
                context={"url": url},
            ) from e
        logger.debug(f"{method} {url} successful")
        return data

    @staticmethod
    def _parse(model, data: Any, url: str):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise CatalogUnavailableError(
                f"Unexpected {model.__name__} payload from catalog",
                errors=[err["msg"] for err in e.errors()],
                context={"url": url},
            ) from e

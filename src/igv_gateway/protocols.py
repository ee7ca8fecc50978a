"""Protocol definitions for dependency injection and interface contracts."""

from typing import Protocol

from .models import DatasetVersion, GroupLinks, ObjectGroup, ResourceKind


class CatalogBackend(Protocol):
    """Protocol for catalog service clients used by the track assembler."""

    async def current_version(
        self, dataset_id: str, metadata: dict[str, str]
    ) -> DatasetVersion:
        """Get the current version of a dataset.

        Raises:
            NotFoundError: If the dataset does not exist.
            CatalogUnavailableError: For transport or remote errors.
        """
        ...

    async def object_groups_of(
        self, dataset_version_id: str, metadata: dict[str, str]
    ) -> list[ObjectGroup]:
        """List all object groups of a dataset version."""
        ...

    async def download_links_for(
        self, resource_kind: ResourceKind, resource_id: str, metadata: dict[str, str]
    ) -> list[GroupLinks]:
        """Get presigned download links for every object of a resource."""
        ...

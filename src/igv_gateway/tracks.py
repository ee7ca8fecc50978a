"""Track assembly: turns catalog entities into igv.js browser records."""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar, assert_never

from .auth import SessionManager
from .config import Config
from .consts import (
    ALIGNMENT_INDEX_SUFFIX,
    ALIGNMENT_SUFFIX,
    DEFAULT_TRACK_COLOR,
    LISTING_KEY,
)
from .exceptions import NotFoundError
from .models import (
    Browser,
    Credential,
    DatasetVersion,
    FileData,
    FileDescription,
    FileGroup,
    GroupLinks,
    ObjectGroup,
    Reference,
    ResourceKind,
    Track,
    TrackType,
)
from .protocols import CatalogBackend

logger = logging.getLogger("igv-gateway.tracks")

T = TypeVar("T")


class TrackAssembler:
    """Builds viewer records from catalog responses.

    Every catalog call is made with metadata derived from the credential the
    caller passes in; the assembler never refreshes credentials itself.
    """

    def __init__(
        self,
        catalog: CatalogBackend,
        session_manager: SessionManager,
        config: Config,
    ):
        """Initialize TrackAssembler.

        Args:
            catalog: Catalog client.
            session_manager: Used to attach credentials to catalog calls.
            config: Config with the per-track-type dataset ids.
        """
        self.catalog = catalog
        self.session_manager = session_manager
        self.config = config

    def dataset_id_for(self, track_type: TrackType) -> str:
        """Configured catalog dataset id for a track type."""
        match track_type:
            case TrackType.BIGWIGS:
                return self.config.bigwigs_dataset_id
            case TrackType.BAM:
                return self.config.bam_dataset_id
            case TrackType.FASTA:
                return self.config.reference_dataset_id
            case TrackType.GFF:
                return self.config.gff_dataset_id
            case _:
                assert_never(track_type)

    async def current_version(
        self, track_type: TrackType, credential: Credential
    ) -> DatasetVersion:
        """Current DatasetVersion of the dataset backing a track type."""
        return await self.catalog.current_version(
            self.dataset_id_for(track_type), self._metadata(credential)
        )

    # ===== BROWSER CONFIG =====

    async def default_track_config(self, credential: Credential) -> Browser:
        """Browser config for the reference genome and its annotation track.

        Raises:
            NotFoundError: If a dataset has no usable download links.
            CatalogUnavailableError: For catalog failures.
        """
        reference_links, annotation_links = await run_together(
            self._version_links(TrackType.FASTA, credential),
            self._version_links(TrackType.GFF, credential),
        )

        fasta_url, index_url = self._first_links(reference_links, TrackType.FASTA, 2)
        (gff_url,) = self._first_links(annotation_links, TrackType.GFF, 1)

        annotation = Track(
            type="annotation",
            format="gff3",
            name="Annotation",
            auto_height=True,
            url=gff_url,
        )
        name = self.config.reference_name
        reference = Reference(
            id=name,
            name=name,
            fasta_url=fasta_url,
            index_url=index_url,
            tracks=[annotation],
        )
        return Browser(id=name, name=name, reference=reference, tracks=[])

    async def _version_links(
        self, track_type: TrackType, credential: Credential
    ) -> list[GroupLinks]:
        version = await self.current_version(track_type, credential)
        return await self.catalog.download_links_for(
            ResourceKind.DATASET_VERSION, version.id, self._metadata(credential)
        )

    @staticmethod
    def _first_links(
        group_links: list[GroupLinks], track_type: TrackType, count: int
    ) -> list[str]:
        """First ``count`` links of the first group."""
        links = group_links[0].links if group_links else []
        if len(links) < count:
            raise NotFoundError(
                f"Not enough download links for the {track_type} dataset",
                errors=[f"expected {count} links, got {len(links)}"],
                context={"track_type": str(track_type)},
            )
        return links[:count]

    # ===== TRACKS BY GROUP =====

    async def alignment_tracks(self, group_id: str, credential: Credential) -> list[Track]:
        """Alignment tracks for an object group, one per returned group.

        Groups with fewer than two objects still produce a (partial) track.
        """
        group_links = await self.catalog.download_links_for(
            ResourceKind.OBJECT_GROUP, group_id, self._metadata(credential)
        )

        tracks = []
        for links in group_links:
            objects = links.object_group.objects
            if len(objects) < 2:
                logger.warning(
                    f"InsufficientObjects: object group {links.object_group.id} "
                    f"has {len(objects)} object(s), expected an alignment and its index"
                )

            track = Track(
                color=DEFAULT_TRACK_COLOR,
                autoscale=True,
                type="alignment",
                format="bam",
            )
            for link in links.download_links():
                if link.filename.endswith(ALIGNMENT_SUFFIX):
                    track.name = link.filename
                    track.url = link.url
                elif link.filename.endswith(ALIGNMENT_INDEX_SUFFIX):
                    track.index_url = link.url
            tracks.append(track)

        return tracks

    async def signal_tracks(self, group_id: str, credential: Credential) -> list[Track]:
        """One wig track per object of an object group, in link order."""
        group_links = await self.catalog.download_links_for(
            ResourceKind.OBJECT_GROUP, group_id, self._metadata(credential)
        )

        return [
            Track(
                color=DEFAULT_TRACK_COLOR,
                autoscale=True,
                type="wig",
                name=link.filename,
                url=link.url,
            )
            for links in group_links
            for link in links.download_links()
        ]

    # ===== LISTINGS =====

    async def alignment_list(self, credential: Credential) -> dict[str, list[FileGroup]]:
        """Alignment groups of the current BAM dataset version, empty ones skipped."""
        file_groups = []
        for group in await self._object_groups(TrackType.BAM, credential):
            if not group.objects:
                logger.info(
                    f"ObjectGroup with id: {group.id} and name: {group.name} "
                    "has no associated objects"
                )
                continue
            file_groups.append(
                FileGroup(group_id=group.id, group_name=group.objects[0].filename)
            )
        return {LISTING_KEY: file_groups}

    async def signal_list(self, credential: Credential) -> dict[str, list[FileGroup]]:
        """Signal groups of the current BigWigs dataset version.

        The display name drops the last ``_`` token of the filenames, so
        ``sample_fwd``/``sample_rev`` are listed as ``sample``.
        """
        file_groups = []
        for group in await self._object_groups(TrackType.BIGWIGS, credential):
            file_group = FileGroup(group_id=group.id, group_name=group.name)
            for obj in group.objects:
                # last object wins
                file_group.group_name = signal_group_name(obj.filename)
                file_group.objects.append(
                    FileDescription(id=obj.id, name=obj.filename)
                )
            file_groups.append(file_group)
        return {LISTING_KEY: file_groups}

    async def file_data(self, credential: Credential) -> FileData:
        """Both listings for the browser page."""
        bam_data, bigwigs_data = await run_together(
            self.alignment_list(credential),
            self.signal_list(credential),
        )
        return FileData(bam_data=bam_data, bigwigs_data=bigwigs_data)

    async def _object_groups(
        self, track_type: TrackType, credential: Credential
    ) -> list[ObjectGroup]:
        version = await self.current_version(track_type, credential)
        return await self.catalog.object_groups_of(
            version.id, self._metadata(credential)
        )

    def _metadata(self, credential: Credential) -> dict[str, str]:
        return self.session_manager.attach_to_request(credential)


def signal_group_name(filename: str) -> str:
    """Filename without its trailing ``_``-delimited token."""
    return "_".join(filename.split("_")[:-1])


async def run_together(*coros: Awaitable[T]) -> list[T]:
    """Await coroutines concurrently, results in argument order.

    The first failure cancels the others and is raised as is.
    """
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(coro) for coro in coros]
    except ExceptionGroup as eg:
        raise eg.exceptions[0] from None
    return [task.result() for task in tasks]

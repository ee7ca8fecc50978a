"""Pytest configuration and shared fixtures"""

import os
import urllib.parse
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from igv_gateway.auth import SessionManager
from igv_gateway.config import Config
from igv_gateway.models import (
    CatalogObject,
    Credential,
    DatasetVersion,
    GroupLinks,
    ObjectGroup,
    ResourceKind,
)
from igv_gateway.tracks import TrackAssembler

# Configure pytest-asyncio
pytest_plugins = ("pytest_asyncio",)

TOKEN_URL = "https://idp.test/token"
AUTH_URL = "https://idp.test/authorize"

# Catalog content used by the fake catalog below
DATASET_VERSIONS = {
    "ds-fasta": "v-fasta",
    "ds-gff": "v-gff",
    "ds-bam": "v-bam",
    "ds-bw": "v-bw",
}


def make_group(group_id, *filenames, name=""):
    """ObjectGroup with one object per filename"""
    return ObjectGroup(
        id=group_id,
        name=name or group_id,
        objects=[
            CatalogObject(id=f"{group_id}-obj{i}", filename=filename)
            for i, filename in enumerate(filenames)
        ],
    )


def make_group_links(group_id, *filenames):
    """GroupLinks with a presigned-looking URL per object"""
    group = make_group(group_id, *filenames)
    return GroupLinks(
        object_group=group,
        links=[f"https://s3.test/{group_id}/{filename}?sig=x" for filename in filenames],
    )


DOWNLOAD_LINKS = {
    (ResourceKind.DATASET_VERSION, "v-fasta"): [
        make_group_links("g-fasta", "NC_002942.fna", "NC_002942.fna.fai")
    ],
    (ResourceKind.DATASET_VERSION, "v-gff"): [
        make_group_links("g-gff", "NC_002942.gff3")
    ],
    (ResourceKind.OBJECT_GROUP, "g-bam"): [
        make_group_links("g-bam", "run1.bam", "run1.bam.bai")
    ],
    (ResourceKind.OBJECT_GROUP, "g-bw"): [
        make_group_links("g-bw", "sampleA_fwd", "sampleA_rev")
    ],
}

OBJECT_GROUPS = {
    "v-bam": [
        make_group("g-bam", "run1.bam", "run1.bam.bai"),
        make_group("g-empty"),
    ],
    "v-bw": [make_group("g-bw", "sampleA_fwd", "sampleA_rev", name="sampleA group")],
}


@pytest.fixture
def config():
    """Config with catalog, dataset and provider settings for tests"""
    return Config(
        auth_client_id="igv-client",
        auth_client_secret="s3cret",
        auth_url=AUTH_URL,
        token_url=TOKEN_URL,
        callback_url="http://testserver/auth/callback",
        catalog_host="catalog.test",
        catalog_port=9000,
        bigwigs_dataset_id="ds-bw",
        bam_dataset_id="ds-bam",
        reference_dataset_id="ds-fasta",
        gff_dataset_id="ds-gff",
        cookie_secure=False,
        log_level="DEBUG",
    )


@pytest.fixture
def fresh_credential():
    """Credential valid for another hour"""
    return Credential(
        access_token="access-1",
        refresh_token="refresh-1",
        expiry=datetime.now(UTC) + timedelta(hours=1),
    )


@pytest.fixture
def expired_credential():
    """Credential that expired a minute ago"""
    return Credential(
        access_token="access-old",
        refresh_token="refresh-old",
        expiry=datetime.now(UTC) - timedelta(minutes=1),
    )


class TokenEndpoint:
    """Fake identity provider token endpoint recording the forms it receives"""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.payload = {
            "access_token": "access-new",
            "refresh_token": "refresh-new",
            "token_type": "Bearer",
            "expires_in": 3600,
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert str(request.url) == TOKEN_URL
        form = dict(urllib.parse.parse_qsl(request.content.decode()))
        self.requests.append(form)
        return httpx.Response(self.status_code, json=self.payload)


@pytest.fixture
def token_endpoint():
    return TokenEndpoint()


@pytest.fixture
def session_manager(config, token_endpoint):
    """SessionManager talking to the fake token endpoint"""
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(token_endpoint))
    return SessionManager(config, http_client=http_client)


@pytest.fixture
def mock_catalog():
    """Mock catalog backend serving the fixture data above"""

    def current_version(dataset_id, metadata):
        return DatasetVersion(id=DATASET_VERSIONS[dataset_id], dataset_id=dataset_id)

    def object_groups_of(version_id, metadata):
        return OBJECT_GROUPS[version_id]

    def download_links_for(resource_kind, resource_id, metadata):
        return DOWNLOAD_LINKS[(resource_kind, resource_id)]

    catalog = Mock()
    catalog.current_version = AsyncMock(side_effect=current_version)
    catalog.object_groups_of = AsyncMock(side_effect=object_groups_of)
    catalog.download_links_for = AsyncMock(side_effect=download_links_for)
    return catalog


@pytest.fixture
def assembler(mock_catalog, session_manager, config):
    """TrackAssembler over the mock catalog"""
    return TrackAssembler(mock_catalog, session_manager, config)


@pytest.fixture
def clean_env():
    """Fixture that temporarily clears IGVGW_* environment variables.

    This ensures Config tests see the true defaults without interference
    from environment variables that might be set in the user's shell.
    """
    gateway_vars = {
        key: value
        for key, value in os.environ.items()
        if key.startswith("IGVGW_")
        or key.upper() in ("OAUTH2_CLIENT_SECRET", "OAUTH2CLIENTSECRET")
    }

    for key in gateway_vars:
        os.environ.pop(key, None)

    try:
        yield
    finally:
        for key, value in gateway_vars.items():
            os.environ[key] = value


@pytest.fixture
def clean_config(clean_env):
    """Fixture that provides a Config instance with clean environment."""
    return Config()

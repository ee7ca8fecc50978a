"""High-value constants for the igv-gateway package."""

# Package metadata
PACKAGE_VERSION = "0.3.0"
SERVER_NAME = "igv-gateway"
USER_AGENT = f"{SERVER_NAME}/{PACKAGE_VERSION}"

# External API contract consts (catalog service)
CURRENT_VERSION_URL_PATH = "/api/v1/datasets/{dataset_id}/current_version"
OBJECT_GROUPS_URL_PATH = "/api/v1/dataset_versions/{version_id}/object_groups"
DOWNLOAD_LINKS_URL_PATH = "/api/v1/download_links"

# Session cookies
TOKEN_COOKIE_NAME = "token"
TOKEN_COOKIE_MAX_AGE_SECONDS = 15 * 60 * 60  # 15 hours
FLOW_COOKIE_NAME = "login_flow"

# Business logic consts
TOKEN_REFRESH_BUFFER_SECONDS = 30  # refresh 30s early
DEFAULT_TOKEN_TYPE = "Bearer"

# Track assembly
ALIGNMENT_SUFFIX = ".bam"
ALIGNMENT_INDEX_SUFFIX = ".bam.bai"
DEFAULT_TRACK_COLOR = "rgb(0, 0, 150)"
LISTING_KEY = "ALL"

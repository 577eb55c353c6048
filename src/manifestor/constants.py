"""
Constants and configuration values for Manifestor.

This module contains all hardcoded values, URLs, timeouts, naming tables and
other constants used throughout the application.
"""

# GitHub URLs
GITHUB_API_BASE = "https://api.github.com/repos"
GITHUB_WEB_BASE = "https://github.com"
JSDELIVR_GH_BASE = "https://cdn.jsdelivr.net/gh"
RAW_GITHUB_BASE = "https://raw.githubusercontent.com"

# Upstream sources
DEFAULT_UPSTREAM_REPO = "SagerNet/sing-box"
DEFAULT_RESOURCE_REPO = "Chen-ce/singularity-resources"
DEFAULT_RULES_REPO = "MetaCubeX/meta-rules-dat"
DEFAULT_RULES_BRANCH = "sing"

# Network timeouts and delays (in seconds)
GITHUB_API_TIMEOUT = 10
API_CALL_DELAY = 0.1  # Small delay to be respectful to GitHub API
RELEASE_SCAN_COUNT = 10

# Download settings
DEFAULT_CONNECT_RETRIES = 5
DEFAULT_BACKOFF_FACTOR = 0.3
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_CHUNK_SIZE = 8192
EXECUTABLE_PERMISSIONS = 0o755

# Commit/tree metadata retry policy
RULES_FETCH_MAX_ATTEMPTS = 3
RULES_FETCH_RETRY_DELAY = 2.0  # seconds, multiplied by the attempt number
HTTP_NOT_FOUND = 404

# Release channels
CHANNEL_STABLE = "stable"
CHANNEL_ALPHA = "alpha"
CHANNELS = (CHANNEL_STABLE, CHANNEL_ALPHA)

# Asset naming
ASSET_PREFIX = "sing-box-"
ASSET_ARCHIVE_SUFFIXES = (".tar.gz", ".zip")
ASSET_TOKEN_DELIMITER = "-"
# Substrings that mark mobile builds and SBOM artifacts
ASSET_REJECT_MARKERS = ("android", "ios", "sbom")
# Package-manager formats
ASSET_REJECT_SUFFIXES = (".deb", ".rpm", ".apk", ".ipk")

# Upstream OS token -> canonical OS name, in scan order
OS_ALIASES = {
    "windows": "windows",
    "darwin": "macos",
    "linux": "linux",
    "freebsd": "freebsd",
}

# Ordered (marker, arch suffix) pairs; first marker contained in the variant wins.
# A variant matching none of them is appended verbatim.
VARIANT_SUFFIX_RULES = (
    ("legacy", "legacy"),
    ("softfloat", "softfloat"),
)

# Core binary packaging
CORE_BINARY_NAME = "sing-box"
CORE_BINARY_NAME_WINDOWS = "sing-box.exe"
CORE_ARCHIVE_TEMPLATE = "core-{os}-{arch}.zip"
ZIP_EXTENSION = ".zip"
TAR_GZ_EXTENSION = ".tar.gz"

# Rule forms and categories
FORM_BINARY = "binary"
FORM_SOURCE = "source"
CATEGORY_ADDRESS = "address-rules"
CATEGORY_DOMAIN = "domain-rules"
TYPE_ALL = "all"

# Ordered (file suffix, form) pairs
RULE_FORM_SUFFIXES = (
    (".srs", FORM_BINARY),
    (".json", FORM_SOURCE),
)

# Ordered (directory marker, category) pairs; matched as substrings of the
# first path segment below the scope prefix
RULE_CATEGORY_MARKERS = (
    ("geoip", CATEGORY_ADDRESS),
    ("geosite", CATEGORY_DOMAIN),
)

# Rule indexing scopes: name -> tree prefix
RULE_SCOPES = {
    "lite": "geo-lite/",
    "full": "geo/",
}

# Output layout
DEFAULT_STATIC_DIR = "static"
DEFAULT_DIST_DIR = "dist"
CORE_INFO_FILE = "core_info.json"
RULES_DIR_NAME = "rules"
RULE_VERSION_FILE = "rule.version"
JSON_INDENT = 2

# Automation signaling
GITHUB_OUTPUT_ENV_VAR = "GITHUB_OUTPUT"
SIGNAL_UPDATE_JSON = "update_json"

# Logging configuration
LOGGER_NAME = "manifestor"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
INFO_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s: %(message)s"
LOG_FILE_NAME = "manifestor.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
LOG_FILE_BACKUP_COUNT = 5

# Environment variable names
LOG_LEVEL_ENV_VAR = "MANIFESTOR_LOG_LEVEL"
STATIC_DIR_ENV_VAR = "MANIFESTOR_STATIC_DIR"
DIST_DIR_ENV_VAR = "MANIFESTOR_DIST_DIR"

# Configuration file
APP_NAME = "manifestor"
CONFIG_FILE_NAME = "manifestor.yaml"

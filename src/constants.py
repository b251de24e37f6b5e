"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FAILURE = 1
    CONNECTION_ERROR = 2
    INTERRUPTED = 130


class Commands(Enum):
    """Subcommands exposed by the CLI.

    Args:
        Enum (string): Subcommand names.
    """

    LOCK = "lock"
    INSTALL = "install"
    VERSION = "version"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PROG = "prebuilt"
    VERSION = "0.4.0"
    ENV_PREFIX = "PREBUILT_"

    DEFAULT_CONFIG_FILE = ".prebuilt.yaml"
    DEFAULT_INSTALL_DIR = "~/.local/bin"
    LOCK_FILE_EXT = ".lock"
    LOG_FILE_NAME = "prebuilt.log"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]
    LOG_FORMATS = ["text", "json"]

    # Version sentinels meaning "no constraint"
    UNCONSTRAINED_VERSIONS = ("", "*", "latest")

    # HTTP tunables
    CONNECT_TIMEOUT = 30  # seconds to establish a connection
    REQUEST_TIMEOUT = 30  # seconds to wait for response data
    HTTP_POOL_CONNECTIONS = 10
    HTTP_POOL_MAXSIZE = 16
    DOWNLOAD_CHUNK_SIZE = 64 * 1024
    ERROR_BODY_MAX_CHARS = 2048
    USER_AGENT = f"{PROG}/{VERSION}"

    # Concurrency
    RESOLVE_CONCURRENCY = 8

    # Installed binary permissions (rwxr-xr-x)
    BINARY_MODE = 0o755

    # Built-in providers
    GITHUB_API_BASE = "https://api.github.com"
    GITHUB_BASE = "https://github.com"
    GITLAB_API_BASE = "https://gitlab.com/api/v4"
    GITLAB_BASE = "https://gitlab.com"
    ENV_GITHUB_TOKEN = "GITHUB_TOKEN"
    ENV_GITLAB_TOKEN = "GITLAB_TOKEN"
    REPO_API_PER_PAGE = 100
    RELEASE_TAGS_JSON_PATH = "$[*].tag_name"

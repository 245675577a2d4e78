"""Runtime configuration for lumifyhub-sync.

Reads connection and mirror settings from CLI args, environment variables,
.env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    LUMIFYHUB_API_URL: Service base URL (optional, default: https://www.lumifyhub.io)
    LUMIFYHUB_TOKEN: CLI access token (required for remote commands)
    LUMIFYHUB_PAGES_DIR: Page mirror root (optional, default: ~/.lumifyhub/pages)
    LUMIFYHUB_DATABASES_DIR: Database mirror root (optional, default: ~/.lumifyhub/databases)
    LUMIFYHUB_GIT_COMMIT: Commit the mirror after changes (optional, default: true)
    LUMIFYHUB_TIMEOUT: Request timeout in seconds (optional, default: 30)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.lumifyhub.io"
DEFAULT_PAGES_DIR = "~/.lumifyhub/pages"
DEFAULT_DATABASES_DIR = "~/.lumifyhub/databases"
DEFAULT_TIMEOUT = 30


@dataclass
class Config:
    api_url: str = DEFAULT_API_URL
    token: str | None = None
    pages_dir: Path = Path(DEFAULT_PAGES_DIR).expanduser()
    databases_dir: Path = Path(DEFAULT_DATABASES_DIR).expanduser()
    git_commit: bool = True
    debug: bool = False
    timeout: int = DEFAULT_TIMEOUT


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the URL format is invalid or the timeout is out of
            range.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    if not (1 <= config.timeout <= 600):
        raise ValueError(
            f"Invalid timeout {config.timeout}: must be between 1 and 600 seconds"
        )

    if config.pages_dir == config.databases_dir:
        logger.warning(
            "Pages and databases share the directory %s", config.pages_dir
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def load_config(
    api_url: str | None = None,
    token: str | None = None,
    pages_dir: str | None = None,
    databases_dir: str | None = None,
    no_git: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        api_url: Override service URL.
        token: Override access token.
        pages_dir: Override the page mirror root.
        databases_dir: Override the database mirror root.
        no_git: Disable committing the mirror (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML config file (see
            ``config_schema.build_config``).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is malformed.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_url = (
        api_url
        or os.getenv("LUMIFYHUB_API_URL")
        or fb.get("api_url")
        or DEFAULT_API_URL
    )

    final_token = token or os.getenv("LUMIFYHUB_TOKEN") or fb.get("token")
    final_token = final_token.strip() if final_token else None

    final_pages = (
        pages_dir
        or os.getenv("LUMIFYHUB_PAGES_DIR")
        or fb.get("pages_dir")
        or DEFAULT_PAGES_DIR
    )
    final_databases = (
        databases_dir
        or os.getenv("LUMIFYHUB_DATABASES_DIR")
        or fb.get("databases_dir")
        or DEFAULT_DATABASES_DIR
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if no_git:
        final_git = False
    else:
        env_git = _get_bool_env("LUMIFYHUB_GIT_COMMIT")
        if env_git is not None:
            final_git = env_git
        else:
            final_git = bool(fb.get("git_commit", True))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("LUMIFYHUB_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    timeout_raw = os.getenv("LUMIFYHUB_TIMEOUT")
    if timeout_raw is not None:
        try:
            final_timeout = int(timeout_raw)
        except ValueError:
            raise ValueError(
                f"Invalid LUMIFYHUB_TIMEOUT '{timeout_raw}': must be a number of seconds"
            ) from None
    elif "timeout" in fb:
        final_timeout = int(fb["timeout"])
    else:
        final_timeout = DEFAULT_TIMEOUT

    config = Config(
        api_url=final_url,
        token=final_token,
        pages_dir=Path(final_pages).expanduser(),
        databases_dir=Path(final_databases).expanduser(),
        git_commit=final_git,
        debug=final_debug,
        timeout=final_timeout,
    )

    validate_config(config)

    return config

"""Fetch a configuration document from a remote URL."""
import logging
from pathlib import Path
from typing import Optional

import httpx

from ..utils.retry import with_retry
from .loader import (
    ConfigError,
    ConfigLockedError,
    get_config_path,
    load_config,
    parse_config,
)
from .schema import CutlerConfig

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0


@with_retry(max_attempts=3)
async def _download(url: str, timeout: float) -> str:
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=True,
    ) as client:
        response = await client.get(url)
        response.raise_for_status()
        return response.text


async def fetch_remote_config(
    url: str,
    path: Optional[Path] = None,
    timeout: float = DEFAULT_TIMEOUT,
    save: bool = True,
    lock_check: bool = True,
) -> CutlerConfig:
    """Download a remote config, validate it and store it locally.

    Args:
        url: Location of the TOML document
        path: Where to save it (default: resolved config path)
        timeout: Request timeout in seconds
        save: Write the document to ``path``
        lock_check: Refuse to replace a locked local config or to accept
            a locked remote one

    Returns:
        The parsed remote configuration

    Raises:
        ConfigLockedError: If lock_check is set and either config is locked
        ConfigError: If the download fails or the document is invalid
    """
    path = Path(path) if path else get_config_path()
    if lock_check and path.exists():
        load_config(path)

    logger.info(f"Fetching remote config from {url}")
    try:
        text = await _download(url, timeout)
    except httpx.HTTPStatusError as e:
        raise ConfigError(
            f"Remote config request failed with status {e.response.status_code}: {url}"
        ) from e
    except httpx.HTTPError as e:
        raise ConfigError(f"Failed to fetch remote config from {url}: {e}") from e

    config = parse_config(text, path)
    if lock_check and config.lock:
        raise ConfigLockedError(
            f"The remote config at {url} is locked; refusing to save or apply it."
        )

    if save:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logger.info(f"Remote config saved at {path}")

    return config

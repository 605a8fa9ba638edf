"""Fetch a lorebook JSON file from a URL and parse it.

Either persisted shape is accepted (see storyloom.parser). All network and
format failures surface as LorebookImportError with a readable message.
"""

from __future__ import annotations

import logging

import httpx

from storyloom.models import Lorebook
from storyloom.parser import LorebookParseError, parse_lorebook

logger = logging.getLogger(__name__)


class LorebookImportError(RuntimeError):
    """Raised when a lorebook URL cannot be fetched or does not hold a lorebook."""


async def fetch_lorebook(url: str, timeout: float = 30.0) -> Lorebook:
    logger.debug("fetching lorebook url=%s", url)
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            resp = await client.get(url)
            resp.raise_for_status()
    except httpx.ConnectError as e:
        raise LorebookImportError(f"Cannot connect to {url}") from e
    except httpx.HTTPStatusError as e:
        raise LorebookImportError(
            f"Failed to fetch URL: HTTP {e.response.status_code}"
        ) from e
    except httpx.TimeoutException as e:
        raise LorebookImportError(f"Fetching {url} timed out after {timeout}s") from e
    except httpx.HTTPError as e:
        raise LorebookImportError(f"Failed to fetch URL: {e}") from e

    content_type = resp.headers.get("content-type", "")
    if "application/json" not in content_type:
        raise LorebookImportError("URL does not point to a JSON file")

    try:
        return parse_lorebook(resp.text)
    except LorebookParseError as e:
        raise LorebookImportError(str(e)) from e

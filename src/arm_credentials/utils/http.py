"""Shared HTTP utilities."""

from __future__ import annotations

from typing import Any

import httpx

DEFAULT_TIMEOUT_SECONDS = 30.0


def join_url(base_url: str, path: str) -> str:
    """Join ``path`` onto ``base_url`` with exactly one separating slash."""
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


async def send(
    method: str,
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request, on ``client`` when given or on a short-lived client.

    Transport errors (``httpx.HTTPError``) propagate unchanged.
    """
    if client is not None:
        return await client.request(method, url, timeout=timeout, **kwargs)
    async with httpx.AsyncClient() as owned:
        return await owned.request(method, url, timeout=timeout, **kwargs)


def json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None

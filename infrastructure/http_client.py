"""Async HTTP client bound to a single upstream API."""

from typing import Any, Optional

import httpx


class HttpClient:
    """Thin async wrapper around httpx.AsyncClient.

    One instance per external service keeps base URL, default headers and
    timeout independently configurable.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 5.0,
        headers: Optional[dict] = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url, timeout=timeout, headers=headers or {}
        )

    async def post_json(self, url: str, payload: dict, **kwargs: Any) -> httpx.Response:
        return await self._client.post(url, json=payload, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

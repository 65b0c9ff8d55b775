"""
Rick and Morty REST API client.

Used endpoints (relative to the API base URL):
- GET /                       -> {"characters": url, "locations": url, "episodes": url}
- GET /{kind}/?page=N&...     -> {"info": {"count", "pages", "next", "prev"}, "results": [...]}
- GET /{kind}/{id}            -> one record
"""

from __future__ import annotations

import enum
import logging
from typing import Any

import httpx

from .settings import ApiSettings

logger = logging.getLogger(__name__)


class ResourceKind(str, enum.Enum):
    CHARACTER = "character"
    LOCATION = "location"
    EPISODE = "episode"

    @property
    def path(self) -> str:
        return f"{self.value}/"


# Remote failures are explicit and separable from store errors.
class RemoteError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(RemoteError):
    pass


def _normalize_base_url(base_url: str) -> str:
    base_url = (base_url or "").strip()
    if not base_url:
        raise RemoteError("RAM_API_BASE_URL is empty.")
    return base_url.rstrip("/") + "/"


class RickAndMortyClient:
    """
    Thin async wrapper over one `httpx.AsyncClient`.

    Use as an async context manager so the underlying connections are closed:

        async with RickAndMortyClient.from_settings(api_settings()) as client:
            page = await client.get_page(ResourceKind.CHARACTER, 1)
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_s: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = _normalize_base_url(base_url)
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout_s, transport=transport)

    @classmethod
    def from_settings(
        cls,
        settings: ApiSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> RickAndMortyClient:
        return cls(base_url=settings.base_url, timeout_s=settings.timeout_s, transport=transport)

    async def __aenter__(self) -> RickAndMortyClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            resp = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise TransportError(f"GET {path} failed: {exc}") from exc

        if resp.status_code != 200:
            # Avoid dumping huge bodies; include a small snippet.
            body = resp.text[:500]
            raise RemoteError(
                f"Rick and Morty API request failed: {resp.status_code} {body}",
                status_code=resp.status_code,
            )

        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteError("Rick and Morty API returned a non-JSON body.") from exc

    async def api_info(self) -> dict[str, Any]:
        return await self._get_json(self.base_url)

    async def api_schema(self) -> list[str]:
        """
        Key names of the paging `info` block (shared by every collection).
        """
        data = await self._get_json(ResourceKind.CHARACTER.path)
        return list((data.get("info") or {}).keys())

    async def get_all(self, kind: ResourceKind) -> dict[str, Any]:
        return await self._get_json(kind.path)

    async def get_page(self, kind: ResourceKind, number: int) -> dict[str, Any]:
        return await self._get_json(kind.path, params={"page": number})

    async def get(self, kind: ResourceKind, record_id: int | str | None) -> dict[str, Any] | None:
        if not record_id:
            logger.error("You need to pass id of %s to get output.", kind.value)
            logger.error("To get list of all %ss, use get_all().", kind.value)
            return None
        return await self._get_json(f"{kind.path}{record_id}")

    async def filter(self, kind: ResourceKind, **params: Any) -> dict[str, Any]:
        return await self._get_json(kind.path, params=params)

    async def schema(self, kind: ResourceKind) -> list[str]:
        """
        Key names of the first record in the collection.
        """
        data = await self._get_json(kind.path)
        results = data.get("results") or []
        if not results:
            return []
        return list(results[0].keys())

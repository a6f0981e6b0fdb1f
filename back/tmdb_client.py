"""
TMDB API client (https://api.themoviedb.org/3).

The server holds the API key; callers never see it. Successful responses
are cached for an hour, failed ones never, so the next request retries.
"""

from dataclasses import dataclass
from typing import Any, Optional

import httpx

from cache import TTLCache
from errors import ConfigurationError, UpstreamUnavailable

TMDB_BASE = "https://api.themoviedb.org/3"

HEADERS = {
    "User-Agent": "StreamHub/1.0",
    "Accept": "application/json",
}


@dataclass
class TmdbResponse:
    status_code: int
    data: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class TmdbClient:
    def __init__(
        self,
        api_key: Optional[str],
        cache: TTLCache,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.cache = cache
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(headers=HEADERS, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    @staticmethod
    def cache_key(path: str, params: Optional[dict] = None) -> str:
        query = "&".join(f"{k}={v}" for k, v in sorted((params or {}).items()))
        return f"{path}?{query}"

    async def get(self, path: str, params: Optional[dict] = None) -> TmdbResponse:
        """
        GET a TMDB path ("/movie/550") with the API key injected.

        Non-2xx answers are returned, not raised, so proxies can forward
        them verbatim. Network errors raise UpstreamUnavailable.
        """
        if not self.api_key:
            raise ConfigurationError("TMDB_API_KEY is not configured on the server.")

        path = "/" + path.lstrip("/")
        params = {k: v for k, v in (params or {}).items() if k != "api_key"}
        key = self.cache_key(path, params)

        cached = self.cache.get(key)
        if cached is not None:
            print(f"[tmdb] cache hit {key}")
            return cached

        print(f"[tmdb] cache miss {key}")
        try:
            resp = await self._get_client().get(
                f"{TMDB_BASE}{path}",
                params={**params, "api_key": self.api_key},
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"TMDB request failed: {e.__class__.__name__}") from e

        try:
            data = resp.json()
        except ValueError:
            data = resp.text

        result = TmdbResponse(status_code=resp.status_code, data=data)
        if result.ok:
            self.cache.set(key, result)
        else:
            print(f"[tmdb] HTTP {resp.status_code} for {path}")
        return result

    async def details(self, media_type: str, tmdb_id: str) -> Optional[dict]:
        resp = await self.get(f"/{media_type}/{tmdb_id}")
        return resp.data if resp.ok else None

    async def external_ids(self, media_type: str, tmdb_id: str) -> Optional[dict]:
        resp = await self.get(f"/{media_type}/{tmdb_id}/external_ids")
        return resp.data if resp.ok else None

    async def find_by_external_id(self, external_id: str, source: str) -> Optional[dict]:
        resp = await self.get(f"/find/{external_id}", {"external_source": source})
        return resp.data if resp.ok else None

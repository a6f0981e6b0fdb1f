"""
AniList GraphQL client (https://graphql.anilist.co). No API key needed.
"""

from typing import Any, Optional

import httpx

from errors import UpstreamUnavailable

ANILIST_URL = "https://graphql.anilist.co"

HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

SEARCH_QUERY = """
query ($search: String) {
  Page(page: 1, perPage: 20) {
    media(search: $search, type: ANIME) {
      id
      status
      title { english romaji }
      startDate { year }
    }
  }
}
"""

MAL_ID_QUERY = """
query ($id: Int) {
  Media(id: $id, type: ANIME) {
    id
    idMal
  }
}
"""

# AniList status enum -> the label used when filtering search candidates
STATUS_LABELS = {
    "FINISHED": "Completed",
    "RELEASING": "Ongoing",
    "NOT_YET_RELEASED": "Not yet aired",
    "CANCELLED": "Cancelled",
    "HIATUS": "Hiatus",
}


class AnilistClient:
    def __init__(self, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(headers=HEADERS, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def post(self, body: dict) -> httpx.Response:
        """Raw pass-through POST, used by the /anilist proxy route."""
        try:
            return await self._get_client().post(ANILIST_URL, json=body)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"AniList request failed: {e.__class__.__name__}") from e

    async def query(self, query: str, variables: Optional[dict] = None) -> dict[str, Any]:
        resp = await self.post({"query": query, "variables": variables or {}})
        if resp.status_code != 200:
            print(f"[anilist] HTTP {resp.status_code}")
            raise UpstreamUnavailable("AniList returned an error", resp.status_code)
        payload = resp.json()
        if payload.get("errors"):
            message = payload["errors"][0].get("message", "unknown error")
            print(f"[anilist] GraphQL error: {message}")
            raise UpstreamUnavailable(f"AniList GraphQL error: {message}", resp.status_code)
        return payload.get("data") or {}

    async def search_anime(self, title: str) -> list[dict]:
        """
        Search AniList by title. Each candidate is normalised to
        {id, title: {english, romaji}, status, releaseDate}.
        """
        data = await self.query(SEARCH_QUERY, {"search": title})
        media = (data.get("Page") or {}).get("media") or []
        return [
            {
                "id": m.get("id"),
                "title": m.get("title") or {},
                "status": STATUS_LABELS.get(m.get("status"), m.get("status")),
                "releaseDate": (m.get("startDate") or {}).get("year"),
            }
            for m in media
        ]

    async def mal_id(self, anilist_id: int) -> Optional[int]:
        data = await self.query(MAL_ID_QUERY, {"id": int(anilist_id)})
        return (data.get("Media") or {}).get("idMal")

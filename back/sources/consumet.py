"""
Consumet API source (self-hosted, CONSUMET_API_URL).

Unlike the embed players this is a direct source: the built URL points at
Consumet's JSON API, and fetch_direct turns it into raw HLS/MP4 links.

Anime flow:
  /meta/anilist/info/{anilistId}?provider=gogoanime  -> episode list
  /meta/anilist/watch/{episodeId}                    -> sources + subtitles
"""

from typing import Optional

import httpx

import cache
from config import DEFAULT_CONSUMET_URL
from errors import ResolutionMiss, UpstreamUnavailable
from sources.base import BuildArgs, ContentShape, StreamSource


def _movie(args: BuildArgs) -> str:
    return f"/movies/flixhq/{args.media_id}"


def _tv(args: BuildArgs) -> str:
    return f"/movies/flixhq/watch?episodeId={args.episode}&mediaId={args.media_id}&server=upcloud"


def _anime_info(args: BuildArgs) -> str:
    return f"/meta/anilist/info/{args.media_id}?provider=gogoanime"


class Source(StreamSource):
    name = "consumet"
    base_url = DEFAULT_CONSUMET_URL
    priority = 90
    is_direct = True

    builders = {
        ContentShape.MOVIE: _movie,
        ContentShape.TV: _tv,
        ContentShape.ANIME: _anime_info,
        ContentShape.ANIME_MOVIE: _anime_info,
    }

    def __init__(self, settings=None):
        super().__init__(settings)
        if settings is not None:
            self.base_url = settings.consumet_api_url
        self._cache = cache.create("consumet")

    def caches(self) -> list[cache.TTLCache]:
        return [self._cache]

    async def _get_json(self, client: httpx.AsyncClient, url: str) -> dict:
        try:
            resp = await client.get(url)
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"Consumet request failed: {e.__class__.__name__}") from e
        if resp.status_code != 200:
            raise UpstreamUnavailable("Consumet returned an error", resp.status_code)
        return resp.json()

    async def fetch_direct(self, client: httpx.AsyncClient, url: str, args: BuildArgs) -> Optional[dict]:
        cache_key = f"{url}#e{args.episode}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            print(f"[consumet] cache hit {cache_key}")
            return cached

        data = await self._get_json(client, url)

        if "episodes" in data:
            episode = self._pick_episode(data, args.episode)
            print(f"[consumet] watching episode {episode['id']}")
            data = await self._get_json(client, f"{self.base_url}/meta/anilist/watch/{episode['id']}")

        sources = data.get("sources") or []
        if not sources:
            raise UpstreamUnavailable("Consumet did not return any valid sources.")

        main = next(
            (s for s in sources if s.get("quality") in ("default", "auto")),
            sources[0],
        )
        subtitles = data.get("subtitles") or []
        result = {
            "url": main.get("url"),
            "qualities": [{"quality": s.get("quality"), "url": s.get("url")} for s in sources],
            "subtitles": subtitles,
            "defaultSubtitle": next((s for s in subtitles if s.get("lang") == "English"), None),
        }
        self._cache.set(cache_key, result)
        return result

    @staticmethod
    def _pick_episode(info: dict, number: Optional[int]) -> dict:
        episodes = info.get("episodes") or []
        if info.get("status") == "Not yet aired" or not episodes:
            raise ResolutionMiss("Content is not yet aired or has no episodes on Consumet.")
        if info.get("type") == "MOVIE":
            return episodes[0]
        wanted = number or 1
        for ep in episodes:
            try:
                if int(ep.get("number")) == wanted:
                    return ep
            except (TypeError, ValueError):
                continue
        raise ResolutionMiss(f"Episode {wanted} not found on Consumet.")

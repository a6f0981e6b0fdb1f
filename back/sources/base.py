"""
Base class for stream sources (plugin interface).

Every source plugin must:
1. Create a file in sources/ (e.g. sources/my_source.py)
2. Define a class named `Source` that inherits from `StreamSource`
3. Provide at least a MOVIE and a TV builder

A builder is a pure function BuildArgs -> path, appended to base_url.
A shape missing from `builders` means the source does not support it;
for ANIME that means the orchestrator must translate the AniList id to a
TMDB id and use the TV/MOVIE builders instead.

`query_params` maps a shape to a function BuildArgs -> dict of extra
query parameters (resume progress, dub, player features). Values that are
None are dropped, and shapes without an entry get no extra parameters.

Direct sources (is_direct = True) build an API URL and then resolve it to
the real media URL in `fetch_direct`:
{
    "url": "https://.../master.m3u8",
    "qualities": [{"quality": "1080p", "url": "https://..."}],
    "subtitles": [{"lang": "English", "url": "https://..."}],
}
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import httpx


class ContentShape(str, Enum):
    MOVIE = "movie"
    TV = "tv"
    ANIME = "anime"
    ANIME_MOVIE = "animeMovie"


@dataclass(frozen=True)
class BuildArgs:
    media_id: str
    season: Optional[int] = None
    episode: Optional[int] = None
    dub: bool = False
    external_id: Optional[str] = None  # IMDb id, when the source prefers it
    progress: Optional[int] = None     # resume position in seconds

    @property
    def preferred_id(self) -> str:
        return self.external_id or self.media_id


Builder = Callable[[BuildArgs], str]
ParamBuilder = Callable[[BuildArgs], dict]


def progress_param(name: str) -> ParamBuilder:
    """Resume position under a source-specific parameter name."""
    def params(args: BuildArgs) -> dict:
        if args.progress and args.progress > 0:
            return {name: args.progress}
        return {}
    return params


class StreamSource:
    name: str = "base"
    base_url: str = ""
    priority: int = 100
    prefers_imdb: bool = False
    is_direct: bool = False

    builders: dict[ContentShape, Builder] = {}
    query_params: dict[ContentShape, ParamBuilder] = {}
    # player features advertised to the front end, per shape
    features: dict[ContentShape, list[str]] = {}

    def __init__(self, settings=None):
        self.settings = settings

    def supports(self, shape: ContentShape) -> bool:
        return shape in self.builders

    @property
    def native_anime(self) -> bool:
        return ContentShape.ANIME in self.builders

    def caches(self) -> list:
        """Result caches owned by this source, swept with the process caches."""
        return []

    async def fetch_direct(self, client: httpx.AsyncClient, url: str, args: BuildArgs) -> Optional[dict]:
        """Resolve a built URL to a direct media URL. Only for is_direct sources."""
        return None

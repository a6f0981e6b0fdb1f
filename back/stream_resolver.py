"""
Stream URL resolution with source fallback.

For each candidate source (requested one first, then the registry's
priority order) the resolver works out which id namespace that source
needs, translates the id if necessary, builds the URL and stops at the
first success:

    validate -> classify -> (translate id) -> build URL -> next source ...
"""

from dataclasses import asdict, dataclass, field
from typing import Optional

import httpx

from errors import AllSourcesExhausted, ClientInputError, ResolutionMiss, UpstreamUnavailable
from id_resolver import IdResolver, ResolutionContext
from registry import SourceRegistry
from sources.base import BuildArgs, ContentShape, StreamSource

MEDIA_TYPES = ("movie", "tv", "anime")


def _positive_int(name: str, raw: Optional[str]) -> Optional[int]:
    if raw is None or str(raw).strip() == "":
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ClientInputError(f"'{name}' must be an integer") from None
    if value < 1:
        raise ClientInputError(f"'{name}' must be 1 or greater")
    return value


@dataclass(frozen=True)
class StreamRequest:
    type: str
    id: str
    source: Optional[str] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    dub: bool = False
    progress: Optional[int] = None

    @classmethod
    def from_params(
        cls,
        type: Optional[str],
        id: Optional[str],
        source: Optional[str] = None,
        season: Optional[str] = None,
        episode: Optional[str] = None,
        dub: Optional[str] = None,
        progress: Optional[str] = None,
    ) -> "StreamRequest":
        if not type or not id:
            raise ClientInputError("Missing required parameters: id and type")
        if type not in MEDIA_TYPES:
            raise ClientInputError(f"'type' must be one of: {', '.join(MEDIA_TYPES)}")

        season_num = _positive_int("season", season)
        episode_num = _positive_int("episode", episode)
        if type == "tv" and (season_num is None or episode_num is None):
            raise ClientInputError("Season and episode are required for TV shows")

        progress_sec = None
        if progress is not None and str(progress).strip() != "":
            try:
                progress_sec = int(progress)
            except (TypeError, ValueError):
                raise ClientInputError("'progress' must be a number of seconds") from None
            if progress_sec < 0:
                raise ClientInputError("'progress' cannot be negative")

        return cls(
            type=type,
            id=str(id),
            source=source or None,
            season=season_num,
            episode=episode_num,
            dub=dub == "true",
            progress=progress_sec,
        )


@dataclass
class ResolvedStream:
    url: str
    is_direct_source: bool = False
    current_source: str = ""
    available_sources: list[str] = field(default_factory=list)
    qualities: list[dict] = field(default_factory=list)
    subtitles: list[dict] = field(default_factory=list)
    provider: str = ""
    features: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            "url": data["url"],
            "isDirectSource": data["is_direct_source"],
            "currentSource": data["current_source"],
            "availableSources": data["available_sources"],
            "qualities": data["qualities"],
            "subtitles": data["subtitles"],
            "provider": data["provider"],
            "features": data["features"],
        }


class StreamResolver:
    def __init__(
        self,
        registry: SourceRegistry,
        id_resolver: IdResolver,
        default_source: str = "videasy",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.registry = registry
        self.id_resolver = id_resolver
        self.default_source = default_source
        self.timeout = timeout
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(follow_redirects=True, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def resolve(self, request: StreamRequest) -> ResolvedStream:
        requested = request.source or self.default_source
        if requested not in self.registry:
            print(f"[stream] Source '{requested}' is not supported, using default order")

        ctx = ResolutionContext(self.id_resolver)
        failures: list[Exception] = []

        for name in self.registry.fallback_order(requested):
            print(f"[stream] Trying {name} for {request.type}/{request.id}")
            try:
                stream = await self._attempt(name, request, ctx)
            except Exception as e:
                print(f"[stream] {name} failed: {e}")
                failures.append(e)
                continue

            stream.current_source = name
            stream.available_sources = self.registry.names()
            print(f"[stream] Resolved via {name}: {stream.url}")
            return stream

        if failures and all(isinstance(f, ResolutionMiss) for f in failures):
            raise failures[-1]
        raise AllSourcesExhausted(
            current_source=requested,
            available_sources=self.registry.names(),
            last_error=str(failures[-1]) if failures else None,
        )

    async def _attempt(self, name: str, request: StreamRequest, ctx: ResolutionContext) -> ResolvedStream:
        source = self.registry.get(name)
        shape, args = await self._plan(source, request, ctx)

        url = self.registry.build(name, shape, args)
        if url is None:
            raise UpstreamUnavailable(f"{name} cannot build a '{shape.value}' URL")

        if not source.is_direct:
            return ResolvedStream(
                url=url,
                is_direct_source=False,
                provider=name,
                features=list(source.features.get(shape, [])),
            )

        data = await source.fetch_direct(self._get_client(), url, args)
        if not data or not data.get("url"):
            raise UpstreamUnavailable(f"{name} returned no playable URL")
        return ResolvedStream(
            url=data["url"],
            is_direct_source=True,
            qualities=data.get("qualities") or [],
            subtitles=data.get("subtitles") or [],
            provider=name,
        )

    async def _plan(
        self, source: StreamSource, request: StreamRequest, ctx: ResolutionContext
    ) -> tuple[ContentShape, BuildArgs]:
        if request.type == "anime":
            if source.native_anime:
                return self._anime_plan(source, request.id, request.episode, request)

            match = await ctx.tmdb_from_anilist(request.id)
            if match is None:
                raise ResolutionMiss(f"No TMDB mapping found for AniList id {request.id}")
            return await self._tmdb_plan(
                source, match.media_type, match.tmdb_id,
                request.season or 1, request.episode or 1, request, ctx,
            )

        if source.native_anime:
            classification = await ctx.classify(request.id, request.type)
            if classification.is_anime and classification.details:
                anilist_id = await ctx.anilist_from_tmdb(classification.details)
                if anilist_id:
                    single = (
                        request.type == "movie"
                        or classification.details.get("number_of_episodes") == 1
                    )
                    episode = None if single else request.episode
                    return self._anime_plan(source, str(anilist_id), episode, request)
                # the tv/movie builders would play the wrong title for an anime
                raise ResolutionMiss(f"No AniList id found for anime TMDB id {request.id}")

        return await self._tmdb_plan(
            source, request.type, request.id, request.season, request.episode, request, ctx,
        )

    @staticmethod
    def _anime_plan(
        source: StreamSource, anilist_id: str, episode: Optional[int], request: StreamRequest
    ) -> tuple[ContentShape, BuildArgs]:
        # no episode means a single-cour movie
        if episode is None and source.supports(ContentShape.ANIME_MOVIE):
            shape = ContentShape.ANIME_MOVIE
        else:
            shape = ContentShape.ANIME
            episode = episode or 1
        return shape, BuildArgs(
            media_id=anilist_id,
            episode=episode,
            dub=request.dub,
            progress=request.progress,
        )

    @staticmethod
    async def _tmdb_plan(
        source: StreamSource,
        media_type: str,
        tmdb_id: str,
        season: Optional[int],
        episode: Optional[int],
        request: StreamRequest,
        ctx: ResolutionContext,
    ) -> tuple[ContentShape, BuildArgs]:
        external_id = await ctx.imdb_id(tmdb_id, media_type) if source.prefers_imdb else None
        if media_type == "movie":
            return ContentShape.MOVIE, BuildArgs(
                media_id=tmdb_id, external_id=external_id, progress=request.progress,
            )
        return ContentShape.TV, BuildArgs(
            media_id=tmdb_id,
            season=season,
            episode=episode,
            dub=request.dub,
            external_id=external_id,
            progress=request.progress,
        )

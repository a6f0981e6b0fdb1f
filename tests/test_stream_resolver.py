"""
Tests for StreamResolver: request validation, id-namespace planning per
source, fallback across sources and the exhausted / not-found outcomes.

The IdResolver is replaced by an AsyncMock so each test states exactly
which translations succeed.
"""

from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from errors import AllSourcesExhausted, ClientInputError, ResolutionMiss, error_body, error_status
from id_resolver import AnimeClassification, IdResolver, TmdbMatch
from registry import SourceRegistry
from sources.base import ContentShape, StreamSource
from sources.embedsu import Source as EmbedSu
from sources.videasy import Source as Videasy
from sources.vidsrc import Source as VidSrc
from stream_resolver import StreamRequest, StreamResolver
from tests.fixtures.responses import (
    CONSUMET_INFO_ATTACK_ON_TITAN,
    CONSUMET_WATCH_EPISODE_2,
    TMDB_TV_ATTACK_ON_TITAN,
)


def _boom(args):
    raise RuntimeError("player offline")


class BrokenSource(StreamSource):
    name = "broken"
    base_url = "https://broken.example"
    priority = 1
    builders = {ContentShape.MOVIE: _boom, ContentShape.TV: _boom}


class AlsoBroken(BrokenSource):
    name = "also-broken"
    priority = 2


class EmptyDirectSource(StreamSource):
    name = "empty-direct"
    base_url = "https://direct.example"
    priority = 3
    is_direct = True
    builders = {
        ContentShape.MOVIE: lambda args: f"/movie/{args.media_id}",
        ContentShape.TV: lambda args: f"/tv/{args.media_id}",
    }


@pytest.fixture
def ids() -> AsyncMock:
    resolver = AsyncMock(spec=IdResolver)
    resolver.classify_anime.return_value = AnimeClassification(False, None)
    resolver.fetch_external_ids.return_value = None
    resolver.resolve_tmdb_from_anilist.return_value = None
    resolver.resolve_anilist_from_tmdb.return_value = None
    return resolver


@pytest.fixture
def streams(registry, ids) -> StreamResolver:
    return StreamResolver(registry, ids)


def request(**params) -> StreamRequest:
    return StreamRequest.from_params(**params)


class TestStreamRequestValidation:
    @pytest.mark.parametrize(
        "params",
        [
            {"type": None, "id": "550"},
            {"type": "movie", "id": None},
            {"type": "music", "id": "1"},
            {"type": "tv", "id": "1399", "season": "1"},
            {"type": "tv", "id": "1399", "episode": "1"},
            {"type": "tv", "id": "1399", "season": "0", "episode": "1"},
            {"type": "tv", "id": "1399", "season": "1", "episode": "0"},
            {"type": "anime", "id": "16498", "episode": "two"},
            {"type": "movie", "id": "550", "progress": "-5"},
            {"type": "movie", "id": "550", "progress": "soon"},
        ],
    )
    def test_invalid_requests_are_client_errors(self, params):
        with pytest.raises(ClientInputError) as exc_info:
            request(**params)
        assert error_status(exc_info.value) == 400

    def test_parses_numbers_and_dub(self):
        req = request(type="anime", id="16498", episode="3", dub="true", progress="75")
        assert req.episode == 3
        assert req.season is None
        assert req.dub is True
        assert req.progress == 75

    def test_dub_only_for_literal_true(self):
        assert request(type="anime", id="1", dub="yes").dub is False


class TestScenarios:
    async def test_movie_on_videasy(self, streams):
        stream = await streams.resolve(request(type="movie", id="550", source="videasy"))

        assert "/movie/550" in stream.url
        assert stream.is_direct_source is False
        assert stream.current_source == "videasy"

    async def test_tv_on_vidsrc_uses_imdb_id(self, streams, ids):
        ids.fetch_external_ids.return_value = "tt0944947"

        stream = await streams.resolve(
            request(type="tv", id="1399", season="1", episode="1", source="vidsrc")
        )

        assert "tt0944947" in stream.url
        assert "1399" not in stream.url
        ids.fetch_external_ids.assert_awaited_once_with("1399", "tv")

    async def test_anime_on_embedsu_translates_to_tmdb(self, streams, ids):
        ids.resolve_tmdb_from_anilist.return_value = TmdbMatch("121", "tv")

        stream = await streams.resolve(request(type="anime", id="16498", source="embedsu"))

        assert stream.url == "https://embed.su/embed/tv/121/1/1"
        ids.resolve_tmdb_from_anilist.assert_awaited_once_with("16498")

    async def test_anime_movie_match_uses_movie_builder(self, streams, ids):
        ids.resolve_tmdb_from_anilist.return_value = TmdbMatch("372058", "movie")

        stream = await streams.resolve(request(type="anime", id="21519", source="embedsu"))

        assert stream.url == "https://embed.su/embed/movie/372058"

    async def test_primary_failure_falls_back_to_next_source(self, ids):
        registry = SourceRegistry([BrokenSource(), EmbedSu()])
        streams = StreamResolver(registry, ids)

        stream = await streams.resolve(request(type="movie", id="550", source="broken"))

        assert stream.current_source == "embedsu"
        assert stream.url == "https://embed.su/embed/movie/550"
        assert stream.available_sources == ["broken", "embedsu"]

    async def test_direct_source_without_url_falls_back(self, ids):
        registry = SourceRegistry([EmptyDirectSource(), EmbedSu()])
        streams = StreamResolver(registry, ids)

        stream = await streams.resolve(request(type="movie", id="550", source="empty-direct"))

        assert stream.current_source == "embedsu"

    async def test_all_sources_failing_is_exhausted(self, ids):
        registry = SourceRegistry([BrokenSource(), AlsoBroken()])
        streams = StreamResolver(registry, ids)

        with pytest.raises(AllSourcesExhausted) as exc_info:
            await streams.resolve(request(type="movie", id="550", source="broken"))

        body = error_body(exc_info.value)
        assert error_status(exc_info.value) == 503
        assert body["retryAfter"] == 300
        assert body["availableSources"] == ["broken", "also-broken"]
        assert body["currentSource"] == "broken"
        assert "player offline" in body["error"]


class TestAnimeNamespaces:
    async def test_native_anime_source_skips_id_translation(self, streams, ids):
        stream = await streams.resolve(
            request(type="anime", id="16498", episode="3", source="videasy")
        )

        assert stream.url == "https://player.videasy.net/anime/16498/3"
        ids.resolve_tmdb_from_anilist.assert_not_awaited()

    async def test_anime_without_episode_uses_anime_movie_builder(self, streams):
        stream = await streams.resolve(request(type="anime", id="21519", dub="true"))
        assert stream.url == "https://player.videasy.net/anime/21519?dub=true"

    async def test_anime_without_movie_builder_defaults_to_episode_one(self, ids):
        class AnimeOnly(StreamSource):
            name = "anime-only"
            base_url = "https://anime.example"
            builders = {
                ContentShape.MOVIE: lambda args: f"/m/{args.media_id}",
                ContentShape.TV: lambda args: f"/t/{args.media_id}",
                ContentShape.ANIME: lambda args: f"/a/{args.media_id}/{args.episode}",
            }

        streams = StreamResolver(SourceRegistry([AnimeOnly()]), ids)
        stream = await streams.resolve(request(type="anime", id="21519"))

        assert stream.url == "https://anime.example/a/21519/1"

    async def test_non_native_source_translates_before_building(self, ids):
        ids.resolve_tmdb_from_anilist.return_value = TmdbMatch("1429", "tv")
        ids.fetch_external_ids.return_value = "tt2560140"
        streams = StreamResolver(SourceRegistry([VidSrc()]), ids)

        stream = await streams.resolve(
            request(type="anime", id="16498", season="2", episode="4")
        )

        assert stream.url == "https://vidsrc.to/embed/tv/tt2560140/2/4"
        ids.fetch_external_ids.assert_awaited_once_with("1429", "tv")

    async def test_missing_mapping_everywhere_is_not_found(self, ids):
        streams = StreamResolver(SourceRegistry([EmbedSu(), VidSrc()]), ids)

        with pytest.raises(ResolutionMiss) as exc_info:
            await streams.resolve(request(type="anime", id="999999"))

        assert error_status(exc_info.value) == 404
        # a failed lookup is not repeated for the second source
        ids.resolve_tmdb_from_anilist.assert_awaited_once()

    async def test_missing_mapping_falls_back_to_native_source(self, streams, ids):
        stream = await streams.resolve(
            request(type="anime", id="16498", episode="2", source="embedsu")
        )

        assert stream.current_source == "videasy"
        assert stream.url == "https://player.videasy.net/anime/16498/2"


class TestTmdbAnimeDetection:
    async def test_tmdb_anime_routes_to_anime_builder(self, streams, ids):
        ids.classify_anime.return_value = AnimeClassification(True, TMDB_TV_ATTACK_ON_TITAN)
        ids.resolve_anilist_from_tmdb.return_value = 16498

        stream = await streams.resolve(
            request(type="tv", id="1429", season="1", episode="5", source="videasy")
        )

        assert stream.url == "https://player.videasy.net/anime/16498/5"

    async def test_single_episode_anime_omits_episode(self, streams, ids):
        details = {**TMDB_TV_ATTACK_ON_TITAN, "number_of_episodes": 1}
        ids.classify_anime.return_value = AnimeClassification(True, details)
        ids.resolve_anilist_from_tmdb.return_value = 16498

        stream = await streams.resolve(
            request(type="tv", id="1429", season="1", episode="1", source="videasy")
        )

        assert stream.url == "https://player.videasy.net/anime/16498"

    async def test_unmatched_anime_skips_to_next_source(self, streams, ids):
        ids.classify_anime.return_value = AnimeClassification(True, TMDB_TV_ATTACK_ON_TITAN)

        stream = await streams.resolve(
            request(type="tv", id="1429", season="1", episode="5", source="videasy")
        )

        # videasy's tv builder would play the wrong title, so it is not used
        assert stream.current_source == "vidsrc"
        assert stream.url == "https://vidsrc.to/embed/tv/1429/1/5"

    async def test_unmatched_anime_on_only_anime_source_is_not_found(self, ids):
        ids.classify_anime.return_value = AnimeClassification(True, TMDB_TV_ATTACK_ON_TITAN)
        streams = StreamResolver(SourceRegistry([Videasy()]), ids)

        with pytest.raises(ResolutionMiss):
            await streams.resolve(
                request(type="tv", id="1429", season="1", episode="5", source="videasy")
            )

    async def test_sources_without_anime_builder_skip_classification(self, streams, ids):
        await streams.resolve(request(type="movie", id="550", source="embedsu"))
        ids.classify_anime.assert_not_awaited()


class TestSourceSelection:
    async def test_unknown_source_uses_default_order(self, streams):
        stream = await streams.resolve(request(type="movie", id="550", source="nope"))
        assert stream.current_source == "videasy"

    async def test_default_source_when_none_requested(self, registry, ids):
        streams = StreamResolver(registry, ids, default_source="embedsu")
        stream = await streams.resolve(request(type="movie", id="550"))
        assert stream.current_source == "embedsu"

    async def test_progress_only_where_supported(self, streams):
        stream = await streams.resolve(
            request(type="movie", id="550", source="autoembed", progress="300")
        )
        assert stream.url == "https://autoembed.co/movie/tmdb/550"

    async def test_response_shape(self, streams, registry):
        stream = await streams.resolve(request(type="movie", id="550", source="embedsu"))
        data = stream.to_dict()

        assert data["url"] == "https://embed.su/embed/movie/550"
        assert data["isDirectSource"] is False
        assert data["currentSource"] == "embedsu"
        assert data["availableSources"] == registry.names()
        assert data["features"] == []

    async def test_videasy_tv_advertises_player_features(self, streams):
        stream = await streams.resolve(
            request(type="tv", id="1399", season="1", episode="2", source="videasy")
        )

        assert stream.features == ["nextEpisode", "autoplayNextEpisode", "episodeSelector"]
        assert "episodeSelector=true" in stream.url

    async def test_videasy_movie_has_no_features(self, streams):
        stream = await streams.resolve(request(type="movie", id="550", source="videasy"))
        assert stream.to_dict()["features"] == []


class TestConsumetDirectSource:
    @respx.mock
    async def test_resolves_direct_anime_stream(self, streams):
        respx.get(host="consumet.test", path="/meta/anilist/info/16498").mock(
            return_value=httpx.Response(200, json=CONSUMET_INFO_ATTACK_ON_TITAN)
        )
        respx.get(
            host="consumet.test", path="/meta/anilist/watch/shingeki-no-kyojin-episode-2"
        ).mock(return_value=httpx.Response(200, json=CONSUMET_WATCH_EPISODE_2))

        stream = await streams.resolve(
            request(type="anime", id="16498", episode="2", source="consumet")
        )
        await streams.close()

        assert stream.is_direct_source is True
        assert stream.current_source == "consumet"
        assert stream.url == "https://cdn.example/ep2/master.m3u8"
        assert [q["quality"] for q in stream.qualities] == ["360p", "default"]
        assert stream.subtitles[0]["lang"] == "English"

    @respx.mock
    async def test_unreachable_consumet_falls_back(self, streams):
        respx.get(host="consumet.test").mock(side_effect=httpx.ConnectError)

        stream = await streams.resolve(
            request(type="anime", id="16498", episode="2", source="consumet")
        )
        await streams.close()

        assert stream.current_source == "videasy"
        assert stream.is_direct_source is False

"""
Shared pytest fixtures: settings, fake clock, upstream clients and an
API test client wired to a fresh set of services.
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

import cache
from anilist_client import AnilistClient
from config import Settings
from id_resolver import IdResolver
from main import build_services, create_app
from registry import SourceRegistry
from tests.fixtures.responses import (
    ANILIST_MAL_ID_ATTACK_ON_TITAN,
    ANILIST_SEARCH_ATTACK_ON_TITAN,
)
from tmdb_client import TmdbClient

TMDB = "https://api.themoviedb.org/3"
ANILIST = "https://graphql.anilist.co"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def anilist_router(search=ANILIST_SEARCH_ATTACK_ON_TITAN, mal=ANILIST_MAL_ID_ATTACK_ON_TITAN):
    """respx side effect answering AniList search and idMal queries."""
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if "idMal" in body["query"]:
            return httpx.Response(200, json=mal)
        return httpx.Response(200, json=search)
    return handler


@pytest.fixture
def settings() -> Settings:
    return Settings(
        tmdb_api_key="test-key",
        consumet_api_url="http://consumet.test",
        health_retry_delay=0,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(settings: Settings) -> SourceRegistry:
    return SourceRegistry().load_sources(settings)


@pytest.fixture
async def tmdb(settings: Settings):
    client = TmdbClient(settings.tmdb_api_key, cache.create("tmdb"))
    yield client
    await client.close()


@pytest.fixture
async def anilist():
    client = AnilistClient()
    yield client
    await client.close()


@pytest.fixture
def id_resolver(tmdb: TmdbClient, anilist: AnilistClient) -> IdResolver:
    return IdResolver(tmdb, anilist)


@pytest.fixture
def api(settings: Settings, registry: SourceRegistry):
    app = create_app(services=build_services(settings, registry))
    with TestClient(app) as client:
        yield client

"""
StreamHub - Stream URL resolver and metadata proxy
FastAPI Backend
"""

import asyncio
import contextlib
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Optional, Union

import httpx
from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

import cache
from anilist_client import AnilistClient
from config import Settings, report_missing_keys
from errors import ClientInputError, ResolutionMiss, StreamError, error_body, error_status
from health import check_source
from id_resolver import IdResolver
from image_proxy import stream_image, tmdb_image_url, validate_image_url
from registry import SourceRegistry
from stream_resolver import StreamRequest, StreamResolver
from tmdb_client import TmdbClient

# Keep references to background tasks to prevent garbage collection
_background_tasks: set[asyncio.Task] = set()


class CacheControlMiddleware(BaseHTTPMiddleware):
    """Add Cache-Control headers for stable GET endpoints."""

    CACHE_RULES = {
        "/tmdb/": 300,       # 5 min, mirrors TMDB's own freshness
        "/sources": 3600,    # 1 hour for source list
        "/stream-url": 0,    # never cache resolved streams
        "/health/": 0,       # never cache probes
    }

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.method == "GET" and response.status_code == 200:
            path = request.url.path
            for prefix, max_age in self.CACHE_RULES.items():
                if path.startswith(prefix):
                    if max_age > 0:
                        response.headers["Cache-Control"] = f"public, max-age={max_age}"
                    else:
                        response.headers["Cache-Control"] = "no-store"
                    break
        return response


@dataclass
class Services:
    settings: Settings
    registry: SourceRegistry
    tmdb: TmdbClient
    anilist: AnilistClient
    id_resolver: IdResolver
    streams: StreamResolver
    http: httpx.AsyncClient

    def caches(self) -> list[cache.TTLCache]:
        return [self.tmdb.cache, *self.id_resolver.caches(), *self.registry.caches()]

    async def close(self) -> None:
        await self.tmdb.close()
        await self.anilist.close()
        await self.streams.close()
        await self.http.aclose()


def build_services(settings: Settings, registry: Optional[SourceRegistry] = None) -> Services:
    if registry is None:
        registry = SourceRegistry().load_sources(settings)
    tmdb = TmdbClient(settings.tmdb_api_key, cache.create("tmdb"), timeout=settings.http_timeout)
    anilist = AnilistClient(timeout=settings.http_timeout)
    id_resolver = IdResolver(tmdb, anilist)
    streams = StreamResolver(
        registry, id_resolver,
        default_source=settings.default_source,
        timeout=settings.http_timeout,
    )
    return Services(
        settings=settings,
        registry=registry,
        tmdb=tmdb,
        anilist=anilist,
        id_resolver=id_resolver,
        streams=streams,
        http=httpx.AsyncClient(follow_redirects=True, timeout=settings.image_timeout),
    )


async def _sweep_caches(services: Services) -> None:
    while True:
        await asyncio.sleep(cache.SWEEP_INTERVAL)
        removed = sum(c.sweep() for c in services.caches())
        if removed:
            print(f"[cache] Swept {removed} expired entries")


# --- Pydantic Models ---
class AnilistQuery(BaseModel):
    query: Optional[str] = None
    variables: dict[str, Any] = {}


class BulkItem(BaseModel):
    type: str
    id: Union[int, str]  # TMDB ids arrive as JSON numbers or strings


class BulkRequest(BaseModel):
    requests: list[BulkItem] = []


# --- API Routes ---
router = APIRouter()


def _services(request: Request) -> Services:
    return request.app.state.services


@router.get("/")
def root(request: Request):
    return {"status": "ok", "sources": _services(request).registry.names()}


@router.get("/sources")
def list_sources(request: Request):
    """List all available stream sources in fallback order."""
    return _services(request).registry.describe()


@router.get("/stream-url")
async def stream_url(
    request: Request,
    type: Optional[str] = None,
    id: Optional[str] = None,
    source: Optional[str] = None,
    season: Optional[str] = None,
    episode: Optional[str] = None,
    dub: Optional[str] = None,
    progress: Optional[str] = None,
):
    """Resolve a playable URL, falling back across sources."""
    stream_request = StreamRequest.from_params(
        type=type, id=id, source=source,
        season=season, episode=episode, dub=dub, progress=progress,
    )
    print(f"[stream] Request {stream_request}")
    stream = await _services(request).streams.resolve(stream_request)
    return stream.to_dict()


@router.post("/tmdb/bulk")
async def tmdb_bulk(request: Request, data: BulkRequest):
    """Fetch several TMDB details concurrently; failures are reported per item."""
    tmdb = _services(request).tmdb

    async def fetch_one(item: BulkItem) -> dict:
        item_id = str(item.id)
        try:
            if item.type not in ("movie", "tv"):
                raise ClientInputError(f"Unsupported type '{item.type}'")
            resp = await tmdb.get(f"/{item.type}/{item_id}")
            if not resp.ok:
                raise ResolutionMiss(f"TMDB returned {resp.status_code}")
            return {"success": True, "type": item.type, "id": item_id, "data": resp.data}
        except Exception as e:
            return {"success": False, "type": item.type, "id": item_id, "error": str(e)}

    return await asyncio.gather(*(fetch_one(item) for item in data.requests))


@router.get("/tmdb/{path:path}")
async def tmdb_proxy(request: Request, path: str):
    """Transparent TMDB proxy; the server injects its API key."""
    if not path.strip("/"):
        raise ClientInputError("No API path provided. Example: /tmdb/movie/popular")
    resp = await _services(request).tmdb.get(path, dict(request.query_params))
    if isinstance(resp.data, str):
        return PlainTextResponse(resp.data, status_code=resp.status_code)
    return JSONResponse(resp.data, status_code=resp.status_code)


@router.post("/anilist")
async def anilist_proxy(request: Request, data: AnilistQuery):
    """Transparent AniList GraphQL proxy."""
    if not data.query:
        raise ClientInputError("GraphQL 'query' is required")
    resp = await _services(request).anilist.post({"query": data.query, "variables": data.variables})
    return Response(
        content=resp.content,
        status_code=resp.status_code,
        media_type=resp.headers.get("content-type", "application/json"),
    )


@router.get("/image-proxy")
async def image_proxy(request: Request, url: Optional[str] = Query(None)):
    return await stream_image(_services(request).http, validate_image_url(url))


@router.get("/image/{path:path}")
async def tmdb_image(request: Request, path: str):
    """Proxy a TMDB image path, e.g. /image/t/p/w500/abc.jpg."""
    return await stream_image(_services(request).http, tmdb_image_url(path))


@router.get("/health/{source}")
async def source_health(request: Request, source: str):
    """Probe a source's availability with a fixed retry policy."""
    services = _services(request)
    src = services.registry.get(source)
    if src is None:
        raise ResolutionMiss(f"Source '{source}' not found")

    async with httpx.AsyncClient(
        follow_redirects=True, timeout=services.settings.health_timeout
    ) as client:
        result = await check_source(
            src, client,
            retries=services.settings.health_retries,
            delay=services.settings.health_retry_delay,
        )
    return JSONResponse(result, status_code=200 if result["available"] else 503)


# --- App ---
async def handle_stream_error(request: Request, exc: Exception) -> JSONResponse:
    status = error_status(exc)
    if status >= 500 and not isinstance(exc, StreamError):
        print(f"[api] Unhandled error on {request.url.path}: {exc!r}")
    return JSONResponse(error_body(exc), status_code=status)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are client errors, reported like any other."""
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return await handle_stream_error(request, ClientInputError(f"Invalid request body: {problems}"))


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    settings = settings or (services.settings if services else Settings.from_env())
    report_missing_keys(settings)
    services = services or build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(_sweep_caches(services))
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        yield
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        await services.close()

    app = FastAPI(title="StreamHub API", version="0.1.0", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(CacheControlMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StreamError, handle_stream_error)
    app.add_exception_handler(Exception, handle_stream_error)
    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=app.state.services.settings.host, port=app.state.services.settings.port)

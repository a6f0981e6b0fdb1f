"""
Image proxy: streams remote images through the API so the front end never
hits third-party hosts directly.
"""

from urllib.parse import urlparse

import httpx
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from errors import ClientInputError, UpstreamUnavailable

TMDB_IMAGE_BASE = "https://image.tmdb.org"
CACHE_CONTROL = "public, max-age=86400, immutable"

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "image/avif,image/webp,image/*,*/*;q=0.8",
}


def validate_image_url(url: str | None) -> str:
    if not url:
        raise ClientInputError("URL parameter is required")
    if urlparse(url).scheme not in ("http", "https"):
        raise ClientInputError("Only http(s) image URLs can be proxied")
    return url


def tmdb_image_url(path: str) -> str:
    if not path or path.endswith("undefined") or path.endswith("null"):
        raise ClientInputError("Invalid image path")
    return f"{TMDB_IMAGE_BASE}/{path.lstrip('/')}"


async def stream_image(client: httpx.AsyncClient, url: str) -> StreamingResponse:
    """Open an upstream image and relay its bytes as they arrive."""
    request = client.build_request("GET", url, headers=HEADERS)
    try:
        upstream = await client.send(request, stream=True)
    except httpx.HTTPError as e:
        print(f"[image] fetch failed for {url}: {e.__class__.__name__}")
        raise UpstreamUnavailable("Failed to proxy image") from e

    if upstream.status_code != 200:
        await upstream.aclose()
        print(f"[image] HTTP {upstream.status_code} for {url}")
        raise UpstreamUnavailable("Failed to fetch image", upstream.status_code)

    return StreamingResponse(
        upstream.aiter_bytes(),
        media_type=upstream.headers.get("content-type", "image/jpeg"),
        headers={"Cache-Control": CACHE_CONTROL},
        background=BackgroundTask(upstream.aclose),
    )

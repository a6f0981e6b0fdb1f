"""
Source availability probe.

Each attempt is a single GET on the source's base URL with a short
timeout. Failed attempts are retried a fixed number of times with a fixed
delay (no backoff). Any answer below 500 counts as "up": embed hosts
commonly answer 403/404 on their bare root.
"""

import asyncio
from typing import Awaitable, Callable

import httpx

from sources.base import StreamSource


async def check_source(
    source: StreamSource,
    client: httpx.AsyncClient,
    retries: int = 3,
    delay: float = 1.0,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> dict:
    last_error = ""
    for attempt in range(1, retries + 1):
        try:
            resp = await client.get(source.base_url)
            if resp.status_code < 500:
                return {
                    "source": source.name,
                    "available": True,
                    "status": resp.status_code,
                    "attempts": attempt,
                }
            last_error = f"HTTP {resp.status_code}"
        except httpx.HTTPError as e:
            last_error = e.__class__.__name__

        print(f"[health] {source.name} attempt {attempt}/{retries} failed: {last_error}")
        if attempt < retries:
            await sleep(delay)

    return {
        "source": source.name,
        "available": False,
        "error": last_error,
        "attempts": retries,
    }

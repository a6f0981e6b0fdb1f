"""
Error taxonomy shared by every route, and its mapping to HTTP responses.

Handlers raise these; a single exception handler in main.py turns them
into JSON bodies through error_status() / error_body().
"""

from typing import Optional


class StreamError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ClientInputError(StreamError):
    """Missing or invalid request parameter. Never retried."""
    status_code = 400


class ResolutionMiss(StreamError):
    """The thing asked for does not exist upstream (no match, no mapping)."""
    status_code = 404


class UpstreamUnavailable(StreamError):
    """Network failure, timeout or non-2xx answer from a third-party API."""
    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


class ConfigurationError(StreamError):
    """A required API key is not configured."""
    status_code = 503


class AllSourcesExhausted(StreamError):
    status_code = 503
    RETRY_AFTER = 300

    def __init__(
        self,
        current_source: str,
        available_sources: list[str],
        last_error: Optional[str] = None,
    ):
        super().__init__(
            "All streaming sources are currently unavailable. Please try again later."
        )
        self.current_source = current_source
        self.available_sources = available_sources
        self.last_error = last_error


def error_status(exc: Exception) -> int:
    # pass-through proxies surface the upstream's own error status
    if isinstance(exc, UpstreamUnavailable) and (exc.upstream_status or 0) >= 400:
        return exc.upstream_status
    if isinstance(exc, StreamError):
        return exc.status_code
    return 500


def error_body(exc: Exception) -> dict:
    if isinstance(exc, AllSourcesExhausted):
        return {
            "message": exc.message,
            "availableSources": exc.available_sources,
            "currentSource": exc.current_source,
            "error": exc.last_error or "Unknown error",
            "retryAfter": exc.RETRY_AFTER,
        }
    if isinstance(exc, UpstreamUnavailable):
        body = {"message": exc.message}
        if exc.upstream_status is not None:
            body["upstreamStatus"] = exc.upstream_status
        return body
    if isinstance(exc, StreamError):
        return {"message": exc.message}
    return {"message": "Internal Server Error", "error": str(exc), "retryAfter": 60}

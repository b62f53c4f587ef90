from __future__ import annotations


class SpotifyClientError(Exception):
    pass


class SpotifyAuthError(SpotifyClientError):
    pass


class UpstreamError(SpotifyClientError):
    """Non-success answer from the catalog API that is not a rate limit."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RateLimitedError(SpotifyClientError):
    def __init__(self, message: str, *, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class SpotifyDeserializationError(SpotifyClientError):
    """Payload did not have the shape the endpoint promises."""

from __future__ import annotations

import logging
import secrets

from fastapi import Depends, HTTPException, Request, status

from .config import Settings, get_settings

logger = logging.getLogger("security")


def verify_service_token(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.service_token
    if not expected:
        # No token configured: allow all traffic, warn once per app.
        if not getattr(request.app.state, "service_token_warning", False):
            logger.warning("MUSICAPP_SERVICE_TOKEN is not set; service token check is disabled")
            request.app.state.service_token_warning = True
        return

    provided = request.headers.get("X-Service-Token", "")
    if not provided or not secrets.compare_digest(provided, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid service token")


def extract_spotify_access_token(request: Request) -> str:
    auth = request.headers.get("Authorization", "")
    prefix = "Bearer "
    if auth.startswith(prefix):
        token = auth[len(prefix):].strip()
        if token:
            return token
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing spotify access token")


class RequestAccessTokenProvider:
    """Hands out the Spotify token the caller forwarded.

    Token refresh happens upstream of this service, so the forwarded token is
    assumed to be valid.
    """

    def __init__(self, request: Request) -> None:
        self.request = request

    async def get_valid_access_token(self) -> str:
        return extract_spotify_access_token(self.request)

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, List

from pydantic import ValidationError

from .errors import SpotifyDeserializationError
from .models import Paging

if TYPE_CHECKING:  # pragma: no cover
    from .client import SpotifyClient

logger = logging.getLogger("spotify.client")


async def fetch_all(
    client: SpotifyClient,
    url: str,
    *,
    params: Dict[str, Any] | None = None,
) -> List[Any]:
    """Walk a cursor-paginated listing until ``next`` runs out.

    The first request carries ``params``; every later page is requested by
    the absolute ``next`` URL the API hands back. A failing page aborts the
    whole walk, so callers never see a silently truncated listing. A page
    whose body is not JSON, or not a page object, ends the walk as if it were
    empty.
    """
    items: List[Any] = []
    page_url: str | None = url
    page_params = params
    pages = 0
    while page_url:
        pages += 1
        try:
            payload = await client.get(page_url, params=page_params)
            page = Paging[Any].model_validate(payload)
        except (SpotifyDeserializationError, ValidationError) as exc:
            logger.warning("Unreadable page %s of %s, stopping: %s", pages, url, exc)
            break
        items.extend(page.items)
        page_url = page.next or None
        page_params = None
    logger.debug("Fetched %s items over %s pages from %s", len(items), pages, url)
    return items

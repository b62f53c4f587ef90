from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import TYPE_CHECKING, Any, Iterable, List, Type

from pydantic import BaseModel, ValidationError

from .errors import SpotifyClientError
from .ratelimit import RateLimitPolicy, Sleep, call_with_backoff

if TYPE_CHECKING:  # pragma: no cover
    from .client import SpotifyClient

logger = logging.getLogger("spotify.batching")


def chunked(ids: List[str], size: int) -> List[List[str]]:
    if size < 1:
        raise ValueError("batch size must be at least 1")
    return [ids[start: start + size] for start in range(0, len(ids), size)]


async def resolve_batches(
    client: SpotifyClient,
    ids: Iterable[str],
    *,
    batch_size: int,
    path: str,
    response_model: Type[BaseModel],
    field: str,
    policy: RateLimitPolicy | None = None,
    sleep: Sleep = asyncio.sleep,
) -> List[Any]:
    """Look up entities through a multi-get endpoint, ``batch_size`` ids per call.

    Resolution is best effort. A rate-limited chunk is retried on its own
    according to ``policy``; a chunk that keeps failing, or fails for any
    other reason, is skipped and the remaining chunks still count. Entities
    are returned in chunk order with the API's ``null`` placeholders for
    unknown ids removed.
    """
    policy = policy or RateLimitPolicy()
    unique_ids = list(dict.fromkeys(i for i in ids if i))
    chunks = chunked(unique_ids, batch_size)

    entities: List[Any] = []
    skipped = 0
    for index, chunk in enumerate(chunks, start=1):
        label = f"{path} chunk {index}/{len(chunks)}"
        request = partial(client.get, path, params={"ids": ",".join(chunk)})
        try:
            payload = await call_with_backoff(request, policy, sleep=sleep, label=label)
        except SpotifyClientError as exc:
            skipped += 1
            logger.warning("Skipping %s (%s ids): %s", label, len(chunk), exc)
            continue
        try:
            parsed = response_model.model_validate(payload)
        except ValidationError as exc:
            skipped += 1
            logger.warning("Malformed payload for %s, treating as empty: %s", label, exc)
            continue
        entities.extend(entity for entity in getattr(parsed, field) if entity is not None)

    if skipped:
        logger.info("Resolved %s entities from %s; %s of %s chunks skipped", len(entities), path, skipped, len(chunks))
    return entities

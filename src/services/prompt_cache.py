"""Shared, time-bounded cache of prompt definitions.

Prompt definitions are identical for every owner, so one cache is
shared by all pipeline runs.  It is an explicit object injected into the
pipeline (never module state) and takes a ``timer`` so tests control
expiry without sleeping.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import structlog
from cachetools import TTLCache

from src.interfaces.content_store import IContentStore
from src.models.content import PromptDefinition
from src.utils.errors import DatastoreError
from src.utils.logging import get_logger

DEFAULT_TTL_SECONDS = 300


class PromptTemplateCache:
    """Read-through TTL cache in front of :meth:`IContentStore.get_prompt`.

    Parameters
    ----------
    store:
        Source of prompt definitions.
    ttl:
        Seconds an entry stays fresh.
    max_size:
        Maximum number of prompt types held.
    timer:
        Monotonic time source handed to ``cachetools.TTLCache``.
    """

    def __init__(
        self,
        store: IContentStore,
        ttl: float = DEFAULT_TTL_SECONDS,
        max_size: int = 64,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._cache: TTLCache[str, PromptDefinition] = TTLCache(
            maxsize=max_size, ttl=ttl, timer=timer
        )
        self._logger: structlog.BoundLogger = get_logger(__name__)

    async def get(self, prompt_type: str) -> PromptDefinition | None:
        """Return the prompt for *prompt_type*, loading it on a miss.

        Missing prompts and store errors return ``None`` and are not
        cached, so the next call retries the store.
        """
        cached = self._cache.get(prompt_type)
        if cached is not None:
            self._logger.debug("prompt_cache_hit", prompt_type=prompt_type)
            return cached

        try:
            prompt = await self._store.get_prompt(prompt_type)
        except DatastoreError as exc:
            self._logger.warning("prompt_load_failed", prompt_type=prompt_type, error=exc.message)
            return None
        if prompt is None:
            self._logger.warning("prompt_missing", prompt_type=prompt_type)
            return None

        self._cache[prompt_type] = prompt
        self._logger.debug("prompt_cache_miss", prompt_type=prompt_type)
        return prompt

    def invalidate(self, prompt_type: str | None = None) -> None:
        """Drop one entry, or every entry when *prompt_type* is ``None``."""
        if prompt_type is None:
            self._cache.clear()
        else:
            self._cache.pop(prompt_type, None)

    def __contains__(self, prompt_type: str) -> bool:
        return prompt_type in self._cache

"""Time-bounded cache of CRM custom field definitions.

Maps the CRM's opaque field ids to their human-readable keys. The whole
mapping is replaced on every refresh; entries are never merged. Changes made
on the CRM side are picked up only once the cached copy expires.
"""

import logging
from typing import Awaitable, Callable, Optional

from clicktracker.domain.events.api_events import FieldDefinitionsRefreshed
from clicktracker.domain.interfaces.clock import Clock
from clicktracker.domain.models.common import FieldDefinitions, FieldID, FieldKey
from clicktracker.infrastructure.clock import SystemClock

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DURATION_SECONDS = 5 * 60  # 5 minutes
CONTACT_KEY_PREFIX = "contact."


def normalize_field_key(field_key: str) -> FieldKey:
    """Strips the optional 'contact.' namespace prefix."""
    if field_key.startswith(CONTACT_KEY_PREFIX):
        return FieldKey(field_key[len(CONTACT_KEY_PREFIX):])
    return FieldKey(field_key)


class FieldDefinitionCache:
    """Lazily loaded field id -> field key mapping with a fixed lifetime.

    Concurrent misses are not coalesced: each caller that finds the cache
    stale issues its own fetch and the last one to finish wins.
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[FieldDefinitions]],
        cache_duration: float = DEFAULT_CACHE_DURATION_SECONDS,
        clock: Optional[Clock] = None,
    ):
        """Initializes the cache.

        Args:
            loader: Coroutine function fetching a fresh mapping from the CRM.
            cache_duration: Lifetime of a loaded mapping in seconds.
            clock: Time source (defaults to the system clock).
        """
        self._loader = loader
        self.cache_duration = cache_duration
        self.clock = clock or SystemClock()
        self._definitions: Optional[FieldDefinitions] = None
        self._loaded_at: Optional[float] = None
        logger.info(f"FieldDefinitionCache initialized (ttl={cache_duration}s)")

    def is_fresh(self) -> bool:
        if self._definitions is None or self._loaded_at is None:
            return False
        return (self.clock.now() - self._loaded_at) < self.cache_duration

    async def get_definitions(self) -> FieldDefinitions:
        """Returns the cached mapping, fetching a new one if it has expired."""
        if self.is_fresh():
            logger.debug("Field definitions cache hit.")
            return self._definitions  # type: ignore[return-value]

        fetched_at = self.clock.now()
        definitions = await self._loader()
        self._definitions = dict(definitions)
        self._loaded_at = fetched_at
        logger.info(f"Loaded {len(definitions)} custom field definitions")
        logger.debug(f"EVENT: {FieldDefinitionsRefreshed(field_count=len(definitions))}")
        return self._definitions

    async def find_field_id(self, field_name: str) -> Optional[FieldID]:
        """Reverse lookup: first field id whose key equals field_name."""
        definitions = await self.get_definitions()
        for field_id, field_key in definitions.items():
            if field_key == field_name:
                return field_id
        return None

    def invalidate(self) -> None:
        """Forces the next lookup to refetch."""
        self._definitions = None
        self._loaded_at = None
        logger.info("Field definitions cache invalidated.")

"""
In-process key/value caches shared across pipeline stages.

The upload cache holds the source currently being onboarded; other instances
act as downstream read caches (row previews) that must be invalidated once an
import lands new data.
"""
import logging
import threading
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

from sheetflow.core.errors import NotFound

logger = logging.getLogger(__name__)

V = TypeVar("V")


class CacheStore(Generic[V]):
    """Thread-safe mapping with explicit clearing and no eviction policy."""

    def __init__(self, name: str, on_clear: Optional[Callable[[V], None]] = None):
        self.name = name
        # Called with every value dropped by clear_all, after the lock is released.
        self._on_clear = on_clear
        self._entries: Dict[str, V] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: V) -> None:
        with self._lock:
            self._entries[key] = value
        logger.debug("Cache '%s': stored key %r", self.name, key)

    def get(self, key: str) -> V:
        with self._lock:
            try:
                return self._entries[key]
            except KeyError:
                raise NotFound(f"No entry for '{key}' in {self.name}") from None

    def clear_all(self) -> None:
        with self._lock:
            dropped = list(self._entries.values())
            self._entries.clear()
        if dropped:
            logger.info(
                "Cache '%s': cleared %d entr%s", self.name, len(dropped), "y" if len(dropped) == 1 else "ies"
            )
        if self._on_clear is not None:
            for value in dropped:
                self._on_clear(value)

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Any) -> bool:
        with self._lock:
            return key in self._entries

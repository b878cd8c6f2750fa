"""Bounded caches for oracle sessions.

One session is built per project configuration. Sessions are expensive, so
at most ``capacity`` of them are kept; the least recently used one is evicted
first and every entry expires after ``ttl_seconds`` regardless of use.
"""

from __future__ import annotations

import os
import time
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Generic, Hashable, Optional, Sequence, Tuple, TypeVar

from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

DEFAULT_SESSION_CAPACITY = 3
DEFAULT_SESSION_TTL_SECONDS = 60 * 60 * 24

# Global wrapper types that never help when expanded.
DEFAULT_SKIPPED_TYPE_NAMES = (
    "String",
    "Number",
    "Boolean",
    "Date",
    "RegExp",
    "Function",
    "Symbol",
)


class ProjectConfigNotFoundError(FileNotFoundError):
    """No project configuration could be located for a file."""


class SessionBuildError(RuntimeError):
    """Building an oracle session for a project configuration failed."""

    def __init__(self, config_path: str, cause: BaseException) -> None:
        super().__init__(f"Failed to build type session for {config_path}: {cause}")
        self.config_path = config_path
        self.cause = cause


@dataclass
class _Slot(Generic[V]):
    value: V
    stored_at: float


class LRUCache(Generic[K, V]):
    """Thread-safe least-recently-used map with optional time-to-live."""

    def __init__(
        self,
        capacity: int,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ValueError("capacity must be a positive integer")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._capacity = capacity
        self._ttl = ttl_seconds
        self._clock = clock
        self._slots: OrderedDict[K, _Slot[V]] = OrderedDict()
        self._lock = Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def _live_slot(self, key: K) -> Optional[_Slot[V]]:
        """Return the slot for ``key`` or drop it if expired. Caller holds the lock."""

        slot = self._slots.get(key)
        if slot is None:
            return None
        if self._ttl is not None and self._clock() - slot.stored_at >= self._ttl:
            del self._slots[key]
            return None
        return slot

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        with self._lock:
            slot = self._live_slot(key)
            if slot is None:
                return default
            self._slots.move_to_end(key)
            return slot.value

    def set(self, key: K, value: V) -> None:
        with self._lock:
            if key in self._slots:
                self._slots.move_to_end(key)
            elif len(self._slots) >= self._capacity:
                evicted, _ = self._slots.popitem(last=False)
                logger.debug("Evicted least recently used entry %s", evicted)
            self._slots[key] = _Slot(value, self._clock())

    def has(self, key: K) -> bool:
        with self._lock:
            return self._live_slot(key) is not None

    def pop(self, key: K, default: Optional[V] = None) -> Optional[V]:
        with self._lock:
            slot = self._slots.pop(key, None)
            return default if slot is None else slot.value

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._slots)

    def keys(self) -> Tuple[K, ...]:
        """Keys from least to most recently used."""

        with self._lock:
            return tuple(self._slots)

    def clear(self) -> None:
        with self._lock:
            self._slots.clear()

    def __len__(self) -> int:
        return self.size

    def __contains__(self, key: object) -> bool:
        return self.has(key)  # type: ignore[arg-type]


@dataclass(frozen=True)
class SessionEntry:
    """A built oracle session plus the data validated against it."""

    key: str
    oracle: Any
    skipped_type_names: Tuple[str, ...]
    config_mtime: float


SessionFactory = Callable[[str], Any]


def _config_mtime(config_path: str) -> float:
    try:
        return os.stat(config_path).st_mtime
    except FileNotFoundError as exc:
        raise ProjectConfigNotFoundError(
            f"Project configuration {config_path} does not exist."
        ) from exc


class SessionCache:
    """Owns oracle sessions keyed by absolute config path.

    ``factory(config_path)`` builds the oracle. Builds are serialised so two
    concurrent lookups for the same project never build it twice.
    """

    def __init__(
        self,
        factory: SessionFactory,
        capacity: int = DEFAULT_SESSION_CAPACITY,
        ttl_seconds: Optional[float] = DEFAULT_SESSION_TTL_SECONDS,
        skipped_type_names: Sequence[str] = DEFAULT_SKIPPED_TYPE_NAMES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._factory = factory
        self._entries: LRUCache[str, SessionEntry] = LRUCache(capacity, ttl_seconds, clock)
        self._skipped_type_names = tuple(skipped_type_names)
        self._build_lock = Lock()

    @property
    def capacity(self) -> int:
        return self._entries.capacity

    @property
    def size(self) -> int:
        return self._entries.size

    def keys(self) -> Tuple[str, ...]:
        return self._entries.keys()

    def get_or_create(self, config_path: str) -> SessionEntry:
        key = os.path.abspath(config_path)
        with self._build_lock:
            mtime = _config_mtime(key)
            entry = self._entries.get(key)
            if entry is not None and entry.config_mtime == mtime:
                return entry
            if entry is not None:
                logger.info("Project configuration %s changed; rebuilding session", key)
                self._entries.pop(key)

            entry = self._build(key, mtime)
            self._entries.set(key, entry)
            return entry

    def _build(self, key: str, mtime: float) -> SessionEntry:
        started = time.perf_counter()
        try:
            oracle = self._factory(key)
            skipped = tuple(
                name for name in self._skipped_type_names if oracle.has_type_named(name)
            )
        except Exception as exc:
            raise SessionBuildError(key, exc) from exc

        invalid = [name for name in self._skipped_type_names if name not in skipped]
        if invalid:
            logger.warning(
                "Skipped type names not found in %s: %s", key, ", ".join(invalid)
            )

        logger.info(
            "Built type session for %s in %.1fms",
            key,
            (time.perf_counter() - started) * 1000,
        )
        return SessionEntry(
            key=key, oracle=oracle, skipped_type_names=skipped, config_mtime=mtime
        )

    def clear(self) -> None:
        self._entries.clear()


__all__ = [
    "DEFAULT_SESSION_CAPACITY",
    "DEFAULT_SESSION_TTL_SECONDS",
    "DEFAULT_SKIPPED_TYPE_NAMES",
    "LRUCache",
    "ProjectConfigNotFoundError",
    "SessionBuildError",
    "SessionCache",
    "SessionEntry",
    "SessionFactory",
]

"""Key-value store used as the datastore for all token lifecycles.

WHY AN INJECTABLE STORE:
- Verification codes, bearer tokens and management records all live behind
  one narrow interface instead of module-level dicts
- Tests use the in-memory store; a deployment with several replicas must
  plug in a store whose compare_and_swap is atomic across processes

Atomicity contract: every read-modify-write in the services is a
get -> replace -> compare_and_swap loop on a single key. The in-memory
implementation serializes all operations behind one lock, which holds for
both the event loop and FastAPI's threadpool. It is NOT safe across
processes: two replicas each hold their own dict.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any

Clock = Callable[[], datetime]

# Upper bound on compare_and_swap retries before giving up
MAX_CAS_ATTEMPTS = 16


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time."""
    return datetime.now(UTC)


class StoreConflictError(RuntimeError):
    """compare_and_swap kept losing to concurrent writers."""


class KeyValueStore(ABC):
    """String-keyed store of immutable values.

    Values are compared by equality in compare_and_swap, so callers store
    frozen dataclasses and replace them wholesale.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the value for key, or None if absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key, overwriting any previous value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns True if it existed."""
        ...

    @abstractmethod
    def compare_and_swap(self, key: str, expected: Any | None, new: Any | None) -> bool:
        """Atomically replace expected with new.

        Args:
            key: Store key.
            expected: Value the caller last read (None = key must be absent).
            new: Replacement value (None = delete the key).

        Returns:
            True if the swap happened, False if the current value differed.
        """
        ...

    @abstractmethod
    def keys(self, prefix: str = "") -> Iterator[str]:
        """Iterate over a snapshot of keys starting with prefix."""
        ...

    def update(self, key: str, mutate: Callable[[Any], Any]) -> Any:
        """Read-modify-write one key through compare_and_swap.

        Args:
            key: Store key (must exist).
            mutate: Pure function from current value to new value.

        Returns:
            The value that was written.

        Raises:
            KeyError: If the key does not exist.
            StoreConflictError: If MAX_CAS_ATTEMPTS swaps all lost.
        """
        for _ in range(MAX_CAS_ATTEMPTS):
            current = self.get(key)
            if current is None:
                raise KeyError(key)
            new = mutate(current)
            if self.compare_and_swap(key, current, new):
                return new
        raise StoreConflictError(f"Too much contention on key {key!r}")


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store backed by a dict and a single lock."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def compare_and_swap(self, key: str, expected: Any | None, new: Any | None) -> bool:
        with self._lock:
            if self._data.get(key) != expected:
                return False
            if new is None:
                self._data.pop(key, None)
            else:
                self._data[key] = new
            return True

    def keys(self, prefix: str = "") -> Iterator[str]:
        with self._lock:
            snapshot = [k for k in self._data if k.startswith(prefix)]
        return iter(snapshot)

    def clear(self) -> None:
        """Remove everything (for testing)."""
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

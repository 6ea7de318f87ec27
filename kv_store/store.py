"""In-memory key-value store shared by every connection of one server."""

import threading
from typing import Optional


class KVStore:
    """Mapping of bytes keys to bytes values. Every access holds one lock, so a
    GET racing a SET sees the old value or the new one, never a mix."""

    def __init__(self):
        self._data: dict[bytes, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: bytes) -> Optional[bytes]:
        """Get value for key. Returns None if key does not exist."""
        with self._lock:
            return self._data.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        """Set key to value, replacing any previous value."""
        key = bytes(key)
        value = bytes(value)
        with self._lock:
            self._data[key] = value

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

"""Session cache of saved test records, restored and persisted explicitly."""

import json
import logging
import os

logger = logging.getLogger(__name__)


class TestCache:
    """In-memory test_id → test record map with explicit save points.

    Nothing is read or written implicitly: callers restore() at session start
    and persist() at session end.
    """

    __test__ = False    # not a pytest class

    def __init__(self, entries: dict | None = None):
        self._entries = dict(entries or {})

    def get(self, key: str) -> dict | None:
        return self._entries.get(key)

    def set(self, key: str, value: dict) -> "TestCache":
        self._entries[key] = value
        return self

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def restore(cls, path: str) -> "TestCache":
        """Load a cache file; a missing or unreadable file gives an empty cache."""
        if not os.path.exists(path):
            return cls()
        try:
            with open(path) as f:
                entries = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable test cache %s: %s", path, e)
            return cls()
        if not isinstance(entries, list):
            logger.warning("Ignoring malformed test cache %s", path)
            return cls()
        return cls({
            pair[0]: pair[1] for pair in entries
            if isinstance(pair, list) and len(pair) == 2 and isinstance(pair[0], str)
        })

    def persist(self, path: str) -> str:
        """Write entries as a list of [key, value] pairs. Returns the path."""
        with open(path, "w") as f:
            json.dump([[k, v] for k, v in self._entries.items()], f, indent=2, ensure_ascii=False)
        return path

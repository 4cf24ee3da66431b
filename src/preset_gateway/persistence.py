"""
Persistence for Preset Gateway.

Each piece of gateway state (stats, presets, keys) is one JSON document
behind a small load/save store. Stats writes go through a debounced
writer so a burst of requests collapses into one disk write.
"""

import asyncio
import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional, Set

logger = logging.getLogger(__name__)


class Store:
    """Load/save collaborator for one JSON-serializable document."""

    name = "store"

    def load(self) -> Optional[Any]:
        raise NotImplementedError

    def save(self, data: Any) -> None:
        raise NotImplementedError


class JsonFileStore(Store):
    """Store backed by a pretty-printed JSON file."""

    def __init__(self, path):
        self.path = Path(path)
        self.name = self.path.name

    def load(self) -> Optional[Any]:
        """Return the parsed document, or None if the file does not exist."""
        if not self.path.exists():
            return None
        with self.path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def save(self, data: Any) -> None:
        """Write atomically: temp file in the same directory, then replace."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(data, indent=2, ensure_ascii=False)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise


class MemoryStore(Store):
    """Store that keeps the document in memory only."""

    def __init__(self, data: Any = None, name: str = "memory"):
        self._data = copy.deepcopy(data)
        self.name = name
        self.saves = 0

    def load(self) -> Optional[Any]:
        return copy.deepcopy(self._data)

    def save(self, data: Any) -> None:
        self._data = copy.deepcopy(data)
        self.saves += 1


def save_logged(store: Store, data: Any) -> bool:
    """Save and log failures instead of raising. Returns True on success."""
    try:
        store.save(data)
        return True
    except (OSError, TypeError, ValueError):
        logger.exception("Failed to save %s", store.name)
        return False


class DebouncedWriter:
    """Trailing-edge debounced writes of one snapshot to one store."""

    def __init__(self, store: Store, snapshot: Callable[[], Any], delay: float = 5.0):
        """
        Args:
            store: Where snapshots are written.
            snapshot: Returns the data to write; called on the event loop.
            delay: Seconds between the last schedule() call and the write.
        """
        self.store = store
        self.snapshot = snapshot
        self.delay = delay
        self._handle: Optional[asyncio.TimerHandle] = None
        self._tasks: Set[asyncio.Future] = set()

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        """(Re)arm the pending write ``delay`` seconds from now."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (CLI tools, plain sync callers): write right away
            save_logged(self.store, self.snapshot())
            return

        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        data = self.snapshot()
        task = asyncio.ensure_future(asyncio.to_thread(save_logged, self.store, data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for writes that already started."""
        if self._tasks:
            await asyncio.gather(*self._tasks)

    def flush(self) -> bool:
        """Cancel any pending timer and write synchronously."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        return save_logged(self.store, self.snapshot())

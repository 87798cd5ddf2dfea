import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List


class KeyedLock:
    """
    Registry of per-key reentrant locks.

    ``hold(key)`` serializes callers that use the same key while callers with
    different keys proceed independently. The registry guard is only held
    while looking up / releasing an entry, never while the caller works.
    Entries are dropped once nobody holds or waits for them.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, List] = {}  # key -> [lock, users]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = [threading.RLock(), 0]
            entry[1] += 1

        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

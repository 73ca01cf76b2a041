import threading
import time
from collections import OrderedDict


class TenantCache:
    """
    Per-user store of the lists a business owner works from all day
    (customers, services).

    Entries are keyed by (user_id, key). Nothing is loaded implicitly:
    callers pass the loader, and writes or auth changes invalidate
    explicitly. Invalidation only reaches the current process, so every
    entry also expires after ``ttl_seconds``; with several workers that is
    the longest another worker can serve a stale list. At most
    ``max_entries`` are held, the least recently used going first.
    """

    def __init__(self, ttl_seconds=300, max_entries=1024, clock=time.monotonic):
        self._entries = OrderedDict()
        self._lock = threading.Lock()
        self._clock = clock
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries

    def configure(self, ttl_seconds=None, max_entries=None):
        with self._lock:
            if ttl_seconds is not None:
                self.ttl_seconds = ttl_seconds
            if max_entries is not None:
                self.max_entries = max_entries
            self._evict(self._clock())

    def _fresh(self, loaded_at, now):
        return self.ttl_seconds is None or now - loaded_at < self.ttl_seconds

    def _evict(self, now):
        for entry in [e for e, (loaded_at, _) in self._entries.items()
                      if not self._fresh(loaded_at, now)]:
            del self._entries[entry]
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def get(self, user_id, key, loader):
        with self._lock:
            cached = self._entries.get((user_id, key))
            if cached is not None:
                if self._fresh(cached[0], self._clock()):
                    self._entries.move_to_end((user_id, key))
                    return cached[1]
                del self._entries[(user_id, key)]
        return self.refetch(user_id, key, loader)

    def refetch(self, user_id, key, loader):
        value = loader()
        with self._lock:
            now = self._clock()
            self._entries[(user_id, key)] = (now, value)
            self._entries.move_to_end((user_id, key))
            self._evict(now)
        return value

    def invalidate(self, user_id, key=None):
        with self._lock:
            if key is not None:
                self._entries.pop((user_id, key), None)
                return
            for entry in [e for e in self._entries if e[0] == user_id]:
                del self._entries[entry]

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, entry):
        with self._lock:
            cached = self._entries.get(entry)
            return cached is not None and self._fresh(cached[0], self._clock())


tenant_cache = TenantCache()

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

log = logging.getLogger(__name__)


@dataclass
class CachedResponse:
    status_code: int
    raw_headers: List[Tuple[bytes, bytes]]
    body: bytes
    expires_at: float


class OutputCache:
    """
    In-memory store of rendered responses keyed by request, with a lifetime
    per named profile. Shared by every request; access is serialized.
    """

    def __init__(self, profiles: Optional[Dict[str, int]] = None):
        self.profiles: Dict[str, int] = dict(profiles or {"default": 3600})
        self._entries: Dict[str, CachedResponse] = {}
        self._lock = threading.Lock()

    def duration(self, profile: str) -> int:
        try:
            return self.profiles[profile]
        except KeyError:
            raise KeyError(f"Unknown output cache profile '{profile}'") from None

    def get(self, key: str) -> Optional[CachedResponse]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= time.monotonic():
                del self._entries[key]
                return None
            return entry

    def set(self, key: str, profile: str, status_code: int,
            raw_headers: List[Tuple[bytes, bytes]], body: bytes) -> None:
        expires_at = time.monotonic() + self.duration(profile)
        with self._lock:
            self._entries[key] = CachedResponse(status_code, list(raw_headers), body, expires_at)

    def clear(self) -> None:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        if count:
            log.debug(f"Output cache cleared ({count} entries).")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

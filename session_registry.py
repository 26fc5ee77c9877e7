# session_registry.py
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional

from errors import DuplicateHash, DuplicateRequest

logger = logging.getLogger("SessionRegistry")


@dataclass(frozen=True)
class RegistryEntry:
    request_id: str
    content_hash: str
    handle: Any


class SessionRegistry:
    """
    Identity map between request ids, content hashes and live session handles.

    Both indexes live behind one lock and are only ever changed together, so a
    reader never sees an entry in one index that is missing from the other.
    """
    def __init__(self):
        self._lock = threading.Lock()
        self._by_request: Dict[str, RegistryEntry] = {}
        self._by_hash: Dict[str, str] = {}

    def insert(self, request_id, content_hash, handle):
        with self._lock:
            if request_id in self._by_request:
                raise DuplicateRequest(request_id)
            if content_hash in self._by_hash:
                raise DuplicateHash(content_hash)
            self._by_request[request_id] = RegistryEntry(request_id, content_hash, handle)
            self._by_hash[content_hash] = request_id
        logger.info(f"Registered {request_id} ({content_hash})")

    def lookup_by_request(self, request_id):
        with self._lock:
            entry = self._by_request.get(request_id)
        return entry.handle if entry else None

    def lookup_by_hash(self, content_hash) -> Optional[str]:
        with self._lock:
            return self._by_hash.get(content_hash)

    def remove(self, request_id):
        with self._lock:
            entry = self._by_request.pop(request_id, None)
            if entry is None:
                return None
            del self._by_hash[entry.content_hash]
        logger.info(f"Removed {request_id} ({entry.content_hash})")
        return entry.handle

    def remove_by_hash(self, content_hash, handle=None) -> Optional[str]:
        """Remove the entry for ``content_hash``; when ``handle`` is given it must be the registered one."""
        with self._lock:
            request_id = self._by_hash.get(content_hash)
            if request_id is None:
                return None
            if handle is not None and self._by_request[request_id].handle != handle:
                return None
            del self._by_hash[content_hash]
            del self._by_request[request_id]
        logger.info(f"Removed {request_id} ({content_hash})")
        return request_id

    def clear(self):
        with self._lock:
            count = len(self._by_request)
            self._by_request.clear()
            self._by_hash.clear()
        if count:
            logger.info(f"Cleared {count} session(s)")

    def get_all(self) -> Dict[str, RegistryEntry]:
        with self._lock:
            return self._by_request.copy()

    def __len__(self):
        with self._lock:
            return len(self._by_request)

    def __contains__(self, request_id):
        with self._lock:
            return request_id in self._by_request

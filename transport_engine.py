# transport_engine.py
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional


class SessionHandle(ABC):
    """Opaque reference to a live engine session. Invalid once removed."""
    @abstractmethod
    def content_hash(self) -> str: pass
    @abstractmethod
    def is_valid(self) -> bool: pass
    @abstractmethod
    def to_locator(self) -> str: pass
    @abstractmethod
    def set_sequential(self, enabled: bool): pass


@dataclass(frozen=True)
class SessionStatus:
    content_hash: str
    is_seeding: bool
    num_peers: int = 0
    download_rate: int = 0
    upload_rate: int = 0
    total_done: int = 0
    total_wanted: int = 0


@dataclass(frozen=True)
class StatusUpdateEvent:
    statuses: List[SessionStatus] = field(default_factory=list)


@dataclass(frozen=True)
class SessionFinishedEvent:
    content_hash: str
    handle: Any = None


@dataclass(frozen=True)
class SessionErrorEvent:
    content_hash: str
    handle: Any = None
    message: str = ""


EventSink = Callable[[Any], None]


class TransportEngine(ABC):
    """
    Capability surface of the peer-to-peer engine.

    Events are delivered to the single subscribed sink from a thread owned by
    the engine. ``begin_seeding`` and ``begin_download`` report failure by
    returning an invalid handle (or None), never by raising.
    """
    @abstractmethod
    def start_session(self): pass
    @abstractmethod
    def stop_session(self): pass
    @abstractmethod
    def subscribe(self, sink: EventSink): pass
    @abstractmethod
    def create_descriptor(self, file_path: str, creator: str, private: bool) -> bytes: pass
    @abstractmethod
    def begin_seeding(self, descriptor: bytes, base_dir: str) -> Optional[SessionHandle]: pass
    @abstractmethod
    def begin_download(self, locator: str, save_dir: str) -> Optional[SessionHandle]: pass
    @abstractmethod
    def remove_session(self, handle: SessionHandle): pass


def is_live(handle) -> bool:
    return handle is not None and bool(handle.is_valid())

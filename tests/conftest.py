import hashlib
import threading

import pytest

from events import TransferObserver
from transport_engine import SessionHandle, TransportEngine


class FakeHandle(SessionHandle):
    def __init__(self, content_hash, valid=True):
        self._hash = content_hash
        self.valid = valid
        self.sequential = False

    def content_hash(self):
        return self._hash

    def is_valid(self):
        return self.valid

    def to_locator(self):
        return f"magnet:?xt=urn:btih:{self._hash}"

    def set_sequential(self, enabled):
        self.sequential = enabled


class FakeEngine(TransportEngine):
    """In-memory engine: descriptors are the sha1 of the file path."""
    def __init__(self):
        self.lock = threading.Lock()
        self.sink = None
        self.started = False
        self.live = {}
        self.removed = []
        self.seed_calls = []
        self.fail_descriptor = False
        self.reject_downloads = False

    def start_session(self):
        self.started = True

    def stop_session(self):
        self.started = False

    def subscribe(self, sink):
        self.sink = sink

    def create_descriptor(self, file_path, creator, private):
        if self.fail_descriptor:
            raise RuntimeError("piece hashing failed")
        return f"d7:creator{len(creator)}:{creator}4:path{len(file_path)}:{file_path}e".encode()

    def begin_seeding(self, descriptor, base_dir):
        self.seed_calls.append((descriptor, base_dir))
        return self._add(hashlib.sha1(descriptor).hexdigest())

    def begin_download(self, locator, save_dir):
        if self.reject_downloads or not locator.startswith("magnet:"):
            return FakeHandle("", valid=False)
        return self._add(hashlib.sha1(locator.encode()).hexdigest())

    def remove_session(self, handle):
        with self.lock:
            if self.live.pop(handle.content_hash(), None) is not None:
                handle.valid = False
                self.removed.append(handle)

    def _add(self, content_hash):
        with self.lock:
            # Like libtorrent, a hash that is already live cannot be added twice
            if content_hash in self.live:
                return FakeHandle(content_hash, valid=False)
            handle = FakeHandle(content_hash)
            self.live[content_hash] = handle
        return handle

    def emit(self, event):
        self.sink(event)


class RecordingObserver(TransferObserver):
    def __init__(self):
        self.notifications = []

    def on_progress(self, notification):
        self.notifications.append(notification)

    def on_completed(self, notification):
        self.notifications.append(notification)

    def on_failed(self, notification):
        self.notifications.append(notification)

    def for_request(self, request_id):
        return [n for n in self.notifications if n.request_id == request_id]


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def manager(engine, observer):
    from transfer_manager import TransferSessionManager
    mgr = TransferSessionManager(engine)
    mgr.subscribe(observer)
    yield mgr
    mgr.shutdown()

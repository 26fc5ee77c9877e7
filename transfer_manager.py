# transfer_manager.py
import logging
import os
import threading
from typing import Dict

from descriptor_builder import DescriptorBuilder, validate_source
from errors import DuplicateHash, DuplicateRequest, InvalidInput, SessionInitFailed
from event_router import EventRouter
from events import NotificationHub, TransferNotification, TransferObserver
from session_registry import RegistryEntry, SessionRegistry
from transport_engine import TransportEngine, is_live

logger = logging.getLogger("TransferManager")


def _default_engine(settings):
    from lt_engine import LibtorrentEngine
    return LibtorrentEngine.from_settings(settings)


class TransferSessionManager:
    """
    Seeds and downloads files through one transport engine.

    Construct it with an engine to inject it where needed, or use
    ``TransferSessionManager.instance()`` for the lazily created process-wide
    manager. ``shutdown()`` stops the engine and releases the process-wide
    slot, so the next ``instance()`` call starts a fresh engine.
    """
    _instance = None
    _instance_lock = threading.Lock()

    def __init__(self, engine: TransportEngine, creator=None, private=True, temp_dir=None):
        self.engine = engine
        self.registry = SessionRegistry()
        self.hub = NotificationHub()
        builder_args = {"private": private, "temp_dir": temp_dir}
        if creator:
            builder_args["creator"] = creator
        self.builder = DescriptorBuilder(engine, **builder_args)
        self.router = EventRouter(self.registry, self.hub, self._release_session)
        self._closed = False

        self.engine.subscribe(self.router.dispatch)
        self.router.start()
        self.engine.start_session()
        logger.info("Transfer session manager started.")

    @classmethod
    def instance(cls, settings=None, engine_factory=None):
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    factory = engine_factory or _default_engine
                    kwargs = {}
                    if settings is not None:
                        kwargs = {
                            "creator": settings.descriptor.creator,
                            "private": settings.descriptor.private,
                            "temp_dir": settings.storage.temp_path or None,
                        }
                    cls._instance = cls(factory(settings), **kwargs)
        return cls._instance

    # --- Observers ---

    def subscribe(self, observer: TransferObserver):
        self.hub.subscribe(observer)

    def unsubscribe(self, observer: TransferObserver):
        self.hub.unsubscribe(observer)

    # --- Operations ---

    def start_seeding(self, source_path, request_id) -> str:
        """Start seeding ``source_path`` and return a locator peers can download from."""
        source_path = validate_source(source_path)

        with self.builder.open(source_path) as descriptor:
            # The descriptor records a path relative to the file's directory
            handle = self._begin(self.engine.begin_seeding, descriptor.data, os.path.dirname(source_path))
            if not is_live(handle):
                logger.error("Failed to get valid session handle after adding seed.")
                raise SessionInitFailed(f"Engine rejected seed for request ID {request_id}")

            self._register(request_id, handle)
            if not self._kept(request_id, handle):
                raise SessionInitFailed(f"Seed session for request ID {request_id} ended during setup")
            locator = handle.to_locator()

        logger.info(f"Started seeding for request ID {request_id}. Locator: {locator}")
        return locator

    def start_download(self, locator, save_dir, request_id):
        if not isinstance(locator, str) or not locator.strip():
            raise InvalidInput("Locator must be a non-empty string")
        try:
            os.makedirs(save_dir, exist_ok=True)
        except OSError as e:
            raise InvalidInput(f"Cannot create save directory {save_dir}: {e}") from e

        handle = self._begin(self.engine.begin_download, locator, save_dir)
        if not is_live(handle):
            logger.error(f"Failed to start download for request ID {request_id}: invalid handle returned.")
            self._fail_download(request_id, "Failed to initialize download session.")

        self._register(request_id, handle)
        if not self._kept(request_id, handle):
            self._fail_download(request_id, "Download session ended during setup.")
        handle.set_sequential(True)
        logger.info(f"Started download for request ID: {request_id}")

    def cleanup(self, handle):
        if handle is None:
            return
        # Drop a dead handle's entry too, but only if it is still the registered one
        request_id = self.registry.remove_by_hash(handle.content_hash(), handle)
        if is_live(handle):
            self._release_session(handle)
        elif request_id is None:
            return
        logger.info(f"Cleaned up session for request ID: {request_id or 'unknown'}")

    def cancel(self, request_id) -> bool:
        handle = self.registry.remove(request_id)
        if handle is None:
            return False
        self._release_session(handle)
        logger.info(f"Cancelled transfer {request_id}")
        return True

    def active_transfers(self) -> Dict[str, RegistryEntry]:
        return self.registry.get_all()

    def shutdown(self):
        cls = type(self)
        with cls._instance_lock:
            if cls._instance is self:
                cls._instance = None
        if self._closed:
            return
        self._closed = True

        logger.info("Stopping transfer session manager.")
        try:
            self.engine.stop_session()
        finally:
            self.router.stop()
            self.registry.clear()

    # --- Internals ---

    def _register(self, request_id, handle):
        content_hash = handle.content_hash()
        try:
            self.registry.insert(request_id, content_hash, handle)
        except (DuplicateRequest, DuplicateHash) as e:
            # The engine may hand back the session another request already owns
            owner = self.registry.lookup_by_hash(content_hash)
            if owner is None or self.registry.lookup_by_request(owner) != handle:
                self._release_session(handle)
            raise SessionInitFailed(f"Could not register {request_id}: {e}") from e

    def _release_session(self, handle):
        if handle is None:
            return
        try:
            self.engine.remove_session(handle)
        except Exception:
            logger.exception("Engine failed to remove session")

    def _begin(self, begin, *args):
        try:
            return begin(*args)
        except Exception as e:
            logger.error(f"Engine raised while starting session: {e}", exc_info=True)
            return None

    def _kept(self, request_id, handle) -> bool:
        if handle.is_valid():
            return True
        # Routed after insert: the router already removed the entry and notified
        if self.registry.remove_by_hash(handle.content_hash(), handle) is None:
            return True
        # Routed before insert: the engine session is gone, drop the stale entry
        logger.warning(f"Session for request ID {request_id} ended before registration completed")
        return False

    def _fail_download(self, request_id, message):
        self.hub.publish(TransferNotification.failed(request_id, message))
        raise SessionInitFailed(message)

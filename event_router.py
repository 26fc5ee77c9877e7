# event_router.py
import logging
import queue
import threading

from constants import PHASE_RECEIVING, PHASE_SENDING
from events import NotificationHub, NotificationKind, TransferNotification
from session_registry import SessionRegistry
from transport_engine import SessionErrorEvent, SessionFinishedEvent, StatusUpdateEvent

logger = logging.getLogger("EventRouter")

_STOP = object()


def compute_progress(total_done, total_wanted):
    if total_wanted <= 0:
        return 0
    return max(0, min(100, (total_done * 100) // total_wanted))


class EventRouter:
    """
    Routes engine events to the session they belong to.

    ``dispatch`` is the engine's sink and only enqueues; a single consumer
    thread drains the queue in arrival order. Terminal events remove the
    registry entry while resolving it, so at most one terminal notification is
    ever published per request id.
    """
    def __init__(self, registry: SessionRegistry, hub: NotificationHub, release_session):
        self.registry = registry
        self.hub = hub
        self.release_session = release_session
        self._queue = queue.Queue()
        self._thread = None

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._consume, name="EventRouter", daemon=True)
        self._thread.start()
        logger.debug("Event router started.")

    def stop(self, timeout=2.0):
        if not self._thread:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Event router did not stop within %.1fs", timeout)
        self._thread = None
        logger.debug("Event router stopped.")

    def dispatch(self, event):
        self._queue.put(event)

    def wait_idle(self):
        """Block until every event queued so far has been processed."""
        self._queue.join()

    def _consume(self):
        while True:
            event = self._queue.get()
            try:
                if event is _STOP:
                    return
                self.process(event)
            finally:
                self._queue.task_done()

    def process(self, event):
        try:
            if isinstance(event, StatusUpdateEvent):
                self._on_status_update(event)
            elif isinstance(event, SessionFinishedEvent):
                self._on_terminal(event, None)
            elif isinstance(event, SessionErrorEvent):
                self._on_terminal(event, event.message)
            else:
                logger.debug(f"Ignored event: {type(event).__name__}")
        except Exception:
            # Keep the consumer alive for the next event
            logger.exception(f"Error routing {type(event).__name__}")

    def _on_status_update(self, event):
        for status in event.statuses:
            request_id = self.registry.lookup_by_hash(status.content_hash)
            if request_id is None:
                continue

            self.hub.publish(TransferNotification(
                NotificationKind.PROGRESS,
                request_id,
                phase=PHASE_SENDING if status.is_seeding else PHASE_RECEIVING,
                peers=status.num_peers,
                download_rate=status.download_rate,
                upload_rate=status.upload_rate,
                percent=compute_progress(status.total_done, status.total_wanted),
                bytes_transferred=status.total_done,
            ))

    def _on_terminal(self, event, error_msg):
        request_id = self.registry.remove_by_hash(event.content_hash)

        if request_id is None:
            logger.debug(f"Terminal event for untracked session {event.content_hash}")
        elif error_msg is None:
            logger.info(f"Transfer finished for request ID: {request_id}")
            self.hub.publish(TransferNotification.completed(request_id))
        else:
            logger.error(f"Transfer error for request ID {request_id}: {error_msg}")
            self.hub.publish(TransferNotification.failed(request_id, error_msg))

        # Always tear the engine session down, tracked or not
        self.release_session(event.handle)

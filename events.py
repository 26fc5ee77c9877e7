# events.py
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("Notifications")


class NotificationKind(str, Enum):
    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TransferNotification:
    kind: NotificationKind
    request_id: str
    phase: str = ""
    peers: int = 0
    download_rate: int = 0
    upload_rate: int = 0
    percent: int = 0
    bytes_transferred: int = 0
    message: str = ""

    @property
    def summary(self):
        return (f"Peers: {self.peers} | Down: {self.download_rate // 1024} KB/s"
                f" | Up: {self.upload_rate // 1024} KB/s")

    @classmethod
    def completed(cls, request_id):
        return cls(NotificationKind.COMPLETED, request_id)

    @classmethod
    def failed(cls, request_id, message):
        return cls(NotificationKind.FAILED, request_id, message=message)


class TransferObserver(ABC):
    @abstractmethod
    def on_progress(self, notification: TransferNotification): pass
    @abstractmethod
    def on_completed(self, notification: TransferNotification): pass
    @abstractmethod
    def on_failed(self, notification: TransferNotification): pass


class NotificationHub:
    """Fans notifications out to every subscribed observer."""
    def __init__(self):
        self._lock = threading.Lock()
        self._observers = []

    def subscribe(self, observer: TransferObserver):
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def unsubscribe(self, observer: TransferObserver):
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def publish(self, notification: TransferNotification):
        with self._lock:
            observers = list(self._observers)

        for observer in observers:
            try:
                if notification.kind is NotificationKind.PROGRESS:
                    observer.on_progress(notification)
                elif notification.kind is NotificationKind.COMPLETED:
                    observer.on_completed(notification)
                elif notification.kind is NotificationKind.FAILED:
                    observer.on_failed(notification)
            except Exception:
                # An observer must not break delivery to the others
                logger.exception(f"Observer {observer!r} failed on {notification.kind.value} "
                                 f"for '{notification.request_id}'")

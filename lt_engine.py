# lt_engine.py
import logging
import os
import threading
import time

import libtorrent as lt

from transport_engine import (SessionErrorEvent, SessionFinishedEvent, SessionHandle, SessionStatus,
                              StatusUpdateEvent, TransportEngine)

logger = logging.getLogger("LibtorrentEngine")


def _hash_hex(info_hashes):
    # info_hash_t on libtorrent 2.x, sha1_hash on older builds
    best = getattr(info_hashes, "get_best", None)
    return str(best() if best else info_hashes)


class LtHandle(SessionHandle):
    def __init__(self, raw):
        self.raw = raw
        # libtorrent raises on an invalid handle, keep the hash for later cleanup
        self._hash = _hash_hex(raw.info_hashes()) if raw.is_valid() else ""

    def content_hash(self):
        return self._hash

    def is_valid(self):
        return self.raw.is_valid()

    def to_locator(self):
        return lt.make_magnet_uri(self.raw)

    def set_sequential(self, enabled):
        if enabled:
            self.raw.set_flags(lt.torrent_flags.sequential_download)
        else:
            self.raw.unset_flags(lt.torrent_flags.sequential_download)

    def __eq__(self, other):
        return isinstance(other, LtHandle) and self.raw == other.raw

    def __hash__(self):
        return hash(self.raw)

    def __repr__(self):
        return f"LtHandle({self.content_hash() if self.is_valid() else 'invalid'})"


class LibtorrentEngine(TransportEngine):
    """Transport engine backed by a libtorrent session and an alert polling thread."""
    def __init__(self, listen_interfaces="0.0.0.0:6881", enable_dht=False,
                 alert_poll_ms=500, status_interval_ms=1000):
        self.settings = {
            "listen_interfaces": listen_interfaces,
            "enable_dht": enable_dht,
            "alert_mask": lt.alert.category_t.status_notification | lt.alert.category_t.error_notification,
        }
        self.alert_poll_ms = alert_poll_ms
        self.status_interval = status_interval_ms / 1000.0
        self.session = None
        self.sink = None
        self.running = False
        self.thread = None

    @classmethod
    def from_settings(cls, settings=None):
        if settings is None:
            return cls()
        cfg = settings.engine
        return cls(cfg.listen_interfaces, cfg.enable_dht, cfg.alert_poll_ms, cfg.status_interval_ms)

    # --- Lifecycle ---

    def subscribe(self, sink):
        if self.sink is not None:
            raise RuntimeError("Engine already has an event subscriber")
        self.sink = sink

    def start_session(self):
        if self.running:
            return
        self.session = lt.session(self.settings)
        self.running = True
        self.thread = threading.Thread(target=self._alert_loop, name="LibtorrentAlerts", daemon=True)
        self.thread.start()
        logger.info(f"Session listening on {self.settings['listen_interfaces']}")

    def stop_session(self):
        self.running = False
        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=(self.alert_poll_ms / 1000.0) + 1.0)
        self.thread = None
        if self.session is not None:
            self.session.pause()
            self.session = None
        logger.info("Session stopped.")

    # --- Sessions ---

    def create_descriptor(self, file_path, creator, private):
        fs = lt.file_storage()
        lt.add_files(fs, file_path)
        if fs.num_files() == 0:
            raise ValueError(f"No file content to describe at {file_path}")

        ct = lt.create_torrent(fs)
        ct.set_creator(creator)
        ct.set_priv(private)
        lt.set_piece_hashes(ct, os.path.dirname(file_path))
        return lt.bencode(ct.generate())

    def begin_seeding(self, descriptor, base_dir):
        try:
            params = lt.add_torrent_params()
            params.ti = lt.torrent_info(lt.bdecode(descriptor))
            params.save_path = base_dir
            return LtHandle(self.session.add_torrent(params))
        except (RuntimeError, TypeError, AttributeError) as e:
            logger.error(f"Failed to add seed: {e}")
            return None

    def begin_download(self, locator, save_dir):
        try:
            params = lt.parse_magnet_uri(locator)
            params.save_path = save_dir
            return LtHandle(self.session.add_torrent(params))
        except (RuntimeError, TypeError, AttributeError) as e:
            logger.error(f"Failed to add download: {e}")
            return None

    def remove_session(self, handle):
        if self.session is None or handle is None or not handle.is_valid():
            return
        self.session.remove_torrent(handle.raw)

    # --- Alerts ---

    def _alert_loop(self):
        last_status = 0.0
        while self.running:
            session = self.session
            if session is None:
                break

            now = time.monotonic()
            if now - last_status >= self.status_interval:
                session.post_torrent_updates()
                last_status = now

            session.wait_for_alert(self.alert_poll_ms)
            for alert in session.pop_alerts():
                event = self._translate(alert)
                if event is not None and self.sink is not None:
                    self.sink(event)

    def _translate(self, alert):
        if isinstance(alert, lt.state_update_alert):
            return StatusUpdateEvent([
                SessionStatus(
                    content_hash=_hash_hex(st.info_hashes),
                    is_seeding=st.is_seeding,
                    num_peers=st.num_peers,
                    download_rate=st.download_payload_rate,
                    upload_rate=st.upload_payload_rate,
                    total_done=st.total_done,
                    total_wanted=st.total_wanted,
                )
                for st in alert.status
            ])

        if isinstance(alert, lt.torrent_finished_alert):
            handle = LtHandle(alert.handle)
            return SessionFinishedEvent(handle.content_hash(), handle)

        if isinstance(alert, lt.torrent_error_alert):
            handle = LtHandle(alert.handle)
            return SessionErrorEvent(handle.content_hash(), handle, alert.error.message())

        return None

"""Polling watcher for the content and template trees."""

import logging
import pathlib
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Iterator, Optional

from inkwell_site.config import SiteConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeEvent:
    """The watched trees changed since the previous poll.

    Carries no description of what changed; every change leads to a full
    rebuild.
    """

    detected_at: float = field(default_factory=time.time)


def iter_watched_paths(config: SiteConfig) -> Iterator[pathlib.Path]:
    """Yield the entries whose modification times are polled.

    That is each direct entry of the content root, the plain files directly
    inside those entries (what the builder reads), and the direct entries of the
    templates directory.
    """
    for entry in config.content_path.iterdir():
        yield entry
        if entry.is_dir():
            yield from (p for p in entry.iterdir() if p.is_file())
    if config.templates_path.is_dir():
        yield from config.templates_path.iterdir()


class ContentWatcher:
    """Polls modification times and emits one ChangeEvent per changed poll.

    All files changed within one interval collapse into a single event.
    Filesystem errors are logged and the scan is retried on the next interval.
    """

    def __init__(
        self,
        config: SiteConfig,
        events: queue.Queue,
        interval: Optional[float] = None,
    ):
        self.config = config
        self.events = events
        self.interval = config.poll_interval if interval is None else interval
        # Newest mtime seen so far; the baseline is taken when polling starts.
        self.last_modified: Optional[float] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def latest_mtime(self) -> float:
        """Newest modification time across the watched paths."""
        latest = 0.0
        for path in iter_watched_paths(self.config):
            try:
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                # Removed between listing and stat; the directory mtime covers it.
                continue
            latest = max(latest, mtime)
        return latest

    def poll(self) -> bool:
        """Scan once. Emits and returns True if anything is newer than before."""
        if self.last_modified is None:
            self.last_modified = time.time()
        latest = self.latest_mtime()
        if latest <= self.last_modified:
            return False
        self.last_modified = latest
        self.events.put(ChangeEvent())
        logger.debug(f"Change detected in {self.config.content_path}")
        return True

    def run(self):
        """Poll until stopped. Runs in the calling thread."""
        while not self._stop_event.wait(self.interval):
            try:
                self.poll()
            except OSError as e:
                logger.warning(f"Watching {self.config.content_path} failed, retrying: {e}")

    def start(self, target=None):
        """Start polling in a background thread.

        ``target`` wraps the loop (used for supervision); defaults to ``run``.
        """
        if self.is_running:
            return
        # A restarted watcher keeps its baseline so changes made while it was
        # down are still picked up.
        if self.last_modified is None:
            self.last_modified = time.time()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=target or self.run, name="inkwell-watcher", daemon=True
        )
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

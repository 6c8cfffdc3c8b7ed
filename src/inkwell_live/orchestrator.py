"""Live development loop: build, serve, watch, rebuild, reload.

The orchestrator owns every long-lived task. Its main loop blocks on a single
event queue fed by the watcher (ChangeEvent) and by the task supervisor
(TaskFailed), and handles one event at a time, so rebuilds never overlap.

A rebuild cycle runs strictly in this order:

1. build the site (the current HTTP server keeps serving the old output)
2. stop the current HTTP server and start a new one on the same port
3. mark every reload client pending

so browsers are only told to reload once the new output is on disk and being
served. A failed build ends the cycle after step 1: the old server stays up and
no reload is sent. If the new server can't bind because the old one is still
busy, the restart is retried like a failed task and the reload is sent once
the new server is up.
"""

import enum
import logging
import queue
import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from inkwell_site.builder import build_site
from inkwell_site.config import SiteConfig
from inkwell_site.errors import InkwellError, ServerError
from inkwell_site.model import BuildResult

from .console import format_duration_ms
from .origin import OriginServer, create_app
from .reload import ReloadServer, ReloadState
from .watcher import ChangeEvent, ContentWatcher

logger = logging.getLogger(__name__)

MAX_TASK_RESTARTS = 5
TASK_RESTART_DELAY = 0.5


class State(enum.Enum):
    STOPPED = "stopped"
    BUILDING = "building"
    SERVING_OLD_BUILD_DONE = "serving-old-build-done"
    SERVING = "serving"


@dataclass(frozen=True)
class TaskFailed:
    """A supervised task's thread ended with an exception."""

    name: str
    error: BaseException
    task: Any = None


_SHUTDOWN = object()


def supervise(name: str, target: Callable[[], None], events: queue.Queue, task: Any = None):
    """Wrap a thread target so an unexpected exception is reported on ``events``."""

    def runner():
        try:
            target()
        except Exception as e:
            logger.exception(f"Task {name} failed")
            events.put(TaskFailed(name, e, task))

    return runner


class Orchestrator:
    """Runs the initial build, the servers and the watcher, and drives rebuilds."""

    def __init__(
        self,
        config: SiteConfig,
        build: Callable[[SiteConfig], BuildResult] = build_site,
    ):
        self.config = config
        self._build = build
        self.events: queue.Queue = queue.Queue()
        self.reload_state = ReloadState()
        self.watcher = ContentWatcher(config, self.events)
        self.reload_server = ReloadServer(config, self.reload_state)
        self.http_server: Optional[OriginServer] = None
        self.http_port = config.http_port

        self.rebuild_count = 0
        self.failed_builds = 0
        self._restarts: Dict[str, int] = defaultdict(int)
        self._reload_owed = False
        self._state = State.STOPPED
        self._state_lock = threading.Lock()
        self._started = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> State:
        with self._state_lock:
            return self._state

    def _set_state(self, state: State):
        with self._state_lock:
            self._state = state
        logger.debug(f"State: {state.value}")

    @property
    def ws_port(self) -> int:
        return self.reload_server.port

    # Task startup

    def _start_http(self) -> OriginServer:
        app = create_app(self.config, self.reload_server.url)
        server = OriginServer(self.config, app, port=self.http_port)
        server.start(target=supervise("http", server.run, self.events, server))
        self.http_port = server.port
        return server

    def _start_reload(self):
        self.reload_server.start(
            target=supervise("reload", self.reload_server.run, self.events, self.reload_server)
        )

    def _start_watcher(self):
        self.watcher.start(
            target=supervise("watcher", self.watcher.run, self.events, self.watcher)
        )

    def setup(self):
        """Initial build, then start serving and watching.

        Raises:
            BuildError: If the initial build fails.
            ServerError: If either server can't bind.
        """
        self._set_state(State.BUILDING)
        result = self._build(self.config)
        logger.info(
            f"Built {result.page_count} pages in {format_duration_ms(result.duration_ms)}"
        )
        self._start_reload()
        self.http_server = self._start_http()
        self._start_watcher()
        self._set_state(State.SERVING)
        self._started.set()

    def teardown(self):
        self.watcher.stop()
        if self.http_server is not None:
            self.http_server.stop(self.config.restart_grace)
            self.http_server = None
        self.reload_server.stop()
        self._set_state(State.STOPPED)

    # Rebuild cycle

    def _restart_http(self):
        old = self.http_server
        if old is not None and not old.stop(self.config.restart_grace):
            logger.warning(
                f"HTTP server on {old.address} still busy after "
                f"{self.config.restart_grace}s, starting the new one anyway"
            )
        self.http_server = None
        self.http_server = self._start_http()

    def rebuild(self) -> bool:
        """Run one rebuild cycle. Returns True if browsers were told to reload."""
        logger.info("Changes detected, rebuilding site...")
        self._set_state(State.BUILDING)
        try:
            result = self._build(self.config)
        except InkwellError as e:
            self.failed_builds += 1
            logger.error(f"Rebuild failed, still serving the previous build: {e}")
            self._set_state(State.SERVING)
            return False
        except Exception:
            self.failed_builds += 1
            logger.exception("Rebuild failed, still serving the previous build")
            self._set_state(State.SERVING)
            return False

        self._set_state(State.SERVING_OLD_BUILD_DONE)
        try:
            self._restart_http()
        except ServerError as e:
            # Retried through recover(); browsers reload once it succeeds.
            logger.error(f"HTTP server restart failed, retrying: {e}")
            self._reload_owed = True
            self.events.put(TaskFailed("http", e))
            self._set_state(State.SERVING)
            return False

        self.rebuild_count += 1
        self._restarts["http"] = 0
        self._reload_owed = False
        notified = self.reload_state.mark_pending()
        logger.info(
            f"Rebuilt {result.page_count} pages in "
            f"{format_duration_ms(result.duration_ms)}, reloading {notified} clients"
        )
        self._set_state(State.SERVING)
        return True

    # Supervision

    def _current_task(self, name: str) -> Any:
        return {
            "http": self.http_server,
            "reload": self.reload_server,
            "watcher": self.watcher,
        }.get(name)

    def recover(self, failure: TaskFailed):
        """Restart a failed task, up to MAX_TASK_RESTARTS times per task."""
        if failure.task is not None and failure.task is not self._current_task(failure.name):
            logger.debug(f"Ignoring failure of replaced {failure.name} task")
            return

        self._restarts[failure.name] += 1
        if self._restarts[failure.name] > MAX_TASK_RESTARTS:
            logger.error(
                f"Task {failure.name} failed {MAX_TASK_RESTARTS} times, not restarting"
            )
            return

        logger.warning(f"Restarting {failure.name} after failure: {failure.error}")
        time.sleep(TASK_RESTART_DELAY)
        try:
            if failure.name == "http":
                self._recover_http()
            elif failure.name == "reload":
                self._start_reload()
            elif failure.name == "watcher":
                self._start_watcher()
        except ServerError as e:
            logger.error(f"Could not restart {failure.name}: {e}")
            self.events.put(TaskFailed(failure.name, e))

    def _recover_http(self):
        if self.http_server is not None and self.http_server.is_running:
            return
        self.http_server = self._start_http()
        if self._reload_owed:
            self._reload_owed = False
            self.rebuild_count += 1
            notified = self.reload_state.mark_pending()
            logger.info(f"HTTP server back up, reloading {notified} clients")

    # Main loop

    def request_rebuild(self):
        """Queue a rebuild as if the watcher had seen a change."""
        self.events.put(ChangeEvent())

    def _drain(self) -> list:
        """Take every queued event; change events collapse into the current cycle."""
        pending = []
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return pending
            if not isinstance(event, ChangeEvent):
                pending.append(event)

    def run(self):
        """Set up, then process events until stopped. Blocks."""
        try:
            self.setup()
            shutdown = False
            while not shutdown:
                backlog = [self.events.get()]
                if isinstance(backlog[0], ChangeEvent):
                    backlog = self._drain()
                    self.rebuild()
                for event in backlog:
                    if event is _SHUTDOWN:
                        shutdown = True
                    elif isinstance(event, TaskFailed):
                        self.recover(event)
        finally:
            self.teardown()

    def _run_in_thread(self):
        try:
            self.run()
        except Exception as e:
            self._error = e
            logger.error(f"Live loop stopped: {e}")
        finally:
            self._started.set()

    def start(self, timeout: float = 30.0):
        """Run in a background thread; returns once the site is being served.

        Raises:
            InkwellError: If setup failed (re-raised from the background thread).
        """
        self._error = None
        self._started.clear()
        self._thread = threading.Thread(
            target=self._run_in_thread, name="inkwell-orchestrator", daemon=True
        )
        self._thread.start()
        if not self._started.wait(timeout):
            raise ServerError(f"Site was not served within {timeout}s")
        if self._error is not None:
            raise self._error

    def stop(self, timeout: float = 10.0):
        self.events.put(_SHUTDOWN)
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

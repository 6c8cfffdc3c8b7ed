"""Live development server for inkwell sites: watch, rebuild, serve, reload."""

from .orchestrator import Orchestrator, State, TaskFailed
from .origin import OriginServer, ServerHandle, create_app
from .reload import ReloadServer, ReloadState
from .watcher import ChangeEvent, ContentWatcher

__all__ = [
    "ChangeEvent",
    "ContentWatcher",
    "Orchestrator",
    "OriginServer",
    "ReloadServer",
    "ReloadState",
    "ServerHandle",
    "State",
    "TaskFailed",
    "create_app",
]

"""Development server: layered static serving, live reload and watching.

Public API:
    DevServer: Starlette/uvicorn static server
    ReloadBroadcaster: SSE fan-out of reload signals
    ChangeDispatcher, WatchBinding, default_bindings: file change handling
"""

from static_boiler.devserver.server import DevServer, find_available_port, is_port_available
from static_boiler.devserver.sse import ReloadBroadcaster
from static_boiler.devserver.watcher import ChangeDispatcher, WatchBinding, default_bindings

__all__ = [
    "ChangeDispatcher",
    "DevServer",
    "ReloadBroadcaster",
    "WatchBinding",
    "default_bindings",
    "find_available_port",
    "is_port_available",
]

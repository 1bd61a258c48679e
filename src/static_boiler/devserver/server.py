"""Development HTTP server using Starlette/Uvicorn.

Serves one or more static roots layered on top of each other (the first
root holding a path wins), so compiled files in .tmp shadow their sources
in app. With live reload on, HTML pages get the client script injected and
browsers listen on an SSE stream for reload/inject signals.

Public API:
    DevServer: Server class
    find_available_port: First free port starting at a given one
"""

import asyncio
import contextlib
import logging
import os
import re
import socket
from collections.abc import AsyncGenerator, AsyncIterator, Callable, Sequence
from pathlib import Path
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import FileResponse, Response, StreamingResponse
from starlette.routing import BaseRoute, Mount, Route
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

from static_boiler.core.exceptions import DevServerError
from static_boiler.devserver.sse import ReloadBroadcaster
from static_boiler.devserver.watcher import ChangeDispatcher

logger = logging.getLogger(__name__)

CLIENT_PREFIX = "/__static_boiler__"
EVENTS_PATH = f"{CLIENT_PREFIX}/events"
CLIENT_SCRIPT_PATH = f"{CLIENT_PREFIX}/client.js"
CLIENT_SNIPPET = f'<script src="{CLIENT_SCRIPT_PATH}" async></script>'
CLIENT_SCRIPT = Path(__file__).parent / "static" / "client.js"

_BODY_END_RE = re.compile(rb"</body\s*>", re.IGNORECASE)

# Seconds uvicorn waits for open SSE streams before forcing shutdown
GRACEFUL_SHUTDOWN_TIMEOUT = 2


def is_port_available(port: int, host: str = "127.0.0.1") -> bool:
    """Check if port is available for binding.

    Args:
        port: Port number to check.
        host: Host address to bind to.

    Returns:
        True if port can be bound, False if busy.

    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            return True
    except OSError:
        return False


def find_available_port(
    start_port: int,
    host: str = "127.0.0.1",
    max_attempts: int = 10,
) -> int:
    """Find the first free port at or after start_port.

    Raises:
        DevServerError: If none of max_attempts consecutive ports is free.

    """
    for port in range(start_port, start_port + max_attempts):
        if is_port_available(port, host):
            if port != start_port:
                logger.info("Port %d is busy, using %d", start_port, port)
            return port
    raise DevServerError(
        f"No available port. Tried: {start_port}-{start_port + max_attempts - 1}. "
        f"Free a port or use --port with a different value."
    )


def inject_client(html: bytes) -> bytes:
    """Insert the live-reload script before the last </body> (or append it)."""
    snippet = CLIENT_SNIPPET.encode("utf-8")
    matches = list(_BODY_END_RE.finditer(html))
    if not matches:
        return html + snippet
    pos = matches[-1].start()
    return html[:pos] + snippet + html[pos:]


class LayeredStaticFiles(StaticFiles):
    """StaticFiles over several directories, first match wins.

    Responses are marked no-cache so the browser revalidates after every
    rebuild. HTML files optionally get the live-reload client injected.
    """

    def __init__(self, directories: Sequence[Path], inject: bool = True) -> None:
        super().__init__(html=True, check_dir=False)
        self.all_directories = [str(directory) for directory in directories]
        self.inject = inject

    def file_response(
        self,
        full_path: "os.PathLike[str] | str",
        stat_result: os.stat_result,
        scope: Scope,
        status_code: int = 200,
    ) -> Response:
        if self.inject and str(full_path).endswith((".html", ".htm")):
            body = inject_client(Path(full_path).read_bytes())
            return Response(
                body,
                status_code=status_code,
                media_type="text/html",
                headers={"Cache-Control": "no-cache"},
            )
        response = super().file_response(full_path, stat_result, scope, status_code)
        response.headers["Cache-Control"] = "no-cache"
        return response


class DevServer:
    """Static development server with optional live reload.

    Attributes:
        roots: Static roots, highest priority first.
        host: Server bind address.
        port: Requested port; replaced by the bound one after bind_port().
        broadcaster: SSE broadcaster shared with the dispatcher.
        dispatcher: Watch dispatcher started with the server, if any.

    """

    def __init__(
        self,
        roots: Sequence[Path],
        host: str = "127.0.0.1",
        port: int = 3000,
        *,
        broadcaster: ReloadBroadcaster | None = None,
        dispatcher: ChangeDispatcher | None = None,
        live_reload: bool = True,
        port_attempts: int = 10,
    ) -> None:
        self.roots = list(roots)
        self.host = host
        self.port = port
        self.broadcaster = broadcaster or ReloadBroadcaster()
        self.dispatcher = dispatcher
        self.live_reload = live_reload
        self.port_attempts = port_attempts
        self._server: uvicorn.Server | None = None
        self._port_bound = False

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def bind_port(self) -> int:
        """Settle on a free port, starting from the requested one.

        Raises:
            DevServerError: If no port is free.

        """
        if not self._port_bound:
            self.port = find_available_port(self.port, self.host, self.port_attempts)
            self._port_bound = True
        return self.port

    # =========================================================================
    # Application
    # =========================================================================

    async def _events(self, request: Request) -> StreamingResponse:
        async def event_stream() -> AsyncGenerator[str, None]:
            async for message in self.broadcaster.subscribe():
                yield message

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    async def _client_script(self, request: Request) -> FileResponse:
        return FileResponse(
            CLIENT_SCRIPT,
            media_type="text/javascript",
            headers={"Cache-Control": "no-cache"},
        )

    def create_app(self) -> Starlette:
        """Create and configure the Starlette application."""
        routes: list[BaseRoute] = [
            Route(EVENTS_PATH, self._events),
            Route(CLIENT_SCRIPT_PATH, self._client_script),
            Mount(
                "/",
                app=LayeredStaticFiles(self.roots, inject=self.live_reload),
                name="static",
            ),
        ]
        app = Starlette(routes=routes, lifespan=self._lifespan)
        app.state.server = self
        return app

    @contextlib.asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncIterator[None]:
        await self._on_startup()
        try:
            yield
        finally:
            await self._on_shutdown()

    async def _on_startup(self) -> None:
        if self.dispatcher is not None:
            await self.dispatcher.start()
        logger.info("Serving %s at %s", ", ".join(str(r) for r in self.roots), self.url)

    async def _on_shutdown(self) -> None:
        if self.dispatcher is not None:
            await self.dispatcher.stop()
        await self.broadcaster.shutdown()
        logger.info("Dev server stopped")

    # =========================================================================
    # Serving
    # =========================================================================

    async def run(self, log_level: str = "warning") -> None:
        """Serve until interrupted.

        Args:
            log_level: Uvicorn log level (debug, info, warning, error).

        Raises:
            DevServerError: If no port is free.

        """
        self.bind_port()
        config = uvicorn.Config(
            self.create_app(),
            host=self.host,
            port=self.port,
            log_level=log_level,
            timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_TIMEOUT,
        )
        loop = asyncio.get_running_loop()
        self._server = _Server(config, lambda: loop.call_soon_threadsafe(self.broadcaster.close))
        await self._server.serve()


class _Server(uvicorn.Server):
    """uvicorn server that ends SSE streams as soon as shutdown is requested."""

    def __init__(self, config: uvicorn.Config, on_exit: Callable[[], Any]) -> None:
        super().__init__(config)
        self._on_exit = on_exit

    def handle_exit(self, sig: int, frame: Any) -> None:
        self._on_exit()
        super().handle_exit(sig, frame)

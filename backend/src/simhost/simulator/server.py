"""Simulation server - serves the prepared app, the sim-host UI and live reload."""

import asyncio
import os
import socket
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import uvicorn

from .errors import ServerError
from ..live_reload import ChangePropagator
from ..utils.logger import get_logger

DEFAULT_PORT = 8000
DEFAULT_HOST = "127.0.0.1"
STARTUP_POLL_INTERVAL = 0.05


def find_project_root(start_dir: str) -> str:
    """Return the nearest directory at or above ``start_dir`` holding a config.xml.

    Raises:
        ServerError: If no ancestor is an app project.
    """
    current = Path(start_dir).resolve()
    for candidate in (current, *current.parents):
        if (candidate / "config.xml").is_file():
            return str(candidate)
    raise ServerError(f"No project (config.xml) found at or above {current}")


class SimulationServer:
    """In-process uvicorn server for one simulation."""

    def __init__(self, config, project, host_roots: Mapping[str, str], telemetry=None, host: str = DEFAULT_HOST):
        """Initialize the server.

        Args:
            config: Simulation Configuration
            project: The simulated Project
            host_roots: Directories served for ``app-host`` and ``sim-host``
            telemetry: Optional telemetry collaborator
            host: Interface to listen on
        """
        self.config = config
        self.host = host
        self.platform = project.platform
        self.project_root: Optional[str] = None
        self.platform_root: Optional[str] = None
        self.live_reload: Optional[ChangePropagator] = None
        if config.live_reload:
            self.live_reload = ChangePropagator(project, config.force_prepare, telemetry)
        self.app = None
        self._host_roots = dict(host_roots)
        self._uvicorn: Optional[uvicorn.Server] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._urls: Optional[Dict[str, str]] = None
        self.logger = get_logger("server")

    @property
    def urls(self) -> Optional[Dict[str, str]]:
        """Root, app and sim-host URLs while listening, otherwise None."""
        return self._urls

    @property
    def is_running(self) -> bool:
        return self._serve_task is not None

    def host_root(self, name: str) -> str:
        return self._host_roots[name]

    async def start(self, platform: str, opts: Optional[Mapping[str, Any]] = None) -> Dict[str, str]:
        """Locate the project, bind the port and start serving.

        Returns:
            ``{"projectRoot": ..., "root": ...}`` once the socket is listening.

        Raises:
            ServerError: If the project cannot be found, the port cannot be bound,
                or uvicorn stops during startup.
        """
        if self._serve_task is not None:
            raise ServerError("Server is already running")

        opts = opts or {}
        port = opts.get("port")
        if port is None:
            port = DEFAULT_PORT

        project_root = find_project_root(opts.get("dir") or os.getcwd())
        self.platform = platform
        self.project_root = project_root
        self.platform_root = os.path.join(project_root, "platforms", platform, "www")

        from ..api.app import create_app

        sock = self._bind(port)
        self.app = create_app(self)
        server = uvicorn.Server(uvicorn.Config(
            self.app,
            log_config=None,
            lifespan="off",
            timeout_graceful_shutdown=2,
        ))
        task = asyncio.create_task(server.serve(sockets=[sock]))

        while not server.started and not task.done():
            await asyncio.sleep(STARTUP_POLL_INTERVAL)

        if not server.started:
            sock.close()
            self.project_root = None
            self.platform_root = None
            exc = None if task.cancelled() else task.exception()
            raise ServerError(f"Server stopped during startup: {exc}")

        self._uvicorn = server
        self._serve_task = task
        bound_port = sock.getsockname()[1]
        display_host = "localhost" if self.host in ("127.0.0.1", "0.0.0.0") else self.host
        root = f"http://{display_host}:{bound_port}"
        self._urls = {
            "root": root,
            "app": f"{root}/index.html",
            "simHost": f"{root}/simulator/index.html",
        }
        self.logger.info(f"Simulation server listening on {root}")

        return {"projectRoot": project_root, "root": self.platform_root}

    def _bind(self, port: int) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, port))
        except OSError as e:
            sock.close()
            self.project_root = None
            self.platform_root = None
            raise ServerError(f"Could not listen on {self.host}:{port}: {e}") from e
        return sock

    async def stop(self) -> None:
        """Stop live reload, close client streams and shut uvicorn down."""
        if self.live_reload is not None:
            self.live_reload.stop()

        if self._uvicorn is None:
            return

        if self.app is not None:
            self.app.state.event_bus.close_all()

        server, task = self._uvicorn, self._serve_task
        server.should_exit = True
        try:
            await task
        finally:
            self._uvicorn = None
            self._serve_task = None
            self._urls = None
            self.app = None
            self.project_root = None
            self.platform_root = None
            self.logger.info("Simulation server stopped")

    async def wait_closed(self) -> None:
        """Wait until the server stops serving."""
        if self._serve_task is not None:
            await asyncio.shield(self._serve_task)

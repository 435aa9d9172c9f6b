"""FastAPI application factory for the simulation server."""

from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .. import __version__
from .event_bus import EventBus
from .routes import health, events, simhost, xhr_proxy


def create_app(server) -> FastAPI:
    """Create the application serving one simulation.

    Args:
        server: The SimulationServer owning this application
    """
    config = server.config

    app = FastAPI(
        title="simhost",
        description="Browser-hosted app simulator",
        version=__version__,
    )

    if config.xhr_proxy:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.server = server
    app.state.event_bus = EventBus()

    app.include_router(health.router, prefix="/api")
    app.include_router(events.router, prefix="/api")
    app.include_router(simhost.router, prefix="/api")
    if config.xhr_proxy:
        app.include_router(xhr_proxy.router)

    # Mounts last: "/" would shadow every route registered after it
    app.mount("/app-host", StaticFiles(directory=str(server.host_root("app-host")), check_dir=False), name="app-host")
    app.mount("/simulator", StaticFiles(directory=str(server.host_root("sim-host")), html=True, check_dir=False), name="sim-host")
    if server.platform_root:
        app.mount("/", StaticFiles(directory=str(Path(server.platform_root)), html=True, check_dir=False), name="app")

    return app

"""Simulation-host endpoints: UI options and server status."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["simhost"])


@router.get("/simhost-config")
async def get_simhost_config(request: Request):
    """Options the sim-host UI needs at load time."""
    config = request.app.state.server.config
    return {
        "liveReload": config.live_reload,
        "touchEvents": config.touch_events,
        "xhrProxy": config.xhr_proxy,
    }


@router.get("/status")
async def get_status(request: Request):
    server = request.app.state.server
    return {
        "platform": server.platform,
        "projectRoot": server.project_root,
        "urls": server.urls,
        "liveReload": server.live_reload is not None and server.live_reload.is_watching,
        "clients": request.app.state.event_bus.subscriber_count,
    }

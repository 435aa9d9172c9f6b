"""Shared fixtures and collaborator fakes for simhost tests."""

import asyncio
import sys
import time
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from simhost.api.app import create_app
from simhost.simulator.config import parse_options
from simhost.simulator.errors import PrepareError


class FakeConnection:
    """Records emitted events, optionally into a shared call log."""

    def __init__(self, calls=None):
        self.events = []
        self.calls = calls

    def emit(self, event, data=None):
        self.events.append((event, data))
        if self.calls is not None:
            self.calls.append(("emit", event, data, time.monotonic()))


class FakeProject:
    """Project double counting prepare attempts and timestamp updates."""

    def __init__(self, project_root=None, platform_root=None, prepare_failures=0, calls=None):
        self.platform = "browser"
        self.project_root = str(project_root) if project_root else None
        self.platform_root = str(platform_root) if platform_root else None
        self.prepare_failures = prepare_failures
        self.prepare_times = []
        self.timestamp_updates = []
        self.reset_calls = 0
        self.calls = calls

    async def prepare(self):
        self.prepare_times.append(time.monotonic())
        if len(self.prepare_times) <= self.prepare_failures:
            raise PrepareError("file is locked")

    def update_time_stamp_for_file(self, path, parent_dir):
        self.timestamp_updates.append((path, parent_dir))
        if self.calls is not None:
            self.calls.append(("timestamp", path, parent_dir, time.monotonic()))

    def reset(self):
        self.project_root = None
        self.platform_root = None
        self.reset_calls += 1


class FakeWatcher:
    """Watcher double; instances are collected on the class."""

    instances = []

    def __init__(self, project_root, platform, on_file_changed):
        self.project_root = project_root
        self.platform = platform
        self.on_file_changed = on_file_changed
        self.started = 0
        self.stopped = 0
        FakeWatcher.instances.append(self)

    def start_watching(self):
        self.started += 1

    def stop_watching(self):
        self.stopped += 1


class FakeServer:
    """Server double returning fixed roots once started."""

    def __init__(self, project_root, start_error=None, stop_error=None):
        self.project_root = Path(project_root)
        self.start_error = start_error
        self.stop_error = stop_error
        self.urls = None
        self.start_calls = []
        self.stop_calls = 0
        self.on_start = None
        self.gate = None

    async def start(self, platform, opts):
        self.start_calls.append((platform, opts))
        if self.on_start is not None:
            self.on_start()
        await asyncio.sleep(0)
        if self.gate is not None:
            await self.gate.wait()
        if self.start_error is not None:
            raise self.start_error
        root = "http://localhost:8000"
        self.urls = {
            "root": root,
            "app": f"{root}/index.html",
            "simHost": f"{root}/simulator/index.html",
        }
        return {
            "projectRoot": str(self.project_root),
            "root": str(self.project_root / "platforms" / platform / "www"),
        }

    async def stop(self):
        self.stop_calls += 1
        await asyncio.sleep(0)
        self.urls = None
        if self.stop_error is not None:
            raise self.stop_error


class StubServer:
    """Just enough of SimulationServer for create_app()."""

    def __init__(self, config, host_dir, live_reload=None):
        self.config = config
        self.platform = "browser"
        self.project_root = "/projects/demo"
        self.platform_root = None
        self.urls = None
        self.live_reload = live_reload
        self._host_dir = str(host_dir)

    def host_root(self, name):
        return self._host_dir


@pytest.fixture(autouse=True)
def _reset_fake_watchers():
    FakeWatcher.instances = []
    yield
    FakeWatcher.instances = []


@pytest.fixture
def app_project(tmp_path):
    """A minimal app project: config.xml, www/ and a prepared browser platform."""
    root = tmp_path / "app"
    (root / "www" / "js").mkdir(parents=True)
    (root / "platforms" / "browser" / "www").mkdir(parents=True)
    (root / "config.xml").write_text("<widget id='demo'></widget>", encoding="utf-8")
    (root / "www" / "index.html").write_text("<html></html>", encoding="utf-8")
    (root / "www" / "js" / "app.js").write_text("console.log('v1');", encoding="utf-8")
    return root


@pytest.fixture
def app(tmp_path):
    """A FastAPI application over a stub server with default options."""
    return create_app(StubServer(parse_options({}), tmp_path))


@pytest_asyncio.fixture
async def client(app):
    """Async HTTP client for testing API endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

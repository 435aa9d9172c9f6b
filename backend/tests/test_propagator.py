"""Tests for the live reload change propagator."""

import asyncio
import time

import pytest
from structlog.testing import capture_logs

from simhost.live_reload import propagator as propagator_module
from simhost.live_reload.propagator import (
    ChangePropagator,
    PropagationStrategy,
    WatchEvent,
)
from conftest import FakeConnection, FakeProject, FakeWatcher


def make_propagator(project, force_prepare=False, **kwargs):
    return ChangePropagator(project, force_prepare=force_prepare, watcher_factory=FakeWatcher, **kwargs)


def test_strategy_is_selected_from_force_prepare():
    assert make_propagator(FakeProject(), force_prepare=True).strategy is PropagationStrategy.PREPARE
    assert make_propagator(FakeProject()).strategy is PropagationStrategy.DIRECT_COPY


def test_start_creates_one_watcher_and_rebinds_connection(app_project):
    live_reload = make_propagator(FakeProject(app_project))
    first, second = FakeConnection(), FakeConnection()

    live_reload.start(first)
    live_reload.start(second)

    assert len(FakeWatcher.instances) == 1
    watcher = FakeWatcher.instances[0]
    assert watcher.project_root == str(app_project)
    assert watcher.platform == "browser"
    assert watcher.started == 1
    assert live_reload.connection is second
    assert first.events == [("start-live-reload", None)]
    assert second.events == [("start-live-reload", None)]


def test_stop_is_idempotent(app_project):
    live_reload = make_propagator(FakeProject(app_project))
    live_reload.stop()

    live_reload.start(FakeConnection())
    live_reload.stop()
    live_reload.stop()

    assert FakeWatcher.instances[0].stopped == 1
    assert live_reload.connection is None
    assert not live_reload.is_watching

    live_reload.start(FakeConnection())
    assert len(FakeWatcher.instances) == 2


def test_release_only_unbinds_the_current_connection(app_project):
    live_reload = make_propagator(FakeProject(app_project))
    stale, current = FakeConnection(), FakeConnection()
    live_reload.start(stale)
    live_reload.start(current)

    live_reload.release(stale)
    assert live_reload.connection is current

    live_reload.release(current)
    assert live_reload.connection is None
    assert live_reload.is_watching


@pytest.mark.asyncio
async def test_direct_copy_copies_updates_timestamp_then_notifies(app_project, monkeypatch):
    calls = []
    platform_root = app_project / "platforms" / "browser" / "www"
    project = FakeProject(app_project, platform_root, calls=calls)
    connection = FakeConnection(calls=calls)
    live_reload = make_propagator(project)
    live_reload.start(connection)

    real_copy = propagator_module._copy_file

    def recording_copy(src, dest):
        real_copy(src, dest)
        calls.append(("copy", src, dest, time.monotonic()))

    monkeypatch.setattr(propagator_module, "_copy_file", recording_copy)

    await live_reload.propagate(WatchEvent("js\\app.js", "www"))

    assert [c[0] for c in calls] == ["emit", "copy", "timestamp", "emit"]
    _, src, dest, copied_at = calls[1]
    assert src.replace("\\", "/").endswith("app/www/js/app.js")
    assert dest.replace("\\", "/").endswith("platforms/browser/www/js/app.js")
    assert (platform_root / "js" / "app.js").read_text(encoding="utf-8") == "console.log('v1');"
    assert project.timestamp_updates == [("js/app.js", "www")]
    assert calls[3][1:3] == ("lr-file-changed", {"fileRelativePath": "js/app.js"})
    assert calls[3][3] - copied_at >= 0.12


@pytest.mark.asyncio
async def test_direct_copy_from_merges_keeps_relative_path(app_project):
    merges = app_project / "merges" / "browser" / "css"
    merges.mkdir(parents=True)
    (merges / "platform.css").write_text("body {}", encoding="utf-8")
    platform_root = app_project / "platforms" / "browser" / "www"
    live_reload = make_propagator(FakeProject(app_project, platform_root), settle_delay=0)
    connection = FakeConnection()
    live_reload.start(connection)

    await live_reload.propagate(WatchEvent("css/platform.css", "merges/browser"))

    assert (platform_root / "css" / "platform.css").read_text(encoding="utf-8") == "body {}"
    assert connection.events[-1] == ("lr-file-changed", {"fileRelativePath": "css/platform.css"})


@pytest.mark.asyncio
async def test_prepare_retries_once_and_skips_timestamp(app_project):
    project = FakeProject(app_project, prepare_failures=1)
    live_reload = make_propagator(project, force_prepare=True)
    connection = FakeConnection()
    live_reload.start(connection)

    await live_reload.propagate(WatchEvent("index.html", "www"))

    assert len(project.prepare_times) == 2
    assert project.prepare_times[1] - project.prepare_times[0] >= 0.095
    assert project.timestamp_updates == []
    assert connection.events[-1] == ("lr-file-changed", {"fileRelativePath": "index.html"})


@pytest.mark.asyncio
async def test_prepare_exhausted_sends_nothing(app_project):
    project = FakeProject(app_project, prepare_failures=2)
    live_reload = make_propagator(project, force_prepare=True, retry_delay=0.01)
    connection = FakeConnection()
    live_reload.start(connection)

    with pytest.raises(Exception, match="file is locked"):
        await live_reload.propagate(WatchEvent("index.html", "www"))

    assert len(project.prepare_times) == 2
    assert project.timestamp_updates == []
    assert connection.events == [("start-live-reload", None)]


@pytest.mark.asyncio
async def test_scheduled_failure_is_logged(app_project):
    project = FakeProject(app_project, prepare_failures=2)
    live_reload = make_propagator(project, force_prepare=True, retry_delay=0.01)
    live_reload.start(FakeConnection())

    with capture_logs() as logs:
        task = live_reload.on_file_changed("index.html", "www")
        await live_reload.drain()
        # let the done callback run
        await asyncio.sleep(0)

    assert task.done()
    errors = [entry for entry in logs if entry["log_level"] == "error"]
    assert errors and errors[0]["event"] == "Live reload propagation failed"


@pytest.mark.asyncio
async def test_change_after_stop_is_dropped(app_project):
    platform_root = app_project / "platforms" / "browser" / "www"
    project = FakeProject(app_project, platform_root)
    live_reload = make_propagator(project, settle_delay=0.05)
    connection = FakeConnection()
    live_reload.start(connection)

    task = live_reload.on_file_changed("js/app.js", "www")
    live_reload.stop()
    await task

    assert connection.events == [("start-live-reload", None)]
    assert project.timestamp_updates == [("js/app.js", "www")]


@pytest.mark.asyncio
async def test_each_event_is_an_independent_task(app_project):
    platform_root = app_project / "platforms" / "browser" / "www"
    live_reload = make_propagator(FakeProject(app_project, platform_root), settle_delay=0.01)
    connection = FakeConnection()
    live_reload.start(connection)

    live_reload.on_file_changed("js/app.js", "www")
    live_reload.on_file_changed("js/app.js", "www")
    live_reload.on_file_changed("index.html", "www")
    await live_reload.drain()

    changed = [data["fileRelativePath"] for event, data in connection.events if event == "lr-file-changed"]
    assert sorted(changed) == ["index.html", "js/app.js", "js/app.js"]


@pytest.mark.asyncio
async def test_telemetry_receives_file_type(app_project):
    class RecordingTelemetry:
        def __init__(self):
            self.events = []

        def send_telemetry(self, event, props=None):
            self.events.append((event, props))

    telemetry = RecordingTelemetry()
    platform_root = app_project / "platforms" / "browser" / "www"
    live_reload = make_propagator(FakeProject(app_project, platform_root), telemetry=telemetry, settle_delay=0)
    live_reload.start(FakeConnection())

    await live_reload.propagate(WatchEvent("js/app.js", "www"))

    assert telemetry.events == [("live-reload", {"fileType": ".js"})]

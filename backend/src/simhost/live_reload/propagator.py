"""Change propagation - pushes source edits into the served platform folder.

Every change reported by the watcher becomes an independent asyncio task that
either re-runs the project's prepare step or copies the single file, waits for
the output to settle and then notifies the connected app-host.
"""

import asyncio
import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Set

from .retry import retry_async
from .watcher import Watcher
from ..utils.logger import get_logger

START_LIVE_RELOAD_EVENT = "start-live-reload"
FILE_CHANGED_EVENT = "lr-file-changed"

PREPARE_MAX_ATTEMPTS = 2
PREPARE_RETRY_DELAY = 0.1
SETTLE_DELAY = 0.125


class Connection(Protocol):
    """A channel to one connected client."""

    def emit(self, event: str, data: Optional[Dict[str, Any]] = None) -> None:
        ...


class PropagationStrategy(Enum):
    """How a source change reaches the served folder."""
    PREPARE = "prepare"
    DIRECT_COPY = "direct_copy"


@dataclass(frozen=True)
class WatchEvent:
    """A single change reported by the watcher."""

    file_relative_path: str
    parent_dir: str

    def normalized(self) -> "WatchEvent":
        return WatchEvent(self.file_relative_path.replace("\\", "/"), self.parent_dir)


def _copy_file(src: str, dest: str) -> None:
    Path(dest).parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src, dest)


class ChangePropagator:
    """Live reload engine bound to one project."""

    def __init__(
        self,
        project,
        force_prepare: bool = False,
        telemetry=None,
        watcher_factory: Callable[..., Any] = Watcher,
        settle_delay: float = SETTLE_DELAY,
        retry_delay: float = PREPARE_RETRY_DELAY,
    ):
        """Initialize the propagator.

        Args:
            project: Project exposing prepare(), update_time_stamp_for_file() and its roots
            force_prepare: Run the full prepare step instead of copying changed files
            telemetry: Optional telemetry collaborator
            watcher_factory: Callable building a watcher from (root, platform, callback)
            settle_delay: Seconds to wait before notifying the client
            retry_delay: Seconds between two prepare attempts
        """
        self._project = project
        self._telemetry = telemetry
        self._watcher_factory = watcher_factory
        self._settle_delay = settle_delay
        self._retry_delay = retry_delay
        self._watcher = None
        self._connection: Optional[Connection] = None
        self._tasks: Set[asyncio.Task] = set()
        self.strategy = PropagationStrategy.PREPARE if force_prepare else PropagationStrategy.DIRECT_COPY
        self.logger = get_logger("live_reload")

    @property
    def is_watching(self) -> bool:
        return self._watcher is not None

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    def start(self, connection: Connection) -> None:
        """Start watching (once) and bind the given client connection."""
        if self._watcher is None:
            self._watcher = self._watcher_factory(
                self._project.project_root,
                self._project.platform,
                self.on_file_changed,
            )
            self._watcher.start_watching()
            self.logger.info(f"Live reload watching {self._project.project_root}")

        self._connection = connection
        self._connection.emit(START_LIVE_RELOAD_EVENT)

    def stop(self) -> None:
        """Stop watching and release the connection. In-flight tasks keep running."""
        if self._watcher is not None:
            self._watcher.stop_watching()
            self._watcher = None
            self._connection = None
            self.logger.info("Live reload stopped")

    def release(self, connection: Connection) -> None:
        """Unbind ``connection`` if it is still the current client."""
        if self._connection is connection:
            self._connection = None
            self.logger.debug("Live reload client disconnected")

    def on_file_changed(self, file_relative_path: str, parent_dir: str) -> asyncio.Task:
        """Schedule propagation of one change on the running loop."""
        event = WatchEvent(file_relative_path, parent_dir)
        task = asyncio.get_running_loop().create_task(self.propagate(event))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.logger.error(
                "Live reload propagation failed",
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def propagate(self, event: WatchEvent) -> None:
        """Propagate one change and notify the client.

        Raises:
            Exception: The prepare or copy failure; nothing is emitted in that case.
        """
        event = event.normalized()
        file_relative_path = event.file_relative_path

        if self.strategy is PropagationStrategy.PREPARE:
            # The modified file can stay locked for a short while after the
            # write, so a failed prepare is tried once more.
            await retry_async(self._project.prepare, PREPARE_MAX_ATTEMPTS, self._retry_delay)
            should_update_modif_time = False
        else:
            source_path = os.path.join(self._project.project_root, event.parent_dir, file_relative_path)
            dest_path = os.path.join(self._project.platform_root, file_relative_path)
            await asyncio.to_thread(_copy_file, source_path, dest_path)
            should_update_modif_time = True

        # The copied file may be briefly locked and unservable right after the copy.
        await asyncio.sleep(self._settle_delay)

        if should_update_modif_time:
            self._project.update_time_stamp_for_file(file_relative_path, event.parent_dir)

        if self._connection is None:
            self.logger.debug(f"No live reload connection, dropping change for {file_relative_path}")
            return

        self._connection.emit(FILE_CHANGED_EVENT, {"fileRelativePath": file_relative_path})

        if self._telemetry is not None:
            self._telemetry.send_telemetry("live-reload", {"fileType": os.path.splitext(file_relative_path)[1]})

    async def drain(self) -> None:
        """Wait for every scheduled propagation task to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

"""Project watcher - reports edits under www/ and merges/<platform>/.

watchdog delivers events on its observer thread; each change is handed over
to the asyncio loop that called start_watching().
"""

import asyncio
from pathlib import Path
from typing import Callable, List, Optional

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler, FileSystemEvent

from ..utils.logger import get_logger

FileChangedCallback = Callable[[str, str], object]


class SourceDirEventHandler(FileSystemEventHandler):
    """Translates watchdog events under one source directory."""

    def __init__(self, watcher: 'Watcher', source_dir: Path, parent_dir: str):
        """Initialize event handler.

        Args:
            watcher: Owning watcher
            source_dir: Absolute directory being watched
            parent_dir: Project-relative name of that directory (``www`` or ``merges/<platform>``)
        """
        super().__init__()
        self.watcher = watcher
        self.source_dir = source_dir
        self.parent_dir = parent_dir

    def on_created(self, event: FileSystemEvent):
        if event.is_directory:
            return
        self._report(event.src_path)

    def on_modified(self, event: FileSystemEvent):
        self.on_created(event)

    def on_moved(self, event: FileSystemEvent):
        if event.is_directory:
            return
        self._report(event.dest_path)

    def _report(self, path) -> None:
        try:
            relative = Path(path).relative_to(self.source_dir)
        except ValueError:
            return
        self.watcher.dispatch(relative.as_posix(), self.parent_dir)


class Watcher:
    """Watches the source folders of a project and reports changed files."""

    def __init__(self, project_root: str, platform: str, on_file_changed: FileChangedCallback):
        self.project_root = Path(project_root)
        self.platform = platform
        self._on_file_changed = on_file_changed
        self._observer: Optional[Observer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._join: Optional[asyncio.Future] = None
        self.logger = get_logger("live_reload.watcher")

    def source_dirs(self) -> List[str]:
        """Project-relative directories whose content is served by the platform."""
        return ["www", f"merges/{self.platform}"]

    def start_watching(self) -> None:
        if self._observer is not None:
            return

        self._loop = asyncio.get_running_loop()
        self._observer = Observer()
        for parent_dir in self.source_dirs():
            source_dir = self.project_root / parent_dir
            if not source_dir.is_dir():
                self.logger.warning(f"Not watching missing directory: {source_dir}")
                continue
            handler = SourceDirEventHandler(self, source_dir, parent_dir)
            self._observer.schedule(handler, str(source_dir), recursive=True)
        self._observer.start()

    def stop_watching(self) -> None:
        """Stop the observer. From a running loop its thread is joined in the default executor."""
        if self._observer is None:
            return
        observer = self._observer
        self._observer = None
        self._loop = None
        observer.stop()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            observer.join()
            return
        self._join = loop.run_in_executor(None, observer.join)

    async def wait_stopped(self) -> None:
        """Wait for the last stopped observer thread to exit."""
        if self._join is not None:
            await self._join
            self._join = None

    def dispatch(self, file_relative_path: str, parent_dir: str) -> None:
        """Forward a change to the callback on the watcher's event loop. Thread-safe."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._on_file_changed, file_relative_path, parent_dir)

"""Project - the simulated app's source tree and its prepared platform output."""

import asyncio
import os
from typing import Dict, List, Optional

from .errors import PrepareError
from ..utils.logger import get_logger


class Project:
    """Roots, prepare step and modification-time bookkeeping for one app project."""

    def __init__(self, platform: str = "browser", prepare_command: Optional[List[str]] = None):
        """Initialize the project.

        Args:
            platform: Target platform whose output is served
            prepare_command: Command regenerating the platform output; defaults to
                ``cordova prepare <platform>``
        """
        self.platform = platform
        self.prepare_command = prepare_command or ["cordova", "prepare", platform]
        self.project_root: Optional[str] = None
        self.platform_root: Optional[str] = None
        self._file_timestamps: Dict[str, float] = {}
        self.logger = get_logger("project")

    async def prepare(self) -> None:
        """Run the prepare command in the project root.

        Raises:
            PrepareError: If no root is configured or the command exits non-zero.
        """
        if not self.project_root:
            raise PrepareError("Project root is not configured")

        self.logger.info(f"Running {' '.join(self.prepare_command)}")
        try:
            process = await asyncio.create_subprocess_exec(
                *self.prepare_command,
                cwd=self.project_root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise PrepareError(f"Could not run {self.prepare_command[0]}: {e}") from e

        stdout, _ = await process.communicate()
        output = stdout.decode("utf-8", errors="replace") if stdout else ""
        if process.returncode != 0:
            raise PrepareError(
                f"Prepare failed with exit code {process.returncode}", output=output
            )

    def update_time_stamp_for_file(self, file_relative_path: str, parent_dir: str) -> None:
        """Remember the current modification time of a source file."""
        if not self.project_root:
            return
        source_path = os.path.join(self.project_root, parent_dir, file_relative_path)
        try:
            self._file_timestamps[file_relative_path] = os.path.getmtime(source_path)
        except OSError:
            self.logger.warning(f"Could not read modification time of {source_path}")

    def file_timestamp(self, file_relative_path: str) -> Optional[float]:
        return self._file_timestamps.get(file_relative_path)

    def reset(self) -> None:
        """Forget roots and recorded timestamps."""
        self.project_root = None
        self.platform_root = None
        self._file_timestamps.clear()

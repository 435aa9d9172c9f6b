"""Simulator - lifecycle control for one simulation.

The simulator owns a four-state machine (idle, starting, running, stopping).
Start and stop are only accepted from the states that allow them; the state
check happens before the first await, so on a single event loop two calls
cannot both pass the guard once the first has begun running.
"""

import asyncio
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional, Tuple

from .config import Configuration, parse_options, parse_server_options
from .errors import SimulationStateError
from .project import Project
from .server import SimulationServer
from .telemetry import Telemetry
from ..utils.logger import get_logger

# Bundled scripts injected into the simulated app
APP_HOST_ROOT = Path(__file__).resolve().parent.parent / "app_host"


class SimulationState(Enum):
    """Operational phase of the simulation server."""
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


_ALLOWED_TRANSITIONS: FrozenSet[Tuple[SimulationState, SimulationState]] = frozenset({
    (SimulationState.IDLE, SimulationState.STARTING),
    (SimulationState.STARTING, SimulationState.RUNNING),
    (SimulationState.STARTING, SimulationState.IDLE),
    (SimulationState.RUNNING, SimulationState.STOPPING),
    (SimulationState.STOPPING, SimulationState.IDLE),
})


class Simulator:
    """Starts and stops the simulation of one project."""

    def __init__(
        self,
        opts: Optional[Mapping[str, Any]] = None,
        project: Optional[Project] = None,
        server: Optional[SimulationServer] = None,
    ):
        """Initialize the simulator.

        Args:
            opts: Raw options (simhostui, simulationpath, telemetry, livereload,
                forceprepare, corsproxy, touchevents, port, dir, platform)
            project: Project to simulate; created from ``platform`` if omitted
            server: Server to run; created from the configuration if omitted
        """
        opts = opts or {}

        self._config = parse_options(opts)
        self._server_opts = parse_server_options(opts)
        self._state = SimulationState.IDLE
        self._simulation_file_path: Optional[str] = None
        self.logger = get_logger("simulator")

        self._telemetry = Telemetry(self._config.telemetry)
        self._project = project or Project(opts.get("platform") or "browser")
        self._server = server or SimulationServer(
            self._config,
            self._project,
            {name: self.host_root(name) for name in ("app-host", "sim-host")},
            telemetry=self._telemetry,
        )

    @property
    def config(self) -> Configuration:
        return self._config

    @property
    def project(self) -> Project:
        return self._project

    @property
    def server(self) -> SimulationServer:
        return self._server

    @property
    def telemetry(self) -> Telemetry:
        return self._telemetry

    @property
    def state(self) -> SimulationState:
        return self._state

    def host_root(self, name: str) -> str:
        """Directory served for the ``app-host`` or ``sim-host`` side.

        Raises:
            KeyError: For any other name.
        """
        if name == "app-host":
            return str(APP_HOST_ROOT)
        if name == "sim-host":
            return self._config.sim_host_options.sim_host_root
        raise KeyError(name)

    def simulation_file_path(self) -> Optional[str]:
        """Absolute directory for simulation files, resolved when the simulation starts."""
        return self._simulation_file_path

    def is_active(self) -> bool:
        """Check if the simulation is in any active state."""
        return self._state is not SimulationState.IDLE

    def is_idle(self) -> bool:
        """Check if the simulation is not active."""
        return self._state is SimulationState.IDLE

    def url_root(self) -> Optional[str]:
        return self._url("root")

    def app_url(self) -> Optional[str]:
        return self._url("app")

    def sim_host_url(self) -> Optional[str]:
        return self._url("simHost")

    def _url(self, key: str) -> Optional[str]:
        urls: Optional[Dict[str, str]] = getattr(self._server, "urls", None)
        return urls.get(key) if urls else None

    def _transition(self, new_state: SimulationState) -> None:
        if (self._state, new_state) not in _ALLOWED_TRANSITIONS:
            raise SimulationStateError(
                f"Invalid simulation state transition: {self._state.value} -> {new_state.value}"
            )
        self.logger.info(f"Simulation state: {self._state.value} -> {new_state.value}")
        self._state = new_state

    async def start_simulation(self) -> bool:
        """Start the server and configure the project for simulation.

        Returns:
            True once the server is listening, False if starting failed (the
            simulator is then idle again and the failure has been logged).

        Raises:
            SimulationStateError: If the simulation is already active.
            asyncio.CancelledError: If the start is cancelled; the simulator is
                rolled back to idle first.
        """
        if self.is_active():
            raise SimulationStateError("Simulation is active")

        self._transition(SimulationState.STARTING)

        try:
            data = await self._server.start(self._project.platform, self._server_opts.as_dict())

            self._project.project_root = data["projectRoot"]
            self._project.platform_root = data["root"]

            sim_path = self._config.simulation_file_path or os.path.join(self._project.project_root, "simulation")
            simulation_file_path = os.path.abspath(sim_path)
            await asyncio.to_thread(os.makedirs, simulation_file_path, exist_ok=True)
            self._simulation_file_path = simulation_file_path
        except asyncio.CancelledError:
            self.logger.warning("Simulation start cancelled")
            await self._rollback_start()
            self._transition(SimulationState.IDLE)
            raise
        except Exception as e:
            self.logger.warning("Error starting the simulation")
            self.logger.error(str(e), exc_info=True)
            await self._rollback_start()
            self._transition(SimulationState.IDLE)
            return False

        self._transition(SimulationState.RUNNING)
        self._telemetry.send_telemetry("simulation-start", {"platform": self._project.platform})
        return True

    async def _rollback_start(self) -> None:
        self._project.reset()
        self._simulation_file_path = None
        if getattr(self._server, "urls", None):
            try:
                await self._server.stop()
            except Exception:
                self.logger.exception("Error stopping the server after a failed start")

    async def stop_simulation(self) -> None:
        """Stop the server and reset the project.

        Raises:
            SimulationStateError: If the simulation is not active.
            Exception: Whatever the server raised while stopping; the simulator
                is idle again in that case too.
        """
        if not self.is_active():
            raise SimulationStateError("Simulation is not active")

        self._transition(SimulationState.STOPPING)

        try:
            await self._server.stop()
        finally:
            self._project.reset()
            self._simulation_file_path = None
            self._transition(SimulationState.IDLE)

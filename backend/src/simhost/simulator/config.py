"""Simulation configuration assembled once from the raw option set."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

# Bundled simulation-host UI, used when no valid override is given
DEFAULT_SIM_HOST_ROOT = Path(__file__).resolve().parent.parent / "sim_host" / "ui"


@dataclass(frozen=True)
class SimHostOptions:
    """Options for the simulation-host UI."""

    sim_host_root: str


@dataclass(frozen=True)
class Configuration:
    """Read-only snapshot of the options for one simulator instance."""

    sim_host_options: SimHostOptions
    simulation_file_path: Optional[str] = None
    telemetry: Any = None
    live_reload: bool = True
    force_prepare: bool = False
    xhr_proxy: bool = True
    touch_events: bool = True


@dataclass(frozen=True)
class ServerOptions:
    """Options forwarded to the server when a simulation starts."""

    port: Optional[int] = None
    dir: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {"port": self.port, "dir": self.dir}


def _flag(opts: Mapping[str, Any], key: str, default: bool) -> bool:
    if key in opts:
        return bool(opts[key])
    return default


def parse_options(opts: Optional[Mapping[str, Any]] = None) -> Configuration:
    """Parse the options provided and create the configuration snapshot.

    Args:
        opts: Raw options, keyed as on the command line (``simhostui``,
            ``livereload``, ``forceprepare``...).

    Returns:
        A frozen Configuration instance.
    """
    opts = opts or {}

    sim_host_ui = opts.get("simhostui")
    if sim_host_ui and Path(sim_host_ui).exists():
        sim_host_options = SimHostOptions(sim_host_root=str(sim_host_ui))
    else:
        sim_host_options = SimHostOptions(sim_host_root=str(DEFAULT_SIM_HOST_ROOT))

    return Configuration(
        sim_host_options=sim_host_options,
        simulation_file_path=opts.get("simulationpath"),
        telemetry=opts.get("telemetry"),
        live_reload=_flag(opts, "livereload", True),
        force_prepare=bool(opts.get("forceprepare")),
        xhr_proxy=_flag(opts, "corsproxy", True),
        touch_events=_flag(opts, "touchevents", True),
    )


def parse_server_options(opts: Optional[Mapping[str, Any]] = None) -> ServerOptions:
    """Extract the options that only the server consumes."""
    opts = opts or {}
    port = opts.get("port")
    return ServerOptions(
        port=int(port) if port is not None else None,
        dir=opts.get("dir"),
    )

"""Simulator module - lifecycle control, configuration and collaborators."""

from .config import Configuration, SimHostOptions, parse_options
from .controller import Simulator, SimulationState
from .errors import (
    SimulatorError,
    SimulationStateError,
    ServerError,
    PrepareError,
    ConfigError,
)
from .project import Project
from .server import SimulationServer

__all__ = [
    'Configuration',
    'SimHostOptions',
    'parse_options',
    'Simulator',
    'SimulationState',
    'SimulatorError',
    'SimulationStateError',
    'ServerError',
    'PrepareError',
    'ConfigError',
    'Project',
    'SimulationServer',
]

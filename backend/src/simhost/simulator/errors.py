"""Exception types raised by the simulator core."""


class SimulatorError(Exception):
    """Base class for simulator failures."""


class SimulationStateError(SimulatorError):
    """Raised when a lifecycle call is not allowed in the current state."""


class ServerError(SimulatorError):
    """Raised when the simulation server cannot be started."""


class PrepareError(SimulatorError):
    """Raised when the project's prepare step fails."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output


class ConfigError(SimulatorError):
    """Raised when the settings file is missing or invalid."""

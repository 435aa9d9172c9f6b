"""simhost - live reload and lifecycle control for a browser-hosted app simulator."""

__version__ = "0.1.0"

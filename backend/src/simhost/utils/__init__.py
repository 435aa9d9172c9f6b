"""Utility modules for simhost.

Settings loading lives in ``simhost.utils.config``; it is not re-exported here
so that importing the logger never pulls in the simulator package.
"""

from .logger import setup_logger, get_logger

__all__ = ["setup_logger", "get_logger"]

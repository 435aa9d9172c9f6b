"""Live reload - propagates source changes to the served app."""

from .propagator import ChangePropagator, PropagationStrategy, WatchEvent
from .retry import retry_async
from .watcher import Watcher

__all__ = [
    'ChangePropagator',
    'PropagationStrategy',
    'WatchEvent',
    'retry_async',
    'Watcher',
]

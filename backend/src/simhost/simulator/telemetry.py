"""Telemetry - records usage events when enabled by the ``telemetry`` option."""

from typing import Any, Dict, Optional

from ..utils.logger import get_logger


class Telemetry:

    def __init__(self, opts: Any = None):
        self.enabled = bool(opts)
        self.session_properties: Dict[str, Any] = dict(opts) if isinstance(opts, dict) else {}
        self.logger = get_logger("telemetry")

    def send_telemetry(self, event: str, props: Optional[Dict[str, Any]] = None) -> None:
        """Record ``event`` with the session properties, overridden by ``props``.

        Never raises; a failure to record is logged and dropped.
        """
        if not self.enabled:
            return
        try:
            properties = {**self.session_properties, **(props or {})}
            self.logger.info("telemetry", telemetry_event=event, properties=properties)
        except Exception as e:
            self.logger.warning(f"Could not record telemetry event {event}: {e}")

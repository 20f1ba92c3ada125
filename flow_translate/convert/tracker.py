"""
Per-conversion log collection.

Every entry lands in the ConversionResult log and is mirrored to Python
logging so library users see the same messages in their own handlers.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from flow_translate.models.workflow import ConversionLog, LogLevel

logger = logging.getLogger(__name__)


class ConversionLogger:
    """Collects log entries and per-node debug details for one conversion."""

    def __init__(self, debug: bool = False):
        self.logs: list[ConversionLog] = []
        self.debug = debug
        self.node_details: list[dict[str, Any]] = []

    def add(self, level: LogLevel, message: str) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        self.logs.append(ConversionLog(level=level, message=message, timestamp=timestamp))
        logger.log(level.logging_level, message)

    def info(self, message: str) -> None:
        self.add(LogLevel.INFO, message)

    def warning(self, message: str) -> None:
        self.add(LogLevel.WARNING, message)

    def error(self, message: str) -> None:
        self.add(LogLevel.ERROR, message)

    @property
    def has_errors(self) -> bool:
        return any(log.level is LogLevel.ERROR for log in self.logs)

    def track_node(
        self, source_id: str, source_type: str, target_id: Any, target_type: str, outcome: str
    ) -> None:
        """Record how one node was converted (kept only in debug mode)."""
        if not self.debug:
            return
        self.node_details.append(
            {
                "sourceId": source_id,
                "sourceType": source_type,
                "targetId": target_id,
                "targetType": target_type,
                "outcome": outcome,
            }
        )

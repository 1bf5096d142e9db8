"""
Activity Logging - Structured records of every handler action.

Records go to pluggable sinks. A sink failure is logged and dropped so that
activity logging can never break the request that produced it.
"""

from dataclasses import asdict
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx
import structlog

from app.config import settings
from app.models.domain import ActivityRecord

logger = structlog.get_logger(__name__)

LEVELS = ("debug", "info", "warn", "error")


def level_for(record: ActivityRecord) -> str:
    """Pick the level for a record from its error and action name."""
    action = record.action.lower()
    if record.error or "error" in action:
        return "error"
    if "warn" in action:
        return "warn"
    return "info"


def _serialize(record: ActivityRecord, level: str) -> dict[str, Any]:
    payload = {key: value for key, value in asdict(record).items() if value not in (None, {})}
    payload["level"] = level
    payload["timestamp"] = datetime.now(UTC).isoformat()
    return payload


class ActivitySink(Protocol):
    """Destination for activity records."""

    async def emit(self, level: str, payload: dict[str, Any]) -> None: ...


class StructlogActivitySink:
    """Writes activity records through the application logger."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger("app.activity")

    async def emit(self, level: str, payload: dict[str, Any]) -> None:
        fields = dict(payload)
        action = fields.pop("action")
        fields.pop("level", None)
        fields.pop("timestamp", None)
        if level == "error":
            self._logger.error(action, **fields)
        elif level == "warn":
            self._logger.warning(action, **fields)
        elif level == "debug":
            self._logger.debug(action, **fields)
        else:
            self._logger.info(action, **fields)


class WebhookActivitySink:
    """Posts activity records as JSON to an external collector."""

    def __init__(self, url: str, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self._client = client

    async def emit(self, level: str, payload: dict[str, Any]) -> None:
        if self._client is not None:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
            return
        async with httpx.AsyncClient(timeout=5.0) as client:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()


class ActivityLogger:
    """
    Fans activity records out to the configured sinks.

    Records below the configured minimum level are dropped.
    """

    def __init__(
        self,
        sinks: list[ActivitySink],
        min_level: str = "info",
        enabled: bool = True,
    ) -> None:
        self.sinks = sinks
        self.min_level = min_level if min_level in LEVELS else "info"
        self.enabled = enabled

    def should_log(self, level: str) -> bool:
        """Whether a record at this level passes the filter."""
        return self.enabled and LEVELS.index(level) >= LEVELS.index(self.min_level)

    async def log(self, record: ActivityRecord) -> None:
        """Emit a record to every sink, swallowing sink failures."""
        level = level_for(record)
        if not self.should_log(level):
            return

        payload = _serialize(record, level)
        for sink in self.sinks:
            try:
                await sink.emit(level, payload)
            except Exception as e:
                logger.warning(
                    "activity_sink_failed",
                    sink=type(sink).__name__,
                    action=record.action,
                    error=str(e),
                )


def build_activity_logger() -> ActivityLogger:
    """Create the activity logger described by settings."""
    sinks: list[ActivitySink] = [StructlogActivitySink()]
    if settings.activity_webhook_url:
        sinks.append(WebhookActivitySink(settings.activity_webhook_url))
    return ActivityLogger(
        sinks=sinks,
        min_level=settings.activity_log_level,
        enabled=settings.activity_logging_enabled,
    )


_activity_logger: ActivityLogger | None = None


def get_activity_logger() -> ActivityLogger:
    """Get the process-wide activity logger."""
    global _activity_logger
    if _activity_logger is None:
        _activity_logger = build_activity_logger()
    return _activity_logger

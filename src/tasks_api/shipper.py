"""Best-effort remote log shipping.

Log records are POSTed as JSON to a collector URL (BetterStack or anything
accepting the same payload) from detached asyncio tasks. Shipping never
raises into the caller: a missing URL, a transport error, a timeout or a
non-2xx status all end as a local log line.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any, Literal

import httpx
from opentelemetry import metrics
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)

meter = metrics.get_meter(__name__)

records_shipped = meter.create_counter(
    name="log_shipper.records",
    description="Log records handed to the remote shipper",
    unit="{record}",
)

LogLevel = Literal["info", "error"]


class LogRecord(BaseModel):
    level: LogLevel
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    meta: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Flatten into the collector wire format: meta keys sit at the top level."""
        data = self.model_dump(mode="json", exclude={"meta"})
        return {**data, **self.meta}


class RemoteLogShipper:
    def __init__(self, url: str | None, client: httpx.AsyncClient | None = None) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient()
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def url(self) -> str | None:
        return self._url

    @property
    def pending(self) -> int:
        return len(self._pending)

    def info(self, message: str, meta: dict[str, Any] | None = None) -> asyncio.Task[bool] | None:
        return self._dispatch("info", message, meta)

    def error(self, message: str, meta: dict[str, Any] | None = None) -> asyncio.Task[bool] | None:
        return self._dispatch("error", message, meta)

    def _dispatch(
        self, level: LogLevel, message: str, meta: dict[str, Any] | None
    ) -> asyncio.Task[bool] | None:
        if not self._url:
            logger.warning("Remote log URL not configured; dropping %s record: %s", level, message)
            records_shipped.add(1, {"level": level, "outcome": "skipped"})
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; dropping %s record: %s", level, message)
            records_shipped.add(1, {"level": level, "outcome": "skipped"})
            return None

        record = LogRecord(level=level, message=message, meta=meta or {})
        task = loop.create_task(self.send(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def send(self, record: LogRecord) -> bool:
        """POST one record. Returns False instead of raising on any failure."""
        if not self._url:
            logger.warning("Remote log URL not configured")
            return False

        try:
            response = await self._client.post(self._url, json=record.to_payload())
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("Failed to ship log record to remote collector: %s", exc)
            records_shipped.add(1, {"level": record.level, "outcome": "failed"})
            return False
        except Exception:
            logger.exception("Unexpected error while shipping log record")
            records_shipped.add(1, {"level": record.level, "outcome": "failed"})
            return False

        records_shipped.add(1, {"level": record.level, "outcome": "sent"})
        return True

    async def drain(self) -> None:
        """Wait for every in-flight send to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        if self._owns_client:
            await self._client.aclose()

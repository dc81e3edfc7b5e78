"""Append-only JSONL audit trail for memory writes and coordination runs."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from contextforge.audit.schemas import AuditEvent
from contextforge.audit.schemas import AuditEventType
from contextforge.config import AuditConfig

logger = logging.getLogger(__name__)


class AuditLogger:
    """One JSON object per line, written and read off the event loop.

    Appends and reads share an ``asyncio.Lock`` so a reader never sees a
    half-written line from this process.
    """

    def __init__(self, config: AuditConfig | None = None) -> None:
        self.config = config or AuditConfig()
        self._path = Path(self.config.file_path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def log(self, event: AuditEvent) -> None:
        if not self.config.enabled:
            return
        async with self._lock:
            await asyncio.to_thread(self._write, event.model_dump_json())

    async def record(
        self,
        event_type: AuditEventType,
        *,
        agency_id: str | None = None,
        **payload: Any,
    ) -> None:
        """Build and log an event from keyword payload fields."""
        await self.log(
            AuditEvent(event_type=event_type, agency_id=agency_id, payload=payload)
        )

    def _write(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    async def read_events(
        self,
        *,
        event_type: AuditEventType | None = None,
        agency_id: str | None = None,
        since: float | None = None,
    ) -> list[AuditEvent]:
        """Events in file order; lines that fail validation are skipped."""
        if not self._path.exists():
            return []
        async with self._lock:
            text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")

        def wanted(event: AuditEvent) -> bool:
            return (
                (event_type is None or event.event_type == event_type)
                and (agency_id is None or event.agency_id == agency_id)
                and (since is None or event.timestamp >= since)
            )

        events: list[AuditEvent] = []
        for number, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                event = AuditEvent.model_validate_json(line)
            except ValidationError:
                logger.warning("Bad audit line %d in %s, skipped", number, self._path)
                continue
            if wanted(event):
                events.append(event)
        return events

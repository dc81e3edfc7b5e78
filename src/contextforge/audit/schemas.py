"""What goes into the audit trail."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class AuditEventType(str, Enum):
    MEMORY_STORED = "MEMORY_STORED"
    MEMORY_CONSOLIDATED = "MEMORY_CONSOLIDATED"
    COORDINATION_RUN = "COORDINATION_RUN"


class AuditEvent(BaseModel):
    """One line of the JSONL trail.

    ``payload`` carries the event-specific fields, e.g. the stored memory id
    or the per-subtask statuses of a coordination run.
    """

    model_config = ConfigDict(frozen=True)

    event_type: AuditEventType
    agency_id: str | None = Field(
        default=None,
        description="Owning tenant; None for events outside any tenant.",
    )
    timestamp: float = Field(default_factory=time.time, description="Seconds since epoch.")
    payload: dict[str, Any] = Field(default_factory=dict)

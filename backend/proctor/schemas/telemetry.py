"""Pydantic schemas for telemetry events."""

import json
from datetime import datetime
from enum import Enum as PyEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Event Types Enum
# ============================================================================


class EventType(str, PyEnum):
    """Allowed telemetry event kinds."""

    # Session lifecycle
    START = "start"
    SUBMIT = "submit"
    WITHDRAW = "withdraw"

    # Navigation
    QUESTION_VIEW = "question_view"
    NEXT = "next"
    PREV = "prev"

    # Answer interactions
    ANSWER_SELECT = "answer_select"

    # Host application visibility
    APP_BLUR = "app_blur"
    APP_FOCUS = "app_focus"



def payload_size(payload: dict[str, Any]) -> int:
    """Serialized payload size in bytes."""
    return len(json.dumps(payload, default=str).encode("utf-8"))


# ============================================================================
# Stored Event Schemas
# ============================================================================


class TelemetryEventOut(BaseModel):
    """A stored telemetry event."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    session_id: UUID
    kind: EventType
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

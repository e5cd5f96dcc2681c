"""User-facing notice models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    CELEBRATION = "celebration"


class Notice(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    level: NoticeLevel = NoticeLevel.INFO
    title: str
    message: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

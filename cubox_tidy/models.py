"""
Data models for cubox-tidy.
"""

from typing import Optional
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, validator


class AnnotationKind(str, Enum):
    """Classification of a single note line during stripping."""
    CAPTURE_TOOL_LINK = "capture_tool_link"
    SUMMARY_ORIGIN_LINK = "summary_origin_link"
    HEADING_LEVEL1 = "heading_level1"
    PLAIN = "plain"


class EventKind(str, Enum):
    """Events dispatched by the vault."""
    CREATE = "create"
    MODIFY = "modify"


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notice(BaseModel):
    """A transient user-facing message."""
    message: str
    level: NoticeLevel = NoticeLevel.INFO
    note: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)

    @validator('message')
    def message_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError('Notice message cannot be empty')
        return v.strip()


class NoteSettings(BaseModel):
    """User-editable settings persisted next to the vault."""
    target_folder: str = ""
    api_key: str = ""

    @validator('target_folder')
    def normalize_folder(cls, v):
        # Stored the way notes report their parent: vault-relative, forward slashes
        return (v or "").strip().replace("\\", "/").strip("/")

    @validator('api_key')
    def strip_key(cls, v):
        return (v or "").strip()

    @property
    def is_configured(self) -> bool:
        return bool(self.target_folder and self.api_key)


class SummaryOutcome(BaseModel):
    """Result of one summarize command."""
    note: str
    anchor_line: Optional[int] = None
    summary: Optional[str] = None
    completed: bool = False


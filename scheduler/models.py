"""
Models for the scan and notification pipeline.

This module defines Pydantic models for:
- Update events passed from the scanner to the notifier
- Per-manga detection outcomes
- Scan cycle and fan-out summaries
"""

from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from tracker.models import ChapterEntity


class DetectionStatus(str, Enum):
    """Outcome of checking one manga for a new chapter."""
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    NO_CHAPTERS = "no_chapters"
    BASELINE_RECORDED = "baseline_recorded"
    UPSTREAM_FAILED = "upstream_failed"


class UpdateEvent(BaseModel):
    """
    A newly observed chapter, carrying everything needed to notify subscribers.
    The channel set is a snapshot taken when the update was detected.
    """
    model_config = ConfigDict(frozen=True)

    manga_id: str = Field(..., description="MangaDex manga id")
    manga_title: str = Field(..., description="Display title of the manga")
    chapter: ChapterEntity = Field(..., description="The new latest chapter")
    channels: FrozenSet[int] = Field(default_factory=frozenset, description="Channels to notify")


class DetectionResult(BaseModel):
    """Result of running the update detector on one manga."""
    manga_id: str
    status: DetectionStatus
    event: Optional[UpdateEvent] = None
    error: Optional[str] = None


class ScanResult(BaseModel):
    """Summary of one scan cycle."""
    scan_id: str = Field(..., description="Unique scan cycle identifier")
    started_at: datetime = Field(default_factory=datetime.utcnow)
    mangas_checked: int = Field(default=0)
    updates_detected: int = Field(default=0)
    baselines_recorded: int = Field(default=0)
    upstream_failures: int = Field(default=0)
    duration_seconds: float = Field(default=0.0)

    success: bool = Field(default=True)
    errors: List[str] = Field(default_factory=list)


class FanoutResult(BaseModel):
    """Delivery outcome for one update event."""
    manga_id: str
    chapter_id: str
    delivered: List[int] = Field(default_factory=list)
    failed: List[int] = Field(default_factory=list)

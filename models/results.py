from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from models.mailbox import Folder, Message


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Outcome of running the code extractor over one piece of text."""

    found: bool
    code: Optional[str] = None
    matched_pattern: Optional[str] = None
    confidence_signals: Optional[int] = None
    folder: Optional[Folder] = None
    message_id: Optional[str] = None

    @classmethod
    def not_found(cls) -> "ExtractionResult":
        return cls(found=False)


class ScanOutcome(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"


@dataclass(slots=True)
class ScanAttempt:
    attempt_number: int
    outcome: ScanOutcome
    result: ExtractionResult
    folders_checked: List[Folder] = field(default_factory=list)
    folders_failed: List[Folder] = field(default_factory=list)

    @property
    def made_progress(self) -> bool:
        return bool(self.folders_checked)


@dataclass(frozen=True, slots=True)
class FolderFetch:
    """Either the messages of a folder or the error that prevented fetching them."""

    folder: Folder
    messages: List[Message] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class MonitorStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True, slots=True)
class MonitorResult:
    status: MonitorStatus
    attempts: int
    code: Optional[str] = None
    folder: Optional[Folder] = None
    detail: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is MonitorStatus.FOUND


T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Plain value handed to the UI layer; callers inspect ``success``."""

    success: bool
    message: str
    payload: Optional[T] = None

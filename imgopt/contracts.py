"""Core data contracts for imgopt runs."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = "1.0"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Model serialized with camelCase keys, accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class RunStatus(str, Enum):
    """States of the batch state machine."""

    INIT = "init"
    RUNNING = "running"
    COMPLETE = "complete"
    PARTIAL = "partial"
    ABORTED = "aborted"


class ErrorDetail(CamelModel):
    message: str
    code: Optional[str] = None


class FileRecord(CamelModel):
    """Terminal outcome of one input file."""

    path: str
    status: FileStatus
    error: Optional[ErrorDetail] = None
    outputs: List[str] = Field(default_factory=list)
    attempts: int = 0
    skipped_reason: Optional[str] = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


class Progress(CamelModel):
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    remaining: int = 0

    @model_validator(mode="after")
    def _check_counters(self) -> "Progress":
        if self.processed != self.succeeded + self.failed:
            raise ValueError("processed must equal succeeded + failed")
        if self.remaining != self.total - self.processed:
            raise ValueError("remaining must equal total - processed")
        return self

    @classmethod
    def from_records(cls, total: int, records: List[FileRecord]) -> "Progress":
        succeeded = sum(1 for r in records if r.status is FileStatus.SUCCESS)
        failed = len(records) - succeeded
        return cls(
            total=total,
            processed=len(records),
            succeeded=succeeded,
            failed=failed,
            remaining=total - len(records),
        )


class RunFiles(CamelModel):
    processed: List[FileRecord] = Field(default_factory=list)
    pending: List[str] = Field(default_factory=list)


class RunState(CamelModel):
    """Persisted progress of one batch run."""

    schema_version: str = SCHEMA_VERSION
    started_at: datetime = Field(default_factory=utcnow)
    last_updated_at: datetime = Field(default_factory=utcnow)
    configuration: Dict[str, Any] = Field(default_factory=dict)
    progress: Progress = Field(default_factory=Progress)
    files: RunFiles = Field(default_factory=RunFiles)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)

    @classmethod
    def from_json(cls, data: str) -> "RunState":
        return cls.model_validate_json(data)


class ErrorContext(CamelModel):
    attempt: int
    operation: str


class ErrorLogEntry(CamelModel):
    """One failed attempt, as written to the error log."""

    timestamp: datetime = Field(default_factory=utcnow)
    file: str
    error: ErrorDetail
    context: ErrorContext


class RetryContext(BaseModel):
    """Transient bookkeeping for one file's attempts."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    file: str
    operation: str = "encode"
    attempt: int = 0
    max_attempts: int = 3
    last_error: Optional[BaseException] = None


class RetryOutcome(BaseModel):
    """Structured result of a retried unit of work."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    value: Any = None
    error: Optional[BaseException] = None
    attempts: int


class ImageMetadata(BaseModel):
    width: int
    height: int
    format: Optional[str] = None


class OutputTarget(BaseModel):
    """One file the codec must produce for an input."""

    path: str
    format: Literal["webp", "avif", "jpeg", "png", "copy"]
    quality: Optional[int] = None
    max_size: Optional[int] = 2000


class BatchReport(BaseModel):
    """Aggregate outcome of a batch run."""

    status: RunStatus
    total: int = 0
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    lfs_pointers: int = 0
    errors: List[ErrorLogEntry] = Field(default_factory=list)
    error_log_path: Optional[str] = None
    state_path: Optional[str] = None

    @property
    def success_rate(self) -> str:
        if self.processed == 0:
            return "0%"
        return f"{self.succeeded / self.processed * 100:.1f}%"

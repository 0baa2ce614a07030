"""Job record data model and lifecycle transitions."""

from datetime import datetime, timedelta, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
import uuid

from jobqueue.jobs.errors import InvalidTransitionError

JOBS_COLLECTION = "jobs"
DEFAULT_TIMEOUT_MS = 30 * 60 * 1000


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)


class JobPriority(IntEnum):
    LOW = 0
    NORMAL = 1
    HIGH = 2
    CRITICAL = 3

    @classmethod
    def parse(cls, value: Any) -> "JobPriority":
        """Accept a JobPriority, its integer value, or its name in any case."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and not value.lstrip("-").isdigit():
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(
                    f"Unknown priority '{value}'; expected one of "
                    f"{', '.join(p.name for p in cls)}"
                )
        try:
            number = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid priority {value!r}")
        return cls(number)


class Job(BaseModel):
    """Tracks the lifecycle of one unit of work.

    Identity fields (id, name, type, priority, payload, timeout_ms, metadata)
    are fixed at creation. Status, timestamps, result, error and progress
    change only through the transition methods below.
    """
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(min_length=1)
    type: str = Field(min_length=1)
    status: JobStatus = JobStatus.PENDING
    priority: JobPriority = JobPriority.NORMAL
    payload: Any = None
    result: Any = None
    error: Optional[str] = None
    progress: float = Field(0.0, ge=0, le=100)
    timeout_ms: int = Field(DEFAULT_TIMEOUT_MS, gt=0)
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="ignore")

    @field_validator("priority", mode="before")
    @classmethod
    def _parse_priority(cls, value: Any) -> JobPriority:
        return JobPriority.parse(value)

    # ---------------------------
    # Transitions
    # ---------------------------
    def _require(self, action: str, *allowed: JobStatus) -> None:
        if self.status not in allowed:
            raise InvalidTransitionError(self.id, self.status.value, action)

    def start(self) -> "Job":
        self._require("start", JobStatus.PENDING)
        self.status = JobStatus.RUNNING
        self.started_at = utcnow()
        self.progress = 0.0
        return self

    def complete(self, result: Any = None) -> "Job":
        self._require("complete", JobStatus.RUNNING)
        self.status = JobStatus.COMPLETED
        self.result = result
        self.progress = 100.0
        self.completed_at = utcnow()
        return self

    def fail(self, error: str) -> "Job":
        # PENDING -> FAILED is the dispatch failure path (no handler)
        self._require("fail", JobStatus.PENDING, JobStatus.RUNNING)
        self.status = JobStatus.FAILED
        self.error = error
        self.completed_at = utcnow()
        return self

    def cancel(self) -> "Job":
        self._require("cancel", JobStatus.PENDING)
        self.status = JobStatus.CANCELLED
        self.completed_at = utcnow()
        return self

    def update_progress(self, progress: float) -> "Job":
        self._require("report progress on", JobStatus.RUNNING)
        self.progress = min(max(float(progress), 0.0), 100.0)
        return self

    # ---------------------------
    # Queries
    # ---------------------------
    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self.status in (JobStatus.PENDING, JobStatus.RUNNING)

    def has_timed_out(self, now: Optional[datetime] = None) -> bool:
        if self.status is not JobStatus.RUNNING or self.started_at is None:
            return False
        now = now or utcnow()
        return now - self.started_at > timedelta(milliseconds=self.timeout_ms)

    # ---------------------------
    # Runtime <-> Persisted
    # ---------------------------
    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Job":
        return cls.model_validate(document)

    def status_info(self) -> "JobStatusInfo":
        return JobStatusInfo(
            id=self.id,
            name=self.name,
            status=self.status,
            progress=self.progress,
            created_at=self.created_at,
            started_at=self.started_at,
            completed_at=self.completed_at,
            error=self.error,
        )


class JobStatusInfo(BaseModel):
    """Status projection returned to pollers."""
    id: str
    name: str
    status: JobStatus
    progress: float
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

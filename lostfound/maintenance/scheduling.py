"""Scheduling as data: job specs, handles and the scheduler interface."""

from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Annotated, Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lostfound.retry import RetryPolicy


class JobKind(str, Enum):
    """How often a job runs."""

    PERIODIC = "PERIODIC"
    ONE_SHOT = "ONE_SHOT"


class JobType(str, Enum):
    """Maintenance work a job performs."""

    ELIGIBILITY_SWEEP = "ELIGIBILITY_SWEEP"
    ARCHIVE_COMPACTION = "ARCHIVE_COMPACTION"


class JobConstraints(BaseModel):
    """Conditions that must hold before a run starts."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    requires_network: bool = False
    requires_battery_not_low: bool = False
    requires_idle: bool = False


class JobSpec(BaseModel):
    """A job to submit to a scheduler."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Annotated[str, Field(min_length=1, pattern=r"^[a-z0-9_-]+$")]
    job_type: JobType
    kind: JobKind = JobKind.PERIODIC
    interval_seconds: Annotated[int | None, Field(ge=1)] = None
    initial_delay_seconds: Annotated[int, Field(ge=0)] = 0
    constraints: JobConstraints = Field(default_factory=JobConstraints)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    payload: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_interval(self) -> "JobSpec":
        """Periodic jobs need an interval; one-shot jobs must not have one."""
        if self.kind == JobKind.PERIODIC and self.interval_seconds is None:
            msg = f"Periodic job '{self.name}' requires interval_seconds"
            raise ValueError(msg)
        if self.kind == JobKind.ONE_SHOT and self.interval_seconds is not None:
            msg = f"One-shot job '{self.name}' must not set interval_seconds"
            raise ValueError(msg)
        return self


class JobStatus(str, Enum):
    """Lifecycle of a scheduled job."""

    SCHEDULED = "SCHEDULED"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class JobHandle:
    """Opaque reference to a scheduled job."""

    job_id: str
    name: str
    kind: JobKind


@dataclass(frozen=True)
class JobStatusUpdate:
    """One status change of a scheduled job."""

    handle: JobHandle
    status: JobStatus
    at: datetime
    attempt: int = 0
    detail: dict[str, object] = field(default_factory=dict)

    @property
    def is_final(self) -> bool:
        """Whether no further updates will follow for this handle."""
        if self.status == JobStatus.CANCELLED:
            return True
        return self.handle.kind == JobKind.ONE_SHOT and self.status in (
            JobStatus.SUCCEEDED,
            JobStatus.FAILED,
            JobStatus.SKIPPED,
        )


class JobObserver(Protocol):
    """Stream of status updates for one job."""

    def __iter__(self) -> Iterator[JobStatusUpdate]:
        """Iterate until the job reaches a final status or the stream closes."""
        ...

    def close(self) -> None:
        """Stop receiving updates."""
        ...


class JobScheduler(Protocol):
    """Abstract job scheduler collaborator."""

    def schedule(self, spec: JobSpec) -> JobHandle:
        """Submit a job."""
        ...

    def observe(self, handle: JobHandle) -> JobObserver:
        """Stream status updates for a job."""
        ...

    def cancel(self, handle: JobHandle) -> None:
        """Cancel future runs and signal any run in progress."""
        ...

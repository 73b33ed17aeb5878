"""Maintenance jobs: eligibility sweep, archive compaction and scheduling."""

from lostfound.maintenance.archive import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_RETENTION,
    OPS_PER_ENTRY,
    ArchiveCompactor,
)
from lostfound.maintenance.cancellation import CancellationToken
from lostfound.maintenance.jobs_loader import (
    DEFAULT_JOB_SPECS,
    JobsConfig,
    JobsConfigError,
    load_job_specs,
)
from lostfound.maintenance.metrics import MaintenanceMetrics
from lostfound.maintenance.results import (
    ArchiveResult,
    BatchFailure,
    ItemAnomaly,
    ItemFailure,
    SweepResult,
)
from lostfound.maintenance.scheduler import InProcessScheduler
from lostfound.maintenance.scheduling import (
    JobConstraints,
    JobHandle,
    JobKind,
    JobScheduler,
    JobSpec,
    JobStatus,
    JobStatusUpdate,
    JobType,
)
from lostfound.maintenance.sweeper import EligibilitySweeper


__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_JOB_SPECS",
    "DEFAULT_RETENTION",
    "OPS_PER_ENTRY",
    "ArchiveCompactor",
    "ArchiveResult",
    "BatchFailure",
    "CancellationToken",
    "EligibilitySweeper",
    "InProcessScheduler",
    "ItemAnomaly",
    "ItemFailure",
    "JobConstraints",
    "JobHandle",
    "JobKind",
    "JobScheduler",
    "JobSpec",
    "JobStatus",
    "JobStatusUpdate",
    "JobType",
    "JobsConfig",
    "JobsConfigError",
    "MaintenanceMetrics",
    "SweepResult",
    "load_job_specs",
]

"""Load maintenance job specs from YAML."""

import hashlib
from pathlib import Path
from typing import Final

import pydantic
import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from lostfound.errors import ValidationError
from lostfound.maintenance.scheduling import (
    JobConstraints,
    JobKind,
    JobSpec,
    JobType,
)


logger = structlog.get_logger()

DAY_SECONDS: Final = 24 * 60 * 60

DEFAULT_JOB_SPECS: Final[tuple[JobSpec, ...]] = (
    JobSpec(
        name="eligibility-sweep",
        job_type=JobType.ELIGIBILITY_SWEEP,
        kind=JobKind.PERIODIC,
        interval_seconds=DAY_SECONDS,
        constraints=JobConstraints(requires_network=True, requires_battery_not_low=True),
    ),
    JobSpec(
        name="archive-compaction",
        job_type=JobType.ARCHIVE_COMPACTION,
        kind=JobKind.PERIODIC,
        interval_seconds=30 * DAY_SECONDS,
        constraints=JobConstraints(requires_network=True, requires_battery_not_low=True),
    ),
)


class JobsConfigError(ValidationError):
    """Raised when a jobs file fails validation."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of validation error details.
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(
            f"Validation failed for {file_path}: {len(errors)} errors", field="jobs"
        )


class JobsConfig(BaseModel):
    """Contents of a jobs YAML file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    jobs: list[JobSpec] = Field(default_factory=list)

    @field_validator("jobs")
    @classmethod
    def unique_names(cls, jobs: list[JobSpec]) -> list[JobSpec]:
        """Job names must be unique."""
        names = [job.name for job in jobs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            msg = f"Duplicate job names: {', '.join(duplicates)}"
            raise ValueError(msg)
        return jobs


def load_job_specs(path: Path) -> list[JobSpec]:
    """Load and validate job specs.

    Args:
        path: YAML file with a top-level ``jobs`` list.

    Returns:
        The validated job specs.

    Raises:
        JobsConfigError: If the file content is invalid.
        FileNotFoundError: If the file does not exist.
    """
    log = logger.bind(component="jobs_loader", file_path=str(path))
    content = path.read_bytes()
    checksum = hashlib.sha256(content).hexdigest()

    try:
        parsed = yaml.safe_load(content.decode("utf-8")) or {}
    except yaml.YAMLError as e:
        log.error("jobs_file_parse_failed", error=str(e))
        raise JobsConfigError(
            [{"loc": "", "msg": str(e), "type": "yaml_parse_error"}], str(path)
        ) from e

    try:
        config = JobsConfig.model_validate(parsed)
    except pydantic.ValidationError as e:
        errors = [
            {
                "loc": ".".join(str(loc) for loc in err["loc"]),
                "msg": err["msg"],
                "type": err["type"],
            }
            for err in e.errors()
        ]
        log.error("jobs_file_invalid", error_count=len(errors))
        raise JobsConfigError(errors, str(path)) from e

    log.info("jobs_file_loaded", file_sha256=checksum, job_count=len(config.jobs))
    return list(config.jobs)

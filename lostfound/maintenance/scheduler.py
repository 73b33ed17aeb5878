"""In-process job scheduler backed by APScheduler."""

import queue
import threading
import uuid
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import structlog
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from lostfound.errors import classify
from lostfound.maintenance.cancellation import CancellationToken
from lostfound.maintenance.scheduling import (
    JobConstraints,
    JobHandle,
    JobKind,
    JobSpec,
    JobStatus,
    JobStatusUpdate,
    JobType,
)


logger = structlog.get_logger()

JobRunner = Callable[[CancellationToken, dict[str, str]], Any]
ConstraintChecker = Callable[[JobConstraints], bool]


def _always_satisfied(constraints: JobConstraints) -> bool:  # noqa: ARG001
    return True


def _utcnow() -> datetime:
    return datetime.now(UTC)


class _QueueObserver:
    """Status stream for one job; ends after a final update."""

    def __init__(self) -> None:
        self._queue: queue.Queue[JobStatusUpdate | None] = queue.Queue()
        self._done = False

    def push(self, update: JobStatusUpdate) -> None:
        self._queue.put(update)
        if update.is_final:
            self._queue.put(None)

    def poll(self, timeout: float | None = None) -> JobStatusUpdate | None:
        """Return the next update, or None on timeout or end of stream."""
        if self._done:
            return None
        try:
            update = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if update is None:
            self._done = True
        return update

    def __iter__(self) -> Iterator[JobStatusUpdate]:
        while (update := self.poll()) is not None:
            yield update

    def close(self) -> None:
        """End the stream."""
        self._queue.put(None)


@dataclass
class _JobState:
    spec: JobSpec
    handle: JobHandle
    status: JobStatus = JobStatus.SCHEDULED
    token: CancellationToken | None = None
    aps_job_ids: set[str] = field(default_factory=set)
    observers: list[_QueueObserver] = field(default_factory=list)
    last_update: JobStatusUpdate | None = None


class InProcessScheduler:
    """Runs maintenance jobs on APScheduler's background thread pool.

    Each run receives a fresh ``CancellationToken``; ``cancel`` removes
    future runs and trips the token of a run in progress. Failed one-shot
    jobs with a retryable error, and one-shot jobs whose constraints are not
    met, are retried with the job's exponential backoff.
    """

    def __init__(
        self,
        runners: Mapping[JobType, JobRunner],
        constraint_checker: ConstraintChecker = _always_satisfied,
        clock: Callable[[], datetime] = _utcnow,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            runners: Work to perform for each job type.
            constraint_checker: Decides whether a job's constraints hold.
            clock: Returns the current aware datetime.
            scheduler: APScheduler instance (a BackgroundScheduler if omitted).
        """
        self._runners = dict(runners)
        self._constraint_checker = constraint_checker
        self._clock = clock
        self._scheduler = scheduler or BackgroundScheduler(timezone=UTC)
        self._jobs: dict[str, _JobState] = {}
        self._lock = threading.Lock()
        self._log = logger.bind(component="scheduler")

    def start(self) -> None:
        """Start the background scheduler."""
        if not self._scheduler.running:
            self._scheduler.start()
            self._log.info("scheduler_started", jobs=len(self._jobs))

    def shutdown(self, wait: bool = True) -> None:
        """Stop the scheduler, cancelling every job."""
        for state in list(self._jobs.values()):
            self.cancel(state.handle)
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
        self._log.info("scheduler_stopped")

    def __enter__(self) -> "InProcessScheduler":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.shutdown()

    # ===== Scheduler interface =====

    def schedule(self, spec: JobSpec) -> JobHandle:
        """Submit a job.

        Raises:
            KeyError: If no runner is registered for the job type.
        """
        if spec.job_type not in self._runners:
            msg = f"No runner registered for {spec.job_type.value}"
            raise KeyError(msg)

        handle = JobHandle(job_id=uuid.uuid4().hex[:12], name=spec.name, kind=spec.kind)
        state = _JobState(spec=spec, handle=handle)
        with self._lock:
            self._jobs[handle.job_id] = state

        start = self._clock() + timedelta(seconds=spec.initial_delay_seconds)
        if spec.kind == JobKind.PERIODIC:
            trigger: Any = IntervalTrigger(
                seconds=spec.interval_seconds, start_date=start, timezone=UTC
            )
        else:
            trigger = DateTrigger(run_date=start, timezone=UTC)

        # Emitted first: a due job may start as soon as APScheduler has it.
        self._emit(state, JobStatus.SCHEDULED)
        self._add_aps_job(state, handle.job_id, trigger, attempt=0)
        self._log.info(
            "job_scheduled",
            job_id=handle.job_id,
            name=spec.name,
            kind=spec.kind.value,
            job_type=spec.job_type.value,
            interval_seconds=spec.interval_seconds,
        )
        return handle

    def observe(self, handle: JobHandle) -> _QueueObserver:
        """Stream status updates for a job, starting with its current status."""
        observer = _QueueObserver()
        with self._lock:
            state = self._jobs[handle.job_id]
            if state.last_update is not None:
                observer.push(state.last_update)
            if state.last_update is None or not state.last_update.is_final:
                state.observers.append(observer)
        return observer

    def cancel(self, handle: JobHandle) -> None:
        """Cancel future runs and signal any run in progress."""
        with self._lock:
            state = self._jobs.get(handle.job_id)
            if state is None or (state.last_update and state.last_update.is_final):
                return
            aps_ids = list(state.aps_job_ids)
            state.aps_job_ids.clear()
            token = state.token

        for aps_id in aps_ids:
            try:
                self._scheduler.remove_job(aps_id)
            except JobLookupError:
                # Already fired (one-shot) or removed.
                pass
        if token is not None:
            token.cancel()

        self._emit(state, JobStatus.CANCELLED)
        self._log.info("job_cancelled", job_id=handle.job_id, name=handle.name)

    def status(self, handle: JobHandle) -> JobStatus:
        """Current status of a job."""
        with self._lock:
            return self._jobs[handle.job_id].status

    def run_now(self, handle: JobHandle) -> None:
        """Execute one run synchronously on the calling thread."""
        self._execute(handle.job_id, 0)

    # ===== Internals =====

    def _add_aps_job(
        self, state: _JobState, aps_id: str, trigger: Any, attempt: int
    ) -> None:
        with self._lock:
            state.aps_job_ids.add(aps_id)
        self._scheduler.add_job(
            self._execute,
            trigger=trigger,
            args=[state.handle.job_id, attempt],
            id=aps_id,
            name=state.spec.name,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    def _emit(
        self,
        state: _JobState,
        status: JobStatus,
        attempt: int = 0,
        **detail: object,
    ) -> None:
        update = JobStatusUpdate(
            handle=state.handle,
            status=status,
            at=self._clock(),
            attempt=attempt,
            detail=detail,
        )
        with self._lock:
            if state.status == JobStatus.CANCELLED:
                return
            state.status = status
            state.last_update = update
            observers = list(state.observers)
            if update.is_final:
                state.observers.clear()
        for observer in observers:
            observer.push(update)

    def _schedule_retry(self, state: _JobState, attempt: int, reason: str) -> bool:
        """Schedule another attempt of a one-shot job if the policy allows."""
        policy = state.spec.retry
        if state.spec.kind != JobKind.ONE_SHOT or attempt >= policy.max_retries:
            return False
        delay_ms = policy.get_delay_ms(attempt)
        run_at = self._clock() + timedelta(milliseconds=delay_ms)
        aps_id = f"{state.handle.job_id}-retry-{attempt + 1}"
        self._emit(
            state, JobStatus.SCHEDULED, attempt + 1, retry_in_ms=delay_ms, reason=reason
        )
        self._add_aps_job(state, aps_id, DateTrigger(run_date=run_at, timezone=UTC), attempt + 1)
        return True

    def _fail(self, state: _JobState, attempt: int, exc: Exception, log: Any) -> None:
        """Retry or fail a run that raised."""
        error = classify(exc)
        log.error("job_failed", error_kind=error.kind.value, error=error.message)
        with self._lock:
            state.token = None
            cancelled = state.status == JobStatus.CANCELLED
        if cancelled:
            return
        if error.is_retryable and self._schedule_retry(state, attempt, error.kind.value):
            return
        self._emit(state, JobStatus.FAILED, attempt, error=error.to_dict())

    def _execute(self, job_id: str, attempt: int) -> None:
        with self._lock:
            state = self._jobs.get(job_id)
            if state is None or state.status in (JobStatus.CANCELLED, JobStatus.RUNNING):
                return
            token = CancellationToken()
            state.token = token
            state.status = JobStatus.RUNNING
        spec = state.spec
        log = self._log.bind(job_id=job_id, name=spec.name, attempt=attempt)

        try:
            satisfied = self._constraint_checker(spec.constraints)
        except Exception as e:  # noqa: BLE001
            self._fail(state, attempt, e, log)
            return
        if not satisfied:
            log.info("job_constraints_unmet")
            with self._lock:
                state.token = None
            if not self._schedule_retry(state, attempt, "constraints_unmet"):
                self._emit(state, JobStatus.SKIPPED, attempt)
            return

        self._emit(state, JobStatus.RUNNING, attempt)
        log.info("job_started")
        try:
            outcome = self._runners[spec.job_type](token, dict(spec.payload))
        except Exception as e:  # noqa: BLE001
            self._fail(state, attempt, e, log)
            return

        with self._lock:
            state.token = None
            cancelled = state.status == JobStatus.CANCELLED
        if cancelled:
            log.info("job_stopped_after_cancel")
            return
        self._emit(state, JobStatus.SUCCEEDED, attempt, result=outcome)
        log.info("job_succeeded")

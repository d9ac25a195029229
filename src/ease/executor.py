# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Executor - Run a job's task sequence with lifecycle hooks.

Each job run gets its own SuspendToken, and so does each task execution.
Suspension is checked at fixed checkpoints: after the job's before hook,
before each task, after each task's before hook, after its runner and after
its after hook. A suspended task is skipped; a suspended job stops.

Task failures notify the task's error hook first, then propagate as a
TaskFailed subclass. Job-level error hooks are not called here; that is the
batch runner's job (see ease.engine).
"""

import asyncio
import inspect
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, FrozenSet, List, Optional

from ease.errors import (
    AfterHookFailed,
    BeforeHookFailed,
    HookError,
    JobAlreadyActive,
    JobNotFound,
    MissingRunner,
    RunnerFailed,
    SuspendHookFailed,
    TaskNotFound,
)
from ease.registry import Registry, normalize_name
from ease.schemas import (
    Handler,
    HookKind,
    JobDef,
    JobState,
    RunRecord,
    StepOutcome,
    TaskDef,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


class SuspendToken:
    """Cooperative suspension flag scoped to one job run or one task execution."""

    def __init__(self):
        self._suspended = False

    def suspend(self) -> None:
        self._suspended = True

    @property
    def suspended(self) -> bool:
        return self._suspended


# =============================================================================
# Hook Dispatch
# =============================================================================

async def invoke(handler: Handler, *args: Any) -> None:
    """Call a sync or async handler and wait for it to finish."""
    result = handler(*args)
    if inspect.isawaitable(result):
        await result


async def dispatch_hook(
    handler: Optional[Handler],
    subject_kind: str,
    subject_name: str,
    hook_kind: HookKind,
    *args: Any,
) -> None:
    """
    Run a hook if one is registered.

    Raises:
        HookError: Wrapping whatever the hook raised.
    """
    if handler is None:
        return
    logger.info('Running %s hook of %s "%s"...', hook_kind.value, subject_kind, subject_name)
    try:
        await invoke(handler, *args)
    except Exception as e:
        raise HookError(subject_kind, subject_name, hook_kind.value, e) from e


# =============================================================================
# Job Runs
# =============================================================================

@dataclass
class JobRun:
    """Mutable state of one in-flight job run."""
    job: JobDef
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    token: SuspendToken = field(default_factory=SuspendToken)
    state: JobState = JobState.PENDING
    started_at: datetime = field(default_factory=_utcnow)
    outcomes: List[StepOutcome] = field(default_factory=list)
    error: Optional[BaseException] = None
    owner: Optional["asyncio.Task[Any]"] = None

    @property
    def suspended(self) -> bool:
        return self.token.suspended

    def to_record(self) -> RunRecord:
        return RunRecord(
            run_id=self.run_id,
            job_name=self.job.name,
            status=self.state.value,
            started_at=self.started_at,
            completed_at=_utcnow(),
            outcomes=list(self.outcomes),
            error=str(self.error) if self.error is not None else None,
        )


class JobExecutor:
    """Runs jobs from a Registry and tracks which ones are active.

    Runs of the same job name are serialised: a second run waits until the
    first one has released the job. A job started again from the asyncio
    task that is running it would wait on itself forever, so run_job refuses
    it with JobAlreadyActive. Work spawned into a separate asyncio task is
    not recognised as nested and still waits.
    """

    def __init__(self, registry: Registry):
        self.registry = registry
        self._active: Dict[str, JobRun] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def active_jobs(self) -> FrozenSet[str]:
        return frozenset(self._active)

    def is_active(self, job_name: str) -> bool:
        return normalize_name(job_name) in self._active

    def owns(self, job_name: str) -> bool:
        """True when the current asyncio task is the one running this job."""
        run = self._active.get(normalize_name(job_name))
        return run is not None and run.owner is asyncio.current_task()

    def suspend(self, job_name: str) -> bool:
        """Suspend the active run of a job. Returns False if it is not running."""
        run = self._active.get(normalize_name(job_name))
        if run is None:
            return False
        run.token.suspend()
        return True

    @asynccontextmanager
    async def _activate(self, job: JobDef) -> AsyncIterator[JobRun]:
        lock = self._locks.setdefault(job.name, asyncio.Lock())
        async with lock:
            run = JobRun(job=job, owner=asyncio.current_task())
            self._active[job.name] = run
            try:
                yield run
            finally:
                self._active.pop(job.name, None)

    async def run_job(self, job_name: str, records: Optional[List[RunRecord]] = None) -> RunRecord:
        """
        Run a job's before hook, tasks and after hook.

        Args:
            job_name: Registered job name
            records: If given, the final RunRecord is appended to it whether
                the run completes, suspends or fails

        Returns:
            RunRecord with status "completed" or "suspended"

        Raises:
            JobNotFound: If the job is unknown or evicted
            JobAlreadyActive: If called from inside a run of the same job
            EaseError: Any task or hook failure, after the job is released
        """
        job = self.registry.get_job(job_name)
        if job is None:
            raise JobNotFound(job_name)
        if self.owns(job.name):
            raise JobAlreadyActive(job.name)

        async with self._activate(job) as run:
            try:
                await self._execute(run)
            except Exception as e:
                run.state = JobState.FAILED
                run.error = e
                raise
            finally:
                record = run.to_record()
                if records is not None:
                    records.append(record)
        return record

    async def _execute(self, run: JobRun) -> None:
        job = run.job

        run.state = JobState.RUNNING_BEFORE
        await dispatch_hook(job.before_hook, "job", job.name, HookKind.BEFORE, run.token.suspend)

        if run.suspended:
            await self._on_job_suspend(run)
            return

        run.state = JobState.RUNNING_TASKS
        logger.info('Executing job "%s"...', job.name)

        for task_name in list(job.tasks):
            if run.suspended:
                break
            try:
                outcome = await self.run_task(run, task_name)
            except Exception as e:
                run.outcomes.append(StepOutcome(task_name=task_name, status="failed", error=str(e)))
                raise
            if outcome is not None:
                run.outcomes.append(outcome)
            if run.suspended:
                break

        if run.suspended:
            await self._on_job_suspend(run)
            return

        run.state = JobState.RUNNING_AFTER
        await dispatch_hook(job.after_hook, "job", job.name, HookKind.AFTER)

        run.state = JobState.COMPLETED
        logger.info('Job "%s" was executed successfully.', job.name)

    async def _on_job_suspend(self, run: JobRun) -> None:
        logger.warning('Job "%s" was suspended!', run.job.name)
        run.state = JobState.SUSPENDED
        await dispatch_hook(run.job.suspend_hook, "job", run.job.name, HookKind.SUSPEND)

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    async def run_task(self, run: JobRun, task_name: str) -> Optional[StepOutcome]:
        """
        Run one task of a job: before hook, runner, after hook.

        Returns:
            StepOutcome, or None if the job was suspended by the task's before
            hook (the task did not run; the caller handles job suspension)

        Raises:
            TaskNotFound, MissingRunner: Definition errors
            BeforeHookFailed, SuspendHookFailed, RunnerFailed, AfterHookFailed
            HookError: If the task's error hook itself fails
        """
        job_name = run.job.name
        task = self.registry.get_task(task_name)
        if task is None:
            raise TaskNotFound(task_name)

        if task.runner is None:
            error = MissingRunner(task.name)
            await self._on_task_error(task, job_name, error)
            raise error

        token = SuspendToken()

        if task.before_hook is not None:
            logger.info('Running before hook of task "%s"...', task.name)
            try:
                await invoke(task.before_hook, job_name, token.suspend)
            except Exception as e:
                await self._on_task_error(task, job_name, e)
                raise BeforeHookFailed(task.name, job_name, e) from e

        if run.suspended:
            return None

        if token.suspended:
            logger.warning('Task "%s" was suspended!', task.name)
            if task.suspend_hook is not None:
                logger.info('Running suspend hook of task "%s"...', task.name)
                try:
                    await invoke(task.suspend_hook, job_name)
                except Exception as e:
                    await self._on_task_error(task, job_name, e)
                    raise SuspendHookFailed(task.name, job_name, e) from e
            return StepOutcome(task_name=task.name, status="suspended")

        logger.info('Running task "%s"...', task.name)
        try:
            await invoke(task.runner, job_name)
        except Exception as e:
            await self._on_task_error(task, job_name, e)
            raise RunnerFailed(task.name, job_name, e) from e

        # The runner may have suspended the whole job; skip the after hook
        if run.suspended:
            return StepOutcome(task_name=task.name, status="completed")

        if task.after_hook is not None:
            logger.info('Running after hook of task "%s"...', task.name)
            try:
                await invoke(task.after_hook, job_name)
            except Exception as e:
                await self._on_task_error(task, job_name, e)
                raise AfterHookFailed(task.name, job_name, e) from e

        return StepOutcome(task_name=task.name, status="completed")

    async def _on_task_error(self, task: TaskDef, job_name: str, error: BaseException) -> None:
        """Hand the original error to the task's error hook, if it has one."""
        if task.error_hook is None:
            return
        logger.info('Running error hook of task "%s"...', task.name)
        try:
            await invoke(task.error_hook, job_name, error)
        except Exception as e:
            raise HookError("task", task.name, HookKind.ERROR.value, e) from e

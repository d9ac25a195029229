# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Registry - In-memory task and job definitions.

Names are case-insensitive and stored lower-cased. Registration returns a
Registration result instead of raising; jobs that fail validation are moved
to JobStatus.EVICTED rather than deleted, and evicted jobs are invisible to
every lookup that could lead to a run.
"""

import copy
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ease.errors import (
    EaseError,
    JobValidationFailed,
    MissingRunner,
    TaskNotFound,
    UnsupportedHook,
)
from ease.schedule import ValidationResult, validate_options
from ease.schemas import Handler, HookKind, JobDef, JobStatus, TaskDef


def normalize_name(name: str) -> str:
    return name.strip().lower()


def parse_name(
    name: str,
    hook: Union[HookKind, str, None] = None,
    subject_kind: str = "task",
) -> Tuple[str, HookKind]:
    """
    Split "base:hook" addressing into (base, HookKind).

    An explicit `hook` argument takes precedence over a ":hook" suffix.

    Raises:
        UnsupportedHook: If the hook is not before/after/error/suspend.
    """
    base, _, suffix = name.partition(":")
    base = normalize_name(base)
    requested = hook if hook is not None else suffix
    try:
        return base, HookKind.parse(requested)
    except ValueError:
        raise UnsupportedHook(str(requested).strip().lower(), subject_kind, base) from None


@dataclass
class Registration:
    """Result of registering a job."""
    job: Optional[JobDef] = None
    error: Optional[EaseError] = None
    created: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


class Registry:
    """Task and job definitions owned by one Ease engine."""

    def __init__(self):
        self.tasks: Dict[str, TaskDef] = {}
        self.jobs: Dict[str, JobDef] = {}

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    def set_task_handler(self, name: str, kind: HookKind, handler: Handler) -> TaskDef:
        """Attach a runner or hook, creating a placeholder task if needed."""
        name = normalize_name(name)
        task = self.tasks.get(name)
        if task is None:
            task = self.tasks[name] = TaskDef(name=name)
        task.set_handler(kind, handler)
        return task

    def get_task(self, name: str) -> Optional[TaskDef]:
        return self.tasks.get(normalize_name(name))

    def check_tasks(self, task_names: Iterable[str]) -> Optional[EaseError]:
        """Return the first problem with a list of task references, if any."""
        for task_name in task_names:
            task = self.tasks.get(task_name)
            if task is None:
                return TaskNotFound(task_name)
            if task.runner is None:
                return MissingRunner(task_name)
        return None

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    def set_job_hook(self, name: str, kind: HookKind, handler: Handler) -> JobDef:
        """Attach a job hook, creating an empty job entry if needed."""
        if kind is HookKind.PRIMARY:
            raise UnsupportedHook(kind.value, "job", name)
        name = normalize_name(name)
        job = self.jobs.get(name)
        if job is None:
            job = self.jobs[name] = JobDef(name=name)
        job.set_hook(kind, handler)
        return job

    def register_job(
        self,
        name: str,
        tasks: Optional[List[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> Registration:
        """
        Register a new job or update an existing one.

        New jobs need at least one task. For existing jobs an empty or
        missing task list keeps the current tasks, and options are merged.
        Every referenced task must exist and have a runner.
        """
        name = normalize_name(name.partition(":")[0])
        existing = self.jobs.get(name)

        if existing is not None and existing.evicted:
            return Registration(error=JobValidationFailed(
                name, [f"Job was evicted: {existing.eviction_reason}"]
            ))

        task_names = [normalize_name(t) for t in tasks] if tasks else []
        if not task_names and existing is None:
            return Registration(error=JobValidationFailed(name, ["Job must have at least one task!"]))

        error = self.check_tasks(task_names)
        if error is not None:
            return Registration(error=error)

        if options is not None and not isinstance(options, Mapping):
            return Registration(error=JobValidationFailed(name, ["Job options must be a mapping."]))

        if existing is None:
            job = JobDef(name=name, tasks=task_names)
            job.options.update(copy.deepcopy(dict(options or {})))
            self.jobs[name] = job
            return Registration(job=job, created=True)

        if task_names:
            existing.tasks = task_names
        if options:
            existing.options.update(copy.deepcopy(dict(options)))
        # Options may have changed; the job must pass validation again
        existing.status = JobStatus.REGISTERED
        return Registration(job=existing)

    def get_job(self, name: str) -> Optional[JobDef]:
        """Look up a runnable (non-evicted) job."""
        job = self.jobs.get(normalize_name(name))
        if job is None or job.evicted:
            return None
        return job

    def job_names(self) -> List[str]:
        """Names of all non-evicted jobs, in registration order."""
        return [name for name, job in self.jobs.items() if not job.evicted]

    def validate_job(self, name: str) -> ValidationResult:
        """
        Check a job's tasks and options before it runs or is scheduled.

        On success the job becomes VALIDATED and carries its parsed schedule.
        """
        job = self.jobs[normalize_name(name)]
        result = validate_options(job.options, job.name)

        if not job.tasks:
            result.errors.insert(0, f'Job "{job.name}" has no tasks!')
        else:
            error = self.check_tasks(job.tasks)
            if error is not None:
                result.errors.insert(0, str(error))

        if result.ok:
            job.status = JobStatus.VALIDATED
            job.schedule = result.schedule
        return result

    def evict(self, name: str, reason: str) -> None:
        """Make a job permanently unavailable for this process."""
        job = self.jobs[normalize_name(name)]
        job.status = JobStatus.EVICTED
        job.eviction_reason = reason
        job.schedule = None

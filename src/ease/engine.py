# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Engine - The public Ease API and the job batch runner.

Configuration code registers tasks, jobs and hooks:

    def configure(ease):
        ease.task("fetch", fetch_reports)
        ease.task("fetch:error", notify_failure)
        ease.job("nightly", ["fetch", "archive"], {
            "run_immediately": False,
            "schedule": {"recurrence": "daily", "time": "02:30"},
        })

run_jobs() then validates the requested jobs, schedules the ones that ask
for it and runs the rest one at a time, in order. No error escapes it.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Callable, FrozenSet, Iterable, List, Mapping, Optional, Union

from ease.config import EaseSettings, load_configure
from ease.errors import ConfigError, EaseError, HookError, JobNotFound
from ease.executor import JobExecutor, dispatch_hook
from ease.logs import CONFIG, TASK
from ease.registry import Registry, normalize_name, parse_name
from ease.schedule import Schedule, ValidationResult
from ease.scheduler import Clock, Scheduler
from ease.schemas import Handler, HookKind, JobDef, JobInfo, RunRecord

logger = logging.getLogger(__name__)
task_logger = logging.getLogger("ease.task")

# (log, dirname, *args) -> task runner
TaskFactory = Callable[..., Handler]


def _quoted(names: Iterable[str]) -> str:
    return ", ".join(f'"{name}"' for name in names)


class Ease:
    """Task/job registry, executor and scheduler behind one object.

    Args:
        config_dirname: Directory of the easeconfig file, passed to installed
            task factories
        settings: Runtime settings (timezone, tick interval)
        clock: Override the scheduler clock (mostly for tests)
    """

    def __init__(
        self,
        config_dirname: Union[str, Path] = ".",
        settings: Optional[EaseSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings or EaseSettings()
        self.config_dirname = Path(config_dirname).resolve()
        self.registry = Registry()
        self.executor = JobExecutor(self.registry)
        self.scheduler = Scheduler(
            trigger=self._run_scheduled,
            lookup=self._lookup_schedule,
            clock=clock or self.settings.clock(),
            interval=self.settings.tick_seconds,
        )

    @classmethod
    def from_config(cls, config_path: Path, settings: Optional[EaseSettings] = None) -> "Ease":
        """
        Build an engine and run the configure(ease) callback of an easeconfig file.

        Raises:
            ConfigError: If the file cannot be loaded or configure() fails
        """
        configure = load_configure(config_path)
        ease = cls(config_dirname=config_path.parent, settings=settings)
        try:
            configure(ease)
        except Exception as e:
            raise ConfigError(f"Configuration failed in {config_path}: {e}") from e
        return ease

    @property
    def active_jobs(self) -> FrozenSet[str]:
        """Names of jobs currently running."""
        return self.executor.active_jobs

    @property
    def scheduled_jobs(self) -> List[str]:
        return self.scheduler.scheduled

    # =========================================================================
    # Registration
    # =========================================================================

    def task(
        self,
        name: str,
        runner: Optional[Handler] = None,
        hook: Union[HookKind, str, None] = None,
    ) -> Any:
        """
        Register a task runner or one of its hooks.

        The hook can be given as a "name:hook" suffix or with `hook`.
        Without `runner`, returns a decorator.

        Raises:
            UnsupportedHook: For hooks other than before/after/error/suspend
        """
        if runner is None:
            return lambda fn: self.task(name, fn, hook=hook)

        try:
            base, kind = parse_name(name, hook, "task")
        except EaseError as e:
            logger.error(str(e))
            raise

        if kind is HookKind.PRIMARY:
            logger.log(CONFIG, 'Registering task "%s"', base)
        else:
            logger.log(CONFIG, 'Registering %s hook for task "%s"', kind.value, base)
        self.registry.set_task_handler(base, kind, runner)
        return runner

    def job(
        self,
        name: str,
        tasks: Optional[List[str]] = None,
        options: Optional[Mapping[str, Any]] = None,
    ) -> JobDef:
        """
        Register a job or update an existing one.

        Args:
            name: Job name (case-insensitive)
            tasks: Ordered task names; may be omitted when updating
            options: {"run_immediately": bool, "schedule": {...}}, merged
                into existing options on update

        Raises:
            TaskNotFound, MissingRunner: For bad task references
            JobValidationFailed: For a new job without tasks
        """
        registration = self.registry.register_job(name, tasks, options)
        if not registration.ok:
            logger.error(str(registration.error))
            raise registration.error

        job = registration.job
        if registration.created:
            logger.log(CONFIG, 'Registering job "%s" with tasks %s', job.name, _quoted(job.tasks))
        else:
            if tasks:
                logger.log(CONFIG, 'Setting tasks %s on job "%s"', _quoted(job.tasks), job.name)
            if options:
                logger.log(CONFIG, 'Updating options of job "%s"', job.name)

        if job.name in self.scheduler.scheduled:
            self._refresh_schedule(job)
        return job

    def hook(
        self,
        name: str,
        handler: Optional[Handler] = None,
        hook: Union[HookKind, str, None] = None,
    ) -> Any:
        """
        Register a job hook ("nightly:before" or hook="before").

        Creates an empty job entry if the job is not registered yet.
        Without `handler`, returns a decorator.
        """
        if handler is None:
            return lambda fn: self.hook(name, fn, hook=hook)

        try:
            base, kind = parse_name(name, hook, "job")
            self.registry.set_job_hook(base, kind, handler)
        except EaseError as e:
            logger.error(str(e))
            raise

        logger.log(CONFIG, 'Registering %s hook for job "%s"', kind.value, base)
        return handler

    def install(self, name: str, factory: TaskFactory, *args: Any, **kwargs: Any) -> Handler:
        """Build a task runner with factory(log, dirname, *args) and register it."""
        runner = factory(self.log, str(self.config_dirname), *args, **kwargs)
        self.task(name, runner)
        return runner

    # =========================================================================
    # Runtime API
    # =========================================================================

    def suspend(self, job_name: str) -> None:
        """
        Ask a running job to stop after its current step.

        Raises:
            JobNotFound: If the job is not registered
        """
        name = normalize_name(job_name)
        if self.registry.get_job(name) is None:
            error = JobNotFound(name, f'Cannot suspend job "{name}" because it doesn\'t exist!')
            logger.error(str(error))
            raise error

        if not self.executor.suspend(name):
            logger.warning('Job "%s" cannot be suspended because it\'s inactive!', name)

    def log(self, message: str) -> None:
        """Write a user message to the console and the log file."""
        task_logger.log(TASK, message)

    def info(self, job_name: str) -> JobInfo:
        """
        Return a copy of a job's tasks and options.

        Raises:
            JobNotFound: If the job is not registered (or was evicted)
        """
        job = self.registry.get_job(job_name)
        if job is None:
            raise JobNotFound(normalize_name(job_name))
        return JobInfo(tasks=list(job.tasks), options=copy.deepcopy(job.options))

    # =========================================================================
    # Batch Runner
    # =========================================================================

    async def run_jobs(
        self,
        job_names: Optional[Iterable[str]] = None,
        run_all: bool = False,
    ) -> List[RunRecord]:
        """
        Validate, schedule and run jobs.

        Phase 1 validates every requested job; invalid jobs are evicted and
        jobs with a schedule are handed to the scheduler. Phase 2 runs the
        survivors with run_immediately set, strictly one after another.
        A job requested from inside its own run is skipped with a warning.

        Args:
            job_names: Jobs to run, in order
            run_all: Ignore job_names and use every registered job

        Returns:
            One RunRecord per job run attempted in phase 2
        """
        if run_all:
            names = self.registry.job_names()
        else:
            names = [normalize_name(name) for name in job_names or []]

        candidates = []
        for name in names:
            if self.registry.get_job(name) is None:
                logger.error('Job "%s" not found!', name)
                continue
            if self._prepare(name):
                candidates.append(name)

        records: List[RunRecord] = []
        for name in candidates:
            job = self.registry.get_job(name)
            if job is None or not job.run_immediately:
                continue
            if self.executor.owns(name):
                logger.warning('Job "%s" is already running, skipping nested run.', name)
                continue
            await self._run_guarded(name, records)
        return records

    async def serve(self) -> None:
        """Wait while jobs are scheduled, then for scheduled runs to finish."""
        await self.scheduler.wait_stopped()

    def shutdown(self) -> None:
        """Stop the scheduler clock."""
        self.scheduler.stop()

    def _prepare(self, name: str) -> bool:
        result = self.registry.validate_job(name)
        for warning in result.warnings:
            logger.warning(warning)
        if not result.ok:
            self._evict(name, result)
            return False
        if result.schedule is not None:
            self._schedule(name, result.schedule)
        return True

    def _evict(self, name: str, result: ValidationResult) -> None:
        error = result.to_error()
        self.registry.evict(name, str(error))
        self.scheduler.remove(name)
        logger.error('Job "%s" has failed due to an error:\n%s', name, error)

    def _schedule(self, name: str, schedule: Schedule) -> None:
        if self.scheduler.add(name):
            logger.log(CONFIG, 'Scheduled job "%s" to recur %s', name, schedule.describe())

    def _refresh_schedule(self, job: JobDef) -> None:
        """Re-validate a scheduled job after its definition changed."""
        result = self.registry.validate_job(job.name)
        for warning in result.warnings:
            logger.warning(warning)
        if not result.ok:
            self._evict(job.name, result)
        elif result.schedule is None:
            self.scheduler.remove(job.name)
            logger.log(CONFIG, 'Removed scheduled job "%s"', job.name)
        else:
            logger.log(CONFIG, 'Scheduled job "%s" to recur %s', job.name, result.schedule.describe())

    async def _run_guarded(self, name: str, records: Optional[List[RunRecord]] = None) -> Optional[RunRecord]:
        """Run a job; log any failure and hand it to the job's error hook."""
        try:
            return await self.executor.run_job(name, records)
        except Exception as error:
            logger.error('Job "%s" has failed due to an error:\n%s', name, error)
            job = self.registry.jobs.get(name)
            if job is not None:
                try:
                    await dispatch_hook(job.error_hook, "job", name, HookKind.ERROR, error)
                except HookError as hook_error:
                    logger.error(str(hook_error))
            return None

    async def _run_scheduled(self, name: str) -> None:
        if self.registry.get_job(name) is None:
            self.scheduler.remove(name)
            return
        if self.executor.is_active(name):
            logger.warning('Job "%s" is still running, skipping its scheduled run.', name)
            return
        await self._run_guarded(name)

    def _lookup_schedule(self, name: str) -> Optional[Schedule]:
        job = self.registry.get_job(name)
        return job.schedule if job is not None else None

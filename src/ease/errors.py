# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Exceptions raised by the Ease engine."""

from typing import List, Optional


class EaseError(Exception):
    """Base class for every error raised by the engine."""

    pass


class ConfigError(EaseError):
    """Raised when settings or the easeconfig file cannot be loaded."""

    pass


class TaskNotFound(EaseError):
    """Raised when a job references a task that was never registered."""

    def __init__(self, task_name: str):
        self.task_name = task_name
        super().__init__(f'Task "{task_name}" not found!')


class JobNotFound(EaseError):
    """Raised when a job name is not in the registry."""

    def __init__(self, job_name: str, message: Optional[str] = None):
        self.job_name = job_name
        super().__init__(message or f'Job "{job_name}" not found!')


class JobAlreadyActive(EaseError):
    """Raised when a job is started from inside its own run."""

    def __init__(self, job_name: str):
        self.job_name = job_name
        super().__init__(f'Job "{job_name}" is already running and cannot run inside itself!')


class MissingRunner(EaseError):
    """Raised when a task has hooks registered but no runner."""

    def __init__(self, task_name: str):
        self.task_name = task_name
        super().__init__(f'Task "{task_name}" does not have a definition!')


class UnsupportedHook(EaseError):
    """Raised for a hook name outside before/after/error/suspend."""

    def __init__(self, hook: str, subject_kind: str, subject_name: str):
        self.hook = hook
        self.subject_kind = subject_kind
        self.subject_name = subject_name
        super().__init__(f'Unsupported hook name "{hook}" for {subject_kind} "{subject_name}"')


class JobValidationFailed(EaseError):
    """Raised when a job definition or its options are invalid."""

    def __init__(self, job_name: str, reasons: List[str]):
        self.job_name = job_name
        self.reasons = list(reasons)
        super().__init__(f'Invalid job "{job_name}"! ' + " ".join(self.reasons))


class HookError(EaseError):
    """A hook raised while handling a task or job.

    Attributes:
        subject_kind: "task" or "job"
        subject_name: Name of the task or job owning the hook
        hook_kind: Hook that failed (before, after, error, suspend)
        cause: The exception raised by the hook
    """

    def __init__(self, subject_kind: str, subject_name: str, hook_kind: str, cause: BaseException):
        self.subject_kind = subject_kind
        self.subject_name = subject_name
        self.hook_kind = hook_kind
        self.cause = cause
        super().__init__(
            f'An error has occurred on the {hook_kind} hook of {subject_kind} "{subject_name}"!\n{cause}'
        )


class TaskFailed(EaseError):
    """A task aborted its job. Subclasses name the stage that failed."""

    stage = "task"

    def __init__(self, task_name: str, job_name: str, cause: BaseException):
        self.task_name = task_name
        self.job_name = job_name
        self.cause = cause
        super().__init__(self._describe())

    def _describe(self) -> str:
        return f'An error has occurred on the {self.stage} of the task "{self.task_name}"!\n{self.cause}'


class BeforeHookFailed(TaskFailed):
    stage = "before hook"


class SuspendHookFailed(TaskFailed):
    stage = "suspend hook"


class RunnerFailed(TaskFailed):
    stage = "runner"

    def _describe(self) -> str:
        return f'An error has occurred on task "{self.task_name}"!\n{self.cause}'


class AfterHookFailed(TaskFailed):
    stage = "after hook"

# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Ease - a small, code-configured job and task runner."""

__version__ = "0.4.0"

from ease.engine import Ease
from ease.errors import (
    AfterHookFailed,
    BeforeHookFailed,
    ConfigError,
    EaseError,
    HookError,
    JobAlreadyActive,
    JobNotFound,
    JobValidationFailed,
    MissingRunner,
    RunnerFailed,
    SuspendHookFailed,
    TaskFailed,
    TaskNotFound,
    UnsupportedHook,
)
from ease.schemas import HookKind, JobInfo, RunRecord, StepOutcome

__all__ = [
    "__version__",
    "Ease",
    "HookKind",
    "JobInfo",
    "RunRecord",
    "StepOutcome",
    "EaseError",
    "ConfigError",
    "TaskNotFound",
    "JobNotFound",
    "JobAlreadyActive",
    "MissingRunner",
    "UnsupportedHook",
    "JobValidationFailed",
    "HookError",
    "TaskFailed",
    "BeforeHookFailed",
    "SuspendHookFailed",
    "RunnerFailed",
    "AfterHookFailed",
]

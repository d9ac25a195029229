# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Ease task and job schemas."""

from ease.schemas.job_def import (
    Handler,
    HookKind,
    JobDef,
    JobInfo,
    JobState,
    JobStatus,
    RunRecord,
    StepOutcome,
    TaskDef,
)

__all__ = [
    "Handler",
    "HookKind",
    "JobDef",
    "JobInfo",
    "JobState",
    "JobStatus",
    "RunRecord",
    "StepOutcome",
    "TaskDef",
]

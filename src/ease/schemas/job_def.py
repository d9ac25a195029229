# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Task and job definition schemas for Ease.

Definitions are registered by the easeconfig callback:
- TaskDef holds a runner plus optional lifecycle hooks
- JobDef holds an ordered list of task names, job hooks and options
- RunRecord / StepOutcome describe what one job run did
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Union

if TYPE_CHECKING:
    from ease.schedule import Schedule


Handler = Callable[..., Any]


class HookKind(Enum):
    """Where a handler plugs into a task or job.

    PRIMARY is the task runner itself; the rest are lifecycle hooks.
    """

    PRIMARY = "primary"
    BEFORE = "before"
    AFTER = "after"
    ERROR = "error"
    SUSPEND = "suspend"

    @classmethod
    def parse(cls, value: Union["HookKind", str, None]) -> "HookKind":
        """Convert a hook name to a HookKind.

        None and "" mean PRIMARY. Matching is case-insensitive.

        Raises:
            ValueError: If the name is not a supported hook.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.PRIMARY
        if not isinstance(value, str):
            raise ValueError(f"Unsupported hook: {value!r}")
        if not value:
            return cls.PRIMARY
        return cls(value.strip().lower())


class JobStatus(Enum):
    """Registry status of a job definition."""

    REGISTERED = "registered"
    VALIDATED = "validated"
    EVICTED = "evicted"


class JobState(Enum):
    """States of a single job run.

    PENDING → RUNNING_BEFORE → RUNNING_TASKS → RUNNING_AFTER → COMPLETED,
    with SUSPENDED and FAILED as terminal states.
    """

    PENDING = "pending"
    RUNNING_BEFORE = "running_before"
    RUNNING_TASKS = "running_tasks"
    RUNNING_AFTER = "running_after"
    COMPLETED = "completed"
    SUSPENDED = "suspended"
    FAILED = "failed"


@dataclass
class TaskDef:
    """A named unit of work. Not runnable until it has a runner."""
    name: str
    runner: Optional[Handler] = None
    before_hook: Optional[Handler] = None
    after_hook: Optional[Handler] = None
    error_hook: Optional[Handler] = None
    suspend_hook: Optional[Handler] = None

    def set_handler(self, kind: HookKind, handler: Handler) -> None:
        if kind is HookKind.PRIMARY:
            self.runner = handler
        else:
            setattr(self, f"{kind.value}_hook", handler)


@dataclass
class JobDef:
    """A named, ordered sequence of task names plus hooks and options.

    options is kept in the shape the caller registered it:
    {"run_immediately": bool, "schedule": {...}}. The parsed schedule is
    attached once the job passes validation.
    """
    name: str
    tasks: List[str] = field(default_factory=list)
    options: Dict[str, Any] = field(default_factory=lambda: {"run_immediately": True})
    before_hook: Optional[Handler] = None
    after_hook: Optional[Handler] = None
    error_hook: Optional[Handler] = None
    suspend_hook: Optional[Handler] = None
    status: JobStatus = JobStatus.REGISTERED
    eviction_reason: Optional[str] = None
    schedule: Optional["Schedule"] = None

    def set_hook(self, kind: HookKind, handler: Handler) -> None:
        setattr(self, f"{kind.value}_hook", handler)

    @property
    def run_immediately(self) -> bool:
        return bool(self.options.get("run_immediately", True))

    @property
    def evicted(self) -> bool:
        return self.status is JobStatus.EVICTED


@dataclass
class JobInfo:
    """Read-only snapshot returned by Ease.info()."""
    tasks: List[str]
    options: Dict[str, Any]


@dataclass
class StepOutcome:
    """Result of executing a single task within a job run."""
    task_name: str
    status: str  # "completed", "suspended", "failed"
    error: Optional[str] = None


@dataclass
class RunRecord:
    """Result of one job run."""
    run_id: str
    job_name: str
    status: str  # "completed", "suspended", "failed"
    started_at: datetime
    completed_at: Optional[datetime] = None
    outcomes: List[StepOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != "failed"

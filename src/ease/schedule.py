# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Schedule - Parse, validate and match job recurrence rules.

Three recurrence kinds are supported:
- daily:   {"recurrence": "daily", "time": "hh:mm[:ss]"}
- weekly:  {"recurrence": "weekly", "day": 1-7 (Monday=1), "time": ...}
- monthly: {"recurrence": "monthly", "day": 1-31, "time": ...}

Validation never raises: it returns a ValidationResult the registry uses to
decide whether a job stays runnable.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Mapping, Optional, Tuple

from ease.errors import JobValidationFailed


WEEKDAY_NAMES = [
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
]

KNOWN_OPTIONS = ("run_immediately", "schedule")


class Recurrence(Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class Schedule:
    """A validated recurrence rule."""
    recurrence: Recurrence
    hour: int
    minute: int
    second: int = 0
    day: Optional[int] = None

    def matches(self, now: datetime) -> bool:
        """Return True if `now` falls on this schedule's exact second."""
        if (now.hour, now.minute, now.second) != (self.hour, self.minute, self.second):
            return False
        if self.recurrence is Recurrence.WEEKLY:
            return now.isoweekday() == self.day
        if self.recurrence is Recurrence.MONTHLY:
            return now.day == self.day
        return True

    @property
    def time_label(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}:{self.second:02d}"

    def describe(self) -> str:
        """Human-readable recurrence, e.g. "weekly on Friday at 18:00:00"."""
        if self.recurrence is Recurrence.WEEKLY:
            return f"weekly on {WEEKDAY_NAMES[self.day - 1]} at {self.time_label}"
        if self.recurrence is Recurrence.MONTHLY:
            return f"on {day_label(self.day)} of each month at {self.time_label}"
        return f"daily at {self.time_label}"


@dataclass
class ValidationResult:
    """Outcome of validating a job's options."""
    job_name: str
    schedule: Optional[Schedule] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_error(self) -> JobValidationFailed:
        return JobValidationFailed(self.job_name, self.errors)


def day_label(day: int) -> str:
    """Ordinal label for a day of the month: 1st, 2nd, 11th, 23rd."""
    if 10 <= day % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(day % 10, "th")
    return f"{day}{suffix}"


def parse_time(value: str) -> Tuple[int, int, int]:
    """
    Parse "hh:mm" or "hh:mm:ss" into (hour, minute, second).

    Raises:
        ValueError: If the string is malformed or a component is out of range.
    """
    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"expected hh:mm or hh:mm:ss, got: {value!r}")
    if not all(part.isdigit() for part in parts):
        raise ValueError(f"time components must be integers, got: {value!r}")

    hour, minute = int(parts[0]), int(parts[1])
    second = int(parts[2]) if len(parts) == 3 else 0

    if not 0 <= hour <= 23:
        raise ValueError(f"hour must be between 0-23, got: {hour}")
    if not 0 <= minute <= 59:
        raise ValueError(f"minute must be between 0-59, got: {minute}")
    if not 0 <= second <= 59:
        raise ValueError(f"second must be between 0-59, got: {second}")

    return hour, minute, second


def _check_schedule(raw: Any, result: ValidationResult) -> None:
    """Validate a raw schedule mapping, recording errors/warnings on result."""
    if not isinstance(raw, Mapping):
        result.errors.append('"schedule" must be a mapping.')
        return

    recurrence_name = raw.get("recurrence")
    if not recurrence_name:
        result.errors.append('"recurrence" is required.')
        return
    if not isinstance(recurrence_name, str):
        result.errors.append('"recurrence" must be a string.')
        return
    try:
        recurrence = Recurrence(recurrence_name.strip().lower())
    except ValueError:
        allowed = ", ".join(f'"{item.value}"' for item in Recurrence)
        result.errors.append(f'"recurrence" must be one of the following: {allowed}.')
        return

    time_value = raw.get("time")
    if not time_value:
        result.errors.append('"time" is required.')
        return
    if not isinstance(time_value, str):
        result.errors.append('"time" must be string.')
        return
    try:
        hour, minute, second = parse_time(time_value)
    except ValueError as e:
        result.errors.append(f'"time" has invalid format ({e}).')
        return

    day = None
    if recurrence is not Recurrence.DAILY:
        if "day" not in raw or raw["day"] is None:
            result.errors.append('"day" is required when recurrence is not daily.')
            return
        day = raw["day"]
        # bool is an int subclass
        if isinstance(day, bool) or not isinstance(day, int):
            result.errors.append('"day" must be a number.')
            return
        if recurrence is Recurrence.WEEKLY and not 1 <= day <= 7:
            result.errors.append('"day" must be between 1-7 when recurrence is weekly.')
            return
        if recurrence is Recurrence.MONTHLY:
            if not 1 <= day <= 31:
                result.errors.append('"day" must be between 1-31 when recurrence is monthly.')
                return
            if day > 28:
                result.warnings.append(
                    f'Job "{result.job_name}" will not be executed on certain months '
                    f'since schedule day is "{day}"!'
                )

    result.schedule = Schedule(
        recurrence=recurrence,
        hour=hour,
        minute=minute,
        second=second,
        day=day,
    )


def validate_options(options: Mapping[str, Any], job_name: str) -> ValidationResult:
    """
    Validate job execution options.

    Args:
        options: {"run_immediately": bool, "schedule": {...}}
        job_name: Used in messages

    Returns:
        ValidationResult with the parsed Schedule (if any), errors and warnings
    """
    result = ValidationResult(job_name=job_name)

    unknown = [key for key in options if key not in KNOWN_OPTIONS]
    if unknown:
        result.warnings.append(f'Job "{job_name}" has unknown options: {", ".join(sorted(unknown))}')

    run_immediately = options.get("run_immediately", True)
    if not isinstance(run_immediately, bool):
        result.errors.append('"run_immediately" must be a boolean.')

    raw_schedule = options.get("schedule")
    if raw_schedule is not None:
        _check_schedule(raw_schedule, result)
    elif run_immediately is False:
        result.warnings.append(f'Job "{job_name}" will never run due to options!')

    return result

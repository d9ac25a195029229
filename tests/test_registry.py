# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""Tests for the task/job registry."""

import pytest

from ease.errors import JobValidationFailed, MissingRunner, TaskNotFound, UnsupportedHook
from ease.registry import Registry, normalize_name, parse_name
from ease.schemas import HookKind, JobStatus


def noop(*args):
    pass


@pytest.fixture
def registry():
    registry = Registry()
    registry.set_task_handler("fetch", HookKind.PRIMARY, noop)
    registry.set_task_handler("store", HookKind.PRIMARY, noop)
    return registry


class TestParseName:
    """Tests for "base:hook" addressing."""

    def test_plain_name_is_primary(self):
        """Test a name without suffix is the primary runner."""
        assert parse_name("Fetch") == ("fetch", HookKind.PRIMARY)

    def test_suffix(self):
        """Test a :hook suffix selects the hook."""
        assert parse_name("fetch:before") == ("fetch", HookKind.BEFORE)

    def test_explicit_hook_wins(self):
        """Test the hook argument overrides the suffix."""
        assert parse_name("fetch:before", hook="after") == ("fetch", HookKind.AFTER)

    def test_hook_kind_argument(self):
        """Test a HookKind value is accepted."""
        assert parse_name("fetch", hook=HookKind.SUSPEND) == ("fetch", HookKind.SUSPEND)

    def test_unsupported_hook(self):
        """Test an unknown hook raises UnsupportedHook."""
        with pytest.raises(UnsupportedHook) as exc_info:
            parse_name("fetch:during", subject_kind="task")
        assert exc_info.value.hook == "during"
        assert 'Unsupported hook name "during" for task "fetch"' in str(exc_info.value)

    def test_non_string_hook(self):
        """Test a non-string hook is rejected as unsupported."""
        with pytest.raises(ValueError):
            HookKind.parse(5)
        with pytest.raises(UnsupportedHook) as exc_info:
            parse_name("fetch", hook=5, subject_kind="job")
        assert exc_info.value.hook == "5"

    def test_normalize_name(self):
        """Test names are stripped and lower-cased."""
        assert normalize_name("  NightLY ") == "nightly"


class TestTasks:
    """Tests for task registration."""

    def test_placeholder_then_runner(self):
        """Test a hook creates a placeholder task that later gets a runner."""
        registry = Registry()
        registry.set_task_handler("report", HookKind.ERROR, noop)
        assert registry.get_task("report").runner is None
        registry.set_task_handler("report", HookKind.PRIMARY, noop)
        task = registry.get_task("REPORT")
        assert task.runner is noop
        assert task.error_hook is noop

    def test_check_tasks(self, registry):
        """Test task reference checks."""
        registry.set_task_handler("hookonly", HookKind.AFTER, noop)
        assert registry.check_tasks(["fetch", "store"]) is None
        assert isinstance(registry.check_tasks(["fetch", "missing"]), TaskNotFound)
        assert isinstance(registry.check_tasks(["hookonly"]), MissingRunner)


class TestRegisterJob:
    """Tests for Registry.register_job()."""

    def test_new_job(self, registry):
        """Test registering a new job."""
        registration = registry.register_job("Nightly", ["Fetch", "store"])
        assert registration.ok
        assert registration.created
        job = registration.job
        assert job.name == "nightly"
        assert job.tasks == ["fetch", "store"]
        assert job.options == {"run_immediately": True}
        assert job.status is JobStatus.REGISTERED

    def test_new_job_needs_tasks(self, registry):
        """Test a new job without tasks is rejected."""
        registration = registry.register_job("nightly", [])
        assert not registration.ok
        assert isinstance(registration.error, JobValidationFailed)
        assert "nightly" not in registry.jobs

    def test_unknown_task(self, registry):
        """Test a job with an unknown task is rejected."""
        registration = registry.register_job("nightly", ["fetch", "nope"])
        assert isinstance(registration.error, TaskNotFound)
        assert str(registration.error) == 'Task "nope" not found!'

    def test_task_without_runner(self, registry):
        """Test a job with a runner-less task is rejected."""
        registry.set_task_handler("later", HookKind.BEFORE, noop)
        registration = registry.register_job("nightly", ["later"])
        assert isinstance(registration.error, MissingRunner)

    def test_update_merges_options(self, registry):
        """Test updating a job merges its options."""
        registry.register_job("nightly", ["fetch"], {"run_immediately": False})
        registration = registry.register_job(
            "nightly", None, {"schedule": {"recurrence": "daily", "time": "01:00"}}
        )
        assert registration.ok
        assert not registration.created
        assert registration.job.tasks == ["fetch"]
        assert registration.job.options == {
            "run_immediately": False,
            "schedule": {"recurrence": "daily", "time": "01:00"},
        }

    def test_options_are_copied(self, registry):
        """Test registered options are copied."""
        options = {"schedule": {"recurrence": "daily", "time": "01:00"}}
        job = registry.register_job("nightly", ["fetch"], options).job
        options["schedule"]["time"] = "02:00"
        assert job.options["schedule"]["time"] == "01:00"

    def test_update_resets_status(self, registry):
        """Test updating a job requires validation again."""
        registry.register_job("nightly", ["fetch"])
        registry.validate_job("nightly")
        assert registry.jobs["nightly"].status is JobStatus.VALIDATED
        registry.register_job("nightly", ["store"])
        assert registry.jobs["nightly"].status is JobStatus.REGISTERED

    def test_job_created_by_hook_gets_tasks(self, registry):
        """Test a job created by a hook can receive tasks later."""
        registry.set_job_hook("nightly", HookKind.BEFORE, noop)
        registration = registry.register_job("nightly", ["fetch"])
        assert registration.ok
        assert registration.job.before_hook is noop
        assert registration.job.tasks == ["fetch"]

    def test_primary_job_hook_rejected(self, registry):
        """Test jobs have no primary handler."""
        with pytest.raises(UnsupportedHook):
            registry.set_job_hook("nightly", HookKind.PRIMARY, noop)


class TestValidationAndEviction:
    """Tests for validate_job() and evict()."""

    def test_valid_job_gets_schedule(self, registry):
        """Test a valid job is marked validated with its schedule."""
        registry.register_job("nightly", ["fetch"], {"schedule": {"recurrence": "daily", "time": "03:00"}})
        result = registry.validate_job("nightly")
        job = registry.jobs["nightly"]
        assert result.ok
        assert job.status is JobStatus.VALIDATED
        assert job.schedule == result.schedule

    def test_job_without_tasks(self, registry):
        """Test a job without tasks fails validation."""
        registry.set_job_hook("empty", HookKind.AFTER, noop)
        result = registry.validate_job("empty")
        assert not result.ok
        assert result.errors[0] == 'Job "empty" has no tasks!'

    def test_task_removed_after_registration(self, registry):
        """Test validation re-checks task references."""
        registry.register_job("nightly", ["fetch"])
        del registry.tasks["fetch"]
        result = registry.validate_job("nightly")
        assert result.errors[0] == 'Task "fetch" not found!'

    def test_evicted_job_is_hidden(self, registry):
        """Test evicted jobs are hidden from lookups."""
        registry.register_job("nightly", ["fetch"])
        registry.register_job("daily", ["store"])
        registry.evict("nightly", "bad schedule")
        job = registry.jobs["nightly"]
        assert job.status is JobStatus.EVICTED
        assert job.eviction_reason == "bad schedule"
        assert registry.get_job("nightly") is None
        assert registry.job_names() == ["daily"]

    def test_evicted_job_cannot_be_reregistered(self, registry):
        """Test an evicted job cannot be registered again."""
        registry.register_job("nightly", ["fetch"])
        registry.evict("nightly", "bad schedule")
        registration = registry.register_job("nightly", ["store"])
        assert not registration.ok
        assert "bad schedule" in str(registration.error)

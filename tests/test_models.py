"""Tests for the Job model and its lifecycle transitions."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from jobqueue.jobs.errors import InvalidTransitionError
from jobqueue.jobs.models import (
    DEFAULT_TIMEOUT_MS,
    Job,
    JobPriority,
    JobStatus,
    utcnow,
)


def make_job(**overrides):
    fields = {"name": "build", "type": "echo", "payload": {"x": 1}}
    fields.update(overrides)
    return Job(**fields)


class TestJobDefaults:
    def test_new_job_is_pending(self):
        job = make_job()

        assert job.status == JobStatus.PENDING
        assert job.priority == JobPriority.NORMAL
        assert job.progress == 0
        assert job.timeout_ms == DEFAULT_TIMEOUT_MS
        assert job.metadata == {}
        assert job.started_at is None
        assert job.completed_at is None
        assert job.created_at.tzinfo is not None

    def test_ids_are_unique(self):
        assert make_job().id != make_job().id

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            make_job(name="")

    def test_empty_type_rejected(self):
        with pytest.raises(ValidationError):
            make_job(type="")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            make_job(timeout_ms=0)


class TestJobPriority:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (JobPriority.HIGH, JobPriority.HIGH),
            (3, JobPriority.CRITICAL),
            ("low", JobPriority.LOW),
            ("High", JobPriority.HIGH),
            ("2", JobPriority.HIGH),
        ],
    )
    def test_parse(self, value, expected):
        assert JobPriority.parse(value) is expected

    def test_parse_unknown_name(self):
        with pytest.raises(ValueError):
            JobPriority.parse("urgent")

    @pytest.mark.parametrize("value", [None, [1], {"level": 1}, 1.5j])
    def test_parse_rejects_non_numeric_types(self, value):
        with pytest.raises(ValueError):
            JobPriority.parse(value)

    def test_null_priority_in_document_is_a_validation_error(self):
        document = make_job().to_document()
        document["priority"] = None
        with pytest.raises(ValidationError):
            Job.from_document(document)

    def test_job_accepts_priority_name(self):
        assert make_job(priority="critical").priority is JobPriority.CRITICAL

    def test_ordering(self):
        assert JobPriority.LOW < JobPriority.NORMAL < JobPriority.HIGH < JobPriority.CRITICAL


class TestTransitions:
    def test_start_sets_started_at(self):
        job = make_job().start()

        assert job.status == JobStatus.RUNNING
        assert job.started_at is not None
        assert job.completed_at is None

    def test_complete_sets_result(self):
        job = make_job().start().complete({"ok": True})

        assert job.status == JobStatus.COMPLETED
        assert job.result == {"ok": True}
        assert job.progress == 100
        assert job.completed_at >= job.started_at

    def test_fail_from_running(self):
        job = make_job().start().fail("boom")

        assert job.status == JobStatus.FAILED
        assert job.error == "boom"
        assert job.completed_at is not None

    def test_fail_from_pending_skips_running(self):
        job = make_job().fail("No handler registered for job type: echo")

        assert job.status == JobStatus.FAILED
        assert job.started_at is None
        assert job.completed_at is not None

    def test_cancel_pending(self):
        job = make_job().cancel()

        assert job.status == JobStatus.CANCELLED
        assert job.started_at is None
        assert job.completed_at is not None

    def test_cannot_complete_pending(self):
        with pytest.raises(InvalidTransitionError):
            make_job().complete("x")

    def test_cannot_cancel_running(self):
        job = make_job().start()

        with pytest.raises(InvalidTransitionError):
            job.cancel()
        assert job.status == JobStatus.RUNNING

    def test_cannot_start_twice(self):
        job = make_job().start()

        with pytest.raises(InvalidTransitionError):
            job.start()

    @pytest.mark.parametrize("terminal", ["complete", "fail", "cancel"])
    def test_terminal_states_are_final(self, terminal):
        job = make_job()
        if terminal == "complete":
            job.start().complete(1)
        elif terminal == "fail":
            job.start().fail("nope")
        else:
            job.cancel()
        status = job.status

        for action in (job.start, lambda: job.complete(2), lambda: job.fail("again"), job.cancel):
            with pytest.raises(InvalidTransitionError):
                action()
        assert job.status == status
        assert job.is_terminal

    def test_progress_is_clamped(self):
        job = make_job().start()

        assert job.update_progress(150).progress == 100
        assert job.update_progress(-5).progress == 0
        assert job.update_progress(42.5).progress == 42.5

    def test_progress_only_while_running(self):
        with pytest.raises(InvalidTransitionError):
            make_job().update_progress(10)

    def test_has_timed_out(self):
        job = make_job(timeout_ms=50).start()

        assert not job.has_timed_out(now=job.started_at + timedelta(milliseconds=10))
        assert job.has_timed_out(now=job.started_at + timedelta(milliseconds=60))

    def test_pending_job_never_times_out(self):
        job = make_job(timeout_ms=1)

        assert not job.has_timed_out(now=utcnow() + timedelta(hours=1))


class TestSerialization:
    def test_round_trip_preserves_every_field(self):
        job = make_job(
            priority=JobPriority.HIGH,
            payload={"files": ["a.py", "b.py"], "depth": 2},
            timeout_ms=1234,
            metadata={"submitted_by": "ci"},
        )
        job.start()
        job.update_progress(40)
        job.complete({"formatted": 2})

        document = job.to_document()
        restored = Job.from_document(document)

        assert restored == job
        assert restored.started_at == job.started_at
        assert restored.completed_at == job.completed_at

    def test_document_is_json_safe(self):
        document = make_job().to_document()

        assert document["status"] == "pending"
        assert document["priority"] == 1
        assert isinstance(document["created_at"], str)

    def test_from_document_ignores_store_fields(self):
        document = make_job().to_document()
        document["updated_at"] = "2026-01-01T00:00:00+00:00"

        assert Job.from_document(document).id == document["id"]

    def test_status_info(self):
        job = make_job().start()
        info = job.status_info()

        assert info.id == job.id
        assert info.status == JobStatus.RUNNING
        assert info.started_at == job.started_at
        assert info.error is None

# tests/test_write_path.py

from core.record_store import InMemoryRecordStore
from core.response import ErrorCode
from core.write_path import ACTOR_ADMIN, ACTOR_PARENT
from models.status_record import StatusChange
from models.student import DismissalStatus

CALLED = DismissalStatus.CALLED
WAITING = DismissalStatus.WAITING


class ClosingRecordStore(InMemoryRecordStore):
    """Closes the session while the upsert is in flight."""

    session = None

    def upsert_status(self, records):
        self.session.close()
        super().upsert_status(records)


# === family check-in ===


def test_family_check_in_spanning_classrooms(started_session, sample_store):
    response = started_session.set_family_status(101)

    assert response.success
    assert response.detail == "Ava Smith, Ben Smith called"
    assert len(sample_store.upsert_calls) == 1
    assert [r.student_id for r in sample_store.upsert_calls[0]] == ["s001", "s004"]
    assert sorted(response.data["applied"]) == ["s001", "s004"]
    assert started_session.index.called_of("cx") == 1
    assert started_session.index.called_of("cy") == 1


def test_family_check_in_single_classroom(started_session, sample_store):
    response = started_session.set_family_status("104")

    assert response.success
    assert response.detail == "Emma Adams, Olivia Adams called"
    assert len(sample_store.upsert_calls[0]) == 2
    assert started_session.index.called_of("cy") == 2


def test_family_check_in_records_actor_and_day(started_session, sample_store):
    started_session.set_family_status(104, actor=ACTOR_PARENT)

    record = sample_store.status_for("s005", "2025-09-02")
    assert record.status == CALLED
    assert record.changed_by == ACTOR_PARENT
    assert record.changed_at is not None


def test_redelivered_write_notification_does_not_double_count(
    started_session, sample_store, sample_channel
):
    started_session.set_family_status(101)
    record = sample_store.status_for("s001", "2025-09-02")

    sample_channel.publish(StatusChange(current=record))
    started_session.pump()

    assert started_session.index.called_of("cx") == 1
    assert started_session.index.verify_invariant() == []


def test_family_subset_check_in(started_session, sample_store):
    response = started_session.set_family_status(101, student_ids=["s004"])

    assert response.success
    assert response.detail == "Ben Smith called"
    assert [r.student_id for r in sample_store.upsert_calls[0]] == ["s004"]
    assert started_session.index.called_of("cx") == 0
    assert started_session.index.called_of("cy") == 1


def test_family_subset_outside_family_is_rejected(started_session, sample_store):
    response = started_session.set_family_status(101, student_ids=["s004", "s002"])

    assert not response.success
    assert response.error is ErrorCode.VALIDATION_FAILED
    assert "s002" in response.detail
    assert sample_store.upsert_calls == []


def test_family_empty_subset_is_rejected(started_session, sample_store):
    response = started_session.set_family_status(101, student_ids=[])

    assert response.error is ErrorCode.VALIDATION_FAILED
    assert sample_store.upsert_calls == []


def test_unknown_carpool_number(started_session, sample_store):
    response = started_session.set_family_status(999)

    assert not response.success
    assert response.error is ErrorCode.VALIDATION_FAILED
    assert response.status_code == 404
    assert response.detail == "Number not found: 999"
    assert sample_store.upsert_calls == []


def test_family_without_students(started_session, sample_store):
    response = started_session.set_family_status(105)

    assert response.status_code == 404
    assert sample_store.upsert_calls == []


def test_invalid_carpool_number(started_session, sample_store):
    for value in ("abc", 0, -4, None, True):
        response = started_session.set_family_status(value)

        assert response.error is ErrorCode.VALIDATION_FAILED
        assert response.status_code == 400

    assert sample_store.upsert_calls == []


def test_family_lookup_failure(started_session, sample_store):
    sample_store.fail_reads = True

    response = started_session.set_family_status(101)

    assert response.error is ErrorCode.STORE_UNAVAILABLE
    assert response.status_code == 503
    assert sample_store.upsert_calls == []


# === single status ===


def test_set_single_status(started_session):
    response = started_session.set_single_status("s001", CALLED)

    assert response.success
    assert response.detail == "Ava Smith called"
    assert response.data["applied"] == ["s001"]
    assert response.data["stale"] == []
    assert started_session.index.status_of("s001") == CALLED


def test_set_single_status_accepts_string_status(started_session):
    response = started_session.set_single_status("s002", "called")

    assert response.success
    assert started_session.index.status_of("s002") == CALLED


def test_set_single_status_validation(started_session, sample_store):
    for args in (("", CALLED), ("s001", "GONE"), ("s001", None)):
        response = started_session.set_single_status(*args)

        assert not response.success
        assert response.error is ErrorCode.VALIDATION_FAILED
        assert response.detail.startswith("Validation failed:")

    response = started_session.set_single_status("s001", CALLED, actor="   ")
    assert response.error is ErrorCode.VALIDATION_FAILED

    assert sample_store.upsert_calls == []
    assert started_session.index.called_of("cx") == 0


def test_failed_write_leaves_index_untouched(started_session, sample_store):
    before = started_session.index.to_dict()
    sample_store.fail_writes = True

    response = started_session.set_single_status("s001", CALLED)

    assert not response.success
    assert response.error is ErrorCode.STORE_UNAVAILABLE
    assert response.status_code == 503
    assert started_session.index.to_dict() == before
    assert sample_store.status_for("s001", "2025-09-02") is None


def test_write_older_than_reflected_status_is_stale(
    started_session, sample_store, make_record
):
    sample_store.upsert_status([make_record("s001", CALLED, minutes=5, actor=ACTOR_ADMIN)])
    started_session.pump()

    response = started_session.set_single_status("s001", WAITING)

    assert response.success
    assert response.data["stale"] == ["s001"]
    assert response.data["applied"] == []
    assert started_session.index.status_of("s001") == CALLED
    assert sample_store.status_for("s001", "2025-09-02").changed_by == ACTOR_ADMIN


# === toggle ===


def test_toggle_round_trip(started_session):
    response = started_session.toggle_status("s001")
    assert response.detail == "Ava Smith called"
    assert started_session.index.status_of("s001") == CALLED

    response = started_session.toggle_status("s001")
    assert response.detail == "Ava Smith set to WAITING"
    assert started_session.index.status_of("s001") == WAITING
    assert started_session.index.called_of("cx") == 0


def test_toggle_completes_classroom(started_session):
    for student_id in ("s001", "s002", "s003"):
        assert started_session.toggle_status(student_id).success

    assert started_session.index.is_complete("cx")

    started_session.toggle_status("s002")

    assert not started_session.index.is_complete("cx")
    assert started_session.index.called_of("cx") == 2


def test_toggle_validation(started_session):
    response = started_session.toggle_status("")

    assert response.error is ErrorCode.VALIDATION_FAILED


# === session state ===


def test_write_before_baseline_is_refused(create_session, sample_store):
    session = create_session()

    response = session.set_single_status("s001", CALLED)

    assert response.error is ErrorCode.BASELINE_UNAVAILABLE
    assert response.status_code == 503
    assert sample_store.upsert_calls == []


def test_write_after_close_is_refused(started_session, sample_store):
    started_session.close()

    response = started_session.set_family_status(101)

    assert response.error is ErrorCode.SESSION_CLOSED
    assert response.status_code == 409
    assert sample_store.upsert_calls == []


def test_close_during_write_keeps_store_write(
    create_session, sample_classrooms, sample_students, sample_families
):
    store = ClosingRecordStore(sample_classrooms, sample_students, sample_families)
    session = create_session(store=store)
    assert session.start().success
    store.session = session

    response = session.set_single_status("s001", CALLED)

    assert response.success
    assert response.data["applied"] == []
    assert store.status_for("s001", "2025-09-02").status == CALLED
    assert session.index.called_of("cx") == 0


def test_write_in_resync_only_mode(create_session, sample_settings):
    settings = sample_settings.model_copy(update={"incremental_enabled": False})
    session = create_session(settings=settings)
    assert session.start().success

    response = session.set_family_status(104)

    assert response.success
    assert response.data["applied"] == []
    assert session.index.called_of("cy") == 2

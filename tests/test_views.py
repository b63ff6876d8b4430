# tests/test_views.py

import pytest

import core.views as views
from core.response import ErrorCode
from models.student import DismissalStatus

CALLED = DismissalStatus.CALLED
WAITING = DismissalStatus.WAITING


def ids(entries):
    return [entry.student_id for entry in entries]


# === summary board ===


def test_summary_follows_classroom_order(sample_index, sample_snapshot):
    summary = views.classroom_summary(sample_index, sample_snapshot)

    assert [tile.classroom_id for tile in summary] == ["cx", "cy", "cz"]
    assert [tile.name for tile in summary] == ["Room X", "Room Y", "Room Z"]


def test_summary_counts_and_labels(sample_index, sample_snapshot):
    for student_id in ("s001", "s002", "s003", "s005"):
        sample_index.apply_change(student_id, WAITING, CALLED)

    x, y, z = views.classroom_summary(sample_index, sample_snapshot)

    assert (x.called, x.total, x.label, x.complete) == (3, 3, "3 / 3", True)
    assert (y.called, y.total, y.label, y.complete) == (1, 3, "1 / 3", False)
    assert (z.called, z.total, z.label, z.complete) == (0, 0, "0 / 0", False)


def test_summary_before_baseline_is_empty(sample_index):
    assert views.classroom_summary(sample_index, None) == []


def test_summary_is_recomputed_on_each_call(sample_index, sample_snapshot):
    before = views.classroom_summary(sample_index, sample_snapshot)
    sample_index.apply_change("s004", WAITING, CALLED)
    after = views.classroom_summary(sample_index, sample_snapshot)

    assert before[1].called == 0
    assert after[1].called == 1


# === classroom display ===


def test_classroom_roster_sorted_by_name(sample_index, sample_snapshot):
    sample_index.apply_change("s002", WAITING, CALLED)

    response = views.classroom_roster(sample_index, sample_snapshot, "cx")

    assert response.success
    assert response.data["classroom"].name == "Room X"
    records = response.data["records"]
    assert ids(records) == ["s003", "s002", "s001"]
    assert [r.display_name for r in records] == ["Brown, Noah", "Jones, Liam", "Smith, Ava"]
    assert [r.status for r in records] == [WAITING, CALLED, WAITING]


def test_classroom_roster_empty_classroom(sample_index, sample_snapshot):
    response = views.classroom_roster(sample_index, sample_snapshot, "cz")

    assert response.success
    assert response.data["records"] == []


def test_classroom_roster_unknown_classroom(sample_index, sample_snapshot):
    response = views.classroom_roster(sample_index, sample_snapshot, "nope")

    assert not response.success
    assert response.error is ErrorCode.NOT_FOUND
    assert response.status_code == 404
    assert response.detail == "Classroom not found."


# === spotter table ===


def test_spotter_roster_sorted_by_name(sample_index, sample_snapshot):
    entries = views.spotter_roster(sample_index, sample_snapshot)

    assert ids(entries) == ["s005", "s006", "s003", "s002", "s001", "s004"]
    assert entries[0].display_name == "Adams, Emma"
    assert entries[0].classroom_name == "Room Y"
    assert entries[0].carpool_number == 104


def test_spotter_roster_filter_by_name(sample_index, sample_snapshot):
    entries = views.spotter_roster(sample_index, sample_snapshot, query="  SMITH ")

    assert ids(entries) == ["s001", "s004"]


def test_spotter_roster_filter_by_first_name(sample_index, sample_snapshot):
    entries = views.spotter_roster(sample_index, sample_snapshot, query="liam")

    assert ids(entries) == ["s002"]


def test_spotter_roster_filter_by_carpool_number(sample_index, sample_snapshot):
    entries = views.spotter_roster(sample_index, sample_snapshot, query="104")

    assert ids(entries) == ["s005", "s006"]


def test_spotter_roster_filter_without_match(sample_index, sample_snapshot):
    assert views.spotter_roster(sample_index, sample_snapshot, query="zzz") == []


def test_spotter_roster_sorted_by_class(sample_index, sample_snapshot):
    entries = views.spotter_roster(sample_index, sample_snapshot, sort_by="class")

    assert ids(entries) == ["s003", "s002", "s001", "s005", "s006", "s004"]


def test_spotter_roster_sorted_by_status(sample_index, sample_snapshot):
    sample_index.apply_change("s002", WAITING, CALLED)
    sample_index.apply_change("s006", WAITING, CALLED)

    entries = views.spotter_roster(sample_index, sample_snapshot, sort_by="status")

    assert ids(entries) == ["s006", "s002", "s005", "s003", "s001", "s004"]


def test_spotter_roster_toggle_target(sample_index, sample_snapshot):
    sample_index.apply_change("s001", WAITING, CALLED)

    entries = {e.student_id: e for e in views.spotter_roster(sample_index, sample_snapshot)}

    assert entries["s001"].toggle_to == WAITING
    assert entries["s002"].toggle_to == CALLED


def test_spotter_roster_invalid_sort(sample_index, sample_snapshot):
    with pytest.raises(ValueError):
        views.spotter_roster(sample_index, sample_snapshot, sort_by="age")


def test_spotter_roster_before_baseline_is_empty(sample_index):
    assert views.spotter_roster(sample_index, None) == []

# models/aggregation_index.py

"""
The AggregationIndex is the in-memory derived view of one logical day's dismissal state.

It holds four maps:
    - status_of: student id -> `DismissalStatus` (students without a record default to WAITING)
    - class_of: student id -> classroom id (static for the session)
    - total_of: classroom id -> number of students in that classroom
    - called_of: classroom id -> number of those students currently CALLED

plus `changed_at_of` (student id -> timestamp of the record behind the current status), which is
only used to tell a newer write from an older one.

The central invariant is that for every classroom `c`,
`called_of[c] == |{s : class_of[s] == c and status_of[s] == CALLED}|`.

Two mutation paths maintain it, and both are first-class:
    - `rebuild()` recomputes everything from a full snapshot by scanning, independent of prior state.
    - `apply_change()` adjusts a single student's status and the owning classroom's count by a delta.

The index is owned by the `Reconciler`. Views read from it; nothing else mutates it.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from enum import Enum

from models.classroom import Classroom
from models.status_record import DailyStatusRecord
from models.student import DismissalStatus, Student


class ChangeOutcome(str, Enum):
    # status changed and counts were adjusted
    APPLIED = "APPLIED"

    # status already matched; counts untouched
    CONFIRMED = "CONFIRMED"

    # a newer change for the student is already reflected
    STALE = "STALE"

    # student is not part of the current snapshot
    UNKNOWN_ENTITY = "UNKNOWN_ENTITY"


class AggregationIndex:

    def __init__(self):
        self._status_of: dict[str, DismissalStatus] = {}
        self._class_of: dict[str, str] = {}
        self._total_of: dict[str, int] = {}
        self._called_of: dict[str, int] = {}
        self._changed_at_of: dict[str, datetime.datetime | None] = {}

    # === public classmethods ===

    @classmethod
    def build(
        cls,
        classrooms: Iterable[Classroom],
        students: Iterable[Student],
        records: Iterable[DailyStatusRecord],
    ) -> AggregationIndex:
        index = cls()
        index.rebuild(classrooms, students, records)
        return index

    # === data accessors ===

    def knows_student(self, student_id: str) -> bool:
        return student_id in self._class_of

    def status_of(self, student_id: str) -> DismissalStatus:
        return self._status_of.get(student_id, DismissalStatus.WAITING)

    def changed_at_of(self, student_id: str) -> datetime.datetime | None:
        return self._changed_at_of.get(student_id)

    def total_of(self, classroom_id: str) -> int:
        return self._total_of.get(classroom_id, 0)

    def called_of(self, classroom_id: str) -> int:
        return self._called_of.get(classroom_id, 0)

    def is_complete(self, classroom_id: str) -> bool:
        total = self.total_of(classroom_id)
        return total > 0 and self.called_of(classroom_id) == total

    def students_in(self, classroom_id: str) -> list[str]:
        return [
            student_id
            for student_id, owner_id in self._class_of.items()
            if owner_id == classroom_id
        ]

    @property
    def classroom_ids(self) -> list[str]:
        return list(self._total_of.keys())

    # === data manipulators ===

    def rebuild(
        self,
        classrooms: Iterable[Classroom],
        students: Iterable[Student],
        records: Iterable[DailyStatusRecord],
    ) -> None:
        """
        Recomputes every map from a full snapshot, discarding all prior state.

        Args:
            classrooms (Iterable[Classroom]): All classrooms, including empty ones.
            students (Iterable[Student]): All students with their classroom membership.
            records (Iterable[DailyStatusRecord]): The day's status records, in any order.

        Notes:
            - The result depends only on the inputs, never on prior index state.
            - Records for students missing from `students` are ignored.
            - If two records share a student (the store should prevent this), the one with the
              later `changed_at` wins; on a tie CALLED wins. This keeps the result independent of
              record order.
            - A student that belongs to a classroom missing from `classrooms` still gets a total,
              so counts never silently drop students.
        """
        status_of: dict[str, DismissalStatus] = {}
        class_of: dict[str, str] = {}
        total_of: dict[str, int] = {}
        called_of: dict[str, int] = {}
        changed_at_of: dict[str, datetime.datetime | None] = {}
        chosen: dict[str, DailyStatusRecord] = {}

        for classroom in classrooms:
            total_of[classroom.id] = 0
            called_of[classroom.id] = 0

        for student in students:
            class_of[student.id] = student.classroom_id
            total_of[student.classroom_id] = total_of.get(student.classroom_id, 0) + 1
            called_of.setdefault(student.classroom_id, 0)

        for record in records:
            if record.student_id not in class_of:
                continue

            existing = chosen.get(record.student_id)
            if existing is None or _record_precedence(record) > _record_precedence(
                existing
            ):
                chosen[record.student_id] = record

        for student_id, record in chosen.items():
            status_of[student_id] = record.status
            changed_at_of[student_id] = record.changed_at

        for student_id, status in status_of.items():
            if status is DismissalStatus.CALLED:
                called_of[class_of[student_id]] += 1

        self._status_of = status_of
        self._class_of = class_of
        self._total_of = total_of
        self._called_of = called_of
        self._changed_at_of = changed_at_of

    def apply_change(
        self,
        student_id: str,
        old_status_hint: DismissalStatus | str | None,
        new_status: DismissalStatus | str,
        changed_at: datetime.datetime | None = None,
        is_delete: bool = False,
    ) -> ChangeOutcome:
        """
        Applies one student's status transition and adjusts the classroom's called count.

        Args:
            student_id (str): The student whose status changed.
            old_status_hint (DismissalStatus | str | None): The caller's belief about the prior status.
            new_status (DismissalStatus | str): The status to apply.
            changed_at (datetime.datetime | None): Timestamp of the change, when known.
            is_delete (bool): The status row was removed. The student reverts to WAITING and its
                known timestamp is cleared.

        Returns:
            ChangeOutcome:
                - `UNKNOWN_ENTITY` if the student is not in the index (nothing changes).
                - `STALE` if both timestamps are known and `changed_at` is older than the one
                  already reflected (nothing changes).
                - `CONFIRMED` if the student already had `new_status`.
                - `APPLIED` if the status flipped and the count moved by one.

        Raises:
            ValueError: If either status is not a valid `DismissalStatus`.

        Notes:
            - The delta is computed against the index's own current status, not the hint. The
              status is binary, so a hint that disagrees with the index always means the index
              already shows `new_status`; counting from the hint would double count.
            - Applying the same change twice leaves the index unchanged the second time.
        """
        new_status = DismissalStatus.validate(new_status)
        if is_delete:
            new_status = DismissalStatus.WAITING
            changed_at = None
        if old_status_hint is not None:
            DismissalStatus.validate(old_status_hint)

        classroom_id = self._class_of.get(student_id)
        if classroom_id is None:
            return ChangeOutcome.UNKNOWN_ENTITY

        known_changed_at = self._changed_at_of.get(student_id)
        if (
            changed_at is not None
            and known_changed_at is not None
            and changed_at < known_changed_at
        ):
            return ChangeOutcome.STALE

        current = self.status_of(student_id)
        delta = int(new_status.is_called) - int(current.is_called)

        if delta != 0:
            self._called_of[classroom_id] = self._called_of.get(classroom_id, 0) + delta

        self._status_of[student_id] = new_status
        if is_delete:
            self._changed_at_of.pop(student_id, None)
        elif changed_at is not None:
            self._changed_at_of[student_id] = changed_at

        return ChangeOutcome.APPLIED if delta != 0 else ChangeOutcome.CONFIRMED

    # === data validators ===

    def verify_invariant(self) -> list[str]:
        """
        Recounts called students per classroom and compares against `called_of`.

        Returns:
            list[str]: Classroom ids whose stored count disagrees with the recount. Empty when consistent.
        """
        recount: dict[str, int] = {classroom_id: 0 for classroom_id in self._total_of}

        for student_id, classroom_id in self._class_of.items():
            if self.status_of(student_id) is DismissalStatus.CALLED:
                recount[classroom_id] = recount.get(classroom_id, 0) + 1

        classroom_ids = set(recount) | set(self._called_of)
        return sorted(
            classroom_id
            for classroom_id in classroom_ids
            if recount.get(classroom_id, 0) != self._called_of.get(classroom_id, 0)
        )

    # === persistence and import ===

    def to_dict(self) -> dict:
        """
        Returns a plain snapshot of every map.

        Students without a record are listed as WAITING so that an explicit WAITING and the
        default compare equal.
        """
        return {
            "status_of": {
                student_id: self.status_of(student_id).value
                for student_id in sorted(self._class_of)
            },
            "class_of": dict(sorted(self._class_of.items())),
            "total_of": dict(sorted(self._total_of.items())),
            "called_of": {
                classroom_id: self.called_of(classroom_id)
                for classroom_id in sorted(self._total_of)
            },
            "changed_at_of": {
                student_id: changed_at.isoformat() if changed_at else None
                for student_id, changed_at in sorted(self._changed_at_of.items())
            },
        }

    # === dunder methods ===

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AggregationIndex):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"AggregationIndex(students={len(self._class_of)}, classrooms={len(self._total_of)})"


def _record_precedence(
    record: DailyStatusRecord,
) -> tuple[bool, datetime.datetime, bool]:
    changed_at = record.changed_at
    return (
        changed_at is not None,
        changed_at or datetime.datetime.min.replace(tzinfo=datetime.timezone.utc),
        record.status is DismissalStatus.CALLED,
    )

# models/snapshot.py

"""
A full bulk read of the record store for one logical day.

A `Snapshot` bundles classrooms, students, families, and the day's status records,. The reconciler
rebuilds the `AggregationIndex` from it, and the view projector reads names, ordering, and
carpool numbers from it.
"""

from __future__ import annotations

from models.classroom import Classroom
from models.family import Family
from models.status_record import DailyStatusRecord
from models.student import Student
from models.types import RecordType


def _by_id(records: list[RecordType]) -> dict[str, RecordType]:
    return {record.id: record for record in records}


class Snapshot:

    def __init__(
        self,
        day: str,
        classrooms: list[Classroom],
        students: list[Student],
        families: list[Family] | None = None,
        records: list[DailyStatusRecord] | None = None,
    ):
        self._day = day
        self._classrooms = _by_id(sorted(classrooms, key=lambda x: x.sort_key))
        self._students = _by_id(students)
        self._families = _by_id(families or [])
        self._records = list(records or [])

    # === properties ===

    @property
    def day(self) -> str:
        return self._day

    @property
    def classrooms(self) -> list[Classroom]:
        return list(self._classrooms.values())

    @property
    def students(self) -> list[Student]:
        return list(self._students.values())

    @property
    def families(self) -> list[Family]:
        return list(self._families.values())

    @property
    def records(self) -> list[DailyStatusRecord]:
        return list(self._records)

    # === data accessors ===

    def classroom(self, classroom_id: str) -> Classroom | None:
        return self._classrooms.get(classroom_id)

    def student(self, student_id: str) -> Student | None:
        return self._students.get(student_id)

    def family(self, family_id: str | None) -> Family | None:
        if family_id is None:
            return None
        return self._families.get(family_id)

    def family_of(self, student: Student) -> Family | None:
        return self.family(student.family_id)

    def records_by_student(self) -> dict[str, DailyStatusRecord]:
        return {record.student_id: record for record in self._records}

    def __repr__(self) -> str:
        return (
            f"Snapshot({self._day}, classrooms={len(self._classrooms)}, "
            f"students={len(self._students)}, records={len(self._records)})"
        )

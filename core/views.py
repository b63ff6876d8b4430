# core/views.py

"""
Pure projections of the AggregationIndex into the three observer views.

- `classroom_summary()`: the summary board, one tile per classroom with called/total counts.
- `classroom_roster()`: one classroom's students for the name display.
- `spotter_roster()`: every student, filterable and sortable, for the staff spotter table.

Every function recomputes its result from the index and snapshot on each call. View rows are
frozen; no view holds state or is ever mutated in place.
"""

from __future__ import annotations

from dataclasses import dataclass

import core.formatters as formatters
from core.response import ErrorCode, Response
from models.aggregation_index import AggregationIndex
from models.snapshot import Snapshot
from models.student import DismissalStatus, Student

SORT_BY_NAME = "name"
SORT_BY_CLASS = "class"
SORT_BY_STATUS = "status"
SORT_OPTIONS = (SORT_BY_NAME, SORT_BY_CLASS, SORT_BY_STATUS)


@dataclass(frozen=True)
class ClassroomSummary:
    classroom_id: str
    name: str
    called: int
    total: int

    @property
    def complete(self) -> bool:
        return self.total > 0 and self.called == self.total

    @property
    def label(self) -> str:
        return formatters.format_called_label(self.called, self.total)


@dataclass(frozen=True)
class RosterEntry:
    student_id: str
    display_name: str
    status: DismissalStatus


@dataclass(frozen=True)
class SpotterEntry:
    student_id: str
    display_name: str
    classroom_name: str
    carpool_number: int | None
    status: DismissalStatus

    @property
    def toggle_to(self) -> DismissalStatus:
        return self.status.toggled()


# === summary board ===


def classroom_summary(
    index: AggregationIndex, snapshot: Snapshot | None
) -> list[ClassroomSummary]:
    if snapshot is None:
        return []

    return [
        ClassroomSummary(
            classroom_id=classroom.id,
            name=classroom.name,
            called=index.called_of(classroom.id),
            total=index.total_of(classroom.id),
        )
        for classroom in snapshot.classrooms
    ]


# === classroom display ===


def classroom_roster(
    index: AggregationIndex, snapshot: Snapshot | None, classroom_id: str
) -> Response:
    """
    Lists one classroom's students with their current status, sorted by last then first name.

    Args:
        index (AggregationIndex): The current index.
        snapshot (Snapshot | None): The snapshot providing names; None before the baseline loads.
        classroom_id (str): The classroom to display.

    Returns:
        Response: A structured response with the following contract:
            - success (bool):
                - True if the classroom exists in the snapshot.
                - False otherwise.
            - detail (str | None):
                - On failure, "Classroom not found."
            - error (ErrorCode | str | None):
                - `ErrorCode.NOT_FOUND` if the classroom is unknown.
            - status_code (int | None):
                - 200 on success
                - 404 if the classroom is unknown
            - data (dict | None): Payload with the following keys:
                - On success:
                    - "classroom" (Classroom): The classroom.
                    - "records" (list[RosterEntry]): The sorted roster.

    Notes:
        - This function is read-only and does not raise.
    """
    classroom = snapshot.classroom(classroom_id) if snapshot is not None else None

    if classroom is None:
        return Response.fail(
            detail="Classroom not found.",
            error=ErrorCode.NOT_FOUND,
            status_code=404,
        )

    students = [
        student
        for student in snapshot.students
        if student.classroom_id == classroom_id
    ]

    records = [
        RosterEntry(
            student_id=student.id,
            display_name=student.display_name,
            status=index.status_of(student.id),
        )
        for student in sorted(students, key=lambda x: x.sort_key)
    ]

    return Response.succeed(
        data={
            "classroom": classroom,
            "records": records,
        },
    )


# === spotter table ===


def spotter_roster(
    index: AggregationIndex,
    snapshot: Snapshot | None,
    query: str = "",
    sort_by: str = SORT_BY_NAME,
) -> list[SpotterEntry]:
    """
    Lists every student for the spotter table, filtered and sorted.

    Args:
        index (AggregationIndex): The current index.
        snapshot (Snapshot | None): The snapshot providing names, classrooms, and families.
        query (str): Case-insensitive substring matched against "Last, First" or the carpool number.
        sort_by (str): One of "name", "class", or "status". Name breaks ties in every case.

    Returns:
        list[SpotterEntry]: The matching rows in display order.

    Raises:
        ValueError: If `sort_by` is not a known option.
    """
    if sort_by not in SORT_OPTIONS:
        raise ValueError(
            f"Invalid sort option: {sort_by!r}. Expected one of: {', '.join(SORT_OPTIONS)}."
        )

    if snapshot is None:
        return []

    query = _normalize(query)
    rows: list[tuple[Student, SpotterEntry]] = []

    for student in snapshot.students:
        classroom = snapshot.classroom(student.classroom_id)
        family = snapshot.family_of(student)
        carpool_number = family.carpool_number if family is not None else None

        if query and not (
            query in student.display_name.lower()
            or (carpool_number is not None and query in str(carpool_number))
        ):
            continue

        rows.append(
            (
                student,
                SpotterEntry(
                    student_id=student.id,
                    display_name=student.display_name,
                    classroom_name=classroom.name if classroom is not None else "",
                    carpool_number=carpool_number,
                    status=index.status_of(student.id),
                ),
            )
        )

    if sort_by == SORT_BY_CLASS:
        rows.sort(key=lambda x: (x[1].classroom_name.lower(), x[0].sort_key))
    elif sort_by == SORT_BY_STATUS:
        rows.sort(key=lambda x: (x[1].status.value, x[0].sort_key))
    else:
        rows.sort(key=lambda x: x[0].sort_key)

    return [entry for _, entry in rows]


# === helper methods ===


def _normalize(input: str) -> str:
    return (input or "").strip().lower()

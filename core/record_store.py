# core/record_store.py

"""
The record store boundary and an in-memory implementation.

The store is the authority for classrooms, students, families, and daily status rows. Status
rows are keyed by `(student_id, day)` and written with upsert-on-conflict semantics, so resending
the same write is always safe.

`InMemoryRecordStore` is a complete reference implementation of the boundary. It is used by the
test suite and by local demos, and can simulate backend outages through `fail_reads` and
`fail_writes`.
"""

from __future__ import annotations

import threading
from typing import Protocol

from core.app_logger import get_logger
from core.utils import generate_uuid
from models.classroom import Classroom
from models.family import Family
from models.status_record import DailyStatusRecord, StatusChange
from models.student import Student

logger = get_logger(__name__)


class StoreUnavailableError(RuntimeError):
    """Raised when a read or write against the record store fails."""


class RecordStore(Protocol):

    def list_classrooms(self) -> list[Classroom]: ...

    def list_students(self) -> list[Student]: ...

    def list_families(self) -> list[Family]: ...

    def list_status_for_day(self, day: str) -> list[DailyStatusRecord]: ...

    def upsert_status(self, records: list[DailyStatusRecord]) -> None: ...

    def lookup_family_students(self, carpool_number: int) -> list[Student]: ...


class InMemoryRecordStore:

    def __init__(
        self,
        classrooms: list[Classroom] | None = None,
        students: list[Student] | None = None,
        families: list[Family] | None = None,
        records: list[DailyStatusRecord] | None = None,
    ):
        self._lock = threading.Lock()
        self._classrooms: dict[str, Classroom] = {c.id: c for c in classrooms or []}
        self._students: dict[str, Student] = {s.id: s for s in students or []}
        self._families: dict[str, Family] = {f.id: f for f in families or []}
        self._status: dict[tuple[str, str], DailyStatusRecord] = {
            r.key: r for r in records or []
        }
        self._channels: list = []
        self.fail_reads: bool = False
        self.fail_writes: bool = False
        self.upsert_calls: list[list[DailyStatusRecord]] = []

    # === catalog manipulators ===

    def add_classroom(
        self, name: str, display_order: int = 0, id: str | None = None
    ) -> Classroom:
        classroom = Classroom(id or generate_uuid(), name, display_order)
        with self._lock:
            self._classrooms[classroom.id] = classroom
        return classroom

    def add_family(
        self, carpool_number: int, parent_names: str = "", id: str | None = None
    ) -> Family:
        family = Family(id or generate_uuid(), carpool_number, parent_names)
        with self._lock:
            if any(
                f.carpool_number == family.carpool_number
                for f in self._families.values()
            ):
                raise ValueError(
                    f"A family with carpool number {family.carpool_number} already exists."
                )
            self._families[family.id] = family
        return family

    def add_student(
        self,
        first_name: str,
        last_name: str,
        classroom_id: str,
        family_id: str | None = None,
        id: str | None = None,
    ) -> Student:
        student = Student(
            id or generate_uuid(), first_name, last_name, classroom_id, family_id
        )
        with self._lock:
            self._students[student.id] = student
        return student

    # === channel wiring ===

    def attach_channel(self, channel) -> None:
        with self._lock:
            self._channels.append(channel)

    def detach_channel(self, channel) -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)

    def _publish(self, changes: list[StatusChange]) -> None:
        with self._lock:
            channels = list(self._channels)

        for change in changes:
            for channel in channels:
                channel.publish(change)

    # === reads ===

    def _require_readable(self) -> None:
        if self.fail_reads:
            raise StoreUnavailableError("Record store is unavailable for reads.")

    def list_classrooms(self) -> list[Classroom]:
        self._require_readable()
        with self._lock:
            return sorted(self._classrooms.values(), key=lambda x: x.sort_key)

    def list_students(self) -> list[Student]:
        self._require_readable()
        with self._lock:
            return list(self._students.values())

    def list_families(self) -> list[Family]:
        self._require_readable()
        with self._lock:
            return sorted(self._families.values(), key=lambda x: x.carpool_number)

    def list_status_for_day(self, day: str) -> list[DailyStatusRecord]:
        self._require_readable()
        with self._lock:
            return [r for (_, record_day), r in self._status.items() if record_day == day]

    def lookup_family_students(self, carpool_number: int) -> list[Student]:
        """
        Resolves a carpool number to the family's students, ordered by last name.

        Returns an empty list when no family has that number or the family has no students.
        """
        self._require_readable()
        with self._lock:
            family = next(
                (
                    f
                    for f in self._families.values()
                    if f.carpool_number == carpool_number
                ),
                None,
            )
            if family is None:
                return []

            return sorted(
                (s for s in self._students.values() if s.family_id == family.id),
                key=lambda x: x.sort_key,
            )

    def status_for(self, student_id: str, day: str) -> DailyStatusRecord | None:
        with self._lock:
            return self._status.get((student_id, day))

    # === writes ===

    def upsert_status(self, records: list[DailyStatusRecord]) -> None:
        """
        Inserts or updates status rows keyed by `(student_id, day)`.

        Raises:
            StoreUnavailableError: If writes are failing; no row is written.

        Notes:
            - The whole batch is accepted or none of it is.
            - Conflicts resolve last-write-wins by `changed_at`: a row older than the stored one
              for the same key is accepted but leaves the stored row in place.
            - One `StatusChange` per changed row is published to every attached channel after the write.
        """
        if self.fail_writes:
            raise StoreUnavailableError("Record store is unavailable for writes.")

        changes = []
        with self._lock:
            self.upsert_calls.append(list(records))
            for record in records:
                previous = self._status.get(record.key)
                if previous is not None and record.is_older_than(previous.changed_at):
                    continue
                self._status[record.key] = record
                changes.append(StatusChange(previous=previous, current=record))

        logger.debug(f"Upserted {len(records)} status row(s).")
        self._publish(changes)

    def delete_status(self, student_id: str, day: str) -> bool:
        with self._lock:
            previous = self._status.pop((student_id, day), None)

        if previous is None:
            return False

        self._publish([StatusChange(previous=previous, current=None)])
        return True

# models/status_record.py

"""
Represents one student's dismissal status for one logical day.

Each `DailyStatusRecord` is keyed by `(student_id, day)`. The record store enforces at most
one record per key through upsert-on-conflict, so a record is the current value for its key,
not an entry in a history.

Includes functionality for:
- Normalizing `changed_at` to a timezone-aware datetime (naive values are treated as UTC)
- Comparing timestamps to decide which of two writes for the same key is newer
- Serializing to and from the store's column names (`date`, `called_at`, `called_by`)

A `StatusChange` wraps one notification from the change channel: the row before and after
a single insert, update, or delete.
"""

from __future__ import annotations

import datetime
from typing import Any

from models.student import DismissalStatus


class DailyStatusRecord:

    def __init__(
        self,
        student_id: str,
        day: str,
        status: DismissalStatus | str,
        changed_at: datetime.datetime | str | None = None,
        changed_by: str | None = None,
    ):
        self._student_id = student_id
        self._day = day
        self._status = DismissalStatus.validate(status)
        self._changed_at = DailyStatusRecord.normalize_timestamp(changed_at)
        self._changed_by = changed_by

    # === properties ===

    @property
    def student_id(self) -> str:
        return self._student_id

    @property
    def day(self) -> str:
        return self._day

    @property
    def key(self) -> tuple[str, str]:
        return (self._student_id, self._day)

    @property
    def status(self) -> DismissalStatus:
        return self._status

    @property
    def changed_at(self) -> datetime.datetime | None:
        return self._changed_at

    @property
    def changed_by(self) -> str | None:
        return self._changed_by

    def is_older_than(self, other_changed_at: datetime.datetime | None) -> bool:
        if self._changed_at is None or other_changed_at is None:
            return False
        return self._changed_at < other_changed_at

    # === persistence and import ===

    def to_row(self) -> dict:
        return {
            "student_id": self._student_id,
            "date": self._day,
            "status": self._status.value,
            "called_at": self._changed_at.isoformat() if self._changed_at else None,
            "called_by": self._changed_by,
        }

    @classmethod
    def from_row(cls, row: dict) -> DailyStatusRecord:
        return cls(
            student_id=row["student_id"],
            day=row["date"],
            status=row["status"],
            changed_at=row.get("called_at"),
            changed_by=row.get("called_by"),
        )

    # === dunder methods ===

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DailyStatusRecord):
            return NotImplemented
        return self.to_row() == other.to_row()

    def __repr__(self) -> str:
        return f"DailyStatusRecord({self._student_id}, {self._day}, {self._status.value}, {self._changed_at}, {self._changed_by})"

    def __str__(self) -> str:
        return f"STATUS: student id: {self._student_id}, day: {self._day}, status: {self._status.value}"

    # === data validators ===

    @staticmethod
    def normalize_timestamp(value: Any) -> datetime.datetime | None:
        """
        Normalizes a `changed_at` value to a timezone-aware datetime.

        Args:
            value (Any): None, a `datetime`, or an ISO-8601 string (a trailing "Z" is accepted).

        Returns:
            An aware `datetime`, or None if no value was given.

        Raises:
            ValueError: If a string cannot be parsed as ISO-8601.
            TypeError: If the value is neither a string nor a `datetime`.
        """
        if value is None:
            return None

        if isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                value = datetime.datetime.fromisoformat(text)
            except ValueError:
                raise ValueError(
                    f"Invalid input. Timestamp is not ISO-8601: {value!r}."
                ) from None

        if not isinstance(value, datetime.datetime):
            raise TypeError("Invalid input. Timestamp must be a datetime or string.")

        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)

        return value


class StatusChange:
    """
    A single row change delivered by the notification channel.

    Either side may be missing: an insert has no `previous`, a delete has no `current`.
    """

    def __init__(
        self,
        previous: DailyStatusRecord | None = None,
        current: DailyStatusRecord | None = None,
    ):
        if previous is None and current is None:
            raise ValueError("A status change needs a previous or current record.")

        self._previous = previous
        self._current = current

    @property
    def previous(self) -> DailyStatusRecord | None:
        return self._previous

    @property
    def current(self) -> DailyStatusRecord | None:
        return self._current

    @property
    def record(self) -> DailyStatusRecord:
        # a non-empty side is guaranteed by __init__
        return self._current if self._current is not None else self._previous  # type: ignore[return-value]

    @property
    def student_id(self) -> str:
        return self.record.student_id

    @property
    def day(self) -> str:
        return self.record.day

    @property
    def is_delete(self) -> bool:
        return self._current is None

    @property
    def new_status(self) -> DismissalStatus:
        if self._current is None:
            return DismissalStatus.WAITING
        return self._current.status

    @property
    def previous_status(self) -> DismissalStatus | None:
        return self._previous.status if self._previous is not None else None

    @property
    def changed_at(self) -> datetime.datetime | None:
        return self._current.changed_at if self._current is not None else None

    @classmethod
    def from_payload(cls, payload: dict) -> StatusChange:
        """Builds a change from a transport payload shaped `{"old": row | None, "new": row | None}`."""
        old_row = payload.get("old") or None
        new_row = payload.get("new") or None

        return cls(
            previous=DailyStatusRecord.from_row(old_row) if old_row else None,
            current=DailyStatusRecord.from_row(new_row) if new_row else None,
        )

    def __repr__(self) -> str:
        return f"StatusChange({self._previous!r}, {self._current!r})"

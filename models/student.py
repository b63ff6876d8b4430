# models/student.py

"""
Represents a student waiting to be picked up at dismissal.

Stores core identifying information such as name and a unique ID, along with the
references to the student's owning classroom and family. Students are immutable for the
lifetime of a session; membership changes are picked up by a full resync.

Includes functionality for:
- Formatting names for the classroom display ("Last, First") and operator messages ("First Last")
- Producing a stable, case-insensitive sort key
- Serializing to and from the record store's row shape

Dismissal status is not stored on the student. It lives in `DailyStatusRecord` rows keyed by
`(student_id, day)` and is folded into the `AggregationIndex`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import core.formatters as formatters


class DismissalStatus(str, Enum):
    WAITING = "WAITING"
    CALLED = "CALLED"

    @property
    def is_called(self) -> bool:
        return self is DismissalStatus.CALLED

    def toggled(self) -> DismissalStatus:
        return (
            DismissalStatus.WAITING
            if self is DismissalStatus.CALLED
            else DismissalStatus.CALLED
        )

    @classmethod
    def validate(cls, value: Any) -> DismissalStatus:
        """
        Validates and normalizes a dismissal status value.

        Accepts either a `DismissalStatus` member or its string value. String input is
        stripped and upper-cased before lookup.

        Args:
            value (Any): The input value to validate.

        Returns:
            The matching `DismissalStatus` member.

        Raises:
            ValueError: If the value is not a known status.
        """
        if isinstance(value, cls):
            return value

        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized in cls._value2member_map_:
                return cls(normalized)

        raise ValueError(
            f"Invalid input. Status must be one of: {', '.join(s.value for s in cls)}."
        )


class Student:

    def __init__(
        self,
        id: str,
        first_name: str,
        last_name: str,
        classroom_id: str,
        family_id: str | None = None,
    ):
        self._id: str = id
        self._first_name: str = first_name
        self._last_name: str = last_name
        self._classroom_id: str = classroom_id
        self._family_id: str | None = family_id

    # === properties ===

    @property
    def id(self) -> str:
        return self._id

    @property
    def first_name(self) -> str:
        return self._first_name

    @property
    def last_name(self) -> str:
        return self._last_name

    @property
    def full_name(self) -> str:
        return formatters.format_full_name(self._first_name, self._last_name)

    @property
    def display_name(self) -> str:
        return formatters.format_display_name(self._first_name, self._last_name)

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self._last_name.lower(), self._first_name.lower())

    @property
    def classroom_id(self) -> str:
        return self._classroom_id

    @property
    def family_id(self) -> str | None:
        return self._family_id

    # === persistence and import ===

    def to_dict(self) -> dict:
        return {
            "id": self._id,
            "first_name": self._first_name,
            "last_name": self._last_name,
            "class_id": self._classroom_id,
            "family_id": self._family_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Student:
        return cls(
            id=data["id"],
            first_name=data["first_name"],
            last_name=data["last_name"],
            classroom_id=data["class_id"],
            family_id=data.get("family_id"),
        )

    # === dunder methods ===

    def __repr__(self) -> str:
        return f"Student({self._id}, {self._first_name}, {self._last_name}, {self._classroom_id}, {self._family_id})"

    def __str__(self) -> str:
        return f"STUDENT: {self.full_name} - (ID: {self._id})"

# models/classroom.py

"""
Represents a classroom on the dismissal summary board.

Each `Classroom` owns zero or more students (the student holds the back-reference) and
carries a `display_order` used to arrange the summary board. Classrooms are listed by
`(display_order, name)`.
"""

from __future__ import annotations


class Classroom:

    def __init__(
        self,
        id: str,
        name: str,
        display_order: int = 0,
    ):
        self._id = id
        self._name = name
        self._display_order = display_order

    # === properties ===

    @property
    def id(self) -> str:
        return self._id

    @property
    def name(self) -> str:
        return self._name

    @property
    def display_order(self) -> int:
        return self._display_order

    @property
    def sort_key(self) -> tuple[int, str]:
        return (self._display_order, self._name.lower())

    # === persistence and import ===

    def to_dict(self) -> dict:
        return {
            "id": self._id,
            "name": self._name,
            "display_order": self._display_order,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Classroom:
        return cls(
            id=data["id"],
            name=data["name"],
            display_order=data.get("display_order") or 0,
        )

    # === dunder methods ===

    def __repr__(self) -> str:
        return f"Classroom({self._id}, {self._name}, {self._display_order})"

    def __str__(self) -> str:
        return f"CLASSROOM: {self._name} - (ID: {self._id})"

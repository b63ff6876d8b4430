# models/family.py

"""
Represents a family picking up one or more students.

The carpool number is the family's public pick-up identity: parents enter it at the gate,
spotters search the roster by it, and a family check-in resolves it to the family's students.
"""

from __future__ import annotations

from typing import Any


class Family:

    def __init__(
        self,
        id: str,
        carpool_number: int,
        parent_names: str = "",
    ):
        self._id = id
        self._carpool_number = Family.validate_carpool_number(carpool_number)
        self._parent_names = parent_names

    # === properties ===

    @property
    def id(self) -> str:
        return self._id

    @property
    def carpool_number(self) -> int:
        return self._carpool_number

    @property
    def parent_names(self) -> str:
        return self._parent_names

    # === persistence and import ===

    def to_dict(self) -> dict:
        return {
            "id": self._id,
            "carpool_number": self._carpool_number,
            "parent_names": self._parent_names,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Family:
        return cls(
            id=data["id"],
            carpool_number=data["carpool_number"],
            parent_names=data.get("parent_names") or "",
        )

    # === dunder methods ===

    def __repr__(self) -> str:
        return f"Family({self._id}, {self._carpool_number}, {self._parent_names})"

    def __str__(self) -> str:
        return f"FAMILY: #{self._carpool_number} {self._parent_names}"

    # === data validators ===

    @staticmethod
    def validate_carpool_number(carpool_number: Any) -> int:
        """
        Validates and normalizes a carpool number.

        Accepts an integer or a string of digits (surrounding whitespace is ignored).

        Args:
            carpool_number (Any): The input value to validate.

        Returns:
            The carpool number as a positive integer.

        Raises:
            ValueError: If the input is empty, non-numeric, or not positive.
        """
        if isinstance(carpool_number, bool):
            raise ValueError("Invalid input. Carpool number must be a whole number.")

        if isinstance(carpool_number, str):
            carpool_number = carpool_number.strip()
            if not carpool_number.isdigit():
                raise ValueError(
                    "Invalid input. Carpool number must be a whole number."
                )
            carpool_number = int(carpool_number)

        if not isinstance(carpool_number, int):
            raise ValueError("Invalid input. Carpool number must be a whole number.")

        if carpool_number <= 0:
            raise ValueError("Invalid input. Carpool number must be greater than zero.")

        return carpool_number

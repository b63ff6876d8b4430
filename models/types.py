# models/types.py

"""
Holds TypeVar definition for simplifying type checks.
"""

from typing import TypeVar

from .classroom import Classroom
from .family import Family
from .student import Student

RecordType = TypeVar("RecordType", Classroom, Family, Student)

# tests/test_student.py

import pytest

from models.student import DismissalStatus, Student


@pytest.fixture
def sample_student():
    return Student("s001", "Ava", "Smith", "cx", "f001")


def test_student_to_dict(sample_student):
    data = sample_student.to_dict()

    assert data["id"] == "s001"
    assert data["first_name"] == "Ava"
    assert data["last_name"] == "Smith"
    assert data["class_id"] == "cx"
    assert data["family_id"] == "f001"


def test_student_from_dict():
    student = Student.from_dict(
        {
            "id": "s002",
            "first_name": "Liam",
            "last_name": "Jones",
            "class_id": "cx",
        }
    )

    assert student.id == "s002"
    assert student.classroom_id == "cx"
    assert student.family_id is None
    assert student.full_name == "Liam Jones"
    assert student.display_name == "Jones, Liam"


def test_student_sort_key_ignores_case():
    students = [
        Student("a", "ben", "smith", "cx"),
        Student("b", "Ava", "Smith", "cx"),
        Student("c", "Zed", "adams", "cx"),
    ]

    assert [s.id for s in sorted(students, key=lambda x: x.sort_key)] == ["c", "b", "a"]


def test_student_to_str(sample_student):
    assert sample_student.__str__() == "STUDENT: Ava Smith - (ID: s001)"


# === dismissal status ===


def test_status_validate_normalizes_strings():
    assert DismissalStatus.validate(" called ") is DismissalStatus.CALLED
    assert DismissalStatus.validate("WAITING") is DismissalStatus.WAITING
    assert DismissalStatus.validate(DismissalStatus.CALLED) is DismissalStatus.CALLED


@pytest.mark.parametrize("value", ["", "PICKED_UP", None, 1])
def test_status_validate_rejects_unknown_values(value):
    with pytest.raises(ValueError):
        DismissalStatus.validate(value)


def test_status_toggled():
    assert DismissalStatus.WAITING.toggled() is DismissalStatus.CALLED
    assert DismissalStatus.CALLED.toggled() is DismissalStatus.WAITING
    assert DismissalStatus.CALLED.is_called
    assert not DismissalStatus.WAITING.is_called

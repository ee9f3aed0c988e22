import pytest

from class_balance.models import AcademicLevel, BehavioralLevel, Gender, Partition, Student, Weights


def _student(
    sid,
    gender="male",
    academic="proficient",
    behavioral="moderate_needs",
    special=False,
    **extra,
) -> Student:
    return Student(
        id=sid,
        name=f"Student {sid}",
        gender=Gender(gender),
        academic_level=AcademicLevel(academic),
        behavioral_level=BehavioralLevel(behavioral),
        special_needs=special,
        **extra,
    )


@pytest.fixture
def make_student():
    return _student


@pytest.fixture
def make_partition():
    def build(*sections, teacher_ids=None):
        """Each argument is a list of students for one section."""
        students = [s for section in sections for s in section]
        assignment = [[s.id for s in section] for section in sections]
        return Partition.from_assignment(students, assignment, teacher_ids=teacher_ids)
    return build


@pytest.fixture
def weights():
    return Weights()


@pytest.fixture
def alternating_roster():
    """Eight students alternating male/female; otherwise identical."""
    return [_student(i, "male" if i % 2 else "female") for i in range(1, 9)]

import json

import pytest

from class_balance.algorithm import place_students
from class_balance.config import load_constraints, load_project, save_constraints, save_project
from class_balance.constraints import EqualClassSize, MustBeSeparate, MustBeTogether, PreferredTeacher, Priority
from class_balance.models import ColumnMapping, Project, Weights


@pytest.fixture
def project(alternating_roster):
    return Project(
        excel_path="roster.xlsx",
        column_mapping=ColumnMapping(id_column="ID", name_column="Name", gender_column="Geschlecht"),
        students=alternating_roster,
        constraints=[
            MustBeTogether((1, 3), priority=Priority.HIGH, reason="Zwillinge"),
            MustBeSeparate((2, 4)),
            PreferredTeacher(student_id=5, teacher_id="t2"),
        ],
        weights=Weights.for_strategy("academic"),
        section_count=2,
        teacher_ids=["t1", "t2"],
    )


def test_project_round_trip(project, tmp_path):
    path = tmp_path / "project.json"
    save_project(project, path)
    assert load_project(path) == project


def test_stored_assignment_restores_the_partition(project, tmp_path, weights):
    result = place_students(project.students, project.section_count, weights, project.constraints,
                            teacher_ids=project.teacher_ids)
    project.store_partition(result.partition)

    path = tmp_path / "project.json"
    save_project(project, path)
    restored = load_project(path).to_partition()

    assert restored.to_dict()["sections"] == [
        {**s, "balance_score": None} for s in result.partition.to_dict()["sections"]
    ]
    assert load_project(path).get_unassigned_students() == []


def test_unassigned_students(project):
    project.assignment = [[1, 2, 3], [4]]
    assert [s.id for s in project.get_unassigned_students()] == [5, 6, 7, 8]
    assert project.get_student_by_id(6).id == 6
    assert project.get_student_by_id(60) is None


def test_project_without_assignment_has_empty_sections(project):
    assert project.to_partition().sizes() == [0, 0]


def test_constraint_file_skips_inactive_records(tmp_path):
    path = tmp_path / "constraints.json"
    path.write_text(json.dumps([
        {"type": "must_be_together", "students": [1, 2], "priority": "required"},
        {"type": "equal_class_size", "active": False},
        {"type": "avoid_teacher", "student": 3, "teacher": "t1", "active": True},
    ]), encoding="utf-8")

    constraints = load_constraints(path)
    assert [c.kind.value for c in constraints] == ["must_be_together", "avoid_teacher"]
    assert constraints[0].priority == Priority.REQUIRED


def test_constraint_file_round_trip(tmp_path):
    constraints = [MustBeTogether(("a", "b")), EqualClassSize(priority=Priority.LOW, reason="fairness")]
    path = tmp_path / "constraints.json"
    save_constraints(constraints, path)
    assert load_constraints(path) == constraints


def test_malformed_constraint_is_reported(tmp_path):
    path = tmp_path / "constraints.json"
    path.write_text(json.dumps([{"type": "must_be_together", "students": [1]}]), encoding="utf-8")
    with pytest.raises(ValueError):
        load_constraints(path)


@pytest.mark.parametrize("assignment", [
    [[1, 2, 3], [4, 99]],  # unknown student
    [[1, 2, 3], [3, 4]],   # listed twice
])
def test_malformed_assignment_is_rejected(project, assignment):
    project.assignment = assignment
    with pytest.raises(ValueError):
        project.to_partition()

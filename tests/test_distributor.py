import logging

import pytest

from class_balance.constraints import MustBeSeparate, MustBeTogether, validate
from class_balance.distributor import AmbiguousGrouping, build_groups, distribute
from class_balance.errors import InvalidSectionCount


def _ids(partition):
    return [section.student_ids() for section in partition.sections]


def test_rejects_fewer_than_one_section(alternating_roster):
    with pytest.raises(InvalidSectionCount):
        distribute(alternating_roster, section_count=0)


def test_empty_roster_gives_empty_sections():
    partition = distribute([], section_count=3)
    assert len(partition) == 3
    assert partition.sizes() == [0, 0, 0]


def test_unconstrained_roster_is_spread_evenly(make_student):
    students = [make_student(i) for i in range(10)]
    partition = distribute(students, section_count=3)
    assert partition.sizes() == [4, 3, 3]
    placed = sorted(sid for ids in _ids(partition) for sid in ids)
    assert placed == list(range(10))


def test_round_robin_order_is_deterministic(alternating_roster):
    partition = distribute(alternating_roster, section_count=2)
    assert _ids(partition) == [[1, 3, 5, 7], [2, 4, 6, 8]]
    assert _ids(distribute(alternating_roster, section_count=2)) == _ids(partition)


def test_sections_carry_names_and_teachers(alternating_roster):
    partition = distribute(
        alternating_roster, section_count=2, teacher_ids=["t1", "t2"], section_names=["5a", "5b"]
    )
    assert [s.name for s in partition] == ["5a", "5b"]
    assert [s.teacher_id for s in partition] == ["t1", "t2"]

    default = distribute(alternating_roster, section_count=2)
    assert [s.name for s in default] == ["Section 1", "Section 2"]
    assert [s.teacher_id for s in default] == [None, None]


def test_keep_together_group_is_placed_as_a_unit(alternating_roster):
    constraints = [MustBeTogether((2, 5, 8))]
    partition = distribute(alternating_roster, constraints, section_count=3)
    section_of = partition.student_section_map()
    assert section_of[2] == section_of[5] == section_of[8]
    assert validate(partition, constraints).satisfied
    assert sum(partition.sizes()) == 8


def test_keep_apart_students_are_pulled_into_a_free_section(make_student):
    students = [make_student(i) for i in range(1, 5)]
    constraints = [MustBeTogether((1, 3)), MustBeSeparate((2, 4))]
    partition = distribute(students, constraints, section_count=2)
    assert _ids(partition) == [[1, 3, 4], [2]]
    assert validate(partition, constraints).satisfied


def test_grouped_members_are_never_moved_apart(make_student):
    students = [make_student(i) for i in range(1, 5)]
    constraints = [MustBeTogether((1, 2)), MustBeSeparate((1, 3))]
    partition = distribute(students, constraints, section_count=2)
    section_of = partition.student_section_map()
    assert section_of[1] == section_of[2]
    assert section_of[1] != section_of[3]


def test_unresolvable_keep_apart_is_left_for_the_validator(make_student, caplog):
    students = [make_student(i) for i in range(1, 4)]
    constraints = [MustBeSeparate((1, 2, 3))]
    with caplog.at_level(logging.WARNING, logger="class_balance.distributor"):
        partition = distribute(students, constraints, section_count=2)
    assert sum(partition.sizes()) == 3
    assert not validate(partition, constraints).satisfied
    assert "No section free" in caplog.text


def test_ambiguous_keep_together_first_constraint_wins(alternating_roster):
    constraints = [MustBeTogether((1, 2)), MustBeTogether((2, 3, 4))]
    groups, warnings = build_groups(alternating_roster, constraints)
    assert [[s.id for s in g] for g in groups[:2]] == [[1, 2], [3, 4]]
    assert warnings == [AmbiguousGrouping(student_id=2, kept_index=0, dropped_index=1)]

    partition = distribute(alternating_roster, constraints, section_count=2)
    assert partition.warnings == warnings
    assert "#0" in warnings[0].message


def test_constraint_students_outside_the_roster_are_ignored(alternating_roster):
    groups, warnings = build_groups(alternating_roster, [MustBeTogether((1, 42))])
    assert [s.id for s in groups[0]] == [1]
    assert warnings == []
    assert len(groups) == 8

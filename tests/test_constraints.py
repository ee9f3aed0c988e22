import pytest

from class_balance.constraints import (
    AvoidTeacher,
    BalancedDistribution,
    ConstraintKind,
    EqualClassSize,
    MustBeSeparate,
    MustBeTogether,
    PreferredTeacher,
    Priority,
    constraint_from_dict,
    constraint_to_dict,
    validate,
)
from class_balance.models import BalanceFactor
from class_balance.translations import available_languages, get_language, set_language


@pytest.fixture
def two_sections(make_student, make_partition):
    """Section 1: students 1, 2, 3 (teacher t1). Section 2: students 4, 5 (teacher t2)."""
    return make_partition(
        [make_student(1), make_student(2), make_student(3)],
        [make_student(4), make_student(5)],
        teacher_ids=["t1", "t2"],
    )


def test_no_constraints_is_satisfied(two_sections):
    result = validate(two_sections, [])
    assert result.satisfied
    assert result.violations == []


def test_must_be_together(two_sections):
    assert validate(two_sections, [MustBeTogether((1, 2, 3))]).satisfied

    result = validate(two_sections, [MustBeTogether((1, 4), reason="siblings")])
    assert not result.satisfied
    violation = result.violations[0]
    assert violation.index == 0
    assert violation.constraint.kind == ConstraintKind.MUST_BE_TOGETHER
    assert "Section 1, Section 2" in violation.message
    assert "siblings" in violation.message


def test_must_be_separate(two_sections):
    assert validate(two_sections, [MustBeSeparate((1, 4))]).satisfied

    result = validate(two_sections, [MustBeSeparate((1, 2, 4), priority=Priority.REQUIRED)])
    assert not result.satisfied
    assert result.violations[0].priority == Priority.REQUIRED
    assert "1, 2" in result.violations[0].message
    assert "Section 1" in result.violations[0].message


def test_teacher_affinity(two_sections):
    constraints = [
        PreferredTeacher(student_id=1, teacher_id="t1"),
        PreferredTeacher(student_id=4, teacher_id="t1"),
        AvoidTeacher(student_id=5, teacher_id="t2"),
        AvoidTeacher(student_id=2, teacher_id="t2"),
    ]
    result = validate(two_sections, constraints)
    assert result.violated_indexes == frozenset({1, 2})


def test_equal_class_size(make_student, make_partition):
    within = make_partition([make_student(i) for i in range(4)], [make_student(10), make_student(11)])
    assert validate(within, [EqualClassSize()]).satisfied

    beyond = make_partition([make_student(i) for i in range(5)], [make_student(10), make_student(11)])
    result = validate(beyond, [EqualClassSize()])
    assert not result.satisfied
    assert "differ by 3" in result.violations[0].message


def test_balanced_distribution_is_advisory(make_student, make_partition):
    lopsided = make_partition([make_student(1, "male"), make_student(2, "male")], [make_student(3, "female")])
    assert validate(lopsided, [BalancedDistribution(factor=BalanceFactor.GENDER)]).satisfied


def test_students_outside_the_partition_are_ignored(two_sections):
    constraints = [MustBeTogether((1, 99)), MustBeSeparate((4, 98)), PreferredTeacher(student_id=97, teacher_id="t1")]
    assert validate(two_sections, constraints).satisfied


def test_validate_does_not_mutate(two_sections):
    before = two_sections.to_dict()
    validate(two_sections, [MustBeTogether((1, 4)), EqualClassSize()])
    assert two_sections.to_dict() == before


def test_group_constraints_need_two_distinct_students():
    with pytest.raises(ValueError):
        MustBeTogether((1,))
    with pytest.raises(ValueError):
        MustBeSeparate((1, 1))
    assert MustBeTogether([1, 2, 2]).student_ids == (1, 2)


def test_new_since_only_reports_fresh_violations(two_sections):
    constraints = [MustBeTogether((1, 4)), MustBeSeparate((1, 2))]
    before = validate(two_sections, constraints[:1] + [MustBeSeparate((1, 5))])
    after = validate(two_sections, constraints)
    assert [v.index for v in after.new_since(before)] == [1]


def test_constraint_dict_round_trip():
    constraints = [
        MustBeTogether((1, 2), priority=Priority.HIGH, reason="twins"),
        MustBeSeparate(("a", "b", "c")),
        PreferredTeacher(student_id=3, teacher_id="t9", priority=Priority.LOW),
        AvoidTeacher(student_id=4, teacher_id="t1"),
        BalancedDistribution(factor=BalanceFactor.SPECIAL_NEEDS),
        EqualClassSize(priority=Priority.REQUIRED),
    ]
    for constraint in constraints:
        assert constraint_from_dict(constraint_to_dict(constraint)) == constraint


def test_constraint_from_dict_accepts_stored_shape():
    constraint = constraint_from_dict({"type": "must_be_separate", "students": [7, 8], "priority": "high"})
    assert constraint == MustBeSeparate((7, 8), priority=Priority.HIGH)
    with pytest.raises(ValueError):
        constraint_from_dict({"type": "sit_by_window"})


def test_violation_messages_follow_language(two_sections):
    assert "de" in dict(available_languages())
    previous = get_language()
    set_language("de")
    try:
        result = validate(two_sections, [MustBeTogether((1, 4))])
        assert "dieselbe Klasse" in result.violations[0].message
        assert "Erforderlich" in result.violations[0].message
    finally:
        set_language(previous)
    assert get_language() == previous


def test_violations_grouped_by_priority(two_sections):
    constraints = [
        MustBeTogether((1, 4), priority=Priority.REQUIRED),
        MustBeSeparate((1, 2), priority=Priority.LOW),
        MustBeSeparate((4, 5), priority=Priority.LOW),
    ]
    result = validate(two_sections, constraints)
    assert [v.index for v in result.by_priority(Priority.REQUIRED)] == [0]
    assert [v.index for v in result.by_priority(Priority.LOW)] == [1, 2]
    assert result.by_priority(Priority.HIGH) == []

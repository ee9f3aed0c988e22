import pytest

from class_balance.constraints import MustBeSeparate, MustBeTogether
from class_balance.errors import InvalidMove
from class_balance.impact import apply_move, apply_swap, preview_move, preview_swap
from class_balance.metrics import partition_score
from class_balance.models import BalanceFactor, Section, Weights


@pytest.fixture
def gender_heavy():
    return Weights(gender=3, academic=0, behavioral=0, special_needs=1)


@pytest.fixture
def classes(make_student, make_partition):
    """Section 1: two girls (one with special needs) and a boy. Section 2: four boys and a girl with special needs."""
    return make_partition(
        [make_student(1, "female", special=True), make_student(2, "female"), make_student(3, "male")],
        [make_student(4, "male"), make_student(5, "male"), make_student(6, "male"), make_student(7, "male"),
         make_student(8, "female", special=True)],
        teacher_ids=["t1", "t2"],
    )


def _ids(partition):
    return [section.student_ids() for section in partition.sections]


def test_move_reports_per_section_and_per_factor_change(classes, gender_heavy):
    impact = preview_move(classes, 1, 0, 1, gender_heavy)

    assert impact.students == (1,)
    assert not impact.is_swap
    assert impact.source.score.before == pytest.approx(58.333, abs=1e-3)
    assert impact.source.score.after == pytest.approx(87.5)
    assert impact.target.score.before == pytest.approx(43.75)
    assert impact.target.score.after == pytest.approx(58.333, abs=1e-3)

    special = impact.target.factor(BalanceFactor.SPECIAL_NEEDS)
    assert special.before == pytest.approx(100.0)
    assert special.delta < 0
    assert impact.target.factor(BalanceFactor.GENDER).delta == pytest.approx(25.0)

    assert impact.overall.before == pytest.approx((impact.source.score.before + impact.target.score.before) / 2)
    assert impact.overall.delta > 0
    assert impact.improves
    assert (impact.source.size.after, impact.target.size.after) == (2, 6)


def test_partition_change_includes_size_penalty(classes, gender_heavy):
    impact = preview_move(classes, 1, 0, 1, gender_heavy)
    section_delta = impact.source.score.delta + impact.target.score.delta
    # sizes 3/5 -> 2/6 raises the penalty by 0.2
    assert impact.partition.delta == pytest.approx(section_delta - 0.2)


def test_preview_leaves_partition_untouched(classes, gender_heavy):
    before = classes.to_dict()
    preview_move(classes, 1, 0, 1, gender_heavy)
    preview_swap(classes, 1, 4, gender_heavy)
    assert classes.to_dict() == before


def test_move_that_breaks_a_constraint_is_flagged_and_refused(classes, gender_heavy):
    constraints = [MustBeTogether((1, 2), reason="siblings")]
    impact = preview_move(classes, 1, 0, 1, gender_heavy, constraints)
    assert not impact.is_legal
    assert [v.index for v in impact.new_violations] == [0]

    refused = apply_move(classes, 1, 0, 1, gender_heavy, constraints)
    assert not refused.applied
    assert _ids(classes) == [[1, 2, 3], [4, 5, 6, 7, 8]]

    forced = apply_move(classes, 1, 0, 1, gender_heavy, constraints, allow_violations=True)
    assert forced.applied
    assert _ids(classes) == [[2, 3], [4, 5, 6, 7, 8, 1]]


def test_existing_violations_do_not_block_a_move(classes, gender_heavy):
    constraints = [MustBeTogether((2, 8))]
    impact = preview_move(classes, 1, 0, 1, gender_heavy, constraints)
    assert impact.is_legal
    assert [v.index for v in impact.violations] == [0]


def test_apply_move_refreshes_section_scores(classes, gender_heavy):
    impact = apply_move(classes, 1, 0, 1, gender_heavy)
    assert impact.applied
    assert classes[0].balance_score == pytest.approx(impact.source.score.after)
    assert classes[1].balance_score == pytest.approx(impact.target.score.after)


@pytest.mark.parametrize("student, source, target", [
    (1, 0, 0),   # same section
    (1, 0, 5),   # no such target
    (1, -1, 0),  # no such source
    (4, 0, 1),   # not in the source section
    (99, 0, 1),  # not in the partition
])
def test_invalid_moves_are_rejected(classes, gender_heavy, student, source, target):
    with pytest.raises(InvalidMove):
        preview_move(classes, student, source, target, gender_heavy)


def test_swap_exchanges_students_between_sections(classes, gender_heavy):
    impact = preview_swap(classes, 1, 4, gender_heavy)
    assert impact.is_swap
    assert impact.source.index == 0 and impact.target.index == 1
    assert impact.source.size.delta == 0
    assert impact.partition.delta == pytest.approx(impact.source.score.delta + impact.target.score.delta)

    applied = apply_swap(classes, 1, 4, gender_heavy)
    assert applied.applied
    assert _ids(classes) == [[4, 2, 3], [1, 5, 6, 7, 8]]


def test_swap_within_one_section_is_rejected(classes, gender_heavy):
    with pytest.raises(InvalidMove):
        preview_swap(classes, 1, 2, gender_heavy)
    with pytest.raises(InvalidMove):
        preview_swap(classes, 1, 99, gender_heavy)


def test_swap_that_reunites_kept_apart_students_is_refused(classes, gender_heavy):
    constraints = [MustBeSeparate((1, 5))]
    impact = apply_swap(classes, 1, 4, gender_heavy, constraints)
    assert not impact.applied
    assert not impact.is_legal
    assert _ids(classes) == [[1, 2, 3], [4, 5, 6, 7, 8]]


def test_untouched_sections_are_not_rescored(classes, make_student, gender_heavy):
    classes.sections.append(Section(name="Section 3", students=[make_student(9, "female"), make_student(10)]))
    cached = classes[2].breakdown()

    impact = preview_move(classes, 1, 0, 1, gender_heavy)
    assert classes[2].breakdown() is cached
    assert impact.partition.before == pytest.approx(partition_score(classes.sections, gender_heavy))

    apply_move(classes, 1, 0, 1, gender_heavy)
    assert impact.partition.after == pytest.approx(partition_score(classes.sections, gender_heavy))

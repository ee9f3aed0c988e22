"""What-if evaluation of single-student moves and swaps.

Previews never touch the partition they are given: they score a copy with
the change applied, rescoring only the two affected sections, and validate
the copy so a score gain is never mistaken for a legal move. The apply_*
functions commit a change through the same preview and refuse moves that
would introduce a violation unless explicitly overridden.
"""

import dataclasses
import logging
from dataclasses import dataclass, field
from typing import Sequence

from .constraints import Constraint, Violation, validate
from .errors import InvalidMove
from .metrics import DEFAULT_SETTINGS, BalanceSettings, section_breakdown, size_penalty, weighted_aggregate
from .models import BalanceFactor, Partition, Section, StudentId, Weights

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreChange:
    before: float
    after: float

    @property
    def delta(self) -> float:
        return self.after - self.before


@dataclass(frozen=True)
class SectionImpact:
    """Aggregate and per-factor change of one section."""
    index: int
    name: str
    score: ScoreChange
    factors: dict[BalanceFactor, ScoreChange]
    size: ScoreChange

    def factor(self, factor: BalanceFactor) -> ScoreChange:
        return self.factors[factor]


@dataclass(frozen=True)
class AdjustmentImpact:
    """Effect of a move (one student) or a swap (two students).

    For a swap, ``students[0]`` leaves ``source`` and ``students[1]`` leaves
    ``target``.
    """
    students: tuple[StudentId, ...]
    source: SectionImpact
    target: SectionImpact
    overall: ScoreChange  # mean of the two affected sections
    partition: ScoreChange  # whole partition, size penalty included
    violations: list[Violation] = field(default_factory=list)
    new_violations: list[Violation] = field(default_factory=list)
    applied: bool = False

    @property
    def is_swap(self) -> bool:
        return len(self.students) == 2

    @property
    def is_legal(self) -> bool:
        """True when the change introduces no constraint violation."""
        return not self.new_violations

    @property
    def improves(self) -> bool:
        return self.overall.delta > 0


def _section_impact(
    index: int,
    before: Section,
    after: Section,
    weights: Weights,
    settings: BalanceSettings,
) -> SectionImpact:
    old = before.breakdown(settings)
    new = section_breakdown(after.students, settings)
    return SectionImpact(
        index=index,
        name=before.name,
        score=ScoreChange(weighted_aggregate(old, weights), weighted_aggregate(new, weights)),
        factors={f: ScoreChange(old.get(f), new.get(f)) for f in BalanceFactor},
        size=ScoreChange(len(before), len(after)),
    )


def _evaluate(
    partition: Partition,
    hypothetical: Partition,
    students: tuple,
    source_index: int,
    target_index: int,
    weights: Weights,
    constraints: Sequence[Constraint],
    settings: BalanceSettings,
) -> AdjustmentImpact:
    source = _section_impact(source_index, partition[source_index], hypothetical[source_index], weights, settings)
    target = _section_impact(target_index, partition[target_index], hypothetical[target_index], weights, settings)
    # Sections other than source and target are identical in both partitions.
    untouched = sum(
        weighted_aggregate(section.breakdown(settings), weights)
        for k, section in enumerate(partition.sections)
        if k not in (source_index, target_index)
    )

    before = validate(partition, constraints)
    after = validate(hypothetical, constraints)

    return AdjustmentImpact(
        students=students,
        source=source,
        target=target,
        overall=ScoreChange(
            (source.score.before + target.score.before) / 2,
            (source.score.after + target.score.after) / 2,
        ),
        partition=ScoreChange(
            untouched + source.score.before + target.score.before - size_penalty(partition.sizes(), settings),
            untouched + source.score.after + target.score.after - size_penalty(hypothetical.sizes(), settings),
        ),
        violations=after.violations,
        new_violations=after.new_since(before),
    )


def _check_index(partition: Partition, index: int, label: str) -> None:
    if not 0 <= index < len(partition):
        raise InvalidMove(f"{label} section {index} does not exist (partition has {len(partition)})")


# ---------------------------------------------------------------------------
# Moves
# ---------------------------------------------------------------------------

def preview_move(
    partition: Partition,
    student_id: StudentId,
    from_index: int,
    to_index: int,
    weights: Weights,
    constraints: Sequence[Constraint] = (),
    settings: BalanceSettings = DEFAULT_SETTINGS,
) -> AdjustmentImpact:
    """Score moving one student between two sections without committing it.

    Raises:
        InvalidWeights: if the weights are unusable.
        InvalidMove: if the sections are the same or missing, or the student
            is not in from_index.
    """
    weights.validate()
    _check_index(partition, from_index, "Source")
    _check_index(partition, to_index, "Target")
    if from_index == to_index:
        raise InvalidMove(f"Student {student_id} is already in section {from_index}")
    if student_id not in partition[from_index].student_ids():
        raise InvalidMove(f"Student {student_id} is not in {partition[from_index].name}")

    hypothetical = partition.copy()
    hypothetical[to_index].add(hypothetical[from_index].remove(student_id))
    return _evaluate(partition, hypothetical, (student_id,), from_index, to_index, weights, constraints, settings)


def apply_move(
    partition: Partition,
    student_id: StudentId,
    from_index: int,
    to_index: int,
    weights: Weights,
    constraints: Sequence[Constraint] = (),
    allow_violations: bool = False,
    settings: BalanceSettings = DEFAULT_SETTINGS,
) -> AdjustmentImpact:
    """Move a student in place if the move adds no violation (or violations are allowed).

    The returned impact says whether the move was applied.
    """
    impact = preview_move(partition, student_id, from_index, to_index, weights, constraints, settings)
    if impact.new_violations and not allow_violations:
        logger.info(
            "Move of %s to %s refused: %s",
            student_id, partition[to_index].name, "; ".join(v.message for v in impact.new_violations),
        )
        return impact

    partition[to_index].add(partition[from_index].remove(student_id))
    partition[from_index].refresh_score(weights, settings)
    partition[to_index].refresh_score(weights, settings)
    logger.info(
        "Moved %s from %s to %s (overall %+.2f, %d new violations)",
        student_id, partition[from_index].name, partition[to_index].name,
        impact.overall.delta, len(impact.new_violations),
    )
    return dataclasses.replace(impact, applied=True)


# ---------------------------------------------------------------------------
# Swaps
# ---------------------------------------------------------------------------

def _locate_pair(partition: Partition, student_a: StudentId, student_b: StudentId) -> tuple[tuple[int, int], tuple[int, int]]:
    loc_a = partition.locate(student_a)
    loc_b = partition.locate(student_b)
    if loc_a is None:
        raise InvalidMove(f"Student {student_a} is not in the partition")
    if loc_b is None:
        raise InvalidMove(f"Student {student_b} is not in the partition")
    if loc_a[0] == loc_b[0]:
        raise InvalidMove(f"Students {student_a} and {student_b} are already in the same section")
    return loc_a, loc_b


def preview_swap(
    partition: Partition,
    student_a: StudentId,
    student_b: StudentId,
    weights: Weights,
    constraints: Sequence[Constraint] = (),
    settings: BalanceSettings = DEFAULT_SETTINGS,
) -> AdjustmentImpact:
    """Score exchanging two students from different sections without committing it."""
    weights.validate()
    (i, pos_a), (j, pos_b) = _locate_pair(partition, student_a, student_b)

    hypothetical = partition.copy()
    a = hypothetical[i].replace(pos_a, hypothetical[j].students[pos_b])
    hypothetical[j].replace(pos_b, a)
    return _evaluate(partition, hypothetical, (student_a, student_b), i, j, weights, constraints, settings)


def apply_swap(
    partition: Partition,
    student_a: StudentId,
    student_b: StudentId,
    weights: Weights,
    constraints: Sequence[Constraint] = (),
    allow_violations: bool = False,
    settings: BalanceSettings = DEFAULT_SETTINGS,
) -> AdjustmentImpact:
    """Swap two students in place under the same rule as apply_move."""
    impact = preview_swap(partition, student_a, student_b, weights, constraints, settings)
    if impact.new_violations and not allow_violations:
        logger.info(
            "Swap of %s and %s refused: %s",
            student_a, student_b, "; ".join(v.message for v in impact.new_violations),
        )
        return impact

    (i, pos_a), (j, pos_b) = _locate_pair(partition, student_a, student_b)
    a = partition[i].replace(pos_a, partition[j].students[pos_b])
    partition[j].replace(pos_b, a)
    partition[i].refresh_score(weights, settings)
    partition[j].refresh_score(weights, settings)
    logger.info(
        "Swapped %s and %s between %s and %s (overall %+.2f)",
        student_a, student_b, partition[i].name, partition[j].name, impact.overall.delta,
    )
    return dataclasses.replace(impact, applied=True)

"""Pairwise-swap local search for balanced class sections.

Each sweep walks every pair of sections (i < j) and every pair of students
(one from each) in index order, so identical input always gives an identical
run. The first swap that keeps the constraints acceptable and strictly raises
the aggregate score is committed and the sweep restarts from the top. A sweep
without an accepted swap ends the search at a local optimum.

Swaps are applied in place and rolled back on rejection; only the two
touched sections are rescored per candidate. Swaps never change section
sizes, so the size penalty stays constant for a whole run.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional, Sequence

from .constraints import Constraint, Priority, ValidationResult, validate
from .distributor import distribute
from .metrics import DEFAULT_SETTINGS, BalanceSettings, section_score, size_penalty
from .models import Partition, Section, Student, StudentId, Weights

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 100

# Smallest score gain that counts as an improvement. Guards against
# rounding noise turning a neutral swap into an endless sequence of "gains".
IMPROVEMENT_EPSILON = 1e-9


# ---------------------------------------------------------------------------
# Acceptance policies
# ---------------------------------------------------------------------------

class AcceptancePolicy:
    """Decides how constraint violations affect a candidate's score.

    ``effective_score`` returns the score the search compares, or None to
    reject the candidate outright. It must never return more than
    ``raw_score``: the optimizer relies on that to skip validating
    candidates whose raw score cannot win.
    """

    def effective_score(
        self,
        raw_score: float,
        candidate: ValidationResult,
        baseline: ValidationResult,
    ) -> Optional[float]:
        raise NotImplementedError


class HardConstraintPolicy(AcceptancePolicy):
    """Every constraint is a hard filter, whatever its priority.

    By default any violation rejects the candidate, so from a start that
    already violates something no swap is accepted until one yields a fully
    legal partition. With ``relaxed=True`` only violations the current
    partition does not already have reject a candidate, which lets an
    over-subscribed constraint set still make progress.
    """

    def __init__(self, relaxed: bool = False):
        self.relaxed = relaxed

    def effective_score(self, raw_score, candidate, baseline):
        if self.relaxed:
            return None if candidate.new_since(baseline) else raw_score
        return raw_score if candidate.satisfied else None


class SoftPriorityPolicy(AcceptancePolicy):
    """Required/high constraints filter; medium/low ones cost score instead."""

    DEFAULT_PENALTIES = {
        Priority.MEDIUM: 10.0,
        Priority.LOW: 2.0,
    }

    def __init__(self, penalties: Optional[dict[Priority, float]] = None):
        self.penalties = dict(self.DEFAULT_PENALTIES if penalties is None else penalties)

    def effective_score(self, raw_score, candidate, baseline):
        if any(v.priority.is_hard for v in candidate.violations):
            return None
        penalty = sum(
            self.penalties.get(priority, 0.0) * len(candidate.by_priority(priority))
            for priority in Priority
            if not priority.is_hard
        )
        return raw_score - penalty


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwapRecord:
    """One committed swap: student_a went from section_a to section_b and student_b the other way."""
    iteration: int
    student_a: StudentId
    student_b: StudentId
    section_a: int
    section_b: int
    score: float


@dataclass
class OptimizationResult:
    partition: Partition
    score: float
    initial_score: float
    iterations: int
    converged: bool
    validation: ValidationResult
    swaps: list[SwapRecord] = field(default_factory=list)

    @property
    def swaps_accepted(self) -> int:
        return len(self.swaps)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

def _swap_candidates(sections: list[Section]) -> Iterator[tuple[int, int, int, int]]:
    for i in range(len(sections)):
        for j in range(i + 1, len(sections)):
            for si in range(len(sections[i])):
                for sj in range(len(sections[j])):
                    yield i, j, si, sj


def optimize(
    partition: Partition,
    weights: Weights,
    constraints: Sequence[Constraint] = (),
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    policy: Optional[AcceptancePolicy] = None,
    settings: BalanceSettings = DEFAULT_SETTINGS,
    progress_callback: Callable[[int, float], None] | None = None,
) -> OptimizationResult:
    """Improve a partition by first-improvement pairwise swaps.

    The caller's partition is left untouched; the result holds an improved
    copy, its score, the number of sweeps used and the final validation.
    Infeasible constraint sets never raise: the search just accepts fewer
    swaps, possibly none.

    Raises:
        InvalidWeights: before any scoring, if the weights are unusable.
        ValueError: if max_iterations is negative.
    """
    weights.validate()
    if max_iterations < 0:
        raise ValueError(f"max_iterations must be >= 0, got {max_iterations}")

    policy = policy or HardConstraintPolicy()
    current = partition.copy()
    sections = current.sections

    section_scores = [section_score(s.students, weights, settings) for s in sections]
    penalty = size_penalty(current.sizes(), settings)
    raw_score = sum(section_scores) - penalty
    initial_score = raw_score

    baseline = validate(current, constraints)
    effective = policy.effective_score(raw_score, baseline, baseline)
    if effective is None:
        # Infeasible start: any candidate the policy accepts beats it.
        effective = float("-inf")

    logger.info(
        "Optimizing %d students in %d sections: score %.2f, %d violations",
        sum(len(s) for s in sections), len(sections), raw_score, len(baseline.violations),
    )

    swaps: list[SwapRecord] = []
    iterations = 0
    converged = False

    while iterations < max_iterations:
        iterations += 1
        improved = False

        for i, j, si, sj in _swap_candidates(sections):
            a = sections[i].students[si]
            b = sections[j].students[sj]
            sections[i].replace(si, b)
            sections[j].replace(sj, a)

            new_i = section_score(sections[i].students, weights, settings)
            new_j = section_score(sections[j].students, weights, settings)
            candidate_raw = raw_score - section_scores[i] - section_scores[j] + new_i + new_j

            if candidate_raw > effective + IMPROVEMENT_EPSILON:
                result = validate(current, constraints)
                candidate_score = policy.effective_score(candidate_raw, result, baseline)
                if candidate_score is not None and candidate_score > effective + IMPROVEMENT_EPSILON:
                    section_scores[i] = new_i
                    section_scores[j] = new_j
                    # Recompute from scratch to avoid accumulated floating-point drift
                    raw_score = sum(section_scores) - penalty
                    baseline = result
                    effective = policy.effective_score(raw_score, result, result)
                    swaps.append(SwapRecord(iterations, a.id, b.id, i, j, raw_score))
                    logger.debug(
                        "Sweep %d: swapped %s (%s) <-> %s (%s), score %.4f",
                        iterations, a.id, sections[j].name, b.id, sections[i].name, raw_score,
                    )
                    improved = True
                    break

            sections[i].replace(si, a)
            sections[j].replace(sj, b)

        if progress_callback:
            progress_callback(iterations, raw_score)

        if not improved:
            converged = True
            break

    for section in sections:
        section.refresh_score(weights, settings)
    validation = validate(current, constraints)

    logger.info(
        "Optimization finished after %d sweeps (%s): %d swaps, score %.2f -> %.2f, %d violations",
        iterations, "converged" if converged else "iteration limit", len(swaps),
        initial_score, raw_score, len(validation.violations),
    )

    return OptimizationResult(
        partition=current,
        score=raw_score,
        initial_score=initial_score,
        iterations=iterations,
        converged=converged,
        validation=validation,
        swaps=swaps,
    )


def place_students(
    students: Sequence[Student],
    section_count: int,
    weights: Weights,
    constraints: Sequence[Constraint] = (),
    teacher_ids: Optional[Sequence] = None,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    policy: Optional[AcceptancePolicy] = None,
    settings: BalanceSettings = DEFAULT_SETTINGS,
    progress_callback: Callable[[int, float], None] | None = None,
) -> OptimizationResult:
    """Distribute then optimize in one call.

    Weights are checked before anything is distributed.
    """
    weights.validate()
    partition = distribute(students, constraints, section_count, teacher_ids=teacher_ids)
    return optimize(
        partition,
        weights,
        constraints,
        max_iterations=max_iterations,
        policy=policy,
        settings=settings,
        progress_callback=progress_callback,
    )

"""Balance scores for a single section.

Every function here is pure: the same multiset of students always yields the
same score. The optimizer calls them on hypothetical sections many thousands
of times per run, so none of them may touch shared state.

All per-factor scores are on a 0-100 scale, and an empty section scores 100
on every factor (it is vacuously balanced).
"""

from dataclasses import dataclass
from typing import Sequence

from .models import AcademicLevel, BalanceFactor, BehavioralLevel, Gender, Student, Weights


# ---------------------------------------------------------------------------
# Configuration constants
# ---------------------------------------------------------------------------

ACADEMIC_LEVELS = (
    AcademicLevel.ADVANCED,
    AcademicLevel.PROFICIENT,
    AcademicLevel.DEVELOPING,
    AcademicLevel.NEEDS_SUPPORT,
)
ACADEMIC_IDEAL = (0.25, 0.50, 0.20, 0.05)
ACADEMIC_IDEAL_EVEN = (0.25, 0.25, 0.25, 0.25)

BEHAVIORAL_LEVELS = (
    BehavioralLevel.HIGH_NEEDS,
    BehavioralLevel.MODERATE_NEEDS,
    BehavioralLevel.LOW_NEEDS,
)
BEHAVIORAL_IDEAL = (0.15, 0.35, 0.50)
# Deviation multipliers: a pile-up of high-needs students costs four times
# as much as the same deviation among low-needs students.
BEHAVIORAL_PENALTY = (2.0, 1.0, 0.5)

SPECIAL_NEEDS_WINDOW = (0.10, 0.25)
SPECIAL_NEEDS_FLOOR = 50.0
SPECIAL_NEEDS_OVERLOAD_SLOPE = 2.0

SIZE_PENALTY_FACTOR = 0.1


@dataclass(frozen=True)
class BalanceSettings:
    """Tunable constants behind the balance scores."""
    academic_ideal: tuple[float, ...] = ACADEMIC_IDEAL
    behavioral_ideal: tuple[float, ...] = BEHAVIORAL_IDEAL
    behavioral_penalty: tuple[float, ...] = BEHAVIORAL_PENALTY
    special_needs_window: tuple[float, float] = SPECIAL_NEEDS_WINDOW
    special_needs_floor: float = SPECIAL_NEEDS_FLOOR
    special_needs_overload_slope: float = SPECIAL_NEEDS_OVERLOAD_SLOPE
    size_penalty_factor: float = SIZE_PENALTY_FACTOR

    def __post_init__(self):
        if len(self.academic_ideal) != len(ACADEMIC_LEVELS):
            raise ValueError(f"academic_ideal needs {len(ACADEMIC_LEVELS)} proportions")
        if len(self.behavioral_ideal) != len(BEHAVIORAL_LEVELS):
            raise ValueError(f"behavioral_ideal needs {len(BEHAVIORAL_LEVELS)} proportions")
        if len(self.behavioral_penalty) != len(BEHAVIORAL_LEVELS):
            raise ValueError(f"behavioral_penalty needs {len(BEHAVIORAL_LEVELS)} multipliers")
        low, high = self.special_needs_window
        if not 0 <= low <= high <= 1:
            raise ValueError(f"Invalid special needs window: {self.special_needs_window}")


DEFAULT_SETTINGS = BalanceSettings()


# ---------------------------------------------------------------------------
# Per-factor scores
# ---------------------------------------------------------------------------

def gender_balance(students: Sequence[Student]) -> float:
    """min(male, female) / max(male, female), scaled to 0-100."""
    if not students:
        return 100.0
    male = sum(1 for s in students if s.gender == Gender.MALE)
    female = sum(1 for s in students if s.gender == Gender.FEMALE)
    larger = max(male, female)
    if larger == 0:
        return 0.0
    return min(male, female) / larger * 100.0


def _proportions(values: list, buckets: Sequence) -> list[float]:
    total = len(values)
    return [sum(1 for v in values if v == bucket) / total for bucket in buckets]


def academic_balance(students: Sequence[Student], settings: BalanceSettings = DEFAULT_SETTINGS) -> float:
    """100 * (1 - L1 distance from the ideal level mix), floored at 0."""
    if not students:
        return 100.0
    observed = _proportions([s.academic_level for s in students], ACADEMIC_LEVELS)
    deviation = sum(abs(p - ideal) for p, ideal in zip(observed, settings.academic_ideal))
    return max(0.0, 100.0 * (1.0 - deviation))


def behavioral_balance(students: Sequence[Student], settings: BalanceSettings = DEFAULT_SETTINGS) -> float:
    """Like academic_balance, but each bucket's deviation is scaled by its penalty."""
    if not students:
        return 100.0
    observed = _proportions([s.behavioral_level for s in students], BEHAVIORAL_LEVELS)
    deviation = sum(
        abs(p - ideal) * penalty
        for p, ideal, penalty in zip(observed, settings.behavioral_ideal, settings.behavioral_penalty)
    )
    return max(0.0, 100.0 * (1.0 - deviation))


def special_needs_balance(students: Sequence[Student], settings: BalanceSettings = DEFAULT_SETTINGS) -> float:
    """100 inside the target window; gentle decay below it, steep decay above it."""
    if not students:
        return 100.0
    ratio = sum(1 for s in students if s.special_needs) / len(students)
    low, high = settings.special_needs_window
    if low <= ratio <= high:
        return 100.0
    if ratio < low:
        floor = settings.special_needs_floor
        return floor + (100.0 - floor) * ratio / low
    return max(0.0, 100.0 - settings.special_needs_overload_slope * (ratio - high) * 100.0)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BalanceBreakdown:
    """The four per-factor scores of one section."""
    gender: float = 100.0
    academic: float = 100.0
    behavioral: float = 100.0
    special_needs: float = 100.0

    def get(self, factor: BalanceFactor) -> float:
        return getattr(self, factor.value)

    def as_dict(self) -> dict[str, float]:
        return {factor.value: self.get(factor) for factor in BalanceFactor}


def section_breakdown(students: Sequence[Student], settings: BalanceSettings = DEFAULT_SETTINGS) -> BalanceBreakdown:
    return BalanceBreakdown(
        gender=gender_balance(students),
        academic=academic_balance(students, settings),
        behavioral=behavioral_balance(students, settings),
        special_needs=special_needs_balance(students, settings),
    )


def weighted_aggregate(breakdown: BalanceBreakdown, weights: Weights) -> float:
    """Weighted mean of the four sub-scores.

    Raises:
        InvalidWeights: if a weight is negative or all weights are zero.
    """
    weights.validate()
    return sum(breakdown.get(f) * weights.get(f) for f in BalanceFactor) / weights.total()


def section_score(
    students: Sequence[Student],
    weights: Weights,
    settings: BalanceSettings = DEFAULT_SETTINGS,
) -> float:
    return weighted_aggregate(section_breakdown(students, settings), weights)


def size_penalty(sizes: Sequence[int], settings: BalanceSettings = DEFAULT_SETTINGS) -> float:
    if not sizes:
        return 0.0
    return settings.size_penalty_factor * (max(sizes) - min(sizes))


def partition_score(sections, weights: Weights, settings: BalanceSettings = DEFAULT_SETTINGS) -> float:
    """Sum of per-section weighted scores minus the size-imbalance penalty.

    ``sections`` is any iterable of sections or of student sequences. The
    result is not bounded to 0-100.
    """
    weights.validate()
    total = 0.0
    sizes = []
    for section in sections:
        students = getattr(section, "students", section)
        total += section_score(students, weights, settings)
        sizes.append(len(students))
    return total - size_penalty(sizes, settings)

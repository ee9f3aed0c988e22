"""Placement constraints and the validator that checks them against a partition.

Each constraint kind is its own frozen dataclass and answers two questions
about a :class:`Placement`: is it satisfied, and if not, why. The validator
builds one placement lookup per call, so a full check stays linear in the
number of students plus the total size of the constraints.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Iterable, Optional, Sequence

from .models import BalanceFactor, Partition, StudentId
from .translations import tr

EQUAL_SIZE_TOLERANCE = 2


class ConstraintKind(Enum):
    MUST_BE_TOGETHER = "must_be_together"
    MUST_BE_SEPARATE = "must_be_separate"
    PREFERRED_TEACHER = "preferred_teacher"
    AVOID_TEACHER = "avoid_teacher"
    BALANCED_DISTRIBUTION = "balanced_distribution"
    EQUAL_CLASS_SIZE = "equal_class_size"


class Priority(Enum):
    REQUIRED = "required"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def is_hard(self) -> bool:
        return self in (Priority.REQUIRED, Priority.HIGH)


@dataclass(frozen=True)
class Placement:
    """Read-only view of where every student sits."""
    section_of: dict[StudentId, int]
    sizes: tuple[int, ...]
    teacher_ids: tuple
    names: tuple[str, ...]

    @classmethod
    def of(cls, partition: Partition) -> "Placement":
        return cls(
            section_of=partition.student_section_map(),
            sizes=tuple(partition.sizes()),
            teacher_ids=tuple(s.teacher_id for s in partition.sections),
            names=tuple(s.name for s in partition.sections),
        )

    def name_of(self, index: Optional[int]) -> str:
        if index is None:
            return tr("unassigned")
        return self.names[index]


def _join(values: Iterable) -> str:
    return ", ".join(str(v) for v in values)


# ---------------------------------------------------------------------------
# Constraint kinds
# ---------------------------------------------------------------------------

@dataclass(frozen=True, kw_only=True)
class Constraint:
    """Base for all constraint kinds."""
    kind: ClassVar[ConstraintKind]
    default_reason: ClassVar[str] = "Required"

    priority: Priority = Priority.MEDIUM
    reason: Optional[str] = None

    def is_satisfied(self, placement: Placement) -> bool:
        raise NotImplementedError(f"{type(self).__name__} does not implement is_satisfied")

    def describe(self, placement: Placement) -> str:
        raise NotImplementedError(f"{type(self).__name__} does not implement describe")

    def _reason(self) -> str:
        return self.reason or tr(self.default_reason)


def _student_tuple(constraint: Constraint, student_ids: Sequence[StudentId]) -> tuple:
    unique = tuple(dict.fromkeys(student_ids))
    if len(unique) < 2:
        raise ValueError(f"{type(constraint).__name__} needs at least two distinct students, got {list(student_ids)}")
    return unique


@dataclass(frozen=True)
class MustBeTogether(Constraint):
    """All listed students end up in the same section."""
    kind: ClassVar[ConstraintKind] = ConstraintKind.MUST_BE_TOGETHER

    student_ids: tuple[StudentId, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "student_ids", _student_tuple(self, self.student_ids))

    def sections(self, placement: Placement) -> list[int]:
        return sorted({placement.section_of[sid] for sid in self.student_ids if sid in placement.section_of})

    def is_satisfied(self, placement: Placement) -> bool:
        return len(self.sections(placement)) <= 1

    def describe(self, placement: Placement) -> str:
        return tr(
            "Students {students} must be placed in the same class but are split across {sections} ({reason})"
        ).format(
            students=_join(self.student_ids),
            sections=_join(placement.name_of(i) for i in self.sections(placement)),
            reason=self._reason(),
        )


@dataclass(frozen=True)
class MustBeSeparate(Constraint):
    """No two listed students share a section."""
    kind: ClassVar[ConstraintKind] = ConstraintKind.MUST_BE_SEPARATE

    student_ids: tuple[StudentId, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "student_ids", _student_tuple(self, self.student_ids))

    def clashes(self, placement: Placement) -> dict[int, list[StudentId]]:
        """Section index -> listed students in it, for sections holding more than one."""
        by_section: dict[int, list[StudentId]] = {}
        for sid in self.student_ids:
            index = placement.section_of.get(sid)
            if index is not None:
                by_section.setdefault(index, []).append(sid)
        return {i: ids for i, ids in by_section.items() if len(ids) > 1}

    def is_satisfied(self, placement: Placement) -> bool:
        present = [placement.section_of[sid] for sid in self.student_ids if sid in placement.section_of]
        return len(set(present)) == len(present)

    def describe(self, placement: Placement) -> str:
        clashes = self.clashes(placement)
        index = min(clashes) if clashes else None
        return tr(
            "Students {students} must be placed in different classes but share {section} ({reason})"
        ).format(
            students=_join(clashes.get(index, self.student_ids)),
            section=placement.name_of(index),
            reason=self._reason(),
        )


@dataclass(frozen=True)
class PreferredTeacher(Constraint):
    """The student's section is the one led by the given teacher."""
    kind: ClassVar[ConstraintKind] = ConstraintKind.PREFERRED_TEACHER
    default_reason: ClassVar[str] = "Preference"

    student_id: StudentId = None
    teacher_id: object = None

    def is_satisfied(self, placement: Placement) -> bool:
        index = placement.section_of.get(self.student_id)
        if index is None:
            return True
        return placement.teacher_ids[index] == self.teacher_id

    def describe(self, placement: Placement) -> str:
        return tr(
            "Student {student} should be placed with teacher {teacher} but is in {section} ({reason})"
        ).format(
            student=self.student_id,
            teacher=self.teacher_id,
            section=placement.name_of(placement.section_of.get(self.student_id)),
            reason=self._reason(),
        )


@dataclass(frozen=True)
class AvoidTeacher(Constraint):
    """The student's section is not the one led by the given teacher."""
    kind: ClassVar[ConstraintKind] = ConstraintKind.AVOID_TEACHER
    default_reason: ClassVar[str] = "Preference"

    student_id: StudentId = None
    teacher_id: object = None

    def is_satisfied(self, placement: Placement) -> bool:
        index = placement.section_of.get(self.student_id)
        if index is None:
            return True
        return placement.teacher_ids[index] != self.teacher_id

    def describe(self, placement: Placement) -> str:
        return tr("Student {student} should not be placed with teacher {teacher} ({reason})").format(
            student=self.student_id,
            teacher=self.teacher_id,
            reason=self._reason(),
        )


@dataclass(frozen=True)
class BalancedDistribution(Constraint):
    """Advisory: a factor should be balanced across sections.

    Always satisfied when checked on its own. Its effect comes from the
    factor's weight in the aggregate score, not from a pass/fail check.
    """
    kind: ClassVar[ConstraintKind] = ConstraintKind.BALANCED_DISTRIBUTION
    default_reason: ClassVar[str] = "Balance"

    factor: BalanceFactor = BalanceFactor.GENDER

    def is_satisfied(self, placement: Placement) -> bool:
        return True

    def describe(self, placement: Placement) -> str:
        return tr("Classes should have balanced distribution for {factor} ({reason})").format(
            factor=tr(self.factor.value),
            reason=self._reason(),
        )


@dataclass(frozen=True)
class EqualClassSize(Constraint):
    """Largest and smallest section differ by at most two students."""
    kind: ClassVar[ConstraintKind] = ConstraintKind.EQUAL_CLASS_SIZE
    default_reason: ClassVar[str] = "Balance"

    def spread(self, placement: Placement) -> int:
        if not placement.sizes:
            return 0
        return max(placement.sizes) - min(placement.sizes)

    def is_satisfied(self, placement: Placement) -> bool:
        return self.spread(placement) <= EQUAL_SIZE_TOLERANCE

    def describe(self, placement: Placement) -> str:
        return tr("Class sizes differ by {difference} (at most {tolerance} allowed) ({reason})").format(
            difference=self.spread(placement),
            tolerance=EQUAL_SIZE_TOLERANCE,
            reason=self._reason(),
        )


CONSTRAINT_CLASSES: dict[ConstraintKind, type[Constraint]] = {
    cls.kind: cls
    for cls in (MustBeTogether, MustBeSeparate, PreferredTeacher, AvoidTeacher, BalancedDistribution, EqualClassSize)
}


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def constraint_to_dict(constraint: Constraint) -> dict:
    data = {
        "type": constraint.kind.value,
        "priority": constraint.priority.value,
        "reason": constraint.reason,
    }
    if isinstance(constraint, (MustBeTogether, MustBeSeparate)):
        data["students"] = list(constraint.student_ids)
    elif isinstance(constraint, (PreferredTeacher, AvoidTeacher)):
        data["student"] = constraint.student_id
        data["teacher"] = constraint.teacher_id
    elif isinstance(constraint, BalancedDistribution):
        data["factor"] = constraint.factor.value
    return data


def constraint_from_dict(data: dict) -> Constraint:
    """Build a constraint from its stored form.

    Raises:
        ValueError: on an unknown type, priority or factor, or a malformed
            student list.
    """
    kind = ConstraintKind(data["type"])
    common = {
        "priority": Priority(data.get("priority", Priority.MEDIUM.value)),
        "reason": data.get("reason"),
    }
    if kind in (ConstraintKind.MUST_BE_TOGETHER, ConstraintKind.MUST_BE_SEPARATE):
        return CONSTRAINT_CLASSES[kind](student_ids=tuple(data.get("students", [])), **common)
    if kind in (ConstraintKind.PREFERRED_TEACHER, ConstraintKind.AVOID_TEACHER):
        return CONSTRAINT_CLASSES[kind](student_id=data["student"], teacher_id=data["teacher"], **common)
    if kind == ConstraintKind.BALANCED_DISTRIBUTION:
        return BalancedDistribution(factor=BalanceFactor(data["factor"]), **common)
    return EqualClassSize(**common)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Violation:
    """A constraint that the checked partition does not satisfy."""
    constraint: Constraint
    index: int  # position in the validated constraint list
    priority: Priority
    message: str


@dataclass(frozen=True)
class ValidationResult:
    satisfied: bool
    violations: list[Violation] = field(default_factory=list)

    @property
    def violated_indexes(self) -> frozenset[int]:
        return frozenset(v.index for v in self.violations)

    def new_since(self, previous: "ValidationResult") -> list[Violation]:
        """Violations that were not present in ``previous``."""
        before = previous.violated_indexes
        return [v for v in self.violations if v.index not in before]

    def by_priority(self, priority: Priority) -> list[Violation]:
        return [v for v in self.violations if v.priority == priority]


def validate(partition: Partition, constraints: Sequence[Constraint]) -> ValidationResult:
    """Check every constraint against the partition without modifying it.

    Students named by a constraint but missing from the partition are
    ignored, since they belong to another cohort.
    """
    if not constraints:
        return ValidationResult(satisfied=True)

    placement = Placement.of(partition)
    violations = []
    for index, constraint in enumerate(constraints):
        if not constraint.is_satisfied(placement):
            violations.append(Violation(
                constraint=constraint,
                index=index,
                priority=constraint.priority,
                message=constraint.describe(placement),
            ))
    return ValidationResult(satisfied=not violations, violations=violations)

"""Constraint-aware initial distribution of students into sections.

Strategy:
1. Merge students named by keep-together constraints into groups
   (first constraint wins when a student is listed twice).
2. Every other student becomes a group of one.
3. Place groups largest first, each into the currently smallest section.
4. Pull apart keep-apart students that ended up together where a section
   without any of them exists.

The result is a feasible starting point, not a balanced one; balancing is
the optimizer's job. Conflicts that cannot be resolved here are left for the
validator to report.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .constraints import Constraint, MustBeSeparate, MustBeTogether
from .errors import InvalidSectionCount
from .models import Partition, Section, Student, StudentId
from .translations import tr

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AmbiguousGrouping:
    """A student listed in two keep-together constraints.

    The student stays with the group of ``kept_index``; the other members of
    ``dropped_index`` are grouped without them.
    """
    student_id: StudentId
    kept_index: int
    dropped_index: int

    @property
    def message(self) -> str:
        return tr(
            "Student {student} is listed in keep-together constraints #{kept} and #{dropped}; kept with #{kept}"
        ).format(student=self.student_id, kept=self.kept_index, dropped=self.dropped_index)


def _smallest(sections: list[Section], candidates: Optional[Sequence[int]] = None) -> int:
    """Index of the smallest section, lowest index on ties."""
    indexes = range(len(sections)) if candidates is None else candidates
    return min(indexes, key=lambda i: (len(sections[i]), i))


def build_groups(
    students: Sequence[Student],
    constraints: Sequence[Constraint],
) -> tuple[list[list[Student]], list[AmbiguousGrouping]]:
    """Split the roster into keep-together groups and singletons."""
    lookup = {s.id: s for s in students}
    group_of: dict[StudentId, int] = {}  # student id -> constraint index
    groups: list[list[Student]] = []
    warnings: list[AmbiguousGrouping] = []

    for index, constraint in enumerate(constraints):
        if not isinstance(constraint, MustBeTogether):
            continue
        group = []
        for sid in constraint.student_ids:
            if sid not in lookup:
                continue
            if sid in group_of:
                warning = AmbiguousGrouping(student_id=sid, kept_index=group_of[sid], dropped_index=index)
                logger.warning(warning.message)
                warnings.append(warning)
                continue
            group_of[sid] = index
            group.append(lookup[sid])
        if group:
            groups.append(group)

    for student in students:
        if student.id not in group_of:
            groups.append([student])

    return groups, warnings


def _separate(
    sections: list[Section],
    constraint: MustBeSeparate,
    grouped: set[StudentId],
) -> None:
    """Relocate keep-apart students that share a section, where possible."""
    members = set(constraint.student_ids)
    for sid in constraint.student_ids:
        location = None
        for i, section in enumerate(sections):
            if any(s.id == sid for s in section.students):
                location = i
                break
        if location is None:
            continue
        here = {s.id for s in sections[location].students}
        clashing = [m for m in constraint.student_ids if m in here]
        if len(clashing) < 2:
            continue
        # Keep a grouped member in place; moving it would break its group.
        keeper = next((c for c in clashing if c in grouped), clashing[0])
        if sid == keeper or sid in grouped:
            continue
        free = [
            i for i, section in enumerate(sections)
            if not any(s.id in members for s in section.students)
        ]
        if not free:
            logger.warning(
                "No section free of %s for student %s; left in %s",
                list(constraint.student_ids), sid, sections[location].name,
            )
            continue
        target = _smallest(sections, free)
        sections[target].add(sections[location].remove(sid))
        logger.debug("Moved %s from %s to %s to keep students apart", sid, sections[location].name, sections[target].name)


def distribute(
    students: Sequence[Student],
    constraints: Sequence[Constraint] = (),
    section_count: int = 1,
    teacher_ids: Optional[Sequence] = None,
    section_names: Optional[Sequence[str]] = None,
) -> Partition:
    """Build a starting partition honoring keep-together/keep-apart constraints where it can.

    Never reports infeasibility. Ambiguous keep-together memberships are
    recorded on ``partition.warnings``.

    Raises:
        InvalidSectionCount: if section_count is below one.
    """
    if section_count < 1:
        raise InvalidSectionCount(f"Need at least one section, got {section_count}")

    sections = [
        Section(
            name=section_names[i] if section_names and i < len(section_names) else f"Section {i + 1}",
            teacher_id=teacher_ids[i] if teacher_ids and i < len(teacher_ids) else None,
        )
        for i in range(section_count)
    ]

    if not students:
        logger.info("No students to distribute; returning %d empty sections", section_count)
        return Partition(sections=sections)

    groups, warnings = build_groups(students, constraints)
    groups.sort(key=len, reverse=True)  # stable: ties keep constraint/roster order

    for group in groups:
        target = _smallest(sections)
        for student in group:
            sections[target].add(student)

    grouped = {s.id for group in groups if len(group) > 1 for s in group}
    for constraint in constraints:
        if isinstance(constraint, MustBeSeparate):
            _separate(sections, constraint, grouped)

    logger.info(
        "Distributed %d students into %d sections (sizes %s, %d groups, %d warnings)",
        len(students), section_count, [len(s) for s in sections], len(groups), len(warnings),
    )
    return Partition(sections=sections, warnings=warnings)

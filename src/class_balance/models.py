"""Core data models for class balancing."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, Optional

from .errors import InvalidWeights

StudentId = int | str


class Gender(Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class AcademicLevel(Enum):
    """Academic level, ordered from strongest to weakest."""
    ADVANCED = "advanced"
    PROFICIENT = "proficient"
    DEVELOPING = "developing"
    NEEDS_SUPPORT = "needs_support"


class BehavioralLevel(Enum):
    """Behavioral support needs, ordered from highest to lowest."""
    HIGH_NEEDS = "high_needs"
    MODERATE_NEEDS = "moderate_needs"
    LOW_NEEDS = "low_needs"


class BalanceFactor(Enum):
    """A dimension along which a section is scored."""
    GENDER = "gender"
    ACADEMIC = "academic"
    BEHAVIORAL = "behavioral"
    SPECIAL_NEEDS = "special_needs"


@dataclass(frozen=True)
class Student:
    """A student as seen by the optimizer. Never changes during a run."""
    id: StudentId
    name: str = ""
    gender: Gender = Gender.OTHER
    academic_level: AcademicLevel = AcademicLevel.PROFICIENT
    behavioral_level: BehavioralLevel = BehavioralLevel.MODERATE_NEEDS
    special_needs: bool = False
    special_needs_detail: Optional[str] = None
    grade: Optional[int] = None
    school_year: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "gender": self.gender.value,
            "academic_level": self.academic_level.value,
            "behavioral_level": self.behavioral_level.value,
            "special_needs": self.special_needs,
            "special_needs_detail": self.special_needs_detail,
            "grade": self.grade,
            "school_year": self.school_year
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Student":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            gender=Gender(data.get("gender", Gender.OTHER.value)),
            academic_level=AcademicLevel(data.get("academic_level", AcademicLevel.PROFICIENT.value)),
            behavioral_level=BehavioralLevel(data.get("behavioral_level", BehavioralLevel.MODERATE_NEEDS.value)),
            special_needs=bool(data.get("special_needs", False)),
            special_needs_detail=data.get("special_needs_detail"),
            grade=data.get("grade"),
            school_year=data.get("school_year")
        )


@dataclass
class Weights:
    """Per-factor weights used to combine balance scores."""
    gender: float = 1.0
    academic: float = 1.0
    behavioral: float = 1.0
    special_needs: float = 1.5

    def get(self, factor: BalanceFactor) -> float:
        return getattr(self, factor.value)

    def total(self) -> float:
        return self.gender + self.academic + self.behavioral + self.special_needs

    def validate(self) -> None:
        """Raise InvalidWeights unless every weight is finite and >= 0 and at least one is > 0."""
        for factor in BalanceFactor:
            if not math.isfinite(self.get(factor)):
                raise InvalidWeights(f"Weight for {factor.value} is not a finite number: {self.get(factor)}")
            if self.get(factor) < 0:
                raise InvalidWeights(f"Weight for {factor.value} is negative: {self.get(factor)}")
        if self.total() <= 0:
            raise InvalidWeights("All weights are zero")

    @classmethod
    def for_strategy(cls, strategy: str) -> "Weights":
        """Preset weights for a named placement strategy."""
        if strategy == "balanced":
            return cls(gender=1.0, academic=1.0, behavioral=1.0, special_needs=1.0)
        if strategy == "academic":
            return cls(gender=1.0, academic=2.0, behavioral=1.0, special_needs=1.0)
        if strategy == "behavior":
            return cls(gender=1.0, academic=1.0, behavioral=2.0, special_needs=1.5)
        raise ValueError(f"Unknown strategy: {strategy}")

    def to_dict(self) -> dict:
        return {
            "gender": self.gender,
            "academic": self.academic,
            "behavioral": self.behavioral,
            "special_needs": self.special_needs
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Weights":
        return cls(
            gender=data.get("gender", 1.0),
            academic=data.get("academic", 1.0),
            behavioral=data.get("behavioral", 1.0),
            special_needs=data.get("special_needs", 1.5)
        )


@dataclass
class Section:
    """One class within a partition.

    Mutate through add/remove/replace so the cached breakdown is invalidated.
    """
    name: str
    students: list[Student] = field(default_factory=list)
    teacher_id: Optional[object] = None
    balance_score: Optional[float] = None
    _breakdown: Optional[object] = field(default=None, init=False, repr=False, compare=False)
    _breakdown_settings: Optional[object] = field(default=None, init=False, repr=False, compare=False)

    def __len__(self) -> int:
        return len(self.students)

    def __iter__(self) -> Iterator[Student]:
        return iter(self.students)

    def student_ids(self) -> list[StudentId]:
        return [s.id for s in self.students]

    def invalidate(self) -> None:
        self._breakdown = None
        self.balance_score = None

    def add(self, student: Student) -> None:
        self.students.append(student)
        self.invalidate()

    def remove(self, student_id: StudentId) -> Student:
        for i, student in enumerate(self.students):
            if student.id == student_id:
                del self.students[i]
                self.invalidate()
                return student
        raise KeyError(student_id)

    def replace(self, position: int, student: Student) -> Student:
        """Put student at position, returning whoever was there."""
        old = self.students[position]
        self.students[position] = student
        self.invalidate()
        return old

    def breakdown(self, settings=None):
        """Per-factor balance scores, recomputed only after a structural change."""
        from .metrics import DEFAULT_SETTINGS, section_breakdown

        settings = settings or DEFAULT_SETTINGS
        if self._breakdown is None or self._breakdown_settings != settings:
            self._breakdown = section_breakdown(self.students, settings)
            self._breakdown_settings = settings
        return self._breakdown

    def refresh_score(self, weights: Weights, settings=None) -> float:
        from .metrics import weighted_aggregate

        self.balance_score = weighted_aggregate(self.breakdown(settings), weights)
        return self.balance_score

    def copy(self) -> "Section":
        clone = Section(
            name=self.name,
            students=list(self.students),
            teacher_id=self.teacher_id,
            balance_score=self.balance_score
        )
        clone._breakdown = self._breakdown
        clone._breakdown_settings = self._breakdown_settings
        return clone

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "teacher_id": self.teacher_id,
            "student_ids": self.student_ids(),
            "balance_score": self.balance_score
        }


@dataclass
class Partition:
    """A complete assignment of students to a fixed number of sections."""
    sections: list[Section] = field(default_factory=list)
    warnings: list = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.sections)

    def __getitem__(self, index: int) -> Section:
        return self.sections[index]

    def __iter__(self) -> Iterator[Section]:
        return iter(self.sections)

    def students(self) -> list[Student]:
        return [s for section in self.sections for s in section.students]

    def sizes(self) -> list[int]:
        return [len(section) for section in self.sections]

    def student_section_map(self) -> dict[StudentId, int]:
        """Student id -> section index."""
        lookup: dict[StudentId, int] = {}
        for i, section in enumerate(self.sections):
            for student in section.students:
                lookup[student.id] = i
        return lookup

    def locate(self, student_id: StudentId) -> Optional[tuple[int, int]]:
        """Return (section index, position) of a student, or None."""
        for i, section in enumerate(self.sections):
            for pos, student in enumerate(section.students):
                if student.id == student_id:
                    return i, pos
        return None

    def copy(self) -> "Partition":
        return Partition(
            sections=[section.copy() for section in self.sections],
            warnings=list(self.warnings)
        )

    def to_dict(self) -> dict:
        return {"sections": [section.to_dict() for section in self.sections]}

    @classmethod
    def from_assignment(
        cls,
        students: Iterable[Student],
        assignment: list[list[StudentId]],
        teacher_ids: Optional[list] = None,
        names: Optional[list[str]] = None,
    ) -> "Partition":
        """Rebuild a partition from per-section student id lists.

        Raises:
            ValueError: if an id is unknown or listed more than once.
        """
        lookup = {s.id: s for s in students}
        seen: set[StudentId] = set()
        sections = []
        for i, ids in enumerate(assignment):
            for sid in ids:
                if sid not in lookup:
                    raise ValueError(f"Unknown student {sid!r} in section {i + 1}")
                if sid in seen:
                    raise ValueError(f"Student {sid!r} is assigned more than once")
                seen.add(sid)
            sections.append(Section(
                name=names[i] if names and i < len(names) else f"Section {i + 1}",
                students=[lookup[sid] for sid in ids],
                teacher_id=teacher_ids[i] if teacher_ids and i < len(teacher_ids) else None
            ))
        return cls(sections=sections)


@dataclass
class ColumnMapping:
    """Mapping from Excel columns to student fields."""
    id_column: str = ""
    name_column: str = ""
    firstname_column: str = ""  # Optional: if set, use firstname + lastname
    lastname_column: str = ""   # Optional: if set, use firstname + lastname
    use_separate_name_columns: bool = False
    gender_column: str = ""
    academic_column: str = ""
    behavioral_column: str = ""
    special_needs_column: str = ""
    special_needs_detail_column: str = ""
    grade_column: str = ""
    school_year_column: str = ""

    def to_dict(self) -> dict:
        return {
            "id_column": self.id_column,
            "name_column": self.name_column,
            "firstname_column": self.firstname_column,
            "lastname_column": self.lastname_column,
            "use_separate_name_columns": self.use_separate_name_columns,
            "gender_column": self.gender_column,
            "academic_column": self.academic_column,
            "behavioral_column": self.behavioral_column,
            "special_needs_column": self.special_needs_column,
            "special_needs_detail_column": self.special_needs_detail_column,
            "grade_column": self.grade_column,
            "school_year_column": self.school_year_column
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ColumnMapping":
        return cls(
            id_column=data.get("id_column", ""),
            name_column=data.get("name_column", ""),
            firstname_column=data.get("firstname_column", ""),
            lastname_column=data.get("lastname_column", ""),
            use_separate_name_columns=data.get("use_separate_name_columns", False),
            gender_column=data.get("gender_column", ""),
            academic_column=data.get("academic_column", ""),
            behavioral_column=data.get("behavioral_column", ""),
            special_needs_column=data.get("special_needs_column", ""),
            special_needs_detail_column=data.get("special_needs_detail_column", ""),
            grade_column=data.get("grade_column", ""),
            school_year_column=data.get("school_year_column", "")
        )


@dataclass
class Project:
    """The complete state of one placement exercise."""
    excel_path: str = ""
    column_mapping: ColumnMapping = field(default_factory=ColumnMapping)
    students: list[Student] = field(default_factory=list)
    constraints: list = field(default_factory=list)
    weights: Weights = field(default_factory=Weights)
    section_count: int = 1
    teacher_ids: list = field(default_factory=list)
    assignment: list[list[StudentId]] = field(default_factory=list)

    def to_dict(self) -> dict:
        from .constraints import constraint_to_dict

        return {
            "excel_path": self.excel_path,
            "column_mapping": self.column_mapping.to_dict(),
            "students": [s.to_dict() for s in self.students],
            "constraints": [constraint_to_dict(c) for c in self.constraints],
            "weights": self.weights.to_dict(),
            "section_count": self.section_count,
            "teacher_ids": self.teacher_ids,
            "assignment": self.assignment
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Project":
        from .constraints import constraint_from_dict

        return cls(
            excel_path=data.get("excel_path", ""),
            column_mapping=ColumnMapping.from_dict(data.get("column_mapping", {})),
            students=[Student.from_dict(s) for s in data.get("students", [])],
            constraints=[constraint_from_dict(c) for c in data.get("constraints", [])],
            weights=Weights.from_dict(data.get("weights", {})),
            section_count=data.get("section_count", 1),
            teacher_ids=data.get("teacher_ids", []),
            assignment=data.get("assignment", [])
        )

    def get_student_by_id(self, student_id: StudentId) -> Optional[Student]:
        for student in self.students:
            if student.id == student_id:
                return student
        return None

    def to_partition(self) -> Partition:
        """Partition from the stored assignment (empty sections if none is stored)."""
        assignment = self.assignment or [[] for _ in range(self.section_count)]
        return Partition.from_assignment(self.students, assignment, self.teacher_ids)

    def store_partition(self, partition: Partition) -> None:
        self.assignment = [section.student_ids() for section in partition.sections]
        self.section_count = len(partition.sections)
        self.teacher_ids = [section.teacher_id for section in partition.sections]

    def get_unassigned_students(self) -> list[Student]:
        """Students not present in the stored assignment."""
        assigned_ids = set()
        for ids in self.assignment:
            assigned_ids.update(ids)
        return [s for s in self.students if s.id not in assigned_ids]

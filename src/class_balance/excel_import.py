"""Excel roster import and cohort selection."""

import logging
import numbers
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from .models import AcademicLevel, BehavioralLevel, ColumnMapping, Gender, Student

logger = logging.getLogger(__name__)

GENDER_VALUES = {
    "m": Gender.MALE, "male": Gender.MALE, "boy": Gender.MALE, "männlich": Gender.MALE,
    "f": Gender.FEMALE, "female": Gender.FEMALE, "girl": Gender.FEMALE,
    "w": Gender.FEMALE, "weiblich": Gender.FEMALE,
}

ACADEMIC_VALUES = {
    "advanced": AcademicLevel.ADVANCED,
    "proficient": AcademicLevel.PROFICIENT,
    "developing": AcademicLevel.DEVELOPING,
    "basic": AcademicLevel.DEVELOPING,
    "needs_support": AcademicLevel.NEEDS_SUPPORT,
    "needs support": AcademicLevel.NEEDS_SUPPORT,
    "below basic": AcademicLevel.NEEDS_SUPPORT,
}

BEHAVIORAL_VALUES = {
    "high": BehavioralLevel.HIGH_NEEDS,
    "high_needs": BehavioralLevel.HIGH_NEEDS,
    "high needs": BehavioralLevel.HIGH_NEEDS,
    "medium": BehavioralLevel.MODERATE_NEEDS,
    "moderate": BehavioralLevel.MODERATE_NEEDS,
    "moderate_needs": BehavioralLevel.MODERATE_NEEDS,
    "moderate needs": BehavioralLevel.MODERATE_NEEDS,
    "low": BehavioralLevel.LOW_NEEDS,
    "low_needs": BehavioralLevel.LOW_NEEDS,
    "low needs": BehavioralLevel.LOW_NEEDS,
}

TRUE_VALUES = ('j', 'y', 'yes', 'ja', 'true', '1', 'x')


def read_excel_columns(path: str | Path) -> list[str]:
    """Read column names from an Excel file."""
    df = pd.read_excel(path, nrows=0)
    return list(df.columns)


def read_excel_preview(path: str | Path, rows: int = 5) -> pd.DataFrame:
    """Read a preview of the Excel file."""
    return pd.read_excel(path, nrows=rows)


def _cell(row: pd.Series, column: str):
    if not column:
        return None
    value = row.get(column)
    if value is None or pd.isna(value):
        return None
    return value


def _lookup(value, table: dict, default, label: str):
    if value is None:
        return default
    key = str(value).strip().lower()
    if key in table:
        return table[key]
    logger.debug("Unknown %s value %r, using %s", label, value, default.value)
    return default


def parse_gender(value) -> Gender:
    return _lookup(value, GENDER_VALUES, Gender.OTHER, "gender")


def parse_academic_level(value) -> AcademicLevel:
    return _lookup(value, ACADEMIC_VALUES, AcademicLevel.PROFICIENT, "academic level")


def parse_behavioral_level(value) -> BehavioralLevel:
    return _lookup(value, BEHAVIORAL_VALUES, BehavioralLevel.MODERATE_NEEDS, "behavioral level")


def parse_flag(value) -> bool:
    """Interpret y/n, ja/nein, yes/no, 1/0 and real booleans."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, numbers.Real):
        return value != 0
    return str(value).strip().lower() in TRUE_VALUES


def parse_id(value):
    """Integer ids stay integers (Excel hands them over as floats); anything else is a string."""
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real) and float(value).is_integer():
        return int(value)
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        return text


def import_students(path: str | Path, mapping: ColumnMapping) -> list[Student]:
    """Import students from an Excel file using the given column mapping."""
    df = pd.read_excel(path)
    students = []

    for _, row in df.iterrows():
        raw_id = _cell(row, mapping.id_column)
        if raw_id is None:
            logger.warning("Skipping row without id: %s", row.to_dict())
            continue

        # Parse name - either single column or firstname + lastname
        if mapping.use_separate_name_columns:
            firstname = str(_cell(row, mapping.firstname_column) or "").strip()
            lastname = str(_cell(row, mapping.lastname_column) or "").strip()
            name = f"{firstname} {lastname}".strip()
        else:
            name = str(_cell(row, mapping.name_column) or "").strip()

        grade = _cell(row, mapping.grade_column)
        school_year = _cell(row, mapping.school_year_column)
        detail = _cell(row, mapping.special_needs_detail_column)

        students.append(Student(
            id=parse_id(raw_id),
            name=name,
            gender=parse_gender(_cell(row, mapping.gender_column)),
            academic_level=parse_academic_level(_cell(row, mapping.academic_column)),
            behavioral_level=parse_behavioral_level(_cell(row, mapping.behavioral_column)),
            special_needs=parse_flag(_cell(row, mapping.special_needs_column)),
            special_needs_detail=str(detail) if detail is not None else None,
            grade=int(grade) if grade is not None else None,
            school_year=str(school_year) if school_year is not None else None
        ))

    logger.info("Imported %d students from %s", len(students), path)
    return students


def select_cohort(
    students: Iterable[Student],
    grade: Optional[int] = None,
    school_year: Optional[str] = None,
) -> list[Student]:
    """Students of one grade and school year; a None filter matches everything."""
    return [
        s for s in students
        if (grade is None or s.grade == grade)
        and (school_year is None or s.school_year == school_year)
    ]

"""Hand-off of a finished partition: plain records and Excel export."""

from pathlib import Path
from typing import Optional

import pandas as pd

from .constraints import ValidationResult
from .metrics import DEFAULT_SETTINGS, BalanceSettings, partition_score
from .models import Partition, Weights


def partition_to_records(
    partition: Partition,
    weights: Weights,
    validation: Optional[ValidationResult] = None,
    settings: BalanceSettings = DEFAULT_SETTINGS,
) -> dict:
    """Section -> student ids plus achieved scores, ready for storage.

    Violations are included whenever a validation result is given, so the
    stored run always carries them alongside the scores.
    """
    sections = []
    for section in partition.sections:
        breakdown = section.breakdown(settings)
        sections.append({
            "name": section.name,
            "teacher_id": section.teacher_id,
            "student_ids": section.student_ids(),
            "size": len(section),
            "balance_score": section.refresh_score(weights, settings),
            "factor_scores": breakdown.as_dict(),
        })
    records = {
        "sections": sections,
        "score": partition_score(partition.sections, weights, settings),
        "warnings": [w.message for w in partition.warnings],
    }
    if validation is not None:
        records["satisfied"] = validation.satisfied
        records["violations"] = [
            {"index": v.index, "type": v.constraint.kind.value, "priority": v.priority.value, "message": v.message}
            for v in validation.violations
        ]
    return records


def export_partition_excel(
    partition: Partition,
    path: str | Path,
    id_column: str = "id",
    name_column: str = "name",
    section_column: str = "section",
    use_separate_names: bool = False,
    firstname_column: str = "firstname",
    lastname_column: str = "lastname",
) -> None:
    """Write one row per student with the section they were placed in."""
    rows = []
    for section in partition.sections:
        for student in section.students:
            if use_separate_names:
                # Split name into first/last
                name_parts = student.name.split(None, 1)
                firstname = name_parts[0] if name_parts else ""
                lastname = name_parts[1] if len(name_parts) > 1 else ""
                rows.append({
                    id_column: student.id,
                    firstname_column: firstname,
                    lastname_column: lastname,
                    section_column: section.name
                })
            else:
                rows.append({
                    id_column: student.id,
                    name_column: student.name,
                    section_column: section.name
                })

    columns = [id_column, firstname_column, lastname_column, section_column] if use_separate_names \
        else [id_column, name_column, section_column]
    df = pd.DataFrame(rows, columns=columns)
    df.to_excel(path, index=False)

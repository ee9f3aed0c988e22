"""Project and constraint-list save/load functionality."""

import json
from pathlib import Path

from .constraints import Constraint, constraint_from_dict, constraint_to_dict
from .models import Project


def save_project(project: Project, path: str | Path) -> None:
    """Save a project, including its constraints and assignment, to a JSON file."""
    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(project.to_dict(), f, indent=2, ensure_ascii=False)


def load_project(path: str | Path) -> Project:
    """Load a project from a JSON file.

    Raises:
        ValueError: if a stored constraint or student is malformed.
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return Project.from_dict(data)


def save_constraints(constraints: list[Constraint], path: str | Path) -> None:
    """Write a constraint list as a JSON array of records."""
    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump([constraint_to_dict(c) for c in constraints], f, indent=2, ensure_ascii=False)


def load_constraints(path: str | Path) -> list[Constraint]:
    """Read a constraint list written by save_constraints (or the same record shape).

    Records marked ``"active": false`` are skipped.
    """
    path = Path(path)
    with open(path, 'r', encoding='utf-8') as f:
        records = json.load(f)
    return [constraint_from_dict(r) for r in records if r.get("active", True)]

"""Scoring and applying externally proposed moves and swaps.

Suggestions come from an advisory service as loose JSON. They are parsed
here, scored through the delta-impact evaluator and applied through the same
primitives as manual adjustments, so a suggestion gets no shortcut around
constraint validation.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from .constraints import Constraint
from .errors import InvalidMove
from .impact import AdjustmentImpact, apply_move, apply_swap, preview_move, preview_swap
from .metrics import DEFAULT_SETTINGS, BalanceSettings
from .models import Partition, StudentId, Weights

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Suggestion:
    kind: str  # "swap" or "move"
    student_id: StudentId
    other_student_id: Optional[StudentId] = None  # swaps only
    target_section: Optional[int | str] = None    # moves only: index or section name
    rationale: str = ""

    def __post_init__(self):
        if self.kind not in ("swap", "move"):
            raise ValueError(f"Unknown suggestion type: {self.kind}")
        if self.kind == "swap" and self.other_student_id is None:
            raise ValueError("A swap suggestion needs a second student")
        if self.kind == "move" and self.target_section is None:
            raise ValueError("A move suggestion needs a target section")

    @classmethod
    def from_dict(cls, data: dict) -> "Suggestion":
        """Parse one suggestion from the advisory service payload."""
        kind = data.get("type")
        if kind == "swap":
            return cls(
                kind="swap",
                student_id=data["studentA"]["id"],
                other_student_id=data["studentB"]["id"],
                rationale=data.get("reason", ""),
            )
        if kind == "move":
            return cls(
                kind="move",
                student_id=data["student"]["id"],
                target_section=data["targetClass"],
                rationale=data.get("reason", ""),
            )
        raise ValueError(f"Unknown suggestion type: {kind}")


def parse_suggestions(payload: dict) -> list[Suggestion]:
    """Parse every well-formed suggestion in a payload, logging the rest."""
    suggestions = []
    for item in payload.get("suggestions", []):
        try:
            suggestions.append(Suggestion.from_dict(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed suggestion %r: %s", item, e)
    return suggestions


def _resolve_target(partition: Partition, target: int | str) -> int:
    if isinstance(target, int):
        return target
    for i, section in enumerate(partition.sections):
        if section.name == target:
            return i
    raise InvalidMove(f"No section named {target!r}")


def _move_indexes(partition: Partition, suggestion: Suggestion) -> tuple[int, int]:
    location = partition.locate(suggestion.student_id)
    if location is None:
        raise InvalidMove(f"Student {suggestion.student_id} is not in the partition")
    return location[0], _resolve_target(partition, suggestion.target_section)


def evaluate_suggestion(
    partition: Partition,
    suggestion: Suggestion,
    weights: Weights,
    constraints: Sequence[Constraint] = (),
    settings: BalanceSettings = DEFAULT_SETTINGS,
) -> AdjustmentImpact:
    """Preview a suggestion without applying it."""
    if suggestion.kind == "swap":
        return preview_swap(partition, suggestion.student_id, suggestion.other_student_id, weights, constraints, settings)
    from_index, to_index = _move_indexes(partition, suggestion)
    return preview_move(partition, suggestion.student_id, from_index, to_index, weights, constraints, settings)


def apply_suggestion(
    partition: Partition,
    suggestion: Suggestion,
    weights: Weights,
    constraints: Sequence[Constraint] = (),
    settings: BalanceSettings = DEFAULT_SETTINGS,
) -> AdjustmentImpact:
    """Apply a suggestion in place unless it would introduce a violation."""
    logger.info("Applying %s suggestion for %s: %s", suggestion.kind, suggestion.student_id, suggestion.rationale)
    if suggestion.kind == "swap":
        return apply_swap(
            partition, suggestion.student_id, suggestion.other_student_id, weights, constraints, settings=settings
        )
    from_index, to_index = _move_indexes(partition, suggestion)
    return apply_move(partition, suggestion.student_id, from_index, to_index, weights, constraints, settings=settings)


def rank_suggestions(
    partition: Partition,
    suggestions: Sequence[Suggestion],
    weights: Weights,
    constraints: Sequence[Constraint] = (),
    settings: BalanceSettings = DEFAULT_SETTINGS,
) -> list[tuple[Suggestion, AdjustmentImpact]]:
    """Legal, applicable suggestions with their impact, best overall gain first."""
    scored = []
    for suggestion in suggestions:
        try:
            impact = evaluate_suggestion(partition, suggestion, weights, constraints, settings)
        except InvalidMove as e:
            logger.warning("Skipping suggestion for %s: %s", suggestion.student_id, e)
            continue
        if impact.is_legal:
            scored.append((suggestion, impact))
    scored.sort(key=lambda pair: pair[1].overall.delta, reverse=True)
    return scored

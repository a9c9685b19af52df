"""Pure business-rule checks for segment definitions.

Nothing in this module performs I/O. The service gathers whatever state a
rule needs (current link counts, strategies using a segment) and hands it
in, so every rule can be exercised directly.
"""
from __future__ import annotations

from typing import Iterable

from src.shared.errors import EmptyNameError, InvalidProjectError, LimitExceededError
from src.shared.models.segments import Constraint, FeatureStrategy, SegmentInput


def count_constraint_values(constraints: Iterable[Constraint]) -> int:
    """Total number of match values across *constraints*.

    Constraints without a ``values`` list contribute zero.
    """
    return sum(len(constraint.values or ()) for constraint in constraints)


def validate_segment_values_limit(segment: SegmentInput, limit: int) -> None:
    """Reject segments carrying more than *limit* constraint values."""
    if count_constraint_values(segment.constraints) > limit:
        raise LimitExceededError(
            detail=f"Segments may not have more than {limit} values"
        )


def validate_name_not_empty(name: str | None) -> None:
    if not name:
        raise EmptyNameError()


def validate_strategy_has_room(current_count: int, limit: int) -> None:
    """Reject adding one more segment to a strategy already at *limit*."""
    if current_count >= limit:
        raise LimitExceededError(
            detail=f"Strategies may not have more than {limit} segments"
        )


def validate_desired_segment_count(desired_count: int, limit: int) -> None:
    """Reject a desired strategy segment set larger than *limit*."""
    if desired_count > limit:
        raise LimitExceededError(
            detail=f"Strategies may not have more than {limit} segments"
        )


def projects_in_use(strategies: Iterable[FeatureStrategy]) -> list[str]:
    """Distinct project ids among *strategies*, in first-seen order."""
    seen: dict[str, None] = {}
    for strategy in strategies:
        seen.setdefault(strategy.project_id, None)
    return list(seen)


def validate_segment_project(
    project: str | None,
    strategies: Iterable[FeatureStrategy],
) -> None:
    """Check that a segment scoped to *project* fits the strategies using it.

    An unscoped segment always passes. A scoped segment passes only when
    no strategy uses it, or every strategy using it belongs to *project*.
    """
    if not project:
        return
    used = projects_in_use(strategies)
    if len(used) > 1 or (len(used) == 1 and used[0] != project):
        raise InvalidProjectError(
            detail=(
                "Invalid project. Segment is being used by strategies in "
                f"other projects: {', '.join(used)}"
            )
        )

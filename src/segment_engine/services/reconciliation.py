"""Strategy segment set diffing and join-all batch execution."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Iterable, Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SegmentDiff:
    """Segment ids to unlink from and link to a strategy."""
    to_remove: list[int]
    to_add: list[int]

    @property
    def is_empty(self) -> bool:
        return not self.to_remove and not self.to_add


def diff_segment_ids(current: Iterable[int], desired: Iterable[int]) -> SegmentDiff:
    """Compute ``current - desired`` and ``desired - current``.

    Order follows the input sequences; duplicates in *desired* collapse.
    """
    current_ids = list(dict.fromkeys(current))
    desired_ids = list(dict.fromkeys(desired))
    current_set = set(current_ids)
    desired_set = set(desired_ids)
    return SegmentDiff(
        to_remove=[sid for sid in current_ids if sid not in desired_set],
        to_add=[sid for sid in desired_ids if sid not in current_set],
    )


@dataclass
class BatchOutcome:
    """Result of a join-all batch, one entry per submitted key."""
    succeeded: list[int] = field(default_factory=list)
    failed: list[tuple[int, BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def raise_first_error(self) -> None:
        """Re-raise the first failure in submission order, if any.

        Members that succeeded stay applied.
        """
        if not self.ok:
            raise self.failed[0][1]


async def run_batch(
    label: str,
    keys: Sequence[int],
    calls: Sequence[Awaitable[None]],
) -> BatchOutcome:
    """Issue every call before awaiting any, then wait for all of them.

    A failing member never cancels its siblings; every member runs to
    completion and its outcome is recorded against the matching key.
    """
    outcome = BatchOutcome()
    if not calls:
        return outcome

    results = await asyncio.gather(*calls, return_exceptions=True)
    for key, result in zip(keys, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            outcome.failed.append((key, result))
            logger.warning("%s failed for segment %s: %s", label, key, result)
        else:
            outcome.succeeded.append(key)

    if not outcome.ok:
        logger.warning(
            "%s partially applied: %d succeeded, %d failed",
            label, len(outcome.succeeded), len(outcome.failed),
        )
    return outcome

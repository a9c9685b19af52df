"""Structural validation of raw segment payloads."""
from __future__ import annotations

from typing import Any

import pydantic

from src.shared.errors import ValidationError
from src.shared.models.segments import SegmentInput


def _summarize(exc: pydantic.ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "<root>"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)


def validate_segment_input(raw: Any) -> SegmentInput:
    """Validate an untyped payload into a :class:`SegmentInput`.

    Accepts a mapping or any object exposing the segment fields as
    attributes (e.g. an existing :class:`Segment`).

    Raises:
        ValidationError: If the payload does not have the segment shape.
    """
    if isinstance(raw, SegmentInput):
        raw = raw.model_dump()
    try:
        return SegmentInput.model_validate(
            raw, from_attributes=not isinstance(raw, dict)
        )
    except pydantic.ValidationError as exc:
        raise ValidationError(detail=f"Invalid segment: {_summarize(exc)}") from exc

"""Identifier format checks for MongoDB ObjectIds."""

from __future__ import annotations

from typing import Any

from bson import ObjectId

from .errors import WorkoutNotFoundError


def is_valid_object_id(value: Any) -> bool:
    """Return ``True`` when ``value`` is a 24 character hexadecimal ObjectId string.

    Only the format is checked, not whether a document exists. Never raises.
    """
    if not isinstance(value, str) or len(value) != 24:
        return False
    return ObjectId.is_valid(value)


def parse_object_id(value: Any) -> ObjectId:
    """Convert a path identifier to an ObjectId, treating malformed input as not found."""
    if not is_valid_object_id(value):
        raise WorkoutNotFoundError()
    return ObjectId(value)

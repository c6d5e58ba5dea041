"""Validated inputs for workout writes, checked before anything reaches the store."""

from __future__ import annotations

from typing import Any

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import WorkoutValidationError
from .identifiers import is_valid_object_id


class WorkoutExerciseInput(BaseModel):
    """One exercise entry in a workout payload."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    exercise_id: str
    sets: int | None = Field(default=None, ge=1)
    reps: int | None = Field(default=None, ge=1)
    weight: float | None = Field(default=None, ge=0)
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("exercise_id")
    @classmethod
    def _check_exercise_id(cls, value: str) -> str:
        if not is_valid_object_id(value):
            raise ValueError("must be a valid exercise identifier")
        return value

    def to_document(self) -> dict[str, Any]:
        return {
            "exerciseId": ObjectId(self.exercise_id),
            "sets": self.sets,
            "reps": self.reps,
            "weight": self.weight,
            "notes": self.notes,
        }


class WorkoutInput(BaseModel):
    """Payload accepted when creating a workout."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    exercises: list[WorkoutExerciseInput] = Field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "exercises": [exercise.to_document() for exercise in self.exercises],
        }


class WorkoutUpdateInput(BaseModel):
    """Partial payload for updates; only the fields sent are applied."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    exercises: list[WorkoutExerciseInput] | None = None

    @field_validator("name", "exercises")
    @classmethod
    def _reject_null(cls, value: Any) -> Any:
        # Only runs for fields present in the payload.
        if value is None:
            raise ValueError("cannot be null")
        return value

    def to_changes(self) -> dict[str, Any]:
        """Return the ``$set`` document for the fields present in the payload."""
        changes: dict[str, Any] = {}
        for field_name in self.model_fields_set:
            if field_name == "exercises":
                changes["exercises"] = [exercise.to_document() for exercise in self.exercises or []]
            else:
                changes[field_name] = getattr(self, field_name)
        return changes


def validate_workout(payload: Any) -> WorkoutInput:
    """Validate a create payload, raising :class:`WorkoutValidationError` on failure."""
    try:
        return WorkoutInput.model_validate(payload)
    except ValidationError as exc:
        raise WorkoutValidationError(_format_errors(exc)) from exc


def validate_workout_update(payload: Any) -> WorkoutUpdateInput:
    """Validate an update payload, raising :class:`WorkoutValidationError` on failure."""
    try:
        return WorkoutUpdateInput.model_validate(payload)
    except ValidationError as exc:
        raise WorkoutValidationError(_format_errors(exc)) from exc


def _format_errors(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "payload"
        parts.append(f"{location}: {error['msg']}")
    return "Workout validation failed: " + "; ".join(parts)


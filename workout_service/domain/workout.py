from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class Exercise:
    """Referenced exercise resolved at read time; owned by another collection."""

    exercise_id: str
    name: str | None
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class WorkoutExercise:
    """Exercise reference embedded in a workout with its workout-specific fields."""

    exercise_id: str | None
    sets: int | None = None
    reps: int | None = None
    weight: float | None = None
    notes: str | None = None
    exercise: Exercise | None = None


@dataclass(slots=True)
class Workout:
    """Aggregate root for a set of exercises performed together."""

    workout_id: str
    name: str | None
    created_at: datetime | None
    updated_at: datetime | None
    description: str | None = None
    exercises: list[WorkoutExercise] = field(default_factory=list)

"""HTTP route definitions for the workout service."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from pydantic import BaseModel

from ..domain.errors import WorkoutServiceError
from ..domain.service import WorkoutService
from ..domain.workout import Exercise, Workout, WorkoutExercise

logger = logging.getLogger(__name__)

router = APIRouter(tags=["workouts"])


def _isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class ExerciseResponse(BaseModel):
    """Resolved exercise document referenced by a workout entry."""

    id: str
    name: str | None = None
    attributes: dict[str, Any] = {}

    @classmethod
    def from_domain(cls, exercise: Exercise) -> "ExerciseResponse":
        return cls(id=exercise.exercise_id, name=exercise.name, attributes=exercise.attributes)


class WorkoutExerciseResponse(BaseModel):
    """Exercise entry; ``exercise`` is populated on reads only."""

    exercise_id: str | None = None
    exercise: ExerciseResponse | None = None
    sets: int | None = None
    reps: int | None = None
    weight: float | None = None
    notes: str | None = None

    @classmethod
    def from_domain(cls, entry: WorkoutExercise) -> "WorkoutExerciseResponse":
        return cls(
            exercise_id=entry.exercise_id,
            exercise=ExerciseResponse.from_domain(entry.exercise) if entry.exercise else None,
            sets=entry.sets,
            reps=entry.reps,
            weight=entry.weight,
            notes=entry.notes,
        )


class WorkoutResponse(BaseModel):
    """Serialised representation of a `Workout` aggregate."""

    id: str
    name: str | None = None
    description: str | None = None
    exercises: list[WorkoutExerciseResponse]
    created_at: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_domain(cls, workout: Workout) -> "WorkoutResponse":
        """Build a response model from the domain aggregate."""
        return cls(
            id=workout.workout_id,
            name=workout.name,
            description=workout.description,
            exercises=[WorkoutExerciseResponse.from_domain(entry) for entry in workout.exercises],
            created_at=_isoformat(workout.created_at),
            updated_at=_isoformat(workout.updated_at),
        )


def get_service(request: Request) -> WorkoutService:
    """Resolve the `WorkoutService` stored on the FastAPI application state."""
    service: WorkoutService = request.app.state.workout_service
    return service


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Turn any failure inside a handler into an HTTP error carrying its message."""
    try:
        yield
    except WorkoutServiceError as exc:
        if exc.status_code >= 500:
            logger.warning("%s failed: %s", operation, exc)
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("%s failed unexpectedly", operation)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc


@router.get("/workouts", response_model=list[WorkoutResponse])
def get_all_workouts(service: WorkoutService = Depends(get_service)) -> list[WorkoutResponse]:
    """List every workout newest first with exercises resolved."""
    with _translate_errors("list workouts"):
        workouts = service.list_workouts()
        return [WorkoutResponse.from_domain(workout) for workout in workouts]


@router.get("/workouts/{workout_id}", response_model=WorkoutResponse)
def get_workout(
    workout_id: str,
    service: WorkoutService = Depends(get_service),
) -> WorkoutResponse:
    """Retrieve a single workout with exercises resolved."""
    with _translate_errors("get workout"):
        return WorkoutResponse.from_domain(service.get_workout(workout_id))


@router.post("/workouts", response_model=WorkoutResponse, status_code=status.HTTP_200_OK)
def create_workout(
    payload: Any = Body(...),
    service: WorkoutService = Depends(get_service),
) -> WorkoutResponse:
    """Create a workout from the request body."""
    with _translate_errors("create workout"):
        return WorkoutResponse.from_domain(service.create_workout(payload))


@router.patch("/workouts/{workout_id}", response_model=WorkoutResponse)
@router.put("/workouts/{workout_id}", response_model=WorkoutResponse)
def update_workout(
    workout_id: str,
    payload: Any = Body(...),
    service: WorkoutService = Depends(get_service),
) -> WorkoutResponse:
    """Apply the request body to an existing workout and return the result."""
    with _translate_errors("update workout"):
        return WorkoutResponse.from_domain(service.update_workout(workout_id, payload))


@router.delete("/workouts/{workout_id}", response_model=WorkoutResponse)
def delete_workout(
    workout_id: str,
    service: WorkoutService = Depends(get_service),
) -> WorkoutResponse:
    """Delete a workout and pull it from every workout plan that references it."""
    with _translate_errors("delete workout"):
        return WorkoutResponse.from_domain(service.delete_workout(workout_id))

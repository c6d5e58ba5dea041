"""Workout service orchestrating validation, persistence, and the plan cascade."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

from pymongo.errors import PyMongoError

from .contracts import validate_workout, validate_workout_update
from .errors import CascadeError, WorkoutNotFoundError, WorkoutStoreError
from .identifiers import parse_object_id
from .workout import Workout
from ..metrics import CASCADE_FAILURES, PLANS_MODIFIED, WORKOUT_WRITES
from ..repository import WorkoutPlanRepository, WorkoutRepository

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors() -> Iterator[None]:
    try:
        yield
    except PyMongoError as exc:
        raise WorkoutStoreError(str(exc)) from exc


class WorkoutService:
    """Workout workflows backed by MongoDB storage."""

    def __init__(
        self,
        repository: WorkoutRepository,
        plan_repository: WorkoutPlanRepository,
    ) -> None:
        """Store the repositories for workouts and the plans that reference them."""
        self._repository = repository
        self._plans = plan_repository

    def list_workouts(self) -> list[Workout]:
        """Return all workouts newest first with exercise references resolved."""
        with _store_errors():
            return self._repository.list_workouts()

    def get_workout(self, workout_id: str) -> Workout:
        """Retrieve a workout, raising :class:`WorkoutNotFoundError` if it cannot be found."""
        object_id = parse_object_id(workout_id)
        with _store_errors():
            workout = self._repository.get_workout(object_id)
        if workout is None:
            raise WorkoutNotFoundError()
        return workout

    def create_workout(self, payload: Any) -> Workout:
        """Validate and persist a new workout."""
        workout_input = validate_workout(payload)
        with _store_errors():
            workout = self._repository.create_workout(workout_input)
        WORKOUT_WRITES.labels(operation="create").inc()
        logger.info("workout created id=%s", workout.workout_id)
        return workout

    def update_workout(self, workout_id: str, payload: Any) -> Workout:
        """Apply a partial update and return the post-update workout."""
        object_id = parse_object_id(workout_id)
        changes = validate_workout_update(payload).to_changes()
        with _store_errors():
            workout = self._repository.update_workout(object_id, changes)
        if workout is None:
            raise WorkoutNotFoundError()
        WORKOUT_WRITES.labels(operation="update").inc()
        logger.info("workout updated id=%s fields=%s", workout.workout_id, sorted(changes))
        return workout

    def delete_workout(self, workout_id: str) -> Workout:
        """Delete a workout, then pull its membership entries from every workout plan.

        The two steps are independent writes with no transaction around them.
        Once the delete succeeds it is never undone: if pulling plan references
        fails afterwards, plans may keep a dangling ``workoutId`` entry and a
        :class:`CascadeError` is raised. Nothing is pulled when no workout matched.
        """
        object_id = parse_object_id(workout_id)
        with _store_errors():
            workout = self._repository.delete_workout(object_id)
        if workout is None:
            raise WorkoutNotFoundError()
        WORKOUT_WRITES.labels(operation="delete").inc()

        try:
            modified = self._plans.pull_workout_references(object_id)
        except Exception as exc:
            CASCADE_FAILURES.inc()
            logger.error(
                "workout %s deleted but plan references were not pulled; plans may reference it: %s",
                workout.workout_id,
                exc,
            )
            raise CascadeError(workout.workout_id, str(exc)) from exc

        PLANS_MODIFIED.inc(modified)
        logger.info("workout deleted id=%s plans_updated=%d", workout.workout_id, modified)
        return workout

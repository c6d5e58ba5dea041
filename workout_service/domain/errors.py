"""Outcome types raised by the workout service and mapped to HTTP statuses by the API."""

from __future__ import annotations


class WorkoutServiceError(Exception):
    """Base class for failures surfaced to API consumers."""

    status_code: int = 500


class WorkoutNotFoundError(WorkoutServiceError):
    """Identifier is malformed or no workout matches it."""

    status_code = 404

    def __init__(self, message: str = "Workout not found") -> None:
        super().__init__(message)


class WorkoutValidationError(WorkoutServiceError):
    """Payload failed the workout field rules.

    Reported as a generic server failure, the same way store errors are.
    """

    status_code = 500


class WorkoutStoreError(WorkoutServiceError):
    """The document store rejected or failed an operation."""

    status_code = 500


class CascadeError(WorkoutStoreError):
    """Workout was deleted but its workout plan references could not be pulled."""

    def __init__(self, workout_id: str, message: str) -> None:
        super().__init__(message)
        self.workout_id = workout_id

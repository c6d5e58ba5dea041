"""MongoDB repositories for workout and workout plan documents."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.database import Database

from .domain.contracts import WorkoutInput
from .domain.workout import Exercise, Workout, WorkoutExercise

WORKOUTS = "workouts"
EXERCISES = "exercises"
WORKOUT_PLANS = "workoutplans"

# Stored field names; the workout plan shape is owned by another service.
CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"
EXERCISE_ID = "exerciseId"
PLAN_WORKOUT_ID = "workoutId"

# Newest first; _id breaks ties between workouts stored in the same millisecond.
DEFAULT_SORT = [(CREATED_AT, DESCENDING), ("_id", DESCENDING)]


def _utcnow() -> datetime:
    """Current UTC time truncated to the millisecond precision BSON dates keep."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def _as_utc(value: Any) -> datetime | None:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _as_id(value: Any) -> str | None:
    return None if value is None else str(value)


class WorkoutRepository:
    """Workout persistence with read-time resolution of exercise references."""

    def __init__(self, database: Database) -> None:
        """Store the collections used for all workout interactions."""
        self._database = database
        self._workouts = database[WORKOUTS]
        self._exercises = database[EXERCISES]

    def ensure_indexes(self) -> None:
        """Create the indexes backing the default order and the plan cascade."""
        self._workouts.create_index(DEFAULT_SORT, name="createdAt_desc_id_desc")
        self._database[WORKOUT_PLANS].create_index(
            [(f"workouts.{PLAN_WORKOUT_ID}", ASCENDING)], name="workouts_workoutId"
        )

    def list_workouts(self) -> list[Workout]:
        """Return every workout, newest first, with exercises resolved."""
        documents = list(self._workouts.find({}).sort(DEFAULT_SORT))
        return self._populate(documents)

    def get_workout(self, workout_id: ObjectId) -> Workout | None:
        """Fetch a workout with exercises resolved or return ``None``."""
        document = self._workouts.find_one({"_id": workout_id})
        if document is None:
            return None
        return self._populate([document])[0]

    def create_workout(self, payload: WorkoutInput) -> Workout:
        """Insert a workout and return the stored record."""
        now = _utcnow()
        document = payload.to_document()
        document[CREATED_AT] = now
        document[UPDATED_AT] = now
        result = self._workouts.insert_one(document)
        document["_id"] = result.inserted_id
        return self._map_record(document)

    def update_workout(self, workout_id: ObjectId, changes: dict[str, Any]) -> Workout | None:
        """Apply ``changes`` and return the post-update record, or ``None`` if absent."""
        document = self._workouts.find_one_and_update(
            {"_id": workout_id},
            {"$set": {**changes, UPDATED_AT: _utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if document is None:
            return None
        return self._map_record(document)

    def delete_workout(self, workout_id: ObjectId) -> Workout | None:
        """Remove a workout and return what was deleted, or ``None`` if nothing matched."""
        document = self._workouts.find_one_and_delete({"_id": workout_id})
        if document is None:
            return None
        return self._map_record(document)

    def _populate(self, documents: list[dict[str, Any]]) -> list[Workout]:
        """Map workout documents, batch-resolving their exercise references."""
        exercise_ids = {
            entry[EXERCISE_ID]
            for document in documents
            for entry in _entries(document)
            if entry.get(EXERCISE_ID) is not None
        }
        exercises = self._find_exercises(exercise_ids)
        return [self._map_record(document, exercises) for document in documents]

    def _find_exercises(self, exercise_ids: Iterable[Any]) -> dict[Any, Exercise]:
        ids = list(exercise_ids)
        if not ids:
            return {}
        return {
            document["_id"]: self._map_exercise(document)
            for document in self._exercises.find({"_id": {"$in": ids}})
        }

    def _map_record(
        self,
        document: dict[str, Any],
        exercises: dict[Any, Exercise] | None = None,
    ) -> Workout:
        """Convert a raw workout document into the domain ``Workout`` dataclass."""
        entries = []
        for entry in _entries(document):
            exercise_id = entry.get(EXERCISE_ID)
            entries.append(
                WorkoutExercise(
                    exercise_id=_as_id(exercise_id),
                    sets=entry.get("sets"),
                    reps=entry.get("reps"),
                    weight=entry.get("weight"),
                    notes=entry.get("notes"),
                    exercise=(exercises or {}).get(exercise_id),
                )
            )
        created_at = _as_utc(document.get(CREATED_AT))
        return Workout(
            workout_id=str(document["_id"]),
            name=document.get("name"),
            description=document.get("description"),
            exercises=entries,
            created_at=created_at,
            updated_at=_as_utc(document.get(UPDATED_AT)) or created_at,
        )

    def _map_exercise(self, document: dict[str, Any]) -> Exercise:
        attributes = {
            key: _plain(value) for key, value in document.items() if key not in ("_id", "name")
        }
        return Exercise(
            exercise_id=str(document["_id"]),
            name=document.get("name"),
            attributes=attributes,
        )


class WorkoutPlanRepository:
    """Workout plan persistence limited to the workout deletion cascade."""

    def __init__(self, database: Database) -> None:
        self._plans = database[WORKOUT_PLANS]

    def pull_workout_references(self, workout_id: ObjectId) -> int:
        """Remove membership entries for ``workout_id`` from every plan.

        Returns the number of plans that were modified.
        """
        result = self._plans.update_many(
            {},
            {"$pull": {"workouts": {PLAN_WORKOUT_ID: workout_id}}},
        )
        return result.modified_count


def _entries(document: dict[str, Any]) -> list[dict[str, Any]]:
    return [entry for entry in document.get("exercises") or [] if isinstance(entry, dict)]


def _plain(value: Any) -> Any:
    """Convert BSON-specific values in an exercise document into JSON-friendly ones."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return _as_utc(value).isoformat()
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value

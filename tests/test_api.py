from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from bson import ObjectId
from fastapi import FastAPI
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from pymongo.errors import AutoReconnect, ServerSelectionTimeoutError

from workout_service.api import routes
from workout_service.api.errors import register_error_handlers
from workout_service.domain.contracts import WorkoutInput
from workout_service.domain.service import WorkoutService
from workout_service.domain.workout import Exercise, Workout, WorkoutExercise


class FakeWorkoutRepository:
    """In-memory repository mimicking MongoDB-backed behaviors."""

    def __init__(self) -> None:
        self._workouts: dict[ObjectId, Workout] = {}
        self.exercises: dict[str, Exercise] = {}
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.fail_with: Exception | None = None

    def add_exercise(self, name: str, **attributes: Any) -> str:
        exercise_id = str(ObjectId())
        self.exercises[exercise_id] = Exercise(exercise_id=exercise_id, name=name, attributes=attributes)
        return exercise_id

    def _tick(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _resolve(self, workout: Workout) -> Workout:
        return replace(
            workout,
            exercises=[
                replace(entry, exercise=self.exercises.get(entry.exercise_id))
                for entry in workout.exercises
            ],
        )

    def list_workouts(self) -> list[Workout]:
        self._check()
        ordered = sorted(
            self._workouts.items(),
            key=lambda item: (item[1].created_at, item[0]),
            reverse=True,
        )
        return [self._resolve(workout) for _, workout in ordered]

    def get_workout(self, workout_id: ObjectId) -> Workout | None:
        self._check()
        workout = self._workouts.get(workout_id)
        return self._resolve(workout) if workout else None

    def create_workout(self, payload: WorkoutInput) -> Workout:
        self._check()
        object_id = ObjectId()
        now = self._tick()
        workout = Workout(
            workout_id=str(object_id),
            name=payload.name,
            description=payload.description,
            exercises=[_entry(document) for document in payload.to_document()["exercises"]],
            created_at=now,
            updated_at=now,
        )
        self._workouts[object_id] = workout
        return workout

    def update_workout(self, workout_id: ObjectId, changes: dict[str, Any]) -> Workout | None:
        self._check()
        workout = self._workouts.get(workout_id)
        if workout is None:
            return None
        values = dict(changes)
        if "exercises" in values:
            values["exercises"] = [_entry(document) for document in values["exercises"]]
        updated = replace(workout, updated_at=self._tick(), **values)
        self._workouts[workout_id] = updated
        return updated

    def delete_workout(self, workout_id: ObjectId) -> Workout | None:
        self._check()
        return self._workouts.pop(workout_id, None)


class FakeWorkoutPlanRepository:
    """Workout plans held as plain documents keyed by plan name."""

    def __init__(self) -> None:
        self.plans: dict[str, list[dict[str, Any]]] = {}
        self.pulled: list[ObjectId] = []
        self.fail_with: Exception | None = None

    def pull_workout_references(self, workout_id: ObjectId) -> int:
        self.pulled.append(workout_id)
        if self.fail_with is not None:
            raise self.fail_with
        modified = 0
        for name, entries in self.plans.items():
            kept = [entry for entry in entries if entry["workoutId"] != workout_id]
            if len(kept) != len(entries):
                self.plans[name] = kept
                modified += 1
        return modified


def _entry(document: dict[str, Any]) -> WorkoutExercise:
    return WorkoutExercise(
        exercise_id=str(document["exerciseId"]),
        sets=document["sets"],
        reps=document["reps"],
        weight=document["weight"],
        notes=document["notes"],
    )


@pytest.fixture
def api_client():
    """Provide a FastAPI test client with isolated state."""
    repository = FakeWorkoutRepository()
    plans = FakeWorkoutPlanRepository()
    service = WorkoutService(repository, plans)

    app = FastAPI()
    app.include_router(routes.router)
    register_error_handlers(app)
    app.state.workout_service = service

    with TestClient(app) as client:
        yield client, repository, plans


def _create(client: TestClient, name: str, **fields: Any) -> dict[str, Any]:
    response = client.post("/workouts", json={"name": name, **fields})
    assert response.status_code == 200, response.text
    return response.json()


def test_create_then_get_round_trips_payload(api_client):
    client, repository, _ = api_client
    bench = repository.add_exercise("Bench press", muscle_group="chest")
    created = _create(
        client,
        "Push day",
        description="Chest and triceps",
        exercises=[{"exercise_id": bench, "sets": 3, "reps": 8, "weight": 60.5}],
    )

    assert created["id"]
    assert created["created_at"]
    assert created["exercises"][0]["exercise"] is None

    fetched = client.get(f"/workouts/{created['id']}")
    assert fetched.status_code == 200
    body = fetched.json()
    assert body["name"] == "Push day"
    assert body["description"] == "Chest and triceps"
    assert body["created_at"] == created["created_at"]
    entry = body["exercises"][0]
    assert entry["exercise_id"] == bench
    assert (entry["sets"], entry["reps"], entry["weight"]) == (3, 8, 60.5)
    assert entry["exercise"] == {
        "id": bench,
        "name": "Bench press",
        "attributes": {"muscle_group": "chest"},
    }


def test_list_returns_newest_first_and_is_repeatable(api_client):
    client, _, _ = api_client
    a = _create(client, "A")
    b = _create(client, "B")
    c = _create(client, "C")

    first = client.get("/workouts")
    second = client.get("/workouts")
    assert first.status_code == 200
    assert [item["id"] for item in first.json()] == [c["id"], b["id"], a["id"]]
    assert first.json() == second.json()


def test_list_resolves_exercises_and_tolerates_missing_reference(api_client):
    client, repository, _ = api_client
    squat = repository.add_exercise("Squat")
    gone = str(ObjectId())
    _create(client, "Legs", exercises=[{"exercise_id": squat}, {"exercise_id": gone}])

    items = client.get("/workouts").json()
    resolved = items[0]["exercises"]
    assert resolved[0]["exercise"]["name"] == "Squat"
    assert resolved[1]["exercise_id"] == gone
    assert resolved[1]["exercise"] is None


@pytest.mark.parametrize("bad_id", ["123", "not-an-id", "z" * 24, "a" * 25, "abcdefabcdef"])
@pytest.mark.parametrize("method", ["get", "patch", "delete"])
def test_malformed_id_is_not_found(api_client, method, bad_id):
    client, _, plans = api_client
    kwargs = {"json": {"name": "x"}} if method == "patch" else {}
    response = client.request(method.upper(), f"/workouts/{bad_id}", **kwargs)
    assert response.status_code == 404
    assert response.json() == {"error": "Workout not found"}
    assert plans.pulled == []


@pytest.mark.parametrize("method", ["get", "patch", "put", "delete"])
def test_absent_id_is_not_found(api_client, method):
    client, _, _ = api_client
    kwargs = {"json": {"name": "x"}} if method in ("patch", "put") else {}
    response = client.request(method.upper(), f"/workouts/{ObjectId()}", **kwargs)
    assert response.status_code == 404
    assert response.json() == {"error": "Workout not found"}


def test_update_applies_partial_payload(api_client):
    client, repository, _ = api_client
    row = repository.add_exercise("Row")
    created = _create(client, "Pull day", description="Back")

    response = client.patch(
        f"/workouts/{created['id']}",
        json={"name": "Pull day v2", "exercises": [{"exercise_id": row, "sets": 4, "reps": 10}]},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == created["id"]
    assert body["name"] == "Pull day v2"
    assert body["description"] == "Back"
    assert body["exercises"][0]["exercise_id"] == row
    assert body["updated_at"] > created["updated_at"]


def test_update_rejects_invalid_fields_as_server_failure(api_client):
    client, _, _ = api_client
    created = _create(client, "Core")

    response = client.patch(f"/workouts/{created['id']}", json={"name": None})
    assert response.status_code == 500
    assert response.json()["error"].startswith("Workout validation failed")

    unchanged = client.get(f"/workouts/{created['id']}").json()
    assert unchanged["name"] == "Core"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"name": "   "},
        {"name": "Bad sets", "exercises": [{"exercise_id": str(ObjectId()), "sets": 0}]},
        {"name": "Bad ref", "exercises": [{"exercise_id": "nope"}]},
        ["not", "an", "object"],
    ],
)
def test_create_validation_failures_are_generic_errors(api_client, payload):
    client, _, _ = api_client
    response = client.post("/workouts", json=payload)
    assert response.status_code == 500
    assert "error" in response.json()
    assert client.get("/workouts").json() == []


def test_create_without_body_reports_error_field(api_client):
    client, _, _ = api_client
    response = client.post("/workouts")
    assert response.status_code == 500
    assert "error" in response.json()


def test_delete_pulls_references_from_every_plan(api_client):
    client, _, plans = api_client
    doomed = _create(client, "Doomed")
    kept = _create(client, "Kept")
    doomed_id, kept_id = ObjectId(doomed["id"]), ObjectId(kept["id"])
    plans.plans = {
        "strength": [{"workoutId": doomed_id, "day": 1}, {"workoutId": kept_id, "day": 2}],
        "cardio": [{"workoutId": doomed_id, "day": 3}],
        "rest": [{"workoutId": kept_id, "day": 4}],
    }

    response = client.delete(f"/workouts/{doomed['id']}")
    assert response.status_code == 200
    assert response.json()["id"] == doomed["id"]
    assert response.json()["name"] == "Doomed"

    assert plans.plans == {
        "strength": [{"workoutId": kept_id, "day": 2}],
        "cardio": [],
        "rest": [{"workoutId": kept_id, "day": 4}],
    }
    assert client.get(f"/workouts/{doomed['id']}").status_code == 404
    assert client.get(f"/workouts/{kept['id']}").status_code == 200


def test_delete_of_absent_workout_does_not_cascade(api_client):
    client, _, plans = api_client
    other = ObjectId()
    plans.plans = {"strength": [{"workoutId": other}]}

    response = client.delete(f"/workouts/{ObjectId()}")
    assert response.status_code == 404
    assert plans.pulled == []
    assert plans.plans == {"strength": [{"workoutId": other}]}


def test_second_delete_of_same_workout_is_not_found(api_client):
    client, _, plans = api_client
    created = _create(client, "Once")

    assert client.delete(f"/workouts/{created['id']}").status_code == 200
    assert client.delete(f"/workouts/{created['id']}").status_code == 404
    assert plans.pulled == [ObjectId(created["id"])]


def test_cascade_failure_reports_error_but_keeps_delete(api_client):
    client, _, plans = api_client
    created = _create(client, "Half gone")
    plans.plans = {"strength": [{"workoutId": ObjectId(created["id"])}]}
    plans.fail_with = AutoReconnect("connection reset")

    response = client.delete(f"/workouts/{created['id']}")
    assert response.status_code == 500
    assert response.json() == {"error": "connection reset"}
    assert client.get(f"/workouts/{created['id']}").status_code == 404
    assert plans.plans == {"strength": [{"workoutId": ObjectId(created["id"])}]}


def test_store_failure_on_delete_skips_cascade(api_client):
    client, repository, plans = api_client
    created = _create(client, "Stuck")
    repository.fail_with = ServerSelectionTimeoutError("no servers available")

    response = client.delete(f"/workouts/{created['id']}")
    assert response.status_code == 500
    assert response.json() == {"error": "no servers available"}
    assert plans.pulled == []


def test_store_failure_on_list_exposes_message(api_client):
    client, repository, _ = api_client
    repository.fail_with = ServerSelectionTimeoutError("mongo unreachable")

    response = client.get("/workouts")
    assert response.status_code == 500
    assert response.json() == {"error": "mongo unreachable"}


def test_unexpected_error_is_caught_by_handler(api_client):
    client, repository, _ = api_client
    repository.fail_with = RuntimeError("boom")

    response = client.get(f"/workouts/{ObjectId()}")
    assert response.status_code == 500
    assert response.json() == {"error": "boom"}


def _plans_modified() -> float:
    return REGISTRY.get_sample_value("workout_plans_modified_total") or 0.0


def test_delete_counts_modified_plans(api_client):
    client, _, plans = api_client
    created = _create(client, "Counted")
    workout_id = ObjectId(created["id"])
    plans.plans = {
        "a": [{"workoutId": workout_id}, {"workoutId": workout_id}],
        "b": [{"workoutId": workout_id}],
        "c": [{"workoutId": ObjectId()}],
    }
    before = _plans_modified()

    assert client.delete(f"/workouts/{created['id']}").status_code == 200
    assert _plans_modified() == before + 2

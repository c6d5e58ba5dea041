"""Prometheus counters for workout writes and the plan cascade."""

from __future__ import annotations

from prometheus_client import Counter

WORKOUT_WRITES = Counter(
    "workout_writes_total",
    "Workout documents written, by operation.",
    ["operation"],
)

PLANS_MODIFIED = Counter(
    "workout_plans_modified_total",
    "Workout plans that had a membership entry pulled by the deletion cascade.",
)

CASCADE_FAILURES = Counter(
    "workout_cascade_failures_total",
    "Deletes whose workout plan cascade failed after the workout was removed.",
)

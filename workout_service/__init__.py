"""Workout records API backed by MongoDB."""

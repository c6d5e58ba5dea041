"""Workout aggregates, validation rules, and service workflows."""

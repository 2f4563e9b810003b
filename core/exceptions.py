"""Typed failures raised inside the meal-plan pipeline."""

from __future__ import annotations


class MealPlanError(Exception):
    """Base class for every error the generator knows how to report."""


class PreconditionError(MealPlanError):
    """Input is unusable: no TDCI, no meal preferences, bad date, empty catalog."""


class GenerationCancelled(MealPlanError):
    """A caller fired the cancellation token while generation was running."""

    def __init__(self, message: str = "Generation cancelled") -> None:
        super().__init__(message)


class CatalogError(MealPlanError):
    """The recipe/food catalog could not be read."""

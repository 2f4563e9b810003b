# tests/conftest.py
from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from core.models.catalog import Food, Recipe
from core.models.user import UserProfile
from services.catalog import Catalog, load_catalog

SAMPLE_CATALOG = Path(__file__).resolve().parent.parent / "data" / "sample_catalog.json"


def make_user(**overrides: Any) -> UserProfile:
    """30 y/o male, 2000 kcal, one afternoon snack, no custom portions."""
    data: dict[str, Any] = {
        "id": "u1",
        "name": "Sam",
        "age": 30,
        "gender": "male",
        "height": 175,
        "weight": 70,
        "bodyFat": 15,
        "activityMultiplier": 1.55,
        "fitnessGoal": {"goal": "Maintenance"},
        "tdci": {"adjustedTDCI": 2000},
        "mealPreferences": {
            "mealsPerDay": "Four meals",
            "snackPositions": ["Between Lunch and Dinner"],
        },
    }
    data.update(overrides)
    return UserProfile.model_validate(data)


def recipe(id: str, name: str, categories: list[str], kcal: float, **extra: Any) -> Recipe:
    data: dict[str, Any] = {
        "id": id,
        "name": name,
        "categories": categories,
        "calories": kcal,
        "protein": kcal * 0.3 / 4,
        "carbs": kcal * 0.45 / 4,
        "fat": kcal * 0.25 / 9,
        "prepTime": 10,
        "ingredients": [{"name": "Something", "amount": 1}],
    }
    data.update(extra)
    return Recipe.model_validate(data)


def food(id: str, name: str, kcal: float, category: str | None = None, **extra: Any) -> Food:
    return Food.model_validate({"id": id, "name": name, "calories": kcal, "category": category, **extra})


@pytest.fixture
def user() -> UserProfile:
    return make_user()


@pytest.fixture(scope="session")
def catalog() -> Catalog:
    return load_catalog(SAMPLE_CATALOG)

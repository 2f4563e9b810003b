"""
core/models/user.py
────────────────────────────────────────────────────────────────────────
The profile a meal plan is generated for.

Everything the mobile app persists arrives here first, so this is the one
place that copes with its loose shapes:

* numbers stored as strings ("72.5", "")
* ``avoidMeals`` as a flat list *or* ``{foodTypes, allergens}``
* ``portionSizes`` keyed ``Breakfast`` or ``breakfast``

Downstream code only ever sees the normalised form.
"""

from __future__ import annotations
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from core.models.meal import MealType, SnackPosition

_INPUT_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
)

_CANONICAL_SLOTS: dict[str, str] = {
    **{m.value.lower(): m.value for m in MealType},
    **{p.value.lower(): p.value for p in SnackPosition},
}


def canonical_slot_key(key: str) -> str:
    """Map ``breakfast`` / ``after dinner`` onto their canonical spelling."""
    cleaned = key.strip()
    return _CANONICAL_SLOTS.get(cleaned.lower(), cleaned)


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class Goal(str, Enum):
    lose_fat = "Lose Fat"
    maintenance = "Maintenance"
    build_muscle = "Build Muscle"
    recomposition = "Lose Fat & Build Muscle"


# calorie adjustment (%) used when the profile carries a goal but no value
DEFAULT_GOAL_ADJUSTMENT: dict[Goal, float] = {
    Goal.lose_fat: -20,
    Goal.maintenance: 0,
    Goal.build_muscle: 20,
    Goal.recomposition: 0,
}


class FitnessGoal(BaseModel):
    goal: Goal = Goal.maintenance
    fitness_level: str | None = None
    calorie_adjustment: float | None = Field(None, alias="calorieValue")

    model_config = _INPUT_CONFIG

    blank_to_none = field_validator("calorie_adjustment", mode="before")(_blank_to_none)

    @property
    def adjustment_percent(self) -> float:
        if self.calorie_adjustment is None:
            return DEFAULT_GOAL_ADJUSTMENT[self.goal]
        return self.calorie_adjustment


class Tdci(BaseModel):
    adjusted_tdci: float | None = Field(None, alias="adjustedTDCI")
    base_tdci: float | None = Field(None, alias="baseTDCI")
    weight_change: float = 0
    manual_adjustment: float = 0

    model_config = _INPUT_CONFIG

    blank_to_none = field_validator("adjusted_tdci", "base_tdci", mode="before")(_blank_to_none)


class MealPreferences(BaseModel):
    meals_per_day: str | None = None          # "Three meals", "Four meals", ...
    snack_positions: list[SnackPosition] = Field(default_factory=list)

    model_config = _INPUT_CONFIG

    @field_validator("snack_positions", mode="before")
    @classmethod
    def _canonical_positions(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            # one entry per slot, first occurrence wins
            out: list[Any] = []
            for p in v:
                key = canonical_slot_key(p) if isinstance(p, str) else p
                if key not in out:
                    out.append(key)
            return out
        return v


class AvoidList(BaseModel):
    food_types: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)

    model_config = _INPUT_CONFIG

    @property
    def terms(self) -> list[str]:
        """Every avoided term once, original order kept."""
        seen: set[str] = set()
        out: list[str] = []
        for term in (*self.food_types, *self.allergens):
            key = term.strip().lower()
            if key and key not in seen:
                seen.add(key)
                out.append(term.strip())
        return out

    def extended(self, extra: list[str]) -> "AvoidList":
        return AvoidList(food_types=[*self.food_types, *extra], allergens=list(self.allergens))


class UserProfile(BaseModel):
    id: str
    name: str | None = None
    # physical
    age: float | None = None
    gender: str | None = None              # "Male" | "Female"
    height: float | None = None            # cm
    weight: float | None = None            # kg
    body_fat: float | None = None          # %
    activity_multiplier: float | None = None
    # goals / targets
    fitness_goal: FitnessGoal | None = None
    tdci: Tdci | None = None
    # meal set-up
    meal_preferences: MealPreferences | None = None
    portion_sizes: dict[str, float] | None = None
    avoid_meals: AvoidList | None = None
    workout_days: list[str] = Field(default_factory=list)
    max_meal_repetition: int | None = None

    model_config = _INPUT_CONFIG

    blank_to_none = field_validator(
        "age", "height", "weight", "body_fat", "activity_multiplier", mode="before"
    )(_blank_to_none)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("gender", mode="before")
    @classmethod
    def _gender(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip():
            return v.strip().capitalize()
        return None

    @field_validator("avoid_meals", mode="before")
    @classmethod
    def _avoid_shape(cls, v: Any) -> Any:
        # flat list → every term may match a food type or an allergen
        if isinstance(v, (list, tuple)):
            return {"food_types": [str(t) for t in v]}
        return v

    @field_validator("portion_sizes", mode="before")
    @classmethod
    def _portion_keys(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        out: dict[str, Any] = {}
        for key, value in v.items():
            canon = canonical_slot_key(str(key))
            # canonical spelling wins over a lower-case duplicate
            if canon in out and canon != key:
                continue
            out[canon] = value
        return out

    # -------------------------------- convenience ---------------------
    @property
    def adjusted_tdci(self) -> float | None:
        if self.tdci and self.tdci.adjusted_tdci and self.tdci.adjusted_tdci > 0:
            return self.tdci.adjusted_tdci
        return None

    @property
    def snack_positions(self) -> list[str]:
        if not self.meal_preferences:
            return []
        return [p.value for p in self.meal_preferences.snack_positions]

    @property
    def avoid_terms(self) -> list[str]:
        return self.avoid_meals.terms if self.avoid_meals else []

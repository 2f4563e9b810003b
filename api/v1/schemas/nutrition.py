# api/v1/schemas/nutrition.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.models.user import UserProfile

_OUT = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserRequest(BaseModel):
    user: UserProfile


class StructureRequest(BaseModel):
    user: UserProfile
    date: str


class TargetsOut(BaseModel):
    calories: float
    protein: float
    carbs: float
    fat: float
    protein_percentage: float = 0
    carbs_percentage: float = 0
    fat_percentage: float = 0

    model_config = _OUT


class MealTargetOut(BaseModel):
    meal_type: str
    position: str | None = None
    portion_multiplier: float
    priority: str
    targets: TargetsOut

    model_config = _OUT


class NutritionTargetsOut(BaseModel):
    daily: TargetsOut
    meals: list[MealTargetOut]

    model_config = _OUT


class MealStructureOut(BaseModel):
    meal_type: str
    position: str
    order: int
    is_required: bool
    is_snack: bool
    time_slot: str
    portion_multiplier: float
    calorie_target: int

    model_config = _OUT


class DistributionOut(BaseModel):
    main_meal_calories: int
    snack_calories: int
    main_meal_percentage: float
    snack_percentage: float
    per_meal_percentage: dict[str, float]
    is_balanced: bool
    issues: list[str]

    model_config = _OUT


class ValidationOut(BaseModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    score: float

    model_config = _OUT


class UserValidationOut(ValidationOut):
    missing_fields: list[str]


class DayStructureOut(BaseModel):
    date: str
    daily_calories: float
    meals: list[MealStructureOut]
    distribution: DistributionOut
    validation: ValidationOut

    model_config = _OUT

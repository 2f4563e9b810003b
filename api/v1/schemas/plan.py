# api/v1/schemas/plan.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.generator import GenerationMode, GenerationPreferences
from core.models.catalog import Food, Recipe
from core.models.user import UserProfile

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PlanRequest(BaseModel):
    user: UserProfile
    date: str
    mode: GenerationMode | None = None          # falls back to settings.default_mode
    preferences: GenerationPreferences | None = None
    # both omitted → configured catalog
    recipes: list[Recipe] | None = None
    foods: list[Food] | None = None

    model_config = _CAMEL


class WeekPlanRequest(PlanRequest):
    days: int = Field(7, ge=1, le=14)


class EstimateOut(BaseModel):
    mode: GenerationMode
    week_plan: bool
    estimated_ms: int

    model_config = _CAMEL

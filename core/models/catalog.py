from __future__ import annotations
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_CATALOG_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    frozen=True,
)


def _num_or_zero(v: Any) -> Any:
    # seed data stores numbers as strings, sometimes empty
    if v is None or (isinstance(v, str) and not v.strip()):
        return 0
    return v


class Ingredient(BaseModel):
    id: str | None = None
    name: str
    amount: float | None = None
    unit: str | None = None

    model_config = _CATALOG_CONFIG

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class Recipe(BaseModel):
    id: str
    name: str
    categories: list[str] = Field(default_factory=list)
    food_types: list[str] = Field(default_factory=list)
    allergens: list[str] = Field(default_factory=list)
    prep_time: float = 0          # minutes
    cook_time: float = 0          # minutes
    calories: float = 0           # per serving
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    ingredients: list[Ingredient] = Field(default_factory=list)
    instructions: list[str] = Field(default_factory=list)

    model_config = _CATALOG_CONFIG

    numbers_or_zero = field_validator(
        "prep_time", "cook_time", "calories", "protein", "carbs", "fat", mode="before"
    )(_num_or_zero)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator("categories", "food_types", "allergens", "ingredients", mode="before")
    @classmethod
    def _none_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("instructions", mode="before")
    @classmethod
    def _instructions(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return v

    @property
    def total_time(self) -> float:
        return self.prep_time + self.cook_time


class Food(BaseModel):
    id: str
    name: str
    category: str | None = None
    calories: float = 0           # per 100 g-equivalent unit
    protein: float = 0
    carbs: float = 0
    fat: float = 0

    model_config = _CATALOG_CONFIG

    numbers_or_zero = field_validator(
        "calories", "protein", "carbs", "fat", mode="before"
    )(_num_or_zero)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

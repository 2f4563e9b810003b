from __future__ import annotations
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MealType(str, Enum):
    breakfast = "Breakfast"
    lunch = "Lunch"
    dinner = "Dinner"
    snack = "Snack"


class SnackPosition(str, Enum):
    before_breakfast = "Before Breakfast"
    between_breakfast_and_lunch = "Between Breakfast and Lunch"
    between_lunch_and_dinner = "Between Lunch and Dinner"
    after_dinner = "After Dinner"


MAIN_MEAL_TYPES: tuple[str, ...] = ("Breakfast", "Lunch", "Dinner")
SNACK_CATEGORIES: tuple[str, ...] = ("Snack", "Appetizer", "Side Dish")

# canonical order of every slot through the day
DAILY_SLOT_ORDER: dict[str, int] = {
    SnackPosition.before_breakfast.value: 0,
    "Breakfast": 1,
    SnackPosition.between_breakfast_and_lunch.value: 2,
    "Lunch": 3,
    SnackPosition.between_lunch_and_dinner.value: 4,
    "Dinner": 5,
    SnackPosition.after_dinner.value: 6,
}


class Meal(BaseModel):
    id: str
    type: MealType
    name: str
    position: str | None = None
    user_id: str
    date: str                      # YYYY-MM-DD
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    source_id: str | None = None   # recipe / food id, None for placeholders

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def slot_key(self) -> str:
        return self.position or self.type.value


class MealPlan(BaseModel):
    id: str
    user_id: str
    date: str
    meals: list[Meal] = Field(default_factory=list)

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @property
    def store_key(self) -> str:
        """Key an external meal store files this plan under."""
        return f"{self.user_id}-{self.date}"

# tests/test_meal_structure.py
from __future__ import annotations

import math
import pytest

from conftest import make_user
from core.exceptions import PreconditionError
from core.meal_structure import MealStructureBuilder, snack_share

builder = MealStructureBuilder()

TWO_SNACKS = {
    "mealsPerDay": "Five meals",
    # deliberately out of order and lower-cased
    "snackPositions": ["after dinner", "Between Breakfast and Lunch"],
}


def test_snack_share_table():
    assert [snack_share(n) for n in range(6)] == [0, 0.15, 0.12, 0.08, 0.06, 0.06]


def test_default_portions_sum_to_one():
    portions = builder.calculate_default_portion_sizes(["After Dinner", "Between Lunch and Dinner"])
    assert math.isclose(sum(portions.values()), 1.0)
    assert portions["After Dinner"] == 0.12
    assert math.isclose(portions["Lunch"], 0.76 * 0.38)


def test_day_structure_orders_slots_through_the_day():
    day = builder.build_day_structure(make_user(mealPreferences=TWO_SNACKS), "2025-03-03")

    assert [m.position for m in day.meals] == [
        "Breakfast",
        "Between Breakfast and Lunch",
        "Lunch",
        "Dinner",
        "After Dinner",
    ]
    assert [m.order for m in day.meals] == [0, 1, 2, 3, 4]
    assert day.snack_count == 2 and day.main_meal_count == 3
    assert day.meal_by_position("After Dinner").time_slot == "evening"


def test_main_meal_leads_its_time_slot():
    prefs = {"mealsPerDay": "Five meals", "snackPositions": ["Before Breakfast", "Between Breakfast and Lunch"]}
    day = builder.build_day_structure(make_user(mealPreferences=prefs), "2025-03-03")

    assert [m.position for m in day.meals] == [
        "Breakfast",
        "Before Breakfast",
        "Between Breakfast and Lunch",
        "Lunch",
        "Dinner",
    ]
    assert [m.time_slot for m in day.meals[:3]] == ["morning"] * 3


def test_repeated_snack_position_is_kept_once():
    prefs = {"snackPositions": ["After Dinner", "after dinner"]}
    day = builder.build_day_structure(make_user(mealPreferences=prefs), "2025-03-03")
    assert [m.position for m in day.meals if m.is_snack] == ["After Dinner"]


def test_day_structure_calorie_targets():
    day = builder.build_day_structure(make_user(mealPreferences=TWO_SNACKS), "2025-03-03")
    by_pos = {m.position: m.calorie_target for m in day.meals}
    # 0.76 remainder split 28/38/34, 12 % per snack
    assert by_pos == {
        "Breakfast": 426,
        "Between Breakfast and Lunch": 240,
        "Lunch": 578,
        "Dinner": 517,
        "After Dinner": 240,
    }
    assert day.distribution.is_balanced


def test_custom_portions_fall_back_per_missing_main_meal():
    u = make_user(portionSizes={"Breakfast": 0.3, "Snack": 0.1})
    by_pos = {m.position: m.portion_multiplier for m in builder.build_day_structure(u, "2025-03-03").meals}
    assert by_pos == {"Breakfast": 0.3, "Lunch": 0.35, "Dinner": 0.30, "Between Lunch and Dinner": 0.1}


def test_snack_heavy_day_is_flagged_unbalanced():
    u = make_user(portionSizes={"Breakfast": 0.1, "Lunch": 0.2, "Dinner": 0.2, "Snack": 0.5})
    dist = builder.build_day_structure(u, "2025-03-03").distribution

    assert dist.main_meal_percentage == 50
    assert not dist.is_balanced
    assert dist.issues == ("Main meals provide only 50% of daily calories",)


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"mealPreferences": None}, "User meal preferences not configured"),
        ({"tdci": None}, "User TDCI not calculated"),
        ({"tdci": {"adjustedTDCI": 0}}, "User TDCI not calculated"),
    ],
)
def test_day_structure_preconditions(overrides, message):
    with pytest.raises(PreconditionError, match=message):
        builder.build_day_structure(make_user(**overrides), "2025-03-03")


def test_validate_structure_accepts_default_day(user):
    result = builder.validate_meal_structure(builder.build_day_structure(user, "2025-03-03"))
    assert result.is_valid
    assert result.errors == []


def test_validate_structure_flags_oversized_main_meal():
    u = make_user(portionSizes={"Breakfast": 0.05, "Lunch": 0.7, "Dinner": 0.1, "Snack": 0.1})
    result = builder.validate_meal_structure(builder.build_day_structure(u, "2025-03-03"))
    assert result.is_valid
    assert any("Lunch takes more than 60%" in w for w in result.warnings)
    assert any("Breakfast calorie target is very low" in w for w in result.warnings)
    assert result.score < 100


def test_empty_plan_has_one_meal_per_slot(user):
    plan = builder.create_empty_meal_plan(user, "2025-03-03")
    assert plan.id == "plan-u1-2025-03-03"
    assert [m.slot_key for m in plan.meals] == ["Breakfast", "Lunch", "Between Lunch and Dinner", "Dinner"]
    assert all(m.calories == 0 for m in plan.meals)


def test_distribute_calories_proportionally(user):
    day = builder.build_day_structure(user, "2025-03-03")
    split = builder.distribute_calories_across_meals(day, 1000)
    assert split["Between Lunch and Dinner"] == 150
    assert abs(sum(split.values()) - 1000) <= 2

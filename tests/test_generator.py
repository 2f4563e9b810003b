# tests/test_generator.py
"""
End-to-end (no network, no store) – run the whole pipeline over the
sample catalogue and check the plan shape, error paths and helpers.
"""
from __future__ import annotations

import pytest

from conftest import make_user, recipe
from core.generator import (
    INFEASIBLE_WARNING,
    MODE_PROFILES,
    NO_ITEMS_ERROR,
    QUICK_PRESETS,
    GenerationMode,
    GenerationOptions,
    GenerationPreferences,
    HybridMealPlanGenerator,
    calculate_meal_targets,
    calculate_nutritional_targets,
    estimate_for,
    estimate_generation_time,
    generate_meal_plan,
    is_recipe_suitable_for_meal,
)
from core.knapsack import CancellationToken
from core.nutrition_calc import MealNutritionalTarget, NutritionalTargets

generator = HybridMealPlanGenerator()
DAY = "2025-03-03"

SLOTS = ["Breakfast", "Lunch", "Between Lunch and Dinner", "Dinner"]


def _run(catalog, user=None, **opts):
    options = GenerationOptions(user=user or make_user(), date=DAY, **opts)
    return generator.generate(catalog.recipes, catalog.foods, options)


# ── happy path ───────────────────────────────────────────────────────
@pytest.mark.parametrize("mode", list(GenerationMode))
def test_plan_covers_every_slot(catalog, mode):
    result = _run(catalog, mode=mode)

    assert result.success, result.error
    plan = result.meal_plan
    assert plan.id == f"plan-u1-{DAY}"
    assert len(plan.meals) >= 4
    assert {m.slot_key for m in plan.meals} == set(SLOTS)
    assert all(m.date == DAY and m.user_id == "u1" for m in plan.meals)
    assert result.generation_time >= 0


def test_meals_follow_the_daily_order(catalog):
    plan = _run(catalog).meal_plan
    order = [SLOTS.index(m.slot_key) for m in plan.meals]
    assert order == sorted(order)


def test_metadata_and_quality(catalog):
    result = _run(catalog, mode=GenerationMode.speed)
    meta = result.metadata

    assert meta.recipes_considered == len(catalog.recipes) + len(catalog.foods)
    assert "knapsack-greedy" in meta.algorithms_used
    assert meta.final_optimality == 0.7
    assert meta.optimality_is_declared

    q = result.quality
    assert 0 < q.overall <= 100
    assert q.user_preference_alignment == 75
    assert q.breakdown.constraints.total == 4
    assert q.breakdown.variety.category_balance == 75


def test_generation_is_deterministic(catalog):
    first = _run(catalog, mode=GenerationMode.quality).meal_plan
    second = _run(catalog, mode=GenerationMode.quality).meal_plan
    assert [m.id for m in first.meals] == [m.id for m in second.meals]


def test_result_serialises_with_camel_case(catalog):
    data = _run(catalog).model_dump(by_alias=True)
    assert {"success", "mealPlan", "quality", "generationTime", "metadata"} <= set(data)
    assert "userId" in data["mealPlan"]["meals"][0]


# ── preferences ──────────────────────────────────────────────────────
def test_avoid_ingredients_remove_dairy(catalog):
    result = _run(catalog, preferences=GenerationPreferences(avoid_ingredients=["Dairy"]))
    names = {m.name for m in result.meal_plan.meals}
    assert "Overnight Oats" not in names
    assert "Greek Yogurt Parfait" not in names


def test_profile_avoid_list_is_respected(catalog):
    u = make_user(avoidMeals={"allergens": ["Fish"]})
    names = {m.name for m in _run(catalog, user=u).meal_plan.meals}
    assert not names & {"Baked Salmon with Potatoes", "Tuna Salad Wrap"}


def test_max_prep_time_filters_recipes(catalog):
    result = _run(catalog, preferences=GenerationPreferences(max_prep_time=15))
    for meal in result.meal_plan.meals:
        item = catalog.find_by_name(meal.name)
        if item is not None and hasattr(item, "total_time"):
            assert item.total_time <= 15


def test_constraints_for_1000_kcal_at_20_percent():
    u = make_user(tdci={"adjustedTDCI": 1000})
    targets = calculate_meal_targets(u, calculate_nutritional_targets(u))
    c = generator.build_constraints(targets, MODE_PROFILES[GenerationMode.balanced], GenerationPreferences())
    assert (c.max_calories, c.min_calories) == (1200, 800)
    assert c.max_prep_time == 90


def test_preference_bounds_tighten_constraints():
    u = make_user(tdci={"adjustedTDCI": 1000})
    targets = calculate_meal_targets(u, calculate_nutritional_targets(u))
    prefs = GenerationPreferences(max_calories=700, min_protein=200, max_prep_time=30)
    c = generator.build_constraints(targets, MODE_PROFILES[GenerationMode.balanced], prefs)
    assert (c.max_calories, c.min_calories) == (700, 700)
    assert c.min_protein == 200 and c.max_protein >= 200
    assert c.max_prep_time == 30


# ── placeholders / infeasibility ─────────────────────────────────────
def test_empty_slots_get_placeholders():
    recipes = [
        recipe("b", "Porridge", ["Breakfast"], 500),
        recipe("l", "Soup", ["Lunch"], 500),
    ]
    result = generator.generate(recipes, [], GenerationOptions(user=make_user(), date=DAY))

    assert result.success
    assert INFEASIBLE_WARNING in result.warnings
    names = [m.name for m in result.meal_plan.meals]
    assert names == ["Porridge", "Soup", "Default Snack", "Default Dinner"]
    dinner = result.meal_plan.meals[-1]
    assert dinner.id == f"placeholder-{DAY}-Dinner"
    assert dinner.calories == 0 and dinner.source_id is None


def test_repeated_snack_position_gets_one_placeholder():
    u = make_user(mealPreferences={"snackPositions": ["Between Lunch and Dinner", "Between Lunch and Dinner"]})
    recipes = [recipe("b", "Porridge", ["Breakfast"], 500)]

    meals = generator.generate(recipes, [], GenerationOptions(user=u, date=DAY)).meal_plan.meals

    ids = [m.id for m in meals]
    assert len(ids) == len(set(ids))
    assert [m.name for m in meals].count("Default Snack") == 1


def test_snack_suitability():
    snack = MealNutritionalTarget("Snack", NutritionalTargets(200, 15, 23, 6), 0.1, "medium", "After Dinner")
    assert is_recipe_suitable_for_meal(recipe("a", "Dip", ["Side Dish"], 400), snack)
    assert is_recipe_suitable_for_meal(recipe("a", "Mini Bowl", ["Lunch"], 250), snack)
    assert not is_recipe_suitable_for_meal(recipe("a", "Big Bowl", ["Lunch"], 600), snack)


# ── failures come back as results ────────────────────────────────────
@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"tdci": None}, "User TDCI not calculated"),
        ({"mealPreferences": None}, "User meal preferences not set"),
    ],
)
def test_preconditions_fail_softly(catalog, overrides, message):
    result = _run(catalog, user=make_user(**overrides))
    assert not result.success
    assert result.error == message
    assert result.meal_plan is None
    assert result.quality.overall == 0


def test_bad_date_fails_softly(catalog):
    result = generator.generate(catalog.recipes, catalog.foods, GenerationOptions(user=make_user(), date="tomorrow"))
    assert not result.success
    assert result.error == "Date must be in YYYY-MM-DD format"


def test_empty_catalog_fails_softly():
    result = generator.generate([], [], GenerationOptions(user=make_user(), date=DAY))
    assert not result.success
    assert result.error == NO_ITEMS_ERROR


def test_cancelled_generation(catalog):
    token = CancellationToken()
    token.cancel()
    options = GenerationOptions(user=make_user(), date=DAY)
    result = generator.generate(catalog.recipes, catalog.foods, options, cancel_token=token)
    assert not result.success
    assert result.error == "Generation cancelled"


# ── week plans ───────────────────────────────────────────────────────
def test_week_plan_runs_consecutive_days(catalog):
    options = GenerationOptions(user=make_user(), date="2025-02-27", mode=GenerationMode.speed)
    result = generator.generate_week(catalog.recipes, catalog.foods, options, days=3)

    assert result.success
    assert [p.date for p in result.week_plan] == ["2025-02-27", "2025-02-28", "2025-03-01"]
    assert result.meal_plan is None
    assert all(w.startswith("2025-") for w in result.warnings or [])


def test_week_flag_dispatches_to_seven_days(catalog):
    options = GenerationOptions(user=make_user(), date=DAY, mode=GenerationMode.speed, week_plan=True)
    result = generate_meal_plan(catalog.recipes, catalog.foods, options)
    assert len(result.week_plan) == 7


# ── estimates / presets ──────────────────────────────────────────────
def test_estimates():
    assert estimate_for("balanced") == 2000
    assert estimate_for("speed", variety_level="low") == 800
    assert estimate_for("quality", week_plan=True, variety_level="high") == 42000
    assert estimate_for("speed") < estimate_for("balanced") < estimate_for("quality")


def test_estimate_from_options(user):
    options = QUICK_PRESETS["premium"](user, DAY)
    assert estimate_generation_time(options) == 6000


def test_presets(user):
    quick = QUICK_PRESETS["quick"](user, DAY)
    assert quick.mode == GenerationMode.speed and quick.preferences.max_prep_time == 30
    assert QUICK_PRESETS["week_plan"](user, DAY).week_plan
    workout = QUICK_PRESETS["workout"](user, DAY)
    assert workout.preferences.min_protein == 150        # 2000 × 0.3 / 4

# tests/test_knapsack.py
from __future__ import annotations

import pytest

from conftest import food, recipe
from core.exceptions import GenerationCancelled
from core.knapsack import (
    CancellationToken,
    ItemConstraints,
    KnapsackConstraints,
    KnapsackItem,
    MultiDimensionalKnapsack,
    analyze_solution,
    calculate_usage,
    can_add_item,
    check_feasibility,
    create_constraints_from_targets,
    estimate_cost,
    estimate_volume,
    food_to_knapsack_item,
    recipe_to_knapsack_item,
)
from core.nutrition_calc import MealNutritionalTarget, NutritionalTargets

solver = MultiDimensionalKnapsack()

LUNCH = MealNutritionalTarget(
    meal_type="Lunch",
    targets=NutritionalTargets(calories=600, protein=45, carbs=68, fat=17),
    portion_multiplier=0.3,
    priority="high",
)
SNACK = MealNutritionalTarget(
    meal_type="Snack",
    position="After Dinner",
    targets=NutritionalTargets(calories=200, protein=15, carbs=23, fat=6),
    portion_multiplier=0.1,
    priority="medium",
)


def _item(id: str, value: float, kcal: float, protein: float = 0, prep: float = 0) -> KnapsackItem:
    return KnapsackItem(
        id=id,
        name=id,
        kind="food",
        value=value,
        constraints=ItemConstraints(calories=kcal, protein=protein, prep_time=prep),
        meal_type="Lunch",
        position=None,
        categories=(),
        source=food(id, id, kcal),
    )


def _bounds(max_kcal: float, min_kcal: float = 0, max_prep: float = 1000) -> KnapsackConstraints:
    return KnapsackConstraints(
        max_calories=max_kcal,
        max_protein=1000,
        max_carbs=1000,
        max_fat=1000,
        max_volume=1000,
        max_prep_time=max_prep,
        max_cost=1000,
        min_calories=min_kcal,
    )


# ── conversions ──────────────────────────────────────────────────────
def test_recipe_item_value_and_id():
    r = recipe("r1", "Bowl", ["Lunch"], 600, prepTime=10, cookTime=5)
    item = recipe_to_knapsack_item(r, LUNCH, 70)
    # 70 + 20 (kcal within 20 %) + 15 (≤ 15 min) + 15 (category match)
    assert item.value == 120
    assert item.id == "r1@Lunch"
    assert item.constraints.prep_time == 15
    assert item.slot_key == "Lunch"


def test_food_item_uses_slot_key():
    item = food_to_knapsack_item(food("f1", "Chicken", 165, protein=31), SNACK, 60)
    assert item.id == "f1@After Dinner"
    assert item.value == 70
    assert item.constraints.volume == pytest.approx(1.65)
    assert (item.constraints.prep_time, item.constraints.cost) == (5, 1)


def test_volume_and_cost_estimates():
    many = [{"name": f"i{i}", "amount": 1} for i in range(9)]
    assert estimate_volume(recipe("a", "A", [], 150, ingredients=many)) == 3
    assert estimate_volume(recipe("a", "A", [], 800, ingredients=many)) == 5
    assert estimate_cost(recipe("a", "A", [], 300, ingredients=[])) == 1
    assert estimate_cost(recipe("a", "A", [], 300, ingredients=many, cookTime=25)) == 7


def test_constraints_from_targets_apply_tolerance():
    c = create_constraints_from_targets([LUNCH, SNACK], tolerance_percent=20, max_prep_time=90)
    assert (c.max_calories, c.min_calories) == (960, 640)
    assert (c.max_protein, c.min_protein) == (72, 48)
    assert c.max_prep_time == 90


# ── usage / feasibility ──────────────────────────────────────────────
def test_usage_and_feasibility():
    items = [_item("a", 1, 300, protein=20), _item("b", 1, 400, protein=10)]
    usage = calculate_usage(items)
    assert (usage.calories, usage.protein) == (700, 30)
    assert check_feasibility(usage, _bounds(800, min_kcal=600))
    assert not check_feasibility(usage, _bounds(800, min_kcal=750))
    assert can_add_item(_item("c", 1, 100), usage, _bounds(800))
    assert not can_add_item(_item("c", 1, 101), usage, _bounds(800))


# ── solvers ──────────────────────────────────────────────────────────
def test_greedy_respects_maximums_and_is_deterministic():
    items = [_item("a", 50, 500), _item("b", 40, 300), _item("c", 30, 300)]
    first = solver.solve(items, _bounds(800), algorithm="greedy")
    second = solver.solve(items, _bounds(800), algorithm="greedy")

    assert first.usage.calories <= 800
    assert [i.id for i in first.selected_items] == [i.id for i in second.selected_items]
    assert first.algorithm == "greedy"
    assert first.optimality == 0.7


def test_dynamic_finds_the_exact_optimum():
    # greedy by ratio takes a (best ratio) then nothing fits; DP takes b + c
    items = [_item("a", 60, 600), _item("b", 50, 500), _item("c", 45, 500)]
    solution = solver.solve(items, _bounds(1000), algorithm="dynamic")
    assert sorted(i.id for i in solution.selected_items) == ["b", "c"]
    assert solution.total_value == 95
    assert solution.optimality == 0.95


def test_dynamic_falls_back_to_greedy_on_secondary_violation():
    items = [_item("a", 60, 400, prep=80), _item("b", 50, 400, prep=80)]
    solution = solver.solve(items, _bounds(1000, max_prep=100), algorithm="dynamic")
    assert solution.algorithm == "greedy"
    assert len(solution.selected_items) == 1


def test_dynamic_above_item_limit_uses_hybrid():
    items = [_item(f"i{n}", 1 + n % 7, 50 + n) for n in range(60)]
    solution = solver.solve(items, _bounds(1500), algorithm="dynamic")
    assert solution.algorithm != "dynamic"
    assert solution.usage.calories <= 1500


def test_hybrid_swap_beats_greedy_seed():
    # greedy takes the efficient small item, then the big one no longer fits
    items = [_item("small", 10, 100), _item("big", 50, 950)]
    greedy = solver.solve(items, _bounds(1000), algorithm="greedy")
    hybrid = solver.solve(items, _bounds(1000), algorithm="hybrid")

    assert [i.id for i in greedy.selected_items] == ["small"]
    assert [i.id for i in hybrid.selected_items] == ["big"]
    assert hybrid.algorithm == "hybrid"
    assert hybrid.iterations == 2
    assert hybrid.optimality == pytest.approx(0.75)


def test_infeasible_problem_still_returns_a_solution():
    items = [_item("a", 10, 100)]
    solution = solver.solve(items, _bounds(500, min_kcal=400), algorithm="greedy")
    assert not solution.feasible
    assert [i.id for i in solution.selected_items] == ["a"]


def test_empty_catalog_solves_to_nothing():
    solution = solver.solve([], _bounds(500), algorithm="hybrid")
    assert solution.selected_items == []
    assert solution.total_value == 0


def test_cancelled_token_stops_search():
    token = CancellationToken()
    token.cancel()
    items = [_item("a", 10, 100), _item("b", 5, 100)]
    with pytest.raises(GenerationCancelled):
        solver.solve(items, _bounds(500), algorithm="hybrid", cancel_token=token)


def test_analyze_solution_reports_ratios():
    items = [_item("a", 50, 500, protein=30)]
    solution = solver.solve(items, _bounds(1000), algorithm="greedy")
    analysis = analyze_solution(solution, _bounds(1000))
    assert analysis.efficiency > 0
    assert 0 <= analysis.balance_score <= 1

"""
core/knapsack.py
────────────────────────────────────────────────────────────────────────
Multi-dimensional 0/1 knapsack used to pick the day's meals.

Every candidate is a `KnapsackItem` carrying a desirability value and a
7-wide constraint vector (kcal, protein, carbs, fat, volume, prep time,
cost).  Three strategies:

  • greedy   – efficiency-ratio ordering, admit while every max holds
  • dynamic  – exact 0/1 DP on integer calories (≤ 50 items), other
               dimensions checked afterwards, greedy if that fails
  • hybrid   – greedy seed + bounded first-improvement local search
               (swap, then add; never a bare removal)

The optimality figures reported on a solution are declared constants per
strategy, not measured gaps.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Iterable, Literal, Sequence

import numpy as np

from core.exceptions import GenerationCancelled
from core.models.catalog import Food, Recipe
from core.nutrition_calc import MealNutritionalTarget, round_half_up

_LOG = logging.getLogger(__name__)

Algorithm = Literal["greedy", "dynamic", "hybrid"]

DIMENSIONS = ("calories", "protein", "carbs", "fat", "volume", "prep_time", "cost")
# greedy cost weights for the first six dimensions (cost itself is unweighted)
_EFFICIENCY_WEIGHTS = np.array([0.3, 0.2, 0.15, 0.15, 0.1, 0.1])
_EPS = 1e-9

GREEDY_OPTIMALITY = 0.7
DYNAMIC_OPTIMALITY = 0.95
SWAP_OPTIMALITY_GAIN = 0.05
ADD_OPTIMALITY_GAIN = 0.02
DP_MAX_ITEMS = 50
LOCAL_SEARCH_MAX_ITERATIONS = 100
GREEDY_BUDGET_SHARE = 0.3


class CancellationToken:
    """Cooperative cancel flag shared between a caller and a running solve."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled()


# ──────────────────────────────────────────────────────────────────────
#  Data containers
# ──────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ItemConstraints:
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0
    volume: float = 0
    prep_time: float = 0
    cost: float = 0

    def as_array(self) -> np.ndarray:
        return np.array([getattr(self, d) for d in DIMENSIONS], dtype=float)

    @classmethod
    def from_array(cls, arr: Iterable[float]) -> "ItemConstraints":
        return cls(*(float(x) for x in arr))


# usage of a selection has the same shape as one item's vector
ConstraintUsage = ItemConstraints


@dataclass(frozen=True)
class KnapsackItem:
    id: str                       # "<source id>@<slot key>"
    name: str
    kind: Literal["recipe", "food"]
    value: float
    constraints: ItemConstraints
    meal_type: str
    position: str | None
    categories: tuple[str, ...]
    source: Recipe | Food

    @property
    def slot_key(self) -> str:
        return self.position or self.meal_type


@dataclass(frozen=True)
class KnapsackConstraints:
    max_calories: float
    max_protein: float
    max_carbs: float
    max_fat: float
    max_volume: float
    max_prep_time: float
    max_cost: float
    min_calories: float = 0
    min_protein: float = 0
    min_carbs: float = 0
    min_fat: float = 0

    @property
    def upper(self) -> np.ndarray:
        return np.array([
            self.max_calories, self.max_protein, self.max_carbs, self.max_fat,
            self.max_volume, self.max_prep_time, self.max_cost,
        ], dtype=float)

    @property
    def lower(self) -> np.ndarray:
        # no minimums on volume / prep time / cost
        return np.array([
            self.min_calories, self.min_protein, self.min_carbs, self.min_fat,
            -np.inf, -np.inf, -np.inf,
        ], dtype=float)


@dataclass
class KnapsackSolution:
    selected_items: list[KnapsackItem]
    total_value: float
    usage: ConstraintUsage
    feasible: bool
    optimality: float                  # declared, not measured
    algorithm: Algorithm
    solution_time: float = 0.0         # ms
    iterations: int = 0                # local-search iterations


@dataclass(frozen=True)
class SolutionAnalysis:
    efficiency: float
    balance_score: float
    utilization_score: float
    summary: str


# ──────────────────────────────────────────────────────────────────────
#  Solver
# ──────────────────────────────────────────────────────────────────────
class MultiDimensionalKnapsack:
    def solve(
        self,
        items: Sequence[KnapsackItem],
        constraints: KnapsackConstraints,
        algorithm: Algorithm = "hybrid",
        time_limit: float = 5.0,
        cancel_token: CancellationToken | None = None,
    ) -> KnapsackSolution:
        """Pick a subset of *items*; *time_limit* is in seconds."""
        start = time.perf_counter()
        _LOG.debug("knapsack: %d items, algorithm=%s", len(items), algorithm)

        problem = _Problem(items, constraints)
        if algorithm == "greedy":
            solution = self._greedy(problem)
        elif algorithm == "dynamic":
            solution = self._dynamic(problem, time_limit, cancel_token)
        else:
            solution = self._hybrid(problem, time_limit, cancel_token)

        solution.solution_time = (time.perf_counter() - start) * 1000
        _LOG.debug(
            "knapsack solved in %.1f ms, value=%.2f, feasible=%s",
            solution.solution_time, solution.total_value, solution.feasible,
        )
        return solution

    # ─────────────────────────────── greedy ───────────────────────── #
    def _greedy(self, p: "_Problem") -> KnapsackSolution:
        order = np.argsort(-p.efficiency(), kind="stable")
        usage = np.zeros(len(DIMENSIONS))
        picked: list[int] = []
        for idx in order:
            if np.all(usage + p.weights[idx] <= p.upper + _EPS):
                picked.append(int(idx))
                usage += p.weights[idx]
        return p.solution(picked, GREEDY_OPTIMALITY, "greedy")

    # ─────────────────────────────── dynamic ──────────────────────── #
    def _dynamic(
        self, p: "_Problem", time_limit: float, cancel_token: CancellationToken | None
    ) -> KnapsackSolution:
        if p.n > DP_MAX_ITEMS:
            return self._hybrid(p, time_limit, cancel_token)
        if cancel_token:
            cancel_token.raise_if_cancelled()

        cap = max(0, round_half_up(p.constraints.max_calories))
        kcal = [max(0, round_half_up(c)) for c in p.weights[:, 0]]

        table = np.zeros((p.n + 1, cap + 1))
        keep = np.zeros((p.n + 1, cap + 1), dtype=bool)
        for i in range(1, p.n + 1):
            table[i] = table[i - 1]
            c = kcal[i - 1]
            if c > cap:
                continue
            with_item = table[i - 1, : cap + 1 - c] + p.values[i - 1]
            better = with_item > table[i, c:]
            table[i, c:] = np.where(better, with_item, table[i, c:])
            keep[i, c:] = better

        picked: list[int] = []
        w = cap
        for i in range(p.n, 0, -1):
            if keep[i, w]:
                picked.append(i - 1)
                w -= kcal[i - 1]

        solution = p.solution(picked, DYNAMIC_OPTIMALITY, "dynamic")
        if not solution.feasible:
            _LOG.debug("DP selection violates secondary bounds → greedy")
            return self._greedy(p)
        return solution

    # ─────────────────────────────── hybrid ───────────────────────── #
    def _hybrid(
        self, p: "_Problem", time_limit: float, cancel_token: CancellationToken | None
    ) -> KnapsackSolution:
        start = time.perf_counter()
        greedy = self._greedy(p)
        if time.perf_counter() - start > time_limit * GREEDY_BUDGET_SHARE:
            return greedy

        improved = self._local_search(p, greedy, start + time_limit, cancel_token)
        if improved.total_value > greedy.total_value:
            return improved
        greedy.iterations = improved.iterations
        return greedy

    def _local_search(
        self,
        p: "_Problem",
        seed: KnapsackSolution,
        deadline: float,
        cancel_token: CancellationToken | None,
    ) -> KnapsackSolution:
        picked = [p.index_of[id(item)] for item in seed.selected_items]
        usage = p.weights[picked].sum(axis=0) if picked else np.zeros(len(DIMENSIONS))
        total = float(p.values[picked].sum()) if picked else 0.0
        optimality = seed.optimality
        iterations = 0

        while time.perf_counter() < deadline and iterations < LOCAL_SEARCH_MAX_ITERATIONS:
            if cancel_token:
                cancel_token.raise_if_cancelled()
            iterations += 1

            free = np.setdiff1d(np.arange(p.n), picked, assume_unique=False)
            move = self._first_swap(p, picked, free, usage, total)
            if move is not None:
                slot, new = move
                usage = usage - p.weights[picked[slot]] + p.weights[new]
                total = total - p.values[picked[slot]] + p.values[new]
                picked[slot] = new
                optimality += SWAP_OPTIMALITY_GAIN
                continue

            new = self._first_add(p, free, usage)
            if new is None:
                break
            picked.append(new)
            usage = usage + p.weights[new]
            total += p.values[new]
            optimality += ADD_OPTIMALITY_GAIN

        _LOG.debug("local search: %d iterations", iterations)
        solution = p.solution(picked, min(1.0, optimality), "hybrid")
        solution.iterations = iterations
        return solution

    @staticmethod
    def _first_swap(
        p: "_Problem", picked: list[int], free: np.ndarray, usage: np.ndarray, total: float
    ) -> tuple[int, int] | None:
        if not picked or free.size == 0:
            return None
        for slot, current in enumerate(picked):
            trial = usage - p.weights[current] + p.weights[free]
            ok = p.feasible_rows(trial)
            gain = total - p.values[current] + p.values[free] > total
            hits = np.flatnonzero(ok & gain)
            if hits.size:
                return slot, int(free[hits[0]])
        return None

    @staticmethod
    def _first_add(p: "_Problem", free: np.ndarray, usage: np.ndarray) -> int | None:
        if free.size == 0:
            return None
        trial = usage + p.weights[free]
        hits = np.flatnonzero(p.feasible_rows(trial) & (p.values[free] > 0))
        return int(free[hits[0]]) if hits.size else None


class _Problem:
    """Items and bounds as numpy arrays for one solve."""

    def __init__(self, items: Sequence[KnapsackItem], constraints: KnapsackConstraints) -> None:
        self.items = list(items)
        self.constraints = constraints
        self.n = len(self.items)
        self.weights = (
            np.vstack([it.constraints.as_array() for it in self.items])
            if self.items else np.zeros((0, len(DIMENSIONS)))
        )
        self.values = np.array([it.value for it in self.items], dtype=float)
        self.upper = constraints.upper
        self.lower = constraints.lower
        self.index_of = {id(it): i for i, it in enumerate(self.items)}

    def efficiency(self) -> np.ndarray:
        maxes = self.upper[:6]
        usable = maxes > 0
        if not self.n:
            return np.zeros(0)
        ratios = np.zeros((self.n, 6))
        ratios[:, usable] = self.weights[:, :6][:, usable] / maxes[usable]
        cost = ratios @ _EFFICIENCY_WEIGHTS
        safe = np.where(cost > 0, cost, 1.0)
        return np.where(cost > 0, self.values / safe, self.values)

    def feasible_rows(self, usage: np.ndarray) -> np.ndarray:
        return np.all((usage >= self.lower - _EPS) & (usage <= self.upper + _EPS), axis=-1)

    def solution(self, picked: list[int], optimality: float, algorithm: Algorithm) -> KnapsackSolution:
        usage = self.weights[picked].sum(axis=0) if picked else np.zeros(len(DIMENSIONS))
        return KnapsackSolution(
            selected_items=[self.items[i] for i in picked],
            total_value=float(self.values[picked].sum()) if picked else 0.0,
            usage=ItemConstraints.from_array(usage),
            feasible=bool(self.feasible_rows(usage)),
            optimality=optimality,
            algorithm=algorithm,
        )


# ──────────────────────────────────────────────────────────────────────
#  Public helpers
# ──────────────────────────────────────────────────────────────────────
def calculate_usage(items: Iterable[KnapsackItem]) -> ConstraintUsage:
    total = np.zeros(len(DIMENSIONS))
    for it in items:
        total += it.constraints.as_array()
    return ItemConstraints.from_array(total)


def check_feasibility(usage: ConstraintUsage, constraints: KnapsackConstraints) -> bool:
    u = usage.as_array()
    return bool(np.all((u >= constraints.lower - _EPS) & (u <= constraints.upper + _EPS)))


def can_add_item(item: KnapsackItem, usage: ConstraintUsage, constraints: KnapsackConstraints) -> bool:
    after = usage.as_array() + item.constraints.as_array()
    return bool(np.all(after <= constraints.upper + _EPS))


def recipe_to_knapsack_item(
    recipe: Recipe, target: MealNutritionalTarget, base_value: float = 50
) -> KnapsackItem:
    value = base_value
    kcal_target = target.targets.calories
    if kcal_target > 0:
        ratio = recipe.calories / kcal_target
        if 0.8 <= ratio <= 1.2:
            value += 20
        elif 0.6 <= ratio <= 1.4:
            value += 10

    total_time = recipe.total_time
    if total_time <= 15:
        value += 15
    elif total_time <= 30:
        value += 10
    elif total_time > 60:
        value -= 10

    if target.meal_type in recipe.categories:
        value += 15

    return KnapsackItem(
        id=f"{recipe.id}@{target.slot_key}",
        name=recipe.name,
        kind="recipe",
        value=value,
        constraints=ItemConstraints(
            calories=recipe.calories,
            protein=recipe.protein,
            carbs=recipe.carbs,
            fat=recipe.fat,
            volume=estimate_volume(recipe),
            prep_time=total_time,
            cost=estimate_cost(recipe),
        ),
        meal_type=target.meal_type,
        position=target.position,
        categories=tuple(recipe.categories),
        source=recipe,
    )


def food_to_knapsack_item(
    food: Food, target: MealNutritionalTarget, base_value: float = 40
) -> KnapsackItem:
    value = base_value
    if food.protein > 10:
        value += 10
    if food.calories < 100:
        value += 5

    return KnapsackItem(
        id=f"{food.id}@{target.slot_key}",
        name=food.name,
        kind="food",
        value=value,
        constraints=ItemConstraints(
            calories=food.calories,
            protein=food.protein,
            carbs=food.carbs,
            fat=food.fat,
            volume=food.calories / 100,
            prep_time=5,
            cost=1,
        ),
        meal_type=target.meal_type,
        position=target.position,
        categories=(food.category,) if food.category else (),
        source=food,
    )


def create_constraints_from_targets(
    targets: Sequence[MealNutritionalTarget],
    tolerance_percent: float = 20,
    max_prep_time: float = 60,
    max_cost: float = 50,
    max_volume: float = 100,
) -> KnapsackConstraints:
    kcal = sum(t.targets.calories for t in targets)
    prot = sum(t.targets.protein for t in targets)
    carbs = sum(t.targets.carbs for t in targets)
    fat = sum(t.targets.fat for t in targets)
    hi = 1 + tolerance_percent / 100
    lo = 1 - tolerance_percent / 100
    return KnapsackConstraints(
        max_calories=round_half_up(kcal * hi),
        max_protein=round_half_up(prot * hi),
        max_carbs=round_half_up(carbs * hi),
        max_fat=round_half_up(fat * hi),
        max_volume=max_volume,
        max_prep_time=max_prep_time,
        max_cost=max_cost,
        min_calories=round_half_up(kcal * lo),
        min_protein=round_half_up(prot * lo),
        min_carbs=round_half_up(carbs * lo),
        min_fat=round_half_up(fat * lo),
    )


def estimate_volume(recipe: Recipe) -> float:
    kcal = recipe.calories
    if kcal < 200:
        volume = 1
    elif kcal < 400:
        volume = 2
    elif kcal < 600:
        volume = 3
    else:
        volume = 4
    n = len(recipe.ingredients) or 1
    if n > 5:
        volume += 1
    if n > 8:
        volume += 1
    return min(5, volume)


def estimate_cost(recipe: Recipe) -> float:
    if not recipe.ingredients:
        return 1
    cost = len(recipe.ingredients) * 0.5
    total_time = recipe.total_time
    if total_time > 30:
        cost += 2
    if total_time > 60:
        cost += 3
    return max(1, round_half_up(cost))


def analyze_solution(solution: KnapsackSolution, constraints: KnapsackConstraints) -> SolutionAnalysis:
    u = solution.usage
    c = constraints

    def share(used: float, bound: float) -> float:
        return used / bound if bound > 0 else 0.0

    load = (
        share(u.calories, c.max_calories)
        + share(u.protein, c.max_protein)
        + share(u.carbs, c.max_carbs)
        + share(u.fat, c.max_fat)
        + share(u.volume, c.max_volume)
    ) / 5
    efficiency = solution.total_value / (load * 100) if load > 0 else 0.0

    macros = u.protein + u.carbs + u.fat
    if macros > 0:
        p, cb, f = u.protein / macros, u.carbs / macros, u.fat / macros
    else:
        p, cb, f = 0.25, 0.5, 0.25
    balance = 1 - (abs(p - 0.25) + abs(cb - 0.5) + abs(f - 0.25)) / 3

    utilization = (
        share(u.calories, c.max_calories)
        + share(u.protein, c.max_protein)
        + share(u.carbs, c.max_carbs)
        + share(u.fat, c.max_fat)
    ) / 4

    summary = (
        f"Selected {len(solution.selected_items)} items with total value {solution.total_value:.1f}. "
        f"Efficiency: {efficiency * 100:.1f}%, "
        f"Balance: {balance * 100:.1f}%, "
        f"Utilization: {utilization * 100:.1f}%"
    )
    return SolutionAnalysis(
        efficiency=min(1.0, efficiency),
        balance_score=max(0.0, balance),
        utilization_score=min(1.0, utilization),
        summary=summary,
    )

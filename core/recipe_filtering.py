"""
core/recipe_filtering.py
────────────────────────────────────────────────────────────────────────
Catalog filtering and scoring for one meal slot.

Responsibilities
----------------
1.   `apply_avoidance_filters()` – drop recipes / foods hitting the
     user's avoid list, recording why.
2.   `filter_by_meal_type()` – category suitability per slot.
3.   `apply_contextual_filters()` – workout day, morning, summer.
4.   `filter_for_meal()` – score every item against the slot target and
     return the eligible ones best-first.

Pure functions of their inputs: the catalog is never mutated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal, Sequence

from core.models.catalog import Food, Recipe
from core.models.meal import MAIN_MEAL_TYPES, SNACK_CATEGORIES
from core.models.user import UserProfile
from core.nutrition_calc import MealNutritionalTarget

_LOG = logging.getLogger(__name__)

ItemKind = Literal["recipe", "food"]

_MORNING_FOOD_CATEGORIES = ("Fruit", "Dairy", "Nuts", "Grains")
_MAIN_FOOD_CATEGORIES = ("Protein", "Meat", "Fish", "Vegetable", "Grains", "Dairy")

RECIPE_BASE_SCORE = 50
FOOD_BASE_SCORE = 40
RECIPE_MIN_FIT = 20
RECIPE_MIN_PREFERENCE = 10
FOOD_MIN_FIT = 15
FOOD_USER_PREFERENCE = 70
FOOD_AVAILABILITY = 90


# ──────────────────────────────────────────────────────────────────────
#  Data containers
# ──────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class ContextFactors:
    time_of_day: str | None = None        # "morning" | "afternoon" | ...
    day_of_week: str | None = None
    is_workout_day: bool = False
    season: str | None = None             # "spring" | "summer" | "fall" | "winter"
    previous_meals: tuple[str, ...] = ()


@dataclass(frozen=True)
class FilterCriteria:
    meal_type: str
    target: MealNutritionalTarget
    user: UserProfile
    position: str | None = None
    context: ContextFactors | None = None


@dataclass(frozen=True)
class ScoreBreakdown:
    nutritional_fit: float
    user_preference: float
    availability: float
    variety: float


@dataclass(frozen=True)
class FilteredItem:
    item: Recipe | Food
    kind: ItemKind
    score: float
    reasons: tuple[str, ...]
    constraints: ScoreBreakdown


@dataclass(frozen=True)
class RejectedItem:
    item: Recipe | Food
    kind: ItemKind
    reason: str


@dataclass(frozen=True)
class Evaluation:
    is_eligible: bool
    score: float
    reasons: tuple[str, ...]
    constraints: ScoreBreakdown
    rejection_reason: str | None = None


@dataclass
class FilterStats:
    total_processed: int = 0
    eligible_count: int = 0
    rejected_count: int = 0
    average_score: float = 0.0
    top_score: float = 0.0


@dataclass
class FilterResults:
    eligible: list[FilteredItem] = field(default_factory=list)
    rejected: list[RejectedItem] = field(default_factory=list)
    stats: FilterStats = field(default_factory=FilterStats)


@dataclass(frozen=True)
class AvoidanceResult:
    recipes: list[Recipe]
    foods: list[Food]
    filtered: list[tuple[str, str]]       # (item name, reason)


# ──────────────────────────────────────────────────────────────────────
#  Engine
# ──────────────────────────────────────────────────────────────────────
class RecipeFilteringEngine:
    # ─────────────────────────────── avoidance ────────────────────── #
    def apply_avoidance_filters(
        self,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        user: UserProfile,
    ) -> AvoidanceResult:
        terms = user.avoid_terms
        lowered = [t.lower() for t in terms]
        filtered: list[tuple[str, str]] = []

        kept_recipes: list[Recipe] = []
        for recipe in recipes:
            reason = _recipe_avoid_reason(recipe, terms, lowered)
            if reason:
                filtered.append((recipe.name, reason))
            else:
                kept_recipes.append(recipe)

        kept_foods: list[Food] = []
        for food in foods:
            name = food.name.lower()
            hit = next((t for t, lt in zip(terms, lowered) if lt in name), None)
            if hit is not None:
                filtered.append((food.name, f"Food is in avoid list: {hit}"))
            else:
                kept_foods.append(food)

        if filtered:
            _LOG.debug("avoidance removed %d items for user %s", len(filtered), user.id)
        return AvoidanceResult(kept_recipes, kept_foods, filtered)

    # ─────────────────────────────── meal type ────────────────────── #
    def filter_by_meal_type(
        self,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        meal_type: str,
        position: str | None = None,
    ) -> tuple[list[Recipe], list[Food]]:
        """Keep items suited to *meal_type*.

        Snack suitability is the same for every snack position; *position*
        is accepted for call-site symmetry with the slot targets.
        """
        kept_recipes = [r for r in recipes if recipe_matches_meal_type(r, meal_type)]
        kept_foods = [f for f in foods if food_matches_meal_type(f, meal_type)]
        return kept_recipes, kept_foods

    # ─────────────────────────────── context ──────────────────────── #
    def apply_contextual_filters(
        self,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        context: ContextFactors | None,
        user: UserProfile,
    ) -> tuple[list[Recipe], list[Food]]:
        kept = list(recipes)
        if context is None:
            return kept, list(foods)

        if context.is_workout_day and user.workout_days:
            kept = [r for r in kept if protein_ratio(r) >= 0.15]

        if context.time_of_day == "morning":
            kept = [r for r in kept if r.total_time <= 30]

        if context.season == "summer":
            kept = [r for r in kept if not _needs_oven(r)]

        return kept, list(foods)

    # ─────────────────────────────── scoring ──────────────────────── #
    def filter_for_meal(
        self,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        criteria: FilterCriteria,
    ) -> FilterResults:
        results = FilterResults()

        evaluated: list[tuple[Recipe | Food, ItemKind, Evaluation]] = [
            *((r, "recipe", self.evaluate_recipe(r, criteria)) for r in recipes),
            *((f, "food", self.evaluate_food(f, criteria)) for f in foods),
        ]
        for item, kind, ev in evaluated:
            results.stats.total_processed += 1
            if ev.is_eligible:
                results.eligible.append(
                    FilteredItem(item, kind, ev.score, ev.reasons, ev.constraints)
                )
            else:
                results.rejected.append(RejectedItem(item, kind, ev.rejection_reason or "Unknown"))

        # stable: equal scores keep catalog order
        results.eligible.sort(key=lambda e: -e.score)
        results.stats.eligible_count = len(results.eligible)
        results.stats.rejected_count = len(results.rejected)
        if results.eligible:
            results.stats.average_score = sum(e.score for e in results.eligible) / len(results.eligible)
            results.stats.top_score = results.eligible[0].score

        _LOG.debug(
            "%s: %d eligible / %d rejected",
            criteria.position or criteria.meal_type,
            results.stats.eligible_count,
            results.stats.rejected_count,
        )
        return results

    def evaluate_recipe(self, recipe: Recipe, criteria: FilterCriteria) -> Evaluation:
        previous = criteria.context.previous_meals if criteria.context else ()
        scores = ScoreBreakdown(
            nutritional_fit=score_nutritional_fit(recipe, criteria.target),
            user_preference=score_user_preference(recipe, criteria.user),
            availability=score_availability(recipe),
            variety=score_variety(recipe.name, previous),
        )
        reasons = _reasons(scores)

        if scores.nutritional_fit < RECIPE_MIN_FIT:
            return Evaluation(False, 0, reasons, scores, "Poor nutritional fit")
        if scores.user_preference < RECIPE_MIN_PREFERENCE:
            return Evaluation(False, 0, reasons, scores, "User preferences not met")
        return Evaluation(True, _weighted(RECIPE_BASE_SCORE, scores), reasons, scores)

    def evaluate_food(self, food: Food, criteria: FilterCriteria) -> Evaluation:
        previous = criteria.context.previous_meals if criteria.context else ()
        scores = ScoreBreakdown(
            nutritional_fit=score_food_nutritional_fit(food, criteria.target),
            user_preference=FOOD_USER_PREFERENCE,
            availability=FOOD_AVAILABILITY,
            variety=score_variety(food.name, previous),
        )
        reasons = _reasons(scores)

        if scores.nutritional_fit < FOOD_MIN_FIT:
            return Evaluation(False, 0, reasons, scores, "Poor nutritional fit")
        return Evaluation(True, _weighted(FOOD_BASE_SCORE, scores), reasons, scores)


# ──────────────────────────────────────────────────────────────────────
#  Scoring helpers
# ──────────────────────────────────────────────────────────────────────
def recipe_matches_meal_type(recipe: Recipe, meal_type: str) -> bool:
    if not recipe.categories:
        return False
    if meal_type in MAIN_MEAL_TYPES:
        return meal_type in recipe.categories
    if meal_type == "Snack":
        return any(c in SNACK_CATEGORIES for c in recipe.categories)
    return True


def food_matches_meal_type(food: Food, meal_type: str) -> bool:
    if not food.category:
        return True
    if meal_type in ("Breakfast", "Snack"):
        return food.category in _MORNING_FOOD_CATEGORIES
    if meal_type in ("Lunch", "Dinner"):
        return food.category in _MAIN_FOOD_CATEGORIES
    return True


def protein_ratio(item: Recipe | Food) -> float:
    """Share of calories supplied by protein."""
    if item.calories <= 0:
        return 0.0
    return item.protein * 4 / item.calories


def score_nutritional_fit(recipe: Recipe, target: MealNutritionalTarget) -> float:
    t = target.targets
    dev = (
        _dev_pct(recipe.calories, t.calories) * 0.4
        + _dev_pct(recipe.protein, t.protein) * 0.25
        + _dev_pct(recipe.carbs, t.carbs) * 0.2
        + _dev_pct(recipe.fat, t.fat) * 0.15
    )
    return max(0.0, 100 - dev)


def score_food_nutritional_fit(food: Food, target: MealNutritionalTarget) -> float:
    kcal_target = target.targets.calories
    if kcal_target <= 0:
        return 60.0 if food.calories <= 0 else 10.0
    if food.calories > kcal_target * 1.5:
        return 10.0
    if food.calories > kcal_target:
        return 50.0
    ratio = food.calories / kcal_target
    if 0.1 <= ratio <= 0.8:
        return 80.0
    if ratio < 0.1:
        return 60.0
    return 40.0


def score_user_preference(recipe: Recipe, user: UserProfile) -> float:
    score = 50.0
    if user.workout_days and protein_ratio(recipe) > 0.2:
        score += 20

    total = recipe.total_time
    if total <= 15:
        score += 15
    elif total <= 30:
        score += 10
    elif total > 60:
        score -= 15
    return _clamp(score)


def score_availability(recipe: Recipe) -> float:
    n = len(recipe.ingredients)
    score = 80.0
    if n > 10:
        score -= 20
    elif n > 6:
        score -= 10
    if n <= 4:
        score += 10
    return _clamp(score)


def score_variety(name: str, previous_meals: Sequence[str]) -> float:
    return 20.0 if name in previous_meals else 80.0


def _weighted(base: float, s: ScoreBreakdown) -> float:
    score = (
        base
        + (s.nutritional_fit - 50) * 0.4
        + (s.user_preference - 50) * 0.3
        + (s.availability - 50) * 0.2
        + (s.variety - 50) * 0.1
    )
    return _clamp(score)


def _reasons(s: ScoreBreakdown) -> tuple[str, ...]:
    return (
        f"Nutritional fit: {s.nutritional_fit:.0f}/100",
        f"User preference: {s.user_preference:.0f}/100",
        f"Availability: {s.availability:.0f}/100",
        f"Variety: {s.variety:.0f}/100",
    )


def _dev_pct(value: float, target: float) -> float:
    if target <= 0:
        return 0.0 if value == 0 else 100.0
    return abs(value - target) / target * 100


def _clamp(x: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, x))


def _recipe_avoid_reason(recipe: Recipe, terms: list[str], lowered: list[str]) -> str | None:
    if not terms:
        return None
    avoid = dict(zip(lowered, terms))
    for ft in recipe.food_types:
        if ft.strip().lower() in avoid:
            return f"Contains avoided food type: {avoid[ft.strip().lower()]}"
    for allergen in recipe.allergens:
        if allergen.strip().lower() in avoid:
            return f"Contains allergen: {avoid[allergen.strip().lower()]}"
    for ing in recipe.ingredients:
        name = ing.name.lower()
        for term, low in zip(terms, lowered):
            if low in name:
                return f"Contains avoided ingredient: {term}"
    return None


def _needs_oven(recipe: Recipe) -> bool:
    if not recipe.instructions:
        return False
    text = " ".join(recipe.instructions).lower()
    return "bake" in text or "oven" in text

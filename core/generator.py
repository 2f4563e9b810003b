"""
core/generator.py
────────────────────────────────────────────────────────────────────────
Hybrid meal-plan generator: five linear stages, no back-edges.

  1. Preparation      → preconditions, daily + per-slot targets
  2. Pre-filtering    → avoid list, max prep time, baseline scores
  3. Optimization     → slot-specific knapsack items, aggregate bounds,
                        mode-selected solver
  4. Construction     → one Meal per selected item, placeholders for
                        empty slots
  5. Quality          → accuracy / variety / compliance / preference

All public I/O happens through `HybridMealPlanGenerator.generate(...)`
(or `generate_week`), which never raises: every failure comes back as a
`GenerationResult` with `success=False` and zeroed quality.  The catalog
is passed in by the caller; nothing here touches a store.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date as date_cls, timedelta
from enum import Enum
from typing import Any, Callable, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.exceptions import GenerationCancelled, MealPlanError, PreconditionError
from core.knapsack import (
    CancellationToken,
    KnapsackConstraints,
    KnapsackItem,
    KnapsackSolution,
    MultiDimensionalKnapsack,
    create_constraints_from_targets,
    food_to_knapsack_item,
    recipe_to_knapsack_item,
)
from core.models.catalog import Food, Recipe
from core.models.meal import DAILY_SLOT_ORDER, MAIN_MEAL_TYPES, SNACK_CATEGORIES, Meal, MealPlan, MealType
from core.models.user import AvoidList, UserProfile
from core.nutrition_calc import MealNutritionalTarget, NutritionalTargets, NutritionCalculator
from core.recipe_filtering import FilterCriteria, FilterResults, RecipeFilteringEngine
from core.validation import ValidationHelpers

_LOG = logging.getLogger(__name__)

RECIPE_BASELINE_SCORE = 70
FOOD_BASELINE_SCORE = 60
# fresh (80) vs recently eaten (20) variety score at its 10 % weight
RECENT_MEAL_PENALTY = 6
SNACK_MAX_CALORIES = 300
# declared placeholder until preference alignment is learned from history
USER_PREFERENCE_ALIGNMENT = 75.0
CATEGORY_BALANCE = 75.0
INFEASIBLE_WARNING = "Optimization could not find feasible solution, using best approximation"
NO_ITEMS_ERROR = "No suitable recipes found after filtering"

_COMPLIANCE_SCORES = {"excellent": 95.0, "good": 80.0, "acceptable": 65.0}
_POOR_COMPLIANCE_SCORE = 40.0


# ──────────────────────────────────────────────────────────────────────
#  Modes
# ──────────────────────────────────────────────────────────────────────
class GenerationMode(str, Enum):
    speed = "speed"
    balanced = "balanced"
    quality = "quality"


@dataclass(frozen=True)
class ModeProfile:
    algorithm: str
    tolerance_percent: float
    time_limit: float            # seconds
    estimate_multiplier: float


MODE_PROFILES: dict[GenerationMode, ModeProfile] = {
    GenerationMode.speed: ModeProfile("greedy", 30, 2.0, 0.5),
    GenerationMode.balanced: ModeProfile("hybrid", 20, 5.0, 1.0),
    GenerationMode.quality: ModeProfile("dynamic", 15, 10.0, 2.0),
}

_VARIETY_MULTIPLIERS = {"low": 0.8, "medium": 1.0, "high": 1.5}
ESTIMATE_BASE_MS = 2000
WEEK_DAYS = 7


# ──────────────────────────────────────────────────────────────────────
#  Options / results
# ──────────────────────────────────────────────────────────────────────
class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GenerationPreferences(_CamelModel):
    avoid_ingredients: list[str] = Field(default_factory=list)
    variety_level: str | None = None         # "low" | "medium" | "high"
    max_prep_time: float | None = None       # minutes, whole day
    min_protein: float | None = None         # grams, whole day
    max_calories: float | None = None        # kcal, whole day
    previous_meals: list[str] = Field(default_factory=list)


class GenerationOptions(_CamelModel):
    user: UserProfile
    date: str
    mode: GenerationMode = GenerationMode.balanced
    week_plan: bool = False
    preferences: GenerationPreferences | None = None


class MacroAccuracy(_CamelModel):
    calories: float = 0
    protein: float = 0
    carbs: float = 0
    fat: float = 0


class ConstraintCounts(_CamelModel):
    satisfied: int = 0
    total: int = 0
    critical: int = 0


class VarietyBreakdown(_CamelModel):
    ingredient_diversity: float = 0
    recipe_repetition: float = 0
    category_balance: float = 0


class QualityBreakdown(_CamelModel):
    macro_accuracy: MacroAccuracy = Field(default_factory=MacroAccuracy)
    constraints: ConstraintCounts = Field(default_factory=ConstraintCounts)
    variety: VarietyBreakdown = Field(default_factory=VarietyBreakdown)


class QualityMetrics(_CamelModel):
    overall: float = 0
    nutritional_accuracy: float = 0
    variety_score: float = 0
    constraint_compliance: float = 0
    user_preference_alignment: float = 0
    breakdown: QualityBreakdown = Field(default_factory=QualityBreakdown)

    @classmethod
    def empty(cls) -> "QualityMetrics":
        return cls()


class GenerationMetadata(_CamelModel):
    algorithms_used: list[str] = Field(default_factory=list)
    iterations_completed: int = 0
    recipes_considered: int = 0
    final_optimality: float = 0
    optimality_is_declared: bool = True
    validation_score: float | None = None


class GenerationResult(_CamelModel):
    success: bool
    meal_plan: MealPlan | None = None
    week_plan: list[MealPlan] | None = None
    quality: QualityMetrics = Field(default_factory=QualityMetrics.empty)
    generation_time: int = 0                 # ms
    error: str | None = None
    warnings: list[str] | None = None
    metadata: GenerationMetadata = Field(default_factory=GenerationMetadata)


@dataclass(frozen=True)
class _Eligible:
    item: Recipe | Food
    kind: str
    score: float


# ──────────────────────────────────────────────────────────────────────
#  Generator
# ──────────────────────────────────────────────────────────────────────
class HybridMealPlanGenerator:
    def __init__(
        self,
        calc: NutritionCalculator | None = None,
        engine: RecipeFilteringEngine | None = None,
        solver: MultiDimensionalKnapsack | None = None,
        validator: ValidationHelpers | None = None,
        *,
        default_max_prep_time: float = 90,
        default_max_cost: float = 100,
        max_volume: float = 100,
    ) -> None:
        self._calc = calc or NutritionCalculator()
        self._engine = engine or RecipeFilteringEngine()
        self._solver = solver or MultiDimensionalKnapsack()
        self._validator = validator or ValidationHelpers()
        self._default_max_prep_time = default_max_prep_time
        self._default_max_cost = default_max_cost
        self._max_volume = max_volume

    # --------------- public entrypoints -------------------------------
    def generate(
        self,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        options: GenerationOptions,
        cancel_token: CancellationToken | None = None,
    ) -> GenerationResult:
        if options.week_plan:
            return self.generate_week(recipes, foods, options, cancel_token=cancel_token)

        start = time.perf_counter()
        _LOG.debug("generation for %s on %s (mode=%s)", options.user.id, options.date, options.mode.value)
        try:
            return self._pipeline(recipes, foods, options, cancel_token, start)
        except GenerationCancelled as exc:
            _LOG.info("generation for %s cancelled", options.user.id)
            return _error_result(str(exc), start)
        except MealPlanError as exc:
            _LOG.warning("generation for %s failed: %s", options.user.id, exc)
            return _error_result(str(exc), start)
        except Exception as exc:  # boundary: nothing escapes generate()
            _LOG.exception("unexpected error while generating for %s", options.user.id)
            return _error_result(str(exc) or type(exc).__name__, start)

    def generate_week(
        self,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        options: GenerationOptions,
        days: int = WEEK_DAYS,
        cancel_token: CancellationToken | None = None,
    ) -> GenerationResult:
        """Independent single-day runs over consecutive dates."""
        start = time.perf_counter()
        try:
            first = date_cls.fromisoformat(options.date)
        except ValueError:
            return _error_result("Date must be in YYYY-MM-DD format", start)

        results: list[tuple[str, GenerationResult]] = []
        for offset in range(days):
            if cancel_token is not None and cancel_token.is_cancelled:
                return _error_result(str(GenerationCancelled()), start)
            day = (first + timedelta(days=offset)).isoformat()
            day_opts = options.model_copy(update={"date": day, "week_plan": False})
            results.append((day, self.generate(recipes, foods, day_opts, cancel_token)))

        failures = [f"{day}: {r.error}" for day, r in results if not r.success]
        warnings = [f"{day}: {w}" for day, r in results for w in (r.warnings or [])]
        algorithms: list[str] = []
        for _, r in results:
            algorithms.extend(a for a in r.metadata.algorithms_used if a not in algorithms)

        return GenerationResult(
            success=not failures,
            week_plan=[r.meal_plan for _, r in results if r.meal_plan is not None],
            quality=_mean_quality([r.quality for _, r in results]),
            generation_time=_elapsed_ms(start),
            error="; ".join(failures) if failures else None,
            warnings=warnings or None,
            metadata=GenerationMetadata(
                algorithms_used=algorithms,
                iterations_completed=sum(r.metadata.iterations_completed for _, r in results),
                recipes_considered=sum(r.metadata.recipes_considered for _, r in results),
                final_optimality=sum(r.metadata.final_optimality for _, r in results) / max(1, len(results)),
            ),
        )

    # --------------- the pipeline -------------------------------------
    def _pipeline(
        self,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        options: GenerationOptions,
        cancel_token: CancellationToken | None,
        start: float,
    ) -> GenerationResult:
        warnings: list[str] = []
        prefs = options.preferences or GenerationPreferences()

        # 1 ─ preparation
        user, daily, targets, validation_score = self._prepare(options, prefs, warnings)
        _check(cancel_token)

        # 2 ─ pre-filtering
        eligible = self._prefilter(recipes, foods, user, prefs)
        if not eligible:
            raise PreconditionError(NO_ITEMS_ERROR)
        _LOG.debug("pre-filtering: %d/%d items eligible", len(eligible), len(recipes) + len(foods))
        _check(cancel_token)

        # 3 ─ optimization
        profile = MODE_PROFILES[options.mode]
        items = self.build_knapsack_items(eligible, targets)
        constraints = self.build_constraints(targets, profile, prefs)
        solution = self._solver.solve(
            items,
            constraints,
            algorithm=profile.algorithm,
            time_limit=profile.time_limit,
            cancel_token=cancel_token,
        )
        if not solution.feasible:
            _LOG.warning("%s: %s", options.date, INFEASIBLE_WARNING)
            warnings.append(INFEASIBLE_WARNING)
        _check(cancel_token)

        # 4 ─ construction
        plan = self.construct_meal_plan(solution.selected_items, targets, user.id, options.date)

        # 5 ─ quality
        quality = self.evaluate_quality(plan, daily, recipes, foods)

        elapsed = _elapsed_ms(start)
        _LOG.debug("generation complete in %d ms, quality %.1f", elapsed, quality.overall)
        return GenerationResult(
            success=True,
            meal_plan=plan,
            quality=quality,
            generation_time=elapsed,
            warnings=warnings or None,
            metadata=GenerationMetadata(
                algorithms_used=_algorithms_used(solution),
                iterations_completed=solution.iterations,
                recipes_considered=len(recipes) + len(foods),
                final_optimality=solution.optimality,
                validation_score=validation_score,
            ),
        )

    def _prepare(
        self,
        options: GenerationOptions,
        prefs: GenerationPreferences,
        warnings: list[str],
    ) -> tuple[UserProfile, NutritionalTargets, list[MealNutritionalTarget], float]:
        opt_check = self._validator.validate_generation_options(options)
        if opt_check.errors:
            raise PreconditionError(opt_check.errors[0])
        warnings.extend(opt_check.warnings)

        user = options.user
        if user.adjusted_tdci is None:
            raise PreconditionError("User TDCI not calculated")
        if user.meal_preferences is None:
            raise PreconditionError("User meal preferences not set")

        # advisory only: logged and surfaced, never blocks
        check = self._validator.validate_user(user)
        for w in check.warnings:
            _LOG.warning("profile %s: %s", user.id, w)
        warnings.extend(check.warnings)

        if prefs.avoid_ingredients:
            avoid = (user.avoid_meals or AvoidList()).extended(prefs.avoid_ingredients)
            user = user.model_copy(update={"avoid_meals": avoid})

        daily = self._calc.calculate_daily_targets(user)
        targets = self._calc.calculate_meal_targets(user, daily)
        if not targets:
            raise PreconditionError("No meal targets calculated")
        _LOG.debug("daily target %s kcal over %d slots", daily.calories, len(targets))
        return user, daily, targets, check.score

    def _prefilter(
        self,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        user: UserProfile,
        prefs: GenerationPreferences,
    ) -> list[_Eligible]:
        avoided = self._engine.apply_avoidance_filters(recipes, foods, user)
        kept_recipes = avoided.recipes
        if prefs.max_prep_time:
            kept_recipes = [r for r in kept_recipes if r.total_time <= prefs.max_prep_time]

        recent = set(prefs.previous_meals)

        def baseline(item: Recipe | Food, score: float) -> float:
            return score - RECENT_MEAL_PENALTY if item.name in recent else score

        return [
            *(_Eligible(r, "recipe", baseline(r, RECIPE_BASELINE_SCORE)) for r in kept_recipes),
            *(_Eligible(f, "food", baseline(f, FOOD_BASELINE_SCORE)) for f in avoided.foods),
        ]

    # --------------- stage helpers (public for tests / API) -----------
    def build_knapsack_items(
        self, eligible: Sequence[_Eligible], targets: Sequence[MealNutritionalTarget]
    ) -> list[KnapsackItem]:
        items: list[KnapsackItem] = []
        for e in eligible:
            for target in targets:
                if e.kind == "recipe":
                    if is_recipe_suitable_for_meal(e.item, target):
                        items.append(recipe_to_knapsack_item(e.item, target, e.score))
                else:
                    items.append(food_to_knapsack_item(e.item, target, e.score))
        return items

    def build_constraints(
        self,
        targets: Sequence[MealNutritionalTarget],
        profile: ModeProfile,
        prefs: GenerationPreferences,
    ) -> KnapsackConstraints:
        constraints = create_constraints_from_targets(
            targets,
            tolerance_percent=profile.tolerance_percent,
            max_prep_time=prefs.max_prep_time or self._default_max_prep_time,
            max_cost=self._default_max_cost,
            max_volume=self._max_volume,
        )
        if prefs.max_calories:
            cap = min(constraints.max_calories, prefs.max_calories)
            constraints = replace(
                constraints, max_calories=cap, min_calories=min(constraints.min_calories, cap)
            )
        if prefs.min_protein:
            floor = max(constraints.min_protein, prefs.min_protein)
            constraints = replace(
                constraints, min_protein=floor, max_protein=max(constraints.max_protein, floor)
            )
        return constraints

    def construct_meal_plan(
        self,
        selected: Sequence[KnapsackItem],
        targets: Sequence[MealNutritionalTarget],
        user_id: str,
        day: str,
    ) -> MealPlan:
        groups: dict[str, list[KnapsackItem]] = defaultdict(list)
        for item in selected:
            groups[item.slot_key].append(item)

        meals: list[Meal] = []
        for slot_items in groups.values():
            for index, item in enumerate(slot_items):
                c = item.constraints
                meals.append(
                    Meal(
                        id=f"{item.id}-{day}-{index}",
                        type=MealType(item.meal_type),
                        name=item.name,
                        position=item.position,
                        user_id=user_id,
                        date=day,
                        calories=c.calories,
                        protein=c.protein,
                        carbs=c.carbs,
                        fat=c.fat,
                        source_id=item.source.id,
                    )
                )

        for target in targets:
            if target.slot_key not in groups:
                meals.append(
                    Meal(
                        id=f"placeholder-{day}-{target.slot_key}",
                        type=MealType(target.meal_type),
                        name=f"Default {target.meal_type}",
                        position=target.position,
                        user_id=user_id,
                        date=day,
                    )
                )

        meals.sort(key=lambda m: DAILY_SLOT_ORDER.get(m.slot_key, len(DAILY_SLOT_ORDER)))
        return MealPlan(id=f"plan-{user_id}-{day}", user_id=user_id, date=day, meals=meals)

    def evaluate_quality(
        self,
        plan: MealPlan,
        daily: NutritionalTargets,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
    ) -> QualityMetrics:
        analysis = self._calc.analyze_meal_plan_compliance(plan.meals, recipes, foods, daily)
        dev = analysis.deviation

        total = len(plan.meals)
        unique = len({m.name for m in plan.meals})
        variety = unique / total * 100 if total else 0.0
        compliance = _COMPLIANCE_SCORES.get(analysis.compliance, _POOR_COMPLIANCE_SCORE)
        accuracy = max(0.0, 100 - (dev.calories + dev.protein + dev.carbs + dev.fat) / 4)

        overall = (
            accuracy * 0.35
            + variety * 0.25
            + compliance * 0.25
            + USER_PREFERENCE_ALIGNMENT * 0.15
        )
        return QualityMetrics(
            overall=overall,
            nutritional_accuracy=accuracy,
            variety_score=variety,
            constraint_compliance=compliance,
            user_preference_alignment=USER_PREFERENCE_ALIGNMENT,
            breakdown=QualityBreakdown(
                macro_accuracy=MacroAccuracy(
                    calories=dev.calories, protein=dev.protein, carbs=dev.carbs, fat=dev.fat
                ),
                constraints=ConstraintCounts(
                    satisfied=4 if compliance > 60 else 3 if compliance > 40 else 2,
                    total=4,
                    critical=4 if compliance > 80 else 3 if compliance > 60 else 2,
                ),
                variety=VarietyBreakdown(
                    ingredient_diversity=variety,
                    recipe_repetition=max(0.0, 100 - (total - unique) * 20),
                    category_balance=CATEGORY_BALANCE,
                ),
            ),
        )


# ──────────────────────────────────────────────────────────────────────
#  Helpers
# ──────────────────────────────────────────────────────────────────────
def is_recipe_suitable_for_meal(recipe: Recipe, target: MealNutritionalTarget) -> bool:
    if target.meal_type in MAIN_MEAL_TYPES:
        return target.meal_type in recipe.categories
    if target.meal_type == "Snack":
        return (
            any(c in SNACK_CATEGORIES for c in recipe.categories)
            or recipe.calories < SNACK_MAX_CALORIES
        )
    return True


def estimate_generation_time(options: GenerationOptions) -> int:
    """Rough wall-clock estimate in ms for a progress indicator."""
    variety = options.preferences.variety_level if options.preferences else None
    return estimate_for(options.mode, options.week_plan, variety)


def estimate_for(
    mode: GenerationMode | str, week_plan: bool = False, variety_level: str | None = None
) -> int:
    multiplier = MODE_PROFILES[GenerationMode(mode)].estimate_multiplier
    if week_plan:
        multiplier *= WEEK_DAYS
    multiplier *= _VARIETY_MULTIPLIERS.get(variety_level or "medium", 1.0)
    return round(ESTIMATE_BASE_MS * multiplier)


def _workout_min_protein(user: UserProfile) -> float:
    tdci = user.adjusted_tdci
    return tdci * 0.3 / 4 if tdci else 150


QUICK_PRESETS: dict[str, Callable[[UserProfile, str], GenerationOptions]] = {
    "quick": lambda user, day: GenerationOptions(
        user=user, date=day, mode=GenerationMode.speed,
        preferences=GenerationPreferences(variety_level="medium", max_prep_time=30),
    ),
    "balanced": lambda user, day: GenerationOptions(
        user=user, date=day, mode=GenerationMode.balanced,
        preferences=GenerationPreferences(variety_level="medium", max_prep_time=45),
    ),
    "premium": lambda user, day: GenerationOptions(
        user=user, date=day, mode=GenerationMode.quality,
        preferences=GenerationPreferences(variety_level="high", max_prep_time=60),
    ),
    "week_plan": lambda user, day: GenerationOptions(
        user=user, date=day, mode=GenerationMode.quality, week_plan=True,
        preferences=GenerationPreferences(variety_level="high", max_prep_time=45),
    ),
    "workout": lambda user, day: GenerationOptions(
        user=user, date=day, mode=GenerationMode.balanced,
        preferences=GenerationPreferences(
            variety_level="medium", min_protein=_workout_min_protein(user), max_prep_time=30
        ),
    ),
}


def _check(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()


def _elapsed_ms(start: float) -> int:
    return max(0, round((time.perf_counter() - start) * 1000))


def _algorithms_used(solution: KnapsackSolution) -> list[str]:
    used = ["pre-filtering", f"knapsack-{solution.algorithm}"]
    if solution.algorithm == "hybrid":
        used.append("local-search")
    return used


def _error_result(message: str, start: float) -> GenerationResult:
    return GenerationResult(
        success=False,
        error=message,
        quality=QualityMetrics.empty(),
        generation_time=_elapsed_ms(start),
    )


def _mean_quality(qualities: Sequence[QualityMetrics]) -> QualityMetrics:
    if not qualities:
        return QualityMetrics.empty()
    dumps = [q.model_dump() for q in qualities]
    return QualityMetrics.model_validate(_mean_dicts(dumps))


def _mean_dicts(dicts: list[dict[str, Any]]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in dicts[0].items():
        column = [d[key] for d in dicts]
        if isinstance(value, dict):
            out[key] = _mean_dicts(column)
        elif isinstance(value, int):
            out[key] = round(sum(column) / len(column))
        else:
            out[key] = sum(column) / len(column)
    return out


# ──────────────────────────────────────────────────────────────────────
#  Module-level convenience API
# ──────────────────────────────────────────────────────────────────────
def generate_meal_plan(
    recipes: Sequence[Recipe],
    foods: Sequence[Food],
    options: GenerationOptions,
    cancel_token: CancellationToken | None = None,
) -> GenerationResult:
    return HybridMealPlanGenerator().generate(recipes, foods, options, cancel_token)


def calculate_nutritional_targets(user: UserProfile) -> NutritionalTargets:
    return NutritionCalculator().calculate_daily_targets(user)


def calculate_meal_targets(user: UserProfile, daily: NutritionalTargets) -> list[MealNutritionalTarget]:
    return NutritionCalculator().calculate_meal_targets(user, daily)


def filter_recipes_for_meal(
    recipes: Sequence[Recipe], foods: Sequence[Food], criteria: FilterCriteria
) -> FilterResults:
    return RecipeFilteringEngine().filter_for_meal(recipes, foods, criteria)


def optimize_meal_selection(
    items: Sequence[KnapsackItem],
    constraints: KnapsackConstraints,
    mode: GenerationMode | str = GenerationMode.balanced,
) -> KnapsackSolution:
    profile = MODE_PROFILES[GenerationMode(mode)]
    return MultiDimensionalKnapsack().solve(
        items, constraints, algorithm=profile.algorithm, time_limit=profile.time_limit
    )

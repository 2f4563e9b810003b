"""
core/nutrition_calc.py
────────────────────────────────────────────────────────────────────────
Daily and per-meal nutrition targets for the meal-plan generator:

1. BMR  (Mifflin–St Jeor)
2. TDEE (activity multiplier, default 1.2)
3. TDCI (fitness-goal calorie adjustment) unless the profile already has one
4. Macro split driven by lean body mass and body-fat %
5. Per-slot targets from portion sizes, tolerance checks and compliance
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Iterable, Literal, Sequence

from core.exceptions import PreconditionError
from core.models.catalog import Food, Recipe
from core.models.meal import MAIN_MEAL_TYPES, Meal
from core.models.user import Goal, UserProfile

_LOG = logging.getLogger(__name__)

Priority = Literal["high", "medium", "low"]
Compliance = Literal["excellent", "good", "acceptable", "poor"]

FALLBACK_TDCI = 2000
DEFAULT_ACTIVITY_MULTIPLIER = 1.2
DEFAULT_SNACK_PORTION = 0.1

# ─── tolerances (fractions, daily calories in kcal) ──────────────────
PROTEIN_TOLERANCE = 0.10
FAT_TOLERANCE = 0.20
CARBS_TOLERANCE = 0.25
MEAL_CALORIES_TOLERANCE = 0.03
DAILY_CALORIES_TOLERANCE = 100

_PROTEIN_THRESHOLDS = {
    "Male": (8, 12, 15, 20, 25, 30, 35),
    "Female": (15, 20, 25, 30, 35, 40, 45),
}
_PROTEIN_MULTIPLIERS = (3.55, 3.40, 3.25, 3.1, 2.95, 2.8, 2.65)
_BODY_FAT_BOUNDS = {"Male": (8, 35), "Female": (15, 45)}


def round_half_up(x: float) -> int:
    """Integer rounding with .5 going up (``round`` would go to even)."""
    return int(math.floor(x + 0.5))


# ──────────────────────────────────────────────────────────────────────
#  Result containers
# ──────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class NutritionalTargets:
    calories: float
    protein: float          # grams
    carbs: float            # grams
    fat: float              # grams
    protein_percentage: float = 0
    carbs_percentage: float = 0
    fat_percentage: float = 0


@dataclass(frozen=True)
class MealNutritionalTarget:
    meal_type: str
    targets: NutritionalTargets
    portion_multiplier: float
    priority: Priority
    position: str | None = None

    @property
    def slot_key(self) -> str:
        return self.position or self.meal_type

    @property
    def is_snack(self) -> bool:
        return self.meal_type not in MAIN_MEAL_TYPES


@dataclass(frozen=True)
class ToleranceCheck:
    protein: bool
    fat: bool
    carbs: bool
    calories: bool
    overall: bool


@dataclass(frozen=True)
class DailyCaloriesCheck:
    within_tolerance: bool
    deviation: float            # fraction of target
    deviation_absolute: float   # kcal


@dataclass(frozen=True)
class RecipeScalingResult:
    recipe: Recipe
    scaling_factor: float
    scaled: NutritionalTargets
    display_portion: str        # "1.5x portion"
    within_tolerance: bool
    priority_score: float       # 0–100


@dataclass(frozen=True)
class MacroDeviation:
    calories: float             # percent
    protein: float
    carbs: float
    fat: float
    overall: float


@dataclass(frozen=True)
class NutritionalAnalysis:
    current: NutritionalTargets
    target: NutritionalTargets
    deviation: MacroDeviation
    compliance: Compliance
    within_tolerance: ToleranceCheck
    matched_meals: int


# ──────────────────────────────────────────────────────────────────────
#  Calculator
# ──────────────────────────────────────────────────────────────────────
class NutritionCalculator:
    """Source-of-truth for daily kcal + macros and their per-slot split."""

    # --------------- public entrypoints -------------------------------
    def calculate_daily_targets(self, user: UserProfile) -> NutritionalTargets:
        tdci = user.adjusted_tdci or self.calculate_tdci(user)
        macros = self.calculate_daily_macros(user, tdci)
        _LOG.debug("daily targets for %s: %s", user.id, macros)
        return macros

    def calculate_meal_targets(
        self, user: UserProfile, daily: NutritionalTargets
    ) -> list[MealNutritionalTarget]:
        """One target per main meal plus one per configured snack position."""
        if user.meal_preferences is None:
            raise PreconditionError("User meal preferences not set")

        positions = user.snack_positions
        portions = user.portion_sizes or self.default_portion_sizes(len(positions), positions)

        out: list[MealNutritionalTarget] = []
        for meal_type in MAIN_MEAL_TYPES:
            fraction = portions.get(meal_type) or 1 / 3
            out.append(
                MealNutritionalTarget(
                    meal_type=meal_type,
                    targets=_scale(daily, fraction),
                    portion_multiplier=fraction,
                    priority="high",
                )
            )
        for position in positions:
            fraction = portions.get(position) or portions.get("Snack") or DEFAULT_SNACK_PORTION
            out.append(
                MealNutritionalTarget(
                    meal_type="Snack",
                    position=position,
                    targets=_scale(daily, fraction),
                    portion_multiplier=fraction,
                    priority="medium",
                )
            )
        return out

    @staticmethod
    def default_portion_sizes(snack_count: int, positions: Sequence[str] = ()) -> dict[str, float]:
        """Flat 10 % per snack, main meals share the rest evenly."""
        main = (1 - snack_count * DEFAULT_SNACK_PORTION) / 3
        portions = {m: main for m in MAIN_MEAL_TYPES}
        portions["Snack"] = DEFAULT_SNACK_PORTION
        for p in positions:
            portions[p] = DEFAULT_SNACK_PORTION
        return portions

    # --------------- BMR / TDEE / TDCI --------------------------------
    def bmr(self, u: UserProfile) -> float:
        base = 10 * (u.weight or 0) + 6.25 * (u.height or 0) - 5 * (u.age or 0)
        return base + (-161 if u.gender == "Female" else 5)

    def tdee(self, u: UserProfile) -> float:
        return self.bmr(u) * (u.activity_multiplier or DEFAULT_ACTIVITY_MULTIPLIER)

    def calculate_tdci(self, u: UserProfile) -> float:
        if not (u.weight and u.height and u.age):
            _LOG.debug("physical attributes missing → %d kcal fallback", FALLBACK_TDCI)
            return FALLBACK_TDCI

        tdee = self.tdee(u)
        if u.fitness_goal is None:
            return round_half_up(tdee)

        adj = u.fitness_goal.adjustment_percent
        if u.fitness_goal.goal == Goal.lose_fat or adj < 0:
            tdee *= 1 - abs(adj) / 100
        elif u.fitness_goal.goal == Goal.build_muscle and adj > 0:
            tdee *= 1 + adj / 100
        return round_half_up(tdee)

    # --------------- Macros -------------------------------------------
    def calculate_daily_macros(self, u: UserProfile, tdci: float) -> NutritionalTargets:
        body_fat = u.body_fat if u.body_fat is not None else 15
        weight = u.weight if u.weight is not None else 70
        gender = u.gender or "Male"

        lbm = weight * (1 - body_fat / 100)
        protein = round_half_up(lbm * protein_multiplier(body_fat, gender))

        fat_pc = round_half_up(fat_percentage(body_fat, gender))
        fat = round_half_up(tdci * fat_pc / 100 / 9)

        carbs = round_half_up((tdci - protein * 4 - fat * 9) / 4)
        protein_pc = round_half_up(protein * 4 / tdci * 100) if tdci > 0 else 0

        return NutritionalTargets(
            calories=tdci,
            protein=protein,
            carbs=carbs,
            fat=fat,
            protein_percentage=protein_pc,
            carbs_percentage=100 - protein_pc - fat_pc,
            fat_percentage=fat_pc,
        )

    # --------------- Tolerances ---------------------------------------
    def check_tolerances(
        self,
        current: NutritionalTargets,
        target: NutritionalTargets,
        priority: Priority = "medium",
    ) -> ToleranceCheck:
        protein = _within(current.protein, target.protein, PROTEIN_TOLERANCE)
        fat = _within(current.fat, target.fat, FAT_TOLERANCE)
        carbs = _within(current.carbs, target.carbs, CARBS_TOLERANCE)
        calories = _within(current.calories, target.calories, MEAL_CALORIES_TOLERANCE)

        if priority == "high":
            overall = protein and calories
        elif priority == "medium":
            overall = protein and (fat or calories)
        else:
            overall = calories
        return ToleranceCheck(protein, fat, carbs, calories, overall)

    def check_daily_calories_tolerance(self, total: float, target: float) -> DailyCaloriesCheck:
        absolute = abs(total - target)
        return DailyCaloriesCheck(
            within_tolerance=absolute <= DAILY_CALORIES_TOLERANCE,
            deviation=absolute / target if target > 0 else 0,
            deviation_absolute=absolute,
        )

    # --------------- Recipe scaling -----------------------------------
    def scale_recipe_to_target(
        self,
        recipe: Recipe,
        target: NutritionalTargets,
        priority: Priority = "medium",
    ) -> RecipeScalingResult:
        factor = target.calories / recipe.calories if recipe.calories > 0 else 1.0
        kcal = recipe.calories
        scaled = NutritionalTargets(
            calories=round_half_up(kcal * factor),
            protein=round_half_up(recipe.protein * factor),
            carbs=round_half_up(recipe.carbs * factor),
            fat=round_half_up(recipe.fat * factor),
            protein_percentage=recipe.protein * 4 / kcal * 100 if kcal else 0,
            carbs_percentage=recipe.carbs * 4 / kcal * 100 if kcal else 0,
            fat_percentage=recipe.fat * 9 / kcal * 100 if kcal else 0,
        )
        return RecipeScalingResult(
            recipe=recipe,
            scaling_factor=factor,
            scaled=scaled,
            display_portion=f"{factor:.1f}x portion",
            within_tolerance=self.check_tolerances(scaled, target, priority).overall,
            priority_score=_priority_score(scaled, target, priority),
        )

    def select_best_recipe(
        self,
        candidates: Iterable[Recipe],
        target: NutritionalTargets,
        priority: Priority = "medium",
    ) -> RecipeScalingResult | None:
        scaled = [self.scale_recipe_to_target(r, target, priority) for r in candidates]
        if not scaled:
            return None
        scaled.sort(key=lambda s: (not s.within_tolerance, -s.priority_score))
        return scaled[0]

    # --------------- Plan compliance ----------------------------------
    def analyze_meal_plan_compliance(
        self,
        meals: Sequence[Meal],
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        targets: NutritionalTargets,
    ) -> NutritionalAnalysis:
        """Sum matched meal nutrition by name and grade it against *targets*."""
        by_name: dict[str, Recipe | Food] = {}
        for item in (*foods, *recipes):            # recipes win on a name clash
            by_name[item.name.strip().lower()] = item

        kcal = prot = carbs = fat = 0.0
        matched = 0
        for meal in meals:
            item = by_name.get(meal.name.strip().lower())
            if item is None:
                continue
            matched += 1
            kcal += item.calories
            prot += item.protein
            carbs += item.carbs
            fat += item.fat

        current = NutritionalTargets(calories=kcal, protein=prot, carbs=carbs, fat=fat)
        dev_kcal = _deviation_pct(kcal, targets.calories)
        dev_prot = _deviation_pct(prot, targets.protein)
        dev_carbs = _deviation_pct(carbs, targets.carbs)
        dev_fat = _deviation_pct(fat, targets.fat)
        overall = dev_kcal * 0.4 + dev_prot * 0.2 + dev_carbs * 0.2 + dev_fat * 0.2

        if overall <= 5:
            compliance: Compliance = "excellent"
        elif overall <= 10:
            compliance = "good"
        elif overall <= 20:
            compliance = "acceptable"
        else:
            compliance = "poor"

        return NutritionalAnalysis(
            current=current,
            target=targets,
            deviation=MacroDeviation(dev_kcal, dev_prot, dev_carbs, dev_fat, overall),
            compliance=compliance,
            within_tolerance=self.check_tolerances(current, targets, "medium"),
            matched_meals=matched,
        )


# ──────────────────────────────────────────────────────────────────────
#  Helpers
# ──────────────────────────────────────────────────────────────────────
def protein_multiplier(body_fat: float, gender: str) -> float:
    thresholds = _PROTEIN_THRESHOLDS.get(gender, _PROTEIN_THRESHOLDS["Male"])
    for limit, mult in zip(thresholds, _PROTEIN_MULTIPLIERS):
        if body_fat <= limit:
            return mult
    return _PROTEIN_MULTIPLIERS[-1]


def fat_percentage(body_fat: float, gender: str) -> float:
    lo, hi = _BODY_FAT_BOUNDS.get(gender, _BODY_FAT_BOUNDS["Male"])
    pct = 20 + (body_fat - lo) / (hi - lo) * 15
    return min(35.0, max(20.0, pct))


def _scale(t: NutritionalTargets, k: float) -> NutritionalTargets:
    return replace(
        t,
        calories=round_half_up(t.calories * k),
        protein=round_half_up(t.protein * k),
        carbs=round_half_up(t.carbs * k),
        fat=round_half_up(t.fat * k),
    )


def _within(current: float, target: float, tol: float) -> bool:
    if target == 0:
        return current == 0
    return abs(current - target) / target <= tol


def _deviation(current: float, target: float) -> float:
    if target <= 0:
        return 0.0 if current == 0 else 1.0
    return abs(current - target) / target


def _deviation_pct(current: float, target: float) -> float:
    return _deviation(current, target) * 100


def _priority_score(c: NutritionalTargets, t: NutritionalTargets, priority: Priority) -> float:
    p = 1 - _deviation(c.protein, t.protein)
    k = 1 - _deviation(c.calories, t.calories)
    f = 1 - _deviation(c.fat, t.fat)
    cb = 1 - _deviation(c.carbs, t.carbs)
    if priority == "high":
        score = p * 0.5 + k * 0.3 + f * 0.2
    elif priority == "medium":
        score = p * 0.3 + k * 0.3 + f * 0.2 + cb * 0.2
    else:
        score = k * 0.6 + p * 0.4
    return max(0.0, min(1.0, score)) * 100

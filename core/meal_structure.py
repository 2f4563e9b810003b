"""
core/meal_structure.py
────────────────────────────────────────────────────────────────────────
The day's meal skeleton: which slots exist, in what order, and how many
kcal each one is owed.

Main meals are always Breakfast / Lunch / Dinner; snacks come from the
user's configured positions.  Fractions come from the user's portion
map when present, otherwise from `calculate_default_portion_sizes`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Sequence

from core.exceptions import PreconditionError
from core.models.meal import DAILY_SLOT_ORDER, MAIN_MEAL_TYPES, Meal, MealPlan, MealType, SnackPosition
from core.models.user import UserProfile
from core.nutrition_calc import round_half_up
from core.validation import ValidationResult

_LOG = logging.getLogger(__name__)

# share of the post-snack remainder per main meal
DEFAULT_MAIN_SPLIT = {"Breakfast": 0.28, "Lunch": 0.38, "Dinner": 0.34}
# used when a custom portion map lacks a main meal
CUSTOM_MAIN_FALLBACK = {"Breakfast": 0.25, "Lunch": 0.35, "Dinner": 0.30}

TIME_SLOTS = {
    SnackPosition.before_breakfast.value: "morning",
    "Breakfast": "morning",
    SnackPosition.between_breakfast_and_lunch.value: "morning",
    "Lunch": "midday",
    SnackPosition.between_lunch_and_dinner.value: "afternoon",
    "Dinner": "evening",
    SnackPosition.after_dinner.value: "evening",
}
_SLOT_RANK = {"morning": 0, "midday": 1, "afternoon": 2, "evening": 3}

MAIN_SHARE_RANGE = (60.0, 85.0)     # percent of daily kcal
MAX_MEALS_PER_DAY = 8
MIN_MAIN_MEAL_KCAL = 200
MAX_MAIN_MEAL_SHARE = 0.60
MAX_TOTAL_DRIFT = 0.15


def snack_share(snack_count: int) -> float:
    """Fraction of the day owed to each snack for a given snack count."""
    if snack_count <= 0:
        return 0.0
    if snack_count == 1:
        return 0.15
    if snack_count == 2:
        return 0.12
    if snack_count == 3:
        return 0.08
    return 0.06


# ──────────────────────────────────────────────────────────────────────
#  Data containers
# ──────────────────────────────────────────────────────────────────────
@dataclass(frozen=True)
class MealStructure:
    meal_type: str
    position: str
    order: int
    is_required: bool
    is_snack: bool
    time_slot: str
    portion_multiplier: float
    calorie_target: int


@dataclass(frozen=True)
class DistributionAnalysis:
    main_meal_calories: int
    snack_calories: int
    main_meal_percentage: float
    snack_percentage: float
    per_meal_percentage: dict[str, float]
    is_balanced: bool
    issues: tuple[str, ...] = ()


@dataclass
class DayStructure:
    date: str
    meals: list[MealStructure]
    daily_calories: float
    distribution: DistributionAnalysis

    @property
    def total_meals(self) -> int:
        return len(self.meals)

    @property
    def snacks(self) -> list[MealStructure]:
        return [m for m in self.meals if m.is_snack]

    @property
    def main_meals(self) -> list[MealStructure]:
        return [m for m in self.meals if not m.is_snack]

    @property
    def snack_count(self) -> int:
        return len(self.snacks)

    @property
    def main_meal_count(self) -> int:
        return len(self.main_meals)

    def meal_by_position(self, position: str) -> MealStructure | None:
        return next((m for m in self.meals if m.position == position), None)


# ──────────────────────────────────────────────────────────────────────
#  Builder
# ──────────────────────────────────────────────────────────────────────
class MealStructureBuilder:
    def build_day_structure(self, user: UserProfile, date: str) -> DayStructure:
        if user.meal_preferences is None:
            raise PreconditionError("User meal preferences not configured")
        tdci = user.adjusted_tdci
        if tdci is None:
            raise PreconditionError("User TDCI not calculated")

        positions = user.snack_positions
        fractions = self._fractions(user, positions)

        entries: list[MealStructure] = []
        for meal_type in MAIN_MEAL_TYPES:
            entries.append(_entry(meal_type, meal_type, False, fractions[meal_type], tdci))
        for position in positions:
            entries.append(_entry("Snack", position, True, fractions[position], tdci))

        entries.sort(key=_sort_key)
        meals = [replace(m, order=i) for i, m in enumerate(entries)]
        distribution = analyze_distribution(meals, tdci)
        if not distribution.is_balanced:
            _LOG.warning("unbalanced day for %s: %s", user.id, "; ".join(distribution.issues))
        return DayStructure(date=date, meals=meals, daily_calories=tdci, distribution=distribution)

    def calculate_default_portion_sizes(self, snack_positions: Sequence[str]) -> dict[str, float]:
        share = snack_share(len(snack_positions))
        remainder = 1 - share * len(snack_positions)
        portions = {m: remainder * DEFAULT_MAIN_SPLIT[m] for m in MAIN_MEAL_TYPES}
        for position in snack_positions:
            portions[position] = share
        return portions

    def validate_meal_structure(self, structure: DayStructure) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if structure.main_meal_count < 3:
            errors.append("Must have at least 3 main meals (Breakfast, Lunch, Dinner)")
        present = {m.meal_type for m in structure.meals}
        for meal_type in MAIN_MEAL_TYPES:
            if meal_type not in present:
                errors.append(f"Missing {meal_type.lower()} meal")
        if structure.total_meals > MAX_MEALS_PER_DAY:
            warnings.append(f"More than {MAX_MEALS_PER_DAY} meals per day may be difficult to manage")

        daily = structure.daily_calories
        for m in structure.meals:
            if m.portion_multiplier <= 0:
                errors.append(f"Invalid portion multiplier for {m.position}: {m.portion_multiplier}")
            elif m.portion_multiplier > 3:
                warnings.append(f"Very large portion size for {m.position}: {m.portion_multiplier}x")

            if m.calorie_target <= 0:
                errors.append(f"Invalid calorie target for {m.position}: {m.calorie_target}")
            elif not m.is_snack:
                if m.calorie_target < MIN_MAIN_MEAL_KCAL:
                    warnings.append(f"{m.position} calorie target is very low: {m.calorie_target} kcal")
                if daily > 0 and m.calorie_target > daily * MAX_MAIN_MEAL_SHARE:
                    warnings.append(f"{m.position} takes more than 60% of daily calories")

        total = sum(m.calorie_target for m in structure.meals)
        if daily > 0 and abs(total - daily) / daily > MAX_TOTAL_DRIFT:
            warnings.append(
                f"Meal calorie targets sum to {total} kcal, more than 15% away from {daily:.0f} kcal"
            )

        return ValidationResult.from_findings(errors, warnings)

    def create_empty_meal_plan(self, user: UserProfile, date: str) -> MealPlan:
        structure = self.build_day_structure(user, date)
        meals = [
            Meal(
                id=f"{m.meal_type.lower()}-{date}-{i}",
                type=MealType(m.meal_type),
                name="Snack" if m.is_snack else "",
                position=m.position,
                user_id=user.id,
                date=date,
            )
            for i, m in enumerate(structure.meals)
        ]
        return MealPlan(id=f"plan-{user.id}-{date}", user_id=user.id, date=date, meals=meals)

    def distribute_calories_across_meals(
        self, structure: DayStructure, total_calories: float
    ) -> dict[str, int]:
        """Split *total_calories* proportionally to each slot's multiplier."""
        weight = sum(m.portion_multiplier for m in structure.meals)
        if weight <= 0:
            return {m.position: 0 for m in structure.meals}
        return {
            m.position: round_half_up(m.portion_multiplier / weight * total_calories)
            for m in structure.meals
        }

    # --------------- internals ----------------------------------------
    def _fractions(self, user: UserProfile, positions: list[str]) -> dict[str, float]:
        defaults = self.calculate_default_portion_sizes(positions)
        custom = user.portion_sizes
        if not custom:
            return defaults

        out = {m: custom.get(m) or CUSTOM_MAIN_FALLBACK[m] for m in MAIN_MEAL_TYPES}
        for p in positions:
            out[p] = custom.get(p) or custom.get("Snack") or defaults[p]
        return out


def analyze_distribution(meals: Sequence[MealStructure], daily: float) -> DistributionAnalysis:
    main = sum(m.calorie_target for m in meals if not m.is_snack)
    snacks = sum(m.calorie_target for m in meals if m.is_snack)
    main_pc = main / daily * 100 if daily > 0 else 0.0
    snack_pc = snacks / daily * 100 if daily > 0 else 0.0
    per_meal = {m.position: (m.calorie_target / daily * 100 if daily > 0 else 0.0) for m in meals}

    issues: list[str] = []
    lo, hi = MAIN_SHARE_RANGE
    if main_pc < lo:
        issues.append(f"Main meals provide only {main_pc:.0f}% of daily calories")
    elif main_pc > hi:
        issues.append(f"Main meals provide {main_pc:.0f}% of daily calories, leaving little for snacks")

    return DistributionAnalysis(
        main_meal_calories=main,
        snack_calories=snacks,
        main_meal_percentage=main_pc,
        snack_percentage=snack_pc,
        per_meal_percentage=per_meal,
        is_balanced=not issues,
        issues=tuple(issues),
    )


def _entry(meal_type: str, position: str, is_snack: bool, fraction: float, tdci: float) -> MealStructure:
    return MealStructure(
        meal_type=meal_type,
        position=position,
        order=0,
        is_required=not is_snack,
        is_snack=is_snack,
        time_slot=TIME_SLOTS.get(position, "evening"),
        portion_multiplier=fraction,
        calorie_target=round_half_up(tdci * fraction),
    )


def _sort_key(m: MealStructure) -> tuple[int, int, int]:
    return (
        _SLOT_RANK[m.time_slot],
        1 if m.is_snack else 0,
        DAILY_SLOT_ORDER.get(m.position, len(DAILY_SLOT_ORDER)),
    )


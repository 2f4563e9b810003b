"""
core/validation.py
────────────────────────────────────────────────────────────────────────
Pre-flight checks run before a plan is generated.

Nothing here mutates input or blocks generation by itself; the
generator logs the warnings and carries on.  `validate_user` is the one
that matters: a 0–100 completeness score with weighted deductions and a
hard-error list.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Generic, Mapping, Sequence, TypeVar

from core.models.catalog import Food, Recipe
from core.models.meal import MAIN_MEAL_TYPES
from core.models.user import UserProfile

if TYPE_CHECKING:  # pragma: no cover
    from core.generator import GenerationOptions

_LOG = logging.getLogger(__name__)

T = TypeVar("T")

PASSING_SCORE = 60
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MODES = ("speed", "balanced", "quality")
_VARIETY_LEVELS = ("low", "medium", "high")

# (field, low, high, deduction, label, unit)
_PHYSICAL_RANGES = (
    ("age", 12, 120, 3, "Age", ""),
    ("height", 100, 250, 4, "Height", "cm"),
    ("weight", 30, 300, 5, "Weight", "kg"),
    ("body_fat", 3, 60, 4, "Body fat", "%"),
    ("activity_multiplier", 1.0, 2.5, 3, "Activity multiplier", ""),
)
TDCI_DEDUCTION = 30
MEAL_PREFERENCES_DEDUCTION = 25
PORTION_SIZES_DEDUCTION = 15


# ──────────────────────────────────────────────────────────────────────
#  Result containers
# ──────────────────────────────────────────────────────────────────────
@dataclass
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    score: float = 100.0

    @classmethod
    def from_findings(cls, errors: list[str], warnings: list[str]) -> "ValidationResult":
        score = max(0.0, 100.0 - 25 * len(errors) - 5 * len(warnings))
        return cls(is_valid=not errors, errors=errors, warnings=warnings, score=score)


@dataclass
class UserValidationResult(ValidationResult):
    missing_fields: list[str] = field(default_factory=list)


@dataclass
class CatalogValidationResult(ValidationResult, Generic[T]):
    valid_items: list[T] = field(default_factory=list)
    invalid_items: list[tuple[T, list[str]]] = field(default_factory=list)
    nutrition_data_quality: float = 0.0


@dataclass
class FullValidation:
    is_valid: bool
    user: UserValidationResult
    recipes: CatalogValidationResult[Recipe]
    foods: CatalogValidationResult[Food]
    options: ValidationResult
    overall_score: int
    can_proceed: bool


# ──────────────────────────────────────────────────────────────────────
#  Helpers
# ──────────────────────────────────────────────────────────────────────
class ValidationHelpers:
    # ─────────────────────────────── user ─────────────────────────── #
    def validate_user(self, user: UserProfile) -> UserValidationResult:
        errors: list[str] = []
        warnings: list[str] = []
        missing: list[str] = []
        score = 100.0

        tdci = user.adjusted_tdci
        if tdci is None:
            errors.append("Valid adjusted TDCI is required")
            missing.append("tdci.adjustedTDCI")
            score -= TDCI_DEDUCTION
        elif not 1000 <= tdci <= 5000:
            warnings.append(f"TDCI of {tdci:.0f} calories seems unusual")

        if user.meal_preferences is None:
            errors.append("Meal preferences are required")
            missing.append("mealPreferences")
            score -= MEAL_PREFERENCES_DEDUCTION
        elif len(user.snack_positions) > 5:
            warnings.append("More than 5 snacks per day may be excessive")

        if not user.portion_sizes:
            warnings.append("Portion sizes not configured, using defaults")
            missing.append("portionSizes")
            score -= PORTION_SIZES_DEDUCTION
        else:
            portions = self.validate_portion_sizes(user.portion_sizes)
            errors.extend(portions.errors)
            warnings.extend(portions.warnings)

        for attr, lo, hi, deduction, label, unit in _PHYSICAL_RANGES:
            value = getattr(user, attr)
            if value is None:
                warnings.append(f"{label} not set")
                missing.append(attr)
                score -= deduction
            elif not lo <= value <= hi:
                warnings.append(f"{label} of {value:g}{unit} seems unusual")
                score -= deduction

        score = max(0.0, score)
        return UserValidationResult(
            is_valid=not errors and score >= PASSING_SCORE,
            errors=errors,
            warnings=warnings,
            score=score,
            missing_fields=missing,
        )

    def validate_portion_sizes(self, portions: Mapping[str, float]) -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        mains: list[float] = []
        for meal in MAIN_MEAL_TYPES:
            value = portions.get(meal)
            if value is None:
                warnings.append(f"Missing portion size for {meal}")
                continue
            if value <= 0:
                errors.append(f"Invalid portion size for {meal}: {value}")
                continue
            if not 0.1 <= value <= 1.0:
                warnings.append(f"{meal} portion size {value:g} is outside 0.1–1.0")
            mains.append(value)

        for key, value in portions.items():
            if key not in MAIN_MEAL_TYPES and value <= 0:
                errors.append(f"Invalid portion size for {key}: {value}")

        total = sum(v for v in portions.values() if v > 0)
        main_total = sum(mains)
        if not 0.7 <= total <= 1.5:
            warnings.append(f"Total portion sizes ({total:.2f}) should be close to 1.0")
        if total > 0:
            main_share = main_total / total
            if not 0.6 <= main_share <= 0.9:
                warnings.append(f"Main meals take {main_share:.0%} of portions (expected 60–90%)")
            if 1 - main_share > 0.4:
                warnings.append(f"Snacks take {1 - main_share:.0%} of portions (more than 40%)")
        if len(mains) >= 2 and min(mains) > 0 and max(mains) / min(mains) > 3:
            warnings.append("Main meal portions vary more than 3x")

        return ValidationResult.from_findings(errors, warnings)

    # ─────────────────────────────── catalog ──────────────────────── #
    def validate_recipes(self, recipes: Sequence[Recipe]) -> CatalogValidationResult[Recipe]:
        valid: list[Recipe] = []
        invalid: list[tuple[Recipe, list[str]]] = []
        for recipe in recipes:
            issues: list[str] = []
            if not recipe.name.strip():
                issues.append("Missing recipe name")
            if recipe.calories <= 0:
                issues.append("Missing or invalid calories")
            elif recipe.calories > 2000:
                issues.append("Very high calories (>2000)")
            issues.extend(_negative_macros(recipe))
            if not recipe.ingredients:
                issues.append("No ingredients specified")
            for i, ing in enumerate(recipe.ingredients, start=1):
                if not ing.name.strip():
                    issues.append(f"Ingredient {i} missing name")
                if ing.amount is None:
                    issues.append(f"Ingredient {i} missing amount")
            if recipe.prep_time < 0:
                issues.append("Negative prep time")
            if issues:
                invalid.append((recipe, issues))
            else:
                valid.append(recipe)

        quality = _mean(
            [
                (30 if r.calories > 0 else 0)
                + (15 if r.protein > 0 else 0)
                + (15 if r.carbs > 0 else 0)
                + (15 if r.fat > 0 else 0)
                + 25
                for r in valid
            ]
        )
        return _catalog_result("recipes", recipes, valid, invalid, quality)

    def validate_foods(self, foods: Sequence[Food]) -> CatalogValidationResult[Food]:
        valid: list[Food] = []
        invalid: list[tuple[Food, list[str]]] = []
        for food in foods:
            issues: list[str] = []
            if not food.name.strip():
                issues.append("Missing food name")
            if food.calories <= 0:
                issues.append("Missing or invalid calories per 100g")
            issues.extend(_negative_macros(food))
            if food.calories > 0 and food.protein and food.carbs and food.fat:
                derived = food.protein * 4 + food.carbs * 4 + food.fat * 9
                if abs(food.calories - derived) / food.calories > 0.3:
                    issues.append("Calories don't match macronutrient breakdown")
            if issues:
                invalid.append((food, issues))
            else:
                valid.append(food)

        quality = _mean(
            [
                (25 if f.calories > 0 else 0)
                + (20 if f.protein >= 0 else 0)
                + (20 if f.carbs >= 0 else 0)
                + (20 if f.fat >= 0 else 0)
                + 15
                for f in valid
            ]
        )
        return _catalog_result("foods", foods, valid, invalid, quality)

    # ─────────────────────────────── options ──────────────────────── #
    def validate_generation_options(self, options: "GenerationOptions") -> ValidationResult:
        errors: list[str] = []
        warnings: list[str] = []

        if not options.date:
            errors.append("Date is required for meal plan generation")
        elif not _DATE_RE.match(options.date):
            errors.append("Date must be in YYYY-MM-DD format")
        else:
            try:
                datetime.strptime(options.date, "%Y-%m-%d")
            except ValueError:
                errors.append("Invalid date provided")

        mode = getattr(options.mode, "value", options.mode)
        if mode not in _MODES:
            errors.append('Mode must be "speed", "balanced", or "quality"')

        prefs = options.preferences
        if prefs is not None:
            if prefs.max_prep_time is not None and prefs.max_prep_time < 0:
                warnings.append("Negative max prep time")
            if prefs.max_prep_time is not None and prefs.max_prep_time > 300:
                warnings.append("Very long max prep time (>5 hours)")
            if prefs.min_protein is not None and prefs.min_protein < 0:
                warnings.append("Negative minimum protein")
            if prefs.max_calories is not None and prefs.max_calories < 0:
                warnings.append("Negative maximum calories")
            if prefs.variety_level is not None and prefs.variety_level not in _VARIETY_LEVELS:
                warnings.append('Variety level must be "low", "medium", or "high"')

        return ValidationResult.from_findings(errors, warnings)

    # ─────────────────────────────── all ──────────────────────────── #
    def validate_all(
        self,
        user: UserProfile,
        recipes: Sequence[Recipe],
        foods: Sequence[Food],
        options: "GenerationOptions",
    ) -> FullValidation:
        u = self.validate_user(user)
        r = self.validate_recipes(recipes)
        f = self.validate_foods(foods)
        o = self.validate_generation_options(options)

        overall = round(u.score * 0.4 + r.score * 0.3 + f.score * 0.2 + o.score * 0.1)
        return FullValidation(
            is_valid=u.is_valid and r.is_valid and f.is_valid and o.is_valid,
            user=u,
            recipes=r,
            foods=f,
            options=o,
            overall_score=overall,
            can_proceed=u.is_valid and bool(r.valid_items or f.valid_items) and o.is_valid,
        )


def _negative_macros(item: Recipe | Food) -> list[str]:
    return [f"Negative {m} value" for m in ("protein", "carbs", "fat") if getattr(item, m) < 0]


def _mean(values: list[float]) -> float:
    return round(sum(values) / len(values)) if values else 0.0


def _catalog_result(
    label: str,
    items: Sequence[T],
    valid: list[T],
    invalid: list[tuple[T, list[str]]],
    quality: float,
) -> CatalogValidationResult[T]:
    errors: list[str] = []
    warnings: list[str] = []
    if not valid:
        errors.append(f"No valid {label} available for meal planning")
    if invalid:
        warnings.append(f"{len(invalid)} {label} have issues and will be excluded")
        _LOG.debug("%d invalid %s", len(invalid), label)
    return CatalogValidationResult(
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        score=min(100.0, len(valid) / len(items) * 100) if valid else 0.0,
        valid_items=valid,
        invalid_items=invalid,
        nutrition_data_quality=quality,
    )

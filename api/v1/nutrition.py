# api/v1/nutrition.py
from __future__ import annotations

from dataclasses import asdict

from fastapi import APIRouter, HTTPException, status

from core.exceptions import PreconditionError
from core.meal_structure import MealStructureBuilder
from core.nutrition_calc import NutritionCalculator
from api.v1.schemas import (
    DayStructureOut,
    NutritionTargetsOut,
    StructureRequest,
    UserRequest,
)

router = APIRouter()
_calc = NutritionCalculator()
_builder = MealStructureBuilder()


@router.post("/targets", response_model=NutritionTargetsOut)
def targets(body: UserRequest) -> NutritionTargetsOut:
    daily = _calc.calculate_daily_targets(body.user)
    try:
        meals = _calc.calculate_meal_targets(body.user, daily)
    except PreconditionError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc)) from exc
    return NutritionTargetsOut.model_validate({"daily": daily, "meals": meals}, from_attributes=True)


@router.post("/structure", response_model=DayStructureOut)
def structure(body: StructureRequest) -> DayStructureOut:
    try:
        day = _builder.build_day_structure(body.user, body.date)
    except PreconditionError as exc:
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc)) from exc
    return DayStructureOut(
        date=day.date,
        daily_calories=day.daily_calories,
        meals=[asdict(m) for m in day.meals],
        distribution=asdict(day.distribution),
        validation=asdict(_builder.validate_meal_structure(day)),
    )

# api/v1/plans.py
from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, HTTPException, Query, status

from config import settings
from core.exceptions import CatalogError
from core.generator import (
    GenerationMode,
    GenerationOptions,
    GenerationResult,
    HybridMealPlanGenerator,
    estimate_for,
)
from core.models.catalog import Food, Recipe
from services.catalog import get_catalog
from api.v1.schemas import EstimateOut, PlanRequest, WeekPlanRequest

router = APIRouter()
_LOG = logging.getLogger(__name__)


@lru_cache
def get_generator() -> HybridMealPlanGenerator:
    return HybridMealPlanGenerator(
        default_max_prep_time=settings.default_max_prep_time,
        default_max_cost=settings.default_max_cost,
        max_volume=settings.max_volume,
    )


def _resolve_catalog(body: PlanRequest) -> tuple[list[Recipe], list[Food]]:
    """Use the request's catalog, or the configured one when both lists are missing."""
    if body.recipes is None and body.foods is None:
        try:
            catalog = get_catalog()
        except CatalogError as exc:
            _LOG.error("catalog unavailable: %s", exc)
            raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, str(exc)) from exc
        return catalog.recipes, catalog.foods
    return body.recipes or [], body.foods or []


def _options(body: PlanRequest, week_plan: bool = False) -> GenerationOptions:
    return GenerationOptions(
        user=body.user,
        date=body.date,
        mode=body.mode or GenerationMode(settings.default_mode),
        week_plan=week_plan,
        preferences=body.preferences,
    )


# ───────────────────────── single day ──────────────────────
@router.post("", response_model=GenerationResult)
def generate_plan(
    body: PlanRequest,
    generator: HybridMealPlanGenerator = Depends(get_generator),
) -> GenerationResult:
    recipes, foods = _resolve_catalog(body)
    return generator.generate(recipes, foods, _options(body))


# ───────────────────────── week ────────────────────────────
@router.post("/week", response_model=GenerationResult)
def generate_week(
    body: WeekPlanRequest,
    generator: HybridMealPlanGenerator = Depends(get_generator),
) -> GenerationResult:
    recipes, foods = _resolve_catalog(body)
    return generator.generate_week(recipes, foods, _options(body, week_plan=True), days=body.days)


# ───────────────────────── estimate ────────────────────────
@router.get("/estimate", response_model=EstimateOut)
def estimate(
    mode: GenerationMode = Query(GenerationMode.balanced),
    week_plan: bool = Query(False),
    variety_level: str | None = Query(None, pattern="^(low|medium|high)$"),
) -> EstimateOut:
    return EstimateOut(
        mode=mode,
        week_plan=week_plan,
        estimated_ms=estimate_for(mode, week_plan, variety_level),
    )

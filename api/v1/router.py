# api/v1/router.py
from fastapi import APIRouter

from . import nutrition, plans, validation

api_router = APIRouter()

api_router.include_router(plans.router, prefix="/meal-plans", tags=["Meal plans"])
api_router.include_router(nutrition.router, prefix="/nutrition", tags=["Nutrition"])
api_router.include_router(validation.router, prefix="/validation", tags=["Validation"])

"""Re-export individual schema modules for easy imports."""

from .nutrition import (
    DayStructureOut,
    NutritionTargetsOut,
    StructureRequest,
    UserRequest,
    UserValidationOut,
)
from .plan import EstimateOut, PlanRequest, WeekPlanRequest

__all__ = [
    "DayStructureOut",
    "NutritionTargetsOut",
    "StructureRequest",
    "UserRequest",
    "UserValidationOut",
    "EstimateOut",
    "PlanRequest",
    "WeekPlanRequest",
]

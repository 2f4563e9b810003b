# api/v1/validation.py
from __future__ import annotations

from fastapi import APIRouter

from core.validation import ValidationHelpers
from api.v1.schemas import UserRequest, UserValidationOut

router = APIRouter()
_helpers = ValidationHelpers()


@router.post("/user", response_model=UserValidationOut)
def validate_user(body: UserRequest) -> UserValidationOut:
    return UserValidationOut.model_validate(_helpers.validate_user(body.user), from_attributes=True)

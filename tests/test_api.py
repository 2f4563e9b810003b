# tests/test_api.py
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import SAMPLE_CATALOG
from main import app

client = TestClient(app)

USER = {
    "id": 42,
    "age": "30",
    "gender": "female",
    "height": 165,
    "weight": 60,
    "bodyFat": 24,
    "activityMultiplier": 1.4,
    "tdci": {"adjustedTDCI": 1800},
    "mealPreferences": {"snackPositions": ["between breakfast and lunch"]},
    "avoidMeals": ["Peanuts"],
}


@pytest.fixture(autouse=True)
def _sample_catalog(monkeypatch):
    from services import catalog as catalog_service

    monkeypatch.setattr(catalog_service.settings, "catalog_path", str(SAMPLE_CATALOG))
    catalog_service.get_catalog.cache_clear()
    yield
    catalog_service.get_catalog.cache_clear()


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_generate_plan_with_configured_catalog():
    r = client.post("/api/v1/meal-plans", json={"user": USER, "date": "2025-03-03", "mode": "speed"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    meals = body["mealPlan"]["meals"]
    assert {m["userId"] for m in meals} == {"42"}
    assert "Peanut Energy Balls" not in {m["name"] for m in meals}


def test_generate_plan_with_inline_catalog():
    payload = {
        "user": USER,
        "date": "2025-03-03",
        "recipes": [{"id": "r", "name": "Toast", "categories": ["Breakfast"], "calories": 300}],
        "foods": [],
    }
    body = client.post("/api/v1/meal-plans", json=payload).json()
    assert body["success"] is True
    names = [m["name"] for m in body["mealPlan"]["meals"]]
    assert names[0] == "Toast"
    assert "Default Dinner" in names


def test_failed_generation_is_still_200():
    user = {**USER, "tdci": None}
    r = client.post("/api/v1/meal-plans", json={"user": user, "date": "2025-03-03"})
    assert r.status_code == 200
    assert r.json()["success"] is False
    assert r.json()["error"] == "User TDCI not calculated"


def test_week_endpoint_bounds_days():
    ok = client.post("/api/v1/meal-plans/week", json={"user": USER, "date": "2025-03-03", "mode": "speed", "days": 2})
    assert ok.status_code == 200
    assert len(ok.json()["weekPlan"]) == 2

    too_many = client.post("/api/v1/meal-plans/week", json={"user": USER, "date": "2025-03-03", "days": 30})
    assert too_many.status_code == 422


def test_missing_catalog_is_500(monkeypatch, tmp_path):
    from services import catalog as catalog_service

    monkeypatch.setattr(catalog_service.settings, "catalog_path", str(tmp_path / "missing.json"))
    catalog_service.get_catalog.cache_clear()
    r = client.post("/api/v1/meal-plans", json={"user": USER, "date": "2025-03-03"})
    assert r.status_code == 500


def test_estimate():
    r = client.get("/api/v1/meal-plans/estimate", params={"mode": "quality", "week_plan": True})
    assert r.status_code == 200
    assert r.json()["estimatedMs"] == 28000


def test_nutrition_targets():
    body = client.post("/api/v1/nutrition/targets", json={"user": USER}).json()
    assert body["daily"]["calories"] == 1800
    assert [m["mealType"] for m in body["meals"]] == ["Breakfast", "Lunch", "Dinner", "Snack"]
    assert body["meals"][-1]["position"] == "Between Breakfast and Lunch"


def test_nutrition_structure():
    r = client.post("/api/v1/nutrition/structure", json={"user": USER, "date": "2025-03-03"})
    assert r.status_code == 200
    body = r.json()
    assert [m["position"] for m in body["meals"]][:2] == ["Breakfast", "Between Breakfast and Lunch"]
    assert body["validation"]["isValid"] is True


def test_nutrition_structure_requires_preferences():
    user = {**USER, "mealPreferences": None}
    r = client.post("/api/v1/nutrition/structure", json={"user": user, "date": "2025-03-03"})
    assert r.status_code == 422
    assert r.json()["detail"] == "User meal preferences not configured"


def test_validate_user_endpoint():
    body = client.post("/api/v1/validation/user", json={"user": USER}).json()
    assert body["isValid"] is True
    assert "portionSizes" in body["missingFields"]

# tests/test_catalog.py
from __future__ import annotations

import json

import pytest

from conftest import SAMPLE_CATALOG
from core.exceptions import CatalogError
from core.models.catalog import Food, Recipe
from services.catalog import load_catalog, parse_catalog


def test_sample_catalog_loads(catalog):
    assert len(catalog.recipes) == 12
    assert len(catalog.foods) == 7
    assert len(catalog) == 19


def test_string_numbers_are_coerced(catalog):
    balls = catalog.find_by_name("peanut energy balls")
    assert isinstance(balls, Recipe)
    assert balls.calories == 280 and balls.fat == 14


def test_string_instructions_become_a_list(catalog):
    scramble = catalog.find_by_name("Veggie Egg Scramble")
    assert scramble.instructions == ["Saute the vegetables, add beaten eggs and stir until set."]
    assert scramble.total_time == 15


def test_find_by_name_covers_foods(catalog):
    assert isinstance(catalog.find_by_name("  Apple "), Food)
    assert catalog.find_by_name("Unicorn Steak") is None


def test_missing_and_bad_columns_default():
    catalog = parse_catalog(
        {
            "recipes": [
                {"id": 1, "name": "Plain", "calories": "abc"},
                {"id": 2, "name": "Soup", "calories": 300, "categories": ["Lunch"], "protein": ""},
            ],
            "foods": [{"id": "f", "name": "Pear"}],
        }
    )
    plain, soup = catalog.recipes
    assert plain.id == "1" and plain.calories == 0 and plain.categories == []
    assert soup.protein == 0 and soup.categories == ["Lunch"]
    assert catalog.foods[0].calories == 0 and catalog.foods[0].category is None


def test_missing_file_raises(tmp_path):
    with pytest.raises(CatalogError, match="not found"):
        load_catalog(tmp_path / "nope.json")


def test_malformed_file_raises(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(CatalogError, match="not valid JSON"):
        load_catalog(path)


def test_wrong_shape_raises(tmp_path):
    path = tmp_path / "list.json"
    path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    with pytest.raises(CatalogError):
        load_catalog(path)


def test_invalid_entry_raises():
    with pytest.raises(CatalogError, match="Invalid catalog entry"):
        parse_catalog({"recipes": [{"id": "x"}]})


def test_sample_path_exists():
    assert SAMPLE_CATALOG.is_file()

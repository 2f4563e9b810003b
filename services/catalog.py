"""
services/catalog.py
────────────────────────────────────────────────────────────────────────
* Loads the recipe / food catalog from a JSON file
* Cleans numeric columns with pandas before building pydantic models
* Small lookup helpers used by routers / the CLI
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any

import pandas as pd
from pydantic import ValidationError

from config import settings
from core.exceptions import CatalogError
from core.models.catalog import Food, Recipe

_LOG = logging.getLogger(__name__)

_RECIPE_NUMERIC = ("prepTime", "cookTime", "calories", "protein", "carbs", "fat")
_RECIPE_LISTS = ("categories", "foodTypes", "allergens", "ingredients", "instructions")
_FOOD_NUMERIC = ("calories", "protein", "carbs", "fat")


# ───────── container ────────────────────────────────────────────────
@dataclass
class Catalog:
    recipes: list[Recipe] = field(default_factory=list)
    foods: list[Food] = field(default_factory=list)

    def find_by_name(self, name: str) -> Recipe | Food | None:
        key = name.strip().lower()
        for item in (*self.recipes, *self.foods):
            if item.name.strip().lower() == key:
                return item
        return None

    def __len__(self) -> int:
        return len(self.recipes) + len(self.foods)


# ───────── loading ──────────────────────────────────────────────────
def _clean_frame(rows: list[dict[str, Any]], numeric: tuple[str, ...], lists: tuple[str, ...] = ()) -> list[dict[str, Any]]:
    """Coerce numeric columns (bad / blank → 0) and default missing list cells."""
    if not rows:
        return []
    df = pd.DataFrame(rows)
    for col in (c for c in numeric if c in df.columns):
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0)
    for col in (c for c in lists if c in df.columns):
        df[col] = df[col].apply(lambda v: v if isinstance(v, (list, str)) else [])
    # pandas turns missing optional strings into NaN
    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient="records")


def parse_catalog(payload: dict[str, Any]) -> Catalog:
    try:
        recipes = [
            Recipe.model_validate(row)
            for row in _clean_frame(payload.get("recipes") or [], _RECIPE_NUMERIC, _RECIPE_LISTS)
        ]
        foods = [
            Food.model_validate(row)
            for row in _clean_frame(payload.get("foods") or [], _FOOD_NUMERIC)
        ]
    except ValidationError as exc:
        raise CatalogError(f"Invalid catalog entry: {exc.errors()[0]['msg']}") from exc
    return Catalog(recipes=recipes, foods=foods)


def load_catalog(path: str | Path) -> Catalog:
    p = Path(path)
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise CatalogError(f"Catalog file not found: {p}") from exc
    except json.JSONDecodeError as exc:
        raise CatalogError(f"Catalog file is not valid JSON: {p}") from exc
    if not isinstance(payload, dict):
        raise CatalogError("Catalog must be an object with 'recipes' and 'foods'")

    catalog = parse_catalog(payload)
    _LOG.info("loaded %d recipes and %d foods from %s", len(catalog.recipes), len(catalog.foods), p)
    return catalog


@lru_cache
def get_catalog() -> Catalog:
    """Process-wide catalog read from ``settings.catalog_path``."""
    return load_catalog(settings.catalog_path)

"""
Generate a meal plan for one user profile and print it as JSON.

Usage
-----

    # one day, configured catalog, default mode
    python -m scripts.generate_plan --user path/to/user.json

    # a week of quality-mode plans from a custom catalog
    python -m scripts.generate_plan --user user.json --catalog my_catalog.json \
        --date 2025-03-03 --mode quality --week --days 7

    # one of the named presets (quick, balanced, premium, week_plan, workout)
    python -m scripts.generate_plan --user user.json --preset workout
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

from pydantic import ValidationError

from app_logging import configure_logging
from config import settings
from core.exceptions import CatalogError
from core.generator import (
    QUICK_PRESETS,
    GenerationMode,
    GenerationOptions,
    HybridMealPlanGenerator,
)
from core.models.user import UserProfile
from services.catalog import load_catalog

_LOG = logging.getLogger(__name__)


def _load_user(path: Path) -> UserProfile:
    return UserProfile.model_validate(json.loads(path.read_text(encoding="utf-8")))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a meal plan")
    parser.add_argument("--user", type=Path, required=True, help="JSON file with the user profile")
    parser.add_argument("--catalog", type=Path, default=Path(settings.catalog_path), help="recipe/food catalog JSON")
    parser.add_argument("--date", default=date.today().isoformat(), help="first day, YYYY-MM-DD")
    parser.add_argument("--mode", choices=[m.value for m in GenerationMode], default=settings.default_mode)
    parser.add_argument("--preset", choices=sorted(QUICK_PRESETS), help="use a named preset (overrides --mode)")
    parser.add_argument("--week", action="store_true", help="generate consecutive days instead of one")
    parser.add_argument("--days", type=int, default=7, help="number of days with --week")
    parser.add_argument("--log-level", default=settings.log_level)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)

    try:
        user = _load_user(args.user)
        catalog = load_catalog(args.catalog)
    except (OSError, json.JSONDecodeError, ValidationError, CatalogError) as exc:
        _LOG.error("cannot start generation: %s", exc)
        return 2

    if args.preset:
        options = QUICK_PRESETS[args.preset](user, args.date)
    else:
        options = GenerationOptions(user=user, date=args.date, mode=GenerationMode(args.mode))

    generator = HybridMealPlanGenerator(
        default_max_prep_time=settings.default_max_prep_time,
        default_max_cost=settings.default_max_cost,
        max_volume=settings.max_volume,
    )
    if args.week or options.week_plan:
        result = generator.generate_week(catalog.recipes, catalog.foods, options, days=args.days)
    else:
        result = generator.generate(catalog.recipes, catalog.foods, options)

    print(result.model_dump_json(by_alias=True, indent=2, exclude_none=True))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())

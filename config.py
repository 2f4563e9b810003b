"""
Centralised settings loader.

Every field can be overridden with a ``MEALPLAN_``-prefixed environment
variable or a ``.env`` file next to the process working directory.
"""

from __future__ import annotations
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# ------------------------------------------------------------------ #
#  Master settings model
# ------------------------------------------------------------------ #
class _Settings(BaseSettings):
    # ─── runtime ────────────────────────────────────────────────────
    env_name: str = "local"
    log_level: str = "INFO"

    # ─── catalog used when a caller does not send one ───────────────
    catalog_path: str = "data/sample_catalog.json"

    # ─── generator defaults (mode table itself is fixed in code) ────
    default_mode: str = Field("balanced", pattern="^(speed|balanced|quality)$")
    default_max_prep_time: float = 90      # minutes, summed over the day
    default_max_cost: float = 100          # abstract cost units
    max_volume: float = 100                # abstract portion units

    # allow other teammates’ env-vars without crashing
    model_config = SettingsConfigDict(
        env_prefix="MEALPLAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# ------------------------------------------------------------------ #
#  Cached singleton accessor
# ------------------------------------------------------------------ #
@lru_cache
def _cached() -> _Settings:  # pragma: no cover
    return _Settings()


settings: _Settings = _cached()

# estimator/limits.py
# Engine caps and precision settings. Overrides live in data/engine.json.

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

LIMITS_ENV_VAR = "ESTIMATOR_LIMITS"
DEFAULT_LIMITS_PATH = Path(__file__).resolve().parents[1] / "data" / "engine.json"


class ConfigurationError(Exception):
    """Raised when the limits file exists but cannot be used."""


class EngineLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_units: float = Field(default=50_000, gt=0)
    max_cost: float = Field(default=10_000_000, gt=0)
    max_payment: float = Field(default=1_000_000, gt=0)
    min_unit_value: float = Field(default=0.01, ge=0)
    max_dimension: float = Field(default=1000, gt=0)

    max_surfaces_per_item: int = Field(default=100, gt=0)
    max_items_per_category: int = Field(default=200, gt=0)
    max_categories: int = Field(default=50, gt=0)

    max_tax_rate: float = Field(default=0.25, ge=0)
    max_markup_rate: float = Field(default=5.0, ge=0)
    max_waste_factor: float = Field(default=0.50, ge=0)

    currency_precision: int = Field(default=2, ge=0)
    # balance at or below this counts as fully paid
    fully_paid_tolerance: float = Field(default=0.01, ge=0)


DEFAULT_LIMITS = EngineLimits()


def load_limits(path: Path | str | None = None) -> EngineLimits:
    """Read limits overrides from JSON; defaults when the file is absent."""
    if path is None:
        env_path = os.environ.get(LIMITS_ENV_VAR)
        path = Path(env_path) if env_path else DEFAULT_LIMITS_PATH
    path = Path(path)

    if not path.exists():
        logger.debug("No limits file at %s, using defaults", path)
        return DEFAULT_LIMITS

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read limits file {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Limits file {path} must contain a JSON object")

    try:
        limits = EngineLimits.model_validate({**DEFAULT_LIMITS.model_dump(), **raw})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid limits in {path}: {e}") from e

    logger.info("Loaded engine limits from %s", path)
    return limits

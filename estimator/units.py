# estimator/units.py
# Billable quantity per surface and per work item.

from __future__ import annotations

from .errors import EngineError, Outcome, validation_error
from .limits import DEFAULT_LIMITS, EngineLimits
from .models import (
    UNIT_LABELS,
    AreaMeasure,
    CountMeasure,
    LinearMeasure,
    MeasurementType,
    Surface,
    WorkItem,
)


def surface_units(surface: Surface) -> float:
    """Stored quantity > width x height > 0."""
    measure = surface.measure
    if isinstance(measure, LinearMeasure):
        return measure.linear_ft
    if isinstance(measure, CountMeasure):
        return measure.units
    if isinstance(measure, AreaMeasure):
        if measure.sqft > 0:
            return measure.sqft
        return measure.width * measure.height
    return 0.0


def unit_label(measurement_type: MeasurementType) -> str:
    return UNIT_LABELS.get(measurement_type, "units")


def item_units(item: WorkItem, limits: EngineLimits = DEFAULT_LIMITS) -> Outcome[float]:
    errors: list[EngineError] = []
    details = {"itemName": item.name}

    if not item.surfaces:
        errors.append(
            validation_error(
                f"{item.name or 'Work item'} has no measurements",
                "NO_MEASUREMENTS",
                details,
            )
        )
        return Outcome(0.0, errors)

    total = 0.0
    for surface in item.surfaces:
        total += surface_units(surface)

    if total <= 0:
        errors.append(
            validation_error(
                f"No valid surfaces found for {item.name or 'work item'}",
                "NO_VALID_SURFACES",
                details,
            )
        )
        return Outcome(0.0, errors)

    if total > limits.max_units:
        errors.append(
            validation_error(
                f"Total units ({total:g}) exceed maximum limit",
                "TOTAL_EXCEEDS_LIMIT",
                {**details, "totalUnits": total, "limit": limits.max_units},
            )
        )
        total = limits.max_units

    return Outcome(total, errors)

# estimator/errors.py
# Structured error records returned inline next to best-effort results.

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ErrorCategory(str, Enum):
    VALIDATION = "validation"
    CALCULATION = "calculation"
    DATA_MIGRATION = "data_migration"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class EngineError(BaseModel):
    message: str
    code: str
    category: ErrorCategory = ErrorCategory.VALIDATION
    severity: Severity = Severity.LOW
    details: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """A value plus the errors collected while producing it."""

    value: T
    errors: list[EngineError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def validation_error(
    message: str,
    code: str = "VALIDATION_ERROR",
    details: dict[str, Any] | None = None,
    severity: Severity = Severity.LOW,
) -> EngineError:
    return EngineError(
        message=message,
        code=code,
        category=ErrorCategory.VALIDATION,
        severity=severity,
        details=details or {},
    )


def calculation_error(
    message: str,
    code: str = "CALCULATION_ERROR",
    details: dict[str, Any] | None = None,
) -> EngineError:
    return EngineError(
        message=message,
        code=code,
        category=ErrorCategory.CALCULATION,
        severity=Severity.HIGH,
        details=details or {},
    )


def migration_notice(
    message: str,
    code: str,
    details: dict[str, Any] | None = None,
) -> EngineError:
    # informational: the legacy shape was understood and handled
    return EngineError(
        message=message,
        code=code,
        category=ErrorCategory.DATA_MIGRATION,
        severity=Severity.LOW,
        details=details or {},
    )

"""
Error taxonomy for the tax engine.

Engines raise these; the orchestrator turns them into a TaxError carried on
a SummaryOutcome so dashboards and the advisor can decide between a partial
summary and a hard error.
"""

from dataclasses import dataclass, field
from enum import Enum


class ErrorCode(str, Enum):
    INVALID_INPUT = "invalid_input"
    UNSUPPORTED_CATEGORY = "unsupported_category"
    RATE_TABLE_NOT_FOUND = "rate_table_not_found"
    DATA_UNAVAILABLE = "data_unavailable"


class TaxEngineError(ValueError):
    code = ErrorCode.INVALID_INPUT

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidRecordError(TaxEngineError):
    """A source record failed boundary validation."""

    code = ErrorCode.INVALID_INPUT


class UnsupportedCategoryError(TaxEngineError):
    """A WHT combination or asset category has no entry in the rate table."""

    code = ErrorCode.UNSUPPORTED_CATEGORY


class RateTableNotFoundError(TaxEngineError):
    code = ErrorCode.RATE_TABLE_NOT_FOUND


class DataUnavailableError(TaxEngineError):
    """The records for a summary could not be loaded from storage."""

    code = ErrorCode.DATA_UNAVAILABLE


@dataclass(frozen=True)
class TaxError:
    code: ErrorCode
    message: str
    details: dict = field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: TaxEngineError) -> "TaxError":
        return cls(code=exc.code, message=exc.message, details=dict(exc.details))

"""
modules/validation package: data quality guards at the ingestion boundary
and the post-generation quality gate.
"""
from modules.validation.ingestion_validator import (
    ValidationResult,
    validate_activity,
    validate_restaurant,
    validate_hotel,
    filter_valid,
)
from modules.validation.plan_validator import validate_plan

__all__ = [
    "ValidationResult",
    "validate_activity",
    "validate_restaurant",
    "validate_hotel",
    "filter_valid",
    "validate_plan",
]

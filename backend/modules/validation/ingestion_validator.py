"""
modules/validation/ingestion_validator.py
------------------------------------------
Data-quality guards applied to raw provider records before they are turned
into Activity / Restaurant / Accommodation objects.

  Activity:
    ✓ Non-empty id and name
    ✓ Coordinates, if present: numeric, in range, not both 0.0
      (missing coordinates are allowed: the resolver may still find them)
    ✓ Rating in [0, 5]
    ✓ duration_minutes > 0 if present
    ✓ estimated_cost >= 0 if present
    ✓ review_count a whole number >= 0 if present
    ✓ must_see a boolean (or "true" / "false") if present
    ✓ data_reliability one of verified / estimated / generated

  Restaurant:
    ✓ Non-empty id and name
    ✓ Coordinates, if present: as above
    ✓ Rating in [0, 5]
    ✓ price_level a whole number in [0, 4]
    ✓ review_count a whole number >= 0 if present

  Hotel:
    ✓ Non-empty id and name
    ✓ Coordinates, if present: as above
    ✓ Rating in [0, 10]
    ✓ price_per_night >= 0
    ✓ breakfast_included a boolean if present

Usage:
    from modules.validation import validate_activity, filter_valid

    result = validate_activity(raw)
    if not result:
        print(result.errors)

    restaurants = filter_valid(raw_restaurants, validate_restaurant, source="primary_restaurants")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)

_RELIABILITY_VALUES = frozenset({"verified", "estimated", "generated"})
_FLAG_VALUES = frozenset({"true", "false", "1", "0", "yes", "no"})


# ── Result ─────────────────────────────────────────────────────────────────────

@dataclass
class ValidationResult:
    """Truthy when the record passed; ``errors`` lists every failed check."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    record: dict = field(default_factory=dict, repr=False)

    def __bool__(self) -> bool:
        return self.valid


# ── Field checks ───────────────────────────────────────────────────────────────

def _check_identity(record: dict[str, Any], errors: list[str]) -> None:
    if not str(record.get("id") or "").strip():
        errors.append("id must not be empty or NULL")
    name = record.get("name", "")
    if not name or not str(name).strip():
        errors.append("name must not be empty or NULL")


def _check_coordinates(record: dict[str, Any], errors: list[str]) -> None:
    """Absent coordinates pass; present ones must be usable."""
    lat = record.get("latitude")
    lon = record.get("longitude")
    if lat is None and lon is None:
        return
    if lat is None or lon is None:
        errors.append(f"latitude/longitude must be given together (got lat={lat!r}, lon={lon!r})")
        return
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        errors.append(f"latitude/longitude must be numeric (got lat={lat!r}, lon={lon!r})")
        return

    if not (-90.0 <= lat <= 90.0):
        errors.append(f"latitude={lat} is outside valid range [-90, 90]")
    if not (-180.0 <= lon <= 180.0):
        errors.append(f"longitude={lon} is outside valid range [-180, 180]")
    if lat == 0.0 and lon == 0.0:
        errors.append(
            "latitude=0.0 and longitude=0.0: likely a missing/default value "
            "(null island); send null instead"
        )


def _check_range(
    record: dict[str, Any], key: str, low: float, high: float, errors: list[str],
) -> None:
    value = record.get(key)
    if value is None:
        return
    try:
        v = float(value)
    except (TypeError, ValueError):
        errors.append(f"{key}={value!r} must be numeric")
        return
    if not (low <= v <= high):
        errors.append(f"{key}={v} is outside valid range [{low:g}, {high:g}]")


def _check_count(record: dict[str, Any], key: str, errors: list[str]) -> None:
    """Whole number >= 0, if present. Numeric strings such as "1200" pass."""
    value = record.get(key)
    if value is None:
        return
    try:
        v = float(value)
    except (TypeError, ValueError):
        errors.append(f"{key}={value!r} must be a whole number")
        return
    if isinstance(value, bool) or v < 0 or not v.is_integer():
        errors.append(f"{key}={value!r} must be a whole number >= 0")


def _check_flag(record: dict[str, Any], key: str, errors: list[str]) -> None:
    value = record.get(key)
    if value is None or isinstance(value, bool):
        return
    if str(value).strip().lower() not in _FLAG_VALUES:
        errors.append(f"{key}={value!r} must be true or false")


# ── Record validators ──────────────────────────────────────────────────────────

def validate_activity(record: dict[str, Any]) -> ValidationResult:
    errors: list[str] = []
    _check_identity(record, errors)
    _check_coordinates(record, errors)
    _check_range(record, "rating", 0.0, 5.0, errors)
    _check_range(record, "estimated_cost", 0.0, float("inf"), errors)
    _check_count(record, "review_count", errors)
    _check_flag(record, "must_see", errors)

    duration = record.get("duration_minutes")
    if duration is not None:
        try:
            if int(duration) <= 0:
                errors.append(f"duration_minutes={duration} must be > 0")
        except (TypeError, ValueError):
            errors.append(f"duration_minutes={duration!r} must be a positive integer")

    reliability = record.get("data_reliability")
    if reliability is not None and reliability not in _RELIABILITY_VALUES:
        errors.append(f"data_reliability={reliability!r} must be one of {sorted(_RELIABILITY_VALUES)}")

    return ValidationResult(valid=len(errors) == 0, errors=errors, record=record)


def validate_restaurant(record: dict[str, Any]) -> ValidationResult:
    errors: list[str] = []
    _check_identity(record, errors)
    _check_coordinates(record, errors)
    _check_range(record, "rating", 0.0, 5.0, errors)
    _check_range(record, "price_level", 0, 4, errors)
    _check_count(record, "price_level", errors)
    _check_count(record, "review_count", errors)
    return ValidationResult(valid=len(errors) == 0, errors=errors, record=record)


def validate_hotel(record: dict[str, Any]) -> ValidationResult:
    errors: list[str] = []
    _check_identity(record, errors)
    _check_coordinates(record, errors)
    # Booking-style 0–10 and Airbnb-style 0–5 ratings both arrive here
    _check_range(record, "rating", 0.0, 10.0, errors)
    _check_range(record, "price_per_night", 0.0, float("inf"), errors)
    _check_flag(record, "breakfast_included", errors)
    return ValidationResult(valid=len(errors) == 0, errors=errors, record=record)


# ── Batch filter ───────────────────────────────────────────────────────────────

def filter_valid(
    records: list[dict[str, Any]],
    validator: Callable[[dict[str, Any]], ValidationResult],
    source: str = "",
) -> list[dict[str, Any]]:
    """Records that pass ``validator``; each rejection is logged with its reasons."""
    kept = [r for r in records if _accept(r, validator, source)]
    if len(kept) < len(records):
        logger.warning(
            "Ingestion[%s]: kept %d of %d record(s)", source or "-", len(kept), len(records),
        )
    return kept


def _accept(
    record: dict[str, Any],
    validator: Callable[[dict[str, Any]], ValidationResult],
    source: str,
) -> bool:
    outcome = validator(record)
    if not outcome:
        label = record.get("name") or record.get("id") or "?"
        logger.warning("Ingestion[%s]: dropped %r (%s)", source or "-", label, "; ".join(outcome.errors))
    return outcome.valid

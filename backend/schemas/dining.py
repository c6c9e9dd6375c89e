"""
schemas/dining.py
-----------------
Restaurants and per-slot meal assignments.

A MealAssignment with restaurant=None is a deliberate outcome, never a
placeholder: see `reason` for which one (self-catered, hotel breakfast, or
nothing within walking distance).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from schemas.activity import has_plausible_coordinates


class MealType(str, Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


MEAL_ORDER: tuple[MealType, ...] = (MealType.BREAKFAST, MealType.LUNCH, MealType.DINNER)


class AssignmentReason(str, Enum):
    ASSIGNED = "assigned"
    SELF_CATERED = "self_catered"
    HOTEL_BREAKFAST = "hotel_breakfast"
    NO_CANDIDATE = "no_candidate"
    POOL_RELAXED = "pool_relaxed"        # uniqueness relaxed, restaurant reused


@dataclass
class Restaurant:
    id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    rating: float = 0.0                  # 0–5
    review_count: int = 0
    price_level: int = 0                 # 1–4, 0 = unknown
    cuisine_tags: list[str] = field(default_factory=list)
    source: str = ""

    @property
    def has_valid_coordinates(self) -> bool:
        return has_plausible_coordinates(self.latitude, self.longitude)

    @property
    def coords(self) -> tuple[float, float]:
        return (float(self.latitude or 0.0), float(self.longitude or 0.0))

    @property
    def searchable_text(self) -> str:
        return " ".join([self.name, *self.cuisine_tags]).lower()


@dataclass
class MealAssignment:
    day_number: int
    meal_type: MealType
    restaurant: Optional[Restaurant] = None
    alternatives: list[Restaurant] = field(default_factory=list)   # at most two
    reference_coords: tuple[float, float] = (0.0, 0.0)
    distance_km: Optional[float] = None
    reason: AssignmentReason = AssignmentReason.NO_CANDIDATE

"""
schemas/preferences.py
----------------------
Boundary models for everything the caller (HTTP request, CLI JSON, fetch
collaborator) hands to the pipeline. Shapes are validated once here so the
planning stages never re-check them.
"""

from __future__ import annotations

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

GroupType = Literal["solo", "couple", "friends", "family_with_kids", "family_without_kids"]
BudgetLevel = Literal["economic", "moderate", "comfort", "luxury"]
ActivityType = Literal[
    "culture", "nature", "adventure", "shopping", "gastronomy",
    "nightlife", "wellness", "beach",
]
TransportMode = Literal["plane", "train", "bus", "car", "ferry", "combined"]
MealStrategy = Literal["restaurant", "self_catered", "mixed"]


class TripPreferences(BaseModel):
    destination: str = Field(..., min_length=1)
    duration_days: int = Field(..., ge=1, le=30)
    start_date: Optional[date] = None
    group_type: GroupType = "couple"
    group_size: int = Field(2, ge=1)
    activities: list[ActivityType] = Field(default_factory=list)
    budget_level: BudgetLevel = "moderate"
    must_see: list[str] = Field(
        default_factory=list,
        description="Names the traveler requires; matched against candidate names",
    )
    local_cuisine: list[str] = Field(
        default_factory=list,
        description="Cuisine tags counted as locally authentic, e.g. ['french']",
    )


def _parse_hour(value: object) -> Optional[float]:
    """Accept 14.5, '14', or '14:30' and return fractional hours."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if ":" in text:
        hours, minutes = text.split(":", 1)
        return int(hours) + int(minutes[:2]) / 60.0
    return float(text)


class TransportTiming(BaseModel):
    """Arrival on day 1 and departure on the last day, as local clock hours."""
    mode: Optional[TransportMode] = None
    arrival_hour: Optional[float] = Field(None, ge=0, lt=24)
    departure_hour: Optional[float] = Field(None, ge=0, lt=24)

    @field_validator("arrival_hour", "departure_hour", mode="before")
    @classmethod
    def _coerce_clock(cls, v: object) -> Optional[float]:
        return _parse_hour(v)

    @property
    def is_flight(self) -> bool:
        return self.mode == "plane"


class BudgetStrategy(BaseModel):
    meals_strategy: dict[Literal["breakfast", "lunch", "dinner"], MealStrategy] = Field(
        default_factory=dict
    )
    hotel_breakfast_included: bool = False
    accommodation_max_per_night: Optional[float] = Field(None, gt=0)

    def is_self_catered(self, meal_type: str) -> bool:
        return self.meals_strategy.get(meal_type) == "self_catered"

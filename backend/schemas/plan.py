"""
schemas/plan.py
---------------
Inputs and outputs of the pipeline as a whole.

  FetchedData  raw per-source lists handed over by the fetch collaborator.
  DayBudget    per-day time capacity computed by the rebalancer.
  BalancedPlan theming collaborator output (pydantic: it may come from an LLM).
  TripPlan     everything the schedule assembler needs, plus warnings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from pydantic import BaseModel, Field

import config
from schemas.accommodation import Accommodation
from schemas.activity import Activity, ActivityCluster
from schemas.audit import PlanWarning
from schemas.dining import MealAssignment, Restaurant


@dataclass
class FetchedData:
    dest_center: tuple[float, float]
    must_see_attractions: list[Activity] = field(default_factory=list)
    google_places_attractions: list[Activity] = field(default_factory=list)
    serpapi_attractions: list[Activity] = field(default_factory=list)
    overpass_attractions: list[Activity] = field(default_factory=list)
    viator_activities: list[Activity] = field(default_factory=list)
    primary_restaurants: list[Restaurant] = field(default_factory=list)
    secondary_restaurants: list[Restaurant] = field(default_factory=list)
    hotels: list[Accommodation] = field(default_factory=list)


@dataclass
class DayBudget:
    """
    Time capacity of one day.

    minute_budget is what activities may consume once meals are set aside:
    available_minutes − meal overhead. A day's load is Σ(duration + travel
    overhead) of its activities; the day is overloaded when load > minute_budget.
    """
    day_number: int
    start_hour: float
    end_hour: float
    available_hours: float
    max_activities: int
    is_day_trip: bool = False

    @property
    def available_minutes(self) -> int:
        return int(round(self.available_hours * 60))

    @property
    def minute_budget(self) -> int:
        return self.available_minutes - config.MEAL_OVERHEAD_MIN


class BalancedDay(BaseModel):
    day_number: int = Field(..., ge=1)
    theme: str = ""
    day_narrative: str = ""
    activity_order: list[str] = Field(default_factory=list)
    suggested_start_time: str = Field("09:00", pattern=r"^\d{2}:\d{2}$")
    rest_break: bool = False
    is_day_trip: bool = False
    day_trip_destination: Optional[str] = None


class BalancedPlan(BaseModel):
    days: list[BalancedDay] = Field(default_factory=list)
    day_order_reason: str = ""
    used_fallback: bool = False


@dataclass
class QualityReport:
    score: int = 100
    warnings: list[str] = field(default_factory=list)


@dataclass
class TripPlan:
    clusters: list[ActivityCluster]
    day_budgets: list[DayBudget]
    meals: list[MealAssignment]
    hotel: Optional[Accommodation]
    balanced_plan: BalancedPlan
    warnings: list[PlanWarning] = field(default_factory=list)
    quality: QualityReport = field(default_factory=QualityReport)
    unplaced_must_see_ids: list[str] = field(default_factory=list)
    dropped_activity_ids: list[str] = field(default_factory=list)
    input_must_see_ids: list[str] = field(default_factory=list)

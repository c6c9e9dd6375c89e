"""
schemas/request.py
------------------
Shape of a full planning request: preferences plus every raw data source.
Shared by POST /v1/itinerary/plan and `python main.py --input trip.json`.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from modules.tool_usage.fetch_tool import SOURCE_KEYS
from schemas.preferences import BudgetStrategy, TransportTiming, TripPreferences


class PlanRequest(BaseModel):
    preferences: TripPreferences
    dest_center: tuple[float, float] = Field(..., description="(lat, lon) of the destination centre")
    sources: dict[str, list[dict]] = Field(
        default_factory=dict,
        description="Raw provider records keyed by source: " + ", ".join(SOURCE_KEYS),
    )
    transport: Optional[TransportTiming] = None
    budget_strategy: Optional[BudgetStrategy] = None
    session_id: Optional[str] = None

    @field_validator("dest_center")
    @classmethod
    def _check_center(cls, v: tuple[float, float]) -> tuple[float, float]:
        lat, lon = v
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0) or (lat == 0.0 and lon == 0.0):
            raise ValueError(f"dest_center {v} is not a usable coordinate")
        return v

    @field_validator("sources")
    @classmethod
    def _check_sources(cls, v: dict[str, list[dict]]) -> dict[str, list[dict]]:
        unknown = set(v) - set(SOURCE_KEYS)
        if unknown:
            raise ValueError(f"unknown source key(s): {sorted(unknown)}")
        return v

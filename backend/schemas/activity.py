"""
schemas/activity.py
-------------------
Dataclass definitions for candidate activities and the per-day clusters the
planner builds from them.

Lifecycle of an ActivityCluster:
  created by the day clusterer → mutated by the capacity rebalancer
  (add / remove) → frozen → read-only for hotel selection, meal assignment
  and day theming.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from modules.tool_usage.distance_tool import centroid_of, haversine_km, path_length_km


class DataReliability(str, Enum):
    VERIFIED = "verified"
    ESTIMATED = "estimated"
    GENERATED = "generated"


class ActivitySource(str, Enum):
    """Provenance tag. Declaration order is merge authority order."""
    MUSTSEE = "mustsee"
    GOOGLE_PLACES = "google_places"
    SERPAPI = "serpapi"
    OVERPASS = "overpass"
    VIATOR = "viator"


def has_plausible_coordinates(lat: Optional[float], lon: Optional[float]) -> bool:
    """True when both values are present, finite, in range and not (0, 0)-ish."""
    if lat is None or lon is None:
        return False
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return False
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return False
    return lat != 0.0 and lon != 0.0


@dataclass
class Activity:
    """A candidate point of interest as delivered by a data source."""
    id: str
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    category: str = ""                         # provider type, e.g. "museum"
    duration_minutes: int = 60
    estimated_cost: float = 0.0
    rating: float = 0.0                        # 0–5, 0.0 = absent
    review_count: int = 0
    must_see: bool = False
    data_reliability: DataReliability = DataReliability.ESTIMATED
    source: ActivitySource = ActivitySource.GOOGLE_PLACES
    description: str = ""
    booking_url: str = ""

    @property
    def has_valid_coordinates(self) -> bool:
        return has_plausible_coordinates(self.latitude, self.longitude)

    @property
    def coords(self) -> tuple[float, float]:
        return (float(self.latitude or 0.0), float(self.longitude or 0.0))


@dataclass
class ScoredActivity(Activity):
    """Activity plus its desirability score. Only the ordering of scores matters."""
    score: float = 0.0

    @classmethod
    def from_activity(cls, activity: Activity, source: ActivitySource | None = None) -> "ScoredActivity":
        values = {k: getattr(activity, k) for k in Activity.__dataclass_fields__}
        if source is not None:
            values["source"] = source
        return cls(**values)

    def with_changes(self, **changes) -> "ScoredActivity":
        return replace(self, **changes)


class FrozenClusterError(RuntimeError):
    """Raised when a frozen cluster is mutated."""


@dataclass
class ActivityCluster:
    """
    One itinerary day worth of activities.

    Attributes:
        day_number:               1-based day index.
        activities:               Visit order. Mutate through add()/remove().
        centroid:                 (lat, lon) mean of member coordinates.
        total_intra_distance_km:  Length of the visit path in order.
        max_radius_km:            Farthest member from the centroid.
        frozen:                   Set once rebalancing completes.
    """
    day_number: int
    activities: list[ScoredActivity] = field(default_factory=list)
    centroid: tuple[float, float] = (0.0, 0.0)
    total_intra_distance_km: float = 0.0
    max_radius_km: float = 0.0
    frozen: bool = False

    # ── Mutation ──────────────────────────────────────────────────────────

    def add(self, activity: ScoredActivity) -> None:
        self._check_mutable()
        self.activities.append(activity)

    def remove(self, activity: ScoredActivity) -> None:
        self._check_mutable()
        self.activities = [a for a in self.activities if a.id != activity.id]

    def replace_activities(self, activities: list[ScoredActivity]) -> None:
        self._check_mutable()
        self.activities = list(activities)

    def freeze(self) -> None:
        self.recompute()
        self.frozen = True

    # ── Derived values ────────────────────────────────────────────────────

    def recompute(self) -> None:
        """Refresh centroid and spread metrics from the current members."""
        if not self.activities:
            self.total_intra_distance_km = 0.0
            self.max_radius_km = 0.0
            return
        points = [a.coords for a in self.activities]
        self.centroid = centroid_of(points)
        self.total_intra_distance_km = path_length_km(points)
        self.max_radius_km = max(
            haversine_km(self.centroid[0], self.centroid[1], lat, lon) for lat, lon in points
        )

    @property
    def ids(self) -> list[str]:
        return [a.id for a in self.activities]

    @property
    def must_see_ids(self) -> set[str]:
        return {a.id for a in self.activities if a.must_see}

    def _check_mutable(self) -> None:
        if self.frozen:
            raise FrozenClusterError(f"Cluster for day {self.day_number} is frozen")

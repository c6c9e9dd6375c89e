"""
modules/planning/hotel_selector.py
------------------------------------
Picks one accommodation for the whole trip: the hotel closest to the
barycenter of every placed activity, within budget.

  1. Barycenter of all activities across the frozen clusters. Without any
     activity the best-rated hotel (normalised 0–10 scale) is returned.
  2. Budget filter: price > 0 and ≤ max_per_night × HOTEL_BUDGET_TOLERANCE.
     Fewer than HOTEL_MIN_CANDIDATES survivors → the 10 cheapest hotels.
  3. Distance bands 5 → 8 → 12 km from the barycenter, the first band with at
     least two hotels wins; otherwise the nearest half (3..8) of the pool.
  4. score = d^2.15 / (0.75 + 0.25 · rating/10) + 4 · over_budget_ratio
     Lowest score wins; ties go to the lexicographically smallest id.

Pure: the same inputs always return the same hotel. Hotels without plausible
coordinates are never selected.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import config
from modules.tool_usage.distance_tool import centroid_of, distance_km
from schemas.accommodation import Accommodation
from schemas.activity import ActivityCluster
from schemas.audit import AuditTrail, WarningCode

logger = logging.getLogger(__name__)


@dataclass
class HotelCandidate:
    hotel: Accommodation
    distance_km: float
    score: float = 0.0


def budget_max_per_night(budget_level: str) -> float:
    return config.HOTEL_MAX_PER_NIGHT.get(budget_level, config.HOTEL_DEFAULT_MAX_PER_NIGHT)


def hotel_score(hotel: Accommodation, dist_km: float, budget_max: float) -> float:
    """Lower is better. Distance dominates; rating only refines close options."""
    rating_norm = max(0.0, min(1.0, hotel.normalized_rating / 10.0))
    rating_boost = 0.75 + rating_norm * 0.25
    over_budget = 0.0
    if hotel.price_per_night > budget_max:
        over_budget = (hotel.price_per_night - budget_max) / max(1.0, budget_max) * config.HOTEL_OVER_BUDGET_WEIGHT
    return math.pow(dist_km, config.HOTEL_DISTANCE_EXPONENT) / rating_boost + over_budget


def select_hotel(
    clusters: list[ActivityCluster],
    hotels: list[Accommodation],
    budget_level: str,
    max_per_night: Optional[float] = None,
    audit: Optional[AuditTrail] = None,
) -> Optional[Accommodation]:
    """Return the best-placed affordable hotel, or None when no hotel has coordinates."""
    audit = audit if audit is not None else AuditTrail()
    located = [h for h in hotels if h.has_valid_coordinates]
    if not located:
        audit.warn(
            WarningCode.NO_HOTEL,
            f"No hotel with usable coordinates among {len(hotels)} candidate(s)",
        )
        return None

    activities = [a for c in clusters for a in c.activities]
    if not activities:
        best = min(located, key=lambda h: (-h.normalized_rating, h.id))
        logger.info("Hotel: no activities placed, falling back to best-rated '%s'", best.name)
        return best

    barycenter = centroid_of(a.coords for a in activities)
    budget_max = max_per_night or budget_max_per_night(budget_level)

    pool = _budget_pool(located, budget_max)
    pool = _distance_pool(pool, barycenter)
    for cand in pool:
        cand.score = hotel_score(cand.hotel, cand.distance_km, budget_max)

    chosen = min(pool, key=lambda c: (c.score, c.hotel.id))
    logger.info(
        "Hotel: selected '%s' (score %.2f, %.1f km from barycenter, %d candidate(s))",
        chosen.hotel.name, chosen.score, chosen.distance_km, len(pool),
    )
    return chosen.hotel


def _budget_pool(hotels: list[Accommodation], budget_max: float) -> list[Accommodation]:
    ceiling = budget_max * config.HOTEL_BUDGET_TOLERANCE
    affordable = [h for h in hotels if 0 < h.price_per_night <= ceiling]
    if len(affordable) >= config.HOTEL_MIN_CANDIDATES:
        return affordable
    logger.info(
        "Hotel: only %d hotel(s) within %.0f/night, using the %d cheapest instead",
        len(affordable), ceiling, config.HOTEL_RELAXED_POOL_SIZE,
    )
    return sorted(hotels, key=lambda h: (h.price_per_night, h.id))[: config.HOTEL_RELAXED_POOL_SIZE]


def _distance_pool(hotels: list[Accommodation], barycenter: tuple[float, float]) -> list[HotelCandidate]:
    by_distance = sorted(
        (HotelCandidate(hotel=h, distance_km=distance_km(barycenter, h.coords)) for h in hotels),
        key=lambda c: (c.distance_km, c.hotel.id),
    )
    for band in config.HOTEL_DISTANCE_BANDS_KM:
        within = [c for c in by_distance if c.distance_km <= band]
        if len(within) >= 2:
            return within
    if len(by_distance) > 3:
        size = min(8, max(3, math.ceil(len(by_distance) * 0.5)))
        return by_distance[:size]
    return by_distance

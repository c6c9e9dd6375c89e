"""
modules/planning/meal_assigner.py
-----------------------------------
Meal Assigner: one restaurant (plus up to two ranked alternatives) per
(day, meal) slot, always within walking distance of where the traveler is.

Reference point per meal:
  breakfast   the hotel
  lunch       the day's activity nearest the cluster centroid
  dinner      DINNER_LAST_ACTIVITY_WEIGHT · last activity + rest · hotel

Candidate search:
  - cuisine suitability per meal type (keyword_tables.MEAL_EXCLUDED_CUISINES)
  - radius bands ideal → hard → absolute (MEAL_RADIUS_KM); the band widens
    until MEAL_MIN_CANDIDATES restaurants qualify. Nothing beyond the absolute
    radius is ever selected, so an empty band means a null assignment.
  - score = 2·rating + 1.5·log10(reviews) [+ breakfast-friendly bonus]
            − 2/km − 8/km past ideal − 20/km past hard
  - diversity: one local cuisine + two distinct international cuisines among
    the three picks when the shortlist allows, else the three best.

Uniqueness is tracked in the caller-supplied `used_ids` set. When every
restaurant in range has already been used the constraint is relaxed for that
slot only, with a POOL_EXHAUSTED warning.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Optional

import config
from modules.planning.keyword_tables import (
    BREAKFAST_FRIENDLY_KEYWORDS,
    BUDGET_PRICE_LEVEL,
    LOCAL_CUISINE_MARKERS,
    MEAL_EXCLUDED_CUISINES,
    matches_any,
    normalize_name,
    normalize_text,
)
from modules.tool_usage.distance_tool import blend, distance_km
from schemas.activity import ActivityCluster
from schemas.audit import AuditTrail, WarningCode
from schemas.dining import MEAL_ORDER, AssignmentReason, MealAssignment, MealType, Restaurant
from schemas.preferences import BudgetStrategy, TripPreferences

logger = logging.getLogger(__name__)

_PICKS_PER_SLOT = 3
_FUZZY_MIN_LEN = 6


@dataclass
class RankedRestaurant:
    restaurant: Restaurant
    distance_km: float
    score: float


# ── Source merge & budget filter ──────────────────────────────────────────────

def _same_place(a: str, b: str) -> bool:
    if not a or not b:
        return False
    if a == b:
        return True
    shorter, longer = sorted((a, b), key=len)
    return len(shorter) >= _FUZZY_MIN_LEN and shorter in longer


def merge_restaurant_sources(
    primary: list[Restaurant],
    secondary: list[Restaurant],
) -> list[Restaurant]:
    """
    Primary records first. A secondary record whose name matches a primary
    one (exact or containment after normalisation) is not added; it only
    donates its coordinates when the primary copy has none.
    """
    merged = [replace(r) for r in primary]
    keys = [normalize_name(r.name) for r in merged]

    for extra in secondary:
        key = normalize_name(extra.name)
        idx = next((i for i, k in enumerate(keys) if _same_place(k, key)), None)
        if idx is None:
            merged.append(replace(extra))
            keys.append(key)
            continue
        target = merged[idx]
        if not target.has_valid_coordinates and extra.has_valid_coordinates:
            target.latitude, target.longitude = extra.latitude, extra.longitude
            logger.debug("Meals: coordinates of '%s' taken from '%s'", target.name, extra.source)
    return merged


def filter_by_budget(restaurants: list[Restaurant], budget_level: str) -> list[Restaurant]:
    """Keep price tiers within ±1 of the budget's tier; unknown tiers always pass."""
    target = BUDGET_PRICE_LEVEL.get(budget_level, BUDGET_PRICE_LEVEL["moderate"])
    kept = [r for r in restaurants if not r.price_level or abs(r.price_level - target) <= 1]
    if len(kept) < config.MEAL_BUDGET_MIN_POOL:
        logger.info("Meals: only %d restaurant(s) match budget tier %d, using the full pool", len(kept), target)
        return list(restaurants)
    return kept


# ── Scoring ───────────────────────────────────────────────────────────────────

def is_suitable_for(restaurant: Restaurant, meal_type: MealType) -> bool:
    text = normalize_text(restaurant.searchable_text)
    return not matches_any(text, MEAL_EXCLUDED_CUISINES.get(meal_type.value, ()))


def is_breakfast_friendly(restaurant: Restaurant) -> bool:
    return matches_any(normalize_text(restaurant.searchable_text), BREAKFAST_FRIENDLY_KEYWORDS)


def meal_score(restaurant: Restaurant, dist_km: float, meal_type: MealType) -> float:
    ideal, hard, _ = config.MEAL_RADIUS_KM[meal_type.value]
    quality = 2.0 * (restaurant.rating or 3.0) + 1.5 * math.log10(max(restaurant.review_count or 1, 1))
    if meal_type == MealType.BREAKFAST and is_breakfast_friendly(restaurant):
        quality += config.BREAKFAST_FRIENDLY_BONUS
    penalty = 2.0 * dist_km
    penalty += 8.0 * max(0.0, dist_km - ideal)
    penalty += 20.0 * max(0.0, dist_km - hard)
    return quality - penalty


def _within_bands(ranked: list[RankedRestaurant], meal_type: MealType) -> list[RankedRestaurant]:
    """Narrowest band holding MEAL_MIN_CANDIDATES options, else everything in the absolute radius."""
    bands = config.MEAL_RADIUS_KM[meal_type.value]
    within: list[RankedRestaurant] = []
    for radius in bands:
        within = [r for r in ranked if r.distance_km <= radius]
        if len(within) >= config.MEAL_MIN_CANDIDATES:
            break
    return within


# ── Diversity ─────────────────────────────────────────────────────────────────

def _cuisine_kind(restaurant: Restaurant, local_tags: set[str]) -> tuple[bool, Optional[str]]:
    """(is_local, international cuisine tag or None)."""
    tags = [normalize_text(t).strip() for t in restaurant.cuisine_tags if t and t.strip()]
    if any(t in local_tags or matches_any(t, LOCAL_CUISINE_MARKERS) for t in tags):
        return True, None
    return False, tags[0] if tags else None


def pick_diverse(shortlist: list[RankedRestaurant], local_tags: set[str]) -> list[RankedRestaurant]:
    """One local + two distinct international cuisines when possible, best-first."""
    local: Optional[RankedRestaurant] = None
    international: list[RankedRestaurant] = []
    seen: set[str] = set()
    for cand in shortlist:
        is_local, kind = _cuisine_kind(cand.restaurant, local_tags)
        if is_local:
            if local is None:
                local = cand
        elif kind is not None and kind not in seen and len(international) < 2:
            international.append(cand)
            seen.add(kind)
    if local is not None and len(international) == 2:
        picks = [local, *international]
        return sorted(picks, key=lambda r: (-r.score, r.restaurant.id))
    return shortlist[:_PICKS_PER_SLOT]


# ── Reference coordinates ─────────────────────────────────────────────────────

def reference_coords(
    meal_type: MealType,
    cluster: ActivityCluster,
    hotel_coords: Optional[tuple[float, float]],
) -> tuple[float, float]:
    acts = cluster.activities
    anchor = hotel_coords if hotel_coords is not None else cluster.centroid
    if meal_type == MealType.BREAKFAST:
        return anchor
    if not acts:
        return cluster.centroid if cluster.centroid != (0.0, 0.0) else anchor
    if meal_type == MealType.LUNCH:
        centre = cluster.centroid
        return min(acts, key=lambda a: (distance_km(a.coords, centre), a.id)).coords
    last = acts[-1].coords
    if hotel_coords is None:
        return last
    return blend(last, hotel_coords, config.DINNER_LAST_ACTIVITY_WEIGHT)


# ── Public entry point ────────────────────────────────────────────────────────

def assign_meals(
    clusters: list[ActivityCluster],
    primary: list[Restaurant],
    secondary: list[Restaurant],
    prefs: TripPreferences,
    budget_strategy: Optional[BudgetStrategy],
    hotel_coords: Optional[tuple[float, float]],
    used_ids: Optional[set[str]] = None,
    audit: Optional[AuditTrail] = None,
) -> list[MealAssignment]:
    """
    Return one MealAssignment per (day, meal), days ascending, meals in
    breakfast → lunch → dinner order. `used_ids` is updated in place so a
    caller can carry it across several calls for the same trip.
    """
    used = used_ids if used_ids is not None else set()
    audit = audit if audit is not None else AuditTrail()
    strategy = budget_strategy or BudgetStrategy()
    local_tags = {normalize_text(t) for t in prefs.local_cuisine}

    merged = merge_restaurant_sources(primary, secondary)
    pool = [r for r in filter_by_budget(merged, prefs.budget_level) if r.has_valid_coordinates]
    logger.info("Meals: %d restaurant(s) with coordinates in pool (merged %d)", len(pool), len(merged))

    assignments: list[MealAssignment] = []
    for cluster in sorted(clusters, key=lambda c: c.day_number):
        for meal_type in MEAL_ORDER:
            assignments.append(
                _assign_slot(cluster, meal_type, pool, strategy, hotel_coords, used, local_tags, audit)
            )
    return assignments


def _assign_slot(
    cluster: ActivityCluster,
    meal_type: MealType,
    pool: list[Restaurant],
    strategy: BudgetStrategy,
    hotel_coords: Optional[tuple[float, float]],
    used: set[str],
    local_tags: set[str],
    audit: AuditTrail,
) -> MealAssignment:
    day = cluster.day_number
    ref = reference_coords(meal_type, cluster, hotel_coords)
    slot = MealAssignment(day_number=day, meal_type=meal_type, reference_coords=ref)

    if meal_type == MealType.BREAKFAST and strategy.hotel_breakfast_included:
        slot.reason = AssignmentReason.HOTEL_BREAKFAST
        return slot
    if strategy.is_self_catered(meal_type.value):
        slot.reason = AssignmentReason.SELF_CATERED
        return slot

    absolute = config.MEAL_RADIUS_KM[meal_type.value][2]
    in_range: list[RankedRestaurant] = []
    for r in pool:
        if not is_suitable_for(r, meal_type):
            continue
        d = distance_km(ref, r.coords)
        if d <= absolute:
            in_range.append(RankedRestaurant(r, d, meal_score(r, d, meal_type)))

    reason = AssignmentReason.ASSIGNED
    candidates = [c for c in in_range if c.restaurant.id not in used]
    if not candidates and in_range:
        reason = AssignmentReason.POOL_RELAXED
        candidates = in_range
        audit.warn(
            WarningCode.POOL_EXHAUSTED,
            f"Every {meal_type.value} option near day {day} is already used; reusing one",
            day_number=day,
        )

    shortlist = sorted(
        _within_bands(candidates, meal_type),
        key=lambda c: (-c.score, c.distance_km, c.restaurant.id),
    )
    if not shortlist:
        audit.warn(
            WarningCode.NO_RESTAURANT_IN_RANGE,
            f"No {meal_type.value} restaurant within {absolute} km on day {day}",
            day_number=day,
        )
        return slot

    picks = pick_diverse(shortlist, local_tags)
    chosen = picks[0]
    used.add(chosen.restaurant.id)
    slot.restaurant = chosen.restaurant
    slot.alternatives = [p.restaurant for p in picks[1:_PICKS_PER_SLOT]]
    slot.distance_km = round(chosen.distance_km, 3)
    slot.reason = reason
    logger.debug(
        "Meals: day %d %s → '%s' (%.2f km, score %.2f)",
        day, meal_type.value, chosen.restaurant.name, chosen.distance_km, chosen.score,
    )
    return slot

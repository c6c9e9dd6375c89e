"""
modules/planning/candidate_pool.py
------------------------------------
Candidate Pool Builder: turns the per-source activity lists of FetchedData
into the scored, trimmed pool the day clusterer works on.

  1. Merge       must-see list first, then google_places → serpapi →
                 overpass → viator. Names the traveler listed as must-see
                 flag matching candidates.
  2. Coordinates items without plausible coordinates are dropped and
                 reported (never jittered).
  3. Geo-dedup   within DEDUP_RADIUS_KM the record with more reviews wins,
                 but a curated must-see record is never replaced by a
                 lower-authority copy; must_see is OR-combined.
  4. Category    disallowed provider types, generic streets / squares and
                 blocked brands are removed unless the name carries an
                 attraction keyword. Must-sees are exempt.
  5. Score       ActivityScorer (attraction_scoring.py).
  6. Select      all must-sees + best others up to target_pool_size(), plus
                 one experiential activity when none made the cut.
  7. Post-fix    minimum durations and cost corrections on non-verified items.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

import config
from modules.planning.attraction_scoring import ActivityScorer, is_experiential
from modules.planning.keyword_tables import (
    BLOCKED_NAMES,
    DISALLOWED_TYPES,
    FREE_VENUE_KEYWORDS,
    GENERIC_PLACE_PREFIXES,
    PAID_VENUE_KEYWORDS,
    STREET_FOOD_KEYWORDS,
    has_attraction_keyword,
    matches_any,
    min_duration_for,
    normalize_name,
    normalize_text,
)
from modules.tool_usage.distance_tool import distance_km
from schemas.activity import Activity, ActivitySource, DataReliability, ScoredActivity
from schemas.audit import AuditTrail, WarningCode
from schemas.plan import FetchedData
from schemas.preferences import TripPreferences

logger = logging.getLogger(__name__)


# ── Public entry point ─────────────────────────────────────────────────────────

def build_pool(
    data: FetchedData,
    prefs: TripPreferences,
    audit: Optional[AuditTrail] = None,
) -> list[ScoredActivity]:
    """Merge, clean, score and select the activity pool for one trip."""
    audit = audit if audit is not None else AuditTrail()

    merged = merge_sources(data, prefs.must_see)
    located = _drop_unlocated(merged, audit)
    deduped = deduplicate_by_proximity(located, config.DEDUP_RADIUS_KM)
    relevant = [a for a in deduped if a.must_see or not is_irrelevant(a)]

    scored = ActivityScorer(prefs, data.dest_center).score_all(relevant)
    selected = select_pool(scored, prefs.duration_days)
    result = [apply_post_fix(a) for a in selected]

    logger.info(
        "Pool: merged=%d located=%d deduped=%d relevant=%d selected=%d (must-see=%d)",
        len(merged), len(located), len(deduped), len(relevant), len(result),
        sum(1 for a in result if a.must_see),
    )
    return result


# ── 1. Merge ───────────────────────────────────────────────────────────────────

def merge_sources(data: FetchedData, must_see_names: Iterable[str] = ()) -> list[ScoredActivity]:
    ordered: list[tuple[ActivitySource, list[Activity]]] = [
        (ActivitySource.MUSTSEE, data.must_see_attractions),
        (ActivitySource.GOOGLE_PLACES, data.google_places_attractions),
        (ActivitySource.SERPAPI, data.serpapi_attractions),
        (ActivitySource.OVERPASS, data.overpass_attractions),
        (ActivitySource.VIATOR, data.viator_activities),
    ]
    wanted = [normalize_name(n) for n in must_see_names if normalize_name(n)]

    merged: list[ScoredActivity] = []
    for source, items in ordered:
        for item in items:
            record = ScoredActivity.from_activity(item, source)
            if source == ActivitySource.MUSTSEE or _matches_wanted(record.name, wanted):
                record.must_see = True
            merged.append(record)
    return merged


def _matches_wanted(name: str, wanted: list[str]) -> bool:
    key = normalize_name(name)
    if not key:
        return False
    return any(w in key or key in w for w in wanted)


# ── 2. Coordinates ─────────────────────────────────────────────────────────────

def _drop_unlocated(activities: list[ScoredActivity], audit: AuditTrail) -> list[ScoredActivity]:
    kept: list[ScoredActivity] = []
    for a in activities:
        if a.has_valid_coordinates:
            kept.append(a)
            continue
        audit.warn(
            WarningCode.UNRESOLVED_COORDINATES,
            f"'{a.name}' has no usable coordinates and was left out of the pool",
            entity_id=a.id,
        )
        if a.must_see:
            audit.warn(
                WarningCode.MISSING_MUST_SEE,
                f"Must-see '{a.name}' could not be located",
                entity_id=a.id,
            )
    return kept


# ── 3. Geo-dedup ───────────────────────────────────────────────────────────────

def deduplicate_by_proximity(
    activities: list[ScoredActivity],
    threshold_km: float = config.DEDUP_RADIUS_KM,
) -> list[ScoredActivity]:
    """
    Collapse records closer than threshold_km into one.

    The survivor is the copy with more reviews, except that a record from the
    curated must-see list is never displaced by a copy from another source.
    The must_see flag of the survivor is the OR of both copies.
    """
    result: list[ScoredActivity] = []
    for cand in activities:
        idx = next(
            (i for i, kept in enumerate(result)
             if distance_km(cand.coords, kept.coords) < threshold_km),
            None,
        )
        if idx is None:
            result.append(cand)
            continue

        kept = result[idx]
        must_see = kept.must_see or cand.must_see
        curated_kept = kept.source == ActivitySource.MUSTSEE and cand.source != ActivitySource.MUSTSEE
        if not curated_kept and (cand.review_count or 0) > (kept.review_count or 0):
            survivor = cand
        else:
            survivor = kept
        if survivor.must_see != must_see:
            survivor = replace(survivor, must_see=must_see)
        result[idx] = survivor
    return result


# ── 4. Category filter ─────────────────────────────────────────────────────────

def is_irrelevant(activity: Activity) -> bool:
    """True for non-sightseeing places; an attraction keyword in the name overrides."""
    name = normalize_text(activity.name)
    category = (activity.category or "").lower()

    if matches_any(name, BLOCKED_NAMES):
        return True
    if has_attraction_keyword(name):
        return False
    if matches_any(category, DISALLOWED_TYPES):
        return True
    return name.startswith(GENERIC_PLACE_PREFIXES)


# ── 6. Selection ───────────────────────────────────────────────────────────────

def target_pool_size(duration_days: int, must_see_count: int) -> int:
    """Arrival/departure days take ~2 activities, full days ~4, plus a buffer."""
    full_days = max(0, duration_days - 2)
    return max(
        2 + 2 + full_days * 4 + 2,
        must_see_count + full_days * 3 + 2,
        duration_days * 3,
        6,
    )


def select_pool(scored: list[ScoredActivity], duration_days: int) -> list[ScoredActivity]:
    must_sees = [a for a in scored if a.must_see]
    others = [a for a in scored if not a.must_see]
    remaining = max(0, target_pool_size(duration_days, len(must_sees)) - len(must_sees))
    selected = must_sees + others[:remaining]

    if not any(is_experiential(a) for a in selected):
        chosen = {a.id for a in selected}
        extra = next((a for a in others if is_experiential(a) and a.id not in chosen), None)
        if extra is not None:
            logger.info("Pool: added experiential activity '%s'", extra.name)
            selected.append(extra)
    return selected


# ── 7. Post-fix ────────────────────────────────────────────────────────────────

def apply_post_fix(activity: ScoredActivity) -> ScoredActivity:
    """Correct duration and cost of estimated / generated records."""
    if activity.data_reliability == DataReliability.VERIFIED:
        return activity

    duration = max(
        activity.duration_minutes or 0,
        min_duration_for(activity.name, activity.category, config.DEFAULT_MIN_DURATION_MIN),
    )
    cost = _fixed_cost(activity)
    if duration == activity.duration_minutes and cost == activity.estimated_cost:
        return activity
    return replace(activity, duration_minutes=duration, estimated_cost=cost)


def _fixed_cost(activity: ScoredActivity) -> float:
    text = normalize_text(f"{activity.name} {activity.category}")
    cost = activity.estimated_cost or 0.0
    if matches_any(text, FREE_VENUE_KEYWORDS) and not matches_any(text, PAID_VENUE_KEYWORDS):
        return 0.0
    if matches_any(text, STREET_FOOD_KEYWORDS):
        return min(cost, config.STREET_FOOD_MAX_COST)
    if cost >= config.UNBOOKABLE_COST_THRESHOLD and not activity.booking_url:
        return config.UNBOOKABLE_COST_CAP
    return cost

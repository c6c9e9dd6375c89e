"""
modules/planning/day_theming.py
---------------------------------
Cosmetic theming pass: a title, a short narrative, a visit order and a start
time for every frozen day cluster.

The LLM may only reorder what a day already holds. Its reply is parsed into
BalancedPlan (pydantic) and then sanitised per day:
  - unknown activity ids are dropped,
  - ids the LLM forgot are appended in cluster order,
  - day numbers it invented are ignored, days it skipped use the fallback.

Timeout, transport error or malformed JSON → deterministic plan plus a
THEMING_FALLBACK warning. The deterministic plan depends only on the clusters,
so the pass is pure whenever the LLM is unavailable.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Optional

import config
from llm import parse_json_object
from modules.planning.keyword_tables import DEFAULT_THEME, THEME_RULES, matches_any, normalize_text
from schemas.accommodation import Accommodation
from schemas.activity import ActivityCluster
from schemas.audit import AuditTrail, WarningCode
from schemas.dining import MealAssignment
from schemas.plan import BalancedDay, BalancedPlan, DayBudget
from schemas.preferences import TransportTiming, TripPreferences

logger = logging.getLogger(__name__)

_REST_BREAK_THRESHOLD = 4

_THEMING_PROMPT = """You are a travel editor. The day-by-day activity allocation below is final.
For each day, give it a short theme, a one or two sentence narrative and the
best visiting order of the SAME activity ids. Do not add, remove or move
activities between days.

Trip: {destination}, {days} day(s), traveling as {group_type}; interests: {interests}.
Hotel: {hotel}. Arrival: {arrival}. Departure: {departure}.

Days:
{day_lines}

Return ONLY valid JSON, no markdown:
{{"days": [{{"day_number": 1, "theme": "", "day_narrative": "", "activity_order": ["<id>"],
  "suggested_start_time": "09:00", "rest_break": false}}],
 "day_order_reason": ""}}
"""


# ── Deterministic plan ────────────────────────────────────────────────────────

def theme_for(cluster: ActivityCluster) -> str:
    """Theme whose keywords match the most activities; ties go to the first rule."""
    texts = [normalize_text(f"{a.category} {a.name}") for a in cluster.activities]
    best, best_hits = DEFAULT_THEME, 0
    for keywords, theme in THEME_RULES:
        hits = sum(1 for t in texts if matches_any(t, keywords))
        if hits > best_hits:
            best, best_hits = theme, hits
    return best


def narrative_for(day_number: int, num_days: int, cluster: ActivityCluster, is_day_trip: bool) -> str:
    names = [a.name for a in cluster.activities]
    highlight = names[0] if names else ""
    if is_day_trip and highlight:
        return f"A day trip out of the city to {highlight}."
    if not names:
        return "A free day to wander at your own pace."
    if num_days == 1:
        return f"A compact day built around {highlight}."
    if day_number == 1:
        return f"Settle in and get a first feel for the city, starting with {highlight}."
    if day_number == num_days:
        return f"A last look around before heading home, with {highlight}."
    return f"A full day of discovery centred on {highlight}."


def deterministic_plan(
    clusters: list[ActivityCluster],
    day_budgets: Optional[list[DayBudget]] = None,
) -> BalancedPlan:
    trips = {b.day_number for b in (day_budgets or []) if b.is_day_trip}
    ordered = sorted(clusters, key=lambda c: c.day_number)
    days: list[BalancedDay] = []
    for cluster in ordered:
        is_trip = cluster.day_number in trips
        days.append(BalancedDay(
            day_number=cluster.day_number,
            theme=f"Day Trip: {cluster.activities[0].name}" if is_trip and cluster.activities else theme_for(cluster),
            day_narrative=narrative_for(cluster.day_number, len(ordered), cluster, is_trip),
            activity_order=cluster.ids,
            suggested_start_time="10:00" if cluster.day_number == 1 else "09:00",
            rest_break=len(cluster.activities) > _REST_BREAK_THRESHOLD,
            is_day_trip=is_trip,
            day_trip_destination=cluster.activities[0].name if is_trip and cluster.activities else None,
        ))
    return BalancedPlan(
        days=days,
        day_order_reason="Days follow the geographic grouping of activities",
        used_fallback=True,
    )


# ── LLM plan ──────────────────────────────────────────────────────────────────

def build_prompt(
    clusters: list[ActivityCluster],
    meals: list[MealAssignment],
    hotel: Optional[Accommodation],
    transport: Optional[TransportTiming],
    prefs: TripPreferences,
) -> str:
    meals_by_day: dict[int, list[str]] = {}
    for m in meals:
        if m.restaurant is not None:
            meals_by_day.setdefault(m.day_number, []).append(f"{m.meal_type.value}: {m.restaurant.name}")

    lines = []
    for c in sorted(clusters, key=lambda c: c.day_number):
        acts = "; ".join(f"{a.id} = {a.name} ({a.category or 'sight'}, {a.duration_minutes} min)" for a in c.activities)
        food = ", ".join(meals_by_day.get(c.day_number, [])) or "none"
        lines.append(f"Day {c.day_number}: {acts or 'no activities'} | meals: {food}")

    return _THEMING_PROMPT.format(
        destination=prefs.destination,
        days=len(clusters),
        group_type=prefs.group_type,
        interests=", ".join(prefs.activities) or "general sightseeing",
        hotel=hotel.name if hotel else "not booked",
        arrival=f"{transport.arrival_hour:.2f}h" if transport and transport.arrival_hour is not None else "unknown",
        departure=f"{transport.departure_hour:.2f}h" if transport and transport.departure_hour is not None else "unknown",
        day_lines="\n".join(lines),
    )


def sanitize_plan(
    proposed: BalancedPlan,
    clusters: list[ActivityCluster],
    fallback: BalancedPlan,
) -> BalancedPlan:
    """Force every day's id set to equal its cluster's; fill gaps from the fallback."""
    by_day = {d.day_number: d for d in proposed.days}
    fallback_by_day = {d.day_number: d for d in fallback.days}
    days: list[BalancedDay] = []
    for cluster in sorted(clusters, key=lambda c: c.day_number):
        base = fallback_by_day[cluster.day_number]
        llm_day = by_day.get(cluster.day_number)
        if llm_day is None:
            days.append(base)
            continue
        allowed = cluster.ids
        order = list(dict.fromkeys(i for i in llm_day.activity_order if i in allowed))
        order += [i for i in allowed if i not in order]
        days.append(BalancedDay(
            day_number=cluster.day_number,
            theme=llm_day.theme or base.theme,
            day_narrative=llm_day.day_narrative or base.day_narrative,
            activity_order=order,
            suggested_start_time=llm_day.suggested_start_time,
            rest_break=llm_day.rest_break or base.rest_break,
            is_day_trip=base.is_day_trip,
            day_trip_destination=base.day_trip_destination,
        ))
    return BalancedPlan(days=days, day_order_reason=proposed.day_order_reason, used_fallback=False)


def theme_days(
    clusters: list[ActivityCluster],
    meals: list[MealAssignment],
    hotel: Optional[Accommodation],
    transport: Optional[TransportTiming],
    prefs: TripPreferences,
    llm_client=None,
    timeout: float = config.LLM_TIMEOUT_SECONDS,
    day_budgets: Optional[list[DayBudget]] = None,
    audit: Optional[AuditTrail] = None,
) -> BalancedPlan:
    fallback = deterministic_plan(clusters, day_budgets)
    if llm_client is None or not clusters:
        return fallback
    audit = audit if audit is not None else AuditTrail()

    prompt = build_prompt(clusters, meals, hotel, transport, prefs)
    executor = ThreadPoolExecutor(max_workers=1)
    future = executor.submit(llm_client.complete, prompt)
    try:
        data = parse_json_object(future.result(timeout=timeout))
        if not data:                          # skip stub no-op response
            return fallback
        proposed = BalancedPlan.model_validate(data)
    except FutureTimeout:
        future.cancel()
        audit.warn(WarningCode.THEMING_FALLBACK, f"Theming LLM did not answer within {timeout:.0f}s")
        return fallback
    except Exception as exc:
        audit.warn(WarningCode.THEMING_FALLBACK, f"Theming LLM reply unusable ({exc.__class__.__name__}: {exc})")
        return fallback
    finally:
        executor.shutdown(wait=False)

    plan = sanitize_plan(proposed, clusters, fallback)
    logger.info("Theming: LLM plan accepted for %d day(s)", len(plan.days))
    return plan

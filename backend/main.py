"""
main.py
--------
Itinerary construction pipeline entry point.

  resolve coordinates → candidate pool → day clusters → capacity rebalance
  → hotel → meals → day theming → quality gate

Every stage is synchronous and deterministic; external collaborators (data
providers, geocoder, LLM) are injected and may fail without aborting the
trip. Degraded paths end up as warnings on the returned TripPlan.

Run:
  python main.py --input trip.json [--pretty]

trip.json follows schemas.request.PlanRequest:
  {"preferences": {...}, "dest_center": [lat, lon],
   "sources": {"google_places": [...], "primary_restaurants": [...], ...},
   "transport": {...}, "budget_strategy": {...}}
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Optional

import config
from llm import get_llm_client
from modules.observability.logger import StructuredLogger
from modules.planning.candidate_pool import build_pool
from modules.planning.day_clustering import cluster_activities
from modules.planning.day_theming import theme_days
from modules.planning.hotel_selector import select_hotel
from modules.planning.meal_assigner import assign_meals
from modules.planning.rebalancer import CapacityRebalancer
from modules.tool_usage.fetch_tool import Provider, build_fetched_data, fetch_all
from modules.tool_usage.geocode_tool import Resolver, resolve_missing_coordinates
from modules.validation.plan_validator import validate_plan
from schemas.audit import AuditTrail, WarningCode
from schemas.plan import FetchedData, TripPlan
from schemas.preferences import BudgetStrategy, TransportTiming, TripPreferences
from schemas.request import PlanRequest

logger = logging.getLogger(__name__)

_ACTIVITY_LISTS = (
    "must_see_attractions",
    "google_places_attractions",
    "serpapi_attractions",
    "overpass_attractions",
    "viator_activities",
)


def _default_llm(audit: AuditTrail):
    """Configured LLM client, or None (deterministic theming) when it cannot be built."""
    try:
        return get_llm_client()
    except RuntimeError as exc:
        audit.warn(WarningCode.THEMING_FALLBACK, f"LLM client unavailable: {exc}")
        return None


def run_pipeline(
    data: FetchedData,
    prefs: TripPreferences,
    transport: Optional[TransportTiming] = None,
    budget_strategy: Optional[BudgetStrategy] = None,
    llm_client=None,
    resolver: Optional[Resolver] = None,
    session_id: Optional[str] = None,
    structured_logger: Optional[StructuredLogger] = None,
) -> TripPlan:
    """Build a TripPlan from already-fetched data. Never raises for data problems."""
    session_id = session_id or f"trip_{uuid.uuid4().hex[:8]}"
    slog = structured_logger or StructuredLogger()
    audit = AuditTrail(session_id=session_id, structured_logger=slog if slog.enabled else None)
    strategy = budget_strategy or BudgetStrategy()

    # ── Coordinate resolution ──────────────────────────────────────────────
    if resolver is not None:
        with slog.timed(session_id, "resolve"):
            data = replace(data, **{
                attr: resolve_missing_coordinates(getattr(data, attr), resolver, prefs.destination, audit)
                for attr in _ACTIVITY_LISTS
            })

    # ── Candidate pool ─────────────────────────────────────────────────────
    with slog.timed(session_id, "pool") as perf:
        pool = build_pool(data, prefs, audit)
        perf["pool_size"] = len(pool)
    input_must_see_ids = [a.id for a in pool if a.must_see]

    # ── Day clusters + capacity ────────────────────────────────────────────
    with slog.timed(session_id, "cluster"):
        clusters = cluster_activities(pool, prefs.duration_days, data.dest_center)

    with slog.timed(session_id, "rebalance") as perf:
        result = CapacityRebalancer().rebalance(clusters, transport, audit)
        perf["moves"] = result.moves_by_phase

    # ── Hotel ──────────────────────────────────────────────────────────────
    with slog.timed(session_id, "hotel"):
        hotel = select_hotel(
            result.clusters, data.hotels, prefs.budget_level,
            max_per_night=strategy.accommodation_max_per_night, audit=audit,
        )
    if hotel is not None and hotel.breakfast_included and not strategy.hotel_breakfast_included:
        strategy = strategy.model_copy(update={"hotel_breakfast_included": True})

    # ── Meals ──────────────────────────────────────────────────────────────
    with slog.timed(session_id, "meals"):
        meals = assign_meals(
            result.clusters,
            data.primary_restaurants,
            data.secondary_restaurants,
            prefs,
            strategy,
            hotel.coords if hotel is not None else None,
            used_ids=set(),
            audit=audit,
        )

    # ── Theming ────────────────────────────────────────────────────────────
    with slog.timed(session_id, "theme"):
        balanced = theme_days(
            result.clusters, meals, hotel, transport, prefs,
            llm_client=llm_client if llm_client is not None else _default_llm(audit),
            day_budgets=result.day_budgets,
            audit=audit,
        )

    plan = TripPlan(
        clusters=result.clusters,
        day_budgets=result.day_budgets,
        meals=meals,
        hotel=hotel,
        balanced_plan=balanced,
        unplaced_must_see_ids=result.unplaced_must_see_ids,
        dropped_activity_ids=[a.id for a in result.dropped],
        input_must_see_ids=input_must_see_ids,
    )

    # ── Quality gate ───────────────────────────────────────────────────────
    with slog.timed(session_id, "quality"):
        plan.quality = validate_plan(plan)
    for finding in plan.quality.warnings:
        audit.warn(WarningCode.QUALITY_GATE, finding)

    plan.warnings = list(audit.warnings)
    logger.info(
        "Pipeline %s: %d day(s), %d activities, %d warning(s), quality %d",
        session_id, len(plan.clusters), sum(len(c.activities) for c in plan.clusters),
        len(plan.warnings), plan.quality.score,
    )
    return plan


def plan_trip(
    prefs: TripPreferences,
    providers: dict[str, Provider],
    dest_center: tuple[float, float],
    transport: Optional[TransportTiming] = None,
    budget_strategy: Optional[BudgetStrategy] = None,
    llm_client=None,
    resolver: Optional[Resolver] = None,
    session_id: Optional[str] = None,
    fetch_timeout: float = config.FETCH_TIMEOUT_SECONDS,
    structured_logger: Optional[StructuredLogger] = None,
) -> TripPlan:
    """Fetch from every provider, then run the pipeline. Fetch warnings are kept."""
    session_id = session_id or f"trip_{uuid.uuid4().hex[:8]}"
    slog = structured_logger or StructuredLogger()
    fetch_audit = AuditTrail(session_id=session_id, structured_logger=slog if slog.enabled else None)
    data = fetch_all(prefs, providers, dest_center, timeout=fetch_timeout, audit=fetch_audit)
    plan = run_pipeline(
        data, prefs, transport, budget_strategy,
        llm_client=llm_client, resolver=resolver, session_id=session_id,
        structured_logger=slog,
    )
    plan.warnings = fetch_audit.warnings + plan.warnings
    return plan


# ── Serialisation ──────────────────────────────────────────────────────────────

def _ser_record(record) -> Optional[dict]:
    if record is None:
        return None
    out = {}
    for f in fields(record):
        value = getattr(record, f.name)
        out[f.name] = value.value if hasattr(value, "value") else value
    return out


def serialize_plan(plan: TripPlan) -> dict:
    """JSON-ready view of a TripPlan, one entry per day."""
    budgets = {b.day_number: b for b in plan.day_budgets}
    themed = {d.day_number: d for d in plan.balanced_plan.days}
    days = []
    for cluster in plan.clusters:
        budget = budgets.get(cluster.day_number)
        days.append({
            "day_number": cluster.day_number,
            "budget": {
                **asdict(budget),
                "minute_budget": budget.minute_budget,
            } if budget else None,
            "centroid": list(cluster.centroid),
            "total_intra_distance_km": round(cluster.total_intra_distance_km, 3),
            "max_radius_km": round(cluster.max_radius_km, 3),
            "activities": [_ser_record(a) for a in cluster.activities],
            "meals": [
                {
                    "meal_type": m.meal_type.value,
                    "restaurant": _ser_record(m.restaurant),
                    "alternatives": [_ser_record(r) for r in m.alternatives],
                    "reference_coords": list(m.reference_coords),
                    "distance_km": m.distance_km,
                    "reason": m.reason.value,
                }
                for m in plan.meals if m.day_number == cluster.day_number
            ],
            "theme": themed[cluster.day_number].model_dump() if cluster.day_number in themed else None,
        })
    return {
        "days": days,
        "hotel": _ser_record(plan.hotel),
        "day_order_reason": plan.balanced_plan.day_order_reason,
        "theming_fallback": plan.balanced_plan.used_fallback,
        "warnings": [w.to_dict() for w in plan.warnings],
        "quality": asdict(plan.quality),
        "unplaced_must_see_ids": plan.unplaced_must_see_ids,
        "dropped_activity_ids": plan.dropped_activity_ids,
    }


def plan_from_request(req: PlanRequest, llm_client=None, resolver: Optional[Resolver] = None) -> TripPlan:
    data = build_fetched_data(req.sources, req.dest_center)
    return run_pipeline(
        data, req.preferences, req.transport, req.budget_strategy,
        llm_client=llm_client, resolver=resolver, session_id=req.session_id,
    )


# ── CLI ────────────────────────────────────────────────────────────────────────

def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Build a day-by-day trip allocation from a JSON dump.")
    parser.add_argument("--input", required=True, type=Path, help="PlanRequest JSON file")
    parser.add_argument("--pretty", action="store_true", help="Indent the JSON output")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    payload = json.loads(args.input.read_text(encoding="utf-8"))
    req = PlanRequest.model_validate(payload)
    plan = plan_from_request(req)
    print(json.dumps(serialize_plan(plan), indent=2 if args.pretty else None, default=str, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())

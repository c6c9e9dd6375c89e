"""
modules/validation/plan_validator.py
--------------------------------------
Post-generation quality gate. Never blocks delivery: it scores the plan and
lists what a reviewer should look at.

  Check                                   Penalty
  ─────────────────────────────────────   ───────
  non-day-trip day over its minute budget   -15 / day
  input must-see absent from every day      -20 / must-see
  restaurant reused across meals            -5  / reuse
  meal farther than the absolute radius     -10 / meal
  day with no activity                      -10 / day
  activity placed on two days               -25 / activity

Score starts at 100 and is floored at 0.
"""

from __future__ import annotations

import logging
from collections import Counter

import config
from modules.planning.rebalancer import cluster_load
from schemas.plan import QualityReport, TripPlan

logger = logging.getLogger(__name__)

_PENALTY_OVERLOAD = 15
_PENALTY_MISSING_MUST_SEE = 20
_PENALTY_REUSED_RESTAURANT = 5
_PENALTY_FAR_MEAL = 10
_PENALTY_EMPTY_DAY = 10
_PENALTY_DUPLICATE_ACTIVITY = 25


def validate_plan(plan: TripPlan) -> QualityReport:
    warnings: list[str] = []
    score = 100

    budgets = {b.day_number: b for b in plan.day_budgets}

    # ── Capacity ───────────────────────────────────────────────────────────
    for cluster in plan.clusters:
        budget = budgets.get(cluster.day_number)
        if budget is None or budget.is_day_trip or not cluster.activities:
            continue
        load = cluster_load(cluster)
        if load > budget.minute_budget:
            score -= _PENALTY_OVERLOAD
            warnings.append(
                f"Day {cluster.day_number} is over capacity: {load} min planned, "
                f"{budget.minute_budget} min available"
            )

    # ── Activity uniqueness ────────────────────────────────────────────────
    counts = Counter(a.id for c in plan.clusters for a in c.activities)
    for activity_id, n in counts.items():
        if n > 1:
            score -= _PENALTY_DUPLICATE_ACTIVITY
            warnings.append(f"Activity {activity_id} is scheduled on {n} days")

    # ── Must-see coverage ──────────────────────────────────────────────────
    for missing in sorted(set(plan.input_must_see_ids) - set(counts)):
        score -= _PENALTY_MISSING_MUST_SEE
        warnings.append(f"Must-see {missing} is not in the schedule")

    # ── Meals ──────────────────────────────────────────────────────────────
    used = Counter(m.restaurant.id for m in plan.meals if m.restaurant is not None)
    for restaurant_id, n in used.items():
        if n > 1:
            score -= _PENALTY_REUSED_RESTAURANT * (n - 1)
            warnings.append(f"Restaurant {restaurant_id} is used for {n} meals")

    for meal in plan.meals:
        if meal.restaurant is None or meal.distance_km is None:
            continue
        limit = config.MEAL_RADIUS_KM[meal.meal_type.value][2]
        if meal.distance_km > limit:
            score -= _PENALTY_FAR_MEAL
            warnings.append(
                f"Day {meal.day_number} {meal.meal_type.value} is {meal.distance_km:.2f} km away "
                f"(limit {limit} km)"
            )

    # ── Empty days ─────────────────────────────────────────────────────────
    for cluster in plan.clusters:
        if not cluster.activities:
            score -= _PENALTY_EMPTY_DAY
            warnings.append(f"Day {cluster.day_number} has no activities")

    report = QualityReport(score=max(0, score), warnings=warnings)
    logger.info("Quality gate: score %d with %d finding(s)", report.score, len(warnings))
    return report

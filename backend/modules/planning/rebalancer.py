"""
modules/planning/rebalancer.py
--------------------------------
Capacity-Aware Rebalancer: the only stage allowed to change cluster
membership after clustering.

Preliminaries (per day):
  - Day-trip detection: a single-activity cluster farther than
    DAY_TRIP_THRESHOLD_KM from the mean of all centroids is a day trip. It
    gets a 12 h window from DAY_START_HOUR, clipped by arrival on day 1 and
    departure on the last day, and is exempt from every capacity rule.
  - Available hours: 12 h baseline; day 1 starts after arrival + transfer
    buffer, the last day ends at departure − buffer.
  - Minute budget = available minutes − MEAL_OVERHEAD_MIN.
  - Load = Σ(duration + TRAVEL_OVERHEAD_MIN). Overloaded ⇔ load > budget.
  - Max activities = floor((hours − 3) / (avg_duration / 60 + 0.5)).

Phases, in order (each re-scans all clusters, each bounded by
PHASE_ITERATION_CAP passes, each safe to run when nothing needs fixing):
  1. Empty-day drain           zero-budget days hand their activities on
  2. Duration-aware rebalance  lowest-scored non-must-see moves or is trimmed;
                               a must-see-only day moves its longest one
  3. Must-see density audit    too many must-sees for one day
  4. Outdoor / closing time    outdoor must-sees leave late-starting days
  5. Zero-activity backfill    empty days with time steal from neighbours
  6. Must-see guarantee        move, or evict non-must-sees to make room
  7. Fatigue balancing         ≤ MAX_HEAVY_PER_DAY activities of ≥ 90 min

Must-see ids are reconciled after every phase. A must-see is never
dropped: when nothing can host it, it stays where it is and the day is
reported as CAPACITY_UNRESOLVED. Non-convergence within the caps is a
partial result, not an error. Clusters are frozen on return.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Optional

import config
from modules.planning.day_clustering import order_visits
from modules.planning.keyword_tables import classify_outdoor
from modules.tool_usage.distance_tool import centroid_of, distance_km
from schemas.activity import ActivityCluster, ScoredActivity
from schemas.audit import AuditTrail, WarningCode
from schemas.plan import DayBudget
from schemas.preferences import TransportTiming

logger = logging.getLogger(__name__)


class MustSeeIntegrityError(RuntimeError):
    """A must-see activity ended up in more than one cluster."""


@dataclass
class RebalanceResult:
    clusters: list[ActivityCluster]
    day_budgets: list[DayBudget]
    dropped: list[ScoredActivity] = field(default_factory=list)
    unplaced_must_see_ids: list[str] = field(default_factory=list)
    unresolved_days: list[int] = field(default_factory=list)
    moves_by_phase: dict[str, int] = field(default_factory=dict)


# ── Preliminary computations ───────────────────────────────────────────────────

def activity_cost(activity: ScoredActivity) -> int:
    """Minutes an activity consumes from its day, travel overhead included."""
    return (activity.duration_minutes or config.DEFAULT_ACTIVITY_MIN) + config.TRAVEL_OVERHEAD_MIN


def cluster_load(cluster: ActivityCluster) -> int:
    return sum(activity_cost(a) for a in cluster.activities)


def detect_day_trips(clusters: list[ActivityCluster]) -> set[int]:
    """Day numbers whose single activity is remote from the trip's mean centroid."""
    populated = [c for c in clusters if c.activities]
    if len(populated) < 2:
        return set()
    mean = centroid_of(centroid_of(a.coords for a in c.activities) for c in populated)
    return {
        c.day_number for c in populated
        if len(c.activities) == 1
        and distance_km(c.activities[0].coords, mean) > config.DAY_TRIP_THRESHOLD_KM
    }


def compute_day_budgets(
    num_days: int,
    transport: Optional[TransportTiming],
    day_trips: set[int] | None = None,
    avg_duration_min: float = config.DEFAULT_ACTIVITY_MIN,
) -> list[DayBudget]:
    """Time window and activity cap of every day, from arrival / departure timing."""
    day_trips = day_trips or set()
    flight = transport is not None and transport.is_flight
    arrival = transport.arrival_hour if transport else None
    departure = transport.departure_hour if transport else None
    arr_buffer = config.ARRIVAL_BUFFER_FLIGHT_HOURS if flight else config.ARRIVAL_BUFFER_GROUND_HOURS
    dep_buffer = config.DEPARTURE_BUFFER_FLIGHT_HOURS if flight else config.DEPARTURE_BUFFER_GROUND_HOURS

    budgets: list[DayBudget] = []
    for day in range(1, num_days + 1):
        arriving = day == 1 and arrival is not None
        departing = day == num_days and departure is not None

        if day in day_trips:
            # full day out, still bounded by the arrival and departure legs
            start = config.DAY_START_HOUR
            end = start + config.DAY_TRIP_HOURS
            if arriving:
                start = max(start, arrival + arr_buffer)
            if departing:
                end = min(end, departure - dep_buffer)
            hours = max(0.0, end - start)
            budgets.append(DayBudget(
                day_number=day, start_hour=start, end_hour=max(start, end),
                available_hours=hours,
                max_activities=_max_activities(hours, avg_duration_min),
                is_day_trip=True,
            ))
            continue

        start = config.DAY_START_HOUR
        end = start + config.BASELINE_DAY_HOURS
        if arriving:
            start = arrival + arr_buffer
            end = config.DAY_END_HOUR
        if departing:
            if not arriving:
                start = config.DEPARTURE_DAY_START_HOUR
            end = departure - dep_buffer
        hours = min(config.BASELINE_DAY_HOURS, max(0.0, end - start))
        budgets.append(DayBudget(
            day_number=day, start_hour=start, end_hour=max(start, end),
            available_hours=hours,
            max_activities=_max_activities(hours, avg_duration_min),
        ))
    return budgets


def _max_activities(hours: float, avg_duration_min: float) -> int:
    per_activity = avg_duration_min / 60.0 + config.TRAVEL_OVERHEAD_MIN / 60.0
    usable = hours - config.MEAL_OVERHEAD_MIN / 60.0
    if usable <= 0 or per_activity <= 0:
        return 0
    return int(math.floor(usable / per_activity))


# ── Rebalancer ─────────────────────────────────────────────────────────────────

class CapacityRebalancer:
    """Moves activities between day clusters until every day fits its time budget."""

    def __init__(self, iteration_cap: int = config.PHASE_ITERATION_CAP) -> None:
        self.iteration_cap = iteration_cap

    # ── Public ────────────────────────────────────────────────────────────────

    def rebalance(
        self,
        clusters: list[ActivityCluster],
        transport: Optional[TransportTiming] = None,
        audit: Optional[AuditTrail] = None,
    ) -> RebalanceResult:
        self._clusters = sorted(clusters, key=lambda c: c.day_number)
        self._audit = audit if audit is not None else AuditTrail()
        self._dropped: list[ScoredActivity] = []
        self._stuck: set[int] = set()

        self._input_must_sees = self._reconcile_must_sees(expected=None)

        all_acts = [a for c in self._clusters for a in c.activities]
        avg = (
            sum(a.duration_minutes or config.DEFAULT_ACTIVITY_MIN for a in all_acts) / len(all_acts)
            if all_acts else config.DEFAULT_ACTIVITY_MIN
        )
        day_trips = detect_day_trips(self._clusters)
        budgets = compute_day_budgets(len(self._clusters), transport, day_trips, avg)
        self._budgets = {b.day_number: b for b in budgets}

        moves: dict[str, int] = {}
        phases: list[tuple[str, Callable[[], int]]] = [
            ("empty_day_drain", self._phase_empty_day_drain),
            ("duration_rebalance", self._phase_duration_rebalance),
            ("must_see_density", self._phase_must_see_density),
            ("outdoor_closing_time", self._phase_outdoor_closing_time),
            ("zero_activity_backfill", self._phase_zero_activity_backfill),
            ("must_see_guarantee", self._phase_must_see_guarantee),
            ("fatigue_balance", self._phase_fatigue_balance),
        ]
        for name, phase in phases:
            moves[name] = phase()
            self._reconcile_must_sees(expected=self._input_must_sees)
            if moves[name]:
                logger.info("Rebalancer: phase %s made %d change(s)", name, moves[name])

        unresolved = self._report_unresolved()
        final_ids = {a.id for c in self._clusters for a in c.activities if a.must_see}
        unplaced = sorted(self._input_must_sees - final_ids)

        for cluster in self._clusters:
            if not self._is_day_trip(cluster):
                cluster.replace_activities(order_visits(cluster.activities))
            cluster.freeze()

        return RebalanceResult(
            clusters=self._clusters,
            day_budgets=budgets,
            dropped=list(self._dropped),
            unplaced_must_see_ids=unplaced,
            unresolved_days=unresolved,
            moves_by_phase=moves,
        )

    # ── Capacity helpers ──────────────────────────────────────────────────────

    def _budget(self, cluster: ActivityCluster) -> DayBudget:
        return self._budgets[cluster.day_number]

    def _is_day_trip(self, cluster: ActivityCluster) -> bool:
        return self._budget(cluster).is_day_trip

    def _remaining(self, cluster: ActivityCluster) -> int:
        return self._budget(cluster).minute_budget - cluster_load(cluster)

    def _overloaded(self, cluster: ActivityCluster) -> bool:
        return bool(cluster.activities) and not self._is_day_trip(cluster) and self._remaining(cluster) < 0

    def _fits(self, cluster: ActivityCluster, activity: ScoredActivity) -> bool:
        if self._is_day_trip(cluster):
            return False
        budget = self._budget(cluster)
        return (
            self._remaining(cluster) >= activity_cost(activity)
            and len(cluster.activities) < budget.max_activities
        )

    def _best_receiver(
        self,
        activity: ScoredActivity,
        exclude: ActivityCluster,
        key: Optional[Callable[[ActivityCluster], tuple]] = None,
    ) -> Optional[ActivityCluster]:
        """Cluster with the most remaining capacity that can fit `activity`."""
        options = [c for c in self._clusters if c is not exclude and self._fits(c, activity)]
        if not options:
            return None
        key = key or (lambda c: (-self._remaining(c), c.day_number))
        return min(options, key=key)

    def _move(self, activity: ScoredActivity, src: ActivityCluster, dst: ActivityCluster, why: str) -> None:
        src.remove(activity)
        dst.add(activity)
        logger.debug(
            "Rebalancer: '%s' day %d → day %d (%s)", activity.name, src.day_number, dst.day_number, why,
        )

    def _trim(self, activity: ScoredActivity, src: ActivityCluster, why: str) -> None:
        if activity.must_see:
            raise MustSeeIntegrityError(f"Refusing to drop must-see '{activity.name}'")
        src.remove(activity)
        self._dropped.append(activity)
        self._audit.warn(
            WarningCode.ACTIVITY_DROPPED,
            f"'{activity.name}' removed from day {src.day_number}: {why}",
            day_number=src.day_number,
            entity_id=activity.id,
        )

    def _reconcile_must_sees(self, expected: Optional[set[str]]) -> set[str]:
        counts = Counter(a.id for c in self._clusters for a in c.activities if a.must_see)
        duplicated = [i for i, n in counts.items() if n > 1]
        if duplicated:
            raise MustSeeIntegrityError(f"Must-see activities in several clusters: {duplicated}")
        present = set(counts)
        if expected is not None and expected - present:
            raise MustSeeIntegrityError(f"Must-see activities lost: {sorted(expected - present)}")
        return present

    # ── Phase 1: empty-day drain ──────────────────────────────────────────────

    def _phase_empty_day_drain(self) -> int:
        changes = 0
        for cluster in self._clusters:
            if self._is_day_trip(cluster) or self._budget(cluster).minute_budget > 0:
                continue
            # must-sees first so they get the best receivers
            for act in sorted(cluster.activities, key=lambda a: (not a.must_see, -a.score)):
                dst = self._best_receiver(act, exclude=cluster)
                if dst is not None:
                    self._move(act, cluster, dst, "day has no time budget")
                elif act.must_see:
                    # left for the must-see guarantee phase
                    continue
                else:
                    self._trim(act, cluster, "day has no time budget and no other day can absorb it")
                changes += 1
        return changes

    # ── Phase 2: duration-aware rebalancing ───────────────────────────────────

    def _phase_duration_rebalance(self) -> int:
        changes = 0
        for _ in range(self.iteration_cap):
            progressed = False
            for cluster in self._clusters:
                if cluster.day_number in self._stuck or not self._overloaded(cluster):
                    continue
                others = sorted((a for a in cluster.activities if not a.must_see), key=lambda a: a.score)
                if others:
                    victim = others[0]
                    dst = self._best_receiver(victim, exclude=cluster)
                    if dst is not None:
                        self._move(victim, cluster, dst, "day over its time budget")
                    else:
                        self._trim(victim, cluster, "day over its time budget and no day can fit it")
                else:
                    longest = max(
                        cluster.activities,
                        key=lambda a: (a.duration_minutes or 0, -a.score),
                    )
                    dst = self._best_receiver(longest, exclude=cluster)
                    if dst is None:
                        self._stuck.add(cluster.day_number)
                        continue
                    self._move(longest, cluster, dst, "must-see-only day over its time budget")
                changes += 1
                progressed = True
            if not progressed:
                break
        return changes

    # ── Phase 3: must-see density audit ───────────────────────────────────────

    def _phase_must_see_density(self) -> int:
        changes = 0
        for _ in range(self.iteration_cap):
            progressed = False
            for cluster in self._clusters:
                if self._is_day_trip(cluster):
                    continue
                must_sees = [a for a in cluster.activities if a.must_see]
                if len(must_sees) < 2:
                    continue
                if sum(activity_cost(a) for a in must_sees) <= self._budget(cluster).minute_budget:
                    continue
                for act in sorted(must_sees, key=lambda a: a.score):
                    dst = self._best_receiver(act, exclude=cluster)
                    if dst is not None:
                        self._move(act, cluster, dst, "too many must-sees for one day")
                        changes += 1
                        progressed = True
                        break
            if not progressed:
                break
        return changes

    # ── Phase 4: outdoor / closing-time check ─────────────────────────────────

    def _phase_outdoor_closing_time(self) -> int:
        changes = 0
        for _ in range(self.iteration_cap):
            progressed = False
            for cluster in self._clusters:
                if self._budget(cluster).start_hour <= config.OUTDOOR_LATE_START_HOUR:
                    continue
                for act in [a for a in cluster.activities if a.must_see]:
                    if classify_outdoor(act.name, act.description, act.category) is not True:
                        continue
                    dst = self._best_receiver(
                        act,
                        exclude=cluster,
                        key=lambda c: (self._budget(c).start_hour, -self._remaining(c), c.day_number),
                    )
                    if dst is None or self._budget(dst).start_hour > config.OUTDOOR_LATE_START_HOUR:
                        continue
                    self._move(act, cluster, dst, "outdoor venue on a late-starting day")
                    changes += 1
                    progressed = True
            if not progressed:
                break
        return changes

    # ── Phase 5: zero-activity backfill ───────────────────────────────────────

    def _phase_zero_activity_backfill(self) -> int:
        changes = 0
        for _ in range(self.iteration_cap):
            progressed = False
            for recipient in self._clusters:
                if recipient.activities or self._is_day_trip(recipient):
                    continue
                if self._budget(recipient).minute_budget <= 0:
                    continue
                stolen = self._steal_for(recipient)
                if stolen:
                    changes += 1
                    progressed = True
            if not progressed:
                break
        return changes

    def _steal_for(self, recipient: ActivityCluster) -> bool:
        donors = [c for c in self._clusters if c is not recipient and not self._is_day_trip(c)]
        passes: list[tuple[str, Callable[[ActivityCluster], bool], bool]] = [
            ("surplus", lambda c: self._overloaded(c) or len(c.activities) > self._budget(c).max_activities, False),
            ("donor with 2+ activities", lambda c: len(c.activities) >= 2, False),
            ("must-see from donor with 3+ activities", lambda c: len(c.activities) >= 3, True),
        ]
        for label, donor_ok, take_must_see in passes:
            eligible = sorted(
                (c for c in donors if donor_ok(c)),
                key=lambda c: (-len(c.activities), c.day_number),
            )
            for donor in eligible:
                pool = sorted(
                    (a for a in donor.activities if a.must_see == take_must_see),
                    key=lambda a: (a.score, a.id),
                )
                for act in pool:
                    if self._fits(recipient, act):
                        self._move(act, donor, recipient, f"backfill empty day ({label})")
                        return True
        return False

    # ── Phase 6: global must-see guarantee ────────────────────────────────────

    def _phase_must_see_guarantee(self) -> int:
        changes = 0
        for _ in range(self.iteration_cap):
            progressed = False
            for cluster in self._clusters:
                if self._is_day_trip(cluster):
                    continue
                if not (self._overloaded(cluster) or self._budget(cluster).minute_budget <= 0):
                    continue
                for act in sorted((a for a in cluster.activities if a.must_see), key=lambda a: a.score):
                    if self._relocate_must_see(act, cluster):
                        changes += 1
                        progressed = True
                        break
            if not progressed:
                break
        return changes

    def _relocate_must_see(self, act: ScoredActivity, src: ActivityCluster) -> bool:
        dst = self._best_receiver(act, exclude=src)
        if dst is not None:
            self._move(act, src, dst, "must-see guarantee")
            return True

        plan = self._eviction_plan(act, exclude=src)
        if plan is None:
            return False
        dst, evictions = plan
        for victim in evictions:
            new_home = self._best_receiver(victim, exclude=dst)
            if new_home is not None and new_home is not src:
                self._move(victim, dst, new_home, f"evicted to make room for '{act.name}'")
            else:
                self._trim(victim, dst, f"evicted to make room for must-see '{act.name}'")
        self._move(act, src, dst, "must-see guarantee after eviction")
        return True

    def _eviction_plan(
        self, act: ScoredActivity, exclude: ActivityCluster,
    ) -> Optional[tuple[ActivityCluster, list[ScoredActivity]]]:
        """Day needing the fewest evictions of non-must-sees to host `act`."""
        best: Optional[tuple[tuple, ActivityCluster, list[ScoredActivity]]] = None
        need = activity_cost(act)
        for cluster in self._clusters:
            if cluster is exclude or self._is_day_trip(cluster):
                continue
            budget = self._budget(cluster)
            if budget.minute_budget < need or budget.max_activities < 1:
                continue
            must_see_load = sum(activity_cost(a) for a in cluster.activities if a.must_see)
            must_see_count = sum(1 for a in cluster.activities if a.must_see)
            if must_see_load + need > budget.minute_budget or must_see_count + 1 > budget.max_activities:
                continue
            remaining = self._remaining(cluster)
            count = len(cluster.activities)
            evict: list[ScoredActivity] = []
            for victim in sorted((a for a in cluster.activities if not a.must_see), key=lambda a: a.score):
                if remaining >= need and count < budget.max_activities:
                    break
                evict.append(victim)
                remaining += activity_cost(victim)
                count -= 1
            if remaining < need or count >= budget.max_activities:
                continue
            rank = (len(evict), -remaining, cluster.day_number)
            if best is None or rank < best[0]:
                best = (rank, cluster, evict)
        return None if best is None else (best[1], best[2])

    # ── Phase 7: fatigue balancing ────────────────────────────────────────────

    def _phase_fatigue_balance(self) -> int:
        changes = 0

        def heavy(c: ActivityCluster) -> list[ScoredActivity]:
            return [a for a in c.activities if (a.duration_minutes or 0) >= config.HEAVY_ACTIVITY_MIN]

        for _ in range(self.iteration_cap):
            progressed = False
            for cluster in self._clusters:
                if self._is_day_trip(cluster) or len(heavy(cluster)) <= config.MAX_HEAVY_PER_DAY:
                    continue
                candidates = sorted((a for a in heavy(cluster) if not a.must_see), key=lambda a: a.score)
                for act in candidates:
                    dst = self._best_receiver(
                        act,
                        exclude=cluster,
                        key=lambda c: (len(heavy(c)), -self._remaining(c), c.day_number),
                    )
                    if dst is None or len(heavy(dst)) >= config.MAX_HEAVY_PER_DAY:
                        continue
                    self._move(act, cluster, dst, "too many heavy activities")
                    changes += 1
                    progressed = True
                    break
            if not progressed:
                break
        return changes

    # ── Reporting ─────────────────────────────────────────────────────────────

    def _report_unresolved(self) -> list[int]:
        unresolved: list[int] = []
        for cluster in self._clusters:
            if not self._overloaded(cluster):
                continue
            unresolved.append(cluster.day_number)
            budget = self._budget(cluster)
            self._audit.warn(
                WarningCode.CAPACITY_UNRESOLVED,
                f"Day {cluster.day_number} needs {cluster_load(cluster)} min for activities "
                f"but only {budget.minute_budget} min are available",
                day_number=cluster.day_number,
            )
            for act in cluster.activities:
                if act.must_see:
                    self._audit.warn(
                        WarningCode.MISSING_MUST_SEE,
                        f"Must-see '{act.name}' could not be fitted into any day; "
                        f"kept on day {cluster.day_number}",
                        day_number=cluster.day_number,
                        entity_id=act.id,
                    )
        return unresolved

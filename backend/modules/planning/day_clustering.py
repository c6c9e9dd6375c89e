"""
modules/planning/day_clustering.py
------------------------------------
Day Clusterer: partitions the scored pool into exactly `num_days`
geographically coherent day buckets.

Algorithm:
  - Activities farther than CLUSTER_DAY_TRIP_KM from the destination centre
    form a single day-trip bucket (trips of 3+ days only), placed mid-trip.
  - The remaining activities are K-means clustered on (lat, lon) with
    haversine distances. Seeding is deterministic K-means++: the first
    centroid is the highest-scored activity, each next one is the activity
    farthest from every centroid chosen so far.
  - Bucket sizes are loosely balanced to at most ceil(n / k) + 1 by moving
    non-must-see activities to the nearest bucket with room.
  - Visit order inside a bucket: nearest neighbour from the best-scored
    activity, improved by 2-opt.

The partition is geography-only. Time budgets are the rebalancer's job.
"""

from __future__ import annotations

import logging
import math

import config
from modules.tool_usage.distance_tool import centroid_of, distance_km, path_length_km
from schemas.activity import ActivityCluster, ScoredActivity

logger = logging.getLogger(__name__)

_TWO_OPT_MAX_PASSES: int = 10


def cluster_activities(
    activities: list[ScoredActivity],
    num_days: int,
    dest_center: tuple[float, float],
) -> list[ActivityCluster]:
    """Return exactly num_days clusters numbered 1..num_days."""
    if num_days < 1:
        raise ValueError(f"num_days must be >= 1 (got {num_days})")

    day_trip: list[ScoredActivity] = []
    city = list(activities)
    if num_days >= 3:
        day_trip = [a for a in activities if distance_km(a.coords, dest_center) > config.CLUSTER_DAY_TRIP_KM]
        if day_trip:
            far_ids = {a.id for a in day_trip}
            city = [a for a in activities if a.id not in far_ids]

    k = num_days - (1 if day_trip else 0)
    groups = _kmeans(city, k)
    groups = _balance(groups, max_size=math.ceil(len(city) / k) + 1 if city else 0)
    groups = [order_visits(g) for g in groups]

    if day_trip:
        groups.insert(num_days // 2, order_visits(day_trip))
        logger.info("Clusterer: %d activities grouped as a day trip", len(day_trip))

    clusters: list[ActivityCluster] = []
    for i, group in enumerate(groups, start=1):
        cluster = ActivityCluster(day_number=i, activities=group, centroid=dest_center)
        cluster.recompute()
        clusters.append(cluster)

    logger.info("Clusterer: %d activities → sizes %s", len(activities), [len(c.activities) for c in clusters])
    return clusters


# ── K-means ────────────────────────────────────────────────────────────────────

def _seed_centroids(points: list[ScoredActivity], k: int) -> list[tuple[float, float]]:
    first = max(points, key=lambda a: a.score)
    centroids = [first.coords]
    while len(centroids) < k:
        farthest = max(
            points,
            key=lambda a: min(distance_km(a.coords, c) for c in centroids),
        )
        centroids.append(farthest.coords)
    return centroids


def _nearest(point: tuple[float, float], centroids: list[tuple[float, float]]) -> int:
    dists = [distance_km(point, c) for c in centroids]
    return dists.index(min(dists))


def _kmeans(points: list[ScoredActivity], k: int) -> list[list[ScoredActivity]]:
    if not points:
        return [[] for _ in range(k)]
    if len(points) <= k:
        groups = [[p] for p in points]
        return groups + [[] for _ in range(k - len(groups))]

    centroids = _seed_centroids(points, k)
    assignment: list[int] = []
    for _ in range(config.KMEANS_ITERATIONS):
        new_assignment = [_nearest(p.coords, centroids) for p in points]
        if new_assignment == assignment:
            break
        assignment = new_assignment
        for i in range(k):
            members = [p.coords for p, a in zip(points, assignment) if a == i]
            if members:
                centroids[i] = centroid_of(members)

    groups: list[list[ScoredActivity]] = [[] for _ in range(k)]
    for p, a in zip(points, assignment):
        groups[a].append(p)
    return groups


def _balance(groups: list[list[ScoredActivity]], max_size: int) -> list[list[ScoredActivity]]:
    """Move non-must-sees out of oversized groups into the nearest group with room."""
    if max_size <= 0:
        return groups
    budget = sum(len(g) for g in groups) * len(groups)
    while budget > 0:
        budget -= 1
        src = next((i for i, g in enumerate(groups) if len(g) > max_size), None)
        if src is None:
            break
        centroids = [centroid_of(a.coords for a in g) if g else None for g in groups]
        best: tuple[float, int, ScoredActivity] | None = None
        for act in groups[src]:
            if act.must_see:
                continue
            for dst, c in enumerate(centroids):
                if dst == src or len(groups[dst]) >= max_size:
                    continue
                d = distance_km(act.coords, c) if c is not None else float("inf")
                if best is None or d < best[0]:
                    best = (d, dst, act)
        if best is None:
            break
        _, dst, act = best
        groups[src] = [a for a in groups[src] if a.id != act.id]
        groups[dst].append(act)
    return groups


# ── Visit order ────────────────────────────────────────────────────────────────

def order_visits(activities: list[ScoredActivity]) -> list[ScoredActivity]:
    """Nearest-neighbour tour from the best-scored activity, then 2-opt."""
    if len(activities) <= 2:
        return list(activities)

    remaining = list(activities)
    start = max(remaining, key=lambda a: a.score)
    route = [start]
    remaining.remove(start)
    while remaining:
        last = route[-1].coords
        nxt = min(remaining, key=lambda a: distance_km(last, a.coords))
        route.append(nxt)
        remaining.remove(nxt)
    return _two_opt(route)


def _two_opt(route: list[ScoredActivity]) -> list[ScoredActivity]:
    best = list(route)
    best_len = path_length_km([a.coords for a in best])
    for _ in range(_TWO_OPT_MAX_PASSES):
        improved = False
        for i in range(1, len(best) - 1):
            for j in range(i + 1, len(best)):
                candidate = best[:i] + best[i:j + 1][::-1] + best[j + 1:]
                cand_len = path_length_km([a.coords for a in candidate])
                if cand_len + 1e-9 < best_len:
                    best, best_len, improved = candidate, cand_len, True
        if not improved:
            break
    return best

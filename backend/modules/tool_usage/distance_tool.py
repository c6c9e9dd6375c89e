"""
modules/tool_usage/distance_tool.py
-------------------------------------
Great-circle geometry shared by every planning stage (Haversine formula).
No external HTTP calls are made.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

# ---------------------------------------------------------------------------
# Pure maths
# ---------------------------------------------------------------------------

_EARTH_RADIUS_KM = 6371.0

Point = tuple[float, float]


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points (Haversine formula) in km."""
    r = _EARTH_RADIUS_KM
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lam = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lam / 2) ** 2
    )
    return 2 * r * math.asin(math.sqrt(min(1.0, a)))


def distance_km(a: Point, b: Point) -> float:
    """haversine_km for (lat, lon) tuples."""
    if a == b:
        return 0.0
    return haversine_km(a[0], a[1], b[0], b[1])


def centroid_of(points: Iterable[Point]) -> Point:
    """Coordinate-wise mean (barycenter). Raises ValueError on an empty input."""
    pts = list(points)
    if not pts:
        raise ValueError("centroid_of() needs at least one point")
    return (
        sum(p[0] for p in pts) / len(pts),
        sum(p[1] for p in pts) / len(pts),
    )


def blend(a: Point, b: Point, weight_a: float) -> Point:
    """Linear blend weight_a·a + (1 − weight_a)·b."""
    w = max(0.0, min(1.0, weight_a))
    return (a[0] * w + b[0] * (1 - w), a[1] * w + b[1] * (1 - w))


def path_length_km(points: Sequence[Point]) -> float:
    """Length of the open path visiting points in order."""
    return sum(distance_km(points[i], points[i + 1]) for i in range(len(points) - 1))


def distance_matrix(points: Sequence[Point]) -> list[list[float]]:
    """Full n x n distance matrix [km]."""
    n = len(points)
    return [
        [0.0 if i == j else distance_km(points[i], points[j]) for j in range(n)]
        for i in range(n)
    ]

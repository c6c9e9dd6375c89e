"""
modules/tool_usage/geocode_tool.py
------------------------------------
Coordinate-resolution collaborator.

A resolver is any callable `resolver(name, destination) -> (lat, lon) | None`.
Successful lookups mark the record's coordinates as verified; a failed lookup
leaves the record untouched (estimated, no coordinates) and is reported as
UNRESOLVED_COORDINATES. Coordinates are never guessed or jittered.

NominatimResolver queries an OpenStreetMap Nominatim-compatible /search
endpoint with `requests`.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Optional

import requests

import config
from schemas.activity import Activity, DataReliability, has_plausible_coordinates
from schemas.audit import AuditTrail, WarningCode

logger = logging.getLogger(__name__)

Resolver = Callable[[str, str], Optional[tuple[float, float]]]


def resolve_missing_coordinates(
    activities: list[Activity],
    resolver: Resolver,
    destination: str,
    audit: Optional[AuditTrail] = None,
) -> list[Activity]:
    """Return a new list where every resolvable record has verified coordinates."""
    audit = audit if audit is not None else AuditTrail()
    resolved: list[Activity] = []
    hits = misses = 0

    for activity in activities:
        if activity.has_valid_coordinates:
            resolved.append(activity)
            continue

        try:
            point = resolver(activity.name, destination)
        except (requests.RequestException, KeyError, ValueError) as exc:
            logger.warning("Geocode: lookup for '%s' failed: %s", activity.name, exc)
            point = None

        if point is not None and has_plausible_coordinates(*point):
            hits += 1
            resolved.append(replace(
                activity,
                latitude=float(point[0]),
                longitude=float(point[1]),
                data_reliability=DataReliability.VERIFIED,
            ))
            continue

        misses += 1
        audit.warn(
            WarningCode.UNRESOLVED_COORDINATES,
            f"No coordinates found for '{activity.name}' in {destination}",
            entity_id=activity.id,
        )
        resolved.append(activity)

    if hits or misses:
        logger.info("Geocode: %d resolved, %d unresolved", hits, misses)
    return resolved


class NominatimResolver:
    """Resolver backed by a Nominatim /search endpoint (one best match per query)."""

    def __init__(
        self,
        url: str = config.GEOCODER_URL,
        user_agent: str = config.GEOCODER_USER_AGENT,
        timeout: float = config.HTTP_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": user_agent})

    def __call__(self, name: str, destination: str) -> Optional[tuple[float, float]]:
        resp = self._session.get(
            self.url,
            params={"q": f"{name}, {destination}", "format": "json", "limit": 1},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        results = resp.json()
        if not results:
            return None
        top = results[0]
        return float(top["lat"]), float(top["lon"])

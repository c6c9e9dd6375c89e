"""
modules/tool_usage/fetch_tool.py
----------------------------------
Fetch collaborator: runs every data provider in parallel against one hard
wall-clock deadline and hands the planner a FetchedData.

A provider is any callable `provider(prefs) -> list[dict]` registered under a
source key (see SOURCE_KEYS). Provider failures and timeouts degrade to an
empty list for that source plus a FETCH_FAILED warning; they never abort the
trip. Raw dicts are validated (modules.validation) before conversion.

JsonFeedProvider is the bundled HTTP provider: GET a URL returning a JSON list
(or an object holding one under `items_key`).
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Optional

import requests

import config
from modules.validation.ingestion_validator import (
    filter_valid,
    validate_activity,
    validate_hotel,
    validate_restaurant,
)
from schemas.accommodation import Accommodation
from schemas.activity import Activity, ActivitySource, DataReliability
from schemas.audit import AuditTrail, WarningCode
from schemas.dining import Restaurant
from schemas.plan import FetchedData
from schemas.preferences import TripPreferences

logger = logging.getLogger(__name__)

Provider = Callable[[TripPreferences], list[dict]]

# source key → FetchedData attribute
ACTIVITY_SOURCES: dict[str, tuple[str, ActivitySource]] = {
    "must_see":      ("must_see_attractions", ActivitySource.MUSTSEE),
    "google_places": ("google_places_attractions", ActivitySource.GOOGLE_PLACES),
    "serpapi":       ("serpapi_attractions", ActivitySource.SERPAPI),
    "overpass":      ("overpass_attractions", ActivitySource.OVERPASS),
    "viator":        ("viator_activities", ActivitySource.VIATOR),
}
RESTAURANT_SOURCES: dict[str, str] = {
    "primary_restaurants":   "primary_restaurants",
    "secondary_restaurants": "secondary_restaurants",
}
HOTEL_SOURCES: dict[str, str] = {"hotels": "hotels"}
SOURCE_KEYS: tuple[str, ...] = (*ACTIVITY_SOURCES, *RESTAURANT_SOURCES, *HOTEL_SOURCES)


# ── Raw dict → domain record ──────────────────────────────────────────────────

def _float_or_none(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def _whole(value: Any) -> int:
    return int(float(value or 0))


def _flag(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def activity_from_dict(raw: dict, source: ActivitySource) -> Activity:
    reliability = raw.get("data_reliability") or DataReliability.ESTIMATED.value
    return Activity(
        id=str(raw["id"]),
        name=str(raw["name"]).strip(),
        latitude=_float_or_none(raw.get("latitude")),
        longitude=_float_or_none(raw.get("longitude")),
        category=str(raw.get("category") or ""),
        duration_minutes=int(raw.get("duration_minutes") or config.DEFAULT_ACTIVITY_MIN),
        estimated_cost=float(raw.get("estimated_cost") or 0.0),
        rating=float(raw.get("rating") or 0.0),
        review_count=_whole(raw.get("review_count")),
        must_see=_flag(raw.get("must_see"), default=source == ActivitySource.MUSTSEE),
        data_reliability=DataReliability(reliability),
        source=source,
        description=str(raw.get("description") or ""),
        booking_url=str(raw.get("booking_url") or ""),
    )


def restaurant_from_dict(raw: dict, source: str = "") -> Restaurant:
    tags = raw.get("cuisine_tags") or []
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",") if t.strip()]
    return Restaurant(
        id=str(raw["id"]),
        name=str(raw["name"]).strip(),
        latitude=_float_or_none(raw.get("latitude")),
        longitude=_float_or_none(raw.get("longitude")),
        rating=float(raw.get("rating") or 0.0),
        review_count=_whole(raw.get("review_count")),
        price_level=_whole(raw.get("price_level")),
        cuisine_tags=list(tags),
        source=str(raw.get("source") or source),
    )


def hotel_from_dict(raw: dict, source: str = "") -> Accommodation:
    return Accommodation(
        id=str(raw["id"]),
        name=str(raw["name"]).strip(),
        latitude=_float_or_none(raw.get("latitude")),
        longitude=_float_or_none(raw.get("longitude")),
        rating=float(raw.get("rating") or 0.0),
        price_per_night=float(raw.get("price_per_night") or 0.0),
        currency=str(raw.get("currency") or "EUR"),
        source=str(raw.get("source") or source),
        breakfast_included=_flag(raw.get("breakfast_included")),
    )


def _convert(records: list[dict], convert: Callable[[dict], Any], key: str) -> list:
    """Convert every record; one that still fails conversion is logged and skipped."""
    out = []
    for raw in records:
        try:
            out.append(convert(raw))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ingestion[%s]: skipped %r (%s)", key, raw.get("id", "?"), exc)
    return out


def build_fetched_data(raw_by_source: dict[str, list[dict]], dest_center: tuple[float, float]) -> FetchedData:
    """Validate and convert raw provider output. Unknown source keys raise ValueError."""
    unknown = set(raw_by_source) - set(SOURCE_KEYS)
    if unknown:
        raise ValueError(f"Unknown data source(s): {sorted(unknown)}")

    data = FetchedData(dest_center=dest_center)
    for key, (attr, source) in ACTIVITY_SOURCES.items():
        raw = filter_valid(raw_by_source.get(key, []), validate_activity, source=key)
        setattr(data, attr, _convert(raw, lambda r, s=source: activity_from_dict(r, s), key))
    for key, attr in RESTAURANT_SOURCES.items():
        raw = filter_valid(raw_by_source.get(key, []), validate_restaurant, source=key)
        setattr(data, attr, _convert(raw, lambda r, k=key: restaurant_from_dict(r, k), key))
    for key, attr in HOTEL_SOURCES.items():
        raw = filter_valid(raw_by_source.get(key, []), validate_hotel, source=key)
        setattr(data, attr, _convert(raw, lambda r, k=key: hotel_from_dict(r, k), key))
    return data


# ── Parallel fetch ────────────────────────────────────────────────────────────

def fetch_all(
    prefs: TripPreferences,
    providers: dict[str, Provider],
    dest_center: tuple[float, float],
    timeout: float = config.FETCH_TIMEOUT_SECONDS,
    audit: Optional[AuditTrail] = None,
) -> FetchedData:
    audit = audit if audit is not None else AuditTrail()
    unknown = set(providers) - set(SOURCE_KEYS)
    if unknown:
        raise ValueError(f"Unknown data source(s): {sorted(unknown)}")
    if not providers:
        return FetchedData(dest_center=dest_center)

    raw: dict[str, list[dict]] = {}
    executor = ThreadPoolExecutor(max_workers=min(config.FETCH_MAX_WORKERS, len(providers)))
    try:
        futures = {executor.submit(fn, prefs): key for key, fn in providers.items()}
        done, not_done = wait(futures, timeout=timeout)

        for future in not_done:
            key = futures[future]
            future.cancel()
            audit.warn(WarningCode.FETCH_FAILED, f"Source '{key}' did not answer within {timeout:.0f}s")

        for future in done:
            key = futures[future]
            try:
                items = future.result()
            except Exception as exc:
                audit.warn(WarningCode.FETCH_FAILED, f"Source '{key}' failed: {exc}")
                continue
            if not isinstance(items, list):
                audit.warn(WarningCode.FETCH_FAILED, f"Source '{key}' returned {type(items).__name__}, not a list")
                continue
            raw[key] = [i for i in items if isinstance(i, dict)]
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    logger.info("Fetch: %s", ", ".join(f"{k}={len(v)}" for k, v in sorted(raw.items())) or "no data")
    return build_fetched_data(raw, dest_center)


# ── HTTP provider ─────────────────────────────────────────────────────────────

class JsonFeedProvider:
    """GET `url` (destination passed as a query param) and return its JSON list."""

    def __init__(
        self,
        url: str,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
        items_key: Optional[str] = None,
        timeout: float = config.HTTP_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.url = url
        self.params = dict(params or {})
        self.headers = dict(headers or {})
        self.items_key = items_key
        self.timeout = timeout
        self._session = session or requests.Session()

    def __call__(self, prefs: TripPreferences) -> list[dict]:
        resp = self._session.get(
            self.url,
            params={**self.params, "destination": prefs.destination},
            headers=self.headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        data = resp.json()
        if self.items_key is not None:
            data = data.get(self.items_key, []) if isinstance(data, dict) else []
        if not isinstance(data, list):
            raise ValueError(f"{self.url} returned {type(data).__name__}, expected a list")
        return data

"""
modules/planning/attraction_scoring.py
----------------------------------------
Additive desirability score for candidate activities.

  score = must_see        (+100, dominant)
        + popularity      2 · log10(max(reviews, 1))
        + rating          2 · rating            (0–5 → 0–10, absent = 3)
        + type_match      +3 if the category matches a preferred activity type
        + source          viator +2, experiential viator +4
        + reliability     verified +1
        + distance        >30 km from centre: −15 on trips ≤ 3 days, else −5
        + context_fit     Σ matrix[group][tag] over inferred tags, clamped [−6, +6]
        + preference      affinities +2 / conflicts −2 per preference, clamped [−4, +4]

Terms are independent; the two keyword-driven terms are clamped so no single
heuristic can dominate the ordering. Only the ordering of scores is meaningful.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import config
from modules.planning.keyword_tables import (
    CONTEXT_FIT_MATRIX,
    EXPERIENTIAL_KEYWORDS,
    PREFERENCE_AFFINITIES,
    PREFERENCE_CONFLICTS,
    PROFILE_KEYWORDS,
    TYPE_MATCH_KEYWORDS,
    matches_any,
    normalize_text,
)
from modules.tool_usage.distance_tool import distance_km
from schemas.activity import ActivitySource, DataReliability, ScoredActivity
from schemas.preferences import TripPreferences


@dataclass
class ScoreBreakdown:
    """Per-term contributions for a single activity."""
    activity_id: str
    must_see: float = 0.0
    popularity: float = 0.0
    rating: float = 0.0
    type_match: float = 0.0
    source: float = 0.0
    reliability: float = 0.0
    distance: float = 0.0
    context_fit: float = 0.0
    preference_depth: float = 0.0

    @property
    def total(self) -> float:
        return (
            self.must_see + self.popularity + self.rating + self.type_match
            + self.source + self.reliability + self.distance
            + self.context_fit + self.preference_depth
        )


def is_experiential(activity: ScoredActivity) -> bool:
    """A bookable experience (cruise, food tour, bike tour…) rather than a monument visit."""
    return (
        activity.source == ActivitySource.VIATOR
        and matches_any(normalize_text(activity.name), EXPERIENTIAL_KEYWORDS)
    )


def infer_profile_tags(activity: ScoredActivity) -> set[str]:
    text = normalize_text(" ".join([activity.name, activity.description, activity.category]))
    return {tag for tag, keywords in PROFILE_KEYWORDS.items() if matches_any(text, keywords)}


class ActivityScorer:
    """Scores activities for one trip's preferences and destination centre."""

    def __init__(self, prefs: TripPreferences, dest_center: tuple[float, float]):
        self.prefs = prefs
        self.dest_center = dest_center

    # ── Public ────────────────────────────────────────────────────────────────

    def score_all(self, activities: list[ScoredActivity]) -> list[ScoredActivity]:
        """Return new records with `score` set, sorted descending (stable on ties)."""
        scored = [a.with_changes(score=self.breakdown(a).total) for a in activities]
        scored.sort(key=lambda a: a.score, reverse=True)
        return scored

    def breakdown(self, activity: ScoredActivity) -> ScoreBreakdown:
        tags = infer_profile_tags(activity)
        return ScoreBreakdown(
            activity_id=activity.id,
            must_see=config.MUST_SEE_BONUS if activity.must_see else 0.0,
            popularity=math.log10(max(activity.review_count or 1, 1)) * 2,
            rating=(activity.rating or 3.0) * 2,
            type_match=self._score_type_match(activity),
            source=self._score_source(activity),
            reliability=1.0 if activity.data_reliability == DataReliability.VERIFIED else 0.0,
            distance=self._score_distance(activity),
            context_fit=self._score_context_fit(tags, self.prefs.group_type),
            preference_depth=self._score_preference_depth(tags, self.prefs.activities),
        )

    # ── Terms ─────────────────────────────────────────────────────────────────

    def _score_type_match(self, activity: ScoredActivity) -> float:
        category = activity.category.lower()
        for pref in self.prefs.activities:
            keywords = TYPE_MATCH_KEYWORDS.get(pref, (pref,))
            if matches_any(category, keywords):
                return 3.0
        return 0.0

    @staticmethod
    def _score_source(activity: ScoredActivity) -> float:
        if activity.source != ActivitySource.VIATOR:
            return 0.0
        return 4.0 if is_experiential(activity) else 2.0

    def _score_distance(self, activity: ScoredActivity) -> float:
        if not activity.has_valid_coordinates:
            return 0.0
        dist = distance_km(activity.coords, self.dest_center)
        if dist <= config.FAR_ACTIVITY_KM:
            return 0.0
        # a far activity costs 2h+ of round-trip travel
        return -15.0 if self.prefs.duration_days <= config.SHORT_TRIP_DAYS else -5.0

    @staticmethod
    def _score_context_fit(tags: set[str], group_type: str) -> float:
        matrix = CONTEXT_FIT_MATRIX.get(group_type)
        if not matrix:
            return 0.0
        total = sum(matrix.get(tag, 0) for tag in tags)
        bound = config.CONTEXT_FIT_BOUND
        return float(max(-bound, min(bound, total)))

    @staticmethod
    def _score_preference_depth(tags: set[str], preferences: list[str]) -> float:
        total = 0
        for pref in preferences:
            total += 2 * sum(1 for t in PREFERENCE_AFFINITIES.get(pref, ()) if t in tags)
            total -= 2 * sum(1 for t in PREFERENCE_CONFLICTS.get(pref, ()) if t in tags)
        bound = config.PREFERENCE_DEPTH_BOUND
        return float(max(-bound, min(bound, total)))

import pytest

from factories import make_activity, make_cluster
from modules.planning.rebalancer import (
    CapacityRebalancer,
    MustSeeIntegrityError,
    cluster_load,
    compute_day_budgets,
    detect_day_trips,
)
from schemas.activity import FrozenClusterError
from schemas.audit import WarningCode
from schemas.preferences import TransportTiming


def _budget_of(result, day):
    return next(b for b in result.day_budgets if b.day_number == day)


def _cluster_of(result, day):
    return next(c for c in result.clusters if c.day_number == day)


def _paris_pair(prefix, score=10.0):
    return [
        make_activity(f"{prefix}-a", 48.8606, 2.3376, score=score),
        make_activity(f"{prefix}-b", 48.8530, 2.3499, score=score - 1),
    ]


# ── Budgets ──────────────────────────────────────────────────────────────────

def test_default_day_is_twelve_hours():
    budgets = compute_day_budgets(2, None)
    assert [b.available_hours for b in budgets] == [12, 12]
    assert budgets[0].minute_budget == 540
    assert budgets[0].max_activities == 6


def test_ground_departure_ends_last_day_one_hour_early():
    budgets = compute_day_budgets(3, TransportTiming(mode="train", departure_hour=18))
    last = budgets[-1]
    assert last.start_hour == 8
    assert last.end_hour == 17
    assert last.available_hours == 9


def test_single_day_trip_uses_arrival_and_departure():
    transport = TransportTiming(mode="plane", arrival_hour="10:00", departure_hour="20:00")
    (only,) = compute_day_budgets(1, transport)
    assert only.start_hour == 11.5
    assert only.available_hours == pytest.approx(5.5)


def test_day_trip_window_respects_departure():
    budgets = compute_day_budgets(3, TransportTiming(mode="train", departure_hour=18), day_trips={1, 3})
    first, last = budgets[0], budgets[2]
    assert first.is_day_trip and first.available_hours == 12
    assert last.is_day_trip
    assert last.start_hour == 9
    assert last.end_hour == 17
    assert last.available_hours == 8


def test_day_trip_window_respects_arrival():
    transport = TransportTiming(mode="plane", arrival_hour="12:00")
    (first, _) = compute_day_budgets(2, transport, day_trips={1})
    assert first.start_hour == 13.5
    assert first.end_hour == 21
    assert first.available_hours == pytest.approx(7.5)


def test_departure_before_buffer_gives_zero_budget_day():
    budgets = compute_day_budgets(2, TransportTiming(mode="plane", departure_hour=10))
    assert budgets[1].available_hours == 0
    assert budgets[1].minute_budget < 0
    assert budgets[1].max_activities == 0


def test_remote_single_activity_is_a_day_trip():
    clusters = [
        make_cluster(1, _paris_pair("d1")),
        make_cluster(2, [make_activity("chartres", 48.4476, 1.4880, name="Chartres Cathedral")]),
        make_cluster(3, _paris_pair("d3")),
    ]
    assert detect_day_trips(clusters) == {2}

    result = CapacityRebalancer().rebalance(clusters)
    day2 = _budget_of(result, 2)
    assert day2.is_day_trip
    assert day2.available_hours == 12
    assert _cluster_of(result, 2).ids == ["chartres"]


# ── Phases ───────────────────────────────────────────────────────────────────

def test_must_see_only_overload_spreads_to_empty_days(audit):
    must_sees = [
        make_activity(f"ms{i}", 48.86 + i * 0.002, 2.33, name=f"Museum {i}",
                      score=100 + i, duration=120, must_see=True, category="museum")
        for i in range(1, 6)
    ]
    clusters = [make_cluster(1, must_sees), make_cluster(2, []), make_cluster(3, [])]
    transport = TransportTiming(mode="plane", arrival_hour=12.0)

    result = CapacityRebalancer().rebalance(clusters, transport, audit)

    placed = [a.id for c in result.clusters for a in c.activities]
    assert sorted(placed) == [f"ms{i}" for i in range(1, 6)]
    assert len(_cluster_of(result, 1).activities) <= 2
    for cluster in result.clusters:
        assert cluster_load(cluster) <= _budget_of(result, cluster.day_number).minute_budget
        assert cluster.frozen
    assert WarningCode.CAPACITY_UNRESOLVED not in audit.codes()
    assert result.unplaced_must_see_ids == []
    assert result.moves_by_phase["duration_rebalance"] == 3


def test_overloaded_single_day_trims_lowest_scored(audit):
    acts = [make_activity("star", score=120, duration=120, must_see=True)]
    acts += [make_activity(f"x{i}", 48.86 + i * 0.001, 2.34, score=10 + i) for i in range(5)]
    result = CapacityRebalancer().rebalance([make_cluster(1, acts)], None, audit)

    assert [a.id for a in result.dropped] == ["x0"]
    assert "star" in result.clusters[0].ids
    dropped = audit.by_code(WarningCode.ACTIVITY_DROPPED)
    assert len(dropped) == 1
    assert dropped[0].entity_id == "x0"
    assert cluster_load(result.clusters[0]) <= 540


def test_zero_budget_day_is_drained(audit):
    clusters = [
        make_cluster(1, [make_activity("a1")]),
        make_cluster(2, [
            make_activity("late-ms", 48.8584, 2.2945, must_see=True, score=110),
            make_activity("late-x", 48.8530, 2.3499, score=5),
        ]),
    ]
    transport = TransportTiming(mode="plane", departure_hour=10)

    result = CapacityRebalancer().rebalance(clusters, transport, audit)

    assert _cluster_of(result, 2).activities == []
    assert set(_cluster_of(result, 1).ids) == {"a1", "late-ms", "late-x"}
    assert result.moves_by_phase["empty_day_drain"] == 2
    assert audit.warnings == []


def test_outdoor_must_see_leaves_late_starting_day():
    jardin = make_activity("jardin", 48.8462, 2.3372, name="Jardin du Luxembourg",
                           must_see=True, score=110, category="park")
    museum = make_activity("orsay", 48.8600, 2.3266, name="Musée d'Orsay", category="museum")
    clusters = [
        make_cluster(1, [jardin, museum]),
        make_cluster(2, [make_activity("other", 48.8530, 2.3499)]),
    ]
    transport = TransportTiming(mode="plane", arrival_hour=14)

    result = CapacityRebalancer().rebalance(clusters, transport)

    assert _budget_of(result, 1).start_hour == 15.5
    assert "jardin" in _cluster_of(result, 2).ids
    assert "orsay" in _cluster_of(result, 1).ids


def test_empty_day_backfilled_from_busiest_neighbour():
    day1 = [make_activity(f"d1-{i}", 48.86 + i * 0.001, 2.34, score=20 + i) for i in range(4)]
    clusters = [make_cluster(1, day1), make_cluster(2, _paris_pair("d2")), make_cluster(3, [])]

    result = CapacityRebalancer().rebalance(clusters)

    assert _cluster_of(result, 3).ids == ["d1-0"]
    assert len(_cluster_of(result, 1).activities) == 3


def test_heavy_activities_are_spread():
    heavy = [make_activity(f"h{i}", 48.86 + i * 0.001, 2.34, duration=90, score=10 + i) for i in range(3)]
    clusters = [make_cluster(1, heavy), make_cluster(2, [make_activity("light", 48.853, 2.35)])]

    result = CapacityRebalancer().rebalance(clusters)

    def heavy_count(c):
        return sum(1 for a in c.activities if a.duration_minutes >= 90)

    assert heavy_count(_cluster_of(result, 1)) == 2
    assert "h0" in _cluster_of(result, 2).ids
    assert result.moves_by_phase["fatigue_balance"] == 1


def test_unfittable_must_sees_are_kept_and_reported(audit):
    must_sees = [make_activity(f"ms{i}", score=100 + i, duration=120, must_see=True) for i in range(5)]
    result = CapacityRebalancer().rebalance([make_cluster(1, must_sees)], None, audit)

    assert len(result.clusters[0].activities) == 5
    assert result.unresolved_days == [1]
    assert result.dropped == []
    assert len(audit.by_code(WarningCode.CAPACITY_UNRESOLVED)) == 1
    assert len(audit.by_code(WarningCode.MISSING_MUST_SEE)) == 5


# ── Integrity ────────────────────────────────────────────────────────────────

def test_duplicate_must_see_is_rejected():
    twin = make_activity("twin", must_see=True, score=110)
    clusters = [make_cluster(1, [twin]), make_cluster(2, [twin])]
    with pytest.raises(MustSeeIntegrityError):
        CapacityRebalancer().rebalance(clusters)


def test_clusters_are_frozen_after_rebalance():
    result = CapacityRebalancer().rebalance([make_cluster(1, _paris_pair("d1"))])
    with pytest.raises(FrozenClusterError):
        result.clusters[0].add(make_activity("late"))


def test_nothing_to_fix_makes_no_moves():
    clusters = [make_cluster(1, _paris_pair("d1")), make_cluster(2, _paris_pair("d2"))]
    result = CapacityRebalancer().rebalance(clusters)
    assert sum(result.moves_by_phase.values()) == 0
    assert len(result.moves_by_phase) == 7

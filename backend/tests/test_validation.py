from factories import make_activity, make_cluster, make_restaurant
from modules.validation import (
    filter_valid,
    validate_activity,
    validate_hotel,
    validate_plan,
    validate_restaurant,
)
from schemas.dining import AssignmentReason, MealAssignment, MealType
from schemas.plan import BalancedPlan, DayBudget, TripPlan


def _raw(**overrides):
    record = {"id": "a1", "name": "Musée du Louvre", "latitude": 48.8606, "longitude": 2.3376}
    record.update(overrides)
    return record


# ── Ingestion ────────────────────────────────────────────────────────────────

def test_valid_activity_passes():
    assert validate_activity(_raw(rating=4.7, duration_minutes=150, data_reliability="verified"))


def test_missing_coordinates_are_allowed():
    assert validate_activity(_raw(latitude=None, longitude=None)).valid


def test_bad_activity_fields_are_reported():
    result = validate_activity(_raw(
        name="  ", latitude=0.0, longitude=0.0, rating=7, duration_minutes=0,
        estimated_cost=-3, data_reliability="guessed",
    ))
    assert not result.valid
    assert len(result.errors) == 6


def test_half_coordinates_rejected():
    result = validate_activity(_raw(longitude=None))
    assert not result.valid
    assert "together" in result.errors[0]


def test_out_of_range_coordinates_rejected():
    assert not validate_activity(_raw(latitude=95.0))
    assert not validate_activity(_raw(longitude="east"))


def test_restaurant_price_level_range():
    assert validate_restaurant(_raw(price_level=4, rating=4.5))
    assert not validate_restaurant(_raw(price_level=5))


def test_hotel_accepts_ten_point_scale():
    assert validate_hotel(_raw(rating=8.9, price_per_night=130))
    assert not validate_hotel(_raw(rating=11))
    assert not validate_hotel(_raw(price_per_night=-1))


def test_counts_must_be_whole_numbers():
    assert validate_activity(_raw(review_count="1200"))
    assert not validate_activity(_raw(review_count="n/a"))
    assert not validate_activity(_raw(review_count=-4))
    assert not validate_restaurant(_raw(review_count=12.5))
    assert not validate_restaurant(_raw(price_level="cheap"))
    assert not validate_restaurant(_raw(price_level=2.5))


def test_flags_must_be_booleans():
    assert validate_activity(_raw(must_see=True))
    assert validate_activity(_raw(must_see="false"))
    assert not validate_activity(_raw(must_see="maybe"))
    assert not validate_hotel(_raw(breakfast_included="sometimes"))


def test_filter_valid_keeps_only_passing_records():
    records = [_raw(id="ok"), _raw(id="", name="nameless"), _raw(id="far", latitude=123)]
    assert [r["id"] for r in filter_valid(records, validate_activity)] == ["ok"]


# ── Quality gate ─────────────────────────────────────────────────────────────

def _budget(day, hours=12.0, day_trip=False):
    return DayBudget(day_number=day, start_hour=9, end_hour=9 + hours, available_hours=hours,
                     max_activities=6, is_day_trip=day_trip)


def _plan(clusters, budgets, meals=(), must_sees=()):
    return TripPlan(
        clusters=clusters,
        day_budgets=budgets,
        meals=list(meals),
        hotel=None,
        balanced_plan=BalancedPlan(),
        input_must_see_ids=list(must_sees),
    )


def _meal(day, meal_type, restaurant, dist):
    return MealAssignment(day_number=day, meal_type=meal_type, restaurant=restaurant,
                          distance_km=dist, reason=AssignmentReason.ASSIGNED)


def test_clean_plan_scores_full_marks():
    clusters = [make_cluster(1, [make_activity("a")]), make_cluster(2, [make_activity("b")])]
    report = validate_plan(_plan(clusters, [_budget(1), _budget(2)], must_sees=["a"]))
    assert report.score == 100
    assert report.warnings == []


def test_every_finding_costs_points():
    shared = make_activity("shared")
    overloaded = [make_activity(f"x{i}", duration=120) for i in range(5)]
    clusters = [make_cluster(1, overloaded + [shared]), make_cluster(2, [shared]), make_cluster(3, [])]
    bistro = make_restaurant("bistro", 48.86, 2.34)
    meals = [
        _meal(1, MealType.LUNCH, bistro, 0.3),
        _meal(2, MealType.LUNCH, bistro, 0.3),
        _meal(2, MealType.DINNER, make_restaurant("far", 48.9, 2.4), 2.5),
    ]
    report = validate_plan(_plan(clusters, [_budget(d) for d in (1, 2, 3)], meals, must_sees=["gone"]))

    # overload 15, duplicate 25, missing must-see 20, reuse 5, far meal 10, empty day 10
    assert report.score == 100 - 15 - 25 - 20 - 5 - 10 - 10
    assert len(report.warnings) == 6


def test_day_trip_is_exempt_from_capacity_check():
    long_day = [make_activity(f"x{i}", duration=200) for i in range(4)]
    report = validate_plan(_plan([make_cluster(1, long_day)], [_budget(1, day_trip=True)]))
    assert report.score == 100


def test_score_is_floored_at_zero():
    clusters = [make_cluster(d, []) for d in range(1, 4)]
    report = validate_plan(_plan(clusters, [_budget(d) for d in (1, 2, 3)],
                                 must_sees=[f"m{i}" for i in range(5)]))
    assert report.score == 0

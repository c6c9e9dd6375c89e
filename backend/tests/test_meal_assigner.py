import pytest

from factories import make_activity, make_cluster, make_prefs, make_restaurant
from modules.planning.meal_assigner import (
    RankedRestaurant,
    assign_meals,
    filter_by_budget,
    is_suitable_for,
    meal_score,
    merge_restaurant_sources,
    pick_diverse,
    reference_coords,
)
from modules.tool_usage.distance_tool import distance_km
from schemas.audit import WarningCode
from schemas.dining import AssignmentReason, MealType
from schemas.preferences import BudgetStrategy

HOTEL = (48.8830632, 2.3230198)
LOUVRE = (48.8606, 2.3376)


def _west_paris_day(day=1):
    return make_cluster(day, [
        make_activity(f"arc-{day}", 48.8738, 2.2950, name="Arc de Triomphe"),
        make_activity(f"eiffel-{day}", 48.8584, 2.2945, name="Eiffel Tower"),
        make_activity(f"trocadero-{day}", 48.8626, 2.2874, name="Trocadéro"),
    ])


def _louvre_day(day=1):
    return make_cluster(day, [make_activity(f"louvre-{day}", *LOUVRE, name="Musée du Louvre")])


def _slot(assignments, day, meal_type):
    return next(m for m in assignments if m.day_number == day and m.meal_type == meal_type)


# ── Reference points ─────────────────────────────────────────────────────────

def test_reference_points_follow_the_day():
    cluster = _west_paris_day()
    assert reference_coords(MealType.BREAKFAST, cluster, HOTEL) == HOTEL
    assert reference_coords(MealType.LUNCH, cluster, HOTEL) == (48.8626, 2.2874)
    dinner = reference_coords(MealType.DINNER, cluster, HOTEL)
    assert dinner[0] == pytest.approx(0.8 * 48.8626 + 0.2 * HOTEL[0])
    assert dinner[1] == pytest.approx(0.8 * 2.2874 + 0.2 * HOTEL[1])


def test_reference_points_without_hotel():
    cluster = _west_paris_day()
    assert reference_coords(MealType.BREAKFAST, cluster, None) == cluster.centroid
    assert reference_coords(MealType.DINNER, cluster, None) == (48.8626, 2.2874)


# ── Selection ────────────────────────────────────────────────────────────────

def test_popular_far_restaurant_is_never_chosen(audit):
    restaurants = [
        make_restaurant("b1", 48.8840, 2.3240),
        make_restaurant("b2", 48.8820, 2.3215, rating=3.8),
        make_restaurant("l1", 48.8635, 2.2885),
        make_restaurant("l2", 48.8610, 2.2900, rating=3.9),
        make_restaurant("d1", 48.8672, 2.2968),
        make_restaurant("d2", 48.8660, 2.2980, rating=4.2),
        make_restaurant("r-far", 48.871889, 2.366516, rating=4.95, reviews=5000),
    ]
    meals = assign_meals([_west_paris_day()], restaurants, [], make_prefs(), None, HOTEL, audit=audit)

    assert len(meals) == 3
    for meal in meals:
        assert meal.restaurant is not None
        assert meal.restaurant.id != "r-far"
        assert meal.distance_km <= 1.2
        assert distance_km(meal.reference_coords, meal.restaurant.coords) <= 1.2
    assert _slot(meals, 1, MealType.DINNER).restaurant.id in {"d1", "d2"}


def test_nothing_in_walking_distance_gives_null_slots(audit):
    far_only = [make_restaurant("suburb", 48.95, 2.45)]
    meals = assign_meals([_louvre_day()], far_only, [], make_prefs(), None, None, audit=audit)

    assert [m.restaurant for m in meals] == [None, None, None]
    assert all(m.reason == AssignmentReason.NO_CANDIDATE for m in meals)
    assert len(audit.by_code(WarningCode.NO_RESTAURANT_IN_RANGE)) == 3


def test_restaurants_are_not_reused_across_days():
    restaurants = [make_restaurant(f"r{i}", LOUVRE[0] + 0.001 * i, LOUVRE[1]) for i in range(1, 9)]
    clusters = [_louvre_day(1), _louvre_day(2)]
    meals = assign_meals(clusters, restaurants, [], make_prefs(), None, LOUVRE)

    chosen = [m.restaurant.id for m in meals]
    assert len(chosen) == 6
    assert len(set(chosen)) == 6
    assert [(m.day_number, m.meal_type) for m in meals] == [
        (1, MealType.BREAKFAST), (1, MealType.LUNCH), (1, MealType.DINNER),
        (2, MealType.BREAKFAST), (2, MealType.LUNCH), (2, MealType.DINNER),
    ]


def test_caller_supplied_used_ids_are_respected():
    restaurants = [make_restaurant("best", 48.8610, 2.3376, rating=5.0),
                   make_restaurant("other", 48.8620, 2.3376)]
    used = {"best"}
    meals = assign_meals([_louvre_day()], restaurants, [], make_prefs(), None, LOUVRE, used_ids=used)
    assert _slot(meals, 1, MealType.BREAKFAST).restaurant.id == "other"
    assert "other" in used


def test_exhausted_pool_relaxes_uniqueness(audit):
    only = [make_restaurant("solo", 48.8624, 2.3376)]
    meals = assign_meals([_louvre_day()], only, [], make_prefs(), None, LOUVRE, audit=audit)

    assert [m.restaurant.id for m in meals] == ["solo", "solo", "solo"]
    assert [m.reason for m in meals] == [
        AssignmentReason.ASSIGNED, AssignmentReason.POOL_RELAXED, AssignmentReason.POOL_RELAXED,
    ]
    assert len(audit.by_code(WarningCode.POOL_EXHAUSTED)) == 2


def test_strategy_nulls_are_deliberate(audit):
    restaurants = [make_restaurant(f"r{i}", LOUVRE[0] + 0.001 * i, LOUVRE[1]) for i in range(1, 5)]
    strategy = BudgetStrategy(hotel_breakfast_included=True, meals_strategy={"lunch": "self_catered"})
    meals = assign_meals([_louvre_day()], restaurants, [], make_prefs(), strategy, LOUVRE, audit=audit)

    breakfast, lunch, dinner = meals
    assert breakfast.restaurant is None and breakfast.reason == AssignmentReason.HOTEL_BREAKFAST
    assert lunch.restaurant is None and lunch.reason == AssignmentReason.SELF_CATERED
    assert dinner.restaurant is not None
    assert audit.warnings == []


def test_cuisine_suits_the_meal():
    restaurants = [
        make_restaurant("sushi", 48.8615, 2.3376, rating=5.0, tags=("sushi",)),
        make_restaurant("bakery", 48.8624, 2.3376, rating=3.5, tags=("bakery",)),
        make_restaurant("bistro", 48.8633, 2.3376, tags=("french",)),
    ]
    meals = assign_meals([_louvre_day()], restaurants, [], make_prefs(), None, LOUVRE)

    assert [m.restaurant.id for m in meals] == ["bakery", "sushi", "bistro"]


def test_suitability_table():
    steak = make_restaurant("s", 1, 1, name="Le Relais de l'Entrecôte", tags=("steakhouse",))
    cafe = make_restaurant("c", 1, 1, name="Café Kitsuné", tags=("coffee",))
    assert not is_suitable_for(steak, MealType.BREAKFAST)
    assert is_suitable_for(steak, MealType.DINNER)
    assert is_suitable_for(cafe, MealType.BREAKFAST)
    assert not is_suitable_for(cafe, MealType.DINNER)


# ── Helpers ──────────────────────────────────────────────────────────────────

def test_score_prefers_closer_and_breakfast_friendly():
    bistro = make_restaurant("b", 1, 1)
    bakery = make_restaurant("k", 1, 1, tags=("boulangerie",))
    assert meal_score(bistro, 0.2, MealType.LUNCH) > meal_score(bistro, 0.7, MealType.LUNCH)
    assert meal_score(bakery, 0.3, MealType.BREAKFAST) == pytest.approx(
        meal_score(bistro, 0.3, MealType.BREAKFAST) + 3.0
    )


def test_past_hard_radius_is_heavily_penalised():
    r = make_restaurant("b", 1, 1)
    drop = meal_score(r, 0.9, MealType.LUNCH) - meal_score(r, 1.0, MealType.LUNCH)
    assert drop == pytest.approx(0.1 * (2 + 8 + 20))


def test_merge_backfills_coordinates_from_secondary():
    primary = [make_restaurant("p1", None, None, name="Le Comptoir du Relais")]
    secondary = [
        make_restaurant("s1", 48.8521, 2.3388, name="Comptoir du Relais"),
        make_restaurant("s2", 48.8551, 2.3622, name="Chez Janou"),
    ]
    merged = merge_restaurant_sources(primary, secondary)

    assert [r.id for r in merged] == ["p1", "s2"]
    assert merged[0].coords == (48.8521, 2.3388)
    assert primary[0].latitude is None


def test_short_names_are_not_fuzzy_matched():
    merged = merge_restaurant_sources(
        [make_restaurant("p", 48.85, 2.35, name="Bao")],
        [make_restaurant("s", 48.86, 2.36, name="Bao Family")],
    )
    assert len(merged) == 2


def test_budget_filter_keeps_neighbouring_tiers():
    tiers = [1, 2, 3, 4, 4, 0]
    rests = [make_restaurant(f"t{i}", 1, 1, price_level=p) for i, p in enumerate(tiers)]
    kept = filter_by_budget(rests, "moderate")
    assert [r.price_level for r in kept] == [1, 2, 3, 0]


def test_budget_filter_falls_back_to_full_pool():
    rests = [make_restaurant(f"t{i}", 1, 1, price_level=p) for i, p in enumerate([1, 1, 2, 4])]
    assert filter_by_budget(rests, "luxury") == rests


def test_diversity_mixes_local_and_international():
    def ranked(id, score, tag):
        return RankedRestaurant(make_restaurant(id, 1, 1, tags=(tag,)), 0.2, score)

    shortlist = [
        ranked("fr1", 10, "french"),
        ranked("fr2", 9, "french"),
        ranked("it1", 8, "italian"),
        ranked("it2", 7.5, "italian"),
        ranked("jp1", 7, "japanese"),
    ]
    picks = pick_diverse(shortlist, {"french"})
    assert [p.restaurant.id for p in picks] == ["fr1", "it1", "jp1"]

    no_local = pick_diverse(shortlist, set())
    assert [p.restaurant.id for p in no_local] == ["fr1", "fr2", "it1"]

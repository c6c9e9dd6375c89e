import json
import time

import pytest

from factories import make_activity, make_cluster, make_hotel, make_prefs
from llm import StubLLMClient, parse_json_object
from modules.planning.day_theming import (
    build_prompt,
    deterministic_plan,
    theme_days,
    theme_for,
)
from modules.planning.keyword_tables import DEFAULT_THEME
from schemas.audit import WarningCode
from schemas.dining import MealAssignment, MealType
from schemas.plan import DayBudget


class ReplyLLM:
    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        return self.reply


class BrokenLLM:
    def complete(self, prompt):
        raise ConnectionError("upstream reset")


class SlowLLM:
    def complete(self, prompt):
        time.sleep(0.5)
        return "{}"


def _trip():
    return [
        make_cluster(1, [
            make_activity("louvre", 48.8606, 2.3376, name="Musée du Louvre", category="museum"),
            make_activity("orsay", 48.8600, 2.3266, name="Musée d'Orsay", category="museum"),
            make_activity("tuileries", 48.8635, 2.3275, name="Jardin des Tuileries", category="park"),
        ]),
        make_cluster(2, [
            make_activity("vincennes", 48.8350, 2.4330, name="Bois de Vincennes", category="park"),
            make_activity("plantes", 48.8440, 2.3590, name="Jardin des Plantes", category="park"),
        ]),
    ]


# ── Deterministic plan ───────────────────────────────────────────────────────

def test_theme_follows_majority_of_activities():
    day1, day2 = _trip()
    assert theme_for(day1) == "Culture & Museums"
    assert theme_for(day2) == "Nature & Gardens"
    assert theme_for(make_cluster(3, [])) == DEFAULT_THEME


def test_deterministic_plan_shape():
    busy = make_cluster(2, [make_activity(f"a{i}", 48.86, 2.33 + i * 0.001) for i in range(5)])
    plan = deterministic_plan([busy, _trip()[0]])

    assert plan.used_fallback
    assert [d.day_number for d in plan.days] == [1, 2]
    first, second = plan.days
    assert first.suggested_start_time == "10:00"
    assert second.suggested_start_time == "09:00"
    assert first.activity_order == ["louvre", "orsay", "tuileries"]
    assert not first.rest_break
    assert second.rest_break


def test_day_trip_gets_destination_theme():
    trip = [make_cluster(1, [make_activity("chartres", 48.4476, 1.4880, name="Chartres Cathedral")])]
    budgets = [DayBudget(day_number=1, start_hour=9, end_hour=21, available_hours=12,
                         max_activities=6, is_day_trip=True)]
    (day,) = deterministic_plan(trip, budgets).days
    assert day.is_day_trip
    assert day.theme == "Day Trip: Chartres Cathedral"
    assert day.day_trip_destination == "Chartres Cathedral"


# ── LLM pass ─────────────────────────────────────────────────────────────────

def test_no_client_and_stub_client_use_fallback_silently(audit):
    clusters = _trip()
    prefs = make_prefs(duration_days=2)
    assert theme_days(clusters, [], None, None, prefs, None, audit=audit).used_fallback
    assert theme_days(clusters, [], None, None, prefs, StubLLMClient(), audit=audit).used_fallback
    assert audit.warnings == []


def test_llm_may_only_reorder_each_day(audit):
    reply = {
        "days": [
            {"day_number": 1, "theme": "Art Lovers' Left Bank", "day_narrative": "Paintings all day.",
             "activity_order": ["orsay", "ghost", "louvre", "orsay"], "suggested_start_time": "09:30"},
            {"day_number": 7, "theme": "Invented", "activity_order": ["louvre"]},
        ],
        "day_order_reason": "Museums first while energy is high",
    }
    llm = ReplyLLM("```json\n" + json.dumps(reply) + "\n```")
    clusters = _trip()

    plan = theme_days(clusters, [], None, None, make_prefs(duration_days=2), llm, audit=audit)

    assert not plan.used_fallback
    assert audit.warnings == []
    day1, day2 = plan.days
    assert day1.theme == "Art Lovers' Left Bank"
    assert day1.activity_order == ["orsay", "louvre", "tuileries"]
    assert day1.suggested_start_time == "09:30"
    assert day2.theme == "Nature & Gardens"
    assert day2.activity_order == ["vincennes", "plantes"]
    assert plan.day_order_reason == "Museums first while energy is high"
    assert [c.ids for c in clusters] == [["louvre", "orsay", "tuileries"], ["vincennes", "plantes"]]


@pytest.mark.parametrize("llm", [BrokenLLM(), ReplyLLM("the model is overloaded"), ReplyLLM("[1, 2]")])
def test_unusable_reply_falls_back_with_warning(llm, audit):
    plan = theme_days(_trip(), [], None, None, make_prefs(duration_days=2), llm, audit=audit)
    assert plan.used_fallback
    assert audit.codes() == [WarningCode.THEMING_FALLBACK]


def test_invalid_schema_falls_back(audit):
    llm = ReplyLLM('{"days": [{"day_number": 1, "suggested_start_time": "morning"}]}')
    plan = theme_days(_trip(), [], None, None, make_prefs(duration_days=2), llm, audit=audit)
    assert plan.used_fallback
    assert audit.codes() == [WarningCode.THEMING_FALLBACK]


def test_slow_llm_times_out(audit):
    started = time.monotonic()
    plan = theme_days(_trip(), [], None, None, make_prefs(duration_days=2), SlowLLM(),
                      timeout=0.05, audit=audit)
    assert time.monotonic() - started < 0.4
    assert plan.used_fallback
    assert audit.codes() == [WarningCode.THEMING_FALLBACK]


def test_prompt_lists_ids_meals_and_hotel():
    clusters = _trip()
    lunch = MealAssignment(day_number=1, meal_type=MealType.LUNCH, restaurant=None)
    prompt = build_prompt(clusters, [lunch], make_hotel("h", 48.87, 2.33), None,
                          make_prefs(duration_days=2, activities=["culture"]))
    assert "louvre = Musée du Louvre" in prompt
    assert "Hotel h" in prompt
    assert "culture" in prompt
    assert "meals: none" in prompt


# ── JSON extraction ──────────────────────────────────────────────────────────

def test_parse_json_object_tolerates_fences_and_prose():
    assert parse_json_object('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_object('Sure! Here it is: {"a": {"b": 2}} Enjoy.') == {"a": {"b": 2}}


def test_parse_json_object_rejects_non_objects():
    with pytest.raises(ValueError):
        parse_json_object("[1, 2, 3]")
    with pytest.raises(ValueError):
        parse_json_object("no json here")

from unittest.mock import MagicMock

import requests

from factories import make_raw_activity
from modules.tool_usage.geocode_tool import NominatimResolver, resolve_missing_coordinates
from schemas.activity import DataReliability
from schemas.audit import WarningCode


def test_located_records_are_untouched():
    located = make_raw_activity("a", 48.8606, 2.3376)
    resolver = MagicMock()
    assert resolve_missing_coordinates([located], resolver, "Paris") == [located]
    resolver.assert_not_called()


def test_resolved_coordinates_are_marked_verified(audit):
    lost = make_raw_activity("sc", None, None, name="Sainte-Chapelle")
    resolver = MagicMock(return_value=(48.8554, 2.3450))

    (found,) = resolve_missing_coordinates([lost], resolver, "Paris", audit)

    resolver.assert_called_once_with("Sainte-Chapelle", "Paris")
    assert found.coords == (48.8554, 2.3450)
    assert found.data_reliability == DataReliability.VERIFIED
    assert lost.latitude is None
    assert audit.warnings == []


def test_failed_lookup_keeps_record_and_warns(audit):
    acts = [
        make_raw_activity("miss", None, None, name="Nowhere Museum"),
        make_raw_activity("boom", None, None, name="Timeout Tower"),
        make_raw_activity("zero", None, None, name="Null Island Fort"),
    ]
    answers = {
        "Nowhere Museum": None,
        "Timeout Tower": requests.Timeout("read timed out"),
        "Null Island Fort": (0.0, 0.0),
    }

    def resolver(name, destination):
        answer = answers[name]
        if isinstance(answer, Exception):
            raise answer
        return answer

    resolved = resolve_missing_coordinates(acts, resolver, "Paris", audit)

    assert resolved == acts
    assert [w.entity_id for w in audit.by_code(WarningCode.UNRESOLVED_COORDINATES)] == ["miss", "boom", "zero"]


def test_nominatim_resolver_reads_first_hit():
    session = MagicMock()
    session.headers = {}
    session.get.return_value.json.return_value = [{"lat": "48.8530", "lon": "2.3499", "display_name": "Notre-Dame"}]
    resolver = NominatimResolver(url="https://geo.example.org/search", user_agent="itinerary-tests",
                                 timeout=2, session=session)

    assert resolver("Notre-Dame", "Paris") == (48.8530, 2.3499)
    session.get.assert_called_once_with(
        "https://geo.example.org/search",
        params={"q": "Notre-Dame, Paris", "format": "json", "limit": 1},
        timeout=2,
    )
    assert session.headers["User-Agent"] == "itinerary-tests"


def test_nominatim_resolver_no_hit():
    session = MagicMock()
    session.headers = {}
    session.get.return_value.json.return_value = []
    assert NominatimResolver(session=session)("Atlantis", "Paris") is None

from fastapi.testclient import TestClient

from api.server import app
from factories import paris_request


def test_health():
    client = TestClient(app)
    response = client.get("/v1/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "itinerary-pipeline", "llm": "stub"}


def test_plan_endpoint_returns_days():
    client = TestClient(app)
    response = client.post("/v1/itinerary/plan", json=paris_request())

    assert response.status_code == 200
    body = response.json()
    assert [d["day_number"] for d in body["days"]] == [1, 2, 3]
    placed = {a["id"] for d in body["days"] for a in d["activities"]}
    assert {"ms-eiffel", "ms-louvre"} <= placed
    assert body["hotel"] is not None


def test_plan_endpoint_accepts_transport_clock_strings():
    client = TestClient(app)
    body = paris_request(transport={"mode": "plane", "arrival_hour": "11:30", "departure_hour": "19:00"})
    response = client.post("/v1/itinerary/plan", json=body)

    assert response.status_code == 200
    budgets = [d["budget"] for d in response.json()["days"]]
    assert budgets[0]["start_hour"] == 13.0
    assert budgets[-1]["end_hour"] == 16.0


def test_invalid_bodies_are_rejected():
    client = TestClient(app)
    assert client.post("/v1/itinerary/plan", json=paris_request(dest_center=[0, 0])).status_code == 422
    assert client.post("/v1/itinerary/plan", json=paris_request(sources={"tripadvisor": []})).status_code == 422

    body = paris_request()
    body["preferences"]["duration_days"] = 0
    assert client.post("/v1/itinerary/plan", json=body).status_code == 422


def test_pipeline_errors_map_to_status_codes(monkeypatch):
    client = TestClient(app)

    def bad_data(req):
        raise ValueError("hotel price is not a number")

    monkeypatch.setattr("api.routes.itinerary.plan_from_request", bad_data)
    response = client.post("/v1/itinerary/plan", json=paris_request())
    assert response.status_code == 422
    assert "hotel price" in response.json()["detail"]

    def crash(req):
        raise RuntimeError("disk full")

    monkeypatch.setattr("api.routes.itinerary.plan_from_request", crash)
    assert client.post("/v1/itinerary/plan", json=paris_request()).status_code == 500

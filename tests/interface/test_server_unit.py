import pytest
from fastapi.testclient import TestClient

from cadence.consts import VERSION
from cadence.domain.review.models import DrillKind
from cadence.server import app, get_service


@pytest.fixture
def client(service):
    def override(kind: str):
        DrillKind.parse(kind)
        return service

    app.dependency_overrides[get_service] = override
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["version"] == VERSION


def test_get_version(client):
    response = client.get("/version")
    assert response.status_code == 200
    assert response.json() == {"version": VERSION}


def test_list_items(client):
    response = client.get("/vocabulary/items")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 4
    assert data["items"][0]["content"]["content_id"] == "apple"
    assert data["items"][0]["record"] is None


def test_unknown_kind(client):
    response = client.get("/poetry/items")
    assert response.status_code == 400
    assert "Unknown drill kind" in response.json()["detail"]


def test_review_flow(client):
    response = client.post("/vocabulary/review", json={"content_id": "apple", "rating": 1})
    assert response.status_code == 200
    record = response.json()["record"]
    assert record["lapses"] == 1
    assert [e["rating"] for e in record["review_history"]] == [1]

    # Rated Again today: not due again until tomorrow
    assert client.get("/vocabulary/due").json()["total"] == 0

    stats = client.get("/vocabulary/stats").json()
    assert stats["with_review"] == 1
    assert stats["difficult_count"] == 1
    assert stats["due_today"] == 0


@pytest.mark.parametrize("rating", [0, 5, "x", None, 2.5])
def test_review_rejects_bad_rating(client, rating):
    response = client.post("/vocabulary/review", json={"content_id": "apple", "rating": rating})
    assert response.status_code == 400
    assert "Rating must be 1-4" in response.json()["detail"]


def test_review_unknown_content(client):
    response = client.post("/vocabulary/review", json={"content_id": "durian", "rating": 3})
    assert response.status_code == 404


def test_review_stores_extra(client):
    response = client.post(
        "/vocabulary/review",
        json={"content_id": "water", "rating": "3", "extra": {"answer": "nước"}},
    )
    assert response.status_code == 200
    assert response.json()["record"]["meta"] == {"answer": "nước"}


def test_collect_with_tier(client):
    response = client.post("/vocabulary/collect", json={"content_id": "book", "tier": "hard"})
    assert response.status_code == 201
    record = response.json()["record"]
    assert record["current_interval_days"] == 1.0
    assert record["review_history"] == []


def test_collect_unknown_tier(client):
    response = client.post("/vocabulary/collect", json={"content_id": "book", "tier": "meh"})
    assert response.status_code == 400


def test_learn_candidate(client):
    response = client.get("/vocabulary/learn")
    assert response.status_code == 200
    assert response.json()["content_id"] in {"apple", "water", "book"}


def test_learn_exhausted(client):
    for content_id in ("apple", "water", "book"):
        client.post("/vocabulary/collect", json={"content_id": content_id})

    response = client.get("/vocabulary/learn")
    assert response.status_code == 404


def test_toggle_star(client):
    assert client.put("/vocabulary/apple/star").json()["is_starred"] is True
    assert client.put("/vocabulary/apple/star").json()["is_starred"] is False


def test_preview(client):
    response = client.get("/vocabulary/apple/preview")
    assert response.status_code == 200
    intervals = response.json()["intervals"]
    assert list(intervals) == ["again", "hard", "good", "easy"]
    assert intervals["again"] < intervals["easy"]


def test_get_item(client):
    response = client.get("/vocabulary/apple")
    assert response.status_code == 200
    data = response.json()
    assert data["content"]["translation"] == "táo"
    assert data["content"]["kind"] is None
    assert data["record"] is None

    client.post("/vocabulary/review", json={"content_id": "apple", "rating": 3})
    assert client.get("/vocabulary/apple").json()["record"]["review_history"][0]["rating"] == 3


def test_get_item_unknown_content(client):
    assert client.get("/vocabulary/durian").status_code == 404


def test_fixed_routes_win_over_item_route(client):
    assert "items" in client.get("/vocabulary/items").json()
    assert "with_review" in client.get("/vocabulary/stats").json()


def test_set_card_direction(client):
    response = client.put("/vocabulary/apple/direction", json={"direction": "vn-kr"})
    assert response.status_code == 404

    client.post("/vocabulary/collect", json={"content_id": "apple"})
    response = client.put("/vocabulary/apple/direction", json={"direction": "vn-kr"})
    assert response.status_code == 200
    record = response.json()
    assert record["meta"] == {"card_direction": "vn-kr"}
    assert record["review_history"] == []


@pytest.mark.parametrize("direction", ["sideways", None, 1])
def test_set_card_direction_rejects_bad_value(client, direction):
    client.post("/vocabulary/collect", json={"content_id": "apple"})
    response = client.put("/vocabulary/apple/direction", json={"direction": direction})
    assert response.status_code == 400
    assert "Direction must be" in response.json()["detail"]

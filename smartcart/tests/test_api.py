from __future__ import annotations

import json
import time
from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

import smartcart.app as service
from smartcart.analytics.store import get_events
from smartcart.app import app
from smartcart.cart.store import cart_count
from smartcart.llm.config import LLMConfig

RESTAURANT = "kebapci-ali"
LUNCH_IN_WINTER = {"restaurant_id": RESTAURANT, "time_bucket": "midday", "season": "winter"}


@pytest.fixture(autouse=True)
def groq():
    with patch("smartcart.llm.groq_client.Groq") as mock_groq_cls:
        mock_groq_cls.return_value.chat.completions.create.side_effect = RuntimeError("offline")
        yield mock_groq_cls


@pytest.fixture
def client():
    # New client, new session cookie, new cart
    return TestClient(app)


def _add(client, product_id, quantity=1, restaurant_id=RESTAURANT):
    return client.post("/cart/items", json={
        "restaurant_id": restaurant_id,
        "product_id": product_id,
        "quantity": quantity,
    })


def _wait_for_passes(count, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if len(get_events("recommendation_pass")) >= count:
            return True
        time.sleep(0.02)
    return False


# ── Catalog and cart ─────────────────────────────────────────────────────


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_restaurants(client):
    body = client.get("/restaurants").json()
    assert RESTAURANT in body["restaurants"]


def test_catalog_keeps_declared_order(client):
    resp = client.get(f"/restaurants/{RESTAURANT}/catalog")
    assert resp.status_code == 200
    ids = [p["id"] for p in resp.json()]
    assert ids[:3] == ["p1", "p2", "p3"]


def test_unknown_restaurant_catalog(client):
    assert client.get("/restaurants/nowhere/catalog").status_code == 404


def test_add_to_cart(client):
    resp = _add(client, "p1", quantity=2)
    assert resp.status_code == 200
    body = resp.json()
    assert body["restaurant_id"] == RESTAURANT
    assert [(line["product_id"], line["quantity"]) for line in body["lines"]] == [("p1", 2)]

    assert client.get("/cart").json()["lines"][0]["product"]["name"] == "Adana Kebap"


def test_add_unknown_product(client):
    assert _add(client, "p999").status_code == 404


def test_add_invalid_quantity(client):
    assert _add(client, "p1", quantity=0).status_code == 422


# ── Recommendations ──────────────────────────────────────────────────────


def test_recommendations_for_kebap_cart(client):
    _add(client, "p1")

    resp = client.post("/recommendations", json={**LUNCH_IN_WINTER, "limit": 5})

    assert resp.status_code == 200
    body = resp.json()
    assert body["fallback_used"] is True
    recs = body["recommendations"]
    assert 0 < len(recs) <= 5
    ids = [r["product_id"] for r in recs]
    assert "p1" not in ids
    assert ids[0] == "p7"
    scores = [r["combined_score"] for r in recs]
    assert scores == sorted(scores, reverse=True)


def test_empty_cart_gets_no_recommendations(client):
    body = client.post("/recommendations", json=LUNCH_IN_WINTER).json()
    assert body["recommendations"] == []
    assert body["fallback_used"] is False


def test_recommendations_unknown_restaurant(client):
    resp = client.post("/recommendations", json={"restaurant_id": "nowhere"})
    assert resp.status_code == 404


@pytest.mark.parametrize("payload", [
    {**LUNCH_IN_WINTER, "limit": 0},
    {**LUNCH_IN_WINTER, "limit": 21},
    {**LUNCH_IN_WINTER, "time_bucket": "midnight"},
    {**LUNCH_IN_WINTER, "season": "monsoon"},
])
def test_recommendations_validation(client, payload):
    assert client.post("/recommendations", json=payload).status_code == 422


def test_latest_before_any_pass(client):
    assert client.get("/recommendations/latest").json()["recommendations"] == []


# ── Apply ────────────────────────────────────────────────────────────────


def test_apply_adds_and_refreshes(client):
    _add(client, "p1")
    recs = client.post("/recommendations", json=LUNCH_IN_WINTER).json()["recommendations"]
    top = recs[0]["product_id"]

    resp = client.post("/recommendations/apply", json={"restaurant_id": RESTAURANT, "product_id": top})

    assert resp.status_code == 200
    body = resp.json()
    assert body["outcome"] == "added"
    assert body["cart_size"] == 2

    assert _wait_for_passes(2)
    latest = client.get("/recommendations/latest").json()["recommendations"]
    assert top not in [r["product_id"] for r in latest]

    events = get_events()
    assert any(e["type"] == "cart_changed" and e["product_id"] == top for e in events)
    assert any(e["type"] == "cart_apply" and e["outcome"] == "added" for e in events)


def test_apply_product_already_in_cart(client):
    _add(client, "p1")
    recs = client.post("/recommendations", json=LUNCH_IN_WINTER).json()["recommendations"]
    top = recs[0]["product_id"]
    _add(client, top)

    resp = client.post("/recommendations/apply", json={"restaurant_id": RESTAURANT, "product_id": top})

    assert resp.status_code == 200
    assert resp.json()["outcome"] == "already_in_cart"
    assert resp.json()["cart_size"] == 2


def test_apply_without_recommendations(client):
    _add(client, "p1")
    resp = client.post("/recommendations/apply", json={"restaurant_id": RESTAURANT, "product_id": "p7"})
    assert resp.status_code == 404


def test_apply_product_not_recommended(client):
    _add(client, "p1")
    client.post("/recommendations", json=LUNCH_IN_WINTER)
    resp = client.post("/recommendations/apply", json={"restaurant_id": RESTAURANT, "product_id": "p1"})
    assert resp.status_code == 404


# ── Operational ──────────────────────────────────────────────────────────


def test_analytics_after_pass(client):
    _add(client, "p1")
    client.post("/recommendations", json=LUNCH_IN_WINTER)

    body = client.get("/analytics").json()

    assert body["total_passes"] == 1
    assert body["fallback_rate"] == 100.0
    assert body["source_contributions"]["fallback"] == 2


def test_cache_stats_endpoint(client):
    body = client.get("/cache/stats").json()
    assert set(body) == {"size", "hits", "misses", "evictions", "hit_rate"}


def test_advisor_insights_in_response(client, groq):
    create = groq.return_value.chat.completions.create
    create.side_effect = None
    create.return_value.choices = [MagicMock(message=MagicMock(content=json.dumps({
        "missingCategories": [{"categoryName": "Tatlı", "reason": "No dessert yet"}],
        "recommendations": [{"productName": "Künefe", "reason": "Sweet finish", "compatibility": 90}],
        "perfectCombos": [{"title": "Klasik", "items": ["Adana Kebap", "Künefe"]}],
        "estimatedSatisfaction": 85,
    })))]
    _add(client, "p1")

    enabled = LLMConfig(api_key="test-key", enabled=True)
    with patch.object(service.engine.sources[0], "config", enabled):
        body = client.post("/recommendations", json=LUNCH_IN_WINTER).json()

    assert body["fallback_used"] is False
    assert "p11" in [r["product_id"] for r in body["recommendations"]]
    insights = body["insights"]
    assert insights["estimated_satisfaction"] == 85
    assert insights["missing_categories"][0]["category_name"] == "Tatlı"
    assert insights["perfect_combos"][0]["items"] == ["Adana Kebap", "Künefe"]
    assert client.get("/recommendations/latest").json()["insights"] == insights


def test_fallback_response_has_no_insights(client):
    _add(client, "p1")
    body = client.post("/recommendations", json=LUNCH_IN_WINTER).json()
    assert body["fallback_used"] is True
    assert body["insights"] is None


def test_old_sessions_are_pruned(monkeypatch):
    monkeypatch.setattr(service, "MAX_SESSIONS", 2)
    monkeypatch.setattr("smartcart.cart.store.MAX_CARTS", 2)
    clients = [TestClient(app) for _ in range(3)]
    for c in clients:
        _add(c, "p1")
        c.post("/recommendations", json=LUNCH_IN_WINTER)

    assert len(service._latest) == 2
    assert cart_count() == 2
    assert clients[0].get("/recommendations/latest").json()["recommendations"] == []
    assert clients[2].get("/recommendations/latest").json()["recommendations"]

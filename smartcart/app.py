from __future__ import annotations

import os
import threading
import uuid
from collections import OrderedDict
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from starlette.middleware.sessions import SessionMiddleware

from .analytics.aggregator import compute_analytics
from .analytics.store import get_events, record_event
from .cart.events import CartChanged, CartEventBus
from .cart.integrator import CartIntegrator
from .cart.store import CartMutationError, CartStore, get_cart
from .recommendations.cache import get_cache_stats
from .recommendations.config import DEFAULT_ENGINE_CONFIG
from .recommendations.data_store import get_catalog, get_order_counts, get_restaurant_ids
from .recommendations.engine import PassResult, RecommendationEngine
from .recommendations.models import (
    AddItemRequest,
    ApplyRequest,
    ApplyResponse,
    CartResponse,
    CatalogProduct,
    RecommendationContext,
    RecommendationRequest,
    RecommendationResponse,
)
from .recommendations.sources import context_for

app = FastAPI(title="SmartCart Recommendation API", version="1.0.0")
app.add_middleware(
    SessionMiddleware,
    secret_key=os.environ.get("SESSION_SECRET", "smartcart-secret-change-in-production"),
)

engine = RecommendationEngine(config=DEFAULT_ENGINE_CONFIG)
cart_events = CartEventBus()

MAX_SESSIONS = 10_000

# Per cart: the last pass served, what it was computed for, and the integrator
# that refreshes it. Least recently used sessions are dropped past MAX_SESSIONS.
_latest: OrderedDict[str, dict] = OrderedDict()
_integrators: OrderedDict[str, CartIntegrator] = OrderedDict()
_sessions_lock = threading.Lock()


def _on_cart_changed(event: CartChanged) -> None:
    record_event("cart_changed", {
        "action": event.action,
        "product_id": event.product_id,
        "cart_size": event.cart_size,
    })


cart_events.subscribe(_on_cart_changed)


def _cart_id(request: Request) -> str:
    cart_id = request.session.get("cart_id")
    if not cart_id:
        cart_id = uuid.uuid4().hex
        request.session["cart_id"] = cart_id
    return cart_id


def _catalog_or_404(restaurant_id: str) -> list[CatalogProduct]:
    catalog = get_catalog(restaurant_id)
    if not catalog:
        raise HTTPException(status_code=404, detail=f"Unknown restaurant {restaurant_id!r}")
    return catalog


def _context_for_request(body: RecommendationRequest, restaurant_id: str) -> RecommendationContext:
    derived = context_for(datetime.now())
    return RecommendationContext(
        time_bucket=body.time_bucket or derived.time_bucket,
        season=body.season or derived.season,
        order_counts=get_order_counts(restaurant_id),
    )


def _prune_sessions() -> None:
    # Caller holds _sessions_lock.
    while len(_latest) > MAX_SESSIONS:
        _latest.popitem(last=False)
    while len(_integrators) > MAX_SESSIONS:
        _, integrator = _integrators.popitem(last=False)
        integrator.cancel_pending()


def _latest_for(cart_id: str) -> dict | None:
    with _sessions_lock:
        latest = _latest.get(cart_id)
        if latest is not None:
            _latest.move_to_end(cart_id)
        return latest


def _run_pass(cart_id: str, cart: CartStore, restaurant_id: str,
              context: RecommendationContext, limit: int) -> PassResult:
    result = engine.run_pass(cart.lines(), get_catalog(restaurant_id), context, top_k=limit)
    with _sessions_lock:
        _latest[cart_id] = {
            "restaurant_id": restaurant_id,
            "context": context,
            "limit": limit,
            "result": result,
        }
        _latest.move_to_end(cart_id)
        _prune_sessions()
    return result


def _integrator_for(cart_id: str, cart: CartStore) -> CartIntegrator:
    with _sessions_lock:
        integrator = _integrators.get(cart_id)
        if integrator is None or integrator.cart is not cart:

            def refresh() -> None:
                latest = _latest_for(cart_id)
                if latest is None:
                    return
                _run_pass(
                    cart_id, cart, latest["restaurant_id"], latest["context"], latest["limit"],
                )

            integrator = CartIntegrator(
                cart,
                events=cart_events,
                refresh=refresh,
                settle_delay=DEFAULT_ENGINE_CONFIG.settle_delay,
            )
            _integrators[cart_id] = integrator
        _integrators.move_to_end(cart_id)
        _prune_sessions()
        return integrator


def _response(result: PassResult) -> RecommendationResponse:
    return RecommendationResponse(
        recommendations=result.recommendations,
        fallback_used=result.fallback_used,
        cache_hit=result.cache_hit,
        insights=result.insights,
    )


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/restaurants")
def restaurants() -> dict:
    return {"restaurants": get_restaurant_ids()}


@app.get("/restaurants/{restaurant_id}/catalog", response_model=list[CatalogProduct])
def catalog(restaurant_id: str) -> list[CatalogProduct]:
    return _catalog_or_404(restaurant_id)


# ── Cart endpoints ───────────────────────────────────────────────────────


@app.get("/cart", response_model=CartResponse)
def view_cart(request: Request) -> CartResponse:
    cart = get_cart(_cart_id(request))
    return CartResponse(restaurant_id=cart.restaurant_id, lines=cart.lines())


@app.post("/cart/items", response_model=CartResponse)
def add_cart_item(body: AddItemRequest, request: Request) -> CartResponse:
    products = {p.id: p for p in _catalog_or_404(body.restaurant_id)}
    product = products.get(body.product_id)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")

    cart = get_cart(_cart_id(request), body.restaurant_id)
    try:
        cart.add_item(product, body.quantity)
    except CartMutationError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return CartResponse(restaurant_id=cart.restaurant_id, lines=cart.lines())


# ── Recommendation endpoints ─────────────────────────────────────────────


@app.post("/recommendations", response_model=RecommendationResponse)
def recommendations(body: RecommendationRequest, request: Request) -> RecommendationResponse:
    _catalog_or_404(body.restaurant_id)
    cart_id = _cart_id(request)
    cart = get_cart(cart_id, body.restaurant_id)
    context = _context_for_request(body, body.restaurant_id)
    return _response(_run_pass(cart_id, cart, body.restaurant_id, context, body.limit))


@app.get("/recommendations/latest", response_model=RecommendationResponse)
def latest_recommendations(request: Request) -> RecommendationResponse:
    latest = _latest_for(_cart_id(request))
    if latest is None:
        return RecommendationResponse(recommendations=[])
    return _response(latest["result"])


@app.post("/recommendations/apply", response_model=ApplyResponse)
def apply_recommendation(body: ApplyRequest, request: Request) -> ApplyResponse:
    cart_id = _cart_id(request)
    latest = _latest_for(cart_id)
    if latest is None or latest["restaurant_id"] != body.restaurant_id:
        raise HTTPException(status_code=404, detail="No recommendations for this cart yet")

    selection = next(
        (r for r in latest["result"].recommendations if r.product_id == body.product_id),
        None,
    )
    if selection is None:
        raise HTTPException(status_code=404, detail="Recommendation not found")

    cart = get_cart(cart_id, body.restaurant_id)
    result = _integrator_for(cart_id, cart).apply(selection)

    record_event("cart_apply", {
        "product_id": body.product_id,
        "outcome": result.outcome.value,
        "dominant_category": selection.dominant_category.value,
    })
    return ApplyResponse(
        outcome=result.outcome.value,
        message=result.message,
        cart_size=len(cart.lines()),
    )


# ── Operational endpoints ────────────────────────────────────────────────


@app.get("/analytics")
def analytics() -> dict:
    return compute_analytics(get_events())


@app.get("/cache/stats")
def cache_stats() -> dict:
    return get_cache_stats()

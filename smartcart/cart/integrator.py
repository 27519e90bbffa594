from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Protocol, Sequence

from ..recommendations.models import AggregatedRecommendation, CartLine, CatalogProduct
from .events import CartChanged, CartEventBus

logger = logging.getLogger(__name__)


class CartCollaborator(Protocol):
    def lines(self) -> list[CartLine]: ...

    def add_item(self, product: CatalogProduct, quantity: int = 1) -> CartLine: ...


class ApplyOutcome(str, Enum):
    added = "added"
    already_in_cart = "already_in_cart"
    product_unavailable = "product_unavailable"


@dataclass(frozen=True)
class ApplyResult:
    outcome: ApplyOutcome
    product_id: str
    message: str


class CartIntegrator:
    """
    Put a chosen recommendation into the cart.

    A successful add publishes ``CartChanged`` and, after ``settle_delay``
    seconds, calls ``refresh`` so the caller can recompute recommendations
    against the updated cart. Adds that land inside the delay push the refresh
    back; only the last one fires.
    """

    def __init__(
        self,
        cart: CartCollaborator,
        events: CartEventBus | None = None,
        refresh: Callable[[], None] | None = None,
        settle_delay: float = 0.1,
    ) -> None:
        self.cart = cart
        self.events = events or CartEventBus()
        self.refresh = refresh
        self.settle_delay = settle_delay
        self._pending: threading.Timer | None = None
        self._timer_lock = threading.Lock()

    def apply(
        self,
        selection: AggregatedRecommendation,
        cart_lines: Sequence[CartLine] | None = None,
    ) -> ApplyResult:
        lines = self.cart.lines() if cart_lines is None else cart_lines
        product = selection.product

        if any(line.product_id == selection.product_id for line in lines):
            logger.info("%s is already in the cart", product.name)
            return ApplyResult(
                ApplyOutcome.already_in_cart,
                selection.product_id,
                f'"{product.name}" is already in your cart',
            )

        try:
            self.cart.add_item(product, 1)
        except Exception:
            logger.warning("Cart rejected %s", product.name, exc_info=True)
            return ApplyResult(
                ApplyOutcome.product_unavailable,
                selection.product_id,
                f'"{product.name}" could not be added to your cart',
            )

        self.events.publish(CartChanged(
            action="add",
            product_id=product.id,
            product_name=product.name,
            cart_size=len(self.cart.lines()),
        ))
        self._schedule_refresh()
        return ApplyResult(
            ApplyOutcome.added,
            selection.product_id,
            f'"{product.name}" was added to your cart',
        )

    def _schedule_refresh(self) -> None:
        if self.refresh is None:
            return
        with self._timer_lock:
            if self._pending is not None:
                self._pending.cancel()
            self._pending = threading.Timer(self.settle_delay, self.refresh)
            self._pending.daemon = True
            self._pending.start()

    def cancel_pending(self) -> None:
        with self._timer_lock:
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None

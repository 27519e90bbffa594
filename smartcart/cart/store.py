from __future__ import annotations

import threading
from collections import OrderedDict

from ..recommendations.models import CartLine, CatalogProduct


class CartMutationError(Exception):
    """The cart refused a change (wrong restaurant, bad quantity, ...)."""


class CartStore:
    """In-memory cart for one session, bound to a single restaurant."""

    def __init__(self, restaurant_id: str | None = None) -> None:
        self.restaurant_id = restaurant_id
        self._lines: list[CartLine] = []
        self._lock = threading.Lock()

    def lines(self) -> list[CartLine]:
        with self._lock:
            return list(self._lines)

    def add_item(self, product: CatalogProduct, quantity: int = 1) -> CartLine:
        if quantity < 1:
            raise CartMutationError(f"Quantity must be positive, got {quantity}")
        with self._lock:
            for i, line in enumerate(self._lines):
                if line.product_id == product.id:
                    updated = line.model_copy(update={"quantity": line.quantity + quantity})
                    self._lines[i] = updated
                    return updated
            line = CartLine(
                product_id=product.id,
                product=product,
                quantity=quantity,
                category=product.category,
            )
            self._lines.append(line)
            return line

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()


MAX_CARTS = 10_000

_carts: OrderedDict[str, CartStore] = OrderedDict()
_carts_lock = threading.Lock()


def get_cart(cart_id: str, restaurant_id: str | None = None) -> CartStore:
    """
    Return the cart for *cart_id*; switching restaurants starts a fresh cart.

    At most ``MAX_CARTS`` carts are kept. The least recently used one is
    dropped when a new cart would exceed that.
    """
    with _carts_lock:
        cart = _carts.get(cart_id)
        if cart is None or (restaurant_id and cart.restaurant_id not in (None, restaurant_id)):
            cart = CartStore(restaurant_id)
            _carts[cart_id] = cart
        elif restaurant_id and cart.restaurant_id is None:
            cart.restaurant_id = restaurant_id
        _carts.move_to_end(cart_id)
        while len(_carts) > MAX_CARTS:
            _carts.popitem(last=False)
        return cart


def cart_count() -> int:
    with _carts_lock:
        return len(_carts)


def clear_carts() -> None:
    with _carts_lock:
        _carts.clear()

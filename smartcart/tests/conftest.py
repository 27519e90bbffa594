from __future__ import annotations

import pytest

from smartcart.analytics.store import clear_events
from smartcart.cart.store import clear_carts
from smartcart.recommendations.cache import clear_cache
from smartcart.recommendations.models import CartLine, CatalogProduct

CATALOG_ROWS = [
    ("p1", "Adana Kebap", "Ana Yemek", 320),
    ("p2", "Urfa Kebap", "Ana Yemek", 310),
    ("p3", "Kuşbaşılı Pide", "Pide", 260),
    ("p4", "Lahmacun", "Pide", 90),
    ("p5", "Mercimek Çorbası", "Çorba", 110),
    ("p6", "Çoban Salata", "Salata", 95),
    ("p7", "Ayran 300ml", "İçecek", 40),
    ("p8", "Coca Cola 330ml", "İçecek", 55),
    ("p10", "Fıstıklı Baklava", "Tatlı", 180),
    ("p11", "Künefe", "Tatlı", 170),
    ("p13", "Çay", "İçecek", 20),
    ("p14", "Türk Kahvesi", "İçecek", 60),
    ("p16", "Dondurma", "Tatlı", 80),
]


def make_product(pid: str, name: str, category: str = "", price: float = 10.0) -> CatalogProduct:
    return CatalogProduct(id=pid, name=name, category=category, price=price)


def make_line(product: CatalogProduct, quantity: int = 1, category: str | None = None) -> CartLine:
    return CartLine(
        product_id=product.id,
        product=product,
        quantity=quantity,
        category=product.category if category is None else category,
    )


@pytest.fixture
def catalog() -> list[CatalogProduct]:
    return [make_product(*row) for row in CATALOG_ROWS]


@pytest.fixture
def by_name(catalog) -> dict[str, CatalogProduct]:
    return {p.name: p for p in catalog}


@pytest.fixture
def cart_of(by_name):
    def _cart(*names: str) -> list[CartLine]:
        return [make_line(by_name[n]) for n in names]

    return _cart


@pytest.fixture(autouse=True)
def _reset_state():
    clear_cache()
    clear_events()
    clear_carts()
    yield

from __future__ import annotations

from pathlib import Path

import pandas as pd

from .models import CatalogProduct

_DATA_DIR = Path(__file__).resolve().parent.parent / "data"
_CATALOG_CSV = _DATA_DIR / "catalog.csv"
_ORDER_COUNTS_CSV = _DATA_DIR / "order_counts.csv"

_catalogs: dict[str, list[CatalogProduct]] | None = None
_order_counts: dict[str, dict[str, int]] | None = None


def _load_catalogs(path: Path = _CATALOG_CSV) -> dict[str, list[CatalogProduct]]:
    df = pd.read_csv(path, dtype={"restaurant_id": str, "id": str})
    df["category"] = df["category"].fillna("")
    df["price"] = pd.to_numeric(df["price"], errors="coerce").fillna(0.0)

    catalogs: dict[str, list[CatalogProduct]] = {}
    # Keep file order: it is the catalog's declared enumeration order.
    for _, row in df.iterrows():
        description = row.get("description")
        catalogs.setdefault(row["restaurant_id"], []).append(CatalogProduct(
            id=row["id"],
            name=str(row["name"]).strip(),
            category=str(row["category"]).strip(),
            price=float(row["price"]),
            description=str(description) if pd.notna(description) else None,
        ))
    return catalogs


def _load_order_counts(path: Path = _ORDER_COUNTS_CSV) -> dict[str, dict[str, int]]:
    if not path.exists():
        return {}
    df = pd.read_csv(path, dtype={"restaurant_id": str, "product_id": str})
    df["order_count"] = pd.to_numeric(df["order_count"], errors="coerce").fillna(0)

    counts: dict[str, dict[str, int]] = {}
    for (restaurant_id, product_id), total in (
        df.groupby(["restaurant_id", "product_id"], sort=False)["order_count"].sum().items()
    ):
        counts.setdefault(restaurant_id, {})[product_id] = int(total)
    return counts


def get_catalog(restaurant_id: str) -> list[CatalogProduct]:
    """Return the restaurant's catalog in declared order, loading data on first call."""
    global _catalogs
    if _catalogs is None:
        _catalogs = _load_catalogs()
    return _catalogs.get(restaurant_id, [])


def get_restaurant_ids() -> list[str]:
    global _catalogs
    if _catalogs is None:
        _catalogs = _load_catalogs()
    return list(_catalogs)


def get_order_counts(restaurant_id: str) -> dict[str, int]:
    """Recent per-product order counts for the restaurant (may be empty)."""
    global _order_counts
    if _order_counts is None:
        _order_counts = _load_order_counts()
    return _order_counts.get(restaurant_id, {})

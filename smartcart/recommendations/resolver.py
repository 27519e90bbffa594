"""
Map free-text product names (mostly from the AI advisor) onto real catalog
entries.

The cascade runs from strictest to loosest and the first step that finds
anything wins. Within a step the catalog is scanned in its declared order, so
the same query against the same catalog always resolves to the same product.
"""
from __future__ import annotations

from typing import Sequence

from .models import CatalogProduct
from .text import fold

_MIN_TOKEN_LEN = 3

# Canonical term -> synonyms. Covers short generic queries ("su", "cola") that
# token overlap cannot match safely.
ALIASES: dict[str, list[str]] = {
    "ayran": ["ayran", "buttermilk"],
    "su": ["su", "water"],
    "cola": ["cola", "kola", "pepsi", "coca"],
    "çay": ["çay", "tea"],
    "kahve": ["kahve", "coffee"],
    "baklava": ["baklava"],
    "sütlaç": ["sütlaç", "rice pudding"],
    "künefe": ["künefe"],
    "döner": ["döner", "doner"],
    "kebap": ["kebap", "kebab"],
    "pide": ["pide"],
    "lahmacun": ["lahmacun"],
}


def _tokens(text: str) -> list[str]:
    return [t for t in text.split() if len(t) >= _MIN_TOKEN_LEN]


def _tokens_overlap(a: str, b: str) -> bool:
    a_tokens = _tokens(a)
    b_tokens = _tokens(b)
    return any(x in y or y in x for x in a_tokens for y in b_tokens)


def _alias_match(query: str, catalog: Sequence[CatalogProduct]) -> CatalogProduct | None:
    for synonyms in ALIASES.values():
        if not any(s in query for s in synonyms):
            continue
        for product in catalog:
            name = fold(product.name)
            if any(s in name for s in synonyms):
                return product
    return None


def resolve(name: str, catalog: Sequence[CatalogProduct]) -> CatalogProduct | None:
    """Return the catalog product best matching *name*, or ``None``."""
    query = fold(name).strip()
    catalog = [p for p in catalog if p.name.strip()]
    if not query or not catalog:
        return None

    for product in catalog:
        if fold(product.name) == query:
            return product

    for product in catalog:
        candidate = fold(product.name)
        if query in candidate or candidate in query:
            return product

    for product in catalog:
        if _tokens_overlap(query, fold(product.name)):
            return product

    return _alias_match(query, catalog)

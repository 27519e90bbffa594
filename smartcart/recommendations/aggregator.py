"""
Blend raw recommendations from every source into one ranked list.

Scores are weighted per source and summed per product. Products already in
the cart are dropped here, once, for all sources. Everything else about the
output (reason order, the dominant source, tie-breaks) follows the fixed
source priority so identical inputs always give identical output.
"""
from __future__ import annotations

from typing import Sequence

from .config import WeightTable
from .models import (
    SOURCE_PRIORITY,
    AggregatedRecommendation,
    CartLine,
    CatalogProduct,
    RawRecommendation,
)

DEFAULT_TOP_K = 8

_PRIORITY = {source: i for i, source in enumerate(SOURCE_PRIORITY)}


def _merge_group(
    product: CatalogProduct,
    entries: list[RawRecommendation],
    weights: WeightTable,
) -> AggregatedRecommendation:
    # Stable sort: entries from the same source keep their emission order.
    entries = sorted(entries, key=lambda e: _PRIORITY[e.source_category])

    combined = 0.0
    reasons: list[str] = []
    seen: set[str] = set()
    dominant = entries[0]
    dominant_weighted = -1.0
    for entry in entries:
        weighted = entry.raw_score * weights.weight_for(entry.source_category)
        combined += weighted
        # Strict ">" keeps the higher-priority source on ties.
        if weighted > dominant_weighted:
            dominant, dominant_weighted = entry, weighted
        for reason in entry.reasons:
            if reason not in seen:
                seen.add(reason)
                reasons.append(reason)

    return AggregatedRecommendation(
        product_id=product.id,
        product=product,
        combined_score=combined,
        merged_reasons=reasons,
        urgency=max((e.urgency for e in entries), key=lambda u: u.rank),
        confidence=max(e.confidence for e in entries),
        dominant_category=dominant.source_category,
    )


def aggregate(
    raw: Sequence[RawRecommendation],
    cart_lines: Sequence[CartLine],
    catalog: Sequence[CatalogProduct],
    weights: WeightTable | None = None,
    top_k: int = DEFAULT_TOP_K,
) -> list[AggregatedRecommendation]:
    weights = weights or WeightTable()
    in_cart = {line.product_id for line in cart_lines}
    position = {p.id: i for i, p in enumerate(catalog)}
    products = {p.id: p for p in catalog}

    groups: dict[str, list[RawRecommendation]] = {}
    for entry in raw:
        if entry.product_id in in_cart or entry.product_id not in products:
            continue
        groups.setdefault(entry.product_id, []).append(entry)

    merged = [
        _merge_group(products[pid], entries, weights) for pid, entries in groups.items()
    ]
    merged.sort(key=lambda r: (
        -r.combined_score,
        _PRIORITY[r.dominant_category],
        position[r.product_id],
    ))
    return merged[:max(top_k, 0)]

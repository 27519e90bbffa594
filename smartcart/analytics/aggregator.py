from __future__ import annotations

from collections import Counter
from typing import Any

from ..recommendations.cache import get_cache_stats


def _rate(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0.0


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    passes = [e for e in events if e["type"] == "recommendation_pass"]
    applies = [e for e in events if e["type"] == "cart_apply"]
    total = len(passes)

    # Average response time
    times = [p["response_time_ms"] for p in passes if "response_time_ms" in p]
    avg_time = round(sum(times) / len(times), 1) if times else 0.0

    # How much each source contributed before aggregation
    source_totals: Counter[str] = Counter()
    for p in passes:
        for source, count in (p.get("source_counts") or {}).items():
            source_totals[source] += count

    # Most surfaced products
    product_counter: Counter[str] = Counter()
    for p in passes:
        for pid in p.get("recommended_ids", []) or []:
            product_counter[pid] += 1
    top_products = [{"product_id": n, "count": c} for n, c in product_counter.most_common(10)]

    fallback_passes = sum(1 for p in passes if p.get("fallback_used"))
    cache_hits = sum(1 for p in passes if p.get("cache_hit"))

    outcome_counter: Counter[str] = Counter(a.get("outcome", "unknown") for a in applies)
    added = outcome_counter.get("added", 0)

    return {
        "total_passes": total,
        "avg_response_time_ms": avg_time,
        "fallback_rate": _rate(fallback_passes, total),
        "source_contributions": dict(source_totals),
        "top_recommended_products": top_products,
        "apply_outcomes": dict(outcome_counter),
        "conversion_rate": _rate(added, total),
        "advisor_cache": {
            "pass_hits": cache_hits,
            "pass_hit_rate": _rate(cache_hits, total),
            **get_cache_stats(),
        },
    }

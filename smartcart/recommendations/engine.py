"""
Recommendation pass orchestration.

Responsibilities:
- Run every signal source against one (cart, catalog, context) snapshot.
- Keep a failing source from taking the others down with it.
- Substitute the fallback rules when the AI advisor produced nothing.
- Aggregate, rank and truncate; record the pass for analytics.

Sources report per-pass facts (cache hits, advisor insights) through their
``SourceResult``, so one engine can serve concurrent passes.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

from ..analytics.store import record_event
from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from .advisor import AIAdvisor, FallbackRuleEngine
from .aggregator import aggregate
from .config import DEFAULT_ENGINE_CONFIG, EngineConfig
from .models import (
    AdvisorInsights,
    AggregatedRecommendation,
    CartLine,
    CatalogProduct,
    RawRecommendation,
    RecommendationContext,
    SourceCategory,
)
from .sources import (
    ComplementaryRuleEngine,
    ContextualAdvisor,
    SignalSource,
    SimilarityMatcher,
    SourceResult,
    TrendAnalyzer,
)

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    recommendations: list[AggregatedRecommendation]
    fallback_used: bool = False
    cache_hit: bool = False
    source_counts: dict[str, int] = field(default_factory=dict)
    # Only set when the advisor's own picks made it into the pass
    insights: AdvisorInsights | None = None


def default_sources(
    llm_config: LLMConfig = DEFAULT_LLM_CONFIG,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> list[SignalSource]:
    return [
        AIAdvisor(
            llm_config,
            use_cache=config.advisor_cache_enabled,
            cache_ttl=config.advisor_cache_ttl,
        ),
        TrendAnalyzer(),
        SimilarityMatcher(),
        ContextualAdvisor(),
        ComplementaryRuleEngine(),
    ]


class RecommendationEngine:
    def __init__(
        self,
        sources: list[SignalSource] | None = None,
        fallback: SignalSource | None = None,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    ) -> None:
        self.config = config
        self.sources = sources if sources is not None else default_sources(config=config)
        self.fallback = fallback or FallbackRuleEngine()

    def _run_source(
        self,
        source: SignalSource,
        cart_lines: Sequence[CartLine],
        catalog: Sequence[CatalogProduct],
        context: RecommendationContext,
    ) -> SourceResult:
        try:
            return source.produce(cart_lines, catalog, context)
        except Exception:
            logger.warning("Signal source %s failed, skipping it", source.name, exc_info=True)
            return SourceResult()

    def run_pass(
        self,
        cart_lines: Sequence[CartLine],
        catalog: Sequence[CatalogProduct],
        context: RecommendationContext | None = None,
        top_k: int | None = None,
    ) -> PassResult:
        start_time = time.time()
        context = context or RecommendationContext()

        if not cart_lines or not catalog:
            return PassResult(recommendations=[])

        raw: list[RawRecommendation] = []
        counts: dict[str, int] = {}
        ai_count = 0
        cache_hit = False
        insights: AdvisorInsights | None = None
        for source in self.sources:
            result = self._run_source(source, cart_lines, catalog, context)
            counts[source.name] = len(result.recommendations)
            raw.extend(result.recommendations)
            if source.category is SourceCategory.ai_powered:
                ai_count += len(result.recommendations)
                cache_hit = cache_hit or result.cache_hit
                insights = insights or result.insights

        fallback_used = ai_count == 0
        if fallback_used:
            logger.info("AI advisor returned nothing, using fallback rules")
            result = self._run_source(self.fallback, cart_lines, catalog, context)
            counts["fallback"] = len(result.recommendations)
            raw.extend(result.recommendations)
            insights = None

        logger.debug("Raw recommendations per source: %s", counts)

        recommendations = aggregate(
            raw,
            cart_lines,
            catalog,
            weights=self.config.weights,
            top_k=self.config.top_k if top_k is None else top_k,
        )

        elapsed_ms = round((time.time() - start_time) * 1000, 1)
        record_event("recommendation_pass", {
            "cart_size": len(cart_lines),
            "catalog_size": len(catalog),
            "source_counts": counts,
            "fallback_used": fallback_used,
            "cache_hit": cache_hit,
            "results_returned": len(recommendations),
            "recommended_ids": [r.product_id for r in recommendations],
            "response_time_ms": elapsed_ms,
        })

        return PassResult(
            recommendations=recommendations,
            fallback_used=fallback_used,
            cache_hit=cache_hit,
            source_counts=counts,
            insights=insights,
        )

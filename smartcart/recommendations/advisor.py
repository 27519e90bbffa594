"""
AI-backed signal source and its deterministic stand-in.

``AIAdvisor`` turns the Groq model's cart analysis into raw recommendations.
Whatever goes wrong on the way (no key, timeout, prose without JSON, a block
that fails validation) it returns an empty list, and the engine then asks
``FallbackRuleEngine`` for a conservative missing-category suggestion instead.
"""
from __future__ import annotations

import logging
import re
from typing import Sequence

from ..llm.config import DEFAULT_LLM_CONFIG, LLMConfig
from ..llm.errors import AdvisorError
from ..llm.groq_client import fetch_cart_analysis
from ..llm.schema import AdvisorAnalysis, AdvisorSuggestion
from .cache import cache_get, cache_set
from .models import (
    AdvisorInsights,
    CartLine,
    CatalogProduct,
    RawRecommendation,
    SourceCategory,
    Urgency,
)
from .resolver import resolve
from .sources import SignalSource, SourceResult
from .text import fold

logger = logging.getLogger(__name__)

_URGENCY_LABELS: dict[str, Urgency] = {
    "low": Urgency.low,
    "düşük": Urgency.low,
    "medium": Urgency.medium,
    "orta": Urgency.medium,
    "high": Urgency.high,
    "yüksek": Urgency.high,
}


def map_urgency(label: str | None, compatibility: float) -> Urgency:
    urgency = _URGENCY_LABELS.get(fold(label).strip())
    if urgency is not None:
        return urgency
    if compatibility > 85:
        return Urgency.high
    if compatibility > 70:
        return Urgency.medium
    return Urgency.low


def to_insights(analysis: AdvisorAnalysis) -> AdvisorInsights:
    return AdvisorInsights(
        missing_categories=analysis.missing_categories,
        perfect_combos=analysis.perfect_combos,
        estimated_satisfaction=analysis.estimated_satisfaction,
        budget_optimization=analysis.budget_optimization,
        reasoning=analysis.reasoning,
    )


def _snapshot_key(cart_lines: Sequence[CartLine], catalog: Sequence[CatalogProduct]) -> dict:
    return {
        "cart": sorted(
            (line.product_id, line.product.name, line.quantity) for line in cart_lines
        ),
        "catalog": [(p.id, p.name, p.category, p.price) for p in catalog],
    }


class AIAdvisor(SignalSource):
    category = SourceCategory.ai_powered

    def __init__(
        self,
        config: LLMConfig = DEFAULT_LLM_CONFIG,
        use_cache: bool = True,
        cache_ttl: float = 300.0,
    ) -> None:
        self.config = config
        self.use_cache = use_cache
        self.cache_ttl = cache_ttl

    def produce_raw_recommendations(self, cart_lines, catalog, context):
        return self.produce(cart_lines, catalog, context).recommendations

    def produce(self, cart_lines, catalog, context) -> SourceResult:
        """Ask the advisor about this snapshot. Cache hits and insights travel in the result."""
        if not cart_lines or not catalog:
            return SourceResult()

        key = _snapshot_key(cart_lines, catalog)
        if self.use_cache:
            cached = cache_get(key, ttl=self.cache_ttl)
            if cached is not None:
                recommendations, insights = cached
                return SourceResult(list(recommendations), cache_hit=True, insights=insights)

        try:
            analysis = fetch_cart_analysis(cart_lines, catalog, config=self.config)
        except AdvisorError:
            logger.warning("Cart advisor gave no usable answer", exc_info=True)
            return SourceResult()

        results = self.to_raw_recommendations(analysis, catalog)
        insights = to_insights(analysis)
        if results and self.use_cache:
            cache_set(key, (results, insights))
        return SourceResult(results, insights=insights)

    def to_raw_recommendations(
        self, analysis: AdvisorAnalysis, catalog: Sequence[CatalogProduct],
    ) -> list[RawRecommendation]:
        results: list[RawRecommendation] = []
        for suggestion in analysis.recommendations:
            rec = self._from_suggestion(suggestion, catalog)
            if rec is not None:
                results.append(rec)
        return results

    def _from_suggestion(
        self, suggestion: AdvisorSuggestion, catalog: Sequence[CatalogProduct],
    ) -> RawRecommendation | None:
        product = resolve(suggestion.product_name, catalog)
        if product is None:
            logger.debug("Dropping advisor suggestion %r: not on the menu", suggestion.product_name)
            return None
        compatibility = suggestion.compatibility
        return RawRecommendation(
            product_id=product.id,
            source_category=self.category,
            raw_score=compatibility,
            reasons=[suggestion.reason] if suggestion.reason else [],
            urgency=map_urgency(suggestion.urgency, compatibility),
            confidence=compatibility / 100,
        )


# ---------------------------------------------------------------------------
# Fallback
# ---------------------------------------------------------------------------

MAIN_DISH_KEYWORDS = ("ana", "main", "yemek", "kebap", "kebab", "pide", "burger", "pizza")
DRINK_KEYWORDS = ("içecek", "drink", "beverage", "ayran", "su", "cola", "kola", "water")
DESSERT_KEYWORDS = ("tatlı", "dessert", "sweet", "baklava", "sütlaç", "künefe")
_WHOLE_WORD_KEYWORDS = frozenset({"cola", "kola"})


def _matches(text: str, keywords: Sequence[str]) -> bool:
    text = fold(text)
    words = set(re.findall(r"\w+", text))
    for keyword in keywords:
        # Short and brand keywords only count as whole words ("su" vs "sucuklu",
        # "kola" vs "çikolata").
        if len(keyword) <= 2 or keyword in _WHOLE_WORD_KEYWORDS:
            if keyword in words:
                return True
        elif keyword in text:
            return True
    return False


_KINDS = (
    ("dessert", DESSERT_KEYWORDS),
    ("drink", DRINK_KEYWORDS),
    ("main-dish", MAIN_DISH_KEYWORDS),
)


def classify(category: str, name: str = "") -> str:
    """
    Bucket a product into main-dish, drink, dessert, or other.

    The category decides when it names a kind; the product name is only
    consulted when it does not.
    """
    for text in (category, name):
        for kind, keywords in _KINDS:
            if _matches(text, keywords):
                return kind
    return "other"


class FallbackRuleEngine(SignalSource):
    """Suggest a drink and/or dessert for carts that hold a main dish."""

    category = SourceCategory.ai_powered

    def produce_raw_recommendations(self, cart_lines, catalog, context):
        kinds = {
            classify(line.category or line.product.category, line.product.name)
            for line in cart_lines
        }
        if "main-dish" not in kinds:
            return []

        results: list[RawRecommendation] = []
        if "drink" not in kinds:
            drink = self._first_of_kind(catalog, "drink")
            if drink is not None:
                results.append(RawRecommendation(
                    product_id=drink.id,
                    source_category=self.category,
                    raw_score=85,
                    reasons=["Completes a main-dish order with a drink"],
                    urgency=Urgency.medium,
                    confidence=0.85,
                ))
        if "dessert" not in kinds:
            dessert = self._first_of_kind(catalog, "dessert")
            if dessert is not None:
                results.append(RawRecommendation(
                    product_id=dessert.id,
                    source_category=self.category,
                    raw_score=80,
                    reasons=["Rounds off the meal with a dessert"],
                    urgency=Urgency.low,
                    confidence=0.80,
                ))
        return results

    @staticmethod
    def _first_of_kind(catalog: Sequence[CatalogProduct], kind: str) -> CatalogProduct | None:
        for product in catalog:
            if classify(product.category, product.name) == kind:
                return product
        return None

"""
Deterministic signal sources.

Each source looks at the same (cart, catalog, context) snapshot and returns
unweighted ``RawRecommendation`` objects. Sources do not filter out products
that are already in the cart; the aggregator does that once for everyone.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence

from .models import (
    AdvisorInsights,
    CartLine,
    CatalogProduct,
    RawRecommendation,
    RecommendationContext,
    Season,
    SourceCategory,
    TimeBucket,
    Urgency,
)
from .text import fold

MAX_PER_SOURCE = 5


@dataclass
class SourceResult:
    """What one source produced for one pass."""

    recommendations: list[RawRecommendation] = field(default_factory=list)
    cache_hit: bool = False
    insights: AdvisorInsights | None = None


class SignalSource(ABC):
    """One independent producer of raw recommendations."""

    category: SourceCategory

    @property
    def name(self) -> str:
        return self.category.value

    def produce(
        self,
        cart_lines: Sequence[CartLine],
        catalog: Sequence[CatalogProduct],
        context: RecommendationContext,
    ) -> SourceResult:
        return SourceResult(
            list(self.produce_raw_recommendations(cart_lines, catalog, context)),
        )

    @abstractmethod
    def produce_raw_recommendations(
        self,
        cart_lines: Sequence[CartLine],
        catalog: Sequence[CatalogProduct],
        context: RecommendationContext,
    ) -> list[RawRecommendation]:
        raise NotImplementedError


def _urgency(value: float, high: float, medium: float) -> Urgency:
    if value > high:
        return Urgency.high
    if value > medium:
        return Urgency.medium
    return Urgency.low


def _top(
    scored: list[tuple[float, RawRecommendation]], limit: int = MAX_PER_SOURCE,
) -> list[RawRecommendation]:
    # sorted() is stable, so equal scores keep catalog order
    ranked = sorted(scored, key=lambda item: item[0], reverse=True)
    return [rec for _, rec in ranked[:limit]]


# ---------------------------------------------------------------------------
# Trending
# ---------------------------------------------------------------------------


class TrendAnalyzer(SignalSource):
    category = SourceCategory.trending

    def produce_raw_recommendations(self, cart_lines, catalog, context):
        results: list[RawRecommendation] = []
        for product in catalog:
            count = context.order_counts.get(product.id, 0)
            if count <= 0:
                continue
            results.append(RawRecommendation(
                product_id=product.id,
                source_category=self.category,
                raw_score=min(count * 2, 100),
                reasons=[f"Ordered {count} times in the last 7 days", "Popular item"],
                urgency=_urgency(count, 20, 10),
                confidence=min(count / 30, 1.0),
            ))
        return results


# ---------------------------------------------------------------------------
# Similarity
# ---------------------------------------------------------------------------


def _name_tokens(name: str) -> list[str]:
    return fold(name).split()


class SimilarityMatcher(SignalSource):
    category = SourceCategory.similar

    CATEGORY_WEIGHT = 0.4
    NAME_WEIGHT = 0.6
    THRESHOLD = 0.3

    def similarity(
        self, product: CatalogProduct, cart_categories: set[str], cart_tokens: set[str],
    ) -> float:
        score = 0.0
        if product.category and product.category in cart_categories:
            score += self.CATEGORY_WEIGHT
        words = _name_tokens(product.name)
        if words:
            common = [w for w in words if w in cart_tokens]
            score += self.NAME_WEIGHT * len(common) / len(words)
        return score

    def produce_raw_recommendations(self, cart_lines, catalog, context):
        cart_categories = {
            line.category or line.product.category for line in cart_lines
        } - {""}
        cart_tokens = {
            t for line in cart_lines for t in _name_tokens(line.product.name) if len(t) > 2
        }

        scored: list[tuple[float, RawRecommendation]] = []
        for product in catalog:
            sim = self.similarity(product, cart_categories, cart_tokens)
            if sim <= self.THRESHOLD:
                continue
            reasons = ["Similar to items in your cart"]
            if product.category in cart_categories:
                reasons.append("From the same category")
            scored.append((sim, RawRecommendation(
                product_id=product.id,
                source_category=self.category,
                raw_score=min(sim * 100, 100.0),
                reasons=reasons,
                urgency=_urgency(sim, 0.8, 0.6),
                confidence=min(sim, 1.0),
            )))
        return _top(scored)


# ---------------------------------------------------------------------------
# Time of day / season
# ---------------------------------------------------------------------------

# bucket -> (score, reason, name keywords, category keywords)
TIME_RULES: dict[TimeBucket, tuple[int, str, tuple[str, ...], tuple[str, ...]]] = {
    TimeBucket.morning: (
        90, "Ideal for the morning", ("kahvaltı", "çay", "börek", "breakfast", "tea"), (),
    ),
    TimeBucket.midday: (
        85, "Perfect for lunch", ("kebap", "pide", "kebab"), ("ana", "main"),
    ),
    TimeBucket.evening: (
        80, "Ideal for dinner", ("çorba", "soup"), ("ana", "main"),
    ),
}

SEASON_RULES: dict[Season, tuple[int, str, tuple[str, ...]]] = {
    Season.winter: (20, "Warming for the winter", ("çorba", "sıcak", "soup", "hot")),
    Season.summer: (
        20,
        "Refreshing for the summer",
        ("salata", "soğuk", "dondurma", "salad", "cold", "ice cream"),
    ),
}


def context_for(moment: datetime) -> RecommendationContext:
    """
    Derive the time bucket and season for *moment*.

    Only the service boundary calls this; sources always receive the result
    as an explicit parameter.
    """
    hour = moment.hour
    if 6 <= hour <= 11:
        bucket = TimeBucket.morning
    elif 12 <= hour <= 15:
        bucket = TimeBucket.midday
    elif 18 <= hour <= 22:
        bucket = TimeBucket.evening
    else:
        bucket = None

    month = moment.month
    if month >= 12 or month <= 3:
        season = Season.winter
    elif 7 <= month <= 9:
        season = Season.summer
    else:
        season = None

    return RecommendationContext(time_bucket=bucket, season=season)


class ContextualAdvisor(SignalSource):
    category = SourceCategory.contextual

    def produce_raw_recommendations(self, cart_lines, catalog, context):
        scored: list[tuple[float, RawRecommendation]] = []
        for product in catalog:
            name = fold(product.name)
            category = fold(product.category)
            score = 0
            reasons: list[str] = []

            if context.time_bucket is not None:
                base, reason, names, categories = TIME_RULES[context.time_bucket]
                if any(k in name for k in names) or any(k in category for k in categories):
                    score = base
                    reasons.append(reason)

            if context.season is not None:
                bonus, reason, names = SEASON_RULES[context.season]
                if any(k in name for k in names):
                    score += bonus
                    reasons.append(reason)

            if score <= 0:
                continue
            scored.append((score, RawRecommendation(
                product_id=product.id,
                source_category=self.category,
                raw_score=min(score, 100),
                reasons=[" • ".join(reasons)],
                urgency=_urgency(score, 80, 60),
                confidence=min(score / 100, 1.0),
            )))
        return _top(scored)


# ---------------------------------------------------------------------------
# Pairing rules
# ---------------------------------------------------------------------------

COMPLEMENTARY_RULES: list[dict] = [
    {
        "triggers": ["kebap", "kebab", "köfte", "şiş"],
        "suggest": ["ayran", "bulgur", "salata", "turşu"],
        "score": 95,
        "reason": "Pairs perfectly with grilled meat",
    },
    {
        "triggers": ["pide", "lahmacun"],
        "suggest": ["ayran", "salata", "turşu"],
        "score": 90,
        "reason": "A classic match for baked dough dishes",
    },
    {
        "triggers": ["çorba", "soup"],
        "suggest": ["ekmek", "salata"],
        "score": 85,
        "reason": "Rounds off a soup",
    },
    {
        "triggers": ["baklava", "künefe", "tatlı"],
        "suggest": ["çay", "türk kahvesi"],
        "score": 100,
        "reason": "Classic after-dessert pairing",
    },
    {
        "triggers": ["balık", "levrek", "hamsi", "çipura"],
        "suggest": ["salata", "pilav", "ayran"],
        "score": 88,
        "reason": "Goes well with fish",
    },
]


class ComplementaryRuleEngine(SignalSource):
    category = SourceCategory.complementary

    def __init__(self, rules: list[dict] | None = None) -> None:
        self.rules = rules if rules is not None else COMPLEMENTARY_RULES

    def produce_raw_recommendations(self, cart_lines, catalog, context):
        cart_names = " ".join(fold(line.product.name) for line in cart_lines)

        best: dict[str, tuple[float, RawRecommendation]] = {}
        for rule in self.rules:
            if not any(t in cart_names for t in rule["triggers"]):
                continue
            for keyword in rule["suggest"]:
                product = next((p for p in catalog if keyword in fold(p.name)), None)
                if product is None:
                    continue
                current = best.get(product.id)
                if current is not None and current[0] >= rule["score"]:
                    continue
                best[product.id] = (rule["score"], RawRecommendation(
                    product_id=product.id,
                    source_category=self.category,
                    raw_score=rule["score"],
                    reasons=[rule["reason"]],
                    urgency=_urgency(rule["score"], 85, 70),
                    confidence=rule["score"] / 100,
                ))
        return _top(list(best.values()))

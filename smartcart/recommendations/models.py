from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from ..llm.schema import MissingCategory, PerfectCombo


class SourceCategory(str, Enum):
    ai_powered = "ai-powered"
    trending = "trending"
    similar = "similar"
    contextual = "contextual"
    complementary = "complementary"


# Merge and tie-break order for every multi-source decision.
SOURCE_PRIORITY: list[SourceCategory] = [
    SourceCategory.ai_powered,
    SourceCategory.trending,
    SourceCategory.similar,
    SourceCategory.contextual,
    SourceCategory.complementary,
]


class Urgency(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"

    @property
    def rank(self) -> int:
        return _URGENCY_RANK[self]


_URGENCY_RANK = {Urgency.low: 0, Urgency.medium: 1, Urgency.high: 2}


class TimeBucket(str, Enum):
    morning = "morning"
    midday = "midday"
    evening = "evening"


class Season(str, Enum):
    winter = "winter"
    summer = "summer"


class CatalogProduct(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    category: str = ""
    price: float = Field(default=0.0, ge=0.0)
    description: str | None = None


class CartLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    product: CatalogProduct
    quantity: int = Field(default=1, ge=1)
    category: str = ""


class RecommendationContext(BaseModel):
    """Everything a pass needs besides the cart and catalog."""

    model_config = ConfigDict(frozen=True)

    time_bucket: TimeBucket | None = None
    season: Season | None = None
    order_counts: dict[str, int] = Field(default_factory=dict)


class RawRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    source_category: SourceCategory
    raw_score: float = Field(..., ge=0.0, le=100.0)
    reasons: list[str] = Field(default_factory=list)
    urgency: Urgency = Urgency.low
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class AdvisorInsights(BaseModel):
    """The advisor's cart-level commentary, passed through alongside its picks."""

    missing_categories: list[MissingCategory] = Field(default_factory=list)
    perfect_combos: list[PerfectCombo] = Field(default_factory=list)
    estimated_satisfaction: float | None = None
    budget_optimization: str | None = None
    reasoning: str | None = None


class AggregatedRecommendation(BaseModel):
    product_id: str
    product: CatalogProduct
    combined_score: float
    merged_reasons: list[str]
    urgency: Urgency
    confidence: float
    dominant_category: SourceCategory


# ── API models ───────────────────────────────────────────────────────────


class AddItemRequest(BaseModel):
    restaurant_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1, le=50)


class CartResponse(BaseModel):
    restaurant_id: str | None = None
    lines: list[CartLine]


class RecommendationRequest(BaseModel):
    restaurant_id: str = Field(..., min_length=1)
    time_bucket: TimeBucket | None = Field(
        default=None, description="Derived from the server clock when omitted",
    )
    season: Season | None = None
    limit: int = Field(default=8, ge=1, le=20)


class RecommendationResponse(BaseModel):
    recommendations: list[AggregatedRecommendation]
    fallback_used: bool = False
    cache_hit: bool = False
    insights: AdvisorInsights | None = None


class ApplyRequest(BaseModel):
    restaurant_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)


class ApplyResponse(BaseModel):
    outcome: str
    message: str
    cart_size: int

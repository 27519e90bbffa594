from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MissingCategory(_Lenient):
    category_name: str = Field(
        ..., validation_alias=AliasChoices("category_name", "categoryName"),
    )
    reason: str = ""
    importance: float | None = None


class AdvisorSuggestion(_Lenient):
    product_name: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("product_name", "productName", "name"),
    )
    category: str = ""
    reason: str = ""
    price: str | float | None = None
    compatibility: float = Field(default=80.0, ge=0.0, le=100.0)
    urgency: str | None = None


class PerfectCombo(_Lenient):
    title: str = ""
    items: list[str] = Field(default_factory=list)
    why: str = ""


class AdvisorAnalysis(_Lenient):
    missing_categories: list[MissingCategory] = Field(
        default_factory=list,
        validation_alias=AliasChoices("missing_categories", "missingCategories"),
    )
    recommendations: list[AdvisorSuggestion]
    perfect_combos: list[PerfectCombo] = Field(
        default_factory=list,
        validation_alias=AliasChoices("perfect_combos", "perfectCombos"),
    )
    estimated_satisfaction: float | None = Field(
        default=None,
        validation_alias=AliasChoices("estimated_satisfaction", "estimatedSatisfaction"),
    )
    budget_optimization: str | None = Field(
        default=None,
        validation_alias=AliasChoices("budget_optimization", "budgetOptimization"),
    )
    reasoning: str | None = None

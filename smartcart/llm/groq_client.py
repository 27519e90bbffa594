from __future__ import annotations

import logging
from typing import Sequence

from groq import Groq
from pydantic import ValidationError

from ..recommendations.models import CartLine, CatalogProduct
from .config import DEFAULT_LLM_CONFIG, LLMConfig
from .errors import AdvisorMalformedResponse, AdvisorUnavailable
from .extraction import extract_json_object
from .schema import AdvisorAnalysis

logger = logging.getLogger(__name__)

_DESCRIPTION_PREVIEW = 50

SYSTEM_PROMPT = """\
You are the cart advisor of a Turkish food-ordering platform. Given the \
customer's current cart and the restaurant's full menu, suggest items from \
THAT menu that would complete the order.

Rules:
1. Suggest from categories that complement the cart (a main dish calls for a \
drink or a dessert).
2. Respect classic Turkish pairings (kebap-ayran, pilav-cacık, baklava-çay).
3. Keep the price balance; do not push expensive extras.
4. Never suggest something that is already in the cart.
5. Only suggest products that appear on the menu, using their exact names.

Return JSON in this format:
{
  "missing_categories": [{"category_name": "...", "reason": "...", "importance": 1}],
  "recommendations": [
    {"product_name": "exact menu name", "category": "...", "reason": "...",
     "price": "...", "compatibility": 1-100, "urgency": "low/medium/high"}
  ],
  "perfect_combos": [{"title": "...", "items": ["cart item", "suggested item"], "why": "..."}],
  "estimated_satisfaction": 1-100,
  "budget_optimization": "...",
  "reasoning": "..."
}"""


def group_by_category(catalog: Sequence[CatalogProduct]) -> dict[str, list[CatalogProduct]]:
    grouped: dict[str, list[CatalogProduct]] = {}
    for product in catalog:
        grouped.setdefault(product.category or "other", []).append(product)
    return grouped


def _build_user_message(
    cart_lines: Sequence[CartLine],
    catalog: Sequence[CatalogProduct],
) -> str:
    lines = ["## Current Cart"]
    for line in cart_lines:
        category = line.category or line.product.category or "uncategorised"
        lines.append(
            f"- {line.product.name} ({category}) - {line.product.price:g}₺ x{line.quantity}"
        )

    lines.append("\n## Restaurant Menu")
    for category, products in group_by_category(catalog).items():
        lines.append(f"\n### {category.upper()}")
        for p in products:
            entry = f"- {p.name} - {p.price:g}₺"
            if p.description:
                entry += f" ({p.description[:_DESCRIPTION_PREVIEW]})"
            lines.append(entry)

    return "\n".join(lines)


def fetch_cart_analysis(
    cart_lines: Sequence[CartLine],
    catalog: Sequence[CatalogProduct],
    config: LLMConfig = DEFAULT_LLM_CONFIG,
) -> AdvisorAnalysis:
    """
    Ask the Groq model to analyse the cart against the menu.

    Raises ``AdvisorUnavailable`` when the call cannot be made or fails, and
    ``AdvisorMalformedResponse`` when the reply has no valid analysis block.
    """
    if not config.enabled or not config.api_key:
        raise AdvisorUnavailable("advisor disabled or missing API key")

    try:
        client = Groq(
            api_key=config.api_key,
            timeout=config.timeout,
            max_retries=config.max_retries,
        )
        response = client.chat.completions.create(
            model=config.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _build_user_message(cart_lines, catalog)},
            ],
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )
        content = response.choices[0].message.content or ""
    except Exception as exc:
        raise AdvisorUnavailable(str(exc)) from exc

    if not content.strip():
        raise AdvisorUnavailable("advisor returned an empty reply")

    logger.debug("Advisor replied with %d characters", len(content))
    payload = extract_json_object(content)
    try:
        return AdvisorAnalysis.model_validate(payload)
    except ValidationError as exc:
        raise AdvisorMalformedResponse(f"analysis block failed validation: {exc}") from exc

import json
from unittest.mock import MagicMock, patch

import pytest

from smartcart.llm.config import LLMConfig
from smartcart.llm.errors import AdvisorMalformedResponse, AdvisorUnavailable
from smartcart.llm.groq_client import fetch_cart_analysis, group_by_category

ENABLED_CONFIG = LLMConfig(api_key="test-key", enabled=True)
DISABLED_CONFIG = LLMConfig(api_key="test-key", enabled=False)

ANALYSIS = {
    "missingCategories": [{"categoryName": "İçecek", "reason": "No drink yet", "importance": 3}],
    "recommendations": [
        {
            "productName": "Ayran",
            "category": "İçecek",
            "reason": "Kebap and ayran are a classic pair.",
            "price": "40₺",
            "compatibility": 92,
            "urgency": "yüksek",
        },
    ],
    "perfectCombos": [{"title": "Klasik", "items": ["Adana Kebap", "Ayran"], "why": "Tradition"}],
    "estimatedSatisfaction": 88,
    "budgetOptimization": "Cheap add-on",
    "reasoning": "A main dish without a drink.",
}


def _mock_groq_response(content: str) -> MagicMock:
    message = MagicMock()
    message.content = content
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


@patch("smartcart.llm.groq_client.Groq")
def test_fetch_parses_camel_case_analysis(mock_groq_cls, cart_of, catalog):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(
        json.dumps(ANALYSIS)
    )

    analysis = fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=ENABLED_CONFIG)

    assert analysis.recommendations[0].product_name == "Ayran"
    assert analysis.recommendations[0].compatibility == 92
    assert analysis.missing_categories[0].category_name == "İçecek"
    assert analysis.perfect_combos[0].items == ["Adana Kebap", "Ayran"]
    assert analysis.estimated_satisfaction == 88


@patch("smartcart.llm.groq_client.Groq")
def test_fetch_accepts_json_wrapped_in_prose(mock_groq_cls, cart_of, catalog):
    reply = "Sure! Here is the analysis:\n```json\n" + json.dumps(ANALYSIS) + "\n```\nAfiyet olsun."
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(reply)

    analysis = fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=ENABLED_CONFIG)

    assert len(analysis.recommendations) == 1


@patch("smartcart.llm.groq_client.Groq")
def test_prompt_contains_cart_and_grouped_menu(mock_groq_cls, cart_of, catalog):
    create = mock_groq_cls.return_value.chat.completions.create
    create.return_value = _mock_groq_response(json.dumps(ANALYSIS))

    fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=ENABLED_CONFIG)

    messages = create.call_args.kwargs["messages"]
    user_content = messages[1]["content"]
    assert "Adana Kebap (Ana Yemek) - 320₺ x1" in user_content
    assert "### TATLI" in user_content
    assert "- Künefe - 170₺" in user_content
    mock_groq_cls.assert_called_once_with(
        api_key="test-key", timeout=ENABLED_CONFIG.timeout, max_retries=0,
    )


@patch("smartcart.llm.groq_client.Groq")
def test_client_is_built_without_sdk_retries(mock_groq_cls, cart_of, catalog):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(
        json.dumps(ANALYSIS)
    )

    fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=ENABLED_CONFIG)
    retrying = LLMConfig(api_key="test-key", enabled=True, max_retries=1)
    fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=retrying)

    assert LLMConfig().max_retries == 0
    assert [c.kwargs["max_retries"] for c in mock_groq_cls.call_args_list] == [0, 1]


@patch("smartcart.llm.groq_client.Groq")
def test_api_error_raises_unavailable(mock_groq_cls, cart_of, catalog):
    mock_groq_cls.return_value.chat.completions.create.side_effect = Exception("API timeout")

    with pytest.raises(AdvisorUnavailable):
        fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=ENABLED_CONFIG)


@patch("smartcart.llm.groq_client.Groq")
def test_empty_reply_raises_unavailable(mock_groq_cls, cart_of, catalog):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response("")

    with pytest.raises(AdvisorUnavailable):
        fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=ENABLED_CONFIG)


@patch("smartcart.llm.groq_client.Groq")
def test_bad_json_raises_malformed(mock_groq_cls, cart_of, catalog):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(
        "not valid json{{{"
    )

    with pytest.raises(AdvisorMalformedResponse):
        fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=ENABLED_CONFIG)


@patch("smartcart.llm.groq_client.Groq")
def test_block_without_recommendations_raises_malformed(mock_groq_cls, cart_of, catalog):
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(
        '{"reasoning": "I could not decide"}'
    )

    with pytest.raises(AdvisorMalformedResponse):
        fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=ENABLED_CONFIG)


@patch("smartcart.llm.groq_client.Groq")
def test_out_of_range_compatibility_rejects_whole_block(mock_groq_cls, cart_of, catalog):
    payload = {
        "recommendations": [
            {"product_name": "Ayran", "compatibility": 90},
            {"product_name": "Künefe", "compatibility": 250},
        ]
    }
    mock_groq_cls.return_value.chat.completions.create.return_value = _mock_groq_response(
        json.dumps(payload)
    )

    with pytest.raises(AdvisorMalformedResponse):
        fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=ENABLED_CONFIG)


@patch("smartcart.llm.groq_client.Groq")
def test_disabled_config_never_calls_groq(mock_groq_cls, cart_of, catalog):
    with pytest.raises(AdvisorUnavailable):
        fetch_cart_analysis(cart_of("Adana Kebap"), catalog, config=DISABLED_CONFIG)

    mock_groq_cls.assert_not_called()


def test_group_by_category_keeps_catalog_order(catalog):
    grouped = group_by_category(catalog)
    assert list(grouped)[:3] == ["Ana Yemek", "Pide", "Çorba"]
    assert [p.name for p in grouped["Tatlı"]] == ["Fıstıklı Baklava", "Künefe", "Dondurma"]

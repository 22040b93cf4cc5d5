"""
Assistant Tests

Validates the conversational front ends:
1. SMS: help command, query extraction, single/multi match replies, TwiML
2. SMS: menu failures still answer with valid TwiML
3. Chat: menu context, prompt, OpenAI request and add_to_cart tool calls
"""

import asyncio
import json
import xml.etree.ElementTree as ET
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from assistant.chat import (
    ADD_TO_CART_TOOL,
    FALLBACK_RESPONSE,
    ChatAssistant,
    build_menu_context,
    build_system_prompt,
    parse_menu_data,
)
from assistant.sms import (
    ERROR_MESSAGE,
    HELP_MESSAGE,
    SmsResponder,
    extract_product_query,
    generate_reply,
    render_twiml,
    search_menu,
)
from core.config import AssistantSettings
from core.errors import ConfigurationError, UpstreamFetchError
from core.models import MenuItem


def menu_item(product_id, name, brand="Acme", category="Flower", units=120, case_size=12, price=8.5, thc=None):
    return MenuItem(
        product_id=product_id,
        name=name,
        brand=brand,
        category=category,
        units=units,
        case_size=case_size,
        cases_available=int(units // case_size),
        price_per_unit=price,
        price_per_case=price * case_size,
        avg_thc_percentage=thc,
    )


MENU = [
    menu_item("P1", "Gelato 33", thc=27.46),
    menu_item("P2", "OG Kush", brand="Kushco", units=30, case_size=10, price=6),
    menu_item("P3", "Kush Cake", brand="Kushco", units=20, case_size=10, price=7),
    menu_item("P4", "Kush Mints", brand="Kushco", units=10, case_size=10, price=7),
    menu_item("P5", "Kush Gummies", brand="Kushco", category="Edible", units=10, case_size=10, price=3),
]


def message_text(twiml):
    root = ET.fromstring(twiml)
    return root.find("Message").text


class TestSmsParsing:
    """Phrase patterns and menu search."""

    @pytest.mark.parametrize("message,query", [
        ("THC of Gelato 33", "gelato 33"),
        ("what's the thc for og kush", "og kush"),
        ("How many cases of OG Kush", "og kush"),
        ("stock of kush cake", "kush cake"),
        ("Price of Purple Punch", "purple punch"),
        ("Tell me about Ice Cream Cake", "ice cream cake"),
        ("Pressure Pack stock", "pressure pack"),
        ("gelato", "gelato"),
    ])
    def test_extract_product_query(self, message, query):
        assert extract_product_query(message) == query

    def test_search_name_brand_category(self):
        assert [i.product_id for i in search_menu(MENU, "gelato")] == ["P1"]
        assert len(search_menu(MENU, "kushco")) == 4
        assert [i.product_id for i in search_menu(MENU, "edible")] == ["P5"]


class TestSmsReplies:
    """Reply text for single, multiple and missing matches."""

    def test_thc_reply(self):
        reply = generate_reply("THC of Gelato 33", MENU)
        assert reply == "Gelato 33 has 27.5% THC. Stock: 120 units available. Price: $8.5/unit."

    def test_stock_reply(self):
        reply = generate_reply("stock of gelato 33", MENU)
        assert reply == (
            "Gelato 33: 120 units in stock (10 full cases of 12). Price: $8.5/unit, $102/case."
        )

    def test_price_reply(self):
        reply = generate_reply("price of og kush", MENU)
        assert reply == "OG Kush: $6 per unit, $60 per case (10 units/case). 30 units available."

    def test_missing_thc(self):
        assert "THC info not available" in generate_reply("thc of og kush", MENU)

    def test_default_reply(self):
        reply = generate_reply("gelato", MENU)
        assert reply.startswith("Gelato 33\nBrand: Acme\nTHC: 27.5%\n")

    def test_multiple_matches_top_three(self):
        reply = generate_reply("kush", MENU)
        assert reply.startswith('Found 4 products matching "kush". Here are the top matches:')
        assert "1. OG Kush" in reply
        assert "3. Kush Mints" in reply
        assert "Kush Gummies" not in reply
        assert reply.endswith("...and 1 more. Be more specific for exact matches.")

    def test_no_match(self):
        reply = generate_reply("blue dream", MENU)
        assert reply.startswith('Sorry, I couldn\'t find any products matching "blue dream"')

    def test_twiml_is_escaped(self):
        twiml = render_twiml("Tom & Jerry <3")
        assert message_text(twiml) == "Tom & Jerry <3"


class TestSmsResponder:
    """End-to-end webhook replies."""

    @pytest.mark.parametrize("body", ["help", "  MENU  ", "Help"])
    def test_help_skips_menu(self, body):
        provider = AsyncMock(return_value=MENU)
        twiml = asyncio.run(SmsResponder(provider).respond("+15550100", body))

        assert message_text(twiml) == HELP_MESSAGE
        provider.assert_not_awaited()

    def test_menu_failure_apologizes(self):
        provider = AsyncMock(side_effect=UpstreamFetchError("packages", 500))
        twiml = asyncio.run(SmsResponder(provider).respond("+15550100", "thc of gelato"))
        assert message_text(twiml) == ERROR_MESSAGE

    def test_answer(self):
        provider = AsyncMock(return_value=MENU)
        twiml = asyncio.run(SmsResponder(provider).respond("+15550100", "price of og kush"))
        assert message_text(twiml).startswith("OG Kush: $6 per unit")

    def test_empty_body(self):
        provider = AsyncMock(return_value=[])
        twiml = asyncio.run(SmsResponder(provider).respond(None, None))
        assert message_text(twiml).startswith("Sorry")


def completion(content=None, tool_calls=None):
    message = SimpleNamespace(content=content, tool_calls=tool_calls)
    return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def tool_call(name, arguments):
    return SimpleNamespace(function=SimpleNamespace(name=name, arguments=json.dumps(arguments)))


def fake_openai(result):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=result)
    return client


class TestChatAssistant:
    """OpenAI request construction and tool resolution."""

    def test_menu_context_skips_out_of_stock(self):
        menu = MENU + [menu_item("P9", "Gone", units=0)]
        context = build_menu_context(menu)
        assert [c["name"] for c in context] == [i.name for i in MENU]
        assert context[0]["thc"] == 27.46

    def test_system_prompt_embeds_menu(self):
        prompt = build_system_prompt(build_menu_context(MENU[:1]))
        assert '"name": "Gelato 33"' in prompt
        assert "B2B wholesale menu" in prompt

    def test_request(self):
        client = fake_openai(completion("We have Gelato 33."))
        assistant = ChatAssistant(AssistantSettings(model="gpt-test", max_tokens=500, temperature=0.7), client=client)

        reply = asyncio.run(assistant.reply("What flower do you have?", MENU))

        assert reply.response == "We have Gelato 33."
        assert reply.cart_actions == []
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["max_tokens"] == 500
        assert kwargs["temperature"] == 0.7
        assert kwargs["messages"][0]["role"] == "system"
        assert kwargs["messages"][1] == {"role": "user", "content": "What flower do you have?"}
        assert kwargs["tools"] == [ADD_TO_CART_TOOL]

    def test_without_cart_tool(self):
        client = fake_openai(completion("Hi"))
        assistant = ChatAssistant(AssistantSettings(), client=client, cart_tool=False)

        asyncio.run(assistant.reply("hello", MENU))

        assert "tools" not in client.chat.completions.create.await_args.kwargs

    def test_tool_calls_become_cart_actions(self):
        client = fake_openai(completion(None, [
            tool_call("add_to_cart", {"product_name": "og kush", "quantity": 2, "mode": "case"}),
            tool_call("add_to_cart", {"product_name": "blue dream", "quantity": 1}),
            tool_call("add_to_cart", {"product_name": "gelato 33", "quantity": 0}),
            tool_call("something_else", {}),
        ]))
        assistant = ChatAssistant(AssistantSettings(), client=client)

        reply = asyncio.run(assistant.reply("add 2 cases of og kush and a blue dream", MENU))

        assert len(reply.cart_actions) == 2
        added, missing = reply.cart_actions
        assert added["matched"] is True
        assert added["line"]["product_id"] == "P2"
        assert added["line"]["qtyCases"] == 2
        assert missing["matched"] is False
        assert reply.response == (
            'Added 2 cases of OG Kush to your cart. I couldn\'t find "blue dream" on the menu.'
        )

    def test_empty_completion(self):
        assistant = ChatAssistant(AssistantSettings(), client=fake_openai(completion("")))
        reply = asyncio.run(assistant.reply("hello", MENU))
        assert reply.response == FALLBACK_RESPONSE

    def test_missing_api_key(self):
        assistant = ChatAssistant(AssistantSettings(openai_api_key=None))
        with pytest.raises(ConfigurationError):
            asyncio.run(assistant.reply("hello", MENU))

    def test_parse_menu_data_skips_bad_rows(self):
        rows = [MENU[0].model_dump(), {"name": "no id"}]
        assert [i.product_id for i in parse_menu_data(rows)] == ["P1"]

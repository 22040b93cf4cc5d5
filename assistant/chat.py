"""Chat menu assistant.

Wraps an OpenAI chat completion with a system prompt embedding the current
menu. The model may call the ``add_to_cart`` tool; calls are resolved against
the same menu and returned to the client as structured cart actions.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import openai

from cart import Cart, add_to_cart
from core.config import AssistantSettings
from core.errors import ConfigurationError
from core.models import MenuItem
from core.observability.logging import get_logger
from core.observability.metrics import timed

logger = get_logger(__name__)

FALLBACK_RESPONSE = "I'm sorry, I couldn't process that request."

ADD_TO_CART_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": "add_to_cart",
        "description": "Add a quantity of a menu product to the customer's cart, by unit or by case.",
        "parameters": {
            "type": "object",
            "properties": {
                "product_name": {
                    "type": "string",
                    "description": "Product name as shown in the inventory",
                },
                "quantity": {
                    "type": "integer",
                    "minimum": 1,
                    "description": "How many units or cases to add",
                },
                "mode": {
                    "type": "string",
                    "enum": ["unit", "case"],
                    "description": "Whether quantity counts units or cases",
                },
            },
            "required": ["product_name", "quantity"],
        },
    },
}


def build_menu_context(menu: List[MenuItem]) -> List[Dict[str, Any]]:
    """Compact view of every item with stock, as embedded in the prompt."""
    return [
        {
            "name": item.name,
            "brand": item.brand,
            "category": item.category,
            "price_per_unit": item.price_per_unit,
            "price_per_case": item.price_per_case,
            "units": item.units,
            "cases_available": item.cases_available,
            "case_size": item.case_size,
            "thc": item.avg_thc_percentage,
            "unit_type": item.unit_type,
        }
        for item in menu
        if item.units > 0 or item.cases_available > 0
    ]


def build_system_prompt(menu_context: List[Dict[str, Any]], cart_tool: bool = False) -> str:
    ordering = (
        "- If the customer asks to add something to their cart, call the add_to_cart tool"
        if cart_tool
        else "- If asked about ordering, explain they can add items to cart from the main menu"
    )
    return f"""You are a knowledgeable cannabis budtender assistant for a B2B dispensary menu. Help customers find products, answer questions about inventory, effects, and pricing.

Complete Current Inventory (ALL available products with stock):
{json.dumps(menu_context, indent=2)}

Guidelines:
- Be friendly and professional
- Provide specific product recommendations when asked
- Include pricing information (per unit and per case)
- Mention available quantities (units and cases)
- Help with product categories: flower, edibles, concentrates, vapes, etc.
- Suggest products based on customer needs (pain relief, sleep, energy, etc.)
{ordering}
- Keep responses concise but informative
- If you don't see a specific product, suggest similar alternatives from available inventory

Remember: This is a B2B wholesale menu, so customers typically order in cases for retail resale."""


def parse_menu_data(rows: List[Dict[str, Any]]) -> List[MenuItem]:
    """Menu items sent by the client; malformed rows are skipped."""
    items = []
    for row in rows:
        try:
            items.append(MenuItem.model_validate(row))
        except ValueError as e:
            logger.warning(f"Skipping malformed menu row: {e}")
    return items


@dataclass
class ChatReply:
    response: str
    timestamp: str
    cart_actions: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response": self.response,
            "timestamp": self.timestamp,
            "cart_actions": self.cart_actions,
        }


class ChatAssistant:
    """Answers one customer message against a menu snapshot."""

    def __init__(
        self,
        settings: AssistantSettings,
        client: Optional[openai.AsyncOpenAI] = None,
        cart_tool: bool = True,
    ):
        self.settings = settings
        self.cart_tool = cart_tool
        self._client = client

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            if not self.settings.openai_api_key:
                raise ConfigurationError("Missing OPENAI_API_KEY", missing=["OPENAI_API_KEY"])
            self._client = openai.AsyncOpenAI(api_key=self.settings.openai_api_key, timeout=60.0)
        return self._client

    async def reply(self, message: str, menu: List[MenuItem]) -> ChatReply:
        menu_context = build_menu_context(menu)
        brands = sorted({item["brand"] for item in menu_context if item["brand"]})
        logger.info(f"Sending {len(menu_context)} products from {len(brands)} brands to the model")

        request: Dict[str, Any] = {
            "model": self.settings.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(menu_context, self.cart_tool)},
                {"role": "user", "content": message},
            ],
            "max_tokens": self.settings.max_tokens,
            "temperature": self.settings.temperature,
        }
        if self.cart_tool:
            request["tools"] = [ADD_TO_CART_TOOL]

        with timed("chat"):
            completion = await self.client.chat.completions.create(**request)

        choice = completion.choices[0].message if completion.choices else None
        actions = self._resolve_tool_calls(choice, menu) if choice is not None else []

        text = choice.content if choice is not None else None
        if not text:
            text = self._describe_actions(actions) or FALLBACK_RESPONSE

        return ChatReply(
            response=text,
            timestamp=datetime.now(timezone.utc).isoformat(),
            cart_actions=actions,
        )

    def _resolve_tool_calls(self, choice, menu: List[MenuItem]) -> List[Dict[str, Any]]:
        cart = Cart()
        actions = []
        for call in getattr(choice, "tool_calls", None) or []:
            if call.function.name != "add_to_cart":
                logger.warning(f"Ignoring unknown tool call: {call.function.name}")
                continue
            try:
                args = json.loads(call.function.arguments or "{}")
                action = add_to_cart(
                    cart,
                    menu,
                    product_ref=str(args.get("product_name", "")),
                    quantity=float(args.get("quantity", 1)),
                    mode=args.get("mode", "case"),
                )
            except (ValueError, TypeError) as e:
                logger.warning(f"Invalid add_to_cart arguments: {e}")
                continue
            actions.append(action.to_dict())
        return actions

    @staticmethod
    def _describe_actions(actions: List[Dict[str, Any]]) -> str:
        parts = []
        for action in actions:
            noun = "case" if action["mode"] == "case" else "unit"
            plural = "" if action["quantity"] == 1 else "s"
            if action["matched"]:
                parts.append(f"Added {action['quantity']} {noun}{plural} of {action['line']['name']} to your cart.")
            else:
                parts.append(f"I couldn't find \"{action['product_ref']}\" on the menu.")
        return " ".join(parts)

"""SMS menu assistant.

Answers inbound text messages about potency, stock and price from the live
menu. Replies are TwiML documents holding a single ``<Message>``.
"""

import re
from typing import Awaitable, Callable, List, Optional
from xml.sax.saxutils import escape

from core.models import MenuItem
from core.observability.logging import get_logger

logger = get_logger(__name__)

MenuProvider = Callable[[], Awaitable[List[MenuItem]]]

HELP_COMMANDS = ("help", "menu")
TOP_MATCHES = 3

HELP_MESSAGE = (
    "🌿 Cannabis Menu Assistant 🌿\n\n"
    "Text me questions like:\n"
    '• "THC of Gelato 33"\n'
    '• "How many cases of OG Kush"\n'
    '• "Price of Purple Punch"\n'
    '• "Tell me about Ice Cream Cake"\n'
    '• "Pressure Pack stock"\n\n'
    "I'll search our live inventory and give you current info!"
)

ERROR_MESSAGE = (
    "Sorry, I'm having trouble accessing the menu right now. "
    "Please try again in a moment or call the store directly."
)

FEATURES = [
    "THC percentage lookup",
    "Stock/inventory checking",
    "Price information",
    "Product search by name/brand",
    "Live inventory integration",
]

# First match wins; group 1 is the product query
QUERY_PATTERNS = [
    re.compile(r"(?:what's the thc|thc|thc%|thc percent) (?:of|for|on) (.+)"),
    re.compile(r"(?:how many|stock|inventory|available) (?:cases|units)? ?(?:of|for|on) (.+)"),
    re.compile(r"(?:price|cost|how much) (?:of|for|on) (.+)"),
    re.compile(r"(?:tell me about|info on|information about) (.+)"),
    re.compile(r"(.+) (?:thc|stock|price|info)"),
]


def is_help_command(message: str) -> bool:
    return message.strip().lower() in HELP_COMMANDS


def extract_product_query(message: str) -> str:
    """Product query from a message; the whole (lowercased) message if no phrase matches."""
    msg = message.lower()
    for pattern in QUERY_PATTERNS:
        match = pattern.search(msg)
        if match:
            return match.group(1).strip()
    return msg


def search_menu(menu: List[MenuItem], query: str) -> List[MenuItem]:
    """Items whose name, brand or category contains the query."""
    term = query.lower()
    return [
        item for item in menu
        if term in item.name.lower()
        or (item.brand and term in item.brand.lower())
        or (item.category and term in item.category.lower())
    ]


def _num(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _thc(item: MenuItem, suffix: str = "%", missing: str = "N/A") -> str:
    if not item.avg_thc_percentage:
        return missing
    return f"{item.avg_thc_percentage:.1f}{suffix}"


def _summary_lines(item: MenuItem) -> List[str]:
    return [
        f"Brand: {item.brand or 'N/A'}",
        f"THC: {_thc(item)}",
        f"Stock: {_num(item.units)} units ({item.cases_available} cases)",
        f"Price: ${_num(item.price_per_unit)}/unit, ${_num(item.price_per_case)}/case",
    ]


def format_matches(matches: List[MenuItem], query: str) -> str:
    reply = f'Found {len(matches)} products matching "{query}". Here are the top matches:\n\n'
    for index, item in enumerate(matches[:TOP_MATCHES], start=1):
        reply += f"{index}. {item.name}\n"
        reply += "".join(f"   {line}\n" for line in _summary_lines(item))
        reply += "\n"
    if len(matches) > TOP_MATCHES:
        reply += f"...and {len(matches) - TOP_MATCHES} more. Be more specific for exact matches."
    return reply


def format_single(item: MenuItem, message: str) -> str:
    """Detailed answer for one product, shaped by what the message asks about."""
    msg = message.lower()

    if "thc" in msg:
        return (
            f"{item.name} has {_thc(item, suffix='% THC', missing='THC info not available')}. "
            f"Stock: {_num(item.units)} units available. Price: ${_num(item.price_per_unit)}/unit."
        )

    if any(word in msg for word in ("stock", "available", "inventory")):
        return (
            f"{item.name}: {_num(item.units)} units in stock "
            f"({item.cases_available} full cases of {item.case_size}). "
            f"Price: ${_num(item.price_per_unit)}/unit, ${_num(item.price_per_case)}/case."
        )

    if any(word in msg for word in ("price", "cost", "how much")):
        return (
            f"{item.name}: ${_num(item.price_per_unit)} per unit, "
            f"${_num(item.price_per_case)} per case ({item.case_size} units/case). "
            f"{_num(item.units)} units available."
        )

    return (
        f"{item.name}\n" + "\n".join(_summary_lines(item)) + "\n\n"
        'Text specific questions like "THC of [product]" or "stock of [product]"'
    )


def generate_reply(message: str, menu: List[MenuItem]) -> str:
    query = extract_product_query(message)
    matches = search_menu(menu, query)

    if not matches:
        return (
            f'Sorry, I couldn\'t find any products matching "{query}". '
            'Try searching by product name, brand, or category. Text "help" for examples.'
        )
    if len(matches) > 1:
        return format_matches(matches, query)
    return format_single(matches[0], message)


def render_twiml(text: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<Response>\n"
        f"  <Message>{escape(text)}</Message>\n"
        "</Response>"
    )


class SmsResponder:
    """Turns an inbound SMS into a TwiML reply.

    Never raises: any failure loading the menu produces a fixed apology.
    """

    def __init__(self, menu_provider: MenuProvider):
        self.menu_provider = menu_provider

    async def respond(self, sender: Optional[str], body: Optional[str]) -> str:
        message = body or ""
        logger.info(f"SMS from {sender}: {message}")

        if is_help_command(message):
            return render_twiml(HELP_MESSAGE)

        try:
            menu = await self.menu_provider()
        except Exception as e:
            logger.error(f"SMS webhook error: {e}", exc_info=True)
            return render_twiml(ERROR_MESSAGE)

        logger.info(f"Loaded {len(menu)} products for SMS query")
        reply = generate_reply(message, menu)
        logger.debug(f"SMS response: {reply[:100]}")
        return render_twiml(reply)

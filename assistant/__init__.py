"""Conversational front ends over the menu: chat and SMS."""

from assistant.chat import ChatAssistant, ChatReply, build_menu_context, build_system_prompt, parse_menu_data
from assistant.sms import SmsResponder, generate_reply, render_twiml

__all__ = [
    "ChatAssistant",
    "ChatReply",
    "build_menu_context",
    "build_system_prompt",
    "parse_menu_data",
    "SmsResponder",
    "generate_reply",
    "render_twiml",
]

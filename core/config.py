"""Storefront configuration.

Builds an explicit ``StorefrontConfig`` once at startup from the environment
(and a ``.env`` file beside the repo root, if present). The config object is
then passed into the ERP connector and the aggregation services; nothing in
the core reads environment variables directly.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from dotenv import load_dotenv

from core.errors import ConfigurationError


REPO_ROOT = Path(__file__).resolve().parents[1]

# Distru returns ~25 rows per page; used by the end-of-data heuristic
DEFAULT_PAGE_SIZE = 25

DEFAULT_PAGE_BUDGETS: Dict[str, int] = {
    "packages": 10,
    "products": 10,
    "companies": 10,
    "users": 10,
    "orders": 5,
    "order_pulling": 10,
}


@dataclass
class DistruSettings:
    """Connection settings for the Distru ERP API."""
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    location_id: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE
    timeout_seconds: int = 30
    page_budgets: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_PAGE_BUDGETS))

    def max_pages(self, resource: str) -> int:
        """Page budget for a resource (falls back to 10)."""
        return self.page_budgets.get(resource, 10)


@dataclass
class AssistantSettings:
    """Settings for the chat assistant's language model."""
    openai_api_key: Optional[str] = None
    model: str = "gpt-3.5-turbo"
    max_tokens: int = 500
    temperature: float = 0.7


@dataclass
class StorefrontConfig:
    """Top-level service configuration."""
    distru: DistruSettings = field(default_factory=DistruSettings)
    assistant: AssistantSettings = field(default_factory=AssistantSettings)
    app_name: str = "Wholesale Storefront"
    order_dedup_window_seconds: int = 60
    log_level: int = logging.INFO
    log_json: bool = False

    def missing_settings(self, require_location: bool = True) -> List[str]:
        """Names of required settings that are not set."""
        missing = []
        if not self.distru.base_url:
            missing.append("DISTRU_BASE_URL")
        if not self.distru.api_key:
            missing.append("DISTRU_API_KEY")
        if require_location and not self.distru.location_id:
            missing.append("DISTRU_LOCATION_ID")
        return missing

    def validate(self, require_location: bool = True) -> None:
        """Raise ConfigurationError if required ERP settings are missing."""
        missing = self.missing_settings(require_location)
        if missing:
            raise ConfigurationError(
                f"Missing required configuration: {', '.join(missing)}",
                missing=missing,
            )

    def resolve_location(self, override: Optional[str] = None) -> str:
        """Location for a request: explicit override, else the configured default."""
        location_id = override or self.distru.location_id
        if not location_id:
            raise ConfigurationError(
                "Missing env or location parameter",
                missing=["DISTRU_LOCATION_ID"],
            )
        return location_id

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StorefrontConfig":
        """Build the config from environment variables.

        When ``environ`` is omitted, a ``.env`` file at the repo root is loaded
        first (without overriding variables that are already set).
        """
        if environ is None:
            env_path = REPO_ROOT / ".env"
            if env_path.exists():
                load_dotenv(env_path)
            environ = os.environ

        budgets = dict(DEFAULT_PAGE_BUDGETS)
        for resource in budgets:
            raw = environ.get(f"DISTRU_MAX_PAGES_{resource.upper()}")
            if raw:
                budgets[resource] = _parse_int(raw, f"DISTRU_MAX_PAGES_{resource.upper()}")

        distru = DistruSettings(
            base_url=(environ.get("DISTRU_BASE_URL") or "").rstrip("/") or None,
            api_key=environ.get("DISTRU_API_KEY") or None,
            location_id=environ.get("DISTRU_LOCATION_ID") or None,
            page_size=_parse_int(environ.get("DISTRU_PAGE_SIZE"), "DISTRU_PAGE_SIZE", DEFAULT_PAGE_SIZE),
            timeout_seconds=_parse_int(environ.get("DISTRU_TIMEOUT_SECONDS"), "DISTRU_TIMEOUT_SECONDS", 30),
            page_budgets=budgets,
        )

        assistant = AssistantSettings(
            openai_api_key=environ.get("OPENAI_API_KEY") or None,
            model=environ.get("OPENAI_MODEL") or "gpt-3.5-turbo",
            max_tokens=_parse_int(environ.get("OPENAI_MAX_TOKENS"), "OPENAI_MAX_TOKENS", 500),
            temperature=_parse_float(environ.get("OPENAI_TEMPERATURE"), "OPENAI_TEMPERATURE", 0.7),
        )

        level_name = (environ.get("LOG_LEVEL") or "INFO").upper()

        return cls(
            distru=distru,
            assistant=assistant,
            app_name=environ.get("APP_NAME") or "Wholesale Storefront",
            order_dedup_window_seconds=_parse_int(
                environ.get("ORDER_DEDUP_WINDOW_SECONDS"), "ORDER_DEDUP_WINDOW_SECONDS", 60
            ),
            log_level=getattr(logging, level_name, logging.INFO),
            log_json=(environ.get("LOG_JSON") or "").lower() in ("1", "true", "yes"),
        )


def _parse_int(raw: Optional[str], name: str, default: int = 0) -> int:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", missing=[name])


def _parse_float(raw: Optional[str], name: str, default: float = 0.0) -> float:
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", missing=[name])

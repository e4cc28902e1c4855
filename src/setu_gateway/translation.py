"""
Voice-to-catalog translation for setu-gateway.

TranslationEngine makes one completion call and validates the result.
TranslationController wraps it with an availability check, bounded retries
with exponential backoff, and a static fallback catalog, so callers always
get a usable CatalogItem back.
"""

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from . import lexicon
from .config import GatewayConfig, TranslationConfig
from .errors import SetuError, TranslationError, ValidationError
from .llm import CompletionClient, make_client
from .schema import CATALOG_ITEM_JSON_SCHEMA, CatalogItem, validate

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

# Substituted whenever translation is unavailable or exhausted
FALLBACK_CATALOG: CatalogItem = validate(
    {
        "descriptor": {"name": "Fresh Produce", "symbol": lexicon.DEFAULT_COMMODITY_ICON},
        "price": {"value": 0, "currency": "INR"},
        "quantity": {"available": {"count": 0}, "unit": "kg"},
        "tags": {"perishability": "medium", "logistics_provider": "India Post"},
    }
)


def build_prompt(voice_text: str) -> str:
    """Build the completion prompt for a farmer's spoken offer."""
    return f"""You are a translation agent for a voice-to-catalog gateway for farmers. Convert the vernacular voice command below into a catalog item.

Voice Input: "{voice_text}"

Extract ONLY the information explicitly mentioned in the voice input. Do NOT guess or estimate values.

1. Product Name: map it to the canonical English name (e.g., "Aloo" -> "Potatoes"). Prefix the region when one is mentioned (e.g., "Nasik Onions").
2. Quality Grade: include it only if mentioned.
3. Quantity: extract the count and unit (kg, quintal, ton, crate, ...).
4. Price: extract the price per unit. If "market price" or not mentioned, use 0.
5. Currency is always "INR".
6. Symbol: use "/icons/{{commodity}}.png" for a known commodity, otherwise "/icons/default.png".
7. Perishability: one of "low", "medium", "high", based on the commodity type.

Vocabulary:
{lexicon.prompt_hints(voice_text)}

Generate the catalog item based ONLY on the evidence in the text."""


def _missing(data: dict[str, Any], key: str) -> bool:
    return data.get(key) is None


def _section(data: dict[str, Any], key: str) -> Any:
    if data.get(key) is None:
        data[key] = {}
    return data[key]


def recover_omitted_fields(raw: dict[str, Any], voice_text: str) -> dict[str, Any]:
    """
    Fill fields the completion omitted from a lexical scan of the input.

    Only keys that are absent (or null) are filled. Values the completion
    did produce are left alone, even if they will fail validation.
    """
    found = lexicon.scan(voice_text)
    data = copy.deepcopy(raw)

    descriptor = _section(data, "descriptor")
    price = _section(data, "price")
    quantity = _section(data, "quantity")
    tags = _section(data, "tags")
    if not all(isinstance(s, dict) for s in (descriptor, price, quantity, tags)):
        return raw
    available = _section(quantity, "available")
    if not isinstance(available, dict):
        return raw

    if _missing(descriptor, "name") and found.product_name:
        descriptor["name"] = found.product_name
    if _missing(descriptor, "symbol") and isinstance(descriptor.get("name"), str):
        descriptor["symbol"] = lexicon.commodity_icon(descriptor["name"])
    if _missing(price, "value") and found.price is not None:
        price["value"] = found.price
    if found.quantity:
        count, unit = found.quantity
        if _missing(available, "count"):
            available["count"] = count
        if _missing(quantity, "unit"):
            quantity["unit"] = unit
    if _missing(tags, "grade") and found.grade:
        tags["grade"] = found.grade

    return data


class TranslationEngine:
    """Single-attempt translation through a completion client."""

    def __init__(self, client: CompletionClient, lexical_recovery: bool = True):
        self.client = client
        self.lexical_recovery = lexical_recovery

    async def translate(self, voice_text: str) -> CatalogItem:
        """
        Translate voice text into a CatalogItem with one completion call.

        Raises:
            TranslationError: the call failed, or its result did not pass
                validation
        """
        logger.debug(f"Translating via {self.client.name}: {voice_text!r}")
        prompt = build_prompt(voice_text)

        try:
            raw = await self.client.complete(prompt, CATALOG_ITEM_JSON_SCHEMA)
        except TranslationError:
            raise
        except Exception as e:
            raise TranslationError(f"completion call failed: {e}") from e

        if not isinstance(raw, dict):
            raise TranslationError(f"completion returned {type(raw).__name__}, expected object")

        if self.lexical_recovery:
            raw = recover_omitted_fields(raw, voice_text)

        try:
            return validate(raw)
        except ValidationError as e:
            raise TranslationError(f"completion failed validation: {e}") from e


class TranslationController:
    """
    Public entry point for translation.

    Never raises for translation problems: returns the fallback catalog
    when the completion capability is unavailable or every attempt fails.
    """

    def __init__(
        self,
        config: GatewayConfig,
        client: CompletionClient | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the controller.

        Args:
            config: Gateway configuration
            client: Completion client; built from config.llm when omitted
            sleep: Awaitable used for backoff waits (swap for a fake clock in tests)
        """
        self.policy: TranslationConfig = config.translation
        self.sleep = sleep

        if client is None:
            client = make_client(config.llm)
        self.engine: TranslationEngine | None = (
            TranslationEngine(client, self.policy.lexical_recovery) if client else None
        )

    @property
    def available(self) -> bool:
        return self.engine is not None

    async def translate_with_fallback(self, voice_text: str) -> CatalogItem:
        """Translate voice text, retrying with backoff, never failing."""
        if self.engine is None:
            logger.warning("Completion capability not configured, using fallback catalog")
            return FALLBACK_CATALOG

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=wait_exponential(
                multiplier=self.policy.base_delay_seconds,
                exp_base=self.policy.backoff_factor,
            ),
            sleep=self.sleep,
            before=self._log_attempt,
            before_sleep=self._log_failure,
            retry_error_callback=self._give_up,
        )
        item = await retrying(self.engine.translate, voice_text)
        if item is not FALLBACK_CATALOG:
            logger.info(
                f"Translation succeeded on attempt {retrying.statistics['attempt_number']}"
            )
        return item

    def _log_attempt(self, retry_state: RetryCallState) -> None:
        logger.info(
            f"Translation attempt {retry_state.attempt_number}/{self.policy.max_attempts}"
        )

    def _log_failure(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        message = (
            f"Translation attempt {retry_state.attempt_number}/{self.policy.max_attempts} "
            f"failed: {error}"
        )
        if isinstance(error, SetuError):
            logger.warning(message)
        else:
            logger.warning(message, exc_info=error)

        if retry_state.next_action is not None:
            logger.debug(f"Backing off {retry_state.next_action.sleep}s")

    def _give_up(self, retry_state: RetryCallState) -> CatalogItem:
        self._log_failure(retry_state)
        logger.warning("All translation attempts failed, using fallback catalog")
        return FALLBACK_CATALOG


async def translate_with_fallback(
    voice_text: str,
    config: GatewayConfig | None = None,
    client: CompletionClient | None = None,
    sleep: Sleep = asyncio.sleep,
) -> CatalogItem:
    """Convenience wrapper around TranslationController."""
    controller = TranslationController(config or GatewayConfig(), client=client, sleep=sleep)
    return await controller.translate_with_fallback(voice_text)

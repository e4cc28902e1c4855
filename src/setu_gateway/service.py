"""
Gateway actions for setu-gateway.

Each action wraps one user-facing operation (translate, save, broadcast,
list logs) and reports its outcome as an ActionResult instead of raising,
so HTTP and CLI front ends can render failures directly.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .config import GatewayConfig
from .errors import NotFoundError, PersistenceError, ValidationError
from .llm import CompletionClient
from .models import GatewayDatabase, NetworkLogType
from .schema import CatalogItem, validate
from .simulator import BroadcastSimulator, validate_catalog_for_broadcast
from .translation import TranslationController

logger = logging.getLogger(__name__)

MIN_VOICE_TEXT_LENGTH = 10


class ActionError(str, Enum):
    """Why an action failed."""

    INVALID = "invalid"
    NOT_FOUND = "not_found"
    NOT_READY = "not_ready"
    STORE = "store"


@dataclass
class ActionResult:
    """Result from a gateway action."""

    success: bool
    message: str | None = None
    data: dict[str, Any] | None = None
    error: ActionError | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {"success": self.success}
        if self.message:
            result["message"] = self.message
        if self.error is not None:
            result["error"] = self.error.value
        if self.data is not None:
            result.update(self.data)
        return result


class GatewayService:
    """
    The gateway's user-facing operations.

    Wires the translation controller, the store and the broadcast simulator
    together.
    """

    def __init__(
        self,
        config: GatewayConfig,
        db: GatewayDatabase,
        translator: TranslationController | None = None,
        simulator: BroadcastSimulator | None = None,
        client: CompletionClient | None = None,
    ):
        """
        Initialize the service.

        Args:
            config: Gateway configuration
            db: Database operations
            translator: Optional TranslationController (for testing)
            simulator: Optional BroadcastSimulator (for testing)
            client: Optional completion client used when building the translator
        """
        self.config = config
        self.db = db
        self.translator = translator or TranslationController(config, client=client)
        self.simulator = simulator or BroadcastSimulator(db, config.simulator)

    async def translate_voice(self, voice_text: str | None) -> ActionResult:
        """Translate voice text into a catalog item."""
        text = (voice_text or "").strip()
        if not text:
            return ActionResult(
                success=False, message="Voice text cannot be empty", error=ActionError.INVALID
            )
        if len(text) < MIN_VOICE_TEXT_LENGTH:
            return ActionResult(
                success=False,
                message="Voice text is too short. Please provide more details.",
                error=ActionError.INVALID,
            )

        logger.info(f"Translating voice input: {text!r}")
        item = await self.translator.translate_with_fallback(text)
        return ActionResult(
            success=True,
            message="Translation complete",
            data={"catalog": item.to_dict()},
        )

    def save_catalog(self, farmer_id: str | None, catalog: Any) -> ActionResult:
        """Store a catalog for a farmer with DRAFT status."""
        if not farmer_id or not farmer_id.strip():
            return ActionResult(
                success=False, message="Farmer ID is required", error=ActionError.INVALID
            )

        try:
            item: CatalogItem = validate(catalog)
        except ValidationError as e:
            return ActionResult(
                success=False,
                message=f"Invalid catalog: {e}",
                data={"errors": [{"path": f.path, "message": f.message} for f in e.errors]},
                error=ActionError.INVALID,
            )

        try:
            if self.db.get_farmer(farmer_id) is None:
                return ActionResult(
                    success=False, message="Farmer not found", error=ActionError.NOT_FOUND
                )

            catalog_id = self.db.save_catalog(farmer_id, item)
        except PersistenceError as e:
            logger.exception(f"Saving catalog for farmer {farmer_id} failed")
            return ActionResult(
                success=False,
                message=f"Could not save catalog: {e}",
                error=ActionError.STORE,
            )

        logger.info(f"Catalog {catalog_id} saved for farmer {farmer_id}")
        return ActionResult(
            success=True,
            message="Catalog saved",
            data={"catalog_id": catalog_id},
        )

    def get_catalog(self, catalog_id: str | None) -> ActionResult:
        """Fetch a catalog by ID."""
        if not catalog_id or not catalog_id.strip():
            return ActionResult(
                success=False, message="Catalog ID is required", error=ActionError.INVALID
            )

        try:
            record = self.db.get_catalog(catalog_id)
        except PersistenceError as e:
            return ActionResult(
                success=False,
                message=f"Could not fetch catalog: {e}",
                error=ActionError.STORE,
            )

        if record is None:
            return ActionResult(
                success=False, message="Catalog not found", error=ActionError.NOT_FOUND
            )
        return ActionResult(success=True, data={"catalog": record.to_dict()})

    def get_catalogs_by_farmer(self, farmer_id: str | None) -> ActionResult:
        """Fetch all catalogs of a farmer, newest first."""
        if not farmer_id or not farmer_id.strip():
            return ActionResult(
                success=False, message="Farmer ID is required", error=ActionError.INVALID
            )

        try:
            records = self.db.get_catalogs_by_farmer(farmer_id)
        except PersistenceError as e:
            return ActionResult(
                success=False,
                message=f"Could not fetch catalogs: {e}",
                error=ActionError.STORE,
            )

        logger.info(f"Found {len(records)} catalogs for farmer {farmer_id}")
        return ActionResult(success=True, data={"catalogs": [r.to_dict() for r in records]})

    async def broadcast_catalog(self, catalog_id: str | None) -> ActionResult:
        """
        Broadcast a catalog and wait for the simulated buyer response.

        Flow:
        1. Mark the catalog BROADCASTED
        2. Log an OUTGOING_CATALOG entry
        3. Run the broadcast simulator and return its bid
        """
        if not catalog_id or not catalog_id.strip():
            return ActionResult(
                success=False, message="Catalog ID is required", error=ActionError.INVALID
            )

        try:
            record = self.db.get_catalog(catalog_id)
            if record is None:
                return ActionResult(
                    success=False, message="Catalog not found", error=ActionError.NOT_FOUND
                )

            try:
                item = record.item
            except (ValueError, ValidationError) as e:
                return ActionResult(
                    success=False,
                    message=f"Stored catalog is unreadable: {e}",
                    error=ActionError.STORE,
                )

            problems = validate_catalog_for_broadcast(item)
            if problems:
                return ActionResult(
                    success=False,
                    message="Catalog is not ready for broadcast: " + "; ".join(problems),
                    error=ActionError.NOT_READY,
                )

            self.db.mark_broadcasted(catalog_id)
            self.db.append_log(
                NetworkLogType.OUTGOING_CATALOG,
                {
                    "catalog_id": record.id,
                    "farmer_id": record.farmer_id,
                    "item": item.to_dict(),
                    "timestamp": datetime.now(UTC).isoformat(),
                },
            )
            logger.info(f"Catalog {catalog_id} broadcast to network")

            bid = await self.simulator.simulate_broadcast(catalog_id)

        except NotFoundError as e:
            return ActionResult(success=False, message=str(e), error=ActionError.NOT_FOUND)
        except PersistenceError as e:
            logger.exception(f"Broadcast of catalog {catalog_id} failed")
            return ActionResult(
                success=False, message=f"Broadcast failed: {e}", error=ActionError.STORE
            )

        return ActionResult(
            success=True,
            message=f"{bid.buyer_name} bid {bid.bid_amount}",
            data={"bid": bid.to_dict()},
        )

    def get_network_logs(
        self,
        log_filter: str | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> ActionResult:
        """
        List network log entries, newest first.

        Args:
            log_filter: "ALL", "OUTGOING_CATALOG" or "INCOMING_BID"; anything
                else is treated as "ALL"
            page: 1-indexed page number
            page_size: Entries per page
        """
        log_type = None
        if log_filter and log_filter in NetworkLogType.__members__:
            log_type = NetworkLogType[log_filter]

        try:
            result = self.db.get_network_logs(log_type, page=page, page_size=page_size)
        except PersistenceError as e:
            return ActionResult(
                success=False,
                message=f"Could not fetch network logs: {e}",
                error=ActionError.STORE,
            )

        logger.info(
            f"Found {len(result.logs)} logs (total: {result.total_count}, "
            f"pages: {result.total_pages})"
        )
        return ActionResult(success=True, data=result.to_dict())

"""Tests for the gateway actions."""

import json
import random
import sqlite3

import pytest

from setu_gateway.config import GatewayConfig, SimulatorConfig
from setu_gateway.errors import TranslationError
from setu_gateway.llm import CompletionClient
from setu_gateway.models import NetworkLogType
from setu_gateway.schema import validate
from setu_gateway.service import ActionError, ActionResult, GatewayService
from setu_gateway.simulator import BroadcastSimulator
from setu_gateway.translation import FALLBACK_CATALOG, TranslationController


class StaticClient(CompletionClient):
    """Completion client that always returns the same answer."""

    name = "static"

    def __init__(self, answer):
        self.answer = answer
        self.calls = 0

    async def complete(self, prompt, schema):
        self.calls += 1
        if isinstance(self.answer, Exception):
            raise self.answer
        return self.answer


async def no_wait(seconds):
    return None


@pytest.fixture
def make_service(db_path, db, onion_offer):
    def _make(answer=None):
        config = GatewayConfig(db_path=db_path)
        client = StaticClient(onion_offer if answer is None else answer)
        return GatewayService(
            config,
            db,
            translator=TranslationController(config, client=client, sleep=no_wait),
            simulator=BroadcastSimulator(
                db, SimulatorConfig(delay_seconds=0), rng=random.Random(1), sleep=no_wait
            ),
        )

    return _make


class TestActionResult:
    def test_to_dict_merges_data(self):
        result = ActionResult(success=True, message="ok", data={"catalog_id": "c1"})
        assert result.to_dict() == {"success": True, "message": "ok", "catalog_id": "c1"}

    def test_to_dict_minimal(self):
        assert ActionResult(success=False).to_dict() == {"success": False}

    def test_to_dict_carries_error_kind(self):
        result = ActionResult(
            success=False, message="Catalog not found", error=ActionError.NOT_FOUND
        )
        assert result.to_dict() == {
            "success": False,
            "message": "Catalog not found",
            "error": "not_found",
        }


class TestTranslateVoice:
    """Test the translate action."""

    async def test_translates(self, make_service):
        result = await make_service().translate_voice("Nasik ka pyaaz 500 kilo 40 rupaye")

        assert result.success is True
        assert result.data["catalog"]["descriptor"]["name"] == "Nasik Onions"

    @pytest.mark.parametrize("text", [None, "", "   "])
    async def test_empty(self, make_service, text):
        result = await make_service().translate_voice(text)

        assert result.success is False
        assert result.message == "Voice text cannot be empty"

    async def test_too_short(self, make_service):
        result = await make_service().translate_voice("pyaaz")

        assert result.success is False
        assert "too short" in result.message

    async def test_failures_give_fallback(self, make_service):
        """Translation problems are not action failures."""
        service = make_service(TranslationError("down"))

        result = await service.translate_voice("Nasik ka pyaaz 500 kilo 40 rupaye")

        assert result.success is True
        assert result.data["catalog"] == FALLBACK_CATALOG.to_dict()

    async def test_unavailable_gives_fallback(self, db_path, db, no_api_key):
        service = GatewayService(GatewayConfig(db_path=db_path), db)

        result = await service.translate_voice("Nasik ka pyaaz 500 kilo 40 rupaye")

        assert result.data["catalog"] == FALLBACK_CATALOG.to_dict()


class TestSaveCatalog:
    """Test the save action."""

    def test_saves_draft(self, make_service, db, farmer, onion_offer):
        result = make_service().save_catalog(farmer.id, onion_offer)

        assert result.success is True
        record = db.get_catalog(result.data["catalog_id"])
        assert record.status == "DRAFT"
        assert record.item == validate(onion_offer)

    def test_missing_farmer_id(self, make_service, onion_offer):
        result = make_service().save_catalog("", onion_offer)
        assert result.message == "Farmer ID is required"

    def test_unknown_farmer(self, make_service, onion_offer):
        result = make_service().save_catalog("nobody", onion_offer)
        assert result.success is False
        assert result.message == "Farmer not found"
        assert result.error is ActionError.NOT_FOUND

    def test_invalid_catalog(self, make_service, db, farmer, onion_offer):
        """An invalid catalog is rejected and nothing is stored."""
        bad = dict(onion_offer, price={"value": -5})

        result = make_service().save_catalog(farmer.id, bad)

        assert result.success is False
        assert result.message.startswith("Invalid catalog")
        assert result.error is ActionError.INVALID
        assert result.data["errors"][0]["path"] == "price.value"
        assert db.get_catalogs_by_farmer(farmer.id) == []

    @pytest.mark.parametrize("value", [1e26, 10**400])
    def test_price_over_ceiling_rejected(self, make_service, db, farmer, onion_offer, value):
        result = make_service().save_catalog(farmer.id, dict(onion_offer, price={"value": value}))

        assert result.error is ActionError.INVALID
        assert result.data["errors"][0]["path"] == "price.value"
        assert db.get_catalogs_by_farmer(farmer.id) == []


class TestGetCatalogs:
    def test_get_catalog(self, make_service, farmer, onion_offer):
        service = make_service()
        catalog_id = service.save_catalog(farmer.id, onion_offer).data["catalog_id"]

        result = service.get_catalog(catalog_id)

        assert result.success is True
        assert result.data["catalog"]["id"] == catalog_id

    def test_get_missing_catalog(self, make_service):
        result = make_service().get_catalog("missing")
        assert result.message == "Catalog not found"
        assert result.error is ActionError.NOT_FOUND

    def test_by_farmer(self, make_service, farmer, onion_offer):
        service = make_service()
        service.save_catalog(farmer.id, onion_offer)
        service.save_catalog(farmer.id, onion_offer)

        result = service.get_catalogs_by_farmer(farmer.id)

        assert len(result.data["catalogs"]) == 2


class TestBroadcastCatalog:
    """Test the broadcast action."""

    async def test_broadcast(self, make_service, db, farmer, onion_offer):
        """Broadcast marks the catalog, logs it and returns a bid."""
        service = make_service()
        catalog_id = service.save_catalog(farmer.id, onion_offer).data["catalog_id"]

        result = await service.broadcast_catalog(catalog_id)

        assert result.success is True
        assert 36.0 <= result.data["bid"]["bid_amount"] <= 44.0
        assert db.get_catalog(catalog_id).status == "BROADCASTED"

        outgoing = db.get_network_logs(NetworkLogType.OUTGOING_CATALOG).logs
        assert len(outgoing) == 1
        assert outgoing[0].payload["catalog_id"] == catalog_id
        assert outgoing[0].payload["item"]["price"]["value"] == 40
        assert db.get_network_logs(NetworkLogType.INCOMING_BID).total_count == 1

    async def test_missing_catalog(self, make_service, db):
        result = await make_service().broadcast_catalog("missing")

        assert result.success is False
        assert result.error is ActionError.NOT_FOUND
        assert result.message == "Catalog not found"
        assert db.get_network_logs().total_count == 0

    async def test_not_ready(self, make_service, db, farmer):
        """The fallback catalog (price 0) can't be broadcast."""
        service = make_service()
        catalog_id = service.save_catalog(farmer.id, FALLBACK_CATALOG.to_dict()).data[
            "catalog_id"
        ]

        result = await service.broadcast_catalog(catalog_id)

        assert result.success is False
        assert "not ready for broadcast" in result.message
        assert result.error is ActionError.NOT_READY
        assert db.get_catalog(catalog_id).status == "DRAFT"

    async def test_oversized_stored_price_not_broadcast(
        self, make_service, db, db_path, farmer, onion_offer
    ):
        """A stored price beyond the ceiling fails before anything is marked or logged."""
        service = make_service()
        catalog_id = service.save_catalog(farmer.id, onion_offer).data["catalog_id"]
        oversized = dict(onion_offer, price={"value": 1e26, "currency": "INR"})
        conn = sqlite3.connect(db_path)
        try:
            conn.execute(
                "UPDATE catalogs SET item_json = ? WHERE id = ?",
                (json.dumps(oversized), catalog_id),
            )
            conn.commit()
        finally:
            conn.close()

        result = await service.broadcast_catalog(catalog_id)

        assert result.success is False
        assert result.error is ActionError.STORE
        assert db.get_catalog(catalog_id).status == "DRAFT"
        assert db.get_network_logs().total_count == 0


class TestNetworkLogs:
    """Test the log listing action."""

    def test_filter(self, make_service, db):
        db.append_log(NetworkLogType.OUTGOING_CATALOG, {})
        db.append_log(NetworkLogType.INCOMING_BID, {})

        service = make_service()

        assert service.get_network_logs("ALL").data["total_count"] == 2
        assert service.get_network_logs("INCOMING_BID").data["total_count"] == 1
        assert service.get_network_logs("OUTGOING_CATALOG").data["total_count"] == 1

    def test_unknown_filter_means_all(self, make_service, db):
        db.append_log(NetworkLogType.OUTGOING_CATALOG, {})
        db.append_log(NetworkLogType.INCOMING_BID, {})

        assert make_service().get_network_logs("BOGUS").data["total_count"] == 2

    def test_pagination_fields(self, make_service, db):
        for _ in range(12):
            db.append_log(NetworkLogType.INCOMING_BID, {})

        data = make_service().get_network_logs(page=2).data

        assert data["total_pages"] == 2
        assert data["current_page"] == 2
        assert len(data["logs"]) == 2

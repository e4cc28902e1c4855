"""Shared pytest fixtures for setu-gateway tests."""

import pytest
from datasette.app import Datasette

from setu_gateway.migrations import run_migrations
from setu_gateway.models import GatewayDatabase


@pytest.fixture
def db_path(tmp_path):
    """Create a temporary database with full schema via migrations.

    This is the canonical way to get a test database - uses the same
    migration system as production.
    """
    db_file = tmp_path / "test_setu.db"
    run_migrations(db_file, verbose=False)
    return db_file


@pytest.fixture
def db(db_path):
    """Database operations bound to the temporary database."""
    return GatewayDatabase(db_path)


@pytest.fixture
def farmer(db):
    """A farmer to own catalogs."""
    return db.create_farmer(
        "राजेश पाटिल",
        location_lat_long="19.0760,72.8777",
        upi_id="rajesh.patil@paytm",
        farmer_id="farmer-1",
    )


@pytest.fixture
def onion_offer():
    """A catalog item in wire shape."""
    return {
        "descriptor": {"name": "Nasik Onions", "symbol": "/icons/onion.png"},
        "price": {"value": 40, "currency": "INR"},
        "quantity": {"available": {"count": 500}, "unit": "kg"},
        "tags": {"grade": "A", "perishability": "medium"},
    }


@pytest.fixture
def no_api_key(monkeypatch):
    """Make sure no completion provider key leaks in from the environment."""
    monkeypatch.delenv("GOOGLE_GENERATIVE_AI_API_KEY", raising=False)


@pytest.fixture
def datasette(db_path, no_api_key):
    """Create a Datasette instance with the plugin configured.

    Uses config= (not metadata=) for Datasette v1 compatibility. The
    simulator delay is zero so broadcasts resolve immediately.
    """
    return Datasette(
        [str(db_path)],
        config={
            "plugins": {
                "datasette-setu": {
                    "db_path": str(db_path),
                    "simulator": {"delay_seconds": 0},
                }
            },
        },
    )

#!/usr/bin/env python3
"""Initialize the setu-gateway database with all migrations, optionally seeded."""

import argparse
from pathlib import Path

from setu_gateway.migrations import get_current_version, list_tables, run_migrations
from setu_gateway.models import CatalogStatus, GatewayDatabase, NetworkLogType
from setu_gateway.schema import validate

SAMPLE_FARMERS = [
    {
        "farmer_id": "farmer-1",
        "name": "राजेश पाटिल",
        "location_lat_long": "19.0760,72.8777",
        "language_pref": "hi",
        "upi_id": "rajesh.patil@paytm",
    },
    {
        "farmer_id": "farmer-2",
        "name": "सुनीता देशमुख",
        "location_lat_long": "18.5204,73.8567",
        "language_pref": "mr",
        "upi_id": "sunita.deshmukh@upi",
    },
]

SAMPLE_CATALOGS = [
    (
        "catalog-1",
        "farmer-1",
        CatalogStatus.BROADCASTED,
        {
            "descriptor": {"name": "Nasik Onions", "symbol": "/icons/onion.png"},
            "price": {"value": 40, "currency": "INR"},
            "quantity": {"available": {"count": 500}, "unit": "kg"},
            "tags": {"grade": "A", "perishability": "medium", "logistics_provider": "India Post"},
        },
    ),
    (
        "catalog-2",
        "farmer-2",
        CatalogStatus.DRAFT,
        {
            "descriptor": {"name": "Alphonso Mangoes", "symbol": "/icons/mango.png"},
            "price": {"value": 150, "currency": "INR"},
            "quantity": {"available": {"count": 20}, "unit": "crate"},
            "tags": {
                "grade": "Premium",
                "perishability": "high",
                "logistics_provider": "Delhivery",
            },
        },
    ),
]

SAMPLE_BIDS = [
    ("Reliance Fresh", 38.5),
    ("BigBasket", 42.0),
]


def seed(db_path: Path) -> None:
    """Insert sample farmers, catalogs and network log entries."""
    db = GatewayDatabase(db_path)

    for farmer in SAMPLE_FARMERS:
        if db.get_farmer(farmer["farmer_id"]) is None:
            db.create_farmer(**farmer)
    print(f"  Farmers: {', '.join(f['name'] for f in SAMPLE_FARMERS)}")

    created = []
    for catalog_id, farmer_id, status, item in SAMPLE_CATALOGS:
        if db.get_catalog(catalog_id) is None:
            db.save_catalog(farmer_id, validate(item), status=status, catalog_id=catalog_id)
            created.append(catalog_id)
    print(f"  Catalogs: {', '.join(c[0] for c in SAMPLE_CATALOGS)}")

    # Sample logs belong to catalog-1 and are written once
    if SAMPLE_CATALOGS[0][0] not in created:
        return

    catalog_id, farmer_id, _, item = SAMPLE_CATALOGS[0]
    db.append_log(
        NetworkLogType.OUTGOING_CATALOG,
        {"catalog_id": catalog_id, "farmer_id": farmer_id, "item": validate(item).to_dict()},
    )
    for buyer_name, bid_amount in SAMPLE_BIDS:
        db.append_log(
            NetworkLogType.INCOMING_BID,
            {"buyer_name": buyer_name, "bid_amount": bid_amount, "catalog_id": catalog_id},
        )
    print(f"  Network logs: 1 outgoing catalog, {len(SAMPLE_BIDS)} bids")


def init_db(db_path: Path, with_seed: bool = False) -> None:
    """Create the database by running migrations and optionally seed it."""
    print(f"Initializing database: {db_path}")

    print("Running migrations...")
    applied = run_migrations(db_path, verbose=True)
    if applied:
        print(f"Applied {len(applied)} migration(s).")

    if with_seed:
        print("Seeding sample data...")
        seed(db_path)

    print(f"\nSchema version: v{get_current_version(db_path)}")
    print(f"Tables: {', '.join(list_tables(db_path))}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Initialize setu-gateway database")
    parser.add_argument(
        "--db",
        type=Path,
        default=Path("setu.db"),
        help="Path to the SQLite database file (default: setu.db)",
    )
    parser.add_argument(
        "--seed",
        action="store_true",
        help="Insert sample farmers, catalogs and network logs",
    )
    args = parser.parse_args()

    init_db(args.db, with_seed=args.seed)


if __name__ == "__main__":
    main()

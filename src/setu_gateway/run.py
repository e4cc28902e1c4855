"""
CLI runner for setu-gateway.

Usage:
    python -m setu_gateway.run [OPTIONS]

    # Create the database
    python -m setu_gateway.run --init-db

    # Translate a spoken offer
    python -m setu_gateway.run --translate "Nasik ka pyaaz 500 kilo 40 rupaye"

    # Translate and save it as a draft for a farmer
    python -m setu_gateway.run --translate "..." --farmer-id farmer-1

    # Broadcast a catalog and wait for a buyer bid
    python -m setu_gateway.run --broadcast abc123
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from .config import GatewayConfig
from .migrations import get_current_version, list_tables, run_migrations
from .models import GatewayDatabase
from .service import ActionResult, GatewayService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("setu-gateway")


def emit(result: ActionResult) -> int:
    """Print an action result as JSON and map it to an exit code."""
    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0 if result.success else 1


async def translate(service: GatewayService, text: str, farmer_id: str | None) -> int:
    """Translate voice text, optionally saving it as a draft."""
    result = await service.translate_voice(text)
    if not result.success or not farmer_id:
        return emit(result)

    saved = service.save_catalog(farmer_id, result.data["catalog"])
    if saved.success:
        result.data["catalog_id"] = saved.data["catalog_id"]
        return emit(result)
    return emit(saved)


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="setu-gateway: Voice-to-catalog gateway for farm produce",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Create or upgrade the database
    python -m setu_gateway.run --init-db

    # Translate a spoken offer
    python -m setu_gateway.run --translate "Ratnagiri alphonso 20 crate 800 rs"

    # Broadcast a saved catalog
    python -m setu_gateway.run --broadcast abc123def456

    # Show incoming bids
    python -m setu_gateway.run --logs INCOMING_BID
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=Path("datasette.yaml"),
        help="Path to config file (default: datasette.yaml)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        help="Override database path from config",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the database and apply migrations",
    )
    parser.add_argument(
        "--translate",
        type=str,
        metavar="TEXT",
        help="Translate voice text into a catalog item",
    )
    parser.add_argument(
        "--farmer-id",
        type=str,
        help="Save the translated catalog as a draft for this farmer",
    )
    parser.add_argument(
        "--broadcast",
        type=str,
        metavar="CATALOG_ID",
        help="Broadcast a catalog and wait for a simulated bid",
    )
    parser.add_argument(
        "--logs",
        nargs="?",
        const="ALL",
        metavar="FILTER",
        help="List network logs (ALL, OUTGOING_CATALOG, INCOMING_BID)",
    )
    parser.add_argument(
        "--page",
        type=int,
        default=1,
        help="Page of network logs to show (default: 1)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    config = GatewayConfig.from_yaml(args.config)
    if args.db:
        config.db_path = args.db

    logger.info(f"Config loaded from {args.config}")
    logger.info(f"Database: {config.db_path}")
    logger.info(f"Completion provider: {config.llm.provider} ({config.llm.model})")

    if args.init_db:
        applied = run_migrations(config.db_path, verbose=args.verbose)
        logger.info(
            f"Applied {len(applied)} migration(s), schema version "
            f"{get_current_version(config.db_path)}"
        )
        logger.info(f"Tables: {', '.join(list_tables(config.db_path))}")
        return 0

    needs_db = args.broadcast or args.logs or args.farmer_id
    if needs_db and not config.db_path.exists():
        logger.error(f"Database not found: {config.db_path}")
        logger.error("Run with --init-db first to create the database.")
        return 1

    service = GatewayService(config, GatewayDatabase(config.db_path))

    if args.translate:
        return asyncio.run(translate(service, args.translate, args.farmer_id))

    if args.broadcast:
        return emit(asyncio.run(service.broadcast_catalog(args.broadcast)))

    if args.logs:
        return emit(service.get_network_logs(args.logs, page=args.page))

    # Default: show help
    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())

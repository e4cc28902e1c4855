"""
Buyer network simulator for setu-gateway.

After a catalog is broadcast, the simulator waits out a fixed network
delay, picks a buyer from a static pool, and answers with a bid within a
configurable band around the asking price. The bid is written to the
network log as an INCOMING_BID entry.
"""

import asyncio
import logging
import math
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, localcontext
from enum import Enum
from typing import Any

from .config import SimulatorConfig
from .errors import NotFoundError, PersistenceError, ValidationError
from .models import CatalogStatus, GatewayDatabase, NetworkLogType
from .schema import CatalogItem

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Buyer:
    """A buyer platform on the simulated network."""

    name: str
    logo: str


BUYER_POOL: tuple[Buyer, ...] = (
    Buyer("Reliance Fresh", "/logos/reliance.png"),
    Buyer("BigBasket", "/logos/bigbasket.png"),
    Buyer("Paytm Mall", "/logos/paytm.png"),
    Buyer("Flipkart Grocery", "/logos/flipkart.png"),
)


class SimulationState(str, Enum):
    """State of a single broadcast simulation."""

    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class BuyerBid:
    """A synthetic bid against a broadcast catalog."""

    buyer_name: str
    bid_amount: float
    timestamp: str
    catalog_id: str
    buyer_logo: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "buyer_name": self.buyer_name,
            "bid_amount": self.bid_amount,
            "timestamp": self.timestamp,
            "catalog_id": self.catalog_id,
        }
        if self.buyer_logo:
            result["buyer_logo"] = self.buyer_logo
        return result


def round2(value: float) -> float:
    """
    Round to 2 decimal places, halves away from zero.

    Raises:
        ValueError: value is NaN or infinite
    """
    if not math.isfinite(value):
        raise ValueError(f"Cannot round non-finite amount {value}")

    amount = Decimal(str(value))
    with localcontext() as ctx:
        # Enough digits for the integer part plus two decimals
        ctx.prec = max(ctx.prec, amount.adjusted() + 4)
        return float(amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def get_buyer_pool() -> list[Buyer]:
    """Get the buyers that can respond to a broadcast."""
    return list(BUYER_POOL)


def validate_catalog_for_broadcast(item: CatalogItem) -> list[str]:
    """
    Check that a catalog carries enough to be offered to buyers.

    Returns a list of problems; empty means ready.
    """
    problems = []
    if item.price.value <= 0:
        problems.append("price must be greater than zero")
    if item.quantity.count <= 0:
        problems.append("available quantity must be greater than zero")
    return problems


class BroadcastSimulation:
    """Handle for one scheduled simulation; await result() for the bid."""

    def __init__(self, catalog_id: str):
        self.catalog_id = catalog_id
        self.state = SimulationState.PENDING
        self.bid: BuyerBid | None = None
        self.error: Exception | None = None
        self._task: asyncio.Task | None = None

    @property
    def done(self) -> bool:
        return self.state is not SimulationState.PENDING

    async def result(self) -> BuyerBid:
        """
        Wait for the simulation to finish.

        Raises:
            NotFoundError: the catalog does not exist
            PersistenceError: the catalog could not be read or the bid
                could not be logged
        """
        if self._task is None:
            raise RuntimeError("simulation was never scheduled")
        return await self._task


class BroadcastSimulator:
    """
    Simulates buyer responses to broadcast catalogs.

    A simulation for a catalog that is still pending is shared: scheduling
    the same catalog again returns the in-flight handle, so one broadcast
    yields one bid.
    """

    def __init__(
        self,
        db: GatewayDatabase,
        config: SimulatorConfig | None = None,
        rng: random.Random | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """
        Initialize the simulator.

        Args:
            db: Store holding catalogs and the network log
            config: Delay and bid variance settings
            rng: Random source (seed it for reproducible bids)
            sleep: Awaitable used for the network delay
        """
        self.db = db
        self.config = config or SimulatorConfig()
        self.rng = rng or random.Random()
        self.sleep = sleep
        self._in_flight: dict[str, BroadcastSimulation] = {}

    def schedule(self, catalog_id: str) -> BroadcastSimulation:
        """Schedule a simulation on the running event loop."""
        existing = self._in_flight.get(catalog_id)
        if existing is not None and not existing.done:
            logger.info(f"Simulation for catalog {catalog_id} already pending, sharing it")
            return existing

        simulation = BroadcastSimulation(catalog_id)
        simulation._task = asyncio.ensure_future(self._run(simulation))
        self._in_flight[catalog_id] = simulation
        logger.info(
            f"Scheduled network simulation for catalog {catalog_id} "
            f"in {self.config.delay_seconds}s"
        )
        return simulation

    async def simulate_broadcast(self, catalog_id: str) -> BuyerBid:
        """Schedule a simulation and wait for its bid."""
        return await self.schedule(catalog_id).result()

    async def _run(self, simulation: BroadcastSimulation) -> BuyerBid:
        try:
            await self.sleep(self.config.delay_seconds)
            bid = self._resolve(simulation.catalog_id)
        except Exception as e:
            simulation.state = SimulationState.FAILED
            simulation.error = e
            raise
        else:
            simulation.bid = bid
            simulation.state = SimulationState.RESOLVED
            return bid
        finally:
            if self._in_flight.get(simulation.catalog_id) is simulation:
                del self._in_flight[simulation.catalog_id]

    def _resolve(self, catalog_id: str) -> BuyerBid:
        record = self.db.get_catalog(catalog_id)
        if record is None:
            logger.warning(f"Catalog {catalog_id} not found, no bid generated")
            raise NotFoundError(f"Catalog {catalog_id} not found")

        try:
            item = record.item
        except (ValueError, ValidationError) as e:
            raise PersistenceError(f"Stored catalog {catalog_id} is unreadable: {e}") from e

        if record.status != CatalogStatus.BROADCASTED.value:
            logger.warning(f"Catalog {catalog_id} has status {record.status}, simulating anyway")

        buyer = self.rng.choice(BUYER_POOL)
        variance = self.rng.uniform(-self.config.variance, self.config.variance)
        bid = BuyerBid(
            buyer_name=buyer.name,
            bid_amount=round2(item.price.value * (1 + variance)),
            timestamp=datetime.now(UTC).isoformat(),
            catalog_id=catalog_id,
            buyer_logo=buyer.logo,
        )

        logger.info(
            f"{bid.buyer_name} bid {bid.bid_amount} {item.price.currency} "
            f"(asking {item.price.value}) for catalog {catalog_id}"
        )

        try:
            self.db.append_log(
                NetworkLogType.INCOMING_BID,
                {
                    "buyer_name": bid.buyer_name,
                    "bid_amount": bid.bid_amount,
                    "catalog_id": catalog_id,
                    "timestamp": bid.timestamp,
                },
                timestamp=bid.timestamp,
            )
        except PersistenceError:
            logger.error(f"Could not log bid for catalog {catalog_id}")
            raise

        return bid

#!/usr/bin/env python3
"""
VRF Raffle Application

Main entry point: wires the balance book, local randomness coordinator,
raffle, upkeep operator and web server, then runs until SIGINT/SIGTERM.
"""

import asyncio
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env before the logger reads LOG_LEVEL/LOG_FILE
load_dotenv(Path.cwd() / ".env")

from vrf_raffle.blockchain.bank import BalanceBook
from vrf_raffle.blockchain.vrf import LocalVRFCoordinator
from vrf_raffle.raffle.engine import Raffle
from vrf_raffle.raffle.event_manager import EventStore
from vrf_raffle.raffle.models import RaffleConfig
from vrf_raffle.raffle.operator import UpkeepOperator
from vrf_raffle.utils.common import format_wei, generate_address
from vrf_raffle.utils.config import get_config_value, load_config
from vrf_raffle.utils.logger import get_logger
from vrf_raffle.web_server import RaffleWebServer

logger = get_logger(__name__)


class RaffleApp:
    """Builds and orchestrates the raffle services."""

    def __init__(self, config=None):
        self.config = config if config is not None else load_config()
        self.bank = BalanceBook()
        self.events = EventStore(capacity=int(get_config_value(self.config, "server.event_capacity", 200)))
        self.raffle_config = RaffleConfig.from_config(self.config)
        auto_fulfill_delay = get_config_value(self.config, "vrf.auto_fulfill_delay")
        self.coordinator = LocalVRFCoordinator(
            self.raffle_config.vrf_coordinator,
            auto_fulfill_delay=float(auto_fulfill_delay) if auto_fulfill_delay not in (None, "") else None,
        )
        owner = get_config_value(self.config, "raffle.owner") or generate_address()
        self.raffle = Raffle(
            self.raffle_config,
            self.coordinator,
            self.bank,
            owner=owner,
            events=self.events,
        )
        self.operator = UpkeepOperator(self.raffle, self.config, self.coordinator)
        self.web_server = RaffleWebServer(self.config, self.raffle, self.bank, self.coordinator, self.operator)
        self.running = True

    def _display_config_summary(self):
        logger.info("=" * 60)
        logger.info("RAFFLE CONFIGURATION")
        logger.info("=" * 60)
        logger.info(f"Raffle: {self.raffle.address}")
        logger.info(f"Owner: {self.raffle.owner}")
        logger.info(f"Entrance fee: {format_wei(self.raffle_config.entrance_fee)}")
        logger.info(f"Interval: {self.raffle_config.interval}s")
        logger.info(f"Coordinator: {self.coordinator.address}")
        logger.info(f"Subscription: {self.raffle_config.subscription_id}")
        logger.info(f"Callback gas limit: {self.raffle_config.callback_gas_limit}")
        logger.info(f"Upkeep check interval: {self.operator.check_interval}s")
        if self.coordinator.auto_fulfill_delay is None:
            logger.info("Randomness delivery: manual (POST /api/vrf/fulfill)")
        else:
            logger.info(f"Randomness delivery: automatic after {self.coordinator.auto_fulfill_delay}s")
        logger.info("=" * 60)

    def _handle_signal(self, signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self.running = False

    async def start(self):
        """Start services and run until a shutdown signal is received."""
        self._display_config_summary()

        server_host = get_config_value(self.config, "server.host", "0.0.0.0")
        server_port = int(get_config_value(self.config, "server.port", 6080))

        try:
            await self.operator.start()
            server_task = asyncio.create_task(self.web_server.start(host=server_host, port=server_port))
            await asyncio.sleep(0.2)
            if server_task.done() and server_task.exception():
                raise server_task.exception()

            while self.running and not server_task.done():
                await asyncio.sleep(1)
            logger.info("Shutdown signal received, stopping application...")
        finally:
            await self.stop()

    async def stop(self):
        self.running = False
        await self.operator.stop()
        logger.info("Raffle application stopped")


async def main():
    """Main entry point for the raffle service"""
    app = RaffleApp()

    signal.signal(signal.SIGINT, app._handle_signal)
    signal.signal(signal.SIGTERM, app._handle_signal)

    try:
        await app.start()
    except Exception as e:
        logger.exception(f"Raffle application failed: {e}")
        sys.exit(1)


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()

"""
Upkeep operator.

Polls the raffle's upkeep check on a fixed cadence and performs upkeep
whenever it reports eligible. Stands in for an external automation network.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Dict, Optional

from vrf_raffle.blockchain.vrf import LocalVRFCoordinator
from vrf_raffle.raffle.engine import Raffle
from vrf_raffle.raffle.errors import RaffleError
from vrf_raffle.utils.logger import get_logger

logger = get_logger(__name__)


class UpkeepOperator:
    """Polling automation loop around `Raffle.check_upkeep` / `perform_upkeep`.

    When given a local coordinator it also delivers randomness for requests
    that have waited out the coordinator's auto-fulfill delay.
    """

    def __init__(
        self,
        raffle: Raffle,
        config: Dict[str, Any],
        coordinator: Optional[LocalVRFCoordinator] = None,
    ) -> None:
        self._raffle = raffle
        self._coordinator = coordinator
        self._config = config
        operator_config = config.get("operator", {}) or {}
        self.check_interval = float(operator_config.get("check_interval", 30))
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.last_check: Optional[datetime] = None
        self.last_request_id: Optional[int] = None
        self.upkeeps_performed = 0
        self.upkeep_failures = 0
        self.fulfillments_delivered = 0

    async def start(self) -> None:
        """Start the polling loop as a background task."""
        if self._running:
            logger.warning("Upkeep operator already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop(), name="raffle-upkeep-operator")
        logger.info("Upkeep operator started (every %ss)", self.check_interval)

    async def stop(self) -> None:
        if not self._running:
            return
        logger.info("Stopping upkeep operator")
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Upkeep operator stopped")

    def get_status(self) -> Dict[str, Any]:
        return {
            "status": "running" if self._running else "stopped",
            "check_interval": self.check_interval,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "last_request_id": self.last_request_id,
            "upkeeps_performed": self.upkeeps_performed,
            "upkeep_failures": self.upkeep_failures,
            "fulfillments_delivered": self.fulfillments_delivered,
        }

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except Exception as exc:
                logger.error(f"Error in upkeep loop: {exc}")
            await asyncio.sleep(self.check_interval)

    async def run_once(self) -> Optional[int]:
        """Check upkeep once and perform it if needed; returns the request id issued, if any."""
        self.last_check = datetime.utcnow()
        if self._coordinator is not None:
            delivered = self._coordinator.fulfill_due()
            if delivered:
                self.fulfillments_delivered += len(delivered)
                logger.info("Delivered randomness for requests %s", delivered)

        check = self._raffle.check_upkeep()
        if not check.upkeep_needed:
            logger.debug(
                "No upkeep needed (players=%s balance=%s state=%s)",
                check.participant_count, check.balance, check.state.name,
            )
            return None

        try:
            request_id = self._raffle.perform_upkeep(check.perform_data)
        except RaffleError as exc:
            # Another caller may have performed upkeep between check and perform
            self.upkeep_failures += 1
            logger.warning("Upkeep failed: %s", exc)
            return None

        self.upkeeps_performed += 1
        self.last_request_id = request_id
        logger.info("Upkeep performed, randomness request %s issued", request_id)
        return request_id

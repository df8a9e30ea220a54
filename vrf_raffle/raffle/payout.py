"""Prize payout executors."""

from __future__ import annotations

from typing import Protocol

from vrf_raffle.blockchain.bank import BalanceBook
from vrf_raffle.utils.common import format_wei
from vrf_raffle.utils.logger import get_logger

logger = get_logger(__name__)


class PayoutExecutor(Protocol):
    def pay(self, amount: int, recipient: str) -> bool:
        """Transfer `amount` to `recipient`; report failure instead of raising."""
        ...


class BalanceBookPayout:
    """Pays prizes out of the raffle's own account in a BalanceBook."""

    def __init__(self, bank: BalanceBook, source: str) -> None:
        self._bank = bank
        self._source = source

    def pay(self, amount: int, recipient: str) -> bool:
        try:
            ok = self._bank.transfer(self._source, recipient, amount)
        except ValueError as exc:
            logger.error("Payout of %s to %s rejected: %s", format_wei(amount), recipient, exc)
            return False
        if ok:
            logger.info("Paid %s to %s", format_wei(amount), recipient)
        return ok

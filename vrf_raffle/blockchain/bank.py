"""In-process native value accounts.

Models the chain's native-currency balances for the raffle, its entrants
and prize recipients. Amounts are integers in wei.
"""

from __future__ import annotations

from threading import Lock
from typing import Dict, Set

from vrf_raffle.utils.common import format_wei, normalize_address
from vrf_raffle.utils.logger import get_logger

logger = get_logger(__name__)


class BalanceBook:
    """Thread-safe wei balances keyed by checksummed address."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._balances: Dict[str, int] = {}
        self._rejecting: Set[str] = set()
        self._reserved: Set[str] = set()

    def reserve(self, address: str) -> None:
        """Mark an account as contract-owned: its balance only moves through transfers."""
        address = normalize_address(address)
        with self._lock:
            self._reserved.add(address)

    def is_reserved(self, address: str) -> bool:
        address = normalize_address(address)
        with self._lock:
            return address in self._reserved

    def credit(self, address: str, amount: int) -> int:
        """Mint `amount` wei into an account (faucet/test funding)."""
        if amount < 0:
            raise ValueError("credit amount must not be negative")
        address = normalize_address(address)
        with self._lock:
            if address in self._reserved:
                raise ValueError(f"Cannot mint into reserved account {address}")
            self._balances[address] = self._balances.get(address, 0) + amount
            balance = self._balances[address]
        logger.debug("Credited %s with %s", address, format_wei(amount))
        return balance

    def set_balance(self, address: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("balance must not be negative")
        address = normalize_address(address)
        with self._lock:
            if address in self._reserved:
                raise ValueError(f"Cannot overwrite balance of reserved account {address}")
            self._balances[address] = amount

    def balance_of(self, address: str) -> int:
        address = normalize_address(address)
        with self._lock:
            return self._balances.get(address, 0)

    def reject_payments(self, address: str, enabled: bool = True) -> None:
        """Make an account refuse incoming value, like a contract without a payable fallback."""
        address = normalize_address(address)
        with self._lock:
            if enabled:
                self._rejecting.add(address)
            else:
                self._rejecting.discard(address)

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move `amount` wei; returns False and changes nothing if it cannot complete."""
        if amount < 0:
            raise ValueError("transfer amount must not be negative")
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)
        with self._lock:
            available = self._balances.get(sender, 0)
            if available < amount:
                logger.warning(
                    "Transfer of %s from %s rejected: balance is %s",
                    format_wei(amount), sender, format_wei(available),
                )
                return False
            if recipient in self._rejecting:
                logger.warning("Transfer to %s rejected by recipient", recipient)
                return False
            self._balances[sender] = available - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
        return True

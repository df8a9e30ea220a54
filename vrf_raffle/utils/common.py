"""Common address helpers for the raffle service."""

from __future__ import annotations

from eth_account import Account
from web3 import Web3


def normalize_address(address: str) -> str:
    """Return the checksummed form of an address, raising ValueError if malformed."""
    if not isinstance(address, str) or not Web3.is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return Web3.to_checksum_address(address)


def generate_address() -> str:
    """Create a fresh random account and return its checksummed address."""
    return Account.create().address


def format_wei(amount: int) -> str:
    """Render a wei amount as an ether string for log lines."""
    return f"{Web3.from_wei(amount, 'ether')} ETH"

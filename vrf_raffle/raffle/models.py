"""Core data models for the raffle service."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional

from web3 import Web3

from vrf_raffle.raffle.errors import InvalidConfig
from vrf_raffle.utils.common import normalize_address

REQUEST_CONFIRMATIONS = 3
NUM_WORDS = 1
DEFAULT_CALLBACK_GAS_LIMIT = 500_000
ZERO_KEY_HASH = b"\x00" * 32


class RaffleState(IntEnum):
    """Lifecycle states of the raffle."""

    OPEN = 0
    CALCULATING = 1


@dataclass(frozen=True)
class RaffleConfig:
    """Immutable raffle parameters, fixed at construction."""

    entrance_fee: int
    interval: int
    key_hash: bytes = ZERO_KEY_HASH
    subscription_id: int = 0
    callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT
    vrf_coordinator: Optional[str] = None
    request_confirmations: int = REQUEST_CONFIRMATIONS
    num_words: int = NUM_WORDS

    def __post_init__(self) -> None:
        if self.entrance_fee <= 0:
            raise InvalidConfig(f"entrance_fee must be positive, got {self.entrance_fee}")
        if self.interval <= 0:
            raise InvalidConfig(f"interval must be positive, got {self.interval}")
        if len(self.key_hash) != 32:
            raise InvalidConfig("key_hash must be exactly 32 bytes")
        if self.subscription_id < 0:
            raise InvalidConfig("subscription_id must not be negative")
        if self.callback_gas_limit <= 0:
            raise InvalidConfig("callback_gas_limit must be positive")
        if self.num_words != NUM_WORDS:
            raise InvalidConfig(f"the raffle requests exactly {NUM_WORDS} random word")
        if self.vrf_coordinator is not None:
            try:
                object.__setattr__(self, "vrf_coordinator", normalize_address(self.vrf_coordinator))
            except ValueError as exc:
                raise InvalidConfig(str(exc)) from exc

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "RaffleConfig":
        """Build from the `raffle` and `vrf` sections of a loaded config dict.

        Values may arrive as strings when they come from environment overrides.
        """
        raffle_cfg = config.get("raffle", {}) or {}
        vrf_cfg = config.get("vrf", {}) or {}

        try:
            if raffle_cfg.get("entrance_fee") is not None:
                entrance_fee = int(raffle_cfg["entrance_fee"])
            elif raffle_cfg.get("entrance_fee_eth") is not None:
                entrance_fee = int(Web3.to_wei(str(raffle_cfg["entrance_fee_eth"]), "ether"))
            else:
                raise InvalidConfig("raffle.entrance_fee or raffle.entrance_fee_eth is required")

            interval = int(raffle_cfg.get("interval", 0))
            key_hash = _parse_key_hash(vrf_cfg.get("key_hash"))
            subscription_id = int(vrf_cfg.get("subscription_id", 0))
            callback_gas_limit = int(vrf_cfg.get("callback_gas_limit", DEFAULT_CALLBACK_GAS_LIMIT))
            request_confirmations = int(vrf_cfg.get("request_confirmations", REQUEST_CONFIRMATIONS))
        except (TypeError, ValueError) as exc:
            raise InvalidConfig(f"Malformed raffle configuration: {exc}") from exc

        return cls(
            entrance_fee=entrance_fee,
            interval=interval,
            key_hash=key_hash,
            subscription_id=subscription_id,
            callback_gas_limit=callback_gas_limit,
            vrf_coordinator=vrf_cfg.get("coordinator_address") or None,
            request_confirmations=request_confirmations,
        )


def _parse_key_hash(value: Any) -> bytes:
    if value is None or value == "":
        return ZERO_KEY_HASH
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes(Web3.to_bytes(hexstr=str(value)))


@dataclass(frozen=True)
class UpkeepCheck:
    """Result of an upkeep eligibility evaluation."""

    upkeep_needed: bool
    perform_data: bytes
    balance: int
    participant_count: int
    state: RaffleState
    time_passed: bool

    def __iter__(self):
        # Unpacks as (upkeep_needed, perform_data)
        return iter((self.upkeep_needed, self.perform_data))


@dataclass
class RaffleEvent:
    """An observability event emitted by the raffle."""

    name: str
    args: Dict[str, Any]
    timestamp: int
    sequence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.name,
            "args": dict(self.args),
            "timestamp": self.timestamp,
            "sequence": self.sequence,
        }


@dataclass
class RaffleSnapshot:
    """Point-in-time view of the raffle for status endpoints."""

    address: str
    state: RaffleState
    entrance_fee: int
    interval: int
    balance: int
    players: List[str] = field(default_factory=list)
    recent_winner: Optional[str] = None
    last_timestamp: int = 0
    outstanding_request_id: Optional[int] = None

    @property
    def player_count(self) -> int:
        return len(self.players)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "state": self.state.value,
            "stateLabel": self.state.name,
            "entranceFee": self.entrance_fee,
            "interval": self.interval,
            "balance": self.balance,
            "players": list(self.players),
            "playerCount": self.player_count,
            "recentWinner": self.recent_winner,
            "lastTimestamp": self.last_timestamp,
            "outstandingRequestId": self.outstanding_request_id,
        }

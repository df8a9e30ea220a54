"""Randomness oracle boundary.

The raffle talks to the oracle through two decoupled calls: an outbound
`request_random_words` that returns a request id immediately, and a later
inbound delivery through the consumer's `raw_fulfill_random_words`
callback. `LocalVRFCoordinator` implements that contract in-process for
development and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Dict, List, Optional, Protocol, Sequence

from eth_abi import encode
from web3 import Web3

from vrf_raffle.raffle.clock import TimeSource, system_time
from vrf_raffle.raffle.errors import RaffleError, UnknownRequest
from vrf_raffle.utils.common import generate_address, normalize_address
from vrf_raffle.utils.logger import get_logger

logger = get_logger(__name__)


class VRFConsumer(Protocol):
    def raw_fulfill_random_words(self, sender: str, request_id: int, random_words: Sequence[int]) -> None:
        ...


class RandomnessCoordinator(Protocol):
    address: str

    def request_random_words(
        self,
        key_hash: bytes,
        subscription_id: int,
        confirmations: int,
        gas_limit: int,
        num_words: int,
        *,
        consumer: VRFConsumer,
    ) -> int:
        ...


@dataclass(frozen=True)
class PendingRequest:
    request_id: int
    consumer: VRFConsumer
    key_hash: bytes
    subscription_id: int
    confirmations: int
    gas_limit: int
    num_words: int
    requested_at: int = 0


def derive_random_words(request_id: int, num_words: int) -> List[int]:
    """keccak256(abi.encode(request_id, i)) for each word index."""
    return [
        int.from_bytes(Web3.keccak(encode(["uint256", "uint256"], [request_id, index])), "big")
        for index in range(num_words)
    ]


class LocalVRFCoordinator:
    """In-process coordinator issuing sequential request ids starting at 1.

    With `auto_fulfill_delay` set, `fulfill_due` delivers keccak-derived words
    for every request that has waited at least that many seconds.
    """

    MAX_NUM_WORDS = 500

    def __init__(
        self,
        address: Optional[str] = None,
        *,
        auto_fulfill_delay: Optional[float] = None,
        time_source: TimeSource = system_time,
    ) -> None:
        if auto_fulfill_delay is not None and auto_fulfill_delay < 0:
            raise ValueError("auto_fulfill_delay must not be negative")
        self.address = normalize_address(address) if address else generate_address()
        self.auto_fulfill_delay = auto_fulfill_delay
        self._time_source = time_source
        self._lock = Lock()
        self._next_request_id = 1
        self._pending: Dict[int, PendingRequest] = {}
        self.last_request_id = 0

    def request_random_words(
        self,
        key_hash: bytes,
        subscription_id: int,
        confirmations: int,
        gas_limit: int,
        num_words: int,
        *,
        consumer: VRFConsumer,
    ) -> int:
        if not 1 <= num_words <= self.MAX_NUM_WORDS:
            raise ValueError(f"num_words must be between 1 and {self.MAX_NUM_WORDS}, got {num_words}")
        with self._lock:
            request_id = self._next_request_id
            self._next_request_id += 1
            self._pending[request_id] = PendingRequest(
                request_id=request_id,
                consumer=consumer,
                key_hash=key_hash,
                subscription_id=subscription_id,
                confirmations=confirmations,
                gas_limit=gas_limit,
                num_words=num_words,
                requested_at=int(self._time_source()),
            )
            self.last_request_id = request_id
        logger.info(
            "Randomness requested: id=%s sub=%s confirmations=%s gas=%s words=%s",
            request_id, subscription_id, confirmations, gas_limit, num_words,
        )
        return request_id

    def pending_request_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._pending)

    def fulfill_random_words(self, request_id: int, words: Optional[Sequence[int]] = None) -> List[int]:
        """Deliver words for a pending request through the consumer callback.

        A request the consumer no longer recognises is dropped. Any other
        rejection leaves it pending so it can be driven again.
        """
        with self._lock:
            pending = self._pending.get(request_id)
        if pending is None:
            raise UnknownRequest(request_id)

        random_words = list(words) if words is not None else derive_random_words(request_id, pending.num_words)
        if len(random_words) != pending.num_words:
            raise ValueError(f"expected {pending.num_words} words, got {len(random_words)}")

        try:
            pending.consumer.raw_fulfill_random_words(self.address, request_id, random_words)
        except UnknownRequest:
            self.cancel(request_id)
            raise

        with self._lock:
            self._pending.pop(request_id, None)
        logger.info("Randomness fulfilled: id=%s", request_id)
        return random_words

    def cancel(self, request_id: int) -> bool:
        """Forget a pending request; returns False if it was not pending."""
        with self._lock:
            removed = self._pending.pop(request_id, None)
        if removed is not None:
            logger.info("Randomness request %s cancelled", request_id)
        return removed is not None

    def fulfill_due(self) -> List[int]:
        """Deliver every request older than `auto_fulfill_delay`; returns the ids delivered."""
        if self.auto_fulfill_delay is None:
            return []
        now = int(self._time_source())
        with self._lock:
            due = [
                request_id
                for request_id, pending in sorted(self._pending.items())
                if now - pending.requested_at >= self.auto_fulfill_delay
            ]

        delivered = []
        for request_id in due:
            try:
                self.fulfill_random_words(request_id)
            except RaffleError as exc:
                logger.warning("Automatic delivery for request %s failed: %s", request_id, exc)
                continue
            delivered.append(request_id)
        return delivered

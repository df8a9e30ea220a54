"""
Raffle Engine - the OPEN / CALCULATING state machine
"""

from __future__ import annotations

from threading import RLock
from typing import List, Optional, Sequence

from eth_abi import encode

from vrf_raffle.blockchain.bank import BalanceBook
from vrf_raffle.blockchain.vrf import RandomnessCoordinator
from vrf_raffle.raffle.clock import RoundClock, TimeSource, system_time
from vrf_raffle.raffle.correlator import RequestCorrelator
from vrf_raffle.raffle.errors import (
    DrawNotInProgress,
    InsufficientBalance,
    InvalidConfig,
    NotEnoughFunds,
    NotOwner,
    OnlyCoordinatorCanFulfill,
    RaffleNotOpen,
    TransferFailed,
    UnknownRequest,
    UpkeepNotNeeded,
)
from vrf_raffle.raffle.event_manager import EventStore
from vrf_raffle.raffle.ledger import ParticipantLedger
from vrf_raffle.raffle.models import RaffleConfig, RaffleSnapshot, RaffleState, UpkeepCheck
from vrf_raffle.raffle.payout import BalanceBookPayout, PayoutExecutor
from vrf_raffle.utils.common import format_wei, generate_address, normalize_address
from vrf_raffle.utils.logger import get_logger

logger = get_logger(__name__)

ENTERED_RAFFLE = "EnteredRaffle"
REQUESTED_RAFFLE_WINNER = "RequestedRaffleWinner"
WINNER_PICKED = "WinnerPicked"
DRAW_ABORTED = "DrawAborted"


class Raffle:
    """Autonomous raffle driven by upkeep calls and oracle callbacks.

    Every public operation runs under a single re-entrant lock, so entries,
    upkeep triggers and randomness deliveries arriving from different threads
    are serialized. Events are emitted while the lock is still held, so the
    event history follows state order; listeners on the emitting thread can
    still read the raffle.
    """

    def __init__(
        self,
        config: RaffleConfig,
        coordinator: RandomnessCoordinator,
        bank: BalanceBook,
        *,
        owner: Optional[str] = None,
        address: Optional[str] = None,
        payout: Optional[PayoutExecutor] = None,
        events: Optional[EventStore] = None,
        time_source: TimeSource = system_time,
    ) -> None:
        if config.vrf_coordinator and config.vrf_coordinator != normalize_address(coordinator.address):
            raise InvalidConfig(
                f"Configured coordinator {config.vrf_coordinator} does not match {coordinator.address}"
            )

        self.config = config
        self.address = normalize_address(address) if address else generate_address()
        self.owner = normalize_address(owner) if owner else None
        self._coordinator = coordinator
        self._coordinator_address = normalize_address(coordinator.address)
        self._bank = bank
        self._payout = payout or BalanceBookPayout(bank, self.address)
        bank.reserve(self.address)
        self.events = events or EventStore()

        self._lock = RLock()
        self._ledger = ParticipantLedger()
        self._clock = RoundClock(config.interval, time_source)
        self._correlator = RequestCorrelator()
        self._state = RaffleState.OPEN
        self._recent_winner: Optional[str] = None

        logger.info(
            "Raffle %s deployed: fee=%s interval=%ss coordinator=%s",
            self.address, format_wei(config.entrance_fee), config.interval, self._coordinator_address,
        )

    # =============== ENTRY ===============

    def enter_raffle(self, sender: str, value: int) -> int:
        """Enter the current round by sending `value` wei; returns the entry slot."""
        sender = normalize_address(sender)
        if sender == self.address:
            raise ValueError("the raffle cannot enter itself")
        with self._lock:
            if value < self.config.entrance_fee:
                logger.warning("Entry from %s rejected: %s below fee", sender, format_wei(value))
                raise NotEnoughFunds(value, self.config.entrance_fee)
            if self._state != RaffleState.OPEN:
                logger.warning("Entry from %s rejected: raffle is %s", sender, self._state.name)
                raise RaffleNotOpen()
            if not self._bank.transfer(sender, self.address, value):
                raise InsufficientBalance(sender, value, self._bank.balance_of(sender))
            slot = self._ledger.add(sender, value)
            logger.debug("Player %s entered with %s (slot %d)", sender, format_wei(value), slot)
            self.events.emit(ENTERED_RAFFLE, {"player": sender}, self._clock.now())
        return slot

    # =============== UPKEEP ===============

    def check_upkeep(self, check_data: bytes = b"") -> UpkeepCheck:
        """Side-effect free eligibility check, safe to poll from anywhere."""
        with self._lock:
            return self._evaluate_upkeep()

    def perform_upkeep(self, perform_data: bytes = b"") -> int:
        """Start a draw if eligible and return the randomness request id.

        Eligibility is re-derived here; `perform_data` is ignored.
        """
        with self._lock:
            check = self._evaluate_upkeep()
            if not check.upkeep_needed:
                logger.warning(
                    "Upkeep rejected: balance=%s players=%s state=%s time_passed=%s",
                    check.balance, check.participant_count, check.state.name, check.time_passed,
                )
                raise UpkeepNotNeeded(check.balance, check.participant_count, check.state)

            self._state = RaffleState.CALCULATING
            try:
                request_id = self._coordinator.request_random_words(
                    self.config.key_hash,
                    self.config.subscription_id,
                    self.config.request_confirmations,
                    self.config.callback_gas_limit,
                    self.config.num_words,
                    consumer=self,
                )
            except Exception:
                self._state = RaffleState.OPEN
                raise
            self._correlator.record(request_id)
            logger.info("Requested raffle winner: request_id=%s players=%s", request_id, check.participant_count)
            self.events.emit(REQUESTED_RAFFLE_WINNER, {"requestId": request_id}, self._clock.now())
        return request_id

    # =============== RANDOMNESS CALLBACK ===============

    def raw_fulfill_random_words(self, sender: str, request_id: int, random_words: Sequence[int]) -> str:
        """Oracle callback entry point; only the configured coordinator may call it."""
        if normalize_address(sender) != self._coordinator_address:
            logger.warning("Fulfillment for request %s from untrusted sender %s", request_id, sender)
            raise OnlyCoordinatorCanFulfill(sender, self._coordinator_address)
        return self.fulfill_random_words(request_id, random_words)

    def fulfill_random_words(self, request_id: int, random_words: Sequence[int]) -> str:
        """Consume delivered randomness: pick, pay and reset. Returns the winner.

        Reached through `raw_fulfill_random_words`. If the prize transfer
        fails nothing changes and the draw stays CALCULATING.
        """
        with self._lock:
            if self._state != RaffleState.CALCULATING or not self._correlator.matches(request_id):
                logger.warning("Fulfillment rejected for request %s (state=%s)", request_id, self._state.name)
                raise UnknownRequest(request_id)
            if not random_words:
                raise ValueError("no random words delivered")

            index_of_winner = int(random_words[0]) % len(self._ledger)
            winner = self._ledger.get(index_of_winner)
            prize = self._ledger.pool

            if not self._payout.pay(prize, winner):
                logger.error("Prize transfer of %s to %s failed; draw %s stays open", format_wei(prize), winner, request_id)
                raise TransferFailed(winner, prize)

            self._correlator.validate_and_clear(request_id)
            self._recent_winner = winner
            self._ledger.reset()
            now = self._clock.now()
            self._clock.mark_reset(now)
            self._state = RaffleState.OPEN
            logger.info("Winner picked for request %s: %s won %s", request_id, winner, format_wei(prize))
            self.events.emit(WINNER_PICKED, {"winner": winner}, now)
        return winner

    # =============== RECOVERY ===============

    def abort_draw(self, caller: str) -> int:
        """Owner-only escape from a stuck draw.

        Drops the outstanding request and reopens the round with its entries,
        pool and clock intact. Returns the aborted request id.
        """
        caller = normalize_address(caller)
        with self._lock:
            if self.owner is None or caller != self.owner:
                raise NotOwner(f"{caller} is not the raffle owner")
            if self._state != RaffleState.CALCULATING:
                raise DrawNotInProgress()
            request_id = self._correlator.clear()
            self._state = RaffleState.OPEN
            logger.warning("Draw for request %s aborted by %s", request_id, caller)
            self.events.emit(DRAW_ABORTED, {"requestId": request_id}, self._clock.now())
        return request_id

    # =============== READ ACCESSORS ===============

    @property
    def entrance_fee(self) -> int:
        return self.config.entrance_fee

    @property
    def interval(self) -> int:
        return self.config.interval

    @property
    def num_words(self) -> int:
        return self.config.num_words

    @property
    def request_confirmations(self) -> int:
        return self.config.request_confirmations

    @property
    def coordinator_address(self) -> str:
        return self._coordinator_address

    @property
    def raffle_state(self) -> RaffleState:
        with self._lock:
            return self._state

    @property
    def recent_winner(self) -> Optional[str]:
        with self._lock:
            return self._recent_winner

    @property
    def last_timestamp(self) -> int:
        with self._lock:
            return self._clock.last_reset

    @property
    def player_count(self) -> int:
        with self._lock:
            return len(self._ledger)

    @property
    def players(self) -> List[str]:
        with self._lock:
            return self._ledger.players

    @property
    def balance(self) -> int:
        """Pool balance: the fees paid by the current round's entries."""
        with self._lock:
            return self._ledger.pool

    @property
    def outstanding_request_id(self) -> Optional[int]:
        with self._lock:
            return self._correlator.outstanding

    def get_player(self, index: int) -> str:
        with self._lock:
            return self._ledger.get(index)

    def seconds_until_eligible(self) -> int:
        with self._lock:
            return self._clock.seconds_remaining()

    def snapshot(self) -> RaffleSnapshot:
        with self._lock:
            return RaffleSnapshot(
                address=self.address,
                state=self._state,
                entrance_fee=self.config.entrance_fee,
                interval=self.config.interval,
                balance=self._ledger.pool,
                players=self._ledger.players,
                recent_winner=self._recent_winner,
                last_timestamp=self._clock.last_reset,
                outstanding_request_id=self._correlator.outstanding,
            )

    # =============== INTERNALS ===============

    def _evaluate_upkeep(self) -> UpkeepCheck:
        balance = self._ledger.pool
        participant_count = len(self._ledger)
        is_open = self._state == RaffleState.OPEN
        time_passed = self._clock.has_interval_elapsed()
        upkeep_needed = is_open and time_passed and participant_count > 0 and balance > 0
        perform_data = encode(
            ["uint256", "uint256", "uint8"], [balance, participant_count, int(self._state)]
        )
        return UpkeepCheck(
            upkeep_needed=upkeep_needed,
            perform_data=perform_data,
            balance=balance,
            participant_count=participant_count,
            state=self._state,
            time_passed=time_passed,
        )

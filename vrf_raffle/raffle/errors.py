"""Error taxonomy for the raffle core.

Every failure raised by a public raffle operation leaves shared state
exactly as it was before the call.
"""

from __future__ import annotations

from typing import Any, Dict


class RaffleError(Exception):
    """Base class for all raffle failures."""

    code = "raffle_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotEnoughFunds(RaffleError):
    """Value sent is below the entrance fee."""

    code = "not_enough_funds"

    def __init__(self, value: int, entrance_fee: int) -> None:
        super().__init__(f"Sent {value} wei, entrance fee is {entrance_fee} wei")
        self.value = value
        self.entrance_fee = entrance_fee


class RaffleNotOpen(RaffleError):
    """Raffle is calculating a winner."""

    code = "raffle_not_open"


class UpkeepNotNeeded(RaffleError):
    """Upkeep conditions are not satisfied."""

    code = "upkeep_not_needed"

    def __init__(self, balance: int, participant_count: int, state: Any) -> None:
        super().__init__(
            f"Upkeep not needed (balance={balance}, players={participant_count}, state={getattr(state, 'name', state)})"
        )
        self.balance = balance
        self.participant_count = participant_count
        self.state = state

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload.update(
            {
                "balance": self.balance,
                "participantCount": self.participant_count,
                "state": int(self.state),
            }
        )
        return payload


class UnknownRequest(RaffleError):
    """Random words delivered for a request that is not outstanding."""

    code = "unknown_request"

    def __init__(self, request_id: int) -> None:
        super().__init__(f"No outstanding randomness request with id {request_id}")
        self.request_id = request_id


class TransferFailed(RaffleError):
    """Prize transfer to the winner did not complete."""

    code = "transfer_failed"

    def __init__(self, recipient: str, amount: int) -> None:
        super().__init__(f"Transfer of {amount} wei to {recipient} failed")
        self.recipient = recipient
        self.amount = amount


class OnlyCoordinatorCanFulfill(RaffleError):
    """Random words may only be delivered by the configured coordinator."""

    code = "only_coordinator_can_fulfill"

    def __init__(self, sender: str, coordinator: str) -> None:
        super().__init__(f"Sender {sender} is not the coordinator {coordinator}")
        self.sender = sender
        self.coordinator = coordinator


class DrawNotInProgress(RaffleError):
    """No draw is waiting for randomness."""

    code = "draw_not_in_progress"


class NotOwner(RaffleError):
    """Caller is not the raffle owner."""

    code = "not_owner"


class InsufficientBalance(RaffleError):
    """Sender account cannot cover the value it is sending."""

    code = "insufficient_balance"

    def __init__(self, address: str, value: int, balance: int) -> None:
        super().__init__(f"Account {address} holds {balance} wei, cannot send {value} wei")
        self.address = address
        self.value = value
        self.balance = balance


class InvalidConfig(RaffleError):
    """Raffle configuration is invalid."""

    code = "invalid_config"

"""Participant ledger for the current raffle round."""

from __future__ import annotations

from typing import List


class ParticipantLedger:
    """Ordered entries of the current round plus the fees they paid.

    An address may appear several times; each entry is one slot in winner
    selection. Not synchronized on its own: the owning Raffle serializes
    access.
    """

    def __init__(self) -> None:
        self._players: List[str] = []
        self._pool = 0

    def add(self, address: str, amount: int) -> int:
        """Append an entry and return its slot index."""
        self._players.append(address)
        self._pool += amount
        return len(self._players) - 1

    def reset(self) -> None:
        self._players = []
        self._pool = 0

    def get(self, index: int) -> str:
        if index < 0:
            raise IndexError(f"player index {index} out of range")
        return self._players[index]

    @property
    def players(self) -> List[str]:
        return list(self._players)

    @property
    def pool(self) -> int:
        """Sum of the fees paid by the current entries."""
        return self._pool

    def __len__(self) -> int:
        return len(self._players)

    def __contains__(self, address: object) -> bool:
        return address in self._players

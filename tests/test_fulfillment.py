import pytest

from vrf_raffle.blockchain.vrf import derive_random_words
from vrf_raffle.raffle.engine import DRAW_ABORTED, WINNER_PICKED
from vrf_raffle.raffle.errors import (
    DrawNotInProgress,
    NotOwner,
    OnlyCoordinatorCanFulfill,
    TransferFailed,
    UnknownRequest,
    UpkeepNotNeeded,
)
from vrf_raffle.raffle.models import RaffleState
from vrf_raffle.utils.common import generate_address

from .conftest import ENTRANCE_FEE, INTERVAL, STARTING_BALANCE


@pytest.mark.parametrize("request_id", [0, 1, 2, 10**6])
def test_fulfill_before_any_request_reverts(raffle, coordinator, request_id):
    with pytest.raises(UnknownRequest):
        raffle.raw_fulfill_random_words(coordinator.address, request_id, [123])
    assert raffle.raffle_state == RaffleState.OPEN


def test_coordinator_refuses_unknown_request(raffle_entered, coordinator):
    with pytest.raises(UnknownRequest):
        coordinator.fulfill_random_words(99, [1])


def test_fulfill_from_untrusted_sender_reverts(raffle_entered):
    request_id = raffle_entered.perform_upkeep()
    with pytest.raises(OnlyCoordinatorCanFulfill):
        raffle_entered.raw_fulfill_random_words(generate_address(), request_id, [0])
    assert raffle_entered.raffle_state == RaffleState.CALCULATING
    assert raffle_entered.outstanding_request_id == request_id


def test_fulfill_with_wrong_id_reverts(raffle_entered, coordinator):
    request_id = raffle_entered.perform_upkeep()
    with pytest.raises(UnknownRequest):
        raffle_entered.raw_fulfill_random_words(coordinator.address, request_id + 1, [0])
    assert raffle_entered.outstanding_request_id == request_id


def test_picks_winner_resets_and_sends_money(raffle, coordinator, make_player, clock, bank, events):
    first = make_player()
    raffle.enter_raffle(first, ENTRANCE_FEE)
    players = [first]
    for _ in range(5):
        extra = make_player()
        raffle.enter_raffle(extra, ENTRANCE_FEE)
        players.append(extra)
    pool = ENTRANCE_FEE * 6
    assert raffle.balance == pool

    starting_timestamp = raffle.last_timestamp
    clock.travel(INTERVAL + 1)
    request_id = raffle.perform_upkeep(b"")

    words = coordinator.fulfill_random_words(request_id)

    winner = raffle.recent_winner
    assert winner == players[words[0] % 6]
    assert raffle.raffle_state == RaffleState.OPEN
    assert raffle.player_count == 0
    assert raffle.balance == 0
    assert raffle.last_timestamp > starting_timestamp
    assert raffle.outstanding_request_id is None
    assert bank.balance_of(winner) == STARTING_BALANCE + pool - ENTRANCE_FEE
    for other in players:
        if other != winner:
            assert bank.balance_of(other) == STARTING_BALANCE - ENTRANCE_FEE
    assert events.last(WINNER_PICKED).args == {"winner": winner}
    assert coordinator.pending_request_ids() == []


@pytest.mark.parametrize("word, expected_index", [(0, 0), (1, 1), (2, 2), (3, 0), (2**256 - 1, (2**256 - 1) % 3)])
def test_winner_index_is_first_word_mod_players(raffle, coordinator, make_player, clock, word, expected_index):
    players = [make_player() for _ in range(3)]
    for address in players:
        raffle.enter_raffle(address, ENTRANCE_FEE)
    clock.travel(INTERVAL)
    request_id = raffle.perform_upkeep()

    coordinator.fulfill_random_words(request_id, [word])

    assert raffle.recent_winner == players[expected_index]


def test_derived_words_are_deterministic():
    assert derive_random_words(1, 2) == derive_random_words(1, 2)
    assert derive_random_words(1, 1) != derive_random_words(2, 1)
    assert all(0 <= w < 2**256 for w in derive_random_words(5, 3))


def test_delivery_is_consumed_exactly_once(raffle_entered, coordinator):
    request_id = raffle_entered.perform_upkeep()
    coordinator.fulfill_random_words(request_id, [0])
    with pytest.raises(UnknownRequest):
        raffle_entered.raw_fulfill_random_words(coordinator.address, request_id, [0])
    with pytest.raises(UnknownRequest):
        coordinator.fulfill_random_words(request_id, [0])


def test_next_round_needs_fresh_interval_and_players(raffle_entered, coordinator, clock, make_player):
    request_id = raffle_entered.perform_upkeep()
    coordinator.fulfill_random_words(request_id)

    clock.travel(INTERVAL + 1)
    assert not raffle_entered.check_upkeep().upkeep_needed

    raffle_entered.enter_raffle(make_player(), ENTRANCE_FEE)
    clock.travel(-INTERVAL)  # back inside the new interval
    assert not raffle_entered.check_upkeep().upkeep_needed
    clock.travel(INTERVAL)
    assert raffle_entered.check_upkeep().upkeep_needed


def test_transfer_failure_keeps_draw_calculating(raffle, coordinator, make_player, clock, bank):
    winner = make_player()
    raffle.enter_raffle(winner, ENTRANCE_FEE)
    clock.travel(INTERVAL + 1)
    request_id = raffle.perform_upkeep()
    last_reset = raffle.last_timestamp
    bank.reject_payments(winner)

    with pytest.raises(TransferFailed) as excinfo:
        coordinator.fulfill_random_words(request_id, [0])

    assert excinfo.value.recipient == winner
    assert excinfo.value.amount == ENTRANCE_FEE
    assert raffle.raffle_state == RaffleState.CALCULATING
    assert raffle.outstanding_request_id == request_id
    assert raffle.players == [winner]
    assert raffle.balance == ENTRANCE_FEE
    assert raffle.recent_winner is None
    assert raffle.last_timestamp == last_reset
    assert coordinator.pending_request_ids() == [request_id]

    # Delivery can be driven again once the recipient accepts value
    bank.reject_payments(winner, enabled=False)
    coordinator.fulfill_random_words(request_id, [0])
    assert raffle.recent_winner == winner
    assert raffle.raffle_state == RaffleState.OPEN


def test_prize_is_the_entry_pool_not_the_account_balance(raffle_entered, coordinator, bank, player, make_player):
    # Value sent to the raffle outside of an entry is not part of the prize
    stranger = make_player()
    assert bank.transfer(stranger, raffle_entered.address, ENTRANCE_FEE * 5)
    assert raffle_entered.balance == ENTRANCE_FEE

    before = bank.balance_of(player)
    coordinator.fulfill_random_words(raffle_entered.perform_upkeep(), [0])

    assert bank.balance_of(player) - before == ENTRANCE_FEE
    assert raffle_entered.balance == 0
    assert bank.balance_of(raffle_entered.address) == ENTRANCE_FEE * 5


def test_owner_can_abort_stuck_draw(raffle_entered, coordinator, owner, events, player):
    request_id = raffle_entered.perform_upkeep()

    assert raffle_entered.abort_draw(owner) == request_id
    assert raffle_entered.raffle_state == RaffleState.OPEN
    assert raffle_entered.outstanding_request_id is None
    assert raffle_entered.players == [player]
    assert raffle_entered.balance == ENTRANCE_FEE
    assert events.last(DRAW_ABORTED).args == {"requestId": request_id}

    # A late delivery for the aborted request is refused
    with pytest.raises(UnknownRequest):
        coordinator.fulfill_random_words(request_id, [0])
    assert request_id not in coordinator.pending_request_ids()

    # The round is still due, so upkeep re-requests
    new_request = raffle_entered.perform_upkeep()
    assert new_request != request_id
    coordinator.fulfill_random_words(new_request, [0])
    assert raffle_entered.recent_winner == player


def test_abort_requires_owner(raffle_entered):
    raffle_entered.perform_upkeep()
    with pytest.raises(NotOwner):
        raffle_entered.abort_draw(generate_address())
    assert raffle_entered.raffle_state == RaffleState.CALCULATING


def test_abort_requires_draw_in_progress(raffle_entered, owner):
    with pytest.raises(DrawNotInProgress):
        raffle_entered.abort_draw(owner)


def test_upkeep_while_calculating_reports_state(raffle_entered):
    raffle_entered.perform_upkeep()
    with pytest.raises(UpkeepNotNeeded) as excinfo:
        raffle_entered.perform_upkeep()
    assert excinfo.value.to_dict() == {
        "code": "upkeep_not_needed",
        "message": str(excinfo.value),
        "balance": ENTRANCE_FEE,
        "participantCount": 1,
        "state": RaffleState.CALCULATING.value,
    }

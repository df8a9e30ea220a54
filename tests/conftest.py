import pytest

from vrf_raffle.blockchain.bank import BalanceBook
from vrf_raffle.blockchain.vrf import LocalVRFCoordinator
from vrf_raffle.raffle.engine import Raffle
from vrf_raffle.raffle.event_manager import EventStore
from vrf_raffle.raffle.models import RaffleConfig
from vrf_raffle.utils.common import generate_address

ENTRANCE_FEE = 10**16  # 0.01 ETH
INTERVAL = 30
STARTING_BALANCE = 10**18
GAS_LANE = bytes.fromhex("474e34a077df58807dbe9c96d3c009b23b3c6d0cce433e59bbf5b34f823bc56c")


class FakeClock:
    """Controllable time source; `travel` moves time forward."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def travel(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bank():
    return BalanceBook()


@pytest.fixture
def coordinator():
    return LocalVRFCoordinator()


@pytest.fixture
def events():
    return EventStore()


@pytest.fixture
def owner():
    return generate_address()


@pytest.fixture
def raffle_config():
    return RaffleConfig(
        entrance_fee=ENTRANCE_FEE,
        interval=INTERVAL,
        key_hash=GAS_LANE,
        subscription_id=1234,
        callback_gas_limit=500_000,
    )


@pytest.fixture
def raffle(raffle_config, coordinator, bank, owner, events, clock):
    return Raffle(
        raffle_config,
        coordinator,
        bank,
        owner=owner,
        events=events,
        time_source=clock,
    )


@pytest.fixture
def make_player(bank):
    def _make(balance: int = STARTING_BALANCE) -> str:
        address = generate_address()
        bank.credit(address, balance)
        return address

    return _make


@pytest.fixture
def player(make_player):
    return make_player()


@pytest.fixture
def raffle_entered(raffle, player, clock):
    """One player in, interval elapsed: upkeep is due."""
    raffle.enter_raffle(player, ENTRANCE_FEE)
    clock.travel(INTERVAL + 1)
    return raffle

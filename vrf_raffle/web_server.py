"""FastAPI web server exposing the raffle's entry, upkeep and oracle callback surface."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from vrf_raffle import __version__
from vrf_raffle.blockchain.bank import BalanceBook
from vrf_raffle.blockchain.vrf import LocalVRFCoordinator
from vrf_raffle.raffle.engine import Raffle
from vrf_raffle.raffle.errors import (
    DrawNotInProgress,
    InsufficientBalance,
    InvalidConfig,
    NotEnoughFunds,
    NotOwner,
    OnlyCoordinatorCanFulfill,
    RaffleError,
    RaffleNotOpen,
    TransferFailed,
    UnknownRequest,
    UpkeepNotNeeded,
)
from vrf_raffle.raffle.operator import UpkeepOperator
from vrf_raffle.utils.common import normalize_address
from vrf_raffle.utils.logger import get_logger

logger = get_logger(__name__)

ERROR_STATUS = {
    NotEnoughFunds: 400,
    InsufficientBalance: 400,
    InvalidConfig: 400,
    NotOwner: 403,
    OnlyCoordinatorCanFulfill: 403,
    RaffleNotOpen: 409,
    UpkeepNotNeeded: 409,
    UnknownRequest: 409,
    DrawNotInProgress: 409,
    TransferFailed: 502,
}


class EnterRequest(BaseModel):
    address: str
    value: int


class PerformUpkeepRequest(BaseModel):
    perform_data: Optional[str] = None


class FulfillRequest(BaseModel):
    request_id: int
    words: Optional[List[int]] = None


class AbortRequest(BaseModel):
    caller: str


class FundRequest(BaseModel):
    address: str
    amount: int


def error_response(exc: Exception) -> HTTPException:
    """Translate a raffle failure into an HTTPException."""
    if isinstance(exc, RaffleError):
        status = ERROR_STATUS.get(type(exc), 400)
        return HTTPException(status_code=status, detail=exc.to_dict())
    return HTTPException(status_code=400, detail={"code": "bad_request", "message": str(exc)})


class RaffleWebServer:
    """HTTP gateway for the raffle."""

    def __init__(
        self,
        config: Dict[str, Any],
        raffle: Raffle,
        bank: BalanceBook,
        coordinator: Optional[LocalVRFCoordinator] = None,
        operator: Optional[UpkeepOperator] = None,
    ) -> None:
        self.config = config
        self.raffle = raffle
        self.bank = bank
        self.coordinator = coordinator
        self.operator = operator
        self.faucet_enabled = str(config.get("server", {}).get("faucet_enabled", "false")).lower() in ("1", "true", "yes")

        self.app = FastAPI(
            title="VRF Raffle API",
            description="Entry, upkeep and randomness callback surface for the raffle",
            version=__version__,
        )
        self._setup_middleware()
        self._setup_routes()

    def _setup_middleware(self) -> None:
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    def _setup_routes(self) -> None:  # noqa: C901 - routing setup intentionally verbose
        # ------------------------------------------------------------------
        # Health & status
        # ------------------------------------------------------------------
        @self.app.get("/api/health")
        async def health_check() -> Dict[str, Any]:
            operator_state = self.operator.get_status() if self.operator else {}
            return {
                "status": "ok",
                "timestamp": datetime.utcnow().isoformat(),
                "components": {
                    "web": True,
                    "operator": operator_state.get("status", "disabled"),
                    "raffle": self.raffle.raffle_state.name,
                },
            }

        @self.app.get("/api/raffle")
        async def get_raffle() -> Dict[str, Any]:
            payload = self.raffle.snapshot().to_dict()
            payload["secondsUntilEligible"] = self.raffle.seconds_until_eligible()
            payload["coordinator"] = self.raffle.coordinator_address
            return payload

        @self.app.get("/api/events")
        async def get_events(limit: int = 50, name: Optional[str] = None) -> Dict[str, Any]:
            events = self.raffle.events.get_events(name=name, limit=limit)
            return {"events": [event.to_dict() for event in reversed(events)]}

        @self.app.get("/api/accounts/{address}")
        async def get_account(address: str) -> Dict[str, Any]:
            try:
                address = normalize_address(address)
            except ValueError as exc:
                raise error_response(exc)
            return {
                "address": address,
                "balance": self.bank.balance_of(address),
                "reserved": self.bank.is_reserved(address),
            }

        @self.app.post("/api/accounts/fund")
        async def fund_account(request: FundRequest) -> Dict[str, Any]:
            if not self.faucet_enabled:
                raise HTTPException(status_code=404, detail="Faucet disabled")
            try:
                balance = self.bank.credit(request.address, request.amount)
            except ValueError as exc:
                raise error_response(exc)
            return {"address": normalize_address(request.address), "balance": balance}

        # ------------------------------------------------------------------
        # Entry
        # ------------------------------------------------------------------
        @self.app.post("/api/raffle/enter")
        async def enter_raffle(request: EnterRequest) -> Dict[str, Any]:
            try:
                slot = self.raffle.enter_raffle(request.address, request.value)
            except (RaffleError, ValueError) as exc:
                raise error_response(exc)
            return {"slot": slot, "playerCount": self.raffle.player_count, "balance": self.raffle.balance}

        # ------------------------------------------------------------------
        # Upkeep
        # ------------------------------------------------------------------
        @self.app.get("/api/upkeep")
        async def check_upkeep() -> Dict[str, Any]:
            check = self.raffle.check_upkeep()
            return {
                "upkeepNeeded": check.upkeep_needed,
                "performData": "0x" + check.perform_data.hex(),
                "balance": check.balance,
                "participantCount": check.participant_count,
                "state": check.state.value,
                "timePassed": check.time_passed,
            }

        @self.app.post("/api/upkeep")
        async def perform_upkeep(request: PerformUpkeepRequest) -> Dict[str, Any]:
            try:
                perform_data = bytes.fromhex(request.perform_data.removeprefix("0x")) if request.perform_data else b""
                request_id = self.raffle.perform_upkeep(perform_data)
            except (RaffleError, ValueError) as exc:
                raise error_response(exc)
            return {"requestId": request_id, "state": self.raffle.raffle_state.value}

        # ------------------------------------------------------------------
        # Oracle callback (local coordinator only)
        # ------------------------------------------------------------------
        @self.app.post("/api/vrf/fulfill")
        async def fulfill(request: FulfillRequest) -> Dict[str, Any]:
            if self.coordinator is None:
                raise HTTPException(status_code=503, detail="Local coordinator unavailable")
            try:
                words = self.coordinator.fulfill_random_words(request.request_id, request.words)
            except (RaffleError, ValueError) as exc:
                raise error_response(exc)
            return {
                "requestId": request.request_id,
                "randomWords": [str(word) for word in words],
                "winner": self.raffle.recent_winner,
            }

        # ------------------------------------------------------------------
        # Admin
        # ------------------------------------------------------------------
        @self.app.post("/api/admin/abort")
        async def abort_draw(request: AbortRequest) -> Dict[str, Any]:
            try:
                request_id = self.raffle.abort_draw(request.caller)
            except (RaffleError, ValueError) as exc:
                raise error_response(exc)
            if self.coordinator is not None:
                self.coordinator.cancel(request_id)
            return {"abortedRequestId": request_id, "state": self.raffle.raffle_state.value}

    # ------------------------------------------------------------------
    # Lifecycle management
    # ------------------------------------------------------------------
    async def start(self, host: str = "0.0.0.0", port: int = 6080) -> None:
        import uvicorn

        logger.info("Starting raffle web server on %s:%s", host, port)
        config = uvicorn.Config(self.app, host=host, port=port, log_level="info", access_log=True)
        server = uvicorn.Server(config)
        try:
            await server.serve()
        finally:
            logger.info("Raffle web server stopped")

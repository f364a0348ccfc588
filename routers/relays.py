from fastapi import APIRouter

from dependencies import RuntimeDep
from schemas.relays import (
    RegisterRelayRequest,
    RelayInfo,
    RelayListResponse,
    RelayResponse,
    RelayStatus,
    RelayStatusResponse,
)
from services.relays import Relay

relays_router = APIRouter(prefix="/api/relay", tags=["relays"])


def _info(relay: Relay) -> RelayInfo:
    return RelayInfo(id=relay.relay_id, location=relay.location, country=relay.country, status=relay.status)


@relays_router.post("/register", status_code=201, response_model=RelayResponse)
async def register_relay(body: RegisterRelayRequest, runtime: RuntimeDep):
    relay = runtime.relays.register(body.relay_id, body.location, body.country, public_key=body.public_key)
    return RelayResponse(relay=_info(relay))


@relays_router.get("/list", response_model=RelayListResponse)
async def list_relays(runtime: RuntimeDep):
    return RelayListResponse(relays=[_info(r) for r in runtime.relays.list()])


@relays_router.get("/status/{relay_id}", response_model=RelayStatusResponse)
async def relay_status(relay_id: str, runtime: RuntimeDep):
    relay = runtime.relays.get(relay_id)
    now = runtime.relays.clock()
    return RelayStatusResponse(relay=RelayStatus(
        id=relay.relay_id,
        status=relay.status,
        registered_at=relay.registered_at,
        uptime_seconds=(now - relay.registered_at).total_seconds(),
        last_seen=relay.registered_at,
    ))

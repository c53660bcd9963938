# pos_outbox/api/v1/routes_device.py
from fastapi import APIRouter, Depends

from pos_outbox.db.base import get_session_factory
from pos_outbox.domain.printing.routing import (
    decide_route,
    get_or_create_device_id,
    load_routing_config,
    save_routing_config,
)
from pos_outbox.domain.printing.schemas import PrintRoutingConfig


router = APIRouter(prefix="/api/v1/device", tags=["device"])


@router.get("/print-routing")
async def get_print_routing_endpoint(
    session_factory=Depends(get_session_factory),
):
    async with session_factory() as db:
        config = await load_routing_config(db)
        device_id = await get_or_create_device_id(db)
    return {"device_id": device_id, "config": config, "route": decide_route(config).value}

@router.put("/print-routing")
async def update_print_routing_endpoint(
    payload: PrintRoutingConfig,
    session_factory=Depends(get_session_factory),
):
    async with session_factory() as db:
        await save_routing_config(db, payload)
    return {"config": payload, "route": decide_route(payload).value}

from fastapi import APIRouter, HTTPException, status

from bridge.service_manager import service_manager
from schemas import BridgeStatus, DeviceEntry, DeviceList, DispatcherStats, MessageResponse

router = APIRouter(prefix="/bridge", tags=["bridge"])


def _require_running():
    if not service_manager.running or service_manager.dispatcher is None:
        raise HTTPException(status_code=503, detail="Bridge is not running")


@router.get("/status", response_model=BridgeStatus)
async def get_status() -> BridgeStatus:
    _require_running()
    scheduler = service_manager.scheduler
    return BridgeStatus(
        running=service_manager.running,
        applications=[app.name for app in service_manager.config.ttn.apps],
        connected=[listener.app_id for listener in service_manager.listeners if listener.is_connected],
        sinks=[sink.name for sink in service_manager.sink_hub.sinks],
        devices=len(service_manager.directory.snapshot()),
        last_refresh_at=scheduler.last_refresh_at,
        stale_applications=list(scheduler.last_failed_apps),
        stats=DispatcherStats(**service_manager.dispatcher.get_stats()),
    )


@router.get("/devices", response_model=DeviceList)
async def get_devices() -> DeviceList:
    """Devices in the attribute directory. Attribute values are credentials and are not returned."""
    _require_running()
    snapshot = service_manager.directory.snapshot()
    entries = [
        DeviceEntry(app_id=key.app_id, dev_id=key.dev_id, attribute_names=sorted(attributes))
        for key, attributes in sorted(snapshot.items(), key=lambda entry: (entry[0].app_id, entry[0].dev_id))
    ]
    return DeviceList(list=entries)


@router.post("/refresh", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
async def refresh_attributes() -> MessageResponse:
    _require_running()
    service_manager.scheduler.request_refresh()
    return MessageResponse(message="Attribute refresh scheduled")

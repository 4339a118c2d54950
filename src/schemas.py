from typing import List, Optional
from pydantic import BaseModel


class AppHealthOK(BaseModel):
    status: str
    app: str


class DispatcherStats(BaseModel):
    received: int
    decoded: int
    failed: int
    commands: int
    dropped_commands: int
    last_message_at: Optional[float] = None


class BridgeStatus(BaseModel):
    running: bool
    applications: List[str]
    connected: List[str]
    sinks: List[str]
    devices: int
    last_refresh_at: Optional[float] = None
    stale_applications: List[str]
    stats: DispatcherStats


class DeviceEntry(BaseModel):
    app_id: str
    dev_id: str
    attribute_names: List[str]


class DeviceList(BaseModel):
    list: List[DeviceEntry]


class MessageResponse(BaseModel):
    message: str

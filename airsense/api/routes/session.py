from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from airsense.api.deps import DeviceScanner, get_device_scanner, get_session
from airsense.core.errors import TransportError
from airsense.models.device import BleDevice, ClassicDevice, ConnectionStatus, TransportKind
from airsense.schemas.session import ConnectRequest, DeviceRead, SessionRead
from airsense.services.session import ConnectionSession

router = APIRouter()


def _device_read(device: TransportKind | None) -> DeviceRead | None:
    if device is None:
        return None
    return DeviceRead(id=device.id, name=device.name, kind=device.kind)


def _session_read(session: ConnectionSession) -> SessionRead:
    return SessionRead(
        status=session.status.value,
        stale=session.stale,
        device=_device_read(session.device),
        last_data_at=session.pipeline.last_data_at,
        last_error=session.pipeline.last_error,
    )


@router.get("/devices", response_model=list[DeviceRead])
async def list_devices(
    scanner: Annotated[DeviceScanner, Depends(get_device_scanner)],
) -> list[DeviceRead]:
    devices = await scanner()
    return [DeviceRead(id=d.id, name=d.name, kind=d.kind) for d in devices]


@router.get("/session", response_model=SessionRead)
def get_session_state(
    session: Annotated[ConnectionSession, Depends(get_session)],
) -> SessionRead:
    return _session_read(session)


@router.post("/session/connect", response_model=SessionRead)
async def connect(
    payload: ConnectRequest,
    session: Annotated[ConnectionSession, Depends(get_session)],
) -> SessionRead:
    device: TransportKind
    if payload.kind == "ble":
        device = BleDevice(id=payload.id, name=payload.name)
    else:
        device = ClassicDevice(id=payload.id, name=payload.name)
    if session.status is not ConnectionStatus.DISCONNECTED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A device is already connected",
        )
    try:
        await session.connect(device)
    except TransportError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        ) from e
    return _session_read(session)


@router.post("/session/disconnect", response_model=SessionRead)
async def disconnect(
    session: Annotated[ConnectionSession, Depends(get_session)],
) -> SessionRead:
    await session.disconnect()
    return _session_read(session)

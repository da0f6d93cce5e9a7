from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from airsense.api.deps import get_pipeline, get_session
from airsense.schemas.live import ChunkCreate, ChunkResult, LiveFeedRead, LiveReadingRead
from airsense.services.ingestion import IngestionPipeline
from airsense.services.session import ConnectionSession

router = APIRouter(prefix="/live")


@router.get("", response_model=LiveFeedRead)
def live_feed(
    pipeline: Annotated[IngestionPipeline, Depends(get_pipeline)],
    session: Annotated[ConnectionSession, Depends(get_session)],
) -> LiveFeedRead:
    readings = [
        LiveReadingRead(timestamp=r.timestamp, value=r.value)
        for r in pipeline.live.snapshot()
    ]
    device = session.device
    return LiveFeedRead(
        status=session.status.value,
        stale=session.stale,
        device_id=device.id if device else None,
        device_name=device.name if device else None,
        last_data_at=pipeline.last_data_at,
        latest=readings[-1] if readings else None,
        readings=readings,
    )


@router.post("/chunks", response_model=ChunkResult)
async def post_chunk(
    payload: ChunkCreate,
    pipeline: Annotated[IngestionPipeline, Depends(get_pipeline)],
) -> ChunkResult:
    # Runs on the event loop so remote pushes can be scheduled.
    return ChunkResult(value=pipeline.on_chunk(payload.text))

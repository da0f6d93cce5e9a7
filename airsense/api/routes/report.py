from __future__ import annotations

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from airsense.api.deps import get_report_service, get_session, get_settings
from airsense.core.config import Settings
from airsense.schemas.buckets import BucketRead, ReportRead
from airsense.services.report import ReportService
from airsense.services.session import ConnectionSession

router = APIRouter(prefix="/report")


@router.get("", response_model=ReportRead)
async def get_report(
    service: Annotated[ReportService, Depends(get_report_service)],
    session: Annotated[ConnectionSession, Depends(get_session)],
    settings: Annotated[Settings, Depends(get_settings)],
    start: Annotated[date | None, Query()] = None,
    end: Annotated[date | None, Query()] = None,
    device_id: Annotated[str | None, Query(min_length=1, max_length=64)] = None,
) -> ReportRead:
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="'start' must be <= 'end'")

    device_id = device_id or session.pipeline.device_id or settings.device_id
    try:
        result = await service.report(device_id=device_id, start_date=start, end_date=end)
    except OSError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Local storage unavailable",
        ) from e
    return ReportRead(
        source=result.source,
        start=result.start,
        end=result.end,
        remote_error=result.remote_error,
        buckets=[
            BucketRead(
                bucket_start=b.bucket_start,
                bucket_end=b.bucket_end,
                avg_value=b.avg_value,
                min_value=b.min_value,
                max_value=b.max_value,
                count=b.count,
            )
            for b in result.buckets
        ],
    )

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from airsense.api.deps import get_store
from airsense.core.errors import StorageWriteError
from airsense.repositories.base import BucketRepository
from airsense.schemas.buckets import StorageStatsRead

router = APIRouter(prefix="/storage")


@router.get("/stats", response_model=StorageStatsRead)
def storage_stats(
    store: Annotated[BucketRepository, Depends(get_store)],
) -> StorageStatsRead:
    return StorageStatsRead.model_validate(store.stats().__dict__)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_storage(
    store: Annotated[BucketRepository, Depends(get_store)],
) -> Response:
    try:
        store.clear()
    except StorageWriteError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Local storage unavailable",
        ) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Request

from airsense.core.config import Settings
from airsense.models.device import TransportKind
from airsense.repositories.base import BucketRepository
from airsense.services.ingestion import IngestionPipeline
from airsense.services.report import ReportService
from airsense.services.session import ConnectionSession

DeviceScanner = Callable[[], Awaitable[list[TransportKind]]]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> BucketRepository:
    return request.app.state.store


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline


def get_session(request: Request) -> ConnectionSession:
    return request.app.state.session


def get_report_service(request: Request) -> ReportService:
    return request.app.state.report_service


def get_device_scanner(request: Request) -> DeviceScanner:
    return request.app.state.device_scanner

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from airsense.api.deps import DeviceScanner
from airsense.api.router import api_router
from airsense.clients.base import RemoteSync
from airsense.clients.remote import RemoteSyncClient
from airsense.core.config import Settings, load_settings
from airsense.core.logging import configure_logging
from airsense.models.device import ConnectionStatus
from airsense.repositories.base import KeyValueStore
from airsense.repositories.buckets import LocalBucketStore
from airsense.repositories.kv import FileKeyValueStore
from airsense.services.bucketer import Bucketer
from airsense.services.ingestion import IngestionPipeline, LiveFeed
from airsense.services.report import HistoryCache, ReportRefresher, ReportService
from airsense.services.session import ConnectionSession, TransportFactory
from airsense.transport.factory import create_transport, scan_devices

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    kv_store: KeyValueStore | None = None,
    remote: RemoteSync | None = None,
    transport_factory: TransportFactory | None = None,
    device_scanner: DeviceScanner | None = None,
) -> FastAPI:
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_client: RemoteSyncClient | None = None
        remote_sync = remote
        if remote_sync is None:
            owned_client = RemoteSyncClient(
                base_url=str(settings.remote_base_url),
                timeout_seconds=settings.remote_timeout_seconds,
                token_provider=lambda: settings.remote_token,
                interval_ms=settings.bucket_interval_ms,
            )
            remote_sync = owned_client

        store = LocalBucketStore(
            kv=kv_store or FileKeyValueStore(settings.storage_dir),
            key=settings.storage_key,
            retention=settings.retention,
        )
        pipeline = IngestionPipeline(
            bucketer=Bucketer(interval_ms=settings.bucket_interval_ms),
            store=store,
            remote=remote_sync,
            live=LiveFeed(max_size=settings.live_readings_max),
        )
        session = ConnectionSession(
            pipeline=pipeline,
            transport_factory=transport_factory
            or (lambda device: create_transport(device, settings)),
            remote=remote_sync,
            staleness_threshold_seconds=settings.staleness_threshold_seconds,
            staleness_check_interval_seconds=settings.staleness_check_interval_seconds,
        )
        report_service = ReportService(
            store=store,
            remote=remote_sync,
            cache=HistoryCache(),
            history_limit=settings.history_limit,
            history_window=settings.retention,
        )
        refresher = ReportRefresher(
            service=report_service,
            device_id_provider=lambda: pipeline.device_id or settings.device_id,
            interval_seconds=settings.report_refresh_interval_seconds,
        )

        app.state.store = store
        app.state.remote = remote_sync
        app.state.pipeline = pipeline
        app.state.session = session
        app.state.report_service = report_service
        app.state.refresher = refresher
        app.state.device_scanner = device_scanner or (lambda: scan_devices(settings))

        if settings.report_refresh_enabled:
            refresher.start()
        logger.info(
            "airsense started: interval=%ds retention=%dd remote=%s",
            settings.bucket_interval_seconds,
            settings.retention_days,
            "on" if remote_sync.enabled else "off",
        )

        yield

        await refresher.stop()
        if session.status is not ConnectionStatus.DISCONNECTED or pipeline.bucketer.open_bucket:
            await session.disconnect()
        await session.wait_idle()
        await pipeline.drain()
        if owned_client is not None:
            await owned_client.aclose()
        logger.info("airsense stopped")

    if settings.log_level:
        configure_logging(settings.log_level, settings.log_file)

    docs_enabled = settings.docs_enabled and not settings.is_production
    app = FastAPI(
        title="airsense",
        version="0.1.0",
        debug=settings.debug,
        docs_url="/docs" if docs_enabled else None,
        redoc_url=None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=False,
            allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type"],
        )

    @app.middleware("http")
    async def security_headers(request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    @app.get("/", tags=["meta"])
    def root():
        return {"name": "airsense", "status": "ok"}

    app.include_router(api_router)
    return app

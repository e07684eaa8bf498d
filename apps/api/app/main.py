"""FastAPI application entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse

from app.adapters.media import FfmpegInvoker, FfprobeProber
from app.adapters.storage import InMemoryBlobStore, S3BlobStore
from app.core.config import Settings, get_settings
from app.core.secrets import CachedSecret, secrets_manager_fetcher
from app.errors import ApiError
from app.repositories.dynamodb import DynamoDbJobStore
from app.repositories.memory import InMemoryJobStore
from app.routes import identity_router, transcode_router
from app.schemas.error import ErrorResponse

logger = logging.getLogger(__name__)

_OPENAPI_RESPONSE_CODES: dict[str, dict[str, set[str]]] = {
    "/api/v1/transcode": {"post": {"200", "202", "401", "422", "502"}},
    "/api/v1/transcode/status/{jobId}": {"get": {"200", "401", "404"}},
    "/api/v1/transcode/list": {"get": {"200", "401"}},
    "/api/v1/transcode/download/{jobId}": {"get": {"200", "401", "404", "502"}},
    "/api/v1/me": {"get": {"200", "401"}},
}

_START_VALIDATION_PATHS: set[tuple[str, str]] = {
    ("POST", "/api/v1/transcode"),
}


def _apply_contract_response_codes(schema: dict) -> None:
    """Limit documented response codes to the ones each operation can return."""
    for path, methods in _OPENAPI_RESPONSE_CODES.items():
        path_item = schema.get("paths", {}).get(path)
        if not path_item:
            continue

        for method, allowed_codes in methods.items():
            operation = path_item.get(method)
            if not operation:
                continue

            responses = operation.setdefault("responses", {})
            for status_code in list(responses.keys()):
                if status_code not in allowed_codes:
                    responses.pop(status_code, None)

            for status_code in sorted(allowed_codes):
                responses.setdefault(status_code, {"description": "See API contract"})


def _build_components(app: FastAPI, settings: Settings) -> None:
    if settings.backend == "aws":
        app.state.job_store = DynamoDbJobStore(
            table_name=settings.ddb_table,
            tenant=settings.tenant_partition_value,
            partition_attribute=settings.ddb_partition_attribute,
            sort_attribute=settings.ddb_sort_attribute,
            region=settings.aws_region,
        )
        app.state.blob_store = S3BlobStore(region=settings.aws_region)
    else:
        app.state.job_store = InMemoryJobStore(tenant=settings.tenant_partition_value)
        app.state.blob_store = InMemoryBlobStore()

    app.state.invoker = FfmpegInvoker(settings.ffmpeg_path)
    app.state.prober = FfprobeProber(settings.ffprobe_path)

    app.state.firebase_credentials = None
    if settings.firebase_credentials_secret_id:
        app.state.firebase_credentials = CachedSecret(
            fetcher=secrets_manager_fetcher(
                secret_id=settings.firebase_credentials_secret_id,
                region=settings.aws_region,
            ),
            ttl=timedelta(seconds=settings.secret_cache_ttl_seconds),
        )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store = app.state.job_store
        if settings.ensure_table_on_startup and isinstance(store, DynamoDbJobStore):
            store.ensure_table()
        blob_store = app.state.blob_store
        if settings.ensure_bucket_on_startup and isinstance(blob_store, S3BlobStore):
            blob_store.ensure_bucket(settings.s3_bucket, tags=settings.bucket_tags)
        yield

    app = FastAPI(title="Reel Transcoder API", version="1.0.0", lifespan=lifespan)
    _build_components(app, settings)

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        route = request.scope.get("route")
        route_path = getattr(route, "path", request.url.path)
        if (request.method.upper(), route_path) in _START_VALIDATION_PATHS:
            payload = ErrorResponse(code="VALIDATION_ERROR", message="Invalid transcode request payload")
            return JSONResponse(status_code=422, content=payload.model_dump(exclude_none=True))

        return await request_validation_exception_handler(request, exc)

    @app.get("/health", include_in_schema=False)
    async def health() -> dict[str, bool]:
        return {"ok": True}

    api_prefix = "/api/v1"
    app.include_router(identity_router, prefix=api_prefix)
    app.include_router(transcode_router, prefix=api_prefix)

    def custom_openapi() -> dict:
        if app.openapi_schema:
            return app.openapi_schema
        schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )
        _apply_contract_response_codes(schema)
        app.openapi_schema = schema
        return app.openapi_schema

    app.openapi = custom_openapi

    logger.info("app.created backend=%s auth_provider=%s", settings.backend, settings.auth_provider)
    return app


app = create_app()

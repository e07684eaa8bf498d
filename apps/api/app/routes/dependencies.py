"""Dependency wiring for routes."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import uuid4

from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.adapters.auth import (
    AuthVerificationError,
    FirebaseTokenVerifier,
    MockTokenVerifier,
    TokenVerifier,
)
from app.core.config import Settings, get_settings
from app.core.logging_safety import safe_log_identifier
from app.domain.ownership import derive_owner_key
from app.errors import ApiError, IdentityMissingError
from app.schemas.auth import OwnerIdentity
from app.schemas.job import OutputFormat
from app.services.jobs import JobQueryService
from app.services.orchestrator import JobOrchestrator
from app.services.transfer import ArtifactTransfer

bearer_scheme = HTTPBearer(auto_error=False, scheme_name="bearerAuth")
logger = logging.getLogger(__name__)


def _auth_error(message: str) -> ApiError:
    return ApiError(status_code=401, code="UNAUTHORIZED", message=message)


def _request_correlation_id(request: Request) -> str:
    existing = getattr(request.state, "correlation_id", None)
    if isinstance(existing, str) and existing:
        return existing

    correlation_id = request.headers.get("X-Correlation-Id")
    if correlation_id:
        request.state.correlation_id = correlation_id
        return correlation_id

    generated = f"req-{uuid4()}"
    request.state.correlation_id = generated
    return generated


def get_token_verifier(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> TokenVerifier:
    """Resolve provider adapter from configuration."""
    if settings.auth_provider == "firebase":
        return FirebaseTokenVerifier(
            project_id=settings.firebase_project_id,
            audience=settings.firebase_audience,
            credentials=getattr(request.app.state, "firebase_credentials", None),
        )
    return MockTokenVerifier()


async def get_authenticated_identity(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    verifier: Annotated[TokenVerifier, Depends(get_token_verifier)],
) -> OwnerIdentity:
    """Validate bearer token and derive the caller's owner key before any storage access."""
    correlation_id = _request_correlation_id(request)
    safe_correlation_id = safe_log_identifier(correlation_id, prefix="cid")
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        logger.warning(
            "auth.rejected correlation_id=%s method=%s path=%s reason=invalid_or_missing_bearer",
            safe_correlation_id,
            request.method,
            request.url.path,
        )
        raise _auth_error("Invalid or missing bearer token")

    try:
        claims = verifier.verify_token(credentials.credentials)
        owner_key = derive_owner_key(claims)
    except AuthVerificationError as exc:
        logger.warning(
            "auth.rejected correlation_id=%s method=%s path=%s reason=token_verification_failed",
            safe_correlation_id,
            request.method,
            request.url.path,
        )
        raise _auth_error(str(exc) or "Invalid bearer token") from exc
    except IdentityMissingError as exc:
        logger.warning(
            "auth.rejected correlation_id=%s method=%s path=%s reason=identity_missing",
            safe_correlation_id,
            request.method,
            request.url.path,
        )
        raise _auth_error(str(exc)) from exc

    identity = OwnerIdentity(
        owner_key=owner_key,
        subject=claims.subject,
        email=claims.email.lower() if claims.email else None,
        username=claims.username,
    )
    logger.info(
        "auth.accepted correlation_id=%s method=%s path=%s owner=%s",
        safe_correlation_id,
        request.method,
        request.url.path,
        safe_log_identifier(owner_key, prefix="own"),
    )
    request.state.owner_identity = identity
    return identity


def get_job_query_service(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> JobQueryService:
    state = request.app.state
    return JobQueryService(
        state.job_store,
        state.blob_store,
        download_ttl_seconds=settings.download_url_ttl_seconds,
    )


def get_orchestrator(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> JobOrchestrator:
    state = request.app.state
    return JobOrchestrator(
        store=state.job_store,
        transfer=ArtifactTransfer(state.blob_store, settings.scratch_dir),
        invoker=state.invoker,
        prober=state.prober,
        output_bucket=settings.s3_bucket,
        output_prefix=settings.normalized_s3_prefix,
        default_format=OutputFormat(settings.default_output_format),
    )

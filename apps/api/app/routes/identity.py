"""Caller identity route."""

from typing import Annotated

from fastapi import APIRouter, Depends

from app.routes.dependencies import get_authenticated_identity
from app.schemas.auth import MeResponse, OwnerIdentity
from app.schemas.error import ErrorResponse

router = APIRouter(tags=["Identity"])


@router.get("/me", response_model=MeResponse, responses={401: {"model": ErrorResponse}})
async def read_me(identity: Annotated[OwnerIdentity, Depends(get_authenticated_identity)]) -> MeResponse:
    return MeResponse(
        owner_key=identity.owner_key,
        subject=identity.subject,
        email=identity.email,
        username=identity.username,
    )

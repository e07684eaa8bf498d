"""Authentication schemas."""

from pydantic import BaseModel, Field


class IdentityClaims(BaseModel):
    """Verified claims handed over by the identity provider adapter."""

    subject: str | None = None
    email: str | None = None
    username: str | None = None


class OwnerIdentity(BaseModel):
    """Authenticated caller as seen by business services."""

    owner_key: str = Field(min_length=1)
    subject: str | None = None
    email: str | None = None
    username: str | None = None


class MeResponse(BaseModel):
    owner_key: str
    subject: str | None = None
    email: str | None = None
    username: str | None = None

"""Authentication provider interfaces."""

from abc import ABC, abstractmethod

from app.schemas.auth import IdentityClaims


class AuthVerificationError(Exception):
    """Raised when a token cannot be verified."""


class TokenVerifier(ABC):
    """Provider-neutral token verification interface."""

    @abstractmethod
    def verify_token(self, token: str) -> IdentityClaims:
        """Verify token and return the identity claims it carries."""


__all__ = ["AuthVerificationError", "TokenVerifier"]

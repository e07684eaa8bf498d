"""Mock auth verifier for local development and tests."""

from app.adapters.auth.base import AuthVerificationError, TokenVerifier
from app.schemas.auth import IdentityClaims


class MockTokenVerifier(TokenVerifier):
    """Accepts deterministic test tokens only.

    Expected token format (empty segments mean "claim absent"):
    - ``test:<subject>``
    - ``test:<subject>:<email>``
    - ``test:<subject>:<email>:<username>``
    """

    def verify_token(self, token: str) -> IdentityClaims:
        parts = token.split(":")
        if not 2 <= len(parts) <= 4 or parts[0] != "test":
            raise AuthVerificationError("Invalid bearer token")

        subject, email, username = (parts[1:] + ["", ""])[:3]
        return IdentityClaims(
            subject=subject.strip() or None,
            email=email.strip() or None,
            username=username.strip() or None,
        )


__all__ = ["MockTokenVerifier"]

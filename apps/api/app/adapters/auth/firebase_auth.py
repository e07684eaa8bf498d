"""Firebase Auth token verifier adapter."""

from __future__ import annotations

import hashlib
import json
from typing import Any

from app.adapters.auth.base import AuthVerificationError, TokenVerifier
from app.core.secrets import CachedSecret
from app.schemas.auth import IdentityClaims


class FirebaseTokenVerifier(TokenVerifier):
    """Verifies Firebase JWTs and extracts identity claims.

    When ``credentials`` is given, the Firebase app is initialized with the
    service-account JSON it holds; otherwise application default credentials
    are used. Each distinct service-account payload gets its own named app, so
    material rotated behind the cache is picked up on its next refresh.
    """

    def __init__(
        self,
        project_id: str | None,
        audience: str | None,
        credentials: CachedSecret | None = None,
    ) -> None:
        self._project_id = project_id
        self._audience = audience
        self._credentials = credentials

    def _ensure_app(self, firebase_admin) -> Any:
        if self._credentials is None:
            try:
                return firebase_admin.get_app()
            except ValueError:
                return firebase_admin.initialize_app()

        from firebase_admin import credentials as firebase_credentials

        try:
            secret = self._credentials.get()
            service_account = json.loads(secret)
        except (ValueError, KeyError) as exc:
            raise AuthVerificationError("Firebase credentials are unavailable") from exc

        name = f"reel-{hashlib.sha256(secret.encode('utf-8')).hexdigest()[:12]}"
        try:
            return firebase_admin.get_app(name)
        except ValueError:
            return firebase_admin.initialize_app(firebase_credentials.Certificate(service_account), name=name)

    def verify_token(self, token: str) -> IdentityClaims:
        try:
            import firebase_admin
            from firebase_admin import auth as firebase_auth
        except ImportError as exc:  # pragma: no cover - depends on optional package
            raise AuthVerificationError("Firebase auth verifier is unavailable") from exc

        app = self._ensure_app(firebase_admin)

        try:
            decoded = firebase_auth.verify_id_token(token, app=app, check_revoked=True)
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise AuthVerificationError("Invalid bearer token") from exc

        if self._audience and decoded.get("aud") != self._audience:
            raise AuthVerificationError("Invalid bearer token audience")

        if self._project_id:
            issuer = str(decoded.get("iss", ""))
            audience = str(decoded.get("aud", ""))
            if self._project_id not in issuer and audience != self._project_id:
                raise AuthVerificationError("Invalid bearer token issuer")

        subject = str(decoded.get("uid") or decoded.get("sub") or "").strip()
        email = str(decoded.get("email") or "").strip()
        username = str(decoded.get("username") or decoded.get("preferred_username") or "").strip()
        return IdentityClaims(subject=subject or None, email=email or None, username=username or None)


__all__ = ["FirebaseTokenVerifier"]

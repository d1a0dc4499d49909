"""Bearer-token identity verification."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import requests
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from config.settings import Settings

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


class AuthenticationError(Exception):
    """Bearer credential missing, invalid or expired."""


class IdentityVerifier(ABC):
    """Resolves a bearer token to a verified identity."""

    @abstractmethod
    def verify(self, token: str) -> str:
        """
        Verify a token.

        Returns:
            The caller's identity (user id)

        Raises:
            AuthenticationError: If the token cannot be verified
        """
        pass


class JWTIdentityVerifier(IdentityVerifier):
    """Verifies Supabase access tokens locally with the project's JWT secret."""

    def __init__(self, secret: str, audience: Optional[str] = "authenticated", algorithm: str = "HS256"):
        self.secret = secret
        self.audience = audience
        self.algorithm = algorithm

    def verify(self, token: str) -> str:
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": self.audience is not None},
            )
        except JWTError as e:
            raise AuthenticationError(f"Invalid token: {e}") from e

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError("Token has no subject")
        return user_id


class SupabaseIdentityVerifier(IdentityVerifier):
    """Asks Supabase Auth who the token belongs to (GET /auth/v1/user)."""

    def __init__(self, url: str, anon_key: str, timeout: float = 10.0):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout

    def verify(self, token: str) -> str:
        try:
            response = requests.get(
                f"{self.url}/auth/v1/user",
                headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            # Cannot tell who the caller is, so the caller is not admitted
            logger.warning(f"Supabase auth lookup failed: {e}")
            raise AuthenticationError("Identity lookup failed") from e

        if response.status_code != 200:
            raise AuthenticationError(f"Auth rejected token: {response.status_code}")

        try:
            user_id = (response.json() or {}).get("id")
        except (ValueError, AttributeError) as e:
            raise AuthenticationError("Auth response is not a user object") from e
        if not user_id:
            raise AuthenticationError("Auth response has no user id")
        return user_id


def build_identity_verifier(settings: Settings) -> IdentityVerifier:
    """Prefer local JWT verification; fall back to the Supabase Auth API."""
    if settings.supabase_jwt_secret:
        return JWTIdentityVerifier(settings.supabase_jwt_secret)
    if settings.supabase_url and settings.supabase_anon_key:
        return SupabaseIdentityVerifier(settings.supabase_url, settings.supabase_anon_key)
    raise ValueError("Set SUPABASE_JWT_SECRET or SUPABASE_URL + SUPABASE_ANON_KEY to verify callers")


def get_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """FastAPI dependency returning the verified caller identity."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    verifier: IdentityVerifier = request.app.state.identity_verifier
    try:
        return verifier.verify(credentials.credentials)
    except AuthenticationError as e:
        logger.info(f"Rejected caller: {e}")
        raise HTTPException(status_code=401, detail="Unauthorized")

"""HTTP API."""

from .auth import (
    AuthenticationError,
    IdentityVerifier,
    JWTIdentityVerifier,
    SupabaseIdentityVerifier,
    build_identity_verifier,
    get_identity,
)
from .server import create_app

__all__ = [
    "AuthenticationError",
    "IdentityVerifier",
    "JWTIdentityVerifier",
    "SupabaseIdentityVerifier",
    "build_identity_verifier",
    "get_identity",
    "create_app",
]

"""Bearer authentication and scope-based authorization policies."""
import logging
from typing import Callable, Optional

import jwt as pyjwt
from fastapi import FastAPI, Header, HTTPException, Request

from ..config import Settings
from .jwt import JwtOptions, load_signing_key, verify_jwt


log = logging.getLogger("basicapi.auth")

READER_POLICY = "pet-store-reader"
WRITER_POLICY = "pet-store-writer"
SCOPE_CLAIM = "scope"


class AuthorizationPolicy:
    """Requires an authenticated caller whose token carries a given claim value."""

    def __init__(self, name: str, claim_type: str, claim_value: str):
        self.name = name
        self.claim_type = claim_type
        self.claim_value = claim_value

    def is_satisfied(self, claims: dict) -> bool:
        value = claims.get(self.claim_type)
        if value is None:
            return False
        # Several claims of one type arrive as a list
        values = value if isinstance(value, list) else [value]
        return self.claim_value in values


def default_policies() -> dict[str, AuthorizationPolicy]:
    return {
        READER_POLICY: AuthorizationPolicy(READER_POLICY, SCOPE_CLAIM, READER_POLICY),
        WRITER_POLICY: AuthorizationPolicy(WRITER_POLICY, SCOPE_CLAIM, WRITER_POLICY),
    }


def configure_auth(app: FastAPI, settings: Settings) -> JwtOptions:
    """Install the signing key, JWT validation parameters and policies on the app."""
    signing_key = load_signing_key(settings.content_root)
    options = JwtOptions(signing_key)
    app.state.jwt_options = options
    app.state.policies = default_policies()
    log.info("JWT bearer auth configured (issuer=%s, audience=%s)", options.issuer, options.audience)
    return options


def _unauthorized(detail: str, error: Optional[str] = None) -> HTTPException:
    challenge = "Bearer" if error is None else f'Bearer error="{error}"'
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": challenge})


def authenticate(request: Request, authorization: Optional[str]) -> dict:
    """Validate the bearer token and return its claims."""
    if not authorization:
        raise _unauthorized("Authorization header required")

    # Extract token from "Bearer <token>"
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise _unauthorized("Invalid authorization header format")

    try:
        return verify_jwt(request.app.state.jwt_options, parts[1])
    except pyjwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired", error="invalid_token")
    except pyjwt.InvalidTokenError as e:
        log.info("Rejected bearer token: %s", e)
        raise _unauthorized("Invalid token", error="invalid_token")


def require_policy(name: str) -> Callable[..., dict]:
    """FastAPI dependency enforcing a named policy; returns the token claims."""
    def dependency(request: Request, authorization: Optional[str] = Header(None)) -> dict:
        claims = authenticate(request, authorization)
        policy = request.app.state.policies[name]
        if not policy.is_satisfied(claims):
            raise HTTPException(status_code=403, detail=f"Token does not satisfy policy '{name}'")
        return claims

    return dependency

"""JWT signing key, token generation and verification."""
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Sequence

import jwt
from cryptography.hazmat.primitives.serialization import pkcs12

from ..config import ConfigurationError


# Development-only certificate shipped with the app
CERTIFICATE_FILE_NAME = "testCert.pfx"
CERTIFICATE_PASSWORD = "DO_NOT_USE_THIS_CERT_IN_PRODUCTION"

ISSUER = "BasicApi"
AUDIENCE = "Myself"
ALGORITHM = "RS256"
CLOCK_SKEW = timedelta(minutes=5)
TOKEN_LIFETIME = timedelta(hours=1)


class SigningKeyError(ConfigurationError):
    """Raised when the signing certificate cannot be loaded."""
    pass


class SigningKey:
    """RSA key pair taken from the test certificate."""

    def __init__(self, private_key, public_key):
        self.private_key = private_key
        self.public_key = public_key


class JwtOptions:
    """Token validation parameters, built once at startup."""

    def __init__(self, signing_key: SigningKey, issuer: str = ISSUER, audience: str = AUDIENCE,
                 clock_skew: timedelta = CLOCK_SKEW):
        self.signing_key = signing_key
        self.issuer = issuer
        self.audience = audience
        self.clock_skew = clock_skew


def load_signing_key(content_root: Path) -> SigningKey:
    """Load the signing key from testCert.pfx in the content root.

    Raises:
        SigningKeyError: File missing, wrong password, or no private key inside
    """
    path = Path(content_root) / CERTIFICATE_FILE_NAME
    try:
        data = path.read_bytes()
    except OSError as e:
        raise SigningKeyError(f"Cannot read signing certificate {path}: {e}")

    try:
        private_key, certificate, _ = pkcs12.load_key_and_certificates(
            data, CERTIFICATE_PASSWORD.encode("utf-8")
        )
    except ValueError as e:
        raise SigningKeyError(f"Cannot load signing certificate {path}: {e}")

    if private_key is None or certificate is None:
        raise SigningKeyError(f"Signing certificate {path} must contain a certificate and its private key")

    return SigningKey(private_key, certificate.public_key())


def generate_jwt(options: JwtOptions, name: str, scopes: Sequence[str] = (),
                 lifetime: timedelta = TOKEN_LIFETIME, now: Optional[datetime] = None) -> str:
    """Generate a signed bearer token.

    Args:
        options: Issuer, audience and signing key
        name: Value of the name claim
        scopes: Scope claim values; one scope is written as a string, several as a list
        lifetime: Time until expiry
        now: Issue time (defaults to the current UTC time)

    Returns:
        JWT token string
    """
    now = now or datetime.now(timezone.utc)
    payload = {
        "name": name,
        "iss": options.issuer,
        "aud": options.audience,
        "iat": now,
        "nbf": now,
        "exp": now + lifetime,
    }
    if len(scopes) == 1:
        payload["scope"] = scopes[0]
    elif scopes:
        payload["scope"] = list(scopes)

    return jwt.encode(payload, options.signing_key.private_key, algorithm=ALGORITHM)


def verify_jwt(options: JwtOptions, token: str) -> dict:
    """Verify and decode a bearer token.

    Raises:
        jwt.ExpiredSignatureError: Token has expired
        jwt.InvalidTokenError: Bad signature, issuer, audience or missing claims
    """
    return jwt.decode(
        token,
        options.signing_key.public_key,
        algorithms=[ALGORITHM],
        audience=options.audience,
        issuer=options.issuer,
        leeway=options.clock_skew,
        options={"require": ["exp", "iss", "aud"]},
    )

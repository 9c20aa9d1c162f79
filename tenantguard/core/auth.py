"""
Identity token verification.

WHY: Which principal is calling is decided by the external identity
provider, not by this service. The provider issues signed JWTs; this
module verifies the signature and expiry and extracts the opaque
principal identifier from the configured claim. No passwords, sessions
or token storage live here.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, ExpiredSignatureError, JWTError

from tenantguard.core.config import settings
from tenantguard.core.exceptions import TokenExpiredError, TokenInvalidError


def decode_identity_token(token: str) -> Dict[str, Any]:
    """
    Verify and decode an identity provider token.

    Args:
        token: Encoded JWT from the Authorization header

    Returns:
        Decoded claims

    Raises:
        TokenExpiredError: If the token has expired
        TokenInvalidError: If the token is malformed or the signature is invalid
    """
    options = {"verify_aud": settings.IDP_JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.IDP_JWT_SECRET,
            algorithms=[settings.IDP_JWT_ALGORITHM],
            audience=settings.IDP_JWT_AUDIENCE,
            options=options,
        )
    except ExpiredSignatureError:
        raise TokenExpiredError()
    except JWTError as e:
        raise TokenInvalidError(message="Invalid token", error=str(e))


def resolve_principal(token: str) -> str:
    """
    Return the principal identifier asserted by an identity token.

    Raises:
        TokenInvalidError: If the principal claim is missing or empty
    """
    claims = decode_identity_token(token)
    principal = claims.get(settings.IDP_PRINCIPAL_CLAIM)
    if principal is None or not str(principal).strip():
        raise TokenInvalidError(
            message="Invalid token: missing principal claim",
            claim=settings.IDP_PRINCIPAL_CLAIM,
        )
    return str(principal)


def issue_identity_token(
    principal: str,
    expires_delta: Optional[timedelta] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """
    Mint a token the way the identity provider would.

    Only for local development, administrative scripts and tests; in
    production tokens come from the provider.

    Args:
        principal: Value for the principal claim
        expires_delta: Lifetime (default one hour)
        extra_claims: Additional claims, e.g. {"aud": "authenticated"}
    """
    now = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        settings.IDP_PRINCIPAL_CLAIM: principal,
        "iat": now,
        "exp": now + (expires_delta or timedelta(hours=1)),
    }
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, settings.IDP_JWT_SECRET, algorithm=settings.IDP_JWT_ALGORITHM)

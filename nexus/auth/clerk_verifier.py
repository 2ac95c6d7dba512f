"""
Clerk JWT verifier for authenticating Clerk-issued session tokens.

This module handles:
- Fetching and caching JWKS from Clerk
- JWT signature, expiry and issuer validation

SECURITY:
- Clerk is the ONLY authentication authority
- All JWTs MUST be verified against Clerk's JWKS
- NO custom tokens are issued or accepted

Documentation: https://clerk.com/docs/backend-requests/handling/manual-jwt
"""

import logging
import time
from threading import Lock
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient, PyJWKClientError
from jwt.exceptions import (
    ExpiredSignatureError,
    InvalidAudienceError,
    InvalidIssuerError,
    InvalidTokenError,
)

from nexus.config.settings import get_settings

logger = logging.getLogger(__name__)


class ClerkVerificationError(Exception):
    """Exception raised when Clerk JWT verification fails."""

    def __init__(self, message: str, error_code: str = "verification_failed"):
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ClerkJWTVerifier:
    """
    Verifies Clerk-issued JWTs using JWKS.

    Usage:
        verifier = ClerkJWTVerifier(issuer="https://example.clerk.accounts.dev")
        claims = verifier.verify_token(token)
        user_id = claims["sub"]
    """

    # JWKS cache duration in seconds
    JWKS_CACHE_DURATION = 3600

    # Clock skew tolerance in seconds (for exp/iat validation)
    CLOCK_SKEW_SECONDS = 60

    def __init__(
        self,
        issuer: str,
        audience: Optional[str] = None,
        jwks_url: Optional[str] = None,
    ):
        if not issuer:
            raise ClerkVerificationError(
                "CLERK_FRONTEND_API or CLERK_ISSUER_URL is required",
                error_code="config_error",
            )
        self._issuer = issuer
        self._audience = audience
        self._jwks_url = jwks_url or f"{issuer.rstrip('/')}/.well-known/jwks.json"

        self._jwks_client: Optional[PyJWKClient] = None
        self._jwks_client_lock = Lock()
        self._jwks_last_refresh: float = 0

        logger.info(
            "Initialized ClerkJWTVerifier",
            extra={"issuer": self._issuer, "jwks_url": self._jwks_url},
        )

    def _get_jwks_client(self) -> PyJWKClient:
        with self._jwks_client_lock:
            now = time.time()
            if (
                self._jwks_client is None
                or now - self._jwks_last_refresh > self.JWKS_CACHE_DURATION
            ):
                self._jwks_client = PyJWKClient(
                    self._jwks_url,
                    cache_keys=True,
                    lifespan=self.JWKS_CACHE_DURATION,
                )
                self._jwks_last_refresh = now
                logger.debug("Refreshed JWKS client", extra={"jwks_url": self._jwks_url})
            return self._jwks_client

    def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify a Clerk JWT and return its claims.

        Raises:
            ClerkVerificationError: If verification fails
        """
        if not token:
            raise ClerkVerificationError("Token is required", error_code="missing_token")

        if token.startswith("Bearer "):
            token = token[7:]

        try:
            signing_key = self._get_jwks_client().get_signing_key_from_jwt(token)
            return jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                issuer=self._issuer,
                audience=self._audience,
                options={
                    "verify_aud": self._audience is not None,
                    "require": ["sub", "iss", "exp", "iat"],
                },
                leeway=self.CLOCK_SKEW_SECONDS,
            )

        except ExpiredSignatureError:
            logger.warning("Token has expired")
            raise ClerkVerificationError("Token has expired", error_code="token_expired")

        except InvalidIssuerError:
            logger.warning("Invalid token issuer")
            raise ClerkVerificationError("Invalid token issuer", error_code="invalid_issuer")

        except InvalidAudienceError:
            logger.warning("Invalid token audience")
            raise ClerkVerificationError("Invalid token audience", error_code="invalid_audience")

        except PyJWKClientError as e:
            logger.error("JWKS client error", extra={"error": str(e)})
            raise ClerkVerificationError(
                f"Failed to fetch signing key: {e}",
                error_code="jwks_error",
            )

        except InvalidTokenError as e:
            logger.warning("Invalid token", extra={"error": str(e)})
            raise ClerkVerificationError(f"Invalid token: {e}", error_code="invalid_token")


# Singleton verifier instance (lazy initialization)
_verifier_instance: Optional[ClerkJWTVerifier] = None
_verifier_lock = Lock()


def get_verifier() -> ClerkJWTVerifier:
    """
    Get the singleton ClerkJWTVerifier instance.

    Raises:
        ClerkVerificationError: If Clerk is not configured
    """
    global _verifier_instance

    with _verifier_lock:
        if _verifier_instance is None:
            settings = get_settings()
            _verifier_instance = ClerkJWTVerifier(
                issuer=settings.clerk_issuer,
                audience=settings.clerk_audience,
            )
        return _verifier_instance

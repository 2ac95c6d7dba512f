"""
Structured error classes for theNexus.

Every domain failure that reaches the HTTP boundary is a NexusError. Each
carries a machine-readable error_code, the HTTP status the boundary maps it
to, and a to_dict() used as the JSON response body.

ConfigurationError is deliberately NOT a NexusError: it is never rendered to
a client, it stops the process from starting.
"""

from typing import Optional

from fastapi import status


class NexusError(Exception):
    """Base exception for errors surfaced to API callers."""

    error_code = "error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON response."""
        return {"error": self.error_code, "message": self.message}


class AuthenticationError(NexusError):
    """Missing, malformed or unverifiable bearer token."""

    error_code = "authentication_required"
    http_status = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(NexusError):
    """
    Raised when the access gate denies a capability.

    effective_role and permission are kept for server-side diagnostics. The
    response body only names the missing permission.
    """

    error_code = "not_permitted"
    http_status = status.HTTP_401_UNAUTHORIZED

    def __init__(self, effective_role: str, permission: str):
        self.effective_role = effective_role
        self.permission = permission
        super().__init__(f"Not permitted: missing permission '{permission}'")

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": "You are not permitted to perform this action",
            "permission": self.permission,
        }


class IdentityError(NexusError):
    """
    Identity claims could not be turned into a valid identity.

    Codes:
    - unknown_role: role claim is not a known role
    - invalid_active_role: active role claim is not Professional or HrPartner
    - not_dual_role: active-role switch requested by a single-role identity
    """

    error_code = "identity_error"
    http_status = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str, error_code: str = "identity_error"):
        super().__init__(message, error_code=error_code)


class NotFoundError(NexusError):
    """A referenced company, request, professional or job role does not exist."""

    error_code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found")

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.message,
            "resource": self.resource,
        }


class InsufficientCreditsError(NexusError):
    """Create attempted while the company has no available credit."""

    error_code = "insufficient_credits"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__("No introduction credits remaining")


class InvalidTransitionError(NexusError):
    """The event is not valid from the request's current state."""

    error_code = "invalid_transition"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, request_id: str, current_status: str, event: str):
        self.request_id = request_id
        self.current_status = current_status
        self.event = event
        super().__init__(
            f"Cannot {event} an introduction request that is {current_status.lower()}"
        )

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.message,
            "current_status": self.current_status,
            "event": self.event,
        }


class DuplicateIntroductionError(NexusError):
    """A PENDING request already exists for the same job role and professional."""

    error_code = "duplicate_introduction"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, existing_request_id: str):
        self.existing_request_id = existing_request_id
        super().__init__(
            "A pending introduction request already exists for this professional and job role"
        )


class ProfessionalUnavailableError(NexusError):
    """The professional is not open to opportunities or has hidden the company."""

    error_code = "professional_unavailable"
    http_status = status.HTTP_403_FORBIDDEN

    def __init__(self, reason: str = "not_available"):
        self.reason = reason
        super().__init__("This professional is not accepting introduction requests")


class EntitlementDeniedError(NexusError):
    """
    The company's subscription does not cover the requested action.

    Surfaces to the client as "upgrade required".
    """

    error_code = "upgrade_required"
    http_status = status.HTTP_402_PAYMENT_REQUIRED

    def __init__(self, feature: str, reason: str, tier: Optional[str] = None):
        self.feature = feature
        self.reason = reason
        self.tier = tier
        super().__init__(f"Upgrade required: {reason}")

    def to_dict(self) -> dict:
        return {
            "error": self.error_code,
            "message": self.message,
            "feature": self.feature,
            "tier": self.tier,
        }


class IdentityProviderError(NexusError):
    """The identity provider could not be reached or rejected an update."""

    error_code = "identity_provider_unavailable"
    http_status = status.HTTP_502_BAD_GATEWAY


class ConfigurationError(Exception):
    """Fatal misconfiguration detected at startup. The service must not serve traffic."""
    pass

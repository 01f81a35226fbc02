"""Error taxonomy shared by the server manager and the provider gateway.

Every error carries a stable ``kind`` string plus a human-readable message,
so a boundary layer (HTTP handler, CLI) can render it without inventing text.
"""

from typing import Any, Optional


class SwitchboardError(Exception):
    """Base class for all switchboard errors."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


# Registry errors

class DuplicateId(SwitchboardError):
    kind = "duplicate_id"

    def __init__(self, server_id: str):
        super().__init__(f"Server '{server_id}' is already registered")
        self.server_id = server_id


class UnknownId(SwitchboardError):
    kind = "unknown_id"

    def __init__(self, server_id: str):
        super().__init__(f"No server registered with id '{server_id}'")
        self.server_id = server_id


class InvalidTransition(SwitchboardError):
    """A lifecycle transition outside the allowed table was attempted."""

    kind = "invalid_transition"


# Discovery errors. These are recorded on the handle, not raised to callers.

class DiscoveryFailure(SwitchboardError):
    kind = "discovery_failure"


class DiscoveryTimeout(DiscoveryFailure):
    kind = "discovery_timeout"


class ToolInvocationError(SwitchboardError):
    kind = "tool_invocation_error"


# Request-shape errors, rejected before any network call

class InvalidRequest(SwitchboardError):
    """A message or option could not be understood."""

    kind = "invalid_request"



class UnsupportedProvider(SwitchboardError):
    kind = "unsupported_provider"


class CapabilityMismatch(SwitchboardError):
    kind = "capability_mismatch"


# Transport errors

class ProviderError(SwitchboardError):
    """Opaque provider failure carrying the raw status and body."""

    kind = "provider_error"
    retryable = False

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        body: str = "",
        provider: str = "",
    ):
        super().__init__(message)
        self.status = status
        self.body = body
        self.provider = provider

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status": self.status,
            "body": self.body,
            "provider": self.provider,
            "retryable": self.retryable,
        })
        return data


class AuthError(ProviderError):
    kind = "auth_error"


class RateLimited(ProviderError):
    kind = "rate_limited"
    retryable = True

    def __init__(self, *args, retry_after: Optional[float] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retry_after"] = self.retry_after
        return data


class TransientProviderError(ProviderError):
    kind = "transient_provider_error"
    retryable = True

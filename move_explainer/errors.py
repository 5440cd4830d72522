"""
Error taxonomy for move-explainer.

Every failure the service can report is a subclass of ``MoveExplainerError``
with a stable ``code`` string and the HTTP ``status_code`` the web layer
answers with, so callers can tell bad input apart from a missing record or an
unavailable upstream.
"""

from typing import Any, Dict, Optional


class MoveExplainerError(Exception):
    """Base class for all service errors."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


# ---------------------------------------------------------------------------
# Input errors
# ---------------------------------------------------------------------------

class ValidationError(MoveExplainerError):
    """A required field is missing, empty or of the wrong type."""

    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, *, field: str = ""):
        super().__init__(message, details={"field": field} if field else None)
        self.field = field


class InvalidAddressError(ValidationError):
    """Text that is not a 66-char, ``0x``-prefixed hex Sui address."""

    code = "invalid_format"


class MalformedIdError(MoveExplainerError):
    code = "malformed_id"
    status_code = 400


class InvalidNetworkError(MoveExplainerError):
    code = "invalid_network"
    status_code = 400


# ---------------------------------------------------------------------------
# Record errors
# ---------------------------------------------------------------------------

class NotFoundError(MoveExplainerError):
    code = "not_found"
    status_code = 404


class OwnershipError(MoveExplainerError):
    """Caller is not the recorded owner (only raised when ownership is enforced)."""

    code = "not_owner"
    status_code = 403


class StorageError(MoveExplainerError):
    """Connectivity or serialization failure in the persistence layer."""

    code = "storage_unavailable"
    status_code = 503


# ---------------------------------------------------------------------------
# Decompilation errors
# ---------------------------------------------------------------------------

class RpcError(MoveExplainerError):
    """Transport, HTTP or JSON-RPC level failure talking to a full node."""

    code = "rpc_error"
    status_code = 502


class MalformedResponseError(MoveExplainerError):
    code = "malformed_response"
    status_code = 502


class DecodeError(MoveExplainerError):
    """A module's bytecode payload is not valid base64."""

    code = "decode_error"
    status_code = 502

    def __init__(self, message: str, *, module_name: str = ""):
        super().__init__(message, details={"module": module_name} if module_name else None)
        self.module_name = module_name


class DecompilerError(MoveExplainerError):
    code = "decompiler_error"
    status_code = 500

    def __init__(self, message: str, *, module_name: str = ""):
        super().__init__(message, details={"module": module_name} if module_name else None)
        self.module_name = module_name

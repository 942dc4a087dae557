"""
Typed failures raised by the wallet engine.

Every error carries a closed `kind` and a display-safe `message`; the HTTP status
is derived from the kind, so routers never branch on message text.
"""
import enum


class ErrorKind(str, enum.Enum):
    validation = "validation"
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    not_found = "not_found"
    conflict = "conflict"
    integrity = "integrity"
    consistency = "consistency"
    configuration = "configuration"
    provider = "provider"


STATUS_BY_KIND = {
    ErrorKind.validation: 400,
    ErrorKind.unauthorized: 401,
    ErrorKind.forbidden: 403,
    ErrorKind.not_found: 404,
    ErrorKind.conflict: 409,
    ErrorKind.integrity: 500,
    ErrorKind.consistency: 500,
    ErrorKind.configuration: 500,
    ErrorKind.provider: 502,
}


class WalletError(Exception):
    kind: ErrorKind = ErrorKind.validation
    default_message = "Request failed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind.value}


class ValidationError(WalletError):
    kind = ErrorKind.validation
    default_message = "Bad request"


class UnauthorizedError(WalletError):
    kind = ErrorKind.unauthorized
    default_message = "Unauthorized"


class ForbiddenError(WalletError):
    kind = ErrorKind.forbidden
    default_message = "You do not have access to this wallet"


class NotFoundError(WalletError):
    kind = ErrorKind.not_found
    default_message = "Wallet not found"


class ConflictError(WalletError):
    kind = ErrorKind.conflict
    default_message = "Conflict"


class IntegrityError(WalletError):
    """Stored key material failed authentication; never retried."""
    kind = ErrorKind.integrity
    default_message = "Stored key material failed verification"


class ConsistencyError(WalletError):
    kind = ErrorKind.consistency
    default_message = "Transfer could not be completed consistently"


class ConfigurationError(WalletError):
    kind = ErrorKind.configuration
    default_message = "Service is misconfigured"


class ProviderError(WalletError):
    kind = ErrorKind.provider
    default_message = "Chain provider request failed"

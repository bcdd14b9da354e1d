"""
Exception hierarchy for Warden.

All Warden exceptions inherit from WardenError, allowing callers to catch
all Warden-specific exceptions with a single except clause.

Exception Categories:
    - AuthorizationError: A write was denied by the rule set
    - ValidationError: A payload failed schema validation after projection
    - NotFoundError: A write targeted a record that does not exist
    - PolicyError: The rule catalogue and the engine disagree (programming error)
    - StorageError: Database operation failed
    - ConfigError: Settings could not be loaded

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (resource, action, ids where applicable)
    - Read paths never raise AuthorizationError; they return None or []
    - PolicyError subclasses are fatal and must propagate
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Authorization errors: 1xxx
ERROR_AUTHORIZATION_DENIED = 1001
ERROR_UNAUTHENTICATED = 1002

# Validation errors: 2xxx
ERROR_VALIDATION_FAILED = 2001

# Lookup errors: 3xxx
ERROR_NOT_FOUND = 3001

# Policy shape errors: 4xxx
ERROR_POLICY_UNKNOWN_ROLE = 4001
ERROR_POLICY_UNSUPPORTED_OPERATOR = 4002
ERROR_POLICY_UNSUPPORTED_FIELD = 4003

# Storage errors: 5xxx
ERROR_STORAGE_CONNECTION = 5001
ERROR_STORAGE_WRITE = 5002
ERROR_STORAGE_READ = 5003

# Configuration errors: 6xxx
ERROR_CONFIG_INVALID = 6001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class WardenError(Exception):
    """
    Base exception for all Warden errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Authorization Errors
# =============================================================================


@dataclass
class AuthorizationError(WardenError):
    """
    Raised when a write is denied by the principal's rule set.

    Always raised before storage is touched.

    Attributes:
        resource_type: The resource the action targeted
        action: The action that was denied
        resource_id: ID of the targeted record, if any
    """

    resource_type: str = ""
    action: str = ""
    resource_id: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Missing permission"
            if self.action:
                self.message += f": cannot {self.action} {self.resource_type}"
        if self.code == 0:
            self.code = ERROR_AUTHORIZATION_DENIED
        self.context.update({
            "resource_type": self.resource_type,
            "action": self.action,
            "resource_id": self.resource_id,
        })


@dataclass
class UnauthenticatedError(AuthorizationError):
    """Raised when a write path is reached without a principal."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Unauthenticated"
        if self.code == 0:
            self.code = ERROR_UNAUTHENTICATED
        if not self.suggestion:
            self.suggestion = "Log in and pass the session token with the request"
        super().__post_init__()


# =============================================================================
# Validation Errors
# =============================================================================


@dataclass
class ValidationError(WardenError):
    """
    Raised when a payload is invalid after field projection.

    Attributes:
        resource_type: The resource the payload was meant for
        errors: Field-level error descriptions
    """

    resource_type: str = ""
    errors: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid {self.resource_type} data"
            if self.errors:
                self.message += ": " + "; ".join(self.errors)
        if self.code == 0:
            self.code = ERROR_VALIDATION_FAILED
        self.context.update({
            "resource_type": self.resource_type,
            "errors": self.errors,
        })


# =============================================================================
# Lookup Errors
# =============================================================================


@dataclass
class NotFoundError(WardenError):
    """Raised when a write targets a record that does not exist."""

    resource_type: str = ""
    resource_id: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.resource_type.capitalize()} not found: {self.resource_id}"
        if self.code == 0:
            self.code = ERROR_NOT_FOUND
        self.context.update({
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
        })


# =============================================================================
# Policy Errors
# =============================================================================


@dataclass
class PolicyError(WardenError):
    """
    Base class for policy shape errors.

    These mean the rule catalogue and the engine have drifted out of sync.
    They are programming errors and must never be swallowed.
    """


@dataclass
class UnknownRoleError(PolicyError):
    """Raised when the rule-set builder meets a role it has no rules for."""

    role: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown role: {self.role}"
        if self.code == 0:
            self.code = ERROR_POLICY_UNKNOWN_ROLE
        self.context["role"] = self.role


@dataclass
class UnsupportedOperatorError(PolicyError):
    """Raised when a condition node uses an operator the engine cannot lower."""

    operator: str = ""
    node_kind: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unsupported {self.node_kind} condition operator: {self.operator}"
        if self.code == 0:
            self.code = ERROR_POLICY_UNSUPPORTED_OPERATOR
        self.context.update({
            "operator": self.operator,
            "node_kind": self.node_kind,
        })


@dataclass
class UnsupportedFieldError(PolicyError):
    """Raised when a condition references a field the resource does not have."""

    resource_type: str = ""
    field_name: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown {self.resource_type} field in condition: {self.field_name}"
        if self.code == 0:
            self.code = ERROR_POLICY_UNSUPPORTED_FIELD
        self.context.update({
            "resource_type": self.resource_type,
            "field_name": self.field_name,
        })


# =============================================================================
# Storage Errors
# =============================================================================


@dataclass
class StorageError(WardenError):
    """
    Base class for storage/database errors.

    Attributes:
        operation: The operation that failed (e.g., "insert", "find")
    """

    operation: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context["operation"] = self.operation


@dataclass
class StorageConnectionError(StorageError):
    """Raised when database connection fails."""

    db_path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to connect to database: {self.db_path}"
        if self.code == 0:
            self.code = ERROR_STORAGE_CONNECTION
        if not self.suggestion:
            self.suggestion = "Check that the database path is valid and writable"
        super().__post_init__()
        self.context["db_path"] = self.db_path


@dataclass
class StorageWriteError(StorageError):
    """Raised when a write operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database write failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_WRITE
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class StorageReadError(StorageError):
    """Raised when a read operation fails."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Database read failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_STORAGE_READ
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(WardenError):
    """Raised when a settings file cannot be read or validated."""

    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid configuration: {self.path}"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context["path"] = self.path

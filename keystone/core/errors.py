"""
Typed failures raised by the authorization core

Only reason codes, invariant names and resource kinds cross the boundary;
messages are for logs.
"""

from typing import Any, Dict, Optional


class KeystoneError(Exception):
    """Base class for all core failures"""


class AuthenticationAbsent(KeystoneError):
    """No actor could be resolved for the request"""

    def __init__(self, message: str = "authentication required"):
        super().__init__(message)


class AuthorizationDenied(KeystoneError):
    """Actor resolved but the access check failed"""

    def __init__(self, reason: str):
        self.reason = str(getattr(reason, "value", reason))
        super().__init__(f"forbidden ({self.reason})")


class InvariantViolation(KeystoneError):
    """A mutation would break a structural invariant of the membership graph"""

    SINGLE_OWNER = "single_owner"
    SUPERVISOR_FORBIDDEN = "supervisor_forbidden"
    SUPERVISOR_REQUIRED = "supervisor_required"
    SUPERVISOR_INELIGIBLE = "supervisor_ineligible"
    SUPERVISOR_CYCLE = "supervisor_cycle"
    NO_REASSIGNMENT_TARGET = "no_reassignment_target"
    UNIQUE_MEMBERSHIP = "unique_membership"
    UNIQUE_EMAIL = "unique_email"
    MEMBERSHIP_ELSEWHERE = "membership_elsewhere"

    def __init__(self, invariant: str, **meta: Any):
        self.invariant = invariant
        self.meta: Dict[str, Any] = meta
        super().__init__(f"invariant violated: {invariant}")


class NotFound(KeystoneError):
    """Referenced tenant, user, membership or module does not exist"""

    def __init__(self, resource: str, identifier: Optional[Any] = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} not found")


class AuditWriteFailure(KeystoneError):
    """Audit row could not be written; logged, never propagated"""


class CommandParseError(KeystoneError):
    """Request body could not be turned into a valid command"""

    def __init__(self, errors: Optional[list] = None):
        self.errors = errors or []
        super().__init__("invalid command")


class UnsupportedContentType(KeystoneError):
    """No command parser is registered for the request content type"""

    def __init__(self, content_type: str):
        self.content_type = content_type
        super().__init__(f"unsupported content type: {content_type or '(none)'}")

"""
Schemas module
"""

from keystone.schemas.commands import (
    EntitlementCommand,
    MemberCreateCommand,
    MembershipCommand,
    OwnershipTransferCommand,
    PlatformRoleCommand,
    PreviewCommand,
    SignInCommand,
    SupervisorCommand,
    TenantCreateCommand,
    TenantStatusCommand,
    UserEntitlementCommand,
    read_command,
)

__all__ = [
    "EntitlementCommand",
    "MemberCreateCommand",
    "MembershipCommand",
    "OwnershipTransferCommand",
    "PlatformRoleCommand",
    "PreviewCommand",
    "SignInCommand",
    "SupervisorCommand",
    "TenantCreateCommand",
    "TenantStatusCommand",
    "UserEntitlementCommand",
    "read_command",
]

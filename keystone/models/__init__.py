from keystone.models.tenant import Tenant, TenantStatus
from keystone.models.user import User
from keystone.models.membership import Membership, MembershipRank
from keystone.models.platform_role import PlatformRole, PlatformRank
from keystone.models.module import Module
from keystone.models.entitlement import Entitlement, UserEntitlement
from keystone.models.audit_log import AuditLogEntry
from keystone.models.auth_session import AuthSession

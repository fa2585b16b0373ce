"""
Repository: the one storage handle every component receives

Wraps a SQLModel session with the lookups the authorization core needs and a
transaction scope for mutations. Built per request by the API dependencies, or
directly by scripts and tests.
"""

from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional
import uuid

from sqlalchemy import func
from sqlmodel import Session, select
import structlog

from keystone.core.errors import NotFound
from keystone.models import (
    AuditLogEntry,
    AuthSession,
    Entitlement,
    Membership,
    MembershipRank,
    Module,
    PlatformRank,
    PlatformRole,
    Tenant,
    User,
    UserEntitlement,
)

logger = structlog.get_logger(__name__)


class Repository:
    """Storage access for the authorization core"""

    def __init__(
        self,
        session: Session,
        session_factory: Optional[Callable[[], Session]] = None,
    ):
        self.session = session
        # Used for side calls that must not share the caller's transaction
        self.session_factory = session_factory

    @contextmanager
    def transaction(self) -> Iterator["Repository"]:
        """Commit on success, roll back and re-raise on any failure"""
        try:
            yield self
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def add(self, instance) -> None:
        self.session.add(instance)

    def delete(self, instance) -> None:
        self.session.delete(instance)

    def flush(self) -> None:
        self.session.flush()

    # ------------------------------------------------------------------
    # Tenants and users
    # ------------------------------------------------------------------

    def get_tenant(self, tenant_id: uuid.UUID) -> Optional[Tenant]:
        return self.session.get(Tenant, tenant_id)

    def lock_tenant(self, tenant_id: uuid.UUID) -> Tenant:
        """Row-lock the tenant so membership mutations on it serialize"""
        tenant = self.session.exec(
            select(Tenant).where(Tenant.id == tenant_id).with_for_update()
        ).first()
        if tenant is None:
            raise NotFound("tenant", tenant_id)
        return tenant

    def get_user(self, user_id: uuid.UUID) -> Optional[User]:
        return self.session.get(User, user_id)

    def find_user_by_email(self, tenant_id: uuid.UUID, email: str) -> Optional[User]:
        return self.session.exec(
            select(User).where(User.tenant_id == tenant_id, User.email == email)
        ).first()

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def get_membership(self, tenant_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Membership]:
        """Membership row regardless of state"""
        return self.session.exec(
            select(Membership).where(
                Membership.tenant_id == tenant_id,
                Membership.user_id == user_id,
            )
        ).first()

    def get_live_membership(self, tenant_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Membership]:
        """Active, non-deleted membership"""
        return self.session.exec(
            select(Membership).where(
                Membership.tenant_id == tenant_id,
                Membership.user_id == user_id,
                Membership.is_active == True,  # noqa: E712
                Membership.deleted_at == None,  # noqa: E711
            )
        ).first()

    def count_active_owners(self, tenant_id: uuid.UUID) -> int:
        return self.session.exec(
            select(func.count(Membership.id)).where(
                Membership.tenant_id == tenant_id,
                Membership.rank == MembershipRank.TENANT_OWNER,
                Membership.is_active == True,  # noqa: E712
                Membership.deleted_at == None,  # noqa: E711
            )
        ).one()

    def find_active_owner(self, tenant_id: uuid.UUID) -> Optional[Membership]:
        return self.session.exec(
            select(Membership).where(
                Membership.tenant_id == tenant_id,
                Membership.rank == MembershipRank.TENANT_OWNER,
                Membership.is_active == True,  # noqa: E712
                Membership.deleted_at == None,  # noqa: E711
            )
        ).first()

    def list_reports(
        self,
        tenant_id: uuid.UUID,
        supervisor_id: uuid.UUID,
        live_only: bool = True,
    ) -> List[Membership]:
        """Memberships in the tenant whose supervisor is the given user"""
        query = select(Membership).where(
            Membership.tenant_id == tenant_id,
            Membership.supervisor_id == supervisor_id,
        )
        if live_only:
            query = query.where(
                Membership.is_active == True,  # noqa: E712
                Membership.deleted_at == None,  # noqa: E711
            )
        return list(self.session.exec(query.order_by(Membership.created_at)).all())

    def list_user_memberships(self, user_id: uuid.UUID) -> List[Membership]:
        return list(
            self.session.exec(select(Membership).where(Membership.user_id == user_id)).all()
        )

    # ------------------------------------------------------------------
    # Platform roles
    # ------------------------------------------------------------------

    def platform_ranks(self, user_id: uuid.UUID) -> List[PlatformRank]:
        return list(
            self.session.exec(
                select(PlatformRole.role).where(PlatformRole.user_id == user_id)
            ).all()
        )

    def get_platform_role(self, user_id: uuid.UUID, role: PlatformRank) -> Optional[PlatformRole]:
        return self.session.exec(
            select(PlatformRole).where(
                PlatformRole.user_id == user_id,
                PlatformRole.role == role,
            )
        ).first()

    def list_platform_roles(self, user_id: uuid.UUID) -> List[PlatformRole]:
        return list(
            self.session.exec(select(PlatformRole).where(PlatformRole.user_id == user_id)).all()
        )

    # ------------------------------------------------------------------
    # Modules and entitlements
    # ------------------------------------------------------------------

    def get_module(self, module_key: str) -> Optional[Module]:
        return self.session.get(Module, module_key)

    def list_modules(self) -> List[Module]:
        return list(self.session.exec(select(Module).order_by(Module.key)).all())

    def get_entitlement(self, tenant_id: uuid.UUID, module_key: str) -> Optional[Entitlement]:
        return self.session.exec(
            select(Entitlement).where(
                Entitlement.tenant_id == tenant_id,
                Entitlement.module_key == module_key,
            )
        ).first()

    def list_entitlements(self, tenant_id: uuid.UUID) -> List[Entitlement]:
        return list(
            self.session.exec(select(Entitlement).where(Entitlement.tenant_id == tenant_id)).all()
        )

    def get_user_entitlement(
        self,
        user_id: uuid.UUID,
        tenant_id: uuid.UUID,
        module_key: str,
    ) -> Optional[UserEntitlement]:
        return self.session.exec(
            select(UserEntitlement).where(
                UserEntitlement.user_id == user_id,
                UserEntitlement.tenant_id == tenant_id,
                UserEntitlement.module_key == module_key,
            )
        ).first()

    def list_user_entitlements(
        self,
        user_id: uuid.UUID,
        tenant_id: Optional[uuid.UUID] = None,
    ) -> List[UserEntitlement]:
        """Overrides held by the user, optionally restricted to one tenant"""
        query = select(UserEntitlement).where(UserEntitlement.user_id == user_id)
        if tenant_id is not None:
            query = query.where(UserEntitlement.tenant_id == tenant_id)
        return list(self.session.exec(query.order_by(UserEntitlement.module_key)).all())

    # ------------------------------------------------------------------
    # Sessions and audit
    # ------------------------------------------------------------------

    def get_auth_session(self, token: str) -> Optional[AuthSession]:
        return self.session.exec(select(AuthSession).where(AuthSession.token == token)).first()

    def list_auth_sessions(self, user_id: uuid.UUID) -> List[AuthSession]:
        return list(
            self.session.exec(select(AuthSession).where(AuthSession.user_id == user_id)).all()
        )

    def list_audit(
        self,
        tenant_id: uuid.UUID,
        action: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditLogEntry]:
        query = select(AuditLogEntry).where(AuditLogEntry.tenant_id == tenant_id)
        if action:
            query = query.where(AuditLogEntry.action == action)
        query = query.order_by(AuditLogEntry.created_at.desc()).limit(limit)
        return list(self.session.exec(query).all())

"""
Hierarchy invariant engine

Keeps the membership graph of each tenant valid:
- exactly one active, non-deleted TENANT_OWNER;
- MANAGER and TENANT_OWNER rows carry no supervisor;
- every active MEMBER reports to an active MANAGER of the same tenant;
- the supervision chain is acyclic (walked with a depth cap).

Every public mutation runs in one transaction: the tenant row is locked first,
all invariant reads happen after the lock through the same session, and the
single-owner check is re-run after the writes are flushed, so the commit only
happens on a graph that is valid as stored.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
import uuid

import structlog

from keystone.core.config import get_settings
from keystone.core.errors import AuthenticationAbsent, AuthorizationDenied, InvariantViolation, NotFound
from keystone.core.repository import Repository
from keystone.models import Membership, MembershipRank, User
from keystone.schemas.commands import MemberCreateCommand, MembershipCommand
from keystone.services.access import AccessReason
from keystone.services.audit import AuditAction, write_audit
from keystone.services.levels import Level, get_actor_level, get_platform_level
from keystone.services.tenants import create_tenant_user

logger = structlog.get_logger(__name__)
settings = get_settings()


@dataclass
class MembershipDraft:
    """Membership state about to be persisted"""
    tenant_id: uuid.UUID
    user_id: uuid.UUID
    rank: MembershipRank
    supervisor_id: Optional[uuid.UUID] = None
    is_active: bool = True


@dataclass(frozen=True)
class ReassignmentResult:
    count: int
    target_user_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class MembershipChange:
    membership: Membership
    reassigned_count: int = 0


@dataclass(frozen=True)
class UserDeletion:
    user_id: uuid.UUID
    reassigned_count: int = 0


# ----------------------------------------------------------------------
# Invariant checks
# ----------------------------------------------------------------------

def assert_single_tenant_owner(repo: Repository, tenant_id: uuid.UUID) -> None:
    """Exactly one active, non-deleted owner"""
    count = repo.count_active_owners(tenant_id)
    if count != 1:
        raise InvariantViolation(InvariantViolation.SINGLE_OWNER, tenant_id=tenant_id, count=count)


def validate_supervisor_rule(
    repo: Repository,
    draft: MembershipDraft,
    max_depth: Optional[int] = None,
) -> None:
    """Reject a draft whose supervisor assignment would break the hierarchy

    Inactive drafts are only checked for the senior-rank rule: an inactive
    member may keep a supervisor that has since been deactivated.
    """
    if draft.rank != MembershipRank.MEMBER:
        if draft.supervisor_id is not None:
            raise InvariantViolation(
                InvariantViolation.SUPERVISOR_FORBIDDEN,
                tenant_id=draft.tenant_id,
                user_id=draft.user_id,
                rank=draft.rank,
            )
        return

    if not draft.is_active:
        return

    if draft.supervisor_id is None:
        raise InvariantViolation(
            InvariantViolation.SUPERVISOR_REQUIRED,
            tenant_id=draft.tenant_id,
            user_id=draft.user_id,
        )

    if draft.supervisor_id == draft.user_id:
        raise InvariantViolation(InvariantViolation.SUPERVISOR_CYCLE, at_user_id=draft.user_id)

    # Missing, foreign-tenant, inactive and wrong-rank supervisors look the same
    supervisor = repo.get_live_membership(draft.tenant_id, draft.supervisor_id)
    if supervisor is None or supervisor.rank != MembershipRank.MANAGER:
        raise InvariantViolation(InvariantViolation.SUPERVISOR_INELIGIBLE, tenant_id=draft.tenant_id)

    _assert_no_cycle(repo, draft, max_depth or settings.SUPERVISOR_CHAIN_MAX_DEPTH)


def _assert_no_cycle(repo: Repository, draft: MembershipDraft, max_depth: int) -> None:
    """Walk up from the candidate supervisor; meeting the target is a cycle"""
    cursor = draft.supervisor_id
    for _ in range(max_depth):
        if cursor == draft.user_id:
            raise InvariantViolation(InvariantViolation.SUPERVISOR_CYCLE, at_user_id=cursor)
        membership = repo.get_membership(draft.tenant_id, cursor)
        if membership is None or membership.supervisor_id is None:
            return
        cursor = membership.supervisor_id

    # Chain never terminated within the cap
    raise InvariantViolation(InvariantViolation.SUPERVISOR_CYCLE, at_user_id=cursor, depth=max_depth)


# ----------------------------------------------------------------------
# Reassignment
# ----------------------------------------------------------------------

def _reassignment_target(
    repo: Repository,
    tenant_id: uuid.UUID,
    manager_user_id: uuid.UUID,
) -> Optional[uuid.UUID]:
    """The manager's own supervisor if still an active manager, else the owner"""
    manager = repo.get_membership(tenant_id, manager_user_id)
    if manager is not None and manager.supervisor_id not in (None, manager_user_id):
        upstream = repo.get_live_membership(tenant_id, manager.supervisor_id)
        if upstream is not None and upstream.rank == MembershipRank.MANAGER:
            return upstream.user_id

    owner = repo.find_active_owner(tenant_id)
    if owner is not None and owner.user_id != manager_user_id:
        return owner.user_id
    return None


def reassign_on_supervisor_deactivation(
    repo: Repository,
    tenant_id: uuid.UUID,
    manager_user_id: uuid.UUID,
) -> ReassignmentResult:
    """Repoint every active report of a manager who is going away

    Runs inside the caller's transaction. With reports but no target the
    whole mutation is rejected rather than leaving members orphaned.
    """
    reports = repo.list_reports(tenant_id, manager_user_id)
    if not reports:
        return ReassignmentResult(0, None)

    target = _reassignment_target(repo, tenant_id, manager_user_id)
    if target is None:
        raise InvariantViolation(
            InvariantViolation.NO_REASSIGNMENT_TARGET,
            tenant_id=tenant_id,
            supervisor_id=manager_user_id,
        )

    now = datetime.utcnow()
    for report in reports:
        report.supervisor_id = target
        report.updated_at = now
        repo.add(report)
    repo.flush()

    logger.info(
        f"Reassigned {len(reports)} reports of {manager_user_id} to {target}",
        tenant_id=str(tenant_id),
    )
    return ReassignmentResult(len(reports), target)


def _cascade_reassignment(
    repo: Repository,
    actor_id: uuid.UUID,
    tenant_id: uuid.UUID,
    manager_user_id: uuid.UUID,
) -> ReassignmentResult:
    result = reassign_on_supervisor_deactivation(repo, tenant_id, manager_user_id)
    if result.count:
        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.USER_SUPERVISOR_REASSIGNED,
            meta={
                "deactivatedSupervisorId": manager_user_id,
                "reassignedTo": result.target_user_id,
                "count": result.count,
            },
            tx=repo.session,
        )
    return result


# ----------------------------------------------------------------------
# Mutations
# ----------------------------------------------------------------------

def authorize_member_admin(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    target_user_id: Optional[uuid.UUID] = None,
) -> Level:
    """Platform levels, or the tenant owner acting on someone other than themselves

    A target holding a platform rank can only be touched by a strictly more
    senior actor. Platform actors may always edit their own membership.
    """
    if actor_id is None:
        raise AuthenticationAbsent()
    level = get_actor_level(repo, actor_id, tenant_id)
    if level is None or not level.at_least(Level.TENANT_OWNER):
        raise AuthorizationDenied(AccessReason.NO_ROLE)
    if level == Level.TENANT_OWNER and target_user_id == actor_id:
        raise AuthorizationDenied(AccessReason.NO_ROLE)

    if target_user_id == actor_id:
        return level
    target_level = get_platform_level(repo, target_user_id)
    if target_level is not None and level.seniority >= target_level.seniority:
        logger.warning(
            "Member admin denied on platform user",
            actor_id=str(actor_id),
            target_user_id=str(target_user_id),
        )
        raise AuthorizationDenied(AccessReason.NO_ROLE)
    return level


def _snapshot(user: Optional[User], membership: Optional[Membership]) -> Dict[str, Any]:
    return {
        "user": {"name": user.name} if user else None,
        "membership": {
            "rank": membership.rank,
            "isActive": membership.is_active,
            "supervisorId": membership.supervisor_id,
        } if membership else None,
    }


def insert_membership(
    repo: Repository,
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    rank: MembershipRank,
    supervisor_id: Optional[uuid.UUID] = None,
) -> Membership:
    """Validate and stage a new membership inside the caller's transaction"""
    if repo.get_membership(tenant_id, user_id) is not None:
        raise InvariantViolation(InvariantViolation.UNIQUE_MEMBERSHIP, tenant_id=tenant_id, user_id=user_id)

    validate_supervisor_rule(
        repo,
        MembershipDraft(tenant_id=tenant_id, user_id=user_id, rank=rank, supervisor_id=supervisor_id),
    )
    membership = Membership(
        tenant_id=tenant_id,
        user_id=user_id,
        rank=rank,
        supervisor_id=supervisor_id,
        is_active=True,
    )
    repo.add(membership)
    repo.flush()
    return membership


def add_membership(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    rank: MembershipRank = MembershipRank.MEMBER,
    supervisor_id: Optional[uuid.UUID] = None,
) -> MembershipChange:
    """Give an existing user a membership in the tenant"""
    with repo.transaction():
        repo.lock_tenant(tenant_id)
        authorize_member_admin(repo, actor_id, tenant_id, target_user_id=user_id)

        user = repo.get_user(user_id)
        if user is None or user.deleted_at is not None:
            raise NotFound("user", user_id)

        membership = insert_membership(repo, tenant_id, user_id, rank, supervisor_id)
        assert_single_tenant_owner(repo, tenant_id)

        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.USER_CREATE,
            meta={"targetUserId": user_id, "after": _snapshot(user, membership)},
            tx=repo.session,
        )

    logger.info(f"Membership added: {user_id} in {tenant_id} as {rank.value}")
    return MembershipChange(membership, 0)


def create_member(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    command: MemberCreateCommand,
) -> MembershipChange:
    """Link an existing user, or provision a new user of the tenant and link it"""
    if command.user_id is not None:
        return add_membership(repo, actor_id, tenant_id, command.user_id, command.rank, command.supervisor_id)

    with repo.transaction():
        repo.lock_tenant(tenant_id)
        authorize_member_admin(repo, actor_id, tenant_id)

        user = create_tenant_user(repo, tenant_id, command.name, command.email, command.password)
        membership = insert_membership(repo, tenant_id, user.id, command.rank, command.supervisor_id)
        assert_single_tenant_owner(repo, tenant_id)

        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.USER_CREATE,
            meta={"targetUserId": user.id, "email": user.email, "after": _snapshot(user, membership)},
            tx=repo.session,
        )

    logger.info(f"User provisioned: {user.id} in {tenant_id} as {command.rank.value}")
    return MembershipChange(membership, 0)


def update_membership(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    command: MembershipCommand,
    request_meta: Optional[Dict[str, Any]] = None,
) -> MembershipChange:
    """Apply a rank / active / supervisor / name change to one membership

    A manager who stops being an active manager hands their reports over
    before the change is written.
    """
    with repo.transaction():
        repo.lock_tenant(tenant_id)
        authorize_member_admin(repo, actor_id, tenant_id, target_user_id=user_id)

        user = repo.get_user(user_id)
        membership = repo.get_membership(tenant_id, user_id)
        if user is None or user.deleted_at is not None or membership is None or membership.deleted_at is not None:
            raise NotFound("membership", user_id)

        before = _snapshot(user, membership)

        draft = MembershipDraft(
            tenant_id=tenant_id,
            user_id=user_id,
            rank=command.rank or membership.rank,
            supervisor_id=membership.supervisor_id,
            is_active=membership.is_active if command.is_active is None else command.is_active,
        )
        if command.clear_supervisor:
            draft.supervisor_id = None
        elif command.supervisor_id is not None:
            draft.supervisor_id = command.supervisor_id
        elif draft.rank != MembershipRank.MEMBER:
            # Promotion drops the reporting line
            draft.supervisor_id = None

        rank_changed = draft.rank != membership.rank
        supervisor_changed = draft.supervisor_id != membership.supervisor_id
        reactivated = draft.is_active and not membership.is_active
        if rank_changed or supervisor_changed or reactivated:
            validate_supervisor_rule(repo, draft)

        reassigned = 0
        was_manager = membership.is_live and membership.rank == MembershipRank.MANAGER
        stays_manager = draft.is_active and draft.rank == MembershipRank.MANAGER
        if was_manager and not stays_manager:
            reassigned = _cascade_reassignment(repo, actor_id, tenant_id, user_id).count

        now = datetime.utcnow()
        membership.rank = draft.rank
        membership.is_active = draft.is_active
        membership.supervisor_id = draft.supervisor_id
        membership.updated_at = now
        repo.add(membership)
        if command.name and command.name != user.name:
            user.name = command.name
            user.updated_at = now
            repo.add(user)
        repo.flush()

        assert_single_tenant_owner(repo, tenant_id)

        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.USER_UPDATE,
            meta={
                "targetUserId": user_id,
                "before": before,
                "after": _snapshot(user, membership),
                "reassignedCount": reassigned,
            },
            request_meta=request_meta,
            tx=repo.session,
        )

    logger.info(f"Membership updated: {user_id} in {tenant_id} (reassigned {reassigned})")
    return MembershipChange(membership, reassigned)


def set_supervisor(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    supervisor_id: Optional[uuid.UUID],
    request_meta: Optional[Dict[str, Any]] = None,
) -> MembershipChange:
    """Point an active member at a new supervising manager"""
    with repo.transaction():
        repo.lock_tenant(tenant_id)
        authorize_member_admin(repo, actor_id, tenant_id, target_user_id=user_id)

        membership = repo.get_live_membership(tenant_id, user_id)
        if membership is None:
            raise NotFound("membership", user_id)
        if membership.rank != MembershipRank.MEMBER:
            raise InvariantViolation(
                InvariantViolation.SUPERVISOR_FORBIDDEN,
                tenant_id=tenant_id,
                user_id=user_id,
                rank=membership.rank,
            )

        validate_supervisor_rule(
            repo,
            MembershipDraft(
                tenant_id=tenant_id,
                user_id=user_id,
                rank=membership.rank,
                supervisor_id=supervisor_id,
                is_active=True,
            ),
        )

        previous = membership.supervisor_id
        membership.supervisor_id = supervisor_id
        membership.updated_at = datetime.utcnow()
        repo.add(membership)
        repo.flush()

        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.USER_SUPERVISOR_SET,
            meta={"targetUserId": user_id, "before": previous, "after": supervisor_id},
            request_meta=request_meta,
            tx=repo.session,
        )

    return MembershipChange(membership, 0)


def transfer_ownership(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    new_owner_id: uuid.UUID,
) -> MembershipChange:
    """Promote a member or manager to owner and demote the current owner to manager"""
    with repo.transaction():
        repo.lock_tenant(tenant_id)
        authorize_member_admin(repo, actor_id, tenant_id, target_user_id=new_owner_id)

        current = repo.find_active_owner(tenant_id)
        if current is None:
            raise InvariantViolation(InvariantViolation.SINGLE_OWNER, tenant_id=tenant_id, count=0)

        target = repo.get_live_membership(tenant_id, new_owner_id)
        if target is None:
            raise NotFound("membership", new_owner_id)
        if target.id == current.id:
            return MembershipChange(current, 0)

        reassigned = 0
        if target.rank == MembershipRank.MANAGER:
            # Reports fall back to the outgoing owner, who stays on as a manager
            reassigned = _cascade_reassignment(repo, actor_id, tenant_id, new_owner_id).count

        now = datetime.utcnow()
        target.rank = MembershipRank.TENANT_OWNER
        target.supervisor_id = None
        target.updated_at = now
        current.rank = MembershipRank.MANAGER
        current.supervisor_id = None
        current.updated_at = now
        repo.add(target)
        repo.add(current)
        repo.flush()

        assert_single_tenant_owner(repo, tenant_id)

        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.OWNERSHIP_TRANSFER,
            meta={"from": current.user_id, "to": new_owner_id, "reassignedCount": reassigned},
            tx=repo.session,
        )

    logger.info(f"Ownership of {tenant_id} transferred to {new_owner_id}")
    return MembershipChange(target, reassigned)


def delete_tenant_user(
    repo: Repository,
    actor_id: Optional[uuid.UUID],
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    request_meta: Optional[Dict[str, Any]] = None,
) -> UserDeletion:
    """Hard-delete a user of the tenant with its overrides, membership and sessions"""
    with repo.transaction():
        repo.lock_tenant(tenant_id)
        authorize_member_admin(repo, actor_id, tenant_id, target_user_id=user_id)

        user = repo.get_user(user_id)
        if user is None or user.tenant_id != tenant_id:
            raise NotFound("user", user_id)

        membership = repo.get_membership(tenant_id, user_id)
        if membership is not None and membership.is_live and membership.rank == MembershipRank.TENANT_OWNER:
            # Removing the owner would leave the tenant without one
            raise InvariantViolation(
                InvariantViolation.SINGLE_OWNER,
                tenant_id=tenant_id,
                count=repo.count_active_owners(tenant_id) - 1,
            )

        elsewhere = [m for m in repo.list_user_memberships(user_id) if m.tenant_id != tenant_id]
        if elsewhere:
            raise InvariantViolation(InvariantViolation.MEMBERSHIP_ELSEWHERE, user_id=user_id)

        reassigned = 0
        if membership is not None and membership.is_live and membership.rank == MembershipRank.MANAGER:
            reassigned = _cascade_reassignment(repo, actor_id, tenant_id, user_id).count

        # Inactive reports keep no reference to a deleted user
        for report in repo.list_reports(tenant_id, user_id, live_only=False):
            report.supervisor_id = None
            repo.add(report)

        for override in repo.list_user_entitlements(user_id):
            repo.delete(override)
        for role in repo.list_platform_roles(user_id):
            repo.delete(role)
        for auth_session in repo.list_auth_sessions(user_id):
            repo.delete(auth_session)
        if membership is not None:
            repo.delete(membership)
        repo.flush()
        repo.delete(user)
        repo.flush()

        assert_single_tenant_owner(repo, tenant_id)

        write_audit(
            repo,
            tenant_id=tenant_id,
            actor_user_id=actor_id,
            action=AuditAction.USER_DELETE,
            meta={
                "targetUserId": user_id,
                "email": user.email,
                "name": user.name,
                "rank": membership.rank if membership else None,
                "reassignedCount": reassigned,
            },
            request_meta=request_meta,
            tx=repo.session,
        )

    logger.info(f"User deleted: {user_id} from {tenant_id}")
    return UserDeletion(user_id, reassigned)

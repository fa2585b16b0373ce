"""
Tenant membership API endpoints

Bodies are accepted as JSON or form posts and become typed commands before any
service runs.
"""

from fastapi import APIRouter, Depends, status
from typing import Optional
import structlog
import uuid

from keystone.core.dependencies import get_actor_id, get_repository, get_request_meta
from keystone.core.repository import Repository
from keystone.models import Membership
from keystone.schemas.commands import (
    MemberCreateCommand,
    MembershipCommand,
    OwnershipTransferCommand,
    SupervisorCommand,
    command_body,
)
from keystone.schemas.responses import (
    MembershipChangeResponse,
    MembershipResponse,
    UserDeletionResponse,
)
from keystone.services.hierarchy import (
    MembershipChange,
    UserDeletion,
    create_member,
    delete_tenant_user,
    set_supervisor,
    transfer_ownership,
    update_membership,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


def _membership_response(membership: Membership) -> MembershipResponse:
    return MembershipResponse(
        id=membership.id,
        tenant_id=membership.tenant_id,
        user_id=membership.user_id,
        rank=membership.rank,
        is_active=membership.is_active,
        supervisor_id=membership.supervisor_id,
        created_at=membership.created_at,
        updated_at=membership.updated_at,
    )


def _change_response(change: MembershipChange) -> MembershipChangeResponse:
    return MembershipChangeResponse(
        membership=_membership_response(change.membership),
        reassigned_count=change.reassigned_count,
    )


def _deletion_response(deletion: UserDeletion) -> UserDeletionResponse:
    return UserDeletionResponse(user_id=deletion.user_id, reassigned_count=deletion.reassigned_count)


@router.post(
    "/{tenant_id}/members",
    response_model=MembershipChangeResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_member(
    tenant_id: uuid.UUID,
    command: MemberCreateCommand = Depends(command_body(MemberCreateCommand)),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    """Link an existing user or provision a new one"""
    return _change_response(create_member(repo, actor_id, tenant_id, command))


@router.api_route("/{tenant_id}/members/{user_id}", methods=["PATCH", "POST"])
def change_member(
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    command: MembershipCommand = Depends(command_body(MembershipCommand)),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
    request_meta: dict = Depends(get_request_meta),
):
    """Update rank / active flag / supervisor / name; form posts may carry intent=delete"""
    if command.intent == "delete":
        return _deletion_response(delete_tenant_user(repo, actor_id, tenant_id, user_id, request_meta))
    change = update_membership(repo, actor_id, tenant_id, user_id, command, request_meta)
    return _change_response(change)


@router.delete("/{tenant_id}/members/{user_id}", response_model=UserDeletionResponse)
def delete_member(
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
    request_meta: dict = Depends(get_request_meta),
):
    return _deletion_response(delete_tenant_user(repo, actor_id, tenant_id, user_id, request_meta))


@router.post("/{tenant_id}/members/{user_id}/supervisor", response_model=MembershipChangeResponse)
def assign_supervisor(
    tenant_id: uuid.UUID,
    user_id: uuid.UUID,
    command: SupervisorCommand = Depends(command_body(SupervisorCommand)),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
    request_meta: dict = Depends(get_request_meta),
):
    change = set_supervisor(repo, actor_id, tenant_id, user_id, command.supervisor_id, request_meta)
    return _change_response(change)


@router.post("/{tenant_id}/ownership", response_model=MembershipChangeResponse)
def transfer_tenant_ownership(
    tenant_id: uuid.UUID,
    command: OwnershipTransferCommand = Depends(command_body(OwnershipTransferCommand)),
    actor_id: Optional[uuid.UUID] = Depends(get_actor_id),
    repo: Repository = Depends(get_repository),
):
    """New owner takes over; the previous owner stays on as a manager"""
    return _change_response(transfer_ownership(repo, actor_id, tenant_id, command.new_owner_id))

"""
Seed script

Upserts the module catalog and, when SEED_OWNER_EMAIL is set, a demo tenant
with its owner and a platform super admin. Idempotent.
"""

import os
import sys

# Add project root to path (script is in scripts/, so go up one level)
root_path = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, root_path)

from sqlmodel import select
import structlog

from keystone.core.auth import hash_password
from keystone.core.database import SessionLocal
from keystone.core.repository import Repository
from keystone.models import Membership, MembershipRank, PlatformRank, PlatformRole, Tenant, User
from keystone.services.catalog import seed_modules
from keystone.services.tenants import normalize_email

logger = structlog.get_logger(__name__)


def seed_demo_tenant(repo: Repository, email: str, password: str) -> None:
    """Demo tenant whose owner is also a platform super admin"""
    email = normalize_email(email)
    if repo.session.exec(select(User).where(User.email == email)).first() is not None:
        logger.info(f"Demo owner already present: {email}")
        return

    with repo.transaction():
        tenant = Tenant(name="Acme Trading", industry="services")
        repo.add(tenant)
        repo.flush()

        owner = User(tenant_id=tenant.id, name="Admin", email=email, password_hash=hash_password(password))
        repo.add(owner)
        repo.flush()

        repo.add(Membership(tenant_id=tenant.id, user_id=owner.id, rank=MembershipRank.TENANT_OWNER))
        repo.add(PlatformRole(user_id=owner.id, role=PlatformRank.SUPER_ADMIN))

    logger.info(f"Demo tenant seeded: {tenant.id}", owner_email=email)


def main():
    with SessionLocal() as session:
        repo = Repository(session, session_factory=SessionLocal)
        seed_modules(repo)

        email = os.environ.get("SEED_OWNER_EMAIL")
        password = os.environ.get("SEED_OWNER_PASSWORD", "Admin123!")
        if email:
            seed_demo_tenant(repo, email, password)


if __name__ == "__main__":
    main()

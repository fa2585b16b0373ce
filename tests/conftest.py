"""
Test configuration for pytest
"""

import pytest
import os
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session
from types import SimpleNamespace
from typing import Generator, Optional
import uuid

# Test environment variables
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["ENVIRONMENT"] = "test"

from fastapi.testclient import TestClient

from keystone.core.auth import create_session, hash_password
from keystone.core.database import get_session
from keystone.core.repository import Repository
from keystone.main import app
from keystone.models import (
    Entitlement,
    Membership,
    MembershipRank,
    PlatformRank,
    PlatformRole,
    Tenant,
    User,
    UserEntitlement,
)
from keystone.services.catalog import seed_modules

TEST_PASSWORD = "password123"
# Hashed once; bcrypt is slow on purpose
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# Create test engine using in-memory SQLite; one shared connection so the
# test session and request sessions see the same database
test_engine = create_engine(
    "sqlite:///:memory:",
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a clean database session for each test"""
    # Create all tables
    SQLModel.metadata.create_all(test_engine)

    # Create session
    with Session(test_engine) as session:
        yield session

    # Cleanup
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def repo(db: Session) -> Repository:
    return Repository(db, session_factory=lambda: Session(test_engine))


@pytest.fixture
def modules(repo: Repository):
    """Seeded module catalog"""
    return seed_modules(repo)


# Factories

@pytest.fixture
def make_tenant(db: Session):
    def _make(name: str = "Acme Trading", industry: Optional[str] = None) -> Tenant:
        tenant = Tenant(name=name, industry=industry)
        db.add(tenant)
        db.commit()
        db.refresh(tenant)
        return tenant
    return _make


@pytest.fixture
def make_user(db: Session):
    def _make(tenant: Tenant, name: str = "User", email: Optional[str] = None) -> User:
        user = User(
            tenant_id=tenant.id,
            name=name,
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            password_hash=TEST_PASSWORD_HASH,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_membership(db: Session):
    def _make(
        tenant: Tenant,
        user: User,
        rank: MembershipRank = MembershipRank.MEMBER,
        supervisor: Optional[User] = None,
        is_active: bool = True,
    ) -> Membership:
        membership = Membership(
            tenant_id=tenant.id,
            user_id=user.id,
            rank=rank,
            supervisor_id=supervisor.id if supervisor else None,
            is_active=is_active,
        )
        db.add(membership)
        db.commit()
        db.refresh(membership)
        return membership
    return _make


@pytest.fixture
def grant_role(db: Session):
    def _grant(user: User, role: PlatformRank = PlatformRank.PLATFORM_ADMIN) -> PlatformRole:
        platform_role = PlatformRole(user_id=user.id, role=role)
        db.add(platform_role)
        db.commit()
        return platform_role
    return _grant


@pytest.fixture
def set_entitlement(db: Session):
    def _set(tenant: Tenant, module_key: str, is_enabled: bool = True, limits=None) -> Entitlement:
        entitlement = Entitlement(
            tenant_id=tenant.id,
            module_key=module_key,
            is_enabled=is_enabled,
            limits=limits,
        )
        db.add(entitlement)
        db.commit()
        db.refresh(entitlement)
        return entitlement
    return _set


@pytest.fixture
def set_override(db: Session):
    def _set(tenant: Tenant, user: User, module_key: str, is_enabled: bool) -> UserEntitlement:
        override = UserEntitlement(
            tenant_id=tenant.id,
            user_id=user.id,
            module_key=module_key,
            is_enabled=is_enabled,
        )
        db.add(override)
        db.commit()
        return override
    return _set


@pytest.fixture
def org(modules, make_tenant, make_user, make_membership, set_entitlement):
    """Tenant with an owner, two managers and three members

    M1 supervises U1 and U2, M2 supervises U3. Inventory is enabled.
    """
    tenant = make_tenant("Acme Trading")
    owner = make_user(tenant, "Olive Owner", "owner@acme-trading.com")
    m1 = make_user(tenant, "Manager One", "m1@acme-trading.com")
    m2 = make_user(tenant, "Manager Two", "m2@acme-trading.com")
    u1 = make_user(tenant, "Member One", "u1@acme-trading.com")
    u2 = make_user(tenant, "Member Two", "u2@acme-trading.com")
    u3 = make_user(tenant, "Member Three", "u3@acme-trading.com")

    make_membership(tenant, owner, MembershipRank.TENANT_OWNER)
    make_membership(tenant, m1, MembershipRank.MANAGER)
    make_membership(tenant, m2, MembershipRank.MANAGER)
    make_membership(tenant, u1, MembershipRank.MEMBER, supervisor=m1)
    make_membership(tenant, u2, MembershipRank.MEMBER, supervisor=m1)
    make_membership(tenant, u3, MembershipRank.MEMBER, supervisor=m2)
    set_entitlement(tenant, "inventory", True)

    return SimpleNamespace(tenant=tenant, owner=owner, m1=m1, m2=m2, u1=u1, u2=u2, u3=u3)


@pytest.fixture
def platform_admin(org, make_user, grant_role):
    """Platform admin homed in the org tenant, with no membership"""
    admin = make_user(org.tenant, "Platform Admin", "admin@keystone-platform.com")
    grant_role(admin, PlatformRank.PLATFORM_ADMIN)
    return admin


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """API client whose requests use the test database"""
    def override_get_session():
        with Session(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(repo: Repository):
    """Bearer headers carrying a fresh session token for a user"""
    def _headers(user: User) -> dict:
        with repo.transaction():
            token, _ = create_session(repo, user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers

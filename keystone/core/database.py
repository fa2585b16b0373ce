"""
Database configuration and session management
"""

from sqlmodel import Session, create_engine
from sqlalchemy.orm import sessionmaker

from keystone.core.config import get_settings

settings = get_settings()

# Engine and session factory live for the whole process
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

SessionLocal = sessionmaker(
    bind=engine,
    class_=Session,
    expire_on_commit=False,
)


def get_session():
    """Dependency to get database session"""
    with SessionLocal() as session:
        yield session

#deploy_engine\infrastructure\postgres\models.py
"""SQLAlchemy ORM models for database tables."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String

from deploy_engine.infrastructure.postgres.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ApplicationORM(Base):
    """
    Application table.

    The whole application spec lives in one JSON column. `version` is the
    optimistic concurrency token: every update must name the version it read.
    """

    __tablename__ = "applications"

    name = Column(String(63), primary_key=True)
    framework = Column(String(255), nullable=False, default="", index=True)

    spec = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    # Optimistic concurrency
    version = Column(Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<ApplicationORM(name={self.name}, framework={self.framework}, version={self.version})>"


class FrameworkORM(Base):
    """Framework table."""

    __tablename__ = "frameworks"

    name = Column(String(255), primary_key=True)
    namespace_name = Column(String(255), nullable=False)
    app_quota_limit = Column(Integer, nullable=False, default=-1)
    ingress_controller = Column(JSON, nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

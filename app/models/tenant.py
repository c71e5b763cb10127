"""
Tenant model.

Each Tenant represents an isolated customer organisation. All business
data is scoped to exactly one tenant through a non-null tenant_id FK.
Tenants are never hard-deleted; status changes carry their lifecycle.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TenantStatus(str, enum.Enum):
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    CANCELLED = "CANCELLED"


class TenantPlan(str, enum.Enum):
    TRIAL = "TRIAL"
    BASIC = "BASIC"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    slug = Column(String(50), nullable=False)  # URL-safe, immutable once set
    email = Column(String(255), nullable=False)  # contact email, immutable once set
    phone = Column(String(50), nullable=True)
    plan = Column(String(20), nullable=False, default=TenantPlan.TRIAL.value)
    status = Column(String(20), nullable=False, default=TenantStatus.TRIAL.value)
    trial_ends = Column(DateTime(timezone=True), nullable=True)
    settings = Column(JSON, nullable=False, default=dict)
    limits = Column(JSON, nullable=False, default=dict)
    features = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    branches = relationship("Branch", back_populates="tenant", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("slug", name="uq_tenants_slug"),
        UniqueConstraint("email", name="uq_tenants_email"),
        Index("idx_tenant_status", "status"),
    )

    @property
    def accepts_logins(self) -> bool:
        return self.status in (TenantStatus.ACTIVE.value, TenantStatus.TRIAL.value)

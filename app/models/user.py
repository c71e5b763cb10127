from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from app.database import Base
from app.models.tenant import utcnow
import enum
import uuid

LOCAL_PROVIDER = "local"


class UserRole(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    ANALYST = "ANALYST"
    SELLER = "SELLER"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # tenant_id is immutable after creation
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="RESTRICT"), nullable=False, index=True)
    branch_id = Column(String(36), ForeignKey("branches.id", ondelete="SET NULL"), nullable=True)
    email = Column(String(255), nullable=False)  # unique across all tenants
    name = Column(String(200), nullable=False)
    password_hash = Column(String(255), nullable=True)  # absent for external-identity-only accounts
    external_id = Column(String(255), nullable=True)
    avatar = Column(String(1024), nullable=True)
    provider = Column(String(50), nullable=False, default=LOCAL_PROVIDER)
    role = Column(String(20), nullable=False, default=UserRole.SELLER.value)
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    tenant = relationship("Tenant", lazy="joined")
    branch = relationship("Branch", lazy="joined")

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("external_id", name="uq_users_external_id"),
        CheckConstraint(
            "password_hash IS NOT NULL OR external_id IS NOT NULL",
            name="ck_users_has_credential",
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value

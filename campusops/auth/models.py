import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from campusops.db.session import Base


class User(Base):
    """Login account within a tenant. Employees are users with role Teacher, Employee or Admin."""

    __tablename__ = "users"
    __table_args__ = ({"schema": "auth"},)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Stable key used by bulk update/export; generated (emp-XXXXXXX) for employees
    username = Column(String(50), nullable=False, unique=True, index=True)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id"), nullable=False)
    first_name = Column(String(100), nullable=False)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=False)
    phone_number = Column(String(50), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    password_hash = Column(Text, nullable=False)
    # SUPER_ADMIN, PLATFORM_ADMIN, Admin, Teacher, Employee
    role = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="users")
    employment = relationship(
        "EmploymentDetail", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    personal = relationship(
        "PersonalDetail", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    contact = relationship(
        "ContactDetail", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )


class Role(Base):
    """Tenant-scoped role with JSON permissions."""

    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_role_tenant_name"),
        {"schema": "auth"},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id"), nullable=False)
    name = Column(String(100), nullable=False)
    # Example shape:
    # {
    #   "employees": {"create": true, "read": true, "update": true, "delete": false},
    #   "campuses": {"read": true}
    # }
    permissions = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

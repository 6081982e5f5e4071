import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from campusops.db.session import Base


class Tenant(Base):
    """
    Tenant (school / organization) in the multi-tenant platform.

    - id: internal primary key; every tenant-scoped table filters on it.
    - subdomain: public identifier, unique globally, never used as a FK.
    """

    __tablename__ = "tenants"
    __table_args__ = ({"schema": "core"},)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_name = Column(String(255), nullable=False)
    subdomain = Column(String(63), unique=True, nullable=False, index=True)
    phone_number = Column(String(50), nullable=True)
    year_founded = Column(Integer, nullable=True)
    website = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="ACTIVE")
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    campuses = relationship("Campus", back_populates="tenant", cascade="all, delete-orphan")
    users = relationship("User", back_populates="tenant", cascade="all, delete-orphan")


class Campus(Base):
    """Physical site under a tenant. At most one campus per tenant is flagged main."""

    __tablename__ = "campuses"
    __table_args__ = ({"schema": "core"},)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(UUID(as_uuid=True), ForeignKey("core.tenants.id"), nullable=False)
    campus_name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    phone_number = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    is_main_campus = Column(Boolean, nullable=False, default=False)
    year_established = Column(Integer, nullable=True)
    no_of_floors = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    tenant = relationship("Tenant", back_populates="campuses")

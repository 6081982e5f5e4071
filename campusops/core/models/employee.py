"""Employee detail tables. Each row hangs off auth.users by username (one row per employee)."""
import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from campusops.db.session import Base


class EmploymentDetail(Base):
    """Employment record. employee_id is the human-facing staff number, unique within a campus."""

    __tablename__ = "employment_details"
    __table_args__ = (
        UniqueConstraint("campus_id", "employee_id", name="uq_employment_campus_employee_id"),
        {"schema": "core"},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(
        String(50), ForeignKey("auth.users.username", ondelete="CASCADE"), nullable=False, unique=True
    )
    campus_id = Column(UUID(as_uuid=True), ForeignKey("core.campuses.id"), nullable=False)
    employee_id = Column(String(50), nullable=False)
    designation = Column(String(100), nullable=True)
    department = Column(String(100), nullable=True)
    joining_date = Column(Date, nullable=True)
    salary = Column(Numeric(12, 2), nullable=True)
    employment_type = Column(String(50), nullable=False, default="Full-time")
    status = Column(String(50), nullable=False, default="Active")
    transport_details = Column(Text, nullable=True)
    hostel_details = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="employment")
    campus = relationship("Campus", foreign_keys=[campus_id])


class PersonalDetail(Base):
    __tablename__ = "user_personal_details"
    __table_args__ = ({"schema": "core"},)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(
        String(50), ForeignKey("auth.users.username", ondelete="CASCADE"), nullable=False, unique=True
    )
    gender = Column(String(20), nullable=True)
    marital_status = Column(String(30), nullable=True)
    nationality = Column(String(100), nullable=True)
    religion = Column(String(100), nullable=True)
    caste = Column(String(100), nullable=True)
    category = Column(String(50), nullable=True)
    blood_group = Column(String(5), nullable=True)
    height_cm = Column(Integer, nullable=True)
    weight_kg = Column(Numeric(5, 2), nullable=True)
    medical_conditions = Column(Text, nullable=True)
    allergies = Column(Text, nullable=True)
    occupation = Column(String(100), nullable=True)
    income = Column(Numeric(12, 2), nullable=True)

    user = relationship("User", back_populates="personal")


class ContactDetail(Base):
    __tablename__ = "user_contact_details"
    __table_args__ = ({"schema": "core"},)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(
        String(50), ForeignKey("auth.users.username", ondelete="CASCADE"), nullable=False, unique=True
    )
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    alt_phone = Column(String(50), nullable=True)
    current_address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    pincode = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)
    permanent_address = Column(Text, nullable=True)
    emergency_contact_name = Column(String(255), nullable=True)
    emergency_contact_phone = Column(String(50), nullable=True)
    emergency_contact_relation = Column(String(50), nullable=True)

    user = relationship("User", back_populates="contact")

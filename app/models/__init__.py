"""SQLAlchemy models for Rollbook."""

from app.models.base import Base, TenantScopedModel, TimestampMixin
from app.models.tenant import Tenant
from app.models.staff import Staff
from app.models.student import Student
from app.models.credential import StaffCredential, StudentCredential
from app.models.academic import Subject
from app.models.school_class import SchoolClass

__all__ = [
    # Base
    "Base",
    "TenantScopedModel",
    "TimestampMixin",
    # Tenant
    "Tenant",
    # Identities
    "Staff",
    "Student",
    # Credentials
    "StaffCredential",
    "StudentCredential",
    # Reference data
    "Subject",
    "SchoolClass",
]

"""Login credential models for students and staff."""

from sqlalchemy import Boolean, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import TenantScopedModel


class StaffCredential(TenantScopedModel):
    """The one login secret of a staff member.

    The unique constraint on (tenant_id, staff_id) is what guarantees a
    staff member never ends up with two different passwords.
    """

    __tablename__ = "staff_credentials"
    __table_args__ = (
        UniqueConstraint("tenant_id", "staff_id", name="uq_staff_credentials_tenant_staff_id"),
    )

    staff_id: Mapped[str] = mapped_column(String(50), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    plain_password: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class StudentCredential(TenantScopedModel):
    """The one login secret of a student."""

    __tablename__ = "student_credentials"
    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "admission_no", name="uq_student_credentials_tenant_admission_no"
        ),
    )

    admission_no: Mapped[str] = mapped_column(String(50), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    plain_password: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

"""Reference data used to sanity-check imported rows."""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import TenantScopedModel


class Subject(TenantScopedModel):
    """A subject taught at a school. Staff designations usually name one."""

    __tablename__ = "subjects"
    __table_args__ = (Index("idx_subjects_tenant_name", "tenant_id", "name"),)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

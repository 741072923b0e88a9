"""School class model."""

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import TenantScopedModel


class SchoolClass(TenantScopedModel):
    """One section of a class in an academic year (e.g. 5-B, 2026)."""

    __tablename__ = "school_classes"
    __table_args__ = (
        Index(
            "idx_classes_tenant_class_section",
            "tenant_id",
            "class",
            "section",
            "academic_year",
            unique=True,
        ),
    )

    class_name: Mapped[str] = mapped_column("class", String(50), nullable=False)
    section: Mapped[str] = mapped_column(String(20), nullable=False)
    academic_year: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    @property
    def key(self) -> str:
        """Class-section key as written on import sheets."""
        return f"{self.class_name}-{self.section}"

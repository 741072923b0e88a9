"""Per-kind wiring: which tables, identifier format and lookup fields apply."""

from dataclasses import dataclass

from app.config import settings
from app.schemas.provisioning import (
    CandidateRecord,
    EntityKind,
    StaffCandidate,
    StudentCandidate,
)


@dataclass(frozen=True)
class EntityProfile:
    """Everything the provisioning pipeline needs to know about one entity kind."""

    kind: EntityKind
    candidate_cls: type[CandidateRecord]
    identity_table: str
    credential_table: str
    natural_id_field: str
    natural_id_label: str
    name_field: str
    noun: str
    id_prefix: str
    id_width: int
    email_field: str
    phone_fields: tuple[str, ...]
    national_id_field: str
    rfid_field: str | None = None

    @property
    def context_fields(self) -> list[str]:
        """Identity columns fetched once per import for duplicate checks."""
        fields = [self.natural_id_field, self.email_field, *self.phone_fields, self.national_id_field]
        if self.rfid_field:
            fields.append(self.rfid_field)
        return fields


def get_profile(kind: EntityKind) -> EntityProfile:
    """Get the profile for an entity kind, using the current identifier settings."""
    if kind == EntityKind.STAFF:
        return EntityProfile(
            kind=kind,
            candidate_cls=StaffCandidate,
            identity_table="staff",
            credential_table="staff_credentials",
            natural_id_field="staff_id",
            natural_id_label="Staff ID",
            name_field="full_name",
            noun="staff member",
            id_prefix=settings.staff_id_prefix,
            id_width=settings.staff_id_width,
            email_field="email",
            phone_fields=("phone", "contact1", "contact2"),
            national_id_field="aadhaar_number",
        )
    return EntityProfile(
        kind=kind,
        candidate_cls=StudentCandidate,
        identity_table="students",
        credential_table="student_credentials",
        natural_id_field="admission_no",
        natural_id_label="Admission No",
        name_field="student_name",
        noun="student",
        id_prefix=settings.admission_no_prefix,
        id_width=settings.admission_no_width,
        email_field="email",
        phone_fields=("student_contact", "father_contact", "mother_contact", "parent_phone"),
        national_id_field="aadhaar_number",
        rfid_field="rfid",
    )

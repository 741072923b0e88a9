"""Bulk provisioning schemas: candidate records, validation and results."""

from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field


class EntityKind(str, Enum):
    """Kinds of people that can be bulk provisioned."""

    STAFF = "staff"
    STUDENTS = "students"


class RowState(str, Enum):
    """Terminal state of one imported row."""

    REJECTED = "rejected"
    INSERT_FAILED = "inserted:failed"
    CREDENTIAL_CREATED = "credentialed:created"
    CREDENTIAL_EXISTED = "credentialed:already-existed"
    CREDENTIAL_FAILED = "credentialed:failed"


class ValidationIssue(BaseModel):
    """One problem found on a row."""

    model_config = ConfigDict(frozen=True)

    field: str | None = None
    message: str


class ValidationOutcome(BaseModel):
    """Errors block a row from being written; warnings only flag it for review."""

    errors: list[ValidationIssue] = []
    warnings: list[ValidationIssue] = []

    @property
    def is_valid(self) -> bool:
        """Check if the row may be written."""
        return not self.errors

    @property
    def status(self) -> str:
        """Summarise the outcome as valid, warning or error."""
        if self.errors:
            return "error"
        if self.warnings:
            return "warning"
        return "valid"


# === Candidate records ===


class CandidateRecord(BaseModel):
    """Normalized, typed view of one spreadsheet row.

    Every value is either None or text in canonical form (digits-only phone
    numbers, YYYY-MM-DD dates). Values the normalizer could not canonicalize
    are passed through untouched so the validator can report them.
    """

    model_config = ConfigDict(frozen=True)

    natural_id_field: ClassVar[str] = ""
    date_fields: ClassVar[tuple[str, ...]] = ()
    number_fields: ClassVar[tuple[str, ...]] = ()

    row_number: int = 0
    # Columns that did not match any known field, kept for forward compatibility
    extra: dict[str, str] = {}

    @property
    def natural_id(self) -> str | None:
        """The row's identifier, or None if the sheet left it blank."""
        return getattr(self, self.natural_id_field) or None

    def identity_values(self, natural_id: str) -> dict[str, Any]:
        """Column values for the identity row, converted to storage types.

        Only call this on a record that passed validation.
        """
        values: dict[str, Any] = {self.natural_id_field: natural_id}
        for name, value in self.model_dump(exclude={"row_number", "extra"}).items():
            if name == self.natural_id_field:
                continue
            if isinstance(value, str) and not value:
                value = None
            if value is not None and name in self.date_fields:
                value = date.fromisoformat(value)
            elif value is not None and name in self.number_fields:
                value = float(value)
            values[name] = value
        return values


class StaffCandidate(CandidateRecord):
    """A staff member as read from an import sheet."""

    natural_id_field: ClassVar[str] = "staff_id"
    date_fields: ClassVar[tuple[str, ...]] = ("date_of_joining", "dob", "dop")
    number_fields: ClassVar[tuple[str, ...]] = ("experience_years",)

    staff_id: str | None = None
    full_name: str | None = None
    role: str | None = None
    department: str | None = None
    designation: str | None = None
    email: str | None = None
    phone: str | None = None
    date_of_joining: str | None = None
    employment_type: str | None = None
    qualification: str | None = None
    experience_years: str | None = None
    gender: str | None = None
    address: str | None = None
    dob: str | None = None
    aadhaar_number: str | None = None
    blood_group: str | None = None
    religion: str | None = None
    category: str | None = None
    nationality: str | None = None
    contact1: str | None = None
    contact2: str | None = None
    employee_code: str | None = None
    dop: str | None = None
    alma_mater: str | None = None
    major: str | None = None
    website: str | None = None

    def identity_values(self, natural_id: str) -> dict[str, Any]:
        values = super().identity_values(natural_id)
        if not values.get("employee_code"):
            values["employee_code"] = natural_id
        return values


class StudentCandidate(CandidateRecord):
    """A student as read from an import sheet."""

    natural_id_field: ClassVar[str] = "admission_no"
    date_fields: ClassVar[tuple[str, ...]] = ("date_of_birth", "date_of_admission")

    admission_no: str | None = None
    student_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    class_name: str | None = None
    section: str | None = None
    academic_year: str | None = None
    date_of_birth: str | None = None
    date_of_admission: str | None = None
    gender: str | None = None
    email: str | None = None
    student_contact: str | None = None
    aadhaar_number: str | None = None
    blood_group: str | None = None
    father_name: str | None = None
    father_occupation: str | None = None
    father_contact: str | None = None
    mother_name: str | None = None
    mother_occupation: str | None = None
    mother_contact: str | None = None
    parent_name: str | None = None
    parent_phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    pincode: str | None = None
    religion: str | None = None
    category: str | None = None
    nationality: str | None = None
    roll_number: str | None = None
    rfid: str | None = None
    rte: bool = False
    new_admission: bool = True


# === Results ===


class RowError(BaseModel):
    """An error or warning tied to a row (row is None for non-import operations)."""

    row: int | None = None
    natural_id: str | None = None
    field: str | None = None
    message: str


class RowReport(BaseModel):
    """Where one row ended up."""

    row: int | None = None
    natural_id: str | None = None
    state: RowState
    identity_existed: bool = False


class GeneratedPassword(BaseModel):
    """A freshly issued one-time password, echoed back only on request."""

    natural_id: str
    password: str


class ProvisioningResult(BaseModel):
    """Outcome of one import, fill or regenerate request."""

    operation: str
    entity_kind: EntityKind
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    processed: int = 0
    created: int = 0
    errors: list[RowError] = []
    warnings: list[RowError] = []
    rows: list[RowReport] = []
    passwords: list[GeneratedPassword] | None = None


class PreviewRow(BaseModel):
    """A validated row, as shown to the administrator before importing."""

    row: int
    natural_id: str | None = None
    data: dict[str, Any]
    status: str
    errors: list[str] = []
    warnings: list[str] = []


class PreviewResult(BaseModel):
    """Validation-only pass over an import sheet."""

    entity_kind: EntityKind
    rows: list[PreviewRow]
    total: int
    valid: int
    invalid: int
    warnings: int


class CredentialEntry(BaseModel):
    """Login state of one active person."""

    natural_id: str
    name: str | None = None
    has_password: bool = False
    is_active: bool = False
    created_at: datetime | None = None
    password: str | None = None  # only filled when stored passwords are requested


class CredentialListing(BaseModel):
    """Everyone of one kind with their credential, for re-display by administrators."""

    entity_kind: EntityKind
    total: int
    with_credential: int
    entries: list[CredentialEntry]


class CredentialStatus(BaseModel):
    """How many active people of one kind can log in."""

    entity_kind: EntityKind
    total: int
    with_credential: int
    without_credential: int
    percentage: int


# === Requests ===


class ImportRequest(BaseModel):
    """Schema for importing rows that were already read from a sheet."""

    school_code: str = Field(..., min_length=1)
    rows: list[dict[str, Any]]
    column_mapping: dict[str, str | None] | None = None  # header -> field or None to skip
    reveal: bool = False


class PreviewRequest(BaseModel):
    """Schema for validating rows without writing them."""

    school_code: str = Field(..., min_length=1)
    rows: list[dict[str, Any]]
    column_mapping: dict[str, str | None] | None = None


class FillCredentialsRequest(BaseModel):
    """Schema for issuing credentials to everyone who lacks one."""

    school_code: str = Field(..., min_length=1)
    reveal: bool = False


class RegenerateCredentialsRequest(BaseModel):
    """Schema for deliberately replacing credentials."""

    school_code: str = Field(..., min_length=1)
    natural_ids: list[str] | None = None  # None means every active person
    reveal: bool = False


class ImportFieldInfo(BaseModel):
    """Information about a system field for mapping."""

    name: str
    label: str
    required: bool = False
    aliases: list[str] = []

"""Row validation for bulk imports.

Checks run in a fixed order and append to ordered error/warning lists, so
validating the same record against the same context always gives the same
output.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, Sequence
from urllib.parse import urlparse

from pydantic import EmailStr, TypeAdapter, ValidationError

from app.schemas.provisioning import (
    CandidateRecord,
    EntityKind,
    StaffCandidate,
    StudentCandidate,
    ValidationIssue,
    ValidationOutcome,
)
from app.services.entities import EntityProfile, get_profile
from app.services.normalizer import digits_only

ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

PHONE_DIGITS = 10
NATIONAL_ID_DIGITS = 12

VALID_GENDERS = ("Male", "Female", "Other")
VALID_BLOOD_GROUPS = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")
COMMON_STAFF_ROLES = ("principal", "teacher", "helper", "driver", "conductor", "administration")

_email_adapter = TypeAdapter(EmailStr)


@dataclass(frozen=True)
class ImportContext:
    """What the tenant already has, fetched once per import."""

    existing_ids: frozenset[str] = frozenset()
    emails: frozenset[str] = frozenset()
    phones: frozenset[str] = frozenset()
    national_ids: frozenset[str] = frozenset()
    rfids: frozenset[str] = frozenset()
    # Subject names for staff, "class-section-year" keys for students
    reference_names: frozenset[str] = frozenset()
    today: date = field(default_factory=date.today)


def build_context(
    profile: EntityProfile,
    existing: Iterable[dict[str, Any]],
    reference_names: Iterable[str] = (),
    today: date | None = None,
) -> ImportContext:
    """Build the lookup sets from the tenant's existing identity rows."""
    ids, emails, phones, national_ids, rfids = set(), set(), set(), set(), set()
    for record in existing:
        if record.get(profile.natural_id_field):
            ids.add(str(record[profile.natural_id_field]))
        if record.get(profile.email_field):
            emails.add(str(record[profile.email_field]).strip().lower())
        for phone_field in profile.phone_fields:
            if record.get(phone_field):
                phones.add(digits_only(str(record[phone_field])))
        if record.get(profile.national_id_field):
            national_ids.add(digits_only(str(record[profile.national_id_field])))
        if profile.rfid_field and record.get(profile.rfid_field):
            rfids.add(str(record[profile.rfid_field]))

    return ImportContext(
        existing_ids=frozenset(ids),
        emails=frozenset(emails),
        phones=frozenset(phones),
        national_ids=frozenset(national_ids),
        rfids=frozenset(rfids),
        reference_names=frozenset(reference_names),
        today=today or date.today(),
    )


class _Findings:
    """Collects issues in the order checks report them."""

    def __init__(self):
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []

    def error(self, field_name: str | None, message: str) -> None:
        self.errors.append(ValidationIssue(field=field_name, message=message))

    def warning(self, field_name: str | None, message: str) -> None:
        self.warnings.append(ValidationIssue(field=field_name, message=message))

    def outcome(self) -> ValidationOutcome:
        return ValidationOutcome(errors=self.errors, warnings=self.warnings)


def is_valid_email(value: str) -> bool:
    """Check an address the same way EmailStr fields do."""
    try:
        _email_adapter.validate_python(value)
    except ValidationError:
        return False
    return True


def parse_iso_date(value: str | None) -> date | None:
    """Return the date if value is a real YYYY-MM-DD date, else None."""
    if not value or not ISO_DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


# === Shared checks ===


def _required(findings: _Findings, field_name: str, value: str | None, message: str) -> bool:
    if value and value.strip():
        return True
    findings.error(field_name, message)
    return False


def _check_date(findings: _Findings, field_name: str, label: str, value: str | None) -> date | None:
    if not value:
        return None
    parsed = parse_iso_date(value)
    if parsed is None:
        findings.error(field_name, f"{label} must be in YYYY-MM-DD format")
    return parsed


def _check_phone(findings: _Findings, field_name: str, label: str, value: str | None) -> bool:
    if not value:
        return False
    if len(value) != PHONE_DIGITS:
        findings.error(field_name, f"{label} must be {PHONE_DIGITS} digits")
        return False
    return True


def _check_email(findings: _Findings, value: str | None, context: ImportContext) -> None:
    if not value:
        return
    if not is_valid_email(value):
        findings.error("email", "Invalid email format")
    if value in context.emails:
        findings.warning("email", "Email already exists in the system")


def _check_national_id(findings: _Findings, value: str | None, context: ImportContext) -> None:
    if not value:
        return
    if len(value) != NATIONAL_ID_DIGITS:
        findings.error("aadhaar_number", f"Aadhaar number must be {NATIONAL_ID_DIGITS} digits")
    elif value in context.national_ids:
        findings.warning("aadhaar_number", "Aadhaar number already exists in the system")


def _check_enumerations(findings: _Findings, gender: str | None, blood_group: str | None) -> None:
    if gender and gender not in VALID_GENDERS:
        findings.error("gender", "Gender must be Male, Female, or Other")
    if blood_group and blood_group not in VALID_BLOOD_GROUPS:
        findings.error("blood_group", f"Invalid blood group. Valid values: {', '.join(VALID_BLOOD_GROUPS)}")


def _check_existing_id(
    findings: _Findings,
    profile: EntityProfile,
    natural_id: str | None,
    context: ImportContext,
) -> None:
    if natural_id and natural_id in context.existing_ids:
        findings.warning(
            profile.natural_id_field,
            f"{profile.natural_id_label} already exists in the system; the row will be skipped",
        )


# === Staff ===


def _validate_staff(candidate: StaffCandidate, context: ImportContext) -> ValidationOutcome:
    findings = _Findings()

    _required(findings, "full_name", candidate.full_name, "Full Name is required")

    if _required(findings, "role", candidate.role, "Role is required"):
        role = candidate.role.lower()
        if not any(common in role for common in COMMON_STAFF_ROLES):
            findings.warning("role", "Uncommon role - please verify")

    _required(findings, "department", candidate.department, "Department is required")

    if _required(findings, "designation", candidate.designation, "Designation is required"):
        if context.reference_names and candidate.designation not in context.reference_names:
            findings.warning(
                "designation",
                f'Designation "{candidate.designation}" does not match any existing subject',
            )

    phone_ok = False
    if _required(findings, "phone", candidate.phone, "Phone or Primary Contact is required"):
        phone_ok = _check_phone(findings, "phone", "Phone number", candidate.phone)
    if candidate.contact1 and candidate.contact1 != candidate.phone:
        _check_phone(findings, "contact1", "Primary Contact", candidate.contact1)
    _check_phone(findings, "contact2", "Secondary Contact", candidate.contact2)

    joined = None
    if _required(findings, "date_of_joining", candidate.date_of_joining, "Date of Joining is required"):
        joined = _check_date(findings, "date_of_joining", "Date of Joining", candidate.date_of_joining)
        if joined and joined > context.today:
            findings.warning("date_of_joining", "Date of Joining is in the future")

    born = _check_date(findings, "dob", "Date of Birth", candidate.dob)
    if born and born > context.today:
        findings.error("dob", "Date of Birth cannot be in the future")

    promoted = _check_date(findings, "dop", "Date of Promotion", candidate.dop)
    if promoted and promoted > context.today:
        findings.warning("dop", "Date of Promotion is in the future")
    if promoted and joined and promoted < joined:
        findings.warning("dop", "Date of Promotion is before Date of Joining")

    _check_email(findings, candidate.email, context)

    if phone_ok and candidate.phone in context.phones:
        findings.warning("phone", "Phone number already exists in the system")

    _check_national_id(findings, candidate.aadhaar_number, context)
    _check_enumerations(findings, candidate.gender, candidate.blood_group)

    if candidate.experience_years:
        try:
            years = float(candidate.experience_years)
        except ValueError:
            years = -1.0
        if not math.isfinite(years) or years < 0:
            findings.error("experience_years", "Experience (Years) must be a valid number")

    if candidate.website:
        parsed = urlparse(candidate.website)
        if not parsed.scheme or not parsed.netloc:
            findings.warning("website", "Invalid website URL format")

    _check_existing_id(findings, get_profile(EntityKind.STAFF), candidate.staff_id, context)
    return findings.outcome()


# === Students ===

STUDENT_CONTACT_LABELS = (
    ("student_contact", "Student Contact"),
    ("father_contact", "Father Contact"),
    ("mother_contact", "Mother Contact"),
    ("parent_phone", "Parent Phone"),
)


def _validate_student(candidate: StudentCandidate, context: ImportContext) -> ValidationOutcome:
    findings = _Findings()

    _required(findings, "student_name", candidate.student_name, "Student Name or First Name is required")
    has_class = _required(findings, "class_name", candidate.class_name, "Class is required")
    has_section = _required(findings, "section", candidate.section, "Section is required")

    if has_class and has_section and candidate.academic_year and context.reference_names:
        key = f"{candidate.class_name}-{candidate.section}-{candidate.academic_year}"
        if key not in context.reference_names:
            findings.warning(
                "class_name",
                f'Class-Section combination "{candidate.class_name}-{candidate.section}" '
                f"may not exist for academic year {candidate.academic_year}",
            )

    contacts = [(name, label, getattr(candidate, name)) for name, label in STUDENT_CONTACT_LABELS]
    if not any(value for _, _, value in contacts):
        findings.error(
            "student_contact",
            "At least one contact number is required (Student, Father, Mother or Parent contact)",
        )
    for name, label, value in contacts:
        # parent_phone usually repeats the father's or mother's number
        if name == "parent_phone" and value in (candidate.father_contact, candidate.mother_contact):
            continue
        _check_phone(findings, name, label, value)

    if not candidate.date_of_birth and not candidate.date_of_admission:
        findings.error("date_of_birth", "Date of Birth or Date of Admission is required")
    born = _check_date(findings, "date_of_birth", "Date of Birth", candidate.date_of_birth)
    if born and born > context.today:
        findings.error("date_of_birth", "Date of Birth cannot be in the future")
    _check_date(findings, "date_of_admission", "Date of Admission", candidate.date_of_admission)

    _check_email(findings, candidate.email, context)

    if (
        candidate.student_contact
        and len(candidate.student_contact) == PHONE_DIGITS
        and candidate.student_contact in context.phones
    ):
        findings.warning("student_contact", "Student Contact already exists in the system")

    _check_national_id(findings, candidate.aadhaar_number, context)

    if candidate.rfid and candidate.rfid in context.rfids:
        findings.warning("rfid", "RFID already exists in the system")

    _check_enumerations(findings, candidate.gender, candidate.blood_group)

    _check_existing_id(findings, get_profile(EntityKind.STUDENTS), candidate.admission_no, context)
    return findings.outcome()


def validate(candidate: CandidateRecord, context: ImportContext) -> ValidationOutcome:
    """Validate one candidate record against the tenant context."""
    if isinstance(candidate, StaffCandidate):
        return _validate_staff(candidate, context)
    if isinstance(candidate, StudentCandidate):
        return _validate_student(candidate, context)
    raise TypeError(f"Unsupported candidate type: {type(candidate).__name__}")


def validate_batch(
    candidates: Sequence[CandidateRecord],
    context: ImportContext,
    kind: EntityKind,
) -> list[ValidationOutcome]:
    """Validate every row, then flag identifiers used more than once in the sheet."""
    profile = get_profile(kind)
    outcomes = [validate(candidate, context) for candidate in candidates]

    positions: dict[str, list[int]] = {}
    for index, candidate in enumerate(candidates):
        if candidate.natural_id:
            positions.setdefault(candidate.natural_id, []).append(index)

    for indices in positions.values():
        if len(indices) < 2:
            continue
        for index in indices:
            outcomes[index].errors.append(
                ValidationIssue(
                    field=profile.natural_id_field,
                    message=f"Duplicate {profile.natural_id_label} in file",
                )
            )
    return outcomes

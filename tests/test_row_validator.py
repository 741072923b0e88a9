"""Tests for row validation rules."""

from datetime import date

import pytest

from app.schemas.provisioning import EntityKind, StaffCandidate, StudentCandidate
from app.services.entities import get_profile
from app.services.row_validator import ImportContext, build_context, validate, validate_batch

TODAY = date(2026, 1, 15)


def staff(**fields) -> StaffCandidate:
    values = {
        "full_name": "Asha Verma",
        "role": "Teacher",
        "department": "Science",
        "designation": "Physics",
        "phone": "9876543210",
        "contact1": "9876543210",
        "date_of_joining": "2020-06-15",
    }
    values.update(fields)
    return StaffCandidate(**values)


def student(**fields) -> StudentCandidate:
    values = {
        "student_name": "Ravi Kumar",
        "class_name": "5",
        "section": "A",
        "academic_year": "2026",
        "date_of_birth": "2015-04-01",
        "father_contact": "9876543210",
    }
    values.update(fields)
    return StudentCandidate(**values)


def messages(issues) -> list[str]:
    return [issue.message for issue in issues]


def test_valid_staff_row():
    outcome = validate(staff(), ImportContext(today=TODAY))

    assert outcome.is_valid
    assert outcome.status == "valid"
    assert outcome.errors == []
    assert outcome.warnings == []


def test_missing_required_staff_fields_in_check_order():
    candidate = StaffCandidate()

    outcome = validate(candidate, ImportContext(today=TODAY))

    assert messages(outcome.errors) == [
        "Full Name is required",
        "Role is required",
        "Department is required",
        "Designation is required",
        "Phone or Primary Contact is required",
        "Date of Joining is required",
    ]


def test_staff_format_errors():
    candidate = staff(
        phone="987654321",
        contact2="12345",
        aadhaar_number="12345",
        date_of_joining="15/06/2020",
        email="not-an-email",
        gender="F",
        blood_group="C+",
        experience_years="ten",
    )

    outcome = validate(candidate, ImportContext(today=TODAY))

    assert messages(outcome.errors) == [
        "Phone number must be 10 digits",
        "Secondary Contact must be 10 digits",
        "Date of Joining must be in YYYY-MM-DD format",
        "Invalid email format",
        "Aadhaar number must be 12 digits",
        "Gender must be Male, Female, or Other",
        "Invalid blood group. Valid values: A+, A-, B+, B-, AB+, AB-, O+, O-",
        "Experience (Years) must be a valid number",
    ]
    assert outcome.status == "error"


@pytest.mark.parametrize("email", ["asha@school..in", "asha@-school.in", "asha@school.in.", "asha@"])
def test_malformed_email_is_an_error(email):
    outcome = validate(staff(email=email), ImportContext(today=TODAY))

    assert messages(outcome.errors) == ["Invalid email format"]


def test_well_formed_email_passes():
    outcome = validate(staff(email="asha.verma@dps.edu.in"), ImportContext(today=TODAY))

    assert outcome.is_valid
    assert outcome.warnings == []


@pytest.mark.parametrize("years", ["inf", "Infinity", "1e999", "nan", "-2"])
def test_experience_must_be_a_finite_non_negative_number(years):
    outcome = validate(staff(experience_years=years), ImportContext(today=TODAY))

    assert messages(outcome.errors) == ["Experience (Years) must be a valid number"]


def test_impossible_date_is_a_format_error():
    outcome = validate(staff(date_of_joining="2021-02-30"), ImportContext(today=TODAY))

    assert messages(outcome.errors) == ["Date of Joining must be in YYYY-MM-DD format"]


def test_staff_date_rules():
    outcome = validate(
        staff(date_of_joining="2026-03-01", dob="2030-01-01", dop="2019-01-01"),
        ImportContext(today=TODAY),
    )

    assert messages(outcome.errors) == ["Date of Birth cannot be in the future"]
    assert messages(outcome.warnings) == [
        "Date of Joining is in the future",
        "Date of Promotion is before Date of Joining",
    ]


def test_cross_reference_matches_are_warnings():
    context = ImportContext(
        existing_ids=frozenset({"STF001"}),
        emails=frozenset({"asha@dps.edu.in"}),
        phones=frozenset({"9876543210"}),
        national_ids=frozenset({"123456789012"}),
        reference_names=frozenset({"Mathematics"}),
        today=TODAY,
    )
    candidate = staff(staff_id="STF001", email="asha@dps.edu.in", aadhaar_number="123456789012", role="Gardener")

    outcome = validate(candidate, context)

    assert outcome.is_valid
    assert outcome.status == "warning"
    assert messages(outcome.warnings) == [
        "Uncommon role - please verify",
        'Designation "Physics" does not match any existing subject',
        "Email already exists in the system",
        "Phone number already exists in the system",
        "Aadhaar number already exists in the system",
        "Staff ID already exists in the system; the row will be skipped",
    ]


def test_invalid_website_is_a_warning():
    outcome = validate(staff(website="www example"), ImportContext(today=TODAY))

    assert outcome.is_valid
    assert messages(outcome.warnings) == ["Invalid website URL format"]


def test_validation_is_deterministic():
    candidate = staff(phone="123", email="bad", blood_group="Z")
    context = ImportContext(emails=frozenset({"bad"}), today=TODAY)

    assert validate(candidate, context) == validate(candidate, context)


def test_valid_student_row():
    outcome = validate(student(), ImportContext(today=TODAY))

    assert outcome.is_valid
    assert outcome.warnings == []


def test_student_required_fields():
    outcome = validate(StudentCandidate(), ImportContext(today=TODAY))

    assert messages(outcome.errors) == [
        "Student Name or First Name is required",
        "Class is required",
        "Section is required",
        "At least one contact number is required (Student, Father, Mother or Parent contact)",
        "Date of Birth or Date of Admission is required",
    ]


def test_student_contact_and_reference_checks():
    context = ImportContext(
        rfids=frozenset({"RF-1"}),
        reference_names=frozenset({"5-B-2026"}),
        today=TODAY,
    )

    outcome = validate(student(mother_contact="12345", rfid="RF-1"), context)

    assert messages(outcome.errors) == ["Mother Contact must be 10 digits"]
    assert messages(outcome.warnings) == [
        'Class-Section combination "5-A" may not exist for academic year 2026',
        "RFID already exists in the system",
    ]


def test_student_admission_date_is_enough():
    outcome = validate(student(date_of_birth=None, date_of_admission="2024-04-01"), ImportContext(today=TODAY))

    assert outcome.is_valid


def test_validate_batch_flags_repeated_identifiers():
    candidates = [staff(staff_id="STF001"), staff(staff_id="STF002"), staff(staff_id="STF001")]

    outcomes = validate_batch(candidates, ImportContext(today=TODAY), EntityKind.STAFF)

    assert [outcome.is_valid for outcome in outcomes] == [False, True, False]
    assert messages(outcomes[0].errors) == ["Duplicate Staff ID in file"]


def test_build_context_from_existing_rows():
    existing = [
        {"staff_id": "STF001", "email": " Asha@Example.com", "phone": "98765-43210", "contact1": None,
         "contact2": None, "aadhaar_number": "1234 5678 9012"},
        {"staff_id": None, "email": None, "phone": None, "contact1": None, "contact2": "9123456780",
         "aadhaar_number": None},
    ]

    context = build_context(get_profile(EntityKind.STAFF), existing, ["Physics"], today=TODAY)

    assert context.existing_ids == {"STF001"}
    assert context.emails == {"asha@example.com"}
    assert context.phones == {"9876543210", "9123456780"}
    assert context.national_ids == {"123456789012"}
    assert context.reference_names == {"Physics"}
    assert context.today == TODAY

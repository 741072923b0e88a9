"""Tests for header matching and row normalization."""

from datetime import date, datetime

from app.schemas.provisioning import EntityKind, StaffCandidate, StudentCandidate
from app.services.normalizer import (
    cell_text,
    normalize,
    normalize_header,
    parse_date,
    resolve_columns,
    unknown_mapping_targets,
)


def test_normalize_header():
    assert normalize_header("  Date of Joining ") == "dateofjoining"
    assert normalize_header("E-mail") == "email"


def test_cell_text_handles_spreadsheet_values():
    assert cell_text(None) == ""
    assert cell_text(float("nan")) == ""
    assert cell_text(9876543210.0) == "9876543210"
    assert cell_text(4.5) == "4.5"
    assert cell_text(datetime(2020, 6, 15, 9, 30)) == "2020-06-15"
    assert cell_text(date(2020, 6, 15)) == "2020-06-15"
    assert cell_text("  Asha  ") == "Asha"


def test_parse_date_formats():
    assert parse_date("2020-06-15") == "2020-06-15"
    assert parse_date("15-06-2020") == "2020-06-15"
    assert parse_date("15/06/2020") == "2020-06-15"
    assert parse_date("2020/06/15") == "2020-06-15"
    assert parse_date("2020-06-15 00:00:00") == "2020-06-15"
    assert parse_date("June 15th") is None
    assert parse_date("31-02-2020") is None


def test_resolve_columns_exact_alias_and_fuzzy():
    resolution = resolve_columns(
        EntityKind.STAFF,
        ["Full Name", "Primary Contact", "phone number", "Date of Joinng", "Favourite Colour"],
    )

    assert resolution.fields == {
        "Full Name": "full_name",
        "Primary Contact": "contact1",
        "phone number": "phone",
        "Date of Joinng": "date_of_joining",
    }


def test_explicit_mapping_wins_and_can_skip_columns():
    resolution = resolve_columns(
        EntityKind.STAFF,
        ["Name", "Mobile", "Notes"],
        {"Mobile": "contact2", "Notes": None},
    )

    assert resolution.fields["Mobile"] == "contact2"
    assert resolution.fields["Name"] == "full_name"
    assert "Notes" in resolution.skipped


def test_first_header_claims_a_field():
    resolution = resolve_columns(EntityKind.STAFF, ["Phone", "Phone Number"])

    assert resolution.fields == {"Phone": "phone"}


def test_unknown_mapping_targets():
    assert unknown_mapping_targets(EntityKind.STAFF, {"A": "phone", "B": None, "C": "salary"}) == ["salary"]
    assert unknown_mapping_targets(EntityKind.STAFF, None) == []


def test_normalize_staff_row():
    row = {
        "Employee Code": "STF042",
        "Full Name": "  Asha Verma ",
        "Role": "Teacher",
        "Phone": "+91 98765-43210",
        "Aadhaar Number": "1234 5678 9012",
        "Email": "Asha@Example.COM",
        "Date of Joining": "15/06/2020",
        "Gender": "F",
        "Blood Group": "b +",
        "Hobby": "Chess",
        "Remarks": "",
    }

    candidate = normalize(row, EntityKind.STAFF, row_number=7)

    assert isinstance(candidate, StaffCandidate)
    assert candidate.row_number == 7
    assert candidate.staff_id == "STF042"
    assert candidate.natural_id == "STF042"
    assert candidate.full_name == "Asha Verma"
    assert candidate.phone == "919876543210"
    assert candidate.contact1 == "919876543210"
    assert candidate.aadhaar_number == "123456789012"
    assert candidate.email == "asha@example.com"
    assert candidate.date_of_joining == "2020-06-15"
    # Unrecognized values pass through for the validator to report
    assert candidate.gender == "F"
    assert candidate.blood_group == "B+"
    assert candidate.nationality == "Indian"
    assert candidate.extra == {"Hobby": "Chess"}


def test_normalize_keeps_unparseable_dates():
    candidate = normalize({"Date of Joining": "next monday"}, EntityKind.STAFF)

    assert candidate.date_of_joining == "next monday"


def test_normalize_student_composes_name_and_parent():
    row = {
        "First Name": "Ravi",
        "Last Name": "Kumar",
        "Class": 5.0,
        "Section": "A",
        "Mother Name": "Lata Kumar",
        "Mother Contact": 9876543210.0,
        "RTE": "Yes",
        "New Admission": "no",
    }

    candidate = normalize(row, EntityKind.STUDENTS)

    assert isinstance(candidate, StudentCandidate)
    assert candidate.student_name == "Ravi Kumar"
    assert candidate.class_name == "5"
    assert candidate.parent_name == "Lata Kumar"
    assert candidate.parent_phone == "9876543210"
    assert candidate.rte is True
    assert candidate.new_admission is False
    assert candidate.academic_year == str(date.today().year)
    assert candidate.natural_id is None


def test_normalize_student_splits_full_name():
    candidate = normalize({"Student Name": "Meera Devi Shah"}, EntityKind.STUDENTS)

    assert candidate.first_name == "Meera"
    assert candidate.last_name == "Devi Shah"


def test_identity_values_convert_storage_types():
    candidate = normalize(
        {"Full Name": "Asha", "Date of Joining": "2020-06-15", "Experience (Years)": "4.5", "Address": ""},
        EntityKind.STAFF,
    )

    values = candidate.identity_values("STF001")

    assert values["staff_id"] == "STF001"
    assert values["employee_code"] == "STF001"
    assert values["date_of_joining"] == date(2020, 6, 15)
    assert values["experience_years"] == 4.5
    assert values["address"] is None
    assert "extra" not in values
    assert "row_number" not in values

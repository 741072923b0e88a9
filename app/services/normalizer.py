"""Turn raw spreadsheet rows into typed candidate records.

Normalization never fails: values that cannot be put into canonical form
are passed through as-is (or dropped when blank) and left for the row
validator to report.
"""

import logging
import re
from datetime import date, datetime
from difflib import SequenceMatcher
from functools import lru_cache
from typing import Any, Mapping, NamedTuple

from app.config import settings
from app.schemas.provisioning import CandidateRecord, EntityKind
from app.services.entities import get_profile

logger = logging.getLogger(__name__)

# Header similarity needed before an unknown header is matched to a field
FUZZY_MATCH_THRESHOLD = 0.9

DATE_FORMATS = ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d", "%d.%m.%Y")

GENDERS = {"male": "Male", "female": "Female", "other": "Other"}

TRUE_VALUES = {"true", "yes", "y", "1"}


# Field definitions for each import type
IMPORT_FIELDS: dict[EntityKind, dict[str, dict[str, Any]]] = {
    EntityKind.STAFF: {
        "staff_id": {"label": "Staff ID", "aliases": ("Staff Code",)},
        "employee_code": {"label": "Employee Code", "aliases": ("Employee ID", "Emp Code")},
        "full_name": {"label": "Full Name", "required": True, "aliases": ("Name", "Staff Name")},
        "role": {"label": "Role", "required": True},
        "department": {"label": "Department", "required": True},
        "designation": {"label": "Designation", "required": True},
        "email": {"label": "Email", "type": "email", "aliases": ("Email Address", "E-mail")},
        "phone": {"label": "Phone", "type": "phone", "required": True, "aliases": ("Phone Number", "Mobile")},
        "contact1": {"label": "Primary Contact", "type": "phone", "aliases": ("Contact 1",)},
        "contact2": {"label": "Secondary Contact", "type": "phone", "aliases": ("Contact 2",)},
        "date_of_joining": {
            "label": "Date of Joining",
            "type": "date",
            "required": True,
            "aliases": ("DOJ", "Joining Date"),
        },
        "employment_type": {"label": "Employment Type"},
        "dob": {"label": "Date of Birth", "type": "date", "aliases": ("DOB",)},
        "dop": {"label": "Date of Promotion", "type": "date", "aliases": ("DOP",)},
        "gender": {"label": "Gender", "type": "gender"},
        "aadhaar_number": {
            "label": "Aadhaar Number",
            "type": "national_id",
            "aliases": ("Aadhaar", "Aadhaar No", "Adhar No"),
        },
        "blood_group": {"label": "Blood Group", "type": "blood_group"},
        "religion": {"label": "Religion"},
        "category": {"label": "Category"},
        "nationality": {"label": "Nationality"},
        "address": {"label": "Address"},
        "qualification": {"label": "Qualification"},
        "experience_years": {"label": "Experience (Years)", "aliases": ("Experience",)},
        "alma_mater": {"label": "Alma Mater"},
        "major": {"label": "Major/Specialization", "aliases": ("Major", "Specialization")},
        "website": {"label": "Website"},
    },
    EntityKind.STUDENTS: {
        "admission_no": {"label": "Admission No", "aliases": ("Admission Number", "Adm No")},
        "student_name": {"label": "Student Name", "required": True, "aliases": ("Name",)},
        "first_name": {"label": "First Name"},
        "last_name": {"label": "Last Name"},
        "class_name": {"label": "Class", "required": True},
        "section": {"label": "Section", "required": True},
        "academic_year": {"label": "Academic Year"},
        "date_of_birth": {"label": "Date of Birth", "type": "date", "required": True, "aliases": ("DOB",)},
        "date_of_admission": {"label": "Date of Admission", "type": "date", "aliases": ("DOA",)},
        "gender": {"label": "Gender", "type": "gender"},
        "email": {"label": "Email", "type": "email", "aliases": ("Email Address", "E-mail")},
        "student_contact": {"label": "Student Contact", "type": "phone"},
        "aadhaar_number": {"label": "Aadhaar Number", "type": "national_id", "aliases": ("Aadhaar", "Aadhaar No")},
        "blood_group": {"label": "Blood Group", "type": "blood_group"},
        "father_name": {"label": "Father Name"},
        "father_occupation": {"label": "Father Occupation"},
        "father_contact": {"label": "Father Contact", "type": "phone"},
        "mother_name": {"label": "Mother Name"},
        "mother_occupation": {"label": "Mother Occupation"},
        "mother_contact": {"label": "Mother Contact", "type": "phone"},
        "parent_name": {"label": "Parent Name"},
        "parent_phone": {"label": "Parent Phone", "type": "phone"},
        "address": {"label": "Address"},
        "city": {"label": "City"},
        "state": {"label": "State"},
        "pincode": {"label": "Pincode", "aliases": ("PIN Code",)},
        "religion": {"label": "Religion"},
        "category": {"label": "Category"},
        "nationality": {"label": "Nationality"},
        "roll_number": {"label": "Roll Number", "aliases": ("Roll No",)},
        "rfid": {"label": "RFID"},
        "rte": {"label": "RTE", "type": "boolean"},
        "new_admission": {"label": "New Admission", "type": "boolean"},
    },
}


class ColumnResolution(NamedTuple):
    """How the headers of a sheet map onto canonical fields."""

    fields: dict[str, str]  # header -> canonical field
    skipped: frozenset[str]  # headers explicitly mapped to None


def normalize_header(header: str) -> str:
    """Normalize a column name for flexible matching."""
    return "".join(ch for ch in str(header).strip().lower() if ch.isalnum())


def cell_text(value: Any) -> str:
    """Render a spreadsheet cell as trimmed text ('' for blanks)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value != value:  # NaN from spreadsheet readers
            return ""
        if value.is_integer():
            # Phone numbers often arrive as 9876543210.0
            return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def digits_only(text: str) -> str:
    """Strip everything but digits."""
    return re.sub(r"\D", "", text)


def parse_date(text: str) -> str | None:
    """Parse the date formats schools commonly use into YYYY-MM-DD."""
    candidates = [text]
    if len(text) > 10 and text[10] in " T":
        candidates.append(text[:10])
    for candidate in candidates:
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(candidate, fmt).date().isoformat()
            except ValueError:
                continue
    return None


def unknown_mapping_targets(kind: EntityKind, column_mapping: Mapping[str, str | None] | None) -> list[str]:
    """List mapping targets that are not fields of this kind."""
    if not column_mapping:
        return []
    known = IMPORT_FIELDS[kind]
    return [field for field in column_mapping.values() if field is not None and field not in known]


def _lookup_keys(kind: EntityKind) -> dict[str, str]:
    """Normalized header key -> field, in definition order."""
    keys: dict[str, str] = {}
    for name, info in IMPORT_FIELDS[kind].items():
        for key in (name, info["label"], *info.get("aliases", ())):
            keys.setdefault(normalize_header(key), name)
    return keys


def _match_header(header: str, kind: EntityKind, lookup: dict[str, str]) -> str | None:
    labels = {info["label"]: name for name, info in IMPORT_FIELDS[kind].items()}
    if header in labels:
        return labels[header]

    header_norm = normalize_header(header)
    if not header_norm:
        return None
    if header_norm in lookup:
        return lookup[header_norm]

    best_field = None
    best_score = 0.0
    for key, field in lookup.items():
        score = SequenceMatcher(None, header_norm, key).ratio()
        if score > best_score:
            best_field, best_score = field, score
    if best_score >= FUZZY_MATCH_THRESHOLD:
        logger.debug(f"Fuzzy matched header '{header}' to {best_field} ({best_score:.2f})")
        return best_field
    return None


@lru_cache(maxsize=256)
def _resolve_cached(
    kind: EntityKind,
    headers: tuple[str, ...],
    mapping: tuple[tuple[str, str | None], ...],
) -> ColumnResolution:
    explicit = dict(mapping)
    lookup = _lookup_keys(kind)
    fields: dict[str, str] = {}
    claimed: set[str] = set()
    skipped = set()

    for header in headers:
        if header in explicit:
            target = explicit[header]
            if target is None:
                skipped.add(header)
                continue
            if target not in IMPORT_FIELDS[kind]:
                continue
            fields[header] = target
            claimed.add(target)

    for header in headers:
        if header in explicit:
            continue
        field = _match_header(header, kind, lookup)
        # First header wins when two headers look like the same field
        if field is not None and field not in claimed:
            fields[header] = field
            claimed.add(field)

    return ColumnResolution(fields=fields, skipped=frozenset(skipped))


def resolve_columns(
    kind: EntityKind,
    headers: list[str] | tuple[str, ...],
    column_mapping: Mapping[str, str | None] | None = None,
) -> ColumnResolution:
    """Map sheet headers onto canonical field names.

    An explicit column_mapping wins; otherwise headers are matched exactly
    against field labels, then on a punctuation/case-insensitive key, then
    fuzzily.
    """
    mapping = tuple(sorted((column_mapping or {}).items(), key=lambda item: item[0]))
    return _resolve_cached(kind, tuple(str(h) for h in headers), mapping)


def _canonical(field_type: str, text: str) -> Any:
    if field_type in ("phone", "national_id"):
        return digits_only(text)
    if field_type == "date":
        return parse_date(text) or text
    if field_type == "email":
        return text.lower()
    if field_type == "gender":
        return GENDERS.get(text.lower(), text)
    if field_type == "blood_group":
        return text.replace(" ", "").upper()
    if field_type == "boolean":
        return text.lower() in TRUE_VALUES
    return text


def _finish_staff(values: dict[str, Any]) -> None:
    if not values.get("staff_id") and values.get("employee_code"):
        values["staff_id"] = values["employee_code"]
    if not values.get("phone") and values.get("contact1"):
        values["phone"] = values["contact1"]
    if not values.get("contact1") and values.get("phone"):
        values["contact1"] = values["phone"]
    values.setdefault("nationality", settings.default_nationality)


def _finish_student(values: dict[str, Any]) -> None:
    first = values.get("first_name", "")
    last = values.get("last_name", "")
    if not values.get("student_name") and (first or last):
        values["student_name"] = f"{first} {last}".strip()
    elif values.get("student_name") and not first:
        parts = values["student_name"].split()
        values["first_name"] = parts[0]
        if len(parts) > 1 and not last:
            values["last_name"] = " ".join(parts[1:])

    if not values.get("parent_name"):
        parent_name = values.get("father_name") or values.get("mother_name")
        if parent_name:
            values["parent_name"] = parent_name
    if not values.get("parent_phone"):
        parent_phone = values.get("father_contact") or values.get("mother_contact")
        if parent_phone:
            values["parent_phone"] = parent_phone

    values.setdefault("academic_year", str(date.today().year))
    values.setdefault("nationality", settings.default_nationality)


_FINISHERS = {
    EntityKind.STAFF: _finish_staff,
    EntityKind.STUDENTS: _finish_student,
}


def normalize(
    row: Mapping[str, Any],
    kind: EntityKind,
    column_mapping: Mapping[str, str | None] | None = None,
    *,
    row_number: int = 0,
) -> CandidateRecord:
    """Normalize one sheet row into a candidate record of the given kind."""
    field_defs = IMPORT_FIELDS[kind]
    resolution = resolve_columns(kind, list(row.keys()), column_mapping)

    values: dict[str, Any] = {}
    extra: dict[str, str] = {}
    for header, raw in row.items():
        header = str(header)
        text = cell_text(raw)
        field = resolution.fields.get(header)
        if field is None:
            if text and header not in resolution.skipped:
                extra[header] = text
            continue
        if not text:
            continue
        value = _canonical(field_defs[field].get("type", "text"), text)
        if value == "":
            continue
        values[field] = value

    _FINISHERS[kind](values)
    candidate_cls = get_profile(kind).candidate_cls
    return candidate_cls(row_number=row_number, extra=extra, **values)

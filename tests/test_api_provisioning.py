"""API tests for the provisioning endpoints."""

import pytest
from conftest import staff_row
from fastapi.testclient import TestClient

from app.main import app
from app.schemas.provisioning import EntityKind
from app.services.provisioning_service import get_provisioning_service

BASE = "/api/v1/provisioning"


@pytest.fixture
def client(service):
    app.dependency_overrides[get_provisioning_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_import_fields(client):
    response = client.get(f"{BASE}/students/fields")

    assert response.status_code == 200
    fields = {field["name"]: field for field in response.json()["data"]}
    assert fields["admission_no"]["label"] == "Admission No"
    assert fields["class_name"]["required"] is True


def test_unknown_entity_kind_is_rejected(client):
    response = client.get(f"{BASE}/teachers/fields")

    assert response.status_code == 422


def test_import_rows(client, store, tenant):
    payload = {
        "school_code": tenant.code,
        "rows": [staff_row("Asha Verma"), staff_row("Binod Rai", phone="987654321")],
        "reveal": True,
    }

    response = client.post(f"{BASE}/staff/import", json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["message"] == "Imported 1 of 2 rows"
    assert body["data"]["failed"] == 1
    assert [p["natural_id"] for p in body["data"]["passwords"]] == ["STF001"]
    assert store.ids("staff_credentials", tenant) == ["STF001"]


def test_validate_rows_writes_nothing(client, store, tenant):
    payload = {"school_code": tenant.code, "rows": [staff_row(), staff_row("Binod Rai", phone="12")]}

    response = client.post(f"{BASE}/staff/validate", json=payload)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 2
    assert data["valid"] == 1
    assert data["invalid"] == 1
    assert store.ids("staff", tenant) == []


def test_import_unknown_school(client):
    response = client.post(f"{BASE}/staff/import", json={"school_code": "NOPE", "rows": [staff_row()]})

    assert response.status_code == 404
    assert response.json() == {"status": "error", "message": "School 'NOPE' not found"}


def test_import_without_rows(client, tenant):
    response = client.post(f"{BASE}/staff/import", json={"school_code": tenant.code, "rows": []})

    assert response.status_code == 400
    assert response.json()["message"] == "No rows to import"


def test_import_csv(client, store, tenant):
    content = (
        "\ufeffFull Name,Role,Department,Designation,Phone,Date of Joining\n"
        "Asha Verma,Teacher,Science,Physics,9876543210,2020-06-15\n"
        "Binod Rai,Teacher,Science,Chemistry,9123456780,2021-07-01\n"
    ).encode("utf-8")

    response = client.post(
        f"{BASE}/staff/import/csv",
        files={"file": ("staff.csv", content, "text/csv")},
        data={"school_code": tenant.code},
    )

    assert response.status_code == 200
    assert response.json()["data"]["success"] == 2
    assert response.json()["data"]["passwords"] is None
    assert store.ids("staff", tenant) == ["STF001", "STF002"]


def test_import_csv_requires_csv_file(client, tenant):
    response = client.post(
        f"{BASE}/staff/import/csv",
        files={"file": ("staff.xlsx", b"PK", "application/octet-stream")},
        data={"school_code": tenant.code},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "File must be a CSV"


def test_import_csv_without_header(client, tenant):
    response = client.post(
        f"{BASE}/staff/import/csv",
        files={"file": ("staff.csv", b"", "text/csv")},
        data={"school_code": tenant.code},
    )

    assert response.status_code == 422
    assert response.json()["errors"] == [{"field": "file", "message": "CSV file has no header row"}]


def test_fill_then_status(client, store, tenant):
    for natural_id in ("ADM0001", "ADM0002", "ADM0003"):
        store.add_identity(tenant, EntityKind.STUDENTS, natural_id)
    store.add_credential(tenant, EntityKind.STUDENTS, "ADM0001")

    before = client.get(f"{BASE}/students/credentials/status", params={"school_code": tenant.code})
    fill = client.post(f"{BASE}/students/credentials/fill", json={"school_code": tenant.code})
    after = client.get(f"{BASE}/students/credentials/status", params={"school_code": tenant.code})

    assert before.json()["data"]["percentage"] == 33
    assert fill.json()["message"] == "Created 2 credentials"
    assert after.json()["data"] == {
        "entity_kind": "students",
        "total": 3,
        "with_credential": 3,
        "without_credential": 0,
        "percentage": 100,
    }


def test_regenerate_selected(client, store, tenant):
    store.add_identity(tenant, EntityKind.STAFF, "STF001")
    store.add_credential(tenant, EntityKind.STAFF, "STF001", password="OldPass22")

    response = client.post(
        f"{BASE}/staff/credentials/regenerate",
        json={"school_code": tenant.code, "natural_ids": ["STF001"], "reveal": True},
    )

    assert response.status_code == 200
    new_password = response.json()["data"]["passwords"][0]["password"]
    assert new_password != "OldPass22"
    assert store.rows("staff_credentials", tenant)[0]["plain_password"] == new_password


def test_list_credentials(client, store, tenant):
    store.add_identity(tenant, EntityKind.STUDENTS, "ADM0001", student_name="Ravi Kumar")
    store.add_identity(tenant, EntityKind.STUDENTS, "ADM0002", student_name="Meera Shah")
    store.add_credential(tenant, EntityKind.STUDENTS, "ADM0001", password="Secret99")

    masked = client.get(f"{BASE}/students/credentials", params={"school_code": tenant.code})
    revealed = client.get(
        f"{BASE}/students/credentials",
        params={"school_code": tenant.code, "include_passwords": "true"},
    )

    assert masked.status_code == 200
    entries = masked.json()["data"]["entries"]
    assert [(e["natural_id"], e["name"], e["has_password"]) for e in entries] == [
        ("ADM0001", "Ravi Kumar", True),
        ("ADM0002", "Meera Shah", False),
    ]
    assert [e["password"] for e in entries] == [None, None]
    assert [e["password"] for e in revealed.json()["data"]["entries"]] == ["Secret99", None]

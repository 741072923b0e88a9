"""Shared fixtures: an in-memory provisioning store and sample sheet rows."""

import asyncio
import os
import uuid
from collections import defaultdict
from typing import Any, Callable

# Keep bcrypt fast in tests; must be set before app.config is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest

from app.exceptions import ConflictError, StorageError
from app.schemas.provisioning import EntityKind
from app.schemas.tenant import Tenant
from app.services.entities import get_profile
from app.services.identifier_allocator import max_sequence
from app.services.provisioning_service import ProvisioningService

UNIQUE_KEYS = {
    "staff": "staff_id",
    "students": "admission_no",
    "staff_credentials": "staff_id",
    "student_credentials": "admission_no",
}


class InMemoryStore:
    """ProvisioningStore that enforces the database's unique keys in memory.

    Every call yields to the event loop once, so two coroutines driven by
    asyncio.gather interleave at the same points they would against a real
    database.
    """

    def __init__(self):
        self.tenants: dict[str, Tenant] = {}
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.reference_names: dict[tuple[uuid.UUID, EntityKind], set[str]] = {}
        # (table, natural_id) -> message of a non-uniqueness failure to raise
        self.fail_on: dict[tuple[str, str], str] = {}
        self.fail_reads = False
        # Called with (table, records) before every write; used to inject races
        self.before_write: Callable[[str, list[dict[str, Any]]], None] | None = None
        self.batch_calls: list[tuple[str, int]] = []

    # === Test helpers ===

    def add_tenant(self, code: str, name: str = "Test School", is_active: bool = True) -> Tenant:
        tenant = Tenant(id=uuid.uuid4(), code=code, name=name, is_active=is_active)
        self.tenants[code] = tenant
        return tenant

    def add_identity(self, tenant: Tenant, kind: EntityKind, natural_id: str, **fields) -> dict[str, Any]:
        profile = get_profile(kind)
        record = {"tenant_id": tenant.id, profile.natural_id_field: natural_id, "is_active": True, **fields}
        self.tables[profile.identity_table].append(record)
        return record

    def add_credential(self, tenant: Tenant, kind: EntityKind, natural_id: str, password: str = "Secret99") -> None:
        profile = get_profile(kind)
        self.tables[profile.credential_table].append(
            {
                "tenant_id": tenant.id,
                profile.natural_id_field: natural_id,
                "password_hash": f"hash-of-{password}",
                "plain_password": password,
                "is_active": True,
            }
        )

    def rows(self, table: str, tenant: Tenant) -> list[dict[str, Any]]:
        return [row for row in self.tables[table] if row["tenant_id"] == tenant.id]

    def ids(self, table: str, tenant: Tenant) -> list[str]:
        return [row[UNIQUE_KEYS[table]] for row in self.rows(table, tenant)]

    # === ProvisioningStore ===

    def _key(self, table: str, record: dict[str, Any]) -> tuple:
        return record["tenant_id"], record[UNIQUE_KEYS[table]]

    async def _read(self) -> None:
        await asyncio.sleep(0)
        if self.fail_reads:
            raise StorageError("connection refused", "08006")

    async def get_tenant(self, code: str) -> Tenant | None:
        await self._read()
        return self.tenants.get(code)

    async def list_tenants(self) -> list[Tenant]:
        await self._read()
        return sorted((t for t in self.tenants.values() if t.is_active), key=lambda t: t.code)

    async def fetch_max_sequence(self, tenant: Tenant, kind: EntityKind) -> int:
        await self._read()
        profile = get_profile(kind)
        return max_sequence(self.ids(profile.identity_table, tenant), prefix=profile.id_prefix)

    async def fetch_existing(self, tenant, kind, fields):
        await self._read()
        table = get_profile(kind).identity_table
        return [{field: row.get(field) for field in fields} for row in self.rows(table, tenant)]

    async def fetch_credential_ids(self, tenant, kind):
        await self._read()
        return set(self.ids(get_profile(kind).credential_table, tenant))

    async def fetch_credentials(self, tenant, kind, include_passwords=False):
        await self._read()
        profile = get_profile(kind)
        fields = [profile.natural_id_field, "is_active", "created_at"]
        if include_passwords:
            fields.append("plain_password")
        return [{field: row.get(field) for field in fields} for row in self.rows(profile.credential_table, tenant)]

    async def fetch_reference_names(self, tenant, kind):
        await self._read()
        return set(self.reference_names.get((tenant.id, kind), set()))

    async def insert_batch(self, table, records):
        await asyncio.sleep(0)
        self.batch_calls.append((table, len(records)))
        if self.before_write:
            self.before_write(table, records)

        existing = {self._key(table, row) for row in self.tables[table]}
        for record in records:
            key = self._key(table, record)
            message = self.fail_on.get((table, key[1]))
            if message:
                raise StorageError(message, "22001")
            if key in existing:
                raise ConflictError(
                    f'duplicate key value violates unique constraint "uq_{table}" ({key[1]})'
                )
            existing.add(key)

        inserted = []
        for record in records:
            row = {"is_active": True, **record}
            self.tables[table].append(row)
            inserted.append(dict(row))
        return inserted

    async def insert_one(self, table, record):
        inserted = await self.insert_batch(table, [record])
        return inserted[0]

    async def upsert_one(self, table, record, conflict_keys):
        await asyncio.sleep(0)
        message = self.fail_on.get((table, record[UNIQUE_KEYS[table]]))
        if message:
            raise StorageError(message, "22001")
        for row in self.tables[table]:
            if all(row.get(key) == record[key] for key in conflict_keys):
                row.update(record)
                return dict(row)
        row = {"is_active": True, **record}
        self.tables[table].append(row)
        return dict(row)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def tenant(store) -> Tenant:
    return store.add_tenant("DPS001", "Delhi Public School")


@pytest.fixture
def service(store) -> ProvisioningService:
    return ProvisioningService(store, batch_size=500)


def staff_row(name: str = "Asha Verma", phone: str = "98765 43210", **overrides) -> dict[str, Any]:
    row = {
        "Staff ID": "",
        "Full Name": name,
        "Role": "Teacher",
        "Department": "Science",
        "Designation": "Physics",
        "Phone": phone,
        "Date of Joining": "15-06-2020",
        "Gender": "female",
    }
    row.update(overrides)
    return row


def student_row(name: str = "Ravi Kumar", **overrides) -> dict[str, Any]:
    row = {
        "Admission No": "",
        "Student Name": name,
        "Class": "5",
        "Section": "A",
        "Date of Birth": "2015-04-01",
        "Father Name": "Suresh Kumar",
        "Father Contact": "9876543210",
    }
    row.update(overrides)
    return row

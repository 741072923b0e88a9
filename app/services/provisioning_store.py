"""Data store access for bulk provisioning.

Every write runs in its own short transaction so a failed batch never takes
committed batches down with it. Write failures are raised as ConflictError
(uniqueness violation) or StorageError (anything else).
"""

import logging
from enum import Enum
from typing import Any, Protocol, Sequence

from sqlalchemy import inspect, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import func

from app.exceptions import UNIQUE_VIOLATION, ConflictError, StorageError, is_unique_violation
from app.models import SchoolClass, Staff, StaffCredential, Student, StudentCredential, Subject
from app.models import Tenant as TenantModel
from app.schemas.provisioning import EntityKind
from app.schemas.tenant import Tenant
from app.services.entities import get_profile
from app.services.identifier_allocator import max_sequence

logger = logging.getLogger(__name__)


class ProvisioningStore(Protocol):
    """The narrow slice of the data store the provisioning pipeline needs."""

    async def get_tenant(self, code: str) -> Tenant | None: ...

    async def list_tenants(self) -> list[Tenant]: ...

    async def fetch_max_sequence(self, tenant: Tenant, kind: EntityKind) -> int: ...

    async def fetch_existing(
        self, tenant: Tenant, kind: EntityKind, fields: Sequence[str]
    ) -> list[dict[str, Any]]: ...

    async def fetch_credential_ids(self, tenant: Tenant, kind: EntityKind) -> set[str]: ...

    async def fetch_credentials(
        self, tenant: Tenant, kind: EntityKind, include_passwords: bool = False
    ) -> list[dict[str, Any]]: ...

    async def fetch_reference_names(self, tenant: Tenant, kind: EntityKind) -> set[str]: ...

    async def insert_batch(self, table: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]: ...

    async def insert_one(self, table: str, record: dict[str, Any]) -> dict[str, Any]: ...

    async def upsert_one(
        self, table: str, record: dict[str, Any], conflict_keys: Sequence[str]
    ) -> dict[str, Any]: ...


class WriteOutcome(str, Enum):
    """Result of a duplicate-safe write."""

    CREATED = "created"
    ALREADY_EXISTED = "already-existed"


async def insert_duplicate_safe(
    store: ProvisioningStore,
    table: str,
    record: dict[str, Any],
) -> WriteOutcome:
    """Insert a record, treating a uniqueness violation as work already done.

    Any other StorageError propagates unchanged.
    """
    try:
        await store.insert_one(table, record)
    except ConflictError as e:
        logger.debug(f"Insert into {table} hit an existing row ({e.code}); treating as already done")
        return WriteOutcome.ALREADY_EXISTED
    return WriteOutcome.CREATED


def classify_error(exc: SQLAlchemyError) -> StorageError:
    """Turn a SQLAlchemy failure into ConflictError or StorageError.

    The SQLSTATE reported by the driver decides; the message is only
    inspected when no code is available.
    """
    orig = getattr(exc, "orig", None) if isinstance(exc, DBAPIError) else None
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    message = str(orig) if orig is not None else str(exc)
    if is_unique_violation(code, message):
        return ConflictError(message, code or UNIQUE_VIOLATION)
    return StorageError(message, code)


TABLE_MODELS = {
    "staff": Staff,
    "students": Student,
    "staff_credentials": StaffCredential,
    "student_credentials": StudentCredential,
}


def _model_for(table: str):
    try:
        return TABLE_MODELS[table]
    except KeyError:
        raise StorageError(f"Unknown table: {table}") from None


def _as_dict(instance) -> dict[str, Any]:
    # Server defaults are not loaded and the session is gone; skip them
    state = inspect(instance)
    return {attr.key: state.dict[attr.key] for attr in state.mapper.column_attrs if attr.key in state.dict}


class SqlAlchemyProvisioningStore:
    """ProvisioningStore backed by the application's async SQLAlchemy engine."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _read(self, stmt):
        async with self.session_factory() as session:
            try:
                return await session.execute(stmt)
            except SQLAlchemyError as e:
                raise classify_error(e) from e

    async def get_tenant(self, code: str) -> Tenant | None:
        result = await self._read(select(TenantModel).where(TenantModel.code == code))
        tenant = result.scalar_one_or_none()
        return Tenant.model_validate(tenant) if tenant else None

    async def list_tenants(self) -> list[Tenant]:
        result = await self._read(
            select(TenantModel).where(TenantModel.is_active.is_(True)).order_by(TenantModel.code)
        )
        return [Tenant.model_validate(tenant) for tenant in result.scalars().all()]

    async def fetch_max_sequence(self, tenant: Tenant, kind: EntityKind) -> int:
        profile = get_profile(kind)
        model = _model_for(profile.identity_table)
        column = getattr(model, profile.natural_id_field)
        result = await self._read(
            select(column).where(
                model.tenant_id == tenant.id,
                column.startswith(profile.id_prefix, autoescape=True),
            )
        )
        # The suffix is compared numerically, which SQL string ordering gets wrong
        return max_sequence(result.scalars().all(), prefix=profile.id_prefix)

    async def fetch_existing(
        self,
        tenant: Tenant,
        kind: EntityKind,
        fields: Sequence[str],
    ) -> list[dict[str, Any]]:
        model = _model_for(get_profile(kind).identity_table)
        columns = [getattr(model, field).label(field) for field in fields]
        result = await self._read(select(*columns).where(model.tenant_id == tenant.id))
        return [dict(row) for row in result.mappings().all()]

    async def fetch_credential_ids(self, tenant: Tenant, kind: EntityKind) -> set[str]:
        profile = get_profile(kind)
        model = _model_for(profile.credential_table)
        column = getattr(model, profile.natural_id_field)
        result = await self._read(select(column).where(model.tenant_id == tenant.id))
        return set(result.scalars().all())

    async def fetch_credentials(
        self,
        tenant: Tenant,
        kind: EntityKind,
        include_passwords: bool = False,
    ) -> list[dict[str, Any]]:
        profile = get_profile(kind)
        model = _model_for(profile.credential_table)
        fields = [profile.natural_id_field, "is_active", "created_at"]
        # The plaintext column is only read when an administrator asks for it
        if include_passwords:
            fields.append("plain_password")
        columns = [getattr(model, field).label(field) for field in fields]
        result = await self._read(select(*columns).where(model.tenant_id == tenant.id))
        return [dict(row) for row in result.mappings().all()]

    async def fetch_reference_names(self, tenant: Tenant, kind: EntityKind) -> set[str]:
        if kind == EntityKind.STAFF:
            result = await self._read(
                select(Subject.name).where(Subject.tenant_id == tenant.id, Subject.is_active.is_(True))
            )
            return set(result.scalars().all())

        result = await self._read(
            select(SchoolClass).where(SchoolClass.tenant_id == tenant.id, SchoolClass.is_active.is_(True))
        )
        return {f"{cls.key}-{cls.academic_year}" for cls in result.scalars().all()}

    async def insert_batch(self, table: str, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        model = _model_for(table)
        instances = [model(**record) for record in records]
        async with self.session_factory() as session:
            try:
                session.add_all(instances)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise classify_error(e) from e
        return [_as_dict(instance) for instance in instances]

    async def insert_one(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        inserted = await self.insert_batch(table, [record])
        return inserted[0]

    async def upsert_one(
        self,
        table: str,
        record: dict[str, Any],
        conflict_keys: Sequence[str],
    ) -> dict[str, Any]:
        model = _model_for(table)
        stmt = pg_insert(model).values(**record)
        updates = {key: stmt.excluded[key] for key in record if key not in conflict_keys}
        updates["updated_at"] = func.now()
        stmt = stmt.on_conflict_do_update(index_elements=list(conflict_keys), set_=updates)
        stmt = stmt.returning(*model.__table__.columns)

        async with self.session_factory() as session:
            try:
                result = await session.execute(stmt)
                row = dict(result.mappings().one())
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise classify_error(e) from e
        return row

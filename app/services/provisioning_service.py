"""Bulk provisioning: import people and make sure each has exactly one credential."""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from app.config import settings
from app.exceptions import ConfigurationError, ConflictError, StorageError, TenantNotFoundError
from app.schemas.provisioning import (
    CandidateRecord,
    CredentialEntry,
    CredentialListing,
    CredentialStatus,
    EntityKind,
    GeneratedPassword,
    PreviewResult,
    PreviewRow,
    ProvisioningResult,
    RowError,
    RowReport,
    RowState,
    ValidationIssue,
)
from app.schemas.tenant import Tenant
from app.services.entities import EntityProfile, get_profile
from app.services.identifier_allocator import allocate, format_identifier, max_sequence
from app.services.normalizer import cell_text, normalize, unknown_mapping_targets
from app.services.provisioning_store import (
    ProvisioningStore,
    WriteOutcome,
    insert_duplicate_safe,
)
from app.services.row_validator import ImportContext, build_context, validate_batch
from app.utils.security import generate_credential

logger = logging.getLogger(__name__)

# Spreadsheet row 1 holds the headers
FIRST_DATA_ROW = 2


@dataclass
class _PlannedRow:
    """A valid candidate on its way into the identity table."""

    candidate: CandidateRecord
    natural_id: str
    allocated: bool


@dataclass
class _Allocation:
    """Allocation high-water mark for one import run."""

    prefix: str
    width: int
    high_water: int = 0

    def next_after(self, db_max: int) -> str:
        self.high_water = max(self.high_water, db_max) + 1
        return format_identifier(self.high_water, prefix=self.prefix, width=self.width)


class _Tally:
    """Builds a ProvisioningResult one row outcome at a time."""

    def __init__(self, operation: str, kind: EntityKind, reveal: bool):
        self.result = ProvisioningResult(
            operation=operation,
            entity_kind=kind,
            passwords=[] if reveal else None,
        )

    def error(self, row: int | None, natural_id: str | None, field: str | None, message: str) -> None:
        self.result.errors.append(RowError(row=row, natural_id=natural_id, field=field, message=message))

    def warning(self, row: int | None, natural_id: str | None, issue: ValidationIssue) -> None:
        self.result.warnings.append(
            RowError(row=row, natural_id=natural_id, field=issue.field, message=issue.message)
        )

    def state(
        self,
        row: int | None,
        natural_id: str | None,
        state: RowState,
        identity_existed: bool = False,
    ) -> None:
        self.result.rows.append(
            RowReport(row=row, natural_id=natural_id, state=state, identity_existed=identity_existed)
        )

    def reject(self, candidate: CandidateRecord, errors: list[ValidationIssue]) -> None:
        self.result.failed += 1
        for issue in errors:
            self.error(candidate.row_number, candidate.natural_id, issue.field, issue.message)
        self.state(candidate.row_number, candidate.natural_id, RowState.REJECTED)

    def reveal(self, natural_id: str, password: str) -> None:
        if self.result.passwords is not None:
            self.result.passwords.append(GeneratedPassword(natural_id=natural_id, password=password))


class ProvisioningService:
    """Runs imports, credential fills and regenerations for one data store.

    All calls take an explicit Tenant. Row-level problems end up in the
    returned result; only ConfigurationError aborts a request, and it is
    always raised before the first write.
    """

    def __init__(self, store: ProvisioningStore, batch_size: int | None = None):
        self.store = store
        self.batch_size = batch_size or settings.import_batch_size

    # === Tenant and context ===

    async def resolve_tenant(self, code: str) -> Tenant:
        """Resolve a school code to an active tenant."""
        code = (code or "").strip()
        if not code:
            raise ConfigurationError("School code is required")

        try:
            tenant = await self.store.get_tenant(code)
        except StorageError as e:
            raise ConfigurationError(f"Could not load school '{code}': {e.message}") from e

        if tenant is None or not tenant.is_active:
            raise TenantNotFoundError(code)
        return tenant

    async def load_context(self, tenant: Tenant, profile: EntityProfile) -> ImportContext:
        """Fetch the tenant's existing records once for the whole batch."""
        try:
            existing = await self.store.fetch_existing(tenant, profile.kind, profile.context_fields)
            reference_names = await self.store.fetch_reference_names(tenant, profile.kind)
        except StorageError as e:
            raise ConfigurationError(f"Could not load existing {profile.noun} records: {e.message}") from e
        return build_context(profile, existing, reference_names)

    def _candidates(
        self,
        kind: EntityKind,
        rows: Sequence[Mapping[str, Any]],
        column_mapping: Mapping[str, str | None] | None,
    ) -> list[CandidateRecord]:
        if not rows:
            raise ConfigurationError("No rows to import")
        if len(rows) > settings.max_import_rows:
            raise ConfigurationError(
                f"Too many rows: {len(rows)} (maximum is {settings.max_import_rows})"
            )
        unknown = unknown_mapping_targets(kind, column_mapping)
        if unknown:
            raise ConfigurationError(f"Unknown fields in column mapping: {', '.join(sorted(unknown))}")

        candidates = []
        for index, row in enumerate(rows):
            if not any(cell_text(value) for value in row.values()):
                continue
            candidates.append(
                normalize(row, kind, column_mapping, row_number=index + FIRST_DATA_ROW)
            )

        if not candidates:
            raise ConfigurationError("No rows to import")
        return candidates

    async def _active_ids(self, tenant: Tenant, profile: EntityProfile) -> list[str]:
        records = await self.store.fetch_existing(
            tenant, profile.kind, [profile.natural_id_field, "is_active"]
        )
        return sorted(
            record[profile.natural_id_field]
            for record in records
            if record.get(profile.natural_id_field) and record.get("is_active", True)
        )

    # === Preview ===

    async def preview_import(
        self,
        tenant: Tenant,
        kind: EntityKind,
        rows: Sequence[Mapping[str, Any]],
        column_mapping: Mapping[str, str | None] | None = None,
    ) -> PreviewResult:
        """Normalize and validate rows without writing anything."""
        profile = get_profile(kind)
        candidates = self._candidates(kind, rows, column_mapping)
        context = await self.load_context(tenant, profile)
        outcomes = validate_batch(candidates, context, kind)

        preview_rows = [
            PreviewRow(
                row=candidate.row_number,
                natural_id=candidate.natural_id,
                data=candidate.model_dump(exclude={"row_number"}, exclude_none=True),
                status=outcome.status,
                errors=[issue.message for issue in outcome.errors],
                warnings=[issue.message for issue in outcome.warnings],
            )
            for candidate, outcome in zip(candidates, outcomes)
        ]
        valid = sum(1 for outcome in outcomes if outcome.is_valid)
        return PreviewResult(
            entity_kind=kind,
            rows=preview_rows,
            total=len(preview_rows),
            valid=valid,
            invalid=len(preview_rows) - valid,
            warnings=sum(1 for outcome in outcomes if outcome.status == "warning"),
        )

    # === Import ===

    async def run_import(
        self,
        tenant: Tenant,
        kind: EntityKind,
        rows: Sequence[Mapping[str, Any]],
        column_mapping: Mapping[str, str | None] | None = None,
        *,
        reveal: bool = False,
    ) -> ProvisioningResult:
        """Import rows and issue a credential to every imported person.

        Rows whose identifier already exists are not inserted again but still
        receive a credential if they lack one.
        """
        profile = get_profile(kind)
        candidates = self._candidates(kind, rows, column_mapping)
        logger.info(f"Importing {len(candidates)} {kind.value} rows for school {tenant.code}")

        context = await self.load_context(tenant, profile)
        outcomes = validate_batch(candidates, context, kind)

        tally = _Tally("import", kind, reveal)
        tally.result.total = len(candidates)

        new_rows: list[CandidateRecord] = []
        existing_rows: list[CandidateRecord] = []
        for candidate, outcome in zip(candidates, outcomes):
            for issue in outcome.warnings:
                tally.warning(candidate.row_number, candidate.natural_id, issue)
            if not outcome.is_valid:
                tally.reject(candidate, outcome.errors)
            elif candidate.natural_id and candidate.natural_id in context.existing_ids:
                existing_rows.append(candidate)
            else:
                new_rows.append(candidate)

        planned, allocation = await self._plan(tenant, profile, new_rows)
        # (row, natural_id, identity_existed) for every row that reaches the credential stage
        to_credential: list[tuple[int, str, bool]] = [
            (candidate.row_number, candidate.natural_id, True) for candidate in existing_rows
        ]

        for batch_number, start in enumerate(range(0, len(planned), self.batch_size), start=1):
            batch = planned[start : start + self.batch_size]
            records = [self._identity_record(tenant, row) for row in batch]
            try:
                await self.store.insert_batch(profile.identity_table, records)
            except StorageError as e:
                logger.warning(
                    f"Batch {batch_number} of {kind.value} for school {tenant.code} failed "
                    f"({e.message}); retrying {len(batch)} rows one at a time"
                )
                for row in batch:
                    outcome = await self._insert_row(tenant, profile, row, allocation, tally)
                    if outcome is not None:
                        existed = outcome == WriteOutcome.ALREADY_EXISTED
                        to_credential.append((row.candidate.row_number, row.natural_id, existed))
                continue
            for row in batch:
                to_credential.append((row.candidate.row_number, row.natural_id, False))

        for _, _, existed in to_credential:
            if existed:
                tally.result.skipped += 1
            else:
                tally.result.success += 1

        already_credentialed = await self._known_credentials(tenant, profile, existing_rows)
        for row_number, natural_id, existed in sorted(to_credential):
            if existed and natural_id in already_credentialed:
                tally.state(row_number, natural_id, RowState.CREDENTIAL_EXISTED, identity_existed=True)
                continue
            await self._provision_credential(tenant, profile, natural_id, tally, row_number, existed)

        result = tally.result
        # Report in sheet order, not processing order
        result.errors.sort(key=lambda error: error.row)
        result.rows.sort(key=lambda report: report.row)
        logger.info(
            f"Import of {kind.value} for school {tenant.code} finished: total={result.total} "
            f"success={result.success} failed={result.failed} skipped={result.skipped} "
            f"credentials_created={result.created}"
        )
        return result

    async def _plan(
        self,
        tenant: Tenant,
        profile: EntityProfile,
        candidates: list[CandidateRecord],
    ) -> tuple[list[_PlannedRow], _Allocation]:
        """Assign identifiers to rows that did not bring their own."""
        allocation = _Allocation(prefix=profile.id_prefix, width=profile.id_width)
        missing = sum(1 for candidate in candidates if not candidate.natural_id)

        allocated: list[str] = []
        if missing:
            try:
                db_max = await self.store.fetch_max_sequence(tenant, profile.kind)
            except StorageError as e:
                raise ConfigurationError(
                    f"Could not read the current {profile.natural_id_label} sequence: {e.message}"
                ) from e
            # Sheet-supplied identifiers are about to be written too
            supplied_max = max_sequence(
                (candidate.natural_id for candidate in candidates), prefix=profile.id_prefix
            )
            base = max(db_max, supplied_max)
            allocated = allocate(base, missing, prefix=profile.id_prefix, width=profile.id_width)
            allocation.high_water = base + missing

        fresh = iter(allocated)
        planned = []
        for candidate in candidates:
            if candidate.natural_id:
                planned.append(_PlannedRow(candidate, candidate.natural_id, allocated=False))
            else:
                planned.append(_PlannedRow(candidate, next(fresh), allocated=True))
        return planned, allocation

    def _identity_record(self, tenant: Tenant, row: _PlannedRow) -> dict[str, Any]:
        record = row.candidate.identity_values(row.natural_id)
        record["tenant_id"] = tenant.id
        return record

    async def _insert_row(
        self,
        tenant: Tenant,
        profile: EntityProfile,
        row: _PlannedRow,
        allocation: _Allocation,
        tally: _Tally,
    ) -> WriteOutcome | None:
        """Insert one identity row on its own.

        Returns None when the row failed (already recorded in the tally).
        """
        row_number = row.candidate.row_number
        attempts = 0
        while True:
            try:
                await self.store.insert_one(profile.identity_table, self._identity_record(tenant, row))
                return WriteOutcome.CREATED
            except ConflictError as e:
                if not row.allocated:
                    logger.debug(f"{profile.natural_id_label} {row.natural_id} was created concurrently")
                    return WriteOutcome.ALREADY_EXISTED
                if attempts >= settings.allocation_max_retries:
                    message = (
                        f"Could not allocate a unique {profile.natural_id_label} "
                        f"after {attempts + 1} attempts: {e.message}"
                    )
                    break
                attempts += 1
                try:
                    db_max = await self.store.fetch_max_sequence(tenant, profile.kind)
                except StorageError as read_error:
                    message = read_error.message
                    break
                previous = row.natural_id
                row.natural_id = allocation.next_after(db_max)
                logger.info(
                    f"{profile.natural_id_label} {previous} was taken by another import; "
                    f"reallocated row {row_number} to {row.natural_id}"
                )
            except StorageError as e:
                message = e.message
                break

        logger.warning(f"Row {row_number} ({row.natural_id}) could not be inserted: {message}")
        tally.result.failed += 1
        tally.error(row_number, row.natural_id, None, message)
        tally.state(row_number, row.natural_id, RowState.INSERT_FAILED)
        return None

    async def _known_credentials(
        self,
        tenant: Tenant,
        profile: EntityProfile,
        existing_rows: list[CandidateRecord],
    ) -> set[str]:
        """Credential ids of pre-existing identities, to skip pointless writes.

        Only an optimization: the uniqueness constraint still decides.
        """
        if not existing_rows:
            return set()
        try:
            return await self.store.fetch_credential_ids(tenant, profile.kind)
        except StorageError as e:
            logger.warning(f"Could not read existing credentials for school {tenant.code}: {e.message}")
            return set()

    # === Credentials ===

    def _credential_record(
        self, tenant: Tenant, profile: EntityProfile, natural_id: str
    ) -> tuple[dict[str, Any], str]:
        credential = generate_credential()
        record = {
            "tenant_id": tenant.id,
            profile.natural_id_field: natural_id,
            "password_hash": credential.password_hash,
            "plain_password": credential.password if settings.credential_store_plaintext else None,
            "is_active": True,
        }
        return record, credential.password

    async def _provision_credential(
        self,
        tenant: Tenant,
        profile: EntityProfile,
        natural_id: str,
        tally: _Tally,
        row_number: int | None = None,
        identity_existed: bool = False,
    ) -> RowState:
        """Create a credential unless one exists, recording the outcome."""
        record, password = self._credential_record(tenant, profile, natural_id)
        tally.result.processed += 1

        try:
            outcome = await insert_duplicate_safe(self.store, profile.credential_table, record)
        except StorageError as e:
            logger.warning(f"Credential for {profile.natural_id_label} {natural_id} could not be stored: {e.message}")
            tally.error(row_number, natural_id, None, f"Credential could not be created: {e.message}")
            state = RowState.CREDENTIAL_FAILED
        else:
            if outcome == WriteOutcome.CREATED:
                tally.result.created += 1
                tally.reveal(natural_id, password)
                state = RowState.CREDENTIAL_CREATED
            else:
                state = RowState.CREDENTIAL_EXISTED

        tally.state(row_number, natural_id, state, identity_existed=identity_existed)
        return state

    async def run_fill_missing_credentials(
        self,
        tenant: Tenant,
        kind: EntityKind,
        *,
        reveal: bool = False,
    ) -> ProvisioningResult:
        """Issue a credential to every active person who has none.

        Safe to run repeatedly and concurrently: a credential created by
        someone else in the meantime counts as skipped, never as a failure.
        """
        profile = get_profile(kind)
        try:
            active = await self._active_ids(tenant, profile)
            have = await self.store.fetch_credential_ids(tenant, kind)
        except StorageError as e:
            raise ConfigurationError(f"Could not load {profile.noun} records: {e.message}") from e

        missing = [natural_id for natural_id in active if natural_id not in have]
        logger.info(
            f"Filling credentials for {len(missing)} of {len(active)} {kind.value} in school {tenant.code}"
        )

        tally = _Tally("fill", kind, reveal)
        result = tally.result
        result.total = len(active)
        for natural_id in missing:
            state = await self._provision_credential(tenant, profile, natural_id, tally)
            if state == RowState.CREDENTIAL_CREATED:
                result.success += 1
            elif state == RowState.CREDENTIAL_EXISTED:
                result.skipped += 1
            else:
                result.failed += 1

        logger.info(
            f"Credential fill for {kind.value} in school {tenant.code} finished: processed={result.processed} "
            f"created={result.created} skipped={result.skipped} failed={result.failed}"
        )
        return result

    async def run_regenerate_credentials(
        self,
        tenant: Tenant,
        kind: EntityKind,
        natural_ids: Sequence[str] | None = None,
        *,
        reveal: bool = False,
    ) -> ProvisioningResult:
        """Replace the credentials of the selected people (all active ones by default).

        This is the only operation that overwrites an existing credential.
        """
        profile = get_profile(kind)
        if natural_ids is not None and not natural_ids:
            raise ConfigurationError(f"No {profile.natural_id_label} values selected")

        try:
            active = await self._active_ids(tenant, profile)
        except StorageError as e:
            raise ConfigurationError(f"Could not load {profile.noun} records: {e.message}") from e

        tally = _Tally("regenerate", kind, reveal)
        result = tally.result

        if natural_ids is None:
            targets = active
        else:
            known = set(active)
            targets = []
            for natural_id in dict.fromkeys(natural_id.strip() for natural_id in natural_ids):
                if natural_id in known:
                    targets.append(natural_id)
                else:
                    result.failed += 1
                    tally.error(None, natural_id, profile.natural_id_field, f"{profile.natural_id_label} not found")
                    tally.state(None, natural_id, RowState.REJECTED)
        result.total = result.failed + len(targets)

        logger.info(f"Regenerating {len(targets)} {kind.value} credentials for school {tenant.code}")
        conflict_keys = ("tenant_id", profile.natural_id_field)
        for natural_id in targets:
            record, password = self._credential_record(tenant, profile, natural_id)
            result.processed += 1
            try:
                await self.store.upsert_one(profile.credential_table, record, conflict_keys)
            except StorageError as e:
                logger.warning(f"Credential for {profile.natural_id_label} {natural_id} could not be replaced: {e.message}")
                result.failed += 1
                tally.error(None, natural_id, None, f"Credential could not be replaced: {e.message}")
                tally.state(None, natural_id, RowState.CREDENTIAL_FAILED)
                continue
            result.success += 1
            result.created += 1
            tally.reveal(natural_id, password)
            tally.state(None, natural_id, RowState.CREDENTIAL_CREATED)
        return result

    async def credential_status(self, tenant: Tenant, kind: EntityKind) -> CredentialStatus:
        """Count how many active people of a kind have a credential."""
        profile = get_profile(kind)
        try:
            active = await self._active_ids(tenant, profile)
            have = await self.store.fetch_credential_ids(tenant, kind)
        except StorageError as e:
            raise ConfigurationError(f"Could not load {profile.noun} records: {e.message}") from e

        total = len(active)
        with_credential = sum(1 for natural_id in active if natural_id in have)
        return CredentialStatus(
            entity_kind=kind,
            total=total,
            with_credential=with_credential,
            without_credential=total - with_credential,
            percentage=round(with_credential * 100 / total) if total else 0,
        )

    async def list_credentials(
        self,
        tenant: Tenant,
        kind: EntityKind,
        include_passwords: bool = False,
    ) -> CredentialListing:
        """List every active person of a kind with their credential.

        Stored plain passwords are only read and returned when
        include_passwords is set; they are None when plaintext storage is off.
        """
        profile = get_profile(kind)
        fields = [profile.natural_id_field, profile.name_field, "is_active"]
        try:
            people = await self.store.fetch_existing(tenant, kind, fields)
            credentials = await self.store.fetch_credentials(tenant, kind, include_passwords)
        except StorageError as e:
            raise ConfigurationError(f"Could not load {profile.noun} credentials: {e.message}") from e

        by_id = {credential[profile.natural_id_field]: credential for credential in credentials}
        entries = []
        for person in sorted(people, key=lambda p: p.get(profile.natural_id_field) or ""):
            natural_id = person.get(profile.natural_id_field)
            if not natural_id or not person.get("is_active", True):
                continue
            credential = by_id.get(natural_id)
            entries.append(
                CredentialEntry(
                    natural_id=natural_id,
                    name=person.get(profile.name_field),
                    has_password=credential is not None,
                    is_active=bool(credential and credential.get("is_active")),
                    created_at=credential.get("created_at") if credential else None,
                    password=credential.get("plain_password") if credential and include_passwords else None,
                )
            )

        if include_passwords:
            logger.warning(f"Stored passwords of {len(entries)} {kind.value} displayed for school {tenant.code}")
        return CredentialListing(
            entity_kind=kind,
            total=len(entries),
            with_credential=sum(1 for entry in entries if entry.has_password),
            entries=entries,
        )


_provisioning_service: ProvisioningService | None = None


def get_provisioning_service() -> ProvisioningService:
    """Get the provisioning service singleton."""
    global _provisioning_service
    if _provisioning_service is None:
        from app.database import async_session_factory
        from app.services.provisioning_store import SqlAlchemyProvisioningStore

        _provisioning_service = ProvisioningService(SqlAlchemyProvisioningStore(async_session_factory))
    return _provisioning_service

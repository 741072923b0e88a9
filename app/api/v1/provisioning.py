"""Bulk provisioning API endpoints."""

import csv
import io
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile

from app.exceptions import ConfigurationError, ValidationException
from app.schemas.common import APIResponse
from app.schemas.provisioning import (
    EntityKind,
    FillCredentialsRequest,
    ImportFieldInfo,
    ImportRequest,
    PreviewRequest,
    RegenerateCredentialsRequest,
)
from app.services.normalizer import IMPORT_FIELDS
from app.services.provisioning_service import ProvisioningService, get_provisioning_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{kind}/fields", response_model=APIResponse)
async def get_import_fields(kind: EntityKind):
    """Get the fields an import sheet of this kind may contain."""
    fields = [
        ImportFieldInfo(
            name=name,
            label=info["label"],
            required=info.get("required", False),
            aliases=list(info.get("aliases", ())),
        )
        for name, info in IMPORT_FIELDS[kind].items()
    ]
    return APIResponse(status="success", data=fields)


@router.post("/{kind}/validate", response_model=APIResponse)
async def validate_rows(
    kind: EntityKind,
    data: PreviewRequest,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    """Validate rows without importing them."""
    tenant = await service.resolve_tenant(data.school_code)
    preview = await service.preview_import(tenant, kind, data.rows, data.column_mapping)
    return APIResponse(status="success", data=preview)


@router.post("/{kind}/import", response_model=APIResponse)
async def import_rows(
    kind: EntityKind,
    data: ImportRequest,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    """Import rows and issue credentials to everyone imported."""
    tenant = await service.resolve_tenant(data.school_code)
    result = await service.run_import(
        tenant, kind, data.rows, data.column_mapping, reveal=data.reveal
    )
    return APIResponse(
        status="success",
        data=result,
        message=f"Imported {result.success} of {result.total} rows",
    )


@router.post("/{kind}/import/csv", response_model=APIResponse)
async def import_csv(
    kind: EntityKind,
    file: UploadFile = File(...),
    school_code: str = Form(...),
    reveal: bool = Form(False),
    service: ProvisioningService = Depends(get_provisioning_service),
):
    """Import an uploaded CSV file."""
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise ConfigurationError("File must be a CSV")

    content = await file.read()
    try:
        csv_content = content.decode("utf-8-sig")  # Handle BOM
    except UnicodeDecodeError as e:
        raise ConfigurationError(f"Failed to read file: {e}") from e

    reader = csv.DictReader(io.StringIO(csv_content))
    if not reader.fieldnames:
        raise ValidationException([{"field": "file", "message": "CSV file has no header row"}])
    rows = [dict(row) for row in reader]
    logger.info(f"Received {file.filename} with {len(rows)} rows for {kind.value} import")

    tenant = await service.resolve_tenant(school_code)
    result = await service.run_import(tenant, kind, rows, reveal=reveal)
    return APIResponse(
        status="success",
        data=result,
        message=f"Imported {result.success} of {result.total} rows",
    )


@router.post("/{kind}/credentials/fill", response_model=APIResponse)
async def fill_missing_credentials(
    kind: EntityKind,
    data: FillCredentialsRequest,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    """Issue credentials to everyone who has none yet."""
    tenant = await service.resolve_tenant(data.school_code)
    result = await service.run_fill_missing_credentials(tenant, kind, reveal=data.reveal)
    return APIResponse(
        status="success",
        data=result,
        message=f"Created {result.created} credentials",
    )


@router.post("/{kind}/credentials/regenerate", response_model=APIResponse)
async def regenerate_credentials(
    kind: EntityKind,
    data: RegenerateCredentialsRequest,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    """Replace existing credentials with new passwords."""
    tenant = await service.resolve_tenant(data.school_code)
    result = await service.run_regenerate_credentials(
        tenant, kind, data.natural_ids, reveal=data.reveal
    )
    return APIResponse(
        status="success",
        data=result,
        message=f"Regenerated {result.success} credentials",
    )


@router.get("/{kind}/credentials", response_model=APIResponse)
async def list_credentials(
    kind: EntityKind,
    school_code: str,
    include_passwords: bool = False,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    """List everyone of this kind with their login state, optionally with stored passwords."""
    tenant = await service.resolve_tenant(school_code)
    listing = await service.list_credentials(tenant, kind, include_passwords=include_passwords)
    return APIResponse(status="success", data=listing)


@router.get("/{kind}/credentials/status", response_model=APIResponse)
async def credential_status(
    kind: EntityKind,
    school_code: str,
    service: ProvisioningService = Depends(get_provisioning_service),
):
    """Show how many people of this kind have a credential."""
    tenant = await service.resolve_tenant(school_code)
    status = await service.credential_status(tenant, kind)
    return APIResponse(status="success", data=status)

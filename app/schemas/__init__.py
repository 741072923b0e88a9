"""Pydantic schemas for request/response validation."""

from app.schemas.common import APIResponse
from app.schemas.provisioning import (
    CandidateRecord,
    CredentialEntry,
    CredentialListing,
    CredentialStatus,
    EntityKind,
    FillCredentialsRequest,
    GeneratedPassword,
    ImportFieldInfo,
    ImportRequest,
    PreviewRequest,
    PreviewResult,
    PreviewRow,
    ProvisioningResult,
    RegenerateCredentialsRequest,
    RowError,
    RowReport,
    RowState,
    StaffCandidate,
    StudentCandidate,
    ValidationIssue,
    ValidationOutcome,
)
from app.schemas.tenant import Tenant

__all__ = [
    # Common
    "APIResponse",
    # Tenant
    "Tenant",
    # Candidates
    "EntityKind",
    "CandidateRecord",
    "StaffCandidate",
    "StudentCandidate",
    "ValidationIssue",
    "ValidationOutcome",
    # Results
    "RowState",
    "RowError",
    "RowReport",
    "GeneratedPassword",
    "ProvisioningResult",
    "PreviewRow",
    "PreviewResult",
    "CredentialStatus",
    "CredentialEntry",
    "CredentialListing",
    # Requests
    "ImportRequest",
    "PreviewRequest",
    "FillCredentialsRequest",
    "RegenerateCredentialsRequest",
    "ImportFieldInfo",
]

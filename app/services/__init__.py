"""Service layer for business logic."""

from app.services.provisioning_service import ProvisioningService, get_provisioning_service

__all__ = [
    "ProvisioningService",
    "get_provisioning_service",
]

"""Tenant-related Pydantic schemas."""

import uuid

from pydantic import BaseModel, ConfigDict


class Tenant(BaseModel):
    """The school a provisioning request runs against.

    Passed explicitly through every provisioning call; nothing reads the
    tenant from ambient request state.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: uuid.UUID
    code: str
    name: str
    is_active: bool = True

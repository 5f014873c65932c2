"""
Pydantic schemas for permission endpoints.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from app.features.permissions.evaluator import AccountPermission


class PermissionResponse(BaseModel):
    """Schema for permission catalog entries."""
    id: str
    name: str
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PermissionCheckRequest(BaseModel):
    """Schema for checking whether the current user may act on an account."""
    account_id: str = Field(..., min_length=1, description="Account ID")
    system_permission: str = Field(..., min_length=1, max_length=100, description="System permission name")
    account_permission: AccountPermission = Field(..., description="Account capability, e.g. 'can_publish'")


class PermissionCheckResponse(BaseModel):
    """Schema for permission check response."""
    has_permission: bool
    reason: str

"""
Permission schemas
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class PermissionBase(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    meta_title: Optional[str] = Field(None, max_length=255)
    meta_description: Optional[str] = None


class PermissionCreate(PermissionBase):
    pass


class PermissionUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    meta_title: Optional[str] = Field(None, max_length=255)
    meta_description: Optional[str] = None


class PermissionResponse(PermissionBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class PermissionOption(BaseModel):
    value: int
    label: str


class PermissionOptionGroup(BaseModel):
    group: str
    options: List[PermissionOption]


class PermissionStats(BaseModel):
    total: int
    active: int
    deleted: int


class PermissionCheckRequest(BaseModel):
    permission: Optional[str] = None
    permissions: Optional[List[str]] = None


class PermissionCheckResponse(BaseModel):
    user_id: int
    allowed: bool


class SyncResult(BaseModel):
    created: int
    updated: int
    total: int
    errors: List[str] = []

"""Pydantic schemas for API request/response serialization.

Responses use camelCase keys; request bodies accept either form.
"""

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Dict, Any
from datetime import datetime

from adaudit.models.audit import AuditStatus


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


# ---- User ----
class UserOut(CamelModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---- Account connection ----
class ConnectionOut(CamelModel):
    id: int
    user_id: int
    platform: str
    account_id: str
    account_name: str
    expires_at: Optional[datetime] = None
    is_active: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConnectResponse(CamelModel):
    success: bool
    connection: Optional[ConnectionOut] = None
    created: Optional[bool] = None
    authorize_url: Optional[str] = None
    message: str


# ---- Audit ----
class AuditCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    platform: str
    connection_id: int
    report_format: str


class AuditOut(CamelModel):
    id: int
    name: str
    platform: str
    status: AuditStatus
    account_id: Optional[str] = None
    account_name: Optional[str] = None
    report_format: str
    created_by: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    report_url: Optional[str] = None
    audit_data: Optional[Dict[str, Any]] = None


# ---- Platforms ----
class PlatformOut(BaseModel):
    id: str
    name: str
    authUrl: str
    scope: str
    apiBase: str


# ---- Generic ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class PlatformListResponse(BaseModel):
    platforms: List[PlatformOut]

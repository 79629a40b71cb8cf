from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from property_crm.schemas.common import not_null


def _check_color(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if len(v) != 7 or not v.startswith("#") or any(c not in "0123456789abcdefABCDEF" for c in v[1:]):
        raise ValueError("color must be a hex value like #3B82F6")
    return v


class FolderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    tenant_id: Optional[int] = None
    property_id: Optional[int] = None
    parent_id: Optional[int] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    sort_order: int = 0

    @field_validator("color")
    @classmethod
    def valid_color(cls, v):
        return _check_color(v)


class FolderUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    parent_id: Optional[int] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    sort_order: Optional[int] = None

    @field_validator("name", "sort_order")
    @classmethod
    def required_columns(cls, v):
        return not_null(v)

    @field_validator("color")
    @classmethod
    def valid_color(cls, v):
        return _check_color(v)


class FolderOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    tenant_id: Optional[int] = None
    property_id: Optional[int] = None
    parent_id: Optional[int] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    sort_order: int
    document_count: int = 0
    subfolder_count: int = 0
    subfolders: List["FolderOut"] = []
    created_at: datetime

    class Config:
        from_attributes = True


FolderOut.model_rebuild()


class DocumentOut(BaseModel):
    id: int
    filename: str
    content_type: Optional[str] = None
    size_bytes: int
    sha256: Optional[str] = None
    tenant_id: Optional[int] = None
    property_id: Optional[int] = None
    folder_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DocumentMoveIn(BaseModel):
    # None moves the document to the root
    folder_id: Optional[int] = None


class DocumentUrlOut(BaseModel):
    url: str
    expires_in: int

"""
Pydantic models for IPFS records and datasets
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from models.domain import IpfsContentType
from .base import CamelModel


class IpfsTextUpload(CamelModel):
    """Text content to push to IPFS"""
    content: str = Field(min_length=1)
    content_type: IpfsContentType
    file_name: Optional[str] = None
    description: Optional[str] = None
    model_id: Optional[int] = None


class IpfsRecordResponse(CamelModel):
    id: int
    cid: str
    content_type: IpfsContentType
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    description: Optional[str] = None
    pinned: bool
    created_at: datetime
    user_id: Optional[int] = None
    gateway_url: Optional[str] = None


class DatasetCreate(CamelModel):
    name: str = Field(min_length=1)
    description: str
    data_cid: str = Field(min_length=1)
    format: str = Field(min_length=1)
    size_bytes: Optional[int] = Field(default=None, ge=0)
    model_id: Optional[int] = None


class DatasetResponse(CamelModel):
    id: int
    name: str
    description: str
    data_cid: str
    size_bytes: Optional[int] = None
    format: str
    created_at: datetime
    user_id: int
    gateway_url: Optional[str] = None

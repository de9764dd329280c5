"""
IPFS storage references and datasets

Only the content identifier and metadata live here; the bytes live on the
hosted IPFS gateway.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from enum import Enum


class IpfsContentType(str, Enum):
    MODEL = "model"
    DATA = "data"
    CODE = "code"
    WEIGHTS = "weights"
    IMAGE = "image"
    DOCUMENT = "document"

    @property
    def is_download(self) -> bool:
        """Binary artifacts are served as attachments"""
        return self in (IpfsContentType.MODEL, IpfsContentType.DATA, IpfsContentType.WEIGHTS)


@dataclass
class IpfsRecord:
    """Local reference to content uploaded to IPFS"""
    id: int
    cid: str
    content_type: IpfsContentType
    user_id: Optional[int] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    description: Optional[str] = None
    pinned: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Dataset:
    """A dataset published to IPFS by a contributor"""
    id: int
    name: str
    description: str
    data_cid: str
    format: str
    user_id: int
    size_bytes: Optional[int] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

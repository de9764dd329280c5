"""
IPFS API - pass-through to the hosted IPFS gateway

GET  /api/ipfs/status        - Whether credentials are configured
POST /api/ipfs/upload/text   - Upload text content
POST /api/ipfs/upload/file   - Upload a file (multipart)
GET  /api/ipfs/content/{cid} - Fetch content by CID
POST /api/ipfs/pin/{cid}     - Pin previously uploaded content
GET  /api/ipfs/storage       - Caller's uploads
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from config import Settings
from middleware.auth import get_current_user
from models.api.storage import IpfsRecordResponse, IpfsTextUpload
from models.domain import ActivityAction, IpfsContentType, IpfsRecord, User
from repositories import MemoryStore
from services.broadcaster import Broadcaster
from services.ipfs_client import IpfsClient, IpfsError
from .dependencies import get_app_settings, get_broadcaster, get_ipfs, get_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/ipfs", tags=["ipfs"])


def require_configured(ipfs: IpfsClient = Depends(get_ipfs)) -> IpfsClient:
    if not ipfs.is_configured:
        raise HTTPException(status_code=503, detail="IPFS service not configured")
    return ipfs


def upstream_error(message: str, error: IpfsError) -> HTTPException:
    logger.error(f"{message}: {error}")
    return HTTPException(status_code=500, detail={"error": message, "details": str(error)})


def record_response(record: IpfsRecord, ipfs: IpfsClient) -> IpfsRecordResponse:
    response = IpfsRecordResponse.model_validate(record)
    response.gateway_url = ipfs.gateway_url_for(record.cid)
    return response


async def _store_upload(
    store: MemoryStore,
    broadcaster: Broadcaster,
    user: User,
    cid: str,
    content_type: IpfsContentType,
    description: str,
    model_id: int,
    file_name: Optional[str] = None,
    file_size: Optional[int] = None,
    record_description: Optional[str] = None,
) -> IpfsRecord:
    record = await store.create_ipfs_record(
        cid=cid,
        content_type=content_type,
        user_id=user.id,
        file_name=file_name,
        file_size=file_size,
        description=record_description,
    )
    activity = await store.create_activity(
        model_id=model_id,
        user_id=user.id,
        action=ActivityAction.UPLOADED_TO_IPFS,
        description=description,
        related_cid=cid,
    )
    await broadcaster.broadcast_new_activity(activity)
    return record


@router.get("/status")
async def ipfs_status(ipfs: IpfsClient = Depends(get_ipfs)):
    return {"configured": ipfs.is_configured, "ready": ipfs.is_configured}


@router.post("/upload/text", response_model=IpfsRecordResponse)
async def upload_text(
    upload: IpfsTextUpload,
    user: User = Depends(get_current_user),
    ipfs: IpfsClient = Depends(require_configured),
    store: MemoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_app_settings),
):
    try:
        cid = await ipfs.add(upload.content, file_name=upload.file_name)
    except IpfsError as e:
        raise upstream_error("Failed to upload to IPFS", e)

    record = await _store_upload(
        store,
        broadcaster,
        user,
        cid=cid,
        content_type=upload.content_type,
        description=f"Uploaded {upload.content_type.value} content to IPFS",
        model_id=settings.default_model_id if upload.model_id is None else upload.model_id,
        file_name=upload.file_name,
        file_size=len(upload.content.encode('utf-8')),
        record_description=upload.description,
    )
    return record_response(record, ipfs)


@router.post("/upload/file", response_model=IpfsRecordResponse)
async def upload_file(
    file: UploadFile = File(...),
    content_type: IpfsContentType = Form(..., alias="contentType"),
    description: Optional[str] = Form(None),
    model_id: Optional[int] = Form(None, alias="modelId"),
    user: User = Depends(get_current_user),
    ipfs: IpfsClient = Depends(require_configured),
    store: MemoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    settings: Settings = Depends(get_app_settings),
):
    """Multipart upload, capped at max_upload_bytes"""
    # Never read more than one byte past the cap
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")
    data = await file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")

    try:
        cid = await ipfs.add(data, file_name=file.filename)
    except IpfsError as e:
        raise upstream_error("Failed to upload file to IPFS", e)

    record = await _store_upload(
        store,
        broadcaster,
        user,
        cid=cid,
        content_type=content_type,
        description=f"Uploaded {content_type.value} file to IPFS: {file.filename}",
        model_id=settings.default_model_id if model_id is None else model_id,
        file_name=file.filename,
        file_size=len(data),
        record_description=description,
    )
    return record_response(record, ipfs)


@router.get("/content/{cid}")
async def get_content(
    cid: str,
    ipfs: IpfsClient = Depends(require_configured),
    store: MemoryStore = Depends(get_store),
):
    """
    Raw content by CID.

    Model, data and weights uploads are served as attachments.
    """
    try:
        content = await ipfs.cat(cid)
    except IpfsError as e:
        logger.warning(f"IPFS content {cid} not retrievable: {e}")
        raise HTTPException(status_code=404, detail="Content not found on IPFS")

    headers = {}
    record = await store.get_ipfs_record_by_cid(cid)
    if record and record.content_type.is_download:
        headers['Content-Disposition'] = f'attachment; filename="{record.file_name or cid}"'

    return Response(content=content, media_type="application/octet-stream", headers=headers)


@router.post("/pin/{cid}", response_model=IpfsRecordResponse)
async def pin_content(
    cid: str,
    user: User = Depends(get_current_user),
    ipfs: IpfsClient = Depends(require_configured),
    store: MemoryStore = Depends(get_store),
):
    record = await store.get_ipfs_record_by_cid(cid)
    if not record:
        raise HTTPException(status_code=404, detail="IPFS record not found")

    try:
        pinned = await ipfs.pin(cid)
    except IpfsError as e:
        raise upstream_error("Failed to pin content on IPFS", e)

    if not pinned:
        raise HTTPException(status_code=500, detail="Failed to pin content")

    record = await store.update_ipfs_pin_status(cid, True)
    logger.info(f"User {user.id} pinned {cid}")
    return record_response(record, ipfs)


@router.get("/storage", response_model=List[IpfsRecordResponse])
async def list_storage(
    user: User = Depends(get_current_user),
    ipfs: IpfsClient = Depends(get_ipfs),
    store: MemoryStore = Depends(get_store),
):
    records = await store.get_ipfs_records_by_user(user.id)
    return [record_response(r, ipfs) for r in records]

import hashlib
import logging
import mimetypes
from typing import List, Optional, Tuple
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.api.routes.folders import get_owned_folder
from property_crm.api.routes.properties import get_owned_property
from property_crm.api.routes.tenant_portal import get_portal_tenant
from property_crm.api.routes.tenants import get_owned_tenant
from property_crm.core import storage
from property_crm.core.audit import log_audit
from property_crm.core.auth import get_current_user, get_landlord
from property_crm.core.config import settings
from property_crm.models.document import Document
from property_crm.models.user import User
from property_crm.schemas.document import DocumentMoveIn, DocumentOut, DocumentUrlOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents", tags=["documents"])


def get_owned_document(db: Session, user_id: int, document_id: int) -> Document:
    doc = db.query(Document).filter(Document.id == document_id, Document.user_id == user_id).first()
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


def visible_documents_query(db: Session, user: User):
    if user.role == "tenant":
        tenant = get_portal_tenant(db, user)
        return db.query(Document).filter(Document.user_id == tenant.user_id, Document.tenant_id == tenant.id)
    return db.query(Document).filter(Document.user_id == user.id)


@router.get("", response_model=List[DocumentOut])
def list_documents(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    folder_id: Optional[int] = Query(None),
    root_only: bool = Query(False, description="Only documents outside any folder"),
    tenant_id: Optional[int] = Query(None),
    property_id: Optional[int] = Query(None),
):
    q = visible_documents_query(db, current_user)
    if folder_id is not None:
        q = q.filter(Document.folder_id == folder_id)
    elif root_only:
        q = q.filter(Document.folder_id.is_(None))
    if tenant_id is not None:
        q = q.filter(Document.tenant_id == tenant_id)
    if property_id is not None:
        q = q.filter(Document.property_id == property_id)
    return q.order_by(Document.created_at.desc(), Document.id.desc()).all()


def _read_limited(file: UploadFile) -> Tuple[bytes, str]:
    """Read the upload in chunks; returns (content, sha256) or 413 once past MAX_UPLOAD_MB."""
    limit = settings.MAX_UPLOAD_MB * 1024 * 1024
    digest = hashlib.sha256()
    buf = bytearray()
    while True:
        chunk = file.file.read(storage.CHUNK_SIZE)
        if not chunk:
            break
        buf.extend(chunk)
        if len(buf) > limit:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Max size: {settings.MAX_UPLOAD_MB} MB.",
            )
        digest.update(chunk)
    return bytes(buf), digest.hexdigest()


@router.post("", response_model=DocumentOut, status_code=201)
def upload_document(
    file: UploadFile = File(..., description="Document to upload (pdf, image, office, txt, csv)"),
    folder_id: Optional[int] = Form(None),
    tenant_id: Optional[int] = Form(None),
    property_id: Optional[int] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    """Store the file and record it; tenant/property default to the folder's."""
    content_type = file.content_type or (mimetypes.guess_type(file.filename or "")[0] or "")
    if content_type not in storage.ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid file type: {content_type or 'unknown'}. "
            f"Allowed: {', '.join(sorted(storage.ALLOWED_CONTENT_TYPES))}",
        )

    folder = get_owned_folder(db, current_user.id, folder_id) if folder_id is not None else None
    if tenant_id is not None:
        get_owned_tenant(db, current_user.id, tenant_id)
    if property_id is not None:
        get_owned_property(db, current_user.id, property_id)

    data, sha256 = _read_limited(file)
    if not data:
        raise HTTPException(status_code=400, detail="File is empty")

    storage_key = storage.build_key(current_user.id, file.filename)
    try:
        storage.upload(storage_key, data, content_type, metadata={"sha256": sha256})
    except storage.StorageError:
        raise HTTPException(status_code=502, detail="Document storage is unavailable")

    doc = Document(
        user_id=current_user.id,
        folder_id=folder.id if folder else None,
        tenant_id=tenant_id if tenant_id is not None else (folder.tenant_id if folder else None),
        property_id=property_id if property_id is not None else (folder.property_id if folder else None),
        filename=file.filename or "file",
        content_type=content_type,
        size_bytes=len(data),
        sha256=sha256,
        storage_key=storage_key,
        uploaded_by_id=current_user.id,
    )
    db.add(doc)
    db.commit()
    db.refresh(doc)

    log_audit(
        db,
        actor=current_user,
        action="created",
        entity_type="document",
        entity_id=str(doc.id),
        property_id=doc.property_id,
        description=f"Document uploaded: {doc.filename}",
    )
    return doc


def get_visible_document(db: Session, user: User, document_id: int) -> Document:
    doc = visible_documents_query(db, user).filter(Document.id == document_id).first()
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


@router.get("/{document_id}/download")
def download_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    doc = get_visible_document(db, current_user, document_id)
    try:
        chunks, length = storage.open_stream(doc.storage_key)
    except storage.ObjectNotFound:
        logger.error("Stored object missing for document %s (%s)", doc.id, doc.storage_key)
        raise HTTPException(status_code=404, detail="Document file not found")
    except storage.StorageError:
        raise HTTPException(status_code=502, detail="Document storage is unavailable")

    headers = {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(doc.filename)}"}
    if length is not None:
        headers["Content-Length"] = str(length)
    return StreamingResponse(chunks, media_type=doc.content_type or "application/octet-stream", headers=headers)


@router.get("/{document_id}/url", response_model=DocumentUrlOut)
def document_url(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Short-lived direct link to the stored object."""
    doc = get_visible_document(db, current_user, document_id)
    expires_in = settings.PRESIGNED_URL_EXPIRE_MINUTES * 60
    try:
        url = storage.presigned_url(doc.storage_key, doc.filename, expires_in)
    except storage.StorageError:
        raise HTTPException(status_code=502, detail="Document storage is unavailable")
    return DocumentUrlOut(url=url, expires_in=expires_in)


@router.patch("/{document_id}/move", response_model=DocumentOut)
def move_document(
    document_id: int,
    payload: DocumentMoveIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    doc = get_owned_document(db, current_user.id, document_id)
    if payload.folder_id is not None:
        get_owned_folder(db, current_user.id, payload.folder_id)
    doc.folder_id = payload.folder_id
    db.commit()
    db.refresh(doc)
    return doc


@router.delete("/{document_id}", status_code=204)
def delete_document(document_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    doc = get_owned_document(db, current_user.id, document_id)
    storage_key, filename = doc.storage_key, doc.filename

    db.delete(doc)
    db.commit()
    try:
        storage.delete(storage_key)
    except storage.StorageError:
        logger.exception("Failed to remove stored object %s", storage_key)

    log_audit(
        db,
        actor=current_user,
        action="deleted",
        entity_type="document",
        entity_id=str(document_id),
        description=f"Document deleted: {filename}",
    )
    return None

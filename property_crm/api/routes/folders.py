from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from property_crm.api.deps import get_db
from property_crm.api.routes.properties import get_owned_property
from property_crm.api.routes.tenant_portal import get_portal_tenant
from property_crm.api.routes.tenants import get_owned_tenant
from property_crm.core.auth import get_current_user, get_landlord
from property_crm.models.document import Document, DocumentFolder
from property_crm.models.user import User
from property_crm.schemas.document import FolderCreate, FolderOut, FolderUpdate
from property_crm.services.folders import build_folder_tree, ensure_not_descendant

router = APIRouter(prefix="/folders", tags=["folders"])


def get_owned_folder(db: Session, user_id: int, folder_id: int) -> DocumentFolder:
    folder = db.query(DocumentFolder).filter(DocumentFolder.id == folder_id, DocumentFolder.user_id == user_id).first()
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")
    return folder


def visible_folders_query(db: Session, user: User):
    """Landlords see all their folders; tenant users only their own tenant's."""
    if user.role == "tenant":
        tenant = get_portal_tenant(db, user)
        return db.query(DocumentFolder).filter(
            DocumentFolder.user_id == tenant.user_id,
            DocumentFolder.tenant_id == tenant.id,
        )
    return db.query(DocumentFolder).filter(DocumentFolder.user_id == user.id)


@router.get("", response_model=List[FolderOut])
def list_folders(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    tenant_id: Optional[int] = Query(None),
    property_id: Optional[int] = Query(None),
):
    """Root folders with their sub-folders nested, each with document and sub-folder counts."""
    q = visible_folders_query(db, current_user)
    if tenant_id is not None:
        q = q.filter(DocumentFolder.tenant_id == tenant_id)
    if property_id is not None:
        q = q.filter(DocumentFolder.property_id == property_id)
    return build_folder_tree(db, q.all())


@router.post("", response_model=FolderOut, status_code=201)
def create_folder(
    payload: FolderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    data = payload.model_dump()
    if payload.tenant_id is not None:
        get_owned_tenant(db, current_user.id, payload.tenant_id)
    if payload.property_id is not None:
        get_owned_property(db, current_user.id, payload.property_id)
    if payload.parent_id is not None:
        parent = get_owned_folder(db, current_user.id, payload.parent_id)
        # Sub-folders belong to the same tenant/property as their parent unless given
        if data["tenant_id"] is None:
            data["tenant_id"] = parent.tenant_id
        if data["property_id"] is None:
            data["property_id"] = parent.property_id

    folder = DocumentFolder(user_id=current_user.id, **data)
    db.add(folder)
    db.commit()
    db.refresh(folder)
    return FolderOut.model_validate(folder)


@router.patch("/{folder_id}", response_model=FolderOut)
def update_folder(
    folder_id: int,
    payload: FolderUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_landlord),
):
    folder = get_owned_folder(db, current_user.id, folder_id)
    data = payload.model_dump(exclude_unset=True)

    if "parent_id" in data and data["parent_id"] != folder.parent_id:
        if data["parent_id"] is not None:
            get_owned_folder(db, current_user.id, data["parent_id"])
        ensure_not_descendant(db, folder, data["parent_id"])

    for k, v in data.items():
        setattr(folder, k, v)
    db.commit()
    db.refresh(folder)

    subtree = build_folder_tree(db, visible_folders_query(db, current_user).all())
    return _find(subtree, folder.id) or FolderOut.model_validate(folder)


def _find(nodes: List[FolderOut], folder_id: int) -> Optional[FolderOut]:
    for node in nodes:
        if node.id == folder_id:
            return node
        found = _find(node.subfolders, folder_id)
        if found:
            return found
    return None


@router.delete("/{folder_id}", status_code=204)
def delete_folder(folder_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_landlord)):
    folder = get_owned_folder(db, current_user.id, folder_id)

    if db.query(Document.id).filter(Document.folder_id == folder.id).first():
        raise HTTPException(status_code=400, detail="Folder is not empty: move or delete its documents first")
    if db.query(DocumentFolder.id).filter(DocumentFolder.parent_id == folder.id).first():
        raise HTTPException(status_code=400, detail="Folder is not empty: delete its sub-folders first")

    db.delete(folder)
    db.commit()
    return None

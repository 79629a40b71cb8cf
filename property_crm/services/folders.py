from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from property_crm.models.document import Document, DocumentFolder
from property_crm.schemas.document import FolderOut

DEFAULT_FOLDERS = [
    {
        "name": "Lease Agreements",
        "description": "Lease contracts and agreements",
        "color": "#3B82F6",
        "icon": "file-text",
        "sort_order": 1,
    },
    {
        "name": "Personal Documents",
        "description": "ID, passport, and personal identification documents",
        "color": "#10B981",
        "icon": "user",
        "sort_order": 2,
    },
    {
        "name": "Financial Documents",
        "description": "Bank statements, payslips, and financial records",
        "color": "#F59E0B",
        "icon": "dollar-sign",
        "sort_order": 3,
    },
    {
        "name": "Proof of Residence",
        "description": "Utility bills and address verification documents",
        "color": "#8B5CF6",
        "icon": "home",
        "sort_order": 4,
    },
    {
        "name": "Other Documents",
        "description": "Miscellaneous documents",
        "color": "#6B7280",
        "icon": "folder",
        "sort_order": 5,
    },
]


def create_default_folders(
    db: Session, user_id: int, tenant_id: int, property_id: Optional[int] = None
) -> List[DocumentFolder]:
    """Adds (does not commit) the standard folder set for a new tenant."""
    folders = [
        DocumentFolder(user_id=user_id, tenant_id=tenant_id, property_id=property_id, **defaults)
        for defaults in DEFAULT_FOLDERS
    ]
    db.add_all(folders)
    return folders


def ensure_not_descendant(db: Session, folder: DocumentFolder, new_parent_id: Optional[int]) -> None:
    """
    Reject re-parenting `folder` under itself or any of its descendants.
    Walks up the ancestor chain of the proposed parent.
    """
    seen = set()
    current_id = new_parent_id
    while current_id is not None:
        if current_id == folder.id:
            raise HTTPException(status_code=400, detail="A folder cannot be moved into itself or its sub-folders")
        if current_id in seen:
            break
        seen.add(current_id)
        parent = db.query(DocumentFolder.parent_id).filter(DocumentFolder.id == current_id).first()
        current_id = parent[0] if parent else None


def build_folder_tree(db: Session, folders: List[DocumentFolder]) -> List[FolderOut]:
    """
    Nest `folders` under their parents, with document and direct sub-folder
    counts. Folders whose parent is outside the list become roots.
    """
    ids = [f.id for f in folders]
    if not ids:
        return []

    doc_counts = dict(
        db.query(Document.folder_id, func.count(Document.id))
        .filter(Document.folder_id.in_(ids))
        .group_by(Document.folder_id)
        .all()
    )

    ordered = sorted(folders, key=lambda f: (f.sort_order, f.name.lower()))
    nodes = {f.id: FolderOut.model_validate(f) for f in ordered}
    roots = []
    for folder in ordered:
        node = nodes[folder.id]
        node.document_count = int(doc_counts.get(folder.id, 0))
        parent = nodes.get(folder.parent_id)
        if parent is None:
            roots.append(node)
        else:
            parent.subfolders.append(node)
            parent.subfolder_count += 1
    return roots

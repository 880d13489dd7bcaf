from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from app.models.enums import ImportStatus
from app.models.import_history import ImportRecord
from app.models.user import User

SORTABLE_FIELDS = {
    "created_at",
    "updated_at",
    "custom_name",
    "file_name",
    "status",
    "total_rows",
    "processing_finished_at",
}


def create_import_record(db: Session, client_id: int, user_id: int, field_mapping_id: int, custom_name: Optional[str] = None):
    record = ImportRecord(
        client_id=client_id,
        user_id=user_id,
        field_mapping_id=field_mapping_id,
        custom_name=custom_name,
        status=ImportStatus.INITIATED.value,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record

def get_import_record(db: Session, import_id: int):
    return db.query(ImportRecord).filter(ImportRecord.id == import_id).first()

def get_import_record_for_user(db: Session, import_id: int, user: User):
    query = db.query(ImportRecord).filter(ImportRecord.id == import_id)
    # client-side users are scoped to their own tenant
    if user.client_id is not None:
        query = query.filter(ImportRecord.client_id == user.client_id)
    return query.first()

def list_import_records(
    db: Session,
    client_id: Optional[int] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_dir: str = "desc",
    page: int = 1,
    page_size: int = 20,
):
    query = db.query(ImportRecord)

    if client_id is not None:
        query = query.filter(ImportRecord.client_id == client_id)

    if search:
        search_term = f"%{search.strip()}%"
        query = query.filter(or_(
            ImportRecord.custom_name.ilike(search_term),
            ImportRecord.file_name.ilike(search_term),
        ))

    if sort_by not in SORTABLE_FIELDS:
        sort_by = "created_at"
    sort_field = getattr(ImportRecord, sort_by)
    sort_field = sort_field.asc() if sort_dir == "asc" else sort_field.desc()

    total = query.count()
    skip = (page - 1) * page_size
    items = query.order_by(sort_field, ImportRecord.id.desc()).offset(skip).limit(page_size).all()

    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size,
    }

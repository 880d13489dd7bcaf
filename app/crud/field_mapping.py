from sqlalchemy.orm import Session
from app.models.field_mapping import FieldMapping


def get_field_mapping(db: Session, field_mapping_id: int):
    return db.query(FieldMapping).filter(FieldMapping.id == field_mapping_id).first()

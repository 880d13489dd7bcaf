from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from app.db.base import Base
from app.models.enums import ImportStatus

class ImportRecord(Base):
    __tablename__ = "import_history"

    id = Column(Integer, primary_key=True, index=True)

    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    field_mapping_id = Column(Integer, ForeignKey("field_mappings.id"), nullable=False)

    custom_name = Column(String, nullable=True)
    file_name = Column(String, nullable=False, default="pending_upload")
    source_type = Column(String, nullable=True)  # MIME type of the uploaded file
    source_link = Column(String, nullable=True)

    s3_key_original_file = Column(String, nullable=True)
    s3_key_processed_data = Column(String, nullable=True)
    s3_key_error_data = Column(String, nullable=True)

    status = Column(String, nullable=False, default=ImportStatus.INITIATED.value)
    # initiated, file_uploaded, processing, preview_ready, processing_failed, file_upload_failed
    status_details = Column(Text, nullable=True)

    # only set once processing reached preview_ready / processing_failed
    total_rows = Column(Integer, nullable=True)
    rows_succeeded = Column(Integer, nullable=True)
    rows_failed = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))
    processing_started_at = Column(DateTime(timezone=True), nullable=True)
    processing_finished_at = Column(DateTime(timezone=True), nullable=True)

    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    client = relationship("Client", back_populates="imports")
    user = relationship("User", back_populates="imports")
    field_mapping = relationship("FieldMapping")

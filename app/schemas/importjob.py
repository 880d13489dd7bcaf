from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional

class ImportInitiateSchema(BaseModel):
    client_id: int = Field(..., example=1)
    field_mapping_id: int = Field(..., example=3)
    custom_name: Optional[str] = Field(None, max_length=255, example="May orders")

class ImportListFilters(BaseModel):
    client_id: Optional[int] = None
    search: Optional[str] = None
    sort_by: str = "created_at"
    sort_dir: Literal["asc", "desc"] = "desc"
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)

class ImportRecordOut(BaseModel):
    id: int
    client_id: int
    user_id: int
    field_mapping_id: int
    custom_name: Optional[str] = None
    file_name: str
    source_type: Optional[str] = None
    source_link: Optional[str] = None
    s3_key_original_file: Optional[str] = None
    s3_key_processed_data: Optional[str] = None
    s3_key_error_data: Optional[str] = None
    status: str
    status_details: Optional[str] = None
    total_rows: Optional[int] = None
    rows_succeeded: Optional[int] = None
    rows_failed: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    processing_started_at: Optional[datetime] = None
    processing_finished_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class ImportStatistics(BaseModel):
    total_rows: int
    rows_succeeded: int
    rows_failed: int
    sample_rows: List[Dict[str, Any]] = []
    file_headers: List[str] = []
    identifier_fields: List[str] = []

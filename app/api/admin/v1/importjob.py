import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from pydantic import ValidationError
from app.core.config import settings
from app.core.dependencies import get_current_user, get_import_service
from app.core.exceptions import ImportPipelineError
from app.helpers.response import ResponseHandler
from app.helpers.translator import Translator
from app.helpers.utils import format_size, get_lang_from_request
from app.models.enums import ImportResultKind
from app.schemas.importjob import ImportInitiateSchema, ImportListFilters, ImportRecordOut, ImportStatistics
from app.services.imports.import_service import ImportService, IncomingFile
from app.services.imports.system_fields import get_system_field_definitions

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin/v1/import",
    tags=["Import"],
    dependencies=[Depends(get_current_user)]
)
translator = Translator()

ALLOWED_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "application/vnd.ms-excel",  # browsers on Windows send this for .csv
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",  # .xlsx
}


def pipeline_error_response(e: ImportPipelineError, lang: str):
    message = translator.t(e.message_key, lang)
    if e.status_code == 404:
        return ResponseHandler.not_found(message=message, error=e.message)
    if e.status_code < 500:
        return ResponseHandler.bad_request(message=message, error=e.message, code=e.status_code)
    return ResponseHandler.internal_error(message=message, error=e.message)


# 👉 Start an import
@router.post("/initiate")
def initiate_import(data: ImportInitiateSchema, request: Request, service: ImportService = Depends(get_import_service), current_user=Depends(get_current_user)):
    lang = get_lang_from_request(request)
    try:
        if current_user.client_id is not None and current_user.client_id != data.client_id:
            return ResponseHandler.not_found(message=translator.t("client_not_found", lang))

        record = service.initiate(
            client_id=data.client_id,
            field_mapping_id=data.field_mapping_id,
            user_id=current_user.id,
            custom_name=data.custom_name,
        )
        return ResponseHandler.success(
            message=translator.t("import_initiated", lang),
            data=ImportRecordOut.model_validate(record),
            code=201,
        )
    except ImportPipelineError as e:
        return pipeline_error_response(e, lang)
    except Exception as e:
        logger.exception("Initiating import failed")
        return ResponseHandler.internal_error(message=translator.t("something_went_wrong", lang), error=str(e))

# 👉 Upload a file and process it
@router.post("/{import_id}/upload-file")
def upload_import_file(import_id: int, request: Request, file: UploadFile = File(...), service: ImportService = Depends(get_import_service), current_user=Depends(get_current_user)):
    lang = get_lang_from_request(request)
    try:
        if file.content_type not in ALLOWED_CONTENT_TYPES:
            return ResponseHandler.validation_error(
                message=translator.t("invalid_file_type", lang),
                error=f"Unsupported content type: {file.content_type}",
            )

        max_size = settings.IMPORT_MAX_FILE_SIZE_MB * 1024 * 1024
        content = file.file.read(max_size + 1)
        if len(content) > max_size:
            return ResponseHandler.validation_error(
                message=translator.t("file_too_large", lang),
                error=f"File exceeds {format_size(max_size)}",
            )

        record, statistics = service.upload_and_process(
            import_id,
            current_user.id,
            IncomingFile(file_name=file.filename or "upload", content_type=file.content_type, content=content),
        )
        return ResponseHandler.success(
            message=translator.t("import_file_processed", lang),
            data={
                "import": ImportRecordOut.model_validate(record),
                "statistics": ImportStatistics(**statistics),
            },
        )
    except ImportPipelineError as e:
        return pipeline_error_response(e, lang)
    except Exception as e:
        logger.exception("Upload for import %s failed", import_id)
        return ResponseHandler.internal_error(message=translator.t("something_went_wrong", lang), error=str(e))

# 👉 Re-run processing for an uploaded file
@router.post("/{import_id}/process")
def process_import(import_id: int, request: Request, service: ImportService = Depends(get_import_service), current_user=Depends(get_current_user)):
    lang = get_lang_from_request(request)
    try:
        service.get(import_id, current_user)
        result = service.process(import_id)
        return ResponseHandler.success(
            message=translator.t("import_file_processed", lang),
            data={
                "import": ImportRecordOut.model_validate(result.record),
                "statistics": ImportStatistics(**result.statistics.as_dict()),
            },
        )
    except ImportPipelineError as e:
        return pipeline_error_response(e, lang)
    except Exception as e:
        logger.exception("Processing import %s failed", import_id)
        return ResponseHandler.internal_error(message=translator.t("something_went_wrong", lang), error=str(e))

# 👉 List imports
@router.get("/list")
def list_imports(
    request: Request,
    client_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    sort_by: str = Query("created_at"),
    sort_dir: str = Query("desc"),
    page: int = Query(1),
    page_size: int = Query(20),
    service: ImportService = Depends(get_import_service),
    current_user=Depends(get_current_user),
):
    lang = get_lang_from_request(request)
    try:
        filters = ImportListFilters(
            client_id=client_id,
            search=search,
            sort_by=sort_by,
            sort_dir=sort_dir,
            page=page,
            page_size=page_size,
        )
    except ValidationError as e:
        return ResponseHandler.validation_error(message=translator.t("invalid_filters", lang), error=e.errors())
    try:
        result = service.list_imports(filters, current_user)
        return ResponseHandler.success(data={
            "items": [ImportRecordOut.model_validate(item) for item in result["items"]],
            "total": result["total"],
            "page": result["page"],
            "page_size": result["page_size"],
            "total_pages": result["total_pages"],
        })
    except Exception as e:
        logger.exception("Listing imports failed")
        return ResponseHandler.internal_error(message=translator.t("something_went_wrong", lang), error=str(e))

# 👉 Fields a mapping can target
@router.get("/system-fields")
def list_system_fields(request: Request):
    return ResponseHandler.success(data=get_system_field_definitions())

@router.get("/{import_id}")
def get_import(import_id: int, request: Request, service: ImportService = Depends(get_import_service), current_user=Depends(get_current_user)):
    lang = get_lang_from_request(request)
    try:
        record = service.get(import_id, current_user)
        return ResponseHandler.success(data=ImportRecordOut.model_validate(record))
    except ImportPipelineError as e:
        return pipeline_error_response(e, lang)
    except Exception as e:
        logger.exception("Loading import %s failed", import_id)
        return ResponseHandler.internal_error(message=translator.t("something_went_wrong", lang), error=str(e))

# 👉 Processed rows or error rows of a finished run
@router.get("/{import_id}/results/{kind}")
def get_import_results(import_id: int, kind: ImportResultKind, request: Request, service: ImportService = Depends(get_import_service), current_user=Depends(get_current_user)):
    lang = get_lang_from_request(request)
    try:
        rows = service.get_results(import_id, current_user, kind)
        return ResponseHandler.success(data={"kind": kind.value, "count": len(rows), "rows": rows})
    except ImportPipelineError as e:
        return pipeline_error_response(e, lang)
    except Exception as e:
        logger.exception("Loading %s results for import %s failed", kind.value, import_id)
        return ResponseHandler.internal_error(message=translator.t("something_went_wrong", lang), error=str(e))

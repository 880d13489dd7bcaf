"""
Import orchestrator.

Drives one import attempt through its two stages:

* upload: store the original file, then flip the record to ``file_uploaded``
* process: decode the stored file, run every row through the mapping rules,
  store the processed/error result sets and move the record to a preview status

Object storage writes always happen before the relational commit. When the
commit fails, the blobs written during the stage are deleted again through a
``CompensationStack`` and the record is moved to a failed status in a separate,
best-effort transaction.
"""
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import (
    ConcurrentModificationError,
    DecodeError,
    ImportPipelineError,
    InvalidMappingFormatError,
    MappingClientMismatchError,
    NotFoundError,
    NotReadyError,
    ObjectNotFoundError,
    StorageError,
)
from app.crud import client as crud_client
from app.crud import field_mapping as crud_field_mapping
from app.crud import importjob as crud_import
from app.models.enums import ImportResultKind, ImportStatus
from app.models.import_history import ImportRecord
from app.models.user import User
from app.schemas.importjob import ImportListFilters
from app.services.imports.decoder import DecodedTable, decode_table, is_blank_row
from app.services.imports.rule_engine import (
    MappingRule,
    build_header_index,
    evaluate_row,
    identifier_fields,
    parse_mapping_rules,
)
from app.services.imports.state import (
    TERMINAL_PREVIEW_STATUSES,
    as_status,
    can_transition,
    ensure_transition,
    upload_allowed_from,
)

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
MAX_STATUS_DETAILS = 500


@dataclass
class IncomingFile:
    file_name: str
    content_type: Optional[str]
    content: bytes


class CompensationStack:
    """Rollback actions registered during one stage, run newest first.

    Every action is best-effort: a failing compensation is logged and the
    remaining ones still run.
    """

    def __init__(self, label: str):
        self.label = label
        self._actions: List[Tuple[str, Callable[[], Any]]] = []

    def push(self, description: str, action: Callable[[], Any]) -> None:
        self._actions.append((description, action))

    def __len__(self):
        return len(self._actions)

    def run(self) -> None:
        while self._actions:
            description, action = self._actions.pop()
            try:
                action()
                logger.info("[%s] compensation done: %s", self.label, description)
            except Exception:
                logger.exception("[%s] compensation failed: %s", self.label, description)


@dataclass
class ProcessingStats:
    total_rows: int = 0
    rows_succeeded: int = 0
    rows_failed: int = 0
    sample_rows: List[Dict[str, Any]] = field(default_factory=list)
    file_headers: List[str] = field(default_factory=list)
    identifier_fields: List[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "rows_succeeded": self.rows_succeeded,
            "rows_failed": self.rows_failed,
            "sample_rows": self.sample_rows,
            "file_headers": self.file_headers,
            "identifier_fields": self.identifier_fields,
        }


@dataclass
class ProcessingResult:
    record: ImportRecord
    statistics: ProcessingStats


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _timestamp() -> str:
    return _utcnow().strftime("%Y%m%d%H%M%S%f")


def _row_as_dict(headers: List[str], row: List[Any]) -> Dict[str, Any]:
    data = {}
    for position, header in enumerate(headers):
        key = header if header else f"column_{position + 1}"
        data[key] = row[position] if position < len(row) else None
    return data


def _to_json_bytes(rows: List[dict]) -> bytes:
    return json.dumps(jsonable_encoder(rows), ensure_ascii=False).encode("utf-8")


class ImportService:
    def __init__(self, db: Session, store, sample_size: int = None, key_prefix: str = None):
        self.db = db
        self.store = store
        self.sample_size = settings.IMPORT_SAMPLE_ROWS if sample_size is None else sample_size
        self.key_prefix = (key_prefix or settings.IMPORT_KEY_PREFIX).strip("/")

    # ----------------------------
    # Keys
    # ----------------------------
    def _folder(self, record: ImportRecord) -> str:
        return f"{self.key_prefix}/client_{record.client_id}/import_{record.id}"

    def original_file_key(self, record: ImportRecord, file_name: str) -> str:
        ext = os.path.splitext(file_name or "")[1].lower()
        return f"{self._folder(record)}/{_timestamp()}{ext}"

    def result_key(self, record: ImportRecord, kind: ImportResultKind) -> str:
        prefix = "processed_data" if kind == ImportResultKind.PROCESSED else "error_data"
        return f"{self._folder(record)}/{prefix}_{_timestamp()}.json"

    # ----------------------------
    # Initiate
    # ----------------------------
    def initiate(self, client_id: int, field_mapping_id: int, user_id: int, custom_name: str = None) -> ImportRecord:
        logger.debug("Initiating import for client %s, mapping %s, user %s", client_id, field_mapping_id, user_id)
        if not crud_client.get_client(self.db, client_id):
            raise NotFoundError(f"Client {client_id} not found")

        mapping = crud_field_mapping.get_field_mapping(self.db, field_mapping_id)
        if not mapping:
            raise NotFoundError(f"Field mapping {field_mapping_id} not found")
        if mapping.client_id != client_id:
            logger.warning("Mapping %s belongs to client %s, not %s", field_mapping_id, mapping.client_id, client_id)
            raise MappingClientMismatchError("mapping does not belong to client")

        try:
            record = crud_import.create_import_record(
                self.db,
                client_id=client_id,
                user_id=user_id,
                field_mapping_id=field_mapping_id,
                custom_name=custom_name,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Could not create import record for client %s", client_id)
            raise StorageError(f"Could not create import record: {e}") from e

        logger.info("Import %s initiated for client %s", record.id, client_id)
        return record

    # ----------------------------
    # Upload stage
    # ----------------------------
    def upload_file(self, import_id: int, user_id: int, file: IncomingFile) -> ImportRecord:
        record = crud_import.get_import_record(self.db, import_id)
        if not record or record.user_id != user_id:
            logger.warning("Import %s not found or not owned by user %s", import_id, user_id)
            raise NotFoundError(f"Import {import_id} not found")
        ensure_transition(
            record.status,
            ImportStatus.FILE_UPLOADED,
            message=(
                f"Cannot upload a file for an import in status '{record.status}', "
                f"upload is allowed from: {', '.join(sorted(s.value for s in upload_allowed_from()))}"
            ),
        )

        replaced_keys = [
            key for key in (record.s3_key_original_file, record.s3_key_processed_data, record.s3_key_error_data) if key
        ]
        new_key = self.original_file_key(record, file.file_name)
        compensations = CompensationStack(f"upload import {import_id}")

        try:
            location = self.store.put(new_key, file.content, file.content_type)
            compensations.push(f"delete {new_key}", lambda: self.store.delete(new_key))
            logger.info("Import %s: original file stored at %s", import_id, new_key)

            record.file_name = file.file_name
            record.source_type = file.content_type
            record.source_link = location
            record.s3_key_original_file = new_key
            record.s3_key_processed_data = None
            record.s3_key_error_data = None
            record.total_rows = None
            record.rows_succeeded = None
            record.rows_failed = None
            record.processing_started_at = None
            record.processing_finished_at = None
            record.status = ImportStatus.FILE_UPLOADED.value
            record.status_details = "File uploaded, waiting for processing"
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception("Import %s: upload failed", import_id)
            compensations.run()
            self._record_failure(import_id, ImportStatus.FILE_UPLOAD_FAILED, f"File upload failed: {e}")
            self._raise_translated(e)

        self._delete_quietly([key for key in replaced_keys if key != new_key], f"import {import_id} replaced blob")
        self.db.refresh(record)
        logger.info("Import %s: status %s", import_id, record.status)
        return record

    # ----------------------------
    # Processing stage
    # ----------------------------
    def process(self, import_id: int) -> ProcessingResult:
        record = crud_import.get_import_record(self.db, import_id)
        if not record:
            raise NotFoundError(f"Import {import_id} not found")
        ensure_transition(
            record.status,
            ImportStatus.PROCESSING,
            error_cls=NotReadyError,
            message=f"Import {import_id} is not ready for processing (status: {record.status})",
        )

        mapping = crud_field_mapping.get_field_mapping(self.db, record.field_mapping_id)
        try:
            rules = parse_mapping_rules(mapping.mapping if mapping else None)
        except InvalidMappingFormatError as e:
            logger.warning("Import %s: mapping %s is unusable: %s", import_id, record.field_mapping_id, e.message)
            self._record_failure(import_id, ImportStatus.PROCESSING_FAILED, f"Invalid mapping format: {e.message}")
            raise

        record.status = ImportStatus.PROCESSING.value
        record.status_details = "Processing file"
        record.processing_started_at = _utcnow()
        record.processing_finished_at = None
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Import %s: could not mark processing", import_id)
            self._raise_translated(e)
        logger.info("Import %s: status processing", import_id)

        stats = ProcessingStats(identifier_fields=identifier_fields(rules))
        compensations = CompensationStack(f"process import {import_id}")
        decode_error = None

        try:
            try:
                content = self.store.get(record.s3_key_original_file)
            except ObjectNotFoundError as e:
                raise StorageError(f"Original file for import {import_id} is missing: {e.message}") from e
            try:
                table = decode_table(content, record.file_name)
            except DecodeError as e:
                logger.error("Import %s: could not decode %s: %s", import_id, record.file_name, e.message)
                decode_error = e
                table = DecodedTable()
            stats.file_headers = list(table.headers)
            processed_rows, error_rows = self._evaluate(table, rules, stats)

            status, details = self._final_status(stats, decode_error)

            if processed_rows:
                key = self.result_key(record, ImportResultKind.PROCESSED)
                self.store.put(key, _to_json_bytes(processed_rows), JSON_CONTENT_TYPE)
                compensations.push(f"delete {key}", lambda key=key: self.store.delete(key))
                record.s3_key_processed_data = key
            if error_rows:
                key = self.result_key(record, ImportResultKind.ERRORS)
                self.store.put(key, _to_json_bytes(error_rows), JSON_CONTENT_TYPE)
                compensations.push(f"delete {key}", lambda key=key: self.store.delete(key))
                record.s3_key_error_data = key

            record.status = status.value
            record.status_details = details
            record.total_rows = stats.total_rows
            record.rows_succeeded = stats.rows_succeeded
            record.rows_failed = stats.rows_failed
            record.processing_finished_at = _utcnow()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception("Import %s: processing failed", import_id)
            compensations.run()
            self._record_failure(
                import_id,
                ImportStatus.PROCESSING_FAILED,
                f"Critical processing error: {str(e)[:250]}",
            )
            self._raise_translated(e)

        logger.info(
            "Import %s: status %s, %s rows, %s succeeded, %s failed",
            import_id, status.value, stats.total_rows, stats.rows_succeeded, stats.rows_failed,
        )
        if decode_error is not None:
            raise decode_error

        self.db.refresh(record)
        return ProcessingResult(record=record, statistics=stats)

    def _evaluate(self, table: DecodedTable, rules: Dict[str, MappingRule], stats: ProcessingStats):
        processed_rows = []
        error_rows = []
        header_index = build_header_index(table.headers)
        for row_number, row in enumerate(table.rows, start=1):
            if is_blank_row(row):
                continue
            stats.total_rows += 1
            evaluation = evaluate_row(table.headers, row, rules, header_index=header_index)
            if evaluation.ok:
                stats.rows_succeeded += 1
                processed_rows.append(evaluation.values)
                if len(stats.sample_rows) < self.sample_size:
                    stats.sample_rows.append(evaluation.values)
            else:
                stats.rows_failed += 1
                error_rows.append({
                    "row_number": row_number,
                    "original_data": _row_as_dict(table.headers, row),
                    "errors": [error.to_dict() for error in evaluation.errors],
                    "processed_data_attempt": evaluation.values,
                })
        return processed_rows, error_rows

    @staticmethod
    def _final_status(stats: ProcessingStats, decode_error: Optional[DecodeError]) -> Tuple[ImportStatus, str]:
        if decode_error is not None:
            return ImportStatus.PROCESSING_FAILED, f"Failed to parse file: {decode_error.message}"
        if stats.total_rows == 0:
            return ImportStatus.PREVIEW_READY, "File contains no data rows"
        if stats.rows_succeeded == 0:
            return ImportStatus.PROCESSING_FAILED, f"All {stats.total_rows} rows failed to process, see error details"
        if stats.rows_failed:
            return (
                ImportStatus.PREVIEW_READY,
                f"Processed {stats.rows_succeeded} of {stats.total_rows} rows, {stats.rows_failed} failed",
            )
        return ImportStatus.PREVIEW_READY, f"All {stats.rows_succeeded} rows processed and ready for preview"

    # ----------------------------
    # Combined entry point
    # ----------------------------
    def upload_and_process(self, import_id: int, user_id: int, file: IncomingFile) -> Tuple[ImportRecord, dict]:
        record = self.upload_file(import_id, user_id, file)
        result = self.process(record.id)
        return result.record, result.statistics.as_dict()

    # ----------------------------
    # Read side
    # ----------------------------
    def list_imports(self, filters: ImportListFilters, user: User = None) -> dict:
        client_id = filters.client_id
        if user is not None and user.client_id is not None:
            client_id = user.client_id
        return crud_import.list_import_records(
            self.db,
            client_id=client_id,
            search=filters.search,
            sort_by=filters.sort_by,
            sort_dir=filters.sort_dir,
            page=filters.page,
            page_size=filters.page_size,
        )

    def get(self, import_id: int, user: User) -> ImportRecord:
        record = crud_import.get_import_record_for_user(self.db, import_id, user)
        if not record:
            raise NotFoundError(f"Import {import_id} not found")
        return record

    def get_results(self, import_id: int, user: User, kind: ImportResultKind) -> List[dict]:
        record = self.get(import_id, user)
        if as_status(record.status) not in TERMINAL_PREVIEW_STATUSES:
            raise NotReadyError(f"Import {import_id} has no results yet (status: {record.status})")
        kind = ImportResultKind(kind)
        key = record.s3_key_processed_data if kind == ImportResultKind.PROCESSED else record.s3_key_error_data
        if not key:
            return []
        return json.loads(self.store.get(key).decode("utf-8"))

    # ----------------------------
    # Failure bookkeeping
    # ----------------------------
    def _record_failure(self, import_id: int, status: ImportStatus, details: str) -> None:
        """Move the record to a failed status outside the failed transaction.

        Never raises: the caller is already propagating the original error.
        """
        dropped_keys = []
        try:
            record = crud_import.get_import_record(self.db, import_id)
            if not record:
                logger.warning("Import %s vanished, cannot set status %s", import_id, status.value)
                return
            if not can_transition(record.status, status):
                logger.warning("Import %s left in status %s, %s not allowed", import_id, record.status, status.value)
                return

            if status == ImportStatus.FILE_UPLOAD_FAILED:
                # results of an earlier run no longer describe the record
                dropped_keys = [key for key in (record.s3_key_processed_data, record.s3_key_error_data) if key]
                record.s3_key_processed_data = None
                record.s3_key_error_data = None
                record.total_rows = None
                record.rows_succeeded = None
                record.rows_failed = None
            else:
                record.processing_finished_at = _utcnow()
            record.status = status.value
            record.status_details = details[:MAX_STATUS_DETAILS]
            self.db.commit()
            logger.info("Import %s: status %s (%s)", import_id, status.value, details)
        except Exception:
            self.db.rollback()
            logger.exception("Import %s: could not set status %s", import_id, status.value)
            return

        self._delete_quietly(dropped_keys, f"import {import_id} stale result")

    def _delete_quietly(self, keys: List[str], reason: str) -> None:
        for key in keys:
            try:
                self.store.delete(key)
                logger.info("Deleted %s %s", reason, key)
            except Exception:
                logger.warning("Could not delete %s %s", reason, key, exc_info=True)

    @staticmethod
    def _raise_translated(error: Exception) -> None:
        """Re-raise ``error``, wrapping database failures in pipeline errors."""
        if isinstance(error, ImportPipelineError):
            raise error
        if isinstance(error, StaleDataError):
            raise ConcurrentModificationError(
                "Import was modified by another request, reload and try again"
            ) from error
        if isinstance(error, SQLAlchemyError):
            raise StorageError(f"Database error: {error}") from error
        raise error

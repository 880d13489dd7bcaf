"""
Import lifecycle: the statuses an ImportRecord may move between.
"""
from app.core.exceptions import InvalidStateError
from app.models.enums import ImportStatus

ALLOWED_TRANSITIONS = {
    ImportStatus.INITIATED: {ImportStatus.FILE_UPLOADED, ImportStatus.FILE_UPLOAD_FAILED},
    ImportStatus.FILE_UPLOAD_FAILED: {ImportStatus.FILE_UPLOADED, ImportStatus.FILE_UPLOAD_FAILED},
    ImportStatus.PROCESSING_FAILED: {ImportStatus.FILE_UPLOADED, ImportStatus.FILE_UPLOAD_FAILED},
    ImportStatus.PREVIEW_READY: {ImportStatus.FILE_UPLOADED, ImportStatus.FILE_UPLOAD_FAILED},
    # processing_failed straight from file_uploaded when the mapping cannot be used
    ImportStatus.FILE_UPLOADED: {ImportStatus.PROCESSING, ImportStatus.PROCESSING_FAILED},
    ImportStatus.PROCESSING: {ImportStatus.PREVIEW_READY, ImportStatus.PROCESSING_FAILED},
}

# statuses whose counters and result blob keys are meaningful
TERMINAL_PREVIEW_STATUSES = {ImportStatus.PREVIEW_READY, ImportStatus.PROCESSING_FAILED}


def as_status(value) -> ImportStatus:
    return value if isinstance(value, ImportStatus) else ImportStatus(value)


def can_transition(current, target) -> bool:
    return as_status(target) in ALLOWED_TRANSITIONS.get(as_status(current), set())


def ensure_transition(current, target, error_cls=InvalidStateError, message: str = None) -> None:
    if not can_transition(current, target):
        raise error_cls(
            message or f"Import in status '{as_status(current).value}' cannot move to '{as_status(target).value}'"
        )


def upload_allowed_from() -> set:
    return {status for status, targets in ALLOWED_TRANSITIONS.items() if ImportStatus.FILE_UPLOADED in targets}

import enum

class RoleTypeEnum(str, enum.Enum):
    # Platform-side roles
    ADMIN = "admin"
    MANAGER = "manager"

    # Client-side roles
    CLIENT = "client"

class ImportStatus(str, enum.Enum):
    INITIATED = "initiated"
    FILE_UPLOADED = "file_uploaded"
    PROCESSING = "processing"
    PREVIEW_READY = "preview_ready"
    PROCESSING_FAILED = "processing_failed"
    FILE_UPLOAD_FAILED = "file_upload_failed"

class FieldType(str, enum.Enum):
    STRING = "STRING"
    INTEGER = "INTEGER"
    FLOAT = "FLOAT"
    DATETIME = "DATETIME"
    DATE = "DATE"

class ImportResultKind(str, enum.Enum):
    PROCESSED = "processed"
    ERRORS = "errors"

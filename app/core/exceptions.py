class ImportPipelineError(Exception):
    """Base error of the import pipeline.

    ``status_code`` is the HTTP-equivalent outcome and ``message_key`` the
    translation key used when the error is rendered for the user.
    """
    status_code = 500
    message_key = "something_went_wrong"

    def __init__(self, message: str = None):
        super().__init__(message or self.message_key)
        self.message = message or self.message_key


class NotFoundError(ImportPipelineError):
    status_code = 404
    message_key = "not_found"


class MappingClientMismatchError(ImportPipelineError):
    status_code = 400
    message_key = "mapping_client_mismatch"


class InvalidStateError(ImportPipelineError):
    status_code = 400
    message_key = "import_invalid_state"


class NotReadyError(InvalidStateError):
    message_key = "import_not_ready"


class ConcurrentModificationError(InvalidStateError):
    message_key = "import_modified_concurrently"


class InvalidMappingFormatError(ImportPipelineError):
    status_code = 400
    message_key = "invalid_mapping_format"


class DecodeError(ImportPipelineError):
    status_code = 500
    message_key = "file_parse_failed"


class StorageError(ImportPipelineError):
    status_code = 500
    message_key = "storage_error"


class ObjectNotFoundError(StorageError):
    status_code = 404
    message_key = "stored_file_not_found"

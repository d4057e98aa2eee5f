"""Exceptions raised while resolving stage inputs and persisting contributions."""


class InputResolutionError(Exception):
    """A required stage input could not be resolved.

    Optional inputs never raise; they are logged and omitted instead.
    """

    code = "INPUT_RESOLUTION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        stage_slug: str | None = None,
        display_name: str | None = None,
        document_key: str | None = None,
        code: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.stage_slug = stage_slug
        self.display_name = display_name
        self.document_key = document_key
        if code:
            self.code = code


class RequiredInputMissingError(InputResolutionError):
    code = "REQUIRED_INPUT_MISSING"


class RequiredDownloadFailedError(InputResolutionError):
    code = "REQUIRED_DOWNLOAD_FAILED"


class RequiredStorageDetailsMissingError(InputResolutionError):
    code = "REQUIRED_STORAGE_DETAILS_MISSING"


class CatalogQueryFailedError(InputResolutionError):
    """Catalog query for a required rule failed; `code` is the database error code when known."""

    code = "CATALOG_QUERY_FAILED"


class StorageError(Exception):
    """Raised when an object cannot be downloaded from or uploaded to storage."""


class FileManagerError(Exception):
    """Raised when a contribution cannot be uploaded or registered."""


class StorageConflictError(StorageError):
    """Raised when an upload targets a path that already holds an object."""

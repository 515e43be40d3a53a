"""Exception classes for stage library management"""

from enum import Enum
from typing import Optional


class StageLibraryErrorCode(str, Enum):
    """Standardized error codes, aligned with the REST error catalog"""
    ALREADY_INSTALLED = "REST_1002"
    DIRECTORY_CREATE_FAILED = "REST_1003"
    EXTRAS_DIR_NOT_CONFIGURED = "REST_1004"
    INVALID_IDENTIFIER = "REST_1005"
    LIBRARY_NOT_FOUND = "LIBRARY_NOT_FOUND"
    EXTERNAL_RESOURCES_DIR_NOT_CONFIGURED = "EXTERNAL_RESOURCES_DIR_NOT_CONFIGURED"
    IO_FAILURE = "IO_FAILURE"


class StageLibraryError(Exception):
    """Base exception for all stage library errors"""

    error_code: StageLibraryErrorCode = StageLibraryErrorCode.IO_FAILURE

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.hint = hint


class InvalidIdentifierError(StageLibraryError):
    """Raised when a library id or file name is not safe to use in a path"""

    error_code = StageLibraryErrorCode.INVALID_IDENTIFIER

    def __init__(self, identifier: str):
        super().__init__(
            f"Invalid library identifier '{identifier}'",
            hint="Only letters, digits, '_' and '-' are allowed",
        )
        self.identifier = identifier


class AlreadyInstalledError(StageLibraryError):
    """Raised when installing a library that is loaded or already on disk"""

    error_code = StageLibraryErrorCode.ALREADY_INSTALLED

    def __init__(self, library_id: str, version: Optional[str] = None):
        self.library_id = library_id
        self.version = version or "Unknown"
        super().__init__(
            f"Stage library '{library_id}' is already installed (version: {self.version})",
            hint="Uninstall the library first, then install it again",
        )


class LibraryNotFoundError(StageLibraryError):
    """Raised when no manifest entry can be resolved for a library"""

    error_code = StageLibraryErrorCode.LIBRARY_NOT_FOUND

    def __init__(self, library_id: str, engine_version: Optional[str] = None):
        self.library_id = library_id
        self.engine_version = engine_version
        message = f"Stage library '{library_id}' not found in repository manifest"
        if engine_version:
            message += f" for engine version {engine_version}"
        super().__init__(message)


class ExtrasDirNotConfiguredError(StageLibraryError):
    """Raised when the extras (or resources) directory is not configured"""

    error_code = StageLibraryErrorCode.EXTRAS_DIR_NOT_CONFIGURED

    def __init__(self, setting: str = "libs_extra_dir"):
        self.setting = setting
        super().__init__(
            f"Directory '{setting}' is not configured",
            hint=f"Set STAGEHUB_{setting.upper()} to enable this feature",
        )


class ExternalResourcesDirNotConfiguredError(ExtrasDirNotConfiguredError):
    """Raised when the external resources directory is not configured"""

    error_code = StageLibraryErrorCode.EXTERNAL_RESOURCES_DIR_NOT_CONFIGURED

    def __init__(self):
        super().__init__("external_resources_dir")


class DirectoryCreateError(StageLibraryError):
    """Raised when a parent directory cannot be created"""

    error_code = StageLibraryErrorCode.DIRECTORY_CREATE_FAILED

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Could not create directory '{path}'")


class StageLibraryIOError(StageLibraryError):
    """Raised when a fetch, copy, extract or delete fails"""

    error_code = StageLibraryErrorCode.IO_FAILURE

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class DownloadError(StageLibraryIOError):
    """Raised when a stage library download fails"""
    pass

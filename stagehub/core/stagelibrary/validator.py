"""Identifier validation for stage library paths

Library ids and file names are joined directly into filesystem paths, so
they are checked before any filesystem access.
"""

import logging
import re
from pathlib import PurePosixPath, PureWindowsPath

from stagehub.core.stagelibrary.exceptions import InvalidIdentifierError

logger = logging.getLogger(__name__)

LIBRARY_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class IdentifierValidator:
    """Validator for library identifiers and extras file names"""

    @staticmethod
    def validate(identifier: str) -> bool:
        """
        Check a library identifier against the safe character policy

        Args:
            identifier: Library id to check

        Returns:
            True if the identifier only contains [A-Za-z0-9_-]
        """
        if not isinstance(identifier, str):
            return False
        return LIBRARY_ID_PATTERN.fullmatch(identifier) is not None

    @staticmethod
    def require_valid(identifier: str) -> str:
        """
        Validate a library identifier

        Raises:
            InvalidIdentifierError: If the identifier is not safe
        """
        if not IdentifierValidator.validate(identifier):
            logger.warning(f"Rejected library identifier: {identifier!r}")
            raise InvalidIdentifierError(str(identifier))
        return identifier

    @staticmethod
    def require_valid_file_name(file_name: str) -> str:
        """
        Validate a file name that must stay a single path component

        Raises:
            InvalidIdentifierError: If the name is empty, contains a path
                separator or is '.' / '..'
        """
        if (
            not isinstance(file_name, str)
            or not file_name.strip()
            or file_name in (".", "..")
            or "/" in file_name
            or "\\" in file_name
            or "\x00" in file_name
        ):
            logger.warning(f"Rejected file name: {file_name!r}")
            raise InvalidIdentifierError(str(file_name))
        return file_name

    @staticmethod
    def require_valid_relative_path(path: str) -> str:
        """
        Validate a relative file path below a managed directory

        Raises:
            InvalidIdentifierError: If the path is absolute, empty, names
                the directory itself ('.', './') or contains '..' parts
        """
        if not isinstance(path, str) or not path.strip() or "\x00" in path:
            raise InvalidIdentifierError(str(path))

        posix = PurePosixPath(path.replace("\\", "/"))
        if (
            not posix.parts
            or posix.is_absolute()
            or PureWindowsPath(path).is_absolute()
            or PureWindowsPath(path).drive
            or ".." in posix.parts
        ):
            logger.warning(f"Rejected relative path: {path!r}")
            raise InvalidIdentifierError(path)
        return posix.as_posix()

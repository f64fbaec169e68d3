"""Input validation for identifiers, paths and pagination values.

Every function returns ``None`` when the value is acceptable and raises
:class:`~cloudstore.exceptions.CloudStoreValidationError` otherwise. They are
called before any request is built so that malformed or unsafe input never
reaches the network.
"""

import posixpath
import re
import uuid

from .exceptions import CloudStoreValidationError

# Canonical 8-4-4-4-12 hexadecimal form
UUID_PATTERN = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")
USERNAME_PATTERN = re.compile(r"[a-zA-Z0-9._\-]+")

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
MAX_PAGE_SIZE = 100

# Legacy device names that cannot be used as filenames on Windows
RESERVED_NAMES = (
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{i}" for i in range(1, 10)]
    + [f"LPT{i}" for i in range(1, 10)]
)


def _has_control_chars(value: str) -> bool:
    return any(ord(ch) < 32 for ch in value)


def validate_uuid(value: str) -> None:
    """Validate that a string is a UUID in canonical form.

    Args:
        value: String to check, e.g. "550e8400-e29b-41d4-a716-446655440000"

    Raises:
        CloudStoreValidationError: If the value is empty or not a UUID
    """
    if not value:
        raise CloudStoreValidationError("UUID cannot be empty")
    if not UUID_PATTERN.fullmatch(value):
        raise CloudStoreValidationError(
            f"invalid UUID format: {value} "
            "(expected format: xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx)"
        )
    try:
        uuid.UUID(value)
    except ValueError as e:
        raise CloudStoreValidationError(f"invalid UUID: {e}") from e


def is_uuid(value: str) -> bool:
    """Return True if ``value`` passes :func:`validate_uuid`."""
    try:
        validate_uuid(value)
    except CloudStoreValidationError:
        return False
    return True


def validate_path(path: str) -> None:
    """Validate a remote folder or file path.

    Paths are absolute and Unix-style (``/photos/2024``). Traversal
    sequences, backslashes, NUL bytes and control characters are rejected.

    Raises:
        CloudStoreValidationError: If the path is not acceptable
    """
    if not path:
        raise CloudStoreValidationError("path cannot be empty")
    if not path.startswith("/"):
        raise CloudStoreValidationError("path must start with '/'")
    if ".." in path:
        raise CloudStoreValidationError("path cannot contain '..'")
    if "\\" in path:
        raise CloudStoreValidationError(
            "path must use forward slashes, not backslashes"
        )
    if "\x00" in path:
        raise CloudStoreValidationError("path cannot contain null bytes")
    if _has_control_chars(path):
        raise CloudStoreValidationError("path cannot contain control characters")


def validate_filename(filename: str) -> None:
    """Validate a bare filename (no directory components).

    Raises:
        CloudStoreValidationError: If the filename is not acceptable
    """
    if not filename:
        raise CloudStoreValidationError("filename cannot be empty")
    # Checked explicitly so the verdict does not depend on the host OS
    if "\\" in filename:
        raise CloudStoreValidationError("filename cannot contain path separators")

    base_name = posixpath.basename(filename)
    if base_name != filename:
        raise CloudStoreValidationError("filename cannot contain path separators")
    if filename in (".", ".."):
        raise CloudStoreValidationError("filename cannot be '.' or '..'")
    if "\x00" in filename:
        raise CloudStoreValidationError("filename cannot contain null bytes")
    if _has_control_chars(filename):
        raise CloudStoreValidationError(
            "filename cannot contain control characters"
        )

    upper_name = base_name.upper()
    for reserved in RESERVED_NAMES:
        if upper_name == reserved or upper_name.startswith(reserved + "."):
            raise CloudStoreValidationError(
                f"filename cannot be a reserved name: {reserved}"
            )


def validate_email(email: str) -> None:
    """Validate an email address (basic ``local@domain.tld`` check)."""
    if not email:
        raise CloudStoreValidationError("email cannot be empty")
    if not EMAIL_PATTERN.fullmatch(email):
        raise CloudStoreValidationError(f"invalid email format: {email}")


def validate_username(username: str) -> None:
    """Validate a username: 3-50 letters, digits, ``_``, ``-`` or ``.``."""
    if not username:
        raise CloudStoreValidationError("username cannot be empty")
    if len(username) < USERNAME_MIN_LENGTH:
        raise CloudStoreValidationError(
            f"username must be at least {USERNAME_MIN_LENGTH} characters"
        )
    if len(username) > USERNAME_MAX_LENGTH:
        raise CloudStoreValidationError(
            f"username must be at most {USERNAME_MAX_LENGTH} characters"
        )
    if not USERNAME_PATTERN.fullmatch(username):
        raise CloudStoreValidationError(
            "username can only contain letters, numbers, underscores, "
            "hyphens, and dots"
        )


def validate_page_number(page: int) -> None:
    """Validate a 0-based page number."""
    if page < 0:
        raise CloudStoreValidationError("page number must be >= 0")


def validate_page_size(size: int) -> None:
    """Validate a page size (1 to 100 inclusive)."""
    if size <= 0:
        raise CloudStoreValidationError("page size must be greater than 0")
    if size > MAX_PAGE_SIZE:
        raise CloudStoreValidationError(
            f"page size must be at most {MAX_PAGE_SIZE}"
        )

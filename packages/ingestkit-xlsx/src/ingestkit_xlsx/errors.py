"""Error codes and structured error model for the ingestkit-xlsx package.

``ErrorCode`` contains every error/warning code relevant to .xlsx dataset
import.  ``IngestError`` is the Pydantic data model carried by results;
``XlsxImportException`` wraps it so the import pipeline can ``raise`` and
``except`` it in control flow.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Error codes for .xlsx dataset import.

    Values equal their names so they are stable strings suitable for
    metrics and alerting.  ``E_`` prefix = fatal, ``W_`` prefix = warning.
    """

    # Security
    E_SECURITY_BAD_EXTENSION = "E_SECURITY_BAD_EXTENSION"
    E_SECURITY_TOO_LARGE = "E_SECURITY_TOO_LARGE"
    E_SECURITY_BAD_MAGIC = "E_SECURITY_BAD_MAGIC"
    E_SECURITY_ZIP_BOMB = "E_SECURITY_ZIP_BOMB"
    E_SECURITY_UNSAFE_MEMBER = "E_SECURITY_UNSAFE_MEMBER"
    E_SECURITY_ENTITY_DECLARATION = "E_SECURITY_ENTITY_DECLARATION"

    # Parse
    E_PARSE_CORRUPT = "E_PARSE_CORRUPT"
    E_PARSE_EMPTY = "E_PARSE_EMPTY"

    # Archive
    E_ARCHIVE_UNREADABLE = "E_ARCHIVE_UNREADABLE"
    E_ARCHIVE_MEMBER_MISSING = "E_ARCHIVE_MEMBER_MISSING"
    E_ARCHIVE_BAD_ROOT = "E_ARCHIVE_BAD_ROOT"
    E_ARCHIVE_NO_SHEETS = "E_ARCHIVE_NO_SHEETS"

    # Format
    E_FORMAT_CELL_REF = "E_FORMAT_CELL_REF"
    E_FORMAT_NUMBER = "E_FORMAT_NUMBER"
    E_FORMAT_MISSING_ATTR = "E_FORMAT_MISSING_ATTR"

    # Data
    E_DATA_NO_DATA = "E_DATA_NO_DATA"
    E_DATA_INDEX_RANGE = "E_DATA_INDEX_RANGE"
    E_DATA_VARNAME_INVALID = "E_DATA_VARNAME_INVALID"
    E_DATA_VARNAME_MISSING = "E_DATA_VARNAME_MISSING"
    E_DATA_VARNAME_DUPLICATE = "E_DATA_VARNAME_DUPLICATE"
    E_DATA_UNEXPECTED_STRING = "E_DATA_UNEXPECTED_STRING"
    E_DATA_SHARED_STRING = "E_DATA_SHARED_STRING"
    E_DATA_BAD_SELECTION = "E_DATA_BAD_SELECTION"
    E_DATA_MERGE_CONFLICT = "E_DATA_MERGE_CONFLICT"

    # Allocation
    E_ALLOC = "E_ALLOC"

    # Interactive selection
    E_IMPORT_CANCELLED = "E_IMPORT_CANCELLED"

    # Warnings (non-fatal)
    W_LARGE_FILE = "W_LARGE_FILE"
    W_COLUMNS_PRUNED = "W_COLUMNS_PRUNED"


class ErrorCategory(str, Enum):
    """Coarse error taxonomy used for user-facing reporting."""

    SECURITY = "security"
    PARSE = "parse"
    ARCHIVE = "archive"
    FORMAT = "format"
    DATA = "data"
    ALLOCATION = "allocation"
    CANCELLED = "cancelled"
    WARNING = "warning"


_PREFIX_CATEGORIES: tuple[tuple[str, ErrorCategory], ...] = (
    ("E_SECURITY_", ErrorCategory.SECURITY),
    ("E_PARSE_", ErrorCategory.PARSE),
    ("E_ARCHIVE_", ErrorCategory.ARCHIVE),
    ("E_FORMAT_", ErrorCategory.FORMAT),
    ("E_DATA_", ErrorCategory.DATA),
    ("E_ALLOC", ErrorCategory.ALLOCATION),
    ("E_IMPORT_CANCELLED", ErrorCategory.CANCELLED),
    ("W_", ErrorCategory.WARNING),
)


def category_for(code: ErrorCode | str) -> ErrorCategory:
    """Return the :class:`ErrorCategory` an error code belongs to."""
    value = code.value if isinstance(code, ErrorCode) else str(code)
    for prefix, category in _PREFIX_CATEGORIES:
        if value.startswith(prefix):
            return category
    raise ValueError(f"Unknown error code: {value}")


class IngestError(BaseModel):
    """Structured error with code, message, and worksheet context.

    ``sheet_name`` names the worksheet being imported and ``cell_ref`` the
    offending cell reference (e.g. ``"B7"``) when one is known.
    """

    code: ErrorCode
    message: str
    stage: str | None = None
    recoverable: bool = False
    sheet_name: str | None = None
    cell_ref: str | None = None


class XlsxImportException(Exception):
    """Raisable exception wrapping an :class:`IngestError` data model.

    The import pipeline raises this at the point of detection; the router
    catches it and reports ``.error`` in a fail-closed result.
    """

    def __init__(self, **kwargs: object) -> None:
        self.error = IngestError(**kwargs)  # type: ignore[arg-type]
        super().__init__(self.error.message)

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message

    @property
    def stage(self) -> str | None:
        return self.error.stage

    @property
    def category(self) -> ErrorCategory:
        return category_for(self.error.code)

"""Pre-flight security scanner for .xlsx files.

Rejects dangerous or oversized workbooks before any extraction begins.
Checks file extension, existence, emptiness, size, ZIP magic bytes, the
ZIP central directory, member count, total uncompressed size (zip bombs)
and member path safety.
"""

from __future__ import annotations

import logging
import os
import zipfile

from ingestkit_xlsx.archive import is_safe_member_name
from ingestkit_xlsx.config import XlsxImportConfig
from ingestkit_xlsx.errors import ErrorCode, IngestError

logger = logging.getLogger("ingestkit_xlsx")

_LARGE_FILE_THRESHOLD_MB = 10
_ZIP_MAGIC = b"PK\x03\x04"
_EXTENSIONS = (".xlsx", ".xlsm")


class XlsxSecurityScanner:
    """Run pre-flight security checks on an .xlsx file.

    Returns a list of errors/warnings.  Fatal errors (``E_*`` codes) mean
    the file should not be processed further.
    """

    def __init__(self, config: XlsxImportConfig) -> None:
        self.config = config

    def scan(self, file_path: str) -> list[IngestError]:
        """Run all pre-flight checks.

        Returns:
            List of errors/warnings.  Fatal errors have codes starting
            with ``E_``.
        """
        errors: list[IngestError] = []

        # --- 1. Extension check ---
        if not file_path.lower().endswith(_EXTENSIONS):
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_BAD_EXTENSION,
                    message=f"File does not have an .xlsx/.xlsm extension: {file_path}",
                    stage="security",
                )
            )
            return errors

        # --- 2. File existence ---
        if not os.path.isfile(file_path):
            errors.append(
                IngestError(
                    code=ErrorCode.E_ARCHIVE_UNREADABLE,
                    message=f"File not found or not readable: {file_path}",
                    stage="security",
                )
            )
            return errors

        # --- 3. Empty file ---
        file_size = os.path.getsize(file_path)
        if file_size == 0:
            errors.append(
                IngestError(
                    code=ErrorCode.E_PARSE_EMPTY,
                    message=f"File is empty (0 bytes): {file_path}",
                    stage="security",
                )
            )
            return errors

        # --- 4. File size limit ---
        max_bytes = self.config.max_file_size_mb * 1024 * 1024
        if file_size > max_bytes:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_TOO_LARGE,
                    message=(
                        f"File size {file_size} bytes exceeds limit of "
                        f"{max_bytes} bytes ({self.config.max_file_size_mb} MB)"
                    ),
                    stage="security",
                )
            )
            return errors

        # --- 5. Large file warning ---
        large_threshold = _LARGE_FILE_THRESHOLD_MB * 1024 * 1024
        if file_size > large_threshold:
            errors.append(
                IngestError(
                    code=ErrorCode.W_LARGE_FILE,
                    message=(
                        f"File is {file_size / (1024 * 1024):.1f} MB "
                        f"(> {_LARGE_FILE_THRESHOLD_MB} MB)"
                    ),
                    stage="security",
                    recoverable=True,
                )
            )

        # --- 6. ZIP magic bytes ---
        try:
            with open(file_path, "rb") as fh:
                header = fh.read(len(_ZIP_MAGIC))
        except OSError as exc:
            errors.append(
                IngestError(
                    code=ErrorCode.E_ARCHIVE_UNREADABLE,
                    message=f"Cannot read file: {exc}",
                    stage="security",
                )
            )
            return errors

        if header != _ZIP_MAGIC:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_BAD_MAGIC,
                    message="File does not have valid ZIP magic bytes",
                    stage="security",
                )
            )
            return errors

        # --- 7. Central directory ---
        try:
            with zipfile.ZipFile(file_path) as zf:
                infos = zf.infolist()
        except (zipfile.BadZipFile, OSError) as exc:
            errors.append(
                IngestError(
                    code=ErrorCode.E_ARCHIVE_UNREADABLE,
                    message=f"Corrupt ZIP archive: {exc}",
                    stage="security",
                )
            )
            return errors

        # --- 8. Member count ---
        if len(infos) > self.config.max_archive_members:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_ZIP_BOMB,
                    message=(
                        f"Archive holds {len(infos)} members, limit is "
                        f"{self.config.max_archive_members}"
                    ),
                    stage="security",
                )
            )
            return errors

        # --- 9. Uncompressed size (zip bomb) ---
        total = sum(info.file_size for info in infos)
        max_uncompressed = self.config.max_uncompressed_mb * 1024 * 1024
        if total > max_uncompressed:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_ZIP_BOMB,
                    message=(
                        f"Archive expands to {total} bytes, limit is "
                        f"{max_uncompressed} bytes "
                        f"({self.config.max_uncompressed_mb} MB)"
                    ),
                    stage="security",
                )
            )
            return errors

        # --- 10. Member path safety ---
        unsafe = [info.filename for info in infos if not is_safe_member_name(info.filename)]
        if unsafe:
            errors.append(
                IngestError(
                    code=ErrorCode.E_SECURITY_UNSAFE_MEMBER,
                    message=f"Archive contains unsafe member paths: {unsafe[:5]}",
                    stage="security",
                )
            )
            return errors

        return errors

"""XlsxRouter -- orchestrator and public API for the ingestkit-xlsx pipeline.

Routes .xlsx workbooks through the full import pipeline:

1. Security scan via :class:`XlsxSecurityScanner`.
2. Compute deterministic :class:`IngestKey` for deduplication.
3. Import the selected worksheet via :class:`XlsxImporter`.
4. Assemble and return :class:`ImportResult`.

The router enforces **fail-closed** semantics: any fatal error returns a
result with error codes and no dataset.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid

from ingestkit_xlsx.config import XlsxImportConfig
from ingestkit_xlsx.dataset import Dataset, MergeMode
from ingestkit_xlsx.errors import ErrorCode, IngestError, XlsxImportException
from ingestkit_xlsx.idempotency import compute_ingest_key
from ingestkit_xlsx.importer import XlsxImporter
from ingestkit_xlsx.models import ImportResult, SheetSelection
from ingestkit_xlsx.protocols import SheetSelector
from ingestkit_xlsx.security import XlsxSecurityScanner

logger = logging.getLogger("ingestkit_xlsx")


class XlsxRouter:
    """Top-level orchestrator for the ingestkit-xlsx pipeline.

    Exposes :meth:`can_handle`, :meth:`process`, and :meth:`aprocess` as
    the public API.

    Parameters
    ----------
    config:
        Import configuration.  Uses defaults when *None*.
    selector:
        Optional interactive sheet chooser handed to the importer.
    """

    def __init__(
        self,
        config: XlsxImportConfig | None = None,
        selector: SheetSelector | None = None,
    ) -> None:
        self._config = config or XlsxImportConfig()
        self._security_scanner = XlsxSecurityScanner(self._config)
        self._importer = XlsxImporter(self._config, selector=selector)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def can_handle(self, file_path: str) -> bool:
        """Return True if *file_path* ends with ``.xlsx`` or ``.xlsm``."""
        return file_path.lower().endswith((".xlsx", ".xlsm"))

    def _failed(
        self,
        file_path: str,
        ingest_key: str,
        ingest_run_id: str,
        error: IngestError,
        warnings: list[IngestError],
        started: float,
    ) -> ImportResult:
        logger.error(
            "ingestkit_xlsx | file=%s | code=%s | detail=%s",
            os.path.basename(file_path),
            error.code.value,
            error.message,
        )
        return ImportResult(
            file_path=file_path,
            ingest_key=ingest_key,
            ingest_run_id=ingest_run_id,
            tenant_id=self._config.tenant_id,
            errors=[error.code.value],
            warnings=[w.code.value for w in warnings],
            error_details=[error, *warnings],
            processing_time_seconds=time.monotonic() - started,
        )

    def process(
        self,
        file_path: str,
        sheet: str | int | None = None,
        xoffset: int = 0,
        yoffset: int = 0,
        existing: Dataset | None = None,
        mode: MergeMode = MergeMode.APPEND,
        source_uri: str | None = None,
    ) -> ImportResult:
        """Import one worksheet of a single .xlsx file.

        Parameters
        ----------
        file_path:
            Filesystem path to the .xlsx file.
        sheet:
            Sheet name or 1-based index; *None* picks the first sheet
            holding data.
        xoffset, yoffset:
            Window origin: columns and rows to skip.
        existing:
            Dataset to merge into.
        mode:
            Append to or replace *existing*.
        source_uri:
            Optional override for the source URI stored in the ingest key.

        Returns
        -------
        ImportResult
            The fully-assembled result.
        """
        overall_start = time.monotonic()
        config = self._config
        filename = os.path.basename(file_path)
        ingest_run_id = str(uuid.uuid4())

        # ==============================================================
        # Step 1: Security Scan
        # ==============================================================
        security_errors = self._security_scanner.scan(file_path)
        fatal_errors = [e for e in security_errors if e.code.value.startswith("E_")]
        warnings = [e for e in security_errors if not e.code.value.startswith("E_")]

        if fatal_errors:
            return self._failed(
                file_path, "", ingest_run_id, fatal_errors[0], warnings, overall_start
            )

        # ==============================================================
        # Step 2: Compute Ingest Key
        # ==============================================================
        selection = SheetSelection(sheet=sheet, xoffset=xoffset, yoffset=yoffset)
        ingest_key = compute_ingest_key(
            file_path=file_path,
            parser_version=config.parser_version,
            tenant_id=config.tenant_id,
            source_uri=source_uri,
            selection=selection,
        ).key

        # ==============================================================
        # Step 3: Import
        # ==============================================================
        try:
            outcome = self._importer.import_file(
                file_path,
                selection=selection,
                existing=existing,
                mode=mode,
                ingest_key=ingest_key,
            )
        except XlsxImportException as exc:
            return self._failed(
                file_path, ingest_key, ingest_run_id, exc.error, warnings, overall_start
            )
        except MemoryError as exc:
            err = IngestError(
                code=ErrorCode.E_ALLOC,
                message=f"Out of memory during import: {exc}",
                stage="import",
            )
            return self._failed(
                file_path, ingest_key, ingest_run_id, err, warnings, overall_start
            )
        except Exception as exc:
            err = IngestError(
                code=ErrorCode.E_PARSE_CORRUPT,
                message=f"Workbook could not be imported: {exc}",
                stage="import",
            )
            return self._failed(
                file_path, ingest_key, ingest_run_id, err, warnings, overall_start
            )

        # ==============================================================
        # Step 4: Assemble Result
        # ==============================================================
        all_warnings = warnings + outcome.warnings
        elapsed = time.monotonic() - overall_start

        logger.info(
            "ingestkit_xlsx | file=%s | ingest_key=%s | sheet=%s | "
            "vars=%d | obs=%d | time=%.1fs",
            filename,
            ingest_key[:8],
            outcome.selection.name,
            outcome.dataset.v - 1,
            outcome.dataset.n,
            elapsed,
        )

        return ImportResult(
            file_path=file_path,
            ingest_key=ingest_key,
            ingest_run_id=ingest_run_id,
            tenant_id=config.tenant_id,
            dataset=outcome.dataset,
            selection=outcome.selection,
            sheet_count=len(outcome.catalog),
            variable_count=outcome.dataset.v - 1,
            observation_count=outcome.dataset.n,
            frequency=outcome.frequency,
            warnings=[w.code.value for w in all_warnings],
            error_details=all_warnings,
            notes=outcome.notes,
            processing_time_seconds=elapsed,
        )

    async def aprocess(
        self,
        file_path: str,
        sheet: str | int | None = None,
        xoffset: int = 0,
        yoffset: int = 0,
        existing: Dataset | None = None,
        mode: MergeMode = MergeMode.APPEND,
        source_uri: str | None = None,
    ) -> ImportResult:
        """Async wrapper around :meth:`process`.

        Offloads the synchronous ``process()`` call to a thread via
        ``asyncio.to_thread()``.
        """
        return await asyncio.to_thread(
            self.process, file_path, sheet, xoffset, yoffset, existing, mode, source_uri
        )

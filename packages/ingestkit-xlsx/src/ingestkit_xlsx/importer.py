"""XlsxImporter -- the core worksheet-to-dataset import pipeline.

1. Extract the archive to a scratch directory (removed on every exit).
2. Enumerate worksheets and resolve the selection, optionally through an
   interactive :class:`SheetSelector`.
3. Parse the worksheet once; pass 1 scans and classifies the window.
4. Allocate the dataset from the bounding box.
5. Pass 2 fills names, labels and values.
6. Finalize: prune, validate, date heuristics, merge, provenance.

Any failure raises :class:`XlsxImportException` before the caller's
dataset is touched; no partially built dataset escapes.
"""

from __future__ import annotations

import logging
import os

from ingestkit_xlsx.archive import open_archive
from ingestkit_xlsx.builder import build_dataset
from ingestkit_xlsx.config import XlsxImportConfig
from ingestkit_xlsx.dataset import Dataset, MergeMode
from ingestkit_xlsx.errors import ErrorCode, XlsxImportException
from ingestkit_xlsx.finalize import finalize_import
from ingestkit_xlsx.models import (
    ImportFlags,
    ImportOutcome,
    ResolvedSelection,
    SheetCatalog,
    SheetSelection,
)
from ingestkit_xlsx.protocols import SheetSelector
from ingestkit_xlsx.sheets import gather_sheet_catalog, resolve_selection
from ingestkit_xlsx.shared_strings import SharedStringTable
from ingestkit_xlsx.worksheet import fill_worksheet, scan_worksheet, sheet_rows

logger = logging.getLogger("ingestkit_xlsx")


class XlsxImporter:
    """Import one worksheet of an .xlsx workbook as a :class:`Dataset`.

    Parameters
    ----------
    config:
        Import configuration.  Uses defaults when *None*.
    selector:
        Optional interactive chooser consulted before every import.
    """

    def __init__(
        self,
        config: XlsxImportConfig | None = None,
        selector: SheetSelector | None = None,
    ) -> None:
        self._config = config or XlsxImportConfig()
        self._selector = selector

    @property
    def config(self) -> XlsxImportConfig:
        return self._config

    def list_sheets(self, file_path: str) -> SheetCatalog:
        """Return the worksheets of *file_path* without importing anything."""
        with open_archive(file_path) as archive:
            return gather_sheet_catalog(archive)

    def _choose(
        self, catalog: SheetCatalog, selection: SheetSelection | None
    ) -> SheetSelection | None:
        if self._selector is None:
            return selection
        chosen = self._selector.select(catalog, selection or SheetSelection())
        if chosen is None:
            raise XlsxImportException(
                code=ErrorCode.E_IMPORT_CANCELLED,
                message="Worksheet import cancelled",
                stage="select",
            )
        return chosen

    def import_file(
        self,
        file_path: str,
        selection: SheetSelection | None = None,
        existing: Dataset | None = None,
        mode: MergeMode = MergeMode.APPEND,
        ingest_key: str | None = None,
    ) -> ImportOutcome:
        """Import the selected worksheet and merge it into *existing*.

        Parameters
        ----------
        file_path:
            Path to the workbook.
        selection:
            Sheet identifier and window origin; defaults to the first sheet
            holding data with a ``(0, 0)`` origin.
        existing:
            Dataset to merge into.  When *None* or empty, the imported
            dataset becomes the result.
        mode:
            Append to or replace the contents of *existing*.
        ingest_key:
            Recorded in the dataset provenance.

        Raises
        ------
        XlsxImportException
            On any archive, format, data, allocation or cancellation error.
        """
        config = self._config
        filename = os.path.basename(file_path)
        notes: list[str] = []
        resolved: ResolvedSelection | None = None

        try:
            with open_archive(file_path) as archive:
                catalog = gather_sheet_catalog(archive)
                notes.append(f"Found {len(catalog)} worksheet(s)")

                chosen = self._choose(catalog, selection)
                resolved = resolve_selection(archive, catalog, chosen)
                logger.info(
                    "ingestkit_xlsx | file=%s | sheet=%s | member=%s | origin=(%d, %d)",
                    filename,
                    resolved.name,
                    resolved.member,
                    resolved.xoffset,
                    resolved.yoffset,
                )

                rows = sheet_rows(archive.parse_member(resolved.member, "worksheet"))
                strings = SharedStringTable(archive)

                scan = scan_worksheet(
                    rows, resolved.xoffset, resolved.yoffset, strings, config
                )
                notes.append(
                    f"Max row = {scan.box.maxrow}, max col = {scan.box.maxcol}"
                )
                notes.append(f"Accessed {scan.strings_loaded} shared strings")

                dataset, flags = build_dataset(scan, resolved, config)
                notes.append(
                    f"Found {dataset.v - 1} variables and {dataset.n} observations"
                )

                fill = fill_worksheet(rows, resolved, flags, dataset, strings, config)

                result, warnings = finalize_import(
                    dataset,
                    fill,
                    resolved,
                    filename,
                    config,
                    date1904=catalog.date1904,
                    existing=existing,
                    mode=mode,
                    ingest_key=ingest_key,
                    notes=notes,
                )
        except XlsxImportException as exc:
            if exc.error.sheet_name is None and resolved is not None:
                exc.error.sheet_name = resolved.name
            logger.error(
                "ingestkit_xlsx | file=%s | code=%s | detail=%s",
                filename,
                exc.code.value,
                exc.message,
            )
            raise

        logger.info(
            "ingestkit_xlsx | file=%s | sheet=%s | vars=%d | obs=%d | flags=%r",
            filename,
            resolved.name,
            dataset.v - 1,
            dataset.n,
            ImportFlags(flags),
        )
        if config.log_sample_data:
            logger.debug(
                "ingestkit_xlsx | names=%s | labels=%s",
                dataset.varname[1:],
                (dataset.S or [])[:5],
            )

        return ImportOutcome(
            dataset=result,
            selection=resolved,
            catalog=catalog,
            flags=flags,
            box=scan.box,
            frequency=dataset.frequency,
            interactive=self._selector is not None,
            notes=notes,
            warnings=warnings,
        )

"""Finalizer: validate the filled dataset and hand it to the caller.

Order of operations: prune empty columns, require names, reject
duplicate names, try the serial-date interpretation of numeric labels,
recognize period labels, merge into the caller's dataset and record
provenance.
"""

from __future__ import annotations

import logging

from ingestkit_xlsx.config import XlsxImportConfig
from ingestkit_xlsx.dataset import Dataset, DatasetProvenance, MergeMode, merge_or_replace
from ingestkit_xlsx.dates import detect_time_series, rewrite_date_labels
from ingestkit_xlsx.errors import ErrorCode, IngestError, XlsxImportException
from ingestkit_xlsx.models import FillResult, ResolvedSelection

logger = logging.getLogger("ingestkit_xlsx")


def _check_names(dataset: Dataset, sheet_name: str) -> None:
    seen: dict[str, int] = {}
    for i in range(1, dataset.v):
        name = dataset.varname[i]
        if not name:
            raise XlsxImportException(
                code=ErrorCode.E_DATA_VARNAME_MISSING,
                message=f"Name missing for variable {i}",
                stage="finalize",
                sheet_name=sheet_name,
            )
        if name in seen:
            raise XlsxImportException(
                code=ErrorCode.E_DATA_VARNAME_DUPLICATE,
                message=(
                    f"Variable name {name!r} is used for both variable "
                    f"{seen[name]} and variable {i}"
                ),
                stage="finalize",
                sheet_name=sheet_name,
            )
        seen[name] = i


def finalize_import(
    dataset: Dataset,
    fill: FillResult,
    selection: ResolvedSelection,
    source_file: str,
    config: XlsxImportConfig,
    *,
    date1904: bool = False,
    existing: Dataset | None = None,
    mode: MergeMode = MergeMode.APPEND,
    ingest_key: str | None = None,
    notes: list[str] | None = None,
) -> tuple[Dataset, list[IngestError]]:
    """Validate *dataset* and merge it into *existing*.

    Returns the resulting dataset (``existing`` itself when it was merged
    into) and any non-fatal warnings.  Progress notes are appended to
    *notes* when given.

    Raises
    ------
    XlsxImportException
        ``E_DATA_NO_DATA`` if every column was empty,
        ``E_DATA_VARNAME_MISSING`` / ``E_DATA_VARNAME_DUPLICATE`` for bad
        names, ``E_DATA_MERGE_CONFLICT`` if the merge is impossible.
    """
    notes = notes if notes is not None else []
    warnings: list[IngestError] = []

    pruned = dataset.prune_empty_columns()
    if pruned:
        msg = f"Dropped {len(pruned)} empty column(s)"
        notes.append(msg)
        warnings.append(
            IngestError(
                code=ErrorCode.W_COLUMNS_PRUNED,
                message=f"{msg}: {', '.join(n or '?' for n in pruned)}",
                stage="finalize",
                recoverable=True,
                sheet_name=selection.name,
            )
        )
        logger.info(
            "ingestkit_xlsx | sheet=%s | pruned %d empty columns",
            selection.name,
            len(pruned),
        )
    if dataset.v <= 1:
        raise XlsxImportException(
            code=ErrorCode.E_DATA_NO_DATA,
            message="File contains no data: every column is empty",
            stage="finalize",
            sheet_name=selection.name,
        )

    _check_names(dataset, selection.name)

    if fill.try_dates and config.detect_dates:
        freq = rewrite_date_labels(dataset, date1904, config.date_format)
        if freq is not None:
            notes.append(f"Observation labels read as {freq.value} dates")

    if dataset.S is not None and dataset.frequency is None:
        dataset.frequency = detect_time_series(dataset.S)
        if dataset.frequency is not None:
            notes.append(
                f"Observation labels form a {dataset.frequency.value} time series"
            )

    result = merge_or_replace(existing, dataset, mode)
    result.provenance.append(
        DatasetProvenance(
            source_file=source_file,
            sheet_name=selection.name,
            ingest_key=ingest_key,
        )
    )
    return result, warnings

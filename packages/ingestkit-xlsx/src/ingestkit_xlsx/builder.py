"""Dataset builder: size and allocate the dataset from the pass-1 scan."""

from __future__ import annotations

import logging

from ingestkit_xlsx.config import XlsxImportConfig
from ingestkit_xlsx.dataset import Dataset
from ingestkit_xlsx.errors import ErrorCode, XlsxImportException
from ingestkit_xlsx.models import ImportFlags, ResolvedSelection, ScanResult

logger = logging.getLogger("ingestkit_xlsx")


def dataset_dimensions(
    scan: ScanResult, selection: ResolvedSelection
) -> tuple[int, int, int]:
    """Return ``(flags, v, n)`` for the window described by *scan*.

    An empty corner cell forces the label column: a header row whose first
    cell is blank most plausibly names the series to its right.
    """
    flags = scan.flags
    if flags & ImportFlags.TOP_LEFT_EMPTY:
        flags |= ImportFlags.OBS_LABELS

    v = scan.box.maxcol - selection.xoffset
    n = scan.box.maxrow - selection.yoffset
    if flags & ImportFlags.OBS_LABELS:
        v -= 1
    if not flags & ImportFlags.AUTO_VARNAMES:
        n -= 1
    return int(flags), v, n


def build_dataset(
    scan: ScanResult, selection: ResolvedSelection, config: XlsxImportConfig
) -> tuple[Dataset, int]:
    """Allocate the dataset the fill pass will populate.

    Returns the dataset and the final flag set to hand to pass 2.

    Raises
    ------
    XlsxImportException
        ``E_DATA_NO_DATA`` if the window holds no usable rectangle,
        ``E_ALLOC`` if the dataset would exceed ``config.max_cells`` or
        cannot be allocated.
    """
    flags, v, n = dataset_dimensions(scan, selection)
    logger.info(
        "ingestkit_xlsx | sheet=%s | found %d variables and %d observations",
        selection.name,
        v,
        n,
    )

    if v <= 0 or n <= 0:
        raise XlsxImportException(
            code=ErrorCode.E_DATA_NO_DATA,
            message=(
                f"File contains no data: window at ({selection.xoffset}, "
                f"{selection.yoffset}) yields {v} variables, {n} observations"
            ),
            stage="build",
            sheet_name=selection.name,
        )

    if (v + 1) * n > config.max_cells:
        raise XlsxImportException(
            code=ErrorCode.E_ALLOC,
            message=(
                f"Dataset of {v} variables by {n} observations exceeds the "
                f"limit of {config.max_cells} cells"
            ),
            stage="build",
            sheet_name=selection.name,
        )

    try:
        dataset = Dataset(
            v + 1,
            n,
            labels=bool(flags & ImportFlags.OBS_LABELS),
            vnamelen=config.varname_capacity,
            obslen=config.label_capacity,
        )
    except MemoryError as exc:
        raise XlsxImportException(
            code=ErrorCode.E_ALLOC,
            message=f"Out of memory allocating {v} x {n} dataset",
            stage="build",
            sheet_name=selection.name,
        ) from exc

    if flags & ImportFlags.AUTO_VARNAMES:
        for i in range(1, v + 1):
            dataset.set_varname(i, f"v{i}")

    return dataset, flags

"""Two-pass worksheet walk.

The worksheet document is parsed once; both passes iterate the same
``<row>`` elements.  :func:`scan_worksheet` (pass 1) computes the bounding
box and classifies the reading window from its corner cells.
:func:`fill_worksheet` (pass 2) writes names, labels and values into a
dataset allocated from the scan result.  The flags produced by pass 1 are
passed to pass 2 explicitly; nothing is carried in module state.
"""

from __future__ import annotations

import logging
import math
import re
import xml.etree.ElementTree as ET
from typing import NamedTuple

from ingestkit_xlsx.archive import find_child, get_attr, iter_children
from ingestkit_xlsx.config import XlsxImportConfig
from ingestkit_xlsx.coords import cell_coordinates
from ingestkit_xlsx.dataset import Dataset
from ingestkit_xlsx.dates import is_integer_string
from ingestkit_xlsx.errors import ErrorCode, XlsxImportException
from ingestkit_xlsx.models import (
    BoundingBox,
    FillResult,
    ImportFlags,
    ResolvedSelection,
    ScanResult,
)
from ingestkit_xlsx.shared_strings import SharedStringTable, entry_text

logger = logging.getLogger("ingestkit_xlsx")

_VARNAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_LINEAR_FORMULA_RE = re.compile(
    r"^\s*=?\s*\$?([A-Z]{1,3})\$?(\d+)\s*([+-])\s*(\d+)\s*$"
)

# Cell types whose content is text rather than a number.
_TEXT_TYPES = frozenset({"inlineStr", "str", "d"})


class Cell(NamedTuple):
    """One decoded ``<c>`` element."""

    ref: str
    row: int
    col: int
    is_string: bool
    text: str | None
    value: float | None
    formula: str | None

    @property
    def has_value(self) -> bool:
        return self.value is not None


def _number(raw: str, ref: str) -> float:
    if not _NUMBER_RE.match(raw):
        raise XlsxImportException(
            code=ErrorCode.E_FORMAT_NUMBER,
            message=f"Malformed numeric value {raw!r} in cell {ref}",
            stage="worksheet",
            cell_ref=ref,
        )
    return float(raw)


def read_cell(
    el: ET.Element, strings: SharedStringTable, box: BoundingBox | None = None
) -> Cell:
    """Decode a ``<c>`` element, resolving shared strings.

    A ``<v>`` without text counts as no value, so a formula cell written
    without a cached result is reported with ``value=None`` and its
    formula text.

    Raises
    ------
    XlsxImportException
        ``E_FORMAT_MISSING_ATTR`` if the cell has no ``r`` attribute,
        ``E_FORMAT_CELL_REF`` / ``E_FORMAT_NUMBER`` for malformed content,
        ``E_DATA_SHARED_STRING`` for a bad shared-string index.
    """
    ref = get_attr(el, "r")
    if ref is None:
        raise XlsxImportException(
            code=ErrorCode.E_FORMAT_MISSING_ATTR,
            message="Worksheet cell lacks the 'r' reference attribute",
            stage="worksheet",
        )
    row, col = cell_coordinates(ref, box)

    ctype = get_attr(el, "t")
    v_el = find_child(el, "v")
    f_el = find_child(el, "f")
    raw = v_el.text if v_el is not None else None
    if raw is not None and not raw.strip():
        raw = None
    formula = f_el.text if f_el is not None and f_el.text else None

    if ctype == "s":
        if raw is None:
            return Cell(ref, row, col, False, None, None, formula)
        return Cell(ref, row, col, True, strings.lookup(raw.strip()), None, formula)

    if ctype == "inlineStr":
        is_el = find_child(el, "is")
        text = entry_text(is_el) if is_el is not None else raw
        return Cell(ref, row, col, True, text if text is not None else "", None, formula)

    if ctype in _TEXT_TYPES:
        if raw is None:
            return Cell(ref, row, col, False, None, None, formula)
        return Cell(ref, row, col, True, raw, None, formula)

    if ctype == "e" or raw is None:
        return Cell(ref, row, col, False, None, None, formula)

    return Cell(ref, row, col, False, None, _number(raw.strip(), ref), formula)


def sheet_rows(root: ET.Element) -> list[ET.Element]:
    """Return the ``<row>`` elements of the worksheet's first ``<sheetData>``."""
    sheet_data = find_child(root, "sheetData")
    if sheet_data is None:
        return []
    return list(iter_children(sheet_data, "row"))


def _iter_cells(
    rows: list[ET.Element], strings: SharedStringTable, box: BoundingBox | None = None
):
    for row_el in rows:
        for c in iter_children(row_el, "c"):
            yield read_cell(c, strings, box)


# ---------------------------------------------------------------------------
# Index arithmetic
# ---------------------------------------------------------------------------


def var_index(col: int, xoffset: int, flags: int) -> int:
    """Map a sheet column to a variable slot; -1 marks the label column."""
    i = col - xoffset - 1
    if i == 0 and flags & ImportFlags.OBS_LABELS:
        return -1
    if i >= 0 and not flags & ImportFlags.OBS_LABELS:
        i += 1
    return i


def obs_index(row: int, yoffset: int, flags: int) -> int:
    """Map a sheet row to an observation; -1 marks the header row."""
    t = row - yoffset - 1
    if not flags & ImportFlags.AUTO_VARNAMES:
        t -= 1
    return t


# ---------------------------------------------------------------------------
# Pass 1
# ---------------------------------------------------------------------------


def _defined(value: float | None) -> bool:
    return value is not None and not math.isnan(value)


def check_top_left(
    cell: Cell, xoffset: int, yoffset: int, flags: int, config: XlsxImportConfig
) -> int:
    """Update *flags* from the two classification positions of the window."""
    if cell.row != yoffset + 1:
        return flags

    if cell.col == xoffset + 1:
        if _defined(cell.value):
            flags |= ImportFlags.AUTO_VARNAMES
        elif cell.is_string and config.is_obs_label(cell.text):
            flags |= ImportFlags.OBS_LABELS
        if _defined(cell.value) or cell.is_string:
            flags &= ~ImportFlags.TOP_LEFT_EMPTY
    elif cell.col == xoffset + 2 and _defined(cell.value):
        flags |= ImportFlags.AUTO_VARNAMES

    return flags


def scan_worksheet(
    rows: list[ET.Element],
    xoffset: int,
    yoffset: int,
    strings: SharedStringTable,
    config: XlsxImportConfig,
) -> ScanResult:
    """Pass 1: bounding box and window classification."""
    box = BoundingBox()
    flags = int(ImportFlags.TOP_LEFT_EMPTY)
    seen = 0

    for cell in _iter_cells(rows, strings, box):
        seen += 1
        flags = check_top_left(cell, xoffset, yoffset, flags, config)

    logger.debug(
        "ingestkit_xlsx | scan: cells=%d, maxrow=%d, maxcol=%d, flags=%r",
        seen,
        box.maxrow,
        box.maxcol,
        ImportFlags(flags),
    )
    return ScanResult(
        flags=int(flags),
        box=box,
        cells_seen=seen,
        strings_loaded=len(strings),
    )


# ---------------------------------------------------------------------------
# Pass 2
# ---------------------------------------------------------------------------


def _range_error(what: str, cell: Cell, i: int, t: int) -> XlsxImportException:
    return XlsxImportException(
        code=ErrorCode.E_DATA_INDEX_RANGE,
        message=f"{what} in cell {cell.ref} falls outside the dataset (i={i}, t={t})",
        stage="fill",
        cell_ref=cell.ref,
    )


def _set_varname(dataset: Dataset, i: int, cell: Cell) -> None:
    if i == -1:
        return
    if i < 1 or i >= dataset.v:
        raise _range_error("Variable name", cell, i, -1)

    text = (cell.text or "")[: dataset.vnamelen - 1]
    name = dataset.set_varname(i, text.replace(" ", "_"))
    if not _VARNAME_RE.match(name):
        raise XlsxImportException(
            code=ErrorCode.E_DATA_VARNAME_INVALID,
            message=(
                f"Invalid variable name {name!r} in cell {cell.ref}: names must "
                "start with a letter and contain only letters, digits and '_'"
            ),
            stage="fill",
            cell_ref=cell.ref,
        )


def _set_label(dataset: Dataset, t: int, cell: Cell) -> None:
    if t == -1:
        return
    if t < 0 or t >= dataset.n:
        raise _range_error("Observation label", cell, -1, t)
    dataset.set_label(t, cell.text or "")


def _set_value(dataset: Dataset, i: int, t: int, cell: Cell, result: FillResult) -> None:
    assert cell.value is not None
    if i == -1 and 0 <= t < dataset.n and dataset.has_labels:
        dataset.set_label(t, "%g" % cell.value)
        result.numeric_labels += 1
        return
    if i == -1 or t == -1:
        return
    if i < 1 or i >= dataset.v or t < 0 or t >= dataset.n:
        raise _range_error("Value", cell, i, t)
    dataset.Z[i, t] = cell.value
    result.cells_written += 1


def linear_formula_label(
    formula: str,
    t: int,
    dataset: Dataset,
    selection: ResolvedSelection,
    flags: int,
) -> str | None:
    """Evaluate a label-column formula of the form ``<ref> +/- <integer>``.

    The referenced cell must lie in the label column above observation *t*
    and already carry an integer label.  Returns the new label, or None
    when the formula has any other shape.
    """
    if t <= 0 or t >= dataset.n or not flags & ImportFlags.OBS_LABELS:
        return None
    if dataset.S is None:
        return None

    m = _LINEAR_FORMULA_RE.match(formula)
    if m is None:
        return None
    letters, digits, op, k = m.groups()

    try:
        st, col = cell_coordinates(letters + digits)
    except XlsxImportException:
        return None
    if col != selection.xoffset + 1:
        return None

    st = obs_index(st, selection.yoffset, flags)
    if not 0 <= st < t:
        return None

    prev = dataset.S[st]
    if not is_integer_string(prev):
        return None
    step = int(k) if op == "+" else -int(k)
    return str(int(prev) + step)


def fill_worksheet(
    rows: list[ET.Element],
    selection: ResolvedSelection,
    flags: int,
    dataset: Dataset,
    strings: SharedStringTable,
    config: XlsxImportConfig,
) -> FillResult:
    """Pass 2: populate *dataset* from the cells inside the window.

    Raises
    ------
    XlsxImportException
        ``E_DATA_INDEX_RANGE``, ``E_DATA_VARNAME_INVALID`` or
        ``E_DATA_UNEXPECTED_STRING`` for cells that cannot be stored, plus
        any cell decoding error.
    """
    x, y = selection.xoffset, selection.yoffset
    result = FillResult()

    for cell in _iter_cells(rows, strings):
        if cell.row <= y or cell.col <= x:
            continue
        i = var_index(cell.col, x, flags)
        t = obs_index(cell.row, y, flags)

        if cell.is_string:
            if cell.row == y + 1:
                _set_varname(dataset, i, cell)
            elif i == -1 and dataset.has_labels:
                _set_label(dataset, t, cell)
            elif not config.is_na_token(cell.text or ""):
                raise XlsxImportException(
                    code=ErrorCode.E_DATA_UNEXPECTED_STRING,
                    message=(
                        f"Expected numeric data, found string {cell.text!r} "
                        f"at row {cell.row}, column {cell.col}"
                    ),
                    stage="fill",
                    cell_ref=cell.ref,
                )
        elif cell.has_value:
            _set_value(dataset, i, t, cell, result)
        elif cell.formula is not None and i == -1:
            label = linear_formula_label(cell.formula, t, dataset, selection, flags)
            if label is not None:
                dataset.set_label(t, label)
                result.formula_labels += 1

    logger.debug(
        "ingestkit_xlsx | fill: values=%d, numeric_labels=%d, formula_labels=%d",
        result.cells_written,
        result.numeric_labels,
        result.formula_labels,
    )
    return result

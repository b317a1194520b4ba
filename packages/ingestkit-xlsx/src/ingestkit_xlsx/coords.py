"""Spreadsheet cell-reference arithmetic.

Cell references such as ``"AB65"`` are decoded into 1-based ``(row, col)``
pairs.  Column letters form a bijective base-26 numeral (``A`` = 1 ...
``Z`` = 26, ``AA`` = 27, ...).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ingestkit_xlsx.errors import ErrorCode, XlsxImportException

if TYPE_CHECKING:
    from ingestkit_xlsx.models import BoundingBox

_LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def column_index(letters: str) -> int:
    """Decode upper-case column letters into a 1-based column number."""
    col = 0
    for ch in letters:
        v = _LETTERS.find(ch) + 1
        if v == 0:
            raise XlsxImportException(
                code=ErrorCode.E_FORMAT_CELL_REF,
                message=f"Invalid column letter {ch!r} in {letters!r}",
                stage="coordinates",
            )
        col = col * 26 + v
    return col


def column_letters(col: int) -> str:
    """Encode a 1-based column number as spreadsheet column letters."""
    if col < 1:
        raise ValueError(f"Column number must be >= 1, got {col}")
    out: list[str] = []
    while col > 0:
        col, rem = divmod(col - 1, 26)
        out.append(_LETTERS[rem])
    return "".join(reversed(out))


def cell_coordinates(
    ref: str, box: BoundingBox | None = None
) -> tuple[int, int]:
    """Split a cell reference such as ``"AB65"`` into ``(row, col)``.

    The reference is split at the first non-letter: the leading letters
    give the column and the remainder must be a decimal row number.  If
    *box* is given, its running maxima are extended to cover the cell.

    Raises
    ------
    XlsxImportException
        ``E_FORMAT_CELL_REF`` if the letters are not A-Z or no digits follow.
    """
    i = 0
    while i < len(ref) and ref[i].isalpha():
        i += 1
    letters, digits = ref[:i], ref[i:]

    if not letters or not digits.isdigit() or not digits.isascii():
        raise XlsxImportException(
            code=ErrorCode.E_FORMAT_CELL_REF,
            message=f"Malformed cell reference: {ref!r}",
            stage="coordinates",
            cell_ref=ref,
        )

    col = column_index(letters)
    row = int(digits)
    if row < 1:
        raise XlsxImportException(
            code=ErrorCode.E_FORMAT_CELL_REF,
            message=f"Row number must be >= 1 in cell reference {ref!r}",
            stage="coordinates",
            cell_ref=ref,
        )

    if box is not None:
        box.extend(row, col)

    return row, col


def cell_reference(row: int, col: int) -> str:
    """Inverse of :func:`cell_coordinates`."""
    return f"{column_letters(col)}{row}"

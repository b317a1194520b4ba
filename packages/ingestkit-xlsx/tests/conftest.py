"""Shared test fixtures for ingestkit-xlsx tests.

Workbooks are assembled with :mod:`zipfile` from literal SpreadsheetML
parts so every cell encoding is controlled exactly.  In row lists:

- ``None`` leaves the cell out,
- ``int`` / ``float`` / ``bool`` become numeric cells,
- ``str`` becomes a shared-string cell (or an inline string with
  ``inline=True``),
- a ``str`` starting with ``=`` becomes a formula without a cached value,
- a ``str`` starting with ``<c`` is copied verbatim as the cell element.
"""

from __future__ import annotations

import zipfile
from pathlib import Path
from xml.sax.saxutils import escape

import pytest

from ingestkit_xlsx.config import XlsxImportConfig

NS_MAIN = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
NS_REL = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
NS_PKG_REL = "http://schemas.openxmlformats.org/package/2006/relationships"

_XML_DECL = '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>\n'


def _col_letters(col: int) -> str:
    out = ""
    while col > 0:
        col, rem = divmod(col - 1, 26)
        out = chr(ord("A") + rem) + out
    return out


def _cell_xml(ref: str, value, strings: list[str], inline: bool) -> str:
    if isinstance(value, str) and value.startswith("<c"):
        return value
    if isinstance(value, str) and value.startswith("="):
        return f'<c r="{ref}"><f>{escape(value[1:])}</f><v></v></c>'
    if isinstance(value, str):
        if inline:
            return f'<c r="{ref}" t="inlineStr"><is><t>{escape(value)}</t></is></c>'
        if value not in strings:
            strings.append(value)
        return f'<c r="{ref}" t="s"><v>{strings.index(value)}</v></c>'
    if isinstance(value, bool):
        return f'<c r="{ref}" t="b"><v>{int(value)}</v></c>'
    return f'<c r="{ref}"><v>{value!r}</v></c>'


def sheet_xml(rows: list[list], strings: list[str], inline: bool = False) -> str:
    body: list[str] = []
    for r, row in enumerate(rows, start=1):
        cells = [
            _cell_xml(f"{_col_letters(c)}{r}", value, strings, inline)
            for c, value in enumerate(row, start=1)
            if value is not None
        ]
        if cells:
            body.append(f'<row r="{r}">{"".join(cells)}</row>')
    return (
        f'{_XML_DECL}<worksheet xmlns="{NS_MAIN}">'
        f'<sheetData>{"".join(body)}</sheetData></worksheet>'
    )


def shared_strings_xml(strings: list[str]) -> str:
    items = "".join(f"<si><t>{escape(s)}</t></si>" for s in strings)
    return (
        f'{_XML_DECL}<sst xmlns="{NS_MAIN}" count="{len(strings)}" '
        f'uniqueCount="{len(strings)}">{items}</sst>'
    )


def workbook_xml(names: list[str], date1904: bool = False) -> str:
    props = '<workbookPr date1904="1"/>' if date1904 else "<workbookPr/>"
    sheets = "".join(
        f'<sheet name="{escape(name)}" sheetId="{i}" r:id="rId{i}"/>'
        for i, name in enumerate(names, start=1)
    )
    return (
        f'{_XML_DECL}<workbook xmlns="{NS_MAIN}" xmlns:r="{NS_REL}">'
        f"{props}<sheets>{sheets}</sheets></workbook>"
    )


def workbook_rels_xml(count: int) -> str:
    rels = "".join(
        f'<Relationship Id="rId{i}" Type="{NS_REL}/worksheet" '
        f'Target="worksheets/sheet{i}.xml"/>'
        for i in range(1, count + 1)
    )
    return f'{_XML_DECL}<Relationships xmlns="{NS_PKG_REL}">{rels}</Relationships>'


def _content_types(count: int) -> str:
    overrides = "".join(
        f'<Override PartName="/xl/worksheets/sheet{i}.xml" ContentType='
        '"application/vnd.openxmlformats-officedocument.spreadsheetml.worksheet+xml"/>'
        for i in range(1, count + 1)
    )
    return (
        f"{_XML_DECL}<Types "
        'xmlns="http://schemas.openxmlformats.org/package/2006/content-types">'
        '<Default Extension="xml" ContentType="application/xml"/>'
        f"{overrides}</Types>"
    )


@pytest.fixture
def default_config() -> XlsxImportConfig:
    """Return a default XlsxImportConfig."""
    return XlsxImportConfig()


@pytest.fixture
def make_xlsx(tmp_path: Path):
    """Factory fixture writing a workbook and returning its path.

    *sheets* is either a single row list (one sheet named ``Sheet1``) or a
    dict mapping sheet names to row lists or to raw worksheet XML.
    """

    def _make(
        sheets,
        *,
        filename: str = "book.xlsx",
        inline: bool = False,
        workbook: bool = True,
        date1904: bool = False,
        shared_strings: str | None = None,
        extra_members: dict[str, str] | None = None,
    ) -> str:
        if not isinstance(sheets, dict):
            sheets = {"Sheet1": sheets}

        strings: list[str] = []
        parts: dict[str, str] = {"[Content_Types].xml": _content_types(len(sheets))}
        for i, content in enumerate(sheets.values(), start=1):
            if isinstance(content, str):
                xml = content
            else:
                xml = sheet_xml(content, strings, inline)
            parts[f"xl/worksheets/sheet{i}.xml"] = xml

        if workbook:
            parts["xl/workbook.xml"] = workbook_xml(list(sheets), date1904)
            parts["xl/_rels/workbook.xml.rels"] = workbook_rels_xml(len(sheets))

        if shared_strings is not None:
            parts["xl/sharedStrings.xml"] = shared_strings
        elif strings:
            parts["xl/sharedStrings.xml"] = shared_strings_xml(strings)

        parts.update(extra_members or {})

        path = tmp_path / filename
        with zipfile.ZipFile(path, "w", zipfile.ZIP_DEFLATED) as zf:
            for name, data in parts.items():
                zf.writestr(name, data)
        return str(path)

    return _make


@pytest.fixture
def gdp_rows() -> list[list]:
    """Blank corner, names in row 1, year labels in column A."""
    return [
        [None, "gdp", "cpi"],
        [2000, 100.0, 50.0],
        [2001, 105.0, 52.0],
    ]


@pytest.fixture
def damage_member():
    """Return a function that damages one member of a written workbook.

    ``mode="deflate"`` overwrites the member's compressed bytes with
    ``0xFF`` (an invalid deflate block); ``mode="encrypt"`` sets the
    encryption flag on its central directory record.
    """

    def _damage(path: str, member: str, mode: str = "deflate") -> str:
        with zipfile.ZipFile(path) as zf:
            info = zf.getinfo(member)
        data = bytearray(Path(path).read_bytes())
        if mode == "deflate":
            offset = info.header_offset
            name_len = int.from_bytes(data[offset + 26 : offset + 28], "little")
            extra_len = int.from_bytes(data[offset + 28 : offset + 30], "little")
            start = offset + 30 + name_len + extra_len
            data[start : start + info.compress_size] = b"\xff" * info.compress_size
        else:
            entry = data.find(b"PK\x01\x02")
            while entry != -1:
                name_len = int.from_bytes(data[entry + 28 : entry + 30], "little")
                if data[entry + 46 : entry + 46 + name_len].decode() == member:
                    data[entry + 8] |= 0x01
                    break
                entry = data.find(b"PK\x01\x02", entry + 4)
        Path(path).write_bytes(bytes(data))
        return path

    return _damage

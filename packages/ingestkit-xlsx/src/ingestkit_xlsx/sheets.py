"""Sheet directory: enumerate worksheets and resolve the caller's selection.

Sheet names come from ``xl/workbook.xml`` when it lists any ``<sheet>``
elements; each is bound to its worksheet member through
``xl/_rels/workbook.xml.rels``, falling back to the positional
``xl/worksheets/sheet{N}.xml``.  Without workbook metadata, the worksheet
files that hold at least one row are listed by file stem, sorted.
"""

from __future__ import annotations

import logging
import posixpath
import re

from ingestkit_xlsx.archive import XlsxArchive, find_child, get_attr, iter_children
from ingestkit_xlsx.errors import ErrorCode, XlsxImportException
from ingestkit_xlsx.models import (
    ResolvedSelection,
    SheetCatalog,
    SheetEntry,
    SheetSelection,
)

logger = logging.getLogger("ingestkit_xlsx")

WORKBOOK_MEMBER = "xl/workbook.xml"
WORKBOOK_RELS_MEMBER = "xl/_rels/workbook.xml.rels"
WORKSHEETS_DIR = "xl/worksheets"

_SHEET_STEM_RE = re.compile(r"^sheet(\d+)$")


def _truthy(value: str | None) -> bool:
    return value is not None and value.strip().lower() in ("1", "true")


def _relationship_targets(archive: XlsxArchive) -> dict[str, str]:
    """Map relationship ids to archive member names."""
    if not archive.has_member(WORKBOOK_RELS_MEMBER):
        return {}
    root = archive.parse_member(WORKBOOK_RELS_MEMBER, "Relationships")
    targets: dict[str, str] = {}
    for rel in iter_children(root, "Relationship"):
        rid = get_attr(rel, "Id")
        target = get_attr(rel, "Target")
        if not rid or not target:
            continue
        if target.startswith("/"):
            member = target.lstrip("/")
        else:
            member = posixpath.normpath(posixpath.join("xl", target))
        targets[rid] = member
    return targets


def _workbook_entries(
    archive: XlsxArchive,
) -> tuple[list[SheetEntry], bool] | None:
    """Read sheet entries from the workbook descriptor, if it has any."""
    if not archive.has_member(WORKBOOK_MEMBER):
        return None
    root = archive.parse_member(WORKBOOK_MEMBER, "workbook")

    props = find_child(root, "workbookPr")
    date1904 = props is not None and _truthy(get_attr(props, "date1904"))

    sheets = find_child(root, "sheets")
    if sheets is None:
        return None
    elements = list(iter_children(sheets, "sheet"))
    if not elements:
        return None

    targets = _relationship_targets(archive)
    entries: list[SheetEntry] = []
    for pos, el in enumerate(elements):
        name = get_attr(el, "name")
        if name is None:
            continue
        member = targets.get(get_attr(el, "id") or "")
        if member is None:
            member = f"{WORKSHEETS_DIR}/sheet{pos + 1}.xml"
        sheet_id = get_attr(el, "sheetId")
        entries.append(
            SheetEntry(
                index=len(entries),
                name=name,
                member=member,
                sheet_id=int(sheet_id) if sheet_id and sheet_id.isdigit() else None,
            )
        )
    return entries, date1904


def sheet_has_data(archive: XlsxArchive, member: str) -> bool:
    """Return True if worksheet *member* has at least one ``<row>``."""
    try:
        root = archive.parse_member(member, "worksheet")
    except XlsxImportException:
        return False
    for sheet_data in iter_children(root, "sheetData"):
        if find_child(sheet_data, "row") is not None:
            return True
    return False


def gather_sheet_catalog(archive: XlsxArchive) -> SheetCatalog:
    """Enumerate the worksheets available for import.

    Raises
    ------
    XlsxImportException
        ``E_ARCHIVE_NO_SHEETS`` if no worksheet can be found.
    """
    found = _workbook_entries(archive)
    if found is not None and found[0]:
        entries, date1904 = found
        catalog = SheetCatalog(
            entries=tuple(entries), from_workbook=True, date1904=date1904
        )
    else:
        stems = [
            fname[: -len(".xml")]
            for fname in archive.list_members(WORKSHEETS_DIR)
            if fname.endswith(".xml")
            and sheet_has_data(archive, f"{WORKSHEETS_DIR}/{fname}")
        ]
        entries = [
            SheetEntry(
                index=i,
                name=stem,
                member=f"{WORKSHEETS_DIR}/{stem}.xml",
                sheet_id=_stem_number(stem),
            )
            for i, stem in enumerate(sorted(stems))
        ]
        catalog = SheetCatalog(entries=tuple(entries), from_workbook=False)

    if not catalog.entries:
        raise XlsxImportException(
            code=ErrorCode.E_ARCHIVE_NO_SHEETS,
            message="No worksheets found in archive",
            stage="sheets",
        )

    for entry in catalog.entries:
        logger.debug(
            "ingestkit_xlsx | sheet %d: %s (%s)", entry.index, entry.name, entry.member
        )
    return catalog


def _stem_number(stem: str) -> int | None:
    m = _SHEET_STEM_RE.match(stem)
    return int(m.group(1)) if m else None


def _seek_by_workbook_name(
    archive: XlsxArchive, catalog: SheetCatalog, name: str
) -> SheetEntry | None:
    """Find *name* in the workbook and match its sheetId to a ``sheetN`` entry."""
    if not archive.has_member(WORKBOOK_MEMBER):
        return None
    try:
        root = archive.parse_member(WORKBOOK_MEMBER, "workbook")
    except XlsxImportException:
        return None
    sheets = find_child(root, "sheets")
    if sheets is None:
        return None

    for el in iter_children(sheets, "sheet"):
        if get_attr(el, "name") != name:
            continue
        sheet_id = get_attr(el, "sheetId")
        if sheet_id is None or not sheet_id.isdigit():
            return None
        for entry in catalog.entries:
            if _stem_number(entry.name) == int(sheet_id):
                return entry
        return None
    return None


def _default_entry(archive: XlsxArchive, catalog: SheetCatalog) -> SheetEntry:
    for entry in catalog.entries:
        if sheet_has_data(archive, entry.member):
            return entry
    return catalog.entries[0]


def resolve_selection(
    archive: XlsxArchive,
    catalog: SheetCatalog,
    selection: SheetSelection | None,
) -> ResolvedSelection:
    """Bind a caller selection to a catalog entry.

    A sheet identifier is matched by exact name, then as a 1-based index,
    then by looking its name up in the workbook.  With no identifier the
    first sheet holding data is chosen.

    Raises
    ------
    XlsxImportException
        ``E_DATA_BAD_SELECTION`` for an unknown sheet or negative offsets.
    """
    selection = selection or SheetSelection()

    if selection.xoffset < 0 or selection.yoffset < 0:
        raise XlsxImportException(
            code=ErrorCode.E_DATA_BAD_SELECTION,
            message=(
                "Invalid argument for worksheet import: offsets must be "
                f"non-negative (got {selection.xoffset}, {selection.yoffset})"
            ),
            stage="sheets",
        )

    sheet = selection.sheet
    entry: SheetEntry | None = None

    if sheet is None or sheet == "":
        entry = _default_entry(archive, catalog)
    elif isinstance(sheet, int):
        if 1 <= sheet <= len(catalog):
            entry = catalog.entries[sheet - 1]
    else:
        entry = catalog.find(sheet)
        if entry is None and sheet.isdigit():
            i = int(sheet)
            if 1 <= i <= len(catalog):
                entry = catalog.entries[i - 1]
        if entry is None:
            entry = _seek_by_workbook_name(archive, catalog, sheet)

    if entry is None:
        raise XlsxImportException(
            code=ErrorCode.E_DATA_BAD_SELECTION,
            message=f"Invalid argument for worksheet import: no sheet {sheet!r}",
            stage="sheets",
        )

    return ResolvedSelection(
        index=entry.index,
        name=entry.name,
        member=entry.member,
        xoffset=selection.xoffset,
        yoffset=selection.yoffset,
    )

"""Lazily loaded shared-string table.

String-typed cells (``t="s"``) store an integer index into the workbook's
``xl/sharedStrings.xml``.  The table is parsed on the first lookup and
reused for the rest of the import; it is never re-parsed mid-pass.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET

from ingestkit_xlsx.archive import XlsxArchive, get_attr, iter_children, local_name
from ingestkit_xlsx.errors import ErrorCode, XlsxImportException

logger = logging.getLogger("ingestkit_xlsx")

SHARED_STRINGS_MEMBER = "xl/sharedStrings.xml"


def entry_text(si: ET.Element) -> str:
    """Concatenate the text runs of one ``<si>`` (or ``<is>``) entry.

    Plain entries hold a single ``<t>``; rich-text entries hold ``<r>``
    runs each with a ``<t>``.  Phonetic ``<rPh>`` runs are skipped.
    """
    parts: list[str] = []
    for child in si:
        name = local_name(child.tag)
        if name == "t":
            parts.append(child.text or "")
        elif name == "r":
            for t in iter_children(child, "t"):
                parts.append(t.text or "")
    return "".join(parts)


class SharedStringTable:
    """Index-addressable string pool, loaded at most once.

    Parameters
    ----------
    archive:
        The extracted archive holding the table.
    member:
        Archive member name of the table.
    """

    def __init__(
        self, archive: XlsxArchive, member: str = SHARED_STRINGS_MEMBER
    ) -> None:
        self._archive = archive
        self._member = member
        self._strings: list[str] | None = None

    @property
    def loaded(self) -> bool:
        return self._strings is not None

    def __len__(self) -> int:
        return len(self._strings) if self._strings is not None else 0

    def load(self) -> None:
        """Parse the table.  A no-op once loaded.

        Raises
        ------
        XlsxImportException
            ``E_DATA_SHARED_STRING`` if the declared count is missing or
            invalid, or fewer entries than declared are present.  Archive
            errors propagate from :meth:`XlsxArchive.parse_member`.
        """
        if self._strings is not None:
            return

        root = self._archive.parse_member(self._member, "sst")

        declared = get_attr(root, "uniqueCount")
        if declared is None:
            declared = get_attr(root, "count")
        if declared is None:
            raise XlsxImportException(
                code=ErrorCode.E_DATA_SHARED_STRING,
                message="Shared string table does not declare a count",
                stage="shared_strings",
            )
        try:
            n = int(declared)
        except ValueError:
            n = 0
        if n <= 0:
            raise XlsxImportException(
                code=ErrorCode.E_DATA_SHARED_STRING,
                message=f"Invalid shared string count: {declared!r}",
                stage="shared_strings",
            )

        strings: list[str] = []
        for si in iter_children(root, "si"):
            strings.append(entry_text(si))
            if len(strings) == n:
                break

        if len(strings) < n:
            raise XlsxImportException(
                code=ErrorCode.E_DATA_SHARED_STRING,
                message=(
                    f"Expected {n} shared strings but only found {len(strings)}"
                ),
                stage="shared_strings",
            )

        self._strings = strings
        logger.debug("ingestkit_xlsx | loaded %d shared strings", n)

    def lookup(self, index: str | int) -> str:
        """Return the string at *index*, loading the table on first use.

        Raises
        ------
        XlsxImportException
            ``E_DATA_SHARED_STRING`` if *index* is not an integer or lies
            outside the table.
        """
        self.load()
        assert self._strings is not None

        try:
            i = int(index)
        except (TypeError, ValueError) as exc:
            raise XlsxImportException(
                code=ErrorCode.E_DATA_SHARED_STRING,
                message=f"Invalid shared string index: {index!r}",
                stage="shared_strings",
            ) from exc

        if i < 0 or i >= len(self._strings):
            raise XlsxImportException(
                code=ErrorCode.E_DATA_SHARED_STRING,
                message=(
                    f"Shared string index {i} out of range "
                    f"(table holds {len(self._strings)})"
                ),
                stage="shared_strings",
            )
        return self._strings[i]

"""Archive and XML access layer.

An .xlsx file is a ZIP container.  :func:`open_archive` extracts it to a
scratch directory for the duration of a ``with`` block and removes the
directory on every exit path.  :class:`XlsxArchive` exposes the extracted
members and parses a named XML member, validating its root element.

Element and attribute names are compared by local name so that both the
transitional and strict SpreadsheetML namespaces are accepted.
"""

from __future__ import annotations

import logging
import tempfile
import xml.etree.ElementTree as ET
import zipfile
import zlib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath

from ingestkit_xlsx.errors import ErrorCode, XlsxImportException

logger = logging.getLogger("ingestkit_xlsx")


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------


def local_name(tag: str) -> str:
    """Remove the namespace URI prefix from a tag or attribute name."""
    if tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag


def iter_children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    """Yield the direct children of *element* whose local name is *name*."""
    for child in element:
        if local_name(child.tag) == name:
            yield child


def find_child(element: ET.Element, name: str) -> ET.Element | None:
    return next(iter_children(element, name), None)


def get_attr(element: ET.Element, name: str) -> str | None:
    """Return attribute *name*, matching namespaced attributes by local name."""
    value = element.get(name)
    if value is not None:
        return value
    for key, val in element.attrib.items():
        if key.startswith("{") and local_name(key) == name:
            return val
    return None


def is_safe_member_name(name: str) -> bool:
    """Return False for absolute member paths or ``..`` components."""
    if name.startswith(("/", "\\")) or (len(name) > 1 and name[1] == ":"):
        return False
    return ".." not in PurePosixPath(name.replace("\\", "/")).parts


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------


class XlsxArchive:
    """Read access to the members of an extracted .xlsx archive.

    The most recently parsed member is kept so that probing a worksheet
    for rows and then importing it parses the document once.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self._last: tuple[str, ET.Element] | None = None

    def has_member(self, name: str) -> bool:
        return (self.root / name).is_file()

    def list_members(self, directory: str) -> list[str]:
        """Return the file names directly inside *directory*, sorted."""
        path = self.root / directory
        if not path.is_dir():
            return []
        return sorted(p.name for p in path.iterdir() if p.is_file())

    def _load(self, name: str) -> ET.Element:
        path = self.root / name
        if not path.is_file():
            raise XlsxImportException(
                code=ErrorCode.E_ARCHIVE_MEMBER_MISSING,
                message=f"Archive member not found: {name}",
                stage="archive",
            )

        raw = path.read_bytes()
        if b"<!ENTITY" in raw.upper():
            raise XlsxImportException(
                code=ErrorCode.E_SECURITY_ENTITY_DECLARATION,
                message=f"Archive member {name} contains an <!ENTITY declaration",
                stage="archive",
            )

        try:
            return ET.fromstring(raw)  # noqa: S314
        except (ET.ParseError, LookupError, ValueError) as exc:
            raise XlsxImportException(
                code=ErrorCode.E_PARSE_CORRUPT,
                message=f"Invalid XML in {name}: {exc}",
                stage="archive",
            ) from exc

    def parse_member(self, name: str, root_name: str) -> ET.Element:
        """Parse XML member *name* and check its root element is *root_name*.

        Raises
        ------
        XlsxImportException
            ``E_ARCHIVE_MEMBER_MISSING`` if the member is absent,
            ``E_SECURITY_ENTITY_DECLARATION`` if it declares entities,
            ``E_PARSE_CORRUPT`` if it is not well-formed XML, and
            ``E_ARCHIVE_BAD_ROOT`` on a root element mismatch.
        """
        if self._last is not None and self._last[0] == name:
            root = self._last[1]
        else:
            root = self._load(name)
            self._last = (name, root)

        if local_name(root.tag) != root_name:
            raise XlsxImportException(
                code=ErrorCode.E_ARCHIVE_BAD_ROOT,
                message=(
                    f"Expected root element <{root_name}> in {name}, "
                    f"found <{local_name(root.tag)}>"
                ),
                stage="archive",
            )
        return root


def _extract(zf: zipfile.ZipFile, dest: str) -> int:
    count = 0
    for info in zf.infolist():
        if not is_safe_member_name(info.filename):
            raise XlsxImportException(
                code=ErrorCode.E_SECURITY_UNSAFE_MEMBER,
                message=f"Unsafe archive member path: {info.filename!r}",
                stage="archive",
            )
        zf.extract(info, dest)
        count += 1
    return count


@contextmanager
def open_archive(file_path: str) -> Iterator[XlsxArchive]:
    """Extract *file_path* to a scratch directory and yield an archive view.

    The scratch directory is removed when the ``with`` block exits, whether
    normally or by exception.

    Raises
    ------
    XlsxImportException
        ``E_ARCHIVE_UNREADABLE`` if the file is not a readable ZIP archive.
    """
    try:
        zf = zipfile.ZipFile(file_path)
    except (zipfile.BadZipFile, OSError) as exc:
        raise XlsxImportException(
            code=ErrorCode.E_ARCHIVE_UNREADABLE,
            message=f"Not a readable .xlsx archive: {exc}",
            stage="archive",
        ) from exc

    with zf, tempfile.TemporaryDirectory(prefix="ingestkit_xlsx_") as scratch:
        try:
            count = _extract(zf, scratch)
        except (
            zipfile.BadZipFile,
            zlib.error,
            OSError,
            EOFError,
            NotImplementedError,
            RuntimeError,
        ) as exc:
            raise XlsxImportException(
                code=ErrorCode.E_ARCHIVE_UNREADABLE,
                message=f"Failed to extract archive: {exc}",
                stage="archive",
            ) from exc
        logger.debug(
            "ingestkit_xlsx | extracted %d members to %s", count, scratch
        )
        yield XlsxArchive(Path(scratch))

"""Deterministic ingest-key computation for deduplication.

:func:`compute_ingest_key` produces an :class:`IngestKey` from a workbook
on disk plus the worksheet selection being imported.  Identical file
content, parser version, tenant and selection always yield the same
:pyattr:`IngestKey.key` digest.

The package **provides** the key but does **not** enforce any
deduplication policy -- that responsibility belongs to the caller.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from pydantic import BaseModel

from ingestkit_xlsx.models import SheetSelection


class IngestKey(BaseModel):
    """Content hash, source, parser version, selection and tenant."""

    content_hash: str
    source_uri: str
    parser_version: str
    selection: str = ""
    tenant_id: str | None = None

    @property
    def key(self) -> str:
        """Deterministic string key for dedup lookups."""
        parts = [self.content_hash, self.source_uri, self.parser_version]
        if self.selection:
            parts.append(self.selection)
        if self.tenant_id:
            parts.append(self.tenant_id)
        return hashlib.sha256("|".join(parts).encode()).hexdigest()


def _selection_token(selection: SheetSelection | None) -> str:
    if selection is None:
        return ""
    sheet = "" if selection.sheet is None else str(selection.sheet)
    return f"{sheet}@{selection.xoffset},{selection.yoffset}"


def compute_ingest_key(
    file_path: str,
    parser_version: str,
    tenant_id: str | None = None,
    source_uri: str | None = None,
    selection: SheetSelection | None = None,
) -> IngestKey:
    """Compute a deterministic ingest key for deduplication.

    Parameters
    ----------
    file_path:
        Path to the workbook to hash.
    parser_version:
        Parser version string (e.g. ``"ingestkit_xlsx:1.0.0"``).
    tenant_id:
        Optional tenant identifier for multi-tenant scenarios.
    source_uri:
        Optional override for the source URI stored in the key.  When
        *None*, the canonical absolute POSIX path of *file_path* is used.
    selection:
        The requested sheet and window origin; different windows of the
        same workbook produce different keys.

    Raises
    ------
    FileNotFoundError
        If *file_path* does not exist.
    """
    content_hash = hashlib.sha256(Path(file_path).read_bytes()).hexdigest()

    if source_uri is None:
        source_uri = Path(file_path).resolve().as_posix()

    return IngestKey(
        content_hash=content_hash,
        source_uri=source_uri,
        parser_version=parser_version,
        selection=_selection_token(selection),
        tenant_id=tenant_id,
    )

"""Pydantic models and enumerations for the ingestkit-xlsx package.

Contains the import flag set, the running bounding box, the sheet catalog
and selection types, the typed pass results, and the two result models:
``ImportOutcome`` (core importer) and ``ImportResult`` (router).
"""

from __future__ import annotations

from enum import IntFlag

from pydantic import BaseModel, ConfigDict

from ingestkit_xlsx.dataset import Dataset, DateFrequency
from ingestkit_xlsx.errors import IngestError


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ImportFlags(IntFlag):
    """Structural classification of the reading window.

    ``TOP_LEFT_EMPTY`` starts set and is cleared once the corner cell is
    seen to hold anything.  ``AUTO_VARNAMES`` means row 1 of the window is
    data, so names must be synthesized.  ``OBS_LABELS`` means column 1 of
    the window holds observation labels.
    """

    NONE = 0
    TOP_LEFT_EMPTY = 1
    AUTO_VARNAMES = 2
    OBS_LABELS = 4


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------


class BoundingBox(BaseModel):
    """Maximal 1-based (row, column) reached by occupied cells."""

    maxrow: int = 0
    maxcol: int = 0

    def extend(self, row: int, col: int) -> None:
        if row > self.maxrow:
            self.maxrow = row
        if col > self.maxcol:
            self.maxcol = col


# ---------------------------------------------------------------------------
# Sheet directory
# ---------------------------------------------------------------------------


class SheetEntry(BaseModel):
    """One worksheet: logical index, display name, physical archive member."""

    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    member: str
    sheet_id: int | None = None


class SheetCatalog(BaseModel):
    """Ordered, immutable list of the worksheets available for import."""

    model_config = ConfigDict(frozen=True)

    entries: tuple[SheetEntry, ...]
    from_workbook: bool = False
    date1904: bool = False

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.entries]

    def __len__(self) -> int:
        return len(self.entries)

    def find(self, name: str) -> SheetEntry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None


class SheetSelection(BaseModel):
    """Caller-supplied selection: sheet identifier plus window origin.

    ``sheet`` may be a sheet name, a 1-based index (int or integer string),
    or None for the default sheet.
    """

    sheet: str | int | None = None
    xoffset: int = 0
    yoffset: int = 0


class ResolvedSelection(BaseModel):
    """A selection bound to a concrete catalog entry."""

    index: int
    name: str
    member: str
    xoffset: int = 0
    yoffset: int = 0

    def record_params(self) -> tuple[int, int, int]:
        """Return ``(sheet, xoffset, yoffset)`` with a 1-based sheet index."""
        return self.index + 1, self.xoffset, self.yoffset


# ---------------------------------------------------------------------------
# Stage Artifacts
# ---------------------------------------------------------------------------


class ScanResult(BaseModel):
    """Typed output of the first worksheet pass."""

    flags: int
    box: BoundingBox
    cells_seen: int = 0
    strings_loaded: int = 0


class FillResult(BaseModel):
    """Typed output of the second worksheet pass."""

    cells_written: int = 0
    numeric_labels: int = 0
    formula_labels: int = 0

    @property
    def try_dates(self) -> bool:
        return self.numeric_labels > 0


# ---------------------------------------------------------------------------
# Result Models
# ---------------------------------------------------------------------------


class ImportOutcome(BaseModel):
    """Result of a successful :meth:`XlsxImporter.import_file` call."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    dataset: Dataset
    selection: ResolvedSelection
    catalog: SheetCatalog
    flags: int
    box: BoundingBox
    frequency: DateFrequency | None = None
    interactive: bool = False
    notes: list[str] = []
    warnings: list[IngestError] = []


class ImportResult(BaseModel):
    """Final result of .xlsx import via ``XlsxRouter.process()``."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    file_path: str
    ingest_key: str
    ingest_run_id: str
    tenant_id: str | None = None
    dataset: Dataset | None = None
    selection: ResolvedSelection | None = None
    sheet_count: int = 0
    variable_count: int = 0
    observation_count: int = 0
    frequency: DateFrequency | None = None
    errors: list[str] = []
    warnings: list[str] = []
    error_details: list[IngestError] = []
    notes: list[str] = []
    processing_time_seconds: float = 0.0

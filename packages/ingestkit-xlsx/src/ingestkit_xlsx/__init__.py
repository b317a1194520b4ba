"""ingestkit-xlsx -- .xlsx worksheet importer for statistical datasets.

Public API re-exports for convenient access.
"""

from ingestkit_xlsx.config import XlsxImportConfig
from ingestkit_xlsx.dataset import Dataset, DatasetProvenance, DateFrequency, MergeMode, merge_or_replace
from ingestkit_xlsx.errors import ErrorCategory, ErrorCode, IngestError, XlsxImportException
from ingestkit_xlsx.idempotency import IngestKey, compute_ingest_key
from ingestkit_xlsx.importer import XlsxImporter
from ingestkit_xlsx.models import (
    ImportFlags,
    ImportOutcome,
    ImportResult,
    ResolvedSelection,
    SheetCatalog,
    SheetSelection,
)
from ingestkit_xlsx.protocols import SheetSelector
from ingestkit_xlsx.router import XlsxRouter
from ingestkit_xlsx.security import XlsxSecurityScanner

__all__ = [
    "XlsxRouter",
    "XlsxImporter",
    "XlsxImportConfig",
    "XlsxSecurityScanner",
    "Dataset",
    "DatasetProvenance",
    "DateFrequency",
    "MergeMode",
    "merge_or_replace",
    "ErrorCategory",
    "ErrorCode",
    "IngestError",
    "XlsxImportException",
    "IngestKey",
    "compute_ingest_key",
    "ImportFlags",
    "ImportOutcome",
    "ImportResult",
    "ResolvedSelection",
    "SheetCatalog",
    "SheetSelection",
    "SheetSelector",
]

"""Collaborator protocols for the ingestkit-xlsx importer.

The protocol is ``@runtime_checkable`` so callers can optionally verify
conformance with ``isinstance`` checks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ingestkit_xlsx.models import SheetCatalog, SheetSelection


@runtime_checkable
class SheetSelector(Protocol):
    """Interface for interactive sheet/window choosers (e.g. a dialog)."""

    def select(
        self, catalog: SheetCatalog, default: SheetSelection
    ) -> SheetSelection | None:
        """Return the chosen sheet and window origin, or None to cancel."""
        ...

"""Tests for ingestkit_xlsx.builder."""

from __future__ import annotations

import pytest

from ingestkit_xlsx.builder import build_dataset, dataset_dimensions
from ingestkit_xlsx.config import XlsxImportConfig
from ingestkit_xlsx.errors import ErrorCode, XlsxImportException
from ingestkit_xlsx.models import BoundingBox, ImportFlags, ResolvedSelection, ScanResult


def _scan(flags: int, maxrow: int, maxcol: int) -> ScanResult:
    return ScanResult(flags=int(flags), box=BoundingBox(maxrow=maxrow, maxcol=maxcol))


def _selection(x: int = 0, y: int = 0) -> ResolvedSelection:
    return ResolvedSelection(index=0, name="Sheet1", member="m", xoffset=x, yoffset=y)


class TestDimensions:
    def test_empty_corner_forces_labels(self):
        flags, v, n = dataset_dimensions(
            _scan(ImportFlags.TOP_LEFT_EMPTY, 3, 3), _selection()
        )
        assert flags & ImportFlags.OBS_LABELS
        assert (v, n) == (2, 2)

    def test_auto_varnames_keeps_first_row(self):
        _, v, n = dataset_dimensions(_scan(ImportFlags.AUTO_VARNAMES, 4, 2), _selection())
        assert (v, n) == (2, 4)

    def test_offsets(self):
        _, v, n = dataset_dimensions(
            _scan(ImportFlags.OBS_LABELS, 10, 6), _selection(x=2, y=3)
        )
        assert (v, n) == (3, 6)


class TestBuildDataset:
    def test_auto_names(self, default_config):
        ds, flags = build_dataset(
            _scan(ImportFlags.AUTO_VARNAMES, 2, 3), _selection(), default_config
        )
        assert ds.varname == ["const", "v1", "v2", "v3"]
        assert ds.n == 2
        assert not ds.has_labels
        assert flags == ImportFlags.AUTO_VARNAMES

    def test_header_names_left_blank(self, default_config):
        ds, _ = build_dataset(_scan(ImportFlags.OBS_LABELS, 3, 3), _selection(), default_config)
        assert ds.varname == ["const", "", ""]
        assert ds.S == ["", ""]

    def test_capacities_from_config(self):
        config = XlsxImportConfig(varname_capacity=8, label_capacity=4)
        ds, _ = build_dataset(_scan(0, 2, 1), _selection(), config)
        assert (ds.vnamelen, ds.obslen) == (8, 4)

    @pytest.mark.parametrize(
        "flags, maxrow, maxcol",
        [
            (ImportFlags.OBS_LABELS, 3, 1),
            (0, 1, 3),
            (ImportFlags.TOP_LEFT_EMPTY, 0, 0),
        ],
    )
    def test_no_data(self, default_config, flags, maxrow, maxcol):
        with pytest.raises(XlsxImportException) as exc_info:
            build_dataset(_scan(flags, maxrow, maxcol), _selection(), default_config)
        assert exc_info.value.code == ErrorCode.E_DATA_NO_DATA

    def test_window_past_data(self, default_config):
        with pytest.raises(XlsxImportException) as exc_info:
            build_dataset(
                _scan(ImportFlags.AUTO_VARNAMES, 3, 3), _selection(x=5), default_config
            )
        assert exc_info.value.code == ErrorCode.E_DATA_NO_DATA

    def test_cell_limit(self):
        config = XlsxImportConfig(max_cells=10)
        with pytest.raises(XlsxImportException) as exc_info:
            build_dataset(_scan(ImportFlags.AUTO_VARNAMES, 5, 5), _selection(), config)
        assert exc_info.value.code == ErrorCode.E_ALLOC

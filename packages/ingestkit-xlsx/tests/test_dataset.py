"""Tests for ingestkit_xlsx.dataset."""

from __future__ import annotations

import numpy as np
import pytest

from ingestkit_xlsx.dataset import Dataset, DateFrequency, MergeMode, merge_or_replace
from ingestkit_xlsx.errors import ErrorCode, XlsxImportException


def _dataset(names: list[str], columns: list[list[float]], labels=None) -> Dataset:
    n = len(columns[0]) if columns else 0
    ds = Dataset(len(names) + 1, n, labels=labels is not None)
    for i, (name, values) in enumerate(zip(names, columns), start=1):
        ds.set_varname(i, name)
        ds.Z[i] = values
    if labels is not None:
        for t, label in enumerate(labels):
            ds.set_label(t, label)
    return ds


class TestConstruction:
    def test_constant_slot(self):
        ds = Dataset(3, 4)
        assert ds.varname == ["const", "", ""]
        assert np.all(ds.Z[0] == 1.0)
        assert np.isnan(ds.Z[1:]).all()
        assert ds.S is None

    def test_labels_allocated(self):
        ds = Dataset(2, 3, labels=True)
        assert ds.S == ["", "", ""]
        assert ds.has_labels

    def test_invalid_dimensions(self):
        with pytest.raises(ValueError):
            Dataset(0, 3)

    def test_empty(self):
        assert Dataset.empty().is_empty
        assert not Dataset(2, 1).is_empty


class TestFieldCapacity:
    def test_varname_truncated(self):
        ds = Dataset(2, 1, vnamelen=8)
        assert ds.set_varname(1, "abcdefghijk") == "abcdefg"

    def test_label_truncated(self):
        ds = Dataset(2, 1, labels=True, obslen=5)
        assert ds.set_label(0, "2000-01-01") == "2000"

    def test_label_without_label_column(self):
        with pytest.raises(ValueError):
            Dataset(2, 1).set_label(0, "x")


class TestPrune:
    def test_drops_all_missing_columns(self):
        ds = _dataset(["a", "b", "c"], [[1.0, 2.0], [np.nan, np.nan], [np.nan, 3.0]])
        assert ds.prune_empty_columns() == ["b"]
        assert ds.varname == ["const", "a", "c"]
        assert ds.Z.shape == (3, 2)
        assert ds.Z[2, 1] == 3.0

    def test_nothing_to_drop(self):
        ds = _dataset(["a"], [[1.0]])
        assert ds.prune_empty_columns() == []
        assert ds.v == 2


class TestMerge:
    """merge_or_replace semantics."""

    def test_no_target_returns_new(self):
        new = _dataset(["a"], [[1.0]])
        assert merge_or_replace(None, new) is new

    def test_empty_target_absorbs(self):
        target = Dataset.empty()
        new = _dataset(["a"], [[1.0, 2.0]], labels=["x", "y"])
        result = merge_or_replace(target, new)
        assert result is target
        assert target.varname == ["const", "a"]
        assert target.S == ["x", "y"]

    def test_replace_mode(self):
        target = _dataset(["old"], [[9.0, 9.0, 9.0]])
        new = _dataset(["a"], [[1.0]])
        merge_or_replace(target, new, MergeMode.REPLACE)
        assert target.varname == ["const", "a"]
        assert target.n == 1

    def test_append_variables(self):
        target = _dataset(["a"], [[1.0, 2.0]], labels=["2000", "2001"])
        new = _dataset(["b", "a"], [[3.0, 4.0], [5.0, 6.0]], labels=["2000", "2001"])
        merge_or_replace(target, new)
        assert target.varname == ["const", "a", "b"]
        np.testing.assert_array_equal(target.series("a"), [5.0, 6.0])
        np.testing.assert_array_equal(target.series("b"), [3.0, 4.0])

    def test_append_variables_label_mismatch(self):
        target = _dataset(["a"], [[1.0, 2.0]], labels=["2000", "2001"])
        new = _dataset(["b"], [[3.0, 4.0]], labels=["1990", "1991"])
        with pytest.raises(XlsxImportException) as exc_info:
            merge_or_replace(target, new)
        assert exc_info.value.code == ErrorCode.E_DATA_MERGE_CONFLICT
        assert target.varname == ["const", "a"]

    def test_append_observations(self):
        target = _dataset(["a", "b"], [[1.0], [2.0]], labels=["2000"])
        new = _dataset(["b", "a"], [[4.0, 6.0], [3.0, 5.0]], labels=["2001", "2002"])
        target.frequency = new.frequency = DateFrequency.ANNUAL
        merge_or_replace(target, new)
        assert target.n == 3
        np.testing.assert_array_equal(target.series("a"), [1.0, 3.0, 5.0])
        np.testing.assert_array_equal(target.series("b"), [2.0, 4.0, 6.0])
        assert target.S == ["2000", "2001", "2002"]
        assert target.frequency == DateFrequency.ANNUAL

    def test_incompatible(self):
        target = _dataset(["a"], [[1.0]])
        new = _dataset(["b"], [[1.0, 2.0]])
        with pytest.raises(XlsxImportException) as exc_info:
            merge_or_replace(target, new)
        assert exc_info.value.code == ErrorCode.E_DATA_MERGE_CONFLICT


class TestExport:
    def test_to_dataframe(self):
        ds = _dataset(["gdp", "cpi"], [[100.0, 105.0], [50.0, 52.0]], labels=["2000", "2001"])
        df = ds.to_dataframe()
        assert list(df.columns) == ["gdp", "cpi"]
        assert list(df.index) == ["2000", "2001"]
        assert df.index.name == "obs"
        assert df.loc["2001", "cpi"] == 52.0

    def test_copy_and_equals(self):
        ds = _dataset(["a"], [[1.0, np.nan]])
        clone = ds.copy()
        assert clone.equals(ds)
        clone.Z[1, 0] = 2.0
        assert not clone.equals(ds)

"""Rectangular statistical dataset produced by the importer.

A :class:`Dataset` holds ``v`` variable slots over ``n`` observations as a
dense ``float64`` matrix ``Z`` of shape ``(v, n)``.  Slot 0 is reserved for
the constant (all ones) so that real variables start at index 1.  Missing
values are ``NaN``.  Optional observation labels live in ``S``.

Name and label fields have a fixed capacity (``vnamelen`` / ``obslen``,
including the terminator slot of the on-disk formats), so a stored name
holds at most ``vnamelen - 1`` characters.
"""

from __future__ import annotations

from enum import Enum

import numpy as np
import pandas as pd
from pydantic import BaseModel

from ingestkit_xlsx.errors import ErrorCode, XlsxImportException


class DateFrequency(str, Enum):
    """Reporting frequency inferred from observation labels."""

    ANNUAL = "annual"
    QUARTERLY = "quarterly"
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


class MergeMode(str, Enum):
    """How a freshly imported dataset is combined with an existing one."""

    APPEND = "append"
    REPLACE = "replace"


class DatasetProvenance(BaseModel):
    """Where (part of) a dataset came from."""

    source_file: str
    source_format: str = "xlsx"
    sheet_name: str | None = None
    ingest_key: str | None = None


class Dataset:
    """Named numeric series over an ordered set of observations.

    Parameters
    ----------
    nvars:
        Number of variable slots, including the constant in slot 0.
    nobs:
        Number of observations.
    labels:
        Allocate a per-observation label column.
    vnamelen, obslen:
        Fixed capacities of the name and label fields.
    """

    VNAMELEN = 32
    OBSLEN = 16

    def __init__(
        self,
        nvars: int,
        nobs: int,
        labels: bool = False,
        *,
        vnamelen: int = VNAMELEN,
        obslen: int = OBSLEN,
    ) -> None:
        if nvars < 1 or nobs < 0:
            raise ValueError(f"Invalid dataset dimensions: v={nvars}, n={nobs}")
        self.vnamelen = vnamelen
        self.obslen = obslen
        self.Z = np.full((nvars, nobs), np.nan, dtype=np.float64)
        self.Z[0, :] = 1.0
        self.varname: list[str] = ["const"] + [""] * (nvars - 1)
        self.S: list[str] | None = [""] * nobs if labels else None
        self.frequency: DateFrequency | None = None
        self.provenance: list[DatasetProvenance] = []

    @classmethod
    def empty(cls) -> Dataset:
        return cls(1, 0)

    # ------------------------------------------------------------------
    # Shape and lookup
    # ------------------------------------------------------------------

    @property
    def v(self) -> int:
        return self.Z.shape[0]

    @property
    def n(self) -> int:
        return self.Z.shape[1]

    @property
    def has_labels(self) -> bool:
        return self.S is not None

    @property
    def is_empty(self) -> bool:
        return self.v <= 1 or self.n == 0

    def varindex(self, name: str) -> int | None:
        for i in range(1, self.v):
            if self.varname[i] == name:
                return i
        return None

    def series(self, name: str) -> np.ndarray:
        i = self.varindex(name)
        if i is None:
            raise KeyError(name)
        return self.Z[i]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def set_varname(self, i: int, name: str) -> str:
        """Store *name* in slot *i*, truncated to the field capacity."""
        self.varname[i] = name[: self.vnamelen - 1]
        return self.varname[i]

    def set_label(self, t: int, label: str) -> str:
        """Store *label* for observation *t*, truncated to the field capacity."""
        if self.S is None:
            raise ValueError("Dataset has no observation labels")
        self.S[t] = label[: self.obslen - 1]
        return self.S[t]

    def column_is_empty(self, i: int) -> bool:
        return bool(np.isnan(self.Z[i]).all())

    def prune_empty_columns(self) -> list[str]:
        """Drop variables (index >= 1) whose every value is missing.

        Returns the names of the dropped variables.
        """
        keep = [0] + [i for i in range(1, self.v) if not self.column_is_empty(i)]
        dropped = [self.varname[i] for i in range(1, self.v) if i not in keep]
        if dropped:
            self.Z = self.Z[keep, :]
            self.varname = [self.varname[i] for i in keep]
        return dropped

    def absorb(self, other: Dataset) -> None:
        """Take over the storage of *other*, discarding current contents."""
        self.vnamelen = other.vnamelen
        self.obslen = other.obslen
        self.Z = other.Z
        self.varname = other.varname
        self.S = other.S
        self.frequency = other.frequency
        self.provenance = list(other.provenance)

    def copy(self) -> Dataset:
        out = Dataset(1, 0, vnamelen=self.vnamelen, obslen=self.obslen)
        out.Z = self.Z.copy()
        out.varname = list(self.varname)
        out.S = list(self.S) if self.S is not None else None
        out.frequency = self.frequency
        out.provenance = [p.model_copy() for p in self.provenance]
        return out

    def equals(self, other: Dataset) -> bool:
        """Exact equality of shape, names, values (NaN == NaN) and labels."""
        return (
            self.Z.shape == other.Z.shape
            and self.varname == other.varname
            and self.S == other.S
            and self.frequency == other.frequency
            and bool(np.array_equal(self.Z, other.Z, equal_nan=True))
        )

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_dataframe(self) -> pd.DataFrame:
        """Return the real variables as a DataFrame indexed by label."""
        index = pd.Index(self.S, name="obs") if self.S is not None else None
        return pd.DataFrame(
            self.Z[1:].T.copy(),
            columns=self.varname[1:],
            index=index,
        )

    def __repr__(self) -> str:
        return (
            f"Dataset(v={self.v}, n={self.n}, labels={self.has_labels}, "
            f"vars={self.varname[1:]!r})"
        )


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def _merge_error(message: str) -> XlsxImportException:
    return XlsxImportException(
        code=ErrorCode.E_DATA_MERGE_CONFLICT,
        message=message,
        stage="merge",
    )


def _add_variables(target: Dataset, new: Dataset) -> None:
    if target.S is not None and new.S is not None and target.S != new.S:
        raise _merge_error("Observation labels of the imported data do not match")

    rows: list[np.ndarray] = []
    names: list[str] = []
    for i in range(1, new.v):
        j = target.varindex(new.varname[i])
        if j is not None:
            target.Z[j] = new.Z[i]
        else:
            rows.append(new.Z[i])
            names.append(new.varname[i])

    if rows:
        target.Z = np.vstack([target.Z, np.array(rows)])
        target.varname = target.varname + names
    if target.S is None and new.S is not None:
        target.S = list(new.S)
    if target.frequency is None:
        target.frequency = new.frequency


def _append_observations(target: Dataset, new: Dataset) -> None:
    if (target.S is None) != (new.S is None):
        raise _merge_error(
            "Cannot append observations: only one dataset has observation labels"
        )
    order = [0] + [new.varindex(name) for name in target.varname[1:]]
    target.Z = np.hstack([target.Z, new.Z[order, :]])
    if target.S is not None and new.S is not None:
        target.S = target.S + list(new.S)
    if target.frequency != new.frequency:
        target.frequency = None


def merge_or_replace(
    target: Dataset | None, new: Dataset, mode: MergeMode = MergeMode.APPEND
) -> Dataset:
    """Combine *new* into *target* and return the resulting dataset.

    With no (or an empty) target, *new* becomes the result.  ``REPLACE``
    swaps the target's contents wholesale.  ``APPEND`` adds variables when
    the observation counts agree, or appends observations when both
    datasets carry the same variable names.

    Raises
    ------
    XlsxImportException
        ``E_DATA_MERGE_CONFLICT`` if the datasets cannot be combined.
    """
    if target is None:
        return new

    if target.is_empty or mode == MergeMode.REPLACE:
        target.absorb(new)
        return target

    if new.n == target.n:
        _add_variables(target, new)
    elif sorted(new.varname[1:]) == sorted(target.varname[1:]):
        _append_observations(target, new)
    else:
        raise _merge_error(
            f"Cannot merge: existing dataset has {target.n} observations and "
            f"variables {target.varname[1:]}, import has {new.n} observations "
            f"and variables {new.varname[1:]}"
        )
    return target

"""Date heuristics for the observation-label column.

When the label column held numbers, those numbers may be spreadsheet
serial dates.  :func:`dates_check` decides whether the integer labels step
through time at a plausible reporting frequency; :func:`rewrite_date_labels`
then turns each serial into a calendar-date string.

:func:`detect_time_series` recognizes labels that already read as periods
(consecutive years, ``YYYY:Q`` quarters, ``YYYY:MM`` months).
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta

from ingestkit_xlsx.dataset import Dataset, DateFrequency

logger = logging.getLogger("ingestkit_xlsx")

_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$")
_QUARTER_RE = re.compile(r"^(\d{4})[:Qq.]([1-4])$")
_MONTH_RE = re.compile(r"^(\d{4})[:Mm](\d{2})$")

# (frequency, min gap, max gap) in days; first match wins.
_FREQUENCY_RULES: tuple[tuple[DateFrequency, int, int], ...] = (
    (DateFrequency.ANNUAL, 364, 365),
    (DateFrequency.QUARTERLY, 90, 92),
    (DateFrequency.MONTHLY, 28, 31),
    (DateFrequency.WEEKLY, 7, 7),
)

# Labels wholly inside this range read as calendar years, not day serials.
_YEAR_RANGE = (1000, 2999)

_EPOCH_1900 = date(1899, 12, 31)
_EPOCH_1904 = date(1904, 1, 1)


def is_integer_string(s: str | None) -> bool:
    return s is not None and bool(_INTEGER_RE.match(s))


def infer_frequency(dmin: int, dmax: int) -> DateFrequency | None:
    """Map the range of day gaps between labels to a frequency."""
    for freq, lo, hi in _FREQUENCY_RULES:
        if dmin >= lo and dmax <= hi:
            return freq
    if dmin == 1 and dmax <= 5:
        return DateFrequency.DAILY
    return None


def dates_check(labels: list[str]) -> DateFrequency | None:
    """Return the frequency if *labels* plausibly are serial dates.

    Every label must be an integer string and the first must not be the
    literal ``"1"`` (a plain observation counter), and labels that all
    fall in the calendar-year range are left as years.  The gaps between
    successive labels must fall in one of the frequency bands; a sequence
    that runs backwards in time is accepted.
    """
    if not labels or not all(is_integer_string(s) for s in labels):
        return None
    if labels[0].strip() == "1":
        return None

    values = [int(s) for s in labels]
    if all(_YEAR_RANGE[0] <= x <= _YEAR_RANGE[1] for x in values):
        return None

    diffs = [b - a for a, b in zip(values, values[1:])]
    dmin = min(diffs) if diffs else 0
    dmax = max(diffs) if diffs else 0

    if dmax < 0:
        dmin, dmax = -dmax, -dmin

    logger.debug("ingestkit_xlsx | dates_check: dmin=%d, dmax=%d", dmin, dmax)
    return infer_frequency(dmin, dmax)


def excel_serial_to_date(serial: int, date1904: bool = False) -> date:
    """Convert a spreadsheet day serial to a calendar date.

    The 1900 system counts day 1 as 1900-01-01 and includes the fictitious
    1900-02-29 (serial 60), so serials above 59 are shifted back one day.
    The 1904 system counts day 0 as 1904-01-01.
    """
    if date1904:
        return _EPOCH_1904 + timedelta(days=serial)
    if serial > 59:
        serial -= 1
    return _EPOCH_1900 + timedelta(days=serial)


def rewrite_date_labels(
    dataset: Dataset, date1904: bool = False, date_format: str = "%Y-%m-%d"
) -> DateFrequency | None:
    """Rewrite serial-date labels in place as calendar strings.

    Returns the inferred frequency, or None (labels untouched) when the
    labels do not look like dates.
    """
    if dataset.S is None:
        return None

    freq = dates_check(dataset.S)
    if freq is None:
        return None

    try:
        rewritten = [
            excel_serial_to_date(int(s), date1904).strftime(date_format)
            for s in dataset.S
        ]
    except (OverflowError, ValueError) as exc:
        logger.debug("ingestkit_xlsx | date conversion failed: %s", exc)
        return None

    for t, label in enumerate(rewritten):
        dataset.set_label(t, label)
    dataset.frequency = freq
    return freq


def _consecutive(periods: list[int]) -> bool:
    return all(b - a == 1 for a, b in zip(periods, periods[1:]))


def detect_time_series(labels: list[str]) -> DateFrequency | None:
    """Recognize labels that already name consecutive periods."""
    if not labels:
        return None

    if all(s.isdigit() and len(s) == 4 for s in labels):
        years = [int(s) for s in labels]
        if years[0] >= 1000 and _consecutive(years):
            return DateFrequency.ANNUAL
        return None

    quarters = [_QUARTER_RE.match(s) for s in labels]
    if all(quarters):
        periods = [int(m.group(1)) * 4 + int(m.group(2)) - 1 for m in quarters]  # type: ignore[union-attr]
        return DateFrequency.QUARTERLY if _consecutive(periods) else None

    months = [_MONTH_RE.match(s) for s in labels]
    if all(months):
        values = [(int(m.group(1)), int(m.group(2))) for m in months]  # type: ignore[union-attr]
        if not all(1 <= mo <= 12 for _, mo in values):
            return None
        periods = [y * 12 + mo - 1 for y, mo in values]
        return DateFrequency.MONTHLY if _consecutive(periods) else None

    return None

"""Baseline capacity spreadsheets: lookup, parsing and upload storage.

The workbook layout is fixed. Only the first sheet is read:

* row 0, columns 4 onward: member names (blank cells skipped)
* column 0 of the form ``Sprint <name>``: opens the named sprint, e.g.
  ``Sprint 2026_04_01`` or ``Sprint 26_04_01``
* column 1 equal to ``Capacity``: available hours for the open sprint, one
  cell per member column

All other rows are ignored.
"""

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from openpyxl import load_workbook

from jira_capacity.exceptions import BaselineParseError, InvalidUploadError
from jira_capacity.models import BaselineCapacity

logger = logging.getLogger(__name__)

FILENAME_PREFIX = "PI_CAPA_"
ALLOWED_EXTENSION = ".xlsx"

ITERATION_MARKER = "Sprint"
CAPACITY_MARKER = "Capacity"
FIRST_MEMBER_COLUMN = 4
ITERATION_COLUMN = 0
MARKER_COLUMN = 1

SECONDS_PER_HOUR = 3600

_PI_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]*$")
_FULL_YEAR = re.compile(r"^20\d{2}(?=[_\-])")
_ITERATION_LABEL = re.compile(
    rf"^{re.escape(ITERATION_MARKER)}[\s:\-]+([A-Za-z0-9][A-Za-z0-9_\-]*)\s*$"
)
_SEPARATORS = re.compile(r"[_\-\s]")


def is_valid_pi(pi: str | None) -> bool:
    """Whether ``pi`` is safe to embed in a filename."""
    return bool(pi) and bool(_PI_PATTERN.match(pi))


def _year_expanded(pi: str) -> str:
    if re.match(r"^20\d{2}", pi):
        return pi
    return f"20{pi}"


def candidate_filenames(pi: str) -> list[str]:
    """Accepted baseline filenames for ``pi``, most preferred first."""
    expanded = _year_expanded(pi)
    names = [
        f"{FILENAME_PREFIX}{expanded}{ALLOWED_EXTENSION}",
        f"{FILENAME_PREFIX}{pi}{ALLOWED_EXTENSION}",
        f"{FILENAME_PREFIX}{_SEPARATORS.sub('', expanded)}{ALLOWED_EXTENSION}",
    ]
    return list(dict.fromkeys(names))


def canonical_filename(pi: str) -> str:
    """Name an uploaded baseline is stored under."""
    return candidate_filenames(pi)[0]


def find_baseline_file(pi: str, upload_dir: Path) -> Path | None:
    """Return the first existing baseline file for ``pi``, or None."""
    if not is_valid_pi(pi):
        return None
    for name in candidate_filenames(pi):
        path = Path(upload_dir) / name
        if path.is_file():
            return path
    return None


def normalize_iteration(label: str, pi: str | None = None) -> str | None:
    """Turn a sprint label into the iteration name the prober uses.

    ``Sprint 2026_04_01`` becomes ``26_04_01`` for a short PI such as
    ``26_04``; for a full-year PI such as ``2026_04`` the year is kept, and
    ``Sprint 26_04_01`` is widened to ``2026_04_01``. When ``pi`` is given,
    labels naming a sprint of another PI are rejected.

    Returns None if ``label`` is not a sprint label.
    """
    match = _ITERATION_LABEL.match(label.strip())
    if not match:
        return None
    name = match.group(1)

    if pi and _FULL_YEAR.match(pi):
        if not _FULL_YEAR.match(name):
            name = f"20{name}"
    elif _FULL_YEAR.match(name):
        name = name[2:]

    if pi and not name.startswith(f"{pi}_"):
        return None
    return name


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _cell(row: tuple, index: int):
    return row[index] if index < len(row) else None


def parse_baseline(path: Path, pi: str | None = None) -> BaselineCapacity:
    """Parse a baseline workbook.

    Raises:
        BaselineParseError: If the workbook cannot be opened or read
    """
    try:
        wb = load_workbook(filename=path, read_only=True, data_only=True)
    except Exception as e:
        raise BaselineParseError(f"Cannot open baseline workbook {path}: {e}") from e

    try:
        if not wb.worksheets:
            raise BaselineParseError(f"Baseline workbook {path} has no sheets")
        rows = wb.worksheets[0].iter_rows(values_only=True)

        header = next(rows, ())
        roster: list[tuple[int, str]] = []
        for col in range(FIRST_MEMBER_COLUMN, len(header)):
            value = header[col]
            if value is None or not str(value).strip():
                continue
            roster.append((col, str(value).strip()))

        capacity: dict[str, dict[str, int]] = {}
        current: str | None = None

        for row in rows:
            label = _cell(row, ITERATION_COLUMN)
            if isinstance(label, str):
                iteration = normalize_iteration(label, pi)
                if iteration:
                    current = iteration
                    continue

            marker = _cell(row, MARKER_COLUMN)
            if current and isinstance(marker, str) and marker.strip() == CAPACITY_MARKER:
                for col, member in roster:
                    hours = _cell(row, col)
                    if _is_number(hours):
                        capacity.setdefault(member, {})[current] = round(hours * SECONDS_PER_HOUR)
    except BaselineParseError:
        raise
    except Exception as e:
        raise BaselineParseError(f"Cannot read baseline workbook {path}: {e}") from e
    finally:
        wb.close()

    return BaselineCapacity(
        members=[name for _, name in roster],
        capacity=capacity,
        source=Path(path).name,
    )


def load_baseline(pi: str, upload_dir: Path) -> BaselineCapacity | None:
    """Find and parse the baseline for ``pi``.

    Returns None if there is no file or it cannot be parsed; a missing
    baseline never blocks the planned-work half of the report.
    """
    path = find_baseline_file(pi, upload_dir)
    if path is None:
        logger.info("No baseline spreadsheet for PI %s in %s", pi, upload_dir)
        return None

    try:
        baseline = parse_baseline(path, pi)
    except BaselineParseError:
        logger.exception("Ignoring unreadable baseline spreadsheet %s", path)
        return None

    logger.debug("Loaded baseline for %d members from %s", len(baseline.members), path)
    return baseline


def store_baseline(pi: str | None, filename: str | None, stream: BinaryIO | None,
                   upload_dir: Path) -> str:
    """Store an uploaded baseline, replacing any earlier one for ``pi``.

    Returns:
        The stored filename

    Raises:
        InvalidUploadError: If the PI or file is missing, or not an .xlsx file
    """
    if not pi:
        raise InvalidUploadError("PI is required.")
    if not is_valid_pi(pi):
        raise InvalidUploadError(f"Invalid PI: {pi!r}.")
    if not filename or stream is None:
        raise InvalidUploadError("File is required.")
    if Path(filename).suffix.lower() != ALLOWED_EXTENSION:
        raise InvalidUploadError("Only .xlsx files are accepted.")

    upload_dir = Path(upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    target = upload_dir / canonical_filename(pi)

    fd, tmp_name = tempfile.mkstemp(dir=upload_dir, prefix=".upload-", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as tmp:
            shutil.copyfileobj(stream, tmp)
        os.replace(tmp_name, target)
    except Exception:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise

    logger.info("Stored baseline for PI %s as %s", pi, target.name)
    return target.name

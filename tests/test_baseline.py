"""Tests for baseline spreadsheet lookup, parsing and storage."""

import io
from unittest.mock import patch

import pytest
from openpyxl import Workbook

from jira_capacity.baseline import (
    candidate_filenames,
    canonical_filename,
    find_baseline_file,
    is_valid_pi,
    load_baseline,
    normalize_iteration,
    parse_baseline,
    store_baseline,
)
from jira_capacity.exceptions import BaselineParseError, InvalidUploadError


def _write_workbook(path, rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    wb.save(path)
    return path


def _workbook_bytes(rows):
    buffer = io.BytesIO()
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    wb.save(buffer)
    buffer.seek(0)
    return buffer


SAMPLE_ROWS = [
    ["Team", "Type", "", "", "Alice", None, "Bob"],
    ["Sprint 2026_04_01", None, None, None, None, None, None],
    [None, "Holidays", None, None, 8, None, 0],
    [None, "Capacity", None, None, 8, None, 72.5],
    ["Sprint 26_04_02"],
    [None, "Capacity", None, None, 64, None, "n/a"],
    ["Notes", "Other", None, None, 1, None, 1],
]


class TestCandidateFilenames:
    """Tests for baseline filename conventions."""

    def test_short_pi(self):
        assert candidate_filenames("26_04") == [
            "PI_CAPA_2026_04.xlsx",
            "PI_CAPA_26_04.xlsx",
            "PI_CAPA_202604.xlsx",
        ]

    def test_full_year_pi_not_expanded_twice(self):
        assert candidate_filenames("2026_04") == [
            "PI_CAPA_2026_04.xlsx",
            "PI_CAPA_202604.xlsx",
        ]

    def test_canonical_is_year_expanded(self):
        assert canonical_filename("26_04") == "PI_CAPA_2026_04.xlsx"

    def test_rejects_unsafe_pi(self):
        assert is_valid_pi("26_04")
        assert not is_valid_pi("../26_04")
        assert not is_valid_pi("")
        assert not is_valid_pi(None)


class TestFindBaselineFile:
    """Tests for find_baseline_file."""

    def test_prefers_first_convention(self, tmp_path):
        (tmp_path / "PI_CAPA_26_04.xlsx").write_bytes(b"raw")
        (tmp_path / "PI_CAPA_2026_04.xlsx").write_bytes(b"expanded")
        assert find_baseline_file("26_04", tmp_path).name == "PI_CAPA_2026_04.xlsx"

    def test_falls_back_to_stripped_form(self, tmp_path):
        (tmp_path / "PI_CAPA_202604.xlsx").write_bytes(b"x")
        assert find_baseline_file("26_04", tmp_path).name == "PI_CAPA_202604.xlsx"

    def test_returns_none_when_missing(self, tmp_path):
        assert find_baseline_file("26_04", tmp_path) is None


class TestNormalizeIteration:
    """Tests for sprint label normalisation."""

    def test_strips_year_prefix(self):
        assert normalize_iteration("Sprint 2026_04_01") == "26_04_01"

    def test_short_form(self):
        assert normalize_iteration("Sprint 26_04_01") == "26_04_01"

    def test_not_a_sprint_label(self):
        assert normalize_iteration("Notes") is None

    def test_bare_marker(self):
        assert normalize_iteration("Sprint") is None

    def test_marker_needs_separator(self):
        assert normalize_iteration("Sprints") is None
        assert normalize_iteration("Sprint26_04_01") is None

    def test_free_text_after_marker(self):
        assert normalize_iteration("Sprint goal: ship the API") is None

    def test_colon_separator(self):
        assert normalize_iteration("Sprint: 26_04_01") == "26_04_01"

    def test_full_year_pi_keeps_year(self):
        assert normalize_iteration("Sprint 2026_04_01", "2026_04") == "2026_04_01"
        assert normalize_iteration("Sprint 26_04_01", "2026_04") == "2026_04_01"

    def test_short_pi_drops_year(self):
        assert normalize_iteration("Sprint 2026_04_01", "26_04") == "26_04_01"

    def test_rejects_other_pi(self):
        assert normalize_iteration("Sprint goal", "26_04") is None
        assert normalize_iteration("Sprint 26_05_01", "26_04") is None


class TestParseBaseline:
    """Tests for parse_baseline."""

    def test_parses_capacity_rows(self, tmp_path):
        path = _write_workbook(tmp_path / "PI_CAPA_2026_04.xlsx", SAMPLE_ROWS)

        baseline = parse_baseline(path)

        assert baseline.members == ["Alice", "Bob"]
        assert baseline.capacity == {
            "Alice": {"26_04_01": 28800, "26_04_02": 230400},
            "Bob": {"26_04_01": 261000},
        }
        assert baseline.source == "PI_CAPA_2026_04.xlsx"

    def test_eight_hours_is_28800_seconds(self, tmp_path):
        path = _write_workbook(tmp_path / "b.xlsx", [
            [None, None, None, None, "Alice"],
            ["Sprint 26_04_01"],
            [None, "Capacity", None, None, 8],
        ])
        assert parse_baseline(path).get("Alice", "26_04_01") == 28800

    def test_capacity_row_before_any_sprint_is_ignored(self, tmp_path):
        path = _write_workbook(tmp_path / "b.xlsx", [
            [None, None, None, None, "Alice"],
            [None, "Capacity", None, None, 8],
        ])
        assert parse_baseline(path).capacity == {}

    def test_non_sprint_label_keeps_previous_sprint(self, tmp_path):
        path = _write_workbook(tmp_path / "b.xlsx", [
            [None, None, None, None, "Alice"],
            ["Sprint 26_04_01"],
            ["Sprint goal: ship the API"],
            [None, "Capacity", None, None, 8],
        ])
        assert parse_baseline(path, "26_04").capacity == {"Alice": {"26_04_01": 28800}}

    def test_full_year_pi(self, tmp_path):
        path = _write_workbook(tmp_path / "b.xlsx", [
            [None, None, None, None, "Alice"],
            ["Sprint 2026_04_01"],
            [None, "Capacity", None, None, 8],
        ])
        assert parse_baseline(path, "2026_04").capacity == {"Alice": {"2026_04_01": 28800}}

    def test_short_rows(self, tmp_path):
        path = _write_workbook(tmp_path / "b.xlsx", [
            [None, None, None, None, "Alice", "Bob"],
            ["Sprint 26_04_01"],
            [None, "Capacity", None, None, 40],
        ])
        assert parse_baseline(path).capacity == {"Alice": {"26_04_01": 144000}}

    def test_empty_sheet(self, tmp_path):
        path = _write_workbook(tmp_path / "b.xlsx", [])
        baseline = parse_baseline(path)
        assert baseline.members == []
        assert baseline.capacity == {}

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "b.xlsx"
        path.write_bytes(b"not a workbook")
        with pytest.raises(BaselineParseError):
            parse_baseline(path)


class TestLoadBaseline:
    """Tests for load_baseline."""

    def test_returns_none_without_file(self, tmp_path):
        assert load_baseline("26_04", tmp_path) is None

    def test_corrupt_file_degrades_to_none(self, tmp_path):
        (tmp_path / "PI_CAPA_2026_04.xlsx").write_bytes(b"garbage")
        assert load_baseline("26_04", tmp_path) is None

    def test_loads_found_file(self, tmp_path):
        _write_workbook(tmp_path / "PI_CAPA_26_04.xlsx", SAMPLE_ROWS)
        baseline = load_baseline("26_04", tmp_path)
        assert baseline.get("Alice", "26_04_01") == 28800


class TestStoreBaseline:
    """Tests for store_baseline."""

    def test_stores_under_canonical_name(self, tmp_path):
        name = store_baseline("26_04", "plan.xlsx", io.BytesIO(b"data"), tmp_path)
        assert name == "PI_CAPA_2026_04.xlsx"
        assert (tmp_path / name).read_bytes() == b"data"

    def test_uppercase_extension_accepted(self, tmp_path):
        assert store_baseline("26_04", "PLAN.XLSX", io.BytesIO(b"x"), tmp_path)

    def test_rejects_wrong_extension(self, tmp_path):
        with pytest.raises(InvalidUploadError):
            store_baseline("26_04", "plan.txt", io.BytesIO(b"data"), tmp_path)
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.parametrize("pi,filename,stream", [
        ("", "plan.xlsx", io.BytesIO(b"x")),
        ("26_04", None, io.BytesIO(b"x")),
        ("26_04", "plan.xlsx", None),
        ("../etc", "plan.xlsx", io.BytesIO(b"x")),
    ])
    def test_rejects_missing_fields(self, tmp_path, pi, filename, stream):
        with pytest.raises(InvalidUploadError):
            store_baseline(pi, filename, stream, tmp_path)

    def test_creates_upload_dir(self, tmp_path):
        target = tmp_path / "uploads" / "nested"
        store_baseline("26_04", "plan.xlsx", io.BytesIO(b"x"), target)
        assert (target / "PI_CAPA_2026_04.xlsx").exists()

    def test_reupload_replaces_previous_values(self, tmp_path):
        header = [None, None, None, None, "Alice"]
        store_baseline("26_04", "plan.xlsx", _workbook_bytes([
            header, ["Sprint 26_04_01"], [None, "Capacity", None, None, 8],
        ]), tmp_path)
        store_baseline("26_04", "plan.xlsx", _workbook_bytes([
            header, ["Sprint 26_04_01"], [None, "Capacity", None, None, 16],
        ]), tmp_path)

        baseline = load_baseline("26_04", tmp_path)

        assert baseline.get("Alice", "26_04_01") == 57600
        assert [p.name for p in tmp_path.iterdir()] == ["PI_CAPA_2026_04.xlsx"]

    def test_removes_temp_file_on_failure(self, tmp_path):
        with patch("jira_capacity.baseline.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                store_baseline("26_04", "plan.xlsx", io.BytesIO(b"x"), tmp_path)
        assert list(tmp_path.iterdir()) == []

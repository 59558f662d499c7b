"""This module provides unit tests for peptidehit.precursor."""

import pandas as pd
import pytest
from conftest import write_lines

from peptidehit.exceptions import InputFileNotFoundError
from peptidehit.precursor import PrecursorInfo


def test_from_df_skips_invalid_rows():
    """Test that rows without a numeric scan or m/z are skipped."""
    df = pd.DataFrame(
        {
            "Dataset": ["ds1", "ds1", "ds2", "ds2"],
            "ScanNumber": ["1", "2", "x", "4"],
            "PrecursorMz": [500.1, None, 600.2, 700.3],
        }
    )

    # when
    info = PrecursorInfo.from_df(df)

    assert len(info) == 2
    assert info.get("ds1", 1) == 500.1
    assert info.get("ds2", 4) == 700.3


def test_from_df_missing_column_raises():
    """Test that the scan number and m/z columns are required."""
    df = pd.DataFrame({"ScanNumber": [1]})

    # when
    with pytest.raises(ValueError, match="PrecursorMz"):
        PrecursorInfo.from_df(df)


def test_get_falls_back_to_entries_without_dataset():
    """Test the lookup order: dataset and scan, scan only, unknown."""
    info = PrecursorInfo({("ds1", 1): 500.0, ("", 1): 400.0, ("", 2): 450.0})

    # when
    exact = info.get("ds1", 1)
    fallback = info.get("ds2", 1)
    scan_only = info.get("ds1", 2)
    unknown = info.get("ds1", 3)

    assert exact == 500.0
    assert fallback == 400.0
    assert scan_only == 450.0
    assert unknown == 0


def test_load(tmp_path):
    """Test loading a side file without dataset column."""
    path = write_lines(
        tmp_path / "precursors.txt",
        ["ScanNumber\tPrecursorMz", "10\t512.25", "11\t613.5"],
    )

    # when
    info = PrecursorInfo.load(path)

    assert len(info) == 2
    assert info.get("any_dataset", 11) == 613.5


def test_load_missing_file_raises(tmp_path):
    """Test that a missing side file is reported as such."""
    # when
    with pytest.raises(InputFileNotFoundError):
        PrecursorInfo.load(str(tmp_path / "missing.txt"))


def test_get_single_dataset_found_by_scan():
    """Test that the entries of a side file holding a single dataset are found under any dataset name."""
    single = PrecursorInfo({("ds1", 1): 500.0})
    several = PrecursorInfo({("ds1", 1): 500.0, ("ds2", 2): 600.0})

    # when
    other_name = single.get("ds1_inspect", 1)
    ambiguous = several.get("ds1_inspect", 1)

    assert single.datasets == {"ds1"}
    assert other_name == 500.0
    assert ambiguous == 0

"""Precursor m/z values from a side file, used when the results file lacks them."""

import logging
import os

import pandas as pd

from peptidehit.constants.keys import PrecursorInfoCols
from peptidehit.exceptions import InputFileNotFoundError

logger = logging.getLogger()


class PrecursorInfo:
    def __init__(self, precursor_mz: dict[tuple[str, int], float] | None = None):
        """Lookup table of precursor m/z values keyed by dataset and scan number.

        Entries without a dataset are stored with an empty dataset name and act as a fallback for every dataset.
        If the table holds a single dataset, its entries are also found by scan alone.
        """
        self._precursor_mz = precursor_mz or {}
        self.datasets = {dataset for dataset, _ in self._precursor_mz if dataset}

    def __len__(self):
        return len(self._precursor_mz)

    @classmethod
    def from_df(cls, df: pd.DataFrame) -> "PrecursorInfo":
        for column in [PrecursorInfoCols.SCAN_NUMBER, PrecursorInfoCols.PRECURSOR_MZ]:
            if column not in df.columns:
                raise ValueError(f"Precursor info is missing column {column}")

        df = df.copy()
        if PrecursorInfoCols.DATASET not in df.columns:
            df[PrecursorInfoCols.DATASET] = ""

        df[PrecursorInfoCols.DATASET] = (
            df[PrecursorInfoCols.DATASET].fillna("").astype(str).str.strip()
        )
        df[PrecursorInfoCols.SCAN_NUMBER] = pd.to_numeric(
            df[PrecursorInfoCols.SCAN_NUMBER], errors="coerce"
        )
        df[PrecursorInfoCols.PRECURSOR_MZ] = pd.to_numeric(
            df[PrecursorInfoCols.PRECURSOR_MZ], errors="coerce"
        )

        invalid = (
            df[[PrecursorInfoCols.SCAN_NUMBER, PrecursorInfoCols.PRECURSOR_MZ]]
            .isna()
            .any(axis=1)
        )
        if invalid.any():
            logger.warning(f"Skipping {invalid.sum()} invalid precursor info rows")
        df = df[~invalid]

        return cls(
            {
                (dataset, int(scan)): float(mz)
                for dataset, scan, mz in zip(
                    df[PrecursorInfoCols.DATASET],
                    df[PrecursorInfoCols.SCAN_NUMBER],
                    df[PrecursorInfoCols.PRECURSOR_MZ],
                    strict=True,
                )
            }
        )

    @classmethod
    def load(cls, path: str) -> "PrecursorInfo":
        """Read a tab-delimited file with columns `Dataset` (optional), `ScanNumber` and `PrecursorMz`."""
        if not os.path.isfile(path):
            raise InputFileNotFoundError(path)

        info = cls.from_df(pd.read_csv(path, sep="\t"))
        logger.info(f"Loaded {len(info):,} precursor m/z values from {path}")
        return info

    def get(self, dataset: str, scan: int) -> float:
        """Precursor m/z of a scan, 0 if unknown."""
        mz = self._precursor_mz.get((dataset, scan))
        if mz is None:
            mz = self._precursor_mz.get(("", scan))
        if mz is None and len(self.datasets) == 1:
            (only_dataset,) = self.datasets
            mz = self._precursor_mz.get((only_dataset, scan))
        return 0.0 if mz is None else mz

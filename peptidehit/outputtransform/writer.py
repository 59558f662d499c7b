"""Serialization of the retained results into the canonical tab-delimited schema."""

import logging
import os

import pandas as pd

from peptidehit.constants.keys import SynopsisCols
from peptidehit.data import SearchResultCandidate
from peptidehit.tools import ToolProfile

logger = logging.getLogger()

MH_DECIMALS = 6
DELTA_MASS_DECIMALS = 5
DELTA_NORM_DECIMALS = 5
Q_VALUE_SIGNIFICANT_DIGITS = 5


def format_number(value: float, decimals: int) -> str:
    """Format a number with at most `decimals` decimals, without trailing zeros.

    Examples
    --------
    >>> format_number(1234.5600001, 6)
    '1234.56'
    >>> format_number(-0.000001, 5)
    '0'
    """
    text = f"{value:.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        return "0"
    return text


def format_significant(value: float, digits: int = Q_VALUE_SIGNIFICANT_DIGITS) -> str:
    if value == 0:
        return "0"
    return f"{value:.{digits}g}"


class CanonicalWriter:
    def __init__(self, profile: ToolProfile, compute_q_values: bool = False) -> None:
        """Write retained results in a deterministic order with the canonical columns.

        Parameters
        ----------

        profile : ToolProfile
            Tool profile providing the score, rank and delta-normalized score columns.

        compute_q_values : bool, default False
            Whether the QValue column is written.

        """
        self.profile = profile
        self.compute_q_values = compute_q_values

        if compute_q_values and SynopsisCols.Q_VALUE in profile.score_names:
            logger.warning(
                f"{profile.name} reports its own {SynopsisCols.Q_VALUE} column, it is replaced by the computed q-values"
            )

    @property
    def columns(self) -> list[str]:
        columns = [
            SynopsisCols.RESULT_ID,
            SynopsisCols.SCAN,
            SynopsisCols.CHARGE,
            SynopsisCols.PEPTIDE,
            SynopsisCols.PROTEIN,
            SynopsisCols.SPECTRUM_FILE,
            SynopsisCols.MH,
            SynopsisCols.DELTA_MASS,
            SynopsisCols.DELTA_MASS_PPM,
            *self.profile.score_names,
            *self.profile.rank_columns,
            *self.profile.delta_norm_columns,
        ]
        if self.compute_q_values and SynopsisCols.Q_VALUE not in columns:
            columns.append(SynopsisCols.Q_VALUE)
        return columns

    def sort_results(
        self, results: list[SearchResultCandidate]
    ) -> list[SearchResultCandidate]:
        """Best primary score first, then scan, charge, peptide and protein."""
        sign = (
            -1.0
            if self.profile.score_field(self.profile.primary_score).higher_is_better
            else 1.0
        )
        return sorted(
            results,
            key=lambda candidate: (
                sign * candidate.scores.get(self.profile.primary_score, 0.0),
                candidate.scan,
                candidate.charge,
                candidate.peptide,
                candidate.protein,
            ),
        )

    def _row(self, result_id: int, candidate: SearchResultCandidate) -> dict:
        row = {
            SynopsisCols.RESULT_ID: str(result_id),
            SynopsisCols.SCAN: str(candidate.scan),
            SynopsisCols.CHARGE: str(candidate.charge),
            SynopsisCols.PEPTIDE: candidate.peptide,
            SynopsisCols.PROTEIN: candidate.protein,
            SynopsisCols.SPECTRUM_FILE: candidate.spectrum_file,
            SynopsisCols.MH: format_number(candidate.mass_error.mh, MH_DECIMALS),
            SynopsisCols.DELTA_MASS: format_number(
                candidate.mass_error.delta_mass_da, DELTA_MASS_DECIMALS
            ),
            SynopsisCols.DELTA_MASS_PPM: format_number(
                candidate.mass_error.delta_mass_ppm, DELTA_MASS_DECIMALS
            ),
        }
        for score in self.profile.score_names:
            row[score] = candidate.score_text.get(score, "")
        for column in self.profile.rank_columns:
            row[column] = str(candidate.ranks.get(column, 0))
        for column in self.profile.delta_norm_columns:
            row[column] = format_number(
                candidate.delta_norms.get(column, 0.0), DELTA_NORM_DECIMALS
            )
        if self.compute_q_values:
            row[SynopsisCols.Q_VALUE] = (
                format_significant(candidate.q_value)
                if candidate.q_value is not None
                else ""
            )
        return row

    def to_df(self, results: list[SearchResultCandidate]) -> pd.DataFrame:
        """Sort the results and build the output table, result IDs start at 1."""
        rows = [
            self._row(result_id, candidate)
            for result_id, candidate in enumerate(self.sort_results(results), start=1)
        ]
        return pd.DataFrame(rows, columns=self.columns, dtype=str)

    def write(self, results: list[SearchResultCandidate], path: str) -> pd.DataFrame:
        """Write the results to a tab-delimited file, the header is written even without results."""
        df = self.to_df(results)

        logger.info(f"Saving {len(df):,} results to {os.path.basename(path)}")
        df.to_csv(path, sep="\t", index=False)
        return df

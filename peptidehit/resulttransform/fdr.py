"""Decoy based FDR and q-value estimation over the retained results."""

import logging

import numpy as np

from peptidehit import fdr_utils
from peptidehit.data import SearchResultCandidate
from peptidehit.resulttransform.base import ProcessingStep
from peptidehit.tools import ToolProfile

logger = logging.getLogger()


def best_first_key(profile: ToolProfile):
    """Sort key placing the best primary score first, ties broken by scan, peptide, charge and protein."""
    sign = -1.0 if profile.score_field(profile.primary_score).higher_is_better else 1.0

    def key(candidate: SearchResultCandidate):
        return (
            sign * candidate.scores.get(profile.primary_score, 0.0),
            candidate.scan,
            candidate.peptide,
            candidate.charge,
            candidate.protein,
        )

    return key


class FdrQValueEstimator(ProcessingStep):
    def __init__(self, profile: ToolProfile) -> None:
        """Estimate the q-value of every retained result from the decoy hits.

        Results are sorted best first by the primary score. Consecutive rows with the same scan, charge and
        peptide are a single identification, which is a decoy only if all of its proteins are decoys.
        The FDR at each identification is the number of decoys divided by the number of forward
        identifications accepted so far. The q-value is the lowest FDR at which it would be accepted.
        """
        super().__init__()
        self.profile = profile

    def validate(self, results: list[SearchResultCandidate]) -> bool:
        return all(
            self.profile.primary_score in candidate.scores for candidate in results
        )

    def forward(
        self, results: list[SearchResultCandidate]
    ) -> list[SearchResultCandidate]:
        """Set the q-value of every result.

        Returns
        -------
        list[SearchResultCandidate]
            The results sorted best first.
        """
        ordered = sorted(results, key=best_first_key(self.profile))
        if not ordered:
            return ordered

        identifications = []
        for candidate in ordered:
            if identifications and identifications[-1][0].key == candidate.key:
                identifications[-1].append(candidate)
            else:
                identifications.append([candidate])

        is_decoy = np.array(
            [
                all(
                    fdr_utils.is_decoy_protein(
                        candidate.protein, self.profile.decoy_prefixes
                    )
                    for candidate in identification
                )
                for identification in identifications
            ],
            dtype=bool,
        )
        q_values = fdr_utils.fdr_to_q_values(fdr_utils.decoy_fdr(is_decoy))

        for identification, q_value in zip(identifications, q_values, strict=True):
            for candidate in identification:
                candidate.q_value = float(q_value)

        logger.info(
            f"{(~is_decoy).sum():,} forward and {is_decoy.sum():,} decoy identifications, "
            f"{(q_values[~is_decoy] <= 0.01).sum():,} forward at 1% FDR"
        )
        return ordered

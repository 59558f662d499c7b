"""Grouping of candidates by scan and ranking within each charge state."""

import logging
from collections.abc import Iterable, Iterator

from peptidehit.data import SearchResultCandidate
from peptidehit.resulttransform.base import ProcessingStep
from peptidehit.tools import ScoreAxis, ToolProfile

logger = logging.getLogger()

DEFAULT_SCORE_EPSILON = 1e-9


def iter_scan_groups(
    candidates: Iterable[SearchResultCandidate],
) -> Iterator[list[SearchResultCandidate]]:
    """Group a scan-sorted candidate stream into runs sharing the same scan number.

    A new scan number closes the previous group, a scan appearing again later opens a new group.
    """
    group = []
    for candidate in candidates:
        if group and candidate.scan != group[-1].scan:
            yield group
            group = []
        group.append(candidate)
    if group:
        yield group


def sort_key(profile: ToolProfile, axis: ScoreAxis):
    """Sort key ordering candidates by charge and then best score first along an axis."""
    score_sign = -1.0 if profile.score_field(axis.score).higher_is_better else 1.0
    tie_breaker_sign = 0.0
    if axis.tie_breaker is not None:
        tie_breaker_sign = (
            -1.0 if profile.score_field(axis.tie_breaker).higher_is_better else 1.0
        )

    def key(candidate: SearchResultCandidate) -> tuple[int, float, float]:
        tie_breaker = (
            candidate.scores.get(axis.tie_breaker, 0.0) if axis.tie_breaker else 0.0
        )
        return (
            candidate.charge,
            score_sign * candidate.scores.get(axis.score, 0.0),
            tie_breaker_sign * tie_breaker,
        )

    return key


def sort_by_axis(
    group: list[SearchResultCandidate], profile: ToolProfile, axis: ScoreAxis
) -> list[SearchResultCandidate]:
    """Stable sort of a scan group by charge and then best score first."""
    return sorted(group, key=sort_key(profile, axis))


class ScanGroupRanker(ProcessingStep):
    def __init__(
        self,
        profile: ToolProfile,
        epsilon: float = DEFAULT_SCORE_EPSILON,
        delta_norm_default: float = 0.0,
    ) -> None:
        """Assign ranks and delta-normalized scores to the candidates of one scan group.

        Every score axis of the profile is a separate sort pass over the group. Within each charge state,
        the best candidate gets rank 1 and the rank increases whenever the score differs from the previous
        candidate by more than `epsilon`, so tied scores share a rank. The delta-normalized score is
        `|current - next| / |current|` towards the next candidate of the same charge state.

        Parameters
        ----------

        profile : ToolProfile
            Tool profile providing the score axes.

        epsilon : float, default 1e-9
            Scores closer than this are considered equal.

        delta_norm_default : float, default 0.0
            Delta-normalized score of the last candidate of a charge state or of a zero score.

        """
        super().__init__()
        self.profile = profile
        self.epsilon = epsilon
        self.delta_norm_default = delta_norm_default

    def validate(self, group: list[SearchResultCandidate]) -> bool:
        return len({candidate.scan for candidate in group}) <= 1

    def rank_axis(
        self, group: list[SearchResultCandidate], axis: ScoreAxis
    ) -> list[SearchResultCandidate]:
        """Rank a scan group along one axis and return it in the sort order of the axis."""
        ordered = sort_by_axis(group, self.profile, axis)

        rank = 0
        for i, candidate in enumerate(ordered):
            score = candidate.scores.get(axis.score, 0.0)
            previous = ordered[i - 1] if i > 0 else None
            if previous is None or previous.charge != candidate.charge:
                rank = 1
            elif abs(score - previous.scores.get(axis.score, 0.0)) > self.epsilon:
                rank += 1

            if axis.rank_column:
                candidate.ranks[axis.rank_column] = rank

            if axis.delta_norm_column:
                following = ordered[i + 1] if i + 1 < len(ordered) else None
                if (
                    following is not None
                    and following.charge == candidate.charge
                    and abs(score) > self.epsilon
                ):
                    delta_norm = abs(
                        score - following.scores.get(axis.score, 0.0)
                    ) / abs(score)
                else:
                    delta_norm = self.delta_norm_default
                candidate.delta_norms[axis.delta_norm_column] = delta_norm

        return ordered

    def forward(
        self, group: list[SearchResultCandidate]
    ) -> list[SearchResultCandidate]:
        """Rank the group along every score axis.

        Returns
        -------
        list[SearchResultCandidate]
            The group sorted by charge and the primary score.
        """
        for axis in self.profile.score_axes:
            self.rank_axis(group, axis)

        return sort_by_axis(group, self.profile, self.profile.axis(self.profile.primary_score))

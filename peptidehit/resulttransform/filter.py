"""Retention policies deciding which candidates of a scan group are written."""

import logging

from peptidehit.data import SearchResultCandidate
from peptidehit.resulttransform.base import ProcessingStep
from peptidehit.resulttransform.rank import sort_by_axis
from peptidehit.tools import ToolProfile

logger = logging.getLogger()


class ResultFilter(ProcessingStep):
    def __init__(self, profile: ToolProfile) -> None:
        """Base class for filters applied to the candidates of one scan group."""
        super().__init__()
        self.profile = profile

    def validate(self, group: list[SearchResultCandidate]) -> bool:
        return len({candidate.scan for candidate in group}) <= 1

    def forward(
        self, group: list[SearchResultCandidate]
    ) -> list[SearchResultCandidate]:
        raise NotImplementedError("Subclasses must implement this method")


class ThresholdUnionFilter(ResultFilter):
    def __init__(self, profile: ToolProfile, thresholds: dict[str, float]) -> None:
        """Keep every candidate passing at least one of the score thresholds.

        A threshold on a score where higher is better is passed by scores greater than or equal to it,
        a threshold on a score where lower is better by scores less than or equal to it.
        Scores which the engine did not report are not considered.

        Parameters
        ----------

        profile : ToolProfile
            Tool profile defining the direction of every score.

        thresholds : dict[str, float]
            Score name -> threshold. Without thresholds every candidate is kept.

        """
        super().__init__(profile)
        for score in thresholds:
            # raises for scores unknown to the tool
            profile.score_field(score)
        self.thresholds = thresholds

    def passes(self, candidate: SearchResultCandidate) -> bool:
        if not self.thresholds:
            return True

        for score, threshold in self.thresholds.items():
            if not candidate.score_text.get(score):
                continue
            value = candidate.scores[score]
            if self.profile.score_field(score).higher_is_better:
                if value >= threshold:
                    return True
            elif value <= threshold:
                return True
        return False

    def forward(
        self, group: list[SearchResultCandidate]
    ) -> list[SearchResultCandidate]:
        return [candidate for candidate in group if self.passes(candidate)]


class BestPerChargeFilter(ResultFilter):
    def __init__(self, profile: ToolProfile, score: str | None = None) -> None:
        """Keep the best candidate of every charge state.

        Parameters
        ----------

        profile : ToolProfile
            Tool profile providing the score axes.

        score : str, optional
            Score of the axis the candidates are sorted by. Defaults to the primary score of the profile.

        """
        super().__init__(profile)
        self.axis = profile.axis(score or profile.primary_score)

    def forward(
        self, group: list[SearchResultCandidate]
    ) -> list[SearchResultCandidate]:
        best = []
        for candidate in sort_by_axis(group, self.profile, self.axis):
            if not best or best[-1].charge != candidate.charge:
                best.append(candidate)
        return best

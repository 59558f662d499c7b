"""Value types shared by the processing steps."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from peptidehit.modifications.catalog import ModificationDescriptor


@dataclass(frozen=True)
class ModificationAssignment:
    """A modification descriptor applied to the residue at `position` (1-based) of the clean sequence."""

    position: int
    residue: str
    descriptor: "ModificationDescriptor"


@dataclass(frozen=True)
class MassError:
    """Theoretical (M+H)+ implied by the precursor and the observed mass error in Da and ppm."""

    mh: float = 0.0
    delta_mass_da: float = 0.0
    delta_mass_ppm: float = 0.0


@dataclass
class SearchResultCandidate:
    """One identification of the native results file.

    The raw fields are set when the line is parsed. Resolution, mass normalization, ranking and
    FDR estimation fill in the remaining fields in place.
    """

    line_number: int
    spectrum_file: str
    scan: int
    charge: int
    peptide: str
    protein: str
    # numeric value of every score of the tool profile, 0 if the column is absent or empty
    scores: dict[str, float]
    # the engine's text of every score, written unchanged to the output
    score_text: dict[str, str]
    precursor: float = 0.0
    precursor_error: float | None = None
    precursor_error_units: str | None = None
    engine_mass: float | None = None

    clean_sequence: str = ""
    assignments: list[ModificationAssignment] = field(default_factory=list)
    theoretical_mass: float = 0.0
    mass_error: MassError = field(default_factory=MassError)

    ranks: dict[str, int] = field(default_factory=dict)
    delta_norms: dict[str, float] = field(default_factory=dict)

    q_value: float | None = None

    @property
    def key(self) -> tuple[int, int, str]:
        """Composite key of a peptide spectrum match, independent of the protein."""
        return (self.scan, self.charge, self.peptide)

import os

import pytest

from peptidehit.data import SearchResultCandidate
from peptidehit.modifications.catalog import (
    ModificationCatalog,
    ModificationDeclaration,
    Terminus,
)

CARBAMIDOMETHYL_MASS = 57.021464
OXIDATION_MASS = 15.994915
ACETYL_MASS = 42.010565


def make_catalog(*declarations: ModificationDeclaration) -> ModificationCatalog:
    """Create a catalog holding the given declarations in order."""
    catalog = ModificationCatalog()
    for declaration in declarations:
        catalog.add(declaration)
    return catalog


def make_candidate(
    scan: int = 1,
    charge: int = 2,
    scores: dict | None = None,
    peptide: str = "K.PEPTIDE.R",
    protein: str = "PROT1",
    **kwargs,
) -> SearchResultCandidate:
    """Create a candidate whose score texts are the string representation of its scores."""
    scores = scores or {}
    return SearchResultCandidate(
        line_number=kwargs.pop("line_number", 1),
        spectrum_file=kwargs.pop("spectrum_file", "dataset.mzML"),
        scan=scan,
        charge=charge,
        peptide=peptide,
        protein=protein,
        scores={name: float(value) for name, value in scores.items()},
        score_text={name: str(value) for name, value in scores.items()},
        **kwargs,
    )


def write_lines(path: str, lines: list[str]) -> str:
    """Write lines to a file, joined by line breaks, and return the path."""
    with open(path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines) + "\n")
    return str(path)


@pytest.fixture
def standard_catalog() -> ModificationCatalog:
    """Static carbamidomethyl on C, dynamic oxidation on M and dynamic acetylation of the protein N-terminus."""
    return make_catalog(
        ModificationDeclaration(
            "Carbamidomethyl", CARBAMIDOMETHYL_MASS, frozenset("C"), static=True
        ),
        ModificationDeclaration(
            "Oxidation", OXIDATION_MASS, frozenset("M"), static=False
        ),
        ModificationDeclaration(
            "Acetyl",
            ACETYL_MASS,
            frozenset(),
            static=False,
            terminus=Terminus.PROTEIN_N,
        ),
    )


@pytest.fixture
def stacking_catalog() -> ModificationCatalog:
    """Static +10 on P and a dynamic +20 on the peptide N-terminus."""
    return make_catalog(
        ModificationDeclaration("heavyP", 10.0, frozenset("P"), static=True),
        ModificationDeclaration(
            "nterm20",
            20.0,
            frozenset(),
            static=False,
            terminus=Terminus.PEPTIDE_N,
        ),
    )


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    os.makedirs(path, exist_ok=True)
    return path

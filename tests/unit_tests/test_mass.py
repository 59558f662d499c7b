"""This module provides unit tests for peptidehit.mass."""

import pytest
from alphabase.constants.atom import MASS_H2O, MASS_PROTON
from conftest import make_catalog

from peptidehit.data import MassError, ModificationAssignment
from peptidehit.mass import (
    MASS_C13,
    MassNormalizer,
    correct_delta_mass_for_c13,
    mz_to_mh,
    peptide_base_mass,
)
from peptidehit.modifications.catalog import ModificationDeclaration
from peptidehit.modifications.resolver import ModificationSymbolResolver
from peptidehit.tools import (
    MODPLUS,
    PrecursorErrorSign,
    PrecursorErrorUnits,
    PrecursorValueKind,
)

# monoisotopic mass of PEPTIDE
PEPTIDE_MASS = 799.359964


def test_peptide_base_mass():
    """Test the unmodified peptide mass against a reference value."""
    # when
    mass = peptide_base_mass("PEPTIDE")

    assert mass == pytest.approx(PEPTIDE_MASS, abs=1e-4)


def test_peptide_base_mass_empty_and_unknown_residue():
    """Test that an empty sequence has zero mass and unknown residues contribute nothing."""
    # when
    empty = peptide_base_mass("")
    with_unknown = peptide_base_mass("PEP#TIDE")

    assert empty == 0.0
    assert with_unknown == pytest.approx(PEPTIDE_MASS, abs=1e-4)


def test_mz_to_mh():
    """Test conversion of a doubly charged m/z value."""
    # when
    mh = mz_to_mh(500.0, 2)

    assert mh == pytest.approx(1000.0 - MASS_PROTON)


@pytest.mark.parametrize(
    "delta_mass,expected",
    [
        (0.2, 0.2),
        (-0.3, -0.3),
        (1.0, 1.0 - MASS_C13),
        (2.01, 2.01 - 2 * MASS_C13),
        (-1.1, -1.1 + MASS_C13),
    ],
)
def test_correct_delta_mass_for_c13(delta_mass, expected):
    """Test that whole C13 spacings are removed until the error is within half a spacing."""
    # when
    corrected = correct_delta_mass_for_c13(delta_mass)

    assert corrected == pytest.approx(expected)
    assert abs(corrected) <= 0.5 + 1e-9


@pytest.mark.parametrize("mod_masses", [[], [15.994915], [15.994915, 42.0, 42.0]])
def test_theoretical_mass_is_additive(mod_masses):
    """Test that the theoretical mass is the base mass plus the mass of every assigned modification."""
    catalog = make_catalog(
        *[
            ModificationDeclaration(f"mod{i}", mass, frozenset(), static=False)
            for i, mass in enumerate(mod_masses)
        ]
    )
    assignments = [
        ModificationAssignment(1, "P", descriptor) for descriptor in catalog.descriptors
    ]

    # when
    mass = MassNormalizer().compute_theoretical_mass("PEPTIDE", assignments)

    assert mass == pytest.approx(peptide_base_mass("PEPTIDE") + sum(mod_masses))


def test_static_and_dynamic_modification_stacking(stacking_catalog):
    """Test PEPTIDE with a static +10 on P and a dynamic +20 at the N-terminus."""
    resolver = ModificationSymbolResolver(stacking_catalog)
    resolved = resolver.resolve("+20PEPTIDE")

    # when
    mass = MassNormalizer().compute_theoretical_mass(
        resolved.clean_sequence, resolved.assignments
    )

    assert mass == pytest.approx(peptide_base_mass("PEPTIDE") + 10 + 10 + 20)


@pytest.mark.parametrize("precursor", [0.0, None, float("nan"), -5.0])
def test_missing_precursor_gives_zero(precursor):
    """Test that a missing precursor gives zero MH and mass errors."""
    normalizer = MassNormalizer()

    # when
    mass_error = normalizer.compute_observed_mass_error(
        precursor, 0.01, PrecursorErrorUnits.MZ, 2, PEPTIDE_MASS
    )

    assert mass_error == MassError(0.0, 0.0, 0.0)


def test_mass_error_from_precursor_only():
    """Test that the error is the observed neutral mass minus the theoretical mass."""
    normalizer = MassNormalizer(correct_for_c13=False)
    precursor_mz = (PEPTIDE_MASS + 0.004 + 2 * MASS_PROTON) / 2

    # when
    mass_error = normalizer.compute_observed_mass_error(
        precursor_mz, None, None, 2, PEPTIDE_MASS
    )

    assert mass_error.delta_mass_da == pytest.approx(0.004, abs=1e-9)
    assert mass_error.delta_mass_ppm == pytest.approx(0.004 / PEPTIDE_MASS * 1e6)
    assert mass_error.mh == pytest.approx(PEPTIDE_MASS + MASS_PROTON)


def test_mass_error_from_mz_error_with_c13_correction():
    """Test an m/z precursor error of an engine that picked the first isotope peak."""
    normalizer = MassNormalizer()
    precursor_mz = (PEPTIDE_MASS + MASS_C13 + 0.002 + 2 * MASS_PROTON) / 2
    mz_error = (MASS_C13 + 0.002) / 2

    # when
    mass_error = normalizer.compute_observed_mass_error(
        precursor_mz, mz_error, PrecursorErrorUnits.MZ, 2, PEPTIDE_MASS
    )

    assert mass_error.delta_mass_da == pytest.approx(0.002, abs=1e-9)
    assert mass_error.delta_mass_ppm == pytest.approx(0.002 / PEPTIDE_MASS * 1e6)
    # MH is derived from the uncorrected error
    assert mass_error.mh == pytest.approx(PEPTIDE_MASS + MASS_PROTON)


def test_mass_error_ppm_units():
    """Test a precursor error reported in ppm."""
    normalizer = MassNormalizer()

    # when
    mass_error = normalizer.compute_observed_mass_error(
        500.0, 2.5, PrecursorErrorUnits.PPM, 2, PEPTIDE_MASS
    )

    assert mass_error.delta_mass_ppm == pytest.approx(2.5)
    assert mass_error.delta_mass_da == pytest.approx(2.5 * PEPTIDE_MASS / 1e6)


def test_mass_error_respects_sign_convention():
    """Test that an error reported as theoretical - observed is negated."""
    observed_minus_theoretical = MassNormalizer(correct_for_c13=False)
    theoretical_minus_observed = MassNormalizer(
        correct_for_c13=False,
        precursor_error_sign=PrecursorErrorSign.THEORETICAL_MINUS_OBSERVED,
    )

    # when
    forward = observed_minus_theoretical.compute_observed_mass_error(
        500.0, 0.01, PrecursorErrorUnits.DA, 2, PEPTIDE_MASS
    )
    reversed_sign = theoretical_minus_observed.compute_observed_mass_error(
        500.0, -0.01, PrecursorErrorUnits.DA, 2, PEPTIDE_MASS
    )

    assert forward.delta_mass_da == pytest.approx(0.01)
    assert reversed_sign.delta_mass_da == pytest.approx(0.01)
    assert forward.mh == pytest.approx(reversed_sign.mh)


def test_mass_error_neutral_precursor():
    """Test a precursor given as neutral mass, as reported by MODPlus."""
    normalizer = MassNormalizer.from_profile(MODPLUS)

    # when
    mass_error = normalizer.compute_observed_mass_error(
        PEPTIDE_MASS + 0.003, 0.003, PrecursorErrorUnits.DA, 3, PEPTIDE_MASS
    )

    assert normalizer.precursor_value == PrecursorValueKind.NEUTRAL_MASS
    assert mass_error.delta_mass_da == pytest.approx(0.003)
    assert mass_error.mh == pytest.approx(PEPTIDE_MASS + MASS_PROTON)


def test_mass_error_zero_theoretical_mass():
    """Test that a zero theoretical mass gives a zero ppm error."""
    normalizer = MassNormalizer()

    # when
    mass_error = normalizer.compute_observed_mass_error(
        500.0, 0.01, PrecursorErrorUnits.DA, 2, 0.0
    )

    assert mass_error.delta_mass_ppm == 0.0


def test_reconcile_engine_mass():
    """Test the choice between the engine reported and the recomputed mass."""
    plain = MassNormalizer()
    labelled = MassNormalizer(has_isobaric_label=True)

    # when
    within_tolerance = plain.reconcile_engine_mass(1000.005, 1000.0)
    kept_engine = plain.reconcile_engine_mass(1000.0, 1229.16)
    recomputed = labelled.reconcile_engine_mass(1000.0, 1229.16)
    missing_engine = plain.reconcile_engine_mass(None, 1229.16)

    assert within_tolerance == 1000.005
    assert kept_engine == 1000.0
    assert plain.mass_warning_count == 1
    assert recomputed == 1229.16
    assert missing_engine == 1229.16


def test_base_mass_includes_water():
    """Test that the peptide mass includes one water."""
    # when
    mass = peptide_base_mass("G")

    assert mass == pytest.approx(57.021464 + MASS_H2O, abs=1e-4)


def test_mass_error_ignores_engine_error_of_replaced_engine_mass():
    """Test that the error is derived from the precursor if the engine mass lacks an isobaric label."""
    normalizer = MassNormalizer.from_profile(MODPLUS, has_isobaric_label=True)
    labelled_mass = PEPTIDE_MASS + 229.162932
    observed_mass = labelled_mass + 0.002

    # when
    replaced = normalizer.replaces_engine_mass(PEPTIDE_MASS, labelled_mass)
    mass_error = normalizer.compute_observed_mass_error(
        observed_mass,
        observed_mass - PEPTIDE_MASS,
        PrecursorErrorUnits.DA,
        2,
        labelled_mass,
        use_engine_error=not replaced,
    )

    assert replaced
    assert not normalizer.replaces_engine_mass(labelled_mass + 0.005, labelled_mass)
    assert not MassNormalizer().replaces_engine_mass(PEPTIDE_MASS, labelled_mass)
    assert mass_error.mh == pytest.approx(labelled_mass + MASS_PROTON)
    assert mass_error.delta_mass_da == pytest.approx(0.002)

"""Theoretical peptide masses and observed precursor mass errors."""

import logging
import math

import numpy as np
from alphabase.constants.aa import calc_AA_masses
from alphabase.constants.atom import MASS_H2O, MASS_PROTON

from peptidehit.data import MassError, ModificationAssignment
from peptidehit.tools import (
    PRECURSOR_ERROR_SIGN_FACTOR,
    PrecursorErrorSign,
    PrecursorErrorUnits,
    PrecursorValueKind,
    ToolProfile,
)

logger = logging.getLogger()

MASS_C13 = 1.00335483

# alphabase assigns a huge mass to letters which are not amino acids
UNKNOWN_RESIDUE_MASS = 1e6

# number of mass inconsistency warnings logged before they are only counted
MAX_LOGGED_MASS_WARNINGS = 10


def peptide_base_mass(sequence: str) -> float:
    """Monoisotopic mass of an unmodified peptide, unknown residues contribute zero."""
    if not sequence:
        return 0.0

    residue_masses = calc_AA_masses(sequence)
    unknown = residue_masses > UNKNOWN_RESIDUE_MASS
    if unknown.any():
        logger.warning(
            f"Unknown residue(s) {set(np.array(list(sequence))[unknown])} in {sequence}, treating them as zero mass"
        )
        residue_masses = np.where(unknown, 0.0, residue_masses)

    return float(residue_masses.sum() + MASS_H2O)


def mz_to_mh(mz: float, charge: int) -> float:
    """Convert an m/z value into the mass of the singly protonated ion."""
    return mz * charge - (charge - 1) * MASS_PROTON


def ppm_to_mass(ppm: float, mass: float) -> float:
    return ppm * mass / 1e6


def mass_to_ppm(delta_mass: float, mass: float) -> float:
    return delta_mass / mass * 1e6


def correct_delta_mass_for_c13(delta_mass: float) -> float:
    """Shift a mass error by whole C13 isotope spacings into the window [-0.5, 0.5] Da."""
    if delta_mass >= -0.5:
        while delta_mass > 0.5:
            delta_mass -= MASS_C13
    else:
        while delta_mass < -0.5:
            delta_mass += MASS_C13
    return delta_mass


def _is_missing(value: float | None) -> bool:
    return value is None or not math.isfinite(value) or value <= 0


class MassNormalizer:
    def __init__(
        self,
        correct_for_c13: bool = True,
        precursor_value: str = PrecursorValueKind.MZ,
        precursor_error_sign: str = PrecursorErrorSign.OBSERVED_MINUS_THEORETICAL,
        isobaric_tolerance: float = 0.01,
        has_isobaric_label: bool = False,
    ) -> None:
        """Compute theoretical masses and mass errors of identifications.

        Parameters
        ----------

        correct_for_c13 : bool, default True
            Whether mass errors are corrected for the selection of a C13 isotope peak.

        precursor_value : str, default PrecursorValueKind.MZ
            Whether the precursor column holds the m/z or the neutral mass.

        precursor_error_sign : str, default PrecursorErrorSign.OBSERVED_MINUS_THEORETICAL
            Sign convention of the precursor error reported by the engine.

        isobaric_tolerance : float, default 0.01
            Differences between engine reported and recomputed mass above this value are reported.

        has_isobaric_label : bool, default False
            Whether an isobaric label is declared. If so, the recomputed mass is preferred over the engine mass.

        """
        self.correct_for_c13 = correct_for_c13
        self.precursor_value = precursor_value
        self.precursor_error_sign = precursor_error_sign
        self.isobaric_tolerance = isobaric_tolerance
        self.has_isobaric_label = has_isobaric_label

        self.mass_warning_count = 0

    @classmethod
    def from_profile(
        cls, profile: ToolProfile, has_isobaric_label: bool = False, **kwargs
    ) -> "MassNormalizer":
        return cls(
            precursor_value=profile.precursor_value,
            precursor_error_sign=profile.precursor_error_sign,
            has_isobaric_label=has_isobaric_label,
            **kwargs,
        )

    def compute_theoretical_mass(
        self, clean_sequence: str, assignments: list[ModificationAssignment]
    ) -> float:
        """Monoisotopic mass of the peptide including all assigned modifications."""
        return peptide_base_mass(clean_sequence) + sum(
            assignment.descriptor.mass for assignment in assignments
        )

    def replaces_engine_mass(
        self, engine_mass: float | None, recomputed_mass: float
    ) -> bool:
        """Whether the recomputed mass is used in place of a disagreeing engine mass.

        The precursor error reported by the engine is relative to the engine mass, so it is
        meaningless once the engine mass is replaced.
        """
        return (
            self.has_isobaric_label
            and not _is_missing(engine_mass)
            and abs(engine_mass - recomputed_mass) > self.isobaric_tolerance
        )

    def reconcile_engine_mass(
        self, engine_mass: float | None, recomputed_mass: float, annotation: str = ""
    ) -> float:
        """Choose between the theoretical mass reported by the engine and the recomputed one.

        Engines may not include the mass of isobaric labels. If the two masses differ by more than
        `isobaric_tolerance`, the recomputed mass is used when an isobaric label is declared,
        otherwise the engine mass is kept and a warning is logged.
        """
        if _is_missing(engine_mass):
            return recomputed_mass

        if abs(engine_mass - recomputed_mass) <= self.isobaric_tolerance:
            return engine_mass

        if self.replaces_engine_mass(engine_mass, recomputed_mass):
            logger.debug(
                f"Using recomputed mass {recomputed_mass:.5f} instead of {engine_mass:.5f} for {annotation}"
            )
            return recomputed_mass

        self.mass_warning_count += 1
        if self.mass_warning_count <= MAX_LOGGED_MASS_WARNINGS:
            logger.warning(
                f"Engine reported mass {engine_mass:.5f} differs from the computed mass {recomputed_mass:.5f} "
                f"by more than {self.isobaric_tolerance} Da for {annotation}"
            )
        return engine_mass

    def compute_observed_mass_error(
        self,
        precursor: float | None,
        precursor_error: float | None,
        precursor_error_units: str | None,
        charge: int,
        theoretical_mass: float,
        use_engine_error: bool = True,
    ) -> MassError:
        """Compute the (M+H)+ implied by the precursor and the mass error of an identification.

        Parameters
        ----------

        precursor : float, optional
            Precursor m/z, or neutral mass depending on `precursor_value`.

        precursor_error : float, optional
            Precursor error as reported by the engine. If None, the error is derived from the precursor.

        precursor_error_units : str, optional
            Units of `precursor_error`, see `PrecursorErrorUnits`.

        charge : int
            Charge state of the precursor.

        theoretical_mass : float
            Monoisotopic mass of the peptide.

        use_engine_error : bool, default True
            If False, `precursor_error` is ignored and the error is derived from the precursor and
            `theoretical_mass`.

        Returns
        -------
        MassError
            All zero if the precursor is missing.
        """
        if _is_missing(precursor):
            return MassError()

        if self.precursor_value == PrecursorValueKind.MZ:
            if charge <= 0:
                return MassError()
            observed_mh = mz_to_mh(precursor, charge)
        else:
            observed_mh = precursor + MASS_PROTON

        if (
            use_engine_error
            and precursor_error is not None
            and math.isfinite(precursor_error)
        ):
            signed_error = (
                precursor_error * PRECURSOR_ERROR_SIGN_FACTOR[self.precursor_error_sign]
            )
            if precursor_error_units == PrecursorErrorUnits.MZ:
                delta_mass = signed_error * charge
            elif precursor_error_units == PrecursorErrorUnits.PPM:
                delta_mass = ppm_to_mass(signed_error, theoretical_mass)
            else:
                delta_mass = signed_error
        elif theoretical_mass > 0:
            delta_mass = (observed_mh - MASS_PROTON) - theoretical_mass
        else:
            return MassError()

        mh = observed_mh - delta_mass

        if theoretical_mass <= 0:
            return MassError(mh, delta_mass, 0.0)

        if self.correct_for_c13:
            delta_mass = correct_delta_mass_for_c13(delta_mass)

        delta_mass_ppm = mass_to_ppm(delta_mass, theoretical_mass)

        # Da value is derived from the (corrected) ppm value
        return MassError(
            mh, ppm_to_mass(delta_mass_ppm, theoretical_mass), delta_mass_ppm
        )

"""Monoisotopic masses of empirical formulas as written in search engine parameter files."""

import re

from alphabase.constants.atom import calc_mass_from_formula

# element symbol followed by an optional (possibly negative) count, e.g. `C2H3N1O1` or `H-1`
ELEMENT_PATTERN = re.compile(r"([A-Z][a-z]?)(-?\d*)")


def to_alphabase_formula(formula: str) -> str:
    """Convert a compact formula like `C2H3NO` into the alphabase notation `C(2)H(3)N(1)O(1)`.

    Raises
    ------
    ValueError
        If the text is not a valid formula.
    """
    formula = formula.replace(" ", "")
    if not formula:
        raise ValueError("Empty formula")

    parts = []
    position = 0
    for match in ELEMENT_PATTERN.finditer(formula):
        if match.start() != position:
            raise ValueError(f"Invalid formula: {formula}")
        element, count = match.groups()
        if count in ("", "-"):
            count = "-1" if count == "-" else "1"
        parts.append(f"{element}({count})")
        position = match.end()

    if position != len(formula):
        raise ValueError(f"Invalid formula: {formula}")

    return "".join(parts)


def formula_mass(formula: str) -> float:
    """Monoisotopic mass of a compact empirical formula."""
    alphabase_formula = to_alphabase_formula(formula)
    try:
        return float(calc_mass_from_formula(alphabase_formula))
    except KeyError as e:
        raise ValueError(f"Unknown element in formula {formula}: {e}") from e


def parse_mass_or_formula(text: str) -> float:
    """Parse a modification mass given either as number or as empirical formula."""
    try:
        return float(text)
    except ValueError:
        return formula_mass(text)

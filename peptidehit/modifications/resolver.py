"""Resolution of the modifications written inside a peptide annotation against the modification catalog."""

import logging
import re
from dataclasses import dataclass, field

from peptidehit.constants.keys import ModificationSymbols
from peptidehit.data import ModificationAssignment
from peptidehit.modifications.catalog import (
    ModificationCatalog,
    ModificationDescriptor,
    Terminus,
)
from peptidehit.tools import ModNotation, ToolProfile

logger = logging.getLogger()

TOKEN_PATTERN = re.compile(
    r"\[(?P<tag>[^\]]*)\]"
    r"|(?P<mass>[+-]\d+(?:\.\d*)?)"
    r"|(?P<residue>[A-Z])"
    r"|(?P<name>[a-z]+)"
    r"|(?P<other>\S)"
)


@dataclass
class ResolvedPeptide:
    annotation: str
    clean_sequence: str
    prefix: str = ""
    suffix: str = ""
    assignments: list[ModificationAssignment] = field(default_factory=list)
    # marks that could not be matched to a declared modification
    unknown_marks: list[str] = field(default_factory=list)


@dataclass
class _Mark:
    # number of residues seen before the mark, 0 for marks preceding the first residue
    index: int
    text: str
    mass: float | None = None
    name: str | None = None
    symbol: str | None = None


def split_prefix_suffix(annotation: str) -> tuple[str, str, str]:
    """Split `K.PEPTIDE.R` into prefix, sequence and suffix.

    Annotations without flanking residues are returned unchanged with empty prefix and suffix.
    """
    if (
        len(annotation) >= 4
        and annotation[1] == ModificationSymbols.PREFIX_SEPARATOR
        and annotation[-2] == ModificationSymbols.PREFIX_SEPARATOR
    ):
        return annotation[0], annotation[2:-2], annotation[-1]
    return "", annotation, ""


class ModificationSymbolResolver:
    def __init__(
        self,
        catalog: ModificationCatalog,
        notation: str = ModNotation.MASS_DELTA,
        case_sensitive: bool = False,
        terminus_markers: str = "",
    ) -> None:
        """Rewrite engine specific peptide annotations into the canonical form.

        The canonical form is `prefix.SEQUENCE.suffix` with `-` for protein termini and the symbol of every
        dynamic modification following its residue. N-terminal modifications follow the first residue.
        Static modifications are not written into the annotation but are part of the assignments.

        Parameters
        ----------

        catalog : ModificationCatalog
            Declared modifications of the search.

        notation : str, default ModNotation.MASS_DELTA
            How the engine writes dynamic modifications, see `ModNotation`.

        case_sensitive : bool, default False
            Whether modification names are matched case-sensitively.

        terminus_markers : str, default ""
            Characters used by the engine as prefix or suffix for a protein terminus.

        """
        self.catalog = catalog
        self.notation = notation
        self.case_sensitive = case_sensitive
        self.terminus_markers = terminus_markers

    @classmethod
    def from_profile(
        cls, catalog: ModificationCatalog, profile: ToolProfile
    ) -> "ModificationSymbolResolver":
        return cls(
            catalog,
            notation=profile.mod_notation,
            case_sensitive=profile.mod_names_case_sensitive,
            terminus_markers=profile.terminus_markers,
        )

    def _normalize_terminus(self, flank: str) -> str:
        if flank and flank in self.terminus_markers:
            return ModificationSymbols.TERMINUS
        return flank

    def _replace_names(self, sequence: str) -> str:
        """Replace modification names by their symbols, in catalog order."""
        for descriptor in self.catalog.dynamic_descriptors:
            if not descriptor.name:
                continue
            if self.case_sensitive:
                sequence = sequence.replace(descriptor.name, descriptor.symbol)
            else:
                sequence = re.sub(
                    re.escape(descriptor.name),
                    lambda _, symbol=descriptor.symbol: symbol,
                    sequence,
                    flags=re.IGNORECASE,
                )
        return sequence

    def _tokenize(self, sequence: str) -> tuple[list[str], list[_Mark]]:
        residues, marks = [], []
        for match in TOKEN_PATTERN.finditer(sequence):
            text = match.group(0)
            index = len(residues)
            if match.group("residue"):
                residues.append(text)
            elif match.group("mass"):
                marks.append(_Mark(index, text, mass=float(text)))
            elif match.group("tag") is not None:
                tag = match.group("tag").strip()
                try:
                    marks.append(_Mark(index, text, mass=float(tag)))
                except ValueError:
                    marks.append(_Mark(index, text, name=tag))
            elif match.group("name"):
                marks.append(_Mark(index, text, name=text))
            else:
                marks.append(_Mark(index, text, symbol=text))
        return residues, marks

    @staticmethod
    def _terminus_states(
        position: int, length: int, prefix: str, suffix: str
    ) -> list[str]:
        states = []
        if position == 1:
            states.append(
                Terminus.PROTEIN_N
                if prefix == ModificationSymbols.TERMINUS
                else Terminus.PEPTIDE_N
            )
        if position == length:
            states.append(
                Terminus.PROTEIN_C
                if suffix == ModificationSymbols.TERMINUS
                else Terminus.PEPTIDE_C
            )
        return states or [Terminus.NONE]

    def _resolve_mark(
        self, mark: _Mark, residue: str, states: list[str]
    ) -> ModificationDescriptor | None:
        if mark.symbol is not None:
            if mark.symbol == ModificationSymbols.UNKNOWN:
                return None
            return self.catalog.by_symbol(mark.symbol)

        if mark.name is not None:
            return self.catalog.by_name(mark.name, case_sensitive=self.case_sensitive)

        for state in states:
            descriptor = self.catalog.resolve_by_mass(mark.mass, residue, state)
            if descriptor is not None:
                return descriptor
        return None

    def resolve(self, annotation: str) -> ResolvedPeptide:
        """Resolve the modifications of a peptide annotation.

        Resolving an annotation that is already canonical returns it unchanged.

        Parameters
        ----------

        annotation : str
            Peptide as written by the search engine, e.g. `K.M+15.995PEPTIDE.R` or `*.Mox.PEPTIDE.R`.

        Returns
        -------
        ResolvedPeptide
            Canonical annotation, clean sequence and the modification assignments.
        """
        prefix, sequence, suffix = split_prefix_suffix(annotation.strip())
        prefix = self._normalize_terminus(prefix)
        suffix = self._normalize_terminus(suffix)

        if self.notation == ModNotation.NAME:
            sequence = self._replace_names(sequence)

        residues, marks = self._tokenize(sequence)
        length = len(residues)
        clean_sequence = "".join(residues)

        result = ResolvedPeptide(annotation, clean_sequence, prefix, suffix)
        if length == 0:
            return result

        symbols = [[] for _ in range(length + 1)]
        for mark in marks:
            position = max(mark.index, 1)
            residue = residues[position - 1]
            states = self._terminus_states(position, length, prefix, suffix)
            if mark.index == 0:
                states = states[:1]

            descriptor = self._resolve_mark(mark, residue, states)

            if descriptor is None:
                if mark.symbol != ModificationSymbols.UNKNOWN:
                    logger.warning(
                        f"Unknown modification '{mark.text}' on {residue}{position} of {annotation}, "
                        "treating it as zero mass"
                    )
                result.unknown_marks.append(mark.text)
                symbols[position].append(ModificationSymbols.UNKNOWN)
                continue

            # static modifications are implied by the residue and not embedded
            if descriptor.is_static:
                continue

            result.assignments.append(
                ModificationAssignment(position, residue, descriptor)
            )
            symbols[position].append(descriptor.symbol)

        for position, residue in enumerate(residues, start=1):
            states = self._terminus_states(position, length, prefix, suffix)
            for descriptor in self.catalog.static_descriptors:
                if descriptor.targets(residue) and any(
                    descriptor.applies_at(state) for state in states
                ):
                    result.assignments.append(
                        ModificationAssignment(position, residue, descriptor)
                    )

        canonical = "".join(
            residue + "".join(symbols[position])
            for position, residue in enumerate(residues, start=1)
        )
        if prefix or suffix:
            canonical = f"{prefix}.{canonical}.{suffix}"
        result.annotation = canonical

        return result

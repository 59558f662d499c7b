"""Canonical modification descriptors and their loading from the search engine parameter files."""

import logging
import os
from dataclasses import dataclass

from lxml import etree

from peptidehit.constants.keys import ConstantsClass, ModificationSymbols
from peptidehit.exceptions import CatalogLoadError
from peptidehit.modifications.formula import parse_mass_or_formula
from peptidehit.tools import ModDefinitionFormat

logger = logging.getLogger()

PHOSPHO_NAME = "phos"
PHOSPHO_MASS = 79.9663
PHOSPHO_RESIDUES = "STY"

DEFAULT_MASS_TOLERANCE = 0.5

# descriptors of the same name are merged if their masses agree within this tolerance
DUPLICATE_MASS_TOLERANCE = 1e-4

ISOBARIC_NAME_PREFIXES = ("itraq", "tmt")
ISOBARIC_LABEL_MASSES = [
    144.102063,  # iTRAQ 4-plex
    304.205360,  # iTRAQ 8-plex
    225.155833,  # TMT 0-plex
    229.162932,  # TMT 6/10/11-plex
    304.207146,  # TMTpro
]
ISOBARIC_MASS_TOLERANCE = 0.01


class Terminus(metaclass=ConstantsClass):
    """Position of a residue, or the scope of a terminal modification, relative to the termini."""

    NONE = "none"
    PEPTIDE_N = "peptide_n"
    PEPTIDE_C = "peptide_c"
    PROTEIN_N = "protein_n"
    PROTEIN_C = "protein_c"


N_TERMINAL_STATES = {Terminus.PEPTIDE_N, Terminus.PROTEIN_N}
C_TERMINAL_STATES = {Terminus.PEPTIDE_C, Terminus.PROTEIN_C}
ALL_STATES = set(Terminus.get_values())


class ModificationClass(metaclass=ConstantsClass):
    STATIC_RESIDUE = "StaticResidue"
    DYNAMIC_RESIDUE = "DynamicResidue"
    DYNAMIC_PEPTIDE_N_TERM = "DynamicPeptideNTerm"
    DYNAMIC_PEPTIDE_C_TERM = "DynamicPeptideCTerm"
    DYNAMIC_PROTEIN_N_TERM = "DynamicProteinNTerm"
    DYNAMIC_PROTEIN_C_TERM = "DynamicProteinCTerm"


DYNAMIC_CLASS_FOR_TERMINUS = {
    Terminus.NONE: ModificationClass.DYNAMIC_RESIDUE,
    Terminus.PEPTIDE_N: ModificationClass.DYNAMIC_PEPTIDE_N_TERM,
    Terminus.PEPTIDE_C: ModificationClass.DYNAMIC_PEPTIDE_C_TERM,
    Terminus.PROTEIN_N: ModificationClass.DYNAMIC_PROTEIN_N_TERM,
    Terminus.PROTEIN_C: ModificationClass.DYNAMIC_PROTEIN_C_TERM,
}

# terminus states of a residue a modification class (or static terminus scope) may sit on
ALLOWED_STATES = {
    ModificationClass.DYNAMIC_RESIDUE: ALL_STATES,
    ModificationClass.DYNAMIC_PEPTIDE_N_TERM: N_TERMINAL_STATES,
    ModificationClass.DYNAMIC_PEPTIDE_C_TERM: C_TERMINAL_STATES,
    ModificationClass.DYNAMIC_PROTEIN_N_TERM: {Terminus.PROTEIN_N},
    ModificationClass.DYNAMIC_PROTEIN_C_TERM: {Terminus.PROTEIN_C},
}
STATIC_ALLOWED_STATES = {
    Terminus.NONE: ALL_STATES,
    Terminus.PEPTIDE_N: N_TERMINAL_STATES,
    Terminus.PEPTIDE_C: C_TERMINAL_STATES,
    Terminus.PROTEIN_N: {Terminus.PROTEIN_N},
    Terminus.PROTEIN_C: {Terminus.PROTEIN_C},
}


@dataclass(frozen=True)
class ModificationDescriptor:
    """A modification declared for the search.

    An empty `residues` set means the modification applies to any residue (or only to the terminus
    for terminal modifications). `terminus` restricts static modifications to a terminus.
    """

    name: str
    mass: float
    residues: frozenset[str]
    mod_class: str
    symbol: str = ModificationSymbols.UNKNOWN
    terminus: str = Terminus.NONE

    @property
    def is_static(self) -> bool:
        return self.mod_class == ModificationClass.STATIC_RESIDUE

    @property
    def is_isobaric_label(self) -> bool:
        if self.name.lower().startswith(ISOBARIC_NAME_PREFIXES):
            return True
        return any(
            abs(self.mass - label_mass) <= ISOBARIC_MASS_TOLERANCE
            for label_mass in ISOBARIC_LABEL_MASSES
        )

    def targets(self, residue: str | None) -> bool:
        if not self.residues:
            return True
        return residue is not None and residue in self.residues

    def applies_at(self, terminus: str) -> bool:
        """Whether the modification may sit on a residue with the given terminus state."""
        if self.is_static:
            return terminus in STATIC_ALLOWED_STATES[self.terminus]
        return terminus in ALLOWED_STATES[self.mod_class]

    def matches(self, residue: str | None, terminus: str) -> bool:
        return self.targets(residue) and self.applies_at(terminus)


@dataclass(frozen=True)
class ModificationDeclaration:
    """A modification as read from a parameter file, before symbols are assigned."""

    name: str
    mass: float
    residues: frozenset[str]
    static: bool
    terminus: str = Terminus.NONE


def _parse_residues(text: str) -> frozenset[str]:
    text = text.strip()
    if text == "*":
        return frozenset()
    return frozenset(char for char in text.upper() if "A" <= char <= "Z")


def _strip_comment(line: str) -> str:
    return line.split("#", 1)[0].strip()


INLINE_TYPES = {
    "opt": (False, Terminus.NONE),
    "fix": (True, Terminus.NONE),
    "nterminal": (False, Terminus.PEPTIDE_N),
    "cterminal": (False, Terminus.PEPTIDE_C),
}


def parse_inline_definitions(
    lines: list[str], name_length: int | None = None
) -> tuple[list[ModificationDeclaration], list[str]]:
    """Parse `mod,<mass>,<residues>[,<type>[,<name>]]` lines of an InSpecT parameter file.

    Parameters
    ----------

    lines : list[str]
        Lines of the parameter file, lines not starting with `mod` are ignored.

    name_length : int, optional
        Names are lower-cased and truncated to this length.

    Returns
    -------
    tuple[list[ModificationDeclaration], list[str]]
        Declarations in file order and the warnings encountered.
    """
    declarations, warnings = [], []
    unnamed_count = 0

    for line in lines:
        line = _strip_comment(line)
        if not line:
            continue

        columns = [column.strip() for column in line.split(",")]
        if len(columns) < 3 or columns[0].lower() != "mod":
            continue

        mass_text, residues = columns[1], columns[2]
        try:
            mass = float(mass_text)
        except ValueError:
            warnings.append(f"Invalid modification mass '{mass_text}' in line '{line}'")
            continue

        static, terminus = False, Terminus.NONE
        if len(columns) >= 4:
            mod_type = columns[3].lower()
            if mod_type in INLINE_TYPES:
                static, terminus = INLINE_TYPES[mod_type]
            else:
                warnings.append(
                    f"Unrecognized modification type '{columns[3]}', assuming dynamic"
                )

        if len(columns) >= 5 and columns[4]:
            name = columns[4].lower()
            if name_length is not None:
                name = name[:name_length]
        else:
            unnamed_count += 1
            name = f"UnnamedMod{unnamed_count}"

        # phosphorylation has to be declared with the integer mass 80
        if name == PHOSPHO_NAME and mass_text.lstrip("+") == "80":
            mass = PHOSPHO_MASS

        declarations.append(
            ModificationDeclaration(
                name, mass, _parse_residues(residues), static, terminus
            )
        )

    return declarations, warnings


KEY_VALUE_POSITIONS = {
    "any": Terminus.NONE,
    "n-term": Terminus.PEPTIDE_N,
    "c-term": Terminus.PEPTIDE_C,
    "prot-n-term": Terminus.PROTEIN_N,
    "prot-c-term": Terminus.PROTEIN_C,
}


def parse_key_value_definitions(
    lines: list[str],
) -> tuple[list[ModificationDeclaration], list[str]]:
    """Parse the modifications of an MS-GF+ style parameter file.

    Accepted lines are `StaticMod=...`, `DynamicMod=...` and bare definitions of the form
    `<mass or formula>,<residues>,<fix|opt>,<position>,<name>`.
    """
    declarations, warnings = [], []
    unnamed_count = 0

    for line in lines:
        line = _strip_comment(line)
        if not line:
            continue

        tag = ""
        if "=" in line:
            tag, line = (part.strip() for part in line.split("=", 1))
            if tag.lower() not in ("staticmod", "dynamicmod", "customaa"):
                continue
        elif ",opt," not in line.replace(" ", "") and ",fix," not in line.replace(
            " ", ""
        ):
            continue

        if line.lower() == "none":
            continue

        columns = [column.strip() for column in line.split(",")]
        if len(columns) < 4:
            warnings.append(f"Incomplete modification definition '{line}'")
            continue

        mod_type = columns[2].lower()
        if tag.lower() == "customaa" or mod_type == "custom":
            warnings.append(f"Custom amino acid definitions are not supported: '{line}'")
            continue

        try:
            mass = parse_mass_or_formula(columns[0])
        except ValueError as e:
            warnings.append(f"Invalid modification mass in '{line}': {e}")
            continue

        if mod_type == "fix":
            static = True
        elif mod_type == "opt":
            static = False
        else:
            static = tag.lower() == "staticmod"

        position = columns[3].lower()
        if position not in KEY_VALUE_POSITIONS:
            warnings.append(
                f"Unrecognized modification position '{columns[3]}', assuming any"
            )
        terminus = KEY_VALUE_POSITIONS.get(position, Terminus.NONE)

        if len(columns) >= 5 and columns[4]:
            name = columns[4]
        else:
            unnamed_count += 1
            name = f"UnnamedMod{unnamed_count}"

        declarations.append(
            ModificationDeclaration(
                name, mass, _parse_residues(columns[1]), static, terminus
            )
        )

    return declarations, warnings


XML_POSITIONS = {
    "anywhere": Terminus.NONE,
    "any_n-term": Terminus.PEPTIDE_N,
    "any_c-term": Terminus.PEPTIDE_C,
    "protein_n-term": Terminus.PROTEIN_N,
    "protein_c-term": Terminus.PROTEIN_C,
}


def parse_xml_definitions(
    root: etree._Element,
) -> tuple[list[ModificationDeclaration], list[str]]:
    """Parse the `<mod>` elements below `<modifications>` of a MODPlus parameter file.

    Modifications below `<fixed>` are static, the ones below `<variable>` or directly below
    `<modifications>` are dynamic.
    """
    declarations, warnings = [], []

    for modifications in root.iter("modifications"):
        for element in modifications:
            if element.tag == "fixed":
                mods = [(mod, True) for mod in element.iter("mod")]
            elif element.tag == "variable":
                mods = [(mod, False) for mod in element.iter("mod")]
            elif element.tag == "mod":
                mods = [(element, False)]
            else:
                continue

            for mod, static in mods:
                name = mod.get("name", "")
                site = mod.get("site", "")
                try:
                    mass = float(mod.get("massdiff", ""))
                except ValueError:
                    warnings.append(
                        f"Invalid massdiff '{mod.get('massdiff')}' for modification '{name}'"
                    )
                    continue

                terminus = XML_POSITIONS.get(
                    mod.get("position", "ANYWHERE").lower(), Terminus.NONE
                )
                if site.lower() in ("n-term", "c-term"):
                    residues = frozenset()
                    if terminus == Terminus.NONE:
                        terminus = (
                            Terminus.PEPTIDE_N
                            if site.lower() == "n-term"
                            else Terminus.PEPTIDE_C
                        )
                else:
                    residues = _parse_residues(site)

                declarations.append(
                    ModificationDeclaration(name, mass, residues, static, terminus)
                )

    return declarations, warnings


class ModificationCatalog:
    def __init__(self, mass_tolerance: float = DEFAULT_MASS_TOLERANCE) -> None:
        """Run-wide collection of modification descriptors.

        Descriptors are added in declaration order. Dynamic modifications get a symbol from the
        reserved pool, static modifications are not embedded in the annotation.

        Parameters
        ----------

        mass_tolerance : float, default 0.5
            Maximum absolute mass difference in Da for `resolve_by_mass`.

        """
        self.mass_tolerance = mass_tolerance
        self.descriptors: list[ModificationDescriptor] = []
        self.warnings: list[str] = []
        self._by_name: dict[str, int] = {}
        self._symbols_used = 0

    def __len__(self) -> int:
        return len(self.descriptors)

    def __iter__(self):
        return iter(self.descriptors)

    @classmethod
    def load_from_tool_parameters(
        cls,
        path: str,
        definition_format: str,
        name_length: int | None = None,
        mass_tolerance: float = DEFAULT_MASS_TOLERANCE,
    ) -> "ModificationCatalog":
        """Load the modifications declared in a search engine parameter file.

        Raises
        ------
        CatalogLoadError
            If the file does not exist or can't be parsed.
        """
        if not os.path.exists(path):
            raise CatalogLoadError(path, "File not found")

        logger.info(f"Loading modification definitions from {path}")

        try:
            if definition_format == ModDefinitionFormat.XML:
                root = etree.parse(path).getroot()
                declarations, warnings = parse_xml_definitions(root)
            else:
                with open(path, encoding="utf-8") as f:
                    lines = f.readlines()
                if definition_format == ModDefinitionFormat.INLINE:
                    declarations, warnings = parse_inline_definitions(
                        lines, name_length
                    )
                else:
                    declarations, warnings = parse_key_value_definitions(lines)
        except (OSError, UnicodeDecodeError, etree.XMLSyntaxError) as e:
            raise CatalogLoadError(path, str(e)) from e

        catalog = cls(mass_tolerance=mass_tolerance)
        for warning in warnings:
            catalog._warn(warning)
        for declaration in declarations:
            catalog.add(declaration)

        logger.info(
            f"Loaded {len(catalog)} modification(s): "
            + ", ".join(
                f"{d.name} ({d.mass:+.4f}, {d.symbol})" for d in catalog.descriptors
            )
        )
        return catalog

    @classmethod
    def with_fallback(
        cls, mass_tolerance: float = DEFAULT_MASS_TOLERANCE
    ) -> "ModificationCatalog":
        """Catalog holding a single dynamic phosphorylation on S, T and Y."""
        catalog = cls(mass_tolerance=mass_tolerance)
        catalog.add(
            ModificationDeclaration(
                PHOSPHO_NAME, PHOSPHO_MASS, frozenset(PHOSPHO_RESIDUES), static=False
            )
        )
        return catalog

    def _warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    def _next_symbol(self) -> str:
        if self._symbols_used < len(ModificationSymbols.POOL):
            symbol = ModificationSymbols.POOL[self._symbols_used]
            self._symbols_used += 1
            return symbol
        self._warn(
            f"All {len(ModificationSymbols.POOL)} modification symbols are in use, "
            f"using '{ModificationSymbols.LAST_RESORT}'"
        )
        return ModificationSymbols.LAST_RESORT

    def add(self, declaration: ModificationDeclaration) -> ModificationDescriptor | None:
        """Add a declaration to the catalog and return the descriptor it maps to.

        Static terminal modifications without residue restriction are added as dynamic terminal
        modifications. A second declaration with the same name is merged into the first one if class
        and mass agree, otherwise it is skipped.
        """
        static, terminus = declaration.static, declaration.terminus
        if static and terminus != Terminus.NONE and not declaration.residues:
            static = False

        if static:
            mod_class = ModificationClass.STATIC_RESIDUE
        else:
            mod_class = DYNAMIC_CLASS_FOR_TERMINUS[terminus]
            terminus = Terminus.NONE

        key = declaration.name.lower()
        if (index := self._by_name.get(key)) is not None:
            existing = self.descriptors[index]
            if (
                existing.mod_class == mod_class
                and existing.terminus == terminus
                and abs(existing.mass - declaration.mass) <= DUPLICATE_MASS_TOLERANCE
            ):
                merged = ModificationDescriptor(
                    existing.name,
                    existing.mass,
                    existing.residues | declaration.residues,
                    mod_class,
                    existing.symbol,
                    terminus,
                )
                self.descriptors[index] = merged
                return merged

            self._warn(
                f"Skipping conflicting declaration of modification '{declaration.name}'"
            )
            return None

        symbol = ModificationSymbols.NO_SYMBOL if static else self._next_symbol()
        descriptor = ModificationDescriptor(
            declaration.name,
            declaration.mass,
            declaration.residues,
            mod_class,
            symbol,
            terminus,
        )
        self._by_name[key] = len(self.descriptors)
        self.descriptors.append(descriptor)
        return descriptor

    @property
    def static_descriptors(self) -> list[ModificationDescriptor]:
        return [d for d in self.descriptors if d.is_static]

    @property
    def dynamic_descriptors(self) -> list[ModificationDescriptor]:
        return [d for d in self.descriptors if not d.is_static]

    @property
    def has_isobaric_label(self) -> bool:
        return any(d.is_isobaric_label for d in self.descriptors)

    def by_symbol(self, symbol: str) -> ModificationDescriptor | None:
        """First dynamic descriptor carrying `symbol`."""
        for descriptor in self.dynamic_descriptors:
            if descriptor.symbol == symbol:
                return descriptor
        return None

    def by_name(
        self, name: str, case_sensitive: bool = False
    ) -> ModificationDescriptor | None:
        for descriptor in self.descriptors:
            if descriptor.name == name or (
                not case_sensitive and descriptor.name.lower() == name.lower()
            ):
                return descriptor
        return None

    def resolve_by_mass(
        self,
        mass: float,
        residue: str | None,
        terminus: str = Terminus.NONE,
        tolerance: float | None = None,
    ) -> ModificationDescriptor | None:
        """Find the declared modification closest to `mass` that may sit on `residue`.

        Parameters
        ----------

        mass : float
            Mass delta as annotated by the search engine, possibly rounded to an integer.

        residue : str, optional
            Residue carrying the modification, None if unknown.

        terminus : str, default Terminus.NONE
            Terminus state of the residue.

        tolerance : float, optional
            Maximum absolute mass difference in Da, defaults to the catalog tolerance.

        Returns
        -------
        ModificationDescriptor or None
            The closest match, the first in catalog order if several are equally close.
        """
        tolerance = self.mass_tolerance if tolerance is None else tolerance

        best, best_difference = None, None
        for descriptor in self.descriptors:
            if not descriptor.matches(residue, terminus):
                continue
            difference = abs(descriptor.mass - mass)
            if difference > tolerance:
                continue
            if best_difference is None or difference < best_difference:
                best, best_difference = descriptor, difference

        return best

"""This module provides unit tests for peptidehit.modifications.catalog."""

import pytest
from conftest import make_catalog, write_lines
from lxml import etree

from peptidehit.constants.keys import ModificationSymbols
from peptidehit.exceptions import CatalogLoadError
from peptidehit.modifications.catalog import (
    PHOSPHO_MASS,
    ModificationCatalog,
    ModificationClass,
    ModificationDeclaration,
    Terminus,
    parse_inline_definitions,
    parse_key_value_definitions,
    parse_xml_definitions,
)
from peptidehit.tools import ModDefinitionFormat


def test_parse_inline_definitions():
    """Test parsing of InSpecT modification lines including type, name truncation and comments."""
    lines = [
        "# search parameters",
        "spectra,test.mzXML",
        "mod,+57,C,fix,Carbamidomethyl",
        "mod,16,M,opt,Oxidation",
        "mod,42,*,nterminal",
        "mod,+1,K,weird,Test  # comment",
    ]

    # when
    declarations, warnings = parse_inline_definitions(lines, name_length=4)

    assert [d.name for d in declarations] == ["carb", "oxid", "UnnamedMod1", "test"]
    assert declarations[0].static
    assert declarations[0].residues == frozenset("C")
    assert not declarations[1].static
    assert declarations[2].terminus == Terminus.PEPTIDE_N
    assert declarations[2].residues == frozenset()
    assert not declarations[3].static
    assert len(warnings) == 1


def test_parse_inline_definitions_corrects_phosphorylation_mass():
    """Test that phosphorylation declared with the integer mass 80 gets the precise mass."""
    # when
    declarations, _ = parse_inline_definitions(["mod,+80,STY,opt,phosphorylation"], 4)

    assert declarations[0].name == "phos"
    assert declarations[0].mass == PHOSPHO_MASS


def test_parse_key_value_definitions():
    """Test parsing of MS-GF+ modifications given as mass or empirical formula."""
    lines = [
        "NumMods=2",
        "StaticMod=C2H3N1O1,C,fix,any,Carbamidomethyl  # comment",
        "DynamicMod=15.994915,M,opt,any,Oxidation",
        "DynamicMod=42.010565,*,opt,Prot-N-term,Acetyl",
        "DynamicMod=None",
        "CustomAA=C5H7N1O2S0,J,custom,U,Hydroxylproline",
        "H-1,C,opt,any,Dehydro",
    ]

    # when
    declarations, warnings = parse_key_value_definitions(lines)

    assert [d.name for d in declarations] == [
        "Carbamidomethyl",
        "Oxidation",
        "Acetyl",
        "Dehydro",
    ]
    assert declarations[0].static
    assert declarations[0].mass == pytest.approx(57.021464, abs=1e-4)
    assert declarations[2].terminus == Terminus.PROTEIN_N
    assert declarations[3].mass == pytest.approx(-1.007825, abs=1e-4)
    assert len(warnings) == 1


def test_parse_xml_definitions():
    """Test parsing of fixed and variable MODPlus modifications."""
    root = etree.fromstring(
        """
        <search>
          <modifications>
            <fixed>
              <mod name="Carbamidomethyl" site="C" massdiff="57.021464"/>
            </fixed>
            <variable>
              <mod name="Oxidation" site="M" position="ANYWHERE" massdiff="15.994915"/>
              <mod name="Acetyl" site="N-term" position="PROTEIN_N-TERM" massdiff="42.010565"/>
            </variable>
            <mod name="Amidated" site="C-term" massdiff="-0.984016"/>
          </modifications>
        </search>
        """.strip()
    )

    # when
    declarations, warnings = parse_xml_definitions(root)

    assert [(d.name, d.static, d.terminus) for d in declarations] == [
        ("Carbamidomethyl", True, Terminus.NONE),
        ("Oxidation", False, Terminus.NONE),
        ("Acetyl", False, Terminus.PROTEIN_N),
        ("Amidated", False, Terminus.PEPTIDE_C),
    ]
    assert warnings == []


def test_catalog_assigns_symbols_in_declaration_order():
    """Test that dynamic modifications get pool symbols and static ones no symbol."""
    # when
    catalog = make_catalog(
        ModificationDeclaration("ox", 15.9949, frozenset("M"), static=False),
        ModificationDeclaration("cam", 57.0215, frozenset("C"), static=True),
        ModificationDeclaration("phos", 79.9663, frozenset("STY"), static=False),
    )

    assert [d.symbol for d in catalog] == ["*", ModificationSymbols.NO_SYMBOL, "#"]
    assert catalog.static_descriptors[0].name == "cam"


def test_catalog_uses_last_resort_symbol_when_pool_exhausted():
    """Test that the symbol pool running out is a warning, not an error."""
    declarations = [
        ModificationDeclaration(f"mod{i}", float(i + 1), frozenset("K"), static=False)
        for i in range(len(ModificationSymbols.POOL) + 1)
    ]

    # when
    catalog = make_catalog(*declarations)

    assert catalog.descriptors[-1].symbol == ModificationSymbols.LAST_RESORT
    assert len(catalog.warnings) == 1


def test_catalog_reclassifies_terminus_only_static_modification():
    """Test that a static modification restricted only to a terminus becomes a dynamic terminal modification."""
    # when
    catalog = make_catalog(
        ModificationDeclaration(
            "nterm", 229.1629, frozenset(), static=True, terminus=Terminus.PEPTIDE_N
        ),
    )

    descriptor = catalog.descriptors[0]
    assert descriptor.mod_class == ModificationClass.DYNAMIC_PEPTIDE_N_TERM
    assert descriptor.symbol == "*"


def test_catalog_merges_duplicate_declarations():
    """Test that the same modification declared twice merges the residues and a conflicting one is skipped."""
    # when
    catalog = make_catalog(
        ModificationDeclaration("Phospho", 79.9663, frozenset("ST"), static=False),
        ModificationDeclaration("phospho", 79.9663, frozenset("Y"), static=False),
        ModificationDeclaration("PHOSPHO", 80.5, frozenset("H"), static=False),
    )

    assert len(catalog) == 1
    assert catalog.descriptors[0].residues == frozenset("STY")
    assert len(catalog.warnings) == 1


def test_resolve_by_mass_respects_residue_terminus_and_tolerance(standard_catalog):
    """Test matching of rounded mass annotations against the declared modifications."""
    # when
    oxidation = standard_catalog.resolve_by_mass(16, "M")
    wrong_residue = standard_catalog.resolve_by_mass(16, "K")
    acetyl = standard_catalog.resolve_by_mass(42, "A", Terminus.PROTEIN_N)
    acetyl_not_at_terminus = standard_catalog.resolve_by_mass(42, "A", Terminus.NONE)
    too_far = standard_catalog.resolve_by_mass(17, "M")

    assert oxidation.name == "Oxidation"
    assert wrong_residue is None
    assert acetyl.name == "Acetyl"
    assert acetyl_not_at_terminus is None
    assert too_far is None


def test_resolve_by_mass_prefers_closest_then_catalog_order():
    """Test that the closest mass wins and ties are resolved by catalog order."""
    catalog = make_catalog(
        ModificationDeclaration("first", 14.0, frozenset("K"), static=False),
        ModificationDeclaration("second", 14.0, frozenset("K"), static=False),
        ModificationDeclaration("closer", 14.2, frozenset("K"), static=False),
    )

    # when
    tie = catalog.resolve_by_mass(13.9, "K")
    closest = catalog.resolve_by_mass(14.3, "K")

    assert tie.name == "first"
    assert closest.name == "closer"


def test_isobaric_label_detection():
    """Test that TMT and iTRAQ labels are detected by name or mass."""
    # when
    by_name = make_catalog(
        ModificationDeclaration("TMT6plex", 229.162932, frozenset("K"), static=True)
    )
    by_mass = make_catalog(
        ModificationDeclaration("label", 144.1021, frozenset("K"), static=True)
    )
    none = make_catalog(
        ModificationDeclaration("ox", 15.9949, frozenset("M"), static=False)
    )

    assert by_name.has_isobaric_label
    assert by_mass.has_isobaric_label
    assert not none.has_isobaric_label


def test_load_from_tool_parameters(tmp_path):
    """Test loading an InSpecT parameter file."""
    path = write_lines(
        tmp_path / "inspect_params.txt",
        ["mod,+57,C,fix", "mod,+16,M,opt,oxidation"],
    )

    # when
    catalog = ModificationCatalog.load_from_tool_parameters(
        path, ModDefinitionFormat.INLINE, name_length=4
    )

    assert [d.name for d in catalog] == ["UnnamedMod1", "oxid"]


def test_load_from_tool_parameters_missing_file_raises(tmp_path):
    """Test that a missing definitions file raises a CatalogLoadError."""
    # when
    with pytest.raises(CatalogLoadError):
        ModificationCatalog.load_from_tool_parameters(
            str(tmp_path / "missing.xml"), ModDefinitionFormat.XML
        )


def test_load_from_tool_parameters_invalid_xml_raises(tmp_path):
    """Test that an unparseable xml file raises a CatalogLoadError."""
    path = write_lines(tmp_path / "params.xml", ["<search><modifications>"])

    # when
    with pytest.raises(CatalogLoadError):
        ModificationCatalog.load_from_tool_parameters(path, ModDefinitionFormat.XML)


def test_with_fallback():
    """Test the fallback catalog holding a single phosphorylation."""
    # when
    catalog = ModificationCatalog.with_fallback()

    assert len(catalog) == 1
    descriptor = catalog.descriptors[0]
    assert descriptor.mass == PHOSPHO_MASS
    assert descriptor.residues == frozenset("STY")
    assert not descriptor.is_static

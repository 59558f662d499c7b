"""Tool profiles describing the native result files of the supported search engines.

Every engine is described by data only: the header names of its columns, the notation it uses for
modifications inside the peptide annotation, the format of its modification definitions and the
sign convention of its precursor error. One generic pipeline consumes these profiles.
"""

from dataclasses import dataclass, field

from peptidehit.constants.keys import ConstantsClass, ResultFields
from peptidehit.exceptions import UnknownToolError


class ModNotation(metaclass=ConstantsClass):
    """How dynamic modifications are written inside a peptide annotation."""

    # modification names (e.g. `Mox`), terminal mods as integer mass (`+42PEPTIDE`)
    NAME = "name"
    # signed mass deltas trailing the residue (e.g. `M+15.995`)
    MASS_DELTA = "mass_delta"


class ModDefinitionFormat(metaclass=ConstantsClass):
    """Format of the file declaring the modifications of a search."""

    INLINE = "inline"
    XML = "xml"
    KEY_VALUE = "key_value"


class PrecursorValueKind(metaclass=ConstantsClass):
    MZ = "mz"
    NEUTRAL_MASS = "neutral_mass"


class PrecursorErrorSign(metaclass=ConstantsClass):
    OBSERVED_MINUS_THEORETICAL = "observed_minus_theoretical"
    THEORETICAL_MINUS_OBSERVED = "theoretical_minus_observed"


class PrecursorErrorUnits(metaclass=ConstantsClass):
    MZ = "mz"
    DA = "da"
    PPM = "ppm"


# factor turning a reported precursor error into observed - theoretical
PRECURSOR_ERROR_SIGN_FACTOR = {
    PrecursorErrorSign.OBSERVED_MINUS_THEORETICAL: 1.0,
    PrecursorErrorSign.THEORETICAL_MINUS_OBSERVED: -1.0,
}

# checked in this order, the first field present in a row is used
PRECURSOR_ERROR_FIELDS = {
    PrecursorErrorUnits.PPM: ResultFields.PRECURSOR_ERROR_PPM,
    PrecursorErrorUnits.DA: ResultFields.PRECURSOR_ERROR_DA,
    PrecursorErrorUnits.MZ: ResultFields.PRECURSOR_ERROR_MZ,
}


@dataclass(frozen=True)
class ScoreField:
    name: str
    higher_is_better: bool = True


@dataclass(frozen=True)
class ScoreAxis:
    """A sort order over a scan group and the columns derived from it.

    Parameters
    ----------

    score : str
        Name of the score field the group is sorted by.

    tie_breaker : str, optional
        Name of a second score field used for entries with identical `score`.

    rank_column : str, optional
        Output column receiving the rank of each entry within its charge state.

    delta_norm_column : str, optional
        Output column receiving the normalized difference to the next entry of the same charge state.
    """

    score: str
    tie_breaker: str | None = None
    rank_column: str | None = None
    delta_norm_column: str | None = None


@dataclass(frozen=True)
class ToolProfile:
    name: str
    # header name -> logical field, matched case-insensitively
    column_names: dict[str, str]
    default_column_order: list[str]
    min_columns: int
    score_fields: list[ScoreField]
    score_axes: list[ScoreAxis]
    primary_score: str
    first_hits_axes: list[str]
    mod_notation: str
    mod_names_case_sensitive: bool
    mod_definition_format: str
    precursor_value: str = PrecursorValueKind.MZ
    precursor_error_sign: str = PrecursorErrorSign.OBSERVED_MINUS_THEORETICAL
    mod_name_length: int | None = None
    terminus_markers: str = ""
    decoy_prefixes: list[str] = field(default_factory=list)

    def score_field(self, name: str) -> ScoreField:
        for score_field in self.score_fields:
            if score_field.name == name:
                return score_field
        raise KeyError(f"Score {name} is not defined for tool {self.name}")

    def axis(self, score: str) -> ScoreAxis:
        for axis in self.score_axes:
            if axis.score == score:
                return axis
        raise KeyError(f"No score axis for {score} defined for tool {self.name}")

    @property
    def score_names(self) -> list[str]:
        return [score_field.name for score_field in self.score_fields]

    @property
    def rank_columns(self) -> list[str]:
        return [axis.rank_column for axis in self.score_axes if axis.rank_column]

    @property
    def delta_norm_columns(self) -> list[str]:
        return [
            axis.delta_norm_column for axis in self.score_axes if axis.delta_norm_column
        ]


INSPECT = ToolProfile(
    name="inspect",
    column_names={
        "#SpectrumFile": ResultFields.SPECTRUM_FILE,
        "Scan#": ResultFields.SCAN,
        "Annotation": ResultFields.PEPTIDE,
        "Protein": ResultFields.PROTEIN,
        "Charge": ResultFields.CHARGE,
        "MQScore": "MQScore",
        "Length": "Length",
        "TotalPRMScore": "TotalPRMScore",
        "MedianPRMScore": "MedianPRMScore",
        "FractionY": "FractionY",
        "FractionB": "FractionB",
        "Intensity": "Intensity",
        "NTT": "NTT",
        "p-value": "PValue",
        "F-Score": "FScore",
        "DeltaScore": "DeltaScore",
        "DeltaScoreOther": "DeltaScoreOther",
        "RecordNumber": "RecordNumber",
        "DBFilePos": "DBFilePos",
        "SpecFilePos": "SpecFilePos",
        "PrecursorMZ": ResultFields.PRECURSOR,
        "PrecursorError": ResultFields.PRECURSOR_ERROR_MZ,
    },
    default_column_order=[
        ResultFields.SPECTRUM_FILE,
        ResultFields.SCAN,
        ResultFields.PEPTIDE,
        ResultFields.PROTEIN,
        ResultFields.CHARGE,
        "MQScore",
        "Length",
        "TotalPRMScore",
        "MedianPRMScore",
        "FractionY",
        "FractionB",
        "Intensity",
        "NTT",
        "PValue",
        "FScore",
        "DeltaScore",
        "DeltaScoreOther",
        "RecordNumber",
        "DBFilePos",
        "SpecFilePos",
        ResultFields.PRECURSOR,
        ResultFields.PRECURSOR_ERROR_MZ,
    ],
    min_columns=15,
    score_fields=[
        ScoreField("MQScore"),
        ScoreField("TotalPRMScore"),
        ScoreField("MedianPRMScore"),
        ScoreField("PValue", higher_is_better=False),
        ScoreField("FScore"),
        ScoreField("DeltaScore"),
        ScoreField("DeltaScoreOther"),
    ],
    score_axes=[
        ScoreAxis("FScore", tie_breaker="TotalPRMScore", rank_column="RankFScore"),
        ScoreAxis(
            "MQScore", tie_breaker="TotalPRMScore", delta_norm_column="DeltaNormMQScore"
        ),
        ScoreAxis(
            "TotalPRMScore",
            tie_breaker="FScore",
            rank_column="RankTotalPRMScore",
            delta_norm_column="DeltaNormTotalPRMScore",
        ),
    ],
    primary_score="TotalPRMScore",
    first_hits_axes=["TotalPRMScore", "FScore"],
    mod_notation=ModNotation.NAME,
    mod_names_case_sensitive=True,
    mod_definition_format=ModDefinitionFormat.INLINE,
    mod_name_length=4,
    terminus_markers="*",
    decoy_prefixes=["xxx."],
)

MSGFPLUS = ToolProfile(
    name="msgfplus",
    column_names={
        "#SpecFile": ResultFields.SPECTRUM_FILE,
        "SpecID": "SpecID",
        "SpecIndex": "SpecID",
        "ScanNum": ResultFields.SCAN,
        "Scan#": ResultFields.SCAN,
        "ScanTime(Min)": "ScanTime",
        "FragMethod": "FragMethod",
        "Precursor": ResultFields.PRECURSOR,
        "IsotopeError": "IsotopeError",
        "PrecursorError(Da)": ResultFields.PRECURSOR_ERROR_DA,
        "PMError(Da)": ResultFields.PRECURSOR_ERROR_DA,
        "PrecursorError(ppm)": ResultFields.PRECURSOR_ERROR_PPM,
        "PMError(ppm)": ResultFields.PRECURSOR_ERROR_PPM,
        "Charge": ResultFields.CHARGE,
        "Peptide": ResultFields.PEPTIDE,
        "Protein": ResultFields.PROTEIN,
        "DeNovoScore": "DeNovoScore",
        "MSGFScore": "MSGFScore",
        "SpecEValue": "SpecEValue",
        "SpecProb": "SpecEValue",
        "EValue": "EValue",
        "P-value": "EValue",
        "QValue": "QValue",
        "FDR": "QValue",
        "PepQValue": "PepQValue",
        "PepFDR": "PepQValue",
    },
    default_column_order=[
        ResultFields.SPECTRUM_FILE,
        "SpecID",
        ResultFields.SCAN,
        "ScanTime",
        "FragMethod",
        ResultFields.PRECURSOR,
        "IsotopeError",
        ResultFields.PRECURSOR_ERROR_PPM,
        ResultFields.CHARGE,
        ResultFields.PEPTIDE,
        ResultFields.PROTEIN,
        "DeNovoScore",
        "MSGFScore",
        "SpecEValue",
        "EValue",
        "QValue",
        "PepQValue",
    ],
    min_columns=13,
    score_fields=[
        ScoreField("DeNovoScore"),
        ScoreField("MSGFScore"),
        ScoreField("SpecEValue", higher_is_better=False),
        ScoreField("EValue", higher_is_better=False),
        ScoreField("QValue", higher_is_better=False),
        ScoreField("PepQValue", higher_is_better=False),
    ],
    score_axes=[
        ScoreAxis("SpecEValue", tie_breaker="MSGFScore", rank_column="RankSpecEValue"),
        ScoreAxis(
            "MSGFScore", tie_breaker="SpecEValue", delta_norm_column="DeltaNormMSGFScore"
        ),
    ],
    primary_score="SpecEValue",
    first_hits_axes=["SpecEValue"],
    mod_notation=ModNotation.MASS_DELTA,
    mod_names_case_sensitive=False,
    mod_definition_format=ModDefinitionFormat.KEY_VALUE,
    terminus_markers="_",
)

MODPLUS = ToolProfile(
    name="modplus",
    column_names={
        "SpectrumFile": ResultFields.SPECTRUM_FILE,
        "Index": "Index",
        "ScanNo": ResultFields.SCAN,
        "ObservedMW": ResultFields.PRECURSOR,
        "Charge": ResultFields.CHARGE,
        "CalculatedMW": ResultFields.ENGINE_MASS,
        "DeltaMass": ResultFields.PRECURSOR_ERROR_DA,
        "Score": "Score",
        "Probability": "Probability",
        "Peptide": ResultFields.PEPTIDE,
        "NTT": "NTT",
        "Protein": ResultFields.PROTEIN,
        "ModificationAnnotation": "ModificationAnnotation",
    },
    default_column_order=[
        ResultFields.SPECTRUM_FILE,
        "Index",
        ResultFields.SCAN,
        ResultFields.PRECURSOR,
        ResultFields.CHARGE,
        ResultFields.ENGINE_MASS,
        ResultFields.PRECURSOR_ERROR_DA,
        "Score",
        "Probability",
        ResultFields.PEPTIDE,
        "NTT",
        ResultFields.PROTEIN,
        "ModificationAnnotation",
    ],
    min_columns=13,
    score_fields=[
        ScoreField("Score"),
        ScoreField("Probability"),
    ],
    score_axes=[
        ScoreAxis(
            "Score",
            tie_breaker="Probability",
            rank_column="RankScore",
            delta_norm_column="DeltaNormScore",
        ),
    ],
    primary_score="Score",
    first_hits_axes=["Score"],
    mod_notation=ModNotation.MASS_DELTA,
    mod_names_case_sensitive=False,
    mod_definition_format=ModDefinitionFormat.XML,
    precursor_value=PrecursorValueKind.NEUTRAL_MASS,
)

TOOL_PROFILES = {profile.name: profile for profile in [INSPECT, MSGFPLUS, MODPLUS]}


def get_tool_profile(tool: str) -> ToolProfile:
    """Look up the profile of a search engine by its (case-insensitive) name."""
    try:
        return TOOL_PROFILES[tool.lower()]
    except KeyError as e:
        raise UnknownToolError(tool, list(TOOL_PROFILES)) from e

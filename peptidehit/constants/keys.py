class ConstantsClass(type):
    """A metaclass for classes that should only contain string constants."""

    def __setattr__(self, name, value):
        raise TypeError("Constants class cannot be modified")

    def get_values(cls):
        """Get all user-defined string values of the class."""
        return [
            value
            for key, value in cls.__dict__.items()
            if not key.startswith("__") and isinstance(value, str)
        ]


class ConfigKeys(metaclass=ConstantsClass):
    """String constants for accessing the config."""

    VERSION = "version"
    TOOL = "tool"
    INPUT_PATH = "input_path"
    OUTPUT_DIRECTORY = "output_directory"
    MODIFICATION_DEFINITIONS_PATH = "modification_definitions_path"
    PRECURSOR_INFO_PATH = "precursor_info_path"
    DATASET_NAME = "dataset_name"

    GENERAL = "general"
    LOG_LEVEL = "log_level"
    MAX_ERROR_MESSAGES = "max_error_messages"

    MODIFICATIONS = "modifications"
    MASS_TOLERANCE = "mass_tolerance"
    USE_FALLBACK_WHEN_EMPTY = "use_fallback_when_empty"

    MASS = "mass"
    CORRECT_FOR_C13 = "correct_for_c13"
    ISOBARIC_TOLERANCE = "isobaric_tolerance"

    RANKING = "ranking"
    SCORE_EPSILON = "score_epsilon"
    DELTA_NORM_DEFAULT = "delta_norm_default"

    OUTPUT = "output"
    CREATE_SYNOPSIS = "create_synopsis"
    CREATE_FIRST_HITS = "create_first_hits"

    TOOLS = "tools"
    COMPUTE_Q_VALUES = "compute_q_values"
    SYNOPSIS_THRESHOLDS = "synopsis_thresholds"


class ResultFields(metaclass=ConstantsClass):
    """Logical fields of a native results row, independent of the engine specific header names."""

    SPECTRUM_FILE = "spectrum_file"
    SCAN = "scan"
    CHARGE = "charge"
    PEPTIDE = "peptide"
    PROTEIN = "protein"
    PRECURSOR = "precursor"
    PRECURSOR_ERROR_MZ = "precursor_error_mz"
    PRECURSOR_ERROR_DA = "precursor_error_da"
    PRECURSOR_ERROR_PPM = "precursor_error_ppm"
    ENGINE_MASS = "engine_mass"


class SynopsisCols(metaclass=ConstantsClass):
    """String constants for the fixed leading columns of the canonical output files."""

    RESULT_ID = "ResultID"
    SCAN = "Scan"
    CHARGE = "Charge"
    PEPTIDE = "Peptide"
    PROTEIN = "Protein"
    SPECTRUM_FILE = "SpectrumFile"
    MH = "MH"
    DELTA_MASS = "DelM"
    DELTA_MASS_PPM = "DelM_PPM"

    Q_VALUE = "QValue"


class PrecursorInfoCols(metaclass=ConstantsClass):
    """String constants for the columns of the precursor info side file."""

    DATASET = "Dataset"
    SCAN_NUMBER = "ScanNumber"
    PRECURSOR_MZ = "PrecursorMz"


class OutputFiles(metaclass=ConstantsClass):
    SYNOPSIS_SUFFIX = "_syn.txt"
    FIRST_HITS_SUFFIX = "_fht.txt"
    FROZEN_CONFIG = "frozen_config.yaml"


class ModificationSymbols(metaclass=ConstantsClass):
    """Reserved characters used in canonical peptide annotations."""

    # assigned to dynamic modifications in declaration order
    POOL = "*#@$&!%~^`="
    LAST_RESORT = "_"
    NO_SYMBOL = "-"
    UNKNOWN = "?"

    TERMINUS = "-"
    PREFIX_SEPARATOR = "."

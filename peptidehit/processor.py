import dataclasses
import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path

from alphabase.constants.atom import MASS_PROTON

from peptidehit.constants.keys import ConfigKeys, OutputFiles, ResultFields
from peptidehit.data import SearchResultCandidate
from peptidehit.exceptions import (
    CatalogLoadError,
    CustomError,
    InputFileNotFoundError,
    RowParseError,
)
from peptidehit.mass import MassNormalizer
from peptidehit.modifications.catalog import ModificationCatalog
from peptidehit.modifications.resolver import ModificationSymbolResolver
from peptidehit.outputtransform.writer import CanonicalWriter
from peptidehit.precursor import PrecursorInfo
from peptidehit.reader import ColumnMappedRecordReader
from peptidehit.reporting.logging import print_environment, print_logo
from peptidehit.reporting.reporting import init_logging
from peptidehit.resulttransform.fdr import FdrQValueEstimator
from peptidehit.resulttransform.filter import BestPerChargeFilter, ThresholdUnionFilter
from peptidehit.resulttransform.rank import ScanGroupRanker, iter_scan_groups
from peptidehit.tools import (
    PRECURSOR_ERROR_FIELDS,
    PrecursorValueKind,
    ToolProfile,
    get_tool_profile,
)
from peptidehit.workflow.config import USER_DEFINED, USER_DEFINED_CLI_PARAM, Config

logger = logging.getLogger()

# spectrum files named like `Dataset.1234.1234.2.dta` carry the scan number
DTA_SCAN_PATTERN = re.compile(r"(\d+)\.\d+\.\d+\.dta", re.IGNORECASE)

INVALID_LINES_HEADER = "Invalid Lines: \n"


def scan_from_spectrum_file(spectrum_file: str) -> int:
    """Extract the scan number from a `.dta` spectrum file name, 0 if not possible."""
    match = DTA_SCAN_PATTERN.search(spectrum_file)
    return int(match.group(1)) if match else 0


def _parse_int(text: str, field: str, line_number: int) -> int:
    if not text:
        raise RowParseError(line_number, f"missing {field}")
    try:
        return int(float(text))
    except ValueError as e:
        raise RowParseError(line_number, f"invalid {field} '{text}'") from e


def _parse_score(text: str, field: str, line_number: int) -> float:
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError as e:
        raise RowParseError(line_number, f"invalid {field} '{text}'") from e


def _parse_optional_float(text: str) -> float | None:
    try:
        return float(text)
    except ValueError:
        return None


class ResultsProcessor:
    def __init__(
        self,
        output_folder: str,
        config: dict | Config | None = None,
        cli_config: dict | None = None,
        profile: ToolProfile | None = None,
    ) -> None:
        """Convert the native results file of a search engine into the canonical synopsis and first-hits files.

        Parameters
        ----------

        output_folder : str
            output folder to save the results, the log and the frozen config

        config : dict, optional
            values to update the default config. Overrides values in `default.yaml`.

        cli_config : dict, optional
            additional config values (parameters from the command line). Overrides values in `config`.

        profile : ToolProfile, optional
            tool profile to use instead of the registered profile of the configured tool.

        """
        self.output_folder = output_folder
        os.makedirs(output_folder, exist_ok=True)
        init_logging(self.output_folder)

        self._user_config = config
        self._cli_config = cli_config
        self._profile_override = profile

        self._config: Config | None = None
        self.profile: ToolProfile | None = None
        self.input_path: str | None = None

        self.error_messages: list[str] = []
        self.row_error_count = 0
        self.fatal_error_message = ""
        self._abort_requested = False

        self.catalog: ModificationCatalog | None = None
        self.precursor_info: PrecursorInfo | None = None
        self.synopsis_results: list[SearchResultCandidate] = []
        self.first_hits_results: dict[str, list[SearchResultCandidate]] = {}

    def setup(self) -> None:
        """Build the config and look up the tool profile. Called by `process` if not done before.

        Raises
        ------
        ConfigError
            If the user config adds unknown keys or changes the type of a value.

        UnknownToolError
            If the configured tool has no registered profile.
        """
        if self._config is not None:
            return

        config = self._init_config(
            self._user_config, self._cli_config, self.output_folder
        )
        self.profile = self._profile_override or get_tool_profile(
            config[ConfigKeys.TOOL]
        )
        self._config = config
        self._save_config(self.output_folder)

        logger.setLevel(
            logging.getLevelName(
                self._config[ConfigKeys.GENERAL][ConfigKeys.LOG_LEVEL]
            )
        )

        self.input_path = self._config[ConfigKeys.INPUT_PATH]
        self._log_inputs()

    @property
    def config(self) -> Config:
        return self._config

    @property
    def dataset_name(self) -> str:
        if dataset_name := self._config.get(ConfigKeys.DATASET_NAME):
            return dataset_name
        return Path(self.input_path).stem if self.input_path else ""

    @property
    def error_message(self) -> str:
        """Aggregated message of all kept row errors, preceded by the fatal error if there was one."""
        message = self.fatal_error_message
        if self.error_messages:
            if message:
                message += "\n"
            message += INVALID_LINES_HEADER + "\n".join(self.error_messages)
        return message

    def _save_config(self, output_folder: str) -> None:
        """Save the config to a file in the output folder."""
        file_path = os.path.join(output_folder, OutputFiles.FROZEN_CONFIG)
        self._config.to_yaml(file_path)

    @staticmethod
    def _init_config(
        user_config: dict | Config | None,
        cli_config: dict | None,
        output_folder: str,
    ) -> Config:
        """Initialize the config with default values and update with user defined values."""

        config = Config.load_default()

        config_updates = []

        if user_config:
            logger.info("loading additional config provided via CLI")
            if isinstance(user_config, Config):
                config_updates.append(user_config)
            else:
                config_updates.append(Config(user_config, name=USER_DEFINED))

        if cli_config:
            logger.info("loading additional config provided via CLI parameters")
            config_updates.append(Config(cli_config, name=USER_DEFINED_CLI_PARAM))

        if config_updates:
            config.update(config_updates, do_print=True)

        if (
            current_config_output_folder := config.get(ConfigKeys.OUTPUT_DIRECTORY)
        ) is not None and current_config_output_folder != output_folder:
            logger.warning(
                f"Using output directory '{output_folder}' provided via CLI, the value specified in config ('{current_config_output_folder}') will be ignored."
            )
        config[ConfigKeys.OUTPUT_DIRECTORY] = output_folder

        return config

    def _log_inputs(self) -> None:
        """Log all relevant inputs."""
        logger.info(f"Tool: {self.profile.name}")
        logger.info(f"Results file: {self.input_path}")
        logger.info(
            f"Modification definitions: {self._config[ConfigKeys.MODIFICATION_DEFINITIONS_PATH]}"
        )
        if self._config[ConfigKeys.PRECURSOR_INFO_PATH]:
            logger.info(
                f"Precursor info: {self._config[ConfigKeys.PRECURSOR_INFO_PATH]}"
            )
        logger.info(f"Saving output to: {self.output_folder}")

    def abort_processing(self) -> None:
        """Stop reading the results file before the next line. Results read so far are still written."""
        self._abort_requested = True

    def process(self) -> bool:
        """Run the conversion.

        Returns
        -------
        bool
            True if the output files were written, False on a fatal error (including an invalid config or an
            unknown tool). Row errors don't fail the run, they are available in `error_message`.
        """
        print_logo()
        print_environment()

        try:
            self.setup()
            self._process()
        except CustomError as e:
            _log_exception_event(e)
            self.fatal_error_message = f"{e.error_code}: {e.msg} {e.detail_msg}".strip()
            return False
        except OSError as e:
            _log_exception_event(e)
            self.fatal_error_message = f"I/O error: {e}"
            return False
        except Exception as e:
            _log_exception_event(e)
            self.fatal_error_message = f"Unexpected error: {e}"
            return False

        if self.row_error_count:
            logger.warning(
                f"{self.row_error_count:,} invalid line(s), see the error message for details"
            )

        logger.progress("================ Processing Finished ================")
        return True

    def _load_catalog(self) -> ModificationCatalog:
        """Load the declared modifications, falling back to a phosphorylation-only catalog if none could be loaded."""
        modification_config = self._config[ConfigKeys.MODIFICATIONS]
        mass_tolerance = modification_config[ConfigKeys.MASS_TOLERANCE]
        path = self._config[ConfigKeys.MODIFICATION_DEFINITIONS_PATH]

        catalog = None
        if path:
            try:
                catalog = ModificationCatalog.load_from_tool_parameters(
                    path,
                    self.profile.mod_definition_format,
                    name_length=self.profile.mod_name_length,
                    mass_tolerance=mass_tolerance,
                )
            except CatalogLoadError as e:
                logger.warning(f"{e.msg} {path}: {e.detail_msg}")
        else:
            logger.info("No modification definitions provided")

        if catalog is not None and len(catalog) > 0:
            return catalog

        if modification_config[ConfigKeys.USE_FALLBACK_WHEN_EMPTY]:
            logger.warning(
                "No modifications could be loaded, using a dynamic phosphorylation on S, T and Y"
            )
            return ModificationCatalog.with_fallback(mass_tolerance)

        logger.warning(
            "No modifications could be loaded, modification symbols are not applied"
        )
        return ModificationCatalog(mass_tolerance)

    def _init_steps(self) -> None:
        mass_config = self._config[ConfigKeys.MASS]
        ranking_config = self._config[ConfigKeys.RANKING]

        self.catalog = self._load_catalog()
        self.resolver = ModificationSymbolResolver.from_profile(
            self.catalog, self.profile
        )
        self.normalizer = MassNormalizer.from_profile(
            self.profile,
            has_isobaric_label=self.catalog.has_isobaric_label,
            correct_for_c13=mass_config[ConfigKeys.CORRECT_FOR_C13],
            isobaric_tolerance=mass_config[ConfigKeys.ISOBARIC_TOLERANCE],
        )
        self.reader = ColumnMappedRecordReader.from_profile(self.profile)

        self.ranker = ScanGroupRanker(
            self.profile,
            epsilon=ranking_config[ConfigKeys.SCORE_EPSILON],
            delta_norm_default=ranking_config[ConfigKeys.DELTA_NORM_DEFAULT],
        )
        self.synopsis_filter = ThresholdUnionFilter(
            self.profile,
            self._config.tool_settings()[ConfigKeys.SYNOPSIS_THRESHOLDS] or {},
        )
        self.first_hits_filters = {
            score: BestPerChargeFilter(self.profile, score)
            for score in self.profile.first_hits_axes
        }

        precursor_info_path = self._config[ConfigKeys.PRECURSOR_INFO_PATH]
        self.precursor_info = (
            PrecursorInfo.load(precursor_info_path) if precursor_info_path else None
        )
        if (
            self.precursor_info is not None
            and len(self.precursor_info.datasets) > 1
            and self.dataset_name not in self.precursor_info.datasets
        ):
            logger.warning(
                f"Dataset '{self.dataset_name}' is not in the precursor info, only entries without a dataset are used. "
                "Set `dataset_name` to one of the datasets of the precursor info."
            )

    def _process(self) -> None:
        if not self.input_path or not os.path.isfile(self.input_path):
            raise InputFileNotFoundError(str(self.input_path))

        logger.progress("Loading modification definitions")
        self._init_steps()

        logger.progress(f"Reading {os.path.basename(self.input_path)}")
        self.synopsis_results = []
        self.first_hits_results = {score: [] for score in self.first_hits_filters}

        group_count = 0
        for group in iter_scan_groups(self._iter_candidates(self.input_path)):
            group_count += 1
            ranked = self.ranker(group)

            self.synopsis_results.extend(self.synopsis_filter(ranked))
            for score, first_hits_filter in self.first_hits_filters.items():
                # copies, the q-values of first hits are estimated separately
                self.first_hits_results[score].extend(
                    dataclasses.replace(candidate)
                    for candidate in first_hits_filter(ranked)
                )

        logger.info(
            f"Read {group_count:,} scan groups, retained {len(self.synopsis_results):,} synopsis results"
        )
        if self.normalizer.mass_warning_count:
            logger.warning(
                f"{self.normalizer.mass_warning_count:,} result(s) with inconsistent engine reported mass"
            )

        compute_q_values = self._config.tool_settings()[ConfigKeys.COMPUTE_Q_VALUES]
        if compute_q_values:
            logger.progress("Estimating q-values")
            estimator = FdrQValueEstimator(self.profile)
            estimator(self.synopsis_results)
            for results in self.first_hits_results.values():
                estimator(results)

        self._write_output(compute_q_values)

    def _write_output(self, compute_q_values: bool) -> None:
        logger.progress("Writing output")
        output_config = self._config[ConfigKeys.OUTPUT]
        writer = CanonicalWriter(self.profile, compute_q_values=compute_q_values)
        base_path = os.path.join(self.output_folder, self.dataset_name)

        if output_config[ConfigKeys.CREATE_SYNOPSIS]:
            writer.write(
                self.synopsis_results, base_path + OutputFiles.SYNOPSIS_SUFFIX
            )

        if output_config[ConfigKeys.CREATE_FIRST_HITS]:
            for i, (score, results) in enumerate(self.first_hits_results.items()):
                suffix = (
                    OutputFiles.FIRST_HITS_SUFFIX
                    if i == 0
                    else f"_fht_{score}.txt"
                )
                writer.write(results, base_path + suffix)

    def _add_row_error(self, error: RowParseError) -> None:
        self.row_error_count += 1
        max_error_messages = self._config[ConfigKeys.GENERAL][
            ConfigKeys.MAX_ERROR_MESSAGES
        ]
        if len(self.error_messages) < max_error_messages:
            self.error_messages.append(str(error))
            logger.warning(f"Skipping invalid line: {error}")

    def _iter_candidates(self, path: str) -> Iterator[SearchResultCandidate]:
        for line_number, columns in self.reader.read(path):
            if self._abort_requested:
                logger.warning(f"Processing aborted before line {line_number}")
                return

            try:
                candidate = self.parse_row(line_number, columns)
            except RowParseError as e:
                self._add_row_error(e)
                continue

            self.normalize(candidate)
            yield candidate

    def parse_row(self, line_number: int, columns: list[str]) -> SearchResultCandidate:
        """Extract the raw fields of one line of the results file.

        Raises
        ------
        RowParseError
            If the line is too short, scan or charge are missing or a score is not a number.
        """
        self.reader.check_column_count(columns, line_number)

        def get(field: str) -> str:
            return self.reader.get(columns, field)

        spectrum_file = get(ResultFields.SPECTRUM_FILE)
        scan = _parse_int(get(ResultFields.SCAN), "scan", line_number)
        if scan == 0:
            scan = scan_from_spectrum_file(spectrum_file)
        charge = _parse_int(get(ResultFields.CHARGE), "charge", line_number)

        peptide = get(ResultFields.PEPTIDE)
        if not peptide:
            raise RowParseError(line_number, "missing peptide")

        score_text = {score: get(score) for score in self.profile.score_names}
        scores = {
            score: _parse_score(text, score, line_number)
            for score, text in score_text.items()
        }

        precursor = _parse_optional_float(get(ResultFields.PRECURSOR)) or 0.0
        if precursor <= 0 and self.precursor_info is not None:
            precursor = self._precursor_from_side_file(scan, charge)

        precursor_error, precursor_error_units = None, None
        for units, field in PRECURSOR_ERROR_FIELDS.items():
            if not self.reader.has_field(field):
                continue
            precursor_error = _parse_optional_float(get(field))
            if precursor_error is not None:
                precursor_error_units = units
                break

        return SearchResultCandidate(
            line_number=line_number,
            spectrum_file=spectrum_file,
            scan=scan,
            charge=charge,
            peptide=peptide,
            protein=get(ResultFields.PROTEIN),
            scores=scores,
            score_text=score_text,
            precursor=precursor,
            precursor_error=precursor_error,
            precursor_error_units=precursor_error_units,
            engine_mass=_parse_optional_float(get(ResultFields.ENGINE_MASS)),
        )

    def _precursor_from_side_file(self, scan: int, charge: int) -> float:
        mz = self.precursor_info.get(self.dataset_name, scan)
        if mz <= 0 or self.profile.precursor_value == PrecursorValueKind.MZ:
            return mz
        return (mz - MASS_PROTON) * charge

    def normalize(self, candidate: SearchResultCandidate) -> None:
        """Rewrite the peptide into the canonical form and compute the masses, in place."""
        resolved = self.resolver.resolve(candidate.peptide)

        candidate.peptide = resolved.annotation
        candidate.clean_sequence = resolved.clean_sequence
        candidate.assignments = resolved.assignments

        theoretical_mass = self.normalizer.compute_theoretical_mass(
            resolved.clean_sequence, resolved.assignments
        )
        engine_mass_replaced = self.normalizer.replaces_engine_mass(
            candidate.engine_mass, theoretical_mass
        )
        candidate.theoretical_mass = self.normalizer.reconcile_engine_mass(
            candidate.engine_mass, theoretical_mass, resolved.annotation
        )
        candidate.mass_error = self.normalizer.compute_observed_mass_error(
            candidate.precursor,
            candidate.precursor_error,
            candidate.precursor_error_units,
            candidate.charge,
            candidate.theoretical_mass,
            use_engine_error=not engine_mass_replaced,
        )


def _log_exception_event(e: Exception) -> None:
    """Log exception."""
    if isinstance(e, CustomError):
        logger.error(f"Error: {e.error_code} {e.msg}")
        logger.error(e.detail_msg)
    else:
        logger.error(f"Error: {e}", exc_info=True)

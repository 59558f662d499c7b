"""Line based reader for the tab-delimited results files of the search engines."""

import logging
import os
from collections.abc import Iterator

from peptidehit.exceptions import InputFileNotFoundError, RowParseError
from peptidehit.tools import ToolProfile

logger = logging.getLogger()

# number of leading columns inspected to decide whether the first line is a header
HEADER_CHECK_COLUMN_COUNT = 3

ABSENT = -1


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


class ColumnMappedRecordReader:
    def __init__(
        self,
        column_names: dict[str, str],
        default_column_order: list[str],
        min_columns: int = 0,
    ) -> None:
        """Map the columns of a tab-delimited file to logical fields.

        The mapping is resolved from the header line, where header names are matched case-insensitively
        against `column_names`. If the first line turns out to be data, the `default_column_order` is used.

        Parameters
        ----------

        column_names : dict[str, str]
            Header name -> logical field. Several header names may map to the same field.

        default_column_order : list[str]
            Logical fields in the column order of a file without header.

        min_columns : int, default 0
            Rows with fewer columns are rejected.

        """
        self._column_names = {name.lower(): field for name, field in column_names.items()}
        self.default_column_order = default_column_order
        self.min_columns = min_columns

        self.fields = list(dict.fromkeys([*column_names.values(), *default_column_order]))
        self.column_mapping = {field: ABSENT for field in self.fields}
        self.has_header = False

    @classmethod
    def from_profile(cls, profile: ToolProfile) -> "ColumnMappedRecordReader":
        return cls(
            profile.column_names, profile.default_column_order, profile.min_columns
        )

    def use_default_column_order(self) -> None:
        self.column_mapping = {field: ABSENT for field in self.fields}
        for index, field in enumerate(self.default_column_order):
            self.column_mapping[field] = index

    def parse_header(self, line: str) -> bool:
        """Resolve the column mapping from the first line of a file.

        Parameters
        ----------

        line : str
            First non-blank line of the file, without line break.

        Returns
        -------
        bool
            True if the line is a header, False if it holds data and the default column order is used.
        """
        columns = line.split("\t")

        if any(_is_number(value) for value in columns[:HEADER_CHECK_COLUMN_COUNT]):
            logger.info(
                "First line of the results file holds data, using the default column order"
            )
            self.has_header = False
            self.use_default_column_order()
            return False

        self.has_header = True
        self.column_mapping = {field: ABSENT for field in self.fields}
        for index, name in enumerate(columns):
            field = self._column_names.get(name.strip().lower())
            if field is None:
                logger.debug(f"Ignoring unknown column '{name}'")
                continue
            # the first column wins if several aliases of a field are present
            if self.column_mapping[field] == ABSENT:
                self.column_mapping[field] = index

        return True

    def has_field(self, field: str) -> bool:
        return self.column_mapping.get(field, ABSENT) != ABSENT

    def get(self, columns: list[str], field: str, default: str = "") -> str:
        """Value of a logical field, or `default` if the field is absent or the row is too short."""
        index = self.column_mapping.get(field, ABSENT)
        if index == ABSENT or index >= len(columns):
            return default
        return columns[index].strip()

    def check_column_count(self, columns: list[str], line_number: int) -> None:
        if len(columns) < self.min_columns:
            raise RowParseError(
                line_number,
                f"expected at least {self.min_columns} columns, found {len(columns)}",
            )

    def read(self, path: str) -> Iterator[tuple[int, list[str]]]:
        """Iterate over the data rows of a file.

        Blank lines are skipped. The first non-blank line is consumed as header unless it holds data.

        Parameters
        ----------

        path : str
            Tab-delimited results file.

        Yields
        ------
        tuple[int, list[str]]
            1-based line number and the tab-separated columns of each data row.
        """
        if not os.path.exists(path):
            raise InputFileNotFoundError(path)

        header_resolved = False
        with open(path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.rstrip("\r\n")
                if not line.strip():
                    continue

                if not header_resolved:
                    header_resolved = True
                    if self.parse_header(line):
                        continue

                yield line_number, line.split("\t")

"""Module containing custom exceptions."""


class CustomError(Exception):
    """Custom peptidehit error class."""

    _error_code = ""
    _msg = ""
    _detail_msg = ""
    _user_msg = ""

    @property
    def error_code(self):
        return self._error_code

    @property
    def msg(self):
        return self._msg

    @property
    def detail_msg(self):
        return self._detail_msg

    def __init__(self, msg: str = ""):
        self._user_msg = msg

        super().__init__(self._msg)

    def __str__(self):
        return (
            f"{self._error_code}: {self._msg}\n'{self._user_msg}'\n{self._detail_msg}"
        )


class BusinessError(CustomError):
    """Custom error class for 'business' errors.

    A 'business' error is an error that is caused during processing the input (results, definitions, ...) and not by a
    malfunction in peptidehit.
    """


class UserError(CustomError):
    """Custom error class for 'user' errors.

    A 'user' error is an error that is caused by the incompatible user input (files, configuration, ...) and not by a
    malfunction in peptidehit.
    """


class UnknownToolError(UserError):
    """Raise when the requested search engine has no registered tool profile."""

    _error_code = "UNKNOWN_TOOL"

    _msg = "No tool profile registered for the requested search engine."

    def __init__(self, tool: str, known_tools: list[str]):
        self._user_msg = tool
        self._detail_msg = f"Supported tools: {', '.join(known_tools)}"


class InputFileNotFoundError(UserError):
    """Raise when an input file does not exist."""

    _error_code = "INPUT_FILE_NOT_FOUND"

    _msg = "Input file not found."

    def __init__(self, path: str):
        self._user_msg = path


class CatalogLoadError(BusinessError):
    """Raise when the modification definitions can't be loaded."""

    _error_code = "CATALOG_LOAD_ERROR"

    _msg = "Could not load modification definitions."

    def __init__(self, path: str, detail_msg: str = ""):
        self._user_msg = path
        self._detail_msg = detail_msg


class RowParseError(BusinessError):
    """Raise when a single row of a results file can't be parsed."""

    _error_code = "ROW_PARSE_ERROR"

    _msg = "Malformed results line."

    def __init__(self, line_number: int, detail_msg: str):
        self._user_msg = f"line {line_number}"
        self.line_number = line_number
        self._detail_msg = detail_msg

    def __str__(self):
        return f"Line {self.line_number}: {self._detail_msg}"


class ConfigError(BusinessError):
    """Raise when something is wrong with the provided configuration."""

    _error_code = "CONFIG_ERROR"

    _msg = "Malformed or invalid configuration."
    _key = ""
    _config_name = ""
    _detail_msg = ""

    def __init__(
        self,
        key: str = "",
        value: str = "",
        config_name: str = "",
        detail_msg: str = "",
    ):
        self._key = key
        self._value = value
        self._config_name = config_name
        self._detail_msg = detail_msg


class KeyAddedConfigError(ConfigError):
    """Raise when a key should be added to a config."""

    def __init__(self, key: str, value: str, config_name: str):
        super().__init__(key, value, config_name)
        self._detail_msg = (
            f"Defining new keys is not allowed when updating a config: "
            f"key='{self._key}', value='{self._value}', config_name='{self._config_name}'"
        )


class TypeMismatchConfigError(ConfigError):
    """Raise when the type of a value does not match the default type."""

    def __init__(self, key: str, value: str, config_name: str, extra_msg: str):
        super().__init__(key, value, config_name)
        self._detail_msg = (
            f"Types of values must match default config: "
            f"key='{self._key}', value='{self._value}', config_name='{self._config_name}', types='{extra_msg}'"
        )

"""This module is responsible for creating and storing the configuration of a processing run.

The default configuration ships with the package (`constants/default.yaml`) and is updated with the
user configuration, an optional JSON dictionary and the command line parameters, in this order.
Later configurations overwrite previous values. Lists and the keys in `REPLACEABLE_KEYS` are
replaced as a whole, every other key must already exist in the default configuration.
"""

import logging
import os
from collections import UserDict, defaultdict
from copy import deepcopy

import yaml

from peptidehit.constants.keys import ConfigKeys
from peptidehit.exceptions import KeyAddedConfigError, TypeMismatchConfigError

logger = logging.getLogger()

DEFAULT = "default"
USER_DEFINED = "user defined"
USER_DEFINED_CLI_PARAM = "user defined (cli)"

DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(__file__)), "constants", "default.yaml"
)

# keys which are resolved by the processor after all updates have been applied
WRITABLE_KEYS = [ConfigKeys.OUTPUT_DIRECTORY, ConfigKeys.DATASET_NAME]

# mappings whose entries are chosen by the user, e.g. the metrics of the synopsis filter
REPLACEABLE_KEYS = [ConfigKeys.SYNOPSIS_THRESHOLDS]


class Config(UserDict):
    """Dict-like config that is read from and written to yaml and updated with other configs."""

    def __init__(self, data: dict = None, name: str = DEFAULT) -> None:
        # UserDict.__init__ would call the overwritten update()
        self.data = {**data} if data is not None else {}
        self.name = name

    @classmethod
    def load_default(cls, path: str = DEFAULT_CONFIG_PATH) -> "Config":
        """Create a config holding the packaged default values."""
        logger.info(f"loading default config from {path}")
        config = cls()
        config.from_yaml(path)
        return config

    def from_yaml(self, path: str) -> None:
        with open(path) as f:
            self.data = yaml.safe_load(f)

    def to_yaml(self, path: str) -> None:
        with open(path, "w") as f:
            yaml.dump(self.data, f, sort_keys=False)

    def __setitem__(self, key, item):
        if key not in WRITABLE_KEYS:
            raise NotImplementedError("Use update() to update the config.")
        return super().__setitem__(key, item)

    def __delitem__(self, key):
        raise NotImplementedError("Use update() to update the config.")

    def update(self, configs: list["Config"], do_print: bool = False):
        """Update the config with one or more other configs, the last one wins.

        Parameters
        ----------
        configs : list of configs
            Configs to update the current config with, in order of increasing precedence.

        do_print : bool, optional
            Whether to log the resulting config as a tree, naming the origin of every non-default value.

        Raises
        ------
        KeyAddedConfigError
            If a config holds a key which is not in the current config.

        TypeMismatchConfigError
            If a config changes the type of a value.
        """
        default_config = deepcopy(self.data)

        def _recursive_defaultdict():
            return defaultdict(_recursive_defaultdict)

        # name of the config which set each value
        origins = _recursive_defaultdict()

        current_config = deepcopy(self.data)
        for config in configs:
            logger.info(f"Updating config with '{config.name}'")
            _update(current_config, config.data, origins, config.name)

        self.data = current_config

        if do_print:
            _log_tree(current_config, default_config, origins)

    def tool_settings(self) -> dict:
        """Settings of the `tools` section for the configured search engine."""
        return self.data[ConfigKeys.TOOLS][self.data[ConfigKeys.TOOL]]


def _update(
    target_config: dict,
    update_config: dict,
    origins: dict,
    config_name: str,
    parent_keys: str = "",
) -> None:
    """Recursively update `target_config` in place and record `config_name` in `origins` for every changed value."""
    for key, update_value in update_config.items():
        full_key = f"{parent_keys}.{key}" if parent_keys else key

        if key not in target_config:
            raise KeyAddedConfigError(full_key, update_value, config_name)

        target_value = target_config[key]

        # string "true"/"false" values are passed by the --config-dict CLI parameter
        if isinstance(update_value, str):
            if update_value.lower() == "true":
                update_value = True
            elif update_value.lower() == "false":
                update_value = False

        if (
            target_value is not None
            and type(target_value) != type(update_value)
            and not (
                isinstance(target_value, int | float)
                and isinstance(update_value, int | float)
            )
        ):
            raise TypeMismatchConfigError(
                full_key,
                update_value,
                config_name,
                f"{type(update_value)} != {type(target_value)}",
            )

        if isinstance(target_value, dict) and key not in REPLACEABLE_KEYS:
            _update(
                target_value,
                update_value,
                origins[key],
                config_name,
                parent_keys=full_key,
            )
        else:
            target_config[key] = update_value
            origins[key] = config_name


def _log_tree(
    config: dict,
    default_config: dict | None,
    origins: dict | str,
    prefix: str = "",
) -> None:
    """Log a configuration dictionary as a tree, values differing from the default are annotated with their origin."""
    for i, (key, value) in enumerate(config.items()):
        is_last_item = i == len(config) - 1
        branch = "└──" if is_last_item else "├──"

        default_value = (
            default_config.get(key) if isinstance(default_config, dict) else None
        )
        # a whole subtree replaced by one config has a single origin
        origin = origins if isinstance(origins, str) else origins[key]

        if isinstance(value, dict):
            logger.info(f"{prefix}{branch}{key}")
            _log_tree(
                value,
                default_value,
                origin,
                prefix=prefix + ("    " if is_last_item else "│   "),
            )
        elif value != default_value:
            logger.info(
                f"{prefix}{branch}{key}: {value} [{origin}, default: {default_value}]"
            )
        else:
            logger.info(f"{prefix}{branch}{key}: {value}")

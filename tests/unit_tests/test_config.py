import os
from io import StringIO

import pytest
import yaml

from peptidehit.exceptions import KeyAddedConfigError, TypeMismatchConfigError
from peptidehit.workflow.config import Config

generic_default_config = """
    simple_value_int: 1
    simple_value_float: 2.0
    simple_value_str: three
    simple_value_bool: false
    simple_value_none: null
    nested_values:
        nested_value_1: 1
        nested_value_2: 2
    simple_list:
        - 1
        - 2
        - 3
    """

expected_generic_default_config_dict = {
    "simple_value_int": 1,
    "simple_value_float": 2.0,
    "simple_value_str": "three",
    "simple_value_bool": False,
    "simple_value_none": None,
    "nested_values": {"nested_value_1": 1, "nested_value_2": 2},
    "simple_list": [1, 2, 3],
}


def _generic_config() -> Config:
    return Config(yaml.safe_load(StringIO(generic_default_config)))


def test_config_update_empty_list():
    """Test updating a config with an empty list."""
    config_1 = _generic_config()

    # when
    config_1.update([])

    assert config_1.data == expected_generic_default_config_dict


def test_config_update_simple_two_files():
    """Test updating a config with simple values from two files, the last one wins."""
    config_1 = _generic_config()

    config_2 = Config({"simple_value_int": 2, "simple_value_float": 4.0}, "first")
    config_3 = Config({"simple_value_float": 5.0, "simple_value_str": "six"}, "second")

    # when
    config_1.update([config_2, config_3], do_print=True)

    assert config_1.data == expected_generic_default_config_dict | {
        "simple_value_int": 2,
        "simple_value_float": 5.0,
        "simple_value_str": "six",
    }


def test_config_update_nested_values_and_lists():
    """Test that nested values are updated individually and lists are replaced completely."""
    config_1 = _generic_config()

    config_2 = Config(
        {
            "nested_values": {"nested_value_2": 42},
            "simple_list": [43, 44, 45, 999],
            "simple_value_none": "now set",
        },
        "first",
    )

    # when
    config_1.update([config_2], do_print=True)

    assert config_1.data == expected_generic_default_config_dict | {
        "nested_values": {"nested_value_1": 1, "nested_value_2": 42},
        "simple_list": [43, 44, 45, 999],
        "simple_value_none": "now set",
    }


def test_config_update_int_and_float_are_interchangeable():
    """Test that an int may replace a float and vice versa."""
    config_1 = _generic_config()

    config_2 = Config({"simple_value_int": 1.5, "simple_value_float": 3}, "first")

    # when
    config_1.update([config_2])

    assert config_1["simple_value_int"] == 1.5
    assert config_1["simple_value_float"] == 3


def test_config_update_bool_from_string():
    """Test that the strings 'true' and 'false' given on the command line are converted to booleans."""
    config_1 = _generic_config()

    config_2 = Config({"simple_value_bool": "True"}, "cli")

    # when
    config_1.update([config_2])

    assert config_1["simple_value_bool"] is True


def test_config_update_new_key_raises():
    """Test updating a config with a new key."""
    config_1 = _generic_config()

    config_2 = Config({"nested_values": {"new_key": 0}}, "first")

    # when
    with pytest.raises(KeyAddedConfigError) as e:
        config_1.update([config_2], do_print=True)

    assert "key='nested_values.new_key'" in e.value.detail_msg


def test_config_update_type_mismatch_raises():
    """Test updating a config with a different type."""
    config_1 = _generic_config()

    config_2 = Config({"simple_value_int": "one"}, "first")

    # when
    with pytest.raises(TypeMismatchConfigError) as e:
        config_1.update([config_2], do_print=True)

    assert "types='<class 'str'> != <class 'int'>'" in e.value.detail_msg


def test_config_setitem_only_for_writable_keys():
    """Test that only the keys resolved by the processor can be set directly."""
    config = Config.load_default()

    # when
    config["output_directory"] = "/output"

    assert config["output_directory"] == "/output"
    with pytest.raises(NotImplementedError):
        config["tool"] = "msgfplus"
    with pytest.raises(NotImplementedError):
        del config["tool"]


def test_config_to_yaml_and_back(tmp_path):
    """Test that a config written to yaml reads back unchanged."""
    config_1 = _generic_config()
    path = str(tmp_path / "config.yaml")

    # when
    config_1.to_yaml(path)

    config_2 = Config()
    config_2.from_yaml(path)
    assert config_2.data == expected_generic_default_config_dict


def test_tool_settings():
    """Test that the settings of the configured tool are returned."""
    config = Config.load_default()
    config.update([Config({"tool": "modplus"}, "first")])

    # when
    settings = config.tool_settings()

    assert settings["compute_q_values"] is True
    assert settings["synopsis_thresholds"] == {"Probability": 0.05}


def test_config_update_default_config():
    """Test updating the default config with itself as a sanity check on that config."""

    config_base_path = os.path.join(
        os.path.dirname(__file__), "..", "..", "peptidehit", "constants", "default.yaml"
    )
    config_1 = Config.load_default(config_base_path)
    config_2 = Config.load_default(config_base_path)
    config_2.name = "also_default"

    config_1.update([config_2], do_print=True)

    assert config_1.data == config_2.data


def test_config_update_replaces_synopsis_thresholds():
    """Test that the synopsis thresholds of a tool are replaced as a whole, so metrics can be added and dropped."""
    config = Config.load_default()

    config_2 = Config(
        {"tools": {"inspect": {"synopsis_thresholds": {"MQScore": 1.0}}}}, "first"
    )

    # when
    config.update([config_2], do_print=True)

    assert config.tool_settings()["synopsis_thresholds"] == {"MQScore": 1.0}
    assert config["tools"]["msgfplus"]["synopsis_thresholds"] == {
        "EValue": 0.75,
        "SpecEValue": 5.0e-7,
    }


def test_config_update_synopsis_thresholds_type_checked():
    """Test that the synopsis thresholds must still be given as a mapping."""
    config = Config.load_default()

    config_2 = Config(
        {"tools": {"inspect": {"synopsis_thresholds": [1.0]}}}, "first"
    )

    # when
    with pytest.raises(TypeMismatchConfigError):
        config.update([config_2])

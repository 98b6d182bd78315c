"""
Test network parameter parsing and the YAML loader.
"""

import pytest

from fair_referral_network.fees import FeeSchedule
from fair_referral_network.semaphore.config import (
    DEFAULT_HASH,
    DEFAULT_ROOT_HISTORY_SIZE,
    DEFAULT_TREE_DEPTH,
)
from fair_referral_network.semaphore.exceptions import (
    ConfigurationError,
    FeeScheduleError,
)
from fair_referral_network.settings import (
    NetworkConfig,
    load_network_config,
    parse_field_element,
)


def test_parse_field_element_formats():
    assert parse_field_element(42, "x") == 42
    assert parse_field_element("42", "x") == 42
    assert parse_field_element("0x2a", "x") == 42
    assert parse_field_element(" 0X2A ", "x") == 42


def test_parse_field_element_rejects_bad_values():
    with pytest.raises(ConfigurationError, match="not an integer"):
        parse_field_element("forty-two", "x")
    with pytest.raises(ConfigurationError, match="not a field element"):
        parse_field_element(-1, "x")


def test_defaults():
    config = NetworkConfig(FeeSchedule((3000,)))
    assert config.depth == DEFAULT_TREE_DEPTH
    assert config.root_history_size == DEFAULT_ROOT_HISTORY_SIZE
    assert config.hash_id == DEFAULT_HASH
    assert config.genesis_referrers == ()


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"depth": 0}, "depth"),
        ({"depth": 40}, "depth"),
        ({"root_history_size": 0}, "root_history_size"),
        ({"hash_id": "md5:v1"}, "unknown hash"),
        ({"genesis_referrers": (-1,)}, "genesis"),
        ({"zero_value": -1}, "zero_value"),
    ],
)
def test_invalid_parameters_rejected(overrides, message):
    with pytest.raises(ConfigurationError, match=message):
        NetworkConfig(FeeSchedule((3000,)), **overrides)


def test_fee_schedule_type_checked():
    with pytest.raises(ConfigurationError, match="FeeSchedule"):
        NetworkConfig([3000])


def test_from_dict_and_back():
    config = NetworkConfig.from_dict(
        {
            "depth": 10,
            "fees": ["3000", 1000],
            "root_history_size": 4,
            "genesis_referrers": ["0x2a", 7],
            "zero_value": "0x0",
        }
    )
    assert config.fee_schedule.shares == (3000, 1000)
    assert config.genesis_referrers == (42, 7)
    assert config.zero_value == 0
    assert NetworkConfig.from_dict(config.to_dict()) == config


def test_from_dict_rejects_unknown_and_missing_keys():
    with pytest.raises(ConfigurationError, match="unknown config keys"):
        NetworkConfig.from_dict({"fees": [1], "fee": [2]})
    with pytest.raises(ConfigurationError, match="fees is required"):
        NetworkConfig.from_dict({"depth": 4})
    with pytest.raises(ConfigurationError, match="mapping"):
        NetworkConfig.from_dict(["fees"])


def test_load_network_config(tmp_path):
    path = tmp_path / "network.yaml"
    path.write_text("depth: 8\nfees: [3000, 1000]\ngenesis_referrers: ['0x10']\n")
    config = load_network_config(path)
    assert config.depth == 8
    assert config.genesis_referrers == (16,)


def test_load_network_config_errors(tmp_path):
    with pytest.raises(ConfigurationError, match="cannot read"):
        load_network_config(tmp_path / "missing.yaml")

    bad_yaml = tmp_path / "bad.yaml"
    bad_yaml.write_text("fees: [3000\n")
    with pytest.raises(ConfigurationError, match="cannot read"):
        load_network_config(bad_yaml)

    overpaying = tmp_path / "overpaying.yaml"
    overpaying.write_text("fees: [9000, 2000]\n")
    with pytest.raises(FeeScheduleError):
        load_network_config(overpaying)


@pytest.mark.parametrize("key", ["depth", "root_history_size"])
def test_boolean_sizes_rejected(tmp_path, key):
    path = tmp_path / "network.yaml"
    path.write_text(f"fees: [3000]\n{key}: true\n")
    with pytest.raises(ConfigurationError, match=key):
        load_network_config(path)

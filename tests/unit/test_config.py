"""Tests for repair configuration."""

import pytest
from pydantic import ValidationError

from boxmend.config import CONFIG_FILENAME, ConfigError, RepairConfig, find_config_file


class TestRepairConfig:
    """Tests for RepairConfig construction and validation."""

    def test_defaults(self, config):
        assert config.snap_tolerance == 2
        assert config.label_distance == 2
        assert config.max_label_length == 20
        assert config.max_segments == 4
        assert config.max_straightened_segments == 3
        assert config.max_nesting_depth == 3
        assert config.max_group_width == 100
        assert config.group_gap == 1
        assert config.padding == 1
        assert config.ascii_arrows is True

    def test_frozen(self, config):
        with pytest.raises(ValidationError):
            config.padding = 3

    def test_dashed_keyword_accepted(self):
        assert RepairConfig(**{"group-gap": 2}).group_gap == 2

    def test_unknown_keyword_rejected(self):
        with pytest.raises(ConfigError, match="Unknown configuration key"):
            RepairConfig(colour="red")

    def test_negative_value_rejected(self):
        with pytest.raises(ConfigError, match="snap_tolerance"):
            RepairConfig(snap_tolerance=-1)

    def test_bool_for_int_rejected(self):
        with pytest.raises(ConfigError, match="integer"):
            RepairConfig(padding=True)

    def test_int_for_bool_rejected(self):
        with pytest.raises(ConfigError, match="boolean"):
            RepairConfig(ascii_arrows=1)

    def test_too_few_segments(self):
        with pytest.raises(ConfigError, match="max_segments"):
            RepairConfig(max_segments=1)

    def test_zero_nesting_depth(self):
        with pytest.raises(ConfigError, match="max_nesting_depth"):
            RepairConfig(max_nesting_depth=0)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            RepairConfig(group_gap="wide")


class TestFromMapping:
    """Tests for RepairConfig.from_mapping."""

    def test_underscore_and_dash_keys(self):
        config = RepairConfig.from_mapping({"snap-tolerance": 3, "max_segments": 6})
        assert config.snap_tolerance == 3
        assert config.max_segments == 6

    def test_unknown_key(self):
        with pytest.raises(ConfigError, match="Unknown configuration key"):
            RepairConfig.from_mapping({"colour": "red"})

    def test_empty_mapping_gives_defaults(self):
        assert RepairConfig.from_mapping({}) == RepairConfig()


class TestFromToml:
    """Tests for loading configuration files."""

    def test_boxmend_table(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text("[boxmend]\npadding = 2\nascii-arrows = false\n", encoding="utf-8")
        config = RepairConfig.from_toml(path)
        assert config.padding == 2
        assert config.ascii_arrows is False

    def test_top_level_keys(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text("label_distance = 4\n", encoding="utf-8")
        assert RepairConfig.from_toml(str(path)).label_distance == 4

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text("padding = = 2\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            RepairConfig.from_toml(path)

    def test_boxmend_must_be_table(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text('boxmend = "yes"\n', encoding="utf-8")
        with pytest.raises(ConfigError, match="must be a table"):
            RepairConfig.from_toml(path)

    def test_invalid_value_in_file(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        path.write_text("[boxmend]\nmax_segments = 1\n", encoding="utf-8")
        with pytest.raises(ConfigError):
            RepairConfig.from_toml(path)


class TestDiscover:
    """Tests for config file discovery."""

    def test_found_in_parent(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("[boxmend]\ngroup_gap = 2\n", encoding="utf-8")
        nested = tmp_path / "docs" / "guide"
        nested.mkdir(parents=True)

        assert find_config_file(nested) == (tmp_path / CONFIG_FILENAME).resolve()
        assert RepairConfig.discover(nested).group_gap == 2

    def test_nearest_file_wins(self, tmp_path):
        (tmp_path / CONFIG_FILENAME).write_text("padding = 2\n", encoding="utf-8")
        nested = tmp_path / "docs"
        nested.mkdir()
        (nested / CONFIG_FILENAME).write_text("padding = 3\n", encoding="utf-8")

        assert RepairConfig.discover(nested).padding == 3

    def test_defaults_when_missing(self, tmp_path, monkeypatch):
        monkeypatch.setattr("boxmend.config.find_config_file", lambda start_dir=None: None)
        assert RepairConfig.discover(tmp_path) == RepairConfig()

"""
Configuration for diagram repair.

RepairConfig holds every tunable constant of the detector and normalizer.
It can be built from keyword arguments, a mapping, or a TOML file
(``.boxmend.toml``), where keys live either at the top level or under a
``[boxmend]`` table. Keys may be written with dashes or underscores.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, ValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".boxmend.toml"


class ConfigError(ValueError):
    """Raised when a configuration value is missing, unknown or invalid."""

    pass


def _describe(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        key = str(item["loc"][0]) if item["loc"] else "config"
        if item["type"] == "extra_forbidden":
            messages.append(f"Unknown configuration key: {key!r}")
        else:
            messages.append(f"{key.replace('-', '_')}: {item['msg']}")
    return "; ".join(messages)


class RepairConfig(BaseModel):
    """
    Tunable limits for detection and normalization.

    Attributes:
        snap_tolerance: Max gap (cells) between an arrow or path end and a
            box edge for the end to follow that edge.
        label_distance: Max distance from a label to the primitive it
            annotates.
        max_label_length: Longer free text is never treated as a label.
        max_segments: Connection paths with more segments are skipped.
        max_straightened_segments: Segment limit for rerouted paths.
        max_nesting_depth: Box hierarchies reaching this depth are left
            untouched.
        max_group_width: Side-by-side groups wider than this are not
            balanced.
        group_gap: Max blank columns between side-by-side boxes.
        padding: Interior padding (columns) for padded boxes.
        ascii_arrows: Recognise ASCII arrows such as ``-->`` and ``<==``.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=lambda name: name.replace("_", "-"),
        populate_by_name=True,
    )

    snap_tolerance: StrictInt = Field(2, ge=0)
    label_distance: StrictInt = Field(2, ge=0)
    max_label_length: StrictInt = Field(20, ge=0)
    max_segments: StrictInt = Field(4, ge=2)
    max_straightened_segments: StrictInt = Field(3, ge=1)
    max_nesting_depth: StrictInt = Field(3, ge=1)
    max_group_width: StrictInt = Field(100, ge=0)
    group_gap: StrictInt = Field(1, ge=0)
    padding: StrictInt = Field(1, ge=0)
    ascii_arrows: StrictBool = True

    def __init__(self, **values: Any):
        try:
            super().__init__(**values)
        except ValidationError as e:
            raise ConfigError(_describe(e)) from e

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "RepairConfig":
        """
        Build a config from a mapping, rejecting unknown keys.

        Raises:
            ConfigError: If a key is unknown or a value is invalid
        """
        try:
            return cls.model_validate(dict(values))
        except ValidationError as e:
            raise ConfigError(_describe(e)) from e

    @classmethod
    def from_toml(cls, path: Union[str, Path]) -> "RepairConfig":
        """
        Load a config from a TOML file.

        Raises:
            ConfigError: If the file cannot be parsed or holds invalid values
        """
        path = Path(path)
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {path}: {e}") from e
        table = data.get("boxmend", data)
        if not isinstance(table, dict):
            raise ConfigError(f"[boxmend] in {path} must be a table")
        logger.debug("Loaded configuration from %s", path)
        return cls.from_mapping(table)

    @classmethod
    def discover(cls, start_dir: Union[str, Path, None] = None) -> "RepairConfig":
        """
        Find the nearest ``.boxmend.toml`` walking up from ``start_dir``.

        Returns the defaults when no file is found.
        """
        path = find_config_file(start_dir)
        if path is None:
            return cls()
        return cls.from_toml(path)


def find_config_file(start_dir: Union[str, Path, None] = None) -> Optional[Path]:
    """Return the nearest config file at or above ``start_dir``, if any."""
    current = Path(start_dir or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None

"""
Xray Configuration
===================

Settings for the inspector, held in plain dataclasses and read from a TOML
file.  Every key is optional; anything missing keeps its dataclass default
and unknown keys are ignored, so an older ``xray.toml`` keeps working.

Example ``xray.toml``::

    [global]
    log_level = "INFO"
    log_file = "xray.log"
    log_json = true

    [inspector]
    max_file_size = 104857600
    max_workers = 8

    [output]
    max_rows = 50

References:
    - TOML v1.0.0 Specification. https://toml.io/en/v1.0.0
"""

from __future__ import annotations

import sys
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib


_DEFAULT_CONFIG_NAME = "xray.toml"


@dataclass(slots=True)
class GlobalConfig:
    """Logging settings shared by the engine and the command line."""

    log_level: str = "WARNING"
    log_file: str = ""
    log_json: bool = False


@dataclass(slots=True)
class InspectorConfig:
    """Input limits and batch concurrency for the inspection engine."""

    max_file_size: int = 268_435_456  # 256 MiB
    max_workers: int = 4


@dataclass(slots=True)
class OutputConfig:
    """Console rendering limits.

    ``max_rows`` caps the rows printed per table; 0 prints everything.
    """

    max_rows: int = 0
    show_symbols: bool = True
    show_segments: bool = True


@dataclass(slots=True)
class XrayConfig:
    """Top-level configuration.

    Usage:
        >>> config = XrayConfig.load()              # ./xray.toml if present
        >>> config = XrayConfig.load("ci.toml")     # explicit file
        >>> config.inspector.max_workers
        4
    """

    global_settings: GlobalConfig = field(default_factory=GlobalConfig)
    inspector: InspectorConfig = field(default_factory=InspectorConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @classmethod
    def load(cls, path: str | Path | None = None) -> XrayConfig:
        """Read configuration from TOML.

        Args:
            path: Config file.  When ``None``, ``xray.toml`` in the current
                directory is used if it exists.

        Returns:
            A populated :class:`XrayConfig`.

        Raises:
            FileNotFoundError: If *path* was given explicitly and is missing.
            tomllib.TOMLDecodeError: If the file is not valid TOML.
        """
        config_path = Path(path) if path is not None else Path.cwd() / _DEFAULT_CONFIG_NAME

        if not config_path.exists():
            if path is not None:
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            return cls()

        with open(config_path, "rb") as fh:
            raw: dict[str, Any] = tomllib.load(fh)
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> XrayConfig:
        """Build a config from an already parsed TOML document."""
        return cls(
            global_settings=_section(GlobalConfig, raw.get("global", {})),
            inspector=_section(InspectorConfig, raw.get("inspector", {})),
            output=_section(OutputConfig, raw.get("output", {})),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _section(cls: type, data: dict[str, Any]) -> Any:
    """Instantiate dataclass *cls* from the keys of *data* it declares."""
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})

# YAML configuration loader & validator
# Purpose:
# - Load a YAML configuration file for the project (e.g., config/base.yaml).
# - Validate that the configuration contains the required sections/keys.
# - Turn the `pipeline` section into a PipelineConfig for run_pipeline().
# - Raise clear exceptions (FileNotFoundError, ConfigError) when something is missing
#   or a tunable is out of range.
#
# Notes:
# - Expected top-level keys: pipeline, paths.
# - Expected paths keys: img_root, out_root.
# - The pipeline section accepts snake_case keys and the camelCase flags
#   dermMode / hairSuppression.

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, fields
from typing import Any

import yaml
from dotenv import load_dotenv


class ConfigError(Exception):
    """Custom exception for configuration errors (missing or mistyped keys)."""


ALIASES = {"dermMode": "derm_mode", "hairSuppression": "hair_suppression"}

# name -> (low, high or None, low bound excluded)
RANGES = {
    "dark_percentile": (0.0, 100.0, False),
    "inpaint_sigma": (0.0, None, True),
    "clahe_clip_limit": (0.0, None, True),
}


@dataclass(frozen=True)
class PipelineConfig:
    """
    Run-time options of the erythema pipeline.
    - derm_mode: local Lmax, 8x8 CLAHE, bilateral smoothing of ratio maps,
      forced hair suppression + melanin compensation and a closing 1.1 contrast pass.
    - hair_suppression: run artifact suppression even if not selected.
    """

    derm_mode: bool = False
    hair_suppression: bool = False
    contrast_factor: float = 1.5
    derm_contrast_factor: float = 1.1
    clahe_clip_limit: float = 2.0
    clahe_grid: int = 8
    lmax_tile_px: int = 32
    inpaint_iterations: int = 30
    inpaint_sigma: float = 25.0
    dark_percentile: float = 10.0
    supplementary_maps: bool = True

    def __post_init__(self) -> None:
        for name, (lo, hi, lo_open) in RANGES.items():
            val = getattr(self, name)
            if val < lo or (lo_open and val == lo) or (hi is not None and val > hi):
                bound = f"({lo}" if lo_open else f"[{lo}"
                bound += ", inf)" if hi is None else f", {hi}]"
                raise ConfigError(f"[pipeline] {name} must be in {bound}, got {val!r}")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PipelineConfig":
        """Build from a mapping, rejecting unknown keys and mistyped values."""
        data = dict(data or {})
        known = {f.name: f for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, val in data.items():
            name = ALIASES.get(key, key)
            if name not in known:
                raise ConfigError(f"[pipeline] unknown key: {key!r}")
            kwargs[name] = _coerce(name, known[name].type, val)
        return cls(**kwargs)


def _coerce(name: str, type_name: str, val: Any) -> Any:
    # field types are strings under `from __future__ import annotations`
    if type_name == "bool":
        if not isinstance(val, bool):
            raise ConfigError(f"[pipeline] {name} must be a boolean, got {val!r}")
        return val
    if type_name == "int":
        if isinstance(val, bool) or not isinstance(val, int) or val < 1:
            raise ConfigError(f"[pipeline] {name} must be a positive integer, got {val!r}")
        return val
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        raise ConfigError(f"[pipeline] {name} must be a number, got {val!r}")
    return float(val)


def _assert_keys(name: str, data: dict, required: set[str]) -> None:
    """
    Validates that a given dictionary contains all required keys.
    Raises a ConfigError if any expected key is missing.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"[{name}] expected a mapping, got {type(data).__name__}")
    missing = required - set(data.keys())
    if missing:
        raise ConfigError(f"[{name}] missing required keys: {sorted(missing)}")


def load_config(cfg_path: str) -> dict[str, Any]:
    """
    Loads a YAML configuration file, expands environment variables (${VAR})
    defined in a .env file, and validates the expected structure.

    Args:
        - cfg_path: Path to the YAML configuration file.

    Returns:
        - A dictionary containing the parsed configuration data, with
          data["pipeline"] replaced by a PipelineConfig.
    """
    load_dotenv()  # Load environment variables from .env file (if present)

    path = pathlib.Path(cfg_path)
    if not path.exists():
        raise FileNotFoundError(cfg_path)

    with open(path, "r", encoding="utf-8") as f:
        raw = f.read()

    # Replace environment variable placeholders with actual values
    for key, val in os.environ.items():
        raw = raw.replace(f"${{{key}}}", val)

    data = yaml.safe_load(raw)

    _assert_keys("root", data, {"pipeline", "paths"})
    _assert_keys("paths", data["paths"], {"img_root", "out_root"})

    data["pipeline"] = PipelineConfig.from_dict(data["pipeline"])
    return data

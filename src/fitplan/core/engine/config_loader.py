"""
YAML → config dict loader.

Loads tunable settings from fitplan.yaml (bundled with the package) and
optionally merges user overrides from ~/.fitplan/config.yaml.

Usage:
    from fitplan.core.engine.config_loader import load_app_config, delta_windows
    cfg = load_app_config()
    weekly_days, monthly_days = delta_windows(cfg)

The bundled file must parse.  If the user override file exists but has
parse errors, a warning is emitted and the file is ignored.
"""

from __future__ import annotations

import importlib.resources
import os
import warnings
from pathlib import Path
from typing import Any

import yaml

from ..config import MONTHLY_DELTA_DAYS, WEEKLY_DELTA_DAYS

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; non-mapping documents load as {}."""
    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)
    return data if isinstance(data, dict) else {}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge *override* into *base* (non-destructive to base)."""
    result = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(result.get(k), dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_bundled_yaml_path() -> Path:
    """Return the path to the bundled fitplan.yaml."""
    ref = importlib.resources.files("fitplan").joinpath("fitplan.yaml")
    with importlib.resources.as_file(ref) as p:
        return p


def get_user_yaml_path() -> Path | None:
    """Return ~/.fitplan/config.yaml if it exists, else None."""
    home = Path(os.environ.get("HOME", "~")).expanduser()
    p = home / ".fitplan" / "config.yaml"
    return p if p.exists() else None


def load_app_config() -> dict[str, Any]:
    """
    Load and merge configuration from YAML sources.

    Load order (later overrides earlier):
    1. Bundled src/fitplan/fitplan.yaml
    2. User override at ~/.fitplan/config.yaml

    Returns:
        Merged dict of config sections
    """
    config = _load_yaml_file(get_bundled_yaml_path())

    user = get_user_yaml_path()
    if user is not None:
        try:
            user_cfg = _load_yaml_file(user)
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(
                f"fitplan: ignoring unreadable config override {user} ({exc})",
                stacklevel=2,
            )
            user_cfg = {}
        config = _deep_merge(config, user_cfg)

    return config


def delta_windows(config: dict[str, Any]) -> tuple[int, int]:
    """Return (weekly_days, monthly_days) lookback windows for trend deltas."""
    progress = config.get("progress", {})
    weekly = int(progress.get("weekly_delta_days", WEEKLY_DELTA_DAYS))
    monthly = int(progress.get("monthly_delta_days", MONTHLY_DELTA_DAYS))
    return weekly, monthly


def default_data_dir(config: dict[str, Any]) -> Path:
    """
    Return the data directory.

    ``FITPLAN_HOME`` wins over the ``storage.data_dir`` config key.
    """
    env = os.environ.get("FITPLAN_HOME")
    if env:
        return Path(env).expanduser()
    raw = config.get("storage", {}).get("data_dir", "~/.fitplan")
    return Path(str(raw)).expanduser()

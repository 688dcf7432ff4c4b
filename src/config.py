"""
Configuration for the TB spatio-temporal analysis.

config/config_default.yaml holds every setting. A run config only needs the
keys it changes: it is merged over the defaults, section by section.
"""
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

from src.common.paths import ensure_dir, find_project_root


DEFAULT_CONFIG = Path("config") / "config_default.yaml"
OUTPUT_KINDS = ('tables', 'figures', 'fits')


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, 'r') as f:
        return yaml.safe_load(f) or {}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Nested dicts are merged key by key; any other value replaces the default."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to a run config. Defaults to config/config_default.yaml
            alone; any other file is merged over the defaults.

    Returns:
        Dictionary containing all configuration settings
    """
    default_path = get_project_root() / DEFAULT_CONFIG
    config = _read_yaml(default_path)
    if config_path is None or Path(config_path).resolve() == default_path.resolve():
        return config
    return _merge(config, _read_yaml(Path(config_path)))


def get_project_root() -> Path:
    """Get the project root directory."""
    return find_project_root(Path(__file__).parent.parent)


def get_data_path(relative_path: str) -> Path:
    """
    Absolute path for a data or results file given relative to the project root.
    Absolute paths are returned unchanged.
    """
    path = Path(relative_path)
    return path if path.is_absolute() else get_project_root() / path


def output_dirs(config: Dict[str, Any]) -> Dict[str, Path]:
    """Create and return the tables / figures / fits directories."""
    output = config.get('output', {})
    return {kind: ensure_dir(get_data_path(output.get(kind, f"results/{kind}")))
            for kind in OUTPUT_KINDS}

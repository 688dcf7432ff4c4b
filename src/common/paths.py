"""Common path utilities.

Experiments run from anywhere inside the checkout, but data, config and
results live relative to the project root. These helpers locate it and
create output directories on demand.
"""

from __future__ import annotations

from pathlib import Path


def find_project_root(start: Path) -> Path:
    """Walk upward from `start` until a directory containing `config/`
    and `stan_models/` is found.

    Returns `start` if no such parent exists.
    """
    start = start.resolve()
    for candidate in (start, *start.parents):
        if (candidate / "config").is_dir() and (candidate / "stan_models").is_dir():
            return candidate
    return start


def ensure_dir(path: Path) -> Path:
    """Create `path` (and parents) if needed and return it."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path

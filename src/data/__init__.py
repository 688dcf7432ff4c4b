"""Data module - loading and cleaning area-year observations."""

from src.data.loader import (
    REQUIRED_COLUMNS,
    load_geodata,
    prepare_observations,
    add_index_columns,
    compute_expected,
    compute_smr,
    save_observations,
    load_observations
)

__all__ = [
    'REQUIRED_COLUMNS',
    'load_geodata',
    'prepare_observations',
    'add_index_columns',
    'compute_expected',
    'compute_smr',
    'save_observations',
    'load_observations'
]

"""
Data Loader for TB Spatio-Temporal Analysis - BLOCK 1: Data Preparation

This module handles:
1. Loading the geospatial file (one polygon per area-year)
2. Renaming raw columns to canonical names and rescaling units
3. Restoring true zero counts stored as a small sentinel value
4. Attaching model index columns (area, time, interaction)

Every function returns a new frame; inputs are never modified.
"""
import warnings
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import geopandas as gpd
import numpy as np
import pandas as pd


REQUIRED_COLUMNS = [
    'area_id', 'year', 'observed',
    'population', 'pop_density', 'poverty'
]


def load_geodata(path: str, layer: Optional[str] = None) -> gpd.GeoDataFrame:
    """
    Load the area-year geospatial file.

    Args:
        path: Path to a vector file readable by geopandas (gpkg, shp, geojson)
        layer: Optional layer name for multi-layer files

    Returns:
        GeoDataFrame with polygon geometries and raw attributes
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Geodata file not found: {path}")

    if layer:
        return gpd.read_file(path, layer=layer)
    return gpd.read_file(path)


def prepare_observations(
    df: pd.DataFrame,
    columns: Optional[Dict[str, str]] = None,
    zero_sentinel: Optional[float] = 0.0001,
    density_divisor: float = 1000.0,
    recompute_expected: bool = False
) -> pd.DataFrame:
    """
    Clean raw area-year records into canonical observation records.

    Args:
        df: Raw (Geo)DataFrame
        columns: Mapping raw column name -> canonical name
        zero_sentinel: Small value used in the source to encode zero counts
        density_divisor: Population density is divided by this (per 1000)
        recompute_expected: Replace expected counts by indirect
            standardization. Inputs without an expected column always get
            standardized counts.

    Returns:
        New DataFrame with columns: area_id, year, observed, expected,
        population, pop_density, poverty (plus geometry if present)
    """
    out = df.rename(columns=columns or {}).copy()

    missing = [c for c in REQUIRED_COLUMNS if c not in out.columns]
    if missing:
        raise KeyError(f"Missing required columns after renaming: {missing}")
    has_expected = 'expected' in out.columns

    # Sentinel -> true zero
    if zero_sentinel is not None:
        for col in ['observed', 'expected'] if has_expected else ['observed']:
            values = pd.to_numeric(out[col], errors='coerce')
            out[col] = values.mask(np.isclose(values, zero_sentinel), 0.0)

    out['observed'] = pd.to_numeric(out['observed'], errors='coerce').round().astype('Int64')
    out['population'] = pd.to_numeric(out['population'], errors='coerce').astype(float)
    out['pop_density'] = pd.to_numeric(out['pop_density'], errors='coerce') / density_divisor
    out['poverty'] = pd.to_numeric(out['poverty'], errors='coerce').astype(float)
    out['year'] = out['year'].astype(int)

    if (out['observed'].dropna() < 0).any():
        raise ValueError("Observed counts must be non-negative")

    dupes = out.duplicated(subset=['area_id', 'year'])
    if dupes.any():
        examples = out.loc[dupes, ['area_id', 'year']].head(5).values.tolist()
        raise ValueError(f"Duplicate (area_id, year) records, e.g. {examples}")

    if has_expected and not recompute_expected:
        out['expected'] = pd.to_numeric(out['expected'], errors='coerce').astype(float)
    else:
        out = compute_expected(out)

    return out.sort_values(['year', 'area_id']).reset_index(drop=True)


def add_index_columns(df: pd.DataFrame, area_order: Iterable) -> pd.DataFrame:
    """
    Attach 1-based model indices.

    area_idx follows the adjacency-graph node order so that latent spatial
    effects line up with the graph; time_idx follows sorted years;
    interaction_idx is the row position.

    Args:
        df: Observation records
        area_order: Area ids in graph node order

    Returns:
        New DataFrame sorted by (time_idx, area_idx) with index columns
    """
    area_order = list(area_order)
    area_map = {area: i + 1 for i, area in enumerate(area_order)}

    unknown = sorted(set(df['area_id']) - set(area_map), key=str)
    if unknown:
        raise ValueError(f"Areas missing from adjacency graph: {unknown[:10]}")

    years = sorted(df['year'].unique())
    time_map = {year: t + 1 for t, year in enumerate(years)}

    out = df.assign(
        area_idx=df['area_id'].map(area_map).astype(int),
        time_idx=df['year'].map(time_map).astype(int),
    )
    out = out.sort_values(['time_idx', 'area_idx']).reset_index(drop=True)
    out['interaction_idx'] = np.arange(1, len(out) + 1)
    return out


def compute_expected(
    df: pd.DataFrame,
    observed_col: str = 'observed',
    population_col: str = 'population',
    by: Optional[List[str]] = None
) -> pd.DataFrame:
    """
    Expected counts by indirect standardization.

    expected = population * (total observed / total population), with the
    reference rate taken over the whole study period, or within `by` groups.

    Returns:
        New DataFrame with an 'expected' column
    """
    if by:
        totals = df.groupby(by)[[observed_col, population_col]].transform('sum')
        rate = totals[observed_col].astype(float) / totals[population_col]
    else:
        rate = float(df[observed_col].sum()) / float(df[population_col].sum())
    return df.assign(expected=df[population_col] * rate)


def compute_smr(df: pd.DataFrame, zero_as_missing: bool = False) -> pd.DataFrame:
    """
    Standardized morbidity ratio (observed / expected).

    Args:
        df: Observation records
        zero_as_missing: If True, zero observed counts give a missing SMR.
            This reproduces an older convention that conflates "no cases"
            with "no data"; off by default.

    Returns:
        New DataFrame with an 'smr' column (NaN where expected is 0)
    """
    observed = df['observed'].astype(float)
    if zero_as_missing:
        n_zero = int((observed == 0).sum())
        if n_zero:
            warnings.warn(f"{n_zero} zero observed counts set to missing SMR (zero_as_missing=True)")
        observed = observed.replace(0.0, np.nan)
    expected = df['expected'].astype(float).replace(0.0, np.nan)
    return df.assign(smr=observed / expected)


def save_observations(df: pd.DataFrame, path: str) -> Path:
    """Write observation records (without geometry) to parquet."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = pd.DataFrame(df.drop(columns='geometry', errors='ignore'))
    frame['observed'] = frame['observed'].astype('Int64')
    frame.to_parquet(path, index=False)
    return path


def load_observations(path: str) -> pd.DataFrame:
    """Read observation records written by `save_observations`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(
            f"Missing {path}. Run experiments/01_prepare_data.py first."
        )
    return pd.read_parquet(path)

"""
Spatial Autocorrelation Diagnostics - BLOCK 2

Global Moran's I per year and Local Moran's I (LISA) hotspot
classification on SMR values, using esda with row-standardized weights.

Per-year global results are a sum type: either a MoranResult or a
MoranDiagnostic explaining why no statistic was computed ("no_data" when
the year has no rows, "mismatch" when the value vector does not line up
with the graph nodes). Diagnostics do not stop the per-year loop.
"""
import warnings
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np
import pandas as pd
from esda.moran import Moran, Moran_Local
from libpysal.weights import W


NO_DATA = "no_data"
MISMATCH = "mismatch"

LISA_CATEGORIES = (
    "High-High",
    "High-Low",
    "Low-High",
    "Low-Low",
    "Not significant",
)


@dataclass(frozen=True)
class MoranResult:
    """Global Moran's I for one year."""
    year: int
    I: float
    expected: float
    variance: float
    z: float
    p_value: float


@dataclass(frozen=True)
class MoranDiagnostic:
    """Why no global Moran's I was computed for a year."""
    year: int
    reason: str
    message: str = ""


GlobalMoranOutcome = Union[MoranResult, MoranDiagnostic]


def _row_standardized(w: W) -> W:
    """Row-standardized copy of `w` (esda sets the transform in place)."""
    wr = W(dict(w.neighbors), id_order=list(w.id_order), silence_warnings=True)
    wr.transform = 'r'
    return wr


def global_moran(values: Sequence[float], w: W, year: int) -> GlobalMoranOutcome:
    """
    Global Moran's I with a normal-approximation p-value.

    Args:
        values: SMR values aligned index-for-index with w.id_order
        w: Adjacency graph
        year: Year label carried into the result

    Returns:
        MoranResult, or MoranDiagnostic for empty / misaligned input
    """
    y = np.asarray(values, dtype=float)

    if y.size == 0:
        return MoranDiagnostic(year, NO_DATA, f"No rows for year {year}")
    if y.size != w.n:
        return MoranDiagnostic(
            year, MISMATCH,
            f"Year {year}: {y.size} values for {w.n} graph nodes"
        )

    mi = Moran(y, _row_standardized(w), permutations=0)
    return MoranResult(
        year=int(year),
        I=float(mi.I),
        expected=float(mi.EI),
        variance=float(mi.VI_norm),
        z=float(mi.z_norm),
        p_value=float(mi.p_norm),
    )


def _values_in_graph_order(df_year: pd.DataFrame, w: W, value_col: str,
                           area_col: str) -> Optional[np.ndarray]:
    """
    One year's values in graph node order, or None when the year's areas
    are not exactly the graph nodes (unknown, missing or repeated areas).
    """
    areas = df_year[area_col]
    if areas.duplicated().any() or set(areas) != set(w.id_order):
        return None
    return df_year.set_index(area_col)[value_col].reindex(list(w.id_order)).to_numpy(dtype=float)


def global_moran_by_year(
    df: pd.DataFrame,
    w: W,
    value_col: str = 'smr',
    years: Optional[Sequence[int]] = None,
    area_col: str = 'area_id',
    year_col: str = 'year'
) -> List[GlobalMoranOutcome]:
    """
    Global Moran's I for each year independently.

    Missing values are set to zero before the test. Years with no rows, or
    whose areas do not match the graph nodes one-to-one, produce a
    MoranDiagnostic and a warning.
    """
    if years is None:
        years = sorted(df[year_col].unique())

    outcomes: List[GlobalMoranOutcome] = []
    for year in years:
        df_year = df[df[year_col] == year]
        values = _values_in_graph_order(df_year, w, value_col, area_col)
        if len(df_year) == 0:
            outcome = global_moran([], w, int(year))
        elif values is None:
            unknown = sorted(set(df_year[area_col]) - set(w.id_order), key=str)
            absent = sorted(set(w.id_order) - set(df_year[area_col]), key=str)
            outcome = MoranDiagnostic(
                int(year), MISMATCH,
                f"Year {year}: {len(df_year)} rows for {w.n} graph nodes; "
                f"areas not in graph {unknown[:5]}, nodes without a row {absent[:5]}"
            )
        else:
            outcome = global_moran(np.nan_to_num(values, nan=0.0), w, int(year))
        if isinstance(outcome, MoranDiagnostic):
            warnings.warn(f"Moran's I skipped ({outcome.reason}): {outcome.message}")
        outcomes.append(outcome)
    return outcomes


def moran_table(outcomes: Sequence[GlobalMoranOutcome]) -> pd.DataFrame:
    """Tabulate per-year outcomes; diagnostic rows carry NaN statistics."""
    rows = []
    for outcome in outcomes:
        if isinstance(outcome, MoranResult):
            rows.append({
                'year': outcome.year,
                'moran_i': outcome.I,
                'expected': outcome.expected,
                'variance': outcome.variance,
                'z': outcome.z,
                'p_value': outcome.p_value,
                'diagnostic': None,
            })
        else:
            rows.append({
                'year': outcome.year,
                'moran_i': np.nan,
                'expected': np.nan,
                'variance': np.nan,
                'z': np.nan,
                'p_value': np.nan,
                'diagnostic': outcome.reason,
            })
    return pd.DataFrame(rows, columns=[
        'year', 'moran_i', 'expected', 'variance', 'z', 'p_value', 'diagnostic'
    ])


def classify_quadrants(
    values: np.ndarray,
    w: W,
    p_values: np.ndarray,
    alpha: float = 0.05
) -> np.ndarray:
    """
    Label each area by its value and neighbourhood average relative to the
    global mean; areas with p > alpha are "Not significant".
    """
    y = np.asarray(values, dtype=float)
    z = y - y.mean()
    lag = _row_standardized(w).sparse @ z

    high = z > 0
    high_lag = lag > 0
    labels = np.select(
        [high & high_lag, high & ~high_lag, ~high & high_lag],
        ["High-High", "High-Low", "Low-High"],
        default="Low-Low",
    ).astype(object)
    labels[np.asarray(p_values, dtype=float) > alpha] = "Not significant"
    return labels


def local_moran(
    values: Sequence[float],
    w: W,
    alpha: float = 0.05,
    permutations: int = 999,
    seed: Optional[int] = 42
) -> pd.DataFrame:
    """
    Local Moran's I per area.

    Args:
        values: Values aligned with w.id_order; NaN is treated as zero
        w: Adjacency graph
        alpha: Significance threshold for the cluster label
        permutations: Conditional permutations for the pseudo p-value
        seed: Permutation seed

    Returns:
        DataFrame with area_id, local_i, p_value, category
    """
    y = np.nan_to_num(np.asarray(values, dtype=float), nan=0.0)
    if y.size != w.n:
        raise ValueError(f"{y.size} values for {w.n} graph nodes")

    lisa = Moran_Local(y, _row_standardized(w), permutations=permutations, seed=seed)
    p_values = np.asarray(lisa.p_sim, dtype=float)

    return pd.DataFrame({
        'area_id': list(w.id_order),
        'local_i': np.asarray(lisa.Is, dtype=float),
        'p_value': p_values,
        'category': classify_quadrants(y, w, p_values, alpha=alpha),
    })


def local_moran_by_year(
    df: pd.DataFrame,
    w: W,
    value_col: str = 'smr',
    alpha: float = 0.05,
    permutations: int = 999,
    seed: Optional[int] = 42,
    area_col: str = 'area_id',
    year_col: str = 'year'
) -> pd.DataFrame:
    """
    LISA classification for every area-year.

    Each year's values are reindexed to the graph node order; areas without
    a row that year get zero, same as missing values.
    """
    frames = []
    for year in sorted(df[year_col].unique()):
        df_year = df[df[year_col] == year].set_index(area_col)[value_col]
        values = df_year.reindex(list(w.id_order)).to_numpy(dtype=float)
        result = local_moran(values, w, alpha=alpha, permutations=permutations, seed=seed)
        frames.append(result.assign(year=int(year)))

    out = pd.concat(frames, ignore_index=True)
    out = out.rename(columns={'area_id': area_col})
    out['category'] = pd.Categorical(out['category'], categories=list(LISA_CATEGORIES))
    return out[[area_col, 'year', 'local_i', 'p_value', 'category']]

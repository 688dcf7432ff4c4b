"""
Descriptive statistics for area-year TB notifications.

- Notification rate per year (cases per 100,000 population)
- Per-year covariate summaries
- Observed-count categories for choropleth maps
"""
import numpy as np
import pandas as pd
from typing import List, Sequence


RATE_PER = 100_000


def notification_rates(df: pd.DataFrame, by: str = 'year') -> pd.DataFrame:
    """
    Notification rate = sum(observed) / sum(population) * 100,000.

    Args:
        df: Observation records
        by: Grouping column (default: year)

    Returns:
        DataFrame with by, observed, population, rate
    """
    grouped = df.groupby(by, as_index=False).agg(
        observed=('observed', 'sum'),
        population=('population', 'sum'),
    )
    population = grouped['population'].astype(float).replace(0.0, np.nan)
    grouped['observed'] = grouped['observed'].astype(int)
    grouped['rate'] = grouped['observed'].astype(float) / population * RATE_PER
    return grouped


def summarize_covariates(
    df: pd.DataFrame,
    columns: Sequence[str] = ('observed', 'expected', 'smr', 'pop_density', 'poverty'),
    by: str = 'year'
) -> pd.DataFrame:
    """
    Mean, sd, min and max of each column per year.

    Columns that are not present are skipped.
    """
    present = [c for c in columns if c in df.columns]
    frame = df[[by, *present]].copy()
    for col in present:
        frame[col] = pd.to_numeric(frame[col], errors='coerce').astype(float)
    summary = frame.groupby(by)[present].agg(['mean', 'std', 'min', 'max'])
    summary.columns = [f'{col}_{stat}' for col, stat in summary.columns]
    return summary.reset_index()


def observed_category_labels(bins: Sequence[float]) -> List[str]:
    """Labels for right-closed bins plus an open top class, e.g. '0', '1-5', '>50'."""
    bins = list(bins)
    labels = []
    for lo, hi in zip(bins[:-1], bins[1:]):
        if lo == 0 and not labels:
            labels.append('0')
        lo_label = int(lo) + 1
        labels.append(f'{lo_label}-{int(hi)}' if lo_label != int(hi) else f'{int(hi)}')
    labels.append(f'>{int(bins[-1])}')
    return labels


def categorize_observed(
    df: pd.DataFrame,
    bins: Sequence[float] = (0, 5, 10, 20, 50),
    column: str = 'observed'
) -> pd.DataFrame:
    """
    Ordered observed-count class per row.

    The first class is exactly zero when bins start at 0; the last class is
    open-ended.

    Returns:
        New DataFrame with an 'observed_category' column
    """
    bins = sorted(float(b) for b in bins)
    if len(bins) < 2 or bins[0] != 0:
        raise ValueError("Observed-count bins must start at 0 and have an upper edge")

    edges = [-np.inf, 0.0, *bins[1:], np.inf]
    labels = observed_category_labels(bins)
    category = pd.cut(
        pd.to_numeric(df[column], errors='coerce').astype(float),
        bins=edges,
        labels=labels,
        right=True,
        ordered=True,
    )
    return df.assign(observed_category=category)

"""
Choropleth maps: LISA hotspots, observed-count categories, relative risk.

Maps are drawn per year from the area polygons of the reference year joined
to long (area_id, year, value) tables.
"""
from pathlib import Path
from typing import Dict, Optional, Sequence

import geopandas as gpd
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.colors import TwoSlopeNorm
import matplotlib.patches as mpatches

from src.spatial.autocorrelation import LISA_CATEGORIES


LISA_COLORS = {
    'High-High': '#D7191C',
    'High-Low': '#FDAE61',
    'Low-High': '#ABD9E9',
    'Low-Low': '#2C7BB6',
    'Not significant': '#EEEEEE',
}


def save_figure_with_description(
    fig: plt.Figure,
    filepath: Path,
    title: str,
    description: str,
    dpi: int = 150
) -> Path:
    """
    Save figure as PNG next to a short .txt description, then close it.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    png_path = filepath.with_suffix('.png')
    fig.savefig(png_path, dpi=dpi, bbox_inches='tight', facecolor='white')
    print(f"  ✓ {png_path.name}")

    with open(filepath.with_suffix('.txt'), 'w') as f:
        f.write(f"FIGURE: {title}\n")
        f.write("=" * 60 + "\n\n")
        f.write(f"WHAT IS SHOWN:\n{description}\n")

    plt.close(fig)
    return png_path


def _panel_grid(n: int, ncols: int = 4, panel_size: float = 4.0):
    ncols = max(1, min(ncols, n))
    nrows = int(np.ceil(n / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(panel_size * ncols, panel_size * nrows),
                             squeeze=False)
    for ax in axes.ravel()[n:]:
        ax.set_visible(False)
    return fig, axes.ravel()[:n]


def join_polygons(
    polygons: gpd.GeoDataFrame,
    values: pd.DataFrame,
    area_col: str = 'area_id'
) -> gpd.GeoDataFrame:
    """Attach long-format values to area polygons (one polygon per area)."""
    shapes = polygons[[area_col, 'geometry']].drop_duplicates(subset=area_col)
    return shapes.merge(values, on=area_col, how='right')


def plot_categorical_map(
    gdf: gpd.GeoDataFrame,
    column: str,
    categories: Sequence[str],
    colors: Dict[str, str],
    title: str,
    years: Optional[Sequence[int]] = None,
    year_col: str = 'year'
) -> plt.Figure:
    """One panel per year, colouring areas by a categorical column."""
    years = sorted(gdf[year_col].unique()) if years is None else list(years)
    fig, axes = _panel_grid(len(years))

    for ax, year in zip(axes, years):
        sub = gdf[gdf[year_col] == year]
        for cat in categories:
            part = sub[sub[column].astype(str) == cat]
            if len(part):
                part.plot(ax=ax, color=colors[cat], edgecolor='grey', linewidth=0.3)
        ax.set_title(str(year))
        ax.set_axis_off()

    handles = [mpatches.Patch(color=colors[c], label=c) for c in categories]
    fig.legend(handles=handles, loc='lower center', ncol=len(categories), frameon=False)
    fig.suptitle(title, fontsize=14)
    return fig


def plot_lisa_map(gdf: gpd.GeoDataFrame, years: Optional[Sequence[int]] = None) -> plt.Figure:
    """Hotspot classification (High-High, ..., Not significant) per year."""
    return plot_categorical_map(
        gdf, 'category', LISA_CATEGORIES, LISA_COLORS,
        title="Local Moran's I clusters (SMR)", years=years
    )


def plot_observed_category_map(
    gdf: gpd.GeoDataFrame,
    years: Optional[Sequence[int]] = None
) -> plt.Figure:
    """Observed-count classes per year (sequential palette)."""
    categories = [str(c) for c in gdf['observed_category'].cat.categories]
    palette = plt.get_cmap('YlOrRd', len(categories))
    colors = {c: palette(i) for i, c in enumerate(categories)}
    return plot_categorical_map(
        gdf, 'observed_category', categories, colors,
        title='Observed TB notifications', years=years
    )


def diverging_norm(
    values: pd.Series,
    vcenter: float = 1.0,
    vmin: Optional[float] = None,
    vmax: Optional[float] = None
) -> TwoSlopeNorm:
    """
    Colour norm centred at `vcenter`.

    Limits not given are taken from the data and widened so that `vcenter`
    stays strictly inside them.
    """
    values = pd.Series(values, dtype=float).dropna()
    if vmin is None:
        vmin = float(values.min()) if len(values) else vcenter - 0.5
    if vmax is None:
        vmax = float(values.max()) if len(values) else vcenter + 0.5
    vmin = min(vmin, vcenter - 0.01)
    vmax = max(vmax, vcenter + 0.01)
    return TwoSlopeNorm(vmin=vmin, vcenter=vcenter, vmax=vmax)


def plot_relative_risk_map(
    gdf: gpd.GeoDataFrame,
    column: str = 'rr_mean',
    title: str = 'Posterior mean relative risk',
    years: Optional[Sequence[int]] = None,
    year_col: str = 'year',
    norm: Optional[TwoSlopeNorm] = None
) -> plt.Figure:
    """Continuous map per year, diverging around RR = 1 unless `norm` is given."""
    years = sorted(gdf[year_col].unique()) if years is None else list(years)
    fig, axes = _panel_grid(len(years))

    if norm is None:
        norm = diverging_norm(gdf[column], vcenter=1.0)
    cmap = plt.get_cmap('RdBu_r')

    for ax, year in zip(axes, years):
        gdf[gdf[year_col] == year].plot(
            column=column, ax=ax, cmap=cmap, norm=norm,
            edgecolor='grey', linewidth=0.3
        )
        ax.set_title(str(year))
        ax.set_axis_off()

    sm = plt.cm.ScalarMappable(cmap=cmap, norm=norm)
    sm.set_array([])
    fig.colorbar(sm, ax=list(axes), shrink=0.6, label=column)
    fig.suptitle(title, fontsize=14)
    return fig


def plot_exceedance_map(
    gdf: gpd.GeoDataFrame,
    column: str = 'p_exceed',
    title: str = 'P(RR > 1)',
    years: Optional[Sequence[int]] = None,
    year_col: str = 'year'
) -> plt.Figure:
    """Exceedance probability per year on a fixed 0-1 scale centred at 0.5."""
    return plot_relative_risk_map(
        gdf, column=column, title=title, years=years, year_col=year_col,
        norm=diverging_norm(gdf[column], vcenter=0.5, vmin=0.0, vmax=1.0)
    )

#!/usr/bin/env python3
"""
Experiment 05: Maps and Posterior Figures

Uses artifacts from experiments 01-04; nothing is refitted.
  - LISA hotspot map per year
  - Observed-count category map per year
  - Posterior mean relative risk and exceedance probability maps
    for the chosen model (--model, default: config priors.sensitivity_model)
  - Posterior marginal densities for the chosen model
  - Prior-sensitivity overlays (if sensitivity fits exist)

Outputs:
  - results/figures/*.png (+ .txt descriptions)
"""
import sys
import argparse
from pathlib import Path

import geopandas as gpd
import pandas as pd

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from src.config import load_config, get_data_path, output_dirs
from src.data.loader import load_observations
from src.evaluation.descriptive import categorize_observed
from src.models.results import load_fits
from src.visualization.maps import (
    join_polygons,
    plot_lisa_map,
    plot_exceedance_map,
    plot_observed_category_map,
    plot_relative_risk_map,
    save_figure_with_description
)
from src.visualization.posterior import plot_posterior_densities, plot_sensitivity_densities


def main():
    parser = argparse.ArgumentParser(description="Maps and posterior figures")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    parser.add_argument("--model", type=str, default=None, help="Model to map")
    args = parser.parse_args()

    cfg = load_config(str(get_data_path(args.config)))
    dirs = output_dirs(cfg)
    fig_dir = dirs['figures']
    tables_dir = dirs['tables']
    fits_dir = dirs['fits']
    dpi = cfg['output'].get('dpi', 150)

    print("=" * 60)
    print("FIGURES")
    print("=" * 60)

    areas = gpd.read_file(get_data_path(cfg['data']['processed']['areas']))
    obs = load_observations(get_data_path(cfg['data']['processed']['observations']))
    if pd.api.types.is_integer_dtype(obs['area_id']):
        areas['area_id'] = areas['area_id'].astype(obs['area_id'].dtype)

    # Observed-count categories
    bins = cfg.get('descriptive', {}).get('observed_bins', [0, 5, 10, 20, 50])
    observed = categorize_observed(obs, bins=bins)[['area_id', 'year', 'observed_category']]
    fig = plot_observed_category_map(join_polygons(areas, observed))
    save_figure_with_description(
        fig, fig_dir / "map_observed_category",
        "Observed TB notifications",
        "Observed case counts per area and year, grouped into count classes.",
        dpi=dpi
    )

    # LISA hotspots
    lisa_path = tables_dir / "lisa_clusters.csv"
    if lisa_path.exists():
        lisa = pd.read_csv(lisa_path, dtype={'area_id': obs['area_id'].dtype})
        fig = plot_lisa_map(join_polygons(areas, lisa))
        save_figure_with_description(
            fig, fig_dir / "map_lisa_clusters",
            "Local Moran's I clusters",
            "Hotspot class of each area's SMR per year (High-High, High-Low, "
            "Low-High, Low-Low, Not significant).",
            dpi=dpi
        )
    else:
        print(f"  Skipping LISA map: {lisa_path} not found")

    # Relative risk for the chosen model
    fits = load_fits(fits_dir / "model_fits.pkl")
    model_name = args.model or cfg.get('priors', {}).get('sensitivity_model')
    if model_name not in fits:
        model_name = list(fits)[-1]
    fit = fits[model_name]
    print(f"\nModel for maps: {model_name}")

    rr = join_polygons(areas, fit.relative_risk)
    fig = plot_relative_risk_map(rr, column='rr_mean',
                                 title=f'Posterior mean relative risk ({model_name})')
    save_figure_with_description(
        fig, fig_dir / f"map_relative_risk_{model_name}",
        "Posterior mean relative risk",
        "exp(linear predictor - log expected) averaged over posterior draws.",
        dpi=dpi
    )
    fig = plot_exceedance_map(rr, title=f'P(RR > 1) ({model_name})')
    save_figure_with_description(
        fig, fig_dir / f"map_exceedance_{model_name}",
        "Exceedance probability",
        "Posterior probability that the relative risk exceeds 1.",
        dpi=dpi
    )

    fig = plot_posterior_densities(fit)
    save_figure_with_description(
        fig, fig_dir / f"posterior_{model_name}",
        "Posterior marginals",
        "Kernel density of posterior draws with the 95% credible interval shaded.",
        dpi=dpi
    )

    sens_path = fits_dir / "sensitivity_fits.pkl"
    if sens_path.exists():
        sens = load_fits(sens_path)
        first = next(iter(sens.values()))
        for param in first.draws:
            fig = plot_sensitivity_densities(sens, param)
            safe = ''.join(ch if ch.isalnum() else '_' for ch in param).strip('_')
            save_figure_with_description(
                fig, fig_dir / f"sensitivity_{safe}",
                f"Prior sensitivity: {param}",
                "Posterior marginal under each prior configuration.",
                dpi=dpi
            )


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Experiment 03: Fit and Compare the Ten BYM Space-Time Models

Models (simplest first):
  bym, bym_cov, bym_rw2, bym_rw2_cov,
  bym_rw2_type{I,II,III} with and without covariates

For each model: fit via Stan, compute DIC / WAIC / CPO, then LOOCV and
leave-group-out CV (group sizes from config). No automatic model
selection: the comparison table is written in fitting order.

Outputs:
  - results/tables/model_comparison.{html,csv}
  - results/tables/fixed_effects.{html,csv}
  - results/tables/hyperparameters.{html,csv}
  - results/fits/model_fits.pkl
"""
import sys
import argparse
from pathlib import Path

import pandas as pd

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from src.config import load_config, get_data_path, output_dirs
from src.data.loader import load_observations
from src.evaluation.comparison import (
    fit_models,
    attach_cross_validation,
    comparison_table,
    fixed_effects_table,
    hyperparameter_table,
    print_comparison
)
from src.models.results import save_fits
from src.models.specs import PriorConfig, default_model_specs
from src.spatial.adjacency import read_graph
from src.visualization.tables import save_table


def main():
    parser = argparse.ArgumentParser(description="Fit and compare BYM space-time models")
    parser.add_argument(
        "--config",
        type=str,
        default="config/config_default.yaml",
        help="Path to config file"
    )
    parser.add_argument(
        "--models",
        type=str,
        nargs="*",
        default=None,
        help="Subset of model names to fit (default: all ten)"
    )
    parser.add_argument("--n-warmup", type=int, default=None, help="MCMC warmup iterations")
    parser.add_argument("--n-samples", type=int, default=None, help="MCMC sampling iterations")
    parser.add_argument("--n-chains", type=int, default=None, help="Number of MCMC chains")
    args = parser.parse_args()

    cfg = load_config(str(get_data_path(args.config)))
    model_cfg = cfg.get('models', {})

    mcmc_cfg = dict(cfg.get('mcmc', {}))
    for key in ('n_warmup', 'n_samples', 'n_chains'):
        value = getattr(args, key)
        if value is not None:
            mcmc_cfg[key] = value
    mcmc_cfg['stan_file'] = model_cfg.get('stan_file')

    print("=" * 60)
    print("TB SPATIO-TEMPORAL ANALYSIS - MODEL COMPARISON")
    print("=" * 60)
    print(f"MCMC: {mcmc_cfg.get('n_chains')} chains, {mcmc_cfg.get('n_warmup')} warmup, "
          f"{mcmc_cfg.get('n_samples')} samples")

    obs = load_observations(get_data_path(cfg['data']['processed']['observations']))
    id_type = int if pd.api.types.is_integer_dtype(obs['area_id']) else str
    graph = read_graph(str(get_data_path(cfg['spatial']['graph_file'])), id_type=id_type)
    print(f"  → {len(obs)} area-years, {graph.n} areas, {obs['year'].nunique()} years")

    priors = PriorConfig.from_dict(cfg.get('priors', {}).get('default'))
    specs = default_model_specs(model_cfg.get('covariates', ['pop_density', 'poverty']), priors)
    if args.models:
        specs = [s for s in specs if s.name in set(args.models)]
    print(f"  → {len(specs)} models")

    from src.models.bayesian.bym_spacetime import StanBYMEngine, print_diagnostics

    engine = StanBYMEngine(config=mcmc_cfg)
    offset = model_cfg.get('offset', 'expected')

    fits = fit_models(engine, specs, obs, graph, offset=offset)
    for fit in fits.values():
        print_diagnostics(fit)

    group_sizes = cfg.get('cv', {}).get('group_sizes', [3, 5, 10])
    print("\nCross-validation (LOOCV + leave-group-out)...")
    fits = attach_cross_validation(fits, group_sizes)

    table = comparison_table(fits, group_sizes)
    print_comparison(table)

    tables_dir = output_dirs(cfg)['tables']
    save_table(table, tables_dir / "model_comparison", title="Model comparison")
    save_table(fixed_effects_table(fits), tables_dir / "fixed_effects",
               title="Posterior mean of fixed effects", decimals=4)
    save_table(hyperparameter_table(fits), tables_dir / "hyperparameters",
               title="Posterior mean of precisions", decimals=4)

    fits_path = save_fits(fits, output_dirs(cfg)['fits'] / "model_fits.pkl")
    print(f"\nSaved fits to {fits_path}")


if __name__ == "__main__":
    main()

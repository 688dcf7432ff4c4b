"""
Model-fitting and comparison pipeline.

Fits a sequence of model specifications against the same data and graph,
attaches cross-validation scores and tabulates one row per model. Fits run
one after another; an error in any fit propagates and stops the run.

Model choice is left to the analyst: rows keep the order in which the
models were fitted and nothing is ranked.
"""
from collections import OrderedDict
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from libpysal.weights import W

from src.evaluation.cv import DEFAULT_GROUP_SIZES, cross_validate
from src.models.base import InferenceEngine
from src.models.results import FitResult
from src.models.specs import ModelSpec, PriorConfig


def comparison_columns(group_sizes: Sequence[int] = DEFAULT_GROUP_SIZES) -> list:
    """Column order of the comparison table."""
    return (['mean_deviance', 'p_eff', 'dic', 'waic', 'p_waic', 'loocv']
            + [f'lcv_{k}' for k in group_sizes])


def fit_models(
    engine: InferenceEngine,
    specs: Sequence[ModelSpec],
    data: pd.DataFrame,
    graph: W,
    offset: str = 'expected',
    options: Optional[Dict[str, Any]] = None
) -> 'OrderedDict[str, FitResult]':
    """
    Fit every specification in order.

    Returns:
        OrderedDict model name -> FitResult
    """
    names = [s.name for s in specs]
    if len(set(names)) != len(names):
        raise ValueError(f"Model names must be unique: {names}")

    results: 'OrderedDict[str, FitResult]' = OrderedDict()
    for i, spec in enumerate(specs, 1):
        print(f"\n[{i}/{len(specs)}] {spec.name}: {spec.formula(offset=offset)}")
        results[spec.name] = engine.fit(spec, data, graph, offset=offset, options=options)
    return results


def attach_cross_validation(
    results: Mapping[str, FitResult],
    group_sizes: Sequence[int] = DEFAULT_GROUP_SIZES
) -> 'OrderedDict[str, FitResult]':
    """New mapping with LOOCV / leave-group-out scores attached to each fit."""
    return OrderedDict(
        (name, fit.with_cross_validation(cross_validate(fit, group_sizes)))
        for name, fit in results.items()
    )


def comparison_table(
    results: Mapping[str, FitResult],
    group_sizes: Sequence[int] = DEFAULT_GROUP_SIZES
) -> pd.DataFrame:
    """
    One row per fitted model.

    Columns: mean_deviance, p_eff, dic, waic, p_waic, loocv, lcv_<k>.
    Cross-validation columns are NaN for fits without CV attached.
    """
    columns = comparison_columns(group_sizes)
    rows = {name: fit.metrics() for name, fit in results.items()}
    table = pd.DataFrame.from_dict(rows, orient='index')
    table = table.reindex(index=list(results), columns=columns)
    table.index.name = 'model'
    return table.astype(float)


def fixed_effects_table(
    results: Mapping[str, FitResult],
    stat: str = 'mean'
) -> pd.DataFrame:
    """Side-by-side posterior `stat` of the fixed effects, one column per fit."""
    columns = {name: fit.fixed_effects[stat] for name, fit in results.items()}
    return pd.DataFrame(columns)


def hyperparameter_table(
    results: Mapping[str, FitResult],
    stat: str = 'mean'
) -> pd.DataFrame:
    """Side-by-side posterior `stat` of the hyperparameters, one column per fit."""
    columns = {name: fit.hyperparameters[stat] for name, fit in results.items()}
    return pd.DataFrame(columns)


def sensitivity_refit(
    engine: InferenceEngine,
    spec: ModelSpec,
    data: pd.DataFrame,
    graph: W,
    prior_sets: Mapping[str, PriorConfig],
    offset: str = 'expected',
    options: Optional[Dict[str, Any]] = None,
    group_sizes: Sequence[int] = DEFAULT_GROUP_SIZES
) -> 'OrderedDict[str, FitResult]':
    """
    Re-fit one model under alternative hyperprior configurations.

    Args:
        prior_sets: label -> PriorConfig (e.g. weakly_informative, informative)

    Returns:
        OrderedDict label -> FitResult, with cross-validation attached
    """
    specs = [spec.with_priors(priors, name=f"{spec.name}[{label}]")
             for label, priors in prior_sets.items()]
    fits = fit_models(engine, specs, data, graph, offset=offset, options=options)
    fits = attach_cross_validation(fits, group_sizes)
    return OrderedDict(
        (label, fit) for label, fit in zip(prior_sets.keys(), fits.values())
    )


def print_comparison(table: pd.DataFrame) -> None:
    """Print the comparison table."""
    print("\n" + "=" * 60)
    print("MODEL COMPARISON")
    print("=" * 60)
    with pd.option_context('display.width', 160, 'display.max_columns', 20):
        print(table.round(3).to_string())
    if table[['dic', 'waic']].lt(0).any().any():
        print("WARNING: negative DIC/WAIC values, check the input data")
    if not np.isfinite(table[['dic', 'waic']].to_numpy()).all():
        print("WARNING: non-finite DIC/WAIC values")

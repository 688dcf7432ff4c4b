"""
Fitted-result records.

A FitResult is created once per model fit and never mutated; attaching
cross-validation scores returns a new FitResult.
"""
from __future__ import annotations

import pickle
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd


SUMMARY_COLUMNS = ['mean', 'sd', 'q0.025', 'q0.5', 'q0.975']


@dataclass(frozen=True)
class InformationCriteria:
    """Deviance- and WAIC-based fit statistics (deviance scale)."""
    mean_deviance: float
    p_eff: float
    dic: float
    waic: float
    p_waic: float

    def as_dict(self) -> Dict[str, float]:
        return {
            'mean_deviance': self.mean_deviance,
            'p_eff': self.p_eff,
            'dic': self.dic,
            'waic': self.waic,
            'p_waic': self.p_waic,
        }


@dataclass(frozen=True)
class CrossValidation:
    """
    Leave-one-out and leave-group-out predictive scores.

    loocv and lcv values are mean negative log predictive densities after
    dropping missing scores; `scores` keeps the per-observation densities
    keyed 'loo' and 'lcv_<k>'.
    """
    loocv: float
    lcv: Dict[int, float]
    scores: Dict[str, np.ndarray] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, float]:
        out = {'loocv': self.loocv}
        for k in sorted(self.lcv):
            out[f'lcv_{k}'] = self.lcv[k]
        return out


@dataclass(frozen=True)
class FitResult:
    """Posterior summaries and diagnostics for one fitted model."""
    model_name: str
    formula: str
    fixed_effects: pd.DataFrame
    hyperparameters: pd.DataFrame
    criteria: InformationCriteria
    cpo: np.ndarray
    relative_risk: pd.DataFrame
    log_lik: np.ndarray
    linear_predictor: np.ndarray
    draws: Dict[str, np.ndarray] = field(default_factory=dict)
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    cross_validation: Optional[CrossValidation] = None

    @property
    def n_obs(self) -> int:
        return int(self.log_lik.shape[1])

    @property
    def n_draws(self) -> int:
        return int(self.log_lik.shape[0])

    def with_cross_validation(self, cv: CrossValidation) -> 'FitResult':
        """New result with cross-validation scores attached."""
        return replace(self, cross_validation=cv)

    def metrics(self) -> Dict[str, float]:
        """One comparison-table row."""
        row = self.criteria.as_dict()
        if self.cross_validation is not None:
            row.update(self.cross_validation.as_dict())
        return row


def summarize_draws(draws: Dict[str, np.ndarray]) -> pd.DataFrame:
    """
    Posterior mean, sd and 2.5/50/97.5 percentiles for scalar parameters.

    Args:
        draws: name -> 1-D array of posterior draws

    Returns:
        DataFrame indexed by parameter name
    """
    rows = {}
    for name, values in draws.items():
        v = np.asarray(values, dtype=float).ravel()
        q = np.percentile(v, [2.5, 50, 97.5])
        rows[name] = [v.mean(), v.std(ddof=1) if v.size > 1 else 0.0, q[0], q[1], q[2]]
    return pd.DataFrame.from_dict(rows, orient='index', columns=SUMMARY_COLUMNS)


def save_fits(fits: Dict[str, FitResult], path: str) -> Path:
    """Pickle a mapping of fitted results."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'wb') as f:
        pickle.dump(dict(fits), f)
    return path


def load_fits(path: str) -> Dict[str, FitResult]:
    """Load results written by `save_fits`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing {path}. Run experiments/03_fit_models.py first.")
    with open(path, 'rb') as f:
        return pickle.load(f)

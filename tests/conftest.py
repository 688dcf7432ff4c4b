"""Shared fixtures: toy area-year data, graphs and a conjugate stand-in engine."""
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
import pytest
from scipy.stats import poisson

project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from src.evaluation.criteria import compute_cpo, information_criteria
from src.models.base import InferenceEngine
from src.models.results import FitResult, summarize_draws
from src.spatial.adjacency import graph_from_neighbors


def cmdstan_installed() -> bool:
    """True when CmdStanPy and a CmdStan installation are both available."""
    try:
        import cmdstanpy
        cmdstanpy.cmdstan_path()
    except Exception:
        return False
    return True


@pytest.fixture
def raw_frame():
    """Raw area-year records as they come out of the geodata file."""
    return pd.DataFrame({
        'area_code': [1, 2, 3, 4, 1, 2, 3, 4],
        'year': [2019] * 4 + [2020] * 4,
        'cases': [5, 0.0001, 12, 3, 7, 2, 0.0001, 4],
        'expected_cases': [4.0, 2.5, 10.0, 3.5, 4.2, 2.6, 9.8, 3.6],
        'population': [40000, 25000, 100000, 35000, 41000, 25500, 99000, 36000],
        'pop_density': [1200.0, 800.0, 3500.0, 950.0, 1210.0, 805.0, 3480.0, 960.0],
        'poverty_rate': [12.5, 20.1, 8.3, 15.0, 12.0, 19.8, 8.1, 14.7],
    })


@pytest.fixture
def column_map():
    return {
        'area_code': 'area_id',
        'cases': 'observed',
        'expected_cases': 'expected',
        'poverty_rate': 'poverty',
    }


@pytest.fixture
def full_graph():
    """Fully connected graph over the four toy areas."""
    return graph_from_neighbors({1: [2, 3, 4], 2: [3, 4], 3: [4], 4: []})


@pytest.fixture
def path_graph():
    """Path 0 - 1 - 2 - 3."""
    return graph_from_neighbors({0: [1], 1: [2], 2: [3]})


@pytest.fixture
def toy_observations(raw_frame, column_map, full_graph):
    """Cleaned 4-area, 2-year observations with index columns and SMR."""
    from src.data.loader import add_index_columns, compute_smr, prepare_observations

    obs = prepare_observations(raw_frame, columns=column_map)
    obs = add_index_columns(obs, full_graph.id_order)
    return compute_smr(obs)


@pytest.fixture
def panel_observations():
    """Five areas over four years with a mild trend, for pipeline tests."""
    rng = np.random.default_rng(7)
    rows = []
    for t, year in enumerate([2016, 2017, 2018, 2019]):
        for area in range(1, 6):
            expected = 5.0 + area
            rows.append({
                'area_id': area,
                'year': year,
                'expected': expected,
                'observed': int(rng.poisson(expected * (1 + 0.1 * t))),
                'population': 10000 * area,
                'pop_density': 0.5 * area,
                'poverty': 10.0 + area,
                'area_idx': area,
                'time_idx': t + 1,
            })
    df = pd.DataFrame(rows)
    df['interaction_idx'] = np.arange(1, len(df) + 1)
    return df


@pytest.fixture
def line_graph_5():
    return graph_from_neighbors({1: [2], 2: [3], 3: [4], 4: [5]})


class PoissonGammaEngine(InferenceEngine):
    """
    Conjugate stand-in engine: independent Gamma posteriors per
    observation, shrunk more strongly for models with covariates.
    """

    def __init__(self, n_draws: int = 400, seed: int = 0, fail_on: Optional[str] = None):
        super().__init__(name="poisson_gamma")
        self.n_draws = n_draws
        self.seed = seed
        self.fail_on = fail_on
        self.calls = []

    def fit(self, spec, data, graph, offset='expected', options: Optional[Dict[str, Any]] = None):
        self.calls.append(spec.name)
        if spec.name == self.fail_on:
            raise RuntimeError(f"fit failed for {spec.name}")

        rng = np.random.default_rng(self.seed)
        y = data['observed'].to_numpy(dtype=int)
        E = data[offset].to_numpy(dtype=float)
        a = 1.0 + len(spec.covariates) + (2.0 if spec.temporal else 0.0)
        a *= spec.priors.shape

        theta = rng.gamma(y + a, 1.0 / (E + a), size=(self.n_draws, len(y)))
        mu = theta * E
        log_lik = poisson.logpmf(y, mu)

        draws = {'(Intercept)': np.log(theta).mean(axis=1)}
        for k, name in enumerate(spec.covariates):
            draws[name] = rng.normal(0.1 * (k + 1), 0.05, size=self.n_draws)
        hyper = {'Precision for area (iid)': rng.gamma(2.0, 1.0, size=self.n_draws)}

        fixed = summarize_draws(draws)
        rr = pd.DataFrame({
            'area_id': data['area_id'].to_numpy(),
            'year': data['year'].to_numpy(),
            'rr_mean': theta.mean(axis=0),
            'p_exceed': (theta > 1).mean(axis=0),
        })
        return FitResult(
            model_name=spec.name,
            formula=spec.formula(offset=offset),
            fixed_effects=fixed,
            hyperparameters=summarize_draws(hyper),
            criteria=information_criteria(log_lik, y, mu),
            cpo=compute_cpo(log_lik),
            relative_risk=rr,
            log_lik=log_lik,
            linear_predictor=np.log(mu),
            draws={**draws, **hyper},
        )


@pytest.fixture
def fake_engine():
    return PoissonGammaEngine()

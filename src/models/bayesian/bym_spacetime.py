"""
Bayesian BYM Space-Time Models via Stan

Poisson log-linear model with expected-count offset and:
- BYM spatial effect (ICAR + iid)
- RW2 temporal trend
- Knorr-Held space-time interaction (types I, II, III)
- Optional fixed covariates

One Stan program covers all variants; structure and priors are switched
through data, so sensitivity re-fits reuse the compiled model.
"""
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Any, Dict, Optional
import warnings

from libpysal.weights import W

from src.config import get_project_root
from src.evaluation.criteria import compute_cpo, information_criteria
from src.models.results import FitResult, summarize_draws
from src.models.specs import MIN_RW2_TIMES, ModelSpec
from src.spatial.adjacency import component_labels, graph_to_edges

try:
    from cmdstanpy import CmdStanModel
    CMDSTAN_AVAILABLE = True
except ImportError:
    CMDSTAN_AVAILABLE = False
    warnings.warn("CmdStanPy not available. Install with: pip install cmdstanpy")

from ..base import InferenceEngine


INTERACTION_CODES = {None: 0, "I": 1, "II": 2, "III": 3}

HYPERPARAMETER_LABELS = {
    'tau_spatial': 'Precision for area (spatial)',
    'tau_iid': 'Precision for area (iid)',
    'tau_time': 'Precision for time (rw2)',
    'tau_interaction': 'Precision for area x time',
}


class StanBYMEngine(InferenceEngine):
    """
    BYM space-time model fitting with NUTS via CmdStanPy.
    """

    def __init__(self, config: Optional[Dict] = None):
        super().__init__(name="stan_bym_spacetime", config=config)

        if not CMDSTAN_AVAILABLE:
            raise RuntimeError("CmdStanPy required but not available")

        # MCMC configuration
        self.n_warmup = self.config.get('n_warmup', 1000)
        self.n_samples = self.config.get('n_samples', 1000)
        self.n_chains = self.config.get('n_chains', 4)
        self.adapt_delta = self.config.get('adapt_delta', 0.95)
        self.max_treedepth = self.config.get('max_treedepth', 12)
        self.seed = self.config.get('seed', 42)
        self.show_progress = self.config.get('show_progress', False)

        # Stan model path
        self.stan_file = self.config.get('stan_file', None)

        # Compiled model, shared across fits
        self.model_ = None

    def _get_stan_file(self) -> Path:
        """Get path to Stan model file."""
        if self.stan_file:
            path = Path(self.stan_file)
            if not path.is_absolute():
                path = get_project_root() / path
        else:
            path = get_project_root() / "stan_models" / "bym_spacetime.stan"

        if not path.exists():
            raise FileNotFoundError(f"Stan model not found: {path}")
        return path

    def _compile(self) -> 'CmdStanModel':
        if self.model_ is None:
            stan_file = self._get_stan_file()
            print(f"Compiling Stan model from {stan_file}...")
            self.model_ = CmdStanModel(stan_file=str(stan_file))
        return self.model_

    def prepare_stan_data(
        self,
        spec: ModelSpec,
        data: pd.DataFrame,
        graph: W,
        offset: str = 'expected'
    ) -> Dict[str, Any]:
        """
        Build the Stan data dictionary for one model.

        Args:
            spec: Model specification
            data: Observations with area_idx / time_idx (see add_index_columns)
            graph: Adjacency graph defining area_idx order
            offset: Expected-count column

        Returns:
            Dictionary formatted for Stan
        """
        missing = [c for c in ['observed', offset, 'area_idx', 'time_idx', *spec.covariates]
                   if c not in data.columns]
        if missing:
            raise KeyError(f"Missing columns for model '{spec.name}': {missing}")

        if data['observed'].isna().any():
            raise ValueError("Observed counts contain missing values")

        E = data[offset].to_numpy(dtype=float)
        if not np.all(np.isfinite(E)) or np.any(E <= 0):
            raise ValueError(f"Offset column '{offset}' must be finite and > 0")

        n_time = int(data['time_idx'].max())
        if spec.needs_rw2 and n_time < MIN_RW2_TIMES:
            raise ValueError(
                f"Model '{spec.name}' needs at least {MIN_RW2_TIMES} time points, got {n_time}"
            )

        if int(data['area_idx'].max()) > graph.n:
            raise ValueError("area_idx exceeds the number of graph nodes")

        if spec.covariates:
            X = data[list(spec.covariates)].to_numpy(dtype=float)
            if not np.all(np.isfinite(X)):
                raise ValueError(f"Covariates {list(spec.covariates)} contain missing values")
        else:
            X = np.zeros((len(data), 0))

        node1, node2 = graph_to_edges(graph)
        comp = component_labels(graph)
        priors = spec.priors

        stan_data = {
            'N': len(data),
            'N_area': graph.n,
            'N_time': n_time,
            'y': data['observed'].astype(int).to_numpy(),
            'E': E,
            'area': data['area_idx'].astype(int).to_numpy(),
            'time': data['time_idx'].astype(int).to_numpy(),
            'K': X.shape[1],
            'X': X,
            'N_edges': len(node1),
            'node1': node1,
            'node2': node2,
            'N_comp': int(comp.max()),
            'comp': comp,
            'has_time': int(spec.temporal),
            'interaction': INTERACTION_CODES[spec.interaction],
            'prior_spatial': list(priors.gamma('tau_spatial')),
            'prior_iid': list(priors.gamma('tau_iid')),
            'prior_time': list(priors.gamma('tau_time')),
            'prior_interaction': list(priors.gamma('tau_interaction')),
            'fixed_sd': priors.fixed_sd,
        }
        return stan_data

    def fit(
        self,
        spec: ModelSpec,
        data: pd.DataFrame,
        graph: W,
        offset: str = 'expected',
        options: Optional[Dict[str, Any]] = None
    ) -> FitResult:
        """
        Fit one BYM space-time model via MCMC.

        Args:
            spec: Model specification
            data: Observation records with index columns
            graph: Adjacency graph
            offset: Expected-count column
            options: Overrides for n_chains / n_warmup / n_samples / seed

        Returns:
            FitResult
        """
        opts = {
            'n_chains': self.n_chains,
            'n_warmup': self.n_warmup,
            'n_samples': self.n_samples,
            'adapt_delta': self.adapt_delta,
            'max_treedepth': self.max_treedepth,
            'seed': self.seed,
        }
        opts.update(options or {})

        model = self._compile()
        stan_data = self.prepare_stan_data(spec, data, graph, offset)

        print(f"Fitting '{spec.name}': N={stan_data['N']}, areas={stan_data['N_area']}, "
              f"times={stan_data['N_time']}, K={stan_data['K']}")
        print(f"Running MCMC: {opts['n_chains']} chains, {opts['n_warmup']} warmup, "
              f"{opts['n_samples']} samples...")

        fit = model.sample(
            data=stan_data,
            chains=opts['n_chains'],
            iter_warmup=opts['n_warmup'],
            iter_sampling=opts['n_samples'],
            adapt_delta=opts['adapt_delta'],
            max_treedepth=opts['max_treedepth'],
            seed=opts['seed'],
            show_progress=self.show_progress
        )

        return self._extract_result(spec, fit, stan_data, data)

    def _extract_result(
        self,
        spec: ModelSpec,
        fit: Any,
        stan_data: Dict[str, Any],
        data: pd.DataFrame
    ) -> FitResult:
        """Posterior summaries, criteria and relative risks from a CmdStan fit."""
        log_lik = fit.stan_variable('log_lik')
        eta = fit.stan_variable('eta')
        mu = fit.stan_variable('mu')

        fixed = {'(Intercept)': fit.stan_variable('alpha')}
        if spec.covariates:
            beta = fit.stan_variable('beta').reshape(log_lik.shape[0], -1)
            for k, name in enumerate(spec.covariates):
                fixed[name] = beta[:, k]

        hyper = {
            HYPERPARAMETER_LABELS['tau_spatial']: fit.stan_variable('tau_spatial'),
            HYPERPARAMETER_LABELS['tau_iid']: fit.stan_variable('tau_iid'),
        }
        if spec.temporal:
            hyper[HYPERPARAMETER_LABELS['tau_time']] = fit.stan_variable('tau_time').reshape(-1)
        if spec.interaction is not None:
            hyper[HYPERPARAMETER_LABELS['tau_interaction']] = fit.stan_variable('tau_interaction').reshape(-1)

        rr = np.exp(eta - np.log(stan_data['E'])[None, :])
        relative_risk = pd.DataFrame({
            'area_id': data['area_id'].to_numpy(),
            'year': data['year'].to_numpy(),
            'rr_mean': rr.mean(axis=0),
            'rr_q0.025': np.percentile(rr, 2.5, axis=0),
            'rr_q0.975': np.percentile(rr, 97.5, axis=0),
            'p_exceed': (rr > 1.0).mean(axis=0),
        })

        return FitResult(
            model_name=spec.name,
            formula=spec.formula(),
            fixed_effects=summarize_draws(fixed),
            hyperparameters=summarize_draws(hyper),
            criteria=information_criteria(log_lik, stan_data['y'], mu),
            cpo=compute_cpo(log_lik),
            relative_risk=relative_risk,
            log_lik=log_lik,
            linear_predictor=eta,
            draws={**fixed, **hyper},
            diagnostics=self.get_diagnostics(fit),
        )

    def get_diagnostics(self, fit: Any) -> Dict[str, Any]:
        """
        Get MCMC diagnostics.

        Returns:
            Dictionary with R-hat, ESS, divergences
        """
        summary = fit.summary()
        key_params = [p for p in ['alpha', 'tau_spatial', 'tau_iid', 'tau_time[1]',
                                  'tau_interaction[1]'] if p in summary.index]
        key_params += [p for p in summary.index if str(p).startswith('beta[')]

        ess_col = 'ESS_bulk' if 'ESS_bulk' in summary.columns else 'N_Eff'
        divergences = getattr(fit, 'divergences', None)

        return {
            'n_divergences': int(np.sum(divergences)) if divergences is not None else None,
            'max_rhat': float(summary.loc[key_params, 'R_hat'].max()) if key_params else np.nan,
            'min_ess_bulk': float(summary.loc[key_params, ess_col].min()) if key_params else np.nan,
        }


def print_diagnostics(result: FitResult) -> None:
    """Print formatted diagnostics summary."""
    diag = result.diagnostics

    print("\n" + "=" * 50)
    print(f"MCMC DIAGNOSTICS - {result.model_name}")
    print("=" * 50)

    print(f"\nDivergences: {diag.get('n_divergences')}")
    print(f"Max R-hat: {diag.get('max_rhat', np.nan):.4f}")
    print(f"Min ESS (bulk): {diag.get('min_ess_bulk', np.nan):.0f}")

    print("\nFixed effects:")
    print(result.fixed_effects.round(4).to_string())
    print("\nHyperparameters:")
    print(result.hyperparameters.round(4).to_string())

    print("\n" + "-" * 50)
    n_div = diag.get('n_divergences') or 0
    rhat = diag.get('max_rhat', np.nan)
    ess = diag.get('min_ess_bulk', np.nan)
    if n_div > 0:
        print("WARNING: Divergences detected!")
    if rhat > 1.05:
        print("WARNING: R-hat > 1.05 (chains may not have converged)")
    if ess < 100:
        print("WARNING: Low ESS (< 100)")
    if n_div == 0 and rhat <= 1.05 and ess >= 100:
        print("All diagnostics passed")

"""
Information Criteria for Poisson Space-Time Models

Computed from posterior draws of the pointwise log-likelihood:
- DIC (Spiegelhalter et al. 2002): mean deviance + effective parameters
- WAIC (Watanabe 2010): -2 * (lppd - p_waic), variance-based penalty
- CPO: harmonic-mean leave-one-out predictive density per observation

All criteria are on the deviance scale (lower is better).
"""
import numpy as np
from typing import Dict, Tuple
from scipy.special import logsumexp
from scipy.stats import poisson

from src.models.results import InformationCriteria


def _check_draws(log_lik: np.ndarray) -> np.ndarray:
    log_lik = np.asarray(log_lik, dtype=float)
    if log_lik.ndim != 2:
        raise ValueError(f"log_lik must be (n_draws, n_obs), got shape {log_lik.shape}")
    if log_lik.shape[0] < 2:
        raise ValueError("At least two posterior draws are required")
    return log_lik


def compute_dic(
    log_lik: np.ndarray,
    y: np.ndarray,
    mu: np.ndarray
) -> Tuple[float, float, float]:
    """
    Deviance information criterion.

    Args:
        log_lik: Pointwise log-likelihood draws (n_draws, n_obs)
        y: Observed counts (n_obs,)
        mu: Posterior draws of the Poisson mean (n_draws, n_obs)

    Returns:
        Tuple of (mean_deviance, p_eff, dic)
    """
    log_lik = _check_draws(log_lik)
    deviance = -2.0 * log_lik.sum(axis=1)
    mean_deviance = float(deviance.mean())

    mu_bar = np.asarray(mu, dtype=float).mean(axis=0)
    deviance_at_mean = float(-2.0 * poisson.logpmf(np.asarray(y), mu_bar).sum())

    p_eff = mean_deviance - deviance_at_mean
    return mean_deviance, p_eff, mean_deviance + p_eff


def compute_waic(log_lik: np.ndarray) -> Dict[str, object]:
    """
    Widely applicable information criterion.

    Args:
        log_lik: Pointwise log-likelihood draws (n_draws, n_obs)

    Returns:
        Dictionary with waic, p_waic, lppd and the pointwise contributions
    """
    log_lik = _check_draws(log_lik)
    n_draws = log_lik.shape[0]

    lppd_i = logsumexp(log_lik, axis=0) - np.log(n_draws)
    p_waic_i = np.var(log_lik, axis=0, ddof=1)
    waic_i = -2.0 * (lppd_i - p_waic_i)

    return {
        'waic': float(waic_i.sum()),
        'p_waic': float(p_waic_i.sum()),
        'lppd': float(lppd_i.sum()),
        'waic_i': waic_i,
    }


def compute_cpo(log_lik: np.ndarray) -> np.ndarray:
    """
    Conditional predictive ordinate p(y_i | y_-i) per observation.

    Harmonic mean of the likelihood over posterior draws, evaluated in log
    space.
    """
    log_lik = _check_draws(log_lik)
    n_draws = log_lik.shape[0]
    log_cpo = np.log(n_draws) - logsumexp(-log_lik, axis=0)
    return np.exp(log_cpo)


def negative_log_score(scores: np.ndarray) -> float:
    """
    Mean negative log predictive score.

    Missing, non-finite and non-positive scores are dropped first.

    Returns:
        -mean(log(score)), or NaN if nothing is left
    """
    s = np.asarray(scores, dtype=float)
    s = s[np.isfinite(s) & (s > 0)]
    if s.size == 0:
        return np.nan
    return float(-np.mean(np.log(s)))


def information_criteria(
    log_lik: np.ndarray,
    y: np.ndarray,
    mu: np.ndarray
) -> InformationCriteria:
    """DIC and WAIC bundled for a FitResult."""
    mean_deviance, p_eff, dic = compute_dic(log_lik, y, mu)
    waic = compute_waic(log_lik)
    return InformationCriteria(
        mean_deviance=mean_deviance,
        p_eff=p_eff,
        dic=dic,
        waic=waic['waic'],
        p_waic=waic['p_waic'],
    )

"""
Leave-one-out and leave-group-out cross-validation from posterior draws.

Leave-group-out (Liu & Rue 2023) removes, for each observation i, a group
of observations that are strongly dependent on i a posteriori, and scores
p(y_i | y_-G(i)). Groups are built automatically from the posterior
correlation of the linear predictor: G(i) holds every observation whose
absolute correlation with i lies within i's `num_level_sets` highest
distinct levels. With num_level_sets=1 the group is {i} and the score is
the CPO.

Scores are importance-sampled from the full-data posterior with weights
1 / p(y_G | theta), so no refitting is needed.
"""
import numpy as np
from typing import Dict, List, Sequence
from scipy.special import logsumexp

from src.evaluation.criteria import compute_cpo, negative_log_score
from src.models.results import CrossValidation, FitResult


DEFAULT_GROUP_SIZES = (3, 5, 10)


def build_groups(
    linear_predictor: np.ndarray,
    num_level_sets: int,
    decimals: int = 6
) -> List[np.ndarray]:
    """
    Leave-out groups from the posterior correlation of the linear predictor.

    Args:
        linear_predictor: Posterior draws (n_draws, n_obs)
        num_level_sets: Number of distinct correlation levels kept per group
        decimals: Correlations are rounded to this many decimals before
            levels are compared

    Returns:
        List of index arrays, one per observation; group i always contains i
    """
    if num_level_sets < 1:
        raise ValueError("num_level_sets must be >= 1")

    eta = np.asarray(linear_predictor, dtype=float)
    n_obs = eta.shape[1]

    with np.errstate(invalid='ignore', divide='ignore'):
        corr = np.atleast_2d(np.corrcoef(eta, rowvar=False))
    corr = np.nan_to_num(np.abs(corr), nan=0.0)
    np.fill_diagonal(corr, 1.0)
    corr = np.round(corr, decimals)

    groups = []
    for i in range(n_obs):
        levels = np.unique(corr[i])[::-1][:num_level_sets]
        members = np.flatnonzero(corr[i] >= levels[-1])
        groups.append(members)
    return groups


def group_cv_scores(log_lik: np.ndarray, groups: Sequence[np.ndarray]) -> np.ndarray:
    """
    Leave-group-out predictive density p(y_i | y_-G(i)) per observation.

    Args:
        log_lik: Pointwise log-likelihood draws (n_draws, n_obs)
        groups: One index array per observation (from build_groups)

    Returns:
        Array of predictive densities (n_obs,)
    """
    log_lik = np.asarray(log_lik, dtype=float)
    if len(groups) != log_lik.shape[1]:
        raise ValueError(f"{len(groups)} groups for {log_lik.shape[1]} observations")

    scores = np.empty(log_lik.shape[1])
    for i, group in enumerate(groups):
        ll_group = log_lik[:, group].sum(axis=1)
        log_num = logsumexp(log_lik[:, i] - ll_group)
        log_den = logsumexp(-ll_group)
        scores[i] = np.exp(log_num - log_den)
    return scores


def cross_validate(
    fit: FitResult,
    group_sizes: Sequence[int] = DEFAULT_GROUP_SIZES
) -> CrossValidation:
    """
    LOOCV plus leave-group-out scores for each group size.

    Args:
        fit: Fitted model (needs log_lik and linear_predictor draws)
        group_sizes: Number of correlation level sets per group

    Returns:
        CrossValidation with mean negative log scores
    """
    loo = compute_cpo(fit.log_lik)
    scores: Dict[str, np.ndarray] = {'loo': loo}
    lcv: Dict[int, float] = {}

    for k in group_sizes:
        groups = build_groups(fit.linear_predictor, int(k))
        s = group_cv_scores(fit.log_lik, groups)
        scores[f'lcv_{k}'] = s
        lcv[int(k)] = negative_log_score(s)

    return CrossValidation(
        loocv=negative_log_score(loo),
        lcv=lcv,
        scores=scores,
    )

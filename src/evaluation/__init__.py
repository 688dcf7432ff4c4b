"""Evaluation module - descriptives, information criteria, CV and model comparison."""

from src.evaluation.criteria import (
    compute_dic,
    compute_waic,
    compute_cpo,
    negative_log_score,
    information_criteria
)

from src.evaluation.cv import (
    DEFAULT_GROUP_SIZES,
    build_groups,
    group_cv_scores,
    cross_validate
)

from src.evaluation.descriptive import (
    RATE_PER,
    notification_rates,
    summarize_covariates,
    categorize_observed
)

from src.evaluation.comparison import (
    comparison_columns,
    fit_models,
    attach_cross_validation,
    comparison_table,
    fixed_effects_table,
    hyperparameter_table,
    sensitivity_refit,
    print_comparison
)

__all__ = [
    # Criteria
    'compute_dic',
    'compute_waic',
    'compute_cpo',
    'negative_log_score',
    'information_criteria',
    # Cross-validation
    'DEFAULT_GROUP_SIZES',
    'build_groups',
    'group_cv_scores',
    'cross_validate',
    # Descriptives
    'RATE_PER',
    'notification_rates',
    'summarize_covariates',
    'categorize_observed',
    # Comparison
    'comparison_columns',
    'fit_models',
    'attach_cross_validation',
    'comparison_table',
    'fixed_effects_table',
    'hyperparameter_table',
    'sensitivity_refit',
    'print_comparison'
]

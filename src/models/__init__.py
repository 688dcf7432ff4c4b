"""Models module - specifications, result records and inference engines.

The Stan engine lives in src.models.bayesian and is imported explicitly
(it requires CmdStanPy).
"""

from src.models.base import InferenceEngine
from src.models.results import (
    CrossValidation,
    FitResult,
    InformationCriteria,
    summarize_draws,
    save_fits,
    load_fits
)
from src.models.specs import (
    INTERACTION_TYPES,
    ModelSpec,
    PriorConfig,
    default_model_specs,
    get_spec
)

__all__ = [
    'InferenceEngine',
    'CrossValidation',
    'FitResult',
    'InformationCriteria',
    'summarize_draws',
    'save_fits',
    'load_fits',
    'INTERACTION_TYPES',
    'ModelSpec',
    'PriorConfig',
    'default_model_specs',
    'get_spec'
]

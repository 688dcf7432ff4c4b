"""
Inference Engine Interface

Abstract base class for the approximate/MCMC inference backend. The
analysis only assembles model structure and data; the engine turns a
ModelSpec plus data into a FitResult.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import pandas as pd
from libpysal.weights import W

from src.models.results import FitResult
from src.models.specs import ModelSpec


class InferenceEngine(ABC):
    """Abstract base class for model-fitting backends."""

    def __init__(self, name: str, config: Optional[Dict] = None):
        """
        Initialize engine.

        Args:
            name: Engine identifier
            config: Engine-specific configuration
        """
        self.name = name
        self.config = config or {}

    @abstractmethod
    def fit(
        self,
        spec: ModelSpec,
        data: pd.DataFrame,
        graph: W,
        offset: str = 'expected',
        options: Optional[Dict[str, Any]] = None
    ) -> FitResult:
        """
        Fit one model.

        Args:
            spec: Model specification
            data: Observation records with area_idx / time_idx columns
            graph: Adjacency graph whose node order defines area_idx
            offset: Column with expected counts (log offset)
            options: Per-call overrides of engine settings

        Returns:
            FitResult
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"

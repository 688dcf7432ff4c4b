"""
Model specifications for the BYM space-time comparison.

A ModelSpec is a declarative description of the additive predictor:

    log(mu_it) = log(E_it) + alpha + x_it' beta      (covariates)
                 + u_i + v_i                         (BYM: ICAR + iid)
                 + gamma_t                           (RW2 time trend)
                 + delta_it                          (space-time interaction)

Interaction types follow Knorr-Held (2000):
    I   - iid over area x time
    II  - independent RW2 in time for each area
    III - independent ICAR in space for each year
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple


INTERACTION_TYPES = (None, "I", "II", "III")

# Minimum number of time points for a second-order random walk
MIN_RW2_TIMES = 3


@dataclass(frozen=True)
class PriorConfig:
    """Gamma(shape, rate) priors on precisions and the fixed-effect prior sd."""
    shape: float = 1.0
    rate: float = 0.0005
    fixed_sd: float = 31.62
    # Optional per-precision overrides: name -> (shape, rate)
    overrides: Tuple[Tuple[str, Tuple[float, float]], ...] = ()

    def gamma(self, precision: str) -> Tuple[float, float]:
        """(shape, rate) for one of tau_spatial, tau_iid, tau_time, tau_interaction."""
        for name, params in self.overrides:
            if name == precision:
                return params
        return (self.shape, self.rate)

    @classmethod
    def from_dict(cls, cfg: Optional[Dict[str, Any]]) -> 'PriorConfig':
        """Build from a config section like {'shape': 1, 'rate': 0.0005}."""
        cfg = cfg or {}
        overrides = tuple(
            (name, (float(v['shape']), float(v['rate'])))
            for name, v in (cfg.get('overrides') or {}).items()
        )
        return cls(
            shape=float(cfg.get('shape', 1.0)),
            rate=float(cfg.get('rate', 0.0005)),
            fixed_sd=float(cfg.get('fixed_sd', 31.62)),
            overrides=overrides,
        )


@dataclass(frozen=True)
class ModelSpec:
    """One model in the comparison."""
    name: str
    temporal: bool = False
    interaction: Optional[str] = None
    covariates: Tuple[str, ...] = ()
    priors: PriorConfig = field(default_factory=PriorConfig)

    def __post_init__(self):
        if self.interaction not in INTERACTION_TYPES:
            raise ValueError(f"Unknown interaction type: {self.interaction}")
        if self.interaction is not None and not self.temporal:
            raise ValueError("Space-time interaction requires the temporal term")

    @property
    def needs_rw2(self) -> bool:
        return self.temporal or self.interaction == "II"

    def formula(self, response: str = 'observed', offset: str = 'expected') -> str:
        """Human-readable additive formula."""
        terms = [f"offset(log({offset}))", "1"]
        terms.extend(self.covariates)
        terms.append("f(area, model='bym', graph)")
        if self.temporal:
            terms.append("f(time, model='rw2')")
        if self.interaction == "I":
            terms.append("f(area_time, model='iid')")
        elif self.interaction == "II":
            terms.append("f(area, model='iid', group=time, control.group='rw2')")
        elif self.interaction == "III":
            terms.append("f(time, model='iid', group=area, control.group='besag')")
        return f"{response} ~ " + " + ".join(terms)

    def with_priors(self, priors: PriorConfig, name: Optional[str] = None) -> 'ModelSpec':
        """Same structure under different priors."""
        return replace(self, priors=priors, name=name or self.name)


def default_model_specs(
    covariates: Sequence[str] = ('pop_density', 'poverty'),
    priors: Optional[PriorConfig] = None
) -> List[ModelSpec]:
    """
    The ten models compared in the analysis, simplest first.
    """
    priors = priors or PriorConfig()
    cov = tuple(covariates)

    specs = [
        ModelSpec("bym", priors=priors),
        ModelSpec("bym_cov", covariates=cov, priors=priors),
        ModelSpec("bym_rw2", temporal=True, priors=priors),
        ModelSpec("bym_rw2_cov", temporal=True, covariates=cov, priors=priors),
    ]
    for kind in ("I", "II", "III"):
        specs.append(ModelSpec(f"bym_rw2_type{kind}", temporal=True,
                               interaction=kind, priors=priors))
        specs.append(ModelSpec(f"bym_rw2_type{kind}_cov", temporal=True,
                               interaction=kind, covariates=cov, priors=priors))
    return specs


def get_spec(specs: Sequence[ModelSpec], name: str) -> ModelSpec:
    """Look up a spec by name."""
    for spec in specs:
        if spec.name == name:
            return spec
    raise KeyError(f"No model named '{name}'. Available: {[s.name for s in specs]}")

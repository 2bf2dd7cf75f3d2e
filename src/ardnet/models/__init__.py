"""
PyMC model for overdispersed Aggregated Relational Data.

Respondent i reports y[i, k] acquaintances in subgroup k:

    y[i, k] ~ NegBinomial(mean = exp(alpha_i + beta_k),
                          variance = omega_k * mean)

- alpha_i: log gregariousness, partially pooled across respondents
- beta_k: log prevalence; the first subgroups are pinned by tight priors
  because their size is known, which fixes the scale of everything else
- omega_k >= 1: overdispersion, how unevenly ties to subgroup k are spread

Overdispersion is treated as signal: a subgroup whose members cluster in
a few networks (omega large) tells us something different from one whose
members are spread evenly (omega near 1).
"""

from ardnet.models.hyperpriors import (
    BetaHyperparameters,
    derive_beta_hyperparameters,
    derive_dataset_hyperparameters,
)
from ardnet.models.overdispersed import (
    build_overdispersed_model,
    compile_log_density,
    parameter_transforms,
    sampler_payload,
)

__all__ = [
    "BetaHyperparameters",
    "derive_beta_hyperparameters",
    "derive_dataset_hyperparameters",
    "build_overdispersed_model",
    "compile_log_density",
    "parameter_transforms",
    "sampler_payload",
]

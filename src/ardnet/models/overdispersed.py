import logging
from typing import Any, Callable, Optional

import numpy as np
import pandas as pd
import pymc as pm

from ardnet.data.schemas import validate_observations
from ardnet.exceptions import InputInvariantError
from ardnet.models.hyperpriors import BetaHyperparameters
from ardnet.transforms.dispersion import model_nb_params

logger = logging.getLogger(__name__)


MU_ALPHA_PRIOR_SIGMA = 25.0
SIGMA_ALPHA_PRIOR_SIGMA = 5.0


def sampler_payload(
    y: pd.DataFrame,
    hyper: BetaHyperparameters,
) -> dict[str, Any]:
    """
    Data handed to the sampler alongside the model.

    Returns
    -------
    dict
        ``I``, ``K``, ``mu_beta``, ``sigma_beta`` and the ``I x K`` count
        matrix ``y``.

    Raises
    ------
    InputInvariantError
        On empty or negative counts, or hyperparameters that do not line
        up with the subgroup columns.
    """
    validate_observations(y)

    n_individuals, n_subgroups = y.shape
    if hyper.n_subgroups != n_subgroups:
        raise InputInvariantError(
            f"hyperparameters cover {hyper.n_subgroups} subgroups, "
            f"observations have {n_subgroups}"
        )
    if len(hyper.sigma) != len(hyper.mu):
        raise InputInvariantError(
            f"mu_beta has {len(hyper.mu)} entries but sigma_beta has {len(hyper.sigma)}"
        )
    if not hyper.mu.index.equals(y.columns):
        raise InputInvariantError("hyperparameter labels must match subgroup columns")
    if (hyper.sigma < 0).any():
        raise InputInvariantError("sigma_beta must be non-negative")

    return {
        "I": int(n_individuals),
        "K": int(n_subgroups),
        "mu_beta": hyper.mu.to_numpy(dtype=np.float64),
        "sigma_beta": hyper.sigma.to_numpy(dtype=np.float64),
        "y": y.to_numpy(dtype=np.int64),
    }


def build_overdispersed_model(
    y: pd.DataFrame,
    hyper: BetaHyperparameters,
    centered: bool = True,
) -> pm.Model:
    """
    Hierarchical negative-binomial model for ARD tie counts.

    ``y[i, k]`` has mean ``exp(alpha_i + beta_k)`` and variance
    ``omega_k`` times that mean. Respondent effects share a population
    distribution; subgroup effects use the calibrated priors in ``hyper``.

    Parameters
    ----------
    y : pd.DataFrame
        Tie counts, respondents in rows and subgroups in columns.
    hyper : BetaHyperparameters
        Prior mean/scale for each subgroup's log prevalence.
    centered : bool
        Sample ``alpha`` directly (True) or through a standard-normal
        offset (False).

    Returns
    -------
    pm.Model
        PyMC model ready for sampling.

    Examples
    --------
    >>> hyper = derive_dataset_hyperparameters(dataset, n_known=12)
    >>> model = build_overdispersed_model(dataset.y, hyper)
    >>> with model:
    ...     trace = pm.sample(250, tune=250, chains=2)
    """
    payload = sampler_payload(y, hyper)

    coords = {
        "individual": y.index.tolist(),
        "subgroup": y.columns.tolist(),
    }

    with pm.Model(coords=coords) as model:
        mu_beta = pm.Data("mu_beta", payload["mu_beta"], dims="subgroup")
        sigma_beta = pm.Data("sigma_beta", payload["sigma_beta"], dims="subgroup")

        mu_alpha = pm.Normal("mu_alpha", mu=0, sigma=MU_ALPHA_PRIOR_SIGMA)
        sigma_alpha = pm.HalfNormal("sigma_alpha", sigma=SIGMA_ALPHA_PRIOR_SIGMA)

        if centered:
            alpha = pm.Normal(
                "alpha", mu=mu_alpha, sigma=sigma_alpha, dims="individual"
            )
        else:
            alpha_offset = pm.Normal("alpha_offset", mu=0, sigma=1, dims="individual")
            alpha = pm.Deterministic(
                "alpha", mu_alpha + sigma_alpha * alpha_offset, dims="individual"
            )

        beta = pm.Normal("beta", mu=mu_beta, sigma=sigma_beta, dims="subgroup")

        # Uniform(0, 1) on the inverse keeps omega >= 1
        inv_omega = pm.Uniform("inv_omega", lower=0, upper=1, dims="subgroup")

        mean = pm.math.exp(alpha[:, None] + beta[None, :])
        xi, _ = model_nb_params(mean, inv_omega[None, :])

        pm.NegativeBinomial(
            "y_obs",
            mu=mean,
            alpha=xi,
            observed=payload["y"],
            dims=("individual", "subgroup"),
        )

    logger.info(
        "Built overdispersed ARD model: I=%d, K=%d, %d known subgroups",
        payload["I"],
        payload["K"],
        hyper.n_known,
    )
    return model


def compile_log_density(
    model: pm.Model,
) -> tuple[Callable[[dict[str, np.ndarray]], float], dict[str, np.ndarray]]:
    """
    Joint log density on the unconstrained space, plus a starting point.

    Lets samplers other than PyMC's drive the model: the returned function
    takes a point keyed by value-variable name (``sigma_alpha_log__``,
    ``inv_omega_interval__``, ...).
    """
    logp = model.compile_logp()
    return logp, model.initial_point()


def parameter_transforms(model: pm.Model) -> dict[str, Optional[str]]:
    """Constraint transform applied to each free parameter (None if unconstrained)."""
    transforms = {}
    for rv in model.free_RVs:
        transform = model.rvs_to_transforms.get(rv)
        transforms[rv.name] = None if transform is None else type(transform).__name__
    return transforms

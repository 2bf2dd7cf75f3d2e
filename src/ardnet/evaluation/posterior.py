import logging
from dataclasses import dataclass
from typing import Optional

import arviz as az
import numpy as np
import pandas as pd
import pymc as pm
import xarray as xr
from pydantic import Field, model_validator
from pymc.exceptions import SamplingError

from ardnet.data.schemas import RecoveryTable, ValidatedSettings
from ardnet.data.synthetic import ARDDataset
from ardnet.evaluation.diagnostics import (
    format_diagnostics_report,
    run_mcmc_diagnostics,
)
from ardnet.exceptions import (
    ConvergenceError,
    EmptyPosteriorError,
    InputInvariantError,
    SamplerError,
)
from ardnet.transforms.dispersion import omega_from_inverse

logger = logging.getLogger(__name__)


INTERVAL_QUANTILES = (0.025, 0.975)
SAMPLE_DIMS = ["chain", "draw"]


class SamplerSettings(ValidatedSettings):
    """
    How the MCMC engine is run.

    ``iter`` counts every draw per chain, warm-up included, so each chain
    keeps ``iter - warmup`` draws for the summaries.
    """

    chains: int = Field(default=4, ge=1, description="Independent chains")
    warmup: int = Field(default=1000, ge=0, description="Warm-up draws per chain")
    iter: int = Field(default=2000, ge=1, description="Total draws per chain")
    target_accept: float = Field(default=0.9, gt=0, lt=1)
    cores: Optional[int] = Field(default=None, ge=1)
    random_seed: Optional[int] = 42
    progressbar: bool = False
    strict: bool = Field(
        default=False, description="Raise ConvergenceError on bad diagnostics"
    )

    @model_validator(mode="after")
    def check_iter_exceeds_warmup(self) -> "SamplerSettings":
        if self.warmup >= self.iter:
            raise ValueError(
                f"iter ({self.iter}) must exceed warmup ({self.warmup}); "
                "no draws would be retained"
            )
        return self

    @property
    def draws(self) -> int:
        return self.iter - self.warmup


@dataclass
class RecoveryTables:
    """Posterior summaries against the simulated truth."""

    individuals: pd.DataFrame
    subgroups: pd.DataFrame
    dispersion: pd.DataFrame

    def coverage(self, column: str = "true_value") -> dict[str, float]:
        return {
            "individuals": interval_coverage(self.individuals, column),
            "subgroups": interval_coverage(self.subgroups, column),
            "dispersion": interval_coverage(self.dispersion, column),
        }


def fit_posterior(
    model: pm.Model,
    settings: Optional[SamplerSettings] = None,
) -> az.InferenceData:
    """
    Run NUTS on ``model`` and return every draw.

    Warm-up draws are kept in the ``warmup_posterior`` group for
    convergence checks; summaries only use ``posterior``.

    Raises
    ------
    SamplerError
        If PyMC fails (rejected starting point, numerical failure).
    ConvergenceError
        If ``settings.strict`` and the diagnostics verdict is "bad".
    EmptyPosteriorError
        If no retained draws come back.
    """
    if settings is None:
        settings = SamplerSettings()

    logger.info(
        "Sampling %d chain(s): %d warm-up + %d retained draws each",
        settings.chains,
        settings.warmup,
        settings.draws,
    )

    try:
        with model:
            trace = pm.sample(
                draws=settings.draws,
                tune=settings.warmup,
                chains=settings.chains,
                cores=settings.cores,
                target_accept=settings.target_accept,
                random_seed=settings.random_seed,
                discard_tuned_samples=False,
                return_inferencedata=True,
                progressbar=settings.progressbar,
            )
    except (SamplingError, FloatingPointError, RuntimeError) as e:
        raise SamplerError(f"sampler failed: {e}") from e

    ensure_draws(trace)

    report = run_mcmc_diagnostics(trace)
    logger.info(
        "Diagnostics: %s (%d divergences)", report.overall_status, report.divergences
    )
    if report.overall_status == "bad":
        if settings.strict:
            raise ConvergenceError(format_diagnostics_report(report))
        logger.warning(
            "Chains did not converge cleanly: %s", report.problematic_params[:5]
        )

    return trace


def ensure_draws(trace: az.InferenceData) -> None:
    if "posterior" not in trace.groups():
        raise EmptyPosteriorError("trace has no posterior group")

    sizes = trace.posterior.sizes
    if sizes.get("chain", 0) == 0 or sizes.get("draw", 0) == 0:
        raise EmptyPosteriorError(
            f"no retained draws (chains={sizes.get('chain', 0)}, "
            f"draws={sizes.get('draw', 0)})"
        )


def summarize_draws(draws: xr.DataArray) -> pd.DataFrame:
    """
    Mean and central 95% interval of each index across chains and draws.

    Quantiles use linear interpolation between order statistics.

    Returns
    -------
    pd.DataFrame
        Columns ``mean``, ``lower``, ``upper``; one row per index of the
        non-sample dimension (a single row for scalar parameters).
    """
    if any(draws.sizes.get(dim, 0) == 0 for dim in SAMPLE_DIMS):
        raise EmptyPosteriorError(f"no draws to summarize for '{draws.name}'")

    other_dims = [d for d in draws.dims if d not in SAMPLE_DIMS]
    if len(other_dims) > 1:
        raise ValueError(f"expected at most one parameter dimension, got {other_dims}")

    mean = draws.mean(dim=SAMPLE_DIMS)
    bounds = draws.quantile(list(INTERVAL_QUANTILES), dim=SAMPLE_DIMS, method="linear")

    if other_dims:
        dim = other_dims[0]
        index = pd.Index(draws.coords[dim].values, name=dim)
    else:
        index = pd.Index([draws.name], name="parameter")

    return pd.DataFrame(
        {
            "mean": np.atleast_1d(mean.values),
            "lower": np.atleast_1d(bounds.sel(quantile=INTERVAL_QUANTILES[0]).values),
            "upper": np.atleast_1d(bounds.sel(quantile=INTERVAL_QUANTILES[1]).values),
        },
        index=index,
    )


def recovery_table(draws: xr.DataArray, truth: pd.Series) -> pd.DataFrame:
    """Join a posterior summary with the simulated values it should recover."""
    summary = summarize_draws(draws)

    true_value = truth.reindex(summary.index)
    if true_value.isna().any():
        missing = summary.index[true_value.isna()].tolist()
        raise InputInvariantError(f"no simulated value for {missing[:5]}")

    table = pd.concat([true_value.rename("true_value"), summary], axis=1)
    return RecoveryTable.validate(table)


def _posterior_var(trace: az.InferenceData, name: str) -> xr.DataArray:
    ensure_draws(trace)
    if name not in trace.posterior:
        raise EmptyPosteriorError(f"trace has no draws for '{name}'")
    return trace.posterior[name]


def summarize_posterior(
    trace: az.InferenceData,
    dataset: ARDDataset,
) -> RecoveryTables:
    """
    Individual-, subgroup- and dispersion-level recovery tables.

    ``omega`` is summarized from the reciprocal of each ``inv_omega`` draw.
    """
    alpha = _posterior_var(trace, "alpha")
    beta = _posterior_var(trace, "beta")
    omega = omega_from_inverse(_posterior_var(trace, "inv_omega")).rename("omega")

    return RecoveryTables(
        individuals=recovery_table(alpha, dataset.truth.alpha),
        subgroups=recovery_table(beta, dataset.truth.beta),
        dispersion=recovery_table(omega, dataset.truth.omega),
    )


def summarize_network_size(
    trace: az.InferenceData,
    dataset: ARDDataset,
) -> pd.DataFrame:
    """Posterior of each respondent's network size, ``exp(alpha_i)``."""
    degree = np.exp(_posterior_var(trace, "alpha")).rename("network_size")
    return recovery_table(degree, np.exp(dataset.truth.alpha))


def interval_coverage(
    table: pd.DataFrame,
    column: str = "true_value",
    rows: Optional[pd.Index] = None,
) -> float:
    """Share of rows whose ``column`` lies within ``[lower, upper]``."""
    if rows is not None:
        table = table.loc[rows]
    if len(table) == 0:
        return float("nan")

    inside = (table[column] >= table["lower"]) & (table[column] <= table["upper"])
    return float(inside.mean())


def overdispersion_check(
    trace: az.InferenceData,
    model: pm.Model,
    y: pd.DataFrame,
    random_seed: Optional[int] = 42,
) -> pd.DataFrame:
    """
    Posterior predictive check of each subgroup's variance/mean ratio.

    Replicates the count matrix from the posterior and compares the
    observed ratio with the central 95% interval of replicated ratios.
    """
    ensure_draws(trace)

    with model:
        ppc = pm.sample_posterior_predictive(
            trace,
            var_names=["y_obs"],
            random_seed=random_seed,
            progressbar=False,
        )

    replicated = ppc.posterior_predictive["y_obs"].astype(np.float64)
    rep_mean = replicated.mean(dim="individual")
    rep_var = replicated.var(dim="individual", ddof=1)
    rep_ratio = rep_var / rep_mean.where(rep_mean > 0)

    bounds = rep_ratio.quantile(list(INTERVAL_QUANTILES), dim=SAMPLE_DIMS)
    observed_mean = y.mean(axis=0)
    observed = y.var(axis=0, ddof=1) / observed_mean.where(observed_mean > 0)

    result = pd.DataFrame(
        {
            "observed_ratio": observed.to_numpy(),
            "replicated_mean": rep_ratio.mean(dim=SAMPLE_DIMS).values,
            "lower": bounds.sel(quantile=INTERVAL_QUANTILES[0]).values,
            "upper": bounds.sel(quantile=INTERVAL_QUANTILES[1]).values,
        },
        index=pd.Index(y.columns, name="subgroup"),
    )
    result["covered"] = (result["observed_ratio"] >= result["lower"]) & (
        result["observed_ratio"] <= result["upper"]
    )
    return result


def format_recovery_report(
    tables: RecoveryTables,
    decimals: int = 3,
    max_rows: int = 10,
) -> str:
    coverage = tables.coverage()

    sections = [
        ("INDIVIDUALS: log gregariousness (alpha)", tables.individuals, "individuals"),
        ("SUBGROUPS: log prevalence (beta)", tables.subgroups, "subgroups"),
        ("DISPERSION: overdispersion (omega)", tables.dispersion, "dispersion"),
    ]

    lines = [
        "=" * 70,
        "ARD RECOVERY REPORT",
        "=" * 70,
        "",
    ]

    for title, table, key in sections:
        lines.extend(
            [
                title,
                "-" * 50,
                table.head(max_rows).round(decimals).to_string(),
            ]
        )
        if len(table) > max_rows:
            lines.append(f"... ({len(table) - max_rows} more rows)")
        lines.extend(
            [
                f"95% interval coverage of truth: {coverage[key]:.1%} "
                f"({len(table)} rows)",
                "",
            ]
        )

    lines.append("=" * 70)
    return "\n".join(lines)

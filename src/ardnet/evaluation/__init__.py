"""
Posterior fitting and evaluation for the overdispersed ARD model.

This module provides tools for:
- Running the sampler with validated settings
- MCMC diagnostics per parameter family (R-hat, ESS, divergences, warm-up drift)
- Recovery tables against simulated truth, with interval coverage
- Posterior predictive check of overdispersion
"""

from ardnet.evaluation.diagnostics import (
    DiagnosticsReport,
    convergence_table,
    format_diagnostics_report,
    run_mcmc_diagnostics,
    summarize_families,
    warmup_drift,
)
from ardnet.evaluation.posterior import (
    RecoveryTables,
    SamplerSettings,
    ensure_draws,
    fit_posterior,
    format_recovery_report,
    interval_coverage,
    overdispersion_check,
    recovery_table,
    summarize_draws,
    summarize_network_size,
    summarize_posterior,
)
from ardnet.evaluation.plots import plot_recovery, plot_recovery_tables

__all__ = [
    # Diagnostics
    "DiagnosticsReport",
    "convergence_table",
    "format_diagnostics_report",
    "run_mcmc_diagnostics",
    "summarize_families",
    "warmup_drift",
    # Posterior
    "RecoveryTables",
    "SamplerSettings",
    "ensure_draws",
    "fit_posterior",
    "format_recovery_report",
    "interval_coverage",
    "overdispersion_check",
    "recovery_table",
    "summarize_draws",
    "summarize_network_size",
    "summarize_posterior",
    # Plots
    "plot_recovery",
    "plot_recovery_tables",
]

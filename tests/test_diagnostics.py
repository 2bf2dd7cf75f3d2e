"""
Tests for MCMC diagnostics on synthetic traces.

Tests cover:
- Per-parameter R-hat/ESS table and overall verdict
- Per-family worst R-hat and lowest ESS
- Warm-up drift
- Text report
"""

import arviz as az
import numpy as np
import pandas as pd
import pytest

from ardnet.evaluation.diagnostics import (
    MODEL_PARAMETERS,
    convergence_table,
    format_diagnostics_report,
    run_mcmc_diagnostics,
    summarize_families,
    warmup_drift,
)


def iid_trace(
    rng,
    chains=4,
    draws=1000,
    n_subgroups=3,
    shift_first_chain=0.0,
    shift_inv_omega=0.0,
):
    mu_alpha = rng.normal(5.0, 0.1, size=(chains, draws))
    mu_alpha[0] += shift_first_chain
    inv_omega = rng.uniform(0.4, 0.6, size=(chains, draws, n_subgroups))
    inv_omega[0, :, 1] += shift_inv_omega
    return az.from_dict(
        posterior={
            "mu_alpha": mu_alpha,
            "beta": rng.normal(-5.0, 0.5, size=(chains, draws, n_subgroups)),
            "inv_omega": inv_omega,
        },
        sample_stats={"diverging": np.zeros((chains, draws), dtype=bool)},
        coords={"subgroup": [f"k{j:02d}" for j in range(1, n_subgroups + 1)]},
        dims={"beta": ["subgroup"], "inv_omega": ["subgroup"]},
    )


class TestRunMcmcDiagnostics:
    def test_well_mixed_chains_pass(self, rng):
        report = run_mcmc_diagnostics(iid_trace(rng))

        assert report.overall_status == "good"
        assert report.divergences == 0
        assert report.problematic_params == []

    def test_one_parameter_row_per_index(self, rng):
        report = run_mcmc_diagnostics(iid_trace(rng, n_subgroups=3))

        assert sorted(report.rhat_summary["parameter"]) == [
            "beta[k01]",
            "beta[k02]",
            "beta[k03]",
            "inv_omega[k01]",
            "inv_omega[k02]",
            "inv_omega[k03]",
            "mu_alpha",
        ]
        assert list(report.ess_summary.columns) == ["parameter", "ess_bulk", "ess_tail"]

    def test_stuck_chain_is_bad(self, rng):
        report = run_mcmc_diagnostics(iid_trace(rng, shift_first_chain=5.0))

        assert report.overall_status == "bad"
        assert any(p.startswith("mu_alpha") for p in report.problematic_params)

    def test_divergences_are_bad(self, rng):
        trace = iid_trace(rng)
        trace.sample_stats["diverging"][0, :3] = True

        report = run_mcmc_diagnostics(trace)
        assert report.divergences == 3
        assert report.overall_status == "bad"

    def test_short_chains_warn(self, rng):
        report = run_mcmc_diagnostics(iid_trace(rng, chains=2, draws=50))

        assert report.overall_status in ("warning", "bad")
        assert report.problematic_params

    def test_absent_parameters_are_skipped(self, rng):
        report = run_mcmc_diagnostics(iid_trace(rng), var_names=MODEL_PARAMETERS)
        assert set(report.rhat_summary["parameter"].str.split("[").str[0]) == {
            "mu_alpha",
            "beta",
            "inv_omega",
        }

    def test_problematic_listed_worst_first(self, rng):
        report = run_mcmc_diagnostics(
            iid_trace(rng, shift_first_chain=0.15, shift_inv_omega=0.5)
        )

        assert report.problematic_params[0].startswith("inv_omega[k02]")


class TestFamilySummary:
    def test_one_row_per_family(self, rng):
        report = run_mcmc_diagnostics(iid_trace(rng))

        assert report.family_summary.index.tolist() == ["mu_alpha", "beta", "inv_omega"]
        assert report.family("beta")["n_parameters"] == 3
        assert report.family("mu_alpha")["worst_parameter"] == "mu_alpha"
        assert (report.family_summary["status"] == "good").all()

    def test_slow_overdispersion_shows_under_its_family(self, rng):
        report = run_mcmc_diagnostics(iid_trace(rng, shift_inv_omega=0.5))
        inv_omega = report.family("inv_omega")

        assert inv_omega["status"] == "bad"
        assert inv_omega["worst_parameter"] == "inv_omega[k02]"
        assert inv_omega["max_rhat"] > 1.1
        assert report.family("beta")["status"] == "good"
        assert report.family("mu_alpha")["max_rhat"] < 1.01
        assert report.overall_status == "bad"

    def test_min_ess_per_family(self, rng):
        trace = iid_trace(rng)
        table = convergence_table(trace)
        families = summarize_families(table)

        beta_rows = table[table["family"] == "beta"]
        assert families.loc["beta", "min_ess_bulk"] == pytest.approx(
            beta_rows["ess_bulk"].min()
        )
        assert families.loc["beta", "min_ess_tail"] == pytest.approx(
            beta_rows["ess_tail"].min()
        )

    def test_low_ess_family_warns(self, rng):
        table = convergence_table(iid_trace(rng))
        families = summarize_families(table, ess_threshold=1e9)

        assert (families["status"] == "warning").all()

    def test_nan_rhat_has_no_worst_parameter(self):
        table = pd.DataFrame(
            {
                "parameter": ["sigma_alpha", "beta[k01]", "beta[k02]"],
                "family": ["sigma_alpha", "beta", "beta"],
                "rhat": [np.nan, np.nan, 1.2],
                "ess_bulk": [np.nan, 800.0, 50.0],
                "ess_tail": [np.nan, 900.0, 60.0],
            }
        )
        families = summarize_families(table)

        assert pd.isna(families.loc["sigma_alpha", "worst_parameter"])
        assert families.loc["beta", "worst_parameter"] == "beta[k02]"
        assert families.loc["beta", "status"] == "bad"

    def test_empty_table(self):
        trace = az.from_dict(posterior={"x": np.zeros((2, 10))})
        families = summarize_families(convergence_table(trace))

        assert families.empty


class TestWarmupDrift:
    def test_no_warmup_group_is_empty(self, rng):
        drift = warmup_drift(iid_trace(rng))
        assert drift.empty
        assert list(drift.columns) == ["parameter", "max_abs_z", "mean_abs_z"]

    def test_detects_moving_warmup(self, rng):
        chains, draws = 2, 200
        trace = az.from_dict(
            posterior={
                "mu_alpha": rng.normal(0.0, 1.0, size=(chains, draws)),
                "beta": rng.normal(0.0, 1.0, size=(chains, draws, 2)),
            },
            warmup_posterior={
                "mu_alpha": rng.normal(8.0, 1.0, size=(chains, draws)),
                "beta": rng.normal(0.0, 1.0, size=(chains, draws, 2)),
            },
            dims={"beta": ["subgroup"]},
            save_warmup=True,
        )
        drift = warmup_drift(trace).set_index("parameter")

        assert drift.loc["mu_alpha", "max_abs_z"] > 5
        assert drift.loc["beta", "max_abs_z"] < 1
        assert drift.index[0] == "mu_alpha"


class TestFormatDiagnosticsReport:
    def test_contains_status_and_counts(self, rng):
        report = run_mcmc_diagnostics(iid_trace(rng, shift_first_chain=5.0))
        text = format_diagnostics_report(report)

        assert "MCMC DIAGNOSTICS REPORT" in text
        assert "Overall Status: BAD" in text
        assert "Divergent Transitions: 0" in text
        assert "mu_alpha" in text

    def test_lists_each_family(self, rng):
        report = run_mcmc_diagnostics(iid_trace(rng, shift_inv_omega=0.5))
        text = format_diagnostics_report(report)

        assert "By parameter family:" in text
        family_lines = [line for line in text.splitlines() if "inv_omega[k02]" in line]
        assert any(line.strip().startswith("inv_omega") for line in family_lines)
        assert "Problematic parameters" in text

    def test_truncates_long_problem_list(self, rng):
        trace = iid_trace(rng, chains=2, draws=20, n_subgroups=15)
        report = run_mcmc_diagnostics(trace)
        text = format_diagnostics_report(report, max_problems=2)

        assert text.count("  • ") == 2
        assert "more)" in text

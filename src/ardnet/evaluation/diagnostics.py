"""
Convergence checks for fitted ARD models.

Parameters are grouped into families (``mu_alpha``, ``sigma_alpha``,
``alpha``, ``beta``, ``inv_omega``). Besides the per-parameter table,
each family reports its own worst R-hat and lowest ESS, so a slow
``inv_omega`` chain shows up under its own name.
"""

from dataclasses import dataclass
from typing import Literal, Optional

import arviz as az
import numpy as np
import pandas as pd
import xarray as xr


MODEL_PARAMETERS = ["mu_alpha", "sigma_alpha", "alpha", "beta", "inv_omega"]

RHAT_THRESHOLD = 1.01
ESS_THRESHOLD = 400
# NUTS hitting max tree depth this many times across all chains is worth a warning
TREEDEPTH_WARNING_COUNT = 10

Status = Literal["good", "warning", "bad"]

TABLE_COLUMNS = ["parameter", "family", "rhat", "ess_bulk", "ess_tail"]
FAMILY_COLUMNS = [
    "n_parameters",
    "max_rhat",
    "worst_parameter",
    "min_ess_bulk",
    "min_ess_tail",
    "status",
]


@dataclass
class DiagnosticsReport:
    """
    Per-parameter convergence table plus per-family and overall verdicts.

    ``parameters`` has one row per scalar parameter (``beta[k03]``) with
    its family, R-hat and bulk/tail ESS; ``family_summary`` is indexed by
    family.
    """

    parameters: pd.DataFrame
    family_summary: pd.DataFrame
    divergences: int
    max_treedepth_warnings: int
    problematic_params: list[str]
    overall_status: Status
    rhat_threshold: float = RHAT_THRESHOLD
    ess_threshold: float = ESS_THRESHOLD

    @property
    def rhat_summary(self) -> pd.DataFrame:
        return self.parameters[["parameter", "rhat"]]

    @property
    def ess_summary(self) -> pd.DataFrame:
        return self.parameters[["parameter", "ess_bulk", "ess_tail"]]

    def family(self, name: str) -> pd.Series:
        return self.family_summary.loc[name]


def _present(trace: az.InferenceData, var_names: Optional[list[str]]) -> list[str]:
    names = var_names if var_names is not None else MODEL_PARAMETERS
    return [v for v in names if v in trace.posterior]


def _label(index_value) -> str:
    if isinstance(index_value, tuple):
        return "_".join(str(v) for v in index_value)
    return str(index_value)


def _flatten(ds: xr.Dataset, value_name: str) -> pd.DataFrame:
    """One row per scalar parameter: ``beta`` becomes ``beta[k01]``, ``beta[k02]``..."""
    frames = []
    for family, data in ds.data_vars.items():
        if data.ndim == 0:
            labels = [family]
            values = [float(data.values)]
        else:
            series = data.to_series()
            labels = [f"{family}[{_label(idx)}]" for idx in series.index]
            values = series.to_numpy(dtype=np.float64)
        frames.append(
            pd.DataFrame({"parameter": labels, "family": family, value_name: values})
        )

    if not frames:
        return pd.DataFrame(columns=["parameter", "family", value_name])
    return pd.concat(frames, ignore_index=True)


def convergence_table(
    trace: az.InferenceData,
    var_names: Optional[list[str]] = None,
) -> pd.DataFrame:
    """R-hat and bulk/tail ESS for every scalar parameter in ``var_names``."""
    names = _present(trace, var_names)
    if not names:
        return pd.DataFrame(columns=TABLE_COLUMNS)

    keys = ["parameter", "family"]
    bulk = az.ess(trace, var_names=names, method="bulk")
    tail = az.ess(trace, var_names=names, method="tail")
    table = (
        _flatten(az.rhat(trace, var_names=names), "rhat")
        .merge(_flatten(bulk, "ess_bulk"), on=keys)
        .merge(_flatten(tail, "ess_tail"), on=keys)
    )
    return table[TABLE_COLUMNS]


def _status(
    max_rhat: float, min_ess: float, rhat_threshold: float, ess_threshold: float
) -> Status:
    if max_rhat > rhat_threshold:
        return "bad"
    if min_ess < ess_threshold:
        return "warning"
    return "good"


def summarize_families(
    table: pd.DataFrame,
    rhat_threshold: float = RHAT_THRESHOLD,
    ess_threshold: float = ESS_THRESHOLD,
) -> pd.DataFrame:
    """
    Worst R-hat and lowest ESS within each parameter family.

    NaN R-hat (constant draws) is ignored when picking the worst
    parameter; a family whose R-hat is NaN everywhere has no worst one.
    """
    records = []
    for family, rows in table.groupby("family", sort=False):
        rhat = rows["rhat"].astype(np.float64)
        worst = (
            rows["parameter"].iloc[int(np.nanargmax(rhat.to_numpy()))]
            if rhat.notna().any()
            else None
        )
        max_rhat = float(rhat.max())
        min_bulk = float(rows["ess_bulk"].min())
        min_tail = float(rows["ess_tail"].min())
        records.append(
            {
                "family": family,
                "n_parameters": len(rows),
                "max_rhat": max_rhat,
                "worst_parameter": worst,
                "min_ess_bulk": min_bulk,
                "min_ess_tail": min_tail,
                "status": _status(
                    max_rhat, min(min_bulk, min_tail), rhat_threshold, ess_threshold
                ),
            }
        )

    if not records:
        return pd.DataFrame(columns=FAMILY_COLUMNS, index=pd.Index([], name="family"))
    return pd.DataFrame.from_records(records, index="family")[FAMILY_COLUMNS]


def _sampler_warnings(trace: az.InferenceData) -> tuple[int, int]:
    if "sample_stats" not in trace.groups():
        return 0, 0

    stats = trace.sample_stats
    divergences = int(stats["diverging"].sum()) if "diverging" in stats else 0
    treedepth = (
        int(stats["reached_max_treedepth"].sum())
        if "reached_max_treedepth" in stats
        else 0
    )
    return divergences, treedepth


def run_mcmc_diagnostics(
    trace: az.InferenceData,
    var_names: Optional[list[str]] = None,
    rhat_threshold: float = RHAT_THRESHOLD,
    ess_threshold: int = ESS_THRESHOLD,
) -> DiagnosticsReport:
    """
    Convergence verdict for a fitted trace.

    The run is "bad" on any divergence or any R-hat above
    ``rhat_threshold``; "warning" on frequent max-tree-depth hits or any
    bulk/tail ESS below ``ess_threshold``. Problematic parameters are
    listed worst R-hat first.
    """
    table = convergence_table(trace, var_names)
    families = summarize_families(table, rhat_threshold, ess_threshold)
    divergences, treedepth = _sampler_warnings(trace)

    problematic = []
    for row in table.sort_values("rhat", ascending=False).itertuples(index=False):
        if row.rhat > rhat_threshold:
            problematic.append(f"{row.parameter} (R-hat={row.rhat:.3f})")
        elif row.ess_bulk < ess_threshold or row.ess_tail < ess_threshold:
            problematic.append(
                f"{row.parameter} "
                f"(ESS_bulk={row.ess_bulk:.0f}, ESS_tail={row.ess_tail:.0f})"
            )

    family_status = set(families["status"])
    if divergences > 0 or "bad" in family_status:
        status = "bad"
    elif treedepth > TREEDEPTH_WARNING_COUNT or "warning" in family_status:
        status = "warning"
    else:
        status = "good"

    return DiagnosticsReport(
        parameters=table,
        family_summary=families,
        divergences=divergences,
        max_treedepth_warnings=treedepth,
        problematic_params=problematic,
        overall_status=status,
        rhat_threshold=rhat_threshold,
        ess_threshold=ess_threshold,
    )


def warmup_drift(
    trace: az.InferenceData,
    var_names: Optional[list[str]] = None,
) -> pd.DataFrame:
    """
    How far the late warm-up draws sit from the retained draws.

    Compares the mean of the second half of warm-up with the retained
    posterior mean, in units of posterior standard deviation. Large values
    mean the chains were still moving when warm-up ended.
    """
    columns = ["parameter", "max_abs_z", "mean_abs_z"]
    if "warmup_posterior" not in trace.groups():
        return pd.DataFrame(columns=columns)

    warmup = trace.warmup_posterior
    n_warmup = warmup.sizes.get("draw", 0)
    if n_warmup < 2:
        return pd.DataFrame(columns=columns)

    late = warmup.isel(draw=slice(n_warmup // 2, None))

    records = []
    for var in _present(trace, var_names):
        if var not in late:
            continue
        retained = trace.posterior[var]
        sd = retained.std(dim=["chain", "draw"]).values
        late_mean = late[var].mean(dim=["chain", "draw"])
        retained_mean = retained.mean(dim=["chain", "draw"])
        diff = (late_mean - retained_mean).values

        z = np.atleast_1d(np.abs(diff) / np.where(sd > 0, sd, np.nan))
        finite = z[np.isfinite(z)]
        records.append(
            {
                "parameter": var,
                "max_abs_z": float(finite.max()) if finite.size else np.nan,
                "mean_abs_z": float(finite.mean()) if finite.size else np.nan,
            }
        )

    return pd.DataFrame(records, columns=columns).sort_values(
        "max_abs_z", ascending=False
    )


def format_diagnostics_report(report: DiagnosticsReport, max_problems: int = 10) -> str:
    status_emoji = {"good": "✅", "warning": "⚠️", "bad": "❌"}
    status_meaning = {
        "good": "All checks passed; estimates are reliable",
        "warning": "Minor issues; interpret with caution",
        "bad": "Major issues; DO NOT USE these estimates",
    }

    lines = [
        "=" * 60,
        f"MCMC DIAGNOSTICS REPORT  {status_emoji[report.overall_status]}",
        "=" * 60,
        "",
        f"Overall Status: {report.overall_status.upper()}",
        f"  → {status_meaning[report.overall_status]}",
        "",
        f"Divergent Transitions: {report.divergences}",
        f"Max Treedepth Warnings: {report.max_treedepth_warnings}",
        f"Thresholds: R-hat <= {report.rhat_threshold}, "
        f"ESS >= {report.ess_threshold:.0f}",
        "",
        "By parameter family:",
    ]

    if report.family_summary.empty:
        lines.append("  (no parameters checked)")
    else:
        table = report.family_summary.copy()
        table["max_rhat"] = table["max_rhat"].map("{:.4f}".format)
        for col in ("min_ess_bulk", "min_ess_tail"):
            table[col] = table[col].map("{:.0f}".format)
        lines.extend("  " + line for line in table.to_string().splitlines())

    if report.problematic_params:
        lines.append("")
        lines.append(f"Problematic parameters ({len(report.problematic_params)}):")
        for p in report.problematic_params[:max_problems]:
            lines.append(f"  • {p}")
        if len(report.problematic_params) > max_problems:
            hidden = len(report.problematic_params) - max_problems
            lines.append(f"  ... ({hidden} more)")

    lines.append("=" * 60)
    return "\n".join(lines)

from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    import matplotlib.figure

    from ardnet.evaluation.posterior import RecoveryTables


def plot_recovery(
    table: pd.DataFrame,
    title: str = "Posterior Recovery",
    xlabel: str = "True value",
    ylabel: str = "Posterior mean (95% interval)",
    figsize: tuple[int, int] = (7, 6),
    ax=None,
) -> "matplotlib.figure.Figure":
    """
    Posterior means with interval bars against the simulated truth.

    Points whose interval misses the truth are drawn in red.
    """
    import matplotlib.pyplot as plt

    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    truth = table["true_value"].to_numpy()
    mean = table["mean"].to_numpy()
    yerr = np.vstack([mean - table["lower"].to_numpy(), table["upper"].to_numpy() - mean])

    covered = (truth >= table["lower"].to_numpy()) & (truth <= table["upper"].to_numpy())
    colors = np.where(covered, "tab:blue", "tab:red")

    ax.errorbar(truth, mean, yerr=yerr, fmt="none", ecolor="gray", alpha=0.5, zorder=1)
    ax.scatter(truth, mean, c=colors, s=18, zorder=2)

    lo = float(min(truth.min(), table["lower"].min()))
    hi = float(max(truth.max(), table["upper"].max()))
    ax.plot([lo, hi], [lo, hi], linestyle="--", color="black", linewidth=1)

    ax.set_xlabel(xlabel)
    ax.set_ylabel(ylabel)
    ax.set_title(f"{title} (coverage {covered.mean():.0%})")
    ax.grid(True, alpha=0.3)

    fig.tight_layout()
    return fig


def plot_recovery_tables(
    tables: "RecoveryTables",
    figsize: tuple[int, int] = (16, 5),
) -> "matplotlib.figure.Figure":
    import matplotlib.pyplot as plt

    fig, axes = plt.subplots(1, 3, figsize=figsize)
    panels = [
        (tables.individuals, "Gregariousness (alpha)"),
        (tables.subgroups, "Prevalence (beta)"),
        (tables.dispersion, "Overdispersion (omega)"),
    ]
    for ax, (table, title) in zip(axes, panels):
        plot_recovery(table, title=title, ax=ax)

    fig.tight_layout()
    return fig

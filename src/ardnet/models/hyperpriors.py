from dataclasses import dataclass

import numpy as np
import pandas as pd

from ardnet.data.synthetic import ARDDataset
from ardnet.exceptions import InputInvariantError


KNOWN_SUBGROUP_SIGMA = 0.01
UNKNOWN_SUBGROUP_SIGMA = 10.0


@dataclass(frozen=True)
class BetaHyperparameters:
    """Prior mean and scale for each subgroup's log prevalence."""

    mu: pd.Series
    sigma: pd.Series
    n_known: int

    @property
    def n_subgroups(self) -> int:
        return len(self.mu)

    def select(self, labels: pd.Index) -> "BetaHyperparameters":
        """
        Restrict to ``labels``, keeping each subgroup's prior unchanged.

        ``n_known`` becomes the number of known subgroups still present.
        """
        missing = pd.Index(labels).difference(self.mu.index)
        if len(missing) > 0:
            raise InputInvariantError(f"no prior for subgroups {missing[:5].tolist()}")

        known = self.mu.index[: self.n_known]
        return BetaHyperparameters(
            mu=self.mu.loc[labels],
            sigma=self.sigma.loc[labels],
            n_known=int(pd.Index(labels).isin(known).sum()),
        )


def derive_beta_hyperparameters(
    beta: pd.Series,
    n_known: int = 12,
    known_sigma: float = KNOWN_SUBGROUP_SIGMA,
    unknown_sigma: float = UNKNOWN_SUBGROUP_SIGMA,
) -> BetaHyperparameters:
    """
    Prior parameters for ``beta`` when the first subgroups are calibrated.

    The leading ``n_known`` subgroups have externally known prevalence
    (e.g. first names with published frequencies): their prior is centred
    on the true value with a near-zero scale. The remaining subgroups get
    the mean of the known ones and a loose scale.

    Parameters
    ----------
    beta : pd.Series
        Log prevalence per subgroup, in subgroup order.
    n_known : int
        Number of leading subgroups treated as known.
    known_sigma, unknown_sigma : float
        Prior scales for known and unknown subgroups.

    Returns
    -------
    BetaHyperparameters
        ``mu`` and ``sigma`` aligned with ``beta.index``.
    """
    n_subgroups = len(beta)
    if n_subgroups < 1:
        raise InputInvariantError("beta must have at least one subgroup")
    if not 1 <= n_known <= n_subgroups:
        raise InputInvariantError(
            f"n_known must be in [1, {n_subgroups}], got {n_known}"
        )
    if known_sigma <= 0 or unknown_sigma <= 0:
        raise InputInvariantError("prior scales must be > 0")

    values = np.asarray(beta, dtype=np.float64)
    known_mean = float(np.mean(values[:n_known]))

    mu = values.copy()
    mu[n_known:] = known_mean

    sigma = np.full(n_subgroups, float(unknown_sigma))
    sigma[:n_known] = float(known_sigma)

    index = beta.index if isinstance(beta, pd.Series) else pd.RangeIndex(n_subgroups)
    return BetaHyperparameters(
        mu=pd.Series(mu, index=index, name="mu_beta"),
        sigma=pd.Series(sigma, index=index, name="sigma_beta"),
        n_known=n_known,
    )


def derive_dataset_hyperparameters(
    dataset: ARDDataset,
    n_known: int = 12,
) -> BetaHyperparameters:
    """
    Calibrated ``beta`` priors for the subgroups left in ``dataset``.

    Known subgroups are the first ``n_known`` *simulated* ones, so a
    subgroup removed by the zero-variance filter is not replaced by the
    next unknown one, and the mean given to unknown subgroups does not
    depend on what was pruned.
    """
    hyper = derive_beta_hyperparameters(dataset.calibration_beta, n_known=n_known)
    return hyper.select(dataset.y.columns)

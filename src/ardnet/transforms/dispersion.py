import numpy as np
from numpy.typing import NDArray


def simulator_nb_params(
    log_mean: NDArray[np.floating],
    omega: NDArray[np.floating],
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """
    Size/probability parameters used to draw overdispersed tie counts.

    ``size = exp(log_mean) / (omega - 1)`` and ``prob = 1 / omega``, which
    keeps ``E[y] = exp(log_mean)`` fixed while ``Var[y] = omega * E[y]``.

    Parameters
    ----------
    log_mean : NDArray
        ``alpha_i + beta_k``, broadcastable against ``omega``.
    omega : NDArray
        Overdispersion factor, must be > 1.

    Returns
    -------
    tuple[NDArray, NDArray]
        ``(size, prob)`` in NumPy's ``negative_binomial(n, p)`` convention.
    """
    omega_arr = np.asarray(omega, dtype=np.float64)
    if np.any(omega_arr <= 1):
        raise ValueError("omega must be > 1 for overdispersed counts")

    size = np.exp(log_mean) / (omega_arr - 1.0)
    prob = 1.0 / omega_arr
    return size, prob


def dispersion_rate(inv_omega):
    """Rate term ``1 / (1/inv_omega - 1)``, written so it also accepts tensors."""
    return inv_omega / (1.0 - inv_omega)


def model_nb_params(mean, inv_omega):
    """
    Shape/rate pair of the model likelihood.

    ``rate = 1 / (1/inv_omega - 1)`` and ``xi = rate * mean``. Works on
    NumPy arrays and PyTensor tensors (only arithmetic is used).
    """
    rate = dispersion_rate(inv_omega)
    return rate * mean, rate


def omega_from_inverse(inv_omega):
    """
    Overdispersion ``omega = 1 / inv_omega``.

    Accepts arrays, pandas Series and xarray DataArrays (draws included) and
    returns the same container type.

    Raises
    ------
    ValueError
        If any value lies outside (0, 1].
    """
    values = np.asarray(inv_omega, dtype=np.float64)
    if np.any((values <= 0) | (values > 1)):
        raise ValueError("inv_omega must lie in (0, 1]")
    return np.divide(1.0, inv_omega)

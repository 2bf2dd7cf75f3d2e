"""
Negative-binomial parameterizations for overdispersed tie counts.

The simulator and the model describe the same distribution in two
conventions:

1. **Simulator (size/probability)**: NumPy's ``negative_binomial(n, p)``
   with ``n = exp(alpha + beta) / (omega - 1)`` and ``p = 1 / omega``.

2. **Model (shape/rate)**: ``rate = 1 / (1/inv_omega - 1)`` and
   ``xi = rate * exp(alpha + beta)``, handed to PyMC as
   ``NegativeBinomial(mu=xi / rate, alpha=xi)``.

Both give mean ``exp(alpha + beta)`` and variance ``omega`` times the mean.
The helpers only use arithmetic so they work with both NumPy arrays and
PyTensor tensors.
"""

from ardnet.transforms.dispersion import (
    dispersion_rate,
    model_nb_params,
    omega_from_inverse,
    simulator_nb_params,
)

__all__ = [
    "dispersion_rate",
    "model_nb_params",
    "omega_from_inverse",
    "simulator_nb_params",
]

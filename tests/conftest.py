"""
Pytest configuration and shared fixtures for ardnet tests.

Provides reusable fixtures for:
- Random number generators
- Small simulated ARD datasets and hand-built count matrices
- Synthetic posterior traces (no sampling, fast)
- A fitted small experiment (session-scoped, requires sampling)
"""

import arviz as az
import numpy as np
import pandas as pd
import pytest
from hypothesis import Verbosity, settings

from ardnet.data.synthetic import SimulationConfig, generate_synthetic_ard_data
from ardnet.models.hyperpriors import derive_beta_hyperparameters


# =============================================================================
# BASIC FIXTURES
# =============================================================================


@pytest.fixture
def random_seed() -> int:
    """Consistent random seed for reproducible tests."""
    return 42


@pytest.fixture
def rng(random_seed: int) -> np.random.Generator:
    """NumPy random generator."""
    return np.random.default_rng(random_seed)


# =============================================================================
# SIMULATED DATA FIXTURES
# =============================================================================


@pytest.fixture
def small_config() -> SimulationConfig:
    """
    Small scenario: 40 respondents x 10 subgroups, 4 known.

    Prevalence is shifted up (mu_beta=-4) so no subgroup comes out all zero.
    """
    return SimulationConfig(
        n_individuals=40,
        n_subgroups=10,
        mu_alpha=5.0,
        sigma_alpha=1.0,
        mu_beta=-4.0,
        sigma_beta=0.5,
        n_known=4,
        random_seed=7,
    )


@pytest.fixture
def small_dataset(small_config: SimulationConfig):
    return generate_synthetic_ard_data(small_config)


@pytest.fixture
def small_hyper(small_dataset, small_config):
    return derive_beta_hyperparameters(
        small_dataset.truth.beta, n_known=small_config.n_known
    )


@pytest.fixture
def counts_with_constant_column() -> pd.DataFrame:
    """5 respondents x 4 subgroups; k02 is all zeros, k04 is all threes."""
    return pd.DataFrame(
        np.array(
            [
                [1, 0, 4, 3],
                [0, 0, 2, 3],
                [3, 0, 0, 3],
                [2, 0, 1, 3],
                [5, 0, 7, 3],
            ],
            dtype=np.int64,
        ),
        index=pd.Index(["i001", "i002", "i003", "i004", "i005"], name="individual"),
        columns=pd.Index(["k01", "k02", "k03", "k04"], name="subgroup"),
    )


@pytest.fixture
def counts_with_constant_row() -> pd.DataFrame:
    """4 respondents x 3 subgroups; i002 answered 0 everywhere."""
    return pd.DataFrame(
        np.array(
            [
                [1, 2, 0],
                [0, 0, 0],
                [4, 1, 2],
                [2, 2, 5],
            ],
            dtype=np.int64,
        ),
        index=pd.Index(["i001", "i002", "i003", "i004"], name="individual"),
        columns=pd.Index(["k01", "k02", "k03"], name="subgroup"),
    )


# =============================================================================
# SYNTHETIC TRACE FIXTURES (no sampling)
# =============================================================================


def make_trace_around_truth(
    dataset,
    rng: np.random.Generator,
    chains: int = 2,
    draws: int = 200,
    noise: float = 0.1,
) -> az.InferenceData:
    """Posterior-shaped draws scattered around the simulated truth."""
    truth = dataset.truth
    n_i, n_k = dataset.n_individuals, dataset.n_subgroups

    alpha = truth.alpha.to_numpy() + rng.normal(0, noise, size=(chains, draws, n_i))
    beta = truth.beta.to_numpy() + rng.normal(0, noise, size=(chains, draws, n_k))
    inv_omega = np.clip(
        truth.inv_omega.to_numpy() + rng.normal(0, noise / 10, size=(chains, draws, n_k)),
        0.01,
        0.99,
    )

    return az.from_dict(
        posterior={
            "mu_alpha": rng.normal(truth.mu_alpha, noise, size=(chains, draws)),
            "sigma_alpha": np.abs(rng.normal(truth.sigma_alpha, noise, size=(chains, draws))),
            "alpha": alpha,
            "beta": beta,
            "inv_omega": inv_omega,
        },
        coords={
            "individual": dataset.y.index.tolist(),
            "subgroup": dataset.y.columns.tolist(),
        },
        dims={
            "alpha": ["individual"],
            "beta": ["subgroup"],
            "inv_omega": ["subgroup"],
        },
    )


@pytest.fixture
def synthetic_trace(small_dataset, rng) -> az.InferenceData:
    return make_trace_around_truth(small_dataset, rng)


# =============================================================================
# FITTED FIXTURES (Session-scoped for speed)
# =============================================================================


@pytest.fixture(scope="session")
def small_experiment():
    """
    Small end-to-end recovery experiment.

    Session-scoped to avoid resampling for every test.
    Uses minimal sampling for speed.
    """
    pytest.importorskip("pymc")

    from ardnet.evaluation.posterior import SamplerSettings
    from ardnet.experiment import run_recovery_experiment

    config = SimulationConfig(
        n_individuals=40,
        n_subgroups=10,
        mu_beta=-4.0,
        sigma_beta=0.5,
        n_known=4,
        random_seed=7,
    )
    settings = SamplerSettings(
        chains=2,
        warmup=200,
        iter=400,
        random_seed=42,
        progressbar=False,
    )

    return run_recovery_experiment(config, settings)


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests requiring PyMC sampling"
    )
    config.addinivalue_line("markers", "pymc: marks tests requiring PyMC")


def pytest_collection_modifyitems(config, items):
    """Auto-mark tests based on their requirements."""
    for item in items:
        if any("experiment" in name for name in item.fixturenames):
            item.add_marker(pytest.mark.pymc)

        if "integration" in item.nodeid:
            item.add_marker(pytest.mark.integration)
            item.add_marker(pytest.mark.slow)


# =============================================================================
# HYPOTHESIS PROFILES
# =============================================================================

settings.register_profile("ci", max_examples=50, deadline=None)
settings.register_profile("dev", max_examples=10, deadline=None)
settings.register_profile(
    "debug", max_examples=5, verbosity=Verbosity.verbose, deadline=None
)

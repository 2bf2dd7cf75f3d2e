"""Synthetic ARD generation and validation schemas."""

from ardnet.data.schemas import RecoveryTable, ValidatedSettings, validate_observations
from ardnet.data.synthetic import (
    ARDDataset,
    SimulationConfig,
    TrueParameters,
    VarianceAxis,
    drop_constant,
    generate_synthetic_ard_data,
    prune_dataset,
    simulate_latents,
    simulate_ties,
    summarize_dataset,
)

__all__ = [
    "RecoveryTable",
    "validate_observations",
    "ValidatedSettings",
    "ARDDataset",
    "SimulationConfig",
    "TrueParameters",
    "VarianceAxis",
    "drop_constant",
    "generate_synthetic_ard_data",
    "prune_dataset",
    "simulate_latents",
    "simulate_ties",
    "summarize_dataset",
]

"""
Failure kinds for the ARD simulate -> fit -> summarize workflow.

Every error carries the ``stage`` it belongs to so a caller running the
whole experiment can tell which step aborted.
"""


class ArdnetError(Exception):
    """Base class for all ardnet failures."""

    stage: str = "unknown"


class InputInvariantError(ArdnetError, ValueError):
    """Inputs violate a structural invariant (sizes, lengths, counts, settings)."""

    stage = "validation"


class DegenerateDataError(ArdnetError):
    """The zero-variance filter left nothing to fit."""

    stage = "simulation"


class SamplerError(ArdnetError, RuntimeError):
    """The MCMC engine failed (rejected initial point, numerical error, ...)."""

    stage = "sampling"


class ConvergenceError(SamplerError):
    """Sampling finished but diagnostics say the chains did not converge."""


class EmptyPosteriorError(ArdnetError):
    """No retained draws are available to summarize."""

    stage = "summary"

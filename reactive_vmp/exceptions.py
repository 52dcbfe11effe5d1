"""
Error taxonomy for the message-passing engine.

Construction-time errors derive from ``ModelBuildError`` (also a
``ValueError``) and are raised before any sweep runs. Numerical errors
derive from ``NumericalError`` and are raised while a sweep or a free-energy
evaluation is in progress; the inference session turns them into the
``Diverged`` terminal state.

Classes
-------
VMPError
    Root of all engine errors.
ModelBuildError
    Base class for fatal construction-time errors.
ArityMismatch, UnknownVariable, OverlappingGroups, IncompleteCoverage,
MissingInitialMarginal
    Construction-time errors.
IncompatibleFamily
    Two distributions (or a distribution and a statistic) cannot be combined.
NumericalError
    Base class for runtime numerical failures.
ImproperDistribution, FreeEnergyUndefined
    Runtime numerical failures.
InferenceDiverged
    A sweep was aborted by a numerical failure.
"""

from typing import Optional


class VMPError(Exception):
    """Base class for all errors raised by the engine."""


class ModelBuildError(VMPError, ValueError):
    """A model, constraint or initialisation could not be built."""


class ArityMismatch(ModelBuildError):
    """A factor was connected to the wrong number of variables."""


class UnknownVariable(ModelBuildError):
    """A variable id or name does not exist (or is not latent where required)."""


class OverlappingGroups(ModelBuildError):
    """A latent variable appears in more than one constraint group."""


class IncompleteCoverage(ModelBuildError):
    """Constraint groups do not cover every latent variable."""


class MissingInitialMarginal(ModelBuildError):
    """A latent variable was not given an initial marginal."""


class IncompatibleFamily(VMPError, TypeError):
    """Distributions of different families were combined."""


class NumericalError(VMPError, ArithmeticError):
    """Base class for numerical failures during inference."""


class ImproperDistribution(NumericalError):
    """A natural-parameter update produced an improper distribution."""


class FreeEnergyUndefined(NumericalError):
    """A free-energy term evaluated to a non-finite value."""


class InferenceDiverged(VMPError):
    """
    A sweep was aborted because a message or marginal update failed.

    Parameters
    ----------
    iteration : int
        One-based index of the sweep that failed.
    cause : Exception, optional
        The numerical error or family mismatch that aborted the sweep.
    """

    def __init__(self, iteration: int, cause: Optional[Exception] = None):
        self.iteration = iteration
        self.cause = cause
        message = f"Inference diverged during iteration {iteration}"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)

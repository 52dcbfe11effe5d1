"""
Reactive VMP: Variational Message Passing on Factor Graphs

This package computes approximate posterior marginals of the latent
variables of a factor graph by variational message passing, and tracks
the variational free energy of every iteration.

Modules
-------
distributions
    Exponential-family message algebra.
graph
    Factor graph, factor kinds and the model builder.
inference
    Constraints, scheduler, free energy and inference sessions.
models
    Canonical models with synthetic data generators.
utils
    Utility functions for diagnostics, alignment, and metrics.

Quick Start
-----------
>>> from reactive_vmp.models import GaussianMixtureModel
>>> from reactive_vmp.utils import align_components, print_diagnostic_summary
>>>
>>> # Generate synthetic data
>>> model = GaussianMixtureModel(means=(-3.0, 2.0))
>>> y = model.generate_data(100)
>>>
>>> # Mean-field VMP
>>> session = model.session(y)
>>> result = session.run(iterations=20, free_energy=True, verbose=True)
>>>
>>> # Evaluate results
>>> aligned, _ = align_components(model.component_means(result), model.means)
>>> print_diagnostic_summary("Mean field", result, names=["m1", "m2"])
"""

__version__ = '0.1.0'

# Make key classes available at package level
from .exceptions import (
    VMPError,
    ModelBuildError,
    ArityMismatch,
    UnknownVariable,
    OverlappingGroups,
    IncompleteCoverage,
    MissingInitialMarginal,
    IncompatibleFamily,
    NumericalError,
    ImproperDistribution,
    FreeEnergyUndefined,
    InferenceDiverged
)
from .graph import FactorGraph, ModelSpecification
from .inference import (
    Constraints,
    InferenceSession,
    InferenceResult,
    InferenceState,
    infer
)

__all__ = [
    'FactorGraph',
    'ModelSpecification',
    'Constraints',
    'InferenceSession',
    'InferenceResult',
    'InferenceState',
    'infer',
    'VMPError',
    'ModelBuildError',
    'ArityMismatch',
    'UnknownVariable',
    'OverlappingGroups',
    'IncompleteCoverage',
    'MissingInitialMarginal',
    'IncompatibleFamily',
    'NumericalError',
    'ImproperDistribution',
    'FreeEnergyUndefined',
    'InferenceDiverged'
]

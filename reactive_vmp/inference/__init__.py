"""
Variational message-passing inference.

Classes
-------
Constraints
    Mean-field or structured partition of the latent variables.
MarginalSet
    Snapshot of the marginals of every variable.
MessageScheduler
    Runs update sweeps over the factorisation groups.
InferenceSession
    Orchestrates a full inference run.
InferenceResult
    Terminal state and histories of a run.
InferenceState
    Session lifecycle states.

Functions
---------
evaluate
    Variational free energy of a marginal snapshot.
free_energy_terms
    Per-factor and per-group breakdown of the free energy.
infer
    Build a session and run it.

Quick Import
------------
>>> from reactive_vmp.inference import InferenceSession, infer

Examples
--------
>>> from reactive_vmp.graph import ModelSpecification
>>> from reactive_vmp.distributions import Normal
>>>
>>> spec = ModelSpecification()
>>> spec.latent("m", family="normal")
>>> spec.observed("tau", 1.0)
>>> spec.observed("y", [1.2, 0.8, 1.1], array=True)
>>> spec.relate("prior", "m", distribution=Normal(0.0, 100.0))
>>> for i in range(3):
...     spec.relate("normal", f"y[{i}]", "m", "tau")
>>>
>>> result = infer(spec, initial_marginals={"m": Normal(0.0, 1.0)},
...                iterations=5, free_energy=True)
>>> result.posterior("m")
"""

from .constraints import Constraints
from .free_energy import evaluate, free_energy_terms
from .marginals import MarginalSet
from .scheduler import SCHEDULES, MessageScheduler
from .session import (
    InferenceResult,
    InferenceSession,
    InferenceState,
    infer
)

__all__ = [
    'Constraints',
    'MarginalSet',
    'MessageScheduler',
    'SCHEDULES',
    'InferenceSession',
    'InferenceResult',
    'InferenceState',
    'evaluate',
    'free_energy_terms',
    'infer'
]

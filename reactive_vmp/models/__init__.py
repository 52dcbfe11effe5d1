"""
Canonical models.

Each model generates synthetic data from its own random generator and
builds the specification, initial marginals and constraints of an
inference session.

Classes
-------
BaseModel
    Abstract base class for canonical models.
ConjugateNormalModel
    Gaussian data with unknown mean (and optionally precision).
GaussianRandomWalkModel
    Latent random walk with Gaussian observations.
GaussianMixtureModel
    One-dimensional Gaussian mixture.
MvNormalWishartModel
    Multivariate Gaussian with Wishart precision.

Quick Import
------------
>>> from reactive_vmp.models import GaussianMixtureModel

Examples
--------
>>> model = GaussianMixtureModel(means=(-3.0, 2.0), seed=1)
>>> y = model.generate_data(100)
>>> result = model.session(y).run(iterations=20, free_energy=True)
>>> result.state
"""

from .base import BaseModel
from .conjugate import ConjugateNormalModel
from .mixture import GaussianMixtureModel
from .random_walk import GaussianRandomWalkModel
from .wishart import MvNormalWishartModel

__all__ = [
    'BaseModel',
    'ConjugateNormalModel',
    'GaussianRandomWalkModel',
    'GaussianMixtureModel',
    'MvNormalWishartModel'
]

"""
Distribution/message algebra.

Closed-form exponential-family distributions in natural parameters,
together with the point mass used for observed data.

Classes
-------
Distribution, ExponentialFamily
    Interfaces.
Normal, MvNormal, Gamma, Wishart, Bernoulli, Categorical, Beta, Dirichlet
    Exponential families.
PointMass
    Marginal of observed variables.

Functions
---------
prod_all
    Normalised product of several messages.
kl_divergence
    KL(q || p) within a family.
resolve_family
    Map a family hint (name or class) to a distribution class.

Quick Import
------------
>>> from reactive_vmp.distributions import Normal, Gamma, prod_all
"""

from typing import Optional, Type, Union

from ..exceptions import IncompatibleFamily
from .base import (
    DTYPE,
    Distribution,
    ExponentialFamily,
    as_tensor,
    kl_divergence,
    prod_all
)
from .discrete import Bernoulli, Beta, Categorical, Dirichlet
from .gamma import Gamma, Wishart
from .normal import MvNormal, Normal
from .point_mass import PointMass

FAMILIES = {
    cls.family: cls
    for cls in (
        Normal, MvNormal, Gamma, Wishart,
        Bernoulli, Categorical, Beta, Dirichlet, PointMass
    )
}


def resolve_family(
    hint: Union[str, Type[Distribution], None]
) -> Optional[Type[Distribution]]:
    """
    Resolve a family hint.

    Parameters
    ----------
    hint : str, Distribution subclass or None
        Family name (``"normal"``, ``"gamma"``, ...) or class.

    Returns
    -------
    cls : type or None
        The distribution class, or None when no hint was given.
    """
    if hint is None:
        return None
    if isinstance(hint, type) and issubclass(hint, Distribution):
        return hint
    try:
        return FAMILIES[str(hint).lower()]
    except KeyError:
        raise IncompatibleFamily(f"Unknown distribution family '{hint}'")


__all__ = [
    'DTYPE',
    'Distribution',
    'ExponentialFamily',
    'Normal',
    'MvNormal',
    'Gamma',
    'Wishart',
    'Bernoulli',
    'Categorical',
    'Beta',
    'Dirichlet',
    'PointMass',
    'FAMILIES',
    'as_tensor',
    'kl_divergence',
    'prod_all',
    'resolve_family'
]

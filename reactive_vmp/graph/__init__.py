"""
Factor graph model.

Classes
-------
FactorGraph
    Arena of variable and factor nodes.
VariableNode
    Latent or observed variable.
ModelSpecification
    Declarative builder producing a ``FactorGraph``.
Factor
    Base class of factor kinds; see ``FACTOR_KINDS`` for the registry.

Quick Import
------------
>>> from reactive_vmp.graph import FactorGraph, ModelSpecification
"""

from .factor_graph import (
    DIRECTIONS,
    FACTOR_TO_VARIABLE,
    LATENT,
    OBSERVED,
    VARIABLE_TO_FACTOR,
    FactorGraph,
    VariableNode
)
from .factors import (
    FACTOR_KINDS,
    BernoulliFactor,
    CategoricalFactor,
    Factor,
    MvNormalFactor,
    NormalFactor,
    NormalMixtureFactor,
    PriorFactor,
    expected_square_difference,
    register_factor
)
from .specification import ModelSpecification

__all__ = [
    'FactorGraph',
    'VariableNode',
    'ModelSpecification',
    'Factor',
    'PriorFactor',
    'NormalFactor',
    'MvNormalFactor',
    'CategoricalFactor',
    'BernoulliFactor',
    'NormalMixtureFactor',
    'FACTOR_KINDS',
    'register_factor',
    'expected_square_difference',
    'LATENT',
    'OBSERVED',
    'FACTOR_TO_VARIABLE',
    'VARIABLE_TO_FACTOR',
    'DIRECTIONS'
]

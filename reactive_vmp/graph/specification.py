"""
Declarative model specification.

A ``ModelSpecification`` records ordered latent declarations, observed
declarations bound to data and factor relations, and turns them into a
``FactorGraph``. Array declarations expand to variables named
``"name[i]"``.

Classes
-------
ModelSpecification
    Builder for factor graphs.
"""

from typing import List, Optional, Tuple

import torch

from ..distributions import as_tensor
from .factor_graph import LATENT, OBSERVED, FactorGraph


class ModelSpecification:
    """
    Ordered, declarative description of a model.

    Examples
    --------
    >>> from reactive_vmp.distributions import Normal
    >>> spec = (
    ...     ModelSpecification()
    ...     .latent("m", "normal")
    ...     .observed("tau", 1.0)
    ...     .observed("y", [0.3, -0.2, 0.9], family="normal", array=True)
    ...     .relate("prior", "m", distribution=Normal(0.0, 100.0))
    ... )
    >>> for i in range(3):
    ...     spec = spec.relate("normal", f"y[{i}]", "m", "tau")
    >>> graph = spec.build()
    """

    def __init__(self):
        self._declarations: List[Tuple[str, str, object, object]] = []
        self._relations: List[Tuple[str, Tuple[str, ...], dict]] = []

    def latent(
        self,
        name: str,
        family=None,
        size: Optional[int] = None
    ) -> "ModelSpecification":
        """
        Declare a latent variable (or an array of ``size`` variables).
        """
        if size is not None and int(size) < 1:
            raise ValueError("Array size must be positive")
        self._declarations.append((LATENT, name, family, size))
        return self

    def observed(
        self,
        name: str,
        data,
        family=None,
        array: bool = False
    ) -> "ModelSpecification":
        """
        Declare an observed variable bound to ``data``.

        Parameters
        ----------
        name : str
            Variable (or array) name.
        data : array-like
            Observed value. With ``array=True`` the first axis indexes the
            elements ``name[0]``, ``name[1]``, ...
        family : str, optional
            Family hint.
        array : bool, default=False
            Whether ``data`` holds one value per array element.
        """
        value = as_tensor(data)
        if array and value.ndim == 0:
            raise ValueError("Array observations need at least one axis")
        self._declarations.append((OBSERVED, name, family, (value, array)))
        return self

    def relate(self, kind, *args: str, **static) -> "ModelSpecification":
        """Connect the named variables through a factor of ``kind``."""
        self._relations.append((kind, tuple(args), static))
        return self

    def build(self) -> FactorGraph:
        """
        Build the factor graph.

        Raises
        ------
        UnknownVariable
            If a relation names an undeclared variable.
        ArityMismatch
            If a relation has the wrong number of arguments.
        """
        graph = FactorGraph()
        for role, name, family, extra in self._declarations:
            if role == LATENT:
                size = extra
                if size is None:
                    graph.add_variable(LATENT, family, name=name)
                else:
                    for i in range(int(size)):
                        graph.add_variable(LATENT, family, name=f"{name}[{i}]")
            else:
                value, array = extra
                if not array:
                    graph.add_variable(OBSERVED, family, name=name, value=value)
                else:
                    for i, element in enumerate(torch.unbind(value, dim=0)):
                        graph.add_variable(
                            OBSERVED, family, name=f"{name}[{i}]", value=element
                        )

        for kind, args, static in self._relations:
            ids = [graph.variable_id(arg) for arg in args]
            graph.add_factor(kind, ids, static)
        return graph

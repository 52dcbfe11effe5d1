"""
Factor graph model.

Variables and factors are stored in arenas and addressed by stable integer
ids. The topology is fixed once the graph is frozen (an inference session
freezes the graph it is built from); only marginals and messages, which
live outside the graph, change during inference.

Classes
-------
VariableNode
    A latent or observed variable.
FactorGraph
    Builder and container for variable and factor nodes.
"""

from typing import Dict, List, Optional, Sequence, Tuple, Type, Union

import torch

from ..distributions import Distribution, as_tensor, resolve_family
from ..exceptions import ArityMismatch, UnknownVariable
from .factors import FACTOR_KINDS, Factor

LATENT = "latent"
OBSERVED = "observed"
ROLES = (LATENT, OBSERVED)

FACTOR_TO_VARIABLE = "factor_to_variable"
VARIABLE_TO_FACTOR = "variable_to_factor"
DIRECTIONS = (FACTOR_TO_VARIABLE, VARIABLE_TO_FACTOR)

Edge = Tuple[int, int, str]


class VariableNode:
    """
    Variable node.

    Attributes
    ----------
    id : int
        Position in the variable arena.
    name : str
        Unique name.
    role : {"latent", "observed"}
        Whether the variable is inferred or bound to data.
    family : type or None
        Distribution family hint of the marginal.
    value : torch.Tensor or None
        Observed value (observed variables only).
    factors : list of int
        Ids of incident factors, in connection order.
    """

    __slots__ = ("id", "name", "role", "family", "value", "factors")

    def __init__(
        self,
        id: int,
        name: str,
        role: str,
        family: Optional[Type[Distribution]] = None,
        value: Optional[torch.Tensor] = None
    ):
        self.id = id
        self.name = name
        self.role = role
        self.family = family
        self.value = value
        self.factors: List[int] = []

    @property
    def is_latent(self) -> bool:
        return self.role == LATENT

    def __repr__(self) -> str:
        family = self.family.__name__ if self.family is not None else None
        return (
            f"VariableNode(id={self.id}, name={self.name!r}, "
            f"role={self.role!r}, family={family})"
        )


class FactorGraph:
    """
    Bipartite graph of variable and factor nodes.

    Examples
    --------
    >>> from reactive_vmp.distributions import Normal
    >>> graph = FactorGraph()
    >>> m = graph.add_variable("latent", "normal", name="m")
    >>> y = graph.add_variable("observed", "normal", name="y", value=1.3)
    >>> tau = graph.add_variable("observed", name="tau", value=2.0)
    >>> graph.add_factor("prior", [m], {"distribution": Normal(0.0, 10.0)})
    0
    >>> graph.add_factor("normal", [y, m, tau])
    1
    >>> graph.neighbors(m)
    (0, 1)
    """

    def __init__(self):
        self.variables: List[VariableNode] = []
        self.factors: List[Factor] = []
        self.edges: List[Edge] = []
        self._edge_set = set()
        self._names: Dict[str, int] = {}
        self._frozen = False

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def add_variable(
        self,
        role: str,
        family_hint: Union[str, Type[Distribution], None] = None,
        name: Optional[str] = None,
        value=None
    ) -> int:
        """
        Add a variable node.

        Parameters
        ----------
        role : {"latent", "observed"}
            Variable role.
        family_hint : str or Distribution subclass, optional
            Family of the variable's marginal.
        name : str, optional
            Unique name. Defaults to ``"x<id>"``.
        value : array-like, optional
            Data value; required for observed variables.

        Returns
        -------
        variable_id : int
        """
        self._check_mutable()
        if role not in ROLES:
            raise ValueError(f"Unknown variable role '{role}'")
        if role == OBSERVED and value is None:
            raise ValueError("Observed variables need a data value")
        if role == LATENT and value is not None:
            raise ValueError("Latent variables cannot carry a data value")

        variable_id = len(self.variables)
        if name is None:
            name = f"x{variable_id}"
        if name in self._names:
            raise ValueError(f"Duplicate variable name '{name}'")

        node = VariableNode(
            variable_id,
            name,
            role,
            family=resolve_family(family_hint),
            value=None if value is None else as_tensor(value)
        )
        self.variables.append(node)
        self._names[name] = variable_id
        return variable_id

    def add_factor(
        self,
        kind: Union[str, Type[Factor]],
        ordered_variable_ids: Sequence[int],
        static_parameters: Optional[dict] = None
    ) -> int:
        """
        Add a factor node connecting ``ordered_variable_ids``.

        Parameters
        ----------
        kind : str or Factor subclass
            Registered factor kind (see ``FACTOR_KINDS``).
        ordered_variable_ids : sequence of int
            Argument variables in the order of the factor's interface.
        static_parameters : dict, optional
            Static parameters of the factor kind.

        Returns
        -------
        factor_id : int

        Raises
        ------
        UnknownVariable
            If a variable id does not exist.
        ArityMismatch
            If the number of variables differs from the factor's arity.
        """
        self._check_mutable()
        if isinstance(kind, type) and issubclass(kind, Factor):
            factor_cls = kind
        elif kind in FACTOR_KINDS:
            factor_cls = FACTOR_KINDS[kind]
        else:
            raise ValueError(f"Unknown factor kind '{kind}'")

        static = dict(static_parameters or {})
        variable_ids = [self._coerce_id(v) for v in ordered_variable_ids]

        expected = factor_cls.arity(**static)
        if len(variable_ids) != expected:
            raise ArityMismatch(
                f"Factor '{factor_cls.kind}' expects {expected} variables, "
                f"got {len(variable_ids)}"
            )
        if len(set(variable_ids)) != len(variable_ids):
            raise ValueError(
                f"A variable appears more than once in factor "
                f"'{factor_cls.kind}'"
            )

        factor = factor_cls(variable_ids, **static)
        factor.id = len(self.factors)
        self.factors.append(factor)

        for variable_id in variable_ids:
            self.add_edge(factor.id, variable_id, FACTOR_TO_VARIABLE)
            self.add_edge(factor.id, variable_id, VARIABLE_TO_FACTOR)
        return factor.id

    def add_edge(self, factor_id: int, variable_id: int, direction: str) -> None:
        """
        Register the directed edge between a factor and one of its arguments.

        ``add_factor`` registers both directions for every argument; adding
        an existing edge again is a no-op.
        """
        self._check_mutable()
        if direction not in DIRECTIONS:
            raise ValueError(f"Unknown edge direction '{direction}'")
        if not 0 <= factor_id < len(self.factors):
            raise ValueError(f"Unknown factor id {factor_id}")
        self._check_variable(variable_id)
        if variable_id not in self.factors[factor_id].variables:
            raise ValueError(
                f"Variable {variable_id} is not an argument of factor {factor_id}"
            )

        key = (factor_id, variable_id, direction)
        if key in self._edge_set:
            return
        self._edge_set.add(key)
        self.edges.append(key)

        node = self.variables[variable_id]
        if factor_id not in node.factors:
            node.factors.append(factor_id)

    def freeze(self) -> "FactorGraph":
        """Make the topology immutable."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def neighbors(self, variable_id: int) -> Tuple[int, ...]:
        """Ids of the factors connected to a variable, in connection order."""
        self._check_variable(variable_id)
        return tuple(self.variables[variable_id].factors)

    def factor_variables(self, factor_id: int) -> Tuple[int, ...]:
        """Ordered argument variable ids of a factor."""
        return self.factors[factor_id].variables

    def latent_ids(self) -> List[int]:
        """Latent variable ids in insertion order."""
        return [v.id for v in self.variables if v.is_latent]

    def observed_ids(self) -> List[int]:
        """Observed variable ids in insertion order."""
        return [v.id for v in self.variables if not v.is_latent]

    def variable_id(self, name: str) -> int:
        """Id of the variable called ``name``."""
        try:
            return self._names[name]
        except KeyError:
            raise UnknownVariable(f"Unknown variable '{name}'")

    def ids_for(self, key: Union[int, str]) -> List[int]:
        """
        Resolve an id, a variable name or an array name to variable ids.

        An array name ``"z"`` resolves to every ``"z[i]"`` in insertion
        order.
        """
        if isinstance(key, int):
            self._check_variable(key)
            return [key]
        if key in self._names:
            return [self._names[key]]
        prefix = f"{key}["
        ids = [v.id for v in self.variables if v.name.startswith(prefix)]
        if not ids:
            raise UnknownVariable(f"Unknown variable '{key}'")
        return ids

    def name_of(self, variable_id: int) -> str:
        return self.variables[variable_id].name

    @property
    def num_variables(self) -> int:
        return len(self.variables)

    @property
    def num_factors(self) -> int:
        return len(self.factors)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _coerce_id(self, variable_id) -> int:
        if isinstance(variable_id, bool) or not hasattr(variable_id, "__index__"):
            raise UnknownVariable(f"Unknown variable id {variable_id!r}")
        variable_id = int(variable_id)
        self._check_variable(variable_id)
        return variable_id

    def _check_variable(self, variable_id: int) -> None:
        if not isinstance(variable_id, int) or not (
            0 <= variable_id < len(self.variables)
        ):
            raise UnknownVariable(f"Unknown variable id {variable_id!r}")

    def _check_mutable(self) -> None:
        if self._frozen:
            raise RuntimeError("The factor graph is frozen")

    def __repr__(self) -> str:
        return (
            f"FactorGraph(latent={len(self.latent_ids())}, "
            f"observed={len(self.observed_ids())}, factors={self.num_factors})"
        )

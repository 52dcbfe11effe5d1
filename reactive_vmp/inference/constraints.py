"""
Factorisation constraints.

A constraint specification partitions the latent variables into groups.
Each group gets one (joint) marginal; different groups interact only
through messages.

Classes
-------
Constraints
    Mean-field or structured partition of the latent variables.
"""

from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..exceptions import IncompleteCoverage, OverlappingGroups, UnknownVariable

MEAN_FIELD = "mean_field"
STRUCTURED = "structured"

Group = Tuple[int, ...]


class Constraints:
    """
    Partition strategy for latent variables.

    Parameters
    ----------
    strategy : {"mean_field", "structured"}, default="mean_field"
        ``"mean_field"`` puts every latent variable in its own group;
        ``"structured"`` uses the caller-supplied ``groups``.
    groups : sequence of sequences, optional
        Structured groups. Members are variable ids, names or array names.
    remainder : {None, "mean_field"}, default=None
        With ``"mean_field"``, latent variables not covered by ``groups``
        become singleton groups instead of raising ``IncompleteCoverage``.

    Examples
    --------
    >>> Constraints.mean_field().partition([0, 1, 2])
    [(0,), (1,), (2,)]
    >>> Constraints.structured([[2, 0], [1]]).partition([0, 1, 2])
    [(0, 2), (1,)]
    """

    def __init__(
        self,
        strategy: str = MEAN_FIELD,
        groups: Optional[Sequence[Sequence[Union[int, str]]]] = None,
        remainder: Optional[str] = None
    ):
        if strategy not in (MEAN_FIELD, STRUCTURED):
            raise ValueError(f"Unknown constraint strategy '{strategy}'")
        if strategy == STRUCTURED and groups is None:
            raise ValueError("Structured constraints need explicit groups")
        if remainder not in (None, MEAN_FIELD):
            raise ValueError(f"Unknown remainder strategy '{remainder}'")
        self.strategy = strategy
        self.groups = [list(g) for g in groups] if groups is not None else None
        self.remainder = remainder

    @classmethod
    def mean_field(cls) -> "Constraints":
        return cls(MEAN_FIELD)

    @classmethod
    def structured(cls, groups, remainder: Optional[str] = None) -> "Constraints":
        return cls(STRUCTURED, groups=groups, remainder=remainder)

    @classmethod
    def from_config(cls, config) -> "Constraints":
        """
        Build from a configuration value.

        Accepts ``None`` or ``"mean_field"``, ``{"mean_field": True}``,
        ``{"structured": groups}`` (optionally with ``"remainder"``) or an
        existing ``Constraints`` instance.
        """
        if config is None:
            return cls.mean_field()
        if isinstance(config, Constraints):
            return config
        if isinstance(config, str):
            if config == STRUCTURED:
                raise ValueError("Structured constraints need explicit groups")
            return cls(config)
        if isinstance(config, dict):
            if STRUCTURED in config:
                return cls.structured(
                    config[STRUCTURED], remainder=config.get("remainder")
                )
            if config.get(MEAN_FIELD):
                return cls.mean_field()
        raise ValueError(f"Unrecognised constraint configuration: {config!r}")

    def partition(self, latent_ids: Iterable[int], graph=None) -> List[Group]:
        """
        Partition the latent variables into ordered, disjoint groups.

        Parameters
        ----------
        latent_ids : iterable of int
            Latent variable ids in insertion order.
        graph : FactorGraph, optional
            Needed when groups refer to variables by name.

        Returns
        -------
        groups : list of tuple of int
            Groups ordered by the insertion index of their first member;
            members ordered by insertion index.

        Raises
        ------
        OverlappingGroups
            If a variable appears in more than one group (or twice in one).
        IncompleteCoverage
            If a latent variable is not covered (and no remainder strategy
            is set).
        UnknownVariable
            If a group member is not a latent variable.
        """
        latent = list(latent_ids)
        rank = {v: i for i, v in enumerate(latent)}

        if self.strategy == MEAN_FIELD:
            return [(v,) for v in latent]

        seen = set()
        groups: List[Group] = []
        for raw_group in self.groups:
            members = []
            for member in raw_group:
                members.extend(self._resolve(member, graph))
            if not members:
                raise ValueError("Constraint groups cannot be empty")
            for v in members:
                if v not in rank:
                    raise UnknownVariable(
                        f"Variable {v} in a constraint group is not latent"
                    )
                if v in seen:
                    raise OverlappingGroups(
                        f"Variable {v} appears in more than one group"
                    )
                seen.add(v)
            groups.append(tuple(sorted(members, key=rank.__getitem__)))

        missing = [v for v in latent if v not in seen]
        if missing:
            if self.remainder != MEAN_FIELD:
                raise IncompleteCoverage(
                    f"Latent variables {missing} are not covered by any group"
                )
            groups.extend((v,) for v in missing)

        groups.sort(key=lambda g: rank[g[0]])
        return groups

    @staticmethod
    def _resolve(member, graph) -> List[int]:
        if isinstance(member, str):
            if graph is None:
                raise UnknownVariable(
                    f"Cannot resolve variable name '{member}' without a graph"
                )
            return graph.ids_for(member)
        return [int(member)]

    def __repr__(self) -> str:
        if self.strategy == MEAN_FIELD:
            return "Constraints(mean_field)"
        return f"Constraints(structured, groups={self.groups})"
